# storefront/main.py
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

from fastapi import Body, Depends, FastAPI, File, Header, HTTPException, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from .auth import optional_customer, require_admin, require_customer
from .checkout import InvalidCheckoutItem, build_line_items, create_checkout_session
from .config import Settings, get_settings
from .core import (
    CheckoutIn, OrderActionIn, OrderSessionIn, SiteSettingsIn, SupportRequestIn, TicketUpdateIn, parse_limit
)
from .database import (
    get_bucket, get_checkout_session_creator, get_checkout_session_retriever, get_db, get_webhook_event_parser
)
from .logging_config import configure_logging
from .models import OrderAction, ProductListing, ProductResponse, SiteSettings, SupportTicketStatus
from .notifications import Mailer, get_mailer
from .orders import (
    OrderActionConflict, apply_order_action, list_customer_orders, list_orders, upsert_order_from_session
)
from .products import (
    delete_admin_product, get_related_storefront_products, get_storefront_product, get_storefront_products,
    list_admin_products, save_admin_product, update_admin_product
)
from .site_settings import (
    DEFAULT_COUNTDOWN, DEFAULT_COUPON, get_site_settings,
    update_countdown_settings, update_coupon_settings
)
from .support import (
    add_admin_reply, create_support_ticket, get_support_ticket,
    list_support_tickets, update_ticket_status
)
from .uploads import upload_asset

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description=settings.app_description,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Storefront reads degrade to fallback data and still answer 200.
# Writes and admin routes fail loudly with a generic message instead.

# ---------------------------
# Error envelope
# ---------------------------
@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=getattr(exc, "headers", None))

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg") if errors else None
    return JSONResponse({"error": message or "Invalid payload."}, status_code=400)

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse({"error": "Internal server error."}, status_code=500)

# ---------------------------
# Product endpoints
# ---------------------------
@app.get("/api/products", response_model=ProductListing, response_model_exclude_none=True)
async def list_products(
    limit: Optional[int] = Query(None),
    db=Depends(get_db),
    config: Settings = Depends(get_settings),
):
    return await get_storefront_products(db, limit, max_limit=config.product_list_max_limit)

@app.get("/api/products/{product_id}", response_model=ProductResponse, response_model_exclude_none=True)
async def get_product(product_id: str, db=Depends(get_db)):
    product = await get_storefront_product(db, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found.")
    return {"item": product}

@app.get("/api/products/{product_id}/related", response_model=ProductListing, response_model_exclude_none=True)
async def related_products(
    product_id: str,
    limit: int = Query(4, ge=1, le=8),
    db=Depends(get_db),
    config: Settings = Depends(get_settings),
):
    product = await get_storefront_product(db, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found.")
    items = await get_related_storefront_products(
        db, product.slug, limit=limit, max_limit=config.product_list_max_limit
    )
    return {"items": items}

# ---------------------------
# Support endpoints
# ---------------------------
@app.post("/api/support")
async def submit_support_ticket(payload: SupportRequestIn, db=Depends(get_db), mailer: Mailer = Depends(get_mailer)):
    name = (payload.name or "").strip()
    email = (payload.email or "").strip()
    message = (payload.message or "").strip()
    if not name or not email or not message:
        raise HTTPException(status_code=400, detail="Name, email, and message are required.")

    try:
        ticket = await create_support_ticket(
            db,
            name=name,
            email=email,
            message=message,
            subject=(payload.subject or "").strip() or None,
            topic=(payload.topic or "").strip() or "general",
            order_number=(payload.order_number or "").strip() or None,
            mailer=mailer,
        )
    except Exception:
        logger.exception("unable to create support ticket")
        raise HTTPException(status_code=500, detail="Unable to submit request. Please try again later.")

    return {"success": True, "ticketId": ticket.id}

@app.get("/api/admin/support")
async def admin_list_support_tickets(
    admin: Dict[str, Any] = Depends(require_admin),
    db=Depends(get_db),
    status: Optional[str] = None,
    limit: Optional[str] = None,
):
    ticket_status = None
    if status:
        try:
            ticket_status = SupportTicketStatus(status)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown ticket status: {status}")

    try:
        tickets = await list_support_tickets(db, limit=parse_limit(limit), status=ticket_status)
    except Exception:
        logger.exception("unable to load support tickets")
        raise HTTPException(status_code=500, detail="Unable to load support tickets.")

    return {"tickets": tickets}

@app.get("/api/admin/support/{ticket_id}")
async def admin_get_support_ticket(
    ticket_id: str,
    admin: Dict[str, Any] = Depends(require_admin),
    db=Depends(get_db),
):
    try:
        ticket = await get_support_ticket(db, ticket_id)
    except Exception:
        logger.exception("unable to load ticket %s", ticket_id)
        raise HTTPException(status_code=500, detail="Unable to load ticket.")

    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket not found.")
    return {"ticket": ticket}

@app.patch("/api/admin/support/{ticket_id}")
async def admin_update_support_ticket(
    ticket_id: str,
    payload: TicketUpdateIn,
    admin: Dict[str, Any] = Depends(require_admin),
    db=Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    reply = (payload.message or "").strip()
    if not reply and not payload.status:
        raise HTTPException(status_code=400, detail="Provide a reply message or status change.")

    try:
        if reply:
            ticket = await add_admin_reply(db, ticket_id, reply, admin, status=payload.status, mailer=mailer)
        else:
            ticket = await update_ticket_status(db, ticket_id, payload.status)
    except Exception:
        logger.exception("unable to update ticket %s", ticket_id)
        raise HTTPException(status_code=500, detail="Unable to update ticket. Try again later.")

    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket not found.")
    return {"ticket": ticket}

# ---------------------------
# Admin product drafts
# ---------------------------
@app.get("/api/admin/products")
async def admin_list_products(admin: Dict[str, Any] = Depends(require_admin), db=Depends(get_db)):
    try:
        items = await list_admin_products(db)
    except Exception:
        logger.exception("unable to load admin products")
        raise HTTPException(status_code=500, detail="Unable to load products.")
    return {"ok": True, "items": items}

@app.post("/api/admin/products")
async def admin_save_product(
    payload: Dict[str, Any] = Body(...),
    admin: Dict[str, Any] = Depends(require_admin),
    db=Depends(get_db),
):
    try:
        item = await save_admin_product(db, payload)
    except Exception:
        logger.exception("unable to save product")
        raise HTTPException(status_code=500, detail="Unable to save product.")
    return {"ok": True, "item": item}

@app.patch("/api/admin/products")
async def admin_update_product(
    payload: Dict[str, Any] = Body(...),
    admin: Dict[str, Any] = Depends(require_admin),
    db=Depends(get_db),
):
    product_id = payload.get("id")
    if not isinstance(product_id, str) or not product_id.strip():
        raise HTTPException(status_code=400, detail="Product id is required.")
    updates = {k: v for k, v in payload.items() if k != "id"}
    if not updates:
        raise HTTPException(status_code=400, detail="No fields provided to update.")

    try:
        item = await update_admin_product(db, product_id.strip(), updates)
    except Exception:
        logger.exception("unable to update product %s", product_id)
        raise HTTPException(status_code=500, detail="Unable to update product.")

    if not item:
        raise HTTPException(status_code=404, detail="Product not found.")
    return {"ok": True, "item": item}

@app.delete("/api/admin/products")
async def admin_delete_product(
    product_id: Optional[str] = Query(None, alias="id"),
    admin: Dict[str, Any] = Depends(require_admin),
    db=Depends(get_db),
):
    if not product_id:
        raise HTTPException(status_code=400, detail="Product id is required.")
    try:
        await delete_admin_product(db, product_id)
    except Exception:
        logger.exception("unable to delete product %s", product_id)
        raise HTTPException(status_code=500, detail="Unable to delete product.")
    return {"ok": True}

# ---------------------------
# Asset upload
# ---------------------------
@app.post("/api/upload")
async def upload(file: Optional[UploadFile] = File(None), bucket=Depends(get_bucket)):
    if file is None:
        raise HTTPException(status_code=400, detail="No file provided.")
    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="Uploaded file is empty.")

    try:
        url = await run_in_threadpool(upload_asset, bucket, data, file.filename, file.content_type)
    except Exception:
        logger.exception("upload failed for %s", file.filename)
        raise HTTPException(status_code=500, detail="Unable to upload file.")
    return {"url": url}

# ---------------------------
# Site settings
# ---------------------------
@app.get("/api/site-settings", response_model=SiteSettings)
async def read_site_settings(db=Depends(get_db)):
    try:
        return await get_site_settings(db)
    except Exception:
        logger.exception("failed to load site settings")
        return SiteSettings(countdown=DEFAULT_COUNTDOWN, coupon=DEFAULT_COUPON)

@app.get("/api/admin/site-settings", response_model=SiteSettings)
async def admin_read_site_settings(admin: Dict[str, Any] = Depends(require_admin), db=Depends(get_db)):
    try:
        return await get_site_settings(db)
    except Exception:
        logger.exception("failed to load site settings")
        raise HTTPException(status_code=500, detail="Unable to load settings.")

@app.put("/api/admin/site-settings", response_model=SiteSettings)
async def admin_write_site_settings(
    payload: SiteSettingsIn,
    admin: Dict[str, Any] = Depends(require_admin),
    db=Depends(get_db),
):
    ends_at = None
    countdown_in = payload.countdown
    if countdown_in and countdown_in.enabled:
        if countdown_in.ends_at is None:
            raise HTTPException(status_code=400, detail="Provide an end date/time while the countdown is enabled.")
        ends_at = countdown_in.ends_at
        if ends_at.tzinfo is None:
            ends_at = ends_at.replace(tzinfo=timezone.utc)
        if ends_at <= datetime.now(timezone.utc):
            raise HTTPException(status_code=400, detail="Countdown end must be set in the future.")

    try:
        existing = await get_site_settings(db)

        if countdown_in:
            countdown = await update_countdown_settings(
                db, enabled=countdown_in.enabled, label=countdown_in.label, ends_at=ends_at
            )
        else:
            countdown = existing.countdown

        if payload.coupon:
            coupon = await update_coupon_settings(
                db,
                code=payload.coupon.code,
                discount_percent=payload.coupon.discount_percent,
                notes=payload.coupon.notes,
                enable_for_non_limited=payload.coupon.enable_for_non_limited,
            )
        else:
            coupon = existing.coupon
    except Exception:
        logger.exception("failed to save site settings")
        raise HTTPException(status_code=500, detail="Unable to save settings.")

    return SiteSettings(countdown=countdown, coupon=coupon)

# ---------------------------
# Checkout handoff
# ---------------------------
def _request_origin(request: Request) -> str:
    for header in ("origin", "referer"):
        value = request.headers.get(header)
        if value:
            parts = urlsplit(value)
            if parts.scheme and parts.netloc:
                return f"{parts.scheme}://{parts.netloc}"
    return str(request.base_url).rstrip("/")

@app.post("/api/checkout")
async def checkout(
    payload: CheckoutIn,
    request: Request,
    customer: Dict[str, Any] = Depends(optional_customer),
    create_session=Depends(get_checkout_session_creator),
    config: Settings = Depends(get_settings),
):
    if not payload.items:
        raise HTTPException(status_code=400, detail="No items provided for checkout.")

    origin = _request_origin(request)
    try:
        line_items = build_line_items(payload.items, origin, config.checkout_currency)
    except InvalidCheckoutItem as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        url = await run_in_threadpool(
            create_checkout_session, create_session, line_items, origin, customer, config.allowed_countries
        )
    except Exception:
        logger.exception("Stripe checkout error")
        raise HTTPException(status_code=500, detail="We were unable to start checkout. Please try again.")

    if not url:
        raise HTTPException(status_code=500, detail="Unable to create checkout session.")
    return {"url": url}

# ---------------------------
# Orders
# ---------------------------
@app.post("/api/stripe/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    parse_event=Depends(get_webhook_event_parser),
    retrieve_session=Depends(get_checkout_session_retriever),
    db=Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    payload = await request.body()
    if not stripe_signature:
        raise HTTPException(status_code=400, detail="Missing Stripe signature")

    try:
        event = parse_event(payload, stripe_signature)
    except Exception as e:
        logger.warning("stripe signature verification failed: %s", e)
        raise HTTPException(status_code=400, detail="Invalid Stripe signature")

    # Always acknowledge so Stripe does not retry a handler failure forever.
    try:
        if event.get("type") == "checkout.session.completed":
            session_id = ((event.get("data") or {}).get("object") or {}).get("id")
            session = await run_in_threadpool(retrieve_session, session_id)
            result = await upsert_order_from_session(db, session, mailer=mailer)
            if result.created or result.reason == "exists":
                logger.info("webhook order for %s: created=%s", session_id, result.created)
            else:
                logger.error("webhook could not record session %s: %s", session_id, result.reason)
    except Exception:
        logger.exception("stripe webhook handler error")
        return {"received": True, "warning": "handler-error"}

    return {"received": True}

@app.post("/api/orders")
async def record_order(
    payload: OrderSessionIn,
    retrieve_session=Depends(get_checkout_session_retriever),
    db=Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    session_id = (payload.session_id or "").strip()
    if not session_id:
        raise HTTPException(status_code=400, detail="sessionId is required.")

    try:
        session = await run_in_threadpool(retrieve_session, session_id)
        result = await upsert_order_from_session(db, session, mailer=mailer)
    except Exception:
        logger.exception("unable to record order for %s", session_id)
        raise HTTPException(status_code=500, detail="Unable to record order. Please try again later.")

    if result.created or result.reason == "exists":
        return {"success": True, "created": result.created, "alreadyExists": result.reason == "exists"}
    if result.reason == "not_paid":
        raise HTTPException(status_code=409, detail="Checkout session is not marked as paid.")
    raise HTTPException(status_code=400, detail="Unable to record order for this session.")

@app.get("/api/admin/orders")
async def admin_list_orders(
    admin: Dict[str, Any] = Depends(require_admin),
    db=Depends(get_db),
    limit: Optional[str] = None,
):
    try:
        orders = await list_orders(db, limit=parse_limit(limit, default=100))
    except Exception:
        logger.exception("unable to load orders")
        raise HTTPException(status_code=500, detail="Unable to load orders.")
    return {"orders": orders}

@app.patch("/api/admin/orders/{order_id}")
async def admin_update_order(
    order_id: str,
    payload: OrderActionIn,
    admin: Dict[str, Any] = Depends(require_admin),
    db=Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    try:
        action = OrderAction(payload.action)
    except ValueError:
        raise HTTPException(
            status_code=400, detail="Invalid or missing action. Use 'accept', 'ship', 'cancel' or 'delete'."
        )

    try:
        found = await apply_order_action(db, order_id, action, admin, mailer=mailer)
    except OrderActionConflict as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception:
        logger.exception("unable to %s order %s", action.value, order_id)
        raise HTTPException(status_code=500, detail="Unable to update order. Please try again later.")

    if not found:
        raise HTTPException(status_code=404, detail="Order not found.")
    return {"success": True}

@app.get("/api/account/orders")
async def account_orders(customer: Dict[str, Any] = Depends(require_customer), db=Depends(get_db)):
    try:
        orders = await list_customer_orders(db, customer.get("uid"), customer.get("email"))
    except Exception:
        logger.exception("unable to load orders for %s", customer.get("uid"))
        raise HTTPException(status_code=500, detail="Unable to load orders.")
    return {"orders": orders}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8085, log_level=settings.log_level.lower())
