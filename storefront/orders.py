# storefront/orders.py
"""
Orders recorded from paid Stripe Checkout sessions.

An order document is keyed by its checkout session id, so recording the same
session twice (webhook and confirmation page racing) is a no-op the second
time. Admins then move an order through paid -> processing -> shipped, or
cancel it before it ships.
"""
import logging
import random
import string
from datetime import datetime, timezone
from typing import Any, Dict, List, NamedTuple, Optional

from google.cloud import firestore
from starlette.concurrency import run_in_threadpool

from .models import Order, OrderAction, OrderStatus
from .normalize import parse_number, to_iso_string

logger = logging.getLogger(__name__)

ORDERS_COLLECTION = "orders"
USERS_COLLECTION = "users"
ACCOUNT_ORDER_LIMIT = 50


class UpsertResult(NamedTuple):
    created: bool
    reason: Optional[str] = None


class OrderActionConflict(Exception):
    """The order's current status does not allow the requested action."""


def generate_order_number() -> str:
    letters = "".join(random.choice(string.ascii_uppercase) for _ in range(2))
    return f"{letters}{random.randrange(100_000_000):08d}"


def _address(raw: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not raw:
        return None
    return {
        "line1": raw.get("line1"),
        "line2": raw.get("line2"),
        "city": raw.get("city"),
        "state": raw.get("state"),
        "postalCode": raw.get("postal_code"),
        "country": raw.get("country"),
    }


def _line_items(session: Dict[str, Any], currency: str) -> List[Dict[str, Any]]:
    items = []
    for item in (session.get("line_items") or {}).get("data") or []:
        price = item.get("price") or {}
        product = price.get("product")
        if isinstance(product, dict):
            product_id = product.get("id")
            product_name = product.get("name")
        else:
            product_id = product if isinstance(product, str) else None
            product_name = None

        amount_total = item.get("amount_total") or 0
        items.append({
            "id": item.get("id"),
            "description": item.get("description") or product_name or price.get("nickname") or "Item",
            "quantity": item.get("quantity") or 1,
            "amountTotal": amount_total,
            "amountSubtotal": item.get("amount_subtotal") if item.get("amount_subtotal") is not None else amount_total,
            "currency": item.get("currency") or currency,
            "priceId": price.get("id"),
            "productId": product_id,
        })
    return items


async def _uid_for_email(db, email: Optional[str]) -> Optional[str]:
    if not email:
        return None
    try:
        docs = await (
            db.collection(USERS_COLLECTION)
            .where(filter=firestore.FieldFilter("email", "==", email))
            .limit(1)
            .get()
        )
    except Exception:
        logger.warning("unable to resolve user by email %s", email, exc_info=True)
        return None
    return docs[0].id if docs else None


async def upsert_order_from_session(db, session: Dict[str, Any], mailer=None) -> UpsertResult:
    """
    Record a paid checkout session as an order.

    `session` is the expanded session as plain dicts (line items and their
    products included). Unpaid sessions and already-recorded sessions are
    reported through `reason` ("not_paid", "exists") instead of raising.
    """
    session_id = session.get("id")
    if not session_id:
        raise ValueError("Checkout session missing id.")

    if session.get("payment_status") != "paid":
        return UpsertResult(created=False, reason="not_paid")

    ref = db.collection(ORDERS_COLLECTION).document(session_id)
    if (await ref.get()).exists:
        return UpsertResult(created=False, reason="exists")

    metadata = session.get("metadata") or {}
    customer = session.get("customer_details") or {}
    shipping_details = session.get("shipping_details") or None
    totals = session.get("total_details") or {}
    currency = session.get("currency") or "usd"
    email = customer.get("email")

    uid = metadata.get("firebaseUid") if isinstance(metadata.get("firebaseUid"), str) else None
    uid = uid or await _uid_for_email(db, email)
    order_number = metadata.get("orderNumber") if isinstance(metadata.get("orderNumber"), str) else None
    order_number = order_number or generate_order_number()

    created = session.get("created")
    completed_at = datetime.fromtimestamp(created, tz=timezone.utc).isoformat() if created else None

    order = {
        "orderNumber": order_number,
        "sessionId": session_id,
        "status": OrderStatus.PAID.value,
        "amountTotal": session.get("amount_total") or 0,
        "shippingTotal": totals.get("amount_shipping") or 0,
        "taxTotal": totals.get("amount_tax") or 0,
        "currency": currency,
        "customerEmail": email,
        "customerUid": uid,
        "customerName": customer.get("name"),
        "billing": {
            "name": customer.get("name"),
            "email": email,
            "phone": customer.get("phone"),
            "address": _address(customer.get("address")),
        } if customer else None,
        "shipping": {
            "name": shipping_details.get("name"),
            "phone": shipping_details.get("phone"),
            "address": _address(shipping_details.get("address")),
        } if shipping_details else None,
        "lineItems": _line_items(session, currency),
        "checkoutCompletedAt": completed_at,
        "acceptedAt": None,
        "shippedAt": None,
        "acceptedBy": None,
        "shippedBy": None,
    }
    await ref.set({
        **order,
        "createdAt": firestore.SERVER_TIMESTAMP,
        "updatedAt": firestore.SERVER_TIMESTAMP,
    }, merge=True)
    logger.info("order %s recorded for session %s", order_number, session_id)

    if uid:
        await db.collection(USERS_COLLECTION).document(uid).set({
            "lastOrderAt": firestore.SERVER_TIMESTAMP,
            "totalOrders": firestore.Increment(1),
            "lifetimeValue": firestore.Increment(order["amountTotal"] / 100),
        }, merge=True)

    if mailer is not None:
        await run_in_threadpool(mailer.send_order_confirmation, order)

    return UpsertResult(created=True)


def _cents(value: Any) -> int:
    return int(round(parse_number(value, 0)))


def serialize_order(snapshot) -> Order:
    data = snapshot.to_dict() or {}
    shipping = data.get("shipping") if isinstance(data.get("shipping"), dict) else None
    line_items = data.get("lineItems") if isinstance(data.get("lineItems"), list) else []
    return Order(
        id=snapshot.id,
        status=data["status"] if isinstance(data.get("status"), str) else OrderStatus.PAID.value,
        order_number=data["orderNumber"] if isinstance(data.get("orderNumber"), str) else None,
        amount_total=_cents(data.get("amountTotal")),
        shipping_total=_cents(data.get("shippingTotal")),
        tax_total=_cents(data.get("taxTotal")),
        currency=data["currency"] if isinstance(data.get("currency"), str) else "usd",
        customer_name=data.get("customerName") or (shipping or {}).get("name") or "Shopper",
        customer_email=data.get("customerEmail"),
        shipping=shipping,
        line_items=[i for i in line_items if isinstance(i, dict)],
        created_at=to_iso_string(data.get("createdAt")) or to_iso_string(data.get("checkoutCompletedAt")),
        updated_at=to_iso_string(data.get("updatedAt")),
        accepted_at=to_iso_string(data.get("acceptedAt")),
        shipped_at=to_iso_string(data.get("shippedAt")),
        canceled_at=to_iso_string(data.get("canceledAt")),
        notes=data.get("notes") if isinstance(data.get("notes"), str) else None,
    )


async def list_orders(db, limit: int = 100) -> List[Order]:
    docs = await (
        db.collection(ORDERS_COLLECTION)
        .order_by("createdAt", direction=firestore.Query.DESCENDING)
        .limit(limit)
        .get()
    )
    return [serialize_order(d) for d in docs]


def _created_key(order: Order) -> datetime:
    try:
        moment = datetime.fromisoformat((order.created_at or "").replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


async def list_customer_orders(db, uid: Optional[str], email: Optional[str]) -> List[Order]:
    """Orders owned by the uid, falling back to orders placed with the email; newest first."""
    orders = db.collection(ORDERS_COLLECTION)
    docs = []
    if uid:
        docs = await orders.where(filter=firestore.FieldFilter("customerUid", "==", uid)).get()
    if not docs and email:
        docs = await orders.where(filter=firestore.FieldFilter("customerEmail", "==", email)).get()

    result = sorted((serialize_order(d) for d in docs), key=_created_key, reverse=True)
    return result[:ACCOUNT_ORDER_LIMIT]


async def apply_order_action(
    db, order_id: str, action: OrderAction, admin: Dict[str, Any], mailer=None
) -> Optional[bool]:
    """
    Run an admin action on an order. Returns None when the order does not
    exist and raises OrderActionConflict when its status forbids the action.
    """
    ref = db.collection(ORDERS_COLLECTION).document(order_id)
    snapshot = await ref.get()
    if not snapshot.exists:
        return None

    if action is OrderAction.DELETE:
        await ref.delete()
        logger.info("order %s deleted by %s", order_id, admin.get("email"))
        return True

    data = snapshot.to_dict() or {}
    status = data["status"].lower() if isinstance(data.get("status"), str) else "unknown"
    actor = {"uid": admin.get("uid"), "email": admin.get("email"), "name": admin.get("name")}

    if action is OrderAction.ACCEPT:
        if status != OrderStatus.PAID.value:
            raise OrderActionConflict("Order must be in 'paid' status before it can be accepted.")
        await ref.update({
            "status": OrderStatus.PROCESSING.value,
            "acceptedAt": firestore.SERVER_TIMESTAMP,
            "acceptedBy": actor,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        })
    elif action is OrderAction.SHIP:
        if status != OrderStatus.PROCESSING.value:
            raise OrderActionConflict("Only orders marked as processing can be shipped.")
        await ref.update({
            "status": OrderStatus.SHIPPED.value,
            "shippedAt": firestore.SERVER_TIMESTAMP,
            "shippedBy": actor,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        })
        if mailer is not None:
            shipped = (await ref.get()).to_dict() or {}
            await run_in_threadpool(mailer.send_shipment_confirmation, shipped)
    elif action is OrderAction.CANCEL:
        if status == OrderStatus.SHIPPED.value:
            raise OrderActionConflict("Shipped orders cannot be canceled.")
        await ref.update({
            "status": OrderStatus.CANCELED.value,
            "canceledAt": firestore.SERVER_TIMESTAMP,
            "canceledBy": actor,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        })

    logger.info("order %s: %s by %s", order_id, action.value, admin.get("email"))
    return True
