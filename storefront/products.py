# storefront/products.py
import logging
from typing import Any, Dict, List, Optional

from google.cloud import firestore

from .catalog import FALLBACK_PRODUCTS, fallback_products, get_product_by_slug
from .models import AdminProduct, Product, ProductListing
from .normalize import normalize_product_doc, safe_string, serialize_admin_product

logger = logging.getLogger(__name__)

PRODUCTS_COLLECTION = "products"
LIVE_PRODUCTS_ERROR = "Unable to load live products."


async def get_storefront_product(db, slug: str) -> Optional[Product]:
    """
    Look up a product by slug, published or not.

    Store errors are logged and never raised; the fallback catalog is always
    consulted before reporting the product as missing.
    """
    normalized_slug = safe_string(slug, "")
    if not normalized_slug:
        return None

    try:
        docs = await (
            db.collection(PRODUCTS_COLLECTION)
            .where(filter=firestore.FieldFilter("slug", "==", normalized_slug))
            .limit(1)
            .get()
        )
        if docs:
            return normalize_product_doc(docs[0])
    except Exception:
        logger.exception("get_storefront_product failed for slug=%s", normalized_slug)

    return get_product_by_slug(normalized_slug)


async def get_storefront_products(db, limit: Optional[int] = None, max_limit: int = 100) -> ProductListing:
    """
    List published products, at most `limit` of them (clamped to [1, max_limit]).

    Ordering is whatever the store returns. An empty result or a store error
    yields the same-length prefix of the fallback catalog; on error the
    listing also carries an `error` message.
    """
    if limit is not None:
        limit = max(1, min(int(limit), max_limit))

    try:
        query = db.collection(PRODUCTS_COLLECTION).where(filter=firestore.FieldFilter("published", "==", True))
        if limit is not None:
            query = query.limit(limit)
        docs = await query.get()
        if docs:
            return ProductListing(items=[normalize_product_doc(d) for d in docs])
    except Exception:
        logger.exception("get_storefront_products failed")
        return ProductListing(items=fallback_products(limit), error=LIVE_PRODUCTS_ERROR)

    return ProductListing(items=fallback_products(limit))


async def get_related_storefront_products(
    db, slug: str, limit: int = 4, pool_size: int = 16, max_limit: int = 100
) -> List[Product]:
    """
    Products to show next to `slug`: the live listing first, then catalog
    products not already present, never the product itself.
    """
    listing = await get_storefront_products(db, pool_size, max_limit=max_limit)
    related = [p for p in listing.items if p.slug != slug]
    seen = {p.slug for p in related}
    related.extend(p for p in FALLBACK_PRODUCTS if p.slug != slug and p.slug not in seen)
    return [p.model_copy(deep=True) for p in related[:limit]]


# ---------------------------
# Admin product drafts
# ---------------------------
async def list_admin_products(db) -> List[AdminProduct]:
    docs = await (
        db.collection(PRODUCTS_COLLECTION)
        .order_by("createdAt", direction=firestore.Query.DESCENDING)
        .get()
    )
    return [serialize_admin_product(d) for d in docs]


async def save_admin_product(db, payload: Dict[str, Any]) -> AdminProduct:
    raw_id = payload.get("id")
    if isinstance(raw_id, str) and raw_id.strip():
        ref = db.collection(PRODUCTS_COLLECTION).document(raw_id.strip())
    else:
        ref = db.collection(PRODUCTS_COLLECTION).document()

    fields = {k: v for k, v in payload.items() if k != "id"}
    existing = await ref.get()
    if not existing.exists:
        fields.setdefault("createdAt", firestore.SERVER_TIMESTAMP)
    fields["updatedAt"] = firestore.SERVER_TIMESTAMP

    await ref.set(fields, merge=True)
    return serialize_admin_product(await ref.get())


async def update_admin_product(db, product_id: str, updates: Dict[str, Any]) -> Optional[AdminProduct]:
    ref = db.collection(PRODUCTS_COLLECTION).document(product_id)
    snapshot = await ref.get()
    if not snapshot.exists:
        return None

    await ref.set({**updates, "updatedAt": firestore.SERVER_TIMESTAMP}, merge=True)
    return serialize_admin_product(await ref.get())


async def delete_admin_product(db, product_id: str) -> None:
    await db.collection(PRODUCTS_COLLECTION).document(product_id).delete()
