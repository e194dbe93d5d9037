# storefront/normalize.py
"""
Coercion of loosely-typed stored documents into stable shapes.

Documents in the live store are edited by hand through the admin API, so no
field is trusted: every reader here is total and falls back to a default
instead of raising.
"""
import math
from datetime import date, datetime
from typing import Any, Dict, Optional

from .models import STANDARD_SIZES, AdminProduct, Product

DEFAULT_NAME = "Untitled product"
DEFAULT_DESCRIPTION = "Product description coming soon."
DEFAULT_IMAGE = "/placeholder.svg"


def safe_string(value: Any, fallback: str = "") -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return fallback


def parse_number(value: Any, fallback: float = 0) -> float:
    # bool is an int subclass but never a price
    if isinstance(value, bool):
        return fallback
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else fallback
    if isinstance(value, str) and value.strip():
        try:
            parsed = float(value.strip())
        except ValueError:
            return fallback
        return parsed if math.isfinite(parsed) else fallback
    return fallback


def to_iso_string(value: Any) -> Optional[str]:
    """Render a stored timestamp (datetime or string) as ISO-8601."""
    if not value:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return None


def normalize_product(product_id: str, data: Optional[Dict[str, Any]]) -> Product:
    """
    Build a storefront Product from a raw document.

    `available` is forced to False for sold-out items and `originalPrice`
    falls back to `price` when missing or zero.
    """
    data = data if isinstance(data, dict) else {}

    price = parse_number(data.get("price"), 0)
    raw_original = data.get("originalPrice")
    if raw_original is None:
        raw_original = data.get("original_price")
    original_price = parse_number(raw_original, price)
    if not original_price or original_price < 0:
        original_price = price
    original_price = max(original_price, 0)

    sold_out = bool(data.get("soldOut"))
    available = False if sold_out else data.get("available") is not False

    sizes = data.get("sizes")
    features = data.get("features")

    return Product(
        id=product_id,
        slug=safe_string(data.get("slug"), product_id),
        name=safe_string(data.get("name"), DEFAULT_NAME),
        price=price,
        original_price=original_price,
        image=safe_string(data.get("image"), DEFAULT_IMAGE),
        images=data["images"] if isinstance(data.get("images"), list) else [],
        description=safe_string(data.get("description"), DEFAULT_DESCRIPTION),
        sizes=sizes if isinstance(sizes, list) and sizes else list(STANDARD_SIZES),
        available=available,
        categories=data["categories"] if isinstance(data.get("categories"), list) else [],
        limited=bool(data.get("limited")),
        sold_out=sold_out,
        features=features if isinstance(features, list) else None,
    )


def normalize_product_doc(snapshot) -> Product:
    return normalize_product(snapshot.id, snapshot.to_dict() or {})


def serialize_admin_product(snapshot) -> AdminProduct:
    data = snapshot.to_dict() or {}

    def _number(key: str) -> Optional[float]:
        value = data.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return value

    def _text(key: str) -> Optional[str]:
        value = data.get(key)
        return value if isinstance(value, str) else None

    return AdminProduct(
        id=snapshot.id,
        name=_text("name"),
        slug=_text("slug"),
        price=_number("price"),
        original_price=_number("originalPrice"),
        image=_text("image"),
        images=data["images"] if isinstance(data.get("images"), list) else [],
        description=_text("description"),
        sizes=data["sizes"] if isinstance(data.get("sizes"), list) else [],
        available=data["available"] if isinstance(data.get("available"), bool) else True,
        categories=data["categories"] if isinstance(data.get("categories"), list) else [],
        limited=bool(data.get("limited")),
        sold_out=bool(data.get("soldOut")),
        published=data.get("published") is not False,
        created_at=to_iso_string(data.get("createdAt")),
        updated_at=to_iso_string(data.get("updatedAt")),
    )
