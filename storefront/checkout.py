# storefront/checkout.py
import logging
import math
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urljoin

from .core import CheckoutItemIn
from .normalize import parse_number

logger = logging.getLogger(__name__)

MAX_PRODUCT_NAME_LENGTH = 127
DEFAULT_PRODUCT_NAME = "Storefront product"


class InvalidCheckoutItem(ValueError):
    pass


def _quantity(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 1
    if not math.isfinite(value) or value <= 0:
        return 1
    return max(int(round(value)), 1)


def build_line_items(items: List[CheckoutItemIn], origin: str, currency: str = "usd") -> List[Dict[str, Any]]:
    """Convert cart items into Stripe Checkout line_items. Prices are in major units."""
    line_items: List[Dict[str, Any]] = []

    for item in items:
        amount = int(round(parse_number(item.price, 0) * 100))
        if amount <= 0:
            raise InvalidCheckoutItem(f'Invalid price for item "{item.name or item.id}".')

        image_url = None
        if item.image:
            image_url = item.image if item.image.startswith("http") else urljoin(origin, item.image)

        product_data: Dict[str, Any] = {
            "name": (item.name or DEFAULT_PRODUCT_NAME)[:MAX_PRODUCT_NAME_LENGTH],
            "metadata": {"productId": item.id},
        }
        if image_url:
            product_data["images"] = [image_url]

        line_items.append({
            "quantity": _quantity(item.quantity),
            "price_data": {
                "currency": currency,
                "unit_amount": amount,
                "product_data": product_data,
            },
        })

    return line_items


def create_checkout_session(
    create_session: Callable[..., Any],
    line_items: List[Dict[str, Any]],
    origin: str,
    customer: Optional[Dict[str, Any]] = None,
    allowed_countries: Optional[List[str]] = None,
) -> Optional[str]:
    """Create a hosted payment session and return its URL (None when Stripe gives none). Blocking."""
    customer = customer or {}
    params: Dict[str, Any] = {
        "mode": "payment",
        "payment_method_types": ["card"],
        "billing_address_collection": "auto",
        "line_items": line_items,
        "success_url": f"{origin}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}",
        "cancel_url": f"{origin}/checkout/canceled",
    }
    if allowed_countries:
        params["shipping_address_collection"] = {"allowed_countries": allowed_countries}

    metadata = {}
    if customer.get("uid"):
        metadata["firebaseUid"] = customer["uid"]
    if customer.get("email"):
        metadata["firebaseEmail"] = customer["email"]
        params["customer_email"] = customer["email"]
    if metadata:
        params["metadata"] = metadata

    session = create_session(**params)
    url = getattr(session, "url", None)
    if url:
        logger.info("checkout session created with %d line items", len(line_items))
    return url
