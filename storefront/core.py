# storefront/core.py
import math
from datetime import datetime
from typing import Any, List, Optional

from pydantic import Field

from .models import CamelModel, SupportTicketStatus

# Request schemas and small request-parsing helpers shared by the routes.

class SupportRequestIn(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    subject: Optional[str] = None
    topic: Optional[str] = None
    order_number: Optional[str] = None
    message: Optional[str] = None

class TicketUpdateIn(CamelModel):
    message: Optional[str] = None
    status: Optional[SupportTicketStatus] = None

class CheckoutItemIn(CamelModel):
    id: str
    name: Optional[str] = None
    price: Any = None
    quantity: Any = None
    image: Optional[str] = None

class CheckoutIn(CamelModel):
    items: List[CheckoutItemIn] = []

class CountdownIn(CamelModel):
    enabled: bool
    label: Optional[str] = Field(None, max_length=120)
    ends_at: Optional[datetime] = None

class CouponIn(CamelModel):
    code: Optional[str] = Field(None, max_length=120)
    discount_percent: float = Field(0, ge=0, le=100)
    notes: Optional[str] = Field(None, max_length=500)
    enable_for_non_limited: bool = False

class SiteSettingsIn(CamelModel):
    countdown: Optional[CountdownIn] = None
    coupon: Optional[CouponIn] = None

class OrderSessionIn(CamelModel):
    session_id: Optional[str] = None

class OrderActionIn(CamelModel):
    action: Optional[str] = None


def parse_authorization_header(header: Optional[str]) -> Optional[str]:
    if not header:
        return None
    parts = header.split(" ")
    if len(parts) < 2 or parts[0].lower() != "bearer" or not parts[1]:
        return None
    return parts[1].strip()


def parse_limit(raw: Any, default: int = 50, maximum: int = 200) -> int:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(value) or value <= 0:
        return default
    return max(min(math.floor(value), maximum), 1)
