# storefront/models.py
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

STANDARD_SIZES = ["S", "M", "L", "XL", "2XL"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Product(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    slug: str
    name: str
    price: float
    original_price: float
    image: str
    images: List[Any] = []
    description: str
    sizes: List[Any] = STANDARD_SIZES
    available: bool = True
    categories: List[Any] = []
    limited: bool = False
    sold_out: bool = False
    features: Optional[List[Any]] = None


class ProductListing(CamelModel):
    items: List[Product]
    error: Optional[str] = None


class ProductResponse(CamelModel):
    item: Product


class AdminProduct(CamelModel):
    id: str
    name: Optional[str] = None
    slug: Optional[str] = None
    price: Optional[float] = None
    original_price: Optional[float] = None
    image: Optional[str] = None
    images: List[Any] = []
    description: Optional[str] = None
    sizes: List[Any] = []
    available: bool = True
    categories: List[Any] = []
    limited: bool = False
    sold_out: bool = False
    published: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class SupportTicketStatus(str, Enum):
    OPEN = "open"
    WAITING_CUSTOMER = "waiting_customer"
    WAITING_ADMIN = "waiting_admin"
    CLOSED = "closed"


class SupportMessage(CamelModel):
    id: str
    author_type: str = "customer"
    author_name: Optional[str] = None
    author_email: Optional[str] = None
    body: str = ""
    created_at: str


class SupportTicket(CamelModel):
    id: str
    subject: Optional[str] = None
    topic: Optional[str] = None
    order_number: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: str = ""
    status: SupportTicketStatus = SupportTicketStatus.OPEN
    messages: List[SupportMessage] = []
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class CountdownSettings(CamelModel):
    enabled: bool = False
    ends_at: Optional[str] = None
    label: str = "Limited Drop"


class CouponSettings(CamelModel):
    code: Optional[str] = None
    discount_percent: float = 0
    notes: Optional[str] = None
    enable_for_non_limited: bool = False


class SiteSettings(CamelModel):
    countdown: CountdownSettings = CountdownSettings()
    coupon: CouponSettings = CouponSettings()


class OrderStatus(str, Enum):
    PAID = "paid"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    CANCELED = "canceled"


class OrderAction(str, Enum):
    ACCEPT = "accept"
    SHIP = "ship"
    CANCEL = "cancel"
    DELETE = "delete"


class Order(CamelModel):
    id: str
    status: str = OrderStatus.PAID.value
    order_number: Optional[str] = None
    amount_total: int = 0
    shipping_total: int = 0
    tax_total: int = 0
    currency: str = "usd"
    customer_name: str = "Shopper"
    customer_email: Optional[str] = None
    shipping: Optional[Dict[str, Any]] = None
    line_items: List[Dict[str, Any]] = []
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    accepted_at: Optional[str] = None
    shipped_at: Optional[str] = None
    canceled_at: Optional[str] = None
    notes: Optional[str] = None
