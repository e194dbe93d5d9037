# storefront/catalog.py
from typing import List, Optional, Tuple

from .models import STANDARD_SIZES, Product

# Compiled-in catalog served whenever the live store is empty or unreachable.
FALLBACK_PRODUCTS: Tuple[Product, ...] = (
    Product(
        id="1",
        slug="man-pearl-white-cotton-cloth",
        name="Man Pearl white cotton cloth",
        price=99.0,
        original_price=110.0,
        image="/man-in-orange-t-shirt-smiling-with-arms-crossed.jpg",
        images=[
            "/man-in-orange-t-shirt-smiling-with-arms-crossed.jpg",
            "/man-in-black-graphic-tshirt.jpg",
            "/man-black-tshirt.png",
        ],
        description="Ultra-soft 100% cotton tee with a clean, everyday fit. Breathable, durable, and ready for street layering.",
        sizes=STANDARD_SIZES,
        categories=["new-arrival", "street-icon"],
    ),
    Product(
        id="2",
        slug="man-yellow-hoodies-cotton-cloth-1",
        name="Man Yellow Hoodies cotton cloth",
        price=99.0,
        original_price=110.0,
        image="/excited-man-with-headphones-pointing-at-phone.jpg",
        images=[
            "/excited-man-with-headphones-pointing-at-phone.jpg",
            "/man-in-black-graphic-tshirt.jpg",
            "/man-in-black-polo.jpg",
        ],
        description="Premium cotton fleece with a modern hood silhouette. Cozy interior, reinforced seams, built for daily wear.",
        sizes=STANDARD_SIZES,
        categories=["new-arrival", "street-icon"],
    ),
    Product(
        id="3",
        slug="man-yellow-hoodies-cotton-cloth-2",
        name="Man Yellow Hoodies cotton cloth",
        price=99.0,
        original_price=110.0,
        image="/happy-man-in-yellow-hoodie.jpg",
        images=[
            "/happy-man-in-yellow-hoodie.jpg",
            "/man-in-black-graphic-tshirt.jpg",
            "/man-black-tshirt.png",
        ],
        description="Soft-hand feel with heavyweight cotton. Street-ready hood and rib trims for structure.",
        sizes=STANDARD_SIZES,
        categories=["new-arrival"],
    ),
    Product(
        id="4",
        slug="man-orange-hoodies-cotton-cloth",
        name="Man Orange Hoodies cotton cloth",
        price=99.0,
        original_price=210.0,
        image="/smiling-man-in-orange-hoodie.jpg",
        images=[
            "/smiling-man-in-orange-hoodie.jpg",
            "/man-in-black-graphic-tshirt.jpg",
            "/man-in-black-polo.jpg",
        ],
        description="Statement color, classic hoodie form. Plush interior and double-needle stitching for longevity.",
        sizes=STANDARD_SIZES,
        categories=["new-arrival", "street-icon"],
    ),
    Product(
        id="5",
        slug="man-yellow-sweater-bow-tie",
        name="Man Yellow Hoodies cotton cloth",
        price=99.0,
        original_price=110.0,
        image="/cheerful-man-in-yellow-sweater-with-bow-tie.jpg",
        images=[
            "/cheerful-man-in-yellow-sweater-with-bow-tie.jpg",
            "/man-in-black-graphic-tshirt.jpg",
            "/man-black-tshirt.png",
        ],
        description="Elevated knit with a minimalist vibe. Smooth hand and tailored drape for smart-casual looks.",
        sizes=STANDARD_SIZES,
        categories=["new-arrival"],
    ),
    Product(
        id="6",
        slug="you-matter-premium-black-tee",
        name="You Matter – Premium Black Tee",
        price=79.0,
        original_price=95.0,
        image="/man-black-tshirt.png",
        images=["/man-black-tshirt.png", "/man-in-black-graphic-tshirt.jpg"],
        description="Signature message print on 100% ring-spun cotton. Soft, durable, and made to uplift.",
        sizes=STANDARD_SIZES,
        categories=["you-matter", "all"],
    ),
    Product(
        id="7",
        slug="faith-over-fear-black-polo",
        name="Faith Over Fear – Black Polo",
        price=129.0,
        original_price=150.0,
        image="/man-in-black-polo.jpg",
        images=["/man-in-black-polo.jpg", "/man-in-black-graphic-tshirt.jpg"],
        description="Refined pique polo with 'Faith Over Fear' chest mark. Clean collar line and premium cotton blend.",
        sizes=STANDARD_SIZES,
        categories=["purpose-faith", "all"],
    ),
    Product(
        id="8",
        slug="purpose-driven-graphic-tee",
        name="Purpose Driven – Graphic Tee",
        price=89.0,
        original_price=105.0,
        image="/man-in-black-graphic-tshirt.jpg",
        images=["/man-in-black-graphic-tshirt.jpg", "/man-black-tshirt.png"],
        description="Bold front graphic with a clean street profile. Soft-touch print on heavyweight cotton.",
        sizes=STANDARD_SIZES,
        categories=["purpose-faith", "street-icon", "all"],
    ),
)


def fallback_products(limit: Optional[int] = None) -> List[Product]:
    """Private copies of the first `limit` catalog products (all when None)."""
    chosen = FALLBACK_PRODUCTS if limit is None else FALLBACK_PRODUCTS[:limit]
    return [p.model_copy(deep=True) for p in chosen]


def get_product_by_slug(slug: str) -> Optional[Product]:
    for p in FALLBACK_PRODUCTS:
        if p.slug == slug:
            return p.model_copy(deep=True)
    return None
