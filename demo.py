#!/usr/bin/env python
import os

from sdk.storefront_client import StorefrontClient

def main():
    c = StorefrontClient(
        base_url=os.getenv("STOREFRONT_API_URL", "http://127.0.0.1:8085"),
        admin_token=os.getenv("STOREFRONT_ADMIN_TOKEN") or None,
        navigate=lambda url: print(f"Payment page: {url}"),
    )

    # -----------------------------
    # Browse
    # -----------------------------
    print("Listing products...")
    listing = c.list_products(limit=4)
    if listing.get("error"):
        print("Live catalog unavailable, showing fallback:", listing["error"])
    for p in listing["items"]:
        print(f"  {p['slug']}: ${p['price']:.2f}")

    first = listing["items"][0]
    print(f"\nProduct {first['slug']}...")
    print(c.get_product(first["slug"]))
    print("Related:", [p["slug"] for p in c.related_products(first["slug"])])

    # -----------------------------
    # Site settings
    # -----------------------------
    print("\nSite settings...")
    print(c.get_site_settings())

    # -----------------------------
    # Support
    # -----------------------------
    print("\nSubmitting a support ticket...")
    print(c.submit_support_ticket("Alice", "alice@example.com", "Where is my order?", topic="orders"))

    if c.admin_token:
        print("\nOpen tickets (admin)...")
        for t in c.list_support_tickets(status="open", limit=10):
            print(f"  {t['id']} {t['customerEmail']} {t['subject']}")

    # -----------------------------
    # Checkout
    # -----------------------------
    print("\nStarting checkout...")
    result = c.start_checkout([{
        "id": first["id"],
        "name": first["name"],
        "price": first["price"],
        "quantity": 1,
        "image": first.get("image"),
    }])
    print(result or "redirected", "| clear cart:", c.consume_clear_cart_flag())

if __name__ == "__main__":
    main()
