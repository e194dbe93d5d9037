# sdk/storefront_client.py
import mimetypes
import os
import webbrowser
from typing import Any, Callable, Dict, List, Optional

import httpx
import requests

EMPTY_CART_ERROR = "Your cart is empty."
CHECKOUT_FAILED_ERROR = "Unable to start checkout. Please try again."
CHECKOUT_UNEXPECTED_ERROR = "Unexpected response from checkout. Please try again."
CHECKOUT_CONNECTION_ERROR = "We couldn't start checkout. Check your connection and try again."


def _json_or_none(resp: Any) -> Any:
    try:
        return resp.json()
    except ValueError:
        return None


class StorefrontClient:
    def __init__(
        self,
        base_url: str = "http://localhost:8085",
        admin_token: Optional[str] = None,
        timeout: int = 10,
        token_provider: Optional[Callable[[], Optional[str]]] = None,
        navigate: Optional[Callable[[str], Any]] = None,
        session: Any = None,
        async_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout
        self.admin_token = admin_token
        self.token_provider = token_provider
        self.navigate = navigate or webbrowser.open
        self.async_transport = async_transport
        # set after a successful checkout handoff, read once by the cart owner
        self.clear_cart_after_checkout = False

    def _admin_headers(self) -> Dict[str, str]:
        if not self.admin_token:
            return {}
        return {"Authorization": f"Bearer {self.admin_token}"}

    # Storefront
    def list_products(self, limit: Optional[int] = None):
        params = {"limit": limit} if limit is not None else None
        r = self.session.get(f"{self.base_url}/api/products", params=params, timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    async def list_products_async(self, limit: Optional[int] = None):
        params = {"limit": limit} if limit is not None else None
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.async_transport) as client:
            r = await client.get(f"{self.base_url}/api/products", params=params)
            r.raise_for_status()
            return r.json()

    def get_product(self, slug: str):
        """Returns the product, or None when the storefront reports 404."""
        r = self.session.get(f"{self.base_url}/api/products/{slug}", timeout=self.timeout)
        if r.status_code == 404:
            return None
        r.raise_for_status()
        return r.json()["item"]

    def related_products(self, slug: str, limit: int = 4):
        r = self.session.get(f"{self.base_url}/api/products/{slug}/related", params={"limit": limit}, timeout=self.timeout)
        r.raise_for_status()
        return r.json()["items"]

    def get_site_settings(self):
        r = self.session.get(f"{self.base_url}/api/site-settings", timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    # Support
    def submit_support_ticket(
        self,
        name: str,
        email: str,
        message: str,
        subject: Optional[str] = None,
        topic: Optional[str] = None,
        order_number: Optional[str] = None,
    ):
        payload = {"name": name, "email": email, "message": message}
        if subject:
            payload["subject"] = subject
        if topic:
            payload["topic"] = topic
        if order_number:
            payload["orderNumber"] = order_number
        r = self.session.post(f"{self.base_url}/api/support", json=payload, timeout=self.timeout)
        # 400/500 bodies carry {"error": ...}; let callers inspect them
        return r.json()

    # Admin
    def list_support_tickets(self, status: Optional[str] = None, limit: Optional[int] = None):
        params = {}
        if status:
            params["status"] = status
        if limit is not None:
            params["limit"] = limit
        r = self.session.get(
            f"{self.base_url}/api/admin/support", params=params, headers=self._admin_headers(), timeout=self.timeout
        )
        r.raise_for_status()
        return r.json()["tickets"]

    def get_support_ticket(self, ticket_id: str):
        r = self.session.get(
            f"{self.base_url}/api/admin/support/{ticket_id}", headers=self._admin_headers(), timeout=self.timeout
        )
        r.raise_for_status()
        return r.json()["ticket"]

    def reply_to_ticket(self, ticket_id: str, message: Optional[str] = None, status: Optional[str] = None):
        payload = {}
        if message:
            payload["message"] = message
        if status:
            payload["status"] = status
        r = self.session.patch(
            f"{self.base_url}/api/admin/support/{ticket_id}",
            json=payload,
            headers=self._admin_headers(),
            timeout=self.timeout,
        )
        r.raise_for_status()
        return r.json()["ticket"]

    def list_admin_products(self):
        r = self.session.get(f"{self.base_url}/api/admin/products", headers=self._admin_headers(), timeout=self.timeout)
        r.raise_for_status()
        return r.json()["items"]

    def save_admin_product(self, product: Dict[str, Any]):
        r = self.session.post(
            f"{self.base_url}/api/admin/products", json=product, headers=self._admin_headers(), timeout=self.timeout
        )
        r.raise_for_status()
        return r.json()["item"]

    def delete_admin_product(self, product_id: str):
        r = self.session.delete(
            f"{self.base_url}/api/admin/products",
            params={"id": product_id},
            headers=self._admin_headers(),
            timeout=self.timeout,
        )
        r.raise_for_status()
        return r.json()

    def update_site_settings(self, countdown: Optional[Dict[str, Any]] = None, coupon: Optional[Dict[str, Any]] = None):
        payload = {}
        if countdown is not None:
            payload["countdown"] = countdown
        if coupon is not None:
            payload["coupon"] = coupon
        r = self.session.put(
            f"{self.base_url}/api/admin/site-settings", json=payload, headers=self._admin_headers(), timeout=self.timeout
        )
        r.raise_for_status()
        return r.json()

    def upload_asset(self, path: str):
        content_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
        with open(path, "rb") as fh:
            files = {"file": (os.path.basename(path), fh.read(), content_type)}
        r = self.session.post(f"{self.base_url}/api/upload", files=files, timeout=self.timeout)
        r.raise_for_status()
        return r.json()["url"]

    # Orders
    def record_order(self, session_id: str):
        r = self.session.post(f"{self.base_url}/api/orders", json={"sessionId": session_id}, timeout=self.timeout)
        # 409 means the session is not paid yet; the body says so
        return r.json()

    def account_orders(self, token: str):
        r = self.session.get(
            f"{self.base_url}/api/account/orders", headers={"Authorization": f"Bearer {token}"}, timeout=self.timeout
        )
        r.raise_for_status()
        return r.json()["orders"]

    def list_orders(self, limit: Optional[int] = None):
        params = {"limit": limit} if limit is not None else None
        r = self.session.get(
            f"{self.base_url}/api/admin/orders", params=params, headers=self._admin_headers(), timeout=self.timeout
        )
        r.raise_for_status()
        return r.json()["orders"]

    def update_order(self, order_id: str, action: str):
        r = self.session.patch(
            f"{self.base_url}/api/admin/orders/{order_id}",
            json={"action": action},
            headers=self._admin_headers(),
            timeout=self.timeout,
        )
        r.raise_for_status()
        return r.json()

    # Checkout
    def start_checkout(self, items: List[Dict[str, Any]]) -> Dict[str, str]:
        """
        Hand the cart over to the hosted payment page.

        Returns {} after navigating to the payment URL, or {"error": message}
        without navigating. An empty cart never touches the network.
        """
        if not isinstance(items, list) or not items:
            return {"error": EMPTY_CART_ERROR}

        headers = {}
        try:
            token = self.token_provider() if self.token_provider else None
            if token:
                headers["Authorization"] = f"Bearer {token}"
            r = self.session.post(
                f"{self.base_url}/api/checkout", json={"items": items}, headers=headers, timeout=self.timeout
            )
        except Exception:
            return {"error": CHECKOUT_CONNECTION_ERROR}

        data = _json_or_none(r)
        if r.status_code >= 400:
            error = data.get("error") if isinstance(data, dict) else None
            return {"error": error or CHECKOUT_FAILED_ERROR}

        url = data.get("url") if isinstance(data, dict) else None
        if not url:
            return {"error": CHECKOUT_UNEXPECTED_ERROR}

        self.clear_cart_after_checkout = True
        self.navigate(url)
        return {}

    def consume_clear_cart_flag(self) -> bool:
        flag = self.clear_cart_after_checkout
        self.clear_cart_after_checkout = False
        return flag


if __name__ == "__main__":
    import argparse

    from rich import print

    parser = argparse.ArgumentParser(description="Storefront API client")
    parser.add_argument("--base-url", default=os.getenv("STOREFRONT_API_URL", "http://127.0.0.1:8085"))
    subparsers = parser.add_subparsers(dest="command", required=True)

    # ---------------------------
    # Storefront commands
    # ---------------------------
    lp = subparsers.add_parser("list-products", help="List published products")
    lp.add_argument("--limit", type=int, help="Maximum number of products")

    gp = subparsers.add_parser("get-product", help="Get a product by slug")
    gp.add_argument("--slug", required=True)

    rp = subparsers.add_parser("related", help="Products related to a slug")
    rp.add_argument("--slug", required=True)

    subparsers.add_parser("site-settings", help="Show countdown and coupon settings")

    st = subparsers.add_parser("support", help="Submit a support request")
    st.add_argument("--name", required=True)
    st.add_argument("--email", required=True)
    st.add_argument("--message", required=True)
    st.add_argument("--topic", default="general")
    st.add_argument("--order-number")

    # ---------------------------
    # Admin commands (STOREFRONT_ADMIN_TOKEN)
    # ---------------------------
    lt = subparsers.add_parser("list-tickets", help="List support tickets")
    lt.add_argument("--status", choices=["open", "waiting_customer", "waiting_admin", "closed"])
    lt.add_argument("--limit", type=int)

    rt = subparsers.add_parser("reply-ticket", help="Reply to or change the status of a ticket")
    rt.add_argument("--ticket-id", required=True)
    rt.add_argument("--message")
    rt.add_argument("--status")

    up = subparsers.add_parser("upload", help="Upload an image asset")
    up.add_argument("--path", required=True)

    lo = subparsers.add_parser("list-orders", help="List recent orders")
    lo.add_argument("--limit", type=int)

    uo = subparsers.add_parser("update-order", help="Accept, ship, cancel or delete an order")
    uo.add_argument("--order-id", required=True)
    uo.add_argument("--action", required=True, choices=["accept", "ship", "cancel", "delete"])

    args = parser.parse_args()
    c = StorefrontClient(base_url=args.base_url, admin_token=os.getenv("STOREFRONT_ADMIN_TOKEN") or None)

    if args.command == "list-products":
        print(c.list_products(args.limit))
    elif args.command == "get-product":
        print(c.get_product(args.slug))
    elif args.command == "related":
        print(c.related_products(args.slug))
    elif args.command == "site-settings":
        print(c.get_site_settings())
    elif args.command == "support":
        print(c.submit_support_ticket(args.name, args.email, args.message, topic=args.topic, order_number=args.order_number))
    elif args.command == "list-tickets":
        print(c.list_support_tickets(args.status, args.limit))
    elif args.command == "reply-ticket":
        print(c.reply_to_ticket(args.ticket_id, args.message, args.status))
    elif args.command == "upload":
        print(c.upload_asset(args.path))
    elif args.command == "list-orders":
        print(c.list_orders(args.limit))
    elif args.command == "update-order":
        print(c.update_order(args.order_id, args.action))
