# tests/test_checkout.py
import asyncio

import httpx
import pytest
import requests

from sdk.storefront_client import (
    CHECKOUT_CONNECTION_ERROR, CHECKOUT_FAILED_ERROR, CHECKOUT_UNEXPECTED_ERROR, EMPTY_CART_ERROR, StorefrontClient
)
from storefront.checkout import InvalidCheckoutItem, build_line_items
from storefront.core import CheckoutItemIn
from storefront.database import get_token_verifier
from storefront.main import app

ORIGIN = {"Origin": "https://shop.example"}
TEE = {"id": "8", "name": "Purpose Driven – Graphic Tee", "price": 89, "quantity": 2, "image": "/tee.jpg"}

# ---------------------------
# Route
# ---------------------------
def test_checkout_creates_session_from_cart(client, checkout_sessions):
    r = client.post("/api/checkout", json={"items": [TEE]}, headers=ORIGIN)
    assert r.status_code == 200
    assert r.json() == {"url": checkout_sessions.url}

    (params,) = checkout_sessions.calls
    assert params["mode"] == "payment"
    assert params["success_url"] == "https://shop.example/checkout/success?session_id={CHECKOUT_SESSION_ID}"
    assert params["cancel_url"] == "https://shop.example/checkout/canceled"
    assert params["shipping_address_collection"] == {"allowed_countries": ["US"]}
    assert "metadata" not in params
    (line,) = params["line_items"]
    assert line["quantity"] == 2
    assert line["price_data"]["unit_amount"] == 8900
    assert line["price_data"]["currency"] == "usd"
    assert line["price_data"]["product_data"]["images"] == ["https://shop.example/tee.jpg"]
    assert line["price_data"]["product_data"]["metadata"] == {"productId": "8"}

def test_signed_in_customer_is_attached(client, checkout_sessions):
    headers = {**ORIGIN, "Authorization": "Bearer customer-token"}
    client.post("/api/checkout", json={"items": [TEE]}, headers=headers)
    params = checkout_sessions.calls[-1]
    assert params["metadata"] == {"firebaseUid": "cust-7", "firebaseEmail": "shopper@example.com"}
    assert params["customer_email"] == "shopper@example.com"

def test_unverifiable_customer_token_is_ignored(client, checkout_sessions):
    headers = {**ORIGIN, "Authorization": "Bearer junk"}
    r = client.post("/api/checkout", json={"items": [TEE]}, headers=headers)
    assert r.status_code == 200
    assert "metadata" not in checkout_sessions.calls[-1]

def test_crashing_verifier_checks_out_anonymously(client, checkout_sessions):
    def broken(token):
        raise RuntimeError("auth backend unreachable")

    app.dependency_overrides[get_token_verifier] = lambda: broken
    r = client.post("/api/checkout", json={"items": [TEE]}, headers={**ORIGIN, "Authorization": "Bearer customer-token"})
    assert r.status_code == 200
    assert "metadata" not in checkout_sessions.calls[-1]

def test_origin_falls_back_to_request_base(client, checkout_sessions):
    client.post("/api/checkout", json={"items": [TEE]})
    assert checkout_sessions.calls[-1]["cancel_url"] == "http://testserver/checkout/canceled"

def test_empty_cart_is_400(client, checkout_sessions):
    r = client.post("/api/checkout", json={"items": []})
    assert r.status_code == 400
    assert r.json() == {"error": "No items provided for checkout."}
    assert checkout_sessions.calls == []

def test_invalid_price_is_400(client, checkout_sessions):
    r = client.post("/api/checkout", json={"items": [{**TEE, "price": "free"}]}, headers=ORIGIN)
    assert r.status_code == 400
    assert "Invalid price" in r.json()["error"]
    assert checkout_sessions.calls == []

def test_stripe_error_is_generic_500(client, checkout_sessions):
    checkout_sessions.error = RuntimeError("card declined upstream")
    r = client.post("/api/checkout", json={"items": [TEE]}, headers=ORIGIN)
    assert r.status_code == 500
    assert r.json() == {"error": "We were unable to start checkout. Please try again."}

def test_session_without_url_is_500(client, checkout_sessions):
    checkout_sessions.url = None
    r = client.post("/api/checkout", json={"items": [TEE]}, headers=ORIGIN)
    assert r.status_code == 500
    assert r.json() == {"error": "Unable to create checkout session."}

def test_line_item_quantities_and_names():
    items = [
        CheckoutItemIn(id="a", name="x" * 200, price="12.50", quantity="3"),
        CheckoutItemIn(id="b", price=5, quantity=2.6, image="https://cdn.example/b.png"),
        CheckoutItemIn(id="c", price=1, quantity=0),
    ]
    lines = build_line_items(items, "https://shop.example")
    assert [l["quantity"] for l in lines] == [1, 3, 1]
    assert lines[0]["price_data"]["unit_amount"] == 1250
    assert len(lines[0]["price_data"]["product_data"]["name"]) == 127
    assert lines[1]["price_data"]["product_data"]["name"] == "Storefront product"
    assert lines[1]["price_data"]["product_data"]["images"] == ["https://cdn.example/b.png"]
    assert "images" not in lines[2]["price_data"]["product_data"]

def test_zero_price_is_invalid():
    with pytest.raises(InvalidCheckoutItem):
        build_line_items([CheckoutItemIn(id="a", name="Gift", price=0)], "https://shop.example")

# ---------------------------
# Client handoff
# ---------------------------
class FakeResponse:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self._body = body

    def json(self):
        if isinstance(self._body, Exception):
            raise self._body
        return self._body

class FakeHttpSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.posts = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.posts.append({"url": url, "json": json, "headers": headers})
        if self.error:
            raise self.error
        return self.response

def make_client(session, token=None):
    visited = []
    c = StorefrontClient(
        base_url="http://shop.test/",
        session=session,
        navigate=visited.append,
        token_provider=lambda: token,
    )
    return c, visited

def test_empty_cart_never_touches_network():
    session = FakeHttpSession()
    c, visited = make_client(session)
    assert c.start_checkout([]) == {"error": EMPTY_CART_ERROR}
    assert session.posts == []
    assert visited == []

def test_success_navigates_and_flags_cart_clear():
    session = FakeHttpSession(FakeResponse(200, {"url": "https://pay.test/s/1"}))
    c, visited = make_client(session, token="tok-1")
    assert c.start_checkout([TEE]) == {}
    assert visited == ["https://pay.test/s/1"]
    assert session.posts[0]["url"] == "http://shop.test/api/checkout"
    assert session.posts[0]["headers"] == {"Authorization": "Bearer tok-1"}
    assert c.consume_clear_cart_flag() is True
    assert c.consume_clear_cart_flag() is False

def test_anonymous_checkout_sends_no_auth_header():
    session = FakeHttpSession(FakeResponse(200, {"url": "https://pay.test/s/1"}))
    c, _ = make_client(session)
    c.start_checkout([TEE])
    assert session.posts[0]["headers"] == {}

def test_server_error_message_is_surfaced():
    session = FakeHttpSession(FakeResponse(400, {"error": "No items provided for checkout."}))
    c, visited = make_client(session)
    assert c.start_checkout([TEE]) == {"error": "No items provided for checkout."}
    assert visited == []
    assert c.consume_clear_cart_flag() is False

def test_error_without_body_uses_generic_message():
    session = FakeHttpSession(FakeResponse(502, ValueError("not json")))
    c, _ = make_client(session)
    assert c.start_checkout([TEE]) == {"error": CHECKOUT_FAILED_ERROR}

def test_success_without_url_is_unexpected():
    session = FakeHttpSession(FakeResponse(200, {}))
    c, visited = make_client(session)
    assert c.start_checkout([TEE]) == {"error": CHECKOUT_UNEXPECTED_ERROR}
    assert visited == []

def test_connection_failure_is_reported():
    session = FakeHttpSession(error=requests.ConnectionError("refused"))
    c, visited = make_client(session)
    assert c.start_checkout([TEE]) == {"error": CHECKOUT_CONNECTION_ERROR}
    assert visited == []

def test_failing_token_provider_is_a_connection_error():
    session = FakeHttpSession(FakeResponse(200, {"url": "https://pay.test/s/1"}))
    visited = []

    def provider():
        raise RuntimeError("token refresh failed")

    c = StorefrontClient(base_url="http://shop.test", session=session, navigate=visited.append, token_provider=provider)
    assert c.start_checkout([TEE]) == {"error": CHECKOUT_CONNECTION_ERROR}
    assert session.posts == []
    assert visited == []

def test_client_against_app(client, checkout_sessions):
    visited = []
    c = StorefrontClient(base_url="http://testserver", session=client, navigate=visited.append)
    assert c.start_checkout([TEE]) == {}
    assert visited == [checkout_sessions.url]
    assert c.get_product("no-such-thing") is None
    assert c.get_product("purpose-driven-graphic-tee")["id"] == "8"

def test_async_listing(client):
    c = StorefrontClient(base_url="http://testserver", async_transport=httpx.ASGITransport(app=app))
    listing = asyncio.run(c.list_products_async(limit=2))
    assert [p["id"] for p in listing["items"]] == ["1", "2"]
