# tests/conftest.py
import copy
import uuid
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from google.cloud import firestore

from storefront.database import (
    get_bucket, get_checkout_session_creator, get_checkout_session_retriever, get_db, get_token_verifier,
    get_webhook_event_parser
)
from storefront.main import app
from storefront.notifications import Mailer, get_mailer

ADMIN_TOKEN = "good-admin-token"
ADMIN_HEADERS = {"Authorization": f"Bearer {ADMIN_TOKEN}"}
ADMIN_CLAIMS = {"uid": "admin-1", "email": "admin@example.com", "name": "Ada Admin"}


# ---------------------------
# In-memory Firestore (async API subset)
# ---------------------------
def _resolve(value, current=None):
    if value is firestore.SERVER_TIMESTAMP:
        return datetime.now(timezone.utc)
    if isinstance(value, firestore.Increment):
        return (current or 0) + value.value
    if isinstance(value, firestore.ArrayUnion):
        merged = list(current or [])
        for v in value.values:
            if v not in merged:
                merged.append(v)
        return merged
    if isinstance(value, dict):
        return {k: _resolve(v) for k, v in value.items()}
    return value


class FakeSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = copy.deepcopy(data)

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data)


class FakeDocument:
    def __init__(self, db, collection, doc_id):
        self._db = db
        self._collection = collection
        self.id = doc_id

    def _store(self):
        return self._db.data.setdefault(self._collection, {})

    async def get(self):
        self._db.check()
        return FakeSnapshot(self.id, self._store().get(self.id))

    async def set(self, data, merge=False):
        self._db.check()
        self._db.writes.append((self._collection, self.id, data))
        store = self._store()
        current = store.get(self.id) if merge else None
        resolved = {k: _resolve(v, (current or {}).get(k)) for k, v in data.items()}
        store[self.id] = {**(current or {}), **resolved}

    async def update(self, data):
        self._db.check()
        store = self._store()
        if self.id not in store:
            raise KeyError(self.id)
        self._db.writes.append((self._collection, self.id, data))
        for k, v in data.items():
            store[self.id][k] = _resolve(v, store[self.id].get(k))

    async def delete(self):
        self._db.check()
        self._store().pop(self.id, None)


class FakeQuery:
    def __init__(self, db, collection, filters=(), order=None, limit_to=None):
        self._db = db
        self._collection = collection
        self._filters = filters
        self._order = order
        self._limit = limit_to

    def where(self, filter=None):
        return FakeQuery(self._db, self._collection,
                         self._filters + ((filter.field_path, filter.op_string, filter.value),),
                         self._order, self._limit)

    def order_by(self, field, direction="ASCENDING"):
        return FakeQuery(self._db, self._collection, self._filters, (field, direction), self._limit)

    def limit(self, count):
        return FakeQuery(self._db, self._collection, self._filters, self._order, count)

    async def get(self):
        self._db.check()
        self._db.queries.append({
            "collection": self._collection,
            "filters": list(self._filters),
            "order": self._order,
            "limit": self._limit,
        })
        rows = list(self._db.data.get(self._collection, {}).items())
        for field, op, value in self._filters:
            assert op == "==", op
            rows = [(i, d) for i, d in rows if d.get(field) == value]
        if self._order:
            field, direction = self._order
            rows.sort(key=lambda r: r[1].get(field) or datetime.min.replace(tzinfo=timezone.utc),
                      reverse=direction == firestore.Query.DESCENDING)
        if self._limit is not None:
            rows = rows[:self._limit]
        return [FakeSnapshot(i, d) for i, d in rows]


class FakeCollection(FakeQuery):
    def document(self, doc_id=None):
        return FakeDocument(self._db, self._collection, doc_id or uuid.uuid4().hex)


class FakeFirestore:
    def __init__(self):
        self.data = {}
        self.queries = []
        self.writes = []
        self.calls = []
        self.fail = False

    def check(self):
        if self.fail:
            raise RuntimeError("firestore unavailable")

    def collection(self, name):
        self.calls.append(("collection", name))
        return FakeCollection(self, name)

    def document(self, path):
        self.calls.append(("document", path))
        collection, doc_id = path.split("/", 1)
        return FakeDocument(self, collection, doc_id)

    def seed(self, collection, doc_id, data):
        self.data.setdefault(collection, {})[doc_id] = copy.deepcopy(data)


# ---------------------------
# Auth, storage and Stripe fakes
# ---------------------------
class FakeVerifier:
    def __init__(self):
        self.tokens = []

    def __call__(self, token):
        self.tokens.append(token)
        if token == ADMIN_TOKEN:
            return dict(ADMIN_CLAIMS)
        if token == "customer-token":
            return {"uid": "cust-7", "email": "shopper@example.com"}
        raise ValueError("Token has expired")


class FakeBlob:
    def __init__(self, name):
        self.name = name
        self.cache_control = None
        self.data = None
        self.content_type = None
        self.public = False

    def upload_from_string(self, data, content_type=None):
        self.data = data
        self.content_type = content_type

    def make_public(self):
        self.public = True


class FakeBucket:
    name = "test-bucket"

    def __init__(self):
        self.blobs = {}

    def blob(self, path):
        self.blobs[path] = FakeBlob(path)
        return self.blobs[path]


class FakeCheckoutSessions:
    def __init__(self):
        self.calls = []
        self.url = "https://checkout.stripe.test/c/pay/cs_test_123"
        self.error = None

    def __call__(self, **params):
        self.calls.append(params)
        if self.error:
            raise self.error
        return SimpleNamespace(id="cs_test_123", url=self.url)


class FakeSessionRetriever:
    """Serves expanded checkout sessions by id from `sessions`."""

    def __init__(self):
        self.sessions = {}
        self.calls = []

    def __call__(self, session_id):
        self.calls.append(session_id)
        if session_id not in self.sessions:
            raise LookupError(f"No such checkout.session: {session_id}")
        return copy.deepcopy(self.sessions[session_id])


class FakeWebhookParser:
    SIGNATURE = "t=1,v1=valid"

    def __init__(self):
        self.event = {"type": "ping", "data": {"object": {}}}
        self.payloads = []

    def __call__(self, payload, signature):
        self.payloads.append(payload)
        if signature != self.SIGNATURE:
            raise ValueError("No signatures found matching the expected signature for payload")
        return copy.deepcopy(self.event)


class FakeMailer(Mailer):
    """Real templates, recorded instead of sent."""

    def __init__(self):
        super().__init__(api_key="re_test", from_email="orders@example.com",
                         support_email="support@example.com", store_name="Test Store",
                         site_url="https://shop.example.com")
        self.sent = []

    def dispatch(self, to, subject, body_html, sender=None, reply_to=None):
        self.sent.append({"to": to, "subject": subject, "html": body_html, "from": sender, "reply_to": reply_to})
        return True


def paid_session(session_id="cs_paid_1", **overrides):
    session = {
        "id": session_id,
        "payment_status": "paid",
        "amount_total": 5400,
        "currency": "usd",
        "created": 1700000000,
        "metadata": {},
        "customer_details": {
            "name": "Jo Shopper",
            "email": "jo@example.com",
            "phone": None,
            "address": {"line1": "1 Main St", "line2": None, "city": "Austin", "state": "TX",
                        "postal_code": "78701", "country": "US"},
        },
        "shipping_details": {
            "name": "Jo Shopper",
            "address": {"line1": "1 Main St", "city": "Austin", "state": "TX",
                        "postal_code": "78701", "country": "US"},
        },
        "total_details": {"amount_shipping": 500, "amount_tax": 400},
        "line_items": {"data": [{
            "id": "li_1",
            "description": None,
            "quantity": 2,
            "amount_total": 4500,
            "amount_subtotal": 4500,
            "currency": "usd",
            "price": {"id": "price_1", "nickname": None, "product": {"id": "prod_1", "name": "Faith Tee"}},
        }]},
    }
    session.update(overrides)
    return session


@pytest.fixture
def fake_db():
    return FakeFirestore()

@pytest.fixture
def verifier():
    return FakeVerifier()

@pytest.fixture
def bucket():
    return FakeBucket()

@pytest.fixture
def checkout_sessions():
    return FakeCheckoutSessions()

@pytest.fixture
def session_retriever():
    return FakeSessionRetriever()

@pytest.fixture
def webhook_parser():
    return FakeWebhookParser()

@pytest.fixture
def mailer():
    return FakeMailer()

@pytest.fixture
def client(fake_db, verifier, bucket, checkout_sessions, session_retriever, webhook_parser, mailer):
    app.dependency_overrides[get_db] = lambda: fake_db
    app.dependency_overrides[get_token_verifier] = lambda: verifier
    app.dependency_overrides[get_bucket] = lambda: bucket
    app.dependency_overrides[get_checkout_session_creator] = lambda: checkout_sessions
    app.dependency_overrides[get_checkout_session_retriever] = lambda: session_retriever
    app.dependency_overrides[get_webhook_event_parser] = lambda: webhook_parser
    app.dependency_overrides[get_mailer] = lambda: mailer
    yield TestClient(app)
    app.dependency_overrides.clear()
