# tests/test_support.py
from datetime import datetime, timedelta, timezone

import resend
from fastapi.testclient import TestClient

from conftest import ADMIN_HEADERS
from storefront.database import get_db, get_token_verifier
from storefront.main import app
from storefront.notifications import Mailer, get_mailer

def seed_ticket(db, ticket_id, status="open", minutes_ago=0, **extra):
    db.seed("supportTickets", ticket_id, {
        "subject": f"Ticket {ticket_id}",
        "topic": "orders",
        "customerName": "Bob",
        "customerEmail": "bob@example.com",
        "status": status,
        "messages": [{"id": "m1", "authorType": "customer", "body": "Hello", "createdAt": "2024-05-01T10:00:00+00:00"}],
        "createdAt": datetime(2024, 5, 1, tzinfo=timezone.utc),
        "updatedAt": datetime.now(timezone.utc) - timedelta(minutes=minutes_ago),
        **extra,
    })

# ---------------------------
# Public submission
# ---------------------------
def test_missing_email_is_rejected_before_any_store_access(client, fake_db):
    r = client.post("/api/support", json={"name": "Alice", "message": "Where is my order?"})
    assert r.status_code == 400
    assert r.json() == {"error": "Name, email, and message are required."}
    assert fake_db.calls == []

def test_whitespace_only_fields_count_as_missing(client, fake_db):
    r = client.post("/api/support", json={"name": "  ", "email": "a@b.co", "message": "hi"})
    assert r.status_code == 400
    assert fake_db.writes == []

def test_submission_creates_open_ticket(client, fake_db):
    r = client.post("/api/support", json={
        "name": " Alice ",
        "email": " Alice@Example.com ",
        "message": " Where is my order? ",
        "topic": "orders",
        "orderNumber": "A-1001",
    })
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    stored = fake_db.data["supportTickets"][body["ticketId"]]
    assert stored["customerName"] == "Alice"
    assert stored["customerEmail"] == "alice@example.com"
    assert stored["subject"] == "Support request - orders"
    assert stored["orderNumber"] == "A-1001"
    assert stored["status"] == "open"
    assert stored["messages"][0]["body"] == "Where is my order?"
    assert stored["messages"][0]["authorType"] == "customer"

def test_store_failure_is_generic_500(client, fake_db):
    fake_db.fail = True
    r = client.post("/api/support", json={"name": "A", "email": "a@b.co", "message": "hi"})
    assert r.status_code == 500
    assert r.json() == {"error": "Unable to submit request. Please try again later."}

# ---------------------------
# Admin listing
# ---------------------------
def test_admin_list_requires_token(client, fake_db, verifier):
    r = client.get("/api/admin/support")
    assert r.status_code == 401
    assert r.json() == {"error": "Missing admin authentication. Sign in again."}
    assert fake_db.queries == []
    assert verifier.tokens == []

def test_admin_list_rejects_bad_token(client, fake_db):
    r = client.get("/api/admin/support", headers={"Authorization": "Bearer expired"})
    assert r.status_code == 401
    assert r.json() == {"error": "Invalid or expired session."}
    assert fake_db.queries == []

def test_non_bearer_header_is_missing_token(client, verifier):
    r = client.get("/api/admin/support", headers={"Authorization": "Basic abc"})
    assert r.status_code == 401
    assert verifier.tokens == []

def test_crashing_verifier_is_401_not_500(client, fake_db):
    def broken(token):
        raise RuntimeError("auth backend unreachable")

    app.dependency_overrides[get_token_verifier] = lambda: broken
    r = client.get("/api/admin/support", headers=ADMIN_HEADERS)
    assert r.status_code == 401
    assert r.json() == {"error": "Invalid or expired session."}
    assert fake_db.queries == []

def test_unhandled_error_is_json_500(client):
    def no_credentials():
        raise RuntimeError("Firebase admin credentials are not configured")

    app.dependency_overrides[get_db] = no_credentials
    r = TestClient(app, raise_server_exceptions=False).post(
        "/api/support", json={"name": "A", "email": "a@b.co", "message": "hi"}
    )
    assert r.status_code == 500
    assert r.json() == {"error": "Internal server error."}

def test_admin_list_newest_first_with_default_limit(client, fake_db):
    seed_ticket(fake_db, "old", minutes_ago=30)
    seed_ticket(fake_db, "new", minutes_ago=1)
    r = client.get("/api/admin/support", headers=ADMIN_HEADERS, params={"limit": "abc"})
    assert r.status_code == 200
    assert [t["id"] for t in r.json()["tickets"]] == ["new", "old"]
    assert fake_db.queries[-1]["limit"] == 50

def test_admin_list_limit_is_clamped(client, fake_db):
    client.get("/api/admin/support", headers=ADMIN_HEADERS, params={"limit": "500"})
    assert fake_db.queries[-1]["limit"] == 200
    client.get("/api/admin/support", headers=ADMIN_HEADERS, params={"limit": "7.9"})
    assert fake_db.queries[-1]["limit"] == 7

def test_admin_list_filters_by_status(client, fake_db):
    seed_ticket(fake_db, "t1", status="open")
    seed_ticket(fake_db, "t2", status="closed")
    r = client.get("/api/admin/support", headers=ADMIN_HEADERS, params={"status": "closed"})
    assert [t["id"] for t in r.json()["tickets"]] == ["t2"]
    assert fake_db.queries[-1]["filters"] == [("status", "==", "closed")]

def test_admin_list_unknown_status_is_400(client, fake_db):
    r = client.get("/api/admin/support", headers=ADMIN_HEADERS, params={"status": "pending"})
    assert r.status_code == 400
    assert fake_db.queries == []

def test_admin_list_store_failure(client, fake_db):
    fake_db.fail = True
    r = client.get("/api/admin/support", headers=ADMIN_HEADERS)
    assert r.status_code == 500
    assert r.json() == {"error": "Unable to load support tickets."}

def test_ticket_with_unknown_status_reads_as_open(client, fake_db):
    seed_ticket(fake_db, "weird", status="escalated")
    r = client.get("/api/admin/support/weird", headers=ADMIN_HEADERS)
    assert r.json()["ticket"]["status"] == "open"
    assert r.json()["ticket"]["messages"][0]["body"] == "Hello"

# ---------------------------
# Admin ticket detail and replies
# ---------------------------
def test_missing_ticket_is_404(client):
    r = client.get("/api/admin/support/nope", headers=ADMIN_HEADERS)
    assert r.status_code == 404
    assert r.json() == {"error": "Ticket not found."}

def test_reply_appends_admin_message(client, fake_db):
    seed_ticket(fake_db, "t1")
    r = client.patch("/api/admin/support/t1", headers=ADMIN_HEADERS, json={"message": " On its way! "})
    assert r.status_code == 200
    ticket = r.json()["ticket"]
    assert ticket["status"] == "waiting_customer"
    assert len(ticket["messages"]) == 2
    reply = ticket["messages"][-1]
    assert reply["authorType"] == "admin"
    assert reply["authorName"] == "Ada Admin"
    assert reply["body"] == "On its way!"
    assert fake_db.data["supportTickets"]["t1"]["lastMessageBy"] == "admin"

def test_reply_with_explicit_status(client, fake_db):
    seed_ticket(fake_db, "t1")
    r = client.patch("/api/admin/support/t1", headers=ADMIN_HEADERS, json={"message": "Done", "status": "closed"})
    assert r.json()["ticket"]["status"] == "closed"

def test_status_only_update(client, fake_db):
    seed_ticket(fake_db, "t1")
    r = client.patch("/api/admin/support/t1", headers=ADMIN_HEADERS, json={"status": "waiting_admin"})
    ticket = r.json()["ticket"]
    assert ticket["status"] == "waiting_admin"
    assert len(ticket["messages"]) == 1

def test_empty_update_is_400(client, fake_db):
    seed_ticket(fake_db, "t1")
    r = client.patch("/api/admin/support/t1", headers=ADMIN_HEADERS, json={"message": "   "})
    assert r.status_code == 400
    assert r.json() == {"error": "Provide a reply message or status change."}

def test_reply_to_missing_ticket_is_404(client):
    r = client.patch("/api/admin/support/ghost", headers=ADMIN_HEADERS, json={"message": "hi"})
    assert r.status_code == 404

# ---------------------------
# Notification emails
# ---------------------------
def test_submission_emails_the_customer(client, fake_db, mailer):
    r = client.post("/api/support", json={
        "name": "Alice", "email": "Alice@Example.com", "message": "Size swap <please>", "orderNumber": "AB12345678",
    })
    ticket_id = r.json()["ticketId"]
    assert len(mailer.sent) == 1
    sent = mailer.sent[0]
    assert sent["to"] == "alice@example.com"
    assert sent["subject"] == f"We received your support request ({ticket_id})"
    assert sent["from"] == sent["reply_to"] == "support@example.com"
    assert "Size swap &lt;please&gt;" in sent["html"]
    assert "AB12345678" in sent["html"]

def test_reply_emails_the_customer(client, fake_db, mailer):
    seed_ticket(fake_db, "t1")
    client.patch("/api/admin/support/t1", headers=ADMIN_HEADERS, json={"message": "Shipped today"})
    assert [(m["to"], m["subject"]) for m in mailer.sent] == [("bob@example.com", "Support update for ticket t1")]
    assert "Shipped today" in mailer.sent[0]["html"]

def test_status_only_update_sends_nothing(client, fake_db, mailer):
    seed_ticket(fake_db, "t1")
    client.patch("/api/admin/support/t1", headers=ADMIN_HEADERS, json={"status": "closed"})
    assert mailer.sent == []

def test_mail_provider_failure_keeps_the_ticket(client, fake_db, monkeypatch):
    def refuse(params):
        raise RuntimeError("resend is down")

    monkeypatch.setattr(resend.Emails, "send", refuse)
    app.dependency_overrides[get_mailer] = lambda: Mailer(api_key="re_live", from_email="orders@example.com")
    r = client.post("/api/support", json={"name": "A", "email": "a@b.co", "message": "hi"})
    assert r.status_code == 200
    assert r.json()["ticketId"] in fake_db.data["supportTickets"]
