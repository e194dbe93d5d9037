# storefront/support.py
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from google.cloud import firestore
from starlette.concurrency import run_in_threadpool

from .models import SupportMessage, SupportTicket, SupportTicketStatus
from .normalize import to_iso_string

logger = logging.getLogger(__name__)

TICKETS_COLLECTION = "supportTickets"
DEFAULT_ADMIN_NAME = "Storefront Support"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def deserialize_ticket(snapshot) -> Optional[SupportTicket]:
    data = snapshot.to_dict() if snapshot.exists else None
    if not data:
        return None

    messages = []
    for m in data.get("messages") or []:
        if not isinstance(m, dict):
            continue
        messages.append(SupportMessage(
            id=m["id"] if isinstance(m.get("id"), str) else uuid.uuid4().hex,
            author_type="admin" if m.get("authorType") == "admin" else "customer",
            author_name=_text(m.get("authorName")),
            author_email=_text(m.get("authorEmail")),
            body=_text(m.get("body")) or "",
            created_at=to_iso_string(m.get("createdAt")) or _now_iso(),
        ))

    try:
        status = SupportTicketStatus(data.get("status"))
    except ValueError:
        status = SupportTicketStatus.OPEN

    return SupportTicket(
        id=snapshot.id,
        subject=_text(data.get("subject")),
        topic=_text(data.get("topic")),
        order_number=_text(data.get("orderNumber")),
        customer_name=_text(data.get("customerName")),
        customer_email=_text(data.get("customerEmail")) or "",
        status=status,
        messages=messages,
        created_at=to_iso_string(data.get("createdAt")),
        updated_at=to_iso_string(data.get("updatedAt")),
    )


async def create_support_ticket(
    db,
    name: str,
    email: str,
    message: str,
    subject: Optional[str] = None,
    topic: str = "general",
    order_number: Optional[str] = None,
    mailer=None,
) -> SupportTicket:
    ref = db.collection(TICKETS_COLLECTION).document()
    now = _now_iso()
    first_message = {
        "id": uuid.uuid4().hex,
        "authorType": "customer",
        "authorName": name,
        "authorEmail": email,
        "body": message,
        "createdAt": now,
    }
    payload = {
        "subject": subject or f"Support request - {topic}",
        "topic": topic,
        "orderNumber": order_number,
        "customerName": name,
        "customerEmail": email.lower(),
        "status": SupportTicketStatus.OPEN.value,
        "messages": [first_message],
        "createdAt": firestore.SERVER_TIMESTAMP,
        "updatedAt": firestore.SERVER_TIMESTAMP,
        "lastMessageAt": firestore.SERVER_TIMESTAMP,
        "lastMessageBy": "customer",
    }
    await ref.set(payload)
    logger.info("support ticket %s created for %s", ref.id, payload["customerEmail"])

    ticket = SupportTicket(
        id=ref.id,
        subject=payload["subject"],
        topic=topic,
        order_number=order_number,
        customer_name=name,
        customer_email=payload["customerEmail"],
        status=SupportTicketStatus.OPEN,
        messages=[SupportMessage(
            id=first_message["id"],
            author_type="customer",
            author_name=name,
            author_email=email,
            body=message,
            created_at=now,
        )],
        created_at=now,
        updated_at=now,
    )
    if mailer is not None:
        await run_in_threadpool(mailer.send_support_ticket_received, ticket, ticket.messages[0])
    return ticket


async def list_support_tickets(
    db, limit: int = 50, status: Optional[SupportTicketStatus] = None
) -> List[SupportTicket]:
    query = db.collection(TICKETS_COLLECTION).order_by("updatedAt", direction=firestore.Query.DESCENDING)
    if status is not None:
        query = query.where(filter=firestore.FieldFilter("status", "==", status.value))
    query = query.limit(min(max(int(limit), 1), 200))

    docs = await query.get()
    tickets = [deserialize_ticket(d) for d in docs]
    return [t for t in tickets if t is not None]


async def get_support_ticket(db, ticket_id: str) -> Optional[SupportTicket]:
    snapshot = await db.collection(TICKETS_COLLECTION).document(ticket_id).get()
    return deserialize_ticket(snapshot)


async def add_admin_reply(
    db,
    ticket_id: str,
    body: str,
    admin: Dict[str, Any],
    status: Optional[SupportTicketStatus] = None,
    mailer=None,
) -> Optional[SupportTicket]:
    ref = db.collection(TICKETS_COLLECTION).document(ticket_id)
    snapshot = await ref.get()
    if not snapshot.exists:
        return None

    reply = {
        "id": uuid.uuid4().hex,
        "authorType": "admin",
        "authorName": admin.get("name") or DEFAULT_ADMIN_NAME,
        "authorEmail": admin.get("email"),
        "body": body,
        "createdAt": _now_iso(),
    }
    await ref.update({
        "messages": firestore.ArrayUnion([reply]),
        "status": (status or SupportTicketStatus.WAITING_CUSTOMER).value,
        "updatedAt": firestore.SERVER_TIMESTAMP,
        "lastMessageAt": firestore.SERVER_TIMESTAMP,
        "lastMessageBy": "admin",
    })
    ticket = deserialize_ticket(await ref.get())
    if mailer is not None and ticket is not None and ticket.customer_email:
        sent = SupportMessage(
            id=reply["id"],
            author_type="admin",
            author_name=reply["authorName"],
            author_email=reply["authorEmail"],
            body=body,
            created_at=reply["createdAt"],
        )
        await run_in_threadpool(mailer.send_support_reply, ticket, sent)
    return ticket


async def update_ticket_status(db, ticket_id: str, status: SupportTicketStatus) -> Optional[SupportTicket]:
    ref = db.collection(TICKETS_COLLECTION).document(ticket_id)
    snapshot = await ref.get()
    if not snapshot.exists:
        return None

    await ref.update({"status": status.value, "updatedAt": firestore.SERVER_TIMESTAMP})
    return deserialize_ticket(await ref.get())
