# storefront/notifications.py
"""
Transactional email through Resend.

Sending is best effort: a missing API key skips the message and a provider
error is logged, so a mail outage never fails the request that triggered it.
"""
import html
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import resend
from fastapi import Depends

from .config import Settings, get_settings
from .models import SupportMessage, SupportTicket

logger = logging.getLogger(__name__)


def format_money(cents: Any, currency: str = "usd") -> str:
    amount = (cents or 0) / 100
    code = (currency or "usd").upper()
    if code == "USD":
        return f"${amount:,.2f}"
    return f"{amount:,.2f} {code}"


def _paragraphs(text: str) -> str:
    return html.escape(text).replace("\n", "<br />")


def _address_lines(address: Optional[Dict[str, Any]]) -> List[str]:
    if not address:
        return []
    city_state = ", ".join(v for v in (address.get("city"), address.get("state")) if v)
    parts = [address.get("line1"), address.get("line2"), city_state, address.get("postalCode"), address.get("country")]
    return [html.escape(str(p)) for p in parts if p]


class Mailer:
    def __init__(
        self,
        api_key: str = "",
        from_email: str = "",
        support_email: str = "",
        store_name: str = "Storefront",
        site_url: str = "",
    ):
        self.api_key = api_key
        self.from_email = from_email
        self.support_email = support_email or from_email
        self.store_name = store_name
        self.site_url = site_url.rstrip("/")

    def dispatch(self, to: str, subject: str, body_html: str, sender: Optional[str] = None, reply_to: Optional[str] = None) -> bool:
        if not self.api_key:
            logger.warning("RESEND_API_KEY missing, skipping email: %s", subject)
            return False

        params: Dict[str, Any] = {
            "from": sender or self.from_email,
            "to": [to],
            "subject": subject,
            "html": body_html,
        }
        if reply_to:
            params["reply_to"] = reply_to

        previous_api_key = getattr(resend, "api_key", None)
        resend.api_key = self.api_key
        try:
            response = resend.Emails.send(params)
        except Exception:
            logger.exception("Resend failed for %s", subject)
            return False
        finally:
            resend.api_key = previous_api_key

        if not isinstance(response, dict) or not response.get("id"):
            logger.error("Resend returned no message id for %s: %s", subject, response)
            return False
        return True

    def render(self, title: str, body: str, footer: Optional[str] = None) -> str:
        footer_row = (
            f'<tr><td style="padding-top:24px;font-size:12px;color:#7a7a7a;text-align:center;">{footer}</td></tr>'
            if footer else ""
        )
        return f"""<!doctype html>
<html>
  <head><meta charset="UTF-8" /><title>{html.escape(title)}</title></head>
  <body style="background-color:#050505;margin:0;padding:24px;font-family:Helvetica,Arial,sans-serif;color:#f7f7f7;">
    <table role="presentation" width="100%" style="max-width:640px;margin:0 auto;background:#0f0f0f;border-radius:18px;padding:32px;">
      <tr><td style="font-size:26px;font-weight:600;text-align:center;padding-bottom:12px;">{html.escape(title)}</td></tr>
      <tr><td style="font-size:15px;line-height:1.6;color:#d1d1d1;">{body}</td></tr>
      {footer_row}
    </table>
  </body>
</html>"""

    # ---------------------------
    # Orders
    # ---------------------------
    def send_order_confirmation(self, order: Dict[str, Any]) -> bool:
        email = order.get("customerEmail")
        if not email:
            return False

        currency = order.get("currency") or "usd"
        rows = "".join(
            f"<tr><td>{html.escape(str(item.get('description') or 'Item'))}</td>"
            f"<td style=\"text-align:center;\">&times;{item.get('quantity') or 1}</td>"
            f"<td style=\"text-align:right;\">{format_money(item.get('amountTotal'), currency)}</td></tr>"
            for item in order.get("lineItems") or []
        )
        amount_total = order.get("amountTotal") or 0
        shipping_total = order.get("shippingTotal") or 0
        tax_total = order.get("taxTotal") or 0
        totals = (
            f"<tr><td>Subtotal</td><td></td><td style=\"text-align:right;\">"
            f"{format_money(amount_total - shipping_total - tax_total, currency)}</td></tr>"
            f"<tr><td>Shipping</td><td></td><td style=\"text-align:right;\">{format_money(shipping_total, currency)}</td></tr>"
            f"<tr><td>Tax</td><td></td><td style=\"text-align:right;\">{format_money(tax_total, currency)}</td></tr>"
            f"<tr><td><strong>Total</strong></td><td></td><td style=\"text-align:right;\"><strong>"
            f"{format_money(amount_total, currency)}</strong></td></tr>"
        )

        shipping = order.get("shipping") or {}
        address = "<br />".join(_address_lines(shipping.get("address"))) or "We'll notify you once your order ships."
        number = order.get("orderNumber")
        name = html.escape(order.get("customerName") or "there")

        body = (
            f"<p>Hi {name},</p>"
            f"<p>Thanks for purchasing from {html.escape(self.store_name)}. We have your order"
            f"{f' <strong>#{html.escape(number)}</strong>' if number else ''} and will notify you again when it ships.</p>"
            f'<table role="presentation" width="100%">{rows}{totals}</table>'
            f"<p><strong>Shipping to</strong><br />{html.escape(shipping.get('name') or order.get('customerName') or 'You')}"
            f"<br />{address}</p>"
            f'<p>Need help? Reply to this email or visit <a href="{self.site_url}/contact">our help center</a>.</p>'
        )
        subject = f"We received your order{f' #{number}' if number else ''}"
        footer = f"&copy; {datetime.now().year} {html.escape(self.store_name)}"
        return self.dispatch(email, subject, self.render("Order confirmed", body, footer))

    def send_shipment_confirmation(self, order: Dict[str, Any]) -> bool:
        email = order.get("customerEmail")
        if not email:
            return False

        number = order.get("orderNumber")
        body = (
            f"<p>Hi {html.escape(order.get('customerName') or 'there')},</p>"
            f"<p>Your order{f' <strong>#{html.escape(number)}</strong>' if number else ''} has shipped.</p>"
        )
        if order.get("trackingUrl"):
            body += f'<p><a href="{html.escape(order["trackingUrl"])}">Track your package</a></p>'
        if order.get("trackingNumber"):
            body += f"<p>Tracking #: <strong>{html.escape(str(order['trackingNumber']))}</strong></p>"
        body += f"<p>Total paid: {format_money(order.get('amountTotal'), order.get('currency') or 'usd')}</p>"

        subject = f"Your order{f' #{number}' if number else ''} is on the way"
        return self.dispatch(
            email, subject, self.render("Your order is on the way", body, "Questions? Reply to this email anytime.")
        )

    # ---------------------------
    # Support
    # ---------------------------
    def send_support_ticket_received(self, ticket: SupportTicket, message: SupportMessage) -> bool:
        order = f" for order <strong>{html.escape(ticket.order_number)}</strong>" if ticket.order_number else ""
        body = (
            f"<p>Hi {html.escape(ticket.customer_name or 'there')},</p>"
            f"<p>Thanks for contacting {html.escape(self.store_name)} support. Your ticket ID is "
            f"<strong>{ticket.id}</strong>{order}. We'll reply within 1-2 business days.</p>"
            f"<p><strong>You wrote:</strong></p><blockquote>{_paragraphs(message.body)}</blockquote>"
        )
        return self.dispatch(
            ticket.customer_email,
            f"We received your support request ({ticket.id})",
            self.render("We received your message", body, f"{html.escape(self.store_name)} Support"),
            sender=self.support_email,
            reply_to=self.support_email,
        )

    def send_support_reply(self, ticket: SupportTicket, reply: SupportMessage) -> bool:
        order = f" for order {html.escape(ticket.order_number)}" if ticket.order_number else ""
        body = (
            f"<p>Hi {html.escape(ticket.customer_name or 'there')},</p>"
            f"<p>We just replied to your ticket{order}.</p>"
            f"<p><strong>Our response:</strong></p><blockquote>{_paragraphs(reply.body)}</blockquote>"
            "<p>Reply to this email if you have follow-up questions.</p>"
        )
        return self.dispatch(
            ticket.customer_email,
            f"Support update for ticket {ticket.id}",
            self.render(f"Update from {self.store_name} support", body, html.escape(self.support_email)),
            sender=self.support_email,
            reply_to=self.support_email,
        )


def get_mailer(settings: Settings = Depends(get_settings)) -> Mailer:
    return Mailer(
        api_key=settings.resend_api_key,
        from_email=settings.resend_from_email,
        support_email=settings.resend_support_email,
        store_name=settings.store_name,
        site_url=settings.site_url,
    )
