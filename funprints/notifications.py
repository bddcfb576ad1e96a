"""
Transactional mail.

Messages are rendered from the Jinja2 templates in ``funprints/templates``
and delivered with aiosmtplib. Without an SMTP host configured the
rendered message is logged instead, which keeps local runs quiet.
"""
from __future__ import annotations
import logging
from email.message import EmailMessage
from email.utils import formatdate, make_msgid
from typing import Any, Optional

import aiosmtplib
from jinja2 import Environment, PackageLoader, select_autoescape

from funprints.config import Settings
from funprints.errors import NotificationFailed
from funprints.schemas import BulkEnquiry, ContactMessage, Order

logger = logging.getLogger("funprints.notifications")


def _rupees(value: float) -> str:
    if float(value).is_integer():
        return f"₹{int(value):,}"
    return f"₹{value:,.2f}"


def _absolute_url(path: str, base_url: str) -> str:
    if not path or path.startswith("http"):
        return path
    return base_url.rstrip("/") + "/" + path.lstrip("/")


class Notifier:
    def __init__(self, settings: Settings, env: Optional[Environment] = None):
        self.settings = settings
        self.env = env or Environment(
            loader=PackageLoader("funprints", "templates"),
            autoescape=select_autoescape(["html"]),
        )
        self.env.filters["rupees"] = _rupees
        self.env.filters["absolute_url"] = lambda p: _absolute_url(p, settings.BASE_URL)

    def render(self, template_name: str, **context: Any) -> str:
        return self.env.get_template(template_name).render(**context)

    def build_message(self, to: str, subject: str, html: str, text: str, reply_to: Optional[str] = None) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.settings.MAIL_FROM
        msg["To"] = to
        msg["Subject"] = subject
        msg["Date"] = formatdate(localtime=True)
        msg["Message-ID"] = make_msgid(domain="funprints.in")
        if reply_to:
            msg["Reply-To"] = reply_to
        msg.set_content(text)
        msg.add_alternative(html, subtype="html")
        return msg

    async def send(self, msg: EmailMessage) -> None:
        if not self.settings.SMTP_HOST:
            logger.info("SMTP not configured, not sending %r to %s", msg["Subject"], msg["To"])
            return
        try:
            await aiosmtplib.send(
                msg,
                hostname=self.settings.SMTP_HOST,
                port=self.settings.SMTP_PORT,
                username=self.settings.SMTP_USER,
                password=self.settings.SMTP_PASSWORD,
                start_tls=self.settings.SMTP_STARTTLS,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            raise NotificationFailed(f"Sending {msg['Subject']!r} to {msg['To']} failed: {e}") from e
        logger.info("Sent %r to %s", msg["Subject"], msg["To"])

    # -- orders -----------------------------------------------------------

    async def send_order_confirmation(self, order: Order) -> None:
        html = self.render("order_confirmation.html", order=order)
        text = self.render("order_confirmation.txt", order=order)
        msg = self.build_message(
            order.customer.email,
            f"Order Confirmed - {order.order_code} | Fun Prints",
            html,
            text,
        )
        await self.send(msg)

    async def send_admin_alert(self, order: Order) -> None:
        html = self.render("admin_order_alert.html", order=order)
        text = self.render("admin_order_alert.txt", order=order)
        msg = self.build_message(
            self.settings.ADMIN_EMAIL,
            f"New Order {order.order_code} - {_rupees(order.amount_due)} ({order.payment_method.value})",
            html,
            text,
            reply_to=order.customer.email,
        )
        await self.send(msg)

    # -- enquiries ----------------------------------------------------------

    async def send_contact_message(self, message: ContactMessage) -> None:
        text = self.render("contact_message.txt", message=message)
        html = self.render("contact_message.html", message=message)
        msg = self.build_message(
            self.settings.ADMIN_EMAIL,
            f"Contact form: {message.name}",
            html,
            text,
            reply_to=message.email,
        )
        await self.send(msg)

    async def send_bulk_enquiry_alert(self, enquiry: BulkEnquiry) -> None:
        text = self.render("bulk_enquiry.txt", enquiry=enquiry)
        html = self.render("bulk_enquiry.html", enquiry=enquiry)
        msg = self.build_message(
            self.settings.ADMIN_EMAIL,
            f"Bulk order enquiry: {enquiry.quantity} pcs from {enquiry.company or enquiry.name}",
            html,
            text,
            reply_to=enquiry.email,
        )
        await self.send(msg)
