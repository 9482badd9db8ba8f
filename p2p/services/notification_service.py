"""
Notification sink: template rendering + fire-and-forget dispatch.

The workflow engine hands over ``NotificationEvent`` objects after its
transaction commits and never looks at the outcome. Two sinks exist:
``LogNotificationSink`` (development, tests) and ``EmailNotificationSink``
(Brevo, via ``email_service.BrevoMailer``).
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Protocol

import structlog

from p2p.config import Settings
from p2p.services.email_service import BrevoMailer

logger = structlog.get_logger()


@dataclass
class NotificationEvent:
    kind: str
    recipient_email: str
    payload: dict = field(default_factory=dict)


class NotificationSink(Protocol):
    async def notify(self, event: NotificationEvent) -> None:
        ...

    async def close(self) -> None:
        ...


# ---------- Template registry ----------

TEMPLATES = {
    "pr_approval_request": {
        "subject": "Purchase Requisition {pr_number}: Your Approval Required",
        "html": (
            "<h2>Approval Required</h2>"
            "<p>Purchase requisition <strong>{pr_number}</strong> requires your approval.</p>"
            "<p><strong>Department:</strong> {department}</p>"
            "<p><strong>Amount:</strong> {amount_display}</p>"
            "<p><strong>Requester:</strong> {requester_email}</p>"
        ),
    },
    "pr_approved": {
        "subject": "Purchase Requisition {pr_number}: Approved",
        "html": (
            "<h2>Purchase Requisition Approved</h2>"
            "<p>Your purchase requisition <strong>{pr_number}</strong> has been approved.</p>"
            "<p><strong>Amount:</strong> {amount_display}</p>"
            "<p>A purchase order can now be created.</p>"
        ),
    },
    "pr_rejected": {
        "subject": "Purchase Requisition {pr_number}: Rejected",
        "html": (
            "<h2>Purchase Requisition Rejected</h2>"
            "<p>Your purchase requisition <strong>{pr_number}</strong> was rejected "
            "by {approver_name}.</p>"
            "<p><strong>Reason:</strong> {comment}</p>"
        ),
    },
    "pr_converted": {
        "subject": "Purchase Requisition {pr_number}: Converted to {po_number}",
        "html": (
            "<h2>Purchase Order Created</h2>"
            "<p>Purchase requisition <strong>{pr_number}</strong> was converted into "
            "purchase order <strong>{po_number}</strong>.</p>"
        ),
    },
    "po_approval_request": {
        "subject": "Purchase Order {po_number}: Your Approval Required",
        "html": (
            "<h2>Approval Required</h2>"
            "<p>Purchase order <strong>{po_number}</strong> requires your approval.</p>"
            "<p><strong>Amount:</strong> {currency} {amount_display}</p>"
        ),
    },
    "po_approved": {
        "subject": "Purchase Order {po_number}: Approved",
        "html": (
            "<h2>Purchase Order Approved</h2>"
            "<p>Purchase order <strong>{po_number}</strong> is approved and can be sent.</p>"
        ),
    },
    "po_rejected": {
        "subject": "Purchase Order {po_number}: Rejected",
        "html": (
            "<h2>Purchase Order Rejected</h2>"
            "<p>Purchase order <strong>{po_number}</strong> was rejected by {approver_name}.</p>"
            "<p><strong>Reason:</strong> {comment}</p>"
        ),
    },
    "po_sent": {
        "subject": "Purchase Order {po_number}",
        "html": (
            "<h2>Purchase Order {po_number}</h2>"
            "<p>Dear {vendor_name}, please find our purchase order below.</p>"
            "<p><strong>Amount:</strong> {currency} {amount_display}</p>"
            "<p><strong>Required by:</strong> {required_date}</p>"
            "<p><strong>Ship to:</strong> {shipping_address}</p>"
        ),
    },
}


def _format_amount(amount) -> str:
    """Decimal amount to display string (e.g. Decimal('5000') -> '5,000.00')."""
    return f"{Decimal(str(amount)):,.2f}"


def render(event: NotificationEvent) -> Optional[tuple[str, str]]:
    template = TEMPLATES.get(event.kind)
    if not template:
        logger.warning("notification_template_not_found", kind=event.kind)
        return None

    context = dict(event.payload)
    if "amount" in context and "amount_display" not in context:
        context["amount_display"] = _format_amount(context["amount"])

    try:
        return template["subject"].format(**context), template["html"].format(**context)
    except KeyError as e:
        logger.error("notification_template_render_error", kind=event.kind, missing_key=str(e))
        return None


class LogNotificationSink:
    """Renders and logs; nothing leaves the process."""

    def __init__(self):
        self.sent: list[NotificationEvent] = []

    async def notify(self, event: NotificationEvent) -> None:
        rendered = render(event)
        if rendered is None:
            return
        self.sent.append(event)
        logger.info(
            "notification_logged",
            kind=event.kind,
            recipient=event.recipient_email,
            subject=rendered[0],
        )

    async def close(self) -> None:
        pass


class EmailNotificationSink:
    def __init__(self, mailer: BrevoMailer):
        self.mailer = mailer

    async def notify(self, event: NotificationEvent) -> None:
        rendered = render(event)
        if rendered is None:
            return
        subject, html = rendered
        delivered = await self.mailer.send([event.recipient_email], subject, html)
        logger.info(
            "notification_sent",
            kind=event.kind,
            recipient=event.recipient_email,
            success=delivered,
        )

    async def close(self) -> None:
        await self.mailer.close()


def build_notification_sink(settings: Settings) -> NotificationSink:
    if settings.NOTIFICATION_BACKEND == "email":
        return EmailNotificationSink(BrevoMailer(settings))
    return LogNotificationSink()
