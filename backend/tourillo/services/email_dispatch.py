"""Form-submission notifications (contact, quote, booking) sent over SMTP.

All submissions go to one inbox (EMAIL_TO); the visitor's address, when
present, becomes the Reply-To.
"""

from __future__ import annotations

import asyncio
import re
import smtplib
from datetime import timedelta, timezone
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Any, Dict, Optional

from tourillo.config import settings
from tourillo.utils.logger import logger, utcnow

FIELD_LABELS = {
    "name": "Name",
    "email": "Email",
    "phone": "Phone Number",
    "subject": "Subject",
    "message": "Message",
    "destination": "Destination",
    "date": "Travel Date",
    "days": "Number of Days",
    "adults": "Adults",
    "children": "Children",
    "budget": "Budget",
    "specialRequests": "Special Requests",
}

FORM_TITLES = {
    "contact": "Contact Form",
    "quote": "Quote Request",
    "booking": "Booking Request",
    "custom": "Form Submission",
}

# Timestamps in the body are shown in the agency's local time.
RECEIVED_TZ = timezone(timedelta(hours=5, minutes=30), "IST")


@dataclass(frozen=True)
class EmailResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


def field_label(key: str) -> str:
    if key in FIELD_LABELS:
        return FIELD_LABELS[key]
    return key[:1].upper() + re.sub(r"([A-Z])", r" \1", key[1:])


def form_title(form_type: str) -> str:
    return FORM_TITLES.get(form_type, "Form Submission")


def _present(value: Any) -> bool:
    return value is not None and value != ""


def render_plain_text(data: Dict[str, Any]) -> str:
    return "\n".join(f"{field_label(k)}: {v}" for k, v in data.items() if _present(v))


def build_subject(form_type: str, data: Dict[str, Any], custom_subject: Optional[str] = None) -> str:
    if custom_subject:
        return custom_subject
    title = form_title(form_type)
    user_name = data.get("name") or "Unknown User"
    if data.get("subject"):
        return f"{data['subject']} - {title} from {user_name}"
    return f"New {title} from {user_name}"


def build_message(form_type: str, data: Dict[str, Any], custom_subject: Optional[str] = None) -> EmailMessage:
    title = form_title(form_type)
    received = utcnow().replace(tzinfo=timezone.utc).astimezone(RECEIVED_TZ)

    msg = EmailMessage()
    msg["Subject"] = build_subject(form_type, data, custom_subject)
    msg["From"] = settings.EMAIL_FROM or settings.EMAIL_USER or ""
    msg["To"] = settings.EMAIL_TO or settings.EMAIL_FROM or settings.EMAIL_USER or ""
    reply_to = data.get("email") or settings.EMAIL_FROM
    if reply_to:
        msg["Reply-To"] = str(reply_to)
    msg["Message-ID"] = make_msgid(domain="tourillo.com")
    msg.set_content(
        f"New {title}\n\n{render_plain_text(data)}\n\n---\n"
        f"Received: {received.strftime('%d/%m/%Y, %I:%M:%S %p')}\n"
    )
    return msg


def _deliver(msg: EmailMessage) -> None:
    with smtplib.SMTP(settings.EMAIL_HOST, settings.EMAIL_PORT, timeout=30) as smtp:
        if settings.EMAIL_USER:
            smtp.starttls()
            smtp.login(settings.EMAIL_USER, settings.EMAIL_PASS or "")
        smtp.send_message(msg)


async def send_dynamic_email(
    form_type: str,
    data: Dict[str, Any],
    custom_subject: Optional[str] = None,
) -> EmailResult:
    """Render and send one submission. SMTP runs in a worker thread.

    Delivery failures come back as ``EmailResult(success=False)``.
    """

    if not data:
        return EmailResult(success=False, error="No data provided")
    if not settings.EMAIL_HOST:
        logger.error("Email not sent: EMAIL_HOST is not configured")
        return EmailResult(success=False, error="Email transport is not configured")

    msg = build_message(form_type, data, custom_subject)
    try:
        await asyncio.to_thread(_deliver, msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send {form_type} email: {type(e).__name__}: {e}")
        return EmailResult(success=False, error=str(e) or "Failed to send email")

    logger.info(f"{form_title(form_type)} email sent: {msg['Message-ID']}")
    return EmailResult(success=True, message_id=msg["Message-ID"])
