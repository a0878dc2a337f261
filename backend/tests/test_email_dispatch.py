import asyncio
import smtplib

import pytest

from tourillo.config import settings
from tourillo.services import email_dispatch


@pytest.fixture
def smtp_configured(monkeypatch):
    monkeypatch.setattr(settings, "EMAIL_HOST", "smtp.example.com")
    monkeypatch.setattr(settings, "EMAIL_FROM", "noreply@tourillo.com")
    monkeypatch.setattr(settings, "EMAIL_TO", "inbox@tourillo.com")


@pytest.fixture
def outbox(monkeypatch):
    sent = []
    monkeypatch.setattr(email_dispatch, "_deliver", sent.append)
    return sent


def test_field_labels():
    assert email_dispatch.field_label("phone") == "Phone Number"
    assert email_dispatch.field_label("specialRequests") == "Special Requests"
    assert email_dispatch.field_label("preferredHotelType") == "Preferred Hotel Type"


def test_subject_variants():
    assert email_dispatch.build_subject("quote", {"name": "Asha"}) == "New Quote Request from Asha"
    assert email_dispatch.build_subject("contact", {"subject": "Visa help"}) == "Visa help - Contact Form from Unknown User"
    assert email_dispatch.build_subject("booking", {}, custom_subject="Custom") == "Custom"


def test_plain_text_skips_empty_values():
    text = email_dispatch.render_plain_text({"name": "Asha", "phone": "", "days": 5, "budget": None})

    assert text == "Name: Asha\nNumber of Days: 5"


def test_send_builds_and_delivers(smtp_configured, outbox):
    result = asyncio.run(
        email_dispatch.send_dynamic_email("booking", {"name": "Asha", "email": "asha@example.com", "date": "2026-12-01"})
    )

    assert result.success is True
    assert result.message_id
    (msg,) = outbox
    assert msg["To"] == "inbox@tourillo.com"
    assert msg["Reply-To"] == "asha@example.com"
    assert msg["Subject"] == "New Booking Request from Asha"
    assert "Travel Date: 2026-12-01" in msg.get_content()


def test_empty_submission_is_refused(smtp_configured, outbox):
    result = asyncio.run(email_dispatch.send_dynamic_email("contact", {}))

    assert result.success is False
    assert result.error == "No data provided"
    assert outbox == []


def test_smtp_failure_is_reported(smtp_configured, monkeypatch):
    def broken(msg):
        raise smtplib.SMTPAuthenticationError(535, b"bad credentials")

    monkeypatch.setattr(email_dispatch, "_deliver", broken)

    result = asyncio.run(email_dispatch.send_dynamic_email("contact", {"name": "Asha"}))

    assert result.success is False
    assert result.error


def test_send_email_endpoint(client, smtp_configured, outbox):
    resp = client.post("/api/send-email", json={"formType": "contact", "data": {"name": "Asha", "message": "Hi"}})

    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert len(outbox) == 1


def test_send_email_endpoint_validates_form_type(client):
    resp = client.post("/api/send-email", json={"formType": "newsletter", "data": {"name": "Asha"}})

    assert resp.status_code == 422
