import asyncio

import aiosmtplib
import pytest

from mailrelay.config import SmtpSettings
from mailrelay.errors import DeliveryError
from mailrelay.models import Attachment
from mailrelay.transport import InMemoryTransport, OutboundMessage, SmtpTransport, build_email, format_sender


def message(**overrides):
    fields = dict(
        sender=format_sender("Class Lawsuits", "relay@example.org"),
        to="jane.doe@example.org",
        subject="Your submission",
        text="Received.",
        html="<p>Received.</p>",
    )
    fields.update(overrides)
    return OutboundMessage(**fields)


def test_sender_identity():
    assert format_sender("Class Lawsuits", "relay@example.org") == '"Class Lawsuits" <relay@example.org>'


def test_build_email_headers_and_parts():
    msg = build_email(message(cc="office@example.org"))
    assert msg["To"] == "jane.doe@example.org"
    assert msg["Cc"] == "office@example.org"
    assert msg["Subject"] == "Your submission"
    assert msg["Message-ID"]
    assert msg.get_body(("plain",)).get_content().strip() == "Received."
    assert "<p>Received.</p>" in msg.get_body(("html",)).get_content()


def test_build_email_without_cc():
    assert build_email(message())["Cc"] is None


def test_build_email_attachment():
    pdf = Attachment("claim.pdf", b"%PDF-1.4", "application/pdf")
    msg = build_email(message(attachment=pdf))
    attachments = list(msg.iter_attachments())
    assert len(attachments) == 1
    assert attachments[0].get_filename() == "claim.pdf"
    assert attachments[0].get_content_type() == "application/pdf"
    assert attachments[0].get_content() == b"%PDF-1.4"


def test_smtp_send_arguments(monkeypatch):
    calls = []

    async def fake_send(email, **kwargs):
        calls.append((email, kwargs))

    monkeypatch.setattr(aiosmtplib, "send", fake_send)
    settings = SmtpSettings(host="smtp.test", port=587, user="relay@example.org", password="pw", timeout=12)
    asyncio.run(SmtpTransport(settings).send(message()))

    email, kwargs = calls[0]
    assert email["To"] == "jane.doe@example.org"
    assert kwargs["hostname"] == "smtp.test"
    assert kwargs["port"] == 587
    assert kwargs["username"] == "relay@example.org"
    assert kwargs["use_tls"] is False
    assert kwargs["start_tls"] is None
    assert kwargs["timeout"] == 12


def test_smtp_secure_uses_implicit_tls(monkeypatch):
    calls = []

    async def fake_send(email, **kwargs):
        calls.append(kwargs)

    monkeypatch.setattr(aiosmtplib, "send", fake_send)
    asyncio.run(SmtpTransport(SmtpSettings(port=465, secure=True)).send(message()))
    assert calls[0]["use_tls"] is True
    assert calls[0]["start_tls"] is False
    assert calls[0]["username"] is None


def test_smtp_failure_scrubs_password(monkeypatch):
    async def fake_send(email, **kwargs):
        raise aiosmtplib.SMTPException("535 auth failed for relay@example.org/hunter2")

    monkeypatch.setattr(aiosmtplib, "send", fake_send)
    settings = SmtpSettings(user="relay@example.org", password="hunter2")
    with pytest.raises(DeliveryError) as exc:
        asyncio.run(SmtpTransport(settings).send(message()))
    assert "hunter2" not in exc.value.cause
    assert "535 auth failed" in exc.value.cause


def test_smtp_connection_error(monkeypatch):
    async def fake_send(email, **kwargs):
        raise ConnectionRefusedError("Connection refused")

    monkeypatch.setattr(aiosmtplib, "send", fake_send)
    with pytest.raises(DeliveryError) as exc:
        asyncio.run(SmtpTransport(SmtpSettings()).send(message()))
    assert "refused" in exc.value.cause


def test_in_memory_transport():
    transport = InMemoryTransport()
    asyncio.run(transport.send(message()))
    assert len(transport.sent) == 1
    transport.clear()
    assert transport.sent == []


def test_unbuildable_message_is_delivery_error(monkeypatch):
    async def fake_send(email, **kwargs):
        raise AssertionError("nothing should be sent")

    monkeypatch.setattr(aiosmtplib, "send", fake_send)
    with pytest.raises(DeliveryError) as exc:
        asyncio.run(SmtpTransport(SmtpSettings()).send(message(subject="hi\r\nBcc: x@y.z")))
    assert "message rejected" in exc.value.cause
