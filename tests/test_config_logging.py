import json
import logging

import pytest

from mailrelay.config import DEFAULT_ALLOWED_IPS, RelayConfig, config_from_env, is_production, validate_config
from mailrelay.logging_config import AuditLogger, StructuredFormatter, configure_logging, set_request_id
from mailrelay.util import mask_sensitive, sanitize_for_logging, scrub_secret


def test_defaults_from_empty_environment():
    config = config_from_env({})
    assert config.port == 8497
    assert config.request_window_ms == 300000
    assert config.max_future_skew_ms is None
    assert config.allowed_ip_prefixes == DEFAULT_ALLOWED_IPS
    assert config.allowed_origins == ("https://swiss-lawsuit.info",)
    assert config.max_attachment_bytes == 5 * 1024 * 1024
    assert config.replay_cache_enabled is False
    assert config.smtp.secure is False


def test_environment_overrides():
    config = config_from_env({
        "SECRET_KEY": "s3cret",
        "ALLOWED_IPS": "10., 127.0.0.1 ,",
        "ALLOWED_ORIGINS": "https://a.example,https://b.example",
        "SMTP_HOST": "mail.example.org",
        "SMTP_PORT": "465",
        "SMTP_SECURE": "true",
        "SMTP_USER": "relay@example.org",
        "SMTP_PASS": "pw",
        "MAX_FUTURE_SKEW_MS": "30000",
        "REPLAY_CACHE_ENABLED": "1",
    })
    assert config.secret_key == "s3cret"
    assert config.allowed_ip_prefixes == ("10.", "127.0.0.1")
    assert config.allowed_origins == ("https://a.example", "https://b.example")
    assert config.smtp.port == 465
    assert config.smtp.secure is True
    assert config.sender_address == "relay@example.org"
    assert config.max_future_skew_ms == 30000
    assert config.replay_cache_enabled is True


def test_config_is_immutable():
    config = RelayConfig()
    with pytest.raises(AttributeError):
        config.secret_key = "changed"
    assert config.with_overrides(port=1).port == 1
    assert config.port == 8497


def test_secrets_hidden():
    config = config_from_env({"SECRET_KEY": "super-secret-value", "SMTP_PASS": "pw"})
    assert "super-secret-value" not in repr(config)
    assert "pw" not in repr(config.smtp)
    assert config.describe()["secret_key"].endswith("alue")
    assert "super" not in config.describe()["secret_key"]


def test_validate_config():
    assert any("SECRET_KEY" in p for p in validate_config(RelayConfig()))
    assert validate_config(RelayConfig(secret_key="k")) == []
    assert any("ALLOWED_IPS" in p for p in validate_config(RelayConfig(secret_key="k", allowed_ip_prefixes=())))
    assert is_production(RelayConfig(env="prod"))


def test_sanitize_for_logging_masks_signature():
    out = sanitize_for_logging({"to": "a@b.c", "signature": "abcdef0123456789", "nested": {"password": "x"}})
    assert out["to"] == "a@b.c"
    assert out["signature"] == "abcd...6789"
    assert out["nested"]["password"] == "[REDACTED]"


def test_masking_helpers():
    assert mask_sensitive("abcdefgh") == "****efgh"
    assert mask_sensitive("abc") == "***"
    assert scrub_secret("login pw failed", "pw") == "login [REDACTED] failed"
    assert scrub_secret("unchanged", "") == "unchanged"


def test_structured_formatter_includes_request_id():
    set_request_id("req-123")
    record = logging.LogRecord("mailrelay", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    data = json.loads(StructuredFormatter().format(record))
    assert data["message"] == "hello world"
    assert data["request_id"] == "req-123"
    assert data["level"] == "INFO"


def test_audit_logger_emits_event(caplog):
    with caplog.at_level(logging.INFO, logger="mailrelay.audit"):
        AuditLogger().email_sent("jane.doe@example.org", has_attachment=False)
    record = caplog.records[-1]
    assert record.extra_fields["event_type"] == "EMAIL_SENT"
    assert record.extra_fields["recipient"] == "jane.doe@example.org"


def test_structured_formatter_merges_audit_fields():
    record = logging.LogRecord("mailrelay.audit", logging.WARNING, __file__, 7, "REQUEST_REJECTED: x", (), None)
    record.extra_fields = {"event_type": "REQUEST_REJECTED", "request_id": "req-9", "field": None}
    data = json.loads(StructuredFormatter().format(record))
    assert data["event_type"] == "REQUEST_REJECTED"
    assert data["request_id"] == "req-9"
    assert "field" not in data
    assert data["ts"].endswith("Z")
    assert data["source"].endswith(":7")


def test_configure_logging_replaces_root_handlers():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    access_level = logging.getLogger("uvicorn.access").level
    try:
        handler = configure_logging("debug", json_format=True)
        assert root.handlers == [handler]
        assert isinstance(handler.formatter, StructuredFormatter)
        assert root.level == logging.DEBUG
        assert logging.getLogger("uvicorn.access").level == logging.WARNING

        plain = configure_logging("INFO", json_format=False)
        assert not isinstance(plain.formatter, StructuredFormatter)
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
        logging.getLogger("uvicorn.access").setLevel(access_level)
