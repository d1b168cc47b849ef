import json
import pytest
from fastapi.testclient import TestClient

from mailrelay.config import RelayConfig, SmtpSettings
from mailrelay.main import create_app
from mailrelay.signing import sign_payload
from mailrelay.transport import InMemoryTransport
from mailrelay.util import now_ms

SECRET = "test-secret-key"

# TestClient reports its peer address as "testclient"
TEST_PREFIXES = ("testclient", "127.0.0.1")


@pytest.fixture
def config():
    return RelayConfig(
        secret_key=SECRET,
        allowed_ip_prefixes=TEST_PREFIXES,
        allowed_origins=("https://swiss-lawsuit.info",),
        smtp=SmtpSettings(host="smtp.test", user="relay@example.org", password="smtp-pass"),
    )


@pytest.fixture
def transport():
    return InMemoryTransport()


@pytest.fixture
def client(config, transport):
    return TestClient(create_app(config, transport))


@pytest.fixture
def make_form():
    """Build a signed send-email form; keyword overrides replace or drop (None) fields."""
    def _make(payload=None, secret=SECRET, timestamp=None, **overrides):
        payload = {"firstName": "Jane"} if payload is None else payload
        ts = now_ms() if timestamp is None else timestamp
        form = {
            "to": "jane.doe@example.org",
            "subject": "Your submission",
            "text": "Your request has been received.",
            "data": json.dumps(payload),
            "timestamp": str(ts),
            "signature": sign_payload(payload, ts, secret),
        }
        for key, value in overrides.items():
            if value is None:
                form.pop(key, None)
            else:
                form[key] = value
        return form
    return _make
