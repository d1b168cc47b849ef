"""
mailrelay: authenticated outbound-email relay.

Accepts a form submission signed by a trusted web page, authenticates it and
forwards it as an email:

    origin guard -> HMAC-SHA256 over canonical JSON -> freshness window
        -> recipient and payload checks -> HTML rendering -> SMTP

Clients sign

    hex(HMAC-SHA256(SECRET_KEY, '{"data":{<sorted payload>},"timestamp":<ms>}'))

and post it with the payload and timestamp to ``POST /send-email``.

Usage:
    from mailrelay import create_app, config_from_env

    app = create_app(config_from_env())
"""

__version__ = "1.0.0"

from .canonicalization import canonicalize_payload, coerce_timestamp, parse_payload
from .config import RelayConfig, SmtpSettings, config_from_env, load_config
from .errors import (
    AuthError,
    DeliveryError,
    ErrorCode,
    ForbiddenError,
    ParseError,
    RelayError,
    ValidationError,
)
from .freshness import is_fresh
from .main import create_app
from .origin import OriginGuard, normalize_address
from .relay import RelayHandler, StepOutcome
from .replay import ReplayCache
from .signing import compute_signature, sign_payload, verify_signature
from .transport import InMemoryTransport, MailTransport, OutboundMessage, SmtpTransport

__all__ = [
    "canonicalize_payload",
    "coerce_timestamp",
    "parse_payload",
    "RelayConfig",
    "SmtpSettings",
    "config_from_env",
    "load_config",
    "AuthError",
    "DeliveryError",
    "ErrorCode",
    "ForbiddenError",
    "ParseError",
    "RelayError",
    "ValidationError",
    "is_fresh",
    "create_app",
    "OriginGuard",
    "normalize_address",
    "RelayHandler",
    "StepOutcome",
    "ReplayCache",
    "compute_signature",
    "sign_payload",
    "verify_signature",
    "InMemoryTransport",
    "MailTransport",
    "OutboundMessage",
    "SmtpTransport",
]
