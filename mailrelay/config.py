"""
Configuration module for the mail relay.

All settings are read from the environment once, at process start, into an
immutable RelayConfig that is passed into the application and its components.
"""

import os
from dataclasses import dataclass, field, replace
from functools import lru_cache
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .util import mask_sensitive


DEFAULT_SECRET_KEY = "default_secret_key"
DEFAULT_ALLOWED_IPS = ("185.209.228.173", "127.0.0.1", "172.", "192.168.")
DEFAULT_ALLOWED_ORIGINS = ("https://swiss-lawsuit.info",)
DEFAULT_CSP = (
    "default-src 'self'; script-src 'self'; style-src 'self'; "
    "object-src 'none'; frame-ancestors 'none';"
)


def _split_list(raw: Optional[str], default: Tuple[str, ...]) -> Tuple[str, ...]:
    if raw is None:
        return default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def _parse_bool(raw: Optional[str], default: bool = False) -> bool:
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes")


def _parse_optional_int(raw: Optional[str]) -> Optional[int]:
    if raw is None or not raw.strip():
        return None
    return int(raw)


# ============================================================
# SMTP Settings
# ============================================================

@dataclass(frozen=True)
class SmtpSettings:
    """Connection settings for the outbound SMTP server."""
    host: str = "localhost"
    port: int = 587
    secure: bool = False
    user: str = ""
    password: str = field(default="", repr=False)
    timeout: float = 30.0


# ============================================================
# Relay Configuration
# ============================================================

@dataclass(frozen=True)
class RelayConfig:
    """
    Immutable, process-wide relay configuration.

    Built once by load_config() and injected wherever it is needed.
    """
    secret_key: str = field(default=DEFAULT_SECRET_KEY, repr=False)
    env: str = "dev"
    port: int = 8497

    # Freshness (epoch milliseconds)
    request_window_ms: int = 5 * 60 * 1000
    max_future_skew_ms: Optional[int] = None

    # Origin Guard
    allowed_ip_prefixes: Tuple[str, ...] = DEFAULT_ALLOWED_IPS
    allowed_origins: Tuple[str, ...] = DEFAULT_ALLOWED_ORIGINS

    # Uploads
    max_attachment_bytes: int = 5 * 1024 * 1024

    # Outbound mail
    smtp: SmtpSettings = field(default_factory=SmtpSettings)
    sender_name: str = "Class Lawsuits"

    # Replay protection
    replay_cache_enabled: bool = False
    replay_cache_size: int = 10000

    # Response headers
    content_security_policy: str = DEFAULT_CSP

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    @property
    def sender_address(self) -> str:
        return self.smtp.user

    def with_overrides(self, **changes: Any) -> "RelayConfig":
        """Return a copy with some fields replaced."""
        return replace(self, **changes)

    def describe(self) -> Dict[str, Any]:
        """Loggable summary of the configuration with secrets masked."""
        return {
            "env": self.env,
            "port": self.port,
            "secret_key": mask_sensitive(self.secret_key),
            "request_window_ms": self.request_window_ms,
            "max_future_skew_ms": self.max_future_skew_ms,
            "allowed_ip_prefixes": list(self.allowed_ip_prefixes),
            "allowed_origins": list(self.allowed_origins),
            "max_attachment_bytes": self.max_attachment_bytes,
            "smtp_host": self.smtp.host,
            "smtp_port": self.smtp.port,
            "smtp_secure": self.smtp.secure,
            "replay_cache_enabled": self.replay_cache_enabled,
        }


def config_from_env(environ: Optional[Mapping[str, str]] = None) -> RelayConfig:
    """
    Build a RelayConfig from environment variables.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        A new RelayConfig
    """
    env = os.environ if environ is None else environ

    smtp = SmtpSettings(
        host=env.get("SMTP_HOST", "localhost"),
        port=int(env.get("SMTP_PORT", "587")),
        secure=_parse_bool(env.get("SMTP_SECURE")),
        user=env.get("SMTP_USER", ""),
        password=env.get("SMTP_PASS", ""),
        timeout=float(env.get("SMTP_TIMEOUT", "30")),
    )

    return RelayConfig(
        secret_key=env.get("SECRET_KEY", DEFAULT_SECRET_KEY),
        env=env.get("MAILRELAY_ENV", "dev"),
        port=int(env.get("PORT", "8497")),
        request_window_ms=int(env.get("REQUEST_WINDOW_MS", str(5 * 60 * 1000))),
        max_future_skew_ms=_parse_optional_int(env.get("MAX_FUTURE_SKEW_MS")),
        allowed_ip_prefixes=_split_list(env.get("ALLOWED_IPS"), DEFAULT_ALLOWED_IPS),
        allowed_origins=_split_list(env.get("ALLOWED_ORIGINS"), DEFAULT_ALLOWED_ORIGINS),
        max_attachment_bytes=int(env.get("MAX_ATTACHMENT_BYTES", str(5 * 1024 * 1024))),
        smtp=smtp,
        sender_name=env.get("MAIL_SENDER_NAME", "Class Lawsuits"),
        replay_cache_enabled=_parse_bool(env.get("REPLAY_CACHE_ENABLED")),
        replay_cache_size=int(env.get("REPLAY_CACHE_SIZE", "10000")),
        log_level=env.get("LOG_LEVEL", "INFO"),
        log_json=_parse_bool(env.get("LOG_JSON"), default=True),
    )


@lru_cache(maxsize=1)
def load_config() -> RelayConfig:
    """Load the process configuration once; later calls return the same object."""
    return config_from_env()


# ============================================================
# Validation
# ============================================================

def validate_config(config: RelayConfig) -> List[str]:
    """
    Check a configuration for problems worth reporting at startup.

    Returns:
        List of human-readable problems (empty if none)
    """
    problems = []
    if config.secret_key == DEFAULT_SECRET_KEY:
        if is_production(config):
            problems.append("SECRET_KEY is not set in production; requests can be forged")
        else:
            problems.append("SECRET_KEY is not set; using the built-in default")
    if not config.smtp.host:
        problems.append("SMTP_HOST is empty")
    if not config.allowed_ip_prefixes:
        problems.append("ALLOWED_IPS is empty; every request will be rejected")
    if config.request_window_ms <= 0:
        problems.append("REQUEST_WINDOW_MS must be positive")
    return problems


def is_production(config: RelayConfig) -> bool:
    """Check if running in production mode."""
    return config.env == "prod"
