"""
Logging configuration for the mail relay.

Provides structured JSON logging and an audit logger for access and
delivery decisions.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Optional

# Context variable for request ID tracking
request_id_var: ContextVar[str] = ContextVar('request_id', default='')

# Loggers that would duplicate the per-request audit records
QUIET_LOGGERS = ("uvicorn.access",)


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, tagged with the current request ID."""

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        stamp = time.strftime('%Y-%m-%dT%H:%M:%S', time.gmtime(record.created))
        return f"{stamp}.{int(record.msecs):03d}Z"

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": f"{record.module}:{record.lineno}",
        }
        request_id = getattr(record, "extra_fields", {}).get("request_id") or request_id_var.get()
        if request_id:
            entry["request_id"] = request_id
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        for key, value in getattr(record, "extra_fields", {}).items():
            if value is not None:
                entry.setdefault(key, value)
        return json.dumps(entry, default=str)


class AuditLogger:
    """
    Specialized logger for relay audit events.

    Every accepted or rejected request produces one audit record.
    """

    def __init__(self, name: str = "mailrelay.audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        """Internal logging method with extra fields."""
        extra = {
            "event_type": event_type,
            "request_id": request_id_var.get(),
            **kwargs
        }

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "",
            0,
            f"{event_type}: {kwargs.get('message', '')}",
            (),
            None
        )
        record.extra_fields = extra
        self._logger.handle(record)

    def access_denied(self, address: Optional[str], origin: Optional[str], reason: str) -> None:
        """Log an Origin Guard rejection."""
        self._log(
            logging.WARNING,
            "ACCESS_DENIED",
            client_address=address,
            origin=origin,
            reason=reason,
            message=f"Access denied for {address}: {reason}"
        )

    def request_rejected(self, reason: str, detail: Optional[str] = None, field: Optional[str] = None) -> None:
        """Log a validation or authentication rejection."""
        self._log(
            logging.WARNING,
            "REQUEST_REJECTED",
            reason=reason,
            detail=detail,
            field=field,
            message=f"Request rejected: {reason}"
        )

    def signature_checked(self, valid: bool, timestamp: Optional[int] = None) -> None:
        """Log the outcome of HMAC verification (never the expected digest)."""
        self._log(
            logging.INFO if valid else logging.WARNING,
            "SIGNATURE_CHECKED",
            valid=valid,
            timestamp=timestamp,
            message="Signature valid" if valid else "Signature mismatch"
        )

    def email_sent(self, recipient: str, has_attachment: bool) -> None:
        """Log a successful relay."""
        self._log(
            logging.INFO,
            "EMAIL_SENT",
            recipient=recipient,
            has_attachment=has_attachment,
            message=f"Email sent to {recipient}"
        )

    def delivery_failed(self, recipient: str, cause: str) -> None:
        """Log a transport failure."""
        self._log(
            logging.ERROR,
            "DELIVERY_FAILED",
            recipient=recipient,
            cause=cause,
            message=f"Delivery to {recipient} failed"
        )

    def security_event(
        self,
        event: str,
        severity: str = "medium",
        **details
    ) -> None:
        """Log a security-relevant event."""
        level = {
            "low": logging.INFO,
            "medium": logging.WARNING,
            "high": logging.ERROR,
            "critical": logging.CRITICAL
        }.get(severity, logging.WARNING)

        self._log(
            level,
            "SECURITY_EVENT",
            security_event=event,
            severity=severity,
            **details,
            message=f"Security event: {event}"
        )


def configure_logging(level: str = "INFO", json_format: bool = True) -> logging.Handler:
    """
    Route all logging to stdout, as JSON lines unless json_format is off.

    Replaces any handlers already on the root logger and returns the new one.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    if json_format:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s [%(name)s] %(message)s'))
    root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set the request ID for the current context.

    Args:
        request_id: Request ID to set, or None to generate one

    Returns:
        The request ID that was set
    """
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


# Global audit logger instance
audit_log = AuditLogger()
