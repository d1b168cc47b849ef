"""
Error taxonomy for the mail relay.

Every rejection path raises exactly one RelayError subclass. The HTTP layer
maps it to a status code and a generic public message; the internal detail
only goes to the logs.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Reason codes carried by relay errors."""
    UNAUTHORIZED_IP = "UnauthorizedIP"
    INVALID_ORIGIN = "InvalidOrigin"
    MISSING_FIELD = "MissingField"
    BAD_TIMESTAMP = "BadTimestamp"
    BAD_EMAIL_FORMAT = "BadEmailFormat"
    BAD_HEADER = "BadHeader"
    BAD_PAYLOAD = "BadPayload"
    ATTACHMENT_TOO_LARGE = "AttachmentTooLarge"
    INVALID_SIGNATURE = "InvalidSignature"
    EXPIRED = "Expired"
    REPLAYED = "Replayed"
    DELIVERY_FAILED = "DeliveryFailed"


PUBLIC_MESSAGES: Dict[ErrorCode, str] = {
    ErrorCode.UNAUTHORIZED_IP: "Forbidden: Unauthorized IP",
    ErrorCode.INVALID_ORIGIN: "Forbidden: Invalid Origin",
    ErrorCode.MISSING_FIELD: "Missing email parameters",
    ErrorCode.BAD_TIMESTAMP: "Invalid timestamp",
    ErrorCode.BAD_EMAIL_FORMAT: "Invalid email format",
    ErrorCode.BAD_HEADER: "Invalid header value",
    ErrorCode.BAD_PAYLOAD: "Invalid JSON format in `data`",
    ErrorCode.ATTACHMENT_TOO_LARGE: "Attachment too large",
    ErrorCode.INVALID_SIGNATURE: "Invalid signature",
    ErrorCode.EXPIRED: "Request expired",
    ErrorCode.REPLAYED: "Request already processed",
    ErrorCode.DELIVERY_FAILED: "Email not sent",
}


class RelayError(Exception):
    """
    Base class for all relay rejections.

    Attributes:
        code: Machine-readable reason
        detail: Internal detail for the logs (never sent to the client)
        status_code: HTTP status the error maps to
    """
    status_code = 400

    def __init__(self, code: ErrorCode, detail: Optional[str] = None):
        self.code = code
        self.detail = detail
        super().__init__(f"{code.value}: {detail}" if detail else code.value)

    @property
    def public_message(self) -> str:
        return PUBLIC_MESSAGES[self.code]

    def to_response(self) -> Dict[str, Any]:
        return {"error": self.public_message}


class ForbiddenError(RelayError):
    """Origin Guard rejection (address prefix or origin header)."""
    status_code = 403


class ValidationError(RelayError):
    """Missing or malformed request fields."""
    status_code = 400

    def __init__(self, code: ErrorCode, detail: Optional[str] = None, field: Optional[str] = None):
        self.field = field
        super().__init__(code, detail)


class ParseError(ValidationError):
    """Payload is not valid structured data."""

    def __init__(self, detail: Optional[str] = None):
        super().__init__(ErrorCode.BAD_PAYLOAD, detail, field="data")


class AttachmentTooLargeError(ValidationError):
    status_code = 413

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(
            ErrorCode.ATTACHMENT_TOO_LARGE,
            f"attachment is {size} bytes, limit is {limit}",
            field="pdf",
        )


class AuthError(RelayError):
    """Signature mismatch, stale timestamp or replayed envelope."""
    status_code = 403


class DeliveryError(RelayError):
    """
    The mail transport failed to deliver.

    Unlike the other errors, the cause is reported to the client for
    operator diagnosis. Callers must scrub credentials before raising.
    """
    status_code = 500

    def __init__(self, cause: str):
        self.cause = cause
        super().__init__(ErrorCode.DELIVERY_FAILED, cause)

    def to_response(self) -> Dict[str, Any]:
        return {"error": self.public_message, "details": self.cause}
