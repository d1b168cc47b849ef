from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr

Scalar = Union[StrictBool, StrictInt, StrictFloat, StrictStr]

REQUIRED_FIELDS = ("to", "subject", "text", "data", "timestamp", "signature")


@dataclass(frozen=True)
class RequestEnvelope:
    """The signed part of a submission."""
    payload: Union[str, Dict[str, Any]]
    timestamp: Union[str, int, float]
    signature: str


@dataclass(frozen=True)
class Attachment:
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


class RelaySubmission(BaseModel):
    """Form fields of a send-email request, before any validation."""
    to: Optional[str] = None
    cc: Optional[str] = None
    subject: Optional[str] = None
    text: Optional[str] = None
    data: Optional[Union[str, Dict[str, Any]]] = None
    timestamp: Optional[Union[str, int, float]] = None
    signature: Optional[str] = None

    def missing_fields(self) -> List[str]:
        return [name for name in REQUIRED_FIELDS if not getattr(self, name)]

    def envelope(self) -> RequestEnvelope:
        return RequestEnvelope(payload=self.data, timestamp=self.timestamp, signature=self.signature)


class SubmissionRecord(BaseModel):
    """Typed view of the signed payload used for the notification template."""
    model_config = ConfigDict(extra="allow")

    first_name: Optional[Scalar] = Field(default=None, alias="firstName")
    last_name: Optional[Scalar] = Field(default=None, alias="lastName")
    email: Optional[Scalar] = None
    phone: Optional[Scalar] = None
    travel_date: Optional[Scalar] = Field(default=None, alias="travelDate")
    booking_reference: Optional[Scalar] = Field(default=None, alias="bookingReference")
    is_directly_affected: Optional[Scalar] = Field(default=None, alias="isDirectlyAffected")
    incident_type: Optional[Scalar] = Field(default=None, alias="incidentType")
    incident_description: Optional[Scalar] = Field(default=None, alias="incidentDescription")
    has_evidence: Optional[Scalar] = Field(default=None, alias="hasEvidence")
    agree_to_terms: Optional[Scalar] = Field(default=None, alias="agreeToTerms")


class RelayResponse(BaseModel):
    success: bool = True
    message: str = "Email sent!"
