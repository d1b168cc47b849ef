"""
Relay Handler.

Authenticates a submission and forwards it to the mail transport. The checks
run as an explicit ordered pipeline:

    required fields -> signature -> freshness -> replay -> recipient
        -> header values -> payload record -> render

Each step returns a StepOutcome and never raises; the pipeline stops at the
first failure. Only after every step passes is the message handed to the
transport. The Origin Guard runs upstream as HTTP middleware.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from .canonicalization import Timestamp, canonicalize_payload, coerce_timestamp, parse_payload
from .config import RelayConfig
from .errors import AuthError, ErrorCode, RelayError, ValidationError
from .freshness import age_ms, is_fresh
from .logging_config import audit_log
from .models import Attachment, RelaySubmission, RelayResponse, SubmissionRecord
from .rendering import render_notification
from .replay import ReplayCache
from .signing import verify_signature
from .transport import MailTransport, OutboundMessage, format_sender
from .util import now_ms


logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
HEADER_BREAK = re.compile(r"[\r\n]")
HEADER_FIELDS = ("subject", "cc")


# ============================================================
# Step outcomes
# ============================================================

@dataclass(frozen=True)
class StepOutcome:
    """Tagged result of one pipeline step: success, or the error to report."""
    error: Optional[RelayError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls) -> "StepOutcome":
        return cls()

    @classmethod
    def fail(cls, error: RelayError) -> "StepOutcome":
        return cls(error=error)


@dataclass
class RelayContext:
    """Per-request working state, discarded after the relay attempt."""
    submission: RelaySubmission
    now_ms: int
    attachment: Optional[Attachment] = None
    timestamp: Optional[Timestamp] = None
    record: Optional[SubmissionRecord] = None
    html: Optional[str] = None
    reserved: bool = False


Step = Callable[[RelayContext], StepOutcome]


def run_pipeline(steps: List[Tuple[str, Step]], ctx: RelayContext) -> StepOutcome:
    """Run steps in order, stopping at the first failure."""
    for name, step in steps:
        outcome = step(ctx)
        if not outcome.ok:
            logger.debug("Relay step %s failed: %s", name, outcome.error)
            return outcome
    return StepOutcome.success()


# ============================================================
# Handler
# ============================================================

class RelayHandler:
    """
    Orchestrates authentication, rendering and delivery for one relay.

    Holds only read-only configuration and shared collaborators; all
    per-request state lives in a RelayContext.
    """

    def __init__(
        self,
        config: RelayConfig,
        transport: MailTransport,
        replay_cache: Optional[ReplayCache] = None,
        clock: Callable[[], int] = now_ms
    ):
        self.config = config
        self.transport = transport
        self.replay_cache = replay_cache
        self._clock = clock

    def steps(self) -> List[Tuple[str, Step]]:
        steps = [
            ("required_fields", self.check_required_fields),
            ("signature", self.check_signature),
            ("freshness", self.check_freshness),
        ]
        if self.replay_cache is not None:
            steps.append(("replay", self.check_replay))
        steps += [
            ("recipient", self.check_recipient),
            ("header_values", self.check_header_values),
            ("payload_record", self.parse_record),
            ("render", self.render),
        ]
        return steps

    def prepare(self, submission: RelaySubmission, attachment: Optional[Attachment] = None) -> RelayContext:
        """
        Run every validation step.

        Raises:
            RelayError: The first failing step's error
        """
        ctx = RelayContext(submission=submission, now_ms=self._clock(), attachment=attachment)
        outcome = run_pipeline(self.steps(), ctx)
        if not outcome.ok:
            error = outcome.error
            audit_log.request_rejected(error.code.value, error.detail, getattr(error, "field", None))
            raise error
        return ctx

    async def handle(self, submission: RelaySubmission, attachment: Optional[Attachment] = None) -> RelayResponse:
        """
        Authenticate a submission and deliver it.

        Raises:
            ValidationError, AuthError: Request rejected before delivery
            DeliveryError: The transport failed; not retried
        """
        ctx = self.prepare(submission, attachment)
        message = self.build_message(ctx)

        logger.info("Sending email to %s", message.to)
        try:
            await self.transport.send(message)
        except RelayError as e:
            audit_log.delivery_failed(message.to, str(e.detail))
            self._release(ctx)
            raise

        audit_log.email_sent(message.to, has_attachment=attachment is not None)
        return RelayResponse()

    def build_message(self, ctx: RelayContext) -> OutboundMessage:
        submission = ctx.submission
        return OutboundMessage(
            sender=format_sender(self.config.sender_name, self.config.sender_address),
            to=submission.to,
            cc=submission.cc or None,
            subject=submission.subject,
            text=submission.text,
            html=ctx.html,
            attachment=ctx.attachment,
        )

    # --------------------------------------------------------
    # Steps
    # --------------------------------------------------------

    def check_required_fields(self, ctx: RelayContext) -> StepOutcome:
        missing = ctx.submission.missing_fields()
        if missing:
            return StepOutcome.fail(ValidationError(
                ErrorCode.MISSING_FIELD,
                f"missing {', '.join(missing)}",
                field=missing[0],
            ))
        return StepOutcome.success()

    def check_signature(self, ctx: RelayContext) -> StepOutcome:
        envelope = ctx.submission.envelope()
        try:
            ctx.timestamp = coerce_timestamp(envelope.timestamp)
            canonical = canonicalize_payload(envelope.payload, ctx.timestamp)
        except RelayError as e:
            return StepOutcome.fail(e)

        valid = verify_signature(canonical, envelope.signature, self.config.secret_key)
        audit_log.signature_checked(valid, timestamp=ctx.timestamp)
        if not valid:
            return StepOutcome.fail(AuthError(ErrorCode.INVALID_SIGNATURE, "HMAC mismatch"))
        return StepOutcome.success()

    def check_freshness(self, ctx: RelayContext) -> StepOutcome:
        fresh = is_fresh(
            ctx.timestamp,
            ctx.now_ms,
            self.config.request_window_ms,
            self.config.max_future_skew_ms,
        )
        if not fresh:
            return StepOutcome.fail(AuthError(
                ErrorCode.EXPIRED,
                f"request age {age_ms(ctx.timestamp, ctx.now_ms)}ms outside window",
            ))
        return StepOutcome.success()

    def check_replay(self, ctx: RelayContext) -> StepOutcome:
        if not self.replay_cache.reserve(ctx.submission.signature, ctx.timestamp, ctx.now_ms):
            audit_log.security_event("replayed_request", severity="high", timestamp=ctx.timestamp)
            return StepOutcome.fail(AuthError(ErrorCode.REPLAYED, "envelope already accepted"))
        ctx.reserved = True
        return StepOutcome.success()

    def check_recipient(self, ctx: RelayContext) -> StepOutcome:
        if not EMAIL_PATTERN.match(ctx.submission.to):
            self._release(ctx)
            return StepOutcome.fail(ValidationError(
                ErrorCode.BAD_EMAIL_FORMAT,
                "recipient does not look like an email address",
                field="to",
            ))
        return StepOutcome.success()

    def check_header_values(self, ctx: RelayContext) -> StepOutcome:
        for name in HEADER_FIELDS:
            value = getattr(ctx.submission, name)
            if value and HEADER_BREAK.search(value):
                self._release(ctx)
                audit_log.security_event("header_injection", field=name)
                return StepOutcome.fail(ValidationError(
                    ErrorCode.BAD_HEADER,
                    f"{name} contains a line break",
                    field=name,
                ))
        return StepOutcome.success()

    def parse_record(self, ctx: RelayContext) -> StepOutcome:
        try:
            ctx.record = SubmissionRecord.model_validate(parse_payload(ctx.submission.data))
        except RelayError as e:
            self._release(ctx)
            return StepOutcome.fail(e)
        except PydanticValidationError as e:
            self._release(ctx)
            return StepOutcome.fail(ValidationError(
                ErrorCode.BAD_PAYLOAD,
                f"{e.error_count()} invalid field(s) in payload",
                field="data",
            ))
        logger.debug("Decoded payload with keys %s", sorted(ctx.record.model_dump(by_alias=True)))
        return StepOutcome.success()

    def render(self, ctx: RelayContext) -> StepOutcome:
        ctx.html = render_notification(ctx.record)
        return StepOutcome.success()

    def _release(self, ctx: RelayContext) -> None:
        if ctx.reserved:
            self.replay_cache.release(ctx.submission.signature, ctx.timestamp)
            ctx.reserved = False
