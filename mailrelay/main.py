import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.datastructures import UploadFile

from .config import RelayConfig, load_config, validate_config
from .errors import AttachmentTooLargeError, ErrorCode, RelayError, ValidationError
from .logging_config import audit_log, set_request_id
from .models import Attachment, RelaySubmission
from .origin import OriginGuard, origin_from_headers
from .relay import RelayHandler
from .replay import ReplayCache
from .transport import MailTransport, SmtpTransport
from .util import sanitize_for_logging

logger = logging.getLogger(__name__)

ATTACHMENT_FIELD = "pdf"

# Error reported when a body field has the wrong JSON type
FIELD_TYPE_ERRORS = {
    "to": ErrorCode.BAD_EMAIL_FORMAT,
    "cc": ErrorCode.BAD_EMAIL_FORMAT,
    "data": ErrorCode.BAD_PAYLOAD,
    "timestamp": ErrorCode.BAD_TIMESTAMP,
}


def client_address(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def malformed_field_error(exc: PydanticValidationError) -> ValidationError:
    field = str(exc.errors()[0]["loc"][0])
    code = FIELD_TYPE_ERRORS.get(field, ErrorCode.MISSING_FIELD)
    return ValidationError(code, f"{exc.error_count()} malformed field(s), first: {field}", field=field)


async def read_attachment(upload: UploadFile, limit: int) -> Attachment:
    content = await upload.read(limit + 1)
    if len(content) > limit:
        raise AttachmentTooLargeError(len(content), limit)
    return Attachment(
        filename=upload.filename or ATTACHMENT_FIELD,
        content=content,
        content_type=upload.content_type or "application/octet-stream",
    )


async def read_submission(request: Request, max_attachment_bytes: int):
    """Parse a JSON, multipart or url-encoded body into a submission and optional attachment."""
    attachment = None
    if request.headers.get("content-type", "").startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            raise ValidationError(ErrorCode.MISSING_FIELD, "request body is not JSON")
        if not isinstance(body, dict):
            raise ValidationError(ErrorCode.MISSING_FIELD, "request body must be an object")
    else:
        form = await request.form()
        body = {}
        for key, value in form.items():
            if isinstance(value, UploadFile):
                if key == ATTACHMENT_FIELD and value.filename:
                    attachment = await read_attachment(value, max_attachment_bytes)
                continue
            body[key] = value

    logger.info("Received email send request: %s", sanitize_for_logging(body))
    try:
        submission = RelaySubmission.model_validate(body)
    except PydanticValidationError as e:
        raise malformed_field_error(e)
    return submission, attachment


def create_app(
    config: Optional[RelayConfig] = None,
    transport: Optional[MailTransport] = None
) -> FastAPI:
    config = config or load_config()
    for problem in validate_config(config):
        logger.warning("Configuration: %s", problem)

    replay_cache = None
    if config.replay_cache_enabled:
        replay_cache = ReplayCache(config.request_window_ms, config.replay_cache_size)

    app = FastAPI(title="Mail Relay")
    app.state.config = config
    app.state.guard = OriginGuard(config.allowed_ip_prefixes, config.allowed_origins)
    app.state.relay = RelayHandler(config, transport or SmtpTransport(config.smtp), replay_cache)

    @app.middleware("http")
    async def access_control(request: Request, call_next):
        request_id = set_request_id(request.headers.get("x-request-id"))
        address = client_address(request)
        origin = origin_from_headers(request.headers)
        try:
            app.state.guard.check(address, origin)
        except RelayError as e:
            audit_log.access_denied(address, origin, e.code.value)
            response = JSONResponse(status_code=e.status_code, content=e.to_response())
        else:
            response = await call_next(request)
            response.headers["Content-Security-Policy"] = config.content_security_policy
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError):
        level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
        logger.log(level, "Request failed: %s", exc)
        return JSONResponse(status_code=exc.status_code, content=exc.to_response())

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.post("/send-email")
    async def send_email(request: Request):
        submission, attachment = await read_submission(request, config.max_attachment_bytes)
        response = await app.state.relay.handle(submission, attachment)
        return response.model_dump()

    return app
