"""Top-level error handler for Lambda handlers.

This is the outermost layer of every API handler. It is the only place
where failures become responses:

- ``AppError`` raised anywhere below is converted into the standard error
  envelope with the error's own status code, code and severity.
- Any other exception becomes ``INTERNAL_SERVER_ERROR`` / ``high`` / 500
  with a generic message. Stack traces go to the logs, never the client.
- Events that are not API Gateway proxy events are rejected with a 400.

Every error is logged once, with ``component``, ``operation``,
``error_code``, ``severity`` and ``request_id`` attached, at a level
chosen by severity. Critical errors also emit a CloudWatch metric.

Usage:
    from src.lambdas.shared.utils.error_handler import handle_request

    def lambda_handler(event, context):
        return handle_request(_handle, event, context, component="workspaces")

    def _handle(event, context, request_id):
        # Business logic here; raise AppError on failure
        ...
"""

import logging
import os
import uuid
from collections.abc import Callable
from typing import Any

from src.lambdas.shared.errors import (
    AppError,
    AuthorizationDetails,
    ErrorCode,
    FieldIssue,
    Severity,
    ValidationDetails,
    internal_error,
    validation_failed,
)
from src.lambdas.shared.logging_utils import redact_sensitive_fields, sanitize_for_log
from src.lambdas.shared.utils.event_validator import (
    InvalidEventError,
    validate_apigw_event,
)
from src.lambdas.shared.utils.response_builder import (
    REQUEST_ID_HEADER,
    error_response,
)
from src.lib.metrics import RESERVED_LOG_ATTRS, emit_metric

logger = logging.getLogger(__name__)

GENERIC_SERVER_MESSAGE = "An unexpected error occurred. Please try again later."

PRODUCTION_ENVIRONMENTS = frozenset({"prod", "production"})
DEBUG_ENVIRONMENTS = frozenset({"dev", "local"})

SEVERITY_LOG_LEVELS: dict[Severity, int] = {
    Severity.LOW: logging.INFO,
    Severity.MEDIUM: logging.WARNING,
    Severity.HIGH: logging.ERROR,
    Severity.CRITICAL: logging.CRITICAL,
}

CRITICAL_ERROR_METRIC = "CriticalErrors"

HandlerFn = Callable[[dict, Any, str], dict]


def _environment() -> str:
    return os.environ.get("ENVIRONMENT", "prod").lower()


def _critical_alerts_enabled() -> bool:
    return os.environ.get("CRITICAL_ALERTS_ENABLED", "true").lower() == "true"


def resolve_request_id(context: Any) -> str:
    """Use the Lambda request id when available, else generate one."""
    request_id = getattr(context, "aws_request_id", None)
    if isinstance(request_id, str) and request_id:
        return request_id
    return str(uuid.uuid4())


def _log_fields(fields: dict[str, Any]) -> dict[str, Any]:
    # LogRecord raises KeyError on extra keys that shadow its attributes
    return {
        (f"ctx_{key}" if key in RESERVED_LOG_ATTRS else key): value
        for key, value in fields.items()
    }


def log_app_error(
    error: AppError,
    request_id: str,
    event: dict | None = None,
    exc_info: bool = False,
) -> None:
    """Log an error at the level its severity maps to.

    Critical errors additionally emit the ``CriticalErrors`` metric when
    ``CRITICAL_ALERTS_ENABLED`` is true. Metric failures are logged by
    ``emit_metric`` and never propagate.
    """
    event = event if isinstance(event, dict) else {}
    fields = {
        **error.log_context(),
        "request_id": request_id,
        "path": sanitize_for_log(event.get("path", "unknown")),
        "method": event.get("httpMethod", "unknown"),
    }
    logger.log(
        SEVERITY_LOG_LEVELS[error.severity],
        sanitize_for_log(error.message),
        extra=_log_fields(redact_sensitive_fields(fields)),
        exc_info=exc_info,
    )

    if error.severity is Severity.CRITICAL and _critical_alerts_enabled():
        emit_metric(
            CRITICAL_ERROR_METRIC,
            1,
            dimensions={
                "Component": error.component or "unknown",
                "ErrorCode": error.code,
            },
        )


def build_error_response(error: AppError, request_id: str) -> dict:
    """Convert an AppError into the standard error envelope response."""
    environment = _environment()
    status_code = error.status_code

    message = error.message
    if status_code >= 500 and environment in PRODUCTION_ENVIRONMENTS:
        message = GENERIC_SERVER_MESSAGE

    details = None
    if error.code == ErrorCode.VALIDATION_ERROR.value and isinstance(
        error.details, ValidationDetails
    ):
        details = [issue.to_dict() for issue in error.details.issues]

    debug = None
    if environment in DEBUG_ENVIRONMENTS:
        debug = {
            "component": error.component,
            "operation": error.operation,
            "status_code": status_code,
        }
        # Role facts behind a 403 stay in the logs
        if error.details is not None and not isinstance(error.details, AuthorizationDetails):
            debug["details"] = error.details.to_dict()
        if error.__cause__ is not None:
            debug["cause_type"] = type(error.__cause__).__name__

    return error_response(
        status_code,
        error.code,
        message,
        error.severity.value,
        request_id,
        details=details,
        debug=debug,
    )


def handle_request(
    handler_fn: HandlerFn,
    event: dict,
    context: Any,
    *,
    component: str = "api",
    operation: str | None = None,
) -> dict:
    """Execute a handler function with structured error handling.

    Args:
        handler_fn: Called as ``handler_fn(event, context, request_id)``;
            must return an API Gateway Proxy Integration response dict.
        event: API Gateway Proxy Integration event dict.
        context: Lambda context object (may be None in tests).
        component: Component name used when an error does not carry one.
        operation: Operation name used when an error does not carry one.

    Returns:
        The handler's response with ``X-Request-Id`` set, or an error
        envelope response.
    """
    request_id = resolve_request_id(context)
    operation = operation or getattr(handler_fn, "__name__", "handler")

    try:
        validate_apigw_event(event)
    except InvalidEventError as exc:
        error = validation_failed(
            [FieldIssue(path="event", message=str(exc), type="invalid_event")],
            message="Unsupported event source",
            component=component,
            operation=operation,
        )
        log_app_error(error, request_id, event)
        return build_error_response(error, request_id)

    try:
        response = handler_fn(event, context, request_id)
    except AppError as exc:
        exc.with_location(component, operation)
        log_app_error(exc, request_id, event)
        return build_error_response(exc, request_id)
    except Exception as exc:
        error = internal_error(
            cause=exc,
            severity=Severity.HIGH,
            component=component,
            operation=operation,
        )
        log_app_error(error, request_id, event, exc_info=True)
        return build_error_response(error, request_id)

    headers = response.get("headers") or {}
    response["headers"] = headers
    headers.setdefault(REQUEST_ID_HEADER, request_id)
    return response
