"""Structured application errors.

Every failure that should reach a client is raised as an ``AppError``
carrying a stable machine-readable code, a human-readable message, a
severity and a typed details payload. The error-handling layer
(``src.lambdas.shared.utils.error_handler``) is the only place that turns
an ``AppError`` into a response.

For On-Call Engineers:
    Error codes and their meanings:
    - UNAUTHENTICATED: No valid identity (missing/expired token)
    - FORBIDDEN: Valid identity, insufficient role or permission
    - AUTH_NO_WORKSPACE: Valid identity, no workspace membership at all
    - AUTH_WORKSPACE_AMBIGUOUS: Several memberships and no workspace selected
    - VALIDATION_ERROR: Malformed query, body or path parameters
    - NOT_FOUND / CONFLICT: Resource-level failures
    - INTERNAL_SERVER_ERROR: Anything unexpected (logged with full context)

    Search logs by error code:
    filter error_code = "AUTH_WORKSPACE_AMBIGUOUS"

For Developers:
    - Raise ``AppError`` (or a factory below) at the point of failure
    - Never build error responses in business logic
    - Put structured facts in the typed ``details`` payload; use ``extra``
      only for ad hoc diagnostic fields
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, StrEnum
from typing import Any


class Severity(StrEnum):
    """Severity drives both the default HTTP status and the log level."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode(str, Enum):
    """Standardized error codes for machine-readable error handling."""

    UNAUTHENTICATED = "UNAUTHENTICATED"
    FORBIDDEN = "FORBIDDEN"
    AUTH_NO_WORKSPACE = "AUTH_NO_WORKSPACE"
    AUTH_WORKSPACE_AMBIGUOUS = "AUTH_WORKSPACE_AMBIGUOUS"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


# Default status for codes whose status never depends on severity
CODE_STATUS: dict[ErrorCode, int] = {
    ErrorCode.UNAUTHENTICATED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.AUTH_NO_WORKSPACE: 409,
    ErrorCode.AUTH_WORKSPACE_AMBIGUOUS: 400,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.CONFLICT: 409,
    ErrorCode.INTERNAL_SERVER_ERROR: 500,
}

SEVERITY_STATUS: dict[Severity, int] = {
    Severity.LOW: 400,
    Severity.MEDIUM: 400,
    Severity.HIGH: 500,
    Severity.CRITICAL: 500,
}


# ---------------------------------------------------------------------------
# Typed details payloads
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldIssue:
    """A single field-level validation failure."""

    path: str
    message: str
    type: str = "value_error"

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "message": self.message, "type": self.type}


@dataclass(frozen=True)
class ValidationDetails:
    issues: tuple[FieldIssue, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"issues": [issue.to_dict() for issue in self.issues]}


@dataclass(frozen=True)
class AuthorizationDetails:
    workspace_id: str | None = None
    required_role: str | None = None
    actual_role: str | None = None
    permissions: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "workspace_id": self.workspace_id,
            "required_role": self.required_role,
            "actual_role": self.actual_role,
            "permissions": list(self.permissions),
        }


@dataclass(frozen=True)
class WorkspaceSelectionDetails:
    user_id: str
    membership_count: int
    requested_workspace_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "membership_count": self.membership_count,
            "requested_workspace_id": self.requested_workspace_id,
        }


@dataclass(frozen=True)
class ResourceDetails:
    resource: str
    identifier: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"resource": self.resource, "identifier": self.identifier}


@dataclass(frozen=True)
class InternalDetails:
    cause_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"cause_type": self.cause_type}


ErrorDetails = (
    ValidationDetails
    | AuthorizationDetails
    | WorkspaceSelectionDetails
    | ResourceDetails
    | InternalDetails
)


# ---------------------------------------------------------------------------
# AppError
# ---------------------------------------------------------------------------


class AppError(Exception):
    """A typed failure raised anywhere below the error-handling layer.

    Args:
        code: Machine-readable error code
        message: Human-readable message (may be replaced for 5xx in prod)
        severity: Drives log level and the default status code
        status_code: Explicit HTTP status; falls back to the code's
            canonical status, then to the severity mapping
        component: Logical component where the failure happened
        operation: Operation being performed
        details: Typed payload for this error code
        extra: Ad hoc diagnostic fields (logged, never returned)
    """

    def __init__(
        self,
        code: ErrorCode | str,
        message: str,
        severity: Severity | str = Severity.MEDIUM,
        *,
        status_code: int | None = None,
        component: str | None = None,
        operation: str | None = None,
        details: ErrorDetails | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code.value if isinstance(code, ErrorCode) else str(code)
        self.message = message
        self.severity = Severity(severity)
        self._status_code = status_code
        self.component = component
        self.operation = operation
        self.details = details
        self.extra: dict[str, Any] = dict(extra or {})

    @property
    def status_code(self) -> int:
        if self._status_code is not None:
            return self._status_code
        try:
            return CODE_STATUS[ErrorCode(self.code)]
        except ValueError:
            return SEVERITY_STATUS[self.severity]

    def with_location(self, component: str, operation: str) -> AppError:
        """Fill in component/operation if the raiser did not set them."""
        if self.component is None:
            self.component = component
        if self.operation is None:
            self.operation = operation
        return self

    def log_context(self) -> dict[str, Any]:
        """Fields attached to every log record for this error."""
        context: dict[str, Any] = {
            "error_code": self.code,
            "severity": self.severity.value,
            "status_code": self.status_code,
            "component": self.component,
            "operation": self.operation,
        }
        if self.details is not None:
            context["details"] = self.details.to_dict()
        if self.__cause__ is not None:
            context["cause_type"] = type(self.__cause__).__name__
        context.update(self.extra)
        return context

    def __repr__(self) -> str:
        return f"AppError(code={self.code!r}, severity={self.severity.value!r}, message={self.message!r})"


# ---------------------------------------------------------------------------
# Factories for the common taxonomy
# ---------------------------------------------------------------------------


def unauthenticated(message: str = "Unauthorized", **kwargs: Any) -> AppError:
    return AppError(ErrorCode.UNAUTHENTICATED, message, Severity.MEDIUM, **kwargs)


def forbidden(
    message: str = "Insufficient permissions",
    details: AuthorizationDetails | None = None,
    **kwargs: Any,
) -> AppError:
    # Message stays generic; the role facts go to the logs via details
    return AppError(
        ErrorCode.FORBIDDEN, message, Severity.MEDIUM, details=details, **kwargs
    )


def no_workspace(user_id: str, **kwargs: Any) -> AppError:
    return AppError(
        ErrorCode.AUTH_NO_WORKSPACE,
        "No workspace found for this account. Complete workspace setup first.",
        Severity.MEDIUM,
        details=WorkspaceSelectionDetails(user_id=user_id, membership_count=0),
        **kwargs,
    )


def ambiguous_workspace(user_id: str, membership_count: int, **kwargs: Any) -> AppError:
    return AppError(
        ErrorCode.AUTH_WORKSPACE_AMBIGUOUS,
        "Multiple workspaces available. Select a workspace explicitly.",
        Severity.LOW,
        details=WorkspaceSelectionDetails(
            user_id=user_id, membership_count=membership_count
        ),
        **kwargs,
    )


def validation_failed(
    issues: list[FieldIssue] | tuple[FieldIssue, ...],
    message: str = "Request validation failed",
    **kwargs: Any,
) -> AppError:
    return AppError(
        ErrorCode.VALIDATION_ERROR,
        message,
        Severity.MEDIUM,
        details=ValidationDetails(issues=tuple(issues)),
        **kwargs,
    )


def not_found(resource: str, identifier: str | None = None, **kwargs: Any) -> AppError:
    return AppError(
        ErrorCode.NOT_FOUND,
        f"{resource.capitalize()} not found",
        Severity.LOW,
        details=ResourceDetails(resource=resource, identifier=identifier),
        **kwargs,
    )


def conflict(message: str, resource: str, identifier: str | None = None, **kwargs: Any) -> AppError:
    return AppError(
        ErrorCode.CONFLICT,
        message,
        Severity.LOW,
        details=ResourceDetails(resource=resource, identifier=identifier),
        **kwargs,
    )


def internal_error(
    cause: BaseException | None = None,
    message: str = "Internal server error",
    severity: Severity = Severity.HIGH,
    **kwargs: Any,
) -> AppError:
    """Wrap an unexpected exception; the original is kept as ``__cause__``."""
    error = AppError(
        ErrorCode.INTERNAL_SERVER_ERROR,
        message,
        severity,
        details=InternalDetails(
            cause_type=type(cause).__name__ if cause is not None else None
        ),
        **kwargs,
    )
    error.__cause__ = cause
    return error
