"""Shared error types for Lambda handlers."""

from src.lambdas.shared.errors.app_error import (
    AppError,
    AuthorizationDetails,
    ErrorCode,
    FieldIssue,
    InternalDetails,
    ResourceDetails,
    Severity,
    ValidationDetails,
    WorkspaceSelectionDetails,
    ambiguous_workspace,
    conflict,
    forbidden,
    internal_error,
    no_workspace,
    not_found,
    unauthenticated,
    validation_failed,
)
from src.lambdas.shared.errors.auth_errors import (
    InvalidPermissionError,
    InvalidRoleError,
    PermissionTableError,
)

__all__ = [
    "AppError",
    "AuthorizationDetails",
    "ErrorCode",
    "FieldIssue",
    "InternalDetails",
    "ResourceDetails",
    "Severity",
    "ValidationDetails",
    "WorkspaceSelectionDetails",
    "ambiguous_workspace",
    "conflict",
    "forbidden",
    "internal_error",
    "no_workspace",
    "not_found",
    "unauthenticated",
    "validation_failed",
    # Configuration-time errors
    "InvalidPermissionError",
    "InvalidRoleError",
    "PermissionTableError",
]
