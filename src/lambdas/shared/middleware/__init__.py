"""Shared middleware for Lambda handlers."""

from src.lambdas.shared.middleware.auth_middleware import (
    Identity,
    extract_identity,
    validate_jwt,
)
from src.lambdas.shared.middleware.context import (
    AuthContext,
    RequestContext,
    ValidationContext,
)
from src.lambdas.shared.middleware.pipeline import Pipeline, build_stages, route
from src.lambdas.shared.middleware.require_role import (
    AuthenticationStage,
    WorkspaceAuthStage,
)
from src.lambdas.shared.middleware.validation import ValidationStage

__all__ = [
    "AuthContext",
    "AuthenticationStage",
    "Identity",
    "Pipeline",
    "RequestContext",
    "ValidationContext",
    "ValidationStage",
    "WorkspaceAuthStage",
    "build_stages",
    "extract_identity",
    "route",
    "validate_jwt",
]
