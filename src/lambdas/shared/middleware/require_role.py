"""Authentication and workspace authorization stages.

Two stages, always run in this order:

1. ``AuthenticationStage``: who is calling? No identity -> 401, before any
   role is looked at.
2. ``WorkspaceAuthStage``: which workspace, with which role, and is that
   enough? Resolves the workspace, then checks the minimum role and the
   declared permissions. API key callers are checked against the key's
   permissions and never pass a minimum-role requirement.

Usage (normally through ``pipeline.route``):
    stage = WorkspaceAuthStage(
        required_role="admin",
        permissions=[Permission.MEMBER_INVITE],
        resolver=get_resolver,
    )

Security:
    - Generic 403 messages prevent role enumeration; the role facts go to
      the logs only
    - Role and permission names are validated when the stage is built, so
      a typo fails at import time rather than denying every request
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import NoReturn

from src.lambdas.shared.auth.enums import VALID_PERMISSIONS, VALID_ROLES, Permission, Role
from src.lambdas.shared.auth.permissions import AuthorizationEngine, default_engine
from src.lambdas.shared.auth.workspace_access import WorkspaceAccess, WorkspaceAccessResolver
from src.lambdas.shared.errors import (
    AuthorizationDetails,
    InvalidPermissionError,
    InvalidRoleError,
    forbidden,
    unauthenticated,
)
from src.lambdas.shared.logging_utils import mask_id
from src.lambdas.shared.middleware.auth_middleware import (
    ApiKeyVerifier,
    Identity,
    extract_identity,
)
from src.lambdas.shared.middleware.context import AuthContext, RequestContext

logger = logging.getLogger(__name__)

ResolverFactory = Callable[[], WorkspaceAccessResolver]
ApiKeyVerifierFactory = Callable[[], ApiKeyVerifier]


def _coerce_role(role: Role | str | None) -> Role | None:
    if role is None:
        return None
    if role not in VALID_ROLES:
        raise InvalidRoleError(str(role), VALID_ROLES)
    return Role(role)


def _coerce_permissions(permissions: Iterable[Permission | str]) -> tuple[Permission, ...]:
    coerced = []
    for permission in permissions:
        if permission not in VALID_PERMISSIONS:
            raise InvalidPermissionError(str(permission), VALID_PERMISSIONS)
        coerced.append(Permission(permission))
    return tuple(coerced)


class AuthenticationStage:
    """Require a valid identity; fills ``ctx.identity``.

    API keys are accepted only when ``api_keys`` is given; otherwise a
    ``dk_`` Bearer value is treated as no credential at all.
    """

    def __init__(
        self,
        component: str = "auth",
        operation: str = "authenticate",
        api_keys: ApiKeyVerifierFactory | None = None,
    ) -> None:
        self.component = component
        self.operation = operation
        self._api_keys = api_keys

    @property
    def accepts_api_keys(self) -> bool:
        return self._api_keys is not None

    def __call__(self, ctx: RequestContext) -> RequestContext:
        verifier = self._api_keys() if self._api_keys is not None else None
        identity = extract_identity(ctx.event, api_keys=verifier)
        if identity is None:
            raise unauthenticated(
                "Authentication required",
                component=self.component,
                operation=self.operation,
            )
        return ctx.evolve(identity=identity)


class WorkspaceAuthStage:
    """Resolve the workspace and enforce role and permission requirements.

    Args:
        required_role: Minimum role (rank ``>=``); None means any member
        permissions: Every one of these is required
        any_permissions: At least one of these is required (if non-empty)
        resolver: Zero-argument factory returning the resolver to use
        engine: Authorization engine (default table unless injected)

    Raises:
        InvalidRoleError: At construction, for an unknown role name
        InvalidPermissionError: At construction, for an unknown permission
    """

    def __init__(
        self,
        required_role: Role | str | None = None,
        permissions: Iterable[Permission | str] = (),
        any_permissions: Iterable[Permission | str] = (),
        *,
        resolver: ResolverFactory,
        engine: AuthorizationEngine = default_engine,
        component: str = "auth",
        operation: str = "authorize",
    ) -> None:
        self.required_role = _coerce_role(required_role)
        self.permissions = _coerce_permissions(permissions)
        self.any_permissions = _coerce_permissions(any_permissions)
        self._resolver = resolver
        self._engine = engine
        self.component = component
        self.operation = operation

    def __call__(self, ctx: RequestContext) -> RequestContext:
        if ctx.identity is None:
            raise unauthenticated(
                "Authentication required",
                component=self.component,
                operation=self.operation,
            )

        access = self._resolver().resolve(ctx.identity, ctx.event)
        if ctx.identity.is_api_key:
            auth = self._authorize_api_key(ctx.identity, access)
        else:
            auth = self._authorize_member(access)

        logger.debug(
            "Authorized request",
            extra={
                "user_id": mask_id(access.user_id),
                "workspace_id": mask_id(access.workspace_id),
                "role": access.role.value if access.role else None,
                "selected_by": access.selected_by,
            },
        )
        return ctx.evolve(auth=auth)

    def _authorize_member(self, access: WorkspaceAccess) -> AuthContext:
        role = access.role
        if role is None:
            self._deny(access.workspace_id, None, reason="role")

        if self.required_role is not None and not self._engine.meets_minimum_role(
            role, self.required_role
        ):
            self._deny(access.workspace_id, role, reason="role")

        if self.permissions and not self._engine.has_all_permissions(role, self.permissions):
            self._deny(access.workspace_id, role, reason="permission")

        if self.any_permissions and not self._engine.has_any_permission(
            role, self.any_permissions
        ):
            self._deny(access.workspace_id, role, reason="permission")

        return AuthContext(
            user_id=access.user_id,
            workspace_id=access.workspace_id,
            role=role,
            permissions=self._engine.get_role_permissions(role),
        )

    def _authorize_api_key(self, identity: Identity, access: WorkspaceAccess) -> AuthContext:
        # A key has no rank to compare
        if self.required_role is not None:
            self._deny(access.workspace_id, None, reason="api_key")

        granted = identity.permissions
        if self.permissions and not granted.issuperset(self.permissions):
            self._deny(access.workspace_id, None, reason="permission")

        if self.any_permissions and granted.isdisjoint(self.any_permissions):
            self._deny(access.workspace_id, None, reason="permission")

        return AuthContext(
            user_id=access.user_id,
            workspace_id=access.workspace_id,
            role=None,
            permissions=granted,
            api_key_id=identity.api_key_id,
        )

    def _deny(self, workspace_id: str, role: Role | None, reason: str) -> NoReturn:
        raise forbidden(
            details=AuthorizationDetails(
                workspace_id=workspace_id,
                required_role=self.required_role.value if self.required_role else None,
                actual_role=role.value if role else None,
                permissions=tuple(p.value for p in (*self.permissions, *self.any_permissions)),
            ),
            component=self.component,
            operation=self.operation,
            extra={"denied_by": reason},
        )
