"""Unit tests for the authentication and workspace authorization stages.

Tests:
- Decoration-time validation of role and permission names
- 401 before any role is evaluated
- Minimum-role and permission enforcement
- Generic 403 messages with role facts kept in details
"""

from unittest.mock import MagicMock

import pytest

from src.lambdas.shared.auth.enums import Permission, Role
from src.lambdas.shared.auth.permissions import AuthorizationEngine, PermissionTable
from src.lambdas.shared.auth.workspace_access import WorkspaceAccess
from src.lambdas.shared.errors import AppError, InvalidPermissionError, InvalidRoleError
from src.lambdas.shared.middleware.auth_middleware import Identity
from src.lambdas.shared.middleware.context import RequestContext
from src.lambdas.shared.middleware.require_role import (
    AuthenticationStage,
    WorkspaceAuthStage,
)
from tests.conftest import auth_headers, make_event

WS_ID = "11111111-1111-4111-8111-111111111111"
USER_ID = "user-123"


def _resolver_returning(role: Role) -> MagicMock:
    resolver = MagicMock()
    resolver.resolve.return_value = WorkspaceAccess(
        user_id=USER_ID, workspace_id=WS_ID, role=role, selected_by="single"
    )
    return resolver


def _authenticated_ctx() -> RequestContext:
    return RequestContext(
        event=make_event(),
        request_id="req-1",
        identity=Identity(user_id=USER_ID, auth_method="bearer"),
    )


class TestDecorationTimeValidation:
    """Invalid names fail when the stage is built, not per request."""

    def test_invalid_role_raises(self):
        with pytest.raises(InvalidRoleError) as exc_info:
            WorkspaceAuthStage("superadmin", resolver=MagicMock())
        assert "superadmin" in str(exc_info.value)
        assert "owner" in str(exc_info.value)

    def test_invalid_permission_raises(self):
        with pytest.raises(InvalidPermissionError):
            WorkspaceAuthStage(permissions=["DATA_TELEPORT"], resolver=MagicMock())

    def test_role_strings_are_accepted(self):
        stage = WorkspaceAuthStage("admin", permissions=["MEMBER_INVITE"], resolver=MagicMock())
        assert stage.required_role is Role.ADMIN
        assert stage.permissions == (Permission.MEMBER_INVITE,)


class TestAuthenticationStage:
    def test_missing_identity_is_401(self):
        ctx = RequestContext(event=make_event(), request_id="req-1")

        with pytest.raises(AppError) as exc_info:
            AuthenticationStage()(ctx)

        assert exc_info.value.code == "UNAUTHENTICATED"
        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "Authentication required"

    def test_fills_identity(self):
        ctx = RequestContext(event=make_event(headers=auth_headers(USER_ID)), request_id="req-1")

        result = AuthenticationStage()(ctx)

        assert result.user_id == USER_ID
        # Contexts are never mutated in place
        assert ctx.identity is None


class TestWorkspaceAuthStage:
    """Minimum role and permission checks."""

    @pytest.mark.parametrize("role", [Role.MEMBER, Role.ADMIN, Role.OWNER])
    def test_member_minimum_accepts_member_and_above(self, role):
        resolver = _resolver_returning(role)
        stage = WorkspaceAuthStage(Role.MEMBER, resolver=lambda: resolver)

        ctx = stage(_authenticated_ctx())

        assert ctx.auth.role is role
        assert ctx.auth.workspace_id == WS_ID

    def test_member_minimum_rejects_viewer(self):
        resolver = _resolver_returning(Role.VIEWER)
        stage = WorkspaceAuthStage(Role.MEMBER, resolver=lambda: resolver)

        with pytest.raises(AppError) as exc_info:
            stage(_authenticated_ctx())

        error = exc_info.value
        assert error.status_code == 403
        assert error.message == "Insufficient permissions"
        assert error.details.required_role == "member"
        assert error.details.actual_role == "viewer"
        assert error.extra["denied_by"] == "role"

    def test_unauthenticated_is_401_before_role_check(self):
        resolver = _resolver_returning(Role.OWNER)
        stage = WorkspaceAuthStage(Role.OWNER, resolver=lambda: resolver)
        ctx = RequestContext(event=make_event(), request_id="req-1")

        with pytest.raises(AppError) as exc_info:
            stage(ctx)

        assert exc_info.value.status_code == 401
        resolver.resolve.assert_not_called()

    def test_all_permissions_required(self):
        resolver = _resolver_returning(Role.MEMBER)
        stage = WorkspaceAuthStage(
            permissions=[Permission.DATA_CREATE, Permission.DATA_DELETE],
            resolver=lambda: resolver,
        )

        with pytest.raises(AppError) as exc_info:
            stage(_authenticated_ctx())

        assert exc_info.value.extra["denied_by"] == "permission"
        assert exc_info.value.details.permissions == ("DATA_CREATE", "DATA_DELETE")

    def test_any_permission_suffices(self):
        resolver = _resolver_returning(Role.MEMBER)
        stage = WorkspaceAuthStage(
            any_permissions=[Permission.DATA_CREATE, Permission.DATA_DELETE],
            resolver=lambda: resolver,
        )

        ctx = stage(_authenticated_ctx())

        assert Permission.DATA_CREATE in ctx.auth.permissions

    def test_any_permission_none_held(self):
        resolver = _resolver_returning(Role.VIEWER)
        stage = WorkspaceAuthStage(
            any_permissions=[Permission.DATA_CREATE, Permission.DATA_DELETE],
            resolver=lambda: resolver,
        )

        with pytest.raises(AppError) as exc_info:
            stage(_authenticated_ctx())

        assert exc_info.value.code == "FORBIDDEN"

    def test_resolver_errors_propagate(self):
        resolver = MagicMock()
        resolver.resolve.side_effect = AppError("AUTH_NO_WORKSPACE", "none")
        stage = WorkspaceAuthStage(resolver=lambda: resolver)

        with pytest.raises(AppError) as exc_info:
            stage(_authenticated_ctx())

        assert exc_info.value.code == "AUTH_NO_WORKSPACE"

    def test_injected_engine_is_used(self):
        everyone = list(Role)
        table = PermissionTable.from_grants(
            {Permission.WORKSPACE_VIEW: everyone, Permission.DATA_DELETE: everyone}
        )
        resolver = _resolver_returning(Role.VIEWER)
        stage = WorkspaceAuthStage(
            permissions=[Permission.DATA_DELETE],
            resolver=lambda: resolver,
            engine=AuthorizationEngine(table),
        )

        ctx = stage(_authenticated_ctx())

        assert ctx.auth.permissions == frozenset(
            {Permission.WORKSPACE_VIEW, Permission.DATA_DELETE}
        )
