"""Workspace and member management logic.

Functions here receive already-authenticated, already-validated inputs
(an ``AuthContext`` and parsed schemas) and a ``MembershipStore``. They
raise ``AppError`` for business-rule failures and never build error
responses themselves.

Hierarchy rules for acting on other members:
- Nobody changes their own role or removes themselves here
- An actor may only act on members strictly below their own rank
- An actor may only grant roles strictly below their own rank
"""

import logging
import uuid
from datetime import UTC, datetime
from typing import Any

from src.lambdas.shared.auth.audit import create_role_audit_entry, record_audit_event
from src.lambdas.shared.auth.enums import Role
from src.lambdas.shared.auth.permissions import AuthorizationEngine, default_engine
from src.lambdas.shared.errors import (
    AppError,
    AuthorizationDetails,
    conflict,
    forbidden,
    not_found,
)
from src.lambdas.shared.logging_utils import mask_id
from src.lambdas.shared.membership_store import MembershipStore
from src.lambdas.shared.middleware.auth_middleware import Identity
from src.lambdas.shared.middleware.context import AuthContext
from src.lambdas.shared.models import Workspace, WorkspaceMember
from src.lambdas.shared.schemas import Pagination

logger = logging.getLogger(__name__)


def _hierarchy_denied(auth: AuthContext, target_role: Role, operation: str) -> AppError:
    return forbidden(
        "You cannot manage a member with an equal or higher role",
        details=AuthorizationDetails(
            workspace_id=auth.workspace_id,
            required_role=target_role.value,
            actual_role=auth.role.value,
        ),
        component="members",
        operation=operation,
    )


def _assignment_denied(auth: AuthContext, role: Role, operation: str) -> AppError:
    return forbidden(
        "You cannot assign a role equal to or higher than your own",
        details=AuthorizationDetails(
            workspace_id=auth.workspace_id,
            required_role=role.value,
            actual_role=auth.role.value,
        ),
        component="members",
        operation=operation,
    )


# ---------------------------------------------------------------------------
# Workspaces
# ---------------------------------------------------------------------------


def list_workspaces(store: MembershipStore, user_id: str) -> dict[str, Any]:
    """The caller's workspaces with their role in each."""
    memberships = store.list_memberships_for_user(user_id)
    preferences = store.get_preferences(user_id)
    member_of = {m.workspace_id for m in memberships}

    current = preferences.current_workspace_id if preferences else None
    if current not in member_of:
        current = memberships[0].workspace_id if len(memberships) == 1 else None

    workspaces = []
    for membership in memberships:
        workspace = store.get_workspace(membership.workspace_id)
        workspaces.append(
            {
                "workspace_id": membership.workspace_id,
                "name": workspace.name if workspace else None,
                "role": membership.role.value,
                "joined_at": membership.joined_at.isoformat(),
            }
        )

    return {"workspaces": workspaces, "current_workspace_id": current}


def create_workspace(store: MembershipStore, identity: Identity, name: str) -> dict[str, Any]:
    """Create a workspace owned by the caller.

    The new workspace becomes the caller's current workspace unless they
    already have a valid one selected.
    """
    now = datetime.now(UTC)
    workspace = Workspace(
        workspace_id=str(uuid.uuid4()),
        name=name,
        created_by=identity.user_id,
        created_at=now,
    )
    audit = create_role_audit_entry("setup", identity.user_id)
    owner = WorkspaceMember(
        workspace_id=workspace.workspace_id,
        user_id=identity.user_id,
        role=Role.OWNER,
        email=identity.email,
        joined_at=now,
        updated_at=now,
        role_assigned_by=audit["role_assigned_by"],
        role_assigned_at=datetime.fromisoformat(audit["role_assigned_at"]),
    )
    store.create_workspace(workspace, owner)

    preferences = store.get_preferences(identity.user_id)
    current = preferences.current_workspace_id if preferences else None
    if current is None or store.get_membership(current, identity.user_id) is None:
        store.set_current_workspace(identity.user_id, workspace.workspace_id)

    record_audit_event(
        store.table,
        workspace_id=workspace.workspace_id,
        source="setup",
        actor_id=identity.user_id,
        target_user_id=identity.user_id,
        new_role=Role.OWNER.value,
    )
    logger.info(
        "Created workspace",
        extra={
            "workspace_id": mask_id(workspace.workspace_id),
            "user_id": mask_id(identity.user_id),
        },
    )
    return {**workspace.to_api_dict(), "role": Role.OWNER.value}


def set_current_workspace(
    store: MembershipStore, user_id: str, workspace_id: str
) -> dict[str, Any]:
    """Store the caller's active workspace; they must be a member."""
    if store.get_membership(workspace_id, user_id) is None:
        raise forbidden(
            details=AuthorizationDetails(workspace_id=workspace_id),
            component="workspaces",
            operation="set_current_workspace",
        )
    preferences = store.set_current_workspace(user_id, workspace_id)
    return {"current_workspace_id": preferences.current_workspace_id}


def get_access(
    auth: AuthContext, engine: AuthorizationEngine = default_engine
) -> dict[str, Any]:
    """The caller's role and effective permissions in the workspace.

    API key callers get ``role: null`` and the key's permissions.
    """
    if auth.role is None:
        permissions = auth.permissions
    else:
        permissions = engine.get_role_permissions(auth.role)
    return {
        "workspace_id": auth.workspace_id,
        "role": auth.role.value if auth.role else None,
        "permissions": sorted(p.value for p in permissions),
        "api_key_id": auth.api_key_id,
    }


def rename_workspace(store: MembershipStore, auth: AuthContext, name: str) -> dict[str, Any]:
    workspace = store.rename_workspace(auth.workspace_id, name, datetime.now(UTC))
    if workspace is None:
        raise not_found(
            "workspace", auth.workspace_id, component="workspaces", operation="rename_workspace"
        )
    return workspace.to_api_dict()


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------


def list_members(
    store: MembershipStore,
    auth: AuthContext,
    pagination: Pagination,
    role: Role | None = None,
) -> dict[str, Any]:
    """One page of members, oldest membership first."""
    members = store.list_members(auth.workspace_id)
    if role is not None:
        members = [m for m in members if m.role == role]

    total = len(members)
    start = pagination.offset
    page = members[start : start + pagination.limit]
    return {
        "members": [m.to_api_dict() for m in page],
        "page": pagination.page,
        "limit": pagination.limit,
        "total": total,
        "has_more": start + len(page) < total,
    }


def get_member(store: MembershipStore, auth: AuthContext, user_id: str) -> dict[str, Any]:
    member = store.get_membership(auth.workspace_id, user_id)
    if member is None:
        raise not_found("member", user_id, component="members", operation="get_member")
    return member.to_api_dict()


def invite_member(
    store: MembershipStore,
    auth: AuthContext,
    email: str,
    role: Role,
    engine: AuthorizationEngine = default_engine,
) -> dict[str, Any]:
    """Add an existing user to the workspace with the given role.

    Raises:
        AppError: FORBIDDEN if the role is not assignable by the caller,
            NOT_FOUND if no user has this email, CONFLICT if already a member
    """
    if not engine.can_assign_role(auth.role, role):
        raise _assignment_denied(auth, role, "invite_member")

    user = store.get_user_by_email(email)
    if user is None:
        raise not_found("user", None, component="members", operation="invite_member")

    now = datetime.now(UTC)
    audit = create_role_audit_entry("invite", auth.user_id)
    member = WorkspaceMember(
        workspace_id=auth.workspace_id,
        user_id=user.user_id,
        role=role,
        email=user.email,
        joined_at=now,
        updated_at=now,
        role_assigned_by=audit["role_assigned_by"],
        role_assigned_at=datetime.fromisoformat(audit["role_assigned_at"]),
    )
    if not store.add_member(member):
        raise conflict(
            "User is already a member of this workspace",
            resource="member",
            identifier=user.user_id,
            component="members",
            operation="invite_member",
        )

    record_audit_event(
        store.table,
        workspace_id=auth.workspace_id,
        source="invite",
        actor_id=auth.user_id,
        target_user_id=user.user_id,
        new_role=role.value,
    )
    return member.to_api_dict()


def change_member_role(
    store: MembershipStore,
    auth: AuthContext,
    user_id: str,
    new_role: Role,
    engine: AuthorizationEngine = default_engine,
) -> dict[str, Any]:
    """Change another member's role.

    Both the target's current role and the new role must be strictly
    below the caller's.
    """
    if user_id == auth.user_id:
        raise forbidden(
            "You cannot change your own role",
            component="members",
            operation="change_member_role",
        )

    target = store.get_membership(auth.workspace_id, user_id)
    if target is None:
        raise not_found("member", user_id, component="members", operation="change_member_role")

    if not engine.can_act_on_role(auth.role, target.role):
        raise _hierarchy_denied(auth, target.role, "change_member_role")
    if not engine.can_assign_role(auth.role, new_role):
        raise _assignment_denied(auth, new_role, "change_member_role")

    audit = create_role_audit_entry("role_change", auth.user_id)
    updated = store.update_role(
        auth.workspace_id,
        user_id,
        new_role,
        role_assigned_by=audit["role_assigned_by"],
        role_assigned_at=audit["role_assigned_at"],
    )
    if updated is None:
        # Removed between the read and the write
        raise not_found("member", user_id, component="members", operation="change_member_role")

    record_audit_event(
        store.table,
        workspace_id=auth.workspace_id,
        source="role_change",
        actor_id=auth.user_id,
        target_user_id=user_id,
        previous_role=target.role.value,
        new_role=new_role.value,
    )
    return updated.to_api_dict()


def remove_member(
    store: MembershipStore,
    auth: AuthContext,
    user_id: str,
    engine: AuthorizationEngine = default_engine,
) -> None:
    """Remove another member whose role is strictly below the caller's."""
    if user_id == auth.user_id:
        raise forbidden(
            "You cannot remove yourself from the workspace",
            component="members",
            operation="remove_member",
        )

    target = store.get_membership(auth.workspace_id, user_id)
    if target is None:
        raise not_found("member", user_id, component="members", operation="remove_member")

    if not engine.can_act_on_role(auth.role, target.role):
        raise _hierarchy_denied(auth, target.role, "remove_member")

    if not store.remove_member(auth.workspace_id, user_id):
        raise not_found("member", user_id, component="members", operation="remove_member")

    record_audit_event(
        store.table,
        workspace_id=auth.workspace_id,
        source="removal",
        actor_id=auth.user_id,
        target_user_id=user_id,
        previous_role=target.role.value,
    )
