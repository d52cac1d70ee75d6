"""Workspace access resolution.

Maps an authenticated identity (plus the request's explicit workspace
selection, if any) to the single workspace the request acts on and the
caller's role there.

Selection policy:
1. No memberships at all -> AUTH_NO_WORKSPACE.
2. An explicit selection (path ``workspace_id``, ``X-Workspace-Id``
   header, or ``workspace_id`` query parameter, in that order) must name a
   workspace the caller belongs to, else FORBIDDEN. The message does not
   say whether the workspace exists.
3. Exactly one membership and no explicit selection -> that workspace.
4. Several memberships and no explicit selection -> the stored
   current-workspace preference if it still names a membership, else
   AUTH_WORKSPACE_AMBIGUOUS. One of several is never picked silently.

API key callers have no memberships: the key names its workspace, and an
explicit selection of any other workspace is FORBIDDEN.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, Protocol

from aws_xray_sdk.core import xray_recorder

from src.lambdas.shared.auth.enums import Role
from src.lambdas.shared.errors import (
    AuthorizationDetails,
    ambiguous_workspace,
    forbidden,
    no_workspace,
)
from src.lambdas.shared.logging_utils import mask_id
from src.lambdas.shared.models import UserPreferences, WorkspaceMember
from src.lambdas.shared.utils.event_helpers import (
    get_header,
    get_path_params,
    get_query_params,
)

if TYPE_CHECKING:
    from src.lambdas.shared.middleware.auth_middleware import Identity

logger = logging.getLogger(__name__)

WORKSPACE_HEADER = "X-Workspace-Id"
WORKSPACE_PARAM = "workspace_id"

SelectionSource = Literal["path", "header", "query", "preference", "single", "api_key"]


class MembershipSource(Protocol):
    """What the resolver needs from storage."""

    def list_memberships_for_user(self, user_id: str) -> list[WorkspaceMember]: ...

    def get_preferences(self, user_id: str) -> UserPreferences | None: ...


@dataclass(frozen=True)
class WorkspaceAccess:
    """The workspace a request acts on and the caller's role in it.

    ``role`` is None for API key callers.
    """

    user_id: str
    workspace_id: str
    role: Role | None
    selected_by: SelectionSource


def requested_workspace_id(event: dict[str, Any]) -> tuple[str, SelectionSource] | None:
    """Return the explicitly requested workspace id and where it came from."""
    candidates: tuple[tuple[str | None, SelectionSource], ...] = (
        (get_path_params(event).get(WORKSPACE_PARAM), "path"),
        (get_header(event, WORKSPACE_HEADER), "header"),
        (get_query_params(event).get(WORKSPACE_PARAM), "query"),
    )
    for value, source in candidates:
        if value and value.strip():
            return value.strip(), source
    return None


class WorkspaceAccessResolver:
    """Resolve (identity, request) -> WorkspaceAccess or raise an AppError."""

    def __init__(self, store: MembershipSource) -> None:
        self._store = store

    @xray_recorder.capture("resolve_workspace_access")
    def resolve(self, identity: Identity, event: dict[str, Any]) -> WorkspaceAccess:
        requested = requested_workspace_id(event)
        if identity.is_api_key:
            return self._resolve_for_api_key(identity, requested)
        if requested is None:
            return self.resolve_for_user(identity.user_id)
        workspace_id, source = requested
        return self.resolve_for_user(identity.user_id, workspace_id, source)

    @staticmethod
    def _resolve_for_api_key(
        identity: Identity, requested: tuple[str, SelectionSource] | None
    ) -> WorkspaceAccess:
        if identity.workspace_id is None:
            raise forbidden(component="auth", operation="resolve_workspace")
        if requested is not None and requested[0] != identity.workspace_id:
            raise forbidden(
                details=AuthorizationDetails(workspace_id=requested[0]),
                component="auth",
                operation="resolve_workspace",
                extra={"api_key_id": mask_id(identity.api_key_id), "selected_by": requested[1]},
            )
        return WorkspaceAccess(
            user_id=identity.user_id,
            workspace_id=identity.workspace_id,
            role=None,
            selected_by="api_key",
        )

    def resolve_for_user(
        self,
        user_id: str,
        workspace_id: str | None = None,
        source: SelectionSource = "path",
    ) -> WorkspaceAccess:
        """Apply the selection policy for one user.

        Raises:
            AppError: AUTH_NO_WORKSPACE, FORBIDDEN or AUTH_WORKSPACE_AMBIGUOUS
        """
        memberships = {m.workspace_id: m for m in self._store.list_memberships_for_user(user_id)}

        if not memberships:
            logger.info(
                "Caller has no workspace membership",
                extra={"user_id": mask_id(user_id)},
            )
            raise no_workspace(user_id, component="auth", operation="resolve_workspace")

        if workspace_id is not None:
            membership = memberships.get(workspace_id)
            if membership is None:
                raise forbidden(
                    details=AuthorizationDetails(workspace_id=workspace_id),
                    component="auth",
                    operation="resolve_workspace",
                    extra={"user_id": mask_id(user_id), "selected_by": source},
                )
            return self._access(membership, source)

        if len(memberships) == 1:
            (membership,) = memberships.values()
            return self._access(membership, "single")

        preferences = self._store.get_preferences(user_id)
        preferred = preferences.current_workspace_id if preferences else None
        if preferred is not None and preferred in memberships:
            return self._access(memberships[preferred], "preference")

        if preferred is not None:
            logger.info(
                "Stored workspace preference is stale",
                extra={"user_id": mask_id(user_id), "workspace_id": mask_id(preferred)},
            )
        raise ambiguous_workspace(
            user_id,
            len(memberships),
            component="auth",
            operation="resolve_workspace",
        )

    @staticmethod
    def _access(membership: WorkspaceMember, source: SelectionSource) -> WorkspaceAccess:
        return WorkspaceAccess(
            user_id=membership.user_id,
            workspace_id=membership.workspace_id,
            role=membership.role,
            selected_by=source,
        )
