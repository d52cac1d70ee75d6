"""
Workspaces Lambda Handler
=========================

API Gateway (REST, proxy integration) entry point for workspace and
member management.

For On-Call Engineers:
    If requests fail unexpectedly:
    1. Search logs by request id (X-Request-Id response header)
    2. filter component = "database" for DynamoDB failures
    3. Verify WORKSPACES_TABLE and JWT_SECRET are set on the function
    4. Check IAM permissions for the table and its by_user, by_email and
       by_key_hash GSIs

    A spike of AUTH_WORKSPACE_AMBIGUOUS usually means a client stopped
    sending X-Workspace-Id; it is not a server fault.

For Developers:
    - Routes are dispatched on (httpMethod, resource)
    - Each route declares its guard and schemas via @route; the handler
      body only sees authenticated, authorized, validated input
    - Business rules live in members.py and api_keys.py
    - Read-only workspace routes also accept workspace API keys
      (Bearer dk_...); everything else requires a signed-in user

Security Notes:
    - Every workspace-scoped route resolves the workspace from the caller's
      memberships; a workspace id in the URL is never trusted on its own
    - 403 messages are generic; the denied role facts go to the logs only
"""

import functools
import logging
import os
from typing import Any

from src.lambdas.shared.auth.api_keys import ApiKeyAuthenticator
from src.lambdas.shared.auth.enums import Permission
from src.lambdas.shared.auth.workspace_access import WorkspaceAccessResolver
from src.lambdas.shared.errors import not_found
from src.lambdas.shared.logging_utils import configure_logging
from src.lambdas.shared.membership_store import MembershipStore
from src.lambdas.shared.middleware.context import RequestContext
from src.lambdas.shared.middleware.pipeline import route as pipeline_route
from src.lambdas.shared.schemas import MemberParams, WorkspaceParams
from src.lambdas.shared.utils.error_handler import handle_request
from src.lambdas.shared.utils.response_builder import json_response, no_content_response
from src.lambdas.workspaces import api_keys, members
from src.lambdas.workspaces.schemas import (
    ApiKeyParams,
    ChangeRoleRequest,
    CreateApiKeyRequest,
    CreateWorkspaceRequest,
    InviteMemberRequest,
    MemberListQuery,
    RenameWorkspaceRequest,
    SetCurrentWorkspaceRequest,
)

logger = logging.getLogger(__name__)

if os.environ.get("AWS_LAMBDA_FUNCTION_NAME"):
    configure_logging()

COMPONENT = "workspaces"
MEMBERS_COMPONENT = "members"
API_KEYS_COMPONENT = "api_keys"

_store: MembershipStore | None = None


def get_store() -> MembershipStore:
    """Module-level store, created on first use and reused across invocations."""
    global _store
    if _store is None:
        _store = MembershipStore()
    return _store


def get_resolver() -> WorkspaceAccessResolver:
    return WorkspaceAccessResolver(get_store())


def get_api_key_authenticator() -> ApiKeyAuthenticator:
    return ApiKeyAuthenticator(get_store())


route = functools.partial(
    pipeline_route, resolver=get_resolver, api_keys=get_api_key_authenticator
)


# ---------------------------------------------------------------------------
# Caller-scoped routes (no workspace required)
# ---------------------------------------------------------------------------


@route(COMPONENT, "list_workspaces")
def list_workspaces(ctx: RequestContext) -> dict:
    return json_response(200, members.list_workspaces(get_store(), ctx.identity.user_id))


@route(COMPONENT, "create_workspace", body=CreateWorkspaceRequest)
def create_workspace(ctx: RequestContext) -> dict:
    body = ctx.validation.body
    return json_response(201, members.create_workspace(get_store(), ctx.identity, body.name))


@route(COMPONENT, "set_current_workspace", body=SetCurrentWorkspaceRequest)
def set_current_workspace(ctx: RequestContext) -> dict:
    body = ctx.validation.body
    result = members.set_current_workspace(
        get_store(), ctx.identity.user_id, str(body.workspace_id)
    )
    return json_response(200, result)


# ---------------------------------------------------------------------------
# Workspace-scoped routes
# ---------------------------------------------------------------------------


@route(
    COMPONENT,
    "get_workspace_access",
    permissions=[Permission.WORKSPACE_VIEW],
    params=WorkspaceParams,
    allow_api_keys=True,
)
def get_workspace_access(ctx: RequestContext) -> dict:
    return json_response(200, members.get_access(ctx.auth))


@route(
    COMPONENT,
    "rename_workspace",
    permissions=[Permission.WORKSPACE_UPDATE],
    params=WorkspaceParams,
    body=RenameWorkspaceRequest,
)
def rename_workspace(ctx: RequestContext) -> dict:
    body = ctx.validation.body
    return json_response(200, members.rename_workspace(get_store(), ctx.auth, body.name))


@route(
    MEMBERS_COMPONENT,
    "list_members",
    permissions=[Permission.MEMBER_VIEW],
    params=WorkspaceParams,
    query=MemberListQuery,
    allow_api_keys=True,
)
def list_members(ctx: RequestContext) -> dict:
    query = ctx.validation.query
    result = members.list_members(get_store(), ctx.auth, query, role=query.role)
    return json_response(200, result)


@route(
    MEMBERS_COMPONENT,
    "get_member",
    permissions=[Permission.MEMBER_VIEW],
    params=MemberParams,
    allow_api_keys=True,
)
def get_member(ctx: RequestContext) -> dict:
    params = ctx.validation.params
    return json_response(200, members.get_member(get_store(), ctx.auth, params.user_id))


@route(
    MEMBERS_COMPONENT,
    "invite_member",
    permissions=[Permission.MEMBER_INVITE],
    params=WorkspaceParams,
    body=InviteMemberRequest,
)
def invite_member(ctx: RequestContext) -> dict:
    body = ctx.validation.body
    result = members.invite_member(get_store(), ctx.auth, str(body.email), body.role)
    return json_response(201, result)


@route(
    MEMBERS_COMPONENT,
    "change_member_role",
    permissions=[Permission.MEMBER_ROLE_CHANGE],
    params=MemberParams,
    body=ChangeRoleRequest,
)
def change_member_role(ctx: RequestContext) -> dict:
    params = ctx.validation.params
    body = ctx.validation.body
    result = members.change_member_role(get_store(), ctx.auth, params.user_id, body.role)
    return json_response(200, result)


@route(
    MEMBERS_COMPONENT,
    "remove_member",
    permissions=[Permission.MEMBER_REMOVE],
    params=MemberParams,
)
def remove_member(ctx: RequestContext) -> dict:
    params = ctx.validation.params
    members.remove_member(get_store(), ctx.auth, params.user_id)
    return no_content_response()


# ---------------------------------------------------------------------------
# API key management (signed-in members only; keys cannot manage keys)
# ---------------------------------------------------------------------------


@route(
    API_KEYS_COMPONENT,
    "list_api_keys",
    permissions=[Permission.API_KEYS_VIEW],
    params=WorkspaceParams,
)
def list_api_keys(ctx: RequestContext) -> dict:
    return json_response(200, api_keys.list_api_keys(get_store(), ctx.auth))


@route(
    API_KEYS_COMPONENT,
    "create_api_key",
    permissions=[Permission.API_KEYS_CREATE],
    params=WorkspaceParams,
    body=CreateApiKeyRequest,
)
def create_api_key(ctx: RequestContext) -> dict:
    body = ctx.validation.body
    result = api_keys.create_api_key(
        get_store(), ctx.auth, body.name, body.permissions, body.expires_at
    )
    return json_response(201, result)


@route(
    API_KEYS_COMPONENT,
    "get_api_key",
    permissions=[Permission.API_KEYS_VIEW],
    params=ApiKeyParams,
)
def get_api_key(ctx: RequestContext) -> dict:
    params = ctx.validation.params
    return json_response(200, api_keys.get_api_key(get_store(), ctx.auth, str(params.key_id)))


@route(
    API_KEYS_COMPONENT,
    "revoke_api_key",
    permissions=[Permission.API_KEYS_DELETE],
    params=ApiKeyParams,
)
def revoke_api_key(ctx: RequestContext) -> dict:
    params = ctx.validation.params
    api_keys.revoke_api_key(get_store(), ctx.auth, str(params.key_id))
    return no_content_response()


ROUTES: dict[tuple[str, str], Any] = {
    ("GET", "/api/v1/workspaces"): list_workspaces,
    ("POST", "/api/v1/workspaces"): create_workspace,
    ("PUT", "/api/v1/me/current-workspace"): set_current_workspace,
    ("GET", "/api/v1/workspaces/{workspace_id}/access"): get_workspace_access,
    ("PATCH", "/api/v1/workspaces/{workspace_id}"): rename_workspace,
    ("GET", "/api/v1/workspaces/{workspace_id}/members"): list_members,
    ("POST", "/api/v1/workspaces/{workspace_id}/members"): invite_member,
    ("GET", "/api/v1/workspaces/{workspace_id}/members/{user_id}"): get_member,
    ("PUT", "/api/v1/workspaces/{workspace_id}/members/{user_id}"): change_member_role,
    ("DELETE", "/api/v1/workspaces/{workspace_id}/members/{user_id}"): remove_member,
    ("GET", "/api/v1/workspaces/{workspace_id}/api-keys"): list_api_keys,
    ("POST", "/api/v1/workspaces/{workspace_id}/api-keys"): create_api_key,
    ("GET", "/api/v1/workspaces/{workspace_id}/api-keys/{key_id}"): get_api_key,
    ("DELETE", "/api/v1/workspaces/{workspace_id}/api-keys/{key_id}"): revoke_api_key,
}


def _route_not_found(event: dict, context: Any, request_id: str) -> dict:
    raise not_found("route", f"{event.get('httpMethod')} {event.get('resource')}")


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """
    AWS Lambda entry point.

    Args:
        event: API Gateway Proxy Integration event
        context: Lambda context

    Returns:
        API Gateway Proxy Integration response dict
    """
    key = (
        (event.get("httpMethod"), event.get("resource"))
        if isinstance(event, dict)
        else (None, None)
    )
    handler = ROUTES.get(key)
    if handler is None:
        return handle_request(
            _route_not_found, event, context, component=COMPONENT, operation="route"
        )
    return handler(event, context)
