"""Request schemas for the workspace, member and API key routes."""

from datetime import UTC, datetime
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from src.lambdas.shared.auth.enums import Permission, Role
from src.lambdas.shared.schemas import Pagination, RequestSchema, WorkspaceParams


class CreateWorkspaceRequest(RequestSchema):
    name: str = Field(..., min_length=1, max_length=100)


class RenameWorkspaceRequest(RequestSchema):
    name: str = Field(..., min_length=1, max_length=100)


class SetCurrentWorkspaceRequest(RequestSchema):
    workspace_id: UUID


class InviteMemberRequest(RequestSchema):
    """Invite an existing user by email.

    Owners may invite up to admin, admins up to member; the role check
    happens in the handler, not here.
    """

    email: EmailStr
    role: Role = Role.MEMBER


class ChangeRoleRequest(RequestSchema):
    role: Role


class MemberListQuery(Pagination):
    role: Role | None = Field(None, description="Only members with this role")


class CreateApiKeyRequest(RequestSchema):
    """Create a workspace API key.

    The requested permissions must be a subset of the creator's own; that
    check needs the caller's role and happens in the handler.
    """

    name: str = Field(..., min_length=1, max_length=100)
    permissions: list[Permission] = Field(..., min_length=1)
    expires_at: datetime | None = None

    @field_validator("expires_at")
    @classmethod
    def _future_expiry(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        if value <= datetime.now(UTC):
            raise ValueError("expires_at must be in the future")
        return value


class ApiKeyParams(WorkspaceParams):
    """Path parameters for /workspaces/{workspace_id}/api-keys/{key_id}."""

    key_id: UUID
