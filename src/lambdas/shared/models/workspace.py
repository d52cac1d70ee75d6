"""Workspace and membership models with DynamoDB keys.

A workspace is the tenant boundary: every piece of customer data belongs
to exactly one workspace, and a user reaches it only through a membership
that carries their role.

Key layout (single table):
    Workspace   PK=WORKSPACE#<workspace_id>  SK=METADATA
    Membership  PK=WORKSPACE#<workspace_id>  SK=MEMBER#<user_id>
                GSI by_user: user_id (HASH), workspace_id (RANGE)
"""

from datetime import datetime

from pydantic import BaseModel, Field

from src.lambdas.shared.auth.enums import Role

MEMBER_SK_PREFIX = "MEMBER#"


def workspace_pk(workspace_id: str) -> str:
    return f"WORKSPACE#{workspace_id}"


def member_sk(user_id: str) -> str:
    return f"{MEMBER_SK_PREFIX}{user_id}"


class Workspace(BaseModel):
    """A tenant workspace."""

    workspace_id: str
    name: str = Field(..., min_length=1, max_length=100)
    created_by: str
    created_at: datetime
    updated_at: datetime | None = None

    @property
    def pk(self) -> str:
        """DynamoDB partition key."""
        return workspace_pk(self.workspace_id)

    @property
    def sk(self) -> str:
        """DynamoDB sort key."""
        return "METADATA"

    def to_dynamodb_item(self) -> dict:
        item = {
            "PK": self.pk,
            "SK": self.sk,
            "entity_type": "WORKSPACE",
            "workspace_id": self.workspace_id,
            "name": self.name,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat(),
        }
        if self.updated_at is not None:
            item["updated_at"] = self.updated_at.isoformat()
        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict) -> "Workspace":
        """Create Workspace from DynamoDB item."""
        updated_at = item.get("updated_at")
        return cls(
            workspace_id=item["workspace_id"],
            name=item["name"],
            created_by=item["created_by"],
            created_at=datetime.fromisoformat(item["created_at"]),
            updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
        )

    def to_api_dict(self) -> dict:
        return {
            "workspace_id": self.workspace_id,
            "name": self.name,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat(),
        }


class WorkspaceMember(BaseModel):
    """One user's membership (and role) in one workspace."""

    workspace_id: str
    user_id: str
    role: Role
    email: str | None = None
    joined_at: datetime
    updated_at: datetime
    role_assigned_by: str | None = Field(
        None, description="'<source>:<actor_id>', see auth.audit"
    )
    role_assigned_at: datetime | None = None

    @property
    def pk(self) -> str:
        return workspace_pk(self.workspace_id)

    @property
    def sk(self) -> str:
        return member_sk(self.user_id)

    def to_dynamodb_item(self) -> dict:
        """Convert to DynamoDB item format.

        Note: email is omitted when None; it is not a key attribute but
        storing NULLs makes filter expressions harder to reason about.
        """
        item = {
            "PK": self.pk,
            "SK": self.sk,
            "entity_type": "MEMBERSHIP",
            "workspace_id": self.workspace_id,
            "user_id": self.user_id,
            "role": self.role.value,
            "joined_at": self.joined_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
        if self.email is not None:
            item["email"] = self.email
        if self.role_assigned_by is not None:
            item["role_assigned_by"] = self.role_assigned_by
        if self.role_assigned_at is not None:
            item["role_assigned_at"] = self.role_assigned_at.isoformat()
        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict) -> "WorkspaceMember":
        """Create WorkspaceMember from DynamoDB item."""
        assigned_at = item.get("role_assigned_at")
        return cls(
            workspace_id=item["workspace_id"],
            user_id=item["user_id"],
            role=Role(item["role"]),
            email=item.get("email"),
            joined_at=datetime.fromisoformat(item["joined_at"]),
            updated_at=datetime.fromisoformat(item["updated_at"]),
            role_assigned_by=item.get("role_assigned_by"),
            role_assigned_at=datetime.fromisoformat(assigned_at) if assigned_at else None,
        )

    def to_api_dict(self) -> dict:
        return {
            "workspace_id": self.workspace_id,
            "user_id": self.user_id,
            "role": self.role.value,
            "email": self.email,
            "joined_at": self.joined_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
