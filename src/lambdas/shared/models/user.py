"""User profile and preference models with DynamoDB keys."""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class UserProfile(BaseModel):
    """A registered user, as far as workspace management needs to know."""

    user_id: str = Field(..., description="Identity provider subject")
    email: EmailStr
    created_at: datetime

    @property
    def pk(self) -> str:
        """DynamoDB partition key."""
        return f"USER#{self.user_id}"

    @property
    def sk(self) -> str:
        """DynamoDB sort key."""
        return "PROFILE"

    def to_dynamodb_item(self) -> dict:
        """Convert to DynamoDB item format.

        Email is stored lowercased: it is the by_email GSI hash key and
        invitations look users up by it.
        """
        return {
            "PK": self.pk,
            "SK": self.sk,
            "entity_type": "USER",
            "user_id": self.user_id,
            "email": self.email.lower(),
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dynamodb_item(cls, item: dict) -> "UserProfile":
        """Create UserProfile from DynamoDB item."""
        return cls(
            user_id=item["user_id"],
            email=item["email"],
            created_at=datetime.fromisoformat(item["created_at"]),
        )


class UserPreferences(BaseModel):
    """Per-user settings; currently only the active workspace."""

    user_id: str
    current_workspace_id: str | None = None
    updated_at: datetime | None = None

    @property
    def pk(self) -> str:
        return f"USER#{self.user_id}"

    @property
    def sk(self) -> str:
        return "PREFERENCES"

    def to_dynamodb_item(self) -> dict:
        item = {
            "PK": self.pk,
            "SK": self.sk,
            "entity_type": "PREFERENCES",
            "user_id": self.user_id,
        }
        if self.current_workspace_id is not None:
            item["current_workspace_id"] = self.current_workspace_id
        if self.updated_at is not None:
            item["updated_at"] = self.updated_at.isoformat()
        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict) -> "UserPreferences":
        updated_at = item.get("updated_at")
        return cls(
            user_id=item["user_id"],
            current_workspace_id=item.get("current_workspace_id"),
            updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
        )
