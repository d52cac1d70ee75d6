"""Workspace API key model with DynamoDB keys.

An API key authenticates a machine client to exactly one workspace. Only
the SHA-256 hash of the key is stored; the plaintext is shown once, when
the key is created.

Key layout (single table):
    API key  PK=WORKSPACE#<workspace_id>  SK=APIKEY#<key_id>
             GSI by_key_hash: key_hash (HASH)
"""

from datetime import datetime

from pydantic import BaseModel, Field

from src.lambdas.shared.auth.enums import Permission
from src.lambdas.shared.models.workspace import workspace_pk

API_KEY_SK_PREFIX = "APIKEY#"


def api_key_sk(key_id: str) -> str:
    return f"{API_KEY_SK_PREFIX}{key_id}"


def _parse_time(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class ApiKey(BaseModel):
    """A workspace-scoped API key (hash only, never the plaintext)."""

    key_id: str
    workspace_id: str
    name: str = Field(..., min_length=1, max_length=100)
    key_hash: str = Field(..., min_length=64, max_length=64)
    permissions: frozenset[Permission]
    created_by: str
    created_at: datetime
    is_active: bool = True
    expires_at: datetime | None = None
    last_used_at: datetime | None = None
    revoked_at: datetime | None = None
    revoked_by: str | None = None

    @property
    def pk(self) -> str:
        return workspace_pk(self.workspace_id)

    @property
    def sk(self) -> str:
        return api_key_sk(self.key_id)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def to_dynamodb_item(self) -> dict:
        """Convert to DynamoDB item format.

        Permissions are stored as a sorted list so an item round-trips
        without relying on DynamoDB set ordering.
        """
        item = {
            "PK": self.pk,
            "SK": self.sk,
            "entity_type": "API_KEY",
            "key_id": self.key_id,
            "workspace_id": self.workspace_id,
            "name": self.name,
            "key_hash": self.key_hash,
            "permissions": sorted(p.value for p in self.permissions),
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat(),
            "is_active": self.is_active,
        }
        for field in ("expires_at", "last_used_at", "revoked_at"):
            value = getattr(self, field)
            if value is not None:
                item[field] = value.isoformat()
        if self.revoked_by is not None:
            item["revoked_by"] = self.revoked_by
        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict) -> "ApiKey":
        return cls(
            key_id=item["key_id"],
            workspace_id=item["workspace_id"],
            name=item["name"],
            key_hash=item["key_hash"],
            permissions=frozenset(Permission(p) for p in item.get("permissions", [])),
            created_by=item["created_by"],
            created_at=datetime.fromisoformat(item["created_at"]),
            is_active=bool(item.get("is_active", False)),
            expires_at=_parse_time(item.get("expires_at")),
            last_used_at=_parse_time(item.get("last_used_at")),
            revoked_at=_parse_time(item.get("revoked_at")),
            revoked_by=item.get("revoked_by"),
        )

    def to_api_dict(self) -> dict:
        """Public view of the key. The hash never leaves the service."""
        return {
            "key_id": self.key_id,
            "workspace_id": self.workspace_id,
            "name": self.name,
            "permissions": sorted(p.value for p in self.permissions),
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "last_used_at": self.last_used_at.isoformat() if self.last_used_at else None,
            "is_active": self.is_active,
        }
