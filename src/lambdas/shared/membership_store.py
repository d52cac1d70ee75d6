"""
Membership Store
================

DynamoDB access for workspaces, memberships, user profiles and user
preferences. This is the only module that knows the table's key layout
for these entities.

For On-Call Engineers:
    - All DynamoDB failures surface as INTERNAL_SERVER_ERROR with
      component="database" and the failing operation name. Search:
      filter component = "database" | stats count() by operation
    - Membership uniqueness relies on conditional writes; a CONFLICT on
      invite is expected when the user is already a member.

For Developers:
    - Inject a Table resource in tests (moto); production code uses the
      WORKSPACES_TABLE env var via get_table().
    - GSIs: by_user (user_id, workspace_id), by_email (email) and
      by_key_hash (key_hash) for API key authentication.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from src.lambdas.shared.auth.enums import Role
from src.lambdas.shared.dynamodb import (
    get_table,
    is_conditional_check_failure,
    parse_dynamodb_item,
    put_item_if_not_exists,
    query_all,
)
from src.lambdas.shared.errors import internal_error
from src.lambdas.shared.logging_utils import mask_id
from src.lambdas.shared.models import (
    ApiKey,
    UserPreferences,
    UserProfile,
    Workspace,
    WorkspaceMember,
)
from src.lambdas.shared.models.api_key import API_KEY_SK_PREFIX, api_key_sk
from src.lambdas.shared.models.workspace import MEMBER_SK_PREFIX, member_sk, workspace_pk

logger = logging.getLogger(__name__)

BY_USER_INDEX = "by_user"
BY_EMAIL_INDEX = "by_email"
BY_KEY_HASH_INDEX = "by_key_hash"


@contextmanager
def _database_operation(operation: str) -> Iterator[None]:
    """Translate DynamoDB client errors into INTERNAL_SERVER_ERROR."""
    try:
        yield
    except ClientError as e:
        logger.error(
            "DynamoDB operation failed",
            extra={
                "operation": operation,
                "error_code": e.response.get("Error", {}).get("Code"),
            },
        )
        raise internal_error(cause=e, component="database", operation=operation) from e


class MembershipStore:
    """Reads and writes workspace entities in the single workspaces table."""

    def __init__(self, table: Any = None) -> None:
        self._table = table

    @property
    def table(self) -> Any:
        if self._table is None:
            self._table = get_table()
        return self._table

    # ------------------------------------------------------------------
    # Memberships
    # ------------------------------------------------------------------

    def list_memberships_for_user(self, user_id: str) -> list[WorkspaceMember]:
        """All memberships of one user, ordered by workspace id."""
        with _database_operation("list_memberships_for_user"):
            items = query_all(
                self.table,
                IndexName=BY_USER_INDEX,
                KeyConditionExpression=Key("user_id").eq(user_id),
            )
        return [
            WorkspaceMember.from_dynamodb_item(parse_dynamodb_item(item))
            for item in items
            if item.get("entity_type") == "MEMBERSHIP"
        ]

    def get_membership(self, workspace_id: str, user_id: str) -> WorkspaceMember | None:
        with _database_operation("get_membership"):
            response = self.table.get_item(
                Key={"PK": workspace_pk(workspace_id), "SK": member_sk(user_id)}
            )
        item = response.get("Item")
        if not item:
            return None
        return WorkspaceMember.from_dynamodb_item(parse_dynamodb_item(item))

    def list_members(self, workspace_id: str) -> list[WorkspaceMember]:
        """All members of a workspace, oldest membership first."""
        with _database_operation("list_members"):
            items = query_all(
                self.table,
                KeyConditionExpression=Key("PK").eq(workspace_pk(workspace_id))
                & Key("SK").begins_with(MEMBER_SK_PREFIX),
            )
        members = [
            WorkspaceMember.from_dynamodb_item(parse_dynamodb_item(item))
            for item in items
        ]
        members.sort(key=lambda m: (m.joined_at, m.user_id))
        return members

    def add_member(self, member: WorkspaceMember) -> bool:
        """Create a membership.

        Returns:
            True if created, False if the user is already a member
        """
        with _database_operation("add_member"):
            created = put_item_if_not_exists(self.table, member.to_dynamodb_item())
        if created:
            logger.info(
                "Added workspace member",
                extra={
                    "workspace_id": mask_id(member.workspace_id),
                    "user_id": mask_id(member.user_id),
                    "role": member.role.value,
                },
            )
        return created

    def update_role(
        self,
        workspace_id: str,
        user_id: str,
        role: Role,
        role_assigned_by: str,
        role_assigned_at: str,
    ) -> WorkspaceMember | None:
        """Change a member's role.

        Returns:
            The updated membership, or None if the membership does not exist
        """
        with _database_operation("update_role"):
            try:
                response = self.table.update_item(
                    Key={"PK": workspace_pk(workspace_id), "SK": member_sk(user_id)},
                    UpdateExpression=(
                        "SET #role = :role, updated_at = :now, "
                        "role_assigned_by = :by, role_assigned_at = :now"
                    ),
                    ConditionExpression="attribute_exists(PK)",
                    ExpressionAttributeNames={"#role": "role"},
                    ExpressionAttributeValues={
                        ":role": Role(role).value,
                        ":now": role_assigned_at,
                        ":by": role_assigned_by,
                    },
                    ReturnValues="ALL_NEW",
                )
            except ClientError as e:
                if not is_conditional_check_failure(e):
                    raise
                return None
        return WorkspaceMember.from_dynamodb_item(
            parse_dynamodb_item(response["Attributes"])
        )

    def remove_member(self, workspace_id: str, user_id: str) -> bool:
        """Delete a membership.

        Returns:
            True if a membership was deleted, False if none existed
        """
        with _database_operation("remove_member"):
            try:
                self.table.delete_item(
                    Key={"PK": workspace_pk(workspace_id), "SK": member_sk(user_id)},
                    ConditionExpression="attribute_exists(PK)",
                )
            except ClientError as e:
                if not is_conditional_check_failure(e):
                    raise
                return False
        logger.info(
            "Removed workspace member",
            extra={"workspace_id": mask_id(workspace_id), "user_id": mask_id(user_id)},
        )
        return True

    # ------------------------------------------------------------------
    # Workspaces
    # ------------------------------------------------------------------

    def get_workspace(self, workspace_id: str) -> Workspace | None:
        with _database_operation("get_workspace"):
            response = self.table.get_item(
                Key={"PK": workspace_pk(workspace_id), "SK": "METADATA"}
            )
        item = response.get("Item")
        if not item:
            return None
        return Workspace.from_dynamodb_item(parse_dynamodb_item(item))

    def create_workspace(self, workspace: Workspace, owner: WorkspaceMember) -> None:
        """Create a workspace together with its owner membership."""
        with _database_operation("create_workspace"):
            if not put_item_if_not_exists(self.table, workspace.to_dynamodb_item()):
                # Ids are server-generated UUIDs; a collision is a bug
                raise internal_error(
                    message="Workspace id collision",
                    component="database",
                    operation="create_workspace",
                )
            put_item_if_not_exists(self.table, owner.to_dynamodb_item())

    def rename_workspace(self, workspace_id: str, name: str, now: datetime) -> Workspace | None:
        with _database_operation("rename_workspace"):
            try:
                response = self.table.update_item(
                    Key={"PK": workspace_pk(workspace_id), "SK": "METADATA"},
                    UpdateExpression="SET #name = :name, updated_at = :now",
                    ConditionExpression="attribute_exists(PK)",
                    ExpressionAttributeNames={"#name": "name"},
                    ExpressionAttributeValues={
                        ":name": name,
                        ":now": now.isoformat(),
                    },
                    ReturnValues="ALL_NEW",
                )
            except ClientError as e:
                if not is_conditional_check_failure(e):
                    raise
                return None
        return Workspace.from_dynamodb_item(parse_dynamodb_item(response["Attributes"]))

    # ------------------------------------------------------------------
    # Users and preferences
    # ------------------------------------------------------------------

    def get_user_by_email(self, email: str) -> UserProfile | None:
        """Look up a registered user by email (case-insensitive).

        Membership items also carry an email attribute and so appear in
        the by_email index; only USER items are considered.
        """
        with _database_operation("get_user_by_email"):
            items = query_all(
                self.table,
                IndexName=BY_EMAIL_INDEX,
                KeyConditionExpression=Key("email").eq(email.lower()),
                FilterExpression=Attr("entity_type").eq("USER"),
            )
        if not items:
            return None
        return UserProfile.from_dynamodb_item(parse_dynamodb_item(items[0]))

    def put_user(self, profile: UserProfile) -> None:
        with _database_operation("put_user"):
            self.table.put_item(Item=profile.to_dynamodb_item())

    def get_preferences(self, user_id: str) -> UserPreferences | None:
        with _database_operation("get_preferences"):
            response = self.table.get_item(
                Key={"PK": f"USER#{user_id}", "SK": "PREFERENCES"}
            )
        item = response.get("Item")
        if not item:
            return None
        return UserPreferences.from_dynamodb_item(parse_dynamodb_item(item))

    def set_current_workspace(self, user_id: str, workspace_id: str) -> UserPreferences:
        preferences = UserPreferences(
            user_id=user_id,
            current_workspace_id=workspace_id,
            updated_at=datetime.now(UTC),
        )
        with _database_operation("set_current_workspace"):
            self.table.put_item(Item=preferences.to_dynamodb_item())
        return preferences

    # ------------------------------------------------------------------
    # API keys
    # ------------------------------------------------------------------

    def list_api_keys(self, workspace_id: str, include_revoked: bool = False) -> list[ApiKey]:
        """A workspace's API keys, newest first."""
        with _database_operation("list_api_keys"):
            items = query_all(
                self.table,
                KeyConditionExpression=Key("PK").eq(workspace_pk(workspace_id))
                & Key("SK").begins_with(API_KEY_SK_PREFIX),
            )
        keys = [ApiKey.from_dynamodb_item(parse_dynamodb_item(item)) for item in items]
        if not include_revoked:
            keys = [key for key in keys if key.is_active]
        keys.sort(key=lambda k: (k.created_at, k.key_id), reverse=True)
        return keys

    def get_api_key(self, workspace_id: str, key_id: str) -> ApiKey | None:
        with _database_operation("get_api_key"):
            response = self.table.get_item(
                Key={"PK": workspace_pk(workspace_id), "SK": api_key_sk(key_id)}
            )
        item = response.get("Item")
        if not item:
            return None
        return ApiKey.from_dynamodb_item(parse_dynamodb_item(item))

    def get_api_key_by_hash(self, key_hash: str) -> ApiKey | None:
        """The active key with this hash, if any."""
        with _database_operation("get_api_key_by_hash"):
            items = query_all(
                self.table,
                IndexName=BY_KEY_HASH_INDEX,
                KeyConditionExpression=Key("key_hash").eq(key_hash),
                FilterExpression=Attr("is_active").eq(True),
            )
        if not items:
            return None
        return ApiKey.from_dynamodb_item(parse_dynamodb_item(items[0]))

    def create_api_key(self, api_key: ApiKey) -> bool:
        """Store a new key.

        Names are unique among a workspace's active keys. The check and the
        write are not atomic; two concurrent creates with the same name can
        both succeed.

        Returns:
            True if created, False if an active key already has this name
        """
        existing = self.list_api_keys(api_key.workspace_id)
        if any(key.name == api_key.name for key in existing):
            return False
        with _database_operation("create_api_key"):
            created = put_item_if_not_exists(self.table, api_key.to_dynamodb_item())
        if created:
            logger.info(
                "Created API key",
                extra={
                    "workspace_id": mask_id(api_key.workspace_id),
                    "key_id": mask_id(api_key.key_id),
                    "user_id": mask_id(api_key.created_by),
                },
            )
        return created

    def revoke_api_key(
        self, workspace_id: str, key_id: str, revoked_by: str, now: datetime
    ) -> ApiKey | None:
        """Deactivate an active key. Revoked keys stay in the table.

        Returns:
            The revoked key, or None if no active key has this id
        """
        with _database_operation("revoke_api_key"):
            try:
                response = self.table.update_item(
                    Key={"PK": workspace_pk(workspace_id), "SK": api_key_sk(key_id)},
                    UpdateExpression=(
                        "SET is_active = :inactive, revoked_at = :now, revoked_by = :by"
                    ),
                    ConditionExpression="attribute_exists(PK) AND is_active = :active",
                    ExpressionAttributeValues={
                        ":inactive": False,
                        ":active": True,
                        ":now": now.isoformat(),
                        ":by": revoked_by,
                    },
                    ReturnValues="ALL_NEW",
                )
            except ClientError as e:
                if not is_conditional_check_failure(e):
                    raise
                return None
        logger.info(
            "Revoked API key",
            extra={"workspace_id": mask_id(workspace_id), "key_id": mask_id(key_id)},
        )
        return ApiKey.from_dynamodb_item(parse_dynamodb_item(response["Attributes"]))

    def touch_api_key(self, workspace_id: str, key_id: str, now: datetime) -> bool:
        """Record a key's last use. Best effort: failures are logged, not raised.

        Returns:
            True if the timestamp was written
        """
        try:
            self.table.update_item(
                Key={"PK": workspace_pk(workspace_id), "SK": api_key_sk(key_id)},
                UpdateExpression="SET last_used_at = :now",
                ConditionExpression="attribute_exists(PK)",
                ExpressionAttributeValues={":now": now.isoformat()},
            )
        except ClientError as e:
            logger.warning(
                "Failed to record API key use",
                extra={
                    "key_id": mask_id(key_id),
                    "error_code": e.response.get("Error", {}).get("Code"),
                },
            )
            return False
        return True
