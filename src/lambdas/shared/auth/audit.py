"""Role assignment audit trail helpers.

Provides consistent audit field generation for workspace role changes and
a best-effort writer for the workspace audit log. Audit writes are an
optional side effect: a failure is logged and never fails the request.
"""

import logging
import uuid
from datetime import UTC, datetime
from typing import Any, Literal

from src.lambdas.shared.logging_utils import get_safe_error_info, sanitize_for_log

logger = logging.getLogger(__name__)

RoleChangeSource = Literal["setup", "invite", "role_change", "removal"]


def create_role_audit_entry(
    source: RoleChangeSource,
    identifier: str,
) -> dict[str, str]:
    """Create audit trail fields for a role assignment.

    Generates role_assigned_at and role_assigned_by fields for DynamoDB updates.
    Follows consistent format: {source}:{identifier} for attribution.

    Args:
        source: Origin of the role change (setup, invite, role_change, removal)
        identifier: User ID of the actor who made the change

    Returns:
        Dict with role_assigned_at (ISO 8601 UTC) and role_assigned_by

    Examples:
        >>> create_role_audit_entry("invite", "user-123")
        {'role_assigned_at': '2026-01-08T12:00:00+00:00', 'role_assigned_by': 'invite:user-123'}
    """
    now = datetime.now(UTC)
    return {
        "role_assigned_at": now.isoformat(),
        "role_assigned_by": f"{source}:{identifier}",
    }


def build_audit_item(
    workspace_id: str,
    source: RoleChangeSource,
    actor_id: str,
    target_user_id: str | None = None,
    previous_role: str | None = None,
    new_role: str | None = None,
) -> dict[str, Any]:
    """Build the DynamoDB item for one workspace audit event."""
    entry = create_role_audit_entry(source, actor_id)
    item: dict[str, Any] = {
        "PK": f"WORKSPACE#{workspace_id}",
        "SK": f"AUDIT#{entry['role_assigned_at']}#{uuid.uuid4().hex[:8]}",
        "entity_type": "AUDIT",
        "workspace_id": workspace_id,
        "event": source,
        "actor_id": actor_id,
        "occurred_at": entry["role_assigned_at"],
    }
    # Omit empty attributes rather than storing NULLs
    if target_user_id is not None:
        item["target_user_id"] = target_user_id
    if previous_role is not None:
        item["previous_role"] = previous_role
    if new_role is not None:
        item["new_role"] = new_role
    return item


def record_audit_event(table: Any, **fields: Any) -> bool:
    """Write an audit event, swallowing and logging any failure.

    Args:
        table: DynamoDB Table resource
        **fields: Arguments for build_audit_item

    Returns:
        True if the event was written, False otherwise
    """
    try:
        table.put_item(Item=build_audit_item(**fields))
        return True
    except Exception as e:
        logger.warning(
            "Failed to write audit event",
            extra={
                "workspace_id": sanitize_for_log(fields.get("workspace_id", "")),
                "event": fields.get("source"),
                **get_safe_error_info(e),
            },
        )
        return False
