"""Unit tests for workspace role audit trail helpers."""

from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError

from src.lambdas.shared.auth.audit import (
    build_audit_item,
    create_role_audit_entry,
    record_audit_event,
)
from tests.conftest import assert_warning_logged


class TestCreateRoleAuditEntry:
    """Tests for create_role_audit_entry() function."""

    def test_invite_source_format(self) -> None:
        """Invite source produces invite:{actor} format."""
        result = create_role_audit_entry("invite", "user-123")
        assert result["role_assigned_by"] == "invite:user-123"

    def test_role_change_source_format(self) -> None:
        result = create_role_audit_entry("role_change", "admin-9")
        assert result["role_assigned_by"] == "role_change:admin-9"

    def test_setup_source_format(self) -> None:
        result = create_role_audit_entry("setup", "owner-1")
        assert result["role_assigned_by"] == "setup:owner-1"

    def test_timestamp_is_utc_iso(self) -> None:
        """Timestamp is ISO 8601 in UTC."""
        with patch("src.lambdas.shared.auth.audit.datetime") as mock_dt:
            mock_dt.now.return_value = datetime(2026, 1, 8, 12, 0, 0, tzinfo=UTC)

            result = create_role_audit_entry("invite", "user-123")

        assert result["role_assigned_at"] == "2026-01-08T12:00:00+00:00"
        mock_dt.now.assert_called_once_with(UTC)


class TestBuildAuditItem:
    """Tests for build_audit_item() key layout and optional fields."""

    def test_keys_are_workspace_scoped(self) -> None:
        item = build_audit_item("ws-1", "invite", "actor-1", target_user_id="u-2")
        assert item["PK"] == "WORKSPACE#ws-1"
        assert item["SK"].startswith("AUDIT#")
        assert item["entity_type"] == "AUDIT"

    def test_omits_absent_roles(self) -> None:
        """previous_role/new_role are not stored as NULL."""
        item = build_audit_item("ws-1", "removal", "actor-1", target_user_id="u-2")
        assert "new_role" not in item
        assert "previous_role" not in item

    def test_sort_keys_are_unique_within_same_instant(self) -> None:
        with patch("src.lambdas.shared.auth.audit.datetime") as mock_dt:
            mock_dt.now.return_value = datetime(2026, 1, 8, 12, 0, 0, tzinfo=UTC)
            first = build_audit_item("ws-1", "invite", "a")
            second = build_audit_item("ws-1", "invite", "a")
        assert first["SK"] != second["SK"]


class TestRecordAuditEvent:
    """Audit writes are best effort: failures are logged, never raised."""

    def test_writes_item(self) -> None:
        table = MagicMock()
        assert record_audit_event(
            table, workspace_id="ws-1", source="invite", actor_id="a", new_role="member"
        )
        item = table.put_item.call_args.kwargs["Item"]
        assert item["new_role"] == "member"

    def test_failure_is_logged_and_swallowed(self, caplog) -> None:
        table = MagicMock()
        table.put_item.side_effect = ClientError(
            {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "x"}},
            "PutItem",
        )

        assert record_audit_event(table, workspace_id="ws-1", source="removal", actor_id="a") is False
        assert_warning_logged(caplog, "Failed to write audit event")
