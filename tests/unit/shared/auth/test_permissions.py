"""Unit tests for the role→permission table and AuthorizationEngine.

Tests:
- Role and Permission enums
- Hierarchy predicates (can_act_on_role, can_assign_role, meets_minimum_role)
- Default table grants
- PermissionTable construction-time invariants
- Engine injection with an alternate table
"""

from __future__ import annotations

import itertools

import pytest

from src.lambdas.shared.auth.enums import (
    ROLE_RANK,
    VALID_PERMISSIONS,
    VALID_ROLES,
    Permission,
    Role,
)
from src.lambdas.shared.auth.permissions import (
    DEFAULT_GRANTS,
    DEFAULT_PERMISSION_TABLE,
    AuthorizationEngine,
    PermissionTable,
    can_act_on_role,
    can_assign_role,
    default_engine,
    get_role_permissions,
    has_permission,
)
from src.lambdas.shared.errors import PermissionTableError

ALL_ROLES = [Role.VIEWER, Role.MEMBER, Role.ADMIN, Role.OWNER]


class TestEnums:
    """Tests for the Role and Permission enums."""

    def test_role_values(self) -> None:
        assert [r.value for r in ALL_ROLES] == ["viewer", "member", "admin", "owner"]

    def test_role_rank_is_total_order(self) -> None:
        assert [ROLE_RANK[r] for r in ALL_ROLES] == [1, 2, 3, 4]

    def test_role_is_str_enum(self) -> None:
        assert Role.ADMIN == "admin"
        assert "admin" in VALID_ROLES

    def test_permission_set_is_closed(self) -> None:
        assert len(Permission) == 25
        assert VALID_PERMISSIONS == {p.value for p in Permission}

    def test_unknown_role_string_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            Role("superuser")


class TestHierarchy:
    """canActOnRole/canAssignRole are strict; minimum-role is inclusive."""

    @pytest.mark.parametrize(("actor", "target"), list(itertools.product(ALL_ROLES, ALL_ROLES)))
    def test_can_act_on_role_matches_rank(self, actor: Role, target: Role) -> None:
        assert can_act_on_role(actor, target) == (ROLE_RANK[actor] > ROLE_RANK[target])

    def test_owner_can_act_on_admin(self) -> None:
        assert can_act_on_role(Role.OWNER, Role.ADMIN) is True

    def test_admin_cannot_act_on_owner(self) -> None:
        assert can_act_on_role(Role.ADMIN, Role.OWNER) is False

    def test_peers_cannot_act_on_each_other(self) -> None:
        assert can_act_on_role(Role.MEMBER, Role.MEMBER) is False
        assert can_act_on_role(Role.OWNER, Role.OWNER) is False

    def test_nobody_can_assign_owner(self) -> None:
        """Owner is never assignable: no role strictly outranks it."""
        assert not any(can_assign_role(actor, Role.OWNER) for actor in ALL_ROLES)

    def test_admin_can_assign_member_not_admin(self) -> None:
        assert can_assign_role(Role.ADMIN, Role.MEMBER) is True
        assert can_assign_role(Role.ADMIN, Role.ADMIN) is False

    def test_accepts_plain_strings(self) -> None:
        assert can_act_on_role("owner", "viewer") is True

    @pytest.mark.parametrize(
        ("role", "accepted"),
        [(Role.VIEWER, False), (Role.MEMBER, True), (Role.ADMIN, True), (Role.OWNER, True)],
    )
    def test_meets_minimum_role_member(self, role: Role, accepted: bool) -> None:
        assert default_engine.meets_minimum_role(role, Role.MEMBER) is accepted


class TestDefaultGrants:
    """Tests for the default role→permission table."""

    @pytest.mark.parametrize("permission", list(Permission))
    def test_owner_has_every_permission(self, permission: Permission) -> None:
        assert has_permission(Role.OWNER, permission)

    def test_viewer_cannot_create_data(self) -> None:
        assert has_permission(Role.VIEWER, Permission.DATA_CREATE) is False

    def test_member_can_create_data(self) -> None:
        assert has_permission(Role.MEMBER, Permission.DATA_CREATE) is True

    def test_only_owner_updates_workspace(self) -> None:
        holders = [r for r in ALL_ROLES if has_permission(r, Permission.WORKSPACE_UPDATE)]
        assert holders == [Role.OWNER]

    def test_member_management_starts_at_admin(self) -> None:
        assert not has_permission(Role.MEMBER, Permission.MEMBER_INVITE)
        assert has_permission(Role.ADMIN, Permission.MEMBER_INVITE)

    def test_viewer_cannot_see_api_keys(self) -> None:
        assert not has_permission(Role.VIEWER, Permission.API_KEYS_VIEW)

    def test_permissions_are_monotonic(self) -> None:
        sets = [get_role_permissions(r) for r in ALL_ROLES]
        assert sets[0] <= sets[1] <= sets[2] <= sets[3]

    def test_every_role_can_view_workspace(self) -> None:
        assert all(has_permission(r, Permission.WORKSPACE_VIEW) for r in ALL_ROLES)

    def test_role_permissions_are_immutable(self) -> None:
        permissions = get_role_permissions(Role.VIEWER)
        assert isinstance(permissions, frozenset)

    def test_table_mapping_is_read_only(self) -> None:
        with pytest.raises(TypeError):
            DEFAULT_PERMISSION_TABLE.grants[Role.VIEWER] = frozenset(Permission)  # type: ignore[index]

    def test_has_all_and_any(self) -> None:
        engine = default_engine
        assert engine.has_all_permissions(Role.ADMIN, [Permission.MEMBER_INVITE, Permission.DATA_DELETE])
        assert not engine.has_all_permissions(Role.MEMBER, [Permission.DATA_CREATE, Permission.DATA_DELETE])
        assert engine.has_any_permission(Role.MEMBER, [Permission.DATA_CREATE, Permission.DATA_DELETE])
        assert not engine.has_any_permission(Role.VIEWER, [Permission.DATA_CREATE])


class TestPermissionTableInvariants:
    """A table that breaks the hierarchy is rejected at construction."""

    def test_missing_role_is_rejected(self) -> None:
        grants = {r: frozenset({Permission.WORKSPACE_VIEW}) for r in ALL_ROLES if r != Role.ADMIN}
        with pytest.raises(PermissionTableError, match="missing roles"):
            PermissionTable(grants=grants)

    def test_missing_baseline_is_rejected(self) -> None:
        grants = {r: frozenset({Permission.DATA_VIEW}) for r in ALL_ROLES}
        with pytest.raises(PermissionTableError, match="baseline"):
            PermissionTable(grants=grants)

    def test_non_monotonic_table_is_rejected(self) -> None:
        grants = {r: frozenset({Permission.WORKSPACE_VIEW}) for r in ALL_ROLES}
        grants[Role.MEMBER] = frozenset({Permission.WORKSPACE_VIEW, Permission.DATA_CREATE})
        with pytest.raises(PermissionTableError, match="must include"):
            PermissionTable(grants=grants)

    def test_string_role_keys_are_rejected(self) -> None:
        grants = {r: frozenset({Permission.WORKSPACE_VIEW}) for r in ALL_ROLES}
        grants["superuser"] = frozenset({Permission.WORKSPACE_VIEW})
        with pytest.raises(PermissionTableError, match="non-Role keys"):
            PermissionTable(grants=grants)

    def test_plain_string_role_key_is_rejected_even_when_it_names_a_role(self) -> None:
        grants = {r.value: frozenset({Permission.WORKSPACE_VIEW}) for r in ALL_ROLES}
        with pytest.raises(PermissionTableError, match="non-Role keys"):
            PermissionTable(grants=grants)

    def test_values_outside_permission_are_rejected(self) -> None:
        grants = {r: frozenset({Permission.WORKSPACE_VIEW}) for r in ALL_ROLES}
        grants[Role.OWNER] = frozenset({Permission.WORKSPACE_VIEW, "BILLING_ADMIN"})
        with pytest.raises(PermissionTableError, match="outside Permission"):
            PermissionTable(grants=grants)

    def test_from_grants_rejects_unknown_names(self) -> None:
        with pytest.raises(ValueError):
            PermissionTable.from_grants({"NOT_A_PERMISSION": ["owner"]})

    def test_default_table_is_built_from_default_grants(self) -> None:
        assert PermissionTable.from_grants(DEFAULT_GRANTS) == DEFAULT_PERMISSION_TABLE


class TestInjectedEngine:
    """Engines decide over whatever table they are given."""

    def test_alternate_table(self) -> None:
        everyone = list(ALL_ROLES)
        table = PermissionTable.from_grants(
            {
                Permission.WORKSPACE_VIEW: everyone,
                Permission.DATA_CREATE: everyone,
            },
            version="test",
        )
        engine = AuthorizationEngine(table)

        assert engine.has_permission(Role.VIEWER, Permission.DATA_CREATE)
        assert not engine.has_permission(Role.OWNER, Permission.DATA_DELETE)
        assert engine.table.version == "test"
        # Hierarchy predicates do not depend on the table
        assert engine.can_act_on_role(Role.ADMIN, Role.MEMBER)
