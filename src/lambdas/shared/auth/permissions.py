"""Role→permission table and the authorization engine.

The table is an immutable value built once at import time and injected
into ``AuthorizationEngine``. Tests and alternate deployments can build
their own table with ``PermissionTable.from_grants``; the constructor
rejects any table that breaks the role hierarchy.

Usage:
    from src.lambdas.shared.auth.permissions import default_engine

    if not default_engine.has_permission(role, Permission.DATA_CREATE):
        raise forbidden(...)
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from src.lambdas.shared.auth.enums import (
    BASELINE_PERMISSION,
    ROLE_RANK,
    Permission,
    Role,
)
from src.lambdas.shared.errors.auth_errors import PermissionTableError

# Roles in ascending rank
ROLES_ASCENDING: tuple[Role, ...] = tuple(sorted(Role, key=ROLE_RANK.__getitem__))


@dataclass(frozen=True)
class PermissionTable:
    """Immutable mapping from role to the permissions it grants.

    Invariants (checked at construction):
    - every role has an entry
    - every role holds the baseline permission
    - grants are monotonic: a lower role's set is a subset of every
      higher role's set
    """

    grants: Mapping[Role, frozenset[Permission]]
    version: str = "1"

    def __post_init__(self) -> None:
        # StrEnum members hash like their values, so plain strings would
        # otherwise slip through the membership checks below
        unknown_roles = [key for key in self.grants if not isinstance(key, Role)]
        if unknown_roles:
            raise PermissionTableError(f"Permission table has non-Role keys: {unknown_roles!r}")

        for role, permissions in self.grants.items():
            unknown = [p for p in permissions if not isinstance(p, Permission)]
            if unknown:
                raise PermissionTableError(
                    f"Role '{role}' has values outside Permission: {unknown!r}"
                )

        missing = [role.value for role in Role if role not in self.grants]
        if missing:
            raise PermissionTableError(f"Permission table missing roles: {missing}")

        for role in Role:
            if BASELINE_PERMISSION not in self.grants[role]:
                raise PermissionTableError(
                    f"Role '{role}' lacks baseline permission {BASELINE_PERMISSION}"
                )

        for lower, higher in zip(ROLES_ASCENDING, ROLES_ASCENDING[1:]):
            not_inherited = self.grants[lower] - self.grants[higher]
            if not_inherited:
                raise PermissionTableError(
                    f"Role '{higher}' must include every permission of '{lower}'; "
                    f"missing {sorted(p.value for p in not_inherited)}"
                )

        object.__setattr__(self, "grants", MappingProxyType(dict(self.grants)))

    @classmethod
    def from_grants(
        cls,
        grants: Mapping[Permission | str, Iterable[Role | str]],
        version: str = "1",
    ) -> PermissionTable:
        """Build a table from a permission → roles mapping.

        This is the shape the grants are easiest to review in: one line per
        permission listing the roles that hold it. Unknown role or
        permission names raise ``ValueError``.
        """
        by_role: dict[Role, set[Permission]] = {role: set() for role in Role}
        for permission, roles in grants.items():
            perm = Permission(permission)
            for role in roles:
                by_role[Role(role)].add(perm)
        return cls(
            grants={role: frozenset(perms) for role, perms in by_role.items()},
            version=version,
        )

    def permissions_for(self, role: Role) -> frozenset[Permission]:
        return self.grants[role]


_ALL = (Role.OWNER, Role.ADMIN, Role.MEMBER, Role.VIEWER)
_CONTRIBUTORS = (Role.OWNER, Role.ADMIN, Role.MEMBER)
_ADMINS = (Role.OWNER, Role.ADMIN)
_OWNERS = (Role.OWNER,)

DEFAULT_GRANTS: dict[Permission, tuple[Role, ...]] = {
    # Workspace management
    Permission.WORKSPACE_VIEW: _ALL,
    Permission.WORKSPACE_UPDATE: _OWNERS,
    Permission.WORKSPACE_DELETE: _OWNERS,
    # Member management
    Permission.MEMBER_VIEW: _ALL,
    Permission.MEMBER_INVITE: _ADMINS,
    Permission.MEMBER_REMOVE: _ADMINS,
    Permission.MEMBER_ROLE_CHANGE: _ADMINS,
    # Data management
    Permission.DATA_VIEW: _ALL,
    Permission.DATA_CREATE: _CONTRIBUTORS,
    Permission.DATA_UPDATE: _CONTRIBUTORS,
    Permission.DATA_DELETE: _ADMINS,
    Permission.DATA_EXPORT: _CONTRIBUTORS,
    # Settings management
    Permission.SETTINGS_VIEW: _ALL,
    Permission.SETTINGS_UPDATE: _ADMINS,
    # API keys management
    Permission.API_KEYS_VIEW: _ADMINS,
    Permission.API_KEYS_CREATE: _ADMINS,
    Permission.API_KEYS_UPDATE: _ADMINS,
    Permission.API_KEYS_DELETE: _ADMINS,
    # Review queue management
    Permission.REVIEW_VIEW: _ALL,
    Permission.REVIEW_APPROVE: _CONTRIBUTORS,
    Permission.REVIEW_REJECT: _CONTRIBUTORS,
    # Analytics and reports
    Permission.ANALYTICS_VIEW: _ALL,
    Permission.REPORTS_GENERATE: _CONTRIBUTORS,
    # Import/Export
    Permission.IMPORT_DATA: _CONTRIBUTORS,
    Permission.EXPORT_DATA: _CONTRIBUTORS,
}

DEFAULT_PERMISSION_TABLE = PermissionTable.from_grants(DEFAULT_GRANTS)


class AuthorizationEngine:
    """Pure role/permission decisions over an injected table.

    No I/O and no mutable state; one instance is safe to share across
    requests and threads.
    """

    def __init__(self, table: PermissionTable = DEFAULT_PERMISSION_TABLE) -> None:
        self._table = table

    @property
    def table(self) -> PermissionTable:
        return self._table

    def has_permission(self, role: Role, permission: Permission) -> bool:
        return Permission(permission) in self._table.permissions_for(Role(role))

    def has_all_permissions(self, role: Role, permissions: Iterable[Permission]) -> bool:
        granted = self._table.permissions_for(Role(role))
        return all(Permission(p) in granted for p in permissions)

    def has_any_permission(self, role: Role, permissions: Iterable[Permission]) -> bool:
        granted = self._table.permissions_for(Role(role))
        return any(Permission(p) in granted for p in permissions)

    def can_act_on_role(self, actor_role: Role, target_role: Role) -> bool:
        """True iff the actor strictly outranks the target.

        Equal ranks return False: no lateral action between peers.
        """
        return ROLE_RANK[Role(actor_role)] > ROLE_RANK[Role(target_role)]

    def can_assign_role(self, actor_role: Role, role_to_assign: Role) -> bool:
        """True iff the actor may grant ``role_to_assign`` (strictly below own).

        Same predicate as ``can_act_on_role``; guards invitations and role
        changes rather than actions on an existing member.
        """
        return ROLE_RANK[Role(actor_role)] > ROLE_RANK[Role(role_to_assign)]

    def meets_minimum_role(self, role: Role, required_role: Role) -> bool:
        """Minimum-rank check used by route guards (``>=``, not ``>``)."""
        return ROLE_RANK[Role(role)] >= ROLE_RANK[Role(required_role)]

    def get_role_permissions(self, role: Role) -> frozenset[Permission]:
        return self._table.permissions_for(Role(role))


default_engine = AuthorizationEngine()


def has_permission(role: Role, permission: Permission) -> bool:
    return default_engine.has_permission(role, permission)


def can_act_on_role(actor_role: Role, target_role: Role) -> bool:
    return default_engine.can_act_on_role(actor_role, target_role)


def can_assign_role(actor_role: Role, role_to_assign: Role) -> bool:
    return default_engine.can_assign_role(actor_role, role_to_assign)


def get_role_permissions(role: Role) -> frozenset[Permission]:
    return default_engine.get_role_permissions(role)
