"""Workspace roles, permissions and the authorization engine."""

from src.lambdas.shared.auth.enums import (
    ROLE_RANK,
    VALID_PERMISSIONS,
    VALID_ROLES,
    Permission,
    Role,
)
from src.lambdas.shared.auth.permissions import (
    DEFAULT_PERMISSION_TABLE,
    AuthorizationEngine,
    PermissionTable,
    can_act_on_role,
    can_assign_role,
    default_engine,
    get_role_permissions,
    has_permission,
)

__all__ = [
    "DEFAULT_PERMISSION_TABLE",
    "ROLE_RANK",
    "VALID_PERMISSIONS",
    "VALID_ROLES",
    "AuthorizationEngine",
    "Permission",
    "PermissionTable",
    "Role",
    "can_act_on_role",
    "can_assign_role",
    "default_engine",
    "get_role_permissions",
    "has_permission",
]
