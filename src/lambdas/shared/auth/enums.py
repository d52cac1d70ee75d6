"""Canonical enum definitions for workspace RBAC.

This module defines the valid workspace roles and the closed set of
permissions used throughout the application. Roles are validated at
decoration time to catch typos early.

All auth-related enums should be defined here to ensure a single source of truth.
"""

from __future__ import annotations

from enum import StrEnum


class Role(StrEnum):
    """Workspace roles, lowest to highest privilege.

    Roles form a total order:
    - viewer: read-only access to workspace data
    - member: can create and edit data
    - admin: can manage members, settings and API keys
    - owner: full control, including workspace deletion
    """

    VIEWER = "viewer"
    MEMBER = "member"
    ADMIN = "admin"
    OWNER = "owner"


class Permission(StrEnum):
    """Atomic capabilities granted by roles. Not ordered among themselves."""

    # Workspace management
    WORKSPACE_VIEW = "WORKSPACE_VIEW"
    WORKSPACE_UPDATE = "WORKSPACE_UPDATE"
    WORKSPACE_DELETE = "WORKSPACE_DELETE"

    # Member management
    MEMBER_VIEW = "MEMBER_VIEW"
    MEMBER_INVITE = "MEMBER_INVITE"
    MEMBER_REMOVE = "MEMBER_REMOVE"
    MEMBER_ROLE_CHANGE = "MEMBER_ROLE_CHANGE"

    # Product and duty data
    DATA_VIEW = "DATA_VIEW"
    DATA_CREATE = "DATA_CREATE"
    DATA_UPDATE = "DATA_UPDATE"
    DATA_DELETE = "DATA_DELETE"
    DATA_EXPORT = "DATA_EXPORT"

    # Settings
    SETTINGS_VIEW = "SETTINGS_VIEW"
    SETTINGS_UPDATE = "SETTINGS_UPDATE"

    # API keys
    API_KEYS_VIEW = "API_KEYS_VIEW"
    API_KEYS_CREATE = "API_KEYS_CREATE"
    API_KEYS_UPDATE = "API_KEYS_UPDATE"
    API_KEYS_DELETE = "API_KEYS_DELETE"

    # Classification review queue
    REVIEW_VIEW = "REVIEW_VIEW"
    REVIEW_APPROVE = "REVIEW_APPROVE"
    REVIEW_REJECT = "REVIEW_REJECT"

    # Analytics and reports
    ANALYTICS_VIEW = "ANALYTICS_VIEW"
    REPORTS_GENERATE = "REPORTS_GENERATE"

    # Import/Export
    IMPORT_DATA = "IMPORT_DATA"
    EXPORT_DATA = "EXPORT_DATA"


# Rank used for every hierarchy comparison
ROLE_RANK: dict[Role, int] = {
    Role.VIEWER: 1,
    Role.MEMBER: 2,
    Role.ADMIN: 3,
    Role.OWNER: 4,
}

# Every role must hold this permission
BASELINE_PERMISSION = Permission.WORKSPACE_VIEW

# Immutable sets for O(1) validation at decoration time
VALID_ROLES: frozenset[str] = frozenset(role.value for role in Role)
VALID_PERMISSIONS: frozenset[str] = frozenset(p.value for p in Permission)
