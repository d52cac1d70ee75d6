"""Configuration-time authorization errors.

These exceptions indicate programming mistakes (a typo in a role or
permission name, an inconsistent permission table) and are raised while
modules are imported, so the Lambda fails to start instead of silently
denying or granting access per request.
"""

from __future__ import annotations


class InvalidRoleError(ValueError):
    """Raised at decoration time for invalid role parameters."""

    def __init__(self, role: str, valid_roles: frozenset[str]) -> None:
        self.role = role
        self.valid_roles = valid_roles
        super().__init__(f"Invalid role '{role}'. Valid roles: {sorted(valid_roles)}")


class InvalidPermissionError(ValueError):
    """Raised at decoration time for unknown permission names."""

    def __init__(self, permission: str, valid_permissions: frozenset[str]) -> None:
        self.permission = permission
        self.valid_permissions = valid_permissions
        super().__init__(
            f"Invalid permission '{permission}'. "
            f"Valid permissions: {sorted(valid_permissions)}"
        )


class PermissionTableError(ValueError):
    """Raised when a role→permission table violates its invariants."""
