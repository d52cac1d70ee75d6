"""Shared models for workspace management.

This module exports the entity models stored in the workspaces table:
- Workspace: A tenant workspace
- WorkspaceMember: A user's membership and role in a workspace
- ApiKey: A workspace-scoped API key (hash only)
- UserProfile: A registered user (looked up by email for invitations)
- UserPreferences: Per-user settings such as the current workspace
"""

from src.lambdas.shared.models.api_key import ApiKey
from src.lambdas.shared.models.user import UserPreferences, UserProfile
from src.lambdas.shared.models.workspace import Workspace, WorkspaceMember

__all__ = [
    "ApiKey",
    "UserPreferences",
    "UserProfile",
    "Workspace",
    "WorkspaceMember",
]
