"""Workspace and member management Lambda."""
