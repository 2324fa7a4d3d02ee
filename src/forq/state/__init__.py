"""Persistent state for forq."""

from forq.state.permissions import PermissionRecord, PermissionStore, PermissionType

__all__ = ["PermissionRecord", "PermissionStore", "PermissionType"]
