"""
Permission checks over an AuthState snapshot.

All functions are pure: no I/O, no caching beyond the snapshot itself. An empty
requirement list is always satisfied, by has_all_permissions and has_any_permission alike.
"""

from typing import Iterable

from admindash.modules.auth.schemas import AuthState

ADMIN_ROLE = "admin"
MANAGER_ROLE = "manager"


def has_role(state: AuthState, role_name: str) -> bool:
    return state.role is not None and state.role.name == role_name


def has_permission(state: AuthState, permission_name: str) -> bool:
    return permission_name in state.permissions


def has_all_permissions(state: AuthState, required: Iterable[str]) -> bool:
    return all(permission in state.permissions for permission in required)


def has_any_permission(state: AuthState, required: Iterable[str]) -> bool:
    required = list(required)
    if not required:
        return True
    return any(permission in state.permissions for permission in required)


def can_access(state: AuthState, required: Iterable[str]) -> bool:
    return has_all_permissions(state, required)


def is_admin(state: AuthState) -> bool:
    return has_role(state, ADMIN_ROLE)


def is_manager_or_admin(state: AuthState) -> bool:
    return has_role(state, ADMIN_ROLE) or has_role(state, MANAGER_ROLE)
