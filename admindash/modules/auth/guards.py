"""
Guards built on the permission evaluator.

RouteGuard decides whether a dashboard route answers: unauthenticated callers are sent to
login, authenticated but unauthorized callers get an in-place "Access denied".
RoleGate and PermissionGate decide whether a piece of content is shown.

While the store is loading every guard stays neutral: LOADING for routes, None for gates.
An empty requirement list never restricts anything.
"""

from enum import Enum
from typing import Any, Iterable, List, Optional

from admindash.modules.auth import evaluator
from admindash.config.navigation import NavigationItem, SettingsTab
from admindash.modules.auth.schemas import AuthState, NavigationEntry


class GuardOutcome(str, Enum):
    LOADING = "loading"
    UNAUTHENTICATED = "unauthenticated"
    DENIED = "denied"
    ALLOWED = "allowed"


def _check_permissions(state: AuthState, required: List[str], require_all: bool) -> bool:
    if require_all:
        return evaluator.can_access(state, required)
    return evaluator.has_any_permission(state, required)


def _check_roles(state: AuthState, allowed_roles: List[str], require_all: bool) -> bool:
    if not allowed_roles:
        return True
    if require_all:
        # A user holds one role, so this only passes for a single-entry list
        return all(evaluator.has_role(state, role) for role in allowed_roles)
    return any(evaluator.has_role(state, role) for role in allowed_roles)


class RouteGuard:
    def __init__(
        self,
        allowed_roles: Optional[Iterable[str]] = None,
        required_permissions: Optional[Iterable[str]] = None,
        require_all_permissions: bool = True,
    ):
        self.allowed_roles = list(allowed_roles or [])
        self.required_permissions = list(required_permissions or [])
        self.require_all_permissions = require_all_permissions

    def decide(self, state: AuthState) -> GuardOutcome:
        if state.loading:
            return GuardOutcome.LOADING
        if not state.is_authenticated:
            return GuardOutcome.UNAUTHENTICATED
        if not _check_roles(state, self.allowed_roles, require_all=False):
            return GuardOutcome.DENIED
        if not _check_permissions(state, self.required_permissions, self.require_all_permissions):
            return GuardOutcome.DENIED
        return GuardOutcome.ALLOWED


class RoleGate:
    def __init__(self, allowed_roles: Iterable[str], require_all: bool = False, fallback: Any = None):
        self.allowed_roles = list(allowed_roles)
        self.require_all = require_all
        self.fallback = fallback

    def allows(self, state: AuthState) -> bool:
        return not state.loading and _check_roles(state, self.allowed_roles, self.require_all)

    def render(self, state: AuthState, content: Any) -> Any:
        if state.loading:
            return None
        return content if self.allows(state) else self.fallback


class PermissionGate:
    def __init__(self, required_permissions: Iterable[str], require_all: bool = True, fallback: Any = None):
        self.required_permissions = list(required_permissions)
        self.require_all = require_all
        self.fallback = fallback

    def allows(self, state: AuthState) -> bool:
        return not state.loading and _check_permissions(state, self.required_permissions, self.require_all)

    def render(self, state: AuthState, content: Any) -> Any:
        if state.loading:
            return None
        return content if self.allows(state) else self.fallback


def visible_navigation(state: AuthState, items: Iterable[NavigationItem]) -> List[NavigationEntry]:
    """Sidebar entries the user may see; a parent hidden by its gate hides its children too"""
    entries = []
    for item in items:
        entry = NavigationEntry(
            name=item.name,
            path=item.path,
            children=visible_navigation(state, item.children),
        )
        entry = RoleGate(item.allowed_roles).render(state, entry)
        entry = PermissionGate(item.required_permissions, item.require_all).render(state, entry)
        if entry is not None:
            entries.append(entry)
    return entries


def visible_settings_tabs(state: AuthState, tabs: Iterable[SettingsTab]) -> List[str]:
    return [tab.id for tab in tabs if RoleGate(tab.allowed_roles).allows(state)]
