"""
Permission matrix editor: roles x permissions, as edited from the admin settings page.

A toggle flips the cell locally first, then persists the role's complete permission set
(replace-set write). When the write fails the cell is flipped back and an error message is
left for the caller to show.

Two admins editing the same role from different processes still race: each writes the full
set it currently sees, so the last write wins. Writers in one process are serialized per role
by RoleService.
"""

import logging
from typing import Dict, List, Optional, Set

from admindash.core.errors import BackendError, ErrorKind
from admindash.modules.roles.schemas import (
    EditorMessage, Permission, PermissionMatrixResponse, Role, UserRoleResponse
)
from admindash.modules.roles.service import RoleService

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "other"


class PermissionMatrix:
    def __init__(self, service: RoleService):
        self.service = service
        self.roles: List[Role] = []
        self.permissions: List[Permission] = []
        self.role_permissions: Dict[str, Set[str]] = {}
        self.message: Optional[EditorMessage] = None

    async def load(self) -> "PermissionMatrix":
        try:
            self.roles = await self.service.list_roles()
            self.permissions = await self.service.list_permissions()
            permission_map = await self.service.load_role_permission_map(self.roles)
        except BackendError as e:
            logger.error(f"Error loading permission matrix: {e.message}")
            self._error("Failed to load data")
            raise

        self.role_permissions = {
            role_id: {permission.id for permission in permissions}
            for role_id, permissions in permission_map.items()
        }
        return self

    def has_permission(self, role_id: str, permission_id: str) -> bool:
        return permission_id in self.role_permissions.get(role_id, set())

    async def toggle(self, role_id: str, permission_id: str) -> bool:
        """Flip one cell and persist the role's new set. Returns whether the role now holds it."""
        self._check_known(role_id, [permission_id])
        current = self.role_permissions.setdefault(role_id, set())
        granted = permission_id not in current
        if granted:
            current.add(permission_id)
        else:
            current.discard(permission_id)

        try:
            await self.service.update_role_permissions(role_id, self._ordered(current))
        except BackendError as e:
            logger.error(f"Error updating permission {permission_id} for role {role_id}: {e.message}")
            if granted:
                current.discard(permission_id)
            else:
                current.add(permission_id)
            self._error("Failed to update permission")
            raise

        self.message = EditorMessage(type="success", text="Permission updated successfully")
        return granted

    async def replace_permissions(self, role_id: str, permission_ids: List[str]) -> List[str]:
        """Persist exactly permission_ids as the role's set, after checking them against the catalogue"""
        self._check_known(role_id, permission_ids)
        try:
            written = await self.service.update_role_permissions(role_id, permission_ids)
        except BackendError:
            self._error("Failed to update permissions")
            raise

        self.role_permissions[role_id] = set(written)
        self.message = EditorMessage(type="success", text="Permissions updated successfully")
        return written

    async def assign_role(self, user_id: str, role_id: str) -> UserRoleResponse:
        if not user_id or not role_id:
            self._error("Please select both user and role")
            raise BackendError(ErrorKind.VALIDATION, "Please select both user and role")

        try:
            assignment = await self.service.assign_user_role(user_id, role_id)
        except BackendError:
            self._error("Failed to assign role")
            raise

        self.message = EditorMessage(type="success", text="Role assigned successfully")
        return assignment

    def grouped_permissions(self) -> Dict[str, List[Permission]]:
        grouped: Dict[str, List[Permission]] = {}
        for permission in self.permissions:
            grouped.setdefault(permission.category or DEFAULT_CATEGORY, []).append(permission)
        return grouped

    def snapshot(self) -> PermissionMatrixResponse:
        return PermissionMatrixResponse(
            roles=self.roles,
            permissions_by_category=self.grouped_permissions(),
            role_permissions={
                role_id: self._ordered(permission_ids)
                for role_id, permission_ids in self.role_permissions.items()
            },
            message=self.message,
        )

    def _ordered(self, permission_ids: Set[str]) -> List[str]:
        # Catalogue order first, unknown ids after in sorted order
        known = [p.id for p in self.permissions if p.id in permission_ids]
        return known + sorted(permission_ids.difference(known))

    def _check_known(self, role_id: str, permission_ids: List[str]) -> None:
        # Unknown ids would fail the insert after the delete and leave the role empty
        if role_id not in {role.id for role in self.roles}:
            self._error(f"Unknown role: {role_id}")
            raise BackendError(ErrorKind.VALIDATION, f"Unknown role: {role_id}")
        known = {permission.id for permission in self.permissions}
        unknown = [pid for pid in permission_ids if pid not in known]
        if unknown:
            self._error(f"Unknown permission: {', '.join(unknown)}")
            raise BackendError(ErrorKind.VALIDATION, f"Unknown permission: {', '.join(unknown)}")

    def _error(self, text: str) -> None:
        self.message = EditorMessage(type="error", text=text)
