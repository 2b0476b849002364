import asyncio
import logging
import weakref
from typing import Dict, Iterable, List, Optional

from supabase import AsyncClient

from admindash.core.errors import BackendError, ErrorKind, to_backend_error
from admindash.modules.roles.schemas import (
    Permission, Role, RoleCreate, RoleWithPermissionsResponse, UserRoleResponse
)
from admindash.modules.users.schemas import UserWithRole

logger = logging.getLogger(__name__)


class RoleLocks:
    """
    Per-role locks serializing replace-set writes issued from this process.

    A lock lives only while some writer holds or waits on it.
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def __len__(self) -> int:
        return len(self._locks)

    def for_role(self, role_id: str) -> asyncio.Lock:
        lock = self._locks.get(role_id)
        if lock is None:
            lock = self._locks[role_id] = asyncio.Lock()
        return lock


ROLE_LOCKS = RoleLocks()


class RoleService:
    def __init__(self, supabase: AsyncClient, locks: Optional[RoleLocks] = None):
        self.supabase = supabase
        self.locks = locks or ROLE_LOCKS

    async def list_roles(self) -> List[Role]:
        """List all roles ordered by name"""
        try:
            result = await self.supabase.table("roles")\
                .select("*")\
                .order("name")\
                .execute()
        except Exception as e:
            logger.error(f"Error fetching roles: {e}")
            raise to_backend_error(e)
        return [Role(**role) for role in result.data or []]

    async def list_permissions(self) -> List[Permission]:
        """List all permissions ordered by category, then name"""
        try:
            result = await self.supabase.table("permissions")\
                .select("*")\
                .order("category")\
                .order("name")\
                .execute()
        except Exception as e:
            logger.error(f"Error fetching permissions: {e}")
            raise to_backend_error(e)
        return [Permission(**permission) for permission in result.data or []]

    async def get_role_permissions(self, role_id: str) -> List[Permission]:
        """Get all permissions for a role"""
        try:
            result = await self.supabase.table("role_permissions")\
                .select("permission_id, permissions(id, name, description, category)")\
                .eq("role_id", role_id)\
                .execute()
        except Exception as e:
            logger.error(f"Error fetching permissions for role {role_id}: {e}")
            raise to_backend_error(e)

        permissions = []
        for item in result.data or []:
            if item.get("permissions"):
                permissions.append(Permission(**item["permissions"]))
        return permissions

    async def get_role_with_permissions(self, role_id: str) -> RoleWithPermissionsResponse:
        """Get role with all associated permissions"""
        try:
            role_result = await self.supabase.table("roles")\
                .select("*")\
                .eq("id", role_id)\
                .single()\
                .execute()
        except Exception as e:
            raise to_backend_error(e)

        permissions = await self.get_role_permissions(role_id)
        return RoleWithPermissionsResponse(**role_result.data, permissions=permissions)

    async def load_role_permission_map(self, roles: Iterable[Role]) -> Dict[str, List[Permission]]:
        """role_id -> permissions, one query per role issued concurrently. A failed role maps to []."""
        roles = list(roles)
        results = await asyncio.gather(
            *(self.get_role_permissions(role.id) for role in roles),
            return_exceptions=True,
        )
        permissions_map = {}
        for role, result in zip(roles, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning(f"Could not load permissions for role {role.name}: {result}")
                permissions_map[role.id] = []
            else:
                permissions_map[role.id] = result
        return permissions_map

    async def update_role_permissions(self, role_id: str, permission_ids: Iterable[str]) -> List[str]:
        """
        Replace the role's permission set with exactly permission_ids.

        Not atomic: rows are deleted, then the new set inserted. A failed insert leaves the
        role with no permissions. Writers from this process are serialized per role.
        """
        permission_ids = list(dict.fromkeys(permission_ids))
        async with self.locks.for_role(role_id):
            try:
                await self.supabase.table("role_permissions")\
                    .delete()\
                    .eq("role_id", role_id)\
                    .execute()
            except Exception as e:
                logger.error(f"Error deleting old permissions for role {role_id}: {e}")
                raise to_backend_error(e, ErrorKind.MUTATION_FAILED)

            if permission_ids:
                insert_data = [
                    {"role_id": role_id, "permission_id": pid}
                    for pid in permission_ids
                ]
                try:
                    await self.supabase.table("role_permissions").insert(insert_data).execute()
                except Exception as e:
                    logger.error(f"Error inserting new permissions for role {role_id}: {e}")
                    raise to_backend_error(e, ErrorKind.MUTATION_FAILED)

        logger.info(f"Role {role_id} now has {len(permission_ids)} permissions")
        return permission_ids

    async def assign_user_role(self, user_id: str, role_id: str) -> UserRoleResponse:
        """
        Make role_id the user's only role: existing assignments are deleted, then one inserted.
        A failed insert leaves the user without a role.
        """
        try:
            await self.supabase.table("user_roles")\
                .delete()\
                .eq("user_id", user_id)\
                .execute()
        except Exception as e:
            logger.error(f"Error removing existing roles for user {user_id}: {e}")
            raise to_backend_error(e, ErrorKind.MUTATION_FAILED)

        try:
            result = await self.supabase.table("user_roles").insert({
                "user_id": user_id,
                "role_id": role_id
            }).execute()
        except Exception as e:
            logger.error(f"Error assigning role {role_id} to user {user_id}, user is left without a role: {e}")
            raise to_backend_error(e, ErrorKind.MUTATION_FAILED)

        if not result.data:
            raise BackendError(ErrorKind.MUTATION_FAILED, "Failed to assign role")
        return UserRoleResponse(user_id=user_id, role_id=role_id)

    async def list_users_with_roles(self) -> List[UserWithRole]:
        """All profiles joined in memory with their role; needs no foreign key between the tables"""
        try:
            profiles = await self.supabase.table("user_profiles")\
                .select("id, full_name, phone, avatar_url")\
                .execute()
            user_roles = await self.supabase.table("user_roles")\
                .select("user_id, role_id, roles(id, name, display_name)")\
                .execute()
        except Exception as e:
            logger.error(f"Error fetching users with roles: {e}")
            raise to_backend_error(e)

        roles_by_user = {}
        for item in user_roles.data or []:
            if item.get("roles"):
                roles_by_user.setdefault(item["user_id"], Role(**item["roles"]))

        return [
            UserWithRole(**profile, role=roles_by_user.get(profile["id"]))
            for profile in profiles.data or []
        ]

    async def create_role(self, role_data: RoleCreate) -> Role:
        """Create a new role"""
        try:
            result = await self.supabase.table("roles").insert({
                "name": role_data.name,
                "display_name": role_data.display_name,
                "description": role_data.description
            }).execute()
        except Exception as e:
            logger.error(f"Error creating role: {e}")
            raise to_backend_error(e, ErrorKind.MUTATION_FAILED)

        if not result.data:
            raise BackendError(ErrorKind.MUTATION_FAILED, "Failed to create role")
        return Role(**result.data[0])

    async def delete_role(self, role_id: str) -> bool:
        """Delete role; its permission rows and user assignments go first"""
        async with self.locks.for_role(role_id):
            try:
                await self.supabase.table("role_permissions")\
                    .delete()\
                    .eq("role_id", role_id)\
                    .execute()
                await self.supabase.table("user_roles")\
                    .delete()\
                    .eq("role_id", role_id)\
                    .execute()
                result = await self.supabase.table("roles")\
                    .delete()\
                    .eq("id", role_id)\
                    .execute()
            except Exception as e:
                logger.error(f"Error deleting role {role_id}: {e}")
                raise to_backend_error(e, ErrorKind.MUTATION_FAILED)

        return len(result.data or []) > 0
