"""
Resolution of a user's profile, role and effective permission set.

The preferred path is a single query on user_profiles embedding
user_roles -> roles -> role_permissions -> permissions. When the schema lacks the foreign
keys PostgREST needs for that embedding (PGRST200), or the joined query fails for any other
non-degrading reason, the same result is assembled from three sequential queries.

Read failures never propagate: an unreadable profile (RLS block or timeout) yields a
synthesized profile with no role and no permissions, so the dashboard shell stays usable.
"""

import logging
import time
from typing import Any, Iterable, List, Optional

from supabase import AsyncClient

from admindash.config import settings
from admindash.core.errors import DEGRADE_KINDS, BackendError, ErrorKind, to_backend_error, with_timeout
from admindash.modules.auth.schemas import ResolvedAccess
from admindash.modules.roles.schemas import Role
from admindash.modules.users.schemas import UserProfile
from admindash.modules.users.service import ProfileService

logger = logging.getLogger(__name__)

JOINED_COLUMNS = """
    id,
    full_name,
    phone,
    avatar_url,
    user_roles (
        role_id,
        roles (
            id,
            name,
            display_name,
            description,
            role_permissions (
                permissions (
                    name,
                    category,
                    description
                )
            )
        )
    )
"""
ROLE_COLUMNS = "role_id, roles(id, name, display_name, description)"
ROLE_PERMISSION_COLUMNS = "permissions(name, category, description)"


def _as_list(value: Any) -> list:
    # PostgREST embeds to-one relations as objects and to-many as arrays
    if value is None:
        return []
    if isinstance(value, dict):
        return [value]
    return list(value)


def _first(value: Any) -> Optional[dict]:
    items = _as_list(value)
    return items[0] if items else None


def _role_from_row(row: dict) -> Role:
    return Role(
        id=row.get("id"),
        name=row["name"],
        display_name=row.get("display_name"),
        description=row.get("description"),
    )


def flatten_permission_names(role_permission_rows: Iterable[dict]) -> List[str]:
    """Permission names in row order; rows without a name are dropped, duplicates are kept."""
    names = []
    for row in role_permission_rows:
        permission = _first(row.get("permissions"))
        if permission and permission.get("name"):
            names.append(permission["name"])
    return names


class AccessResolver:
    def __init__(
        self,
        supabase: AsyncClient,
        profile_service: Optional[ProfileService] = None,
        query_timeout: Optional[float] = None,
    ):
        self.supabase = supabase
        self.profiles = profile_service or ProfileService(supabase)
        self.query_timeout = settings.query_timeout_seconds if query_timeout is None else query_timeout

    async def resolve(self, user_id: str, email: Optional[str]) -> ResolvedAccess:
        """Resolve {user, role, permissions} for a signed-in user. Never raises for read failures."""
        started = time.perf_counter()
        try:
            access = await self._resolve_joined(user_id, email)
        except BackendError as e:
            if e.kind in DEGRADE_KINDS:
                logger.error(f"Access query blocked ({e.kind.value}) for user {user_id}: {e.message}")
                return ResolvedAccess.unprivileged(user_id, email, e.kind)
            if e.kind is ErrorKind.MISSING_RELATIONSHIP:
                logger.warning("Foreign key relationships missing, falling back to sequential queries")
            else:
                logger.warning(f"Joined access query failed ({e.kind.value}), falling back to sequential queries")
            access = await self.resolve_sequential(user_id, email)

        logger.debug(
            f"Access resolved for user {user_id} in {(time.perf_counter() - started) * 1000:.2f}ms: "
            f"role={access.role.name if access.role else None}, permissions={len(access.permissions)}"
        )
        return access

    async def _resolve_joined(self, user_id: str, email: Optional[str]) -> ResolvedAccess:
        try:
            result = await with_timeout(
                self.supabase.table("user_profiles")
                .select(JOINED_COLUMNS)
                .eq("id", user_id)
                .single()
                .execute(),
                self.query_timeout,
            )
        except Exception as e:
            raise to_backend_error(e)

        row = result.data
        user = UserProfile.from_row(row, user_id, email)
        user_role = _first(row.get("user_roles"))
        role_row = _first(user_role.get("roles")) if user_role else None
        if not role_row:
            return ResolvedAccess(user=user)

        permissions = flatten_permission_names(_as_list(role_row.get("role_permissions")))
        return ResolvedAccess(user=user, role=_role_from_row(role_row), permissions=permissions)

    async def resolve_sequential(self, user_id: str, email: Optional[str]) -> ResolvedAccess:
        """Profile, then role, then role permissions, each as its own query."""
        try:
            profile_row = await self._fetch_or_provision_profile(user_id, email)
        except BackendError as e:
            logger.error(f"Profile fetch error ({e.kind.value}) for user {user_id}: {e.message}")
            return ResolvedAccess.unprivileged(user_id, email, e.kind)

        user = UserProfile.from_row(profile_row, user_id, email)

        role = await self.fetch_user_role(user_id)
        if role is None:
            logger.info(f"No role assigned to user {user_id}")
            return ResolvedAccess(user=user)

        try:
            permissions = await self.fetch_role_permission_names(role.id)
        except BackendError as e:
            if e.kind in DEGRADE_KINDS:
                logger.error(f"Permission query blocked ({e.kind.value}) for role {role.name}: {e.message}")
                return ResolvedAccess(user=user)
            logger.warning(f"Permission query failed ({e.kind.value}) for role {role.name}: {e.message}")
            permissions = []

        return ResolvedAccess(user=user, role=role, permissions=permissions)

    async def _fetch_or_provision_profile(self, user_id: str, email: Optional[str]) -> dict:
        try:
            return await self.profiles.fetch_profile(user_id)
        except BackendError as e:
            if e.kind is not ErrorKind.NOT_FOUND:
                raise

        logger.info(f"Creating user profile for {user_id}")
        try:
            await self.profiles.create_profile(user_id, email)
        except BackendError as e:
            logger.error(f"Failed to create profile for user {user_id}: {e.message}")

        # Exactly one retry
        return await self.profiles.fetch_profile(user_id)

    async def fetch_user_role(self, user_id: str) -> Optional[Role]:
        """The user's single role, or None when unassigned or unreadable"""
        try:
            result = await with_timeout(
                self.supabase.table("user_roles")
                .select(ROLE_COLUMNS)
                .eq("user_id", user_id)
                .maybe_single()
                .execute(),
                self.query_timeout,
            )
        except Exception as e:
            error = to_backend_error(e)
            logger.warning(f"Role fetch failed ({error.kind.value}) for user {user_id}: {error.message}")
            return None

        row = result.data if result is not None else None
        role_row = _first(row.get("roles")) if row else None
        return _role_from_row(role_row) if role_row else None

    async def fetch_role_permission_names(self, role_id: str) -> List[str]:
        try:
            result = await with_timeout(
                self.supabase.table("role_permissions")
                .select(ROLE_PERMISSION_COLUMNS)
                .eq("role_id", role_id)
                .execute(),
                self.query_timeout,
            )
        except Exception as e:
            raise to_backend_error(e)
        return flatten_permission_names(result.data or [])
