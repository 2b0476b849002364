"""
Core dependencies: per-request Supabase client, auth store, and route protection
"""

from fastapi import Depends, HTTPException, Request, status
from supabase import AsyncClient
from typing import AsyncIterator, Iterable, Optional
import logging

from admindash.database.cookie_storage import CookieStorage
from admindash.database.supabase_client import SupabaseClient
from admindash.modules.auth.guards import GuardOutcome, RouteGuard
from admindash.modules.auth.resolver import AccessResolver
from admindash.modules.auth.session import SessionProvider
from admindash.modules.auth.store import AuthStore
from admindash.modules.users.service import ProfileService

logger = logging.getLogger(__name__)


def get_cookie_storage(request: Request) -> CookieStorage:
    """Request-scoped cookie storage; the session cookie middleware flushes it onto the response."""
    storage = getattr(request.state, "cookie_storage", None)
    if storage is None:
        storage = CookieStorage(request.cookies)
        request.state.cookie_storage = storage
    return storage


async def get_supabase(storage: CookieStorage = Depends(get_cookie_storage)) -> AsyncClient:
    return await SupabaseClient.create_client(storage)


def get_session_provider(supabase: AsyncClient = Depends(get_supabase)) -> SessionProvider:
    return SessionProvider(supabase)


def get_profile_service(supabase: AsyncClient = Depends(get_supabase)) -> ProfileService:
    return ProfileService(supabase)


def get_access_resolver(
    supabase: AsyncClient = Depends(get_supabase),
    profile_service: ProfileService = Depends(get_profile_service)
) -> AccessResolver:
    return AccessResolver(supabase, profile_service)


async def get_auth_store(
    session_provider: SessionProvider = Depends(get_session_provider),
    resolver: AccessResolver = Depends(get_access_resolver)
) -> AsyncIterator[AuthStore]:
    """Auth store for this request, initialized from the session cookie and closed afterwards"""
    async with AuthStore(session_provider, resolver) as store:
        yield store


def require_access(
    allowed_roles: Optional[Iterable[str]] = None,
    required_permissions: Optional[Iterable[str]] = None,
    require_all: bool = True
):
    """Factory function to create a route guard dependency"""
    guard = RouteGuard(allowed_roles, required_permissions, require_all)

    async def check_access(store: AuthStore = Depends(get_auth_store)) -> AuthStore:
        outcome = guard.decide(await store.settled())
        if outcome is GuardOutcome.ALLOWED:
            return store
        if outcome is GuardOutcome.UNAUTHENTICATED:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Not authenticated"
            )
        if outcome is GuardOutcome.DENIED:
            user_id = store.state.session.user_id if store.state.session else None
            logger.info(f"Access denied for user {user_id}: roles={guard.allowed_roles}, permissions={guard.required_permissions}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied"
            )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="User data is still loading"
        )
    return check_access


def require_role(*roles: str):
    return require_access(allowed_roles=roles)


def require_permission(*permissions: str, require_all: bool = True):
    return require_access(required_permissions=permissions, require_all=require_all)
