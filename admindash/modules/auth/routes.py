from fastapi import APIRouter, Depends, HTTPException, status

from admindash.config.navigation import NAVIGATION, SETTINGS_TABS
from admindash.core.dependencies import get_auth_store, get_session_provider, require_access
from admindash.core.errors import BackendError, ErrorKind
from admindash.modules.auth import evaluator
from admindash.modules.auth.guards import visible_navigation, visible_settings_tabs
from admindash.modules.auth.schemas import (
    AuthState, CurrentUserResponse, LoginRequest, PasswordChangeRequest
)
from admindash.modules.auth.session import SessionProvider
from admindash.modules.auth.store import AuthStore

router = APIRouter(prefix="/auth", tags=["auth"])


def build_current_user(state: AuthState) -> CurrentUserResponse:
    """Current user payload with the sidebar and settings tabs already filtered by role and permission"""
    return CurrentUserResponse(
        user=state.user,
        role=state.role,
        permissions=state.permissions,
        session=state.session,
        error=state.error,
        is_admin=evaluator.is_admin(state),
        is_manager_or_admin=evaluator.is_manager_or_admin(state),
        navigation=visible_navigation(state, NAVIGATION),
        settings_tabs=visible_settings_tabs(state, SETTINGS_TABS),
    )


@router.post("/login", response_model=CurrentUserResponse)
async def login(
    login_data: LoginRequest,
    session_provider: SessionProvider = Depends(get_session_provider),
    store: AuthStore = Depends(get_auth_store)
):
    """Sign in; the session cookie is set on the response"""
    try:
        await session_provider.sign_in_with_password(login_data.email, login_data.password)
    except BackendError as e:
        if e.kind is ErrorKind.ACCESS_DENIED:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.message)
        raise
    return build_current_user(await store.settled())


@router.post("/logout", status_code=200)
async def logout(
    session_provider: SessionProvider = Depends(get_session_provider),
    store: AuthStore = Depends(get_auth_store)
):
    """Sign out and clear the session cookie"""
    await session_provider.sign_out()
    store.logout()
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=CurrentUserResponse)
async def get_current_user(store: AuthStore = Depends(require_access())):
    """Current user, role, permissions and what the dashboard may show them"""
    return build_current_user(store.state)


@router.post("/refresh", response_model=CurrentUserResponse)
async def refresh_current_user(store: AuthStore = Depends(require_access())):
    """Re-resolve role and permissions, e.g. after an admin changed them"""
    return build_current_user(await store.refresh_user())


@router.post("/password", status_code=200)
async def change_password(
    password_data: PasswordChangeRequest,
    store: AuthStore = Depends(require_access()),
    session_provider: SessionProvider = Depends(get_session_provider)
):
    await session_provider.update_password(password_data.new_password)
    return {"message": "Password updated successfully"}
