from fastapi import APIRouter, Depends, File, UploadFile

from admindash.core.dependencies import get_profile_service, require_access
from admindash.core.errors import BackendError
from admindash.modules.auth.store import AuthStore
from admindash.modules.users.schemas import AvatarUploadResponse, ProfileUpdate, UserProfile
from admindash.modules.users.service import ProfileService

router = APIRouter(prefix="/users", tags=["users"])


@router.put("/me", response_model=UserProfile)
async def update_my_profile(
    profile_data: ProfileUpdate,
    store: AuthStore = Depends(require_access()),
    service: ProfileService = Depends(get_profile_service)
):
    """Update own profile; the store is merged in place, role and permissions are not reloaded"""
    session = store.state.session
    profile = await service.update_profile(session.user_id, session.email, profile_data)
    store.update_user(**profile_data.changes())
    return store.state.user or profile


@router.post("/me/avatar", response_model=AvatarUploadResponse)
async def upload_my_avatar(
    file: UploadFile = File(...),
    store: AuthStore = Depends(require_access()),
    service: ProfileService = Depends(get_profile_service)
):
    """Upload a new avatar image (max 5MB) and point the profile at it"""
    session = store.state.session
    previous_url = store.state.user.avatar_url if store.state.user else None

    content = await file.read()
    avatar_url = await service.upload_avatar(
        session.user_id, file.filename or "avatar", content, file.content_type
    )
    try:
        await service.update_profile(session.user_id, session.email, ProfileUpdate(avatar_url=avatar_url))
    except BackendError:
        # Nothing points at the new object yet
        await service.remove_avatar(avatar_url)
        raise
    store.update_user(avatar_url=avatar_url)

    if previous_url:
        await service.remove_avatar(previous_url)
    return AvatarUploadResponse(avatar_url=avatar_url)
