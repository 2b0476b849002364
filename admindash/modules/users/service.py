import logging
import uuid
from typing import Optional

from supabase import AsyncClient

from admindash.config import settings
from admindash.core.errors import BackendError, ErrorKind, to_backend_error, with_timeout
from admindash.modules.users.schemas import ProfileUpdate, UserProfile, default_full_name

logger = logging.getLogger(__name__)

PROFILE_COLUMNS = "id, full_name, phone, avatar_url"


class ProfileService:
    def __init__(self, supabase: AsyncClient, timeout: Optional[float] = None):
        self.supabase = supabase
        self.timeout = settings.profile_timeout_seconds if timeout is None else timeout

    async def fetch_profile(self, user_id: str) -> dict:
        """Fetch the profile row; raises BackendError classified as NOT_FOUND, ACCESS_DENIED, TIMEOUT, ..."""
        try:
            result = await with_timeout(
                self.supabase.table("user_profiles")
                .select(PROFILE_COLUMNS)
                .eq("id", user_id)
                .single()
                .execute(),
                self.timeout,
            )
            return result.data
        except Exception as e:
            raise to_backend_error(e)

    async def create_profile(self, user_id: str, email: Optional[str]) -> dict:
        """Create the profile row for a first login, named after the email local part"""
        try:
            result = await self.supabase.table("user_profiles").insert({
                "id": user_id,
                "full_name": default_full_name(email),
                "phone": None,
                "avatar_url": None,
            }).execute()
            if not result.data:
                raise BackendError(ErrorKind.MUTATION_FAILED, "Failed to create user profile")
            logger.info(f"Created profile for user {user_id}")
            return result.data[0]
        except Exception as e:
            raise to_backend_error(e, ErrorKind.MUTATION_FAILED)

    async def update_profile(self, user_id: str, user_email: Optional[str], profile_data: ProfileUpdate) -> UserProfile:
        """Update profile fields that were explicitly provided"""
        changes = profile_data.changes()
        if not changes:
            raise BackendError(ErrorKind.VALIDATION, "No profile fields to update")

        try:
            existing = await self.supabase.table("user_profiles")\
                .select("id")\
                .eq("id", user_id)\
                .execute()
        except Exception as e:
            raise to_backend_error(e, ErrorKind.MUTATION_FAILED)
        if not existing.data:
            raise BackendError(ErrorKind.NOT_FOUND, f"Profile not found for user ID: {user_id}")

        try:
            result = await self.supabase.table("user_profiles")\
                .update(changes)\
                .eq("id", user_id)\
                .execute()
        except Exception as e:
            raise to_backend_error(e, ErrorKind.MUTATION_FAILED)
        if not result.data:
            raise BackendError(ErrorKind.MUTATION_FAILED, "Profile update was not applied")

        return UserProfile.from_row(result.data[0], user_id, user_email)

    async def upload_avatar(self, user_id: str, filename: str, content: bytes, content_type: Optional[str]) -> str:
        """Upload an avatar image and return its public URL"""
        validate_image(content, content_type)
        extension = filename.rsplit(".", 1)[-1] if "." in filename else "png"
        file_path = f"avatars/{user_id}-{uuid.uuid4().hex}.{extension}"
        bucket = self.supabase.storage.from_(settings.avatar_bucket)
        try:
            await bucket.upload(file_path, content, {"content-type": content_type})
            return await bucket.get_public_url(file_path)
        except Exception as e:
            logger.error(f"Avatar upload failed for user {user_id}: {e}")
            raise to_backend_error(e, ErrorKind.MUTATION_FAILED)

    async def remove_avatar(self, avatar_url: Optional[str]) -> bool:
        """Delete a previously uploaded avatar; returns False when it is not ours or removal fails"""
        marker = f"/object/public/{settings.avatar_bucket}/"
        if not avatar_url or marker not in avatar_url:
            return False
        path = avatar_url.split(marker, 1)[1].split("?", 1)[0]
        try:
            await self.supabase.storage.from_(settings.avatar_bucket).remove([path])
            return True
        except Exception as e:
            logger.error(f"Failed to remove avatar {path}: {e}")
            return False


def validate_image(content: bytes, content_type: Optional[str]) -> None:
    if not content:
        raise BackendError(ErrorKind.VALIDATION, "Please select an image file")
    if not content_type or not content_type.startswith("image/"):
        raise BackendError(ErrorKind.VALIDATION, "Please select a valid image file")
    if len(content) > settings.avatar_max_bytes:
        limit_mb = settings.avatar_max_bytes // (1024 * 1024)
        raise BackendError(ErrorKind.VALIDATION, f"Image size should be less than {limit_mb}MB")
