from pydantic import BaseModel, field_validator
from typing import Optional

from admindash.modules.roles.schemas import Role


def default_full_name(email: Optional[str]) -> str:
    """Local part of the email address, used as the name of auto-provisioned profiles."""
    local_part = (email or "").split("@")[0]
    return local_part or "User"


class UserProfile(BaseModel):
    id: str
    email: Optional[str] = None
    full_name: str
    phone: Optional[str] = None
    avatar_url: Optional[str] = None

    @classmethod
    def synthesized(cls, user_id: str, email: Optional[str]) -> "UserProfile":
        """Minimal profile used when the profile row cannot be read."""
        return cls(id=user_id, email=email, full_name=default_full_name(email))

    @classmethod
    def from_row(cls, row: dict, user_id: str, email: Optional[str]) -> "UserProfile":
        return cls(
            id=user_id,
            email=email,
            full_name=row.get("full_name") or default_full_name(email),
            phone=row.get("phone") or None,
            avatar_url=row.get("avatar_url") or None,
        )


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None

    # Runs only for a full_name that was sent; an explicit null is rejected like a blank
    @field_validator("full_name")
    @classmethod
    def full_name_not_blank(cls, value: Optional[str]) -> str:
        if value is None or not value.strip():
            raise ValueError("Full name is required")
        return value.strip()

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class AvatarUploadResponse(BaseModel):
    avatar_url: str


class UserWithRole(BaseModel):
    id: str
    full_name: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    role: Optional[Role] = None

    class Config:
        from_attributes = True
