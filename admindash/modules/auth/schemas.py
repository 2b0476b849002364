from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator
from typing import Any, List, Optional

from admindash.core.errors import ErrorKind
from admindash.modules.roles.schemas import Role
from admindash.modules.users.schemas import UserProfile


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class PasswordChangeRequest(BaseModel):
    new_password: str = Field(min_length=6)
    confirm_password: str

    @model_validator(mode="after")
    def passwords_match(self) -> "PasswordChangeRequest":
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class SessionInfo(BaseModel):
    """Token-free view of an auth session, safe to hand to the browser."""
    user_id: str
    email: Optional[str] = None
    expires_at: Optional[int] = None

    @classmethod
    def from_session(cls, session: Any) -> "SessionInfo":
        user = session.user
        return cls(
            user_id=str(user.id),
            email=getattr(user, "email", None),
            expires_at=getattr(session, "expires_at", None),
        )


class ResolvedAccess(BaseModel):
    user: UserProfile
    role: Optional[Role] = None
    permissions: List[str] = Field(default_factory=list)
    # Set when the profile could not be read and a synthesized one was used
    degraded: Optional[ErrorKind] = None

    @classmethod
    def unprivileged(cls, user_id: str, email: Optional[str], reason: ErrorKind) -> "ResolvedAccess":
        return cls(user=UserProfile.synthesized(user_id, email), degraded=reason)


class AuthState(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: Optional[UserProfile] = None
    role: Optional[Role] = None
    permissions: List[str] = Field(default_factory=list)
    session: Optional[SessionInfo] = None
    loading: bool = True
    error: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.session is not None


class NavigationEntry(BaseModel):
    name: str
    path: str
    children: List["NavigationEntry"] = Field(default_factory=list)


class CurrentUserResponse(BaseModel):
    user: Optional[UserProfile] = None
    role: Optional[Role] = None
    permissions: List[str] = Field(default_factory=list)
    session: Optional[SessionInfo] = None
    error: Optional[str] = None
    is_admin: bool = False
    is_manager_or_admin: bool = False
    navigation: List[NavigationEntry] = Field(default_factory=list)
    settings_tabs: List[str] = Field(default_factory=list)
