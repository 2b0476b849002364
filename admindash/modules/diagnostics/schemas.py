from pydantic import BaseModel
from typing import List, Optional


class ConfigStatus(BaseModel):
    has_supabase_url: bool
    has_supabase_key: bool
    url_starts_with: Optional[str] = None
    key_starts_with: Optional[str] = None
    missing: List[str] = []


class SessionStatus(BaseModel):
    exists: bool = False
    user_id: Optional[str] = None
    email: Optional[str] = None
    token_accepted: Optional[bool] = None


class TableStatus(BaseModel):
    table: str
    accessible: bool
    count: Optional[int] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


class ProfileStatus(BaseModel):
    exists: bool
    error: Optional[str] = None
    error_kind: Optional[str] = None
    error_code: Optional[str] = None


class DiagnosticsReport(BaseModel):
    config: ConfigStatus
    session: Optional[SessionStatus] = None
    tables: List[TableStatus] = []
    user_profile: Optional[ProfileStatus] = None
    user_role_count: Optional[int] = None
