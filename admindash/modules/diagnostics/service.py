"""
Connection diagnostics for a Supabase-backed deployment.

Answers the questions that come up when the dashboard shows no role or no permissions:
is the client configured, is there a session, can the RBAC tables be read under the
caller's row-level security, and does the caller's profile row exist.
"""

import logging
from typing import Optional

from postgrest.types import CountMethod
from supabase import AsyncClient

from admindash.config import Settings, settings
from admindash.core.errors import BackendError, to_backend_error
from admindash.modules.auth.session import SessionProvider
from admindash.modules.diagnostics.schemas import (
    ConfigStatus, DiagnosticsReport, ProfileStatus, SessionStatus, TableStatus
)
from admindash.modules.users.service import ProfileService

logger = logging.getLogger(__name__)

CHECKED_TABLES = ("roles", "permissions")
MASK_PREFIX_LENGTH = 20


def mask(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    return value[:MASK_PREFIX_LENGTH] + "..."


def config_status(config: Settings = settings) -> ConfigStatus:
    return ConfigStatus(
        has_supabase_url=bool(config.supabase_url),
        has_supabase_key=bool(config.supabase_key),
        url_starts_with=mask(config.supabase_url),
        key_starts_with=mask(config.supabase_key),
        missing=config.missing_settings(),
    )


class DiagnosticsService:
    def __init__(self, supabase: AsyncClient):
        self.supabase = supabase
        self.session_provider = SessionProvider(supabase)
        self.profiles = ProfileService(supabase)

    async def run(self) -> DiagnosticsReport:
        report = DiagnosticsReport(config=config_status())

        session = await self.session_provider.get_session()
        report.session = SessionStatus(
            exists=session is not None,
            user_id=str(session.user.id) if session else None,
            email=session.user.email if session else None,
        )
        if session is not None:
            report.session.token_accepted = await self.session_provider.get_user() is not None

        for table in CHECKED_TABLES:
            report.tables.append(await self.check_table(table))

        if session is not None:
            user_id = str(session.user.id)
            report.user_profile = await self.check_profile(user_id)
            report.user_role_count = await self.count_user_roles(user_id)

        return report

    async def check_table(self, table: str) -> TableStatus:
        try:
            result = await self.supabase.table(table)\
                .select("id", count=CountMethod.exact)\
                .execute()
        except Exception as e:
            error = to_backend_error(e)
            logger.warning(f"Diagnostics: table {table} not readable ({error.kind.value}): {error.message}")
            return TableStatus(table=table, accessible=False, error=error.message, error_code=error.code)
        count = result.count if result.count is not None else len(result.data or [])
        return TableStatus(table=table, accessible=True, count=count)

    async def check_profile(self, user_id: str) -> ProfileStatus:
        try:
            await self.profiles.fetch_profile(user_id)
        except BackendError as e:
            return ProfileStatus(exists=False, error=e.message, error_kind=e.kind.value, error_code=e.code)
        return ProfileStatus(exists=True)

    async def count_user_roles(self, user_id: str) -> Optional[int]:
        try:
            result = await self.supabase.table("user_roles")\
                .select("role_id")\
                .eq("user_id", user_id)\
                .execute()
        except Exception as e:
            logger.warning(f"Diagnostics: user_roles not readable for {user_id}: {e}")
            return None
        return len(result.data or [])
