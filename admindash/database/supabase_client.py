import logging
from typing import Optional

from supabase import AsyncClient, acreate_client
from supabase.lib.client_options import AsyncClientOptions

from admindash.config import settings
from admindash.core.errors import MissingConfigurationError
from admindash.database.cookie_storage import CookieStorage

logger = logging.getLogger(__name__)


class SupabaseClient:
    _service_client: Optional[AsyncClient] = None

    @staticmethod
    def ensure_configured() -> None:
        missing = settings.missing_settings()
        if missing:
            logger.error(f"Supabase is not configured, missing: {', '.join(missing)}")
            raise MissingConfigurationError(missing)

    @classmethod
    async def create_client(cls, storage: CookieStorage) -> AsyncClient:
        """Client bound to one request's session cookie; RLS applies as the signed-in user."""
        cls.ensure_configured()
        options = AsyncClientOptions(
            storage=storage,
            persist_session=True,
            # Per-request clients must not leave refresh timers running
            auto_refresh_token=False,
        )
        return await acreate_client(settings.supabase_url, settings.supabase_key, options=options)

    @classmethod
    async def get_service_client(cls) -> AsyncClient:
        """Client with service_role key; bypasses RLS. Use in seed scripts only."""
        cls.ensure_configured()
        if not settings.supabase_service_role_key:
            raise MissingConfigurationError(["SUPABASE_SERVICE_ROLE_KEY"])
        if cls._service_client is None:
            cls._service_client = await acreate_client(
                settings.supabase_url, settings.supabase_service_role_key
            )
        return cls._service_client
