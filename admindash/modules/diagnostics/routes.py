from fastapi import APIRouter, Depends

from admindash.config import settings
from admindash.core.dependencies import get_cookie_storage
from admindash.database.cookie_storage import CookieStorage
from admindash.database.supabase_client import SupabaseClient
from admindash.modules.diagnostics.schemas import DiagnosticsReport
from admindash.modules.diagnostics.service import DiagnosticsService, config_status

router = APIRouter(prefix="/diagnostics", tags=["diagnostics"])


@router.get("", response_model=DiagnosticsReport)
async def run_diagnostics(storage: CookieStorage = Depends(get_cookie_storage)):
    """Configuration, session, table access and profile checks for the current caller"""
    if not settings.is_configured:
        return DiagnosticsReport(config=config_status())
    supabase = await SupabaseClient.create_client(storage)
    return await DiagnosticsService(supabase).run()
