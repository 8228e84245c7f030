import time

from fastapi import APIRouter, Depends

from api.dependencies import get_auth_service, get_instrument_service, get_settings
from api.schemas.responses import DatabaseHealth, HealthResponse
from core.config.settings import Settings
from core.logging import get_error_logger_safe
from core.utils.time import format_timestamp
from services.auth.service import AuthService
from services.instrument_data.instrument_registry_service import InstrumentRegistryService

router = APIRouter(tags=["System"])

error_logger = get_error_logger_safe("system_api")

_started_at = time.time()


@router.get("/health", response_model=HealthResponse)
async def health(
    settings: Settings = Depends(get_settings),
    auth_service: AuthService = Depends(get_auth_service),
    instrument_service: InstrumentRegistryService = Depends(get_instrument_service),
):
    """Liveness plus database reachability and table sizes."""
    database = DatabaseHealth(status="ok")
    try:
        database.instrument_count = await instrument_service.get_instrument_count()
        database.user_count = await auth_service.auth_manager.count_users()
    except Exception as e:
        error_logger.error("Database health check failed", error=str(e))
        database.status = "error"

    return HealthResponse(
        status="ok",
        timestamp=format_timestamp(tz_name=settings.timezone),
        version=settings.version,
        uptime_seconds=round(time.time() - _started_at, 3),
        database=database,
    )
