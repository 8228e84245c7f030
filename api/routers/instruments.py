from fastapi import APIRouter, Depends, Request
from dependency_injector.wiring import inject, Provide

from app.containers import AppContainer
from api.schemas.responses import InstrumentQueryResult, RefreshSummary, success_response
from core.logging import get_api_logger_safe
from services.instrument_data.exceptions import RefreshFailed
from services.instrument_data.instrument_registry_service import InstrumentRegistryService

router = APIRouter(prefix="/instruments", tags=["Instruments"])

api_logger = get_api_logger_safe("instruments_api")


@router.get("/refresh")
@inject
async def refresh_instruments(
    instrument_service: InstrumentRegistryService = Depends(
        Provide[AppContainer.instrument_registry_service]
    ),
):
    """Force a full reload of the instrument mirror."""
    result = await instrument_service.refresh()
    if not result.success:
        raise RefreshFailed(result.error or "Refresh failed")

    api_logger.info("Manual instrument refresh completed", count=result.count)
    summary = RefreshSummary(
        message="Instruments refreshed successfully",
        total_instruments=result.count,
    )
    return success_response(summary.model_dump())


@router.get("/query")
@inject
async def query_instruments(
    request: Request,
    instrument_service: InstrumentRegistryService = Depends(
        Provide[AppContainer.instrument_registry_service]
    ),
):
    """
    Filter the mirror by exact field matches and an optional strike range.

    Text fields compare case-insensitively; `order_by`, `order` and `limit`
    shape the result. Unknown parameters are ignored.
    """
    result = await instrument_service.query(dict(request.query_params))
    api_logger.info("Instrument query served", count=result["count"])
    return success_response(InstrumentQueryResult(**result).model_dump())
