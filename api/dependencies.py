from fastapi import Depends
from dependency_injector.wiring import inject, Provide

from app.containers import AppContainer
from core.config.settings import Settings
from services.auth.service import AuthService
from services.instrument_data.instrument_registry_service import InstrumentRegistryService


@inject
def get_settings(
    settings: Settings = Depends(Provide[AppContainer.settings])
) -> Settings:
    return settings


@inject
def get_auth_service(
    auth_service: AuthService = Depends(Provide[AppContainer.auth_service])
) -> AuthService:
    return auth_service


@inject
def get_instrument_service(
    instrument_service: InstrumentRegistryService = Depends(
        Provide[AppContainer.instrument_registry_service]
    )
) -> InstrumentRegistryService:
    return instrument_service
