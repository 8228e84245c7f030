# DI container for the gateway
from dependency_injector import containers, providers

from core.config.settings import Settings
from core.database.connection import DatabaseManager
from services.auth.kite_client import KiteClient
from services.auth.service import AuthService
from services.instrument_data.freshness import FreshnessOracle
from services.instrument_data.instrument_registry_service import InstrumentRegistryService
from services.instrument_data.refresher import InstrumentRefresher


class AppContainer(containers.DeclarativeContainer):
    """Application dependency injection container"""

    # Configuration
    settings = providers.Singleton(Settings)

    # Database with environment awareness
    db_manager = providers.Singleton(
        DatabaseManager,
        db_url=settings.provided.database.url,
        environment=settings.provided.environment,
        schema_management=settings.provided.database.schema_management,
        echo=settings.provided.database.echo,
    )

    # Outbound broker HTTP; the transport is overridden in tests
    kite_transport = providers.Object(None)
    kite_client = providers.Singleton(
        KiteClient,
        settings=settings,
        transport=kite_transport,
    )

    # Auth service
    auth_service = providers.Singleton(
        AuthService,
        settings=settings,
        db_manager=db_manager,
        kite_client=kite_client,
    )

    # Instrument mirror
    freshness_oracle = providers.Singleton(
        FreshnessOracle,
        settings=settings,
        db_manager=db_manager,
    )

    instrument_refresher = providers.Singleton(
        InstrumentRefresher,
        settings=settings,
        db_manager=db_manager,
        client=kite_client,
    )

    instrument_registry_service = providers.Singleton(
        InstrumentRegistryService,
        settings=settings,
        db_manager=db_manager,
        refresher=instrument_refresher,
        oracle=freshness_oracle,
    )
