"""
Instrument Registry Service - entry point for instrument mirror reads and refreshes.
"""

from typing import Any, Dict, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from core.config.settings import Settings
from core.database.connection import DatabaseManager
from core.logging import get_logger_safe
from core.utils.exceptions import StorageFailure
from .freshness import FreshnessOracle
from .instrument_repository import InstrumentRepository
from .query import InstrumentQuery
from .refresher import InstrumentRefresher, RefreshResult

logger = get_logger_safe(__name__, "instrument_data")


class InstrumentRegistryService:
    """
    Main service class for the instrument mirror.

    Provides high-level operations for:
    - Querying the mirror, refreshing it first when stale
    - Forcing a refresh
    - Reporting mirror size for health checks
    """

    def __init__(self, settings: Settings, db_manager: DatabaseManager,
                 refresher: InstrumentRefresher, oracle: Optional[FreshnessOracle] = None):
        self.settings = settings
        self.db_manager = db_manager
        self.refresher = refresher
        self.oracle = oracle or FreshnessOracle(settings, db_manager)

    async def refresh(self) -> RefreshResult:
        return await self.refresher.refresh()

    async def ensure_fresh(self) -> Optional[RefreshResult]:
        """Refresh when the oracle reports staleness; failures are only logged."""
        if not self.settings.instruments.auto_refresh:
            return None
        if not await self.oracle.is_refresh_required():
            return None

        logger.info("Instrument data is stale, triggering automatic refresh")
        result = await self.refresher.refresh()
        if result.success:
            logger.info("Automatic refresh completed", count=result.count)
        else:
            logger.warning("Refresh failed, continuing with stale data", error=result.error)
        return result

    async def query(self, params: Mapping[str, str]) -> Dict[str, Any]:
        """Validate raw parameters, make sure the mirror is fresh, then query it."""
        query = InstrumentQuery.from_params(params)
        await self.ensure_fresh()

        logger.info("Querying instruments", **query.describe())
        try:
            async with self.db_manager.get_session() as session:
                instruments = await InstrumentRepository(session).query(query)
        except SQLAlchemyError as e:
            raise StorageFailure("Database query failed", operation="select",
                                 table="kite_instruments") from e

        return {
            "count": len(instruments),
            "query": query.describe(),
            "instruments": instruments,
        }

    async def get_instrument_count(self) -> int:
        async with self.db_manager.get_session() as session:
            return await InstrumentRepository(session).count()
