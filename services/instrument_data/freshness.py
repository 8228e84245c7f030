"""Decides whether the instrument mirror predates the current trading day's feed."""

from datetime import datetime, timedelta
from typing import Callable, Optional

from core.config.settings import Settings
from core.database.connection import DatabaseManager
from core.logging import get_logger_safe
from core.utils.time import TIMESTAMP_FORMAT, exchange_now, to_exchange_time
from .instrument_repository import InstrumentRepository

logger = get_logger_safe(__name__, "instrument_data")


class FreshnessOracle:
    """
    The broker republishes its instrument master each morning; anything
    written before the most recent daily cutoff is stale.

    Timestamps are fixed-width `YYYY-MM-DD HH:MM:SS` strings in the exchange
    zone, so string comparison is chronological comparison.
    """

    def __init__(self, settings: Settings, db_manager: DatabaseManager,
                 clock: Optional[Callable[[], datetime]] = None):
        self.settings = settings
        self.db_manager = db_manager
        self._tz_name = settings.timezone
        self._clock = clock or (lambda: exchange_now(self._tz_name))

    def refresh_cutoff(self, now: Optional[datetime] = None) -> str:
        """Today's cutoff, or yesterday's if `now` is still before today's."""
        local_now = to_exchange_time(now or self._clock(), self._tz_name)
        cfg = self.settings.instruments
        cutoff = local_now.replace(hour=cfg.cutoff_hour, minute=cfg.cutoff_minute,
                                   second=0, microsecond=0)
        if local_now < cutoff:
            cutoff = cutoff - timedelta(days=1)
        return cutoff.strftime(TIMESTAMP_FORMAT)

    def is_stale(self, latest_update: Optional[str], now: Optional[datetime] = None) -> bool:
        if not latest_update:
            return True
        return latest_update < self.refresh_cutoff(now)

    async def latest_update_time(self) -> Optional[str]:
        async with self.db_manager.get_session() as session:
            return await InstrumentRepository(session).latest_update_time()

    async def is_refresh_required(self) -> bool:
        """True when the mirror is empty, stale, or its state cannot be read."""
        try:
            latest = await self.latest_update_time()
            cutoff = self.refresh_cutoff()
            stale = not latest or latest < cutoff
        except Exception as e:
            logger.warning("Freshness check failed, treating mirror as stale", error=str(e))
            return True

        logger.info("Instrument freshness checked", latest_update=latest,
                    cutoff=cutoff, stale=stale)
        return stale
