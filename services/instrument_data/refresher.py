"""Atomically replaces the instrument mirror from the broker feed."""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from core.config.settings import Settings
from core.database.connection import DatabaseManager
from core.logging import get_error_logger_safe, get_logger_safe
from core.utils.time import format_timestamp
from services.auth.kite_client import KiteClient
from .csv_loader import InstrumentCSVLoader
from .exceptions import RefreshFailed
from .instrument_repository import InstrumentRepository

logger = get_logger_safe(__name__, "instrument_data")
error_logger = get_error_logger_safe("instrument_refresher")


@dataclass
class RefreshResult:
    success: bool
    count: int = 0
    error: Optional[str] = None


class InstrumentRefresher:
    """Fetch, parse, then delete + insert in a single transaction.

    A failure at any stage leaves the previous snapshot untouched.
    """

    def __init__(self, settings: Settings, db_manager: DatabaseManager, client: KiteClient):
        self.settings = settings
        self.db_manager = db_manager
        self.client = client
        self.loader = InstrumentCSVLoader()
        self._lock = asyncio.Lock()

    async def fetch_feed(self) -> str:
        cfg = self.settings.instruments
        try:
            response = await self.client.get(cfg.feed_url, timeout=cfg.fetch_timeout_seconds)
        except httpx.HTTPError as e:
            raise RefreshFailed(f"Failed to fetch instruments: {e}") from e
        if not response.is_success:
            raise RefreshFailed(
                f"Failed to fetch instruments: {response.status_code} {response.reason_phrase}",
                details={"status_code": response.status_code},
            )
        return response.text

    async def write_snapshot(self, records: List[Dict[str, Any]]) -> int:
        """Replace every row with `records`; rolls back entirely on any error."""
        cfg = self.settings.instruments
        async with self.db_manager.get_session() as session:
            repo = InstrumentRepository(session)
            removed = await repo.delete_all()
            inserted = await repo.bulk_insert(
                records,
                batch_size=cfg.insert_batch_size,
                progress_every=cfg.progress_log_interval,
            )
            await session.commit()
        logger.info("Instrument snapshot replaced", removed=removed, inserted=inserted)
        return inserted

    async def refresh(self) -> RefreshResult:
        """Never raises; the outcome is reported in the result."""
        async with self._lock:
            try:
                logger.info("Fetching instruments feed", url=self.settings.instruments.feed_url)
                csv_text = await self.fetch_feed()
                rows = self.loader.parse_text(csv_text)

                # One timestamp for the whole snapshot
                updated_at = format_timestamp(tz_name=self.settings.timezone)
                records = self.loader.to_records(rows, updated_at)

                count = await self.write_snapshot(records)
                logger.info("Instruments refreshed", count=count, updated_at=updated_at)
                return RefreshResult(success=True, count=count)
            except RefreshFailed as e:
                error_logger.error("Instrument refresh failed", error=e.message)
                return RefreshResult(success=False, error=e.message)
            except Exception as e:
                error_logger.error("Instrument refresh failed", error=str(e),
                                   error_type=type(e).__name__)
                return RefreshResult(success=False, error=str(e))
