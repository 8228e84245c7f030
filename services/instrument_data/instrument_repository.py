"""
Repository pattern for instrument mirror database operations.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import asc, delete, desc, func, insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.exc import SQLAlchemyError

from core.database.models import KiteInstrument
from core.logging import get_database_logger_safe
from .query import EXACT_FIELDS, InstrumentQuery

logger = get_database_logger_safe("services.instrument_data.instrument_repository")


class InstrumentRepository:
    """
    Repository for instrument database operations.

    Methods never commit; the calling service owns the transaction.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session
        """
        self.session = session

    async def latest_update_time(self) -> Optional[str]:
        """Most recent `updated_at` across the mirror, or None when empty."""
        try:
            result = await self.session.execute(select(func.max(KiteInstrument.updated_at)))
            return result.scalar()
        except SQLAlchemyError as e:
            logger.error("Failed to read latest instrument update time", error=str(e))
            raise

    async def count(self) -> int:
        try:
            result = await self.session.execute(select(func.count(KiteInstrument.id)))
            return int(result.scalar() or 0)
        except SQLAlchemyError as e:
            logger.error("Failed to count instruments", error=str(e))
            raise

    async def delete_all(self) -> int:
        try:
            result = await self.session.execute(delete(KiteInstrument))
            return result.rowcount or 0
        except SQLAlchemyError as e:
            logger.error("Failed to truncate instruments", error=str(e))
            raise

    async def bulk_insert(self, records: List[Dict[str, Any]], batch_size: int = 5000,
                          progress_every: int = 10000) -> int:
        """
        Insert records in batches within the current transaction.

        Args:
            records: Rows keyed by column name
            batch_size: Rows per executemany round trip
            progress_every: Log progress after this many rows

        Returns:
            Number of rows inserted
        """
        inserted = 0
        next_progress = progress_every
        try:
            for start in range(0, len(records), batch_size):
                batch = records[start:start + batch_size]
                await self.session.execute(insert(KiteInstrument), batch)
                inserted += len(batch)
                if progress_every and inserted >= next_progress:
                    logger.info("Instrument insert progress", inserted=inserted, total=len(records))
                    next_progress += progress_every
            return inserted
        except SQLAlchemyError as e:
            logger.error("Failed to insert instruments", inserted=inserted, error=str(e))
            raise

    async def query(self, query: InstrumentQuery) -> List[Dict[str, Any]]:
        """Run a validated instrument query."""
        stmt = select(KiteInstrument)

        for field, value in query.filters.items():
            column = getattr(KiteInstrument, field)
            if field in EXACT_FIELDS:
                stmt = stmt.where(column == value)
            else:
                stmt = stmt.where(func.lower(column) == str(value).lower())

        if query.strike_min is not None:
            stmt = stmt.where(KiteInstrument.strike >= query.strike_min)
        if query.strike_max is not None:
            stmt = stmt.where(KiteInstrument.strike <= query.strike_max)

        if query.order_by:
            column = getattr(KiteInstrument, query.order_by)
            stmt = stmt.order_by(desc(column) if query.order == "desc" else asc(column))
        if query.limit:
            stmt = stmt.limit(query.limit)

        try:
            result = await self.session.execute(stmt)
            return [row.to_dict() for row in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.error("Instrument query failed", filters=query.filters, error=str(e))
            raise
