from contextlib import asynccontextmanager
from datetime import datetime

import pytest
import pytz

from services.instrument_data.freshness import FreshnessOracle
from services.instrument_data.instrument_repository import InstrumentRepository

IST = pytz.timezone("Asia/Kolkata")


def _ist(*args):
    return IST.localize(datetime(*args))


class BrokenDatabase:
    @asynccontextmanager
    async def get_session(self):
        raise RuntimeError("database is down")
        yield


@pytest.fixture
def oracle(test_settings, db_manager):
    return FreshnessOracle(test_settings, db_manager, clock=lambda: _ist(2024, 1, 10, 9, 0, 0))


def test_cutoff_after_half_past_eight_is_today(oracle):
    assert oracle.refresh_cutoff(_ist(2024, 1, 10, 9, 0, 0)) == "2024-01-10 08:30:00"
    assert oracle.refresh_cutoff(_ist(2024, 1, 10, 8, 30, 0)) == "2024-01-10 08:30:00"


def test_cutoff_before_half_past_eight_is_yesterday(oracle):
    assert oracle.refresh_cutoff(_ist(2024, 1, 10, 8, 29, 59)) == "2024-01-09 08:30:00"
    assert oracle.refresh_cutoff(_ist(2024, 3, 1, 0, 5, 0)) == "2024-02-29 08:30:00"


def test_cutoff_is_computed_in_exchange_time(oracle):
    # 03:15 UTC is 08:45 IST
    now = pytz.utc.localize(datetime(2024, 1, 10, 3, 15, 0))
    assert oracle.refresh_cutoff(now) == "2024-01-10 08:30:00"


@pytest.mark.parametrize("latest, stale", [
    ("2024-01-10 08:29:59", True),
    ("2024-01-10 08:30:00", False),
    ("2024-01-10 08:30:01", False),
    ("2024-01-09 17:00:00", True),
    (None, True),
    ("", True),
])
def test_is_stale(oracle, latest, stale):
    assert oracle.is_stale(latest, _ist(2024, 1, 10, 9, 0, 0)) is stale


@pytest.mark.asyncio
async def test_empty_mirror_requires_refresh(oracle):
    assert await oracle.latest_update_time() is None
    assert await oracle.is_refresh_required() is True


@pytest.mark.asyncio
async def test_mirror_written_after_cutoff_is_fresh(oracle, db_manager):
    record = {
        "instrument_token": 408065, "exchange_token": 1594, "tradingsymbol": "INFY",
        "exchange": "NSE", "updated_at": "2024-01-10 08:45:00",
    }
    async with db_manager.get_session() as session:
        await InstrumentRepository(session).bulk_insert([record])
        await session.commit()

    assert await oracle.latest_update_time() == "2024-01-10 08:45:00"
    assert await oracle.is_refresh_required() is False


@pytest.mark.asyncio
async def test_unreadable_state_counts_as_stale(test_settings):
    oracle = FreshnessOracle(test_settings, BrokenDatabase())
    assert await oracle.is_refresh_required() is True
