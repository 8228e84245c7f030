import httpx
import pytest
from sqlalchemy.exc import IntegrityError

from services.instrument_data.instrument_repository import InstrumentRepository
from services.instrument_data.query import InstrumentQuery
from services.instrument_data.refresher import InstrumentRefresher


@pytest.fixture
def refresher(test_settings, db_manager, kite_client):
    return InstrumentRefresher(test_settings, db_manager, kite_client)


async def _snapshot(db_manager):
    async with db_manager.get_session() as session:
        repo = InstrumentRepository(session)
        return await repo.count(), await repo.latest_update_time()


def _record(token, symbol, updated_at="2024-01-09 09:00:00"):
    return {
        "instrument_token": token,
        "exchange_token": token // 256 if token else 0,
        "tradingsymbol": symbol,
        "name": symbol,
        "last_price": 0.0,
        "expiry": None,
        "strike": 0.0,
        "tick_size": 0.05,
        "lot_size": 1,
        "instrument_type": "EQ",
        "segment": "NSE",
        "exchange": "NSE",
        "updated_at": updated_at,
    }


@pytest.mark.asyncio
async def test_refresh_loads_feed_with_one_timestamp(refresher, db_manager, mock_broker):
    result = await refresher.refresh()

    assert result.success is True
    assert result.count == 3
    assert result.error is None
    count, latest = await _snapshot(db_manager)
    assert count == 3
    assert len(latest) == 19

    async with db_manager.get_session() as session:
        rows = await InstrumentRepository(session).query(
            InstrumentQuery.from_params({"exchange": "NFO"})
        )
    assert {row["updated_at"] for row in rows} == {latest}
    assert mock_broker.calls("GET", "/instruments")


@pytest.mark.asyncio
async def test_refresh_replaces_previous_snapshot(refresher, db_manager, mock_broker):
    await refresher.write_snapshot([_record(1, "OLD1"), _record(2, "OLD2")])

    mock_broker.instruments_csv = (
        "instrument_token,exchange_token,tradingsymbol,name,last_price,expiry,strike,"
        "tick_size,lot_size,instrument_type,segment,exchange\n"
        "408065,1594,INFY,INFOSYS,0,,0,0.05,1,EQ,NSE,NSE\n"
    )
    result = await refresher.refresh()

    assert result.success is True
    count, _ = await _snapshot(db_manager)
    assert count == 1


@pytest.mark.asyncio
async def test_failed_insert_keeps_previous_snapshot(refresher, db_manager):
    await refresher.write_snapshot([_record(1, "OLD1"), _record(2, "OLD2")])

    bad = _record(3, "BAD")
    bad["instrument_token"] = None
    with pytest.raises(IntegrityError):
        await refresher.write_snapshot([_record(4, "NEW"), bad])

    count, latest = await _snapshot(db_manager)
    assert count == 2
    assert latest == "2024-01-09 09:00:00"


@pytest.mark.asyncio
async def test_feed_error_reports_failure_and_keeps_data(refresher, db_manager, mock_broker):
    await refresher.write_snapshot([_record(1, "OLD1")])
    mock_broker.override("GET", "/instruments", lambda request: httpx.Response(503, text="busy"))

    result = await refresher.refresh()

    assert result.success is False
    assert result.error == "Failed to fetch instruments: 503 Service Unavailable"
    assert (await _snapshot(db_manager))[0] == 1


@pytest.mark.asyncio
async def test_unparseable_feed_reports_failure(refresher, db_manager, mock_broker):
    await refresher.write_snapshot([_record(1, "OLD1")])
    mock_broker.instruments_csv = "<html>maintenance</html>"

    result = await refresher.refresh()

    assert result.success is False
    assert "Invalid CSV format" in result.error
    assert (await _snapshot(db_manager))[0] == 1


@pytest.mark.asyncio
async def test_unreachable_feed_reports_failure(refresher, mock_broker):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    mock_broker.override("GET", "/instruments", refuse)

    result = await refresher.refresh()

    assert result.success is False
    assert result.error.startswith("Failed to fetch instruments")
