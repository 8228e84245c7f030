import pytest

from core.utils.exceptions import InputValidationError
from services.instrument_data.query import InstrumentQuery


@pytest.mark.parametrize("params, message", [
    ({}, "At least one query parameter is required"),
    ({"name": "NIFTY", "order": "sideways"}, "order parameter must be either 'asc' or 'desc'"),
    ({"name": "NIFTY", "order_by": "volume"}, "Invalid order_by field: volume"),
    ({"name": "NIFTY", "limit": "0"}, "limit parameter must be a positive integer"),
    ({"name": "NIFTY", "limit": "ten"}, "limit parameter must be a positive integer"),
    ({"name": "NIFTY", "limit": "10001"}, "limit parameter cannot exceed 10000"),
    ({"strike_min": "abc"}, "strike_min parameter must be a valid number"),
    ({"strike_max": "nan"}, "strike_max parameter must be a valid number"),
    ({"strike_min": "200", "strike_max": "100"}, "strike_min cannot be greater than strike_max"),
    ({"volume": "10"}, "No valid query parameters provided"),
    ({"order_by": "strike"}, "No valid query parameters provided"),
    ({"instrument_token": "abc"}, "instrument_token must be an integer"),
])
def test_invalid_parameters_are_rejected(params, message):
    with pytest.raises(InputValidationError) as exc_info:
        InstrumentQuery.from_params(params)
    assert exc_info.value.message.startswith(message)
    assert exc_info.value.status_code == 400


def test_filters_are_typed_and_unknown_params_dropped():
    query = InstrumentQuery.from_params({
        "instrument_token": "408065",
        "strike": "21500",
        "name": "nifty",
        "volume": "ignored",
    })
    assert query.filters == {"instrument_token": 408065, "strike": 21500.0, "name": "nifty"}


def test_strike_range_alone_is_a_valid_query():
    query = InstrumentQuery.from_params({"strike_min": "21000", "strike_max": "22000"})
    assert query.filters == {}
    assert (query.strike_min, query.strike_max) == (21000.0, 22000.0)


def test_describe_echoes_effective_query():
    query = InstrumentQuery.from_params({
        "name": "NIFTY", "order_by": "strike", "order": "DESC", "limit": "5",
    })
    assert query.describe() == {
        "filters": {"name": "NIFTY"},
        "order_by": "strike",
        "order": "desc",
        "limit": 5,
    }


def test_limit_at_maximum_is_allowed():
    assert InstrumentQuery.from_params({"name": "NIFTY", "limit": "10000"}).limit == 10000
