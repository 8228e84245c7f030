# Exchange-local time helpers
from datetime import datetime
from typing import Optional

import pytz

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_TIMEZONE = "Asia/Kolkata"


def exchange_tz(name: str = DEFAULT_TIMEZONE):
    return pytz.timezone(name)


def exchange_now(tz_name: str = DEFAULT_TIMEZONE) -> datetime:
    """Current time in the exchange time zone (timezone-aware)."""
    return datetime.now(exchange_tz(tz_name))


def to_exchange_time(moment: datetime, tz_name: str = DEFAULT_TIMEZONE) -> datetime:
    """Convert a datetime to the exchange zone; naive values are treated as already local."""
    tz = exchange_tz(tz_name)
    if moment.tzinfo is None:
        return tz.localize(moment)
    return moment.astimezone(tz)


def format_timestamp(moment: Optional[datetime] = None, tz_name: str = DEFAULT_TIMEZONE) -> str:
    """Render `YYYY-MM-DD HH:MM:SS` in the exchange zone.

    Fixed-width output keeps lexicographic order equal to chronological order,
    which the instrument freshness check relies on.
    """
    if moment is None:
        moment = exchange_now(tz_name)
    return to_exchange_time(moment, tz_name).strftime(TIMESTAMP_FORMAT)
