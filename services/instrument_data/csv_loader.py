"""
CSV parsing utilities for the broker instrument feed.
"""

import csv
import io
from typing import Any, Dict, Iterator, List, Optional

import structlog

logger = structlog.get_logger(__name__)

FEED_COLUMNS = (
    "instrument_token", "exchange_token", "tradingsymbol", "name", "last_price",
    "expiry", "strike", "tick_size", "lot_size", "instrument_type", "segment",
    "exchange",
)

INT_FIELDS = ("instrument_token", "exchange_token", "lot_size")
FLOAT_FIELDS = ("last_price", "strike", "tick_size")
# Empty values become NULL for these; other text fields fall back to ""
NULLABLE_TEXT_FIELDS = ("name", "instrument_type", "segment")


def _to_int(value: Optional[str]) -> int:
    try:
        return int(float(value)) if value else 0
    except (TypeError, ValueError, OverflowError):
        return 0


def _to_float(value: Optional[str]) -> float:
    try:
        return float(value) if value else 0.0
    except (TypeError, ValueError):
        return 0.0


class InstrumentCSVLoader:
    """
    Parses the instrument master CSV published by the broker.

    The feed has a header row naming the columns; quoting follows RFC 4180,
    so names containing commas survive intact.
    """

    def parse_text(self, csv_text: str) -> List[Dict[str, str]]:
        """
        Parse raw feed text into row dictionaries.

        Raises:
            ValueError: If the text has no header or no data rows
        """
        rows = list(self.iter_rows(csv_text))
        if not rows:
            raise ValueError("Invalid CSV format: no data rows")
        logger.info("Parsed instrument feed", rows=len(rows))
        return rows

    def iter_rows(self, csv_text: str) -> Iterator[Dict[str, str]]:
        text = (csv_text or "").strip()
        if not text:
            return
        reader = csv.DictReader(io.StringIO(text))
        header = [name.strip().lower() for name in reader.fieldnames or []]
        if "instrument_token" not in header:
            raise ValueError("Invalid CSV format: missing header row")
        missing = [column for column in FEED_COLUMNS if column not in header]
        if missing:
            logger.warning("Instrument feed is missing columns, defaults will be used",
                           missing=missing)

        for row_num, row in enumerate(reader, start=1):
            if not self._validate_row(row, row_num):
                continue
            yield {
                key.strip().lower(): (value or "").strip()
                for key, value in row.items()
                if key is not None
            }

    def _validate_row(self, row: Dict[str, Optional[str]], row_num: int) -> bool:
        """Skip blank lines; everything else is kept and defaulted by `_clean_row`."""
        if not any((value or "").strip() for key, value in row.items() if key is not None):
            logger.debug("Skipping blank CSV row", row=row_num)
            return False
        return True

    def _clean_row(self, row: Dict[str, str], updated_at: str) -> Dict[str, Any]:
        """
        Convert a parsed feed row into a database record.

        Args:
            row: Row as produced by `parse_text`
            updated_at: Snapshot timestamp shared by every row of one refresh

        Returns:
            Dictionary keyed by `kite_instruments` column names
        """
        cleaned: Dict[str, Any] = {}

        for field in INT_FIELDS:
            cleaned[field] = _to_int(row.get(field))
        for field in FLOAT_FIELDS:
            cleaned[field] = _to_float(row.get(field))
        for field in NULLABLE_TEXT_FIELDS:
            cleaned[field] = row.get(field) or None

        expiry = row.get("expiry")
        cleaned["expiry"] = expiry if expiry and expiry != "0" else None
        cleaned["tradingsymbol"] = row.get("tradingsymbol") or ""
        cleaned["exchange"] = row.get("exchange") or ""
        cleaned["updated_at"] = updated_at
        return cleaned

    def to_records(self, rows: List[Dict[str, str]], updated_at: str) -> List[Dict[str, Any]]:
        return [self._clean_row(row, updated_at) for row in rows]
