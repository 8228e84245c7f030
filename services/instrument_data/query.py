"""Validated filter set for instrument lookups."""

import math
from typing import Any, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, Field

from core.logging import get_logger_safe
from core.utils.exceptions import InputValidationError

logger = get_logger_safe(__name__, "instrument_data")

FILTER_FIELDS = (
    "instrument_token", "tradingsymbol", "name", "expiry", "strike",
    "instrument_type", "segment", "exchange",
)
# Compared exactly; everything else in FILTER_FIELDS is case-insensitive
EXACT_FIELDS = ("instrument_token", "strike", "expiry")
ORDER_BY_FIELDS = (
    "instrument_token", "exchange_token", "tradingsymbol", "name", "last_price",
    "expiry", "strike", "tick_size", "lot_size", "instrument_type", "segment",
    "exchange", "updated_at",
)
CONTROL_PARAMS = ("order_by", "order", "limit", "strike_min", "strike_max")
MAX_LIMIT = 10000


def _parse_number(name: str, raw: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        raise InputValidationError(f"{name} parameter must be a valid number")
    if math.isnan(value):
        raise InputValidationError(f"{name} parameter must be a valid number")
    return value


class InstrumentQuery(BaseModel):
    filters: Dict[str, Any] = Field(default_factory=dict)
    strike_min: Optional[float] = None
    strike_max: Optional[float] = None
    order_by: Optional[str] = None
    order: Literal["asc", "desc"] = "asc"
    limit: Optional[int] = Field(None, ge=1, le=MAX_LIMIT)

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> "InstrumentQuery":
        """Build from raw query-string parameters, raising InputValidationError on misuse."""
        if not params:
            raise InputValidationError("At least one query parameter is required")

        order = (params.get("order") or "asc").lower()
        if order not in ("asc", "desc"):
            raise InputValidationError("order parameter must be either 'asc' or 'desc'")

        order_by = params.get("order_by") or None
        if order_by and order_by not in ORDER_BY_FIELDS:
            raise InputValidationError(
                f"Invalid order_by field: {order_by}. Valid fields: {', '.join(ORDER_BY_FIELDS)}"
            )

        limit = None
        raw_limit = params.get("limit")
        if raw_limit:
            try:
                limit = int(raw_limit)
            except ValueError:
                raise InputValidationError("limit parameter must be a positive integer")
            if limit < 1:
                raise InputValidationError("limit parameter must be a positive integer")
            if limit > MAX_LIMIT:
                raise InputValidationError(f"limit parameter cannot exceed {MAX_LIMIT}")

        strike_min = _parse_number("strike_min", params["strike_min"]) if params.get("strike_min") else None
        strike_max = _parse_number("strike_max", params["strike_max"]) if params.get("strike_max") else None
        if strike_min is not None and strike_max is not None and strike_min > strike_max:
            raise InputValidationError("strike_min cannot be greater than strike_max")

        filters: Dict[str, Any] = {}
        ignored: List[str] = []
        for key, value in params.items():
            if key in CONTROL_PARAMS:
                continue
            if key in FILTER_FIELDS:
                filters[key] = value
            else:
                ignored.append(key)

        if ignored:
            logger.warning("Invalid query parameters ignored", params=ignored)

        if not filters and strike_min is None and strike_max is None:
            raise InputValidationError(
                "No valid query parameters provided. Valid fields: "
                f"{', '.join(FILTER_FIELDS)}, strike_min, strike_max"
            )

        if "instrument_token" in filters:
            try:
                filters["instrument_token"] = int(filters["instrument_token"])
            except ValueError:
                raise InputValidationError("instrument_token must be an integer")
        if "strike" in filters:
            filters["strike"] = _parse_number("strike", filters["strike"])

        return cls(
            filters=filters,
            strike_min=strike_min,
            strike_max=strike_max,
            order_by=order_by,
            order=order,
            limit=limit,
        )

    def describe(self) -> Dict[str, Any]:
        """Echo of the effective query, as returned to callers."""
        meta: Dict[str, Any] = {"filters": self.filters}
        if self.strike_min is not None:
            meta["strike_min"] = self.strike_min
        if self.strike_max is not None:
            meta["strike_max"] = self.strike_max
        if self.order_by:
            meta["order_by"] = self.order_by
            meta["order"] = self.order
        if self.limit:
            meta["limit"] = self.limit
        return meta
