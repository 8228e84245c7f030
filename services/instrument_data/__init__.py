"""
Instrument Data Service

Maintains the local mirror of the broker instrument master: feed parsing,
freshness checks, atomic refresh and queries.
"""

from .instrument_registry_service import InstrumentRegistryService
from .csv_loader import InstrumentCSVLoader
from .instrument_repository import InstrumentRepository
from .freshness import FreshnessOracle
from .refresher import InstrumentRefresher, RefreshResult
from .query import InstrumentQuery
from .exceptions import RefreshFailed

__all__ = [
    'InstrumentRegistryService',
    'InstrumentCSVLoader',
    'InstrumentRepository',
    'FreshnessOracle',
    'InstrumentRefresher',
    'RefreshResult',
    'InstrumentQuery',
    'RefreshFailed',
]
