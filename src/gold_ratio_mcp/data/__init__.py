"""Data layer for fetching and caching series and fundamentals."""

from gold_ratio_mcp.data.cache import ResultCache, result_cache
from gold_ratio_mcp.data.market_client import (
    ReferenceDataUnavailableError,
    SeriesNotFoundError,
    ServerShuttingDownError,
    SourcePolicy,
    SourcePreference,
    SourceRetryError,
    fetch_fundamentals,
    fetch_gold_series,
    fetch_gold_series_with_provenance,
    fetch_price_series,
    fetch_price_series_with_provenance,
    shutdown_executor,
)

__all__ = [
    # Cache
    "ResultCache",
    "result_cache",
    # Market data
    "ReferenceDataUnavailableError",
    "SeriesNotFoundError",
    "ServerShuttingDownError",
    "SourcePolicy",
    "SourcePreference",
    "SourceRetryError",
    "fetch_fundamentals",
    "fetch_gold_series",
    "fetch_gold_series_with_provenance",
    "fetch_price_series",
    "fetch_price_series_with_provenance",
    "shutdown_executor",
]
