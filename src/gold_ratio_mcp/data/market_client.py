"""Async market data client: price series, gold reference and fundamentals.

Blocking yfinance and Stooq calls run on a bounded thread pool. Each series
is tried source by source under a SourcePolicy; the first source that
returns data wins and is remembered in a SourcePreference.
"""

import asyncio
import logging
import os
import random
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import partial
from typing import Any, TypeVar

import requests
import yfinance as yf
from requests.exceptions import ConnectionError as RequestsConnectionError
from requests.exceptions import HTTPError, Timeout

from gold_ratio_mcp.models import Fundamentals, PricePoint
from gold_ratio_mcp.utils.decode import (
    fundamentals_from_info,
    parse_stooq_csv,
    points_from_history_frame,
    scale_series,
)

logger = logging.getLogger(__name__)

# Bounded concurrency for blocking provider calls
_max_workers = int(os.environ.get("GR_MAX_WORKERS", "4"))
_executor = ThreadPoolExecutor(max_workers=_max_workers)
_fetch_semaphore = asyncio.Semaphore(_max_workers)

# Retry configuration
_max_retries = int(os.environ.get("GR_MAX_RETRIES", "2"))
_base_delay = float(os.environ.get("GR_BASE_DELAY", "1.0"))  # seconds
_max_delay = float(os.environ.get("GR_MAX_DELAY", "10.0"))  # seconds

# Per remote call timeout
_fetch_timeout = float(os.environ.get("GR_FETCH_TIMEOUT", "10.0"))  # seconds

_source_order = tuple(
    s.strip().lower()
    for s in os.environ.get("GR_SOURCE_ORDER", "yfinance,stooq").split(",")
    if s.strip()
)
_shuffle_sources = os.environ.get("GR_SHUFFLE_SOURCES", "0").lower() in ("1", "true", "yes")

STOOQ_URL = "https://stooq.com/q/d/l/"
# Fewer points than this is treated as "no data" (error pages, stubs)
MIN_SERIES_POINTS = 10

# Spot gold per source, then the GLD ETF as a proxy
GOLD_SYMBOLS = {"yfinance": "GC=F", "stooq": "XAUUSD"}
GOLD_PROXY_SYMBOLS = {"yfinance": "GLD", "stooq": "GLD.US"}

# Sources that only serve unadjusted closes
UNADJUSTED_SOURCES = frozenset({"stooq"})
ADJUSTED_UNAVAILABLE = "adjusted_unavailable"
# GLD share price to one troy ounce of gold
GLD_OUNCE_FACTOR = 10.15

# Shutdown coordination
shutdown_event = asyncio.Event()

T = TypeVar("T")


class ServerShuttingDownError(Exception):
    """Raised when server is shutting down."""

    pass


class SourceRetryError(Exception):
    """Raised when a source fails after all retries."""

    def __init__(self, message: str, last_error: Exception | None = None):
        super().__init__(message)
        self.last_error = last_error


class SeriesNotFoundError(Exception):
    """No price history for a symbol from any source."""

    def __init__(self, symbol: str, attempts: list[str] | None = None):
        super().__init__(
            f"Price series for {symbol} not found. Verify the symbol or try again later."
        )
        self.symbol = symbol
        self.attempts = attempts or []


class ReferenceDataUnavailableError(Exception):
    """No gold series from spot sources or the GLD proxy."""

    pass


@dataclass(frozen=True)
class SourcePolicy:
    """
    Which sources to try and how long each attempt may take.

    First success wins. `shuffle` randomizes the order per fetch to spread
    load; a recorded preference is still tried first.
    """

    order: tuple[str, ...] = ("yfinance", "stooq")
    shuffle: bool = False
    attempt_timeout: float = 10.0

    def __post_init__(self) -> None:
        unknown = [s for s in self.order if s not in SOURCES]
        if unknown or not self.order:
            raise ValueError(f"Invalid source order {self.order}. Known sources: {sorted(SOURCES)}")
        if self.attempt_timeout <= 0:
            raise ValueError("attempt_timeout must be positive")

    @classmethod
    def from_env(cls) -> "SourcePolicy":
        return cls(order=_source_order, shuffle=_shuffle_sources, attempt_timeout=_fetch_timeout)

    def candidates(self, preferred: str | None = None) -> list[str]:
        order = list(self.order)
        if self.shuffle:
            random.shuffle(order)
        if preferred in order:
            order.remove(preferred)
            order.insert(0, preferred)
        return order


@dataclass
class SourcePreference:
    """Last source that succeeded after the first candidate failed."""

    preferred: str | None = None

    def record(self, source: str) -> None:
        if source != self.preferred:
            logger.info(f"Source preference updated: {self.preferred} -> {source}")
        self.preferred = source


@dataclass
class RetryResult:
    """Result of a retry operation with provenance tracking."""

    result: Any
    attempts: int
    total_backoff_seconds: float
    source: str
    tried: list[str] = field(default_factory=list)

    def to_provenance(self) -> dict[str, Any]:
        """Convert to provenance dict for data_provenance field."""
        return {
            "source": self.source,
            "attempts": self.attempts,
            "total_backoff_seconds": self.total_backoff_seconds,
            "fallback_used": bool(self.tried and self.tried[0] != self.source),
            "sources_tried": list(self.tried),
        }


def _is_retryable_error(error: Exception) -> bool:
    """Check if an error is transient."""
    if isinstance(error, (RequestsConnectionError, Timeout)):
        return True

    if isinstance(error, HTTPError) and error.response is not None:
        status_code = error.response.status_code
        return status_code == 429 or 500 <= status_code < 600

    error_str = str(error).lower()
    retryable_patterns = [
        "rate limit",
        "too many requests",
        "connection",
        "timeout",
        "temporary",
    ]
    return any(pattern in error_str for pattern in retryable_patterns)


def _calculate_backoff(attempt: int) -> float:
    """Calculate delay with exponential backoff and jitter."""
    delay = _base_delay * (2**attempt)
    # Jitter of +/-25%
    delay += delay * 0.25 * (2 * random.random() - 1)
    return min(delay, _max_delay)


async def _retry_with_backoff(
    operation_name: str,
    sync_func: Callable[[], T],
    source: str,
    max_retries: int = _max_retries,
) -> RetryResult:
    """
    Execute a synchronous function on the executor with retry logic.

    Raises:
        SourceRetryError: If all retries exhausted
        ServerShuttingDownError: If server is shutting down
    """
    last_error: Exception | None = None
    total_backoff = 0.0

    for attempt in range(max_retries + 1):
        if shutdown_event.is_set():
            raise ServerShuttingDownError("Server is shutting down")

        try:
            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(_executor, sync_func)
            return RetryResult(
                result=result,
                attempts=attempt + 1,
                total_backoff_seconds=round(total_backoff, 2),
                source=source,
            )
        except Exception as e:
            last_error = e
            if not _is_retryable_error(e):
                raise

            if attempt >= max_retries:
                logger.warning(
                    f"{operation_name}: Failed after {attempt + 1} attempts. Last error: {e}"
                )
                raise SourceRetryError(
                    f"Failed after {attempt + 1} attempts: {e}",
                    last_error=last_error,
                ) from e

            delay = _calculate_backoff(attempt)
            total_backoff += delay
            logger.info(
                f"{operation_name}: Attempt {attempt + 1} failed ({e}). "
                f"Retrying in {delay:.1f}s..."
            )
            await asyncio.sleep(delay)

    raise SourceRetryError(f"Failed after {max_retries + 1} attempts", last_error=last_error)


# ============================================================================
# Blocking source fetchers
# ============================================================================


def _yfinance_history(symbol: str, adjusted: bool, timeout: float) -> list[PricePoint]:
    df = yf.download(
        symbol,
        period="max",
        interval="1d",
        auto_adjust=adjusted,
        progress=False,
        threads=False,
        timeout=timeout,
    )
    return points_from_history_frame(df, adjusted)


def stooq_symbol_variants(symbol: str) -> list[str]:
    """Stooq suffix candidates: US listing first, then raw, UK, PT, Lisbon."""
    normalized = symbol.upper().strip()
    variants = [
        normalized if "." in normalized else f"{normalized}.US",
        normalized,
        f"{normalized}.UK",
        f"{normalized}.PT",
        f"{normalized}.LS",
    ]
    return list(dict.fromkeys(variants))


def _stooq_history(symbol: str, adjusted: bool, timeout: float) -> list[PricePoint]:
    # Stooq serves one daily series per symbol; adjusted has no effect
    variants = [symbol] if symbol in GOLD_SYMBOLS.values() else stooq_symbol_variants(symbol)
    for variant in variants:
        response = requests.get(
            STOOQ_URL,
            params={"s": variant.lower(), "i": "d"},
            timeout=timeout,
        )
        response.raise_for_status()
        points = parse_stooq_csv(response.text)
        if len(points) > MIN_SERIES_POINTS:
            logger.info(f"stooq: {len(points)} points for {variant}")
            return points
    return []


SOURCES: dict[str, Callable[[str, bool, float], list[PricePoint]]] = {
    "yfinance": _yfinance_history,
    "stooq": _stooq_history,
}

# Module-level preference shared across requests
source_preference = SourcePreference()


async def _fetch_series(
    symbols: dict[str, str],
    adjusted: bool,
    policy: SourcePolicy,
    preference: SourcePreference,
) -> tuple[list[PricePoint], dict[str, Any]]:
    """
    Try each candidate source in order; first non-empty series wins.

    Args:
        symbols: Source name -> symbol on that source

    Raises:
        SeriesNotFoundError: If every source failed or returned no data
        ServerShuttingDownError: If server is shutting down
    """
    if shutdown_event.is_set():
        raise ServerShuttingDownError("Server is shutting down")

    display = next(iter(symbols.values()))
    candidates = policy.candidates(preference.preferred)
    tried: list[str] = []

    for index, source in enumerate(candidates):
        symbol = symbols[source]
        tried.append(source)
        operation = f"{source}.history({symbol})"
        func = partial(SOURCES[source], symbol, adjusted, policy.attempt_timeout)

        try:
            async with _fetch_semaphore:
                retry_result = await asyncio.wait_for(
                    _retry_with_backoff(operation, func, source),
                    timeout=policy.attempt_timeout,
                )
        except ServerShuttingDownError:
            raise
        except asyncio.TimeoutError:
            logger.warning(f"{operation}: timed out after {policy.attempt_timeout}s")
            continue
        except Exception as e:
            logger.warning(f"{operation}: failed ({type(e).__name__}: {e})")
            continue

        points = retry_result.result
        if len(points) <= MIN_SERIES_POINTS:
            logger.info(f"{operation}: no usable data ({len(points)} points)")
            continue

        if index > 0:
            preference.record(source)
        retry_result.tried = tried
        provenance = retry_result.to_provenance()
        if adjusted and source in UNADJUSTED_SOURCES:
            logger.warning(f"{operation}: adjusted prices unavailable, using raw closes")
            provenance["warnings"] = [ADJUSTED_UNAVAILABLE]
        return points, provenance

    raise SeriesNotFoundError(display, attempts=tried)


async def fetch_price_series_with_provenance(
    symbol: str,
    adjusted: bool = False,
    policy: SourcePolicy | None = None,
    preference: SourcePreference | None = None,
) -> tuple[list[PricePoint], dict[str, Any]]:
    """
    Fetch daily closes for a ticker with source provenance.

    Returns:
        Tuple of (points ascending and deduplicated, provenance dict)

    Raises:
        SeriesNotFoundError: If no source has the symbol
    """
    normalized = symbol.upper().strip()
    policy = policy or SourcePolicy.from_env()
    preference = preference if preference is not None else source_preference
    symbols = {"yfinance": normalized, "stooq": normalized}
    try:
        return await _fetch_series(symbols, adjusted, policy, preference)
    except SeriesNotFoundError as e:
        raise SeriesNotFoundError(normalized, attempts=e.attempts) from e


async def fetch_price_series(
    symbol: str,
    adjusted: bool = False,
    policy: SourcePolicy | None = None,
    preference: SourcePreference | None = None,
) -> list[PricePoint]:
    """Fetch daily closes for a ticker. See fetch_price_series_with_provenance."""
    points, _ = await fetch_price_series_with_provenance(symbol, adjusted, policy, preference)
    return points


async def fetch_gold_series_with_provenance(
    policy: SourcePolicy | None = None,
    preference: SourcePreference | None = None,
) -> tuple[list[PricePoint], bool, dict[str, Any]]:
    """
    Fetch gold per ounce: spot first, then GLD scaled to ounces.

    Returns:
        Tuple of (points, is_proxy, provenance dict)

    Raises:
        ReferenceDataUnavailableError: If neither spot nor GLD is available
    """
    policy = policy or SourcePolicy.from_env()
    preference = preference if preference is not None else source_preference

    try:
        points, prov = await _fetch_series(GOLD_SYMBOLS, False, policy, preference)
        return points, False, prov
    except SeriesNotFoundError:
        logger.warning("Spot gold unavailable from all sources, falling back to GLD proxy")

    try:
        points, prov = await _fetch_series(GOLD_PROXY_SYMBOLS, False, policy, preference)
    except SeriesNotFoundError as e:
        raise ReferenceDataUnavailableError(
            "Gold price unavailable. Markets might be closed or the service interrupted."
        ) from e

    prov["proxy"] = "GLD"
    prov["proxy_factor"] = GLD_OUNCE_FACTOR
    return scale_series(points, GLD_OUNCE_FACTOR), True, prov


async def fetch_gold_series(
    policy: SourcePolicy | None = None,
    preference: SourcePreference | None = None,
) -> tuple[list[PricePoint], bool]:
    """Fetch gold per ounce. Returns (points, is_proxy)."""
    points, is_proxy, _ = await fetch_gold_series_with_provenance(policy, preference)
    return points, is_proxy


async def fetch_fundamentals(ticker: str, policy: SourcePolicy | None = None) -> Fundamentals:
    """
    Fetch dividend fundamentals from yfinance info and dividend history.

    Decoding is tolerant; retrieval errors propagate so the caller can
    degrade to defaults with a warning. Retries share one attempt timeout.

    Raises:
        ServerShuttingDownError: If server is shutting down
        SourceRetryError: If all retries exhausted for retryable errors
        asyncio.TimeoutError: If the attempt timeout elapses
    """
    if shutdown_event.is_set():
        raise ServerShuttingDownError("Server is shutting down")

    normalized = ticker.upper().strip()
    policy = policy or SourcePolicy.from_env()
    operation = f"fetch_fundamentals({normalized})"

    def _fetch() -> Fundamentals:
        yf_ticker = yf.Ticker(normalized)
        return fundamentals_from_info(yf_ticker.info, yf_ticker.dividends)

    async with _fetch_semaphore:
        try:
            retry_result = await asyncio.wait_for(
                _retry_with_backoff(operation, _fetch, "yfinance"),
                timeout=policy.attempt_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"{operation}: timed out after {policy.attempt_timeout}s")
            raise
        return retry_result.result


async def shutdown_executor() -> None:
    """Cleanup on server shutdown."""
    shutdown_event.set()
    _executor.shutdown(wait=False, cancel_futures=True)
