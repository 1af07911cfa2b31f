"""Gold ratio analysis tool: fan-out fetch, engine run, cache, response."""

import asyncio
import logging
import os
from datetime import datetime, timezone
from time import perf_counter
from typing import Any

from gold_ratio_mcp.analysis.engine import apply_manual_fundamentals, build_ratio_result
from gold_ratio_mcp.data.cache import result_cache
from gold_ratio_mcp.data.market_client import (
    ADJUSTED_UNAVAILABLE,
    ReferenceDataUnavailableError,
    SeriesNotFoundError,
    SourcePolicy,
    fetch_fundamentals,
    fetch_gold_series_with_provenance,
    fetch_price_series_with_provenance,
    source_preference,
)
from gold_ratio_mcp.models import SERIES_NAMES, DividendMode, Fundamentals, RatioResult
from gold_ratio_mcp.utils.provenance import (
    build_error_response,
    build_meta,
    build_provenance,
    build_series_provenance,
    build_unavailable_provenance,
)
from gold_ratio_mcp.utils.validators import AnalysisRequest

logger = logging.getLogger(__name__)

# Upper bound for each fan-out branch (all sources and retries included)
TIMEOUT_SECONDS = float(os.environ.get("GR_REQUEST_TIMEOUT", "30.0"))
PREVIEW_POINTS = 5

FUNDAMENTAL_FIELDS = (
    "dividend_yield",
    "dgr5y",
    "payout_eps",
    "payout_fcf",
    "debt_ebitda",
    "interest_coverage",
)

# Session key -> in-flight analysis task (last submitted wins)
_in_flight: dict[str, "asyncio.Task[dict[str, Any]]"] = {}


def build_analysis_response(
    result: RatioResult,
    uris: dict[str, str],
    tool: str,
    duration_ms: float,
    data_provenance: dict[str, Any],
    include_preview: bool = True,
) -> dict[str, Any]:
    """Shape a RatioResult into the tool response (series served as resources)."""
    raw = result.to_dict()
    response: dict[str, Any] = {
        "meta": build_meta(tool, duration_ms),
        "data_provenance": data_provenance,
        "ticker": result.ticker,
        "asset_name": result.asset_name,
        "benchmark_ticker": result.benchmark_ticker,
        "horizon_years": result.horizon_years,
        "frequency": result.frequency.value,
        "dividend_mode": result.dividend_mode.value,
        "language": result.language.value,
        "badge_policy": result.badge_policy.value,
        "is_gold_proxy": result.is_gold_proxy,
        "is_benchmark_proxy": result.is_benchmark_proxy,
        "last_update": result.last_update,
        "warnings": list(result.warnings),
        "metrics": raw["metrics"],
        "series": {
            name: {
                "resource_uri": uris.get(name),
                "points": len(raw["data"][name]),
            }
            for name in SERIES_NAMES
        },
    }
    if include_preview:
        response["preview"] = {
            name: raw["data"][name][-PREVIEW_POINTS:] for name in ("ratio", "relative_ratio")
        }
    return response


async def _run_with_timing(name: str, coro: Any) -> tuple[str, Any, float]:
    start = perf_counter()
    try:
        result = await asyncio.wait_for(coro, timeout=TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        result = TimeoutError(f"{name} exceeded {TIMEOUT_SECONDS}s")
    except Exception as e:
        result = e
    return name, result, (perf_counter() - start) * 1000


def _fundamentals_warning(fundamentals: Fundamentals, request: AnalysisRequest) -> str | None:
    missing = apply_manual_fundamentals(fundamentals, request).missing
    if not missing:
        return None
    if len(missing) == len(FUNDAMENTAL_FIELDS):
        return "fundamentals_unavailable"
    return "fundamentals_partial:" + ",".join(missing)


async def _run_analysis(request: AnalysisRequest, include_preview: bool) -> dict[str, Any]:
    start_time = perf_counter()
    policy = SourcePolicy.from_env()
    adjusted = request.dividend_mode is DividendMode.TOTAL_RETURN_REAL

    specs = [
        ("asset", fetch_price_series_with_provenance(request.ticker, adjusted, policy, source_preference)),
        (
            "benchmark",
            fetch_price_series_with_provenance(
                request.benchmark_ticker, adjusted, policy, source_preference
            ),
        ),
        ("gold", fetch_gold_series_with_provenance(policy, source_preference)),
        ("fundamentals", fetch_fundamentals(request.ticker, policy)),
    ]
    results = await asyncio.gather(*[_run_with_timing(name, coro) for name, coro in specs])
    outcomes = {name: result for name, result, _ in results}
    timings = {name: round(duration, 1) for name, _, duration in results}

    asset_outcome = outcomes["asset"]
    if isinstance(asset_outcome, SeriesNotFoundError):
        return build_error_response("series_not_found", str(asset_outcome), ticker=request.ticker)
    if isinstance(asset_outcome, Exception):
        return build_error_response(
            "data_unavailable",
            f"Failed to fetch {request.ticker}: {asset_outcome}",
            ticker=request.ticker,
        )

    gold_outcome = outcomes["gold"]
    if isinstance(gold_outcome, ReferenceDataUnavailableError):
        return build_error_response(
            "reference_data_unavailable", str(gold_outcome), ticker=request.ticker
        )
    if isinstance(gold_outcome, Exception):
        return build_error_response(
            "data_unavailable",
            f"Failed to fetch gold reference: {gold_outcome}",
            ticker=request.ticker,
        )

    asset, asset_prov = asset_outcome
    gold, is_gold_proxy, gold_prov = gold_outcome
    as_of = datetime.now(timezone.utc)
    warnings: list[str] = []

    benchmark_outcome = outcomes["benchmark"]
    benchmark = None
    if isinstance(benchmark_outcome, Exception):
        logger.warning(f"Benchmark {request.benchmark_ticker} unavailable: {benchmark_outcome}")
        benchmark_prov = build_unavailable_provenance(benchmark_outcome, as_of)
    else:
        benchmark, prov = benchmark_outcome
        benchmark_prov = build_series_provenance(benchmark, prov, as_of)

    if ADJUSTED_UNAVAILABLE in asset_prov.get("warnings", []) + benchmark_prov["warnings"]:
        warnings.append(ADJUSTED_UNAVAILABLE)

    fundamentals_outcome = outcomes["fundamentals"]
    if isinstance(fundamentals_outcome, Exception):
        logger.warning(f"Fundamentals for {request.ticker} unavailable: {fundamentals_outcome}")
        fundamentals = Fundamentals(missing=FUNDAMENTAL_FIELDS)
        fundamentals_prov = build_unavailable_provenance(fundamentals_outcome, as_of)
    else:
        fundamentals = fundamentals_outcome
        fundamentals_prov = build_provenance("yfinance", as_of, missing=list(fundamentals.missing))

    if warning := _fundamentals_warning(fundamentals, request):
        warnings.append(warning)

    try:
        result = build_ratio_result(
            request,
            asset,
            benchmark,
            gold,
            fundamentals,
            is_gold_proxy=is_gold_proxy,
            warnings=tuple(warnings),
        )
    except ValueError as e:
        return build_error_response("data_unavailable", str(e), ticker=request.ticker)

    uris = result_cache.store_result(request.to_key(), result)

    data_provenance = {
        "asset": build_series_provenance(asset, asset_prov, as_of),
        "benchmark": benchmark_prov,
        "gold": build_series_provenance(gold, gold_prov, as_of),
        "fundamentals": fundamentals_prov,
    }
    response = build_analysis_response(
        result,
        uris,
        "analyze_gold_ratio",
        (perf_counter() - start_time) * 1000,
        data_provenance,
        include_preview,
    )
    response["fetch_timings_ms"] = timings
    return response


async def analyze_gold_ratio(
    ticker: str,
    benchmark_ticker: str = "SPY",
    horizon_years: int = 10,
    frequency: str = "weekly",
    dividend_mode: str = "price_only",
    language: str = "en",
    badge_policy: str = "composite",
    manual_price: float | None = None,
    manual_gold_price: float | None = None,
    manual_benchmark_price: float | None = None,
    manual_yield: float | None = None,
    manual_dgr: float | None = None,
    manual_payout_eps: float | None = None,
    manual_payout_fcf: float | None = None,
    manual_debt_ebitda: float | None = None,
    manual_interest_coverage: float | None = None,
    session_key: str | None = None,
    include_preview: bool = True,
) -> dict[str, Any]:
    """
    Analyze a ticker priced in gold ounces.

    Submitting a new analysis under the same session key cancels the one in
    flight; the cancelled caller gets a `superseded` error. Without an explicit
    session key the analysis key (ticker/horizon/frequency) is used.

    Returns:
        Response dict with metrics, series resource URIs and provenance,
        or an error response
    """
    try:
        request = AnalysisRequest(
            ticker=ticker,
            benchmark_ticker=benchmark_ticker,
            horizon_years=horizon_years,
            frequency=frequency,
            dividend_mode=dividend_mode,
            language=language,
            badge_policy=badge_policy,
            manual_price=manual_price,
            manual_gold_price=manual_gold_price,
            manual_benchmark_price=manual_benchmark_price,
            manual_yield=manual_yield,
            manual_dgr=manual_dgr,
            manual_payout_eps=manual_payout_eps,
            manual_payout_fcf=manual_payout_fcf,
            manual_debt_ebitda=manual_debt_ebitda,
            manual_interest_coverage=manual_interest_coverage,
        )
    except (ValueError, TypeError) as e:
        return build_error_response("invalid_parameters", str(e), ticker=ticker)

    key = session_key or request.to_key()
    previous = _in_flight.get(key)
    if previous is not None and not previous.done():
        logger.debug(f"analyze({key}): superseding in-flight analysis")
        previous.cancel()

    task = asyncio.create_task(_run_analysis(request, include_preview))
    _in_flight[key] = task
    try:
        return await task
    except asyncio.CancelledError:
        if _in_flight.get(key) is not task:
            return build_error_response(
                "superseded",
                "Analysis superseded by a newer request for the same session",
                ticker=request.ticker,
            )
        task.cancel()
        raise
    finally:
        if _in_flight.get(key) is task:
            _in_flight.pop(key, None)
