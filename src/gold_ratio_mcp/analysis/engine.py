"""Ratio analysis engine: aligned series, windowed SMAs, metrics, scores."""

import logging
from dataclasses import replace

from gold_ratio_mcp.analysis.metrics import (
    SMA_200D_PERIOD,
    SMA_200W_PERIOD,
    compute_series_stats,
    horizon_window_size,
)
from gold_ratio_mcp.analysis.scoring import derive_metrics
from gold_ratio_mcp.models import (
    DividendInputs,
    DividendMode,
    Frequency,
    Fundamentals,
    PricePoint,
    RatioResult,
    RatioSeries,
)
from gold_ratio_mcp.utils.alignment import (
    align_to_reference,
    apply_last_point_override,
    relative_strength,
    unit_series_like,
)
from gold_ratio_mcp.utils.series import (
    apply_total_return_simulation,
    resample,
    simple_moving_average,
    tail,
)
from gold_ratio_mcp.utils.validators import AnalysisRequest

logger = logging.getLogger(__name__)

BENCHMARK_UNAVAILABLE = "benchmark_unavailable"
# Yield used to simulate total return when the asset reports none
DEFAULT_SIMULATED_YIELD = 0.02

# Request field -> (Fundamentals field, scale into Fundamentals units)
MANUAL_FUNDAMENTALS = {
    "manual_yield": ("dividend_yield", 0.01),
    "manual_dgr": ("dgr5y", 0.01),
    "manual_payout_eps": ("payout_eps", 1.0),
    "manual_payout_fcf": ("payout_fcf", 1.0),
    "manual_debt_ebitda": ("debt_ebitda", 1.0),
    "manual_interest_coverage": ("interest_coverage", 1.0),
}


def apply_manual_fundamentals(fundamentals: Fundamentals, request: AnalysisRequest) -> Fundamentals:
    """Overlay the request's manual fundamentals; overridden fields are no longer missing."""
    updates: dict[str, float] = {}
    for request_field, (name, scale) in MANUAL_FUNDAMENTALS.items():
        value = getattr(request, request_field)
        if value is not None:
            updates[name] = value * scale
    if not updates:
        return fundamentals

    missing = tuple(m for m in fundamentals.missing if m not in updates)
    return replace(fundamentals, missing=missing, **updates)


def _window_and_resample(
    series: list[PricePoint],
    days_to_keep: int,
    frequency: Frequency,
) -> list[PricePoint]:
    return resample(tail(series, days_to_keep), frequency)


def _derived_series(
    ratio: list[PricePoint],
    days_to_keep: int,
    frequency: Frequency,
) -> tuple[list[PricePoint], list[PricePoint], list[PricePoint]]:
    # SMAs run on the full daily series; only the output is windowed
    return (
        _window_and_resample(ratio, days_to_keep, frequency),
        _window_and_resample(simple_moving_average(ratio, SMA_200D_PERIOD), days_to_keep, frequency),
        _window_and_resample(simple_moving_average(ratio, SMA_200W_PERIOD), days_to_keep, frequency),
    )


def build_ratio_result(
    request: AnalysisRequest,
    asset: list[PricePoint],
    benchmark: list[PricePoint] | None,
    gold: list[PricePoint],
    fundamentals: Fundamentals,
    *,
    is_gold_proxy: bool = False,
    warnings: tuple[str, ...] = (),
) -> RatioResult:
    """
    Build the complete analysis from already-fetched series.

    Pure: no I/O, no clock. Manual fundamentals in the request are applied
    here, so callers pass the fundamentals exactly as fetched.

    Args:
        request: Validated analysis parameters
        asset: Daily asset prices, ascending
        benchmark: Daily benchmark prices, or None/empty when unavailable
        gold: Daily gold prices (ounce), ascending
        fundamentals: Dividend fundamentals as fetched
        is_gold_proxy: True when gold was derived from GLD
        warnings: Warnings collected while fetching

    Returns:
        RatioResult

    Raises:
        ValueError: If the asset or gold series is empty
    """
    if not asset:
        raise ValueError(f"Price series for {request.ticker} is empty")
    if not gold:
        raise ValueError("Gold series is empty")

    fundamentals = apply_manual_fundamentals(fundamentals, request)
    notes = list(warnings)

    if request.dividend_mode is DividendMode.TOTAL_RETURN_APPROX:
        annual_yield = fundamentals.dividend_yield or DEFAULT_SIMULATED_YIELD
        asset = apply_total_return_simulation(asset, annual_yield)

    asset = apply_last_point_override(asset, request.manual_price)
    gold = apply_last_point_override(gold, request.manual_gold_price)

    is_benchmark_proxy = not benchmark
    if is_benchmark_proxy:
        logger.warning(f"{request.ticker}: benchmark {request.benchmark_ticker} unavailable, using unit series")
        benchmark = unit_series_like(asset)
        if BENCHMARK_UNAVAILABLE not in notes:
            notes.append(BENCHMARK_UNAVAILABLE)
    else:
        benchmark = apply_last_point_override(benchmark, request.manual_benchmark_price)

    ratio = align_to_reference(asset, gold)
    benchmark_ratio = align_to_reference(benchmark, gold)
    relative = relative_strength(asset, benchmark)

    stats = compute_series_stats(
        ratio,
        relative,
        request.horizon_years,
        relative_available=not is_benchmark_proxy,
    )
    metrics = derive_metrics(
        stats,
        DividendInputs.from_fundamentals(fundamentals),
        request.language,
        request.badge_policy,
    )

    days_to_keep = horizon_window_size(request.horizon_years)
    frequency = request.frequency
    ratio_out, ratio_200d, ratio_200w = _derived_series(ratio, days_to_keep, frequency)
    bench_out, bench_200d, bench_200w = _derived_series(benchmark_ratio, days_to_keep, frequency)
    rel_out, rel_200d, rel_200w = _derived_series(relative, days_to_keep, frequency)

    return RatioResult(
        ticker=request.ticker,
        asset_name=fundamentals.name or request.ticker,
        benchmark_ticker=request.benchmark_ticker,
        horizon_years=request.horizon_years,
        frequency=frequency,
        dividend_mode=request.dividend_mode,
        language=request.language,
        badge_policy=request.badge_policy,
        is_gold_proxy=is_gold_proxy,
        is_benchmark_proxy=is_benchmark_proxy,
        last_update=asset[-1].time,
        data=RatioSeries(
            ratio=ratio_out,
            ratio_sma_200d=ratio_200d,
            ratio_sma_200w=ratio_200w,
            benchmark_ratio=bench_out,
            benchmark_sma_200d=bench_200d,
            benchmark_sma_200w=bench_200w,
            relative_ratio=rel_out,
            relative_sma_200d=rel_200d,
            relative_sma_200w=rel_200w,
        ),
        metrics=metrics,
        warnings=tuple(notes),
    )
