"""Metric derivation: horizon statistics, chowder, dividend safety, expected return."""

from dataclasses import dataclass

from gold_ratio_mcp.models import (
    DividendInputs,
    ExpectedReturn,
    Frequency,
    Metrics,
    PercentileTable,
    PricePoint,
    Signals,
)
from gold_ratio_mcp.utils.series import (
    TRADING_DAYS_PER_YEAR,
    annualized_volatility,
    percentile_rank,
    percentile_value,
    simple_moving_average,
    tail,
    trend,
)

SMA_200D_PERIOD = 200
# 200 weeks expressed in trading days
SMA_200W_PERIOD = 1000

CHOWDER_THRESHOLD = 12.0
MOAT_BASELINE = 2.0

# Three-tier dividend safety scale
TIER_HIGH = 5.0
TIER_MID = 3.5
TIER_LOW = 1.5

RESILIENCE_WEIGHTS = {
    "payout": 0.4,
    "debt": 0.3,
    "coverage": 0.3,
}

# Decimal places shown for each dividend input. Scores use full precision.
INPUT_PRECISION = {
    "dividend_yield": 2,
    "dgr5y": 2,
    "payout_eps": 1,
    "payout_fcf": 1,
    "debt_ebitda": 2,
    "interest_coverage": 2,
}

# Expected return multipliers applied to dividend growth
SCENARIO_GROWTH_FACTORS = {
    "conservative": 0.6,
    "base": 1.0,
    "optimistic": 1.4,
}


def horizon_window_size(horizon_years: int) -> int:
    """Number of trading-day points kept for a horizon."""
    return horizon_years * TRADING_DAYS_PER_YEAR


def display_value(name: str, value: float) -> float:
    """Round a dividend input to the precision it is displayed with."""
    return round(value, INPUT_PRECISION[name])


def inputs_from_metrics(metrics: Metrics) -> DividendInputs:
    """Scoring inputs behind a metrics block, falling back to the displayed values."""
    if metrics.dividend_inputs is not None:
        return metrics.dividend_inputs
    safety = metrics.dividend_safety
    return DividendInputs(
        dividend_yield=metrics.chowder.dividend_yield,
        dgr5y=metrics.chowder.dgr5y,
        payout_eps=safety.payout_eps,
        payout_fcf=safety.payout_fcf,
        debt_ebitda=safety.debt_ebitda,
        interest_coverage=safety.interest_coverage,
    )


@dataclass(frozen=True)
class SeriesStats:
    """Everything the scoring model needs from the price series."""

    current_ratio: float
    percentile: float
    trend_12m: str
    volatility_annual: float
    percentiles: PercentileTable
    signals: Signals

    @classmethod
    def from_metrics(cls, metrics: Metrics) -> "SeriesStats":
        return cls(
            current_ratio=metrics.current_ratio,
            percentile=metrics.percentile,
            trend_12m=metrics.trend_12m,
            volatility_annual=metrics.volatility_annual,
            percentiles=metrics.percentiles,
            signals=metrics.signals,
        )


def chowder_number(yield_pct: float, dgr_pct: float) -> float:
    """Chowder Number: dividend yield plus 5y dividend growth, in percentage points."""
    return yield_pct + dgr_pct


def passes_chowder_gate(number: float) -> bool:
    return number >= CHOWDER_THRESHOLD


def payout_score(payout_fcf: float) -> float:
    if payout_fcf < 50:
        return TIER_HIGH
    if payout_fcf < 75:
        return TIER_MID
    return TIER_LOW


def debt_score(debt_ebitda: float) -> float:
    if debt_ebitda < 1.5:
        return TIER_HIGH
    if debt_ebitda < 3.5:
        return TIER_MID
    return TIER_LOW


def coverage_score(interest_coverage: float) -> float:
    if interest_coverage > 10:
        return TIER_HIGH
    if interest_coverage > 4:
        return TIER_MID
    return TIER_LOW


def resilience_score(payout_fcf: float, debt_ebitda: float, interest_coverage: float) -> float:
    """Weighted dividend safety score (1.5-5.0)."""
    return (
        payout_score(payout_fcf) * RESILIENCE_WEIGHTS["payout"]
        + debt_score(debt_ebitda) * RESILIENCE_WEIGHTS["debt"]
        + coverage_score(interest_coverage) * RESILIENCE_WEIGHTS["coverage"]
    )


def engine_score(dgr_pct: float) -> float:
    """Growth engine score, capped at 5."""
    return min(5.0, dgr_pct / 2.5)


def moat_score(yield_pct: float, dgr_pct: float) -> float:
    """Step function on (yield, growth) pairs."""
    if yield_pct > 2.5 and dgr_pct > 8:
        return 5.0
    if yield_pct > 1.5 and dgr_pct > 5:
        return 4.0
    if yield_pct > 0.5 and dgr_pct > 2:
        return 3.0
    return MOAT_BASELINE


def expected_return(yield_pct: float, dgr_pct: float) -> ExpectedReturn:
    """Chowder-style additive total return scenarios, in percentage points."""
    return ExpectedReturn(
        conservative=yield_pct + dgr_pct * SCENARIO_GROWTH_FACTORS["conservative"],
        base=yield_pct + dgr_pct * SCENARIO_GROWTH_FACTORS["base"],
        optimistic=yield_pct + dgr_pct * SCENARIO_GROWTH_FACTORS["optimistic"],
    )


def gold_price_score(percentile: float) -> float:
    """Lower percentile (cheap in gold) scores higher."""
    if percentile <= 15:
        return 5.0
    if percentile <= 30:
        return 4.5
    if percentile <= 50:
        return 3.5
    if percentile <= 75:
        return 2.5
    return 1.0


def yield_history_score(yield_pct: float) -> float:
    return min(5.0, (yield_pct / 3) * 4)


def percentile_table(values: list[float]) -> PercentileTable:
    return PercentileTable(
        p10=percentile_value(values, 10),
        p25=percentile_value(values, 25),
        p50=percentile_value(values, 50),
        p75=percentile_value(values, 75),
        p90=percentile_value(values, 90),
    )


def last_value_or(series: list[PricePoint], fallback: float) -> float:
    """Last SMA value, or the fallback when there is no SMA yet."""
    return series[-1].value if series else fallback


def build_signals(
    ratio: list[PricePoint],
    relative: list[PricePoint],
    relative_available: bool = True,
) -> Signals:
    """
    SMA crossover signals on the full (unwindowed) daily series.

    Args:
        ratio: Asset/gold ratio series
        relative: Asset/benchmark series
        relative_available: False when the benchmark was substituted

    Returns:
        Signals with nullable fields left None when the SMA is missing
    """
    current = ratio[-1].value
    sma_200d = simple_moving_average(ratio, SMA_200D_PERIOD)
    sma_200w = simple_moving_average(ratio, SMA_200W_PERIOD)

    relative_above: bool | None = None
    if relative_available and relative:
        relative_sma = simple_moving_average(relative, SMA_200D_PERIOD)
        if relative_sma:
            relative_above = relative[-1].value > relative_sma[-1].value

    return Signals(
        above_sma_200d=current > last_value_or(sma_200d, current),
        above_sma_200w=current > last_value_or(sma_200w, current),
        sma_200d_available=bool(sma_200d),
        ratio_below_sma_200w=(current < sma_200w[-1].value) if sma_200w else None,
        relative_above_sma_200d=relative_above,
    )


def compute_series_stats(
    ratio: list[PricePoint],
    relative: list[PricePoint],
    horizon_years: int,
    relative_available: bool = True,
) -> SeriesStats:
    """
    Horizon statistics for the daily asset/gold ratio series.

    Args:
        ratio: Full daily ratio series (not windowed)
        relative: Full daily asset/benchmark series
        horizon_years: Lookback horizon in years
        relative_available: False when the benchmark was substituted

    Returns:
        SeriesStats for the scoring model

    Raises:
        ValueError: If ratio is empty
    """
    if not ratio:
        raise ValueError("Ratio series is empty")

    current = ratio[-1].value
    window = [p.value for p in tail(ratio, horizon_window_size(horizon_years))]
    last_year = tail(ratio, TRADING_DAYS_PER_YEAR)

    return SeriesStats(
        current_ratio=current,
        percentile=percentile_rank(window, current),
        trend_12m=trend(last_year),
        volatility_annual=annualized_volatility(last_year, Frequency.DAILY),
        percentiles=percentile_table(window),
        signals=build_signals(ratio, relative, relative_available),
    )
