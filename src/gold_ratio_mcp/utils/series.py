"""Calculations over ordered PricePoint sequences."""

import math
from datetime import date

import numpy as np
import pandas as pd

from gold_ratio_mcp.models import Frequency, PricePoint

TRADING_DAYS_PER_YEAR = 252


def simple_moving_average(series: list[PricePoint], period: int) -> list[PricePoint]:
    """
    Calculate Simple Moving Average.

    Each output point is stamped with the last input point of its window.
    A series shorter than the period yields an empty list (no SMA yet),
    not an error.

    Args:
        series: Ordered price points
        period: Number of points in the window

    Returns:
        SMA points, len(series) - period + 1 of them
    """
    if period <= 0:
        raise ValueError(f"SMA period must be positive, got {period}")
    if len(series) < period:
        return []

    values = pd.Series([p.value for p in series], dtype=float)
    sma = values.rolling(window=period, min_periods=period).mean()

    return [
        PricePoint(time=series[i].time, value=float(sma.iloc[i]))
        for i in range(period - 1, len(series))
    ]


def _group_key(time: str, frequency: Frequency) -> tuple[int, int]:
    day = date.fromisoformat(time[:10])
    if frequency is Frequency.WEEKLY:
        iso = day.isocalendar()
        return (iso[0], iso[1])
    return (day.year, day.month)


def resample(series: list[PricePoint], frequency: Frequency | str) -> list[PricePoint]:
    """
    Downsample to weekly (ISO week) or monthly buckets.

    Keeps the latest-dated point in each bucket regardless of input order,
    then sorts ascending by time. Daily is returned unchanged.
    """
    frequency = Frequency(frequency)
    if frequency is Frequency.DAILY:
        return list(series)

    groups: dict[tuple[int, int], PricePoint] = {}
    for point in series:
        key = _group_key(point.time, frequency)
        kept = groups.get(key)
        if kept is None or point.time >= kept.time:
            groups[key] = point

    return sorted(groups.values(), key=lambda p: p.time)


def percentile_rank(values: list[float], current: float) -> float:
    """
    Percent of values strictly below current (0-100).

    Values equal to current do not count. No tolerance is applied.
    """
    if not values:
        return 0.0
    below = sum(1 for v in values if v < current)
    return below / len(values) * 100


def percentile_value(values: list[float], percentile: float) -> float:
    """
    Nearest-rank-floor percentile: sorted[floor(p/100 * (n-1))].

    No interpolation between neighbours.
    """
    if not values:
        return 0.0
    ordered = sorted(values)
    index = math.floor((percentile / 100) * (len(ordered) - 1))
    index = min(max(index, 0), len(ordered) - 1)
    return ordered[index]


def annualized_volatility(series: list[PricePoint], frequency: Frequency | str) -> float:
    """
    Annualized standard deviation of log returns.

    Uses sample std (ddof=1), scaled by sqrt(252 / 52 / 12) for daily,
    weekly and monthly data. Steps with a zero previous value are skipped.

    Returns:
        Volatility as decimal (0.25 = 25%), 0.0 if fewer than 2 returns
    """
    if len(series) < 2:
        return 0.0

    returns = [
        math.log(cur.value / prev.value)
        for prev, cur in zip(series, series[1:])
        if prev.value != 0
    ]
    if len(returns) < 2:
        return 0.0

    std = float(np.std(returns, ddof=1))
    return std * math.sqrt(Frequency(frequency).periods_per_year)


def trend(series: list[PricePoint]) -> str:
    """Classify first-to-last move as 'Up' or 'Down'. Flat or short windows are 'Up'."""
    if len(series) < 2:
        return "Up"
    return "Down" if series[-1].value < series[0].value else "Up"


def tail(series: list[PricePoint], count: int) -> list[PricePoint]:
    """Last `count` points (all of them when the series is shorter)."""
    if count <= 0:
        return []
    return series[-count:]


def apply_total_return_simulation(
    series: list[PricePoint],
    annual_yield: float = 0.02,
) -> list[PricePoint]:
    """
    Approximate total return by compounding a daily dividend yield.

    Args:
        series: Daily price points
        annual_yield: Annual yield as decimal (default: 0.02)

    Returns:
        New series; the first point is unchanged
    """
    if not series:
        return []

    daily_yield = (1 + annual_yield) ** (1 / TRADING_DAYS_PER_YEAR) - 1
    multiplier = 1.0
    out: list[PricePoint] = []
    for i, point in enumerate(series):
        if i > 0:
            multiplier *= 1 + daily_yield
        out.append(PricePoint(time=point.time, value=point.value * multiplier))
    return out
