"""Date alignment of asset, benchmark and gold series."""

import pandas as pd

from gold_ratio_mcp.models import PricePoint


def _to_series(points: list[PricePoint]) -> pd.Series:
    """Date-indexed values. ISO dates sort chronologically as strings."""
    series = pd.Series(
        [p.value for p in points],
        index=pd.Index([p.time for p in points], name="time"),
        dtype=float,
    )
    return series[~series.index.duplicated(keep="last")].sort_index()


def _to_points(series: pd.Series) -> list[PricePoint]:
    return [PricePoint(time=time, value=float(value)) for time, value in series.items()]


def align_to_reference(series: list[PricePoint], reference: list[PricePoint]) -> list[PricePoint]:
    """
    Divide each point by the reference value carried forward to its date.

    The reference value used for a date is the most recent reference point
    at or before that date. Dates earlier than the first reference point use
    the first reference value. Output keeps the dates and length of `series`.

    Args:
        series: Asset or benchmark price points
        reference: Gold price points

    Returns:
        Ratio series (series.value / carried reference value)

    Raises:
        ValueError: If reference is empty
    """
    if not reference:
        raise ValueError("Reference series is empty")
    if not series:
        return []

    ref = _to_series(reference)
    dates = pd.Index([p.time for p in series])
    carried = ref.reindex(ref.index.union(dates)).ffill().bfill().reindex(dates)

    values = [p.value for p in series]
    return [
        PricePoint(time=time, value=value / float(gold))
        for time, value, gold in zip(dates, values, carried.to_numpy())
    ]


def relative_strength(asset: list[PricePoint], benchmark: list[PricePoint]) -> list[PricePoint]:
    """
    Asset / benchmark on dates present in both (inner join, no carry-forward).

    Benchmark points with a zero value are treated as missing.
    """
    if not asset or not benchmark:
        return []
    joined = pd.concat(
        [_to_series(asset), _to_series(benchmark)],
        axis=1,
        join="inner",
        keys=["asset", "benchmark"],
    )
    joined = joined[joined["benchmark"] != 0]
    return _to_points(joined["asset"] / joined["benchmark"])


def apply_last_point_override(series: list[PricePoint], value: float | None) -> list[PricePoint]:
    """Return a copy with the last point's value replaced (manual price entry)."""
    if value is None or not series:
        return list(series)
    if value <= 0:
        raise ValueError(f"Manual price must be positive, got {value}")
    return [*series[:-1], PricePoint(time=series[-1].time, value=float(value))]


def unit_series_like(series: list[PricePoint]) -> list[PricePoint]:
    """Flat series of 1.0 on the same dates. Stands in for a missing benchmark."""
    return [PricePoint(time=p.time, value=1.0) for p in series]
