"""Manual override of a single dividend fundamental on an existing result."""

import math
from dataclasses import replace

from gold_ratio_mcp.analysis.metrics import SeriesStats, inputs_from_metrics
from gold_ratio_mcp.analysis.scoring import derive_metrics
from gold_ratio_mcp.models import RatioResult

# Editor field name -> DividendInputs attribute. yield/dgr5y are in percent.
EDITABLE_FIELDS = {
    "yield": "dividend_yield",
    "dividend_yield": "dividend_yield",
    "dgr5y": "dgr5y",
    "payout_eps": "payout_eps",
    "payout_fcf": "payout_fcf",
    "debt_ebitda": "debt_ebitda",
    "interest_coverage": "interest_coverage",
}


def current_value(result: RatioResult, field: str) -> float:
    """Value of an editable field as it was scored, at full precision."""
    name = _resolve(field)
    return getattr(inputs_from_metrics(result.metrics), name)


def _resolve(field: str) -> str:
    key = (field or "").strip().lower()
    if key not in EDITABLE_FIELDS:
        allowed = sorted(set(EDITABLE_FIELDS) - {"dividend_yield"})
        raise ValueError(f"Invalid field '{field}'. Must be one of: {allowed}")
    return EDITABLE_FIELDS[key]


def recalculate(result: RatioResult, field: str, value: float) -> RatioResult:
    """
    Re-derive every dependent metric after editing one fundamental.

    Series statistics are reused as-is; chowder, safety, expected return,
    scores, zone, badge and triggers are recomputed through the same path as
    the initial analysis, so editing a field to its current value returns an
    equal result.

    Args:
        result: Result to edit (not modified)
        field: One of yield, dgr5y, payout_eps, payout_fcf, debt_ebitda,
            interest_coverage
        value: New value in display units

    Returns:
        New RatioResult

    Raises:
        ValueError: Unknown field or non-finite value
    """
    name = _resolve(field)
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid value '{value}' for {field}") from None
    if not math.isfinite(value):
        raise ValueError(f"Invalid value '{value}' for {field}. Must be a finite number")

    inputs = inputs_from_metrics(result.metrics).with_value(name, value)
    metrics = derive_metrics(
        SeriesStats.from_metrics(result.metrics),
        inputs,
        result.language,
        result.badge_policy,
    )
    return replace(result, metrics=metrics)
