"""Analysis engine: metrics, scoring and manual override."""

from gold_ratio_mcp.analysis.engine import apply_manual_fundamentals, build_ratio_result
from gold_ratio_mcp.analysis.metrics import SeriesStats, compute_series_stats
from gold_ratio_mcp.analysis.override import EDITABLE_FIELDS, recalculate
from gold_ratio_mcp.analysis.scoring import derive_metrics
from gold_ratio_mcp.models import DividendInputs

__all__ = [
    "DividendInputs",
    "EDITABLE_FIELDS",
    "SeriesStats",
    "apply_manual_fundamentals",
    "build_ratio_result",
    "compute_series_stats",
    "derive_metrics",
    "recalculate",
]
