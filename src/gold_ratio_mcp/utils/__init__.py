"""Utility modules."""

from gold_ratio_mcp.utils.alignment import (
    align_to_reference,
    apply_last_point_override,
    relative_strength,
    unit_series_like,
)
from gold_ratio_mcp.utils.decode import (
    fundamentals_from_info,
    parse_stooq_csv,
    points_from_history_frame,
    sanitize_text,
)
from gold_ratio_mcp.utils.provenance import (
    build_error_response,
    build_meta,
    build_provenance,
    build_series_provenance,
    build_unavailable_provenance,
)
from gold_ratio_mcp.utils.series import (
    annualized_volatility,
    apply_total_return_simulation,
    percentile_rank,
    percentile_value,
    resample,
    simple_moving_average,
    trend,
)
from gold_ratio_mcp.utils.validators import AnalysisRequest, check_rule

__all__ = [
    "align_to_reference",
    "apply_last_point_override",
    "relative_strength",
    "unit_series_like",
    "fundamentals_from_info",
    "parse_stooq_csv",
    "points_from_history_frame",
    "sanitize_text",
    "build_error_response",
    "build_meta",
    "build_provenance",
    "build_series_provenance",
    "build_unavailable_provenance",
    "annualized_volatility",
    "apply_total_return_simulation",
    "percentile_rank",
    "percentile_value",
    "resample",
    "simple_moving_average",
    "trend",
    "AnalysisRequest",
    "check_rule",
]
