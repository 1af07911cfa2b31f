"""Manual fundamental override tool for a cached analysis."""

from datetime import datetime, timezone
from time import perf_counter
from typing import Any

from gold_ratio_mcp.analysis.override import current_value, recalculate
from gold_ratio_mcp.data.cache import result_cache
from gold_ratio_mcp.tools.analyze import build_analysis_response
from gold_ratio_mcp.utils.provenance import build_error_response, build_provenance
from gold_ratio_mcp.utils.validators import AnalysisRequest


async def override_fundamental(
    ticker: str,
    field: str,
    value: float,
    horizon_years: int = 10,
    frequency: str = "weekly",
) -> dict[str, Any]:
    """
    Edit one dividend fundamental of the cached analysis and re-score it.

    Args:
        ticker: Ticker of a previous analyze_gold_ratio call
        field: yield, dgr5y, payout_eps, payout_fcf, debt_ebitda or
            interest_coverage (yield and dgr5y in percent)
        value: New value
        horizon_years: Horizon of the cached analysis
        frequency: Frequency of the cached analysis

    Returns:
        Response dict shaped like analyze_gold_ratio, or an error response
    """
    start_time = perf_counter()

    try:
        key = AnalysisRequest(
            ticker=ticker, horizon_years=horizon_years, frequency=frequency
        ).to_key()
    except (ValueError, TypeError) as e:
        return build_error_response("invalid_parameters", str(e), ticker=ticker)

    cached = result_cache.get_result(key)
    if cached is None:
        return build_error_response(
            "not_found",
            f"No cached analysis for {key}. Call analyze_gold_ratio first.",
            ticker=ticker,
        )

    try:
        previous = current_value(cached, field)
        result = recalculate(cached, field, value)
    except ValueError as e:
        return build_error_response("invalid_parameters", str(e), ticker=cached.ticker)

    uris = result_cache.store_result(key, result)

    as_of = datetime.now(timezone.utc)
    response = build_analysis_response(
        result,
        uris,
        "override_fundamental",
        (perf_counter() - start_time) * 1000,
        {"fundamentals": build_provenance("manual", as_of, field=field)},
        include_preview=False,
    )
    response["override"] = {
        "field": field,
        "previous_value": previous,
        "value": current_value(result, field),
    }
    return response
