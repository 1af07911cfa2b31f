"""Ratio series resource handler."""

from gold_ratio_mcp.data.cache import result_cache, series_uri
from gold_ratio_mcp.models import SERIES_NAMES
from gold_ratio_mcp.utils.validators import AnalysisRequest


class ResourceNotFoundError(Exception):
    """Resource not found in cache."""

    pass


def resolve_series_uri(ticker: str, horizon: str, frequency: str, series: str) -> str:
    """
    Canonical URI for ratio://{ticker}/{horizon}/{frequency}/{series}.

    Raises:
        ValueError: Invalid horizon, frequency or series name
    """
    if series not in SERIES_NAMES:
        raise ValueError(f"Invalid series '{series}'. Must be one of: {list(SERIES_NAMES)}")
    key = AnalysisRequest(
        ticker=ticker,
        horizon_years=int(horizon),
        frequency=frequency,
    ).to_key()
    return series_uri(key, series)


def read_series_resource(uri: str) -> tuple[str, str]:
    """
    Serve cached series data only. O(1), no transformation.

    Args:
        uri: Resource URI (e.g., ratio://MO/10/weekly/ratio)

    Returns:
        Tuple of (csv_text, mime_type)

    Raises:
        ResourceNotFoundError: If resource not in cache
    """
    csv_text = result_cache.get_csv(uri)

    if csv_text is None:
        raise ResourceNotFoundError(f"Resource not cached. Call analyze_gold_ratio first: {uri}")

    return csv_text, "text/csv"
