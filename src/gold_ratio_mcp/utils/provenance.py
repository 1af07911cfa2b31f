"""Response metadata, data provenance and error blocks."""

from datetime import datetime
from typing import Any

from gold_ratio_mcp import SCHEMA_VERSION, SERVER_VERSION
from gold_ratio_mcp.models import PricePoint


def build_meta(tool: str, duration_ms: float | None = None) -> dict[str, Any]:
    """
    Build standard metadata block for responses.

    Args:
        tool: Name of the tool producing this response
        duration_ms: Execution time in milliseconds (optional)

    Returns:
        Metadata dict with version info
    """
    meta: dict[str, Any] = {
        "server_version": SERVER_VERSION,
        "schema_version": SCHEMA_VERSION,
        "tool": tool,
    }
    if duration_ms is not None:
        meta["duration_ms"] = round(duration_ms, 1)
    return meta


def build_provenance(
    source: str,
    as_of: datetime | str | None = None,
    **kwargs: Any,
) -> dict[str, Any]:
    """Provenance for one fetch ("yfinance", "stooq", "manual" or "none"). Always carries `warnings`."""
    prov: dict[str, Any] = {"source": source}
    if as_of is not None:
        prov["as_of"] = as_of.isoformat() if isinstance(as_of, datetime) else as_of
    prov.update(kwargs)
    prov.setdefault("warnings", [])
    return prov


def build_series_provenance(
    points: list[PricePoint],
    fetch_provenance: dict[str, Any],
    as_of: datetime | str | None = None,
) -> dict[str, Any]:
    """
    Provenance for a fetched price series.

    Merges the fetcher's block (source, attempts, backoff, sources tried)
    with the date span and length of the series as it was received.
    """
    return build_provenance(
        as_of=as_of,
        first_date=points[0].time if points else None,
        last_date=points[-1].time if points else None,
        points=len(points),
        **fetch_provenance,
    )


def build_unavailable_provenance(
    error: BaseException,
    as_of: datetime | str | None = None,
) -> dict[str, Any]:
    """Provenance for a fetch that failed without failing the analysis."""
    return build_provenance("none", as_of, warnings=[f"{type(error).__name__}: {error}"])


def build_error_response(
    error_type: str,
    message: str,
    ticker: str | None = None,
    retry_after_seconds: int | None = None,
) -> dict[str, Any]:
    """
    Error response returned by tools instead of raising.

    error_type is one of series_not_found, reference_data_unavailable,
    invalid_parameters, data_unavailable, not_found or superseded.
    """
    response: dict[str, Any] = {
        "error": True,
        "error_type": error_type,
        "message": message,
        "meta": build_meta("error"),
    }
    if ticker is not None:
        response["ticker"] = ticker
    if retry_after_seconds is not None:
        response["retry_after_seconds"] = retry_after_seconds
    return response
