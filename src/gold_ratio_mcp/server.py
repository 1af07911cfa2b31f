"""Gold Ratio Analysis MCP Server using FastMCP."""

import asyncio
import json
import logging
import os

from fastmcp import FastMCP

from gold_ratio_mcp import SCHEMA_VERSION, SERVER_VERSION
from gold_ratio_mcp.data.market_client import shutdown_executor
from gold_ratio_mcp.prompts.templates import get_prompt
from gold_ratio_mcp.resources.series_resource import (
    ResourceNotFoundError,
    read_series_resource,
    resolve_series_uri,
)
from gold_ratio_mcp.tools import analyze_gold_ratio, override_fundamental

# Configure logging
log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=getattr(logging, log_level, logging.INFO))
logger = logging.getLogger(__name__)

# Create FastMCP server instance
mcp = FastMCP(
    name="gold-ratio",
)


# ============================================================================
# TOOLS
# ============================================================================


@mcp.tool(name="analyze_gold_ratio")
async def analyze_gold_ratio_tool(
    ticker: str,
    benchmark_ticker: str = "SPY",
    horizon_years: int = 10,
    frequency: str = "weekly",
    dividend_mode: str = "price_only",
    language: str = "en",
    badge_policy: str = "composite",
    manual_price: float | None = None,
    manual_gold_price: float | None = None,
    manual_benchmark_price: float | None = None,
    manual_yield: float | None = None,
    manual_dgr: float | None = None,
    manual_payout_eps: float | None = None,
    manual_payout_fcf: float | None = None,
    manual_debt_ebitda: float | None = None,
    manual_interest_coverage: float | None = None,
    session_key: str | None = None,
    include_preview: bool = True,
) -> str:
    """
    Price a stock or ETF in ounces of gold and score it for dividend accumulation.

    Computes the stock/gold ratio, its percentile over the horizon, 200-day and
    200-week SMAs, the Chowder Number, dividend safety, core / MOS / gold
    purchase scores, the MOS zone (A/B/C) and an action badge.

    RENDERING: show the action badge verbatim, then the MOS zone with its
    ladder text, then the gold purchase interpretation. Always mention
    is_gold_proxy (gold derived from GLD) and every entry in warnings.
    Full series are available as CSV at the listed resource URIs.

    Args:
        ticker: Stock ticker symbol (e.g., MO, EPD, O)
        benchmark_ticker: Benchmark for relative strength (default: SPY)
        horizon_years: Lookback horizon - 5, 10 or 15 (default: 10)
        frequency: Output series sampling - daily, weekly, monthly (default: weekly)
        dividend_mode: price_only, total_return_real (adjusted prices) or
            total_return_approx (simulated reinvested yield)
        language: Label language - en or es (default: en)
        badge_policy: composite (core + gold purchase) or chowder (chowder + percentile)
        manual_price: Override the last asset price
        manual_gold_price: Override the last gold price per ounce
        manual_benchmark_price: Override the last benchmark price
        manual_yield: Dividend yield in percent (e.g., 7.2)
        manual_dgr: 5-year dividend growth in percent (e.g., 5.0)
        manual_payout_eps: Payout ratio on EPS in percent
        manual_payout_fcf: Payout ratio on free cash flow in percent
        manual_debt_ebitda: Debt / EBITDA multiple
        manual_interest_coverage: Interest coverage multiple
        session_key: A newer analysis with the same key supersedes this one
        include_preview: Include the last ratio points in the response

    Returns:
        JSON with metrics, scores, series resource URIs and provenance
    """
    result = await analyze_gold_ratio(
        ticker=ticker,
        benchmark_ticker=benchmark_ticker,
        horizon_years=horizon_years,
        frequency=frequency,
        dividend_mode=dividend_mode,
        language=language,
        badge_policy=badge_policy,
        manual_price=manual_price,
        manual_gold_price=manual_gold_price,
        manual_benchmark_price=manual_benchmark_price,
        manual_yield=manual_yield,
        manual_dgr=manual_dgr,
        manual_payout_eps=manual_payout_eps,
        manual_payout_fcf=manual_payout_fcf,
        manual_debt_ebitda=manual_debt_ebitda,
        manual_interest_coverage=manual_interest_coverage,
        session_key=session_key,
        include_preview=include_preview,
    )
    return json.dumps(result, indent=2, default=str)


@mcp.tool(name="override_fundamental")
async def override_fundamental_tool(
    ticker: str,
    field: str,
    value: float,
    horizon_years: int = 10,
    frequency: str = "weekly",
) -> str:
    """
    Edit one dividend fundamental of a previous analysis and recompute scores.

    Must call analyze_gold_ratio first with the same ticker, horizon and frequency.

    Args:
        ticker: Stock ticker symbol
        field: yield, dgr5y, payout_eps, payout_fcf, debt_ebitda, interest_coverage
        value: New value (yield and dgr5y in percent, payouts in percent)
        horizon_years: Horizon of the analysis to edit
        frequency: Frequency of the analysis to edit

    Returns:
        JSON with recomputed metrics, zone and badge
    """
    result = await override_fundamental(
        ticker=ticker,
        field=field,
        value=value,
        horizon_years=horizon_years,
        frequency=frequency,
    )
    return json.dumps(result, indent=2, default=str)


# ============================================================================
# RESOURCES
# ============================================================================


@mcp.resource("ratio://{ticker}/{horizon}/{frequency}/{series}")
def get_cached_ratio_series(ticker: str, horizon: str, frequency: str, series: str) -> str:
    """
    Get a cached ratio series as CSV.

    Must call analyze_gold_ratio first to populate the cache.

    Args:
        ticker: Stock ticker symbol
        horizon: Horizon in years (5, 10, 15)
        frequency: daily, weekly or monthly
        series: ratio, ratio_sma_200d, ratio_sma_200w, benchmark_ratio,
            benchmark_sma_200d, benchmark_sma_200w, relative_ratio,
            relative_sma_200d, relative_sma_200w

    Returns:
        CSV data with time,value columns
    """
    try:
        uri = resolve_series_uri(ticker, horizon, frequency, series)
        csv_text, _ = read_series_resource(uri)
        return csv_text
    except ResourceNotFoundError:
        return (
            f"Resource not cached. Call analyze_gold_ratio('{ticker}', "
            f"horizon_years={horizon}, frequency='{frequency}') first."
        )
    except ValueError as e:
        return f"Error: {e}"


# ============================================================================
# PROMPTS
# ============================================================================


@mcp.prompt
def accumulation_memo(ticker: str, horizon_years: str = "10", language: str = "en") -> str:
    """Generate a dividend accumulation memo with the asset priced in gold."""
    result = get_prompt(
        "accumulation_memo",
        {"ticker": ticker, "horizon_years": horizon_years, "language": language},
    )
    if result:
        return result["messages"][0]["content"]
    return f"Analyze {ticker} in gold terms using analyze_gold_ratio."


# ============================================================================
# ENTRY POINT
# ============================================================================


def main() -> None:
    """Run the MCP server."""
    logger.info(f"Starting Gold Ratio MCP Server v{SERVER_VERSION} (schema v{SCHEMA_VERSION})")
    try:
        mcp.run()
    finally:
        asyncio.run(shutdown_executor())


if __name__ == "__main__":
    main()
