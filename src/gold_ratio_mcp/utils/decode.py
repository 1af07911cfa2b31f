"""Tolerant decoding of provider payloads into PricePoints and Fundamentals."""

import io
import re
from datetime import date
from typing import Any

import pandas as pd

from gold_ratio_mcp.models import DEFAULT_INTEREST_COVERAGE, Fundamentals, PricePoint

STOOQ_HEADER = "Date,Open,High,Low,Close"

# Assumed cost of debt for the EBITDA coverage estimate
ASSUMED_INTEREST_RATE = 0.05
# FCF payout estimate relative to EPS payout when cash flow is unknown
FCF_PAYOUT_FACTOR = 0.9


def _safe_float(value: Any) -> float | None:
    """Convert to float or return None."""
    if value is None:
        return None
    try:
        result = float(value)
        if pd.isna(result):
            return None
        return result
    except (ValueError, TypeError):
        return None


def sanitize_text(text: str | None, max_length: int = 200) -> str | None:
    """Strip control characters from provider text and truncate."""
    if text is None:
        return None
    text = re.sub(r"[\x00-\x1f\x7f-\x9f]", "", str(text))
    if len(text) > max_length:
        text = text[:max_length] + "..."
    return text.strip() or None


def _clean_points(dates: list[str], values: list[Any]) -> list[PricePoint]:
    # Last value wins on duplicate dates; non-positive or missing values dropped
    by_date: dict[str, float] = {}
    for time, raw in zip(dates, values):
        value = _safe_float(raw)
        if not time or value is None or value <= 0:
            continue
        by_date[time] = value
    return [PricePoint(time=t, value=by_date[t]) for t in sorted(by_date)]


def points_from_history_frame(df: pd.DataFrame, adjusted: bool = False) -> list[PricePoint]:
    """
    Convert a yf.download frame into sorted, deduplicated PricePoints.

    Args:
        df: Raw DataFrame from yfinance (DatetimeIndex, Close column)
        adjusted: Prefer 'Adj Close' when the frame carries it

    Returns:
        Daily close points, ascending by date
    """
    if df is None or df.empty:
        return []

    df = df.copy()
    # yf.download returns (field, ticker) columns for a single symbol too
    if isinstance(df.columns, pd.MultiIndex):
        df.columns = df.columns.get_level_values(0)

    column = "Adj Close" if adjusted and "Adj Close" in df.columns else "Close"
    if column not in df.columns:
        return []

    closes = df[column]
    if isinstance(closes, pd.DataFrame):
        closes = closes.iloc[:, 0]

    index = pd.to_datetime(closes.index)
    dates = [ts.strftime("%Y-%m-%d") for ts in index]
    return _clean_points(dates, closes.tolist())


def parse_stooq_csv(text: str | None) -> list[PricePoint]:
    """
    Parse a Stooq daily CSV download (Date,Open,High,Low,Close[,Volume]).

    Returns an empty list when the payload is not a price table
    (Stooq answers unknown symbols with a short text body).
    """
    if not text or STOOQ_HEADER not in text:
        return []

    frame = pd.read_csv(io.StringIO(text), usecols=["Date", "Close"], dtype={"Date": str})
    dates = [str(d).strip()[:10] for d in frame["Date"].tolist()]
    return _clean_points(dates, frame["Close"].tolist())


def scale_series(series: list[PricePoint], factor: float) -> list[PricePoint]:
    """Multiply every value by factor (GLD share price to ounce equivalent)."""
    return [PricePoint(time=p.time, value=p.value * factor) for p in series]


def dividend_growth_rate(
    dividends: pd.Series | None,
    years: int = 5,
    today: date | None = None,
) -> float | None:
    """
    Compound annual growth of yearly dividend totals.

    Only complete calendar years are used: the last full year against the
    one `years` earlier.

    Args:
        dividends: yfinance Ticker.dividends (DatetimeIndex -> amount)
        years: Growth window in years
        today: Reference date (default: today)

    Returns:
        Growth as a fraction (0.05 = 5%), or None if history is too short
    """
    if dividends is None or len(dividends) == 0:
        return None

    today = today or date.today()
    index = pd.to_datetime(dividends.index)
    annual = pd.Series(list(dividends.values), index=index.year).groupby(level=0).sum()

    last_year = today.year - 1
    first_year = last_year - years
    end = _safe_float(annual.get(last_year))
    start = _safe_float(annual.get(first_year))
    if end is None or start is None or start <= 0 or end <= 0:
        return None
    return (end / start) ** (1 / years) - 1


def fundamentals_from_info(
    info: dict[str, Any] | None,
    dividends: pd.Series | None = None,
    today: date | None = None,
) -> Fundamentals:
    """
    Decode yfinance Ticker.info (plus dividend history) into Fundamentals.

    Fields that cannot be read fall back to defaults and are listed in
    `missing`. Nothing here raises on a malformed payload.
    """
    info = info or {}
    missing: list[str] = []

    price = _safe_float(info.get("currentPrice")) or _safe_float(info.get("regularMarketPrice"))
    dividend_rate = _safe_float(info.get("dividendRate")) or _safe_float(
        info.get("trailingAnnualDividendRate")
    )

    trailing_yield = _safe_float(info.get("trailingAnnualDividendYield"))
    dividend_yield = trailing_yield or None
    if dividend_yield is None and dividend_rate and price:
        dividend_yield = dividend_rate / price
    if dividend_yield is None:
        # yfinance reports dividendYield in percent
        percent = _safe_float(info.get("dividendYield"))
        dividend_yield = percent / 100 if percent is not None else None
    if dividend_yield is None and 0 in (trailing_yield, dividend_rate):
        # Non-payers report an explicit zero
        dividend_yield = 0.0
    if dividend_yield is None:
        missing.append("dividend_yield")

    dgr5y = dividend_growth_rate(dividends, today=today)
    if dgr5y is None:
        missing.append("dgr5y")

    payout_ratio = _safe_float(info.get("payoutRatio"))
    payout_eps = payout_ratio * 100 if payout_ratio is not None else None
    if payout_eps is None:
        missing.append("payout_eps")

    shares = _safe_float(info.get("sharesOutstanding"))
    free_cashflow = _safe_float(info.get("freeCashflow"))
    payout_fcf: float | None = None
    if dividend_rate and shares and free_cashflow and free_cashflow > 0:
        payout_fcf = dividend_rate * shares / free_cashflow * 100
    elif payout_eps:
        payout_fcf = payout_eps * FCF_PAYOUT_FACTOR
    if payout_fcf is None:
        missing.append("payout_fcf")

    total_debt = _safe_float(info.get("totalDebt"))
    ebitda = _safe_float(info.get("ebitda"))
    debt_ebitda: float | None = None
    interest_coverage: float | None = None
    if total_debt is not None and ebitda and ebitda > 0:
        debt_ebitda = total_debt / ebitda
        if total_debt > 0:
            interest_coverage = ebitda / (total_debt * ASSUMED_INTEREST_RATE)
    if debt_ebitda is None:
        missing.extend(["debt_ebitda", "interest_coverage"])

    name = sanitize_text(info.get("longName") or info.get("shortName"))

    return Fundamentals(
        dividend_yield=dividend_yield or 0.0,
        dgr5y=dgr5y or 0.0,
        payout_eps=payout_eps or 0.0,
        payout_fcf=payout_fcf or 0.0,
        debt_ebitda=debt_ebitda or 0.0,
        interest_coverage=(
            interest_coverage if interest_coverage is not None else DEFAULT_INTEREST_COVERAGE
        ),
        name=name,
        missing=tuple(missing),
    )
