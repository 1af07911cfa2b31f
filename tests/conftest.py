"""Pytest configuration and fixtures."""

import pandas as pd
import pytest

from gold_ratio_mcp.models import Fundamentals, PricePoint
from gold_ratio_mcp.utils.validators import AnalysisRequest


def make_series(values: list[float], start: str = "2015-01-01") -> list[PricePoint]:
    """PricePoints on consecutive business days."""
    dates = pd.bdate_range(start, periods=len(values))
    return [PricePoint(time=d.strftime("%Y-%m-%d"), value=float(v)) for d, v in zip(dates, values)]


@pytest.fixture
def sample_ohlcv_df() -> pd.DataFrame:
    """Sample yf.download-style DataFrame."""
    return pd.DataFrame(
        {
            "Date": pd.date_range("2024-01-01", periods=10, freq="D"),
            "Open": [100.0, 101.0, 102.0, 101.5, 103.0, 104.0, 103.5, 105.0, 106.0, 105.5],
            "High": [101.0, 102.5, 103.0, 102.5, 104.5, 105.5, 105.0, 106.5, 107.0, 106.5],
            "Low": [99.5, 100.5, 101.0, 100.5, 102.0, 103.0, 102.5, 104.0, 105.0, 104.5],
            "Close": [100.5, 102.0, 101.5, 102.0, 104.0, 103.5, 104.5, 106.0, 105.5, 106.0],
            "Adj Close": [100.0, 101.5, 101.0, 101.5, 103.5, 103.0, 104.0, 105.5, 105.0, 105.5],
            "Volume": [1000000] * 10,
        }
    ).set_index("Date")


@pytest.fixture
def rising_asset() -> list[PricePoint]:
    """1200 business days of a steadily rising asset."""
    return make_series([50.0 + i * 0.05 for i in range(1200)])


@pytest.fixture
def flat_gold() -> list[PricePoint]:
    """Gold at 2000 on the same dates as rising_asset."""
    return make_series([2000.0] * 1200)


@pytest.fixture
def flat_benchmark() -> list[PricePoint]:
    return make_series([400.0] * 1200)


@pytest.fixture
def dividend_fundamentals() -> Fundamentals:
    """High-yield dividend payer: 7.2% yield, 5% growth."""
    return Fundamentals(
        dividend_yield=0.072,
        dgr5y=0.05,
        payout_eps=85.0,
        payout_fcf=60.0,
        debt_ebitda=2.0,
        interest_coverage=8.0,
        name="Test Dividend Co",
    )


@pytest.fixture
def daily_request() -> AnalysisRequest:
    return AnalysisRequest(ticker="TEST", horizon_years=5, frequency="daily")


@pytest.fixture
def series_factory():
    """Build PricePoints on consecutive business days from a list of values."""
    return make_series
