"""Tests for the market data client (sources patched, no network)."""

import asyncio
import time
from unittest.mock import patch

import pytest
from requests.exceptions import ConnectionError as RequestsConnectionError

from gold_ratio_mcp.data import market_client
from gold_ratio_mcp.data.market_client import (
    ADJUSTED_UNAVAILABLE,
    GLD_OUNCE_FACTOR,
    ReferenceDataUnavailableError,
    SeriesNotFoundError,
    SourcePolicy,
    SourcePreference,
    _is_retryable_error,
    fetch_fundamentals,
    fetch_gold_series_with_provenance,
    fetch_price_series_with_provenance,
    stooq_symbol_variants,
)
from gold_ratio_mcp.models import PricePoint


def make_series(values: list[float]) -> list[PricePoint]:
    return [PricePoint(f"2024-01-{day:02d}", v) for day, v in enumerate(values, start=1)]


def _fake_source(series_by_symbol: dict, calls: list | None = None):
    def fetch(symbol: str, adjusted: bool, timeout: float):
        if calls is not None:
            calls.append(symbol)
        if symbol not in series_by_symbol:
            raise ValueError(f"unknown symbol {symbol}")
        return series_by_symbol[symbol]

    return fetch


def _failing_source(symbol: str, adjusted: bool, timeout: float):
    raise ValueError("no data for symbol")


class TestSourcePolicy:
    """Tests for source ordering."""

    def test_default_order(self) -> None:
        assert SourcePolicy().candidates() == ["yfinance", "stooq"]

    def test_preferred_first(self) -> None:
        assert SourcePolicy().candidates("stooq") == ["stooq", "yfinance"]

    def test_unknown_preference_ignored(self) -> None:
        assert SourcePolicy().candidates("bloomberg") == ["yfinance", "stooq"]

    def test_shuffle_keeps_sources(self) -> None:
        policy = SourcePolicy(shuffle=True)
        assert sorted(policy.candidates()) == ["stooq", "yfinance"]

    def test_invalid_source_raises(self) -> None:
        with pytest.raises(ValueError, match="Invalid source order"):
            SourcePolicy(order=("yfinance", "bloomberg"))

    def test_invalid_timeout_raises(self) -> None:
        with pytest.raises(ValueError, match="attempt_timeout"):
            SourcePolicy(attempt_timeout=0)


class TestStooqVariants:
    def test_plain_symbol(self) -> None:
        assert stooq_symbol_variants("ko") == ["KO.US", "KO", "KO.UK", "KO.PT", "KO.LS"]

    def test_suffixed_symbol_kept_first(self) -> None:
        variants = stooq_symbol_variants("EDP.LS")
        assert variants[0] == "EDP.LS"
        assert len(variants) == len(set(variants))


class TestRetryableErrors:
    def test_connection_error(self) -> None:
        assert _is_retryable_error(RequestsConnectionError("reset")) is True

    def test_rate_limit_message(self) -> None:
        assert _is_retryable_error(Exception("Too Many Requests")) is True

    def test_plain_error(self) -> None:
        assert _is_retryable_error(ValueError("bad symbol")) is False


class TestFetchPriceSeries:
    """Tests for source fallback and provenance."""

    def test_first_source_wins(self) -> None:
        series = make_series([10.0 + i for i in range(20)])
        sources = {
            "yfinance": _fake_source({"KO": series}),
            "stooq": _failing_source,
        }
        preference = SourcePreference()

        with patch.dict(market_client.SOURCES, sources):
            points, prov = asyncio.run(
                fetch_price_series_with_provenance("ko", preference=preference)
            )

        assert points == series
        assert prov["source"] == "yfinance"
        assert prov["fallback_used"] is False
        assert prov["sources_tried"] == ["yfinance"]
        assert preference.preferred is None

    def test_fallback_records_preference(self) -> None:
        series = make_series([10.0 + i for i in range(20)])
        sources = {
            "yfinance": _failing_source,
            "stooq": _fake_source({"KO": series}),
        }
        preference = SourcePreference()

        with patch.dict(market_client.SOURCES, sources):
            points, prov = asyncio.run(
                fetch_price_series_with_provenance("KO", preference=preference)
            )

        assert points == series
        assert prov["source"] == "stooq"
        assert prov["fallback_used"] is True
        assert prov["sources_tried"] == ["yfinance", "stooq"]
        assert preference.preferred == "stooq"

    def test_preferred_source_tried_first(self) -> None:
        series = make_series([10.0 + i for i in range(20)])
        calls: list[str] = []
        sources = {
            "yfinance": _fake_source({"KO": series}),
            "stooq": _fake_source({"KO": series}, calls),
        }

        with patch.dict(market_client.SOURCES, sources):
            _, prov = asyncio.run(
                fetch_price_series_with_provenance(
                    "KO", preference=SourcePreference(preferred="stooq")
                )
            )

        assert prov["source"] == "stooq"
        assert calls == ["KO"]

    def test_short_series_counts_as_missing(self) -> None:
        sources = {
            "yfinance": _fake_source({"KO": make_series([1.0] * 5)}),
            "stooq": _fake_source({"KO": []}),
        }
        with patch.dict(market_client.SOURCES, sources):
            with pytest.raises(SeriesNotFoundError) as exc_info:
                asyncio.run(
                    fetch_price_series_with_provenance("ko", preference=SourcePreference())
                )

        assert exc_info.value.symbol == "KO"
        assert exc_info.value.attempts == ["yfinance", "stooq"]
        assert "KO" in str(exc_info.value)

    def test_retryable_error_is_retried(self) -> None:
        series = make_series([10.0 + i for i in range(20)])
        attempts: list[int] = []

        def flaky(symbol: str, adjusted: bool, timeout: float):
            attempts.append(1)
            if len(attempts) == 1:
                raise RequestsConnectionError("connection reset")
            return series

        sources = {"yfinance": flaky, "stooq": _failing_source}
        with (
            patch.dict(market_client.SOURCES, sources),
            patch.object(market_client, "_calculate_backoff", return_value=0.0),
        ):
            points, prov = asyncio.run(
                fetch_price_series_with_provenance("KO", preference=SourcePreference())
            )

        assert points == series
        assert prov["attempts"] == 2
        assert prov["source"] == "yfinance"


class TestFetchGoldSeries:
    """Tests for spot gold and the GLD proxy."""

    def test_spot_gold(self) -> None:
        spot = make_series([2000.0] * 20)
        sources = {
            "yfinance": _fake_source({"GC=F": spot}),
            "stooq": _failing_source,
        }
        with patch.dict(market_client.SOURCES, sources):
            points, is_proxy, prov = asyncio.run(
                fetch_gold_series_with_provenance(preference=SourcePreference())
            )

        assert points == spot
        assert is_proxy is False
        assert "proxy" not in prov

    def test_gld_proxy_scaled_to_ounces(self) -> None:
        gld = make_series([200.0] * 20)
        sources = {
            "yfinance": _fake_source({"GLD": gld}),
            "stooq": _failing_source,
        }
        with patch.dict(market_client.SOURCES, sources):
            points, is_proxy, prov = asyncio.run(
                fetch_gold_series_with_provenance(preference=SourcePreference())
            )

        assert is_proxy is True
        assert points[0].value == pytest.approx(200.0 * GLD_OUNCE_FACTOR)
        assert prov["proxy"] == "GLD"
        assert prov["proxy_factor"] == GLD_OUNCE_FACTOR

    def test_no_gold_at_all(self) -> None:
        sources = {"yfinance": _failing_source, "stooq": _failing_source}
        with patch.dict(market_client.SOURCES, sources):
            with pytest.raises(ReferenceDataUnavailableError):
                asyncio.run(fetch_gold_series_with_provenance(preference=SourcePreference()))


class TestAdjustedPrices:
    """Tests for total-return requests served by an unadjusted source."""

    def test_stooq_marks_adjusted_unavailable(self) -> None:
        series = make_series([10.0 + i for i in range(20)])
        sources = {
            "yfinance": _failing_source,
            "stooq": _fake_source({"KO": series}),
        }
        with patch.dict(market_client.SOURCES, sources):
            _, prov = asyncio.run(
                fetch_price_series_with_provenance(
                    "KO", adjusted=True, preference=SourcePreference()
                )
            )

        assert prov["source"] == "stooq"
        assert prov["warnings"] == [ADJUSTED_UNAVAILABLE]

    def test_unadjusted_request_not_marked(self) -> None:
        series = make_series([10.0 + i for i in range(20)])
        sources = {
            "yfinance": _failing_source,
            "stooq": _fake_source({"KO": series}),
        }
        with patch.dict(market_client.SOURCES, sources):
            _, prov = asyncio.run(
                fetch_price_series_with_provenance("KO", preference=SourcePreference())
            )

        assert "warnings" not in prov

    def test_yfinance_adjusted_not_marked(self) -> None:
        series = make_series([10.0 + i for i in range(20)])
        sources = {
            "yfinance": _fake_source({"KO": series}),
            "stooq": _failing_source,
        }
        with patch.dict(market_client.SOURCES, sources):
            _, prov = asyncio.run(
                fetch_price_series_with_provenance(
                    "KO", adjusted=True, preference=SourcePreference()
                )
            )

        assert "warnings" not in prov


class FakeTicker:
    """Stand-in for yf.Ticker with a configurable info delay."""

    delay = 0.0

    def __init__(self, symbol: str):
        self.symbol = symbol
        self.dividends = None

    @property
    def info(self) -> dict:
        time.sleep(self.delay)
        return {"longName": f"{self.symbol} Corp", "trailingAnnualDividendYield": 0.03}


class TestFetchFundamentals:
    """Tests for the fundamentals fetch and its attempt timeout."""

    def test_decodes_info(self) -> None:
        with patch.object(market_client.yf, "Ticker", FakeTicker):
            fundamentals = asyncio.run(fetch_fundamentals(" ko "))

        assert fundamentals.name == "KO Corp"
        assert fundamentals.dividend_yield == pytest.approx(0.03)

    def test_attempt_timeout(self) -> None:
        slow = type("SlowTicker", (FakeTicker,), {"delay": 0.5})
        policy = SourcePolicy(attempt_timeout=0.05)

        with patch.object(market_client.yf, "Ticker", slow):
            with pytest.raises(asyncio.TimeoutError):
                asyncio.run(fetch_fundamentals("KO", policy))
