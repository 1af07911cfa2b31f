"""Tests for metric derivation."""

import pytest

from gold_ratio_mcp.analysis.metrics import (
    build_signals,
    chowder_number,
    compute_series_stats,
    coverage_score,
    debt_score,
    display_value,
    engine_score,
    expected_return,
    gold_price_score,
    horizon_window_size,
    moat_score,
    passes_chowder_gate,
    payout_score,
    resilience_score,
    yield_history_score,
)
from gold_ratio_mcp.models import DividendInputs, Fundamentals


class TestChowder:
    """Tests for the Chowder rule."""

    def test_yield_plus_growth(self) -> None:
        number = chowder_number(7.2, 5.0)
        assert number == pytest.approx(12.2)
        assert passes_chowder_gate(number)

    def test_gate_is_inclusive(self) -> None:
        assert passes_chowder_gate(12.0)
        assert not passes_chowder_gate(11.99)

    def test_expected_return_scenarios(self) -> None:
        result = expected_return(7.2, 5.0)
        assert result.conservative == pytest.approx(10.2)
        assert result.base == pytest.approx(12.2)
        assert result.optimistic == pytest.approx(14.2)


class TestDividendSafety:
    """Tests for the three-tier safety sub-scores."""

    @pytest.mark.parametrize(
        "payout,expected", [(49.9, 5.0), (50.0, 3.5), (74.9, 3.5), (75.0, 1.5)]
    )
    def test_payout_tiers(self, payout: float, expected: float) -> None:
        assert payout_score(payout) == expected

    @pytest.mark.parametrize("debt,expected", [(1.4, 5.0), (1.5, 3.5), (3.5, 1.5)])
    def test_debt_tiers(self, debt: float, expected: float) -> None:
        assert debt_score(debt) == expected

    @pytest.mark.parametrize("coverage,expected", [(10.5, 5.0), (10.0, 3.5), (4.0, 1.5)])
    def test_coverage_tiers(self, coverage: float, expected: float) -> None:
        assert coverage_score(coverage) == expected

    def test_resilience_weights(self) -> None:
        assert resilience_score(10.0, 0.5, 20.0) == pytest.approx(5.0)
        # 3.5*0.4 + 1.5*0.3 + 5.0*0.3
        assert resilience_score(60.0, 4.0, 12.0) == pytest.approx(3.35)

    def test_missing_debt_scores_high(self) -> None:
        """A defaulted debt/EBITDA of 0 lands in the top tier."""
        assert debt_score(0.0) == 5.0


class TestQualityScores:
    """Tests for engine, moat and yield history scores."""

    def test_engine_score_capped(self) -> None:
        assert engine_score(5.0) == pytest.approx(2.0)
        assert engine_score(20.0) == 5.0

    @pytest.mark.parametrize(
        "yield_pct,dgr,expected",
        [(3.0, 9.0, 5.0), (2.0, 6.0, 4.0), (1.0, 3.0, 3.0), (0.4, 10.0, 2.0), (7.2, 5.0, 3.0)],
    )
    def test_moat_steps(self, yield_pct: float, dgr: float, expected: float) -> None:
        assert moat_score(yield_pct, dgr) == expected

    def test_yield_history(self) -> None:
        assert yield_history_score(1.5) == pytest.approx(2.0)
        assert yield_history_score(7.2) == 5.0

    @pytest.mark.parametrize(
        "percentile,expected",
        [(0, 5.0), (15, 5.0), (15.1, 4.5), (30, 4.5), (50, 3.5), (75, 2.5), (75.1, 1.0)],
    )
    def test_gold_price_score(self, percentile: float, expected: float) -> None:
        assert gold_price_score(percentile) == expected


class TestDividendInputs:
    """Tests for the scored dividend inputs."""

    def test_from_fundamentals_keeps_precision(self) -> None:
        inputs = DividendInputs.from_fundamentals(
            Fundamentals(
                dividend_yield=0.07234,
                dgr5y=0.05,
                payout_eps=84.96,
                payout_fcf=74.97,
                debt_ebitda=3.497,
                interest_coverage=4.004,
            )
        )
        assert inputs.dividend_yield == 7.234
        assert inputs.dgr5y == 5.0
        assert inputs.payout_eps == 84.96
        assert inputs.payout_fcf == 74.97
        assert inputs.debt_ebitda == 3.497
        assert inputs.interest_coverage == 4.004

    def test_percent_conversion_drops_float_noise(self) -> None:
        inputs = DividendInputs.from_fundamentals(Fundamentals(dividend_yield=0.072))
        assert inputs.dividend_yield == 7.2

    def test_with_value(self) -> None:
        inputs = DividendInputs.from_fundamentals(Fundamentals())
        updated = inputs.with_value("payout_fcf", 72.345)
        assert updated.payout_fcf == 72.345
        assert inputs.payout_fcf == 0.0

    def test_with_value_unknown_field(self) -> None:
        inputs = DividendInputs.from_fundamentals(Fundamentals())
        with pytest.raises(ValueError, match="Unknown"):
            inputs.with_value("pe_ratio", 10.0)

    @pytest.mark.parametrize(
        "name,value,expected",
        [
            ("dividend_yield", 2.504, 2.5),
            ("dgr5y", 8.004, 8.0),
            ("payout_fcf", 74.97, 75.0),
            ("debt_ebitda", 3.497, 3.5),
            ("interest_coverage", 4.004, 4.0),
        ],
    )
    def test_display_value(self, name: str, value: float, expected: float) -> None:
        assert display_value(name, value) == expected

    def test_scores_use_unrounded_values(self) -> None:
        """Values just inside a tier keep that tier even when they display on the boundary."""
        inputs = DividendInputs.from_fundamentals(
            Fundamentals(payout_fcf=74.97, debt_ebitda=3.497, interest_coverage=4.004)
        )
        assert payout_score(inputs.payout_fcf) == 3.5
        assert debt_score(inputs.debt_ebitda) == 3.5
        assert coverage_score(inputs.interest_coverage) == 3.5
        assert resilience_score(
            inputs.payout_fcf, inputs.debt_ebitda, inputs.interest_coverage
        ) == pytest.approx(3.5)

    def test_moat_uses_unrounded_values(self) -> None:
        inputs = DividendInputs.from_fundamentals(Fundamentals(dividend_yield=0.02504, dgr5y=0.08004))
        assert moat_score(inputs.dividend_yield, inputs.dgr5y) == 5.0


class TestSignals:
    """Tests for SMA crossover signals."""

    def test_short_series_has_no_sma(self, series_factory) -> None:
        """Without an SMA the current value stands in, so the signal is False."""
        ratio = series_factory([1.0, 2.0, 3.0])
        signals = build_signals(ratio, [])
        assert signals.above_sma_200d is False
        assert signals.above_sma_200w is False
        assert signals.sma_200d_available is False
        assert signals.ratio_below_sma_200w is None
        assert signals.relative_above_sma_200d is None

    def test_rising_series_above_both(self, series_factory) -> None:
        ratio = series_factory([1.0 + i * 0.01 for i in range(1100)])
        signals = build_signals(ratio, ratio)
        assert signals.above_sma_200d is True
        assert signals.above_sma_200w is True
        assert signals.sma_200d_available is True
        assert signals.ratio_below_sma_200w is False
        assert signals.relative_above_sma_200d is True

    def test_relative_ignored_when_unavailable(self, series_factory) -> None:
        ratio = series_factory([1.0 + i * 0.01 for i in range(300)])
        signals = build_signals(ratio, ratio, relative_available=False)
        assert signals.relative_above_sma_200d is None


class TestSeriesStats:
    """Tests for horizon statistics."""

    def test_horizon_window_size(self) -> None:
        assert horizon_window_size(10) == 2520

    def test_rising_ratio(self, series_factory) -> None:
        ratio = series_factory([1.0 + i * 0.01 for i in range(300)])
        stats = compute_series_stats(ratio, [], horizon_years=5)

        assert stats.current_ratio == ratio[-1].value
        assert stats.percentile == pytest.approx(299 / 300 * 100)
        assert stats.trend_12m == "Up"
        assert stats.percentiles.p10 <= stats.percentiles.p50 <= stats.percentiles.p90

    def test_percentile_uses_horizon_window(self, series_factory) -> None:
        """Values older than the window do not affect the percentile."""
        old = [10.0] * 500
        recent = [1.0 + i * 0.001 for i in range(1260)]
        ratio = series_factory(old + recent)
        stats = compute_series_stats(ratio, [], horizon_years=5)
        assert stats.percentile == pytest.approx(1259 / 1260 * 100)

    def test_empty_raises(self) -> None:
        with pytest.raises(ValueError, match="empty"):
            compute_series_stats([], [], horizon_years=5)
