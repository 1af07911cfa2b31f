"""Tests for the composite scoring model."""

import pytest

from gold_ratio_mcp.analysis.metrics import SeriesStats
from gold_ratio_mcp.analysis.scoring import (
    action_badge,
    classify_zone,
    core_score,
    derive_metrics,
    gold_purchase_score,
    label,
    mos_score,
)
from gold_ratio_mcp.models import BadgePolicy, DividendInputs, Language, PercentileTable, Signals


def _inputs(**overrides: float) -> DividendInputs:
    values = {
        "dividend_yield": 7.2,
        "dgr5y": 5.0,
        "payout_eps": 85.0,
        "payout_fcf": 60.0,
        "debt_ebitda": 2.0,
        "interest_coverage": 8.0,
    }
    values.update(overrides)
    return DividendInputs(**values)


def _stats(percentile: float, signals: Signals | None = None) -> SeriesStats:
    return SeriesStats(
        current_ratio=0.05,
        percentile=percentile,
        trend_12m="Up",
        volatility_annual=0.2,
        percentiles=PercentileTable(0.01, 0.02, 0.03, 0.04, 0.05),
        signals=signals or Signals(above_sma_200d=False, above_sma_200w=False),
    )


class TestZone:
    """Tests for MOS zone classification."""

    @pytest.mark.parametrize(
        "percentile,resilience,expected",
        [
            (10, 4.0, "A"),
            (10, 3.5, "B"),
            (10, 2.0, "B"),
            (50, 3.0, "B"),
            (50, 2.0, "C"),
            (80, 5.0, "C"),
        ],
    )
    def test_cases(self, percentile: float, resilience: float, expected: str) -> None:
        assert classify_zone(percentile, resilience) == expected

    def test_percentile_invariants(self) -> None:
        """Below p25 is never C, above p75 is never A."""
        for percentile in range(0, 101, 5):
            for resilience in (1.5, 2.0, 2.5, 3.0, 3.5, 4.0, 5.0):
                zone = classify_zone(percentile, resilience)
                if percentile < 25:
                    assert zone != "C"
                if percentile > 75:
                    assert zone != "A"


class TestActionBadge:
    """Tests for the two badge policies."""

    def test_composite_strong(self) -> None:
        badge = action_badge(
            BadgePolicy.COMPOSITE,
            core_total=4.2,
            gold_purchase_total=4.1,
            chowder=5.0,
            percentile=90,
            language=Language.EN,
        )
        assert badge == "STRONG ACCUMULATE"

    def test_composite_staggered(self) -> None:
        badge = action_badge(
            BadgePolicy.COMPOSITE,
            core_total=4.0,
            gold_purchase_total=3.5,
            chowder=5.0,
            percentile=90,
            language=Language.EN,
        )
        assert badge == "STAGGERED ACCUMULATE"

    def test_composite_weak_core(self) -> None:
        badge = action_badge(
            BadgePolicy.COMPOSITE,
            core_total=3.9,
            gold_purchase_total=5.0,
            chowder=20.0,
            percentile=5,
            language=Language.EN,
        )
        assert badge == "WATCH / HOLD"

    def test_chowder_policy(self) -> None:
        kwargs = {"core_total": 1.0, "gold_purchase_total": 1.0, "language": Language.ES}
        assert (
            action_badge(BadgePolicy.CHOWDER, chowder=12.2, percentile=40, **kwargs)
            == "ACUMULACIÓN FUERTE"
        )
        assert (
            action_badge(BadgePolicy.CHOWDER, chowder=12.2, percentile=50, **kwargs)
            == "VIGILAR / MANTENER"
        )

    def test_policy_accepts_string(self) -> None:
        badge = action_badge(
            "chowder",
            core_total=1.0,
            gold_purchase_total=1.0,
            chowder=11.0,
            percentile=10,
            language=Language.EN,
        )
        assert badge == label("watch_hold", Language.EN)


class TestCompositeScores:
    """Tests for core, MOS and gold purchase scores."""

    def test_core_is_mean(self) -> None:
        core = core_score(_inputs())
        assert core.moat == 3.0
        assert core.engine == pytest.approx(2.0)
        assert core.resilience == pytest.approx(3.5 * 0.4 + 3.5 * 0.3 + 3.5 * 0.3)
        assert core.total == pytest.approx((core.moat + core.engine + core.resilience) / 3)

    def test_mos_total(self) -> None:
        mos = mos_score(7.2, 5.0)
        assert mos.yield_history == 5.0
        assert mos.total == pytest.approx((3.5 + 5.0 + 5.0 + 3.5) / 4)

    def test_gold_purchase_all_favorable(self) -> None:
        signals = Signals(
            above_sma_200d=True,
            above_sma_200w=True,
            sma_200d_available=True,
            ratio_below_sma_200w=True,
            relative_above_sma_200d=True,
        )
        gps = gold_purchase_score(10, signals, Language.EN)
        assert gps.price == 5.0
        assert gps.total == pytest.approx(0.4 * 5.0 + 0.2 * 4.0 * 3)
        assert gps.interpretation == label("gps_strong", Language.EN)

    def test_gold_purchase_without_smas(self) -> None:
        gps = gold_purchase_score(60, Signals(False, False), Language.EN)
        assert (gps.trend, gps.regime, gps.relative_strength) == (3.0, 3.5, 3.0)
        assert gps.total == pytest.approx(0.4 * 2.5 + 0.2 * (3.0 + 3.5 + 3.0))
        assert gps.interpretation == label("gps_weak", Language.EN)

    def test_gold_purchase_unfavorable_trend(self) -> None:
        signals = Signals(above_sma_200d=False, above_sma_200w=False, sma_200d_available=True)
        gps = gold_purchase_score(60, signals, Language.EN)
        assert gps.trend == 2.0


class TestDeriveMetrics:
    """Tests for the full metrics block."""

    def test_chowder_example(self) -> None:
        metrics = derive_metrics(_stats(40), _inputs(), Language.EN)
        assert metrics.chowder.chowder_number == pytest.approx(12.2)
        assert metrics.chowder.pass_gate is True
        assert metrics.chowder.gate_reason == "Passes security threshold."
        assert metrics.expected_return.base == pytest.approx(12.2)

    def test_zone_matches_classifier(self) -> None:
        for percentile in (5, 40, 90):
            metrics = derive_metrics(_stats(percentile), _inputs(payout_fcf=20.0), Language.EN)
            assert metrics.mos_zone == classify_zone(percentile, metrics.scores.core.resilience)

    def test_mos_uses_gold_price_score(self) -> None:
        metrics = derive_metrics(_stats(40), _inputs(), Language.EN)
        assert metrics.scores.mos.gold_percentile == metrics.scores.gold_purchase.price

    def test_triggers(self) -> None:
        metrics = derive_metrics(_stats(40), _inputs(debt_ebitda=4.0), Language.EN)
        assert len(metrics.triggers) == 4
        status = {t.label: t.status for t in metrics.triggers}
        assert status["Coverage Trigger"] is False
        assert status["Gold Stay Trigger"] is True
        assert "7.2%" in metrics.triggers[0].description

    def test_spanish_labels(self) -> None:
        metrics = derive_metrics(_stats(10), _inputs(dividend_yield=1.0), Language.ES)
        assert metrics.chowder.gate_reason == "No alcanza umbral del 12%."
        assert metrics.mos_ladder.zone_c.startswith("0-25% Tamaño")

    def test_displayed_fields_rounded(self) -> None:
        metrics = derive_metrics(
            _stats(40),
            _inputs(dividend_yield=2.504, dgr5y=8.004, payout_fcf=74.97, debt_ebitda=3.497),
            Language.EN,
        )
        assert metrics.chowder.dividend_yield == 2.5
        assert metrics.chowder.dgr5y == 8.0
        assert metrics.dividend_safety.payout_fcf == 75.0
        assert metrics.dividend_safety.debt_ebitda == 3.5
        assert metrics.dividend_inputs.payout_fcf == 74.97

    def test_scores_use_unrounded_inputs(self) -> None:
        """Boundary-adjacent inputs score in their own tier, not the displayed one."""
        metrics = derive_metrics(
            _stats(40),
            _inputs(
                dividend_yield=2.504,
                dgr5y=8.004,
                payout_fcf=74.97,
                debt_ebitda=3.497,
                interest_coverage=4.004,
            ),
            Language.EN,
        )
        assert metrics.scores.core.moat == 5.0
        assert metrics.scores.core.resilience == pytest.approx(3.5)

    def test_chowder_policy_selected(self) -> None:
        metrics = derive_metrics(_stats(40), _inputs(), Language.EN, BadgePolicy.CHOWDER)
        assert metrics.scores.action_badge == "STRONG ACCUMULATE"
