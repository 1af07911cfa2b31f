"""Composite scoring model: core quality, timing/MOS, gold purchase, zone and badge."""

import operator

from gold_ratio_mcp.analysis.metrics import (
    SeriesStats,
    chowder_number,
    display_value,
    engine_score,
    expected_return,
    gold_price_score,
    moat_score,
    passes_chowder_gate,
    resilience_score,
    yield_history_score,
)
from gold_ratio_mcp.models import (
    BadgePolicy,
    Chowder,
    CoreScore,
    DividendInputs,
    DividendSafety,
    GoldPurchaseScore,
    Language,
    Metrics,
    MosLadder,
    MosScore,
    Scores,
    Signals,
    Trigger,
)
from gold_ratio_mcp.utils.validators import check_rule

# Neutral placeholders for MOS components without an input of their own
MOS_VALUATION_NEUTRAL = 3.5
MOS_REGIME_NEUTRAL = 3.5

GOLD_PURCHASE_WEIGHTS = {
    "price": 0.4,
    "trend": 0.2,
    "regime": 0.2,
    "relative_strength": 0.2,
}

# (favorable, unfavorable, unavailable)
TREND_SCORES = (4.0, 2.0, 3.0)
REGIME_SCORES = (4.0, 2.5, 3.5)
RELATIVE_STRENGTH_SCORES = (4.0, 2.5, 3.0)

ZONE_A_MAX_PERCENTILE = 25
ZONE_C_MIN_PERCENTILE = 75
ZONE_A_MIN_RESILIENCE = 3.5
ZONE_C_MAX_RESILIENCE = 2.5

BADGE_STRONG = "strong_accumulate"
BADGE_STAGGERED = "staggered_accumulate"
BADGE_WATCH = "watch_hold"

LABELS: dict[Language, dict[str, str]] = {
    Language.EN: {
        BADGE_STRONG: "STRONG ACCUMULATE",
        BADGE_STAGGERED: "STAGGERED ACCUMULATE",
        BADGE_WATCH: "WATCH / HOLD",
        "gate_pass": "Passes security threshold.",
        "gate_fail": "Does not reach 12% threshold.",
        "zone_a": "60-100% Size. Yield > p70 hist. + Gold Ratio < p25.",
        "zone_b": "25-60% Size. SMA 200d confirmed. Gold Ratio < p50.",
        "zone_c": "0-25% Size. Reinvestment only. Gold Ratio > p75.",
        "gps_strong": "Strategic Gold Accumulation Zone. The asset is historically cheap measured in ounces.",
        "gps_neutral": "Neutral Gold Regime. The stock/gold ratio is within its median historical range.",
        "gps_weak": "Expensive in gold terms. Favor holding gold or waiting for a better ratio.",
        "trigger_yield": "Yield Trigger",
        "trigger_yield_desc": "If Yield exceeds {yield_pct:.1f}% (p70), enable Zone A tranche.",
        "trigger_regime": "Gold Regime Trigger",
        "trigger_regime_desc": "If GPS > 4.0, prioritize accumulation over benchmark.",
        "trigger_coverage": "Coverage Trigger",
        "trigger_coverage_desc": "If Debt/EBITDA > 3.5x, freeze new buys and review thesis.",
        "trigger_stay": "Gold Stay Trigger",
        "trigger_stay_desc": "Maintain while GPS stays in p10-p50 range.",
    },
    Language.ES: {
        BADGE_STRONG: "ACUMULACIÓN FUERTE",
        BADGE_STAGGERED: "ACUMULACIÓN (ESCALONADA)",
        BADGE_WATCH: "VIGILAR / MANTENER",
        "gate_pass": "Cumple umbral de seguridad.",
        "gate_fail": "No alcanza umbral del 12%.",
        "zone_a": "60-100% Tamaño. Yield > p70 hist. + Ratio Oro < p25.",
        "zone_b": "25-60% Tamaño. SMA 200d confirmada. Ratio Oro < p50.",
        "zone_c": "0-25% Tamaño. Solo reinversión. Ratio Oro > p75.",
        "gps_strong": "Zona Estratégica de Acumulación en Oro. El activo está históricamente barato medido en onzas.",
        "gps_neutral": "Régimen de Oro Neutral. El ratio acción/oro se encuentra dentro de su rango medio histórico.",
        "gps_weak": "Caro en términos de oro. Conviene mantener oro o esperar un mejor ratio.",
        "trigger_yield": "Gatillo Yield",
        "trigger_yield_desc": "Si el Yield supera el {yield_pct:.1f}% (percentil p70), habilitar tramo Zona A.",
        "trigger_regime": "Gatillo Régimen Gold",
        "trigger_regime_desc": "Si el GPS > 4.0, priorizar acumulación sobre benchmark.",
        "trigger_coverage": "Gatillo Cobertura",
        "trigger_coverage_desc": "Si Deuda/EBITDA > 3.5x, congelar nuevas compras y revisar tesis.",
        "trigger_stay": "Gatillo Oro",
        "trigger_stay_desc": "Mantener mientras GPS se mantenga en rango p10-p50.",
    },
}


def label(key: str, language: Language) -> str:
    return LABELS[Language(language)][key]


def _mean(*values: float) -> float:
    return sum(values) / len(values)


def _pick(flag: bool | None, scores: tuple[float, float, float]) -> float:
    favorable, unfavorable, unavailable = scores
    if flag is None:
        return unavailable
    return favorable if flag else unfavorable


def core_score(inputs: DividendInputs) -> CoreScore:
    """Core quality: mean of moat, growth engine and dividend resilience."""
    moat = moat_score(inputs.dividend_yield, inputs.dgr5y)
    engine = engine_score(inputs.dgr5y)
    resilience = resilience_score(inputs.payout_fcf, inputs.debt_ebitda, inputs.interest_coverage)
    return CoreScore(
        moat=moat,
        engine=engine,
        resilience=resilience,
        total=_mean(moat, engine, resilience),
    )


def mos_score(yield_pct: float, gold_percentile: float) -> MosScore:
    """Timing / margin of safety: valuation and regime are neutral constants."""
    yield_history = yield_history_score(yield_pct)
    return MosScore(
        valuation=MOS_VALUATION_NEUTRAL,
        yield_history=yield_history,
        gold_percentile=gold_percentile,
        regime=MOS_REGIME_NEUTRAL,
        total=_mean(MOS_VALUATION_NEUTRAL, yield_history, gold_percentile, MOS_REGIME_NEUTRAL),
    )


def interpret_gold_purchase(total: float, language: Language) -> str:
    if total >= 4.0:
        return label("gps_strong", language)
    if total >= 3.0:
        return label("gps_neutral", language)
    return label("gps_weak", language)


def gold_purchase_score(percentile: float, signals: Signals, language: Language) -> GoldPurchaseScore:
    """
    Gold purchase opportunity score.

    Price comes from the horizon percentile; trend, regime and relative
    strength come from SMA crossovers of the ratio and relative series.
    """
    price = gold_price_score(percentile)
    trend_flag = signals.above_sma_200d if signals.sma_200d_available else None
    trend_score = _pick(trend_flag, TREND_SCORES)
    regime = _pick(signals.ratio_below_sma_200w, REGIME_SCORES)
    relative = _pick(signals.relative_above_sma_200d, RELATIVE_STRENGTH_SCORES)

    total = (
        price * GOLD_PURCHASE_WEIGHTS["price"]
        + trend_score * GOLD_PURCHASE_WEIGHTS["trend"]
        + regime * GOLD_PURCHASE_WEIGHTS["regime"]
        + relative * GOLD_PURCHASE_WEIGHTS["relative_strength"]
    )
    return GoldPurchaseScore(
        price=price,
        trend=trend_score,
        regime=regime,
        relative_strength=relative,
        total=total,
        interpretation=interpret_gold_purchase(total, language),
    )


def classify_zone(percentile: float, resilience: float) -> str:
    """
    Accumulation zone A/B/C.

    A needs a low percentile and strong resilience. C is an expensive ratio,
    or weak resilience outside the low-percentile band. A percentile below 25
    is never C and a percentile above 75 is never A.
    """
    if percentile < ZONE_A_MAX_PERCENTILE:
        return "A" if resilience > ZONE_A_MIN_RESILIENCE else "B"
    if percentile > ZONE_C_MIN_PERCENTILE or resilience < ZONE_C_MAX_RESILIENCE:
        return "C"
    return "B"


def action_badge(
    policy: BadgePolicy,
    *,
    core_total: float,
    gold_purchase_total: float,
    chowder: float,
    percentile: float,
    language: Language,
) -> str:
    """Localized action label under the selected policy."""
    policy = BadgePolicy(policy)
    if policy is BadgePolicy.CHOWDER:
        if passes_chowder_gate(chowder) and percentile < 50:
            return label(BADGE_STRONG, language)
        return label(BADGE_WATCH, language)

    if core_total >= 4.0:
        if gold_purchase_total >= 4.0:
            return label(BADGE_STRONG, language)
        if gold_purchase_total >= 3.0:
            return label(BADGE_STAGGERED, language)
    return label(BADGE_WATCH, language)


def mos_ladder(language: Language) -> MosLadder:
    return MosLadder(
        zone_a=label("zone_a", language),
        zone_b=label("zone_b", language),
        zone_c=label("zone_c", language),
    )


def follow_up_triggers(
    inputs: DividendInputs,
    zone: str,
    gold_price: float,
    percentile: float,
    language: Language,
) -> tuple[Trigger, ...]:
    """Monitoring checklist with the current status of each trigger."""
    return (
        Trigger(
            label=label("trigger_yield", language),
            description=label("trigger_yield_desc", language).format(yield_pct=inputs.dividend_yield),
            status=zone == "A",
        ),
        Trigger(
            label=label("trigger_regime", language),
            description=label("trigger_regime_desc", language),
            status=bool(check_rule(gold_price, 4.0, operator.ge)),
        ),
        Trigger(
            label=label("trigger_coverage", language),
            description=label("trigger_coverage_desc", language),
            status=bool(check_rule(inputs.debt_ebitda, 3.5, operator.lt)),
        ),
        Trigger(
            label=label("trigger_stay", language),
            description=label("trigger_stay_desc", language),
            status=bool(check_rule(percentile, 50, operator.lt)),
        ),
    )


def derive_metrics(
    stats: SeriesStats,
    inputs: DividendInputs,
    language: Language,
    policy: BadgePolicy = BadgePolicy.COMPOSITE,
) -> Metrics:
    """
    Build the full metrics block from series statistics and dividend inputs.

    This is the only place scores are derived. Initial analysis and manual
    overrides both go through it.
    """
    language = Language(language)
    number = chowder_number(inputs.dividend_yield, inputs.dgr5y)
    passed = passes_chowder_gate(number)

    core = core_score(inputs)
    gold_purchase = gold_purchase_score(stats.percentile, stats.signals, language)
    mos = mos_score(inputs.dividend_yield, gold_purchase.price)
    zone = classify_zone(stats.percentile, core.resilience)

    badge = action_badge(
        policy,
        core_total=core.total,
        gold_purchase_total=gold_purchase.total,
        chowder=number,
        percentile=stats.percentile,
        language=language,
    )

    return Metrics(
        current_ratio=stats.current_ratio,
        percentile=stats.percentile,
        trend_12m=stats.trend_12m,
        volatility_annual=stats.volatility_annual,
        chowder=Chowder(
            dividend_yield=display_value("dividend_yield", inputs.dividend_yield),
            dgr5y=display_value("dgr5y", inputs.dgr5y),
            chowder_number=number,
            pass_gate=passed,
            gate_reason=label("gate_pass" if passed else "gate_fail", language),
        ),
        dividend_safety=DividendSafety(
            payout_eps=display_value("payout_eps", inputs.payout_eps),
            payout_fcf=display_value("payout_fcf", inputs.payout_fcf),
            debt_ebitda=display_value("debt_ebitda", inputs.debt_ebitda),
            interest_coverage=display_value("interest_coverage", inputs.interest_coverage),
        ),
        expected_return=expected_return(inputs.dividend_yield, inputs.dgr5y),
        mos_ladder=mos_ladder(language),
        scores=Scores(core=core, mos=mos, gold_purchase=gold_purchase, action_badge=badge),
        mos_zone=zone,
        percentiles=stats.percentiles,
        signals=stats.signals,
        triggers=follow_up_triggers(inputs, zone, gold_purchase.price, stats.percentile, language),
        dividend_inputs=inputs,
    )
