"""Data models for gold ratio analysis."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any

# Interest coverage assumed when debt or EBITDA is unknown
DEFAULT_INTEREST_COVERAGE = 5.0


class Frequency(str, Enum):
    """Output sampling frequency."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def periods_per_year(self) -> int:
        """Annualization factor for this frequency."""
        return {"daily": 252, "weekly": 52, "monthly": 12}[self.value]


class DividendMode(str, Enum):
    """How dividends are reflected in the asset price series."""

    PRICE_ONLY = "price_only"
    TOTAL_RETURN_REAL = "total_return_real"
    TOTAL_RETURN_APPROX = "total_return_approx"


class Language(str, Enum):
    """Language for user-facing labels."""

    EN = "en"
    ES = "es"


class BadgePolicy(str, Enum):
    """Rule used to derive the action badge."""

    COMPOSITE = "composite"  # core total + gold purchase total
    CHOWDER = "chowder"  # chowder gate + percentile


@dataclass(frozen=True)
class PricePoint:
    """Single dated value (price or ratio). time is ISO yyyy-mm-dd."""

    time: str
    value: float


@dataclass(frozen=True)
class Fundamentals:
    """
    Point-in-time dividend fundamentals.

    dividend_yield and dgr5y are fractions (0.072 = 7.2%).
    payout_eps and payout_fcf are percentages. debt_ebitda and
    interest_coverage are multiples.
    """

    dividend_yield: float = 0.0
    dgr5y: float = 0.0
    payout_eps: float = 0.0
    payout_fcf: float = 0.0
    debt_ebitda: float = 0.0
    interest_coverage: float = DEFAULT_INTEREST_COVERAGE
    name: str | None = None
    # Fields that could not be decoded and fell back to defaults
    missing: tuple[str, ...] = ()


@dataclass(frozen=True)
class DividendInputs:
    """
    Dividend fundamentals as scored: yield and growth in percent.

    Values are kept at full precision. Only the displayed Chowder and
    DividendSafety fields are rounded, so tier thresholds see what was
    fetched or typed.
    """

    dividend_yield: float
    dgr5y: float
    payout_eps: float
    payout_fcf: float
    debt_ebitda: float
    interest_coverage: float

    @classmethod
    def from_fundamentals(cls, fundamentals: Fundamentals) -> DividendInputs:
        return cls(
            dividend_yield=_to_percent(fundamentals.dividend_yield),
            dgr5y=_to_percent(fundamentals.dgr5y),
            payout_eps=fundamentals.payout_eps,
            payout_fcf=fundamentals.payout_fcf,
            debt_ebitda=fundamentals.debt_ebitda,
            interest_coverage=fundamentals.interest_coverage,
        )

    def with_value(self, name: str, value: float) -> DividendInputs:
        """Copy with one field replaced."""
        if name not in self.__dataclass_fields__:
            raise ValueError(f"Unknown dividend input '{name}'")
        return replace(self, **{name: float(value)})


def _to_percent(fraction: float) -> float:
    # 0.072 * 100 is 7.199999999999999
    return round(fraction * 100, 10)


@dataclass(frozen=True)
class Chowder:
    """Chowder rule block. Yield and growth in percentage points."""

    dividend_yield: float
    dgr5y: float
    chowder_number: float
    pass_gate: bool
    gate_reason: str


@dataclass(frozen=True)
class DividendSafety:
    payout_eps: float
    payout_fcf: float
    debt_ebitda: float
    interest_coverage: float


@dataclass(frozen=True)
class ExpectedReturn:
    conservative: float
    base: float
    optimistic: float


@dataclass(frozen=True)
class MosLadder:
    zone_a: str
    zone_b: str
    zone_c: str


@dataclass(frozen=True)
class CoreScore:
    moat: float
    engine: float
    resilience: float
    total: float


@dataclass(frozen=True)
class MosScore:
    valuation: float
    yield_history: float
    gold_percentile: float
    regime: float
    total: float


@dataclass(frozen=True)
class GoldPurchaseScore:
    price: float
    trend: float
    regime: float
    relative_strength: float
    total: float
    interpretation: str


@dataclass(frozen=True)
class Scores:
    core: CoreScore
    mos: MosScore
    gold_purchase: GoldPurchaseScore
    action_badge: str


@dataclass(frozen=True)
class PercentileTable:
    p10: float
    p25: float
    p50: float
    p75: float
    p90: float


@dataclass(frozen=True)
class Signals:
    """
    SMA crossover signals.

    The nullable fields are None when the underlying SMA is not available yet.
    """

    above_sma_200d: bool
    above_sma_200w: bool
    sma_200d_available: bool = False
    ratio_below_sma_200w: bool | None = None
    relative_above_sma_200d: bool | None = None


@dataclass(frozen=True)
class Trigger:
    label: str
    description: str
    status: bool


@dataclass(frozen=True)
class Metrics:
    current_ratio: float
    percentile: float
    trend_12m: str
    volatility_annual: float
    chowder: Chowder
    dividend_safety: DividendSafety
    expected_return: ExpectedReturn
    mos_ladder: MosLadder
    scores: Scores
    mos_zone: str
    percentiles: PercentileTable
    signals: Signals
    triggers: tuple[Trigger, ...] = ()
    # Unrounded inputs the scores were derived from
    dividend_inputs: DividendInputs | None = None


@dataclass(frozen=True)
class RatioSeries:
    """The nine derived series, horizon-windowed and resampled."""

    ratio: list[PricePoint] = field(default_factory=list)
    ratio_sma_200d: list[PricePoint] = field(default_factory=list)
    ratio_sma_200w: list[PricePoint] = field(default_factory=list)
    benchmark_ratio: list[PricePoint] = field(default_factory=list)
    benchmark_sma_200d: list[PricePoint] = field(default_factory=list)
    benchmark_sma_200w: list[PricePoint] = field(default_factory=list)
    relative_ratio: list[PricePoint] = field(default_factory=list)
    relative_sma_200d: list[PricePoint] = field(default_factory=list)
    relative_sma_200w: list[PricePoint] = field(default_factory=list)


SERIES_NAMES: tuple[str, ...] = tuple(RatioSeries.__dataclass_fields__)


@dataclass(frozen=True)
class RatioResult:
    """Complete output of one analysis."""

    ticker: str
    asset_name: str
    benchmark_ticker: str
    horizon_years: int
    frequency: Frequency
    dividend_mode: DividendMode
    language: Language
    badge_policy: BadgePolicy
    is_gold_proxy: bool
    is_benchmark_proxy: bool
    last_update: str
    data: RatioSeries
    metrics: Metrics
    warnings: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Plain JSON-compatible dict (enums as values, tuples as lists)."""
        return asdict(self, dict_factory=_json_dict_factory)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> RatioResult:
        """Rebuild a result from to_dict() output."""
        data = raw["data"]
        m = raw["metrics"]
        s = m["scores"]
        metrics = Metrics(
            current_ratio=m["current_ratio"],
            percentile=m["percentile"],
            trend_12m=m["trend_12m"],
            volatility_annual=m["volatility_annual"],
            chowder=Chowder(**m["chowder"]),
            dividend_safety=DividendSafety(**m["dividend_safety"]),
            expected_return=ExpectedReturn(**m["expected_return"]),
            mos_ladder=MosLadder(**m["mos_ladder"]),
            scores=Scores(
                core=CoreScore(**s["core"]),
                mos=MosScore(**s["mos"]),
                gold_purchase=GoldPurchaseScore(**s["gold_purchase"]),
                action_badge=s["action_badge"],
            ),
            mos_zone=m["mos_zone"],
            percentiles=PercentileTable(**m["percentiles"]),
            signals=Signals(**m["signals"]),
            triggers=tuple(Trigger(**t) for t in m.get("triggers", [])),
            dividend_inputs=(
                DividendInputs(**m["dividend_inputs"]) if m.get("dividend_inputs") else None
            ),
        )
        return cls(
            ticker=raw["ticker"],
            asset_name=raw["asset_name"],
            benchmark_ticker=raw["benchmark_ticker"],
            horizon_years=raw["horizon_years"],
            frequency=Frequency(raw["frequency"]),
            dividend_mode=DividendMode(raw["dividend_mode"]),
            language=Language(raw["language"]),
            badge_policy=BadgePolicy(raw["badge_policy"]),
            is_gold_proxy=raw["is_gold_proxy"],
            is_benchmark_proxy=raw["is_benchmark_proxy"],
            last_update=raw["last_update"],
            data=RatioSeries(
                **{
                    name: [PricePoint(p["time"], p["value"]) for p in data.get(name, [])]
                    for name in SERIES_NAMES
                }
            ),
            metrics=metrics,
            warnings=tuple(raw.get("warnings", [])),
        )


def _json_dict_factory(items: list[tuple[str, Any]]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in items:
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, tuple):
            value = list(value)
        out[key] = value
    return out
