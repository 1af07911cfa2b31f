"""Validation utilities and request parameter classes."""

import math
import operator
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from gold_ratio_mcp.models import BadgePolicy, DividendMode, Frequency, Language

# Allowlists for cache key stability
VALID_HORIZONS = {5, 10, 15}

MANUAL_PRICE_FIELDS = ("manual_price", "manual_gold_price", "manual_benchmark_price")
MANUAL_FUNDAMENTAL_FIELDS = (
    "manual_yield",
    "manual_dgr",
    "manual_payout_eps",
    "manual_payout_fcf",
    "manual_debt_ebitda",
    "manual_interest_coverage",
)


def _coerce_enum(enum_cls: type, value: Any, name: str) -> Any:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).lower().strip())
    except ValueError:
        allowed = {m.value for m in enum_cls}
        raise ValueError(f"Invalid {name} '{value}'. Must be one of: {allowed}") from None


@dataclass(frozen=True)
class AnalysisRequest:
    """
    Immutable analysis parameters. Used for cache key + engine input.

    Manual yield and dgr are percentages (7.2 = 7.2%), matching what the
    override editor displays. Manual payouts are percentages, debt/EBITDA and
    interest coverage are multiples.
    """

    ticker: str
    benchmark_ticker: str = "SPY"
    horizon_years: int = 10
    frequency: Frequency = Frequency.WEEKLY
    dividend_mode: DividendMode = DividendMode.PRICE_ONLY
    language: Language = Language.EN
    badge_policy: BadgePolicy = BadgePolicy.COMPOSITE
    manual_price: float | None = None
    manual_gold_price: float | None = None
    manual_benchmark_price: float | None = None
    manual_yield: float | None = None
    manual_dgr: float | None = None
    manual_payout_eps: float | None = None
    manual_payout_fcf: float | None = None
    manual_debt_ebitda: float | None = None
    manual_interest_coverage: float | None = None

    def __post_init__(self) -> None:
        # Normalize tickers: uppercase, strip whitespace
        ticker = (self.ticker or "").upper().strip()
        if not ticker:
            raise ValueError("Ticker must not be empty")
        benchmark = (self.benchmark_ticker or "SPY").upper().strip() or "SPY"
        object.__setattr__(self, "ticker", ticker)
        object.__setattr__(self, "benchmark_ticker", benchmark)

        if self.horizon_years not in VALID_HORIZONS:
            raise ValueError(
                f"Invalid horizon '{self.horizon_years}'. Must be one of: {VALID_HORIZONS}"
            )

        object.__setattr__(self, "frequency", _coerce_enum(Frequency, self.frequency, "frequency"))
        object.__setattr__(
            self, "dividend_mode", _coerce_enum(DividendMode, self.dividend_mode, "dividend_mode")
        )
        object.__setattr__(self, "language", _coerce_enum(Language, self.language, "language"))
        object.__setattr__(
            self, "badge_policy", _coerce_enum(BadgePolicy, self.badge_policy, "badge_policy")
        )

        for name in MANUAL_PRICE_FIELDS + MANUAL_FUNDAMENTAL_FIELDS:
            value = getattr(self, name)
            if value is None:
                continue
            if not math.isfinite(value):
                raise ValueError(f"Invalid {name} '{value}'. Must be a finite number")
            if name in MANUAL_PRICE_FIELDS and value <= 0:
                raise ValueError(f"Invalid {name} '{value}'. Must be positive")
            object.__setattr__(self, name, float(value))

    def to_key(self) -> str:
        """Cache key shared by the result and its series resources."""
        return f"{self.ticker}/{self.horizon_years}/{self.frequency.value}"


def check_rule(
    value: float | None,
    threshold: float,
    comparator: Callable[[float, float], bool] = operator.gt,
) -> bool | None:
    """
    Check a rule with nullable boolean semantics.

    If value is None, returns None (not False).

    Args:
        value: The value to check (may be None)
        threshold: The threshold to compare against
        comparator: Comparison function (default: operator.gt)

    Returns:
        True/False if value is not None, None otherwise
    """
    if value is None:
        return None
    return comparator(value, threshold)
