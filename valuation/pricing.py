"""Token price composition.

Two strategies are kept side by side: ``HYBRID`` adjusts the base price with
macro and score terms, ``WEIGHTED`` blends oracle, score and base components by
configured percentages. An optional forecast signal is then blended in when its
confidence clears the gate.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum

from feeds.model import IndicatorSnapshot
from valuation.errors import InvalidWeightConfiguration, MalformedForecastSignal

FORECAST_CONFIDENCE_THRESHOLD = 60
# Largest price discount applied at risk score 100.
MAX_RISK_DISCOUNT = 0.10
SECONDS_PER_DAY = 86_400


class ValuationStrategy(str, Enum):
    HYBRID = "hybrid"
    WEIGHTED = "weighted"


@dataclass(frozen=True)
class ValuationWeights:
    """Percentage weights of the weighted strategy; must sum to exactly 100."""

    oracle_weight: int = 0
    custom_weight: int = 70
    base_weight: int = 30

    def __post_init__(self) -> None:
        weights = (self.oracle_weight, self.custom_weight, self.base_weight)
        if any(isinstance(w, bool) or not isinstance(w, int) for w in weights):
            raise InvalidWeightConfiguration(f"Weights must be integers, got {weights}")
        if any(w < 0 or w > 100 for w in weights):
            raise InvalidWeightConfiguration(f"Weights must lie in [0, 100], got {weights}")
        if sum(weights) != 100:
            raise InvalidWeightConfiguration(
                f"Weights must sum to 100, got {sum(weights)} "
                f"(oracle={self.oracle_weight}, custom={self.custom_weight}, "
                f"base={self.base_weight})"
            )


@dataclass(frozen=True)
class ForecastSignal:
    """Externally supplied price forecast with confidence and risk scores."""

    predicted_price: float
    confidence: float
    risk_score: float
    investment_score: float
    active: bool = True
    captured_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        for name in ("confidence", "risk_score", "investment_score"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or math.isnan(value) or not 0 <= value <= 100:
                raise MalformedForecastSignal(f"{name} must lie in [0, 100], got {value!r}")
        if (
            not isinstance(self.predicted_price, (int, float))
            or not math.isfinite(self.predicted_price)
            or self.predicted_price < 0
        ):
            raise MalformedForecastSignal(
                f"predicted_price must be a non-negative number, got {self.predicted_price!r}"
            )


@dataclass(frozen=True)
class Valuation:
    strategy: ValuationStrategy
    strategy_price: float
    final_price: float
    forecast_applied: bool


def time_drift(now: float) -> float:
    """Smooth, deterministic drift in [-0.02, 0.02] keyed on wall-clock seconds."""
    return math.sin(now / SECONDS_PER_DAY) * 0.02


def hybrid_price(
    base_price: float,
    snapshot: IndicatorSnapshot,
    composite_score: float,
    *,
    size_mult: float = 1.0,
    now: float | None = None,
) -> float:
    now = time.time() if now is None else now
    market_adj = (snapshot.real_estate_index - 100) / 100 * 0.15
    risk_adj = (composite_score - 70) / 100 * 0.08
    rate_impact = -(snapshot.interest_rate - 3.5) / 100 * 0.05
    return base_price * size_mult * (1 + market_adj + risk_adj + rate_impact + time_drift(now))


def weighted_price(
    base_price: float,
    weights: ValuationWeights,
    composite_score: float,
    oracle_ratio: float | None = None,
) -> float:
    if weights.oracle_weight == 0 or oracle_ratio is None:
        oracle_ratio = 1.0
    custom_multiplier = (50 + composite_score) / 100
    blended = (
        weights.oracle_weight * oracle_ratio
        + weights.custom_weight * custom_multiplier
        + weights.base_weight * 1
    )
    return base_price * blended / 100


def forecast_gate_open(forecast: ForecastSignal | None) -> bool:
    return (
        forecast is not None
        and forecast.active
        and forecast.confidence >= FORECAST_CONFIDENCE_THRESHOLD
    )


def apply_forecast(price: float, forecast: ForecastSignal | None) -> float:
    """Blend toward the forecast in proportion to confidence, then discount for risk.

    Below the confidence gate the price passes through untouched.
    """

    if not forecast_gate_open(forecast):
        return price
    weight = forecast.confidence / 100
    blended = price * (1 - weight) + forecast.predicted_price * weight
    return blended * (1 - forecast.risk_score / 100 * MAX_RISK_DISCOUNT)


def compose_valuation(
    strategy: ValuationStrategy,
    *,
    base_price: float,
    snapshot: IndicatorSnapshot,
    composite_score: float,
    weights: ValuationWeights | None = None,
    size_mult: float = 1.0,
    oracle_ratio: float | None = None,
    forecast: ForecastSignal | None = None,
    now: float | None = None,
) -> Valuation:
    if strategy is ValuationStrategy.HYBRID:
        price = hybrid_price(
            base_price, snapshot, composite_score, size_mult=size_mult, now=now
        )
    else:
        price = weighted_price(
            base_price, weights or ValuationWeights(), composite_score, oracle_ratio
        )
    return Valuation(
        strategy=strategy,
        strategy_price=price,
        final_price=apply_forecast(price, forecast),
        forecast_applied=forecast_gate_open(forecast),
    )


__all__ = [
    "FORECAST_CONFIDENCE_THRESHOLD",
    "MAX_RISK_DISCOUNT",
    "ValuationStrategy",
    "ValuationWeights",
    "ForecastSignal",
    "Valuation",
    "time_drift",
    "hybrid_price",
    "weighted_price",
    "forecast_gate_open",
    "apply_forecast",
    "compose_valuation",
]
