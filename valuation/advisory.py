"""Rule-based recommendations and input coverage scoring for a valuation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from feeds.model import IndicatorSnapshot, QualityMetrics
from valuation.pricing import ForecastSignal


@dataclass(frozen=True)
class RecommendedAction:
    type: str
    priority: str
    action: str
    reason: str


def recommended_actions(metrics: QualityMetrics) -> list[RecommendedAction]:
    actions: list[RecommendedAction] = []

    if metrics.development_progress < 30:
        actions.append(
            RecommendedAction(
                type="monitor",
                priority="medium",
                action="Track construction progress at every reporting period.",
                reason="Early-stage project; value is sensitive to progress changes.",
            )
        )

    if metrics.local_demand_index > 800:
        actions.append(
            RecommendedAction(
                type="buy",
                priority="high",
                action="Consider the opportunity created by strong local demand.",
                reason="Local demand index is above 800.",
            )
        )
    elif metrics.local_demand_index < 300:
        actions.append(
            RecommendedAction(
                type="caution",
                priority="high",
                action="Review the downside risk of weak local demand.",
                reason="Local demand index is below 300.",
            )
        )

    if metrics.infra_score > 85:
        actions.append(
            RecommendedAction(
                type="positive",
                priority="medium",
                action="Strong infrastructure supports long-term value.",
                reason="Infrastructure score is above 85.",
            )
        )

    return actions


def assess_data_quality(
    snapshot: IndicatorSnapshot,
    metrics: QualityMetrics | None,
    forecast: ForecastSignal | None,
) -> dict[str, Any]:
    """Score (0-100) how much of the valuation rests on live inputs.

    Indicators count for 50 points, project metrics for 30, the forecast for 20.
    """

    live_indicators = 5 - len(snapshot.fallback_fields)
    score = live_indicators * 10
    if metrics is not None:
        score += 30
    if forecast is not None and forecast.active:
        score += 20
    return {
        "score": score,
        "missing": {
            "indicators": list(snapshot.fallback_fields),
            "metrics": metrics is None,
            "forecast": forecast is None or not forecast.active,
        },
    }


__all__ = ["RecommendedAction", "recommended_actions", "assess_data_quality"]
