"""Composite project score derived from the macro indicators."""

from __future__ import annotations

import math
from typing import Mapping

from feeds.model import IndicatorSnapshot, QualityMetrics

SCORE_MIN = 0
SCORE_MAX = 100

# Location buckets: primary metro, secondary metro, everything else.
LOCATION_MULTIPLIERS: Mapping[str, float] = {
    "primary": 1.2,
    "secondary": 1.0,
    "other": 0.9,
}
PRIMARY_METROS = ("seoul", "서울")
SECONDARY_METROS = ("busan", "부산")

# Size tiers keyed on the project's estimated value (catalog units).
LARGE_PROJECT_VALUE = 5000
MID_PROJECT_VALUE = 3000
SIZE_MULTIPLIERS: Mapping[str, float] = {
    "large": 1.1,
    "mid": 1.0,
    "small": 0.95,
}

COMPONENT_WEIGHTS: Mapping[str, float] = {
    "market": 0.30,
    "financial": 0.25,
    "construction": 0.25,
    "economic": 0.20,
}


def location_bucket(location: str) -> str:
    lowered = location.lower()
    if any(city in lowered for city in PRIMARY_METROS):
        return "primary"
    if any(city in lowered for city in SECONDARY_METROS):
        return "secondary"
    return "other"


def location_multiplier(location: str) -> float:
    return LOCATION_MULTIPLIERS[location_bucket(location)]


def size_tier(estimated_value: float) -> str:
    if estimated_value >= LARGE_PROJECT_VALUE:
        return "large"
    if estimated_value >= MID_PROJECT_VALUE:
        return "mid"
    return "small"


def size_multiplier(estimated_value: float) -> float:
    return SIZE_MULTIPLIERS[size_tier(estimated_value)]


def component_scores(snapshot: IndicatorSnapshot, location_mult: float = 1.0) -> dict[str, float]:
    """Unweighted sub-scores. ``economic`` is unbounded; the clamp happens on the blend."""

    return {
        "market": min(100.0, snapshot.real_estate_index * location_mult),
        "financial": max(0.0, 100 - (snapshot.interest_rate - 3.5) * 10),
        "construction": max(0.0, 100 - (snapshot.construction_cost_index - 110) * 2),
        "economic": snapshot.gdp_growth_rate * 15 + (3 - snapshot.inflation_rate) * 10,
    }


def clamp_score(raw: float) -> int:
    """Round half-up and clamp into [0, 100]; non-finite input lands on a bound."""

    if math.isnan(raw):
        return SCORE_MIN
    if math.isinf(raw):
        return SCORE_MAX if raw > 0 else SCORE_MIN
    return max(SCORE_MIN, min(SCORE_MAX, math.floor(raw + 0.5)))


def compute_composite_score(
    snapshot: IndicatorSnapshot,
    metrics: QualityMetrics | None = None,
    *,
    location_mult: float = 1.0,
    size_mult: float = 1.0,
) -> int:
    """Weighted blend of the four component scores, scaled by the size tier.

    The location multiplier applies to the market component before weighting;
    the size multiplier applies to the weighted sum before clamping. ``metrics``
    is accepted for callers that score a full project context; the score itself
    is driven by the indicators.
    """

    components = component_scores(snapshot, location_mult)
    weighted = sum(COMPONENT_WEIGHTS[name] * value for name, value in components.items())
    return clamp_score(weighted * size_mult)


__all__ = [
    "LOCATION_MULTIPLIERS",
    "SIZE_MULTIPLIERS",
    "location_bucket",
    "location_multiplier",
    "size_tier",
    "size_multiplier",
    "component_scores",
    "clamp_score",
    "compute_composite_score",
]
