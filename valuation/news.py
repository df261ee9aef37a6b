"""Synthetic monthly news events for the dividend simulation.

Event odds follow the construction and sales calendar of the asset class and
are tilted by the market index and the project's composite score.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Mapping

from feeds.model import ImpactClass, NewsEvent

MARKET_TILT_INDEX = 105
SCORE_TILT_THRESHOLD = 70


@dataclass(frozen=True)
class EventTemplate:
    text: str
    impact: float


# Month -> base (positive, negative, neutral) probabilities.
MONTHLY_EVENT_PROBABILITY: Mapping[int, tuple[float, float, float]] = {
    1: (0.4, 0.3, 0.3),  # new-year planning
    2: (0.3, 0.4, 0.3),  # works restart after winter
    3: (0.6, 0.2, 0.2),  # spring pick-up
    4: (0.7, 0.2, 0.1),  # sales season
    5: (0.6, 0.2, 0.2),
    6: (0.4, 0.3, 0.3),  # mid-year review
    7: (0.3, 0.4, 0.3),  # summer heat and monsoon
    8: (0.3, 0.4, 0.3),  # holidays
    9: (0.6, 0.2, 0.2),
    10: (0.7, 0.2, 0.1),  # peak sales
    11: (0.5, 0.3, 0.2),
    12: (0.4, 0.3, 0.3),  # year-end close
}

EVENT_TEMPLATES: Mapping[ImpactClass, tuple[EventTemplate, ...]] = {
    ImpactClass.POSITIVE: (
        EventTemplate("Large-scale infrastructure investment plan announced", 0.8),
        EventTemplate("{region} development project approved", 0.7),
        EventTemplate("Transport infrastructure upgrade confirmed", 0.6),
        EventTemplate("Major corporation confirms headquarters relocation", 0.9),
        EventTemplate("New town development plan announced", 0.8),
        EventTemplate("Subway line extension confirmed", 0.7),
        EventTemplate("Anchor retail tenant signed for the {project}", 0.6),
        EventTemplate("Green building certification obtained", 0.5),
        EventTemplate("Pre-sale of the {project} oversubscribed", 0.7),
        EventTemplate("Main construction contract awarded", 0.6),
    ),
    ImpactClass.NEGATIVE: (
        EventTemplate("Construction cost pressure rising", -0.6),
        EventTemplate("Permit approval delayed", -0.7),
        EventTemplate("Environmental regulation tightened", -0.5),
        EventTemplate("Interest rate hike concerns", -0.8),
        EventTemplate("Sale price cap rules strengthened", -0.7),
        EventTemplate("Construction labour shortage", -0.6),
        EventTemplate("Raw material prices surge", -0.8),
        EventTemplate("{region} property regulation tightened", -0.9),
        EventTemplate("Economic slowdown concerns", -0.7),
        EventTemplate("Oversupply concerns in {region}", -0.6),
    ),
    ImpactClass.NEUTRAL: (
        EventTemplate("Scheduled safety inspection carried out", 0.1),
        EventTemplate("Construction progress report published", 0.0),
        EventTemplate("Investor briefing held", 0.1),
        EventTemplate("Quarterly results released", 0.0),
        EventTemplate("Operations status report filed", 0.1),
        EventTemplate("Market trend analysis published", 0.0),
        EventTemplate("Quality control review of the {project}", 0.1),
        EventTemplate("Partnership agreement signed", 0.2),
        EventTemplate("New construction technology under review", 0.1),
        EventTemplate("Sustainability report issued", 0.2),
    ),
}

# Substring in the project location -> region label used in event text.
REGION_LABELS: Mapping[str, str] = {
    "seoul": "Seoul",
    "서울": "Seoul",
    "busan": "Busan",
    "부산": "Busan",
    "incheon": "Incheon",
    "인천": "Incheon",
}
# Substring in the project name -> project type label used in event text.
PROJECT_LABELS: Mapping[str, str] = {
    "mixed": "mixed-use development",
    "복합": "mixed-use development",
    "residential": "residential complex",
    "주거": "residential complex",
    "logistics": "logistics centre",
    "물류": "logistics centre",
    "office": "office building",
    "오피스": "office building",
}


def _label(text: str, labels: Mapping[str, str], default: str) -> str:
    lowered = text.lower()
    for needle, label in labels.items():
        if needle in lowered:
            return label
    return default


def event_probabilities(
    month: int, real_estate_index: float, composite_score: float
) -> dict[ImpactClass, float]:
    """Seasonal base odds tilted by market and score, renormalized to sum to 1."""

    positive, negative, neutral = MONTHLY_EVENT_PROBABILITY[month]
    market_mult = 1.2 if real_estate_index > MARKET_TILT_INDEX else 0.8
    score_mult = 1.1 if composite_score > SCORE_TILT_THRESHOLD else 0.9

    adjusted = {
        ImpactClass.POSITIVE: positive * market_mult * score_mult,
        ImpactClass.NEGATIVE: negative * (2 - market_mult) * (2 - score_mult),
        ImpactClass.NEUTRAL: neutral,
    }
    total = sum(adjusted.values())
    return {impact: weight / total for impact, weight in adjusted.items()}


class NewsEventGenerator:
    """Draws one categorized event per simulated month."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def generate(
        self,
        month: int,
        *,
        location: str,
        project_name: str,
        real_estate_index: float,
        composite_score: float,
    ) -> NewsEvent:
        probabilities = event_probabilities(month, real_estate_index, composite_score)

        draw = self._rng.random()
        cumulative = 0.0
        impact = ImpactClass.NEUTRAL
        for candidate in (ImpactClass.POSITIVE, ImpactClass.NEGATIVE, ImpactClass.NEUTRAL):
            cumulative += probabilities[candidate]
            if draw < cumulative:
                impact = candidate
                break

        templates = EVENT_TEMPLATES[impact]
        template = templates[int(self._rng.random() * len(templates))]
        text = template.text.format(
            region=_label(location, REGION_LABELS, "Local"),
            project=_label(project_name, PROJECT_LABELS, "project"),
        )
        return NewsEvent(
            month=month,
            text=f"Month {month}: {text}",
            impact_class=impact,
            severity=abs(template.impact),
        )

    def generate_year(
        self,
        *,
        location: str,
        project_name: str,
        real_estate_index: float,
        composite_score: float,
    ) -> list[NewsEvent]:
        return [
            self.generate(
                month,
                location=location,
                project_name=project_name,
                real_estate_index=real_estate_index,
                composite_score=composite_score,
            )
            for month in range(1, 13)
        ]


__all__ = [
    "EventTemplate",
    "MONTHLY_EVENT_PROBABILITY",
    "EVENT_TEMPLATES",
    "event_probabilities",
    "NewsEventGenerator",
]
