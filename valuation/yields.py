"""Twelve-month dividend yield simulation."""

from __future__ import annotations

from typing import Iterable, Mapping

from feeds.model import (
    DividendData,
    DividendSummary,
    ImpactClass,
    IndicatorSnapshot,
    NewsEvent,
    YieldPoint,
)

BASE_MONTHLY_YIELD = 0.8
NEWS_IMPACT_SCALE = 0.3
GRADE_BASELINE_SCORE = 70
GDP_BASELINE = 3.0
BASIS_POINTS_PER_PERCENT = 100

# Rent collection and sales seasonality; peaks in spring and autumn.
SEASONAL_MULTIPLIERS: tuple[float, ...] = (
    0.90, 0.85, 1.05, 1.15, 1.10, 1.00,
    0.90, 0.85, 1.05, 1.15, 1.05, 0.95,
)


def news_impact(event: NewsEvent | None) -> float:
    if event is None:
        return 1.0
    if event.impact_class is ImpactClass.POSITIVE:
        return 1 + event.severity * NEWS_IMPACT_SCALE
    if event.impact_class is ImpactClass.NEGATIVE:
        return 1 - event.severity * NEWS_IMPACT_SCALE
    return 1.0


def simulate_yields(
    snapshot: IndicatorSnapshot,
    composite_score: float,
    events: Iterable[NewsEvent] = (),
) -> list[YieldPoint]:
    """Regenerate the full monthly/cumulative series (percent) from scratch."""

    by_month: Mapping[int, NewsEvent] = {event.month: event for event in events}
    market_mult = (snapshot.real_estate_index / 100) * (snapshot.gdp_growth_rate / GDP_BASELINE)
    grade_mult = composite_score / GRADE_BASELINE_SCORE

    points: list[YieldPoint] = []
    cumulative = 0.0
    for month, seasonal in enumerate(SEASONAL_MULTIPLIERS, start=1):
        event = by_month.get(month)
        monthly = BASE_MONTHLY_YIELD * seasonal * market_mult * grade_mult * news_impact(event)
        cumulative = cumulative + monthly
        points.append(
            YieldPoint(
                month=month,
                monthly_yield=monthly,
                cumulative_yield=cumulative,
                event_description=event.text if event is not None else "",
            )
        )
    return points


def to_dividend_summary(points: Iterable[YieldPoint]) -> DividendSummary:
    """Ledger-shaped summary; cumulative basis points are a running integer sum."""

    months: list[int] = []
    yields_bp: list[int] = []
    cumulative_bp: list[int] = []
    events: list[str] = []
    running = 0
    for point in points:
        monthly_bp = round(point.monthly_yield * BASIS_POINTS_PER_PERCENT)
        running += monthly_bp
        months.append(point.month)
        yields_bp.append(monthly_bp)
        cumulative_bp.append(running)
        events.append(point.event_description)
    return DividendSummary(
        months=months, yields_bp=yields_bp, cumulative_bp=cumulative_bp, events=events
    )


def to_dividend_data(summary: DividendSummary) -> DividendData:
    """Convert basis points to percentages rounded to two decimals."""

    return DividendData(
        months=list(summary.months),
        monthly_yields=[round(bp / BASIS_POINTS_PER_PERCENT, 2) for bp in summary.yields_bp],
        cumulative_yields=[
            round(bp / BASIS_POINTS_PER_PERCENT, 2) for bp in summary.cumulative_bp
        ],
        events=list(summary.events),
    )


__all__ = [
    "SEASONAL_MULTIPLIERS",
    "news_impact",
    "simulate_yields",
    "to_dividend_summary",
    "to_dividend_data",
]
