"""Periodic poll loop that re-values every configured project on a fixed interval."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Iterable

from dotenv import load_dotenv

from feeds.model import CalculationResult, LedgerResult
from jobs.config import TARGET_PROJECTS, ProjectConfig, Settings, iter_projects, load_settings
from valuation.pricing import ValuationStrategy
from valuation.resilience import ValuationOrchestrator

load_dotenv()

logger = logging.getLogger(__name__)


def _resolve_projects() -> tuple[ProjectConfig, ...]:
    requested = os.getenv("POLL_PROJECTS")
    if requested:
        keys = [key.strip() for key in requested.split(",") if key.strip()]
        selected = tuple(iter_projects(keys))
        if selected:
            return selected
        logger.warning(
            "POLL_PROJECTS=%s did not match any configured projects; falling back to defaults.",
            requested,
        )
    return TARGET_PROJECTS


def _summarize(result: LedgerResult | CalculationResult) -> str:
    return (
        f"{result.key}: price={result.current_price:.6f} ai={result.ai_enhanced_price:.6f} "
        f"score={result.custom_score} grade={result.investment_grade} "
        f"source={result.data_source} ledger={result.connection_status}"
    )


async def poll_once(
    orchestrator: ValuationOrchestrator, projects: Iterable[ProjectConfig]
) -> list[LedgerResult | CalculationResult]:
    """Value all projects concurrently and log one line per result."""

    results = await asyncio.gather(*(orchestrator.valuate(project) for project in projects))
    for result in results:
        logger.info("%s", _summarize(result))
        if result.fallback_fields:
            logger.info("  substituted fields: %s", ", ".join(result.fallback_fields))
    return list(results)


async def poll_async(
    projects: Iterable[ProjectConfig] | None = None,
    *,
    settings: Settings | None = None,
    iterations: int | None = None,
    orchestrator: ValuationOrchestrator | None = None,
) -> int:
    """Run ``poll_once`` every ``settings.poll_interval_seconds``; returns rounds completed."""

    projects = tuple(projects) if projects is not None else _resolve_projects()
    settings = settings or load_settings()
    orchestrator = orchestrator or ValuationOrchestrator(settings)
    rounds = 0
    while iterations is None or rounds < iterations:
        logger.info("Polling %s project(s)...", len(projects))
        await poll_once(orchestrator, projects)
        rounds += 1
        if iterations is not None and rounds >= iterations:
            break
        await asyncio.sleep(settings.poll_interval_seconds)
    return rounds


async def value_async(
    project: ProjectConfig,
    *,
    settings: Settings | None = None,
    strategy: ValuationStrategy | None = None,
) -> str:
    """Value a single project and return the API-shaped JSON document."""

    orchestrator = ValuationOrchestrator(settings or load_settings())
    result = await orchestrator.valuate(project, strategy=strategy)
    return json.dumps(result.model_dump(mode="json", by_alias=True), indent=2, ensure_ascii=False)


def main(projects: Iterable[ProjectConfig] | None = None, iterations: int | None = None) -> int:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
    try:
        rounds = asyncio.run(poll_async(projects, iterations=iterations))
    except KeyboardInterrupt:
        logger.info("Poll loop interrupted.")
        return 0
    logger.info("Poll loop finished (rounds=%s).", rounds)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
