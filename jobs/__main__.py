"""Command-line entrypoint for valuation jobs."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from typing import Iterable

from jobs.config import TARGET_PROJECTS, ProjectConfig, get_project_by_key, iter_projects
from jobs.poll import main as run_poll
from jobs.poll import value_async
from valuation.pricing import ValuationStrategy


def _format_project(project: ProjectConfig) -> str:
    weights = project.weights
    return (
        f"{project.key}: name='{project.name}' location='{project.location}' "
        f"value={project.estimated_value:g} base_price={project.base_price:g} "
        f"weights={weights.oracle_weight}/{weights.custom_weight}/{weights.base_weight}"
    )


def _resolve_projects_from_cli(keys: Iterable[str] | None) -> tuple[ProjectConfig, ...]:
    if not keys:
        return tuple()
    projects = tuple(iter_projects(keys))
    unknown = set(keys) - {p.key for p in projects}
    if unknown:
        raise SystemExit(f"Unknown project keys: {', '.join(sorted(unknown))}")
    return projects


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Real-asset token valuation job runner")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list-projects", help="Show configured project metadata")

    value_parser = subparsers.add_parser("value", help="Value one project and print JSON")
    value_parser.add_argument("--project", required=True, help="Project key to value")
    value_parser.add_argument(
        "--strategy",
        choices=[strategy.value for strategy in ValuationStrategy],
        help="Override VALUATION_STRATEGY for this invocation",
    )

    poll_parser = subparsers.add_parser(
        "poll", help="Re-value configured projects on a fixed interval"
    )
    poll_parser.add_argument(
        "--projects",
        help="Comma-separated list of project keys to poll (defaults to all configured)",
    )
    poll_parser.add_argument(
        "--interval", type=float, help="Override POLL_INTERVAL_SECONDS (seconds)"
    )
    poll_parser.add_argument(
        "--iterations", type=int, help="Stop after this many rounds (default: run forever)"
    )
    poll_parser.add_argument(
        "--log-level",
        help="Override LOG_LEVEL for this invocation (e.g. DEBUG, INFO)",
    )

    args = parser.parse_args(argv)

    if args.command == "list-projects":
        for project in TARGET_PROJECTS:
            print(_format_project(project))
        return 0

    if args.command == "value":
        project = get_project_by_key(args.project)
        if project is None:
            raise SystemExit(f"Unknown project key: {args.project}")
        logging.basicConfig(level=os.getenv("LOG_LEVEL", "WARNING"))
        strategy = ValuationStrategy(args.strategy) if args.strategy else None
        print(asyncio.run(value_async(project, strategy=strategy)))
        return 0

    if args.command == "poll":
        keys_arg = args.projects.split(",") if args.projects else None
        keys_arg = [item.strip() for item in keys_arg or [] if item.strip()]
        projects = _resolve_projects_from_cli(keys_arg)
        if args.log_level:
            os.environ["LOG_LEVEL"] = args.log_level
        if args.interval is not None:
            os.environ["POLL_INTERVAL_SECONDS"] = str(args.interval)
        return run_poll(projects or None, iterations=args.iterations)

    parser.error("Unknown command")
    return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
