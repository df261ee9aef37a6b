"""Project catalog and environment-driven runtime settings."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Iterable

from feeds.model import QualityMetrics
from valuation.pricing import ValuationStrategy, ValuationWeights

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectConfig:
    """Configuration describing one tokenized real-asset project."""

    key: str
    name: str
    location: str
    estimated_value: float
    base_price: float
    total_supply: int
    risk_summary: str = ""
    weights: ValuationWeights = field(default_factory=ValuationWeights)
    metrics: QualityMetrics = field(
        default_factory=lambda: QualityMetrics(
            local_demand_index=500, development_progress=50, infra_score=60
        )
    )


TARGET_PROJECTS: tuple[ProjectConfig, ...] = (
    ProjectConfig(
        key="seoul-mixed-101",
        name="Seoul Station Mixed-Use Development",
        location="Jung-gu, Seoul",
        estimated_value=8200,
        base_price=0.1,
        total_supply=10000,
        risk_summary="Rising construction costs, sale price regulation, traffic congestion",
        weights=ValuationWeights(oracle_weight=0, custom_weight=70, base_weight=30),
        metrics=QualityMetrics(local_demand_index=750, development_progress=65, infra_score=85),
    ),
    ProjectConfig(
        key="busan-logi-11",
        name="Busan Logistics Center Expansion",
        location="Gangseo-gu, Busan",
        estimated_value=3200,
        base_price=0.05,
        total_supply=20000,
        risk_summary="Logistics demand swings, rising interest rates",
        weights=ValuationWeights(oracle_weight=0, custom_weight=60, base_weight=40),
        metrics=QualityMetrics(local_demand_index=600, development_progress=40, infra_score=70),
    ),
    ProjectConfig(
        key="incheon-office-9",
        name="Incheon Eco Office",
        location="Yeonsu-gu, Incheon",
        estimated_value=4500,
        base_price=0.08,
        total_supply=10000,
        risk_summary="ESG certification delay, uncertain leasing demand",
        weights=ValuationWeights(oracle_weight=0, custom_weight=70, base_weight=30),
        metrics=QualityMetrics(local_demand_index=500, development_progress=25, infra_score=80),
    ),
)


def get_project_by_key(key: str) -> ProjectConfig | None:
    for project in TARGET_PROJECTS:
        if project.key == key:
            return project
    return None


def iter_projects(keys: Iterable[str] | None = None) -> Iterable[ProjectConfig]:
    if keys is None:
        return TARGET_PROJECTS
    selected = []
    for key in keys:
        project = get_project_by_key(key)
        if project:
            selected.append(project)
    return tuple(selected)


DEFAULT_CONTRACT_ADDRESS = "0x99bbA657f2BbC93c02D617f8bA121cB8Fc104Acf"


@dataclass(frozen=True)
class Settings:
    """Runtime settings; see ``load_settings`` for the environment variables."""

    ledger_enabled: bool = True
    ledger_rpc_url: str = "http://127.0.0.1:8545"
    ledger_contract_address: str = DEFAULT_CONTRACT_ADDRESS
    ledger_probe_timeout: float = 3.0
    ledger_read_timeout: float = 2.0
    ledger_status_ttl: float = 30.0
    indicator_ttl_seconds: float = 300.0
    indicator_timeout: float = 5.0
    forecast_timeout: float = 5.0
    oracle_feed_address: str = ""
    oracle_reference_price: float = 0.0
    oracle_timeout: float = 3.0
    valuation_strategy: ValuationStrategy = ValuationStrategy.WEIGHTED
    poll_interval_seconds: float = 60.0


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("%s=%r is not a number; using default %s.", name, raw, default)
        return default


def _env_strategy(name: str, default: ValuationStrategy) -> ValuationStrategy:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return ValuationStrategy(raw.strip().lower())
    except ValueError:
        logger.warning("%s=%r is not a known strategy; using %s.", name, raw, default.value)
        return default


def load_settings() -> Settings:
    """Build ``Settings`` from ``LEDGER_*``, ``INDICATOR_*``, ``ORACLE_*`` and related env vars."""

    defaults = Settings()
    return Settings(
        ledger_enabled=_env_bool("LEDGER_ENABLED", defaults.ledger_enabled),
        ledger_rpc_url=os.getenv("LEDGER_RPC_URL", defaults.ledger_rpc_url),
        ledger_contract_address=os.getenv(
            "LEDGER_CONTRACT_ADDRESS", defaults.ledger_contract_address
        ),
        ledger_probe_timeout=_env_float("LEDGER_PROBE_TIMEOUT", defaults.ledger_probe_timeout),
        ledger_read_timeout=_env_float("LEDGER_READ_TIMEOUT", defaults.ledger_read_timeout),
        ledger_status_ttl=_env_float("LEDGER_STATUS_TTL", defaults.ledger_status_ttl),
        indicator_ttl_seconds=_env_float("INDICATOR_TTL_SECONDS", defaults.indicator_ttl_seconds),
        indicator_timeout=_env_float("INDICATOR_TIMEOUT", defaults.indicator_timeout),
        forecast_timeout=_env_float("FORECAST_TIMEOUT", defaults.forecast_timeout),
        oracle_feed_address=os.getenv("ORACLE_FEED_ADDRESS", defaults.oracle_feed_address),
        oracle_reference_price=_env_float(
            "ORACLE_REFERENCE_PRICE", defaults.oracle_reference_price
        ),
        oracle_timeout=_env_float("ORACLE_TIMEOUT", defaults.oracle_timeout),
        valuation_strategy=_env_strategy("VALUATION_STRATEGY", defaults.valuation_strategy),
        poll_interval_seconds=_env_float("POLL_INTERVAL_SECONDS", defaults.poll_interval_seconds),
    )


__all__ = [
    "ProjectConfig",
    "TARGET_PROJECTS",
    "get_project_by_key",
    "iter_projects",
    "Settings",
    "load_settings",
]
