"""Macro indicator sources.

Each indicator is either modelled locally (trend + seasonality + noise) or, when
configured, bound to the latest observation of a St. Louis Fed (FRED) series.
"""

from __future__ import annotations

import logging
import math
import os
import random
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Mapping

from feeds.cache import IndicatorSource
from feeds.common import fetch_json
from valuation.errors import SourceUnavailable

FRED_BASE_URL = "https://api.stlouisfed.org/fred/series/observations"

FALLBACK_VALUES: Mapping[str, float] = {
    "real_estate_index": 100.0,
    "interest_rate": 3.5,
    "construction_cost_index": 110.0,
    "gdp_growth_rate": 2.8,
    "inflation_rate": 2.1,
}

_SENTINEL_VALUES = {".", "NA", "N/A", ""}
_DAY = 60 * 60 * 24

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndicatorSeriesConfig:
    """FRED series bound to an indicator; ``scale`` rebases the raw value."""

    indicator: str
    series_id: str
    scale: float = 1.0


def _parse_observation_date(raw_date: str) -> datetime | None:
    try:
        return datetime.fromisoformat(raw_date)
    except ValueError:
        return None


def _coerce_float(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        numeric = float(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if stripped in _SENTINEL_VALUES:
            return None
        try:
            numeric = float(stripped)
        except ValueError:
            return None
    else:
        return None

    if math.isnan(numeric) or math.isinf(numeric):
        return None
    return numeric


async def fetch_latest_fred_value(
    config: IndicatorSeriesConfig,
    *,
    api_key: str,
    params: Mapping[str, Any] | None = None,
) -> float:
    """Return the most recent numeric observation of a FRED series, scaled."""

    request_params: dict[str, Any] = {
        "series_id": config.series_id,
        "api_key": api_key,
        "file_type": "json",
        "sort_order": "desc",
        "limit": 10,
    }
    if params:
        request_params.update(params)

    payload = await fetch_json(FRED_BASE_URL, params=request_params)

    observations = payload.get("observations") if isinstance(payload, Mapping) else None
    if not isinstance(observations, list):
        raise SourceUnavailable(config.indicator, "FRED response carried no observations")

    latest: tuple[datetime, float] | None = None
    for obs in observations:
        if not isinstance(obs, Mapping):
            continue
        observed_at = _parse_observation_date(str(obs.get("date", "")))
        value = _coerce_float(obs.get("value"))
        if observed_at is None or value is None:
            continue
        if latest is None or observed_at > latest[0]:
            latest = (observed_at, value)

    if latest is None:
        raise SourceUnavailable(config.indicator, f"no usable observation in {config.series_id}")
    return latest[1] * config.scale


# Modelled indicators. Each mirrors the shape of the published series it stands
# in for; noise keeps consecutive polls from being identical.


def _model_real_estate_index(now: datetime, rng: random.Random) -> float:
    day_of_year = now.timetuple().tm_yday
    long_term = (now.year - 2023) * 2.5
    seasonal = math.sin(day_of_year / 365 * 2 * math.pi) * 8
    weekly = math.sin(day_of_year / 7 * 2 * math.pi) * 2
    hourly = math.sin(now.hour / 24 * 2 * math.pi) * 1
    noise = (rng.random() - 0.5) * 4
    return max(85.0, 100 + long_term + seasonal + weekly + hourly + noise)


def _model_interest_rate(now: datetime, rng: random.Random) -> float:
    monthly = math.sin(now.timestamp() / (_DAY * 30)) * 0.5
    return 3.5 + monthly + (rng.random() - 0.5) * 0.2


def _model_construction_cost_index(now: datetime, rng: random.Random) -> float:
    months_since_2023 = (now.year - 2023) * 12 + now.month - 1
    weekly = math.sin(now.timestamp() / (_DAY * 7)) * 2
    return 110 + months_since_2023 * 0.3 + weekly + (rng.random() - 0.5) * 2


def _model_gdp_growth_rate(now: datetime, rng: random.Random) -> float:
    cyclical = math.sin(now.timestamp() / (_DAY * 365)) * 0.5
    return 2.8 + cyclical + (rng.random() - 0.5) * 0.4


def _model_inflation_rate(now: datetime, rng: random.Random) -> float:
    trend = math.sin(now.timestamp() / (_DAY * 180)) * 0.3
    return 2.1 + trend + (rng.random() - 0.5) * 0.3


_MODELS: Mapping[str, Callable[[datetime, random.Random], float]] = {
    "real_estate_index": _model_real_estate_index,
    "interest_rate": _model_interest_rate,
    "construction_cost_index": _model_construction_cost_index,
    "gdp_growth_rate": _model_gdp_growth_rate,
    "inflation_rate": _model_inflation_rate,
}


def _modelled_fetcher(
    name: str, rng: random.Random, clock: Callable[[], float]
) -> Callable[[], Awaitable[float]]:
    model = _MODELS[name]

    async def fetch() -> float:
        return model(datetime.fromtimestamp(clock()), rng)

    return fetch


def _fred_fetcher(config: IndicatorSeriesConfig, api_key: str) -> Callable[[], Awaitable[float]]:
    async def fetch() -> float:
        return await fetch_latest_fred_value(config, api_key=api_key)

    return fetch


def series_configs_from_env() -> dict[str, IndicatorSeriesConfig]:
    """Read ``INDICATOR_SERIES_<NAME>`` / ``INDICATOR_SCALE_<NAME>`` bindings."""

    configs: dict[str, IndicatorSeriesConfig] = {}
    for name in FALLBACK_VALUES:
        series_id = os.getenv(f"INDICATOR_SERIES_{name.upper()}")
        if not series_id:
            continue
        raw_scale = os.getenv(f"INDICATOR_SCALE_{name.upper()}", "1")
        scale = _coerce_float(raw_scale)
        if scale is None:
            logger.warning("Ignoring invalid INDICATOR_SCALE_%s=%r.", name.upper(), raw_scale)
            scale = 1.0
        configs[name] = IndicatorSeriesConfig(indicator=name, series_id=series_id, scale=scale)
    return configs


def build_indicator_sources(
    *,
    series: Mapping[str, IndicatorSeriesConfig] | None = None,
    api_key: str | None = None,
    rng: random.Random | None = None,
    clock: Callable[[], float] = time.time,
) -> list[IndicatorSource]:
    """Assemble one ``IndicatorSource`` per indicator.

    Indicators with a FRED series binding are fetched remotely when an API key
    is available; every other indicator is modelled locally.
    """

    series = series_configs_from_env() if series is None else series
    resolved_key = api_key or os.getenv("FRED_API_KEY")
    if series and not resolved_key:
        logger.warning(
            "FRED series configured for %s but FRED_API_KEY is missing; "
            "using modelled indicators.",
            ", ".join(sorted(series)),
        )
    rng = rng or random.Random()

    sources: list[IndicatorSource] = []
    for name, fallback in FALLBACK_VALUES.items():
        config = series.get(name)
        if config is not None and resolved_key:
            fetch = _fred_fetcher(config, resolved_key)
        else:
            fetch = _modelled_fetcher(name, rng, clock)
        sources.append(IndicatorSource(name=name, fetch=fetch, fallback=fallback))
    return sources


__all__ = [
    "FRED_BASE_URL",
    "FALLBACK_VALUES",
    "IndicatorSeriesConfig",
    "fetch_latest_fred_value",
    "series_configs_from_env",
    "build_indicator_sources",
]
