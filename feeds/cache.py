"""In-memory TTL cache for the macro indicators feeding the scorer."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Awaitable, Callable, Iterable, Mapping

from feeds.common import bounded_fan_out
from feeds.model import INDICATOR_NAMES, IndicatorSnapshot

DEFAULT_TTL_SECONDS = 300.0
DEFAULT_FETCH_TIMEOUT_SECONDS = 5.0

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndicatorSource:
    """How to retrieve one indicator and what to use when retrieval fails."""

    name: str
    fetch: Callable[[], Awaitable[float]]
    fallback: float


@dataclass(frozen=True)
class _Entry:
    value: float
    fetched_at: float


class IndicatorCache:
    """Per-indicator TTL cache.

    Entries are overwritten on refetch, so two concurrent refreshes of the same
    key cost at most one redundant fetch. Fallback constants are returned but
    never stored.
    """

    def __init__(
        self,
        sources: Iterable[IndicatorSource],
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sources: dict[str, IndicatorSource] = {source.name: source for source in sources}
        missing = set(INDICATOR_NAMES) - set(self._sources)
        if missing:
            raise ValueError(f"Missing indicator sources: {', '.join(sorted(missing))}")
        self.ttl_seconds = ttl_seconds
        self.timeout_seconds = timeout_seconds
        self._clock = clock
        self._entries: dict[str, _Entry] = {}

    @property
    def sources(self) -> Mapping[str, IndicatorSource]:
        return self._sources

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def _fresh(self, key: str) -> float | None:
        entry = self._entries.get(key)
        if entry is not None and self._clock() - entry.fetched_at < self.ttl_seconds:
            return entry.value
        return None

    async def get(self, key: str) -> float:
        """Return the cached indicator if younger than the TTL, else refetch it."""

        source = self._sources.get(key)
        if source is None:
            raise KeyError(key)
        cached = self._fresh(key)
        if cached is not None:
            return cached
        value = float(await source.fetch())
        self._entries[key] = _Entry(value=value, fetched_at=self._clock())
        logger.debug("Refreshed indicator %s=%.4f", key, value)
        return value

    async def get_all(self) -> IndicatorSnapshot:
        """Fetch all indicators concurrently; a failed one falls back to its constant."""

        result = await bounded_fan_out(
            {name: (lambda name=name: self.get(name)) for name in INDICATOR_NAMES},
            self.timeout_seconds,
            lambda name, _exc: self._sources[name].fallback,
        )
        return IndicatorSnapshot(
            **result.values,
            captured_at=datetime.now(UTC),
            fallback_fields=tuple(result.failed_keys),
        )


__all__ = [
    "IndicatorCache",
    "IndicatorSource",
    "DEFAULT_TTL_SECONDS",
    "DEFAULT_FETCH_TIMEOUT_SECONDS",
]
