import asyncio

import pytest

from feeds.cache import IndicatorCache, IndicatorSource
from feeds.model import INDICATOR_NAMES
from valuation.errors import SourceUnavailable

from conftest import BASELINE_INDICATORS, constant_source


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class CountingSource:
    def __init__(self, name: str, values: list[float]) -> None:
        self.name = name
        self.values = values
        self.calls = 0

    async def fetch(self) -> float:
        value = self.values[min(self.calls, len(self.values) - 1)]
        self.calls += 1
        return value

    def as_source(self) -> IndicatorSource:
        return IndicatorSource(name=self.name, fetch=self.fetch, fallback=-1.0)


def _cache_with(overrides: dict[str, IndicatorSource], **kwargs) -> IndicatorCache:
    sources = [
        overrides.get(name) or constant_source(name, value)
        for name, value in BASELINE_INDICATORS.items()
    ]
    return IndicatorCache(sources, **kwargs)


def test_get_within_ttl_hits_cache():
    clock = FakeClock()
    counter = CountingSource("interest_rate", [3.25, 4.0])
    cache = _cache_with({"interest_rate": counter.as_source()}, ttl_seconds=300, clock=clock)

    assert asyncio.run(cache.get("interest_rate")) == 3.25
    clock.now = 299.0
    assert asyncio.run(cache.get("interest_rate")) == 3.25
    assert counter.calls == 1


def test_get_after_ttl_refetches_and_overwrites():
    clock = FakeClock()
    counter = CountingSource("interest_rate", [3.25, 4.0])
    cache = _cache_with({"interest_rate": counter.as_source()}, ttl_seconds=300, clock=clock)

    asyncio.run(cache.get("interest_rate"))
    clock.now = 300.0
    assert asyncio.run(cache.get("interest_rate")) == 4.0
    assert counter.calls == 2
    assert len(cache) == 1


def test_unknown_key_raises():
    cache = _cache_with({})
    with pytest.raises(KeyError):
        asyncio.run(cache.get("unemployment_rate"))


def test_missing_source_is_rejected():
    sources = [constant_source("real_estate_index", 100.0)]
    with pytest.raises(ValueError, match="interest_rate"):
        IndicatorCache(sources)


def test_get_all_returns_every_indicator(baseline_cache):
    snapshot = asyncio.run(baseline_cache.get_all())

    for name in INDICATOR_NAMES:
        assert getattr(snapshot, name) == BASELINE_INDICATORS[name]
    assert snapshot.fallback_fields == ()
    assert len(baseline_cache) == 5


def test_failing_source_falls_back_without_affecting_others():
    async def broken() -> float:
        raise SourceUnavailable("inflation_rate", "upstream 503")

    cache = _cache_with(
        {
            "inflation_rate": IndicatorSource("inflation_rate", broken, 2.1),
            "real_estate_index": constant_source("real_estate_index", 112.0, fallback=100.0),
        }
    )
    snapshot = asyncio.run(cache.get_all())

    assert snapshot.inflation_rate == 2.1
    assert snapshot.real_estate_index == 112.0
    assert snapshot.fallback_fields == ("inflation_rate",)
    # fallback constants are never cached
    assert len(cache) == 4


def test_slow_source_is_cut_off_at_timeout():
    async def slow() -> float:
        await asyncio.sleep(5)
        return 9.9

    cache = _cache_with(
        {"gdp_growth_rate": IndicatorSource("gdp_growth_rate", slow, 2.8)},
        timeout_seconds=0.05,
    )
    snapshot = asyncio.run(cache.get_all())

    assert snapshot.gdp_growth_rate == 2.8
    assert snapshot.fallback_fields == ("gdp_growth_rate",)


def test_clear_forces_refetch():
    counter = CountingSource("real_estate_index", [101.0, 102.0])
    cache = _cache_with({"real_estate_index": counter.as_source()})

    asyncio.run(cache.get("real_estate_index"))
    cache.clear()
    assert len(cache) == 0
    assert asyncio.run(cache.get("real_estate_index")) == 102.0
