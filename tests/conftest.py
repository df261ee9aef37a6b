import asyncio
import json
from datetime import datetime, UTC

import httpx
import pytest

from feeds.cache import IndicatorCache, IndicatorSource
from feeds.model import IndicatorSnapshot

BASELINE_INDICATORS = {
    "real_estate_index": 100.0,
    "interest_rate": 3.5,
    "construction_cost_index": 110.0,
    "gdp_growth_rate": 2.8,
    "inflation_rate": 2.1,
}


@pytest.fixture()
def make_snapshot():
    def _make(**overrides) -> IndicatorSnapshot:
        values = {**BASELINE_INDICATORS, **overrides}
        return IndicatorSnapshot(**values, captured_at=datetime(2025, 1, 1, tzinfo=UTC))

    return _make


def constant_source(name: str, value: float, fallback: float | None = None) -> IndicatorSource:
    async def fetch() -> float:
        return value

    return IndicatorSource(name=name, fetch=fetch, fallback=value if fallback is None else fallback)


@pytest.fixture()
def baseline_cache() -> IndicatorCache:
    return IndicatorCache(
        [constant_source(name, value) for name, value in BASELINE_INDICATORS.items()],
        timeout_seconds=1.0,
    )


CUMULATIVE_BP = [70 * month for month in range(1, 13)]

LEDGER_VIEW_RESULTS = {
    "eth_chainId": "0x7a69",
    "eth_blockNumber": "0x1b4",
    "getProject": {
        "basePrice": str(10**17),
        "totalSupply": 10000,
        "isActive": True,
        "useHybridIndex": True,
    },
    "getCurrentTokenPrice": hex(96 * 10**15),
    "getAIEnhancedPrice": str(101 * 10**15),
    "calculateCustomScore": 88,
    "getInvestmentGrade": "AA",
    "projectCustomMetrics": {
        "localDemandIndex": 750,
        "developmentProgress": 65,
        "infraScore": 85,
        "lastUpdated": 1735689600,
    },
    "getDividendSummary": [
        list(range(1, 13)),
        [70] * 12,
        CUMULATIVE_BP,
        [""] * 11 + ["Month 12: Year-end close"],
    ],
}


class RecordingLedger:
    """JSON-RPC ledger double served through ``httpx.MockTransport``."""

    def __init__(self, results=None, *, errors=(), delays=None, refuse=False) -> None:
        self.results = {**LEDGER_VIEW_RESULTS, **(results or {})}
        self.errors = set(errors)
        self.delays = delays or {}
        self.refuse = refuse
        self.calls: list[tuple[str, list]] = []

    async def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        method = body["method"]
        self.calls.append((method, body["params"]))
        if self.refuse:
            raise httpx.ConnectError("Connection refused", request=request)
        if method in self.delays:
            await asyncio.sleep(self.delays[method])
        if method in self.errors:
            return httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32000, "message": "execution reverted"}},
            )
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": self.results[method]})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def methods(self) -> list[str]:
        return [method for method, _ in self.calls]
