"""Read-only client for the ledger that publishes authoritative project valuations.

The ledger is reached over JSON-RPC. Reachability uses the standard
``eth_chainId`` / ``eth_blockNumber`` calls; each contract view is exposed as a
JSON-RPC method named after the view, taking ``[contractAddress, projectKey]``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, UTC
from decimal import Decimal
from typing import Any, Awaitable, Callable, Mapping

import httpx

from feeds.common import rpc_call
from feeds.model import (
    ConnectionInfo,
    DividendSummary,
    ProjectRecord,
    QualityMetrics,
)
from valuation.errors import LedgerUnreachable, SourceUnavailable
from valuation.grading import parse_grade

DEFAULT_RPC_URL = "http://127.0.0.1:8545"
DEFAULT_PROBE_TIMEOUT_SECONDS = 3.0
DEFAULT_STATUS_TTL_SECONDS = 30.0

WEI_PER_TOKEN = Decimal(10) ** 18

NETWORK_NAMES: Mapping[int, str] = {
    1: "Ethereum Mainnet",
    5: "Goerli Testnet",
    11155111: "Sepolia Testnet",
    1337: "Hardhat Local",
    31337: "Hardhat Local",
}

logger = logging.getLogger(__name__)


def network_name(chain_id: int) -> str:
    return NETWORK_NAMES.get(chain_id, f"Unknown Network ({chain_id})")


def setup_guide(rpc_url: str) -> str:
    """Remediation steps attached to results computed while the ledger is down."""

    return (
        f"Ledger node at {rpc_url} is not reachable. "
        "1) Start a local node (e.g. `npx hardhat node`); "
        f"2) check that LEDGER_RPC_URL points at it ({rpc_url}); "
        "3) make sure the port is free and the contracts are deployed; "
        "or set LEDGER_ENABLED=false to run in calculation mode."
    )


def to_wei(amount: float) -> int:
    return int((Decimal(str(amount)) * WEI_PER_TOKEN).to_integral_value())


def from_wei(amount: int) -> float:
    return float(Decimal(amount) / WEI_PER_TOKEN)


def _to_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise SourceUnavailable(field, f"unexpected boolean {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        try:
            return int(stripped, 16) if stripped.lower().startswith("0x") else int(stripped)
        except ValueError:
            pass
    raise SourceUnavailable(field, f"cannot read {value!r} as an integer")


def _require_mapping(value: Any, field: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise SourceUnavailable(field, f"expected an object, got {type(value).__name__}")
    return value


class LedgerClient:
    """Async JSON-RPC reader for one deployed valuation contract."""

    def __init__(
        self,
        rpc_url: str = DEFAULT_RPC_URL,
        contract_address: str = "",
        *,
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
        status_ttl: float = DEFAULT_STATUS_TTL_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.rpc_url = rpc_url
        self.contract_address = contract_address
        self.probe_timeout = probe_timeout
        self.status_ttl = status_ttl
        self._transport = transport
        self._clock = clock
        self._last_info: ConnectionInfo | None = None
        self._last_checked: float | None = None

    async def _call(self, method: str, params: list[Any] | None = None) -> Any:
        async with httpx.AsyncClient(transport=self._transport) as client:
            return await rpc_call(self.rpc_url, method, params, client=client)

    async def _view(self, view: str, project_key: str) -> Any:
        return await self._call(view, [self.contract_address, project_key])

    async def probe(self) -> ConnectionInfo:
        """Read network identity and current height under ``probe_timeout``.

        Raises ``LedgerUnreachable`` on any failure, including the timeout.
        """

        try:
            chain_id, block_number = await asyncio.wait_for(
                asyncio.gather(self._call("eth_chainId"), self._call("eth_blockNumber")),
                self.probe_timeout,
            )
            network_id = _to_int(chain_id, "eth_chainId")
            height = _to_int(block_number, "eth_blockNumber")
        except asyncio.TimeoutError as exc:
            raise LedgerUnreachable(
                self.rpc_url, f"connection timed out ({self.probe_timeout:g}s)"
            ) from exc
        except (
            httpx.HTTPError,
            httpx.InvalidURL,
            SourceUnavailable,
            ValueError,
            RuntimeError,
        ) as exc:
            raise LedgerUnreachable(self.rpc_url, str(exc) or type(exc).__name__) from exc

        return ConnectionInfo(
            is_connected=True,
            network_id=network_id,
            network_name=network_name(network_id),
            block_number=height,
            checked_at=datetime.now(UTC),
        )

    async def check_connection(self) -> ConnectionInfo:
        """Probe the ledger, reusing a successful result for ``status_ttl`` seconds."""

        now = self._clock()
        if (
            self._last_info is not None
            and self._last_info.is_connected
            and self._last_checked is not None
            and now - self._last_checked < self.status_ttl
        ):
            return self._last_info

        try:
            info = await self.probe()
            logger.info(
                "Ledger connected: %s (chain %s) at block %s",
                info.network_name,
                info.network_id,
                info.block_number,
            )
        except LedgerUnreachable as exc:
            logger.warning("Ledger connection failed: %s", exc.reason)
            info = ConnectionInfo(
                is_connected=False, error=exc.reason, checked_at=datetime.now(UTC)
            )
        except Exception as exc:  # status checks report, never raise
            logger.exception("Ledger probe failed unexpectedly")
            info = ConnectionInfo(
                is_connected=False,
                error=str(exc) or type(exc).__name__,
                checked_at=datetime.now(UTC),
            )

        self._last_info = info
        self._last_checked = now
        return info

    def reset(self) -> None:
        self._last_info = None
        self._last_checked = None

    async def read_project(self, project_key: str) -> ProjectRecord:
        raw = _require_mapping(await self._view("getProject", project_key), "project")
        return ProjectRecord(
            base_price_wei=_to_int(raw.get("basePrice"), "project.basePrice"),
            total_supply=_to_int(raw.get("totalSupply"), "project.totalSupply"),
            is_active=bool(raw.get("isActive", True)),
            use_hybrid_index=bool(raw.get("useHybridIndex", False)),
        )

    async def read_current_price(self, project_key: str) -> int:
        return _to_int(await self._view("getCurrentTokenPrice", project_key), "current_price_wei")

    async def read_ai_enhanced_price(self, project_key: str) -> int:
        raw = await self._view("getAIEnhancedPrice", project_key)
        return _to_int(raw, "ai_enhanced_price_wei")

    async def read_custom_score(self, project_key: str) -> int:
        score = _to_int(await self._view("calculateCustomScore", project_key), "custom_score")
        if not 0 <= score <= 100:
            raise SourceUnavailable("custom_score", f"score {score} outside [0, 100]")
        return score

    async def read_investment_grade(self, project_key: str) -> str:
        raw = await self._view("getInvestmentGrade", project_key)
        if not isinstance(raw, str):
            raise SourceUnavailable("investment_grade", f"unexpected grade {raw!r}")
        try:
            return parse_grade(raw).value
        except ValueError as exc:
            raise SourceUnavailable("investment_grade", f"unknown grade {raw!r}") from exc

    async def read_custom_metrics(self, project_key: str) -> QualityMetrics:
        raw = _require_mapping(
            await self._view("projectCustomMetrics", project_key), "custom_metrics"
        )
        updated = raw.get("lastUpdated")
        return QualityMetrics(
            local_demand_index=_to_int(raw.get("localDemandIndex"), "localDemandIndex"),
            development_progress=_to_int(raw.get("developmentProgress"), "developmentProgress"),
            infra_score=_to_int(raw.get("infraScore"), "infraScore"),
            last_updated=(
                datetime.fromtimestamp(_to_int(updated, "lastUpdated"), UTC) if updated else None
            ),
        )

    async def read_dividend_summary(self, project_key: str) -> DividendSummary:
        raw = await self._view("getDividendSummary", project_key)
        if not isinstance(raw, list) or len(raw) != 4:
            raise SourceUnavailable("dividend_summary", "expected four parallel arrays")
        months, yields_bp, cumulative_bp, events = raw
        return DividendSummary(
            months=[_to_int(value, "months") for value in months],
            yields_bp=[_to_int(value, "yields_bp") for value in yields_bp],
            cumulative_bp=[_to_int(value, "cumulative_bp") for value in cumulative_bp],
            events=[str(value) for value in events],
        )

    def field_operations(self, project_key: str) -> dict[str, Callable[[], Awaitable[Any]]]:
        """One zero-argument coroutine factory per ``LedgerReadout`` field."""

        return {
            "project": lambda: self.read_project(project_key),
            "current_price_wei": lambda: self.read_current_price(project_key),
            "ai_enhanced_price_wei": lambda: self.read_ai_enhanced_price(project_key),
            "custom_score": lambda: self.read_custom_score(project_key),
            "investment_grade": lambda: self.read_investment_grade(project_key),
            "custom_metrics": lambda: self.read_custom_metrics(project_key),
            "dividend_summary": lambda: self.read_dividend_summary(project_key),
        }


__all__ = [
    "LedgerClient",
    "DEFAULT_RPC_URL",
    "DEFAULT_PROBE_TIMEOUT_SECONDS",
    "DEFAULT_STATUS_TTL_SECONDS",
    "NETWORK_NAMES",
    "network_name",
    "setup_guide",
    "to_wei",
    "from_wei",
]
