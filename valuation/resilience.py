"""Arbitration between ledger-sourced and locally computed valuations.

Every call returns a best-effort valuation tagged with its provenance:

* ``calculation`` - the ledger is disabled or unreachable; all fields are local.
* ``ledger`` - every field was read from the ledger.
* ``fallback`` - the ledger answered, but some fields were substituted locally.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Any, Awaitable, Callable

from feeds.cache import IndicatorCache
from feeds.common import bounded_fan_out
from feeds.model import (
    CalculationResult,
    ConnectionInfo,
    ConnectionStatus,
    IndicatorSnapshot,
    LedgerReadout,
    LedgerResult,
    NewsEvent,
    ProjectRecord,
    YieldPoint,
)
from feeds.sources.indicators import build_indicator_sources
from feeds.sources.ledger import LedgerClient, from_wei, setup_guide, to_wei
from feeds.sources.oracle import PriceFeedClient, oracle_ratio_source
from jobs.config import ProjectConfig, Settings
from valuation.advisory import assess_data_quality, recommended_actions
from valuation.errors import MalformedForecastSignal
from valuation.grading import classify
from valuation.news import NewsEventGenerator
from valuation.pricing import (
    ForecastSignal,
    Valuation,
    ValuationStrategy,
    ValuationWeights,
    compose_valuation,
)
from valuation.scoring import compute_composite_score, location_multiplier, size_multiplier
from valuation.yields import simulate_yields, to_dividend_data, to_dividend_summary

ForecastSource = Callable[[ProjectConfig], Awaitable[ForecastSignal | None]]
OracleSource = Callable[[ProjectConfig], Awaitable[float]]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocalComputation:
    """Everything the local pipeline produced for one project."""

    snapshot: IndicatorSnapshot
    composite_score: int
    valuation: Valuation
    events: list[NewsEvent]
    yields: list[YieldPoint]
    forecast: ForecastSignal | None
    oracle_ratio: float | None
    readout: LedgerReadout


class ValuationOrchestrator:
    """Owns the indicator cache and the ledger client for one running instance."""

    def __init__(
        self,
        settings: Settings,
        *,
        cache: IndicatorCache | None = None,
        ledger: LedgerClient | None = None,
        news: NewsEventGenerator | None = None,
        forecast_source: ForecastSource | None = None,
        oracle_source: OracleSource | None = None,
    ) -> None:
        self.settings = settings
        self.cache = cache or IndicatorCache(
            build_indicator_sources(),
            ttl_seconds=settings.indicator_ttl_seconds,
            timeout_seconds=settings.indicator_timeout,
        )
        self.ledger = ledger or LedgerClient(
            settings.ledger_rpc_url,
            settings.ledger_contract_address,
            probe_timeout=settings.ledger_probe_timeout,
            status_ttl=settings.ledger_status_ttl,
        )
        self.news = news or NewsEventGenerator()
        self.forecast_source = forecast_source
        self.oracle_source = oracle_source or _default_oracle_source(settings)

    async def _resolve_forecast(
        self, project: ProjectConfig, forecast: ForecastSignal | None
    ) -> ForecastSignal | None:
        if forecast is not None or self.forecast_source is None:
            return forecast
        try:
            return await asyncio.wait_for(
                self.forecast_source(project), self.settings.forecast_timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Forecast for %s timed out; valuing without it.", project.key)
        except MalformedForecastSignal as exc:
            logger.warning("Discarding malformed forecast for %s: %s", project.key, exc)
        except Exception as exc:  # forecast is optional input
            logger.warning("Forecast source failed for %s: %s", project.key, exc)
        return None

    async def _resolve_oracle_ratio(
        self, project: ProjectConfig, strategy: ValuationStrategy, weights: ValuationWeights
    ) -> float | None:
        """Oracle price ratio for the weighted blend; ``None`` means neutral (1.0)."""

        if (
            self.oracle_source is None
            or strategy is not ValuationStrategy.WEIGHTED
            or weights.oracle_weight == 0
        ):
            return None
        try:
            ratio = await asyncio.wait_for(
                self.oracle_source(project), self.settings.oracle_timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Oracle for %s timed out; using a neutral ratio.", project.key)
            return None
        except Exception as exc:  # oracle is optional input
            logger.warning("Oracle source failed for %s: %s", project.key, exc)
            return None
        if not isinstance(ratio, (int, float)) or not math.isfinite(ratio) or ratio <= 0:
            logger.warning("Discarding oracle ratio %r for %s.", ratio, project.key)
            return None
        return float(ratio)

    async def compute_local(
        self,
        project: ProjectConfig,
        *,
        strategy: ValuationStrategy | None = None,
        weights: ValuationWeights | None = None,
        forecast: ForecastSignal | None = None,
    ) -> LocalComputation:
        """Run the full local pipeline and shape its output like a ledger readout."""

        strategy = strategy or self.settings.valuation_strategy
        weights = weights or project.weights
        snapshot, forecast, oracle_ratio = await asyncio.gather(
            self.cache.get_all(),
            self._resolve_forecast(project, forecast),
            self._resolve_oracle_ratio(project, strategy, weights),
        )

        size_mult = size_multiplier(project.estimated_value)
        score = compute_composite_score(
            snapshot,
            project.metrics,
            location_mult=location_multiplier(project.location),
            size_mult=size_mult,
        )
        valuation = compose_valuation(
            strategy,
            base_price=project.base_price,
            snapshot=snapshot,
            composite_score=score,
            weights=weights,
            size_mult=size_mult,
            oracle_ratio=oracle_ratio,
            forecast=forecast,
        )
        events = self.news.generate_year(
            location=project.location,
            project_name=project.name,
            real_estate_index=snapshot.real_estate_index,
            composite_score=score,
        )
        points = simulate_yields(snapshot, score, events)

        readout = LedgerReadout(
            project=ProjectRecord(
                base_price_wei=to_wei(project.base_price),
                total_supply=project.total_supply,
                is_active=True,
                # the ledger calls its oracle-weighted pricing mode the hybrid index
                use_hybrid_index=strategy is ValuationStrategy.WEIGHTED,
            ),
            current_price_wei=to_wei(valuation.strategy_price),
            ai_enhanced_price_wei=to_wei(valuation.final_price),
            custom_score=score,
            investment_grade=classify(score).value,
            custom_metrics=project.metrics,
            dividend_summary=to_dividend_summary(points),
        )
        return LocalComputation(
            snapshot=snapshot,
            composite_score=score,
            valuation=valuation,
            events=events,
            yields=points,
            forecast=forecast,
            oracle_ratio=oracle_ratio,
            readout=readout,
        )

    async def valuate(
        self,
        project: ProjectConfig,
        *,
        strategy: ValuationStrategy | None = None,
        weights: ValuationWeights | None = None,
        forecast: ForecastSignal | None = None,
    ) -> LedgerResult | CalculationResult:
        """Best-effort valuation of ``project``; never raises for ledger failures."""

        if not self.settings.ledger_enabled:
            local = await self.compute_local(
                project, strategy=strategy, weights=weights, forecast=forecast
            )
            return self._calculation(project, local, connection_status="disabled")

        local, info = await asyncio.gather(
            self.compute_local(project, strategy=strategy, weights=weights, forecast=forecast),
            self.ledger.check_connection(),
        )
        if not info.is_connected:
            logger.info("Ledger unavailable (%s); valuing %s locally.", info.error, project.key)
            return self._calculation(
                project,
                local,
                connection_status="disconnected",
                troubleshooting_tip=setup_guide(self.settings.ledger_rpc_url),
            )

        try:
            fan_out = await bounded_fan_out(
                self.ledger.field_operations(project.key),
                self.settings.ledger_read_timeout,
                lambda field, _exc: getattr(local.readout, field),
            )
            readout = LedgerReadout(**fan_out.values)
        except Exception:  # ledger failures never reach the caller
            logger.exception("Ledger read for %s failed; valuing locally.", project.key)
            return self._calculation(
                project,
                local,
                connection_status="disconnected",
                troubleshooting_tip=setup_guide(self.settings.ledger_rpc_url),
            )

        if fan_out.failed_keys:
            logger.info(
                "Ledger read for %s substituted %s locally.",
                project.key,
                ", ".join(fan_out.failed_keys),
            )
        return LedgerResult(
            **self._payload(
                project,
                readout,
                connection_status="connected",
                fallback_fields=fan_out.failed_keys,
            ),
            data_source="ledger" if fan_out.complete else "fallback",
        )

    def _calculation(
        self,
        project: ProjectConfig,
        local: LocalComputation,
        *,
        connection_status: ConnectionStatus,
        troubleshooting_tip: str | None = None,
    ) -> CalculationResult:
        return CalculationResult(
            **self._payload(
                project,
                local.readout,
                connection_status=connection_status,
                troubleshooting_tip=troubleshooting_tip,
            )
        )

    @staticmethod
    def _payload(
        project: ProjectConfig,
        readout: LedgerReadout,
        *,
        connection_status: ConnectionStatus,
        troubleshooting_tip: str | None = None,
        fallback_fields: list[str] | None = None,
    ) -> dict[str, Any]:
        return {
            "key": project.key,
            "name": project.name,
            "location": project.location,
            "estimated_value": project.estimated_value,
            "risk_summary": project.risk_summary,
            "base_price": from_wei(readout.project.base_price_wei),
            "total_supply": readout.project.total_supply,
            "current_price": from_wei(readout.current_price_wei),
            "ai_enhanced_price": from_wei(readout.ai_enhanced_price_wei),
            "custom_score": readout.custom_score,
            "investment_grade": readout.investment_grade,
            "custom_metrics": readout.custom_metrics,
            "dividend_data": to_dividend_data(readout.dividend_summary),
            "connection_status": connection_status,
            "timestamp": datetime.now(UTC),
            "troubleshooting_tip": troubleshooting_tip,
            "fallback_fields": fallback_fields or [],
        }

    async def ledger_status(self) -> dict[str, Any]:
        """Connection report for the status endpoint and the CLI."""

        if not self.settings.ledger_enabled:
            return {
                "isConnected": False,
                "mode": "calculation_only",
                "message": "Ledger access is disabled; valuations are computed locally.",
                "rpcUrl": self.settings.ledger_rpc_url,
                "contractAddress": self.settings.ledger_contract_address,
                "timestamp": datetime.now(UTC).isoformat(),
            }
        info: ConnectionInfo = await self.ledger.check_connection()
        status = info.model_dump(mode="json", by_alias=True)
        status["mode"] = "ledger" if info.is_connected else "calculation"
        status["setupGuide"] = (
            None if info.is_connected else setup_guide(self.settings.ledger_rpc_url)
        )
        return status

    async def analyze(
        self, project: ProjectConfig, *, forecast: ForecastSignal | None = None
    ) -> dict[str, Any]:
        """Recommended actions plus a coverage score for the local inputs."""

        local = await self.compute_local(project, forecast=forecast)
        return {
            "key": project.key,
            "compositeScore": local.composite_score,
            "investmentGrade": classify(local.composite_score).value,
            "recommendedActions": [
                {"type": a.type, "priority": a.priority, "action": a.action, "reason": a.reason}
                for a in recommended_actions(project.metrics)
            ],
            "dataQuality": assess_data_quality(local.snapshot, project.metrics, local.forecast),
            "indicators": local.snapshot.model_dump(mode="json", by_alias=True),
        }


def _default_oracle_source(settings: Settings) -> OracleSource | None:
    if not (
        settings.ledger_enabled
        and settings.oracle_feed_address
        and settings.oracle_reference_price > 0
    ):
        return None
    feed = PriceFeedClient(settings.ledger_rpc_url, settings.oracle_feed_address)
    return oracle_ratio_source(feed, settings.oracle_reference_price)


__all__ = ["ValuationOrchestrator", "LocalComputation", "ForecastSource", "OracleSource"]
