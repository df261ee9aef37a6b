import asyncio
import random

import pytest

from feeds.model import CalculationResult, LedgerResult
from feeds.sources.ledger import LedgerClient
from jobs.config import Settings, get_project_by_key
from valuation.news import NewsEventGenerator
from valuation.pricing import ForecastSignal, ValuationStrategy, ValuationWeights
from valuation.resilience import ValuationOrchestrator

from conftest import RecordingLedger

RPC_URL = "http://ledger.test:8545"
SEOUL = get_project_by_key("seoul-mixed-101")


@pytest.fixture()
def make_orchestrator(baseline_cache):
    def _make(
        ledger: RecordingLedger | None = None,
        forecast_source=None,
        oracle_source=None,
        **settings_overrides,
    ):
        options = {
            "ledger_enabled": True,
            "ledger_rpc_url": RPC_URL,
            "ledger_probe_timeout": 0.2,
            "ledger_read_timeout": 0.2,
        }
        options.update(settings_overrides)
        settings = Settings(**options)
        ledger = ledger or RecordingLedger()
        client = LedgerClient(
            settings.ledger_rpc_url,
            settings.ledger_contract_address,
            probe_timeout=settings.ledger_probe_timeout,
            transport=ledger.transport,
        )
        return ValuationOrchestrator(
            settings,
            cache=baseline_cache,
            ledger=client,
            news=NewsEventGenerator(random.Random(5)),
            forecast_source=forecast_source,
            oracle_source=oracle_source,
        )

    return _make


def test_disabled_ledger_is_never_contacted(make_orchestrator):
    ledger = RecordingLedger()
    orchestrator = make_orchestrator(ledger, ledger_enabled=False)

    result = asyncio.run(orchestrator.valuate(SEOUL))

    assert isinstance(result, CalculationResult)
    assert result.data_source == "calculation"
    assert result.connection_status == "disabled"
    assert result.troubleshooting_tip is None
    assert ledger.calls == []


def test_local_valuation_values(make_orchestrator):
    result = asyncio.run(make_orchestrator(ledger_enabled=False).valuate(SEOUL))

    # baseline indicators, primary location, large size: round(90.2 * 1.1) = 99
    assert result.custom_score == 99
    assert result.investment_grade == "AAA"
    assert result.current_price == pytest.approx(0.1 * (70 * 1.49 + 30) / 100)
    assert result.ai_enhanced_price == result.current_price
    assert result.base_price == pytest.approx(0.1)
    assert result.dividend_data.months == list(range(1, 13))
    assert len(result.dividend_data.events) == 12


def test_unreachable_ledger_yields_calculation_with_tip(make_orchestrator):
    result = asyncio.run(make_orchestrator(RecordingLedger(refuse=True)).valuate(SEOUL))

    assert result.data_source == "calculation"
    assert result.connection_status == "disconnected"
    assert RPC_URL in result.troubleshooting_tip


def test_malformed_rpc_url_degrades_to_calculation(make_orchestrator):
    orchestrator = make_orchestrator(ledger_rpc_url="http://127.0.0.1:85x45")

    result = asyncio.run(orchestrator.valuate(SEOUL))

    assert result.data_source == "calculation"
    assert result.connection_status == "disconnected"
    assert "127.0.0.1:85x45" in result.troubleshooting_tip


def test_probe_timeout_degrades_to_calculation(make_orchestrator):
    ledger = RecordingLedger(delays={"eth_chainId": 2.0, "eth_blockNumber": 2.0})
    orchestrator = make_orchestrator(ledger, ledger_probe_timeout=0.05)

    result = asyncio.run(orchestrator.valuate(SEOUL))

    assert result.data_source == "calculation"
    assert result.troubleshooting_tip


def test_complete_ledger_read_is_tagged_ledger(make_orchestrator):
    result = asyncio.run(make_orchestrator().valuate(SEOUL))

    assert isinstance(result, LedgerResult)
    assert result.data_source == "ledger"
    assert result.connection_status == "connected"
    assert result.fallback_fields == []
    assert result.current_price == pytest.approx(0.096)
    assert result.ai_enhanced_price == pytest.approx(0.101)
    assert result.custom_score == 88
    assert result.investment_grade == "AA"
    assert result.dividend_data.monthly_yields == [0.7] * 12
    assert result.dividend_data.cumulative_yields[-1] == pytest.approx(8.4)


def test_failed_field_is_substituted_locally(make_orchestrator):
    orchestrator = make_orchestrator(RecordingLedger(errors={"calculateCustomScore"}))

    result = asyncio.run(orchestrator.valuate(SEOUL))

    assert result.data_source == "fallback"
    assert result.fallback_fields == ["custom_score"]
    assert result.custom_score == 99
    # the other fields still come from the ledger
    assert result.current_price == pytest.approx(0.096)
    assert result.investment_grade == "AA"


def test_slow_field_is_substituted_locally(make_orchestrator):
    ledger = RecordingLedger(delays={"getDividendSummary": 2.0})
    orchestrator = make_orchestrator(ledger, ledger_read_timeout=0.05)

    result = asyncio.run(orchestrator.valuate(SEOUL))

    assert result.data_source == "fallback"
    assert result.fallback_fields == ["dividend_summary"]
    assert result.dividend_data.monthly_yields != [0.7] * 12


def test_every_field_failing_still_returns(make_orchestrator):
    failing = {
        "getProject",
        "getCurrentTokenPrice",
        "getAIEnhancedPrice",
        "calculateCustomScore",
        "getInvestmentGrade",
        "projectCustomMetrics",
        "getDividendSummary",
    }
    result = asyncio.run(make_orchestrator(RecordingLedger(errors=failing)).valuate(SEOUL))

    assert result.data_source == "fallback"
    assert len(result.fallback_fields) == 7
    assert result.custom_score == 99


def test_out_of_range_ledger_score_is_substituted(make_orchestrator):
    orchestrator = make_orchestrator(RecordingLedger({"calculateCustomScore": 250}))
    result = asyncio.run(orchestrator.valuate(SEOUL))

    assert result.fallback_fields == ["custom_score"]
    assert result.custom_score == 99


def test_unknown_ledger_grade_is_substituted(make_orchestrator):
    orchestrator = make_orchestrator(RecordingLedger({"getInvestmentGrade": "banana"}))
    result = asyncio.run(orchestrator.valuate(SEOUL))

    assert result.data_source == "fallback"
    assert result.fallback_fields == ["investment_grade"]
    assert result.investment_grade == "AAA"


def test_serialized_payload_uses_camel_case(make_orchestrator):
    result = asyncio.run(make_orchestrator().valuate(SEOUL))
    payload = result.model_dump(mode="json", by_alias=True)

    assert payload["dataSource"] == "ledger"
    assert payload["aiEnhancedPrice"] == pytest.approx(0.101)
    assert payload["dividendData"]["cumulativeYields"][0] == pytest.approx(0.7)
    assert payload["customMetrics"]["localDemandIndex"] == 750


def test_supplied_forecast_moves_the_ai_price(make_orchestrator):
    forecast = ForecastSignal(predicted_price=0.2, confidence=80, risk_score=0, investment_score=75)
    result = asyncio.run(make_orchestrator(ledger_enabled=False).valuate(SEOUL, forecast=forecast))

    assert result.ai_enhanced_price > result.current_price


def test_broken_or_slow_forecast_source_is_ignored(make_orchestrator):
    async def broken(project):
        raise RuntimeError("model offline")

    async def slow(project):
        await asyncio.sleep(2)

    for source in (broken, slow):
        orchestrator = make_orchestrator(
            ledger_enabled=False, forecast_source=source, forecast_timeout=0.05
        )
        result = asyncio.run(orchestrator.valuate(SEOUL))
        assert result.ai_enhanced_price == result.current_price


def test_forecast_source_result_is_used(make_orchestrator):
    async def source(project):
        return ForecastSignal(predicted_price=0.05, confidence=90, risk_score=10, investment_score=40)

    orchestrator = make_orchestrator(ledger_enabled=False, forecast_source=source)
    result = asyncio.run(orchestrator.valuate(SEOUL))

    assert result.ai_enhanced_price < result.current_price


def test_hybrid_strategy_is_selectable(make_orchestrator):
    orchestrator = make_orchestrator(ledger_enabled=False)
    result = asyncio.run(orchestrator.valuate(SEOUL, strategy=ValuationStrategy.HYBRID))

    # base 0.1 * size 1.1, adjusted by a score of 99 and a bounded drift
    assert 0.1 * 1.1 * (1 + 0.0232 - 0.02) <= result.current_price <= 0.1 * 1.1 * (1 + 0.0232 + 0.02)


def test_ledger_status_reports(make_orchestrator):
    connected = asyncio.run(make_orchestrator().ledger_status())
    down = asyncio.run(make_orchestrator(RecordingLedger(refuse=True)).ledger_status())
    disabled = asyncio.run(make_orchestrator(ledger_enabled=False).ledger_status())

    assert connected["isConnected"] is True
    assert connected["mode"] == "ledger"
    assert connected["networkName"] == "Hardhat Local"
    assert connected["setupGuide"] is None
    assert down["mode"] == "calculation"
    assert RPC_URL in down["setupGuide"]
    assert disabled["mode"] == "calculation_only"


def test_analysis_reports_actions_and_coverage(make_orchestrator):
    incheon = get_project_by_key("incheon-office-9")
    analysis = asyncio.run(make_orchestrator(ledger_enabled=False).analyze(incheon))

    assert analysis["key"] == "incheon-office-9"
    assert [action["type"] for action in analysis["recommendedActions"]] == ["monitor"]
    assert analysis["dataQuality"]["score"] == 80
    assert analysis["dataQuality"]["missing"]["forecast"] is True


def test_oracle_ratio_moves_the_weighted_price(make_orchestrator):
    async def oracle(project):
        return 1.2

    orchestrator = make_orchestrator(ledger_enabled=False, oracle_source=oracle)
    blended = asyncio.run(
        orchestrator.valuate(
            SEOUL, weights=ValuationWeights(oracle_weight=50, custom_weight=0, base_weight=50)
        )
    )
    base_only = asyncio.run(
        orchestrator.valuate(
            SEOUL, weights=ValuationWeights(oracle_weight=0, custom_weight=0, base_weight=100)
        )
    )

    # 0.1 * (50 * 1.2 + 50) / 100
    assert blended.current_price == pytest.approx(0.11)
    assert base_only.current_price == pytest.approx(0.1)


def test_broken_or_slow_oracle_is_neutral(make_orchestrator):
    async def broken(project):
        raise RuntimeError("feed offline")

    async def slow(project):
        await asyncio.sleep(2)
        return 1.2

    async def nonsense(project):
        return float("nan")

    weights = ValuationWeights(oracle_weight=50, custom_weight=0, base_weight=50)
    for source in (broken, slow, nonsense):
        orchestrator = make_orchestrator(
            ledger_enabled=False, oracle_source=source, oracle_timeout=0.05
        )
        result = asyncio.run(orchestrator.valuate(SEOUL, weights=weights))
        assert result.current_price == pytest.approx(0.1)


def test_oracle_is_only_read_when_weighted(make_orchestrator):
    calls = []

    async def oracle(project):
        calls.append(project.key)
        return 1.2

    orchestrator = make_orchestrator(ledger_enabled=False, oracle_source=oracle)
    asyncio.run(orchestrator.valuate(SEOUL))
    asyncio.run(
        orchestrator.valuate(
            SEOUL,
            strategy=ValuationStrategy.HYBRID,
            weights=ValuationWeights(oracle_weight=50, custom_weight=0, base_weight=50),
        )
    )
    assert calls == []

    asyncio.run(
        orchestrator.valuate(
            SEOUL, weights=ValuationWeights(oracle_weight=20, custom_weight=50, base_weight=30)
        )
    )
    assert calls == ["seoul-mixed-101"]


def test_local_readout_flags_the_weighted_mode(make_orchestrator):
    orchestrator = make_orchestrator(ledger_enabled=False)

    weighted = asyncio.run(orchestrator.compute_local(SEOUL))
    hybrid = asyncio.run(orchestrator.compute_local(SEOUL, strategy=ValuationStrategy.HYBRID))

    assert weighted.readout.project.use_hybrid_index is True
    assert hybrid.readout.project.use_hybrid_index is False
