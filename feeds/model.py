"""Canonical data model shared by the indicator feeds, the ledger client and the engine."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class Record(BaseModel):
    """Immutable record serialized with camelCase keys at the API boundary."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        str_strip_whitespace=True,
    )


INDICATOR_NAMES: tuple[str, ...] = (
    "real_estate_index",
    "interest_rate",
    "construction_cost_index",
    "gdp_growth_rate",
    "inflation_rate",
)


class IndicatorSnapshot(Record):
    """Bundle of the five macro indicators feeding the scorer."""

    real_estate_index: float = Field(..., description="Regional real-estate price index (base 100).")
    interest_rate: float = Field(..., description="Policy interest rate in percent.")
    construction_cost_index: float = Field(
        ..., description="Construction cost index (base 110)."
    )
    gdp_growth_rate: float = Field(..., description="Real GDP growth rate in percent.")
    inflation_rate: float = Field(..., description="Consumer price inflation in percent.")
    captured_at: datetime = Field(..., description="When the snapshot was assembled.")
    fallback_fields: tuple[str, ...] = Field(
        default=(),
        description="Indicators that were replaced by their fallback constant.",
    )


class QualityMetrics(Record):
    """Project-specific quality metrics supplied by the project operator."""

    local_demand_index: int = Field(..., ge=0, le=1000)
    development_progress: int = Field(..., ge=0, le=100)
    infra_score: int = Field(..., ge=0, le=100)
    last_updated: Optional[datetime] = None


class ImpactClass(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class NewsEvent(Record):
    """Synthetic news event drawn for one simulated month."""

    month: int = Field(..., ge=1, le=12)
    text: str
    impact_class: ImpactClass
    severity: float = Field(..., ge=0.0, le=1.0)


class YieldPoint(Record):
    """One month of the simulated dividend trajectory, yields in percent."""

    month: int = Field(..., ge=1, le=12)
    monthly_yield: float
    cumulative_yield: float
    event_description: str = ""


class DividendSummary(Record):
    """Dividend summary in ledger units: four parallel arrays, yields in basis points."""

    months: list[int]
    yields_bp: list[int]
    cumulative_bp: list[int]
    events: list[str]

    @model_validator(mode="after")
    def _check_parallel(self) -> "DividendSummary":
        lengths = {len(self.months), len(self.yields_bp), len(self.cumulative_bp), len(self.events)}
        if len(lengths) != 1:
            raise ValueError("dividend summary arrays must have equal length")
        return self


class ProjectRecord(Record):
    """Ledger project record; prices in wei."""

    base_price_wei: int = Field(..., ge=0)
    total_supply: int = Field(..., ge=0)
    is_active: bool = True
    use_hybrid_index: bool = False


class LedgerReadout(Record):
    """Every field the ledger exposes for one project, in ledger units.

    The local pipeline produces the same record so a failed ledger read can be
    replaced field for field.
    """

    project: ProjectRecord
    current_price_wei: int
    ai_enhanced_price_wei: int
    custom_score: int = Field(..., ge=0, le=100)
    investment_grade: str
    custom_metrics: QualityMetrics
    dividend_summary: DividendSummary


LEDGER_FIELDS: tuple[str, ...] = tuple(LedgerReadout.model_fields)


class ConnectionInfo(Record):
    """Result of a ledger reachability probe."""

    is_connected: bool
    network_id: Optional[int] = None
    network_name: Optional[str] = None
    block_number: Optional[int] = None
    error: Optional[str] = None
    checked_at: datetime


class DividendData(Record):
    """Dividend projection as served by the API, yields in percent (2 decimals)."""

    months: list[int]
    monthly_yields: list[float]
    cumulative_yields: list[float]
    events: list[str]


ConnectionStatus = Literal["connected", "disconnected", "disabled"]


class ValuationPayload(Record):
    """Normalized output schema shared by every valuation result."""

    key: str
    name: str
    location: str
    estimated_value: float
    risk_summary: str = ""
    base_price: float
    total_supply: int
    current_price: float
    ai_enhanced_price: float
    custom_score: int = Field(..., ge=0, le=100)
    investment_grade: str
    custom_metrics: QualityMetrics
    dividend_data: DividendData
    connection_status: ConnectionStatus
    timestamp: datetime
    troubleshooting_tip: Optional[str] = None
    fallback_fields: list[str] = Field(default_factory=list)


class LedgerResult(ValuationPayload):
    """Valuation read from the ledger; ``fallback`` when some fields were substituted."""

    data_source: Literal["ledger", "fallback"]


class CalculationResult(ValuationPayload):
    """Valuation computed entirely by the local pipeline."""

    data_source: Literal["calculation"] = "calculation"


ValuationResult = Annotated[
    Union[LedgerResult, CalculationResult], Field(discriminator="data_source")
]


__all__ = [
    "Record",
    "INDICATOR_NAMES",
    "IndicatorSnapshot",
    "QualityMetrics",
    "ImpactClass",
    "NewsEvent",
    "YieldPoint",
    "DividendSummary",
    "ProjectRecord",
    "LedgerReadout",
    "LEDGER_FIELDS",
    "ConnectionInfo",
    "DividendData",
    "ConnectionStatus",
    "ValuationPayload",
    "LedgerResult",
    "CalculationResult",
    "ValuationResult",
]
