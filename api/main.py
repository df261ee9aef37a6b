"""FastAPI service exposing project valuations with provenance metadata."""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import Any

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from jobs.config import TARGET_PROJECTS, ProjectConfig, get_project_by_key, load_settings
from valuation.errors import InvalidWeightConfiguration, MalformedForecastSignal
from valuation.pricing import ForecastSignal, ValuationStrategy, ValuationWeights
from valuation.resilience import ValuationOrchestrator

load_dotenv()


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.orchestrator = ValuationOrchestrator(load_settings())
    yield
    app.state.orchestrator.cache.clear()


app = FastAPI(title="Real-Asset Token Valuation API", version="0.1.0", lifespan=lifespan)


def _configure_cors() -> None:
    raw_origins = os.getenv("API_CORS_ORIGINS", "*")
    origins = [origin.strip() for origin in raw_origins.split(",") if origin.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=True,
    )


_configure_cors()


def get_orchestrator(request: Request) -> ValuationOrchestrator:
    return request.app.state.orchestrator


def _resolve_project(key: str) -> ProjectConfig:
    project = get_project_by_key(key)
    if not project:
        raise HTTPException(status_code=404, detail=f"Unknown project key '{key}'")
    return project


def _build_weights(
    oracle_weight: int | None, custom_weight: int | None, base_weight: int | None
) -> ValuationWeights | None:
    supplied = (oracle_weight, custom_weight, base_weight)
    if all(weight is None for weight in supplied):
        return None
    try:
        return ValuationWeights(
            oracle_weight=oracle_weight or 0,
            custom_weight=custom_weight or 0,
            base_weight=base_weight or 0,
        )
    except InvalidWeightConfiguration as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


def _build_forecast(
    predicted_price: float | None,
    confidence: float | None,
    risk_score: float | None,
    investment_score: float | None,
) -> ForecastSignal | None:
    if predicted_price is None:
        return None
    try:
        return ForecastSignal(
            predicted_price=predicted_price,
            confidence=confidence if confidence is not None else 0.0,
            risk_score=risk_score if risk_score is not None else 0.0,
            investment_score=investment_score if investment_score is not None else 0.0,
        )
    except MalformedForecastSignal as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


def _serialize_project(project: ProjectConfig) -> dict[str, Any]:
    return {
        "key": project.key,
        "name": project.name,
        "location": project.location,
        "estimatedValue": project.estimated_value,
        "riskSummary": project.risk_summary,
        "basePrice": project.base_price,
        "totalSupply": project.total_supply,
    }


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/projects")
def list_projects() -> dict[str, Any]:
    items = [_serialize_project(project) for project in TARGET_PROJECTS]
    return {"count": len(items), "items": items}


@app.get("/projects/{key}")
async def get_project_valuation(
    key: str,
    strategy: ValuationStrategy | None = Query(
        None, description="hybrid or weighted; applies to locally computed fields only"
    ),
    oracle_weight: int | None = Query(
        None, description="Oracle weight (percent), local fields only"
    ),
    custom_weight: int | None = Query(
        None, description="Composite score weight (percent), local fields only"
    ),
    base_weight: int | None = Query(
        None, description="Base price weight (percent), local fields only"
    ),
    predicted_price: float | None = Query(
        None, description="Forecast price per token, local fields only"
    ),
    confidence: float | None = Query(None, description="Forecast confidence 0-100"),
    risk_score: float | None = Query(None, description="Forecast risk score 0-100"),
    investment_score: float | None = Query(None, description="Forecast investment score 0-100"),
    orchestrator: ValuationOrchestrator = Depends(get_orchestrator),
):
    # Overrides shape the local computation; fields read from the ledger are
    # served as published.
    project = _resolve_project(key)
    weights = _build_weights(oracle_weight, custom_weight, base_weight)
    forecast = _build_forecast(predicted_price, confidence, risk_score, investment_score)

    result = await orchestrator.valuate(
        project, strategy=strategy, weights=weights, forecast=forecast
    )
    return JSONResponse(content=result.model_dump(mode="json", by_alias=True))


@app.get("/projects/{key}/analysis")
async def get_project_analysis(
    key: str,
    orchestrator: ValuationOrchestrator = Depends(get_orchestrator),
):
    project = _resolve_project(key)
    return JSONResponse(content=await orchestrator.analyze(project))


@app.get("/ledger/status")
async def ledger_status(orchestrator: ValuationOrchestrator = Depends(get_orchestrator)):
    return JSONResponse(content=await orchestrator.ledger_status())
