from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Generator

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.responses import Response
from pydantic import BaseModel
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from venturescore import services
from venturescore.config import ScoringWeights, get_settings, get_weights
from venturescore.db import init_db, session_generator
from venturescore.models import Venture, VentureScore
from venturescore.portfolio import aggregate_portfolio
from venturescore.schemas import (
    EvaluationOut,
    GedsiMetricIn,
    GedsiMetricOut,
    PortfolioOut,
    RecalculateRequest,
    VentureCreate,
    VentureDetail,
    VentureOut,
    VentureRecord,
    VentureUpdate,
)

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(
    title="venturescore",
    version="0.1.0",
    description=(
        "Venture scoring and insights API. Computes GEDSI, social impact and "
        "investment readiness scores, rule-based insights and portfolio rollups. "
        "All endpoints return JSON unless an export format says otherwise."
    ),
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Scoring", "description": "Stateless scoring of venture records."},
        {"name": "Ventures", "description": "Store, browse and update ventures and their GEDSI metrics."},
        {"name": "Calculations", "description": "Recalculate and snapshot scores; portfolio summary."},
        {"name": "Export", "description": "Portfolio export as CSV or JSON."},
    ],
)


# ---------------------------------------------------------------------------
# Dependencies & Helpers
# ---------------------------------------------------------------------------


def db_session() -> Generator[Session, None, None]:
    yield from session_generator()


def scoring_weights() -> ScoringWeights:
    return get_weights()


def _get_or_404(session: Session, model, entity_id: int, label: str = "Entity"):
    obj = session.execute(select(model).where(model.id == entity_id)).scalars().first()
    if not obj:
        raise HTTPException(404, f"{label} not found")
    return obj


# ---------------------------------------------------------------------------
# Routes: Scoring (stateless)
# ---------------------------------------------------------------------------


@app.post("/api/score", response_model=EvaluationOut,
          tags=["Scoring"], summary="Score one venture record without storing it")
async def score_record(body: VentureRecord, weights: ScoringWeights = Depends(scoring_weights)):
    return services.evaluate(body, weights).as_dict()


@app.post("/api/portfolio/aggregate", response_model=PortfolioOut,
          tags=["Scoring"], summary="Aggregate a list of venture records into a portfolio summary")
async def aggregate_records(body: list[VentureRecord], weights: ScoringWeights = Depends(scoring_weights)):
    evaluations = [services.evaluate(r, weights) for r in body]
    summary = aggregate_portfolio(
        [(r, ev.scores) for r, ev in zip(body, evaluations)],
        insights=[ev.insights for ev in evaluations],
        weights=weights,
    )
    return summary.as_dict()


# ---------------------------------------------------------------------------
# Routes: Ventures
# ---------------------------------------------------------------------------


class VentureListResponse(BaseModel):
    items: list[VentureOut]
    total: int


@app.get("/api/ventures", response_model=VentureListResponse,
         tags=["Ventures"], summary="List ventures with fresh scores, filtering and sorting")
async def list_ventures(
    sector: str | None = Query(None, description="Comma-separated sectors"),
    stage: str | None = Query(None, description="Comma-separated stages, e.g. SEED,SERIES_A"),
    priority: str | None = Query(None, description="Comma-separated: urgent, high, medium, low"),
    risk_level: str | None = Query(None, description="Comma-separated: low, medium, high"),
    search: str | None = Query(None, description="Free-text search across name, sector, and location"),
    sort_by: str = Query("impact_score", description="gedsi_score, impact_score, readiness_score, priority, risk_level, days_until_action, stage, name"),
    sort_dir: str = Query("desc", description="asc or desc"),
    session: Session = Depends(db_session),
    weights: ScoringWeights = Depends(scoring_weights),
):
    items = services.query_ventures(
        session, weights, sector=sector, stage=stage, priority=priority,
        risk_level=risk_level, search=search, sort_by=sort_by, sort_dir=sort_dir,
    )
    return {"items": items, "total": len(items)}


@app.post("/api/ventures", response_model=VentureDetail, status_code=201,
          tags=["Ventures"], summary="Create a venture")
async def create_venture(
    body: VentureCreate,
    session: Session = Depends(db_session),
    weights: ScoringWeights = Depends(scoring_weights),
):
    venture = services.create_venture(session, body)
    session.commit()
    session.refresh(venture)
    return services.venture_detail(venture, weights)


@app.get("/api/ventures/{venture_id}", response_model=VentureDetail,
         tags=["Ventures"], summary="Get full venture detail with metrics, scores and estimates")
async def get_venture(
    venture_id: int,
    session: Session = Depends(db_session),
    weights: ScoringWeights = Depends(scoring_weights),
):
    return services.venture_detail(_get_or_404(session, Venture, venture_id, "Venture"), weights)


@app.put("/api/ventures/{venture_id}", response_model=VentureDetail,
         tags=["Ventures"], summary="Update venture fields (partial update, null fields ignored)")
async def update_venture(
    venture_id: int,
    body: VentureUpdate,
    session: Session = Depends(db_session),
    weights: ScoringWeights = Depends(scoring_weights),
):
    venture = _get_or_404(session, Venture, venture_id, "Venture")
    updates = body.model_dump()
    services.apply_updates(venture, updates, services.UPDATABLE_FIELDS)
    services.apply_json_updates(venture, updates)
    session.commit()
    return services.venture_detail(venture, weights)


@app.delete("/api/ventures/{venture_id}", tags=["Ventures"], summary="Delete a venture, its metrics and snapshots")
async def delete_venture(venture_id: int, session: Session = Depends(db_session)):
    venture = _get_or_404(session, Venture, venture_id, "Venture")
    session.delete(venture)
    session.commit()
    return {"ok": True}


@app.post("/api/ventures/{venture_id}/metrics", response_model=GedsiMetricOut, status_code=201,
          tags=["Ventures"], summary="Record a GEDSI metric for a venture")
async def add_metric(venture_id: int, body: GedsiMetricIn, session: Session = Depends(db_session)):
    venture = _get_or_404(session, Venture, venture_id, "Venture")
    metric = services.add_metric(session, venture, body)
    session.commit()
    session.refresh(metric)
    return services.metric_dict(metric)


# ---------------------------------------------------------------------------
# Routes: Calculations
# ---------------------------------------------------------------------------


@app.post("/api/calculations", tags=["Calculations"],
          summary="Recalculate one venture (venture_id) or all ventures and snapshot the results")
async def run_calculations(
    body: RecalculateRequest | None = None,
    session: Session = Depends(db_session),
    weights: ScoringWeights = Depends(scoring_weights),
):
    venture_id = body.venture_id if body else None
    if venture_id is not None:
        _get_or_404(session, Venture, venture_id, "Venture")
        return services.recalculate(session, [venture_id], weights)
    return services.recalculate(session, None, weights)


@app.get("/api/calculations/portfolio", response_model=PortfolioOut,
         tags=["Calculations"], summary="Portfolio summary across all stored ventures")
async def portfolio_summary(
    session: Session = Depends(db_session),
    weights: ScoringWeights = Depends(scoring_weights),
):
    return services.compute_portfolio(session, weights).as_dict()


@app.delete("/api/calculations", tags=["Calculations"], summary="Delete all score snapshots")
async def clear_calculations(session: Session = Depends(db_session)):
    session.execute(delete(VentureScore))
    session.commit()
    return {"ok": True}


# ---------------------------------------------------------------------------
# Routes: Export
# ---------------------------------------------------------------------------


@app.get("/api/export", tags=["Export"], summary="Export all ventures with scores (csv or json)")
async def export(
    format: str = Query("json", description="csv or json"),
    session: Session = Depends(db_session),
    weights: ScoringWeights = Depends(scoring_weights),
):
    fmt = format.strip().lower()
    if fmt not in ("csv", "json"):
        raise HTTPException(400, "format must be csv or json")
    rows = services.export_rows(session, weights)
    if fmt == "json":
        return rows
    return Response(
        content=services.rows_to_csv(rows),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="ventures.csv"'},
    )


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


def main():
    import uvicorn
    settings = get_settings()
    uvicorn.run("venturescore.app:app", host=settings.host, port=settings.port, reload=True)


if __name__ == "__main__":
    main()
