"""Shared business logic for the venturescore API and CLI."""
from __future__ import annotations

import csv
import io
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from venturescore.config import DEFAULT_WEIGHTS, ScoringWeights
from venturescore.estimates import SocialImpactEstimate, estimate_social_impact
from venturescore.insights import InsightResult, classify_fields
from venturescore.models import GedsiMetric, Venture, VentureScore
from venturescore.normalizer import NormalizedFields, normalize_fields
from venturescore.portfolio import PortfolioSummary, aggregate_portfolio
from venturescore.schemas import GedsiMetricIn, VentureCreate, VentureRecord
from venturescore.scorer import ScoreResult, score_fields, score_label
from venturescore.utils import json_parse, to_json

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Shared field tuples
# ---------------------------------------------------------------------------

UPDATABLE_FIELDS = (
    "name", "sector", "stage", "location", "status", "revenue", "funding_raised",
    "team_size", "website", "pitch_summary", "inclusion_focus",
    "document_count", "activity_count", "capital_activity_count",
)

# API field -> JSON text column
JSON_FIELDS = {
    "founder_types": "founder_types_json",
    "gedsi_goals": "gedsi_goals_json",
    "operational_readiness": "operational_readiness_json",
    "capital_readiness": "capital_readiness_json",
    "ai_analysis": "ai_analysis_json",
}

METRIC_FIELDS = (
    "metric_code", "metric_name", "category", "status", "current_value", "target_value", "unit",
)

EXPORT_FIELDS = (
    "id", "name", "sector", "stage", "location", "gedsi_score", "impact_score",
    "readiness_score", "risk_level", "priority", "next_action", "days_until_action",
    "alerts", "total_beneficiaries", "jobs_created", "gedsi_compliance_rate",
)

_PRIORITY_ORDER = {"urgent": 3, "high": 2, "medium": 1, "low": 0}
_RISK_ORDER = {"high": 2, "medium": 1, "low": 0}


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Evaluation:
    fields: NormalizedFields
    scores: ScoreResult
    insights: InsightResult
    estimates: SocialImpactEstimate

    def as_dict(self) -> dict[str, Any]:
        return {
            "venture_id": self.fields.venture_id,
            "name": self.fields.name,
            "scores": self.scores.as_dict(),
            "insights": self.insights.as_dict(),
            "estimates": self.estimates.as_dict(),
            "gedsi_label": score_label(self.scores.gedsi_score),
        }


def evaluate(record: VentureRecord | dict[str, Any], weights: ScoringWeights | None = None) -> Evaluation:
    """Normalize once, then run scoring, insights and estimates."""
    fields = normalize_fields(record)
    scores = score_fields(fields, weights)
    return Evaluation(
        fields=fields,
        scores=scores,
        insights=classify_fields(fields, scores, weights),
        estimates=estimate_social_impact(fields),
    )


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------


def metric_dict(metric: GedsiMetric) -> dict[str, Any]:
    return {"id": metric.id, **{f: getattr(metric, f) for f in METRIC_FIELDS}}


def venture_record(venture: Venture) -> VentureRecord:
    """Hand a stored venture to the engine as a raw record (JSON columns untouched)."""
    return VentureRecord(
        id=venture.id,
        name=venture.name,
        sector=venture.sector,
        stage=venture.stage,
        location=venture.location,
        status=venture.status,
        revenue=venture.revenue,
        funding_raised=venture.funding_raised,
        team_size=venture.team_size,
        founder_types=venture.founder_types_json,
        gedsi_goals=venture.gedsi_goals_json,
        operational_readiness=venture.operational_readiness_json,
        capital_readiness=venture.capital_readiness_json,
        gedsi_metrics=[
            {
                "metricCode": m.metric_code, "metricName": m.metric_name,
                "category": m.category, "status": m.status,
                "currentValue": m.current_value, "targetValue": m.target_value,
            }
            for m in venture.metrics
        ],
        document_count=venture.document_count,
        activity_count=venture.activity_count,
        capital_activity_count=venture.capital_activity_count,
        ai_analysis=venture.ai_analysis_json or None,
        website=venture.website,
        pitch_summary=venture.pitch_summary,
        inclusion_focus=venture.inclusion_focus,
    )


def latest_snapshot(venture: Venture) -> VentureScore | None:
    if not venture.scores:
        return None
    return max(venture.scores, key=lambda s: (s.calculated_at, s.id))


def venture_summary(venture: Venture, weights: ScoringWeights | None = None) -> dict[str, Any]:
    ev = evaluate(venture_record(venture), weights)
    snapshot = latest_snapshot(venture)
    return {
        "id": venture.id, "name": venture.name, "sector": venture.sector,
        "stage": venture.stage, "location": venture.location, "status": venture.status,
        "founder_types": list(ev.fields.founder_types),
        "gedsi_metric_count": len(venture.metrics),
        "document_count": venture.document_count,
        "activity_count": venture.activity_count,
        **ev.scores.as_dict(),
        **ev.insights.as_dict(),
        "calculated_at": snapshot.calculated_at.isoformat() if snapshot else None,
    }


def venture_detail(venture: Venture, weights: ScoringWeights | None = None) -> dict[str, Any]:
    base = venture_summary(venture, weights)
    fields = normalize_fields(venture_record(venture))
    base.update({
        "revenue": venture.revenue,
        "funding_raised": venture.funding_raised,
        "team_size": venture.team_size,
        "gedsi_goals": json_parse(venture.gedsi_goals_json, []),
        "operational_readiness": json_parse(venture.operational_readiness_json, {}),
        "capital_readiness": json_parse(venture.capital_readiness_json, {}),
        "ai_analysis": json_parse(venture.ai_analysis_json, None),
        "website": venture.website,
        "pitch_summary": venture.pitch_summary,
        "inclusion_focus": venture.inclusion_focus,
        "capital_activity_count": venture.capital_activity_count,
        "gedsi_metrics": [metric_dict(m) for m in venture.metrics],
        "estimates": estimate_social_impact(fields).as_dict(),
        "gedsi_label": score_label(base["gedsi_score"]),
    })
    return base


# ---------------------------------------------------------------------------
# Filtering and sorting
# ---------------------------------------------------------------------------


def _csv_set(value: str, *, upper: bool = False) -> set[str]:
    items = (v.strip() for v in value.split(","))
    return {v.upper() if upper else v.lower() for v in items if v}


def filter_and_sort(
    items: list[dict], *, sector=None, stage=None, priority=None, risk_level=None, search=None,
    sort_by="impact_score", sort_dir="desc",
) -> list[dict]:
    if sector:
        ss = _csv_set(sector)
        items = [i for i in items if (i.get("sector") or "").lower() in ss]
    if stage:
        st = _csv_set(stage, upper=True)
        items = [i for i in items if (i.get("stage") or "").upper() in st]
    if priority:
        ps = _csv_set(priority)
        items = [i for i in items if i.get("priority") in ps]
    if risk_level:
        rs = _csv_set(risk_level)
        items = [i for i in items if i.get("risk_level") in rs]
    if search:
        q = search.lower()
        items = [i for i in items if q in i["name"].lower()
                 or q in (i.get("sector") or "").lower() or q in (i.get("location") or "").lower()]

    def sort_key(item: dict):
        if sort_by in ("gedsi_score", "impact_score", "readiness_score", "days_until_action"):
            return item[sort_by]
        if sort_by == "priority":
            return _PRIORITY_ORDER.get(item.get("priority") or "", -1)
        if sort_by == "risk_level":
            return _RISK_ORDER.get(item.get("risk_level") or "", -1)
        if sort_by == "stage":
            return (item.get("stage") or "").lower()
        return item["name"].lower()

    items.sort(key=sort_key, reverse=(sort_dir == "desc"))
    return items


def query_ventures(session: Session, weights: ScoringWeights | None = None, **filters) -> list[dict]:
    ventures = session.execute(select(Venture)).scalars().all()
    return filter_and_sort([venture_summary(v, weights) for v in ventures], **filters)


# ---------------------------------------------------------------------------
# Mutation helpers
# ---------------------------------------------------------------------------


def apply_updates(obj, updates: dict[str, Any], fields: Iterable[str]) -> None:
    """Apply non-None values from updates dict to an ORM object."""
    for field in fields:
        val = updates.get(field)
        if val is not None:
            setattr(obj, field, val)


def apply_json_updates(venture: Venture, updates: dict[str, Any]) -> None:
    for field, column in JSON_FIELDS.items():
        val = updates.get(field)
        if val is not None:
            setattr(venture, column, to_json(val))


def create_venture(session: Session, body: VentureCreate) -> Venture:
    """Add a venture (caller must commit)."""
    data = body.model_dump()
    venture = Venture(name=body.name)
    apply_updates(venture, data, UPDATABLE_FIELDS)
    apply_json_updates(venture, data)
    session.add(venture)
    return venture


def add_metric(session: Session, venture: Venture, body: GedsiMetricIn) -> GedsiMetric:
    """Attach a GEDSI metric to a venture (caller must commit)."""
    metric = GedsiMetric(**body.model_dump())
    venture.metrics.append(metric)
    session.add(metric)
    return metric


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


def run_scoring(session: Session, venture: Venture, weights: ScoringWeights | None = None) -> VentureScore:
    """Score a venture, replacing its previous snapshot (caller must commit)."""
    ev = evaluate(venture_record(venture), weights)
    session.execute(delete(VentureScore).where(VentureScore.venture_id == venture.id))
    session.expire(venture, ["scores"])
    snapshot = VentureScore(
        venture_id=venture.id,
        gedsi_score=ev.scores.gedsi_score,
        impact_score=ev.scores.impact_score,
        readiness_score=ev.scores.readiness_score,
        risk_level=ev.insights.risk_level,
        priority=ev.insights.priority,
        next_action=ev.insights.next_action,
        days_until_action=ev.insights.days_until_action,
        alerts_json=to_json(list(ev.insights.alerts)),
        estimates_json=to_json(ev.estimates.as_dict()),
    )
    session.add(snapshot)
    return snapshot


def recalculate(
    session: Session, venture_ids: list[int] | None = None, weights: ScoringWeights | None = None,
) -> dict[str, int]:
    """Snapshot scores for the given ventures (all when ``None``), one commit per venture."""
    query = select(Venture.id, Venture.name)
    if venture_ids:
        query = query.where(Venture.id.in_(venture_ids))
    rows = session.execute(query).all()
    ok = failed = 0
    for venture_id, name in rows:
        try:
            venture = session.execute(select(Venture).where(Venture.id == venture_id)).scalars().first()
            if venture is None:
                failed += 1
                continue
            run_scoring(session, venture, weights)
            session.commit()
            ok += 1
        except Exception as exc:
            log.warning("Recalculation failed for %s: %s", name, exc)
            failed += 1
            session.rollback()
    log.info("Recalculated %d ventures (%d failed)", ok, failed)
    return {"calculated": ok, "failed": failed}


def compute_portfolio(session: Session, weights: ScoringWeights | None = None) -> PortfolioSummary:
    weights = weights or DEFAULT_WEIGHTS
    ventures = session.execute(select(Venture)).scalars().all()
    records = [venture_record(v) for v in ventures]
    evaluations = [evaluate(r, weights) for r in records]
    return aggregate_portfolio(
        [(r, ev.scores) for r, ev in zip(records, evaluations)],
        insights=[ev.insights for ev in evaluations],
        weights=weights,
    )


def export_rows(session: Session, weights: ScoringWeights | None = None) -> list[dict[str, Any]]:
    rows = []
    for venture in session.execute(select(Venture).order_by(Venture.id)).scalars().all():
        ev = evaluate(venture_record(venture), weights)
        rows.append({
            "id": venture.id, "name": venture.name, "sector": venture.sector,
            "stage": venture.stage, "location": venture.location,
            **ev.scores.as_dict(),
            "risk_level": ev.insights.risk_level,
            "priority": ev.insights.priority,
            "next_action": ev.insights.next_action,
            "days_until_action": ev.insights.days_until_action,
            "alerts": list(ev.insights.alerts),
            "total_beneficiaries": ev.estimates.total_beneficiaries,
            "jobs_created": ev.estimates.jobs_created,
            "gedsi_compliance_rate": ev.estimates.gedsi_compliance_rate,
        })
    return rows


def rows_to_csv(rows: list[dict[str, Any]]) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=list(EXPORT_FIELDS))
    writer.writeheader()
    for row in rows:
        writer.writerow({**row, "alerts": "; ".join(row.get("alerts", []))})
    return buf.getvalue()
