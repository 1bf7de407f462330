"""Portfolio aggregation: a pure reduction over scored venture records."""
from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass, field
from typing import Any

from venturescore.config import DEFAULT_WEIGHTS, GedsiWeights, ScoringWeights
from venturescore.estimates import estimate_social_impact
from venturescore.insights import InsightResult
from venturescore.normalizer import NormalizedFields, normalize_fields
from venturescore.schemas import VentureRecord
from venturescore.scorer import ScoreResult, is_verified
from venturescore.utils import percentage

UNSPECIFIED = "Unspecified"


@dataclass(frozen=True)
class GroupBreakdown:
    count: int
    average_gedsi: float
    average_impact: float
    average_readiness: float
    metrics_total: int
    metrics_verified: int
    completion_rate: float


@dataclass(frozen=True)
class CategoryBreakdown:
    total: int
    verified: int
    completion_rate: float


@dataclass(frozen=True)
class PortfolioSummary:
    total_ventures: int = 0
    average_gedsi_score: float = 0.0
    average_impact_score: float = 0.0
    average_readiness_score: float = 0.0
    total_gedsi_metrics: int = 0
    verified_gedsi_metrics: int = 0
    metrics_completion_rate: float = 0.0
    average_compliance_rate: float = 0.0
    total_documents: int = 0
    total_activities: int = 0
    total_capital_activities: int = 0
    total_revenue: float = 0.0
    total_funding_raised: float = 0.0
    total_beneficiaries: int = 0
    total_jobs_created: int = 0
    total_women_empowered: int = 0
    total_disability_inclusive: int = 0
    total_youth_engaged: int = 0
    by_sector: dict[str, GroupBreakdown] = field(default_factory=dict)
    by_stage: dict[str, GroupBreakdown] = field(default_factory=dict)
    by_category: dict[str, CategoryBreakdown] = field(default_factory=dict)
    by_priority: dict[str, int] = field(default_factory=dict)
    by_risk_level: dict[str, int] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _mean(values: Sequence[float], digits: int) -> float:
    if not values:
        return 0.0
    return round(sum(values) / len(values), digits)


def _group(members: list[tuple[NormalizedFields, ScoreResult]], digits: int, g: GedsiWeights) -> GroupBreakdown:
    metrics = [m for f, _ in members for m in f.metrics]
    verified = sum(1 for m in metrics if is_verified(m, g))
    return GroupBreakdown(
        count=len(members),
        average_gedsi=_mean([s.gedsi_score for _, s in members], digits),
        average_impact=_mean([s.impact_score for _, s in members], digits),
        average_readiness=_mean([s.readiness_score for _, s in members], digits),
        metrics_total=len(metrics),
        metrics_verified=verified,
        completion_rate=percentage(verified, len(metrics), digits),
    )


def aggregate_portfolio(
    pairs: Sequence[tuple[VentureRecord | Mapping[str, Any], ScoreResult]],
    insights: Sequence[InsightResult] | None = None,
    weights: ScoringWeights | None = None,
) -> PortfolioSummary:
    """Summarize a batch of ``(record, scores)`` pairs.

    *insights*, when given, must be aligned with *pairs*; it adds the
    priority and risk level counts.
    """
    if insights is not None and len(insights) != len(pairs):
        raise ValueError("insights must align with pairs")
    weights = weights or DEFAULT_WEIGHTS
    digits = weights.portfolio.average_digits
    g = weights.gedsi
    if not pairs:
        return PortfolioSummary()

    scored = [(normalize_fields(record), scores) for record, scores in pairs]
    estimates = [estimate_social_impact(f) for f, _ in scored]
    metrics = [m for f, _ in scored for m in f.metrics]
    verified = sum(1 for m in metrics if is_verified(m, g))

    sectors: dict[str, list] = defaultdict(list)
    stages: dict[str, list] = defaultdict(list)
    for item in scored:
        sectors[item[0].sector or UNSPECIFIED].append(item)
        stages[item[0].stage or UNSPECIFIED].append(item)

    category_totals: Counter[str] = Counter()
    category_verified: Counter[str] = Counter()
    for m in metrics:
        category_totals[m.category] += 1
        if is_verified(m, g):
            category_verified[m.category] += 1

    return PortfolioSummary(
        total_ventures=len(scored),
        average_gedsi_score=_mean([s.gedsi_score for _, s in scored], digits),
        average_impact_score=_mean([s.impact_score for _, s in scored], digits),
        average_readiness_score=_mean([s.readiness_score for _, s in scored], digits),
        total_gedsi_metrics=len(metrics),
        verified_gedsi_metrics=verified,
        metrics_completion_rate=percentage(verified, len(metrics), digits),
        average_compliance_rate=_mean([e.gedsi_compliance_rate for e in estimates], digits),
        total_documents=sum(f.document_count for f, _ in scored),
        total_activities=sum(f.activity_count for f, _ in scored),
        total_capital_activities=sum(f.capital_activity_count for f, _ in scored),
        total_revenue=sum(f.revenue for f, _ in scored),
        total_funding_raised=sum(f.funding_raised for f, _ in scored),
        total_beneficiaries=sum(e.total_beneficiaries for e in estimates),
        total_jobs_created=sum(e.jobs_created for e in estimates),
        total_women_empowered=sum(e.women_empowered for e in estimates),
        total_disability_inclusive=sum(e.disability_inclusive for e in estimates),
        total_youth_engaged=sum(e.youth_engaged for e in estimates),
        by_sector={k: _group(v, digits, g) for k, v in sorted(sectors.items())},
        by_stage={k: _group(v, digits, g) for k, v in sorted(stages.items())},
        by_category={
            cat: CategoryBreakdown(
                total=total,
                verified=category_verified[cat],
                completion_rate=percentage(category_verified[cat], total, digits),
            )
            for cat, total in sorted(category_totals.items())
        },
        by_priority=dict(Counter(i.priority for i in insights)) if insights else {},
        by_risk_level=dict(Counter(i.risk_level for i in insights)) if insights else {},
    )
