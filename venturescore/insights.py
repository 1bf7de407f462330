"""Rule-based insight classifier: risk level, priority, next action and alerts.

Two policies run in order. A stored AI analysis payload, when present, sets
priority and next action from its risk text and recommendations and supplies
its own alerts. If that yields no alerts (or there is no payload) the
fallback rule table runs. The table is ordered; only the first
``max_alerts`` alerts are kept, but priority escalations from later rules
still apply.

Risk level is classified independently of both policies.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import asdict, dataclass
from typing import Any

from venturescore.config import DEFAULT_WEIGHTS, InsightRules, ScoringWeights
from venturescore.normalizer import NormalizedFields, ProvidedAnalysis, normalize_fields
from venturescore.schemas import VentureRecord
from venturescore.scorer import ScoreResult

log = logging.getLogger(__name__)


ALERT_GEDSI_LOW = "GEDSI score below acceptable threshold"
ALERT_GEDSI_REVIEW = "GEDSI score needs improvement"
ALERT_SCALING = "High impact performance - scaling opportunity"
ALERT_NO_METRICS = "No GEDSI metrics recorded"
ALERT_NO_CAPITAL = "No capital activities recorded"
ALERT_FEW_DOCUMENTS = "Insufficient documentation"
ALERT_NO_REVENUE = "No revenue recorded"
ALERT_SMALL_TEAM = "Small team size may limit scalability"
ALERT_NO_READINESS = "Readiness assessment incomplete"


@dataclass(frozen=True)
class InsightResult:
    risk_level: str
    priority: str
    next_action: str
    days_until_action: int
    alerts: tuple[str, ...] = ()

    def as_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["alerts"] = list(self.alerts)
        return data


@dataclass
class _Draft:
    priority: str
    next_action: str
    days: int
    alerts: list[str]

    def escalate(self) -> None:
        if self.priority == "medium":
            self.priority = "high"


# ---------------------------------------------------------------------------
# Fallback rule table
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AlertRule:
    alert: str
    applies: Callable[[NormalizedFields, InsightRules], bool]
    escalates: bool = False


ALERT_RULES: tuple[AlertRule, ...] = (
    AlertRule(ALERT_NO_METRICS, lambda f, r: not f.metrics, escalates=True),
    AlertRule(ALERT_NO_CAPITAL, lambda f, r: f.capital_activity_count == 0),
    AlertRule(ALERT_FEW_DOCUMENTS, lambda f, r: f.document_count < r.min_documents),
    AlertRule(ALERT_NO_REVENUE, lambda f, r: f.revenue == 0),
    AlertRule(ALERT_SMALL_TEAM, lambda f, r: 0 < f.team_size < r.small_team_below),
    AlertRule(ALERT_NO_READINESS, lambda f, r: not f.readiness_populated, escalates=True),
)


def _apply_score_rule(draft: _Draft, scores: ScoreResult, r: InsightRules) -> None:
    """First matching score band sets priority, action and deadline."""
    if scores.gedsi_score < r.gedsi_urgent_below:
        draft.priority, draft.next_action, draft.days = "urgent", r.gedsi_urgent_action, r.gedsi_urgent_days
        draft.alerts.append(ALERT_GEDSI_LOW)
    elif scores.gedsi_score < r.gedsi_review_below:
        draft.priority, draft.next_action, draft.days = "high", r.gedsi_review_action, r.gedsi_review_days
        draft.alerts.append(ALERT_GEDSI_REVIEW)
    elif scores.impact_score > r.impact_scaling_above:
        draft.priority, draft.next_action, draft.days = "high", r.impact_scaling_action, r.impact_scaling_days
        draft.alerts.append(ALERT_SCALING)


def _apply_fallback(draft: _Draft, fields: NormalizedFields, scores: ScoreResult, r: InsightRules) -> None:
    _apply_score_rule(draft, scores, r)
    for rule in ALERT_RULES:
        if rule.applies(fields, r):
            draft.alerts.append(rule.alert)
            if rule.escalates:
                draft.escalate()


# ---------------------------------------------------------------------------
# AI payload policy
# ---------------------------------------------------------------------------


def _apply_analysis(draft: _Draft, analysis: ProvidedAnalysis, r: InsightRules) -> None:
    risk = analysis.risk_assessment.lower()
    if any(k.lower() in risk for k in r.ai_urgent_keywords):
        draft.priority, draft.days = "urgent", r.ai_urgent_days
    elif any(k.lower() in risk for k in r.ai_high_keywords):
        draft.priority, draft.days = "high", r.ai_high_days
    if analysis.recommendations:
        draft.next_action = analysis.recommendations[0]
    draft.alerts.extend(analysis.alerts)


# ---------------------------------------------------------------------------
# Risk level
# ---------------------------------------------------------------------------


def classify_risk(fields: NormalizedFields, scores: ScoreResult, r: InsightRules | None = None) -> str:
    r = r or DEFAULT_WEIGHTS.insights
    if (
        scores.gedsi_score > r.low_risk_gedsi_above
        and scores.impact_score > r.low_risk_impact_above
        and fields.document_count >= r.low_risk_min_documents
    ):
        return "low"
    if (
        scores.gedsi_score < r.high_risk_gedsi_below
        or scores.impact_score < r.high_risk_impact_below
        or fields.document_count < r.high_risk_documents_below
    ):
        return "high"
    return "medium"


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def classify_fields(
    fields: NormalizedFields,
    scores: ScoreResult,
    weights: ScoringWeights | None = None,
) -> InsightResult:
    r = (weights or DEFAULT_WEIGHTS).insights
    draft = _Draft(priority=r.default_priority, next_action=r.default_action, days=r.default_days, alerts=[])

    if isinstance(fields.analysis, ProvidedAnalysis):
        _apply_analysis(draft, fields.analysis, r)
    if not draft.alerts:
        if isinstance(fields.analysis, ProvidedAnalysis):
            log.debug("AI analysis for %r has no alerts, applying fallback rules", fields.name)
        _apply_fallback(draft, fields, scores, r)

    return InsightResult(
        risk_level=classify_risk(fields, scores, r),
        priority=draft.priority,
        next_action=draft.next_action,
        days_until_action=draft.days,
        alerts=tuple(draft.alerts[: r.max_alerts]),
    )


def compute_insights(
    record: VentureRecord | Mapping[str, Any],
    scores: ScoreResult,
    weights: ScoringWeights | None = None,
) -> InsightResult:
    """Classify one venture given its already computed scores."""
    return classify_fields(normalize_fields(record), scores, weights)
