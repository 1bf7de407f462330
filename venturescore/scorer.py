"""Scoring engine: three independent calculators over normalized venture fields.

Architecture
------------
Each venture is scored on three dimensions, in any order:

- **GEDSI**: coverage of declared GEDSI goals by verified metrics, plus
  verification ratio and a capped founder-diversity bonus.
- **Impact**: base 40 plus individually capped terms for revenue, funding,
  team size, goal count, founder tags and verified metrics, scaled by a
  stage multiplier.
- **Readiness**: base 30 plus operational/capital checklist completion and a
  few fixed secondary signals (revenue, team, website, pitch, documents).

All constants come from :class:`venturescore.config.ScoringWeights`. Scores
are integers clipped to 0–100. A calculator that hits non-finite arithmetic
logs a warning and returns its base value instead.
"""
from __future__ import annotations

import logging
import math
import re
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import Any

from venturescore.config import DEFAULT_WEIGHTS, GedsiWeights, ImpactWeights, ReadinessWeights, ScoringWeights
from venturescore.normalizer import MetricEntry, NormalizedFields, normalize_fields
from venturescore.schemas import VentureRecord
from venturescore.utils import clip, round_half_up, safe_ratio

log = logging.getLogger(__name__)

_GOAL_CODE_RE = re.compile(r"^\s*([A-Za-z]{1,6}\.\d+)")


@dataclass(frozen=True)
class ScoreResult:
    gedsi_score: int
    impact_score: int
    readiness_score: int

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


def _finish(total: float, base: float, label: str, name: str) -> int:
    """Clip and round *total*, or fall back to *base* if it is not finite."""
    if not math.isfinite(total):
        log.warning("Non-finite %s score for %r, falling back to %s", label, name, base)
        total = base if math.isfinite(base) else 0.0
    return round_half_up(clip(total, 0.0, 100.0))


# ---------------------------------------------------------------------------
# GEDSI
# ---------------------------------------------------------------------------


def is_verified(metric: MetricEntry, w: GedsiWeights | None = None) -> bool:
    statuses = (w or DEFAULT_WEIGHTS.gedsi).verified_statuses
    return metric.status in statuses


def goal_covered(goal: str, verified: list[MetricEntry]) -> bool:
    """A goal is covered when a verified metric carries its IRIS+ code (or name)."""
    m = _GOAL_CODE_RE.match(goal)
    if m:
        code = m.group(1).upper()
        return any(metric.code.upper() == code for metric in verified)
    key = goal.strip().casefold()
    return any(key in (metric.code.casefold(), metric.name.casefold()) for metric in verified)


def founder_bonus(tags: frozenset[str], table: Mapping[str, float]) -> float:
    return sum(bonus for tag, bonus in table.items() if tag.casefold() in tags)


def gedsi_score(fields: NormalizedFields, weights: ScoringWeights | None = None) -> int:
    """Goal coverage plus verification ratio plus a capped founder bonus.

    A venture with neither goals nor metrics gets ``w.baseline`` (75) plus the
    bonus. This is a step, not a limit: the first unverified metric, or a
    declared goal with nothing verified against it, drops the score to the
    bonus alone, since coverage and verification are then both zero.
    """
    w = (weights or DEFAULT_WEIGHTS).gedsi
    try:
        verified = [m for m in fields.metrics if is_verified(m, w)]
        bonus = min(founder_bonus(fields.founder_tags, w.founder_bonuses), w.founder_bonus_cap)

        if not fields.gedsi_goals and not fields.metrics:
            return _finish(w.baseline + bonus, w.baseline, "GEDSI", fields.name)

        if fields.gedsi_goals:
            covered = sum(1 for goal in fields.gedsi_goals if goal_covered(goal, verified))
            coverage = covered / len(fields.gedsi_goals)
        else:
            coverage = len(verified) / len(fields.metrics)
        verification = safe_ratio(len(verified), len(fields.metrics))

        total = coverage * w.goal_weight + verification * w.verification_weight + bonus
    except ArithmeticError:
        total = math.nan
    return _finish(total, w.baseline, "GEDSI", fields.name)


# ---------------------------------------------------------------------------
# Impact
# ---------------------------------------------------------------------------


def impact_components(fields: NormalizedFields, w: ImpactWeights, g: GedsiWeights | None = None) -> dict[str, float]:
    """Capped additive terms, before the stage multiplier."""
    verified = sum(1 for m in fields.metrics if is_verified(m, g))
    return {
        "revenue": min(fields.revenue / w.revenue_divisor, w.revenue_cap),
        "funding": min(fields.funding_raised / w.funding_divisor, w.funding_cap),
        "team": min(fields.team_size, w.team_cap) if fields.team_size > w.team_min_size else 0.0,
        "goals": min(len(fields.gedsi_goals) * w.points_per_goal, w.goals_cap),
        "founders": founder_bonus(fields.founder_tags, w.founder_bonuses),
        "verified_metrics": min(verified * w.points_per_verified_metric, w.verified_metrics_cap),
    }


def stage_multiplier(stage: str, w: ImpactWeights) -> float:
    return w.stage_multipliers.get(stage, 1.0)


def impact_score(fields: NormalizedFields, weights: ScoringWeights | None = None) -> int:
    weights = weights or DEFAULT_WEIGHTS
    w = weights.impact
    try:
        total = w.base + sum(impact_components(fields, w, weights.gedsi).values())
        total *= stage_multiplier(fields.stage, w)
    except ArithmeticError:
        total = math.nan
    return _finish(min(total, 100.0) if math.isfinite(total) else total, w.base, "impact", fields.name)


# ---------------------------------------------------------------------------
# Readiness
# ---------------------------------------------------------------------------


def document_bonus(document_count: int, w: ReadinessWeights) -> float:
    for minimum, bonus in sorted(w.document_tiers, reverse=True):
        if document_count >= minimum:
            return bonus
    return 0.0


def readiness_components(fields: NormalizedFields, w: ReadinessWeights) -> dict[str, float]:
    return {
        "operational": fields.operational.completion * w.operational_weight,
        "capital": fields.capital.completion * w.capital_weight,
        "revenue": w.revenue_bonus if fields.revenue > 0 else 0.0,
        "team": w.team_bonus if fields.team_size >= w.team_min_size else 0.0,
        "website": w.website_bonus if fields.website else 0.0,
        "pitch": w.pitch_bonus if len(fields.pitch_summary) > w.pitch_min_length else 0.0,
        "documents": document_bonus(fields.document_count, w),
    }


def readiness_score(fields: NormalizedFields, weights: ScoringWeights | None = None) -> int:
    w = (weights or DEFAULT_WEIGHTS).readiness
    try:
        total = w.base + sum(readiness_components(fields, w).values())
    except ArithmeticError:
        total = math.nan
    return _finish(total, w.base, "readiness", fields.name)


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def score_fields(fields: NormalizedFields, weights: ScoringWeights | None = None) -> ScoreResult:
    return ScoreResult(
        gedsi_score=gedsi_score(fields, weights),
        impact_score=impact_score(fields, weights),
        readiness_score=readiness_score(fields, weights),
    )


def compute_scores(
    record: VentureRecord | Mapping[str, Any],
    weights: ScoringWeights | None = None,
) -> ScoreResult:
    """Score one venture record. Pure; never raises on malformed data."""
    return score_fields(normalize_fields(record), weights)


def score_label(score: float) -> str:
    """Human label for a 0–100 score."""
    if score >= 80:
        return "Excellent"
    if score >= 70:
        return "Good"
    if score >= 60:
        return "Fair"
    if score >= 40:
        return "Needs Improvement"
    return "Poor"
