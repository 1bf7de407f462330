"""Sector-based social impact estimates and the GEDSI compliance rate.

Estimates are coarse: beneficiaries and jobs are projected from funding and
team size with per-sector multipliers, then boosted for founder tags. A
venture without funding or team data is estimated as a $100k, five-person
venture.
"""
from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import asdict, dataclass

from venturescore.normalizer import MetricEntry, NormalizedFields
from venturescore.utils import round_half_up

DEFAULT_FUNDING = 100_000.0
DEFAULT_TEAM_SIZE = 5
FUNDING_PER_INDIRECT_JOB = 50_000.0
COMPLIANT_FRACTION = 0.8


@dataclass(frozen=True)
class SectorMultipliers:
    beneficiaries_per_funding: float
    beneficiaries_per_employee: float
    jobs_multiplier: float
    women_empowerment_rate: float
    disability_inclusion_rate: float
    youth_engagement_rate: float


SECTOR_MULTIPLIERS: dict[str, SectorMultipliers] = {
    "HealthTech": SectorMultipliers(0.02, 200, 3.5, 0.6, 0.15, 0.4),
    "FinTech": SectorMultipliers(0.04, 300, 4, 0.7, 0.1, 0.5),
    "EdTech": SectorMultipliers(0.01, 150, 2.5, 0.55, 0.2, 0.8),
    "Agriculture": SectorMultipliers(0.005, 100, 5, 0.5, 0.08, 0.3),
    "CleanTech": SectorMultipliers(0.008, 80, 3, 0.4, 0.1, 0.35),
    "Default": SectorMultipliers(0.0067, 50, 3, 0.5, 0.12, 0.4),
}

FOUNDER_MULTIPLIERS: dict[str, float] = {
    "women-led": 0.3,
    "disability-inclusive": 0.2,
    "youth-led": 0.15,
    "rural-focus": 0.1,
}

_SECTOR_LOOKUP = {name.casefold(): m for name, m in SECTOR_MULTIPLIERS.items()}


@dataclass(frozen=True)
class SocialImpactEstimate:
    total_beneficiaries: int
    jobs_created: int
    women_empowered: int
    disability_inclusive: int
    youth_engaged: int
    gedsi_compliance_rate: int

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


def sector_multipliers(sector: str) -> SectorMultipliers:
    return _SECTOR_LOOKUP.get(sector.strip().casefold(), SECTOR_MULTIPLIERS["Default"])


def founder_multiplier(tags: frozenset[str]) -> float:
    return 1.0 + sum(bonus for tag, bonus in FOUNDER_MULTIPLIERS.items() if tag in tags)


def gedsi_compliance_rate(metrics: Iterable[MetricEntry]) -> int:
    """Percentage of metrics at or above 80% of a non-zero target."""
    metrics = list(metrics)
    if not metrics:
        return 0
    compliant = 0
    for m in metrics:
        if m.current_value is None or not m.target_value:
            continue
        if m.current_value / m.target_value >= COMPLIANT_FRACTION:
            compliant += 1
    return round_half_up(compliant / len(metrics) * 100)


def estimate_social_impact(fields: NormalizedFields) -> SocialImpactEstimate:
    funding = fields.funding_raised or DEFAULT_FUNDING
    team = fields.team_size or DEFAULT_TEAM_SIZE
    m = sector_multipliers(fields.sector)

    beneficiaries = math.floor(funding * m.beneficiaries_per_funding) + team * m.beneficiaries_per_employee
    jobs = math.floor(team * m.jobs_multiplier + funding / FUNDING_PER_INDIRECT_JOB)
    boost = founder_multiplier(fields.founder_tags)

    def boosted(value: float) -> int:
        return math.floor(value * boost)

    return SocialImpactEstimate(
        total_beneficiaries=boosted(beneficiaries),
        jobs_created=boosted(jobs),
        women_empowered=boosted(math.floor(beneficiaries * m.women_empowerment_rate)),
        disability_inclusive=boosted(math.floor(beneficiaries * m.disability_inclusion_rate)),
        youth_engaged=boosted(math.floor(beneficiaries * m.youth_engagement_rate)),
        gedsi_compliance_rate=gedsi_compliance_rate(fields.metrics),
    )
