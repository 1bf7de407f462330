"""Field normalizer: the single place where raw venture fields are coerced.

Stored venture fields are heterogeneous. Amounts arrive as numbers or numeric
strings, tag lists and checklists as JSON text or already-parsed values, and
any field may be missing or garbage. Every coercion here is total: a failure
is logged at DEBUG and replaced by a safe default, so the calculators
downstream can assume clean, typed input.
"""
from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from venturescore.schemas import VentureRecord
from venturescore.utils import json_parse, safe_ratio

log = logging.getLogger(__name__)

_TRUE_STRINGS = ("true", "1", "yes", "y", "on")
# Ceiling for any single amount or count; keeps sums and products finite.
MAX_NUMBER = 1e12


# ---------------------------------------------------------------------------
# Parse-or-default combinators
# ---------------------------------------------------------------------------


def to_float(value: Any, field_name: str = "value") -> float:
    """Coerce to a finite, non-negative float at most ``MAX_NUMBER``; 0.0 on anything else."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        if isinstance(value, str):
            value = value.strip().replace(",", "").lstrip("$")
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        log.debug("Unparseable %s %r, defaulting to 0", field_name, value)
        return 0.0
    if not math.isfinite(number) or number < 0:
        log.debug("Invalid %s %r, defaulting to 0", field_name, value)
        return 0.0
    if number > MAX_NUMBER:
        log.debug("Oversized %s %r, clipping to %g", field_name, value, MAX_NUMBER)
        return MAX_NUMBER
    return number


def to_int(value: Any, field_name: str = "value") -> int:
    return int(to_float(value, field_name))


def optional_float(value: Any) -> float | None:
    """Like :func:`to_float` but keeps "missing" distinct from zero."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def to_bool(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0 and not (isinstance(value, float) and math.isnan(value))
    return str(value).strip().lower() in _TRUE_STRINGS


def to_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_list(value: Any, field_name: str = "list") -> tuple[str, ...]:
    """Accept a list or a JSON-encoded list; return unique, non-empty strings."""
    if isinstance(value, str):
        value = json_parse(value, None)
    if not isinstance(value, (list, tuple)):
        if value is not None:
            log.debug("Malformed %s %r, defaulting to []", field_name, value)
        return ()
    out: list[str] = []
    seen: set[str] = set()
    for item in value:
        if item is None:
            continue
        text = str(item).strip()
        key = text.casefold()
        if not text or key in seen:
            continue
        seen.add(key)
        out.append(text)
    return tuple(out)


def parse_map(value: Any, field_name: str = "map") -> dict[str, Any]:
    """Accept a mapping or a JSON-encoded object; ``{}`` otherwise."""
    if isinstance(value, str):
        value = json_parse(value, None)
    if not isinstance(value, Mapping):
        if value is not None:
            log.debug("Malformed %s %r, defaulting to {}", field_name, value)
        return {}
    return {str(k): v for k, v in value.items()}


def normalize_stage(value: Any) -> str:
    return to_text(value).upper().replace("-", "_").replace(" ", "_")


# ---------------------------------------------------------------------------
# Normalized value types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChecklistStatus:
    """A readiness checklist reduced to counts.

    ``total`` is ``max(1, keys present)`` so that an empty checklist yields a
    0.0 completion instead of a division by zero or full credit.
    """
    checked: int
    keys: int

    @property
    def total(self) -> int:
        return max(1, self.keys)

    @property
    def completion(self) -> float:
        return safe_ratio(self.checked, self.total)

    @property
    def populated(self) -> bool:
        return self.keys > 0


def parse_checklist(value: Any, field_name: str = "checklist") -> ChecklistStatus:
    items = parse_map(value, field_name)
    return ChecklistStatus(checked=sum(1 for v in items.values() if to_bool(v)), keys=len(items))


@dataclass(frozen=True)
class MetricEntry:
    code: str
    name: str
    category: str
    status: str
    current_value: float | None = None
    target_value: float | None = None


def _metric_from_raw(raw: Any) -> MetricEntry | None:
    if not isinstance(raw, Mapping):
        return None
    get = raw.get
    return MetricEntry(
        code=to_text(get("metricCode", get("metric_code", get("code")))),
        name=to_text(get("metricName", get("metric_name", get("name")))),
        category=normalize_stage(get("category")) or "UNCATEGORIZED",
        status=to_text(get("status")).upper(),
        current_value=optional_float(get("currentValue", get("current_value"))),
        target_value=optional_float(get("targetValue", get("target_value"))),
    )


def parse_metrics(value: Any) -> tuple[MetricEntry, ...]:
    if isinstance(value, str):
        value = json_parse(value, None)
    if not isinstance(value, (list, tuple)):
        if value is not None:
            log.debug("Malformed gedsi_metrics %r, defaulting to []", value)
        return ()
    entries = []
    for raw in value:
        entry = _metric_from_raw(raw)
        if entry is None:
            log.debug("Skipping malformed GEDSI metric entry %r", raw)
            continue
        entries.append(entry)
    return tuple(entries)


# ---------------------------------------------------------------------------
# AI payload: Provided | Absent
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProvidedAnalysis:
    risk_assessment: str = ""
    recommendations: tuple[str, ...] = ()
    alerts: tuple[str, ...] = ()


@dataclass(frozen=True)
class AbsentAnalysis:
    pass


AIAnalysis = Union[ProvidedAnalysis, AbsentAnalysis]


def _risk_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        level = to_text(value.get("level"))
        risks = value.get("risks")
        parts = [f"{level} risk"] if level else []
        if isinstance(risks, (list, tuple)):
            parts.extend(to_text(r) for r in risks if r)
        return " ".join(parts)
    if isinstance(value, (list, tuple)):
        return " ".join(to_text(v) for v in value if v)
    return ""


def _text_items(value: Any) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(t for t in (to_text(v) for v in value) if t)


def resolve_analysis(value: Any) -> AIAnalysis:
    if isinstance(value, str):
        value = json_parse(value, None)
        if value is None:
            log.debug("Unparseable aiAnalysis payload, using rule-based insights")
    if not isinstance(value, Mapping):
        return AbsentAnalysis()
    return ProvidedAnalysis(
        risk_assessment=_risk_text(value.get("riskAssessment", value.get("risk_assessment"))),
        recommendations=_text_items(value.get("recommendations")),
        alerts=_text_items(value.get("alerts")),
    )


# ---------------------------------------------------------------------------
# NormalizedFields
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NormalizedFields:
    venture_id: Any = None
    name: str = ""
    sector: str = ""
    stage: str = ""
    revenue: float = 0.0
    funding_raised: float = 0.0
    team_size: int = 0
    founder_types: tuple[str, ...] = ()
    gedsi_goals: tuple[str, ...] = ()
    operational: ChecklistStatus = field(default_factory=lambda: ChecklistStatus(0, 0))
    capital: ChecklistStatus = field(default_factory=lambda: ChecklistStatus(0, 0))
    metrics: tuple[MetricEntry, ...] = ()
    document_count: int = 0
    activity_count: int = 0
    capital_activity_count: int = 0
    analysis: AIAnalysis = field(default_factory=AbsentAnalysis)
    website: str = ""
    pitch_summary: str = ""

    @property
    def founder_tags(self) -> frozenset[str]:
        return frozenset(t.casefold() for t in self.founder_types)

    @property
    def readiness_populated(self) -> bool:
        return self.operational.populated or self.capital.populated


def as_record(record: VentureRecord | Mapping[str, Any]) -> VentureRecord:
    if isinstance(record, VentureRecord):
        return record
    return VentureRecord.model_validate(dict(record))


def _count(record: VentureRecord, direct: Any, key: str) -> int:
    if direct is not None:
        return to_int(direct, key)
    nested = parse_map(record.counts, "_count")
    return to_int(nested.get(key), key)


def normalize_fields(record: VentureRecord | Mapping[str, Any]) -> NormalizedFields:
    """Turn a raw venture record into a closed, typed value. Never raises."""
    record = as_record(record)
    funding = to_float(record.funding_raised, "funding_raised")
    team = to_int(record.team_size, "team_size")
    return NormalizedFields(
        venture_id=record.id,
        name=record.name,
        sector=to_text(record.sector),
        stage=normalize_stage(record.stage),
        revenue=to_float(record.revenue, "revenue"),
        funding_raised=funding,
        team_size=team,
        founder_types=parse_list(record.founder_types, "founder_types"),
        gedsi_goals=parse_list(record.gedsi_goals, "gedsi_goals"),
        operational=parse_checklist(record.operational_readiness, "operational_readiness"),
        capital=parse_checklist(record.capital_readiness, "capital_readiness"),
        metrics=parse_metrics(record.gedsi_metrics),
        document_count=_count(record, record.document_count, "documents"),
        activity_count=_count(record, record.activity_count, "activities"),
        capital_activity_count=_count(record, record.capital_activity_count, "capitalActivities"),
        analysis=resolve_analysis(record.ai_analysis),
        website=to_text(record.website),
        pitch_summary=to_text(record.pitch_summary),
    )
