"""Pydantic request/response schemas for venturescore."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

VENTURE_STAGES = (
    "INTAKE", "SCREENING", "DUE_DILIGENCE", "INVESTMENT_READY", "SEED",
    "SERIES_A", "SERIES_B", "SERIES_C", "FUNDED", "EXITED",
)
METRIC_STATUSES = ("NOT_STARTED", "IN_PROGRESS", "COMPLETED", "VERIFIED")
METRIC_CATEGORIES = ("GENDER", "DISABILITY", "SOCIAL_INCLUSION", "CROSS_CUTTING")


class VentureRecord(BaseModel):
    """A venture snapshot as the store hands it over.

    Raw fields are typed ``Any`` on purpose: numbers may arrive as strings,
    arrays and maps as JSON text, and anything may be missing. The engine
    normalizes them; it never mutates the record.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: Any = None
    name: str = ""
    sector: Any = None
    stage: Any = None
    location: Any = None
    status: Any = None
    revenue: Any = None
    funding_raised: Any = Field(default=None, alias="fundingRaised")
    team_size: Any = Field(default=None, alias="teamSize")
    founder_types: Any = Field(default=None, alias="founderTypes")
    gedsi_goals: Any = Field(default=None, alias="gedsiGoals")
    operational_readiness: Any = Field(default=None, alias="operationalReadiness")
    capital_readiness: Any = Field(default=None, alias="capitalReadiness")
    gedsi_metrics: Any = Field(default=None, alias="gedsiMetrics")
    document_count: Any = Field(default=None, alias="documentCount")
    activity_count: Any = Field(default=None, alias="activityCount")
    capital_activity_count: Any = Field(default=None, alias="capitalActivityCount")
    counts: Any = Field(default=None, alias="_count")
    ai_analysis: Any = Field(default=None, alias="aiAnalysis")
    website: Any = None
    pitch_summary: Any = Field(default=None, alias="pitchSummary")
    inclusion_focus: Any = Field(default=None, alias="inclusionFocus")

    @field_validator("name", mode="before")
    @classmethod
    def name_to_str(cls, v: Any) -> str:
        return "" if v is None else str(v)


# ---------------------------------------------------------------------------
# Engine output
# ---------------------------------------------------------------------------


class ScoreOut(BaseModel):
    gedsi_score: int
    impact_score: int
    readiness_score: int


class InsightOut(BaseModel):
    risk_level: str
    priority: str
    next_action: str
    days_until_action: int
    alerts: list[str] = []


class EstimateOut(BaseModel):
    total_beneficiaries: int
    jobs_created: int
    women_empowered: int
    disability_inclusive: int
    youth_engaged: int
    gedsi_compliance_rate: int


class EvaluationOut(BaseModel):
    venture_id: Any = None
    name: str = ""
    scores: ScoreOut
    insights: InsightOut
    estimates: EstimateOut
    gedsi_label: str


class GroupBreakdownOut(BaseModel):
    count: int
    average_gedsi: float
    average_impact: float
    average_readiness: float
    metrics_total: int
    metrics_verified: int
    completion_rate: float


class CategoryBreakdownOut(BaseModel):
    total: int
    verified: int
    completion_rate: float


class PortfolioOut(BaseModel):
    total_ventures: int
    average_gedsi_score: float
    average_impact_score: float
    average_readiness_score: float
    total_gedsi_metrics: int
    verified_gedsi_metrics: int
    metrics_completion_rate: float
    average_compliance_rate: float
    total_documents: int
    total_activities: int
    total_capital_activities: int
    total_revenue: float
    total_funding_raised: float
    total_beneficiaries: int
    total_jobs_created: int
    total_women_empowered: int
    total_disability_inclusive: int
    total_youth_engaged: int
    by_sector: dict[str, GroupBreakdownOut] = {}
    by_stage: dict[str, GroupBreakdownOut] = {}
    by_category: dict[str, CategoryBreakdownOut] = {}
    by_priority: dict[str, int] = {}
    by_risk_level: dict[str, int] = {}


# ---------------------------------------------------------------------------
# Store CRUD
# ---------------------------------------------------------------------------


class GedsiMetricIn(BaseModel):
    metric_code: str
    metric_name: str = ""
    category: str = "CROSS_CUTTING"
    status: str = "NOT_STARTED"
    current_value: float | None = None
    target_value: float | None = None
    unit: str = ""

    @field_validator("status")
    @classmethod
    def status_must_be_known(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in METRIC_STATUSES:
            raise ValueError(f"status must be one of {', '.join(METRIC_STATUSES)}")
        return v

    @field_validator("category")
    @classmethod
    def category_must_be_known(cls, v: str) -> str:
        v = v.strip().upper().replace(" ", "_").replace("-", "_")
        if v not in METRIC_CATEGORIES:
            raise ValueError(f"category must be one of {', '.join(METRIC_CATEGORIES)}")
        return v


class GedsiMetricOut(GedsiMetricIn):
    id: int


class VentureCreate(BaseModel):
    name: str
    sector: str = ""
    stage: str = "INTAKE"
    location: str = ""
    status: str = "ACTIVE"
    revenue: float | None = None
    funding_raised: float | None = None
    team_size: str = ""
    founder_types: list[str] = []
    gedsi_goals: list[str] = []
    operational_readiness: dict[str, bool] = {}
    capital_readiness: dict[str, bool] = {}
    ai_analysis: dict[str, Any] | None = None
    website: str = ""
    pitch_summary: str = ""
    inclusion_focus: str = ""
    document_count: int = 0
    activity_count: int = 0
    capital_activity_count: int = 0

    @field_validator("stage")
    @classmethod
    def stage_must_be_known(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in VENTURE_STAGES:
            raise ValueError(f"stage must be one of {', '.join(VENTURE_STAGES)}")
        return v


class VentureUpdate(BaseModel):
    name: str | None = None
    sector: str | None = None
    stage: str | None = None
    location: str | None = None
    status: str | None = None
    revenue: float | None = None
    funding_raised: float | None = None
    team_size: str | None = None
    founder_types: list[str] | None = None
    gedsi_goals: list[str] | None = None
    operational_readiness: dict[str, bool] | None = None
    capital_readiness: dict[str, bool] | None = None
    ai_analysis: dict[str, Any] | None = None
    website: str | None = None
    pitch_summary: str | None = None
    inclusion_focus: str | None = None
    document_count: int | None = None
    activity_count: int | None = None
    capital_activity_count: int | None = None

    @field_validator("stage")
    @classmethod
    def stage_must_be_known(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip().upper()
        if v not in VENTURE_STAGES:
            raise ValueError(f"stage must be one of {', '.join(VENTURE_STAGES)}")
        return v


class VentureOut(BaseModel):
    id: int
    name: str
    sector: str
    stage: str
    location: str
    status: str
    founder_types: list[str] = []
    gedsi_metric_count: int = 0
    document_count: int = 0
    activity_count: int = 0
    gedsi_score: int
    impact_score: int
    readiness_score: int
    risk_level: str
    priority: str
    next_action: str
    days_until_action: int
    alerts: list[str] = []
    calculated_at: str | None = None


class VentureDetail(VentureOut):
    revenue: float | None = None
    funding_raised: float | None = None
    team_size: str = ""
    gedsi_goals: list[str] = []
    operational_readiness: dict[str, Any] = {}
    capital_readiness: dict[str, Any] = {}
    ai_analysis: dict[str, Any] | None = None
    website: str = ""
    pitch_summary: str = ""
    inclusion_focus: str = ""
    capital_activity_count: int = 0
    gedsi_metrics: list[GedsiMetricOut] = []
    estimates: EstimateOut
    gedsi_label: str = ""


class RecalculateRequest(BaseModel):
    venture_id: int | None = None
