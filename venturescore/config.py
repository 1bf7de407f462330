from __future__ import annotations

from functools import lru_cache
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, PositiveInt


def _resolve_project_root() -> Path:
    override = os.getenv("VENTURESCORE_HOME", "").strip()
    if override:
        return Path(override).expanduser().resolve()
    return Path.cwd().resolve()


# ---------------------------------------------------------------------------
# Weight tables
# ---------------------------------------------------------------------------


class ImpactWeights(BaseModel):
    base: float = 40.0
    revenue_divisor: float = 100_000.0
    revenue_cap: float = 20.0
    funding_divisor: float = 1_000_000.0
    funding_cap: float = 15.0
    team_cap: float = 10.0
    team_min_size: int = 1
    points_per_goal: float = 3.0
    goals_cap: float = 15.0
    points_per_verified_metric: float = 2.0
    verified_metrics_cap: float = 10.0
    founder_bonuses: dict[str, float] = Field(
        default_factory=lambda: {
            "women-led": 8.0,
            "disability-inclusive": 8.0,
            "rural-focus": 5.0,
            "indigenous-led": 6.0,
            "youth-led": 4.0,
        }
    )
    stage_multipliers: dict[str, float] = Field(
        default_factory=lambda: {
            "FUNDED": 1.2,
            "SERIES_A": 1.3,
            "SERIES_B": 1.4,
            "SERIES_C": 1.5,
            "EXITED": 1.6,
        }
    )


class ReadinessWeights(BaseModel):
    base: float = 30.0
    operational_weight: float = 35.0
    capital_weight: float = 35.0
    revenue_bonus: float = 5.0
    team_bonus: float = 5.0
    team_min_size: int = 3
    website_bonus: float = 3.0
    pitch_bonus: float = 2.0
    pitch_min_length: int = 100
    # (minimum document count, bonus), checked highest first
    document_tiers: list[tuple[int, float]] = Field(default_factory=lambda: [(5, 5.0), (3, 3.0), (1, 1.0)])


class GedsiWeights(BaseModel):
    baseline: float = 75.0
    goal_weight: float = 80.0
    verification_weight: float = 10.0
    founder_bonus_cap: float = 10.0
    founder_bonuses: dict[str, float] = Field(
        default_factory=lambda: {
            "women-led": 4.0,
            "disability-inclusive": 4.0,
            "indigenous-led": 3.0,
            "rural-focus": 2.0,
            "youth-led": 2.0,
        }
    )
    verified_statuses: list[str] = Field(default_factory=lambda: ["COMPLETED", "VERIFIED"])


class InsightRules(BaseModel):
    max_alerts: PositiveInt = 3

    default_priority: str = "medium"
    default_action: str = "Continue monitoring performance"
    default_days: PositiveInt = 30

    ai_urgent_keywords: list[str] = Field(default_factory=lambda: ["high risk", "urgent"])
    ai_urgent_days: PositiveInt = 3
    ai_high_keywords: list[str] = Field(default_factory=lambda: ["medium risk"])
    ai_high_days: PositiveInt = 7

    gedsi_urgent_below: float = 60.0
    gedsi_urgent_action: str = "Improve GEDSI metrics and inclusion practices"
    gedsi_urgent_days: PositiveInt = 7
    gedsi_review_below: float = 75.0
    gedsi_review_action: str = "Review and enhance GEDSI integration"
    gedsi_review_days: PositiveInt = 14
    impact_scaling_above: float = 85.0
    impact_scaling_action: str = "Consider additional investment or expansion support"
    impact_scaling_days: PositiveInt = 14

    min_documents: int = 3
    small_team_below: int = 3

    low_risk_gedsi_above: float = 80.0
    low_risk_impact_above: float = 70.0
    low_risk_min_documents: int = 3
    high_risk_gedsi_below: float = 60.0
    high_risk_impact_below: float = 40.0
    high_risk_documents_below: int = 2


class PortfolioOptions(BaseModel):
    average_digits: int = 1
    portfolio_stages: list[str] = Field(
        default_factory=lambda: [
            "FUNDED", "EXITED", "SEED", "SERIES_A", "SERIES_B", "SERIES_C",
            "INVESTMENT_READY", "DUE_DILIGENCE",
        ]
    )


class ScoringWeights(BaseModel):
    """Every constant the engine uses, passed into the calculators."""

    impact: ImpactWeights = Field(default_factory=ImpactWeights)
    readiness: ReadinessWeights = Field(default_factory=ReadinessWeights)
    gedsi: GedsiWeights = Field(default_factory=GedsiWeights)
    insights: InsightRules = Field(default_factory=InsightRules)
    portfolio: PortfolioOptions = Field(default_factory=PortfolioOptions)


DEFAULT_WEIGHTS = ScoringWeights()


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


class Settings(BaseModel):
    project_root: Path = Field(default_factory=_resolve_project_root)
    data_dir: Path = Field(default_factory=lambda: _resolve_project_root() / "data")
    exports_dir: Path = Field(default_factory=lambda: _resolve_project_root() / "data" / "exports")
    config_dir: Path = Field(default_factory=lambda: _resolve_project_root() / "config")

    database_path: Path = Field(default_factory=lambda: _resolve_project_root() / "data" / "venturescore.db")
    scoring_weights_file: Path = Field(
        default_factory=lambda: _resolve_project_root() / "config" / "scoring_weights.yaml"
    )

    host: str = "127.0.0.1"
    port: int = 8001

    def ensure_directories(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.exports_dir.mkdir(parents=True, exist_ok=True)

    @property
    def database_url(self) -> str:
        return f"sqlite:///{self.database_path}"

    def load_yaml(self, path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            return {}
        return data

    def load_scoring_weights(self, path: Path | None = None) -> ScoringWeights:
        """Defaults overlaid with the YAML file; raises ``pydantic.ValidationError`` on bad values."""
        return ScoringWeights.model_validate(self.load_yaml(path or self.scoring_weights_file))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings = Settings()
    settings.ensure_directories()
    return settings


@lru_cache(maxsize=1)
def get_weights() -> ScoringWeights:
    return get_settings().load_scoring_weights()
