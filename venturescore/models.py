from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class Venture(Base):
    __tablename__ = "ventures"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    sector: Mapped[str] = mapped_column(String(200), default="")
    stage: Mapped[str] = mapped_column(String(50), default="INTAKE")
    location: Mapped[str] = mapped_column(String(200), default="")
    status: Mapped[str] = mapped_column(String(50), default="ACTIVE")
    revenue: Mapped[float | None] = mapped_column(Float, nullable=True)
    funding_raised: Mapped[float | None] = mapped_column(Float, nullable=True)
    team_size: Mapped[str] = mapped_column(String(50), default="")
    founder_types_json: Mapped[str] = mapped_column(Text, default="[]")
    gedsi_goals_json: Mapped[str] = mapped_column(Text, default="[]")
    operational_readiness_json: Mapped[str] = mapped_column(Text, default="{}")
    capital_readiness_json: Mapped[str] = mapped_column(Text, default="{}")
    ai_analysis_json: Mapped[str] = mapped_column(Text, default="")
    website: Mapped[str] = mapped_column(String(500), default="")
    pitch_summary: Mapped[str] = mapped_column(Text, default="")
    inclusion_focus: Mapped[str] = mapped_column(Text, default="")
    document_count: Mapped[int] = mapped_column(Integer, default=0)
    activity_count: Mapped[int] = mapped_column(Integer, default=0)
    capital_activity_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    metrics: Mapped[list[GedsiMetric]] = relationship(
        "GedsiMetric", back_populates="venture", cascade="all, delete-orphan", order_by="GedsiMetric.id",
    )
    scores: Mapped[list[VentureScore]] = relationship(
        "VentureScore", back_populates="venture", cascade="all, delete-orphan",
    )


class GedsiMetric(Base):
    __tablename__ = "gedsi_metrics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    venture_id: Mapped[int] = mapped_column(Integer, ForeignKey("ventures.id"), nullable=False)
    metric_code: Mapped[str] = mapped_column(String(50), nullable=False)  # IRIS+ code, e.g. "OI.1"
    metric_name: Mapped[str] = mapped_column(String(300), default="")
    category: Mapped[str] = mapped_column(String(50), default="CROSS_CUTTING")
    status: Mapped[str] = mapped_column(String(30), default="NOT_STARTED")
    current_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    target_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    unit: Mapped[str] = mapped_column(String(50), default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    venture: Mapped[Venture] = relationship("Venture", back_populates="metrics")


class VentureScore(Base):
    """Snapshot written by an explicit recalculation; one per venture."""

    __tablename__ = "venture_scores"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    venture_id: Mapped[int] = mapped_column(Integer, ForeignKey("ventures.id"), nullable=False)
    gedsi_score: Mapped[int] = mapped_column(Integer, default=0)
    impact_score: Mapped[int] = mapped_column(Integer, default=0)
    readiness_score: Mapped[int] = mapped_column(Integer, default=0)
    risk_level: Mapped[str] = mapped_column(String(20), default="medium")  # low | medium | high
    priority: Mapped[str] = mapped_column(String(20), default="medium")  # urgent | high | medium | low
    next_action: Mapped[str] = mapped_column(Text, default="")
    days_until_action: Mapped[int] = mapped_column(Integer, default=30)
    alerts_json: Mapped[str] = mapped_column(Text, default="[]")
    estimates_json: Mapped[str] = mapped_column(Text, default="{}")
    calculated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    venture: Mapped[Venture] = relationship("Venture", back_populates="scores")
