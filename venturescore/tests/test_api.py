"""Integration tests for the FastAPI endpoints.

Uses TestClient against an in-memory database shared through StaticPool.
"""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from venturescore.config import get_settings, get_weights
from venturescore.models import Base, GedsiMetric, Venture


@pytest.fixture()
def test_db():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return engine, TestSession


@pytest.fixture()
def client(test_db, tmp_path, monkeypatch):
    """FastAPI TestClient using in-memory database and a throwaway project root."""
    monkeypatch.setenv("VENTURESCORE_HOME", str(tmp_path))
    get_settings.cache_clear()
    get_weights.cache_clear()
    engine, TestSession = test_db
    from venturescore.app import app, db_session

    def override_db_session():
        session = TestSession()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[db_session] = override_db_session
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c, TestSession
    app.dependency_overrides.clear()
    get_settings.cache_clear()
    get_weights.cache_clear()


@pytest.fixture()
def seeded_client(client):
    c, TestSession = client
    session = TestSession()
    venture = Venture(name="Mama Clinic", sector="HealthTech", stage="SEED", team_size="8",
                      revenue=120_000, document_count=4, capital_activity_count=1)
    venture.metrics.append(GedsiMetric(metric_code="OI.1", category="GENDER", status="VERIFIED"))
    session.add(venture)
    session.commit()
    venture_id = venture.id
    session.close()
    return c, TestSession, venture_id


class TestStatelessScoring:
    def test_score_camel_case_record(self, client):
        c, _ = client
        resp = c.post("/api/score", json={
            "name": "Big",
            "stage": "SERIES_B",
            "revenue": "1,000,000",
            "fundingRaised": 2_000_000,
            "teamSize": 15,
            "founderTypes": '["women-led", "disability-inclusive"]',
            "gedsiMetrics": [{"metricCode": f"OI.{i}", "status": "VERIFIED"} for i in range(5)],
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["scores"]["impact_score"] == 100
        assert data["insights"]["priority"] in ("urgent", "high", "medium", "low")
        assert "total_beneficiaries" in data["estimates"]
        assert data["gedsi_label"]

    def test_score_garbage_record(self, client):
        c, _ = client
        resp = c.post("/api/score", json={"revenue": "abc", "teamSize": None, "aiAnalysis": "{{"})
        assert resp.status_code == 200
        scores = resp.json()["scores"]
        assert scores == {"gedsi_score": 75, "impact_score": 40, "readiness_score": 30}

    def test_score_oversized_team_size(self, client):
        c, _ = client
        resp = c.post("/api/score", json={"name": "Huge", "teamSize": "1e308"})
        assert resp.status_code == 200
        assert resp.json()["estimates"]["jobs_created"] > 0

    def test_aggregate_extreme_revenue(self, client):
        c, _ = client
        resp = c.post("/api/portfolio/aggregate", json=[{"revenue": 1e308}, {"revenue": 1e308}])
        assert resp.status_code == 200
        assert resp.json()["total_revenue"] is not None

    def test_aggregate_empty(self, client):
        c, _ = client
        resp = c.post("/api/portfolio/aggregate", json=[])
        assert resp.status_code == 200
        assert resp.json()["total_ventures"] == 0
        assert resp.json()["average_gedsi_score"] == 0.0

    def test_aggregate_records(self, client):
        c, _ = client
        resp = c.post("/api/portfolio/aggregate", json=[
            {"name": "A", "sector": "FinTech", "documentCount": 2},
            {"name": "B", "sector": "FinTech", "_count": {"documents": 3}},
        ])
        data = resp.json()
        assert data["total_ventures"] == 2
        assert data["total_documents"] == 5
        assert data["by_sector"]["FinTech"]["count"] == 2
        assert sum(data["by_priority"].values()) == 2


class TestVentureEndpoints:
    def test_list_ventures(self, seeded_client):
        c, _, _ = seeded_client
        resp = c.get("/api/ventures")
        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] == 1
        item = data["items"][0]
        for key in ("gedsi_score", "impact_score", "readiness_score", "risk_level", "priority", "alerts"):
            assert key in item

    def test_list_filters(self, seeded_client):
        c, _, _ = seeded_client
        assert c.get("/api/ventures", params={"sector": "fintech"}).json()["total"] == 0
        assert c.get("/api/ventures", params={"sector": "healthtech,fintech"}).json()["total"] == 1

    def test_create_and_get(self, client):
        c, _ = client
        resp = c.post("/api/ventures", json={
            "name": "Agri Hub", "sector": "Agriculture", "stage": "seed",
            "founder_types": ["rural-focus"], "gedsi_goals": ["OI.4"],
            "operational_readiness": {"plan": True, "hr": False},
        })
        assert resp.status_code == 201
        created = resp.json()
        assert created["stage"] == "SEED"
        assert created["founder_types"] == ["rural-focus"]
        assert created["gedsi_metrics"] == []
        fetched = c.get(f"/api/ventures/{created['id']}").json()
        assert fetched["readiness_score"] == created["readiness_score"]

    def test_create_rejects_unknown_stage(self, client):
        c, _ = client
        assert c.post("/api/ventures", json={"name": "X", "stage": "MOON"}).status_code == 422

    def test_get_404(self, client):
        c, _ = client
        assert c.get("/api/ventures/9999").status_code == 404

    def test_update(self, seeded_client):
        c, _, venture_id = seeded_client
        resp = c.put(f"/api/ventures/{venture_id}", json={"sector": "FinTech", "capital_readiness": {"deck": True}})
        assert resp.status_code == 200
        data = resp.json()
        assert data["sector"] == "FinTech"
        assert data["capital_readiness"] == {"deck": True}

    def test_add_metric(self, seeded_client):
        c, _, venture_id = seeded_client
        resp = c.post(f"/api/ventures/{venture_id}/metrics", json={
            "metric_code": "OI.2", "category": "disability", "status": "in_progress",
        })
        assert resp.status_code == 201
        assert resp.json()["status"] == "IN_PROGRESS"
        detail = c.get(f"/api/ventures/{venture_id}").json()
        assert detail["gedsi_metric_count"] == 2

    def test_add_metric_rejects_bad_status(self, seeded_client):
        c, _, venture_id = seeded_client
        resp = c.post(f"/api/ventures/{venture_id}/metrics", json={"metric_code": "OI.2", "status": "DONE"})
        assert resp.status_code == 422

    def test_delete(self, seeded_client):
        c, _, venture_id = seeded_client
        assert c.delete(f"/api/ventures/{venture_id}").json() == {"ok": True}
        assert c.get(f"/api/ventures/{venture_id}").status_code == 404


class TestCalculations:
    def test_recalculate_all_and_snapshot(self, seeded_client):
        c, _, venture_id = seeded_client
        resp = c.post("/api/calculations", json={})
        assert resp.status_code == 200
        assert resp.json() == {"calculated": 1, "failed": 0}
        assert c.get(f"/api/ventures/{venture_id}").json()["calculated_at"] is not None

    def test_recalculate_one(self, seeded_client):
        c, _, venture_id = seeded_client
        assert c.post("/api/calculations", json={"venture_id": venture_id}).json()["calculated"] == 1

    def test_recalculate_unknown(self, client):
        c, _ = client
        assert c.post("/api/calculations", json={"venture_id": 9999}).status_code == 404

    def test_clear_snapshots(self, seeded_client):
        c, _, venture_id = seeded_client
        c.post("/api/calculations", json={})
        assert c.delete("/api/calculations").json() == {"ok": True}
        assert c.get(f"/api/ventures/{venture_id}").json()["calculated_at"] is None

    def test_portfolio_summary(self, seeded_client):
        c, _, _ = seeded_client
        data = c.get("/api/calculations/portfolio").json()
        assert data["total_ventures"] == 1
        assert data["verified_gedsi_metrics"] == 1
        assert data["by_category"]["GENDER"]["completion_rate"] == 100.0


class TestExport:
    def test_csv(self, seeded_client):
        c, _, _ = seeded_client
        resp = c.get("/api/export", params={"format": "csv"})
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        assert resp.text.splitlines()[0].startswith("id,name,sector")

    def test_json(self, seeded_client):
        c, _, _ = seeded_client
        rows = c.get("/api/export").json()
        assert rows[0]["name"] == "Mama Clinic"

    def test_bad_format(self, client):
        c, _ = client
        assert c.get("/api/export", params={"format": "xml"}).status_code == 400


class TestDependencies:
    def test_db_session_uses_store_sessions(self, tmp_path):
        from sqlalchemy import select

        from venturescore.app import db_session
        from venturescore.db import init_db

        init_db(tmp_path / "deps.db")
        gen = db_session()
        session = next(gen)
        assert session.execute(select(1)).scalar() == 1
        gen.close()
