from __future__ import annotations

import csv
import json

import pytest
from typer.testing import CliRunner

from venturescore.cli import app
from venturescore.config import get_settings, get_weights
from venturescore.db import init_db, session_scope
from venturescore.models import Venture

runner = CliRunner()


@pytest.fixture()
def project(tmp_path, monkeypatch):
    monkeypatch.setenv("VENTURESCORE_HOME", str(tmp_path))
    get_settings.cache_clear()
    get_weights.cache_clear()
    yield tmp_path
    get_settings.cache_clear()
    get_weights.cache_clear()


@pytest.fixture()
def records_file(project):
    path = project / "ventures.json"
    path.write_text(json.dumps([
        {"id": 1, "name": "Alpha", "sector": "FinTech", "revenue": "50,000", "teamSize": 4, "documentCount": 3},
        {"id": 2, "name": "Beta", "sector": "EdTech", "stage": "SERIES_A", "gedsiGoals": ["OI.1"]},
    ]), encoding="utf-8")
    return path


def _invoke(project, *args: str):
    return runner.invoke(app, ["--project-root", str(project), "--json", *args])


def test_score_single_record(project) -> None:
    path = project / "one.json"
    path.write_text(json.dumps({"name": "Solo", "revenue": 0, "teamSize": 0}), encoding="utf-8")
    result = _invoke(project, "score", str(path))
    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["scores"] == {"gedsi_score": 75, "impact_score": 40, "readiness_score": 30}
    assert payload["insights"]["priority"] == "high"


def test_score_many_records(records_file, project) -> None:
    result = _invoke(project, "score", str(records_file))
    assert result.exit_code == 0, result.output
    rows = json.loads(result.stdout)
    assert [r["name"] for r in rows] == ["Alpha", "Beta"]


def test_score_rich_output(records_file, project) -> None:
    result = runner.invoke(app, ["--project-root", str(project), "score", str(records_file)])
    assert result.exit_code == 0, result.output
    assert "Alpha" in result.output


def test_score_unreadable_file(project) -> None:
    path = project / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    assert _invoke(project, "score", str(path)).exit_code != 0


def test_portfolio(records_file, project) -> None:
    result = _invoke(project, "portfolio", str(records_file))
    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["total_ventures"] == 2
    assert set(payload["by_sector"]) == {"FinTech", "EdTech"}


def test_weights_override(records_file, project) -> None:
    weights = project / "weights.yaml"
    weights.write_text("impact:\n  base: 10\n", encoding="utf-8")
    path = project / "one.json"
    path.write_text(json.dumps({"name": "Solo"}), encoding="utf-8")
    result = runner.invoke(app, ["--project-root", str(project), "--weights", str(weights), "--json", "score", str(path)])
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["scores"]["impact_score"] == 10


def test_invalid_weights_rejected(project) -> None:
    weights = project / "weights.yaml"
    weights.write_text("insights:\n  max_alerts: -1\n", encoding="utf-8")
    path = project / "one.json"
    path.write_text("{}", encoding="utf-8")
    result = runner.invoke(app, ["--project-root", str(project), "--weights", str(weights), "score", str(path)])
    assert result.exit_code != 0


def test_init_db_recalculate_and_export(project) -> None:
    db_path = project / "store.db"
    result = _invoke(project, "init-db", "--db", str(db_path))
    assert result.exit_code == 0, result.output
    assert db_path.exists()

    init_db(db_path)
    with session_scope() as session:
        session.add_all([
            Venture(name="Gamma", sector="CleanTech", stage="SEED", team_size="5", revenue=10_000),
            Venture(name="Delta", sector="FinTech", stage="INTAKE"),
        ])
        session.commit()

    result = _invoke(project, "recalculate", "--db", str(db_path))
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == {"calculated": 2, "failed": 0}

    out = project / "out.csv"
    result = _invoke(project, "export", "--db", str(db_path), "--format", "csv", "--output", str(out))
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["ventures_exported"] == 2
    with out.open(encoding="utf-8", newline="") as f:
        assert [row["name"] for row in csv.DictReader(f)] == ["Gamma", "Delta"]


def test_recalculate_unknown_venture(project) -> None:
    db_path = project / "store.db"
    result = _invoke(project, "recalculate", "--db", str(db_path), "--venture-id", "42")
    assert result.exit_code != 0


def test_export_rejects_unknown_format(project) -> None:
    result = _invoke(project, "export", "--db", str(project / "store.db"), "--format", "xml")
    assert result.exit_code != 0
