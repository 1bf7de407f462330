from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError
from rich.box import ROUNDED
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from venturescore import services
from venturescore.config import DEFAULT_WEIGHTS, ScoringWeights, get_settings, get_weights
from venturescore.db import init_db, session_scope
from venturescore.portfolio import aggregate_portfolio
from venturescore.schemas import VentureRecord

app = typer.Typer(help="Venture scoring and insights: GEDSI, impact and readiness scores")
console = Console()
log = logging.getLogger(__name__)


def _configure_logging(*, verbose: int, json_output: bool) -> None:
    if verbose <= 0:
        level = logging.ERROR
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    handlers: list[logging.Handler]
    if json_output:
        handlers = [logging.StreamHandler()]
        fmt = "%(levelname)s: %(message)s"
    else:
        handlers = [RichHandler(console=console, show_time=False, show_path=False, markup=True)]
        fmt = "%(message)s"

    logging.basicConfig(level=level, format=fmt, handlers=handlers, force=True)


@app.callback()
def app_callback(
    ctx: typer.Context,
    project_root: str | None = typer.Option(
        None,
        "--project-root",
        help="Directory containing config/ and data/.",
    ),
    weights_path: Path | None = typer.Option(
        None,
        "--weights",
        help="YAML file overriding the default scoring weights.",
    ),
    json_output: bool = typer.Option(False, "--json", help="Output raw JSON for scripting."),
    verbose: int = typer.Option(0, "-v", "--verbose", count=True, help="Increase log verbosity."),
) -> None:
    if project_root:
        os.environ["VENTURESCORE_HOME"] = str(Path(project_root).expanduser().resolve())
        get_settings.cache_clear()
        get_weights.cache_clear()
    _configure_logging(verbose=verbose, json_output=json_output)
    ctx.obj = {"json_output": json_output, "verbose": verbose, "weights": _load_weights(weights_path)}


def _load_weights(path: Path | None) -> ScoringWeights:
    if path is not None and not path.exists():
        raise typer.BadParameter(f"Weights file not found: {path}", param_hint="--weights")
    try:
        return get_settings().load_scoring_weights(path) if path else get_weights()
    except ValidationError as exc:
        raise typer.BadParameter(f"Invalid scoring weights: {exc}", param_hint="--weights") from exc


def _wants_json(ctx: typer.Context) -> bool:
    return bool(ctx.obj and ctx.obj.get("json_output"))


def _weights(ctx: typer.Context) -> ScoringWeights:
    return (ctx.obj or {}).get("weights") or DEFAULT_WEIGHTS


def _format_scalar(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.1f}"
    if value is None:
        return "-"
    return str(value)


def _render_table(title: str, rows: list[tuple[str, str]], *, border_style: str = "cyan") -> None:
    table = Table(show_header=True, header_style="bold cyan", box=ROUNDED)
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    for metric, value in rows:
        table.add_row(metric, value)
    console.print(Panel(table, title=title, border_style=border_style))


def _print(title: str, payload: dict[str, Any], ctx: typer.Context) -> None:
    if _wants_json(ctx):
        typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        return

    scalar_rows: list[tuple[str, str]] = []
    nested_rows: list[tuple[str, Any]] = []
    for key, value in payload.items():
        if isinstance(value, (str, int, float, bool)) or value is None:
            scalar_rows.append((key, _format_scalar(value)))
        else:
            nested_rows.append((key, value))

    if scalar_rows:
        _render_table(title, scalar_rows)
    else:
        console.print(Panel(f"[bold]{title}[/bold]", border_style="cyan"))

    for key, value in nested_rows:
        if isinstance(value, dict):
            if not value:
                continue
            _render_table(
                f"{title} · {key}",
                [(k, _format_scalar(v) if not isinstance(v, dict) else _inline(v)) for k, v in value.items()],
                border_style="magenta",
            )
        elif isinstance(value, (list, tuple)):
            _render_table(
                f"{title} · {key}",
                [(str(i + 1), _format_scalar(item)) for i, item in enumerate(value)] or [("-", "none")],
                border_style="yellow",
            )


def _inline(value: dict[str, Any]) -> str:
    return ", ".join(f"{k}={_format_scalar(v)}" for k, v in value.items())


def _render_evaluations(rows: list[dict[str, Any]]) -> None:
    table = Table(show_header=True, header_style="bold cyan", box=ROUNDED)
    for col in ("Venture", "GEDSI", "Impact", "Readiness", "Risk", "Priority", "Next action"):
        table.add_column(col)
    for row in rows:
        scores, insights = row["scores"], row["insights"]
        table.add_row(
            row["name"] or str(row["venture_id"] or "-"),
            str(scores["gedsi_score"]), str(scores["impact_score"]), str(scores["readiness_score"]),
            insights["risk_level"], insights["priority"], insights["next_action"],
        )
    console.print(Panel(table, title="Ventures", border_style="cyan"))


def _read_records(path: Path) -> list[VentureRecord]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise typer.BadParameter(f"Cannot read {path}: {exc}") from exc
    if isinstance(data, dict):
        data = data.get("ventures", [data])
    if not isinstance(data, list):
        raise typer.BadParameter(f"{path} must hold a venture object or a list of them")
    return [VentureRecord.model_validate(item) for item in data if isinstance(item, dict)]


# ---------------------------------------------------------------------------
# Commands: stateless
# ---------------------------------------------------------------------------


@app.command("score")
def score_command(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="JSON file with one venture record or a list of them"),
) -> None:
    """Score venture records from a JSON file."""
    weights = _weights(ctx)
    rows = [services.evaluate(r, weights).as_dict() for r in _read_records(file)]
    if len(rows) == 1:
        _print(f"score · {rows[0]['name'] or 'venture'}", rows[0], ctx)
    elif _wants_json(ctx):
        typer.echo(json.dumps(rows, indent=2, ensure_ascii=False))
    else:
        _render_evaluations(rows)


@app.command("portfolio")
def portfolio_command(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="JSON file with a list of venture records"),
) -> None:
    """Aggregate venture records from a JSON file into a portfolio summary."""
    weights = _weights(ctx)
    records = _read_records(file)
    evaluations = [services.evaluate(r, weights) for r in records]
    summary = aggregate_portfolio(
        [(r, ev.scores) for r, ev in zip(records, evaluations)],
        insights=[ev.insights for ev in evaluations],
        weights=weights,
    )
    _print("portfolio", summary.as_dict(), ctx)


# ---------------------------------------------------------------------------
# Commands: store
# ---------------------------------------------------------------------------


@app.command("init-db")
def init_db_command(
    ctx: typer.Context,
    db: Path | None = typer.Option(None, "--db", help="SQLite file (default: data/venturescore.db)"),
) -> None:
    path = init_db(db)
    _print("init-db", {"status": "ok", "database": str(path)}, ctx)


@app.command("recalculate")
def recalculate_command(
    ctx: typer.Context,
    venture_id: int | None = typer.Option(None, "--venture-id", help="Recalculate a single venture"),
    db: Path | None = typer.Option(None, "--db", help="SQLite file (default: data/venturescore.db)"),
) -> None:
    """Recalculate and snapshot scores for stored ventures."""
    init_db(db)
    with session_scope() as session:
        details = services.recalculate(session, [venture_id] if venture_id is not None else None, _weights(ctx))
    if venture_id is not None and not details["calculated"] and not details["failed"]:
        raise typer.BadParameter(f"No venture with id {venture_id}", param_hint="--venture-id")
    _print("recalculate", details, ctx)


@app.command("export")
def export_command(
    ctx: typer.Context,
    fmt: str = typer.Option("csv", "--format", help="csv or json"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output file (default: data/exports/ventures.<format>)"),
    db: Path | None = typer.Option(None, "--db", help="SQLite file (default: data/venturescore.db)"),
) -> None:
    """Export stored ventures with freshly computed scores."""
    fmt = fmt.strip().lower()
    if fmt not in ("csv", "json"):
        raise typer.BadParameter("format must be csv or json", param_hint="--format")
    init_db(db)
    with session_scope() as session:
        rows = services.export_rows(session, _weights(ctx))
    if output is None:
        output = get_settings().exports_dir / f"ventures.{fmt}"
    output.parent.mkdir(parents=True, exist_ok=True)
    if fmt == "csv":
        output.write_text(services.rows_to_csv(rows), encoding="utf-8", newline="")
    else:
        output.write_text(json.dumps(rows, indent=2, ensure_ascii=False), encoding="utf-8")
    _print("export", {"ventures_exported": len(rows), "format": fmt, "path": str(output)}, ctx)


@app.command("serve")
def serve_command(
    host: str | None = typer.Option(None, help="Bind address (default from settings)"),
    port: int | None = typer.Option(None, help="Port (default from settings)"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run("venturescore.app:app", host=host or settings.host, port=port or settings.port, reload=reload)


if __name__ == "__main__":
    app()
