"""Typer CLI entrypoint for batch screening and workforce tooling."""

from __future__ import annotations

import datetime as dt
import json
from dataclasses import asdict
from pathlib import Path
from typing import List, Optional

import pydantic
import typer

from .batch import AuditLogger
from .config import ConfigManager
from .container import create_container
from .core import topological_order
from .errors import InvalidWorkflowError
from .logging import bind_context, configure_logging
from .schemas import PerformanceMetric, WorkflowTemplate
from .schemas.config import AppConfig, load_config
from .store import PERFORMANCE_METRICS

app = typer.Typer(help="Workforce lifecycle CLI for venue staff.")


def _load_app_config(path: Optional[Path]) -> AppConfig:
    if path is None:
        return AppConfig()
    try:
        return load_config(ConfigManager.load_raw(path))
    except pydantic.ValidationError as exc:
        raise typer.BadParameter(f"Invalid config: {exc}", param_name="config") from exc


def _parse_day(value: Optional[str], name: str) -> Optional[dt.date]:
    if value is None:
        return None
    try:
        return dt.date.fromisoformat(value)
    except ValueError as exc:
        raise typer.BadParameter(f"Expected YYYY-MM-DD, got {value!r}", param_name=name) from exc


@app.command()
def screen(
    posting: Path = typer.Option(..., exists=True, readable=True, dir_okay=False, help="Job posting JSON path."),
    applications: Path = typer.Option(..., exists=True, readable=True, dir_okay=False, help="Applications JSONL path."),
    output: Path = typer.Option(
        ...,
        exists=False,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
        help="Output JSON path.",
    ),
    as_of: Optional[str] = typer.Option(None, help="Reference date (ISO) for age checks."),
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False, help="YAML config path."),
    log_level: Optional[str] = typer.Option(None, help="Log level for structured logging."),
    audit_log: Optional[Path] = typer.Option(
        None, dir_okay=False, help="Audit log output (JSONL); overrides the config file."
    ),
) -> None:
    """Screen every application in a file against one posting."""
    app_config = _load_app_config(config)
    configure_logging(log_level or app_config.logging.level)
    bind_context(command="screen")

    container = create_container(settings=app_config.to_settings())
    batch = container.batch()
    audit_logger = AuditLogger(audit_log) if audit_log else container.audit_logger()

    results = batch.run(
        posting_path=posting,
        applications_path=applications,
        output_path=output,
        as_of=as_of,
        audit_logger=audit_logger,
    )
    passed = sum(1 for entry in results if entry["passed"])
    typer.echo(f"Screened {len(results)} applications ({passed} passed). Results saved to {output}.")


@app.command("validate-template")
def validate_template(
    template: Path = typer.Option(..., exists=True, readable=True, dir_okay=False, help="Workflow template JSON path."),
) -> None:
    """Check a workflow template and print its step order."""
    try:
        with template.open("r", encoding="utf-8") as handle:
            parsed = WorkflowTemplate.model_validate(json.load(handle))
    except (json.JSONDecodeError, pydantic.ValidationError) as exc:
        typer.echo(f"Invalid template: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    try:
        order = topological_order(parsed.steps)
    except InvalidWorkflowError as exc:
        typer.echo(f"Invalid workflow ({exc.reason}): {', '.join(exc.steps)}", err=True)
        raise typer.Exit(code=1) from exc

    for position, step_id in enumerate(order, start=1):
        typer.echo(f"{position}. {step_id}")


@app.command()
def rollup(
    metrics: Path = typer.Option(..., exists=True, readable=True, dir_okay=False, help="Performance metrics JSONL path."),
    staff: Optional[List[str]] = typer.Option(None, "--staff", help="Staff member id; repeat for several."),
    date_from: Optional[str] = typer.Option(None, "--from", help="First period to include (YYYY-MM-DD)."),
    date_to: Optional[str] = typer.Option(None, "--to", help="Last period to include (YYYY-MM-DD)."),
    log_level: str = typer.Option("WARNING", help="Log level for structured logging."),
) -> None:
    """Summarise performance metrics as JSON."""
    configure_logging(log_level)
    bind_context(command="rollup")
    start = _parse_day(date_from, "from")
    end = _parse_day(date_to, "to")

    container = create_container()
    store = container.store()
    with metrics.open("r", encoding="utf-8") as handle:
        for idx, line in enumerate(handle, start=1):
            raw = line.strip()
            if not raw:
                continue
            try:
                store.insert(PERFORMANCE_METRICS, PerformanceMetric.model_validate_json(raw))
            except pydantic.ValidationError as exc:
                typer.echo(f"line {idx}: skipped ({exc.error_count()} errors)", err=True)
            except KeyError as exc:
                typer.echo(f"line {idx}: skipped ({exc})", err=True)

    stats = container.performance_aggregator().rollup(staff or (), start, end)
    typer.echo(json.dumps(asdict(stats), indent=2))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
