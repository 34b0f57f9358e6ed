"""Typer CLI entrypoint for placement operations on a JSON state file."""

from __future__ import annotations

import csv
import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, List, NoReturn, Optional

import structlog
import typer

from .config import load_settings
from .container import create_container
from .errors import PlacementError
from .importer import StudentCsvLoader, StudentLoadError
from .logging import configure_logging
from .schemas import Principal
from .service import PlacementService

app = typer.Typer(help="Campus placement eligibility, shortlisting and notification CLI.")

StateOption = typer.Option(..., dir_okay=False, resolve_path=True, help="State JSON path.")
ConfigOption = typer.Option(None, exists=True, readable=True, dir_okay=False, help="YAML config path.")
LogLevelOption = typer.Option("WARNING", help="Log level for structured logging.")


def _service(state: Path, config: Optional[Path], log_level: str) -> PlacementService:
    configure_logging(log_level)
    try:
        settings = load_settings(config)
    except PlacementError as exc:
        raise typer.BadParameter(str(exc), param_hint="config") from exc
    settings["state_path"] = str(state)
    return create_container(settings=settings).service()


def _operator() -> Principal:
    principal = Principal.operator()
    structlog.contextvars.bind_contextvars(principal=principal.user_id)
    return principal


def _echo(payload: Any) -> None:
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def _fail(exc: PlacementError) -> NoReturn:
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(code=1)


@app.command("import-students")
def import_students(
    csv_path: Path = typer.Option(..., "--csv", exists=True, readable=True, dir_okay=False, help="Student CSV path."),
    state: Path = StateOption,
    config: Optional[Path] = ConfigOption,
    log_level: str = LogLevelOption,
) -> None:
    """Upsert students from a CSV export."""
    service = _service(state, config, log_level)
    with csv_path.open("r", encoding="utf-8-sig", newline="") as handle:
        summary = service.import_students(_operator(), csv.DictReader(handle))
    _echo(asdict(summary))


@app.command("submit-form")
def submit_form(
    json_path: Path = typer.Option(..., "--json", exists=True, readable=True, dir_okay=False, help="Form response JSON path."),
    state: Path = StateOption,
    config: Optional[Path] = ConfigOption,
    log_level: str = LogLevelOption,
) -> None:
    """Upsert a student from one registration form response."""
    service = _service(state, config, log_level)
    payload = json.loads(json_path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise typer.BadParameter("Form response must be a JSON object", param_hint="json")
    try:
        student = service.submit_form(_operator(), payload)
    except PlacementError as exc:
        _fail(exc)
    _echo({"usn": student.usn, "name": student.name, "cgpa": student.cgpa, "backlogs": student.backlogs})


@app.command("create-drive")
def create_drive(
    company: str = typer.Option(..., help="Company name."),
    min_cgpa: float = typer.Option(..., help="Minimum CGPA."),
    max_backlogs: int = typer.Option(0, help="Maximum backlogs."),
    branch: List[str] = typer.Option([], help="Eligible branch (repeatable, empty means all)."),
    year: List[int] = typer.Option([], help="Eligible year (repeatable, empty means all)."),
    package: Optional[str] = typer.Option(None, help="Offered package."),
    status: str = typer.Option("upcoming", help="upcoming, active or completed."),
    state: Path = StateOption,
    config: Optional[Path] = ConfigOption,
    log_level: str = LogLevelOption,
) -> None:
    """Register a drive and report how many students qualify."""
    service = _service(state, config, log_level)
    payload = {
        "company_name": company,
        "package": package,
        "status": status,
        "criterion": {
            "min_cgpa": min_cgpa,
            "max_backlogs": max_backlogs,
            "eligible_branches": branch,
            "eligible_years": year,
        },
    }
    try:
        drive = service.create_drive(_operator(), payload)
    except PlacementError as exc:
        _fail(exc)
    _echo({"drive_id": drive.drive_id, "eligible_count": drive.eligible_count})


@app.command()
def eligible(
    usn: str = typer.Option(..., help="Student USN."),
    state: Path = StateOption,
    config: Optional[Path] = ConfigOption,
    log_level: str = LogLevelOption,
) -> None:
    """Show every drive with the student's eligibility verdict and reasons."""
    service = _service(state, config, log_level)
    try:
        rows = service.drives_with_eligibility(usn)
    except PlacementError as exc:
        _fail(exc)
    _echo(
        [
            {
                "drive_id": row.drive.drive_id,
                "company": row.drive.company_name,
                "eligible": row.verdict.eligible,
                "reasons": row.verdict.reasons,
            }
            for row in rows
        ]
    )


@app.command()
def publish(
    drive_id: str = typer.Option(..., help="Drive identifier."),
    state: Path = StateOption,
    config: Optional[Path] = ConfigOption,
    log_level: str = LogLevelOption,
) -> None:
    """Notify the eligible set of a drive."""
    service = _service(state, config, log_level)
    try:
        notifications = service.publish_drive(_operator(), drive_id)
    except PlacementError as exc:
        _fail(exc)
    _echo({"notified": len(notifications)})


@app.command()
def shortlist(
    drive_id: str = typer.Option(..., help="Drive identifier."),
    state: Path = StateOption,
    config: Optional[Path] = ConfigOption,
    log_level: str = LogLevelOption,
) -> None:
    """Rank the eligible set of a drive into tiers."""
    service = _service(state, config, log_level)
    try:
        result = service.shortlist_drive(_operator(), drive_id)
    except PlacementError as exc:
        _fail(exc)
    _echo(asdict(result))


@app.command()
def notifications(
    usn: str = typer.Option(..., help="Student USN."),
    state: Path = StateOption,
    config: Optional[Path] = ConfigOption,
    log_level: str = LogLevelOption,
) -> None:
    """List a student's latest notifications."""
    service = _service(state, config, log_level)
    _echo([item.model_dump(mode="json") for item in service.notifications_for(usn)])


@app.command()
def stats(
    state: Path = StateOption,
    config: Optional[Path] = ConfigOption,
    log_level: str = LogLevelOption,
) -> None:
    """Print dashboard statistics."""
    service = _service(state, config, log_level)
    _echo(service.dashboard_stats())


@app.command("validate-csv")
def validate_csv(
    csv_path: Path = typer.Option(..., "--csv", exists=True, readable=True, dir_okay=False, help="Student CSV path."),
) -> None:
    """Check a student CSV without importing it."""
    loader: StudentCsvLoader = create_container().student_loader()
    try:
        students = loader.load(csv_path)
    except StudentLoadError as exc:
        _echo({"valid": len(exc.partial), "errors": exc.errors})
        raise typer.Exit(code=1)
    _echo({"valid": len(students), "errors": []})


def main() -> None:
    app()


if __name__ == "__main__":
    main()
