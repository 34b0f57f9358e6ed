from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from placementcore.cli import app


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def write_csv(path: Path) -> None:
    path.write_text(
        "Name,USN,Branch,Year,CGPA,Backlogs\n"
        "Asha Rao,1rv20cs001,CSE,4,9.4,0\n"
        "Ravi Kumar,1rv20cs002,CSE,4,7.2,0\n"
        "Meera S,1rv20me003,ME,4,8.8,2\n"
        ",1rv20cs004,CSE,4,8.0,0\n",
        encoding="utf-8",
    )


def invoke(runner: CliRunner, *args: str):
    result = runner.invoke(app, list(args))
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


def test_cli_import_publish_and_shortlist(tmp_path: Path, runner: CliRunner) -> None:
    csv_path = tmp_path / "students.csv"
    state = tmp_path / "state.json"
    write_csv(csv_path)

    summary = invoke(runner, "import-students", "--csv", str(csv_path), "--state", str(state))
    assert summary["added"] == 3
    assert summary["skipped"] == 1

    created = invoke(
        runner,
        "create-drive",
        "--company", "Acme",
        "--min-cgpa", "7",
        "--branch", "CSE",
        "--branch", "ISE",
        "--year", "4",
        "--state", str(state),
    )
    assert created["eligible_count"] == 2
    drive_id = created["drive_id"]

    published = invoke(runner, "publish", "--drive-id", drive_id, "--state", str(state))
    assert published == {"notified": 2}

    first = invoke(runner, "shortlist", "--drive-id", drive_id, "--state", str(state))
    second = invoke(runner, "shortlist", "--drive-id", drive_id, "--state", str(state))
    assert [(e["usn"], e["tier"]) for e in first["shortlisted"]] == [
        ("1RV20CS001", "Best"),
        ("1RV20CS002", "Better"),
    ]
    assert first["notified"] == 2
    assert second["notified"] == 0

    feed = invoke(runner, "notifications", "--usn", "1rv20cs001", "--state", str(state))
    assert sorted(n["category"] for n in feed) == ["drive", "shortlist"]

    verdicts = invoke(runner, "eligible", "--usn", "1RV20ME003", "--state", str(state))
    assert verdicts[0]["eligible"] is False
    assert verdicts[0]["reasons"] == [
        "2 backlog(s) exceed limit of 0",
        "Branch ME not eligible (CSE, ISE)",
    ]

    stats = invoke(runner, "stats", "--state", str(state))
    assert stats["total_students"] == 3
    assert stats["shortlisted_students"] == 2


def test_cli_reports_unknown_drive(tmp_path: Path, runner: CliRunner) -> None:
    result = runner.invoke(app, ["publish", "--drive-id", "missing", "--state", str(tmp_path / "state.json")])

    assert result.exit_code == 1
    assert "Drive not found" in result.output


def test_cli_uses_yaml_config(tmp_path: Path, runner: CliRunner) -> None:
    csv_path = tmp_path / "students.csv"
    state = tmp_path / "state.json"
    config = tmp_path / "placement.yaml"
    write_csv(csv_path)
    config.write_text("ranking:\n  thresholds:\n    Best: 99\n", encoding="utf-8")

    invoke(runner, "import-students", "--csv", str(csv_path), "--state", str(state))
    created = invoke(runner, "create-drive", "--company", "Acme", "--min-cgpa", "7", "--state", str(state))
    result = invoke(
        runner, "shortlist", "--drive-id", created["drive_id"], "--state", str(state), "--config", str(config)
    )

    assert {e["usn"]: e["tier"] for e in result["shortlisted"]}["1RV20CS001"] == "Better"


def test_cli_validate_csv_lists_errors(tmp_path: Path, runner: CliRunner) -> None:
    csv_path = tmp_path / "students.csv"
    write_csv(csv_path)

    result = runner.invoke(app, ["validate-csv", "--csv", str(csv_path)])

    assert result.exit_code == 1
    payload = json.loads(result.stdout)
    assert payload == {"valid": 3, "errors": ["row 5: missing name"]}


def test_cli_rejects_invalid_config(tmp_path: Path, runner: CliRunner) -> None:
    config = tmp_path / "placement.yaml"
    config.write_text("grading:\n  warning_limit: 0\n", encoding="utf-8")

    result = runner.invoke(app, ["stats", "--state", str(tmp_path / "state.json"), "--config", str(config)])

    assert result.exit_code == 2
    assert "warning_limit" in result.output


def test_cli_submit_form_persists_student(tmp_path: Path, runner: CliRunner) -> None:
    state = tmp_path / "state.json"
    form = tmp_path / "form.json"
    form.write_text(
        json.dumps({"Full Name": "Asha Rao", "USN": "1rv20cs001", "CGPA": "9.2", "Number of On going Backlogs": "1"}),
        encoding="utf-8",
    )

    saved = invoke(runner, "submit-form", "--json", str(form), "--state", str(state))
    stats = invoke(runner, "stats", "--state", str(state))

    assert saved == {"usn": "1RV20CS001", "name": "Asha Rao", "cgpa": 9.2, "backlogs": 1}
    assert stats["total_students"] == 1
