"""CSV and registration-form import of student records."""

from __future__ import annotations

import csv
import re
from pathlib import Path
from typing import Any, Iterable, Mapping

from pydantic import ValidationError as PydanticValidationError

from .schemas import Student

_ALIASES: dict[str, tuple[str, ...]] = {
    "name": ("Name", "name"),
    "usn": ("USN", "usn"),
    "branch": ("Branch", "branch"),
    "year": ("Year", "year"),
    "cgpa": ("CGPA", "cgpa"),
    "backlogs": ("Backlogs", "backlogs"),
    "email": ("Email", "email"),
    "phone": ("Phone", "phone"),
}

DEFAULT_YEAR = 4


class StudentLoadError(ValueError):
    """Raised when student import encounters invalid rows."""

    def __init__(self, errors: list[str], partial: list[Student]):
        super().__init__("Student import failed")
        self.errors = errors
        self.partial = partial

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"Student import failed: {self.errors}"


def _pick(row: Mapping[str, Any], field: str) -> str:
    for alias in _ALIASES[field]:
        value = row.get(alias)
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


def _to_int(raw: str, default: int) -> int:
    try:
        return int(float(raw))
    except ValueError:
        return default


def _to_float(raw: str, default: float) -> float:
    try:
        return float(raw)
    except ValueError:
        return default


def row_to_fields(row: Mapping[str, Any]) -> dict[str, Any]:
    """Map one CSV row onto Student fields, applying import defaults."""
    return {
        "name": _pick(row, "name"),
        "usn": _pick(row, "usn").upper(),
        "branch": _pick(row, "branch") or None,
        "year": _to_int(_pick(row, "year"), DEFAULT_YEAR),
        "cgpa": _to_float(_pick(row, "cgpa"), 0.0),
        "backlogs": _to_int(_pick(row, "backlogs"), 0),
        "email": _pick(row, "email"),
        "phone": _pick(row, "phone"),
    }


class StudentCsvLoader:
    """Parse candidate student field sets from CSV rows."""

    def parse_rows(self, rows: Iterable[Mapping[str, Any]], *, start: int = 2) -> list[Student]:
        students: list[Student] = []
        errors: list[str] = []
        for idx, row in enumerate(rows, start=start):
            fields = row_to_fields(row)
            missing = [name for name in ("name", "usn") if not fields[name]]
            if missing:
                errors.append(f"row {idx}: missing {', '.join(missing)}")
                continue
            try:
                students.append(Student.model_validate(fields))
            except PydanticValidationError as exc:
                errors.append(f"row {idx}: {exc.errors()[0]['msg']}")
        if errors:
            raise StudentLoadError(errors, students)
        return students

    def load(self, path: Path) -> list[Student]:
        with path.open("r", encoding="utf-8-sig", newline="") as handle:
            return self.parse_rows(csv.DictReader(handle))


# normalized form label -> FormProfile field; the first non-blank label wins
_FORM_PROFILE: dict[str, tuple[str, ...]] = {
    "gender": ("gender",),
    "personal_email": ("personal email id",),
    "college_email": ("email",),
    "marks_10th": ("% marks -10th",),
    "board_10th": ("10th board(example: kseeb/cbse/icse)", "10th board"),
    "marks_12th": ("% marks -12th",),
    "board_12th": ("12th board(example: department of pre university/cbse)", "12th board"),
    "diploma_pct": ("diploma %",),
    "diploma_board": ("diploma board (example: board of technical education etc.. )", "diploma board"),
    "present_address": ("present address",),
    "permanent_address": ("permanent address",),
    "aadhar_no": ("aadhar no",),
}

_LEADING_NUMBER = re.compile(r"\s*([+-]?\d+(?:\.\d+)?)")


def _form_key(label: str) -> str:
    return " ".join(label.lower().split())


def _leading_number(raw: str) -> float:
    match = _LEADING_NUMBER.match(raw)
    return float(match.group(1)) if match else 0.0


def form_to_fields(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Map a registration form submission onto Student fields.

    Labels are matched case-insensitively with whitespace collapsed. Only the
    ongoing backlog count feeds ``backlogs``; the history count is kept on the
    profile.
    """
    form = {_form_key(str(key)): "" if value is None else str(value).strip() for key, value in payload.items()}

    def pick(*labels: str) -> str:
        for label in labels:
            if form.get(label):
                return form[label]
        return ""

    profile: dict[str, Any] = {field: pick(*labels) for field, labels in _FORM_PROFILE.items()}
    profile["ongoing_backlogs"] = int(_leading_number(pick("number of on going backlogs", "ongoing backlogs")))
    profile["history_backlogs"] = int(_leading_number(pick("number of history of backlogs", "history backlogs")))

    return {
        "name": pick("full name"),
        "usn": pick("usn").upper(),
        "branch": (pick("branch") or "CSE").upper(),
        "year": DEFAULT_YEAR,
        "cgpa": _leading_number(pick("current cgpa graduation", "cgpa")),
        "backlogs": profile["ongoing_backlogs"],
        "email": profile["college_email"] or profile["personal_email"],
        "phone": pick("mobile number"),
        "profile": profile,
    }
