"""Eligibility evaluation of students against drive criteria."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterable

from ..schemas import EligibilityCriterion, Student


@dataclass(slots=True)
class EligibilityVerdict:
    """Boolean verdict plus one reason per failed predicate."""

    eligible: bool
    reasons: list[str] = field(default_factory=list)


def format_number(value: float | int) -> str:
    """Render ``9.0`` as ``9`` and ``8.5`` as ``8.5``."""
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return repr(number)


class EligibilityEvaluator:
    """Evaluate every criterion predicate without short-circuiting."""

    method = "eligibility"

    def __init__(self) -> None:
        self._checks: list[Callable[[Student, EligibilityCriterion], str | None]] = [
            self._check_cgpa,
            self._check_backlogs,
            self._check_branch,
            self._check_year,
        ]

    def evaluate(self, student: Student, criterion: EligibilityCriterion) -> EligibilityVerdict:
        reasons = [
            reason
            for reason in (check(student, criterion) for check in self._checks)
            if reason is not None
        ]
        return EligibilityVerdict(eligible=not reasons, reasons=reasons)

    def is_eligible(self, student: Student, criterion: EligibilityCriterion) -> bool:
        return self.evaluate(student, criterion).eligible

    def eligible_set(
        self,
        students: Iterable[Student],
        criterion: EligibilityCriterion,
    ) -> list[Student]:
        return [student for student in students if self.is_eligible(student, criterion)]

    @staticmethod
    def _check_cgpa(student: Student, criterion: EligibilityCriterion) -> str | None:
        required = format_number(criterion.min_cgpa)
        if student.cgpa is None:
            return f"CGPA not recorded (required {required})"
        if student.cgpa < criterion.min_cgpa:
            return f"CGPA {format_number(student.cgpa)} < required {required}"
        return None

    @staticmethod
    def _check_backlogs(student: Student, criterion: EligibilityCriterion) -> str | None:
        if student.backlogs is None:
            return "Backlog count not recorded"
        if student.backlogs > criterion.max_backlogs:
            return f"{student.backlogs} backlog(s) exceed limit of {criterion.max_backlogs}"
        return None

    @staticmethod
    def _check_branch(student: Student, criterion: EligibilityCriterion) -> str | None:
        allowed = criterion.eligible_branches
        if not allowed or (student.branch is not None and student.branch in allowed):
            return None
        branch = student.branch if student.branch is not None else "not recorded"
        return f"Branch {branch} not eligible ({', '.join(allowed)})"

    @staticmethod
    def _check_year(student: Student, criterion: EligibilityCriterion) -> str | None:
        allowed = criterion.eligible_years
        if not allowed or (student.year is not None and student.year in allowed):
            return None
        year = student.year if student.year is not None else "not recorded"
        return f"Year {year} not in eligible years"
