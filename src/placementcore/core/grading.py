"""Assessment grading and the attempt integrity state machine."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

import structlog

from ..errors import AlreadyCompleted
from ..schemas import Assessment, AssessmentAttempt, MalpracticeEvent, Question
from ..schemas.common import utcnow

_LEADING_INTEGER = re.compile(r"\s*([+-]?\d+)")

Answers = Mapping[Any, Any] | Sequence[Any]


@dataclass(slots=True)
class GradeResult:
    score: int
    total_marks: int
    percentage: int


@dataclass
class AttemptConfig:
    """Configuration for attempt integrity tracking."""

    warning_limit: int = 3
    default_event: str = "Tab switch detected"


class AssessmentGrader:
    """Score submitted answers against an answer key.

    No partial credit and no negative marking: a question scores its full
    marks when the submitted option index equals the correct one, else zero.
    """

    def grade(self, questions: Iterable[Question], answers: Answers | None) -> GradeResult:
        questions = list(questions)
        submitted = self._normalize_answers(answers)
        total_marks = sum(question.marks for question in questions)
        score = sum(
            question.marks
            for index, question in enumerate(questions)
            if self.parse_answer(submitted.get(index)) == question.correct_answer
        )
        return GradeResult(
            score=score,
            total_marks=total_marks,
            percentage=self.percentage(score, total_marks),
        )

    @staticmethod
    def percentage(score: int, total_marks: int) -> int:
        if total_marks <= 0:
            return 0
        # half-up, not banker's rounding
        return math.floor(score / total_marks * 100 + 0.5)

    @staticmethod
    def parse_answer(value: Any) -> int | None:
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return int(value) if math.isfinite(value) else None
        if isinstance(value, str):
            # leading digits count, as in "2" or "2.0" or "2 (b)"
            match = _LEADING_INTEGER.match(value)
            return int(match.group(1)) if match else None
        return None

    @classmethod
    def _normalize_answers(cls, answers: Answers | None) -> dict[int, Any]:
        if answers is None:
            return {}
        if isinstance(answers, Mapping):
            normalized: dict[int, Any] = {}
            for key, value in answers.items():
                index = cls.parse_answer(key)
                if index is not None:
                    normalized[index] = value
            return normalized
        if isinstance(answers, str):
            return {}
        return dict(enumerate(answers))


class AttemptStateMachine:
    """Drive an attempt through in-progress -> submitted | malpractice."""

    def __init__(
        self,
        grader: AssessmentGrader,
        *,
        config: AttemptConfig | None = None,
    ) -> None:
        self._grader = grader
        self._config = config or AttemptConfig()
        self._logger = structlog.get_logger(__name__)

    @property
    def warning_limit(self) -> int:
        return self._config.warning_limit

    def record_warning(self, attempt: AssessmentAttempt, event: str | None = None) -> bool:
        """Count an integrity event; terminal attempts are left untouched."""
        if attempt.is_terminal:
            return False

        attempt.warnings += 1
        attempt.tab_switch_count += 1
        attempt.malpractice_log.append(MalpracticeEvent(event=event or self._config.default_event))

        if attempt.warnings >= self._config.warning_limit:
            attempt.status = "malpractice"
            attempt.submitted_at = utcnow()
            self._logger.warning(
                "attempt.malpractice",
                attempt_id=attempt.attempt_id,
                usn=attempt.usn,
                warnings=attempt.warnings,
            )
        return True

    def submit(
        self,
        attempt: AssessmentAttempt,
        assessment: Assessment,
        answers: Answers | None,
    ) -> GradeResult:
        if attempt.status == "malpractice":
            raise AlreadyCompleted("Attempt was closed for malpractice", record=attempt)
        if attempt.status == "submitted":
            raise AlreadyCompleted("Attempt already submitted", record=attempt)

        result = self._grader.grade(assessment.questions, answers)
        attempt.status = "submitted"
        attempt.submitted_at = utcnow()
        attempt.answers = self._serializable_answers(answers)
        attempt.score = result.score
        attempt.max_score = result.total_marks
        return result

    def replay(self, attempt: AssessmentAttempt) -> GradeResult:
        """Rebuild the result of an already graded attempt."""
        score = attempt.score or 0
        total = attempt.max_score or 0
        return GradeResult(score=score, total_marks=total, percentage=self._grader.percentage(score, total))

    @staticmethod
    def _serializable_answers(answers: Answers | None) -> dict[str, Any] | None:
        if answers is None:
            return None
        if isinstance(answers, Mapping):
            return {str(key): value for key, value in answers.items()}
        return {str(index): value for index, value in enumerate(answers)}
