"""Assessment and attempt schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .common import new_id, utcnow

AttemptStatus = Literal["in-progress", "submitted", "malpractice"]


class Question(BaseModel):
    """Multiple-choice question with a single correct option index."""

    question: str = ""
    options: list[str] = Field(default_factory=list)
    correct_answer: int
    marks: int = Field(default=1, ge=1)
    topic: str | None = None

    model_config = ConfigDict(extra="forbid")


class Assessment(BaseModel):
    assessment_id: str = Field(default_factory=new_id)
    title: str = Field(min_length=1)
    type: str = "Mixed"
    categories: list[str] = Field(default_factory=list)
    sub_topics: list[str] = Field(default_factory=list)
    drive_id: str | None = None
    questions: list[Question] = Field(default_factory=list)
    time_limit: int = 30
    total_marks: int = 0
    is_active: bool = False
    ai_generated: bool = False
    created_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _derive_total_marks(self) -> "Assessment":
        self.total_marks = sum(question.marks for question in self.questions)
        return self

    def public_view(self) -> dict[str, Any]:
        """Return the assessment as shown to a student, without answers."""
        return {
            "assessment_id": self.assessment_id,
            "title": self.title,
            "type": self.type,
            "time_limit": self.time_limit,
            "total_marks": self.total_marks,
            "questions": [
                {"question": q.question, "options": q.options, "marks": q.marks}
                for q in self.questions
            ],
        }


class MalpracticeEvent(BaseModel):
    event: str
    timestamp: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(extra="forbid")


class AssessmentAttempt(BaseModel):
    """One student's run through one assessment."""

    attempt_id: str = Field(default_factory=new_id)
    assessment_id: str
    usn: str
    student_name: str | None = None
    status: AttemptStatus = "in-progress"
    started_at: datetime = Field(default_factory=utcnow)
    submitted_at: datetime | None = None
    answers: dict[str, Any] | None = None
    score: int | None = None
    max_score: int | None = None
    warnings: int = 0
    tab_switch_count: int = 0
    malpractice_log: list[MalpracticeEvent] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    @property
    def is_terminal(self) -> bool:
        return self.status != "in-progress"
