"""Student directory records."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..errors import InvalidTransition
from .common import utcnow

ApplicationStatus = Literal["eligible", "applied", "shortlisted", "selected", "rejected"]
Tier = Literal["Best", "Better", "Average"]

# selected and rejected share a rank: both are terminal.
_STATUS_RANK: dict[str, int] = {
    "eligible": 0,
    "applied": 1,
    "shortlisted": 2,
    "selected": 3,
    "rejected": 3,
}


class AssessmentScore(BaseModel):
    """Score appended to a student profile after a graded submission."""

    assessment_id: str
    score: int
    max_score: int
    submitted_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(extra="forbid")


class DriveApplication(BaseModel):
    """Per-drive application record."""

    drive_id: str
    status: ApplicationStatus = "eligible"
    ranking: Tier | None = None

    model_config = ConfigDict(extra="forbid")


class FormProfile(BaseModel):
    """Extended profile captured by the registration form."""

    gender: str = ""
    personal_email: str = ""
    college_email: str = ""
    marks_10th: str = ""
    board_10th: str = ""
    marks_12th: str = ""
    board_12th: str = ""
    diploma_pct: str = ""
    diploma_board: str = ""
    ongoing_backlogs: int = Field(default=0, ge=0)
    history_backlogs: int = Field(default=0, ge=0)
    present_address: str = ""
    permanent_address: str = ""
    aadhar_no: str = ""

    model_config = ConfigDict(extra="forbid")


class Student(BaseModel):
    """A registered student.

    Academic fields are optional so that incomplete records can be stored;
    the eligibility evaluator treats missing numbers as failing.
    """

    usn: str = Field(min_length=1)
    name: str = Field(min_length=1)
    branch: str | None = None
    year: int | None = None
    cgpa: float | None = Field(default=None, ge=0, le=10)
    backlogs: int | None = Field(default=None, ge=0)
    email: str = ""
    phone: str = ""
    interested_companies: list[str] = Field(default_factory=list)
    profile: FormProfile | None = None
    assessment_scores: list[AssessmentScore] = Field(default_factory=list)
    drive_applications: list[DriveApplication] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(extra="forbid")

    @field_validator("usn")
    @classmethod
    def _normalize_usn(cls, value: str) -> str:
        normalized = value.strip().upper()
        if not normalized:
            raise ValueError("usn must not be blank")
        return normalized

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("name must not be blank")
        return stripped

    def application_for(self, drive_id: str) -> DriveApplication | None:
        for application in self.drive_applications:
            if application.drive_id == drive_id:
                return application
        return None

    def ensure_application(self, drive_id: str) -> bool:
        """Add an ``eligible`` application for the drive unless one exists."""
        if self.application_for(drive_id) is not None:
            return False
        self.drive_applications.append(DriveApplication(drive_id=drive_id))
        return True

    def set_application_status(
        self,
        drive_id: str,
        status: ApplicationStatus,
        *,
        ranking: Tier | None = None,
    ) -> bool:
        """Move the drive application forward, returning whether anything changed.

        Raises InvalidTransition for any backwards or terminal-to-terminal move
        and for selecting an application that was never shortlisted.
        """
        self.ensure_application(drive_id)
        application = self.application_for(drive_id)
        assert application is not None

        if application.status == status:
            if ranking is not None and application.ranking != ranking:
                application.ranking = ranking
                return True
            return False

        if _STATUS_RANK[status] <= _STATUS_RANK[application.status]:
            raise InvalidTransition(application.status, status)
        # only a shortlisted application can be selected
        if status == "selected" and application.status != "shortlisted":
            raise InvalidTransition(application.status, status)

        application.status = status
        if ranking is not None:
            application.ranking = ranking
        return True

    def score_for(self, assessment_id: str) -> AssessmentScore | None:
        for record in self.assessment_scores:
            if record.assessment_id == assessment_id:
                return record
        return None

    def record_score(self, record: AssessmentScore) -> bool:
        """Append the score unless the assessment is already recorded."""
        if self.score_for(record.assessment_id) is not None:
            return False
        self.assessment_scores.append(record)
        return True
