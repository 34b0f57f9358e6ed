"""Company drive schema."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .common import new_id, utcnow

DriveStatus = Literal["upcoming", "active", "completed"]


class EligibilityCriterion(BaseModel):
    """Conjunctive eligibility predicate set for a drive."""

    min_cgpa: float = Field(ge=0, le=10)
    max_backlogs: int = Field(default=0, ge=0)
    eligible_branches: list[str] = Field(default_factory=list)
    eligible_years: list[int] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    @field_validator("eligible_branches")
    @classmethod
    def _drop_blank_branches(cls, value: list[str]) -> list[str]:
        return [branch.strip() for branch in value if branch and branch.strip()]


class Drive(BaseModel):
    """Recruiting event run by a company."""

    drive_id: str = Field(default_factory=new_id)
    company_name: str = Field(min_length=1)
    description: str = ""
    criterion: EligibilityCriterion
    min_assessment_score: float = 0
    drive_date: datetime | None = None
    deadline: datetime | None = None
    package: str | None = None
    location: str | None = None
    status: DriveStatus = "upcoming"
    eligible_count: int = 0
    shortlisted_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(extra="forbid")
