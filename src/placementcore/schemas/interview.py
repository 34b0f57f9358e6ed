"""Interview slot schema."""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .common import new_id, utcnow

InterviewMode = Literal["online", "offline", "hybrid"]
SlotStatus = Literal["scheduled", "completed", "cancelled"]

_CLOCK = r"^([01]\d|2[0-3]):[0-5]\d$"


class InterviewSlot(BaseModel):
    slot_id: str = Field(default_factory=new_id)
    drive_id: str
    drive_name: str = ""
    usn: str = Field(min_length=1)
    student_name: str = Field(min_length=1)
    student_email: str = ""
    interview_date: date
    start_time: str = Field(pattern=_CLOCK)
    end_time: str = Field(pattern=_CLOCK)
    mode: InterviewMode = "online"
    location: str = ""
    notes: str = ""
    status: SlotStatus = "scheduled"
    created_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _check_range(self) -> "InterviewSlot":
        self.usn = self.usn.strip().upper()
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self
