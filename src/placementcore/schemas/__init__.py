"""Pydantic schema definitions for placement records."""

from __future__ import annotations

from .alumni import AlumniGroup, GroupMember, GroupMessage, GroupSection
from .assessment import (
    Assessment,
    AssessmentAttempt,
    AttemptStatus,
    MalpracticeEvent,
    Question,
)
from .drive import Drive, DriveStatus, EligibilityCriterion
from .interview import InterviewMode, InterviewSlot
from .notification import Notification, NotificationCategory
from .principal import Principal
from .student import (
    ApplicationStatus,
    AssessmentScore,
    DriveApplication,
    FormProfile,
    Student,
    Tier,
)

__all__ = [
    "AlumniGroup",
    "ApplicationStatus",
    "Assessment",
    "AssessmentAttempt",
    "AssessmentScore",
    "AttemptStatus",
    "Drive",
    "DriveApplication",
    "DriveStatus",
    "EligibilityCriterion",
    "FormProfile",
    "GroupMember",
    "GroupMessage",
    "GroupSection",
    "InterviewMode",
    "InterviewSlot",
    "MalpracticeEvent",
    "Notification",
    "NotificationCategory",
    "Principal",
    "Question",
    "Student",
    "Tier",
]
