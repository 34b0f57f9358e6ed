"""Core placement engine components."""

from __future__ import annotations

from .eligibility import EligibilityEvaluator, EligibilityVerdict, format_number
from .grading import (
    AssessmentGrader,
    AttemptConfig,
    AttemptStateMachine,
    GradeResult,
)
from .notifications import (
    NotificationConfig,
    NotificationDispatcher,
    NotificationRequest,
)
from .ranking import RankedStudent, RankingConfig, RankingEngine

__all__ = [
    "AssessmentGrader",
    "AttemptConfig",
    "AttemptStateMachine",
    "EligibilityEvaluator",
    "EligibilityVerdict",
    "GradeResult",
    "NotificationConfig",
    "NotificationDispatcher",
    "NotificationRequest",
    "RankedStudent",
    "RankingConfig",
    "RankingEngine",
    "format_number",
]
