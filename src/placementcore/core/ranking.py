"""Tiered ranking of a drive's eligible set."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Literal

from ..schemas import AssessmentScore, Student, Tier


@dataclass
class RankingConfig:
    """Configuration for shortlist scoring."""

    cgpa_weight: float = 10.0
    assessment_weight: float = 30.0
    thresholds: dict[str, float] | None = None
    # "first" keeps the historical rule: the first record with a positive
    # max score is used, not the best one.
    assessment_selection: Literal["first", "best"] = "first"


@dataclass(slots=True)
class RankedStudent:
    student: Student
    score: float
    tier: Tier


class RankingEngine:
    """Score students and bucket them into Best / Better / Average."""

    DEFAULT_THRESHOLDS: dict[str, float] = {
        "Best": 90.0,
        "Better": 70.0,
    }

    def __init__(self, *, config: RankingConfig | None = None) -> None:
        self._config = config or RankingConfig()
        self._thresholds = {**self.DEFAULT_THRESHOLDS, **(self._config.thresholds or {})}

    def rank(self, students: Iterable[Student]) -> list[RankedStudent]:
        """Return students ordered by descending score (stable for ties)."""
        ranked = [
            RankedStudent(student=student, score=score, tier=self.tier_for(score))
            for student, score in ((s, self.score(s)) for s in students)
        ]
        ranked.sort(key=lambda item: item.score, reverse=True)
        return ranked

    def score(self, student: Student) -> float:
        total = (student.cgpa or 0.0) * self._config.cgpa_weight
        record = self.select_assessment(student.assessment_scores)
        if record is not None:
            total += (record.score / record.max_score) * self._config.assessment_weight
        return total

    def tier_for(self, score: float) -> Tier:
        if score >= self._thresholds["Best"]:
            return "Best"
        if score >= self._thresholds["Better"]:
            return "Better"
        return "Average"

    def select_assessment(self, records: list[AssessmentScore]) -> AssessmentScore | None:
        candidates = [record for record in records if record.max_score > 0]
        if not candidates:
            return None
        if self._config.assessment_selection == "best":
            return max(candidates, key=lambda record: record.score / record.max_score)
        return candidates[0]
