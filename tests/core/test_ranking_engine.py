from __future__ import annotations

from typing import Any

import pytest

from placementcore.core import RankingConfig, RankingEngine
from placementcore.schemas import AssessmentScore, Student


def build_student(usn: str, cgpa: float, scores: list[tuple[int, int]] | None = None) -> Student:
    records: list[dict[str, Any]] = [
        {"assessment_id": f"A-{idx}", "score": score, "max_score": max_score}
        for idx, (score, max_score) in enumerate(scores or [])
    ]
    return Student(usn=usn, name=usn, branch="CSE", year=4, cgpa=cgpa, backlogs=0, assessment_scores=records)


def test_score_combines_cgpa_and_first_assessment():
    engine = RankingEngine()
    student = build_student("S1", 8.0, [(0, 0), (15, 20), (20, 20)])

    # first record with a positive max score is 15/20
    assert engine.score(student) == pytest.approx(80 + 0.75 * 30)


def test_best_selection_is_opt_in():
    engine = RankingEngine(config=RankingConfig(assessment_selection="best"))
    student = build_student("S1", 8.0, [(15, 20), (20, 20)])

    assert engine.score(student) == pytest.approx(110)


@pytest.mark.parametrize(
    ("score", "tier"),
    [(95.0, "Best"), (90.0, "Best"), (89.99, "Better"), (70.0, "Better"), (69.9, "Average"), (0.0, "Average")],
)
def test_tier_thresholds(score: float, tier: str):
    assert RankingEngine().tier_for(score) == tier


def test_rank_orders_by_score_and_assigns_tiers():
    engine = RankingEngine()
    students = [
        build_student("LOW", 6.0),
        build_student("TOP", 9.0, [(10, 10)]),
        build_student("MID", 7.5),
    ]

    ranked = engine.rank(students)

    assert [(r.student.usn, r.tier) for r in ranked] == [
        ("TOP", "Best"),
        ("MID", "Better"),
        ("LOW", "Average"),
    ]


def test_rank_is_deterministic_for_same_input():
    engine = RankingEngine()
    students = [build_student("A", 8.0, [(5, 10)]), build_student("B", 8.0, [(5, 10)])]

    first = [(r.student.usn, r.tier, r.score) for r in engine.rank(students)]
    second = [(r.student.usn, r.tier, r.score) for r in engine.rank(students)]

    assert first == second


def test_threshold_override():
    engine = RankingEngine(config=RankingConfig(thresholds={"Best": 80.0}))

    assert engine.tier_for(85.0) == "Best"
    assert engine.tier_for(75.0) == "Better"


def test_select_assessment_ignores_zero_max():
    engine = RankingEngine()
    records = [AssessmentScore(assessment_id="X", score=3, max_score=0)]

    assert engine.select_assessment(records) is None
