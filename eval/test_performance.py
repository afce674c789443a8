"""Tests for per-question and per-category aggregation."""

from __future__ import annotations

import itertools
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from permit_prep.engine.performance import PerformanceAggregator
from permit_prep.models.schemas import (
    CategoryPerformance,
    Question,
    QuestionPerformance,
    WeightTier,
)
from permit_prep.orchestration.attempt_store import AttemptStore


def _question(qid: str, category: str = "Parking") -> Question:
    return Question(
        id=qid,
        question_text=f"Question {qid}?",
        answer_a="A",
        answer_b="B",
        answer_c="C",
        answer_d="D",
        correct_answer="A",
        category=category,
    )


def _record(store: AttemptStore, qid: str, category: str, correct: int, incorrect: int) -> None:
    for _ in range(correct):
        store.record_attempt(qid, category, True)
    for _ in range(incorrect):
        store.record_attempt(qid, category, False)


def test_unseen_question_has_zero_state():
    aggregator = PerformanceAggregator(AttemptStore())
    perf = aggregator.performance_for("missing", "Parking")

    assert perf.times_seen == 0
    assert perf.accuracy == 0.0
    assert perf.average_time_taken == 0.0
    assert perf.last_attempt_at is None
    assert perf.tier is WeightTier.UNSEEN
    assert aggregator.weight(perf) == 10


def test_performance_counts_and_average_time():
    store = AttemptStore()
    store.record_attempt("q1", "Parking", True, time_taken=4)
    store.record_attempt("q1", "Parking", False, time_taken=8)
    store.record_attempt("q1", "Parking", True, time_taken=6)
    store.record_attempt("other", "Parking", False)

    perf = PerformanceAggregator(store).performance_for("q1", "Label Only")

    assert perf.category == "Label Only"
    assert perf.times_seen == 3
    assert perf.times_correct == 2
    assert perf.times_incorrect == 1
    assert perf.accuracy == pytest.approx(2 / 3)
    assert perf.average_time_taken == pytest.approx(6.0)
    assert perf.last_attempt_at is not None


@pytest.mark.parametrize(
    "correct,incorrect",
    list(itertools.product(range(6), range(6))),
)
def test_times_seen_invariant(correct, incorrect):
    store = AttemptStore()
    _record(store, "q", "Parking", correct, incorrect)
    perf = PerformanceAggregator(store).performance_for("q", "Parking")
    assert perf.times_seen == perf.times_correct + perf.times_incorrect
    assert perf.times_correct == correct
    assert perf.times_incorrect == incorrect


def _expected_weight(correct: int, incorrect: int) -> int:
    if correct == 0 and incorrect == 0:
        return 10
    if incorrect >= 2:
        return 10
    if incorrect == 1:
        return 8
    return {1: 5, 2: 3}.get(correct, 1)


@pytest.mark.parametrize(
    "correct,incorrect",
    list(itertools.product(range(6), range(6))),
)
def test_weight_table(correct, incorrect):
    perf = QuestionPerformance(
        question_id="q",
        category="Parking",
        times_seen=correct + incorrect,
        times_correct=correct,
        times_incorrect=incorrect,
    )
    assert PerformanceAggregator.weight(perf) == _expected_weight(correct, incorrect)


def test_weight_tiers_named():
    def tier(correct, incorrect):
        return QuestionPerformance(
            question_id="q",
            category="c",
            times_seen=correct + incorrect,
            times_correct=correct,
            times_incorrect=incorrect,
        ).tier

    assert tier(0, 0) is WeightTier.UNSEEN
    assert tier(4, 2) is WeightTier.STRUGGLING_TWICE_PLUS
    assert tier(0, 1) is WeightTier.MISSED_ONCE
    assert tier(1, 0) is WeightTier.CORRECT_ONCE
    assert tier(2, 0) is WeightTier.CORRECT_TWICE
    assert tier(3, 0) is WeightTier.MASTERED


def test_is_weak_requires_five_questions():
    four = CategoryPerformance(
        category="Parking", questions_answered=4, total_attempts=4, correct_attempts=0
    )
    five = CategoryPerformance(
        category="Parking", questions_answered=5, total_attempts=5, correct_attempts=3
    )
    strong = CategoryPerformance(
        category="Parking", questions_answered=5, total_attempts=10, correct_attempts=7
    )
    assert four.is_weak is False
    assert five.is_weak is True
    assert strong.accuracy == pytest.approx(0.7)
    assert strong.is_weak is False


def test_category_performance_counts_distinct_questions():
    store = AttemptStore()
    _record(store, "p1", "Parking", 1, 1)
    _record(store, "p2", "Parking", 0, 1)
    _record(store, "s1", "Traffic Signs", 2, 0)

    perf = PerformanceAggregator(store).category_performance_for("Parking")

    assert perf.questions_answered == 2
    assert perf.total_attempts == 3
    assert perf.correct_attempts == 1
    assert perf.accuracy == pytest.approx(1 / 3)


def test_unknown_category_is_empty_not_error():
    perf = PerformanceAggregator(AttemptStore()).category_performance_for("Nope")
    assert perf.total_attempts == 0
    assert perf.accuracy == 0.0
    assert perf.is_weak is False


def test_all_category_performance_groups_every_category():
    store = AttemptStore()
    _record(store, "p1", "Parking", 1, 0)
    _record(store, "s1", "Traffic Signs", 0, 2)

    grouped = PerformanceAggregator(store).all_category_performance()

    assert set(grouped) == {"Parking", "Traffic Signs"}
    assert grouped["Traffic Signs"].total_attempts == 2
    assert grouped["Parking"].accuracy == 1.0


def test_weak_categories_sorted_worst_first_with_stable_ties():
    store = AttemptStore()
    for i in range(5):
        store.record_attempt(f"b{i}", "Bravo", i < 3)  # 60%
        store.record_attempt(f"a{i}", "Alpha", i < 2)  # 40%
        store.record_attempt(f"c{i}", "Charlie", i < 2)  # 40%
        store.record_attempt(f"d{i}", "Delta", True)  # strong
    for i in range(4):
        store.record_attempt(f"e{i}", "Echo", False)  # too few questions

    weak = PerformanceAggregator(store).weak_categories()

    assert [p.category for p in weak] == ["Alpha", "Charlie", "Bravo"]


def test_questions_seen_only_counts_bank_questions():
    store = AttemptStore()
    _record(store, "q1", "Parking", 2, 0)
    _record(store, "gone", "Parking", 1, 0)
    bank = [_question("q1"), _question("q2")]

    assert PerformanceAggregator(store).questions_seen(bank) == 1


def test_all_performance_covers_every_question():
    store = AttemptStore()
    _record(store, "q1", "Parking", 0, 2)
    perf = PerformanceAggregator(store).all_performance([_question("q1"), _question("q2")])

    assert perf["q1"].weight == 10
    assert perf["q1"].tier is WeightTier.STRUGGLING_TWICE_PLUS
    assert perf["q2"].tier is WeightTier.UNSEEN
