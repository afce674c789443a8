"""Tests for weighted adaptive question selection."""

from __future__ import annotations

import random
import sys
from collections import Counter
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from permit_prep.engine.performance import PerformanceAggregator
from permit_prep.engine.selector import AdaptiveSelector, weighted_sample
from permit_prep.models.schemas import Question
from permit_prep.orchestration.attempt_store import AttemptStore
from permit_prep.orchestration.question_bank import QuestionBank


def _question(qid: str, category: str) -> Question:
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


def _bank(size: int = 20) -> QuestionBank:
    categories = ["Parking", "Traffic Signs", "Right of Way", "Traffic Laws"]
    return QuestionBank(
        [_question(f"q{i}", categories[i % len(categories)]) for i in range(size)]
    )


def _selector(bank: QuestionBank, store: AttemptStore, seed: int = 7) -> AdaptiveSelector:
    return AdaptiveSelector(bank, PerformanceAggregator(store), rng=random.Random(seed))


def test_count_zero_returns_empty():
    bank = _bank()
    selector = _selector(bank, AttemptStore())
    assert selector.select_questions(bank.all_questions(), 0) == []
    assert selector.select_questions(bank.all_questions(), -3) == []


def test_empty_pool_returns_empty():
    selector = _selector(_bank(), AttemptStore())
    assert selector.select_questions([], 5) == []


def test_unknown_category_returns_empty():
    bank = _bank()
    selector = _selector(bank, AttemptStore())
    assert selector.select_questions(bank.all_questions(), 5, category="Nope") == []
    assert selector.adaptive_questions(5, category="Nope") == []


def test_oversized_count_returns_whole_pool():
    bank = _bank()
    selector = _selector(bank, AttemptStore())
    pool = bank.all_questions()
    for extra in (1, 5, 100):
        selected = selector.select_questions(pool, len(pool) + extra)
        assert len(selected) == len(pool)
        assert {q.id for q in selected} == {q.id for q in pool}


def test_no_duplicates_even_with_duplicate_pool_entries():
    bank = _bank()
    selector = _selector(bank, AttemptStore())
    pool = bank.all_questions() * 3
    selected = selector.select_questions(pool, 15)
    ids = [q.id for q in selected]
    assert len(ids) == 15
    assert len(ids) == len(set(ids))


def test_category_filter_limits_candidates():
    bank = _bank()
    selector = _selector(bank, AttemptStore())
    selected = selector.adaptive_questions(100, category="Parking")
    assert selected
    assert all(q.category == "Parking" for q in selected)
    assert len(selected) == len(bank.questions_by_category("Parking"))


def test_high_weight_question_drawn_more_often():
    bank = _bank(20)
    store = AttemptStore()
    # Everything mastered (weight 1) except q0, which stays unseen (weight 10).
    for question in bank.all_questions()[1:]:
        for _ in range(3):
            store.record_attempt(question.id, question.category, True)

    selector = _selector(bank, store, seed=2024)
    counts: Counter = Counter()
    for _ in range(1000):
        for question in selector.adaptive_questions(1):
            counts[question.id] += 1

    assert counts["q0"] >= 3 * counts["q1"]
    assert counts["q0"] > max(counts[f"q{i}"] for i in range(1, 20))


def test_struggling_questions_included_more_often_than_mastered():
    bank = _bank(20)
    store = AttemptStore()
    for question in bank.all_questions():
        if question.id in {"q0", "q1"}:
            store.record_attempt(question.id, question.category, False)
            store.record_attempt(question.id, question.category, False)
        else:
            for _ in range(3):
                store.record_attempt(question.id, question.category, True)

    selector = _selector(bank, store, seed=99)
    inclusion: Counter = Counter()
    for _ in range(500):
        inclusion.update(q.id for q in selector.adaptive_questions(3))

    assert inclusion["q0"] > 2 * inclusion["q5"]
    assert inclusion["q1"] > 2 * inclusion["q6"]


def test_weighted_sample_skips_zero_weight_until_needed():
    items = [_question("a", "x"), _question("b", "x"), _question("c", "x")]
    rng = random.Random(3)
    first = weighted_sample(items, [0, 5, 0], 1, rng)
    assert [q.id for q in first] == ["b"]
    everything = weighted_sample(items, [0, 5, 0], 3, rng)
    assert sorted(q.id for q in everything) == ["a", "b", "c"]


def test_random_questions_unweighted_and_bounded():
    bank = _bank(8)
    selector = _selector(bank, AttemptStore())
    assert len(selector.random_questions(3)) == 3
    assert len(selector.random_questions(50)) == 8
    assert selector.random_questions(0) == []


def test_weak_area_quiz_targets_weak_categories():
    bank = _bank(40)
    store = AttemptStore()
    parking = bank.questions_by_category("Parking")
    for question in parking[:6]:
        store.record_attempt(question.id, question.category, False)
    for question in bank.questions_by_category("Traffic Signs")[:6]:
        store.record_attempt(question.id, question.category, True)

    selector = _selector(bank, store, seed=11)
    quiz = selector.weak_area_questions(count=8)

    assert len(quiz) == 8
    assert len({q.id for q in quiz}) == 8
    # Parking is the only weak category, so it gets int(8 * 1.0) + 1 slots
    # capped by the quiz size.
    assert sum(1 for q in quiz if q.category == "Parking") == 8


def test_weak_area_quiz_tops_up_from_whole_bank():
    bank = _bank(20)
    store = AttemptStore()
    for question in bank.questions_by_category("Parking"):
        store.record_attempt(question.id, question.category, False)

    selector = _selector(bank, store, seed=5)
    quiz = selector.weak_area_questions(count=12)

    assert len(quiz) == 12
    assert sum(1 for q in quiz if q.category == "Parking") == 5
    assert len({q.id for q in quiz}) == 12


def test_weak_area_quiz_falls_back_to_adaptive():
    bank = _bank(20)
    selector = _selector(bank, AttemptStore())
    quiz = selector.weak_area_questions(count=6)
    assert len(quiz) == 6


def test_weak_area_quiz_honours_focus_categories():
    bank = _bank(40)
    store = AttemptStore()
    for question in bank.questions_by_category("Right of Way")[:2]:
        store.record_attempt(question.id, question.category, True)

    selector = _selector(bank, store, seed=21)
    quiz = selector.weak_area_questions(count=3, focus_categories=["Right of Way", "Unknown"])

    assert len(quiz) == 3
    assert all(q.category == "Right of Way" for q in quiz)
