"""ReadinessEngine: blends accuracy, coverage and weak areas into one score."""

from __future__ import annotations

import logging
import math
from typing import Callable, Dict, List, Optional, Tuple

from ..models.schemas import (
    WEAK_ACCURACY_THRESHOLD,
    WEAK_MIN_QUESTIONS,
    CategoryPerformance,
    ReadinessScore,
    ReadinessStatus,
)
from ..models.state import AnswerCounters
from ..orchestration.attempt_store import AttemptStore
from ..orchestration.question_bank import QuestionBank
from .performance import PerformanceAggregator

_logger = logging.getLogger("permit_prep.readiness")

ACCURACY_WEIGHT = 0.40
COVERAGE_WEIGHT = 0.30
WEAK_AREA_WEIGHT = 0.30

# A weakest accuracy this far below the weak threshold zeroes the factor.
WEAK_PENALTY_SPAN = 0.20

NOT_READY_MAX = 60
READY_MIN = 85
TARGET_ACCURACY = 0.90
CATEGORY_REVIEW_MIN_QUESTIONS = 5
CATEGORY_REVIEW_ACCURACY = 0.80

READY_MESSAGE = "You're ready! Schedule your DMV test!"
DEFAULT_MESSAGE = "Keep practicing to stay sharp!"

CounterSource = Callable[[], AnswerCounters]


def status_for(percentage: int) -> ReadinessStatus:
    if percentage <= NOT_READY_MAX:
        return ReadinessStatus.NOT_READY
    if percentage < READY_MIN:
        return ReadinessStatus.ALMOST_READY
    return ReadinessStatus.READY


def weak_area_penalty(weakest_accuracy: Optional[float]) -> float:
    if weakest_accuracy is None:
        return 0.0
    gap = (WEAK_ACCURACY_THRESHOLD - weakest_accuracy) / WEAK_PENALTY_SPAN
    return min(1.0, max(0.0, gap))


class ReadinessEngine:
    """Compute a deterministic :class:`ReadinessScore` from attempt history.

    Args:
        store: Attempt log to read from.
        bank: Question bank; its size is the coverage denominator.
        counters: Optional source of the answered/correct totals, used for
            overall accuracy only while the attempt log is empty.
    """

    def __init__(
        self,
        store: AttemptStore,
        bank: QuestionBank,
        counters: Optional[CounterSource] = None,
    ) -> None:
        self._store = store
        self._bank = bank
        self._aggregator = PerformanceAggregator(store)
        self._counters = counters

    def _answer_totals(self) -> Tuple[int, int]:
        attempts = self._store.all_attempts()
        if attempts or self._counters is None:
            return len(attempts), sum(1 for a in attempts if a.was_correct)
        # Counters only stand in when there is no per-attempt history.
        counters = self._counters()
        return counters.questions_answered, counters.correct_answers

    @staticmethod
    def _weak_signal(
        categories: Dict[str, CategoryPerformance],
        overall_accuracy: float,
        answered: int,
    ) -> Optional[float]:
        if categories:
            weak = [p.accuracy for p in categories.values() if p.is_weak]
            return min(weak) if weak else None
        # No per-category data: the whole history stands in as one category.
        if answered >= WEAK_MIN_QUESTIONS and overall_accuracy < WEAK_ACCURACY_THRESHOLD:
            return overall_accuracy
        return None

    @staticmethod
    def _weakest(
        categories: Dict[str, CategoryPerformance],
    ) -> Tuple[Optional[str], float]:
        answered = [
            categories[name]
            for name in sorted(categories)
            if categories[name].questions_answered > 0
        ]
        if not answered:
            return None, 0.0
        weakest = min(answered, key=lambda p: p.accuracy)
        return weakest.category, weakest.accuracy

    def calculate_readiness(self) -> ReadinessScore:
        questions = self._bank.all_questions()
        total = self._bank.total()

        answered, correct = self._answer_totals()
        answered = max(0, answered)
        correct = min(max(0, correct), answered)
        accuracy = correct / answered if answered else 0.0

        seen = self._aggregator.questions_seen(questions)
        if seen == 0 and answered > 0 and len(self._store) == 0:
            seen = min(answered, total)

        if total <= 0:
            _logger.warning(
                "empty_question_bank", extra={"event": "empty_question_bank"}
            )
            coverage = 1.0
        else:
            coverage = min(1.0, seen / total)

        categories = self._aggregator.all_category_performance()
        penalty = weak_area_penalty(self._weak_signal(categories, accuracy, answered))
        # Absence of weak areas only counts as far as the bank has been covered.
        weak_area = (1.0 - penalty) * coverage

        composite = (
            ACCURACY_WEIGHT * accuracy
            + COVERAGE_WEIGHT * coverage
            + WEAK_AREA_WEIGHT * weak_area
        )
        percentage = min(100, max(0, int(round(composite * 100))))
        status = status_for(percentage)
        weakest_category, weakest_accuracy = self._weakest(categories)

        score = ReadinessScore(
            percentage=percentage,
            overall_accuracy=accuracy,
            questions_seen=seen,
            total_questions=total,
            weakest_category=weakest_category,
            weakest_accuracy=weakest_accuracy,
            status=status,
            recommendations=self._recommendations(
                accuracy, seen, total, status, categories
            ),
        )
        _logger.debug(
            "readiness_calculated",
            extra={
                "event": "readiness_calculated",
                "percentage": percentage,
                "status": status.value,
            },
        )
        return score

    @staticmethod
    def _recommendations(
        accuracy: float,
        seen: int,
        total: int,
        status: ReadinessStatus,
        categories: Dict[str, CategoryPerformance],
    ) -> List[str]:
        recommendations: List[str] = []

        if accuracy < TARGET_ACCURACY:
            recommendations.append(
                f"Improve overall accuracy to 90% (currently {int(accuracy * 100)}%)"
            )

        if seen < total:
            recommendations.append(
                f"Practice {total - seen} more questions you haven't seen yet "
                f"({seen}/{total} covered)"
            )

        review = [
            categories[name]
            for name in sorted(categories)
            if categories[name].questions_answered > CATEGORY_REVIEW_MIN_QUESTIONS
            and categories[name].accuracy < CATEGORY_REVIEW_ACCURACY
        ]
        for stats in sorted(review, key=lambda p: p.accuracy):
            needed = math.ceil(stats.questions_answered * 0.2)
            recommendations.append(
                f"Practice {needed} more {stats.category} questions "
                f"(currently {int(stats.accuracy * 100)}%)"
            )

        if status is ReadinessStatus.READY and accuracy >= TARGET_ACCURACY:
            recommendations.append(READY_MESSAGE)

        if not recommendations:
            recommendations.append(DEFAULT_MESSAGE)
        return recommendations
