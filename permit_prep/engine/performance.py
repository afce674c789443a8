"""PerformanceAggregator: per-question and per-category statistics."""

from __future__ import annotations

from typing import Dict, List, Sequence

from ..models.schemas import (
    Attempt,
    CategoryPerformance,
    Question,
    QuestionPerformance,
)
from ..orchestration.attempt_store import AttemptStore


class PerformanceAggregator:
    """Read-only aggregation over an :class:`AttemptStore`.

    Every public call works on a single snapshot of the store, so results
    stay consistent even while another thread is recording attempts.
    Store failures propagate to the caller.
    """

    def __init__(self, store: AttemptStore) -> None:
        self._store = store

    def performance_for(self, question_id: str, category: str) -> QuestionPerformance:
        attempts = self._store.attempts_for_question(question_id)
        return QuestionPerformance.from_attempts(question_id, category, attempts)

    @staticmethod
    def weight(performance: QuestionPerformance) -> int:
        return performance.tier.weight

    def all_performance(
        self, questions: Sequence[Question]
    ) -> Dict[str, QuestionPerformance]:
        grouped: Dict[str, List[Attempt]] = {}
        for attempt in self._store.all_attempts():
            grouped.setdefault(attempt.question_id, []).append(attempt)
        return {
            q.id: QuestionPerformance.from_attempts(
                q.id, q.category, grouped.get(q.id, [])
            )
            for q in questions
        }

    def questions_seen(self, questions: Sequence[Question]) -> int:
        """Distinct questions from *questions* attempted at least once."""
        seen = {a.question_id for a in self._store.all_attempts()}
        return sum(1 for q in {q.id for q in questions} if q in seen)

    def category_performance_for(self, category: str) -> CategoryPerformance:
        attempts = self._store.attempts_for_category(category)
        return CategoryPerformance.from_attempts(category, attempts)

    def all_category_performance(self) -> Dict[str, CategoryPerformance]:
        grouped: Dict[str, List[Attempt]] = {}
        for attempt in self._store.all_attempts():
            if not attempt.category:
                continue
            grouped.setdefault(attempt.category, []).append(attempt)
        return {
            category: CategoryPerformance.from_attempts(category, attempts)
            for category, attempts in grouped.items()
        }

    def weak_categories(self) -> List[CategoryPerformance]:
        """Weak categories, worst accuracy first; ties keep name order."""
        performance = self.all_category_performance()
        weak = [performance[name] for name in sorted(performance) if performance[name].is_weak]
        return sorted(weak, key=lambda p: p.accuracy)
