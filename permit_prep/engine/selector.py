"""AdaptiveSelector: weighted quiz assembly from the question bank."""

from __future__ import annotations

import bisect
import itertools
import logging
import random
from typing import Dict, List, Optional, Sequence

from ..models.schemas import CategoryPerformance, Question
from ..orchestration.question_bank import QuestionBank
from .performance import PerformanceAggregator

_logger = logging.getLogger("permit_prep.selector")


def weighted_sample(
    items: Sequence[Question],
    weights: Sequence[int],
    k: int,
    rng: random.Random,
) -> List[Question]:
    """Draw *k* distinct items, each draw proportional to remaining weight.

    Uses a cumulative-weight table searched with ``bisect``; the drawn item
    is removed and the table rebuilt before the next draw.
    """
    pool = list(items)
    pool_weights = [max(0, int(w)) for w in weights]
    picked: List[Question] = []
    while pool and len(picked) < k:
        cumulative = list(itertools.accumulate(pool_weights))
        total = cumulative[-1]
        if total <= 0:
            index = rng.randrange(len(pool))
        else:
            index = bisect.bisect_right(cumulative, rng.random() * total)
            index = min(index, len(pool) - 1)
        picked.append(pool.pop(index))
        pool_weights.pop(index)
    return picked


class AdaptiveSelector:
    """Select practice questions, favouring unseen and missed ones."""

    def __init__(
        self,
        bank: QuestionBank,
        aggregator: PerformanceAggregator,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._bank = bank
        self._aggregator = aggregator
        self._rng = rng or random.SystemRandom()

    def select_questions(
        self,
        pool: Sequence[Question],
        count: int,
        category: Optional[str] = None,
    ) -> List[Question]:
        if count <= 0:
            return []
        unique: Dict[str, Question] = {}
        for question in pool:
            if category is None or question.category == category:
                unique.setdefault(question.id, question)
        candidates = list(unique.values())
        if not candidates:
            return []

        performance = self._aggregator.all_performance(candidates)
        weights = [
            self._aggregator.weight(performance[q.id]) for q in candidates
        ]
        selected = weighted_sample(
            candidates, weights, min(count, len(candidates)), self._rng
        )
        # Weight decides inclusion only, not position.
        self._rng.shuffle(selected)
        return selected

    def adaptive_questions(
        self, count: int, category: Optional[str] = None
    ) -> List[Question]:
        if category is None:
            return self.select_questions(self._bank.all_questions(), count)
        return self.select_questions(self._bank.questions_by_category(category), count)

    def random_questions(self, count: int) -> List[Question]:
        questions = self._bank.all_questions()
        if count <= 0:
            return []
        return self._rng.sample(questions, k=min(count, len(questions)))

    def _target_categories(
        self, focus_categories: Optional[Sequence[str]]
    ) -> List[CategoryPerformance]:
        if focus_categories:
            performance = self._aggregator.all_category_performance()
            focused = [
                performance[name] for name in focus_categories if name in performance
            ]
            if focused:
                return focused
        return self._aggregator.weak_categories()

    def weak_area_questions(
        self,
        count: int = 10,
        focus_categories: Optional[Sequence[str]] = None,
    ) -> List[Question]:
        """Quiz weighted toward weak categories, topped up adaptively.

        Each target category receives ``int(count * share) + 1`` questions,
        where its share is proportional to ``1 - accuracy``. Falls back to a
        plain adaptive quiz when there is nothing to target.
        """
        if count <= 0:
            return []
        targets = self._target_categories(focus_categories)
        if not targets:
            return self.adaptive_questions(count)

        total_gap = sum(1.0 - t.accuracy for t in targets)
        selected: List[Question] = []
        used: Dict[str, Question] = {}

        for target in targets:
            if total_gap > 0:
                share = (1.0 - target.accuracy) / total_gap
            else:
                share = 1.0 / len(targets)
            wanted = int(count * share) + 1
            for question in self.adaptive_questions(wanted, target.category):
                if question.id not in used and len(selected) < count:
                    selected.append(question)
                    used[question.id] = question
            if len(selected) >= count:
                break

        if len(selected) < count:
            remaining = [q for q in self._bank.all_questions() if q.id not in used]
            selected.extend(
                self.select_questions(remaining, count - len(selected))
            )

        _logger.info(
            "weak_area_quiz_built",
            extra={
                "event": "weak_area_quiz_built",
                "categories": [t.category for t in targets],
                "count": len(selected),
            },
        )
        self._rng.shuffle(selected)
        return selected
