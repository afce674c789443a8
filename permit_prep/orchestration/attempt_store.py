"""Append-only attempt log with single-writer discipline."""

from __future__ import annotations

import logging
from threading import Lock
from typing import List, Optional

from ..models.schemas import Attempt
from ..models.state import AnswerCounters, AttemptHistory

_logger = logging.getLogger("permit_prep.attempts")


class AttemptStore:
    """Record answer submissions and serve point-in-time reads.

    Writers are serialised with a lock; readers get a copied list so they
    never observe a half-applied write.
    """

    def __init__(self, history: Optional[AttemptHistory] = None) -> None:
        history = history or AttemptHistory()
        self._attempts: List[Attempt] = list(history.attempts)
        self._counters = history.counters.model_copy()
        self._lock = Lock()

    def record_attempt(
        self,
        question_id: str,
        category: str,
        was_correct: bool,
        time_taken: int = 0,
    ) -> Attempt:
        attempt = Attempt(
            question_id=question_id,
            category=category,
            was_correct=was_correct,
            time_taken=time_taken,
        )
        with self._lock:
            self._attempts.append(attempt)
            self._counters = AnswerCounters(
                questions_answered=self._counters.questions_answered + 1,
                correct_answers=self._counters.correct_answers
                + (1 if was_correct else 0),
            )
        _logger.debug(
            "attempt_recorded",
            extra={
                "event": "attempt_recorded",
                "question_id": question_id,
                "was_correct": was_correct,
            },
        )
        return attempt

    def all_attempts(self) -> List[Attempt]:
        with self._lock:
            return list(self._attempts)

    def attempts_for_question(self, question_id: str) -> List[Attempt]:
        """Attempts for one question, oldest first."""
        matches = [a for a in self.all_attempts() if a.question_id == question_id]
        return sorted(matches, key=lambda a: a.timestamp)

    def attempts_for_category(self, category: str) -> List[Attempt]:
        """Attempts for one category, newest first."""
        matches = [a for a in self.all_attempts() if a.category == category]
        return sorted(matches, key=lambda a: a.timestamp, reverse=True)

    def counters(self) -> AnswerCounters:
        with self._lock:
            return self._counters.model_copy()

    def delete_attempts(self, question_id: Optional[str] = None) -> int:
        """Drop attempts for one question, or everything when no id is given.

        A full reset also zeroes the counters. Returns the number removed.
        """
        with self._lock:
            before = len(self._attempts)
            if question_id is None:
                self._attempts = []
                self._counters = AnswerCounters()
            else:
                self._attempts = [
                    a for a in self._attempts if a.question_id != question_id
                ]
            removed = before - len(self._attempts)
        _logger.info(
            "attempts_deleted",
            extra={
                "event": "attempts_deleted",
                "question_id": question_id,
                "removed": removed,
            },
        )
        return removed

    def snapshot(self) -> AttemptHistory:
        with self._lock:
            return AttemptHistory(
                attempts=list(self._attempts),
                counters=self._counters.model_copy(),
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._attempts)
