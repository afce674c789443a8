"""Static question bank loaded once from JSON files."""

from __future__ import annotations

import logging
from pathlib import Path
from threading import Lock
from typing import Dict, List, Optional, Sequence

from pydantic import ValidationError

from ..models.schemas import Question, QuestionCategory
from ..util.jsonio import load_json

_logger = logging.getLogger("permit_prep.bank")

QUESTION_FILES = ("questions.json", "traffic-signs-questions.json")


_FALLBACK_QUESTIONS = [
    Question(
        id="1",
        question_text="What does a red octagonal sign mean?",
        answer_a="Slow down",
        answer_b="Stop",
        answer_c="Yield",
        answer_d="No parking",
        correct_answer="B",
        category=QuestionCategory.TRAFFIC_SIGNS.value,
        explanation="A red octagon is always a stop sign. You must come to a complete stop.",
    ),
    Question(
        id="2",
        question_text="At a four-way stop, who has the right of way?",
        answer_a="The largest vehicle",
        answer_b="The vehicle on the right",
        answer_c="The first vehicle to arrive",
        answer_d="The fastest vehicle",
        correct_answer="C",
        category=QuestionCategory.RIGHT_OF_WAY.value,
        explanation="The first vehicle to reach the intersection goes first.",
    ),
    Question(
        id="3",
        question_text="What is the speed limit in a residential area unless posted otherwise?",
        answer_a="15 mph",
        answer_b="25 mph",
        answer_c="35 mph",
        answer_d="45 mph",
        correct_answer="B",
        category=QuestionCategory.TRAFFIC_LAWS.value,
        explanation="California's default speed limit in residential areas is 25 mph.",
    ),
]


def _parse_questions(raw, source: str) -> List[Question]:
    if not isinstance(raw, list):
        return []
    questions: List[Question] = []
    for item in raw:
        try:
            questions.append(Question.model_validate(item))
        except ValidationError as exc:
            _logger.warning(
                "question_skipped",
                extra={
                    "event": "question_skipped",
                    "source": source,
                    "error_count": exc.error_count(),
                },
            )
    return questions


class QuestionBank:
    """Immutable question collection.

    Either pass ``questions`` directly or a ``data_dir`` holding the bank
    files; files are read lazily on first access and only once.
    """

    def __init__(
        self,
        questions: Optional[Sequence[Question]] = None,
        data_dir: Optional[Path] = None,
    ) -> None:
        self._data_dir = data_dir
        self._questions: Optional[List[Question]] = (
            list(questions) if questions is not None else None
        )
        self._by_id: Dict[str, Question] = {}
        self._lock = Lock()
        if self._questions is not None:
            self._index()

    def _index(self) -> None:
        self._by_id = {}
        for question in self._questions or []:
            if question.id in self._by_id:
                _logger.warning(
                    "duplicate_question_id",
                    extra={"event": "duplicate_question_id", "question_id": question.id},
                )
                continue
            self._by_id[question.id] = question
        self._questions = list(self._by_id.values())

    def _ensure_loaded(self) -> List[Question]:
        with self._lock:
            if self._questions is None:
                self._questions = self._load_files()
                self._index()
            return self._questions

    def _load_files(self) -> List[Question]:
        loaded: List[Question] = []
        if self._data_dir is not None:
            for filename in QUESTION_FILES:
                path = self._data_dir / filename
                parsed = _parse_questions(load_json(path), filename)
                if not parsed:
                    _logger.info(
                        "question_file_unavailable",
                        extra={"event": "question_file_unavailable", "source": str(path)},
                    )
                    continue
                loaded.extend(parsed)
        if not loaded:
            _logger.warning(
                "question_bank_fallback", extra={"event": "question_bank_fallback"}
            )
            return list(_FALLBACK_QUESTIONS)
        _logger.info(
            "question_bank_loaded",
            extra={"event": "question_bank_loaded", "count": len(loaded)},
        )
        return loaded

    def all_questions(self) -> List[Question]:
        return list(self._ensure_loaded())

    def total(self) -> int:
        return len(self._ensure_loaded())

    def get(self, question_id: str) -> Optional[Question]:
        self._ensure_loaded()
        return self._by_id.get(question_id)

    def questions_by_category(self, category: str) -> List[Question]:
        return [q for q in self._ensure_loaded() if q.category == category]

    def categories(self) -> List[str]:
        """Sorted union of bank categories and the canonical category list."""
        names = {q.category for q in self._ensure_loaded()}
        names.update(QuestionCategory.display_names())
        return sorted(names)
