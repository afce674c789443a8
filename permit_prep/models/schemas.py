"""Pydantic schemas for the question bank, attempts and derived statistics."""

from __future__ import annotations

import random
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ── Categories ──────────────────────────────────────────────────────
class QuestionCategory(str, Enum):
    TRAFFIC_SIGNS = "Traffic Signs"
    TRAFFIC_LAWS = "Traffic Laws"
    DEFENSIVE_DRIVING = "Defensive Driving"
    SHARING_THE_ROAD = "Sharing the Road"
    RIGHT_OF_WAY = "Right of Way"
    PARKING = "Parking"
    ALCOHOL_AND_DRUGS = "Alcohol & Drugs"
    SPECIAL_SITUATIONS = "Special Situations"

    @property
    def module_id(self) -> str:
        return _MODULE_IDS[self]

    @classmethod
    def from_module_id(cls, module_id: str) -> Optional["QuestionCategory"]:
        for category in cls:
            if category.module_id == module_id:
                return category
        return None

    @classmethod
    def display_names(cls) -> List[str]:
        return [c.value for c in cls]


_MODULE_IDS: Dict[QuestionCategory, str] = {
    QuestionCategory.TRAFFIC_SIGNS: "traffic_signs",
    QuestionCategory.TRAFFIC_LAWS: "traffic_laws",
    QuestionCategory.DEFENSIVE_DRIVING: "defensive_driving",
    QuestionCategory.SHARING_THE_ROAD: "sharing_the_road",
    QuestionCategory.RIGHT_OF_WAY: "right_of_way",
    QuestionCategory.PARKING: "parking_stopping",
    QuestionCategory.ALCOHOL_AND_DRUGS: "alcohol_drugs",
    QuestionCategory.SPECIAL_SITUATIONS: "special_situations",
}


# ── Question bank ───────────────────────────────────────────────────
AnswerLetter = Literal["A", "B", "C", "D"]
_LETTERS: Tuple[str, ...] = ("A", "B", "C", "D")


class Question(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1)
    question_text: str = Field(..., alias="questionText")
    answer_a: Optional[str] = Field(default=None, alias="answerA")
    answer_b: Optional[str] = Field(default=None, alias="answerB")
    answer_c: Optional[str] = Field(default=None, alias="answerC")
    answer_d: Optional[str] = Field(default=None, alias="answerD")
    correct_answer: AnswerLetter = Field(..., alias="correctAnswer")
    category: str
    explanation: Optional[str] = None
    image_name: Optional[str] = Field(default=None, alias="imageName")

    @field_validator("correct_answer", mode="before")
    @classmethod
    def _normalize_letter(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @model_validator(mode="after")
    def _validate_choices(self) -> "Question":
        letters = [letter for letter, _ in self.choices()]
        if len(letters) < 2:
            raise ValueError("a question needs at least two answer choices")
        if self.correct_answer not in letters:
            raise ValueError("correct_answer must reference a present choice")
        return self

    def choices(self) -> List[Tuple[str, str]]:
        """Return the present (letter, text) pairs in letter order."""
        texts = (self.answer_a, self.answer_b, self.answer_c, self.answer_d)
        return [
            (letter, text)
            for letter, text in zip(_LETTERS, texts)
            if text is not None
        ]

    def is_correct(self, letter: str) -> bool:
        return (letter or "").strip().upper() == self.correct_answer

    def with_shuffled_answers(
        self, rng: Optional[random.Random] = None
    ) -> "Question":
        """Copy of this question with answers reordered and the key remapped."""
        rng = rng or random.SystemRandom()
        pairs = self.choices()
        correct_text = dict(pairs)[self.correct_answer]
        texts = [text for _, text in pairs]
        rng.shuffle(texts)
        slots: List[Optional[str]] = texts + [None] * (4 - len(texts))
        return self.model_copy(
            update={
                "answer_a": slots[0],
                "answer_b": slots[1],
                "answer_c": slots[2],
                "answer_d": slots[3],
                "correct_answer": _LETTERS[texts.index(correct_text)],
            }
        )


# ── Attempts ────────────────────────────────────────────────────────
class Attempt(BaseModel):
    model_config = ConfigDict(frozen=True)

    question_id: str
    category: str
    was_correct: bool
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    time_taken: int = 0

    @field_validator("time_taken", mode="before")
    @classmethod
    def _clamp_time(cls, value):
        if value is None:
            return 0
        return max(0, int(value))


# ── Derived statistics ──────────────────────────────────────────────
class WeightTier(str, Enum):
    UNSEEN = "unseen"
    STRUGGLING_TWICE_PLUS = "struggling_twice_plus"
    MISSED_ONCE = "missed_once"
    CORRECT_ONCE = "correct_once"
    CORRECT_TWICE = "correct_twice"
    MASTERED = "mastered"

    @property
    def weight(self) -> int:
        return TIER_WEIGHTS[self]


TIER_WEIGHTS: Dict[WeightTier, int] = {
    WeightTier.UNSEEN: 10,
    WeightTier.STRUGGLING_TWICE_PLUS: 10,
    WeightTier.MISSED_ONCE: 8,
    WeightTier.CORRECT_ONCE: 5,
    WeightTier.CORRECT_TWICE: 3,
    WeightTier.MASTERED: 1,
}


class QuestionPerformance(BaseModel):
    question_id: str
    category: str
    times_seen: int = 0
    times_correct: int = 0
    times_incorrect: int = 0
    average_time_taken: float = 0.0
    last_attempt_at: Optional[datetime] = None

    @property
    def accuracy(self) -> float:
        if self.times_seen <= 0:
            return 0.0
        return self.times_correct / self.times_seen

    @property
    def tier(self) -> WeightTier:
        if self.times_seen == 0:
            return WeightTier.UNSEEN
        if self.times_incorrect >= 2:
            return WeightTier.STRUGGLING_TWICE_PLUS
        if self.times_incorrect == 1:
            return WeightTier.MISSED_ONCE
        if self.times_correct == 1:
            return WeightTier.CORRECT_ONCE
        if self.times_correct == 2:
            return WeightTier.CORRECT_TWICE
        return WeightTier.MASTERED

    @property
    def weight(self) -> int:
        return self.tier.weight

    @classmethod
    def from_attempts(
        cls, question_id: str, category: str, attempts: List[Attempt]
    ) -> "QuestionPerformance":
        if not attempts:
            return cls(question_id=question_id, category=category)
        correct = sum(1 for a in attempts if a.was_correct)
        total_time = sum(a.time_taken for a in attempts)
        return cls(
            question_id=question_id,
            category=category,
            times_seen=len(attempts),
            times_correct=correct,
            times_incorrect=len(attempts) - correct,
            average_time_taken=total_time / len(attempts),
            last_attempt_at=max(a.timestamp for a in attempts),
        )


WEAK_MIN_QUESTIONS = 5
WEAK_ACCURACY_THRESHOLD = 0.7


class CategoryPerformance(BaseModel):
    category: str
    questions_answered: int = 0
    total_attempts: int = 0
    correct_attempts: int = 0

    @property
    def accuracy(self) -> float:
        if self.total_attempts <= 0:
            return 0.0
        return self.correct_attempts / self.total_attempts

    @property
    def is_weak(self) -> bool:
        return (
            self.questions_answered >= WEAK_MIN_QUESTIONS
            and self.accuracy < WEAK_ACCURACY_THRESHOLD
        )

    @classmethod
    def from_attempts(
        cls, category: str, attempts: List[Attempt]
    ) -> "CategoryPerformance":
        return cls(
            category=category,
            questions_answered=len({a.question_id for a in attempts}),
            total_attempts=len(attempts),
            correct_attempts=sum(1 for a in attempts if a.was_correct),
        )


# ── Readiness ───────────────────────────────────────────────────────
class ReadinessStatus(str, Enum):
    NOT_READY = "not_ready"
    ALMOST_READY = "almost_ready"
    READY = "ready"

    @property
    def title(self) -> str:
        return {
            ReadinessStatus.NOT_READY: "Not Ready",
            ReadinessStatus.ALMOST_READY: "Almost Ready",
            ReadinessStatus.READY: "Ready to Test!",
        }[self]

    @property
    def color(self) -> str:
        return {
            ReadinessStatus.NOT_READY: "red",
            ReadinessStatus.ALMOST_READY: "yellow",
            ReadinessStatus.READY: "green",
        }[self]


class ReadinessScore(BaseModel):
    model_config = ConfigDict(frozen=True)

    percentage: int = Field(..., ge=0, le=100)
    overall_accuracy: float = Field(..., ge=0.0, le=1.0)
    questions_seen: int = Field(..., ge=0)
    total_questions: int = Field(..., ge=0)
    weakest_category: Optional[str] = None
    weakest_accuracy: float = Field(..., ge=0.0, le=1.0)
    status: ReadinessStatus
    recommendations: List[str] = Field(..., min_length=1)
