"""Pydantic data models for the practice engine."""

from .schemas import (
    Question,
    QuestionCategory,
    Attempt,
    WeightTier,
    QuestionPerformance,
    CategoryPerformance,
    ReadinessStatus,
    ReadinessScore,
)
from .state import AnswerCounters, AttemptHistory

__all__ = [
    "Question",
    "QuestionCategory",
    "Attempt",
    "WeightTier",
    "QuestionPerformance",
    "CategoryPerformance",
    "ReadinessStatus",
    "ReadinessScore",
    "AnswerCounters",
    "AttemptHistory",
]
