"""Persistent learner history across sessions."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field, model_validator

from .schemas import Attempt


class AnswerCounters(BaseModel):
    questions_answered: int = 0
    correct_answers: int = 0

    @model_validator(mode="after")
    def _clamp(self) -> "AnswerCounters":
        # Nonsensical counts are clamped rather than rejected.
        answered = max(0, self.questions_answered)
        correct = min(max(0, self.correct_answers), answered)
        self.questions_answered = answered
        self.correct_answers = correct
        return self


class AttemptHistory(BaseModel):
    attempts: List[Attempt] = Field(default_factory=list)
    counters: AnswerCounters = Field(default_factory=AnswerCounters)
