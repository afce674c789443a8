"""HTTP API exposing adaptive quizzes and readiness scoring."""

from __future__ import annotations

import logging
import math
from collections import defaultdict, deque
from contextlib import asynccontextmanager
from functools import lru_cache
from threading import Lock
from time import monotonic, perf_counter
from typing import Any, Callable, DefaultDict, Deque, Dict, List, Literal, Optional
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from .config import load_settings
from .engine.performance import PerformanceAggregator
from .engine.readiness import ReadinessEngine
from .engine.selector import AdaptiveSelector
from .models.schemas import CategoryPerformance, Question, ReadinessScore
from .observability.context import request_context
from .observability.logging_setup import configure_logging
from .orchestration.attempt_store import AttemptStore
from .orchestration.question_bank import QuestionBank
from .orchestration.state_store import StateStore
from .orchestration.workflow import build_quiz


@asynccontextmanager
async def _app_lifespan(_: FastAPI):
    configure_logging()
    logging.getLogger("permit_prep.api").info(
        "api_startup",
        extra={"event": "api_startup"},
    )
    yield


app = FastAPI(
    title="Permit Prep API",
    description="Adaptive practice and readiness scoring for the CA DMV permit test",
    version="1.0.0",
    lifespan=_app_lifespan,
)

_http_logger = logging.getLogger("permit_prep.http")


class _SlidingWindowRateLimiter:
    """Remembers each key's request times for one window."""

    def __init__(
        self,
        limit: int,
        window_seconds: int,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        self.limit = limit
        self.window = float(window_seconds)
        self._clock = clock
        self._hits: DefaultDict[str, Deque[float]] = defaultdict(deque)
        self._lock = Lock()

    def retry_after(self, key: str) -> int:
        """Seconds until *key* may retry, or 0 when the request is admitted."""
        now = self._clock()
        with self._lock:
            hits = self._hits[key]
            while hits and now - hits[0] >= self.window:
                hits.popleft()
            if len(hits) < self.limit:
                hits.append(now)
                return 0
            return max(1, math.ceil(self.window - (now - hits[0])))


# ── Request / response models ───────────────────────────────────────
class QuizQuestion(BaseModel):
    id: str
    question_text: str
    choices: Dict[str, str]
    category: str
    image_name: Optional[str] = None

    @classmethod
    def from_question(cls, question: Question) -> "QuizQuestion":
        return cls(
            id=question.id,
            question_text=question.question_text,
            choices=dict(question.choices()),
            category=question.category,
            image_name=question.image_name,
        )


class StartQuizRequest(BaseModel):
    user_id: str = Field(default="default", min_length=1, max_length=120)
    mode: Literal["adaptive", "weak", "random"] = "adaptive"
    count: int = Field(default=10, ge=1, le=200)
    category: Optional[str] = None


class StartQuizResponse(BaseModel):
    user_id: str
    mode: str
    questions: List[QuizQuestion]


class SubmittedAnswer(BaseModel):
    question_id: str
    answer: str = Field(..., min_length=1, max_length=1)
    time_taken: int = Field(default=0, ge=0)


class SubmitQuizRequest(BaseModel):
    user_id: str = Field(default="default", min_length=1, max_length=120)
    answers: List[SubmittedAnswer]


class AnswerResult(BaseModel):
    question_id: str
    correct: bool
    correct_answer: str
    explanation: Optional[str] = None


class SubmitQuizResponse(BaseModel):
    user_id: str
    results: List[AnswerResult]
    warnings: List[str] = Field(default_factory=list)
    readiness: ReadinessScore


class CategoryReport(BaseModel):
    category: str
    questions_answered: int
    total_attempts: int
    correct_attempts: int
    accuracy: float
    is_weak: bool

    @classmethod
    def from_performance(cls, perf: CategoryPerformance) -> "CategoryReport":
        return cls(
            category=perf.category,
            questions_answered=perf.questions_answered,
            total_attempts=perf.total_attempts,
            correct_attempts=perf.correct_attempts,
            accuracy=perf.accuracy,
            is_weak=perf.is_weak,
        )


class PerformanceResponse(BaseModel):
    user_id: str
    categories: List[CategoryReport]
    weak_categories: List[str]


class ResetResponse(BaseModel):
    user_id: str
    removed: int


# ── Dependencies ────────────────────────────────────────────────────
@lru_cache(maxsize=1)
def _question_bank() -> QuestionBank:
    return QuestionBank(data_dir=load_settings().question_data_dir)


@lru_cache(maxsize=1)
def _state_store() -> StateStore:
    return StateStore()


@lru_cache(maxsize=1)
def _rate_limiter() -> Optional[_SlidingWindowRateLimiter]:
    settings = load_settings()
    if settings.rate_limit_requests <= 0:
        return None
    return _SlidingWindowRateLimiter(
        limit=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )


def _enforce_rate_limit(request: Request, user_id: str) -> None:
    limiter = _rate_limiter()
    if limiter is None:
        return
    host = request.client.host if request.client else "-"
    wait = limiter.retry_after(f"{user_id}@{host}")
    if not wait:
        return
    _http_logger.warning(
        "rate_limited",
        extra={"event": "rate_limited", "user_id": user_id, "retry_after": wait},
    )
    raise HTTPException(
        status_code=429,
        detail=f"Too many requests for {user_id}; retry in {wait}s.",
        headers={"Retry-After": str(wait)},
    )


def _load_store(user_id: str) -> AttemptStore:
    return AttemptStore(_state_store().load(user_id))


def _save_store(user_id: str, store: AttemptStore, warnings: List[str]) -> None:
    try:
        _state_store().save(user_id, store.snapshot())
    except OSError as exc:
        warnings.append(f"History save failed: {exc}")


def _readiness_for(store: AttemptStore) -> ReadinessScore:
    return ReadinessEngine(
        store, _question_bank(), counters=store.counters
    ).calculate_readiness()


# ── Middleware ──────────────────────────────────────────────────────
def _log_request(
    request: Request, status_code: int, started: float, failed: bool = False
) -> None:
    level = logging.ERROR if failed else logging.INFO
    _http_logger.log(
        level,
        "request_completed",
        exc_info=failed,
        extra={
            "event": "request_completed",
            "method": request.method,
            "path": request.url.path,
            "status_code": status_code,
            "duration_ms": round((perf_counter() - started) * 1000, 2),
        },
    )


@app.middleware("http")
async def _bind_request_id(request: Request, call_next: Callable[..., Any]):
    request_id = request.headers.get("x-request-id") or uuid4().hex
    started = perf_counter()
    with request_context(request_id):
        try:
            response = await call_next(request)
        except Exception:
            _log_request(request, 500, started, failed=True)
            raise
        _log_request(request, response.status_code, started)
    response.headers["x-request-id"] = request_id
    return response


# ── Routes ──────────────────────────────────────────────────────────
@app.get("/healthz")
def healthz() -> dict:
    return {"status": "ok"}


@app.get("/v1/categories")
def categories() -> dict:
    return {"categories": _question_bank().categories()}


@app.post("/v1/quiz/start", response_model=StartQuizResponse)
def start_quiz(req: StartQuizRequest, request: Request) -> StartQuizResponse:
    _enforce_rate_limit(request, req.user_id)
    store = _load_store(req.user_id)
    selector = AdaptiveSelector(_question_bank(), PerformanceAggregator(store))
    questions = build_quiz(selector, req.mode, req.count, req.category)
    return StartQuizResponse(
        user_id=req.user_id,
        mode=req.mode,
        questions=[QuizQuestion.from_question(q) for q in questions],
    )


@app.post("/v1/quiz/submit", response_model=SubmitQuizResponse)
def submit_quiz(req: SubmitQuizRequest, request: Request) -> SubmitQuizResponse:
    _enforce_rate_limit(request, req.user_id)
    if not req.answers:
        raise HTTPException(status_code=400, detail="No answers submitted.")

    bank = _question_bank()
    store = _load_store(req.user_id)
    warnings: List[str] = []
    results: List[AnswerResult] = []

    for submitted in req.answers:
        question = bank.get(submitted.question_id)
        if question is None:
            warnings.append(f"Unknown question id ignored: {submitted.question_id}")
            continue
        correct = question.is_correct(submitted.answer)
        store.record_attempt(
            question_id=question.id,
            category=question.category,
            was_correct=correct,
            time_taken=submitted.time_taken,
        )
        results.append(
            AnswerResult(
                question_id=question.id,
                correct=correct,
                correct_answer=question.correct_answer,
                explanation=question.explanation,
            )
        )

    if results:
        _save_store(req.user_id, store, warnings)

    return SubmitQuizResponse(
        user_id=req.user_id,
        results=results,
        warnings=warnings,
        readiness=_readiness_for(store),
    )


@app.get("/v1/readiness/{user_id}", response_model=ReadinessScore)
def get_readiness(user_id: str, request: Request) -> ReadinessScore:
    _enforce_rate_limit(request, user_id)
    return _readiness_for(_load_store(user_id))


@app.get("/v1/performance/{user_id}/categories", response_model=PerformanceResponse)
def get_category_performance(user_id: str, request: Request) -> PerformanceResponse:
    _enforce_rate_limit(request, user_id)
    aggregator = PerformanceAggregator(_load_store(user_id))
    performance = aggregator.all_category_performance()
    return PerformanceResponse(
        user_id=user_id,
        categories=[
            CategoryReport.from_performance(performance[name])
            for name in sorted(performance)
        ],
        weak_categories=[p.category for p in aggregator.weak_categories()],
    )


@app.delete("/v1/attempts/{user_id}", response_model=ResetResponse)
def reset_attempts(user_id: str, request: Request) -> ResetResponse:
    _enforce_rate_limit(request, user_id)
    store = _load_store(user_id)
    removed = store.delete_attempts()
    warnings: List[str] = []
    _save_store(user_id, store, warnings)
    if warnings:
        raise HTTPException(status_code=500, detail=warnings[0])
    return ResetResponse(user_id=user_id, removed=removed)
