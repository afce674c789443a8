"""Interactive practice session: select → quiz → record → readiness."""

from __future__ import annotations

import logging
import random
from time import monotonic
from typing import Callable, List, Optional

from ..config import Settings, load_settings
from ..engine.performance import PerformanceAggregator
from ..engine.readiness import ReadinessEngine
from ..engine.selector import AdaptiveSelector
from ..models.schemas import Question, QuestionCategory
from ..util.console import (
    console,
    print_answer_feedback,
    print_banner,
    print_category_table,
    print_question,
    print_readiness,
    print_step,
)
from .attempt_store import AttemptStore
from .question_bank import QuestionBank
from .state_store import StateStore

_logger = logging.getLogger("permit_prep.workflow")

MODES = ("adaptive", "weak", "random")


def resolve_category(name: Optional[str]) -> Optional[str]:
    """Accept a display name or a module id such as ``parking_stopping``."""
    if not name:
        return None
    category = QuestionCategory.from_module_id(name.strip())
    return category.value if category else name


def build_quiz(
    selector: AdaptiveSelector,
    mode: str,
    count: int,
    category: Optional[str] = None,
) -> List[Question]:
    category = resolve_category(category)
    if mode == "weak":
        return selector.weak_area_questions(count, [category] if category else None)
    if mode == "random":
        return selector.random_questions(count)
    return selector.adaptive_questions(count, category)


def _ask(question: Question, input_fn: Callable[[str], str]) -> str:
    letters = [letter for letter, _ in question.choices()]
    while True:
        raw = input_fn(f"Your answer ({'/'.join(letters)}): ").strip().upper()
        if raw in letters:
            return raw
        console.print(f"  [red]Enter one of {', '.join(letters)}[/red]")


def _present_quiz(
    questions: List[Question],
    store: AttemptStore,
    input_fn: Callable[[str], str],
    rng: Optional[random.Random] = None,
) -> int:
    correct_count = 0
    for i, original in enumerate(questions, 1):
        # Graded locally, so the answer order can differ from the bank.
        question = original.with_shuffled_answers(rng)
        print_question(i, question)
        started = monotonic()
        answer = _ask(question, input_fn)
        correct = question.is_correct(answer)
        store.record_attempt(
            question_id=question.id,
            category=question.category,
            was_correct=correct,
            time_taken=int(monotonic() - started),
        )
        print_answer_feedback(question, correct)
        correct_count += int(correct)
    return correct_count


def run_workflow(
    user_id: str = "default",
    mode: str = "adaptive",
    count: Optional[int] = None,
    category: Optional[str] = None,
    readiness_only: bool = False,
    settings: Optional[Settings] = None,
    input_fn: Callable[[str], str] = input,
    rng: Optional[random.Random] = None,
) -> None:
    """Run one practice session for *user_id* and persist the result."""
    settings = settings or load_settings()
    print_banner()

    bank = QuestionBank(data_dir=settings.question_data_dir)
    state_store = StateStore(settings.state_dir)
    store = AttemptStore(state_store.load(user_id))
    aggregator = PerformanceAggregator(store)
    readiness = ReadinessEngine(store, bank, counters=store.counters)

    if not readiness_only:
        print_step("1/3", f"Building {mode} quiz")
        quiz = build_quiz(
            AdaptiveSelector(bank, aggregator, rng=rng),
            mode,
            count or settings.default_quiz_size,
            category,
        )
        if not quiz:
            console.print("[yellow]No questions match that selection.[/yellow]")
        else:
            print_step("2/3", "Quiz time!")
            correct = _present_quiz(quiz, store, input_fn, rng)
            console.print(
                f"\n[bold]Score: {correct}/{len(quiz)}[/bold]"
            )
            _logger.info(
                "quiz_completed",
                extra={
                    "event": "quiz_completed",
                    "mode": mode,
                    "questions": len(quiz),
                    "correct": correct,
                },
            )
            try:
                state_store.save(user_id, store.snapshot())
            except OSError as exc:
                console.print(f"[yellow]Could not save history: {exc}[/yellow]")

    print_step("3/3" if not readiness_only else "1/1", "Readiness check")
    categories = aggregator.all_category_performance()
    if categories:
        print_category_table(categories[name] for name in sorted(categories))
    print_readiness(readiness.calculate_readiness())
