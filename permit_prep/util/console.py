"""Rich console helpers for CLI output."""

from __future__ import annotations

from typing import Iterable, List

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..models.schemas import CategoryPerformance, Question, ReadinessScore

console = Console()


def print_banner() -> None:
    console.print(
        Panel(
            "[bold cyan]Permit Prep — California DMV Practice[/bold cyan]\n"
            "[dim]Adaptive practice  •  Readiness tracking[/dim]",
            border_style="bright_blue",
        )
    )


def print_step(step: str, description: str) -> None:
    console.print(f"\n[bold green]▶ {step}[/bold green]  {description}")


def print_question(q_num: int, question: Question) -> None:
    console.print(
        f"\n[bold yellow]Q{q_num}.[/bold yellow] {question.question_text} "
        f"[dim]({question.category})[/dim]"
    )
    for letter, text in question.choices():
        console.print(f"   {letter}) {text}")


def print_answer_feedback(question: Question, correct: bool) -> None:
    if correct:
        console.print("  [green]✅ Correct[/green]")
    else:
        console.print(
            f"  [red]❌ Incorrect[/red]. Answer: {question.correct_answer}"
        )
    if question.explanation:
        console.print(f"  [dim]{question.explanation}[/dim]")


def print_readiness(score: ReadinessScore) -> None:
    body: List[str] = [
        f"[bold]{score.percentage}%[/bold]  "
        f"[{score.status.color}]{score.status.title}[/{score.status.color}]",
        f"Accuracy: {score.overall_accuracy:.0%}   "
        f"Coverage: {score.questions_seen}/{score.total_questions}",
    ]
    if score.weakest_category:
        body.append(
            f"Weakest: {score.weakest_category} ({score.weakest_accuracy:.0%})"
        )
    body.append("")
    body.extend(f"  • {rec}" for rec in score.recommendations)
    console.print(
        Panel(
            "\n".join(body),
            title="Test Readiness",
            border_style=score.status.color,
        )
    )


def print_category_table(categories: Iterable[CategoryPerformance]) -> None:
    table = Table(title="Category Performance", show_lines=True)
    table.add_column("Category", style="bold")
    table.add_column("Questions", justify="right")
    table.add_column("Attempts", justify="right")
    table.add_column("Accuracy", justify="right")
    table.add_column("Weak?", justify="center")
    for perf in categories:
        table.add_row(
            perf.category,
            str(perf.questions_answered),
            str(perf.total_attempts),
            f"{perf.accuracy:.0%}",
            "⚠️" if perf.is_weak else "—",
        )
    console.print(table)
