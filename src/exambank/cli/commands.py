"""CLI commands for exambank.

Commands:
- stats: Pool breakdown per tier and type
- distribution: Standard-mode quotas for a requested size
- presets: Configured duration/size presets
- take: Compose, answer and grade an exam interactively
- history / history-clear: Past session results
- export: Matrix exam export to a pool document
"""

import json
import os
import random
from collections import Counter
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from exambank.config.app_config import AppConfig, load_app_config
from exambank.core.distribution import (
    category_counts,
    compute_distribution,
    max_feasible_total,
)
from exambank.core.exam_composer import (
    compose_matrix_exam,
    export_exam_document,
    suggest_matrix,
)
from exambank.core.exam_session import ExamSession
from exambank.core.grader import GradeReport, QuestionGrade
from exambank.core.history_repository import HistoryStoreError, SessionHistoryStore
from exambank.core.models import (
    TYPE_LABELS,
    Difficulty,
    ExamConfig,
    ExamMode,
    QuestionRecord,
    QuestionType,
    option_label,
    option_text,
)
from exambank.core.question_loader import PoolParseError, load_question_pool

app = typer.Typer(
    name="exambank",
    help="Compose, take and grade exams from a categorized question pool.",
    no_args_is_help=True,
)

console = Console()

RATING_TEXT = {
    "excellent": ("Excellent", "green"),
    "pass": ("Pass", "yellow"),
    "needs_work": ("Needs work", "red"),
}


def _data_dir() -> Path:
    return Path(os.environ.get("EXAMBANK_DATA_DIR", "data"))


def _load_config(data_dir: Path) -> AppConfig:
    return load_app_config(config_file=data_dir / "config" / "exambank_v1.yaml")


def _load_pool_or_exit(pool_file: Path) -> list[QuestionRecord]:
    """Load the pool or exit with a readable error."""
    try:
        return load_question_pool(pool_file)
    except PoolParseError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)


def _history_store(config: AppConfig, data_dir: Path) -> SessionHistoryStore:
    return SessionHistoryStore(config.history_path(data_dir))


def _parse_difficulty(value: str) -> Difficulty | None:
    if value.upper() == "ALL":
        return None
    try:
        return Difficulty(value.upper())
    except ValueError:
        console.print(f"[red]✗ Unknown difficulty: {value} (use NB, TH, VD, VDC or ALL)[/red]")
        raise typer.Exit(code=1)


def _parse_types(values: list[str] | None) -> frozenset[QuestionType]:
    if not values:
        return frozenset(QuestionType)
    by_code = {t.value.upper(): t for t in QuestionType}
    types = set()
    for value in values:
        question_type = by_code.get(value.upper())
        if question_type is None:
            console.print(f"[red]✗ Unknown question type: {value} (use MCQ, Essay, TF, SA)[/red]")
            raise typer.Exit(code=1)
        types.add(question_type)
    return frozenset(types)


def _format_time(seconds: int) -> str:
    minutes, secs = divmod(max(0, seconds), 60)
    return f"{minutes:02d}:{secs:02d}"


# =============================================================================
# POOL COMMANDS
# =============================================================================


@app.command()
def stats(
    pool_file: Path = typer.Argument(..., help="Question pool JSON file"),
) -> None:
    """Show how the pool splits across tiers and types."""
    data_dir = _data_dir()
    config = _load_config(data_dir)
    pool = _load_pool_or_exit(pool_file)

    by_tier = Counter(q.difficulty for q in pool)
    by_type = Counter(q.type for q in pool)

    table = Table(show_header=True, header_style="bold")
    table.add_column("Tier", style="cyan")
    table.add_column("Label")
    table.add_column("Count", justify="right")
    for tier in Difficulty:
        table.add_row(tier.value, tier.label, str(by_tier.get(tier, 0)))
    console.print(table)

    console.print("\n[bold]By type:[/bold]")
    for question_type in QuestionType:
        console.print(
            f"  {question_type.value} ({TYPE_LABELS[question_type.value]}): "
            f"{by_type.get(question_type, 0)}"
        )

    standard_max = max_feasible_total(category_counts(pool), config.standard_ratio)
    console.print(f"\n[dim]total:[/dim]          {len(pool)}")
    console.print(f"[dim]standard max:[/dim]   {standard_max}")


@app.command()
def distribution(
    pool_file: Path = typer.Argument(..., help="Question pool JSON file"),
    n: int = typer.Option(30, "-n", min=1, help="Requested number of questions"),
) -> None:
    """Show standard-mode quotas (50/30/20) for N questions."""
    data_dir = _data_dir()
    config = _load_config(data_dir)
    pool = _load_pool_or_exit(pool_file)

    counts = category_counts(pool)
    result = compute_distribution(counts, n, config.standard_ratio)

    if not result.success or result.quotas is None:
        console.print(f"[red]✗ {result.message}[/red]")
        raise typer.Exit(code=1)

    if result.clamped:
        console.print(
            f"[yellow]⚠ Requested {n}, reduced to the feasible maximum {result.max_feasible}[/yellow]"
        )

    console.print(f"[green]✓ {result.total} questions[/green]")
    console.print(f"  [dim]NB:[/dim]      {result.quotas.recall}/{counts.recall}")
    console.print(f"  [dim]TH:[/dim]      {result.quotas.comprehension}/{counts.comprehension}")
    console.print(f"  [dim]VD+VDC:[/dim]  {result.quotas.application}/{counts.application}")
    console.print(f"  [dim]max:[/dim]     {result.max_feasible}")


@app.command()
def presets() -> None:
    """List exam presets (duration and size)."""
    config = _load_config(_data_dir())
    for preset in config.presets:
        console.print(f"  {preset.label:>8}  {preset.questions} questions")


# =============================================================================
# TAKE EXAM
# =============================================================================


def _ask_question(num: int, total: int, question: QuestionRecord) -> str | None:
    """Prompt for one answer. Empty input skips the question."""
    console.print(f"\n[blue]Question {num}/{total}[/blue] [dim]({question.difficulty.value})[/dim]")
    console.print(f"[bold]{question.content}[/bold]")

    if question.type is QuestionType.MULTIPLE_CHOICE and question.options:
        labels = question.option_labels
        for idx, opt in enumerate(question.options):
            console.print(f"  {option_label(opt, idx)}. {option_text(opt)}")
        while True:
            raw = typer.prompt(f"Answer ({'/'.join(labels)}, empty to skip)", default="", show_default=False)
            answer = raw.strip().rstrip(".").upper()
            if not answer:
                return None
            if answer in labels:
                return answer
            console.print(f"[yellow]⚠ Choose one of {', '.join(labels)}[/yellow]")

    raw = typer.prompt("Answer (empty to skip)", default="", show_default=False).strip()
    return raw or None


def _print_feedback(grade: QuestionGrade) -> None:
    """Practice-mode feedback for a locked answer."""
    if grade.is_correct is True:
        console.print("[green]✓ Correct[/green]")
    elif grade.is_correct is False:
        console.print(f"[red]✗ Incorrect[/red] [dim]answer:[/dim] {grade.expected_answer}")
    if grade.explanation:
        console.print(f"[dim]Explanation:[/dim] {grade.explanation}")


def _print_report(report: GradeReport, questions: list[QuestionRecord], time_spent: int) -> None:
    rating_text, color = RATING_TEXT[report.rating]
    header = (
        f"[bold]{report.display_score}/10[/bold] - [{color}]{rating_text}[/{color}]\n"
        f"Correct: {report.score_raw}/{report.total_questions} | "
        f"{report.percentage}% | Time: {_format_time(time_spent)}"
    )
    console.print(Panel(header, title="[bold]Result[/bold]", expand=False))

    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right", width=4)
    table.add_column("Tier", width=5)
    table.add_column("Status", justify="center", width=8)
    table.add_column("Given", width=10)
    table.add_column("Expected", width=10)

    by_id = {q.id: q for q in questions}
    for idx, r in enumerate(report.results, 1):
        if r.is_correct is True:
            status_icon = "[green]✓[/green]"
        elif r.is_correct is False:
            status_icon = "[red]✗[/red]"
        else:
            status_icon = "[yellow]-[/yellow]"
        tier = by_id[r.question_id].difficulty.value
        table.add_row(str(idx), tier, status_icon, r.given_answer or "", r.expected_answer or "")

    console.print(table)

    explained = [(idx, r) for idx, r in enumerate(report.results, 1) if r.explanation]
    if explained:
        console.print("\n[bold]Explanations:[/bold]")
        for idx, r in explained:
            console.print(f"  [cyan]{idx}.[/cyan] {r.explanation}")


@app.command()
def take(
    pool_file: Path = typer.Argument(..., help="Question pool JSON file"),
    mode: ExamMode | None = typer.Option(None, "--mode", "-m", case_sensitive=False, help="Standard or Custom"),
    n: int | None = typer.Option(None, "-n", min=1, help="Number of questions"),
    difficulty: str = typer.Option("ALL", "-d", "--difficulty", help="Custom mode: NB, TH, VD, VDC or ALL"),
    types: list[str] | None = typer.Option(None, "-t", "--type", help="Custom mode: MCQ, Essay, TF, SA (repeatable)"),
    minutes: int | None = typer.Option(None, "--minutes", min=1, help="Time budget in minutes"),
    seed: int | None = typer.Option(None, "--seed", help="Seed for a reproducible shuffle"),
    save: bool = typer.Option(True, "--save/--no-save", help="Append the result to the history"),
) -> None:
    """Take an exam interactively.

    Standard mode keeps the 50/30/20 tier ratio; custom mode filters by
    difficulty and type.

    Example:
        exambank take pool.json --mode custom -d VD -t MCQ -n 10
    """
    data_dir = _data_dir()
    config = _load_config(data_dir)
    pool = _load_pool_or_exit(pool_file)

    exam_mode = mode or config.defaults.mode
    exam_config = ExamConfig(
        mode=exam_mode,
        requested_count=n or config.defaults.questions,
        duration_seconds=(minutes or config.defaults.minutes) * 60,
        difficulty_filter=_parse_difficulty(difficulty),
        type_filter=_parse_types(types),
    )

    session = ExamSession(
        history=_history_store(config, data_dir) if save else None,
        excellent=config.rating.excellent,
        passing=config.rating.passing,
        ratio=config.standard_ratio,
    )
    result = session.start(pool, exam_config, random.Random(seed))

    if not result.success or result.exam is None:
        console.print(f"[red]✗ {result.message}[/red]")
        raise typer.Exit(code=1)

    if result.clamped:
        console.print(
            f"[yellow]⚠ Requested {result.requested_count} questions, "
            f"composed {result.delivered_count}[/yellow]"
        )

    questions = list(result.exam.questions)
    console.print(f"\n[bold]{exam_mode.value} exam[/bold]")
    console.print(f"[dim]Questions:[/dim] {len(questions)}")
    console.print(f"[dim]Time:[/dim]      {_format_time(exam_config.duration_seconds)}")

    for i, question in enumerate(questions, 1):
        if session.is_expired():
            console.print("\n[yellow]⚠ Time is up, submitting[/yellow]")
            break
        answer = _ask_question(i, len(questions), question)
        if answer is not None and session.record_answer(question.id, answer):
            grade = session.feedback(question.id)
            if grade is not None:
                _print_feedback(grade)

    try:
        report = session.submit()
    except HistoryStoreError as e:
        if session.snapshot.report is not None:
            _print_report(session.snapshot.report, questions, session.elapsed_seconds())
        console.print(f"[red]✗ Could not save the result: {e}[/red]")
        raise typer.Exit(code=1)

    _print_report(report, questions, session.elapsed_seconds())
    if save:
        console.print(f"\n[dim]Saved:[/dim] {config.history_path(data_dir)}")


# =============================================================================
# HISTORY
# =============================================================================


@app.command()
def history(
    limit: int = typer.Option(20, "--limit", "-l", min=1, help="Sessions to show"),
) -> None:
    """Show past sessions, newest first."""
    from datetime import datetime

    data_dir = _data_dir()
    config = _load_config(data_dir)
    store = _history_store(config, data_dir)

    try:
        sessions = store.load()
    except HistoryStoreError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    if not sessions:
        console.print("[yellow]No sessions recorded yet[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Date", style="cyan")
    table.add_column("Mode")
    table.add_column("Score", justify="right")
    table.add_column("Time", justify="right")

    for s in sessions[:limit]:
        when = datetime.fromtimestamp(s.timestamp / 1000).strftime("%Y-%m-%d %H:%M")
        table.add_row(when, s.mode.value, f"{s.score}/{s.total_questions}", _format_time(s.time_spent))

    console.print(table)
    console.print(f"[dim]{len(sessions)} sessions total[/dim]")


@app.command(name="history-clear")
def history_clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete every stored session result."""
    data_dir = _data_dir()
    config = _load_config(data_dir)

    if not yes and not typer.confirm("Clear the whole session history?"):
        console.print("[dim]Cancelled[/dim]")
        raise typer.Exit(code=0)

    _history_store(config, data_dir).clear()
    console.print("[green]✓ History cleared[/green]")


# =============================================================================
# MATRIX EXPORT
# =============================================================================


@app.command()
def export(
    pool_file: Path = typer.Argument(..., help="Question pool JSON file"),
    output: Path = typer.Option(..., "-o", "--output", help="Output exam JSON file"),
    total: int | None = typer.Option(None, "--total", min=1, help="Split this total 40/30/20/10"),
    nb: int | None = typer.Option(None, "--nb", min=0, help="Recall questions"),
    th: int | None = typer.Option(None, "--th", min=0, help="Comprehension questions"),
    vd: int | None = typer.Option(None, "--vd", min=0, help="Application questions"),
    vdc: int | None = typer.Option(None, "--vdc", min=0, help="High application questions"),
    title: str = typer.Option("Exam", "--title", help="Exam title"),
    minutes: int = typer.Option(45, "--minutes", min=1, help="Exam duration in minutes"),
    seed: int | None = typer.Option(None, "--seed", help="Seed for a reproducible shuffle"),
) -> None:
    """Export an exam with explicit per-tier counts.

    Example:
        exambank export pool.json --nb 8 --th 6 --vd 4 --vdc 2 -o exam.json
    """
    config = _load_config(_data_dir())
    pool = _load_pool_or_exit(pool_file)

    matrix = suggest_matrix(total or 20, config.matrix_ratio)
    for tier, value in (
        (Difficulty.RECALL, nb),
        (Difficulty.COMPREHENSION, th),
        (Difficulty.APPLICATION, vd),
        (Difficulty.HIGH_APPLICATION, vdc),
    ):
        if value is not None:
            matrix[tier] = value

    if sum(matrix.values()) == 0:
        console.print("[red]✗ The exam must contain at least one question[/red]")
        raise typer.Exit(code=1)

    result = compose_matrix_exam(pool, matrix, random.Random(seed), duration_seconds=minutes * 60)
    if not result.success or result.exam is None:
        console.print(f"[red]✗ {result.message}[/red]")
        raise typer.Exit(code=1)

    document = export_exam_document(result.exam, title=title, duration_minutes=minutes)
    output.parent.mkdir(parents=True, exist_ok=True)
    with open(output, "w", encoding="utf-8") as f:
        json.dump(document, f, indent=2, ensure_ascii=False)

    console.print(f"[green]✓ {result.message}[/green]")
    console.print(
        "  [dim]matrix:[/dim]  "
        + ", ".join(f"{tier.value}={matrix[tier]}" for tier in Difficulty)
    )
    console.print(f"  [dim]file:[/dim]    {output}")
