"""
Typer CLI for the learnsight analytics engine.

Commands:
    learnsight snapshot USER      - Behavioral pattern summary
    learnsight timing USER        - Best study time, session length and daily target
    learnsight hints USER         - Personalized study hints
    learnsight load USER          - Cognitive load trend and next-session action
    learnsight retention USER     - Forgetting-curve summary and reviews due
    learnsight stage USER         - Learning stage from history depth
    learnsight flow SESSION       - Live flow guidance for an in-progress session
    learnsight import-events FILE - Store quiz/course records in the database
    learnsight db-init            - Create database tables

Events are read from a JSON file of source records (--events) or, when no
file is given, from the configured database.

Usage:
    learnsight snapshot u1 --events answers.json
    learnsight flow s1 --accuracy 82 --elapsed 30 --times 4200,3900,5100
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config import get_settings
from learnsight.analytics.snapshot import PatternSnapshot
from learnsight.core.exceptions import LearnsightError
from learnsight.core.logging_config import configure_logging
from learnsight.service import LearningAnalyticsService
from learnsight.storage.memory import InMemoryEventSource

app = typer.Typer(
    name="learnsight",
    help="Personal learning analytics and adaptive scheduling",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

EventsOption = Annotated[
    Path | None,
    typer.Option("--events", "-e", help="JSON file with a list of quiz/course records"),
]


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging")] = False,
) -> None:
    configure_logging(console_level="DEBUG" if verbose else "WARNING")


# ========================================
# Context Builder
# ========================================


def _load_records(path: Path) -> list[dict]:
    if not path.exists():
        rprint(f"[red]Events file not found:[/red] {path}")
        raise typer.Exit(code=1)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        rprint(f"[red]Invalid JSON in {path}:[/red] {e}")
        raise typer.Exit(code=1)
    if isinstance(data, dict):
        data = data.get("records", [])
    if not isinstance(data, list):
        rprint("[red]Events file must contain a list of records[/red]")
        raise typer.Exit(code=1)
    return data


def _build_service(events: Path | None) -> LearningAnalyticsService:
    """Service over a JSON file, or over the configured database."""
    if events is not None:
        return LearningAnalyticsService(event_source=InMemoryEventSource(_load_records(events)))

    from learnsight.db.database import init_db
    from learnsight.db.stores import SqlEventSource, SqlProfileStore, SqlReviewStore

    init_db()
    return LearningAnalyticsService(
        event_source=SqlEventSource(),
        review_store=SqlReviewStore(),
        profile_store=SqlProfileStore(),
    )


def _percent(value: float) -> str:
    return f"{value * 100:.0f}%"


# ========================================
# Analytics Commands
# ========================================


@app.command()
def snapshot(
    user_id: Annotated[str, typer.Argument(help="Learner id")],
    events: EventsOption = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print raw JSON")] = False,
) -> None:
    """Show the learner's behavioral pattern summary."""
    with _build_service(events) as service:
        result = service.get_pattern_snapshot(user_id)

    if as_json:
        console.print_json(json.dumps(result.to_dict(), default=str))
        return
    _render_snapshot(result)


def _render_snapshot(result: PatternSnapshot) -> None:
    freq = result.learning_frequency
    streaks = result.streak_patterns
    subjects = result.subject_strengths
    peak = result.time_of_day_patterns.peak_focus_time

    summary = Table(title=f"Learning patterns for {result.user_id}", show_header=False)
    summary.add_column("Metric", style="cyan")
    summary.add_column("Value", style="white")
    summary.add_row("Events analyzed", str(result.event_count))
    summary.add_row("Active days", str(freq.active_days))
    summary.add_row("Questions / day", f"{freq.average_daily_questions:.2f}")
    summary.add_row("Consistency", _percent(freq.consistency))
    summary.add_row("Overall accuracy", f"{subjects.overall_accuracy}%")
    summary.add_row("Level", result.difficulty_progression.current_level)
    summary.add_row("Ready for next level", "yes" if result.difficulty_progression.ready_for_next else "no")
    summary.add_row("Streak (current / longest)", f"{streaks.current_streak} / {streaks.longest_streak}")
    summary.add_row("Peak focus", f"{peak.hour}:00 ({peak.time_slot})" if peak else "not enough data")
    summary.add_row("Velocity", f"{result.learning_velocity.velocity_score:.2f}")
    summary.add_row(
        "Weekly retention",
        f"{_percent(result.retention_rate.weekly_retention)} ({result.retention_rate.trend})",
    )
    console.print(summary)

    if subjects.strengths or subjects.weaknesses:
        table = Table(title="Subjects")
        table.add_column("Category", style="cyan")
        table.add_column("Kind")
        table.add_column("Accuracy", justify="right")
        table.add_column("Questions", justify="right")
        table.add_column("Avg time (s)", justify="right")
        for item in subjects.strengths:
            table.add_row(item.category, "[green]strength[/green]", f"{item.accuracy}%", str(item.total_questions), str(item.average_time))
        for item in subjects.weaknesses:
            table.add_row(item.category, "[red]weakness[/red]", f"{item.accuracy}%", str(item.total_questions), str(item.average_time))
        console.print(table)

    if result.is_degraded:
        rprint("[yellow]Some data could not be loaded; results use defaults.[/yellow]")


@app.command()
def timing(
    user_id: Annotated[str, typer.Argument(help="Learner id")],
    events: EventsOption = None,
) -> None:
    """Recommend the best study time, session length and daily target."""
    with _build_service(events) as service:
        result = service.get_optimal_learning_time(user_id)

    body = (
        f"Best time: [bold]{result.best_hour}:00[/bold] ({result.best_time.time_slot}, "
        f"confidence {result.best_time.confidence}%)\n"
        f"Session length: [bold]{result.session_length_minutes} min[/bold] "
        f"({result.session_length.min_minutes}-{result.session_length.max_minutes})\n"
        f"  {result.session_length.reasoning}\n"
        f"Daily target: [bold]{result.daily_question_target} questions[/bold], "
        f"{result.frequency.sessions_per_week} sessions/week\n\n"
        + "\n".join(f"- {line}" for line in result.advice)
    )
    console.print(Panel(body, title=f"Study timing for {user_id}", border_style="cyan"))


@app.command()
def hints(
    user_id: Annotated[str, typer.Argument(help="Learner id")],
    events: EventsOption = None,
    content_id: Annotated[str | None, typer.Option("--content", "-c", help="Question/content id")] = None,
) -> None:
    """Show personalized study hints."""
    with _build_service(events) as service:
        result = service.get_personalized_hints(user_id, content_id)

    sections = [
        ("General", result.general_tips),
        ("Subjects", result.subject_specific_tips),
        ("Performance", result.performance_tips),
        ("This question", result.question_specific or []),
    ]
    for title, tips in sections:
        if tips:
            rprint(f"[bold cyan]{title}[/bold cyan]")
            for tip in tips:
                rprint(f"  - {tip}")
    rprint(f"\n[magenta]{result.motivational_message}[/magenta]")


@app.command()
def load(
    user_id: Annotated[str, typer.Argument(help="Learner id")],
    events: EventsOption = None,
) -> None:
    """Cognitive load trend and what to do next session."""
    with _build_service(events) as service:
        result = service.get_cognitive_load_guidance(user_id)

    rprint(f"Current load: [bold]{result.current_load:.1f}/10[/bold] ({result.trend})")
    rprint(f"Action: {result.recommended_action.value}")
    rprint(f"Time until fatigue: {result.time_until_fatigue_minutes} min")
    if result.is_degraded:
        rprint("[yellow]Some data could not be loaded; results use defaults.[/yellow]")


@app.command()
def retention(
    user_id: Annotated[str, typer.Argument(help="Learner id")],
    events: EventsOption = None,
) -> None:
    """Forgetting-curve summary with the number of reviews due."""
    with _build_service(events) as service:
        result = service.get_forgetting_curve_recommendations(user_id)

    table = Table(title=f"Retention for {user_id}", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Retention after 1 day", f"{result.personal_retention_rate}%")
    table.add_row("Forgetting rate", f"{result.average_forgetting_rate:.2f}/day")
    table.add_row("Review every", f"{result.optimal_review_frequency_days} days")
    table.add_row("Reviews due", str(result.total_items_to_review))
    table.add_row("Strong", ", ".join(result.strong_categories) or "-")
    table.add_row("Weak", ", ".join(result.weak_categories) or "-")
    console.print(table)


@app.command()
def stage(
    user_id: Annotated[str, typer.Argument(help="Learner id")],
    events: EventsOption = None,
) -> None:
    """How much history backs the learner's analytics."""
    with _build_service(events) as service:
        result = service.get_learning_stage(user_id)

    rprint(
        f"Stage: [bold]{result.stage}[/bold] (data {result.data_quality}; "
        f"{result.days_active} active days, {result.session_count} sessions)"
    )


def _parse_times(raw: str | None) -> list[float]:
    if not raw:
        return []
    try:
        return [float(part) for part in raw.split(",") if part.strip()]
    except ValueError:
        rprint(f"[red]Invalid response times:[/red] {raw}")
        raise typer.Exit(code=1)


@app.command()
def flow(
    session_id: Annotated[str, typer.Argument(help="Session id")],
    accuracy: Annotated[float, typer.Option("--accuracy", "-a", help="Accuracy so far, 0-100")],
    elapsed: Annotated[float, typer.Option("--elapsed", help="Minutes since the session started")] = 0.0,
    times: Annotated[str | None, typer.Option("--times", "-t", help="Comma-separated recent response times (ms)")] = None,
) -> None:
    """Live flow guidance for an in-progress session."""
    with LearningAnalyticsService() as service:
        try:
            guidance = service.get_live_flow_guidance(session_id, accuracy, elapsed, _parse_times(times))
        except LearnsightError as e:
            rprint(f"[red]{e}[/red]")
            raise typer.Exit(code=1)

    color = "green" if guidance.continue_recommendation else "red"
    rprint(f"[bold {color}]{guidance.status.value}[/bold {color}] flow={guidance.current_flow:.2f}")
    rprint(f"Action: {guidance.recommended_action}")
    rprint(f"Adjust: {guidance.adjustment_suggestion}")
    rprint(f"Continue: {'yes' if guidance.continue_recommendation else 'no'}")


# ========================================
# Database Commands
# ========================================


@app.command("import-events")
def import_events(
    path: Annotated[Path, typer.Argument(help="JSON file with a list of quiz/course records")],
) -> None:
    """Store source records in the configured database."""
    from learnsight.db.database import init_db
    from learnsight.db.stores import SqlEventSource

    records = _load_records(path)
    init_db()
    try:
        stored = SqlEventSource().add_records(records)
    except LearnsightError as e:
        logger.error(f"Import aborted: {e}")
        rprint(f"[red]Import aborted:[/red] {e}")
        raise typer.Exit(code=1)
    rprint(f"[green]✓[/green] Stored {stored} records")


@app.command("db-init")
def db_init() -> None:
    """
    Initialize database tables.

    Safe to run multiple times (idempotent).
    """
    from learnsight.db.database import init_db

    init_db()
    rprint(f"[green]✓[/green] Database initialized ({get_settings().database_url})")


def run() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run()
