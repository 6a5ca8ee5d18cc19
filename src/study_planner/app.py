"""Interactive CLI application."""
import os
import sys
from datetime import date
from pathlib import Path

from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from study_planner.db import DEFAULT_DB_PATH, SqliteRepository
from study_planner.errors import ValidationError
from study_planner.importer import import_subjects
from study_planner.metrics import get_progress_color, get_progress_label
from study_planner.models import ExerciseTask, ExerciseTracking, StudyConfig, TaskStatus, UserSettings
from study_planner.review import effective_status
from study_planner.settings import study_window_minutes
from study_planner.store import StudyStore

console = Console()

EXIT_WORDS = ("q", "menu")


class SessionExitRequested(Exception):
    """Raised when the user asks to leave a flow and return to the menu."""


def session_prompt(text: str, **kwargs) -> str:
    answer = Prompt.ask(text, **kwargs)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


def session_int_prompt(text: str, choices=None, default=None) -> int:
    while True:
        kwargs = {"default": str(default)} if default is not None else {}
        answer = session_prompt(text, **kwargs).strip()
        if choices is not None and answer not in choices:
            console.print(f"[red]Choose one of: {', '.join(choices)}[/red]")
            continue
        try:
            return int(answer)
        except ValueError:
            console.print("[red]Please enter a whole number.[/red]")


def session_float_prompt(text: str, default=None) -> float:
    while True:
        kwargs = {"default": str(default)} if default is not None else {}
        answer = session_prompt(text, **kwargs).strip()
        try:
            return float(answer)
        except ValueError:
            console.print("[red]Please enter a number.[/red]")


def today_iso() -> str:
    return date.today().isoformat()


def show_welcome():
    console.print(Panel(
        "[bold]Study Planner[/bold]\n[dim]Tasks, schedule and spaced repetition[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("add", "Add a subject"),
        ("import", "Import subjects from a file"),
        ("today", "Today's tasks"),
        ("complete", "Complete a task"),
        ("review", "Subjects due for review"),
        ("revisions", "Revision queue"),
        ("schedule", "Generate the study calendar"),
        ("dashboard", "Progress overview"),
        ("settings", "Study settings"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def choose_subject(store: StudyStore, subjects=None):
    subjects = list(store.subjects if subjects is None else subjects)
    if not subjects:
        console.print("[yellow]No subjects yet. Use 'add' or 'import'.[/yellow]")
        return None
    for i, s in enumerate(subjects, 1):
        console.print(f"  [cyan]{i}[/cyan]) {s.name} [dim]({s.edital}, {s.progress_percentage}%)[/dim]")
    index = session_int_prompt("Subject", choices=[str(i) for i in range(1, len(subjects) + 1)])
    return subjects[index - 1]


def ask_subject_parameters() -> dict:
    return {
        "edital": session_prompt("Edital / category", default="Geral"),
        "deadline": session_prompt("Deadline (YYYY-MM-DD)"),
        "hours_per_day": session_float_prompt("Hours per day", default=2.0),
        "weekly_frequency": session_int_prompt("Days per week", choices=[str(i) for i in range(1, 8)], default=5),
        "max_hours_per_session": session_float_prompt("Max hours per session", default=2.0),
    }


def cmd_add(store: StudyStore):
    name = session_prompt("Subject name")
    params = ask_subject_parameters()
    subject = store.add_subject(name=name, today=today_iso(), **params)
    console.print(f"[green]Added {subject.name} with {len(subject.tasks)} tasks.[/green]")


def cmd_import(store: StudyStore):
    file_path = session_prompt("File path")
    if not Path(file_path).exists():
        console.print(f"[red]File not found: {file_path}[/red]")
        return
    params = ask_subject_parameters()
    created = import_subjects(store, file_path, today=today_iso(), **params)
    console.print(f"[green]Imported {len(created)} subjects from {Path(file_path).name}[/green]")


def cmd_today(store: StudyStore):
    today = today_iso()
    plans = store.tasks_for_day(today)
    if not plans:
        console.print("[green]Nothing scheduled for today.[/green]")
        return
    table = Table(title=f"Tasks for {today}")
    table.add_column("Subject", style="cyan")
    table.add_column("Task")
    table.add_column("Minutes", justify="right")
    for plan in plans:
        for task in plan.tasks:
            table.add_row(plan.subject_name, task.type.value, str(task.planned_duration_minutes))
    console.print(table)


def cmd_complete(store: StudyStore):
    subject = choose_subject(store)
    if subject is None:
        return
    pending = [t for t in subject.tasks if not t.is_completed]
    if not pending:
        console.print("[green]All tasks done for this subject.[/green]")
        return
    for i, t in enumerate(pending, 1):
        console.print(f"  [cyan]{i}[/cyan]) {t.type.value} - {t.planned_duration_minutes} min on {t.scheduled_date}")
    index = session_int_prompt("Task", choices=[str(i) for i in range(1, len(pending) + 1)])
    task = pending[index - 1]

    tracking = None
    if isinstance(task, ExerciseTask):
        made = session_int_prompt("Questions attempted", default=0)
        hit = session_int_prompt("Questions correct", default=0)
        minutes = session_int_prompt("Actual minutes spent", default=task.planned_duration_minutes)
        tracking = ExerciseTracking(questions_made=made, questions_hit=hit, actual_duration_minutes=minutes)

    was_cycled = any(r.subject_id == subject.id for r in store.revisions)
    updated = store.update_task_status(subject.id, task.id, TaskStatus.COMPLETED, today=today_iso(), tracking=tracking)
    if updated is None:
        console.print("[red]Task not found.[/red]")
        return
    store.record_study_session(subject.id, today_iso())
    console.print(f"[green]Done! {updated.name} is at {updated.progress_percentage}%.[/green]")
    if updated.is_complete and not was_cycled:
        console.print("[magenta]Subject complete. Revisions scheduled for 1, 7, 15 and 30 days.[/magenta]")


def cmd_review(store: StudyStore):
    today = today_iso()
    due = store.subjects_for_review(today)
    if not due:
        console.print("[green]No subjects due for review.[/green]")
        if Prompt.ask("Mark a subject as reviewed anyway?", choices=["y", "n"], default="n") == "n":
            return
        due = [s for s in store.subjects if not s.is_complete]
    subject = choose_subject(store, due)
    if subject is None:
        return
    updated = store.mark_reviewed(subject.id, today)
    if updated:
        console.print(f"[green]Next review of {updated.name} on {updated.next_review} "
                      f"({updated.review_interval} days).[/green]")


def cmd_revisions(store: StudyStore):
    today = today_iso()
    revisions = store.refresh_revisions(today)
    if not revisions:
        console.print("[yellow]No revisions yet. Finish a subject to start its cycle.[/yellow]")
        return
    table = Table(title="Revision Queue")
    table.add_column("#", justify="right")
    table.add_column("Subject", style="cyan")
    table.add_column("Cycle", justify="right")
    table.add_column("Due")
    table.add_column("Status")
    colors = {"pending": "yellow", "completed": "green", "missed": "red"}
    for i, r in enumerate(revisions, 1):
        status = effective_status(r, today).value
        table.add_row(str(i), r.subject_name, f"{r.cycle_day}d", r.due_date, f"[{colors[status]}]{status}[/{colors[status]}]")
    console.print(table)

    pending = store.pending_revisions(today)
    if not pending:
        return
    if Prompt.ask("Complete a revision?", choices=["y", "n"], default="n") == "y":
        index = session_int_prompt("Revision #", choices=[str(i) for i in range(1, len(revisions) + 1)])
        if store.complete_revision(revisions[index - 1].id, today):
            console.print("[green]Revision completed.[/green]")
        else:
            console.print("[red]That revision is no longer pending.[/red]")


def cmd_schedule(store: StudyStore):
    config = store.config
    console.print(f"[dim]Window {config.start_date} → {config.end_date}, {config.daily_study_hours} h/day[/dim]")
    if Prompt.ask("Change window?", choices=["y", "n"], default="n") == "y":
        config = store.update_config(StudyConfig(
            start_date=session_prompt("Start date (YYYY-MM-DD)", default=config.start_date),
            end_date=session_prompt("End date (YYYY-MM-DD)", default=config.end_date),
            daily_study_hours=session_float_prompt("Daily study hours", default=config.daily_study_hours),
        ))
    schedule = store.generate_schedule()
    if not schedule:
        console.print("[yellow]Nothing to schedule.[/yellow]")
        return
    names = {s.id: s.name for s in store.subjects}
    table = Table(title="Study Calendar")
    table.add_column("Date")
    table.add_column("Subjects", style="cyan")
    for entry in schedule:
        table.add_row(entry.date, ", ".join(names.get(i, "Unknown subject") for i in entry.subjects))
    console.print(table)


def cmd_dashboard(store: StudyStore):
    today = today_iso()
    stats = store.stats(today)
    console.print(Panel(
        f"Subjects: [bold]{stats['total_subjects']}[/bold]  |  "
        f"Completed: [bold]{stats['completed_subjects']}[/bold]  |  "
        f"Upcoming reviews: [bold]{stats['upcoming_reviews']}[/bold]  |  "
        f"Scheduled days: [bold]{stats['scheduled_days']}[/bold]",
        title="Dashboard", border_style="blue",
    ))
    table = Table(title="Subjects")
    table.add_column("Subject", style="cyan")
    table.add_column("Edital")
    table.add_column("Progress", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Status")
    for s in store.subjects:
        color = get_progress_color(s.progress_percentage)
        bar = "█" * (s.progress_percentage // 10) + "░" * (10 - s.progress_percentage // 10)
        table.add_row(
            f"[{s.color}]●[/{s.color}] {s.name}",
            s.edital,
            f"[{color}]{bar}[/{color}] {s.progress_percentage}%",
            f"{s.overall_score}%",
            f"[{color}]{get_progress_label(s.progress_percentage)}[/{color}]",
        )
    console.print(table)
    console.print(f"\n  Tasks: [bold]{stats['completed_tasks']}/{stats['total_tasks']}[/bold]  |  "
                  f"Avg exercise score: [bold]{stats['avg_score']}%[/bold]")


def cmd_settings(store: StudyStore):
    s = store.settings
    console.print(f"Study window {s.study_start_time}-{s.study_end_time}, "
                  f"{s.break_duration_minutes} min break "
                  f"([bold]{study_window_minutes(s)}[/bold] min available)")
    if Prompt.ask("Change settings?", choices=["y", "n"], default="n") == "n":
        return
    store.update_settings(UserSettings(
        study_start_time=session_prompt("Start time (HH:MM:SS)", default=s.study_start_time),
        study_end_time=session_prompt("End time (HH:MM:SS)", default=s.study_end_time),
        break_duration_minutes=session_int_prompt("Break minutes", default=s.break_duration_minutes),
    ))
    console.print("[green]Settings saved.[/green]")


COMMANDS = {
    "add": cmd_add,
    "import": cmd_import,
    "today": cmd_today,
    "complete": cmd_complete,
    "review": cmd_review,
    "revisions": cmd_revisions,
    "schedule": cmd_schedule,
    "dashboard": cmd_dashboard,
    "settings": cmd_settings,
}


def configure_logging() -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=os.environ.get("STUDY_PLANNER_LOG_LEVEL", "WARNING"),
        format="<level>{message}</level>",
    )


def main():
    configure_logging()
    store = StudyStore(SqliteRepository(DEFAULT_DB_PATH))
    store.load(today_iso())

    show_welcome()

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="today").strip().lower()
        try:
            if choice in ("quit", "exit", "q"):
                console.print("[dim]Keep it up![/dim]")
                break
            command = COMMANDS.get(choice)
            if command is None:
                console.print("[red]Unknown command. Try again.[/red]")
                continue
            command(store)
        except SessionExitRequested:
            console.print("[dim]Back to menu.[/dim]")
        except ValidationError as e:
            console.print(f"[red]{e}[/red]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
