"""Break a new subject down into dated learning tasks."""
import math
import uuid
from datetime import date, timedelta

from study_planner.errors import ValidationError
from study_planner.metrics import recompute
from study_planner.models import DEFAULT_EDITAL, Subject, TaskType, make_task

MODULE_COUNT = 5
MIN_TOTAL_HOURS = 40
# Each module is a video, then reading, then exercises. Durations are in
# tenths of the video length: reading 0.7x, exercises 1.3x.
MODULE_LAYOUT = [
    (TaskType.VIDEO, 10),
    (TaskType.DOCUMENT, 7),
    (TaskType.EXERCISE, 13),
]

PALETTE = [
    "#9E7FFF",
    "#38BDF8",
    "#F472B6",
    "#10B981",
    "#F59E0B",
    "#EF4444",
    "#6366F1",
    "#14B8A6",
]


def new_id() -> str:
    return uuid.uuid4().hex


def color_for(index: int) -> str:
    """Palette colour for the ``index``-th subject ever created."""
    return PALETTE[index % len(PALETTE)]


def days_until(deadline: str, today: str) -> int:
    try:
        delta = date.fromisoformat(deadline) - date.fromisoformat(today)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid date: {deadline!r}")
    return max(0, delta.days)


def derive_total_hours(
    days_until_exam: int,
    weekly_frequency: int,
    hours_per_day: float,
    max_hours_per_session: float,
) -> float:
    """Total study hours available before the deadline, at least MIN_TOTAL_HOURS."""
    weeks = days_until_exam / 7
    per_session = min(hours_per_day, max_hours_per_session)
    total = weeks * weekly_frequency * per_session
    return max(float(MIN_TOTAL_HOURS), total)


def generate_tasks(total_hours: float, start_date: str, id_factory=new_id) -> tuple:
    """Expand a time budget into the fixed 5-module task list.

    Module i (1-indexed) lands on ``start_date + i // 2`` days, so the five
    modules share three consecutive days. Every task gets at least one
    minute.
    """
    if total_hours <= 0:
        total_hours = MIN_TOTAL_HOURS
    start = date.fromisoformat(start_date)
    base = math.floor(total_hours * 60 / (MODULE_COUNT * len(MODULE_LAYOUT)))
    tasks = []
    for module in range(1, MODULE_COUNT + 1):
        scheduled = (start + timedelta(days=module // 2)).isoformat()
        for task_type, tenths in MODULE_LAYOUT:
            tasks.append(make_task(
                id=id_factory(),
                type=task_type,
                planned_duration_minutes=max(1, base * tenths // 10),
                scheduled_date=scheduled,
            ))
    return tuple(tasks)


def create_subject(
    name: str,
    edital: str,
    deadline: str,
    hours_per_day: float,
    weekly_frequency: int,
    max_hours_per_session: float,
    today: str,
    color: str = PALETTE[0],
    id_factory=new_id,
) -> Subject:
    """Validate the inputs and build a subject with its generated tasks."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("Subject name is required")
    if hours_per_day is None or hours_per_day <= 0:
        raise ValidationError("Hours per day must be positive")
    if weekly_frequency is None or not 1 <= weekly_frequency <= 7:
        raise ValidationError("Weekly frequency must be between 1 and 7 days")
    if max_hours_per_session is None or max_hours_per_session <= 0:
        raise ValidationError("Max hours per session must be positive")
    remaining = days_until(deadline, today)

    total_hours = derive_total_hours(remaining, weekly_frequency, hours_per_day, max_hours_per_session)
    subject = Subject(
        id=id_factory(),
        name=name,
        edital=(edital or "").strip() or DEFAULT_EDITAL,
        weekly_frequency=weekly_frequency,
        hours_per_day=hours_per_day,
        max_hours_per_session=max_hours_per_session,
        days_until_exam=remaining,
        tasks=generate_tasks(total_hours, today, id_factory),
        color=color,
    )
    return recompute(subject)
