"""Progress and score metrics derived from a subject's tasks."""
import math
from dataclasses import replace

from study_planner.errors import ValidationError
from study_planner.models import ExerciseTask, Subject, TaskType


def round_half_up(value: float) -> int:
    # Built-in round() rounds halves to even: 12.5 -> 12.
    return int(math.floor(value + 0.5))


def score_percentage(made: int, hit: int) -> int:
    """Percentage of questions answered correctly, 0 when nothing was attempted."""
    if made < 0 or hit < 0:
        raise ValidationError("Question counts cannot be negative")
    if hit > made:
        raise ValidationError(f"Correct answers ({hit}) exceed questions attempted ({made})")
    if made == 0:
        return 0
    return round_half_up(100 * hit / made)


def _scored_exercises(subject: Subject) -> list:
    return [
        t for t in subject.tasks
        if t.type == TaskType.EXERCISE
        and t.is_completed
        and isinstance(t, ExerciseTask)
        and t.tracking is not None
    ]


def recompute(subject: Subject) -> Subject:
    """Return ``subject`` with progress and overall score derived from its tasks.

    Pure and idempotent; everything other than the two derived fields
    (colour included) is carried over unchanged.
    """
    total = len(subject.tasks)
    completed = sum(1 for t in subject.tasks if t.is_completed)
    progress = round_half_up(100 * completed / total) if total else 0

    scored = _scored_exercises(subject)
    if scored:
        overall = round_half_up(sum(t.tracking.score_percentage for t in scored) / len(scored))
    else:
        overall = 0

    if progress == subject.progress_percentage and overall == subject.overall_score:
        return subject
    return replace(subject, progress_percentage=progress, overall_score=overall)


def recompute_all(subjects) -> tuple:
    return tuple(recompute(s) for s in subjects)


def get_progress_label(progress: int) -> str:
    if progress >= 100:
        return "COMPLETED"
    elif progress > 0:
        return "IN PROGRESS"
    return "NOT STARTED"


def get_progress_color(progress: int) -> str:
    if progress >= 100:
        return "green"
    elif progress >= 50:
        return "yellow"
    elif progress > 0:
        return "dark_orange"
    return "red"


def get_study_stats(subjects, schedule, today: str) -> dict:
    """Summary counts for the dashboard."""
    subjects = list(subjects)
    tasks = [t for s in subjects for t in s.tasks]
    scored = [s.overall_score for s in subjects if _scored_exercises(s)]
    return {
        "total_subjects": len(subjects),
        "completed_subjects": sum(1 for s in subjects if s.is_complete),
        "upcoming_reviews": sum(
            1 for s in subjects
            if s.next_review and s.next_review > today and not s.is_complete
        ),
        "scheduled_days": len(schedule),
        "total_tasks": len(tasks),
        "completed_tasks": sum(1 for t in tasks if t.is_completed),
        "avg_score": round(sum(scored) / len(scored), 1) if scored else 0.0,
    }
