"""Data classes for the planner domain model."""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

DEFAULT_EDITAL = "Geral"


class TaskType(str, Enum):
    VIDEO = "Video"
    DOCUMENT = "Document"
    EXERCISE = "Exercise"


class TaskStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class RevisionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    MISSED = "missed"


@dataclass(frozen=True)
class ExerciseTracking:
    questions_made: int
    questions_hit: int
    score_percentage: int = 0
    actual_duration_minutes: Optional[int] = None


@dataclass(frozen=True)
class Task:
    id: str
    type: TaskType
    planned_duration_minutes: int
    scheduled_date: str  # YYYY-MM-DD
    status: TaskStatus = TaskStatus.PENDING

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED


@dataclass(frozen=True)
class ExerciseTask(Task):
    tracking: Optional[ExerciseTracking] = None

    def __post_init__(self):
        if self.type != TaskType.EXERCISE:
            raise TypeError(f"ExerciseTask cannot have type {self.type!r}")


def make_task(
    id: str,
    type: TaskType,
    planned_duration_minutes: int,
    scheduled_date: str,
    status: TaskStatus = TaskStatus.PENDING,
    tracking: Optional[ExerciseTracking] = None,
) -> Task:
    """Build the right task variant for ``type``.

    Tracking is only ever attached to exercises; it is dropped for the other
    task types.
    """
    type = TaskType(type)
    status = TaskStatus(status)
    if type == TaskType.EXERCISE:
        return ExerciseTask(
            id=id,
            type=type,
            planned_duration_minutes=planned_duration_minutes,
            scheduled_date=scheduled_date,
            status=status,
            tracking=tracking,
        )
    return Task(
        id=id,
        type=type,
        planned_duration_minutes=planned_duration_minutes,
        scheduled_date=scheduled_date,
        status=status,
    )


@dataclass(frozen=True)
class HistoryEntry:
    date: str
    kind: str  # "study" or "review"


@dataclass(frozen=True)
class Subject:
    id: str
    name: str
    edital: str = DEFAULT_EDITAL
    weekly_frequency: int = 5
    hours_per_day: float = 2.0
    max_hours_per_session: float = 2.0
    days_until_exam: int = 0
    tasks: tuple = ()
    progress_percentage: int = 0
    overall_score: int = 0
    color: str = "#9E7FFF"
    review_interval: int = 0
    next_review: Optional[str] = None
    last_studied: Optional[str] = None
    history: tuple = ()

    @property
    def is_complete(self) -> bool:
        return self.progress_percentage == 100

    def find_task(self, task_id: str) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None


@dataclass(frozen=True)
class Revision:
    id: str
    subject_id: str
    subject_name: str
    due_date: str
    cycle_day: int  # 1, 7, 15 or 30
    status: RevisionStatus = RevisionStatus.PENDING


@dataclass(frozen=True)
class ScheduleEntry:
    date: str
    subjects: tuple = ()  # subject ids


@dataclass(frozen=True)
class StudyConfig:
    start_date: str
    end_date: str
    daily_study_hours: float = 2.0


@dataclass(frozen=True)
class UserSettings:
    study_start_time: str = "08:00:00"
    study_end_time: str = "12:00:00"
    break_duration_minutes: int = 10


@dataclass(frozen=True)
class DayPlan:
    subject_id: str
    subject_name: str
    tasks: tuple = ()
