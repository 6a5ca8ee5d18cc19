"""Day-by-day study plans: daily task pull and date-range allocation."""
import math
from collections import deque
from datetime import date, timedelta

from study_planner.models import DayPlan, ScheduleEntry, StudyConfig


def tasks_for_day(subjects, day: str) -> list:
    """Pending tasks scheduled on ``day``, grouped by incomplete subject."""
    plans = []
    for subject in subjects:
        if subject.is_complete:
            continue
        due = tuple(
            t for t in subject.tasks
            if not t.is_completed and t.scheduled_date == day
        )
        if due:
            plans.append(DayPlan(subject_id=subject.id, subject_name=subject.name, tasks=due))
    return plans


def daily_capacity(config: StudyConfig) -> int:
    """How many subjects fit in one day: one per full study hour."""
    return math.floor(config.daily_study_hours)


def _date_range(start: str, end: str):
    current = date.fromisoformat(start)
    last = date.fromisoformat(end)
    while current <= last:
        yield current.isoformat()
        current += timedelta(days=1)


def build_schedule(config: StudyConfig, subjects) -> tuple:
    """Allocate incomplete subjects to every day of the configured window.

    Subjects due for review on a day take its first slots; the rest are
    filled round-robin from a queue that persists across days. Days left
    empty are not included.
    """
    available = [s for s in subjects if not s.is_complete]
    capacity = daily_capacity(config)
    if not available or capacity <= 0:
        return ()

    queue = deque(available)
    max_attempts = len(available) * 2
    schedule = []
    for day in _date_range(config.start_date, config.end_date):
        assigned = []
        for subject in available:
            if len(assigned) >= capacity:
                break
            if subject.next_review and subject.next_review <= day and subject.id not in assigned:
                assigned.append(subject.id)

        attempts = 0
        while len(assigned) < capacity and attempts < max_attempts:
            if not queue:
                queue.extend(available)
            subject = queue.popleft()
            if subject.id not in assigned and not subject.is_complete:
                assigned.append(subject.id)
            else:
                queue.append(subject)
            attempts += 1

        if assigned:
            schedule.append(ScheduleEntry(date=day, subjects=tuple(assigned)))
    return tuple(schedule)
