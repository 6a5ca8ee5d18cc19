"""Spaced repetition: review intervals and post-completion revision cycles."""
from dataclasses import replace
from datetime import date, timedelta

from study_planner.generator import new_id
from study_planner.models import HistoryEntry, Revision, RevisionStatus, Subject

# Manual "mark reviewed" progression, capped at 30 days.
INTERVAL_PROGRESSION = {0: 1, 1: 7, 7: 15, 15: 30, 30: 30}
REVISION_CYCLE_DAYS = (1, 7, 15, 30)


def _add_days(day: str, days: int) -> str:
    return (date.fromisoformat(day) + timedelta(days=days)).isoformat()


def next_interval(current: int) -> int:
    """Next review interval in days.

    Values off the progression table advance to the next step above them,
    so the interval never decreases.
    """
    if current in INTERVAL_PROGRESSION:
        return INTERVAL_PROGRESSION[current]
    for step in REVISION_CYCLE_DAYS:
        if step > current:
            return step
    return REVISION_CYCLE_DAYS[-1]


def advance_review(subject: Subject, today: str) -> Subject:
    interval = next_interval(subject.review_interval)
    return replace(
        subject,
        review_interval=interval,
        next_review=_add_days(today, interval),
        history=subject.history + (HistoryEntry(date=today, kind="review"),),
    )


def record_study_session(subject: Subject, today: str) -> Subject:
    return replace(
        subject,
        last_studied=today,
        history=subject.history + (HistoryEntry(date=today, kind="study"),),
    )


def subjects_for_review(subjects, day: str) -> list:
    """Incomplete subjects whose next review falls on or before ``day``."""
    return [
        s for s in subjects
        if s.next_review and s.next_review <= day and not s.is_complete
    ]


def is_new_completion(previous_progress: int, current_progress: int) -> bool:
    return previous_progress < 100 and current_progress == 100


def generate_revisions(subject: Subject, today: str, id_factory=new_id) -> tuple:
    """The four pending checkpoints of a freshly completed subject."""
    return tuple(
        Revision(
            id=id_factory(),
            subject_id=subject.id,
            subject_name=subject.name,
            due_date=_add_days(today, cycle_day),
            cycle_day=cycle_day,
        )
        for cycle_day in REVISION_CYCLE_DAYS
    )


def effective_status(revision: Revision, today: str) -> RevisionStatus:
    """Status as of ``today``: a pending revision past its due date is missed."""
    if revision.status == RevisionStatus.PENDING and revision.due_date < today:
        return RevisionStatus.MISSED
    return revision.status


def mark_missed(revisions, today: str) -> tuple:
    result = []
    for revision in revisions:
        status = effective_status(revision, today)
        if status != revision.status:
            revision = replace(revision, status=status)
        result.append(revision)
    return tuple(result)


def pending_revisions(revisions, today: str) -> list:
    pending = [r for r in revisions if effective_status(r, today) == RevisionStatus.PENDING]
    return sorted(pending, key=lambda r: (r.due_date, r.cycle_day))


def completed_revisions(revisions) -> list:
    return [r for r in revisions if r.status == RevisionStatus.COMPLETED]


def complete_revision(revisions, revision_id: str, today: str):
    """Mark one revision completed.

    Returns the new revision tuple, or None when the id is unknown or the
    revision is no longer pending (completed, or missed as of ``today``).
    """
    result = []
    found = False
    for revision in revisions:
        if revision.id == revision_id:
            if effective_status(revision, today) != RevisionStatus.PENDING:
                return None
            revision = replace(revision, status=RevisionStatus.COMPLETED)
            found = True
        result.append(revision)
    return tuple(result) if found else None
