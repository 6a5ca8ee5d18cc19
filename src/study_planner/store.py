"""In-memory planner state and the mutations that change it.

A StudyStore owns the current snapshot (subjects, revisions, settings,
config and the generated schedule). Every mutation computes a new snapshot
with the pure functions of the other modules, commits it by replacing the
affected collection wholesale, notifies subscribers and only then hands the
change to the repository. Repository failures are logged and never undo a
committed change. When stored subjects cannot be read, starter subjects are
used in memory only and never written over the stored ones.
"""
import sqlite3
from dataclasses import replace
from typing import Callable, Optional, Protocol

from loguru import logger

from study_planner.errors import RepositoryError, ValidationError
from study_planner.generator import color_for, create_subject
from study_planner.metrics import get_study_stats, recompute, recompute_all, score_percentage
from study_planner.models import (
    ExerciseTask, ExerciseTracking, StudyConfig, Subject, TaskStatus, UserSettings,
)
from study_planner.review import (
    advance_review, complete_revision, generate_revisions, is_new_completion, mark_missed,
    pending_revisions, record_study_session, subjects_for_review,
)
from study_planner.schedule import build_schedule, tasks_for_day
from study_planner.seed import seed_subjects
from study_planner.settings import (
    DEFAULT_SETTINGS, default_config, validate_config, validate_settings,
)

# Failures a repository may raise; anything else is a bug and propagates.
REPOSITORY_ERRORS = (RepositoryError, sqlite3.Error, OSError)

LOAD_FAILED = object()


class Repository(Protocol):
    def load_subjects(self) -> list: ...
    def save_subjects(self, subjects) -> None: ...
    def update_task(self, subject_id: str, task) -> None: ...
    def load_revisions(self) -> list: ...
    def save_revisions(self, revisions) -> None: ...
    def load_settings(self) -> Optional[UserSettings]: ...
    def save_settings(self, settings: UserSettings) -> None: ...
    def load_config(self) -> Optional[StudyConfig]: ...
    def save_config(self, config: StudyConfig) -> None: ...


class StudyStore:
    def __init__(self, repository: Optional[Repository] = None):
        self.repository = repository
        self.subjects: tuple = ()
        self.revisions: tuple = ()
        self.settings: UserSettings = DEFAULT_SETTINGS
        self.config: Optional[StudyConfig] = None
        self.schedule: tuple = ()
        self.subjects_unreadable = False
        self._listeners: list = []

    # -- commit / subscribe -------------------------------------------------

    def subscribe(self, listener: Callable[["StudyStore"], None]) -> Callable[[], None]:
        """Call ``listener(store)`` after every commit. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _commit(self, **changes) -> None:
        for name, value in changes.items():
            setattr(self, name, value)
        for listener in list(self._listeners):
            listener(self)

    def _persist(self, operation: str, *args) -> bool:
        if self.repository is None:
            return False
        if operation == "save_subjects" and self.subjects_unreadable:
            logger.warning("Stored subjects could not be read, not overwriting them")
            return False
        try:
            getattr(self.repository, operation)(*args)
        except REPOSITORY_ERRORS as e:
            logger.error(f"Persistence {operation} failed, keeping in-memory state: {e}")
            return False
        return True

    def _fetch(self, operation: str, default):
        if self.repository is None:
            return default
        try:
            return getattr(self.repository, operation)()
        except REPOSITORY_ERRORS as e:
            logger.error(f"Persistence {operation} failed, using defaults: {e}")
            return LOAD_FAILED

    # -- loading ------------------------------------------------------------

    def load(self, today: str) -> None:
        """Load everything from the repository, seeding starter subjects if it is empty.

        Seeds are persisted only when the repository reports no subjects. If
        reading fails they are kept in memory and whole-collection saves are
        disabled until the next successful load.
        """
        subjects = self._fetch("load_subjects", [])
        self.subjects_unreadable = subjects is LOAD_FAILED
        if self.subjects_unreadable:
            logger.warning("Stored subjects unreadable, using starter subjects in memory")
            subjects = seed_subjects(today)
        elif not subjects:
            logger.info("No stored subjects, loading starter subjects")
            subjects = seed_subjects(today)
            self._persist("save_subjects", subjects)
        revisions = self._fetch("load_revisions", [])
        settings = self._fetch("load_settings", None)
        config = self._fetch("load_config", None)
        self._commit(
            subjects=recompute_all(subjects),
            revisions=() if revisions is LOAD_FAILED else tuple(revisions),
            settings=settings if isinstance(settings, UserSettings) else DEFAULT_SETTINGS,
            config=config if isinstance(config, StudyConfig) else default_config(today),
            schedule=(),
        )
        logger.debug(f"Loaded {len(self.subjects)} subjects and {len(self.revisions)} revisions")

    # -- queries ------------------------------------------------------------

    def get_subject(self, subject_id: str) -> Optional[Subject]:
        for subject in self.subjects:
            if subject.id == subject_id:
                return subject
        return None

    def tasks_for_day(self, day: str) -> list:
        return tasks_for_day(self.subjects, day)

    def subjects_for_review(self, day: str) -> list:
        return subjects_for_review(self.subjects, day)

    def pending_revisions(self, today: str) -> list:
        return pending_revisions(self.revisions, today)

    def stats(self, today: str) -> dict:
        return get_study_stats(self.subjects, self.schedule, today)

    # -- mutations ----------------------------------------------------------

    def _replace_subject(self, updated: Subject) -> tuple:
        return tuple(updated if s.id == updated.id else s for s in self.subjects)

    def add_subject(
        self,
        name: str,
        edital: str,
        deadline: str,
        hours_per_day: float,
        weekly_frequency: int,
        max_hours_per_session: float,
        today: str,
    ) -> Subject:
        subject = create_subject(
            name=name,
            edital=edital,
            deadline=deadline,
            hours_per_day=hours_per_day,
            weekly_frequency=weekly_frequency,
            max_hours_per_session=max_hours_per_session,
            today=today,
            color=color_for(len(self.subjects)),
        )
        self._commit(subjects=self.subjects + (subject,))
        logger.debug(f"Added subject {subject.name!r} with {len(subject.tasks)} tasks")
        self._persist("save_subjects", self.subjects)
        return subject

    def update_task_status(
        self,
        subject_id: str,
        task_id: str,
        status,
        today: str,
        tracking: Optional[ExerciseTracking] = None,
    ) -> Optional[Subject]:
        """Apply a task status change and everything that follows from it.

        Returns the updated subject, or None when the subject or task is
        unknown. Invalid input raises ValidationError before anything is
        changed. Reaching 100 % for the first time creates the subject's
        revision cycle.
        """
        try:
            status = TaskStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown task status: {status!r}")

        subject = self.get_subject(subject_id)
        task = subject.find_task(task_id) if subject else None
        if task is None:
            logger.warning(f"Task {task_id} of subject {subject_id} not found")
            return None
        if task.is_completed and status == TaskStatus.PENDING:
            raise ValidationError("A completed task cannot be set back to pending")

        if isinstance(task, ExerciseTask) and status == TaskStatus.COMPLETED and tracking is not None:
            if tracking.actual_duration_minutes is not None and tracking.actual_duration_minutes < 0:
                raise ValidationError("Actual duration cannot be negative")
            scored = replace(
                tracking,
                score_percentage=score_percentage(tracking.questions_made, tracking.questions_hit),
            )
            updated_task = replace(task, status=status, tracking=scored)
        else:
            updated_task = replace(task, status=status)

        updated = recompute(replace(
            subject,
            tasks=tuple(updated_task if t.id == task_id else t for t in subject.tasks),
        ))

        new_revisions = ()
        already_cycled = any(r.subject_id == subject_id for r in self.revisions)
        if is_new_completion(subject.progress_percentage, updated.progress_percentage) and not already_cycled:
            new_revisions = generate_revisions(updated, today)
            logger.info(f"Subject {updated.name!r} completed, scheduling {len(new_revisions)} revisions")

        self._commit(
            subjects=self._replace_subject(updated),
            revisions=self.revisions + new_revisions,
        )
        self._persist("update_task", subject_id, updated_task)
        if new_revisions:
            self._persist("save_revisions", new_revisions)
        return updated

    def mark_reviewed(self, subject_id: str, today: str) -> Optional[Subject]:
        """Advance the subject's review interval (1, 7, 15, 30 days).

        Completed subjects are driven by their revision cycle instead and
        are left untouched.
        """
        subject = self.get_subject(subject_id)
        if subject is None:
            logger.warning(f"Subject {subject_id} not found")
            return None
        if subject.is_complete:
            logger.warning(f"Subject {subject.name!r} is complete; use its revisions instead")
            return None
        updated = advance_review(subject, today)
        self._commit(subjects=self._replace_subject(updated))
        self._persist("save_subjects", self.subjects)
        return updated

    def record_study_session(self, subject_id: str, today: str) -> Optional[Subject]:
        subject = self.get_subject(subject_id)
        if subject is None:
            logger.warning(f"Subject {subject_id} not found")
            return None
        updated = record_study_session(subject, today)
        self._commit(subjects=self._replace_subject(updated))
        self._persist("save_subjects", self.subjects)
        return updated

    def refresh_revisions(self, today: str) -> tuple:
        """Flag pending revisions whose due date has passed as missed."""
        refreshed = mark_missed(self.revisions, today)
        changed = [new for old, new in zip(self.revisions, refreshed) if new != old]
        if changed:
            self._commit(revisions=refreshed)
            logger.debug(f"{len(changed)} revisions missed as of {today}")
            self._persist("save_revisions", changed)
        return self.revisions

    def complete_revision(self, revision_id: str, today: str) -> bool:
        revisions = complete_revision(self.revisions, revision_id, today)
        if revisions is None:
            logger.warning(f"Revision {revision_id} not found or no longer pending")
            return False
        self._commit(revisions=revisions)
        completed = [r for r in revisions if r.id == revision_id]
        self._persist("save_revisions", completed)
        return True

    def update_settings(self, settings: UserSettings) -> UserSettings:
        validate_settings(settings)
        self._commit(settings=settings)
        self._persist("save_settings", settings)
        return settings

    def update_config(self, config: StudyConfig) -> StudyConfig:
        validate_config(config)
        self._commit(config=config)
        self._persist("save_config", config)
        return config

    def generate_schedule(self) -> tuple:
        """Rebuild the whole date-range schedule from the current config and subjects."""
        schedule = build_schedule(self.config, self.subjects) if self.config else ()
        self._commit(schedule=schedule)
        logger.debug(f"Generated schedule covering {len(schedule)} days")
        return schedule
