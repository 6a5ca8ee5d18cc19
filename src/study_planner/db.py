"""SQLite persistence for subjects, tasks, revisions and settings."""
import os
import sqlite3
from pathlib import Path

from loguru import logger

from study_planner.errors import RepositoryError
from study_planner.models import (
    ExerciseTask, ExerciseTracking, HistoryEntry, Revision, RevisionStatus, StudyConfig, Subject,
    UserSettings, make_task,
)

DEFAULT_DB_PATH = os.environ.get(
    "STUDY_PLANNER_DB", str(Path.home() / ".study_planner" / "planner.db")
)

SCHEMA = """
CREATE TABLE IF NOT EXISTS subjects (
    id TEXT PRIMARY KEY,
    position INTEGER NOT NULL,
    name TEXT NOT NULL,
    edital TEXT NOT NULL,
    weekly_frequency INTEGER NOT NULL,
    hours_per_day REAL NOT NULL,
    max_hours_per_session REAL NOT NULL,
    days_until_exam INTEGER NOT NULL,
    color TEXT,
    review_interval INTEGER DEFAULT 0,
    next_review TEXT,
    last_studied TEXT
);

CREATE TABLE IF NOT EXISTS tasks (
    id TEXT PRIMARY KEY,
    subject_id TEXT NOT NULL REFERENCES subjects(id) ON DELETE CASCADE,
    position INTEGER NOT NULL,
    type TEXT NOT NULL,
    planned_duration_minutes INTEGER NOT NULL,
    scheduled_date TEXT NOT NULL,
    status TEXT DEFAULT 'pending',
    questions_made INTEGER,
    questions_hit INTEGER,
    score_percentage INTEGER,
    actual_duration_minutes INTEGER
);

CREATE TABLE IF NOT EXISTS subject_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    subject_id TEXT NOT NULL REFERENCES subjects(id) ON DELETE CASCADE,
    date TEXT NOT NULL,
    kind TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS revisions (
    id TEXT PRIMARY KEY,
    subject_id TEXT NOT NULL,
    subject_name TEXT NOT NULL,
    due_date TEXT NOT NULL,
    cycle_day INTEGER NOT NULL,
    status TEXT DEFAULT 'pending'
);

CREATE TABLE IF NOT EXISTS user_settings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    key TEXT NOT NULL UNIQUE,
    value TEXT
);
"""


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Return a SQLite connection with row factory and foreign keys enabled."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: str = DEFAULT_DB_PATH) -> None:
    """Initialize the database, creating all tables if they don't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    try:
        conn.executescript(SCHEMA)
        conn.commit()
    finally:
        conn.close()


def get_setting(db_path: str, key: str, default: str = None) -> str | None:
    conn = get_connection(db_path)
    try:
        row = conn.execute("SELECT value FROM user_settings WHERE key = ?", (key,)).fetchone()
    finally:
        conn.close()
    return row["value"] if row else default


def set_settings(db_path: str, values: dict) -> None:
    conn = get_connection(db_path)
    try:
        with conn:
            for key, value in values.items():
                conn.execute(
                    "INSERT INTO user_settings (key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value=?",
                    (key, str(value), str(value)),
                )
    finally:
        conn.close()


def _task_columns(task) -> dict:
    tracking = task.tracking if isinstance(task, ExerciseTask) else None
    return {
        "type": task.type.value,
        "planned_duration_minutes": task.planned_duration_minutes,
        "scheduled_date": task.scheduled_date,
        "status": task.status.value,
        "questions_made": tracking.questions_made if tracking else None,
        "questions_hit": tracking.questions_hit if tracking else None,
        "score_percentage": tracking.score_percentage if tracking else None,
        "actual_duration_minutes": tracking.actual_duration_minutes if tracking else None,
    }


def _row_to_task(row):
    tracking = None
    if row["questions_made"] is not None:
        tracking = ExerciseTracking(
            questions_made=row["questions_made"],
            questions_hit=row["questions_hit"] or 0,
            score_percentage=row["score_percentage"] or 0,
            actual_duration_minutes=row["actual_duration_minutes"],
        )
    return make_task(
        id=row["id"],
        type=row["type"],
        planned_duration_minutes=row["planned_duration_minutes"],
        scheduled_date=row["scheduled_date"],
        status=row["status"],
        tracking=tracking,
    )


class SqliteRepository:
    """Local store backing a StudyStore.

    Derived subject fields are not persisted; the store recomputes them on
    load. Rows that no longer map onto the models raise RepositoryError.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        self.db_path = db_path
        init_db(db_path)

    def load_subjects(self) -> list:
        conn = get_connection(self.db_path)
        try:
            rows = conn.execute("SELECT * FROM subjects ORDER BY position").fetchall()
            subjects = []
            for s in rows:
                tasks = conn.execute(
                    "SELECT * FROM tasks WHERE subject_id = ? ORDER BY position", (s["id"],)
                ).fetchall()
                history = conn.execute(
                    "SELECT date, kind FROM subject_history WHERE subject_id = ? ORDER BY id",
                    (s["id"],),
                ).fetchall()
                subjects.append(Subject(
                    id=s["id"],
                    name=s["name"],
                    edital=s["edital"],
                    weekly_frequency=s["weekly_frequency"],
                    hours_per_day=s["hours_per_day"],
                    max_hours_per_session=s["max_hours_per_session"],
                    days_until_exam=s["days_until_exam"],
                    tasks=tuple(_row_to_task(t) for t in tasks),
                    color=s["color"],
                    review_interval=s["review_interval"] or 0,
                    next_review=s["next_review"],
                    last_studied=s["last_studied"],
                    history=tuple(HistoryEntry(date=h["date"], kind=h["kind"]) for h in history),
                ))
        except ValueError as e:
            raise RepositoryError(f"Unreadable subject data in {self.db_path}: {e}") from e
        finally:
            conn.close()
        return subjects

    def save_subjects(self, subjects) -> None:
        """Replace every stored subject, task and history row in one transaction."""
        conn = get_connection(self.db_path)
        try:
            with conn:
                conn.execute("DELETE FROM subject_history")
                conn.execute("DELETE FROM tasks")
                conn.execute("DELETE FROM subjects")
                for position, s in enumerate(subjects):
                    conn.execute(
                        """INSERT INTO subjects
                        (id, position, name, edital, weekly_frequency, hours_per_day,
                         max_hours_per_session, days_until_exam, color, review_interval,
                         next_review, last_studied)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                        (s.id, position, s.name, s.edital, s.weekly_frequency, s.hours_per_day,
                         s.max_hours_per_session, s.days_until_exam, s.color, s.review_interval,
                         s.next_review, s.last_studied),
                    )
                    for task_position, task in enumerate(s.tasks):
                        cols = _task_columns(task)
                        conn.execute(
                            """INSERT INTO tasks
                            (id, subject_id, position, type, planned_duration_minutes,
                             scheduled_date, status, questions_made, questions_hit,
                             score_percentage, actual_duration_minutes)
                            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                            (task.id, s.id, task_position, cols["type"],
                             cols["planned_duration_minutes"], cols["scheduled_date"],
                             cols["status"], cols["questions_made"], cols["questions_hit"],
                             cols["score_percentage"], cols["actual_duration_minutes"]),
                        )
                    conn.executemany(
                        "INSERT INTO subject_history (subject_id, date, kind) VALUES (?, ?, ?)",
                        [(s.id, h.date, h.kind) for h in s.history],
                    )
        finally:
            conn.close()

    def update_task(self, subject_id: str, task) -> None:
        """Write a single task row, leaving the rest of the subject alone."""
        cols = _task_columns(task)
        conn = get_connection(self.db_path)
        try:
            with conn:
                cursor = conn.execute(
                    """UPDATE tasks SET type=?, planned_duration_minutes=?, scheduled_date=?,
                    status=?, questions_made=?, questions_hit=?, score_percentage=?,
                    actual_duration_minutes=?
                    WHERE id=? AND subject_id=?""",
                    (cols["type"], cols["planned_duration_minutes"], cols["scheduled_date"],
                     cols["status"], cols["questions_made"], cols["questions_hit"],
                     cols["score_percentage"], cols["actual_duration_minutes"],
                     task.id, subject_id),
                )
        finally:
            conn.close()
        if cursor.rowcount == 0:
            logger.warning(f"Task {task.id} of subject {subject_id} not found in {self.db_path}")

    def load_revisions(self) -> list:
        conn = get_connection(self.db_path)
        try:
            rows = conn.execute("SELECT * FROM revisions ORDER BY due_date, cycle_day").fetchall()
        finally:
            conn.close()
        try:
            return [
                Revision(
                    id=r["id"],
                    subject_id=r["subject_id"],
                    subject_name=r["subject_name"],
                    due_date=r["due_date"],
                    cycle_day=r["cycle_day"],
                    status=RevisionStatus(r["status"]),
                )
                for r in rows
            ]
        except ValueError as e:
            raise RepositoryError(f"Unreadable revision data in {self.db_path}: {e}") from e

    def save_revisions(self, revisions) -> None:
        conn = get_connection(self.db_path)
        try:
            with conn:
                conn.executemany(
                    """INSERT INTO revisions (id, subject_id, subject_name, due_date, cycle_day, status)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET status=excluded.status, due_date=excluded.due_date""",
                    [(r.id, r.subject_id, r.subject_name, r.due_date, r.cycle_day, r.status.value)
                     for r in revisions],
                )
        finally:
            conn.close()

    def load_settings(self) -> UserSettings | None:
        start = get_setting(self.db_path, "study_start_time")
        if start is None:
            return None
        try:
            break_minutes = int(get_setting(self.db_path, "break_duration_minutes", "0"))
        except ValueError as e:
            raise RepositoryError(f"Unreadable break duration in {self.db_path}: {e}") from e
        return UserSettings(
            study_start_time=start,
            study_end_time=get_setting(self.db_path, "study_end_time"),
            break_duration_minutes=break_minutes,
        )

    def save_settings(self, settings: UserSettings) -> None:
        set_settings(self.db_path, {
            "study_start_time": settings.study_start_time,
            "study_end_time": settings.study_end_time,
            "break_duration_minutes": settings.break_duration_minutes,
        })

    def load_config(self) -> StudyConfig | None:
        start = get_setting(self.db_path, "config_start_date")
        if start is None:
            return None
        try:
            hours = float(get_setting(self.db_path, "daily_study_hours", "0"))
        except ValueError as e:
            raise RepositoryError(f"Unreadable daily study hours in {self.db_path}: {e}") from e
        return StudyConfig(
            start_date=start,
            end_date=get_setting(self.db_path, "config_end_date"),
            daily_study_hours=hours,
        )

    def save_config(self, config: StudyConfig) -> None:
        set_settings(self.db_path, {
            "config_start_date": config.start_date,
            "config_end_date": config.end_date,
            "daily_study_hours": config.daily_study_hours,
        })
