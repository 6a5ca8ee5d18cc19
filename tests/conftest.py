import itertools

import pytest

from study_planner.errors import RepositoryError

TODAY = "2025-08-01"


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_planner.db")
    return db_path


@pytest.fixture
def ids():
    """Deterministic id factory: id-1, id-2, ..."""
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


class FakeRepository:
    """In-memory repository that records calls and can be told to fail."""

    def __init__(self, subjects=None, settings=None, config=None, revisions=None):
        self.subjects = list(subjects or [])
        self.revisions = list(revisions or [])
        self.settings = settings
        self.config = config
        self.calls = []
        self.failing = set()

    def _record(self, name, *args):
        self.calls.append((name, args))
        if name in self.failing:
            raise RepositoryError(f"{name} unavailable")

    def calls_to(self, name):
        return [args for call, args in self.calls if call == name]

    def load_subjects(self):
        self._record("load_subjects")
        return list(self.subjects)

    def save_subjects(self, subjects):
        self._record("save_subjects", subjects)
        self.subjects = list(subjects)

    def update_task(self, subject_id, task):
        self._record("update_task", subject_id, task)

    def load_revisions(self):
        self._record("load_revisions")
        return list(self.revisions)

    def save_revisions(self, revisions):
        self._record("save_revisions", revisions)
        self.revisions.extend(revisions)

    def load_settings(self):
        self._record("load_settings")
        return self.settings

    def save_settings(self, settings):
        self._record("save_settings", settings)
        self.settings = settings

    def load_config(self):
        self._record("load_config")
        return self.config

    def save_config(self, config):
        self._record("save_config", config)
        self.config = config


@pytest.fixture
def fake_repo():
    return FakeRepository()
