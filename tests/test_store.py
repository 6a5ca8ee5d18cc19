from dataclasses import replace

import pytest

from conftest import TODAY, FakeRepository
from study_planner.errors import ValidationError
from study_planner.generator import PALETTE, create_subject
from study_planner.models import (
    ExerciseTask, ExerciseTracking, RevisionStatus, StudyConfig, TaskStatus, TaskType, UserSettings,
)
from study_planner.settings import DEFAULT_SETTINGS
from study_planner.store import StudyStore

SUBJECT_ARGS = dict(
    edital="Concurso", deadline="2025-10-10", hours_per_day=2, weekly_frequency=5,
    max_hours_per_session=2, today=TODAY,
)


@pytest.fixture
def store(fake_repo):
    return StudyStore(fake_repo)


def _complete_all(store, subject_id, today=TODAY):
    subject = store.get_subject(subject_id)
    for task in subject.tasks:
        store.update_task_status(subject_id, task.id, TaskStatus.COMPLETED, today=today)
    return store.get_subject(subject_id)


def _first_exercise(subject):
    return next(t for t in subject.tasks if t.type == TaskType.EXERCISE)


# -- loading ---------------------------------------------------------------

def test_load_seeds_empty_store(fake_repo):
    store = StudyStore(fake_repo)
    store.load(TODAY)
    assert len(store.subjects) == 3
    assert all(len(s.tasks) == 15 for s in store.subjects)
    assert len(fake_repo.calls_to("save_subjects")) == 1
    assert store.settings == DEFAULT_SETTINGS
    assert store.config.start_date == TODAY


def test_load_uses_stored_data_and_recomputes(ids):
    subject = create_subject(name="Math", id_factory=ids, **SUBJECT_ARGS)
    stale = replace(subject, progress_percentage=100)
    settings = UserSettings(study_start_time="09:00:00", study_end_time="11:00:00", break_duration_minutes=5)
    config = StudyConfig(start_date="2025-08-01", end_date="2025-08-31", daily_study_hours=3)
    repo = FakeRepository(subjects=[stale], settings=settings, config=config)
    store = StudyStore(repo)
    store.load(TODAY)
    assert [s.name for s in store.subjects] == ["Math"]
    assert store.subjects[0].progress_percentage == 0
    assert store.settings == settings
    assert store.config == config
    assert repo.calls_to("save_subjects") == []


def test_load_survives_repository_failure(fake_repo):
    fake_repo.failing = {"load_subjects", "load_revisions", "load_settings", "load_config"}
    store = StudyStore(fake_repo)
    store.load(TODAY)
    assert len(store.subjects) == 3
    assert store.revisions == ()
    assert store.settings == DEFAULT_SETTINGS
    assert store.config.start_date == TODAY


def test_load_failure_never_overwrites_stored_subjects(fake_repo):
    fake_repo.failing = {"load_subjects"}
    store = StudyStore(fake_repo)
    store.load(TODAY)
    assert store.subjects_unreadable
    store.add_subject(name="Math", **SUBJECT_ARGS)
    assert fake_repo.calls_to("save_subjects") == []
    assert [s.name for s in store.subjects][-1] == "Math"


def test_successful_reload_allows_saving_again(fake_repo):
    fake_repo.failing = {"load_subjects"}
    store = StudyStore(fake_repo)
    store.load(TODAY)
    fake_repo.failing = set()
    store.load(TODAY)
    assert not store.subjects_unreadable
    assert len(fake_repo.calls_to("save_subjects")) == 1


def test_programming_errors_in_repository_propagate(fake_repo):
    store = StudyStore(fake_repo)
    store.load(TODAY)
    subject = store.subjects[0]
    fake_repo.update_task = lambda subject_id, task: None.missing
    with pytest.raises(AttributeError):
        store.update_task_status(subject.id, subject.tasks[0].id, "completed", today=TODAY)


def test_store_without_repository():
    store = StudyStore()
    store.load(TODAY)
    subject = store.add_subject(name="Math", **SUBJECT_ARGS)
    assert store.get_subject(subject.id) == subject


# -- add_subject -----------------------------------------------------------

def test_add_subject_assigns_cycled_colors(store, fake_repo):
    first = store.add_subject(name="Math", **SUBJECT_ARGS)
    second = store.add_subject(name="History", **SUBJECT_ARGS)
    assert first.color == PALETTE[0]
    assert second.color == PALETTE[1]
    assert store.subjects == (first, second)
    saved = fake_repo.calls_to("save_subjects")
    assert len(saved) == 2
    assert saved[-1][0] == (first, second)


def test_add_subject_rejects_invalid_input(store, fake_repo):
    with pytest.raises(ValidationError):
        store.add_subject(name="", **SUBJECT_ARGS)
    assert store.subjects == ()
    assert fake_repo.calls == []


# -- update_task_status ----------------------------------------------------

def test_update_task_status_updates_progress(store, fake_repo):
    subject = store.add_subject(name="Math", **SUBJECT_ARGS)
    task = subject.tasks[0]
    updated = store.update_task_status(subject.id, task.id, "completed", today=TODAY)
    assert updated.progress_percentage == 7
    assert store.get_subject(subject.id) == updated
    assert updated.find_task(task.id).is_completed
    assert fake_repo.calls_to("update_task") == [(subject.id, updated.find_task(task.id))]


def test_update_task_status_scores_exercise(store, fake_repo):
    subject = store.add_subject(name="Math", **SUBJECT_ARGS)
    exercise = _first_exercise(subject)
    tracking = ExerciseTracking(questions_made=50, questions_hit=42, actual_duration_minutes=90)
    updated = store.update_task_status(subject.id, exercise.id, TaskStatus.COMPLETED, today=TODAY, tracking=tracking)
    task = updated.find_task(exercise.id)
    assert isinstance(task, ExerciseTask)
    assert task.tracking.score_percentage == 84
    assert task.tracking.actual_duration_minutes == 90
    assert updated.overall_score == 84


def test_update_task_status_zero_questions(store):
    subject = store.add_subject(name="Math", **SUBJECT_ARGS)
    exercise = _first_exercise(subject)
    tracking = ExerciseTracking(questions_made=0, questions_hit=0)
    updated = store.update_task_status(subject.id, exercise.id, "completed", today=TODAY, tracking=tracking)
    assert updated.find_task(exercise.id).tracking.score_percentage == 0
    assert updated.overall_score == 0


def test_update_task_status_ignores_tracking_for_video(store):
    subject = store.add_subject(name="Math", **SUBJECT_ARGS)
    video = subject.tasks[0]
    tracking = ExerciseTracking(questions_made=10, questions_hit=10)
    updated = store.update_task_status(subject.id, video.id, "completed", today=TODAY, tracking=tracking)
    assert not hasattr(updated.find_task(video.id), "tracking")
    assert updated.overall_score == 0


def test_update_task_status_rejects_hit_above_made(store, fake_repo):
    subject = store.add_subject(name="Math", **SUBJECT_ARGS)
    exercise = _first_exercise(subject)
    before = store.subjects
    with pytest.raises(ValidationError):
        store.update_task_status(subject.id, exercise.id, "completed", today=TODAY,
                                 tracking=ExerciseTracking(questions_made=5, questions_hit=6))
    assert store.subjects is before
    assert fake_repo.calls_to("update_task") == []


def test_update_task_status_rejects_negative_duration(store):
    subject = store.add_subject(name="Math", **SUBJECT_ARGS)
    exercise = _first_exercise(subject)
    with pytest.raises(ValidationError):
        store.update_task_status(subject.id, exercise.id, "completed", today=TODAY,
                                 tracking=ExerciseTracking(questions_made=5, questions_hit=3,
                                                           actual_duration_minutes=-1))


def test_update_task_status_rejects_unknown_status(store):
    subject = store.add_subject(name="Math", **SUBJECT_ARGS)
    with pytest.raises(ValidationError):
        store.update_task_status(subject.id, subject.tasks[0].id, "in-progress", today=TODAY)


def test_update_task_status_cannot_uncomplete(store):
    subject = store.add_subject(name="Math", **SUBJECT_ARGS)
    task = subject.tasks[0]
    store.update_task_status(subject.id, task.id, "completed", today=TODAY)
    with pytest.raises(ValidationError):
        store.update_task_status(subject.id, task.id, "pending", today=TODAY)


def test_update_task_status_unknown_ids_are_noops(store, fake_repo):
    subject = store.add_subject(name="Math", **SUBJECT_ARGS)
    before = store.subjects
    assert store.update_task_status("missing", subject.tasks[0].id, "completed", today=TODAY) is None
    assert store.update_task_status(subject.id, "missing", "completed", today=TODAY) is None
    assert store.subjects is before
    assert fake_repo.calls_to("update_task") == []


def test_update_task_status_keeps_state_when_persistence_fails(store, fake_repo):
    subject = store.add_subject(name="Math", **SUBJECT_ARGS)
    fake_repo.failing = {"update_task"}
    updated = store.update_task_status(subject.id, subject.tasks[0].id, "completed", today=TODAY)
    assert updated is not None
    assert store.get_subject(subject.id).progress_percentage == 7


def test_updates_to_same_subject_apply_in_order(store):
    subject = store.add_subject(name="Math", **SUBJECT_ARGS)
    for i, task in enumerate(subject.tasks[:3], 1):
        updated = store.update_task_status(subject.id, task.id, "completed", today=TODAY)
        assert sum(t.is_completed for t in updated.tasks) == i


# -- completion and revisions ------------------------------------------------

def test_completion_generates_revisions_once(store, fake_repo):
    subject = store.add_subject(name="Math", **SUBJECT_ARGS)
    finished = _complete_all(store, subject.id)
    assert finished.progress_percentage == 100
    assert [r.cycle_day for r in store.revisions] == [1, 7, 15, 30]
    assert [r.due_date for r in store.revisions] == ["2025-08-02", "2025-08-08", "2025-08-16", "2025-08-31"]
    assert len(fake_repo.calls_to("save_revisions")) == 1

    # re-marking an already completed task on a complete subject
    store.update_task_status(subject.id, subject.tasks[0].id, "completed", today="2025-08-05")
    store.update_task_status(subject.id, subject.tasks[-1].id, "completed", today="2025-08-06")
    assert len(store.revisions) == 4
    assert len(fake_repo.calls_to("save_revisions")) == 1


def test_completion_of_separate_subjects(store):
    first = store.add_subject(name="Math", **SUBJECT_ARGS)
    second = store.add_subject(name="History", **SUBJECT_ARGS)
    _complete_all(store, first.id)
    _complete_all(store, second.id)
    assert len(store.revisions) == 8
    assert {r.subject_name for r in store.revisions} == {"Math", "History"}


def test_refresh_revisions_marks_missed(store, fake_repo):
    subject = store.add_subject(name="Math", **SUBJECT_ARGS)
    _complete_all(store, subject.id)
    revisions = store.refresh_revisions("2025-08-03")
    assert [r.status for r in revisions] == [
        RevisionStatus.MISSED, RevisionStatus.PENDING, RevisionStatus.PENDING, RevisionStatus.PENDING,
    ]
    assert fake_repo.calls_to("save_revisions")[-1][0][0].status == RevisionStatus.MISSED
    assert [r.cycle_day for r in store.pending_revisions("2025-08-03")] == [7, 15, 30]


def test_complete_revision(store):
    subject = store.add_subject(name="Math", **SUBJECT_ARGS)
    _complete_all(store, subject.id)
    first, second = store.revisions[0], store.revisions[1]
    assert store.complete_revision(second.id, "2025-08-08") is True
    assert store.revisions[1].status == RevisionStatus.COMPLETED
    # missed revisions are terminal
    assert store.complete_revision(first.id, "2025-08-08") is False
    assert store.complete_revision(second.id, "2025-08-08") is False
    assert store.complete_revision("missing", "2025-08-08") is False


# -- interval-advance reviews -----------------------------------------------

def test_mark_reviewed_advances_interval(store, fake_repo):
    subject = store.add_subject(name="Math", **SUBJECT_ARGS)
    updated = store.mark_reviewed(subject.id, TODAY)
    assert updated.review_interval == 1
    assert updated.next_review == "2025-08-02"
    assert store.subjects_for_review("2025-08-02") == [updated]
    updated = store.mark_reviewed(subject.id, "2025-08-02")
    assert updated.review_interval == 7
    assert store.subjects_for_review("2025-08-03") == []


def test_mark_reviewed_rejects_unknown_and_complete(store):
    assert store.mark_reviewed("missing", TODAY) is None
    subject = store.add_subject(name="Math", **SUBJECT_ARGS)
    _complete_all(store, subject.id)
    assert store.mark_reviewed(subject.id, TODAY) is None
    assert store.get_subject(subject.id).review_interval == 0


def test_record_study_session(store):
    subject = store.add_subject(name="Math", **SUBJECT_ARGS)
    updated = store.record_study_session(subject.id, TODAY)
    assert updated.last_studied == TODAY
    assert store.record_study_session("missing", TODAY) is None


def test_tasks_for_day(store):
    subject = store.add_subject(name="Math", **SUBJECT_ARGS)
    plans = store.tasks_for_day(TODAY)
    assert [p.subject_id for p in plans] == [subject.id]
    assert len(plans[0].tasks) == 3
    assert len(store.tasks_for_day("2025-08-02")[0].tasks) == 6


# -- settings, config and schedule ----------------------------------------------

def test_update_settings(store, fake_repo):
    settings = UserSettings(study_start_time="07:00:00", study_end_time="09:30:00", break_duration_minutes=15)
    store.update_settings(settings)
    assert store.settings == settings
    assert fake_repo.settings == settings


def test_update_settings_rejects_invalid(store, fake_repo):
    with pytest.raises(ValidationError):
        store.update_settings(UserSettings(study_start_time="10:00:00", study_end_time="09:00:00"))
    assert store.settings == DEFAULT_SETTINGS
    assert fake_repo.calls_to("save_settings") == []


def test_generate_schedule(store, fake_repo):
    for name in ("A", "B", "C"):
        store.add_subject(name=name, **SUBJECT_ARGS)
    store.update_config(StudyConfig(start_date="2025-08-01", end_date="2025-08-07", daily_study_hours=2))
    schedule = store.generate_schedule()
    assert len(schedule) == 7
    assert store.schedule == schedule
    assert all(len(e.subjects) == 2 for e in schedule)
    assert fake_repo.config.end_date == "2025-08-07"
    assert store.stats(TODAY)["scheduled_days"] == 7


def test_generate_schedule_without_config(store):
    store.add_subject(name="Math", **SUBJECT_ARGS)
    assert store.generate_schedule() == ()


def test_subscribers_see_committed_state(store):
    seen = []
    unsubscribe = store.subscribe(lambda s: seen.append(len(s.subjects)))
    store.add_subject(name="Math", **SUBJECT_ARGS)
    store.add_subject(name="History", **SUBJECT_ARGS)
    unsubscribe()
    store.add_subject(name="Biology", **SUBJECT_ARGS)
    assert seen == [1, 2]
