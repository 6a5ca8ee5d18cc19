"""Starter subjects used when the store is empty."""
import json
from datetime import date, timedelta
from pathlib import Path

from study_planner.generator import color_for, create_subject, new_id

CONTENT_DIR = Path(__file__).parent / "content"


def load_seed_data() -> list:
    data = json.loads((CONTENT_DIR / "seed_subjects.json").read_text(encoding="utf-8"))
    return data["subjects"]


def seed_subjects(today: str, id_factory=new_id) -> tuple:
    """Build the starter subjects, with deadlines relative to ``today``."""
    start = date.fromisoformat(today)
    subjects = []
    for index, entry in enumerate(load_seed_data()):
        deadline = (start + timedelta(days=entry["deadline_days"])).isoformat()
        subjects.append(create_subject(
            name=entry["name"],
            edital=entry["edital"],
            deadline=deadline,
            hours_per_day=entry["hours_per_day"],
            weekly_frequency=entry["weekly_frequency"],
            max_hours_per_session=entry["max_hours_per_session"],
            today=today,
            color=color_for(index),
            id_factory=id_factory,
        ))
    return tuple(subjects)
