"""Import subject names from text, spreadsheet and document files."""
import csv
import io
import json
import re
from pathlib import Path

from loguru import logger

from study_planner.errors import ValidationError

# "1.", "2)", "-", "*", "•" at the start of a line
BULLET_RE = re.compile(r"^\s*(?:\d+[.)]|[-*•])\s*")


def read_file_content(file_path: str) -> str:
    path = Path(file_path)
    suffix = path.suffix.lower()

    if suffix in (".txt", ".md"):
        return path.read_text(encoding="utf-8")
    elif suffix == ".csv":
        rows = csv.reader(io.StringIO(path.read_text(encoding="utf-8")))
        return "\n".join(row[0] for row in rows if row)
    elif suffix == ".json":
        data = json.loads(path.read_text(encoding="utf-8"))
        if isinstance(data, dict):
            data = data.get("subjects", [])
        return "\n".join(str(item) for item in data)
    elif suffix in (".yaml", ".yml"):
        import yaml
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        if isinstance(data, dict):
            data = data.get("subjects", [])
        return "\n".join(str(item) for item in data or [])
    elif suffix == ".pdf":
        from PyPDF2 import PdfReader
        reader = PdfReader(file_path)
        return "\n".join(page.extract_text() or "" for page in reader.pages)
    elif suffix == ".docx":
        from docx import Document
        doc = Document(file_path)
        return "\n".join(p.text for p in doc.paragraphs)
    elif suffix in (".html", ".htm"):
        from bs4 import BeautifulSoup
        html = path.read_text(encoding="utf-8")
        return BeautifulSoup(html, "html.parser").get_text("\n")
    else:
        # Try reading as plain text
        return path.read_text(encoding="utf-8")


def extract_subject_names(text: str) -> list[str]:
    """One subject per non-empty line, bullets stripped, duplicates dropped in order."""
    names = []
    seen = set()
    for line in text.splitlines():
        name = BULLET_RE.sub("", line).strip()
        if not name or name.lower() in seen:
            continue
        seen.add(name.lower())
        names.append(name)
    return names


def import_subjects(
    store,
    file_path: str,
    edital: str,
    deadline: str,
    hours_per_day: float,
    weekly_frequency: int,
    max_hours_per_session: float,
    today: str,
) -> list:
    """Create one subject per name found in ``file_path``. Returns the new subjects."""
    names = extract_subject_names(read_file_content(file_path))
    if not names:
        raise ValidationError(f"No subject names found in {Path(file_path).name}")
    created = [
        store.add_subject(
            name=name,
            edital=edital,
            deadline=deadline,
            hours_per_day=hours_per_day,
            weekly_frequency=weekly_frequency,
            max_hours_per_session=max_hours_per_session,
            today=today,
        )
        for name in names
    ]
    logger.info(f"Imported {len(created)} subjects from {Path(file_path).name}")
    return created
