"""
Persistent course storage backed by a JSON file.

This module manages the file:

    data/courses.json

The file holds a JSON list of course records with the keys read by
Course.from_dict(); any other keys are kept as they are.

Store contract, shared with moodle_ws.MoodleWebServiceStore:
- fetch() and reload() return copies; mutating them never touches the store
- persist() writes immediately and may change more fields than it was given
  (weeks courses with an automatic end date get it re-derived), so callers
  that need derived fields call reload() afterwards
- every call takes an AccessToken and checks its capabilities
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional, Protocol

from courseguess.model import CAP_COURSE_UPDATE, CAP_COURSE_VIEW, AccessToken, Course, CourseQuery
from courseguess.weeks import weeks_end_date


class CourseNotFoundError(LookupError):
    """Raised when a course id is not present in the store."""


class CourseStore(Protocol):
    def fetch(self, query: CourseQuery, token: AccessToken) -> list[Course]: ...

    def reload(self, course_id: int, token: AccessToken) -> Course: ...

    def persist(self, course: Course, token: AccessToken) -> None: ...

    def recompute_weeks_end_date(self, course_id: int, token: AccessToken) -> None: ...


def _default_courses_path() -> Path:
    """
    Return the default path of courses.json inside the package.

    Using a function instead of a constant makes testing easier,
    because tests can override the path.
    """
    base_dir = Path(__file__).resolve().parent
    return base_dir / "data" / "courses.json"


def _read_file(path: Path) -> list[Any]:
    """
    Return the JSON list stored in path, untouched.

    Returns an empty list if the file does not exist or is invalid.
    """
    if not path.exists():
        return []

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, UnicodeDecodeError):
        return []
    return data if isinstance(data, list) else []


def _record_id(rec: Any) -> Optional[int]:
    if not isinstance(rec, dict):
        return None
    try:
        return int(rec.get("id"))
    except (TypeError, ValueError):
        return None


def load_course_records(path: str | Path) -> list[dict[str, Any]]:
    """
    Load raw course records from a JSON file.

    Returns an empty list if the file does not exist or is invalid.
    Records without an integer id are ignored.
    """
    return [rec for rec in _read_file(Path(path)) if _record_id(rec) is not None]


class JsonCourseStore:
    """
    CourseStore over a single JSON file.

    Records are re-read on every call so that two stores pointing at the same
    file always agree. Writes patch the dates of one record in place; other
    records, unknown keys and the order of the file are left as they are.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path is not None else _default_courses_path()

    # -- internal helpers --------------------------------------------------

    def _load(self) -> list[Course]:
        return [Course.from_dict(rec) for rec in load_course_records(self.path)]

    def _save(self, records: list[Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(records, indent=2, ensure_ascii=False), encoding="utf-8")

    @staticmethod
    def _find(records: list[Any], course_id: int) -> dict[str, Any]:
        for rec in records:
            if _record_id(rec) == course_id:
                return rec
        raise CourseNotFoundError(f"Course {course_id} not found")

    # -- store contract ----------------------------------------------------

    def fetch(self, query: CourseQuery, token: AccessToken) -> list[Course]:
        token.require(CAP_COURSE_VIEW)
        selected = [c for c in self._load() if query.matches(c)]
        return sorted(selected, key=lambda c: (c.sortorder, c.id))

    def reload(self, course_id: int, token: AccessToken) -> Course:
        token.require(CAP_COURSE_VIEW)
        return Course.from_dict(self._find(load_course_records(self.path), course_id))

    def persist(self, course: Course, token: AccessToken) -> None:
        token.require(CAP_COURSE_UPDATE)
        records = _read_file(self.path)
        rec = self._find(records, course.id)

        rec["shortname"] = course.shortname
        rec["startdate"] = course.startdate
        rec["enddate"] = course.enddate

        # Derived field: weeks courses keep their end date in sync with the start.
        stored = Course.from_dict(rec)
        if stored.has_automatic_end_date:
            derived = weeks_end_date(stored)
            if derived is not None:
                rec["enddate"] = derived

        self._save(records)

    def recompute_weeks_end_date(self, course_id: int, token: AccessToken) -> None:
        token.require(CAP_COURSE_UPDATE)
        records = _read_file(self.path)
        rec = self._find(records, course_id)
        stored = Course.from_dict(rec)

        derived = weeks_end_date(stored)
        if derived is None or derived == stored.enddate:
            return
        rec["enddate"] = derived
        self._save(records)
