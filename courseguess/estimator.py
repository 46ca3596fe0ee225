"""
Date estimation from activity logs.

The decision engine only depends on the DateEstimator protocol; the
ActivityLogEstimator below is the default implementation used by the CLI.

Log file format (JSON list):

    [{"courseid": 5, "userid": 12, "timecreated": 1500000000, "role": "student"}, ...]

"role" defaults to "student" when missing.
"""

from __future__ import annotations

import json
from collections import defaultdict
from datetime import datetime, timezone
from pathlib import Path
from statistics import median
from typing import Any, Iterable, Optional, Protocol

from courseguess.model import Course


class DateEstimator(Protocol):
    def guess_start(self, course: Course) -> Optional[int]: ...

    def guess_end(self, course: Course) -> Optional[int]: ...


def _default_logs_path() -> Path:
    base_dir = Path(__file__).resolve().parent
    return base_dir / "data" / "logs.json"


def load_activity_logs(path: str | Path | None = None) -> list[dict[str, Any]]:
    """
    Load activity log entries from a JSON file.

    Returns an empty list if the file does not exist or is invalid.
    Entries missing courseid/userid/timecreated are dropped.
    """
    logs_path = Path(path) if path is not None else _default_logs_path()
    if not logs_path.exists():
        return []

    try:
        data = json.loads(logs_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, UnicodeDecodeError):
        return []
    if not isinstance(data, list):
        return []

    out: list[dict[str, Any]] = []
    for e in data:
        if not isinstance(e, dict):
            continue
        try:
            out.append(
                {
                    "courseid": int(e["courseid"]),
                    "userid": int(e["userid"]),
                    "timecreated": int(e["timecreated"]),
                    "role": str(e.get("role", "student") or "student"),
                }
            )
        except (KeyError, TypeError, ValueError):
            continue
    return out


def _midnight_utc(ts: int) -> int:
    d = datetime.fromtimestamp(ts, tz=timezone.utc).date()
    return int(datetime(d.year, d.month, d.day, tzinfo=timezone.utc).timestamp())


class ActivityLogEstimator:
    """
    Guess course dates from the access pattern of its students.

    - start: midnight (UTC) of the median first access of the students
    - end: median last access of the students

    A course without student logs gets no guess (None).
    """

    def __init__(self, logs: Iterable[dict[str, Any]]) -> None:
        # courseid -> userid -> (first access, last access)
        self._spans: dict[int, dict[int, tuple[int, int]]] = defaultdict(dict)
        for e in logs:
            if e.get("role", "student") != "student":
                continue
            cid = int(e["courseid"])
            uid = int(e["userid"])
            t = int(e["timecreated"])
            first, last = self._spans[cid].get(uid, (t, t))
            self._spans[cid][uid] = (min(first, t), max(last, t))

    @classmethod
    def from_file(cls, path: str | Path | None = None) -> "ActivityLogEstimator":
        return cls(load_activity_logs(path))

    def guess_start(self, course: Course) -> Optional[int]:
        spans = self._spans.get(course.id)
        if not spans:
            return None
        first_access = sorted(first for first, _ in spans.values())
        return _midnight_utc(int(median(first_access)))

    def guess_end(self, course: Course) -> Optional[int]:
        spans = self._spans.get(course.id)
        if not spans:
            return None
        last_access = sorted(last for _, last in spans.values())
        return int(median(last_access))
