"""
Course store backed by the Moodle REST web service.

Uses the functions:
- core_course_get_courses      (read)
- core_course_update_courses   (write)
- core_course_get_contents     (count sections of a weeks course)

The web-service token is the secret of the AccessToken passed to each call.
Filtering and ordering happen client side with the same CourseQuery as the
JSON store, so both stores select the same courses.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import requests

from courseguess.model import CAP_COURSE_UPDATE, CAP_COURSE_VIEW, AccessToken, Course, CourseQuery
from courseguess.storage import CourseNotFoundError
from courseguess.weeks import weeks_end_date

REST_PATH = "/webservice/rest/server.php"


class MoodleWebServiceError(RuntimeError):
    """Raised when the web service answers with an exception payload."""


def _course_from_ws(data: Dict[str, Any]) -> Course:
    options: Dict[str, Any] = {}
    for opt in data.get("courseformatoptions", []) or []:
        name = opt.get("name")
        if name:
            options[name] = opt.get("value")
    if "automaticenddate" in options:
        options["automaticenddate"] = str(options["automaticenddate"]) not in ("0", "", "False", "false")

    record = dict(data)
    record["format_options"] = options
    return Course.from_dict(record)


class MoodleWebServiceStore:
    def __init__(self, base_url: str, session: Optional[requests.Session] = None, timeout: int = 30) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout

    def _call(self, token: AccessToken, function: str, params: Optional[dict] = None) -> Any:
        if not token.secret:
            raise PermissionError(f"User {token.user!r} has no web service token")

        data = {"wstoken": token.secret, "wsfunction": function, "moodlewsrestformat": "json"}
        data.update(params or {})

        url = f"{self.base_url}{REST_PATH}"
        resp = self.session.post(url, data=data, timeout=self.timeout)
        resp.raise_for_status()

        payload = resp.json()
        if isinstance(payload, dict) and "exception" in payload:
            raise MoodleWebServiceError(f"{function} failed: {payload.get('errorcode', '')} {payload.get('message', '')}")
        return payload

    def _get_courses(self, token: AccessToken, ids: Optional[List[int]] = None) -> list[Course]:
        params: Dict[str, Any] = {}
        for i, cid in enumerate(ids or []):
            params[f"options[ids][{i}]"] = cid
        raw = self._call(token, "core_course_get_courses", params)
        if not isinstance(raw, list):
            return []
        return [_course_from_ws(c) for c in raw if isinstance(c, dict) and "id" in c]

    def _count_sections(self, token: AccessToken, course_id: int) -> int:
        sections = self._call(token, "core_course_get_contents", {"courseid": course_id})
        if not isinstance(sections, list):
            return 0
        # Section 0 is the general section, not a week.
        return sum(1 for s in sections if isinstance(s, dict) and int(s.get("section", 0) or 0) > 0)

    # -- store contract ----------------------------------------------------

    def fetch(self, query: CourseQuery, token: AccessToken) -> list[Course]:
        token.require(CAP_COURSE_VIEW)
        ids = sorted(query.ids) if query.ids else None
        selected = [c for c in self._get_courses(token, ids) if query.matches(c)]
        return sorted(selected, key=lambda c: (c.sortorder, c.id))

    def reload(self, course_id: int, token: AccessToken) -> Course:
        token.require(CAP_COURSE_VIEW)
        courses = self._get_courses(token, [course_id])
        for c in courses:
            if c.id == course_id:
                return c
        raise CourseNotFoundError(f"Course {course_id} not found")

    def persist(self, course: Course, token: AccessToken) -> None:
        token.require(CAP_COURSE_UPDATE)
        params = {
            "courses[0][id]": course.id,
            "courses[0][shortname]": course.shortname,
            "courses[0][startdate]": course.startdate or 0,
            "courses[0][enddate]": course.enddate or 0,
        }
        self._call(token, "core_course_update_courses", params)

    def recompute_weeks_end_date(self, course_id: int, token: AccessToken) -> None:
        token.require(CAP_COURSE_UPDATE)
        course = self.reload(course_id, token)

        numsections = None
        if "numsections" not in course.format_options:
            numsections = self._count_sections(token, course_id)

        derived = weeks_end_date(course, numsections)
        if derived is None or derived == course.enddate:
            return
        params = {"courses[0][id]": course_id, "courses[0][enddate]": derived}
        self._call(token, "core_course_update_courses", params)
