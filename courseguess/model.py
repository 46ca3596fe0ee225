"""
Central data model definitions used across the project.

This module defines the canonical structure of the objects that flow between
the stores, the estimator and the decision engine so that:
- all modules share the same field names
- JSON records and in-memory objects convert in exactly one place
- the code stays readable and easy to test
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Set

SITE_COURSE_ID = 1

CAP_COURSE_VIEW = "course:view"
CAP_COURSE_UPDATE = "course:update"


def _as_timestamp(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass
class Course:
    """
    Represents one course record as stored in courses.json.

    startdate/enddate are unix timestamps; None and 0 both mean "unset".
    """

    id: int
    shortname: str
    startdate: Optional[int] = None
    enddate: Optional[int] = None
    format: str = "topics"
    format_options: Dict[str, Any] = field(default_factory=dict)
    sortorder: int = 0
    fullname: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Course":
        options = data.get("format_options", {})
        return cls(
            id=int(data["id"]),
            shortname=str(data.get("shortname", "") or ""),
            startdate=_as_timestamp(data.get("startdate")),
            enddate=_as_timestamp(data.get("enddate")),
            format=str(data.get("format", "topics") or "topics"),
            format_options=dict(options) if isinstance(options, dict) else {},
            sortorder=int(data.get("sortorder", 0) or 0),
            fullname=str(data.get("fullname", "") or ""),
        )

    @property
    def has_automatic_end_date(self) -> bool:
        """
        True for weeks-format courses whose end date is derived from the
        start date and the number of sections.
        """
        return self.format == "weeks" and bool(self.format_options.get("automaticenddate"))


@dataclass
class GuessOptions:
    """
    What the batch should guess and whether the guesses are written back.
    """

    guess_start: bool = True
    guess_end: bool = True
    guess_all: bool = False
    update: bool = False
    filter: Optional[Set[int]] = None

    @property
    def wants_start(self) -> bool:
        return self.guess_start or self.guess_all

    @property
    def wants_end(self) -> bool:
        return self.guess_end or self.guess_all


class Outcome(Enum):
    """
    Result of one start or end date decision.

    None of these are failures: they are reported and the batch continues.
    """

    NO_GUESS = "no_guess"
    UNCHANGED = "unchanged"
    UPDATED = "updated"
    INVALID_ORDERING = "invalid_ordering"
    WEEKS_AUTOMATIC = "weeks_automatic"
    WEEKS_DEFAULT = "weeks_default"


@dataclass
class DecisionResult:
    """
    Outcome of one course: the printed notification and whether anything
    was written to the store.
    """

    course_id: int
    notification: str
    persisted: bool = False
    start_outcome: Optional[Outcome] = None
    end_outcome: Optional[Outcome] = None


@dataclass(frozen=True)
class AccessToken:
    """
    Capability token handed to every store call.

    secret carries the web-service token when the store is remote.
    """

    user: str
    capabilities: FrozenSet[str] = frozenset()
    secret: Optional[str] = None

    @classmethod
    def admin(cls, secret: Optional[str] = None) -> "AccessToken":
        return cls(
            user="admin",
            capabilities=frozenset({CAP_COURSE_VIEW, CAP_COURSE_UPDATE}),
            secret=secret,
        )

    def allows(self, capability: str) -> bool:
        return capability in self.capabilities

    def require(self, capability: str) -> None:
        if not self.allows(capability):
            raise PermissionError(f"User {self.user!r} lacks capability {capability!r}")


@dataclass
class CourseQuery:
    """
    Course selection used by the stores.

    unset_start / unset_end restrict to courses where that date is None or 0.
    """

    exclude_ids: Set[int] = field(default_factory=lambda: {SITE_COURSE_ID})
    unset_start: bool = False
    unset_end: bool = False
    ids: Optional[Set[int]] = None

    def matches(self, course: Course) -> bool:
        if course.id in self.exclude_ids:
            return False
        if self.unset_start and course.startdate:
            return False
        if self.unset_end and course.enddate:
            return False
        if self.ids is not None and course.id not in self.ids:
            return False
        return True
