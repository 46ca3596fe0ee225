"""
Date decision workflow.

For one course, decide whether a guessed start/end date is applied, reported
as unchanged, or rejected, and build the notification text printed by the
batch.

Rules:
- a guess equal to the stored value is reported, never written
- "no guess" is reported, never an error
- a new end date is written only if it is after the start date,
  regardless of the update flag
- weeks courses with an automatic end date skip the end date guess
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Tuple

from courseguess.estimator import DateEstimator
from courseguess.model import AccessToken, Course, DecisionResult, GuessOptions, Outcome
from courseguess.storage import CourseStore

DATE_FORMAT = "%A, %d %B %Y, %I:%M %p"

MSG_CANT_GUESS_START = "Can't guess the start date"
MSG_CANT_GUESS_END = "Can't guess the end date"
MSG_SAME_START = "Current start date is good"
MSG_SAME_END = "Current end date is good"
MSG_START = "Start date"
MSG_END = "End date"
MSG_WEEKS_AUTOMATIC = "End date automatically set based on start date and the number of sections"
MSG_WEEKS_DEFAULT = "End date automatically calculated from the course start date."
MSG_END_BEFORE_START = "The guessed end date ({}) is before the course start date."

# (course, outcome, notification line, persisted)
Decision = Tuple[Course, Outcome, str, bool]


def format_timestamp(ts: Optional[int]) -> str:
    if not ts:
        return "-"
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime(DATE_FORMAT)


class DateDecisionEngine:
    def __init__(self, store: CourseStore, estimator: DateEstimator, token: AccessToken) -> None:
        self.store = store
        self.estimator = estimator
        self.token = token

    def decide_start(self, course: Course, options: GuessOptions) -> Decision:
        original = course.startdate
        guessed = self.estimator.guess_start(course)

        if guessed == original or not guessed:
            if not guessed:
                return course, Outcome.NO_GUESS, MSG_CANT_GUESS_START, False
            return course, Outcome.UNCHANGED, f"{MSG_SAME_START}: {format_timestamp(guessed)}", False

        # Set even in dry-run mode: the end date check compares against it.
        course.startdate = guessed
        line = f"{MSG_START}: {format_timestamp(guessed)}"

        if not options.update:
            return course, Outcome.UPDATED, line, False

        self.store.persist(course, self.token)
        # persist() may have re-derived the end date.
        course = self.store.reload(course.id, self.token)
        return course, Outcome.UPDATED, line, True

    def decide_end(self, course: Course, options: GuessOptions) -> Decision:
        original = course.enddate

        if course.has_automatic_end_date:
            if not options.update:
                # The value is only known once the recalculation is committed.
                return course, Outcome.WEEKS_DEFAULT, MSG_WEEKS_DEFAULT, False
            self.store.recompute_weeks_end_date(course.id, self.token)
            course.enddate = self.store.reload(course.id, self.token).enddate
            line = f"{MSG_WEEKS_AUTOMATIC}: {format_timestamp(course.enddate)}"
            return course, Outcome.WEEKS_AUTOMATIC, line, True

        guessed = self.estimator.guess_end(course)

        if guessed == original or not guessed:
            if not guessed:
                return course, Outcome.NO_GUESS, MSG_CANT_GUESS_END, False
            return course, Outcome.UNCHANGED, f"{MSG_SAME_END}: {format_timestamp(guessed)}", False

        course.enddate = guessed
        if guessed <= (course.startdate or 0):
            line = MSG_END_BEFORE_START.format(format_timestamp(guessed))
            return course, Outcome.INVALID_ORDERING, line, False

        line = f"{MSG_END}: {format_timestamp(guessed)}"
        if not options.update:
            return course, Outcome.UPDATED, line, False

        self.store.persist(course, self.token)
        return course, Outcome.UPDATED, line, True

    def process(self, course: Course, options: GuessOptions) -> DecisionResult:
        """
        Run the start and end decisions for one course, in that order.
        """
        result = DecisionResult(course_id=course.id, notification=f"{course.shortname} (id = {course.id}): ")

        if options.wants_start:
            course, outcome, line, persisted = self.decide_start(course, options)
            result.start_outcome = outcome
            result.notification += f"\n  {line}"
            result.persisted = result.persisted or persisted

        if options.wants_end:
            course, outcome, line, persisted = self.decide_end(course, options)
            result.end_outcome = outcome
            result.notification += f"\n  {line}"
            result.persisted = result.persisted or persisted

        return result
