"""
Unit tests for the date decision workflow.

A small in-memory store records every call so the tests can check
exactly when guesses are written back.
"""

import copy
import unittest

from courseguess.decide import (
    MSG_CANT_GUESS_END,
    MSG_CANT_GUESS_START,
    MSG_SAME_START,
    MSG_WEEKS_AUTOMATIC,
    MSG_WEEKS_DEFAULT,
    DateDecisionEngine,
    format_timestamp,
)
from courseguess.model import AccessToken, Course, GuessOptions, Outcome
from courseguess.weeks import weeks_end_date


class MemoryStore:
    def __init__(self, courses):
        self.courses = {c.id: copy.deepcopy(c) for c in courses}
        self.calls = []

    def reload(self, course_id, token):
        self.calls.append(("reload", course_id))
        return copy.deepcopy(self.courses[course_id])

    def persist(self, course, token):
        self.calls.append(("persist", course.id, course.startdate, course.enddate))
        stored = self.courses[course.id]
        stored.startdate = course.startdate
        stored.enddate = course.enddate
        if stored.has_automatic_end_date:
            stored.enddate = weeks_end_date(stored)

    def recompute_weeks_end_date(self, course_id, token):
        self.calls.append(("recompute", course_id))
        stored = self.courses[course_id]
        stored.enddate = weeks_end_date(stored)

    def persist_calls(self):
        return [c for c in self.calls if c[0] == "persist"]


class FixedEstimator:
    def __init__(self, start=None, end=None):
        self.start = start
        self.end = end
        self.seen = []

    def guess_start(self, course):
        self.seen.append(("start", course.startdate, course.enddate))
        return self.start

    def guess_end(self, course):
        self.seen.append(("end", course.startdate, course.enddate))
        return self.end


def _engine(store, estimator):
    return DateDecisionEngine(store, estimator, AccessToken.admin())


def _topics(**kw):
    data = {"id": 5, "shortname": "C5", "startdate": 0, "enddate": 0, "format": "topics"}
    data.update(kw)
    return Course.from_dict(data)


def _weeks(**kw):
    data = {
        "id": 7,
        "shortname": "W7",
        "startdate": 1_000_000,
        "enddate": 0,
        "format": "weeks",
        "format_options": {"automaticenddate": True, "numsections": 10},
    }
    data.update(kw)
    return Course.from_dict(data)


class TestStartDecision(unittest.TestCase):
    def test_no_guess_is_reported_and_not_persisted(self) -> None:
        for original in (None, 0, 1_000_000):
            course = _topics(startdate=original)
            store = MemoryStore([course])
            _, outcome, line, persisted = _engine(store, FixedEstimator(start=None)).decide_start(
                course, GuessOptions(update=True)
            )
            self.assertEqual(outcome, Outcome.NO_GUESS)
            self.assertEqual(line, MSG_CANT_GUESS_START)
            self.assertFalse(persisted)
            self.assertEqual(store.persist_calls(), [])

    def test_same_start_is_unchanged(self) -> None:
        course = _topics(startdate=1_000_000)
        store = MemoryStore([course])
        _, outcome, line, persisted = _engine(store, FixedEstimator(start=1_000_000)).decide_start(
            course, GuessOptions(update=True)
        )
        self.assertEqual(outcome, Outcome.UNCHANGED)
        self.assertEqual(line, f"{MSG_SAME_START}: {format_timestamp(1_000_000)}")
        self.assertFalse(persisted)
        self.assertEqual(store.persist_calls(), [])

    def test_new_start_dry_run_only_changes_memory(self) -> None:
        course = _topics()
        store = MemoryStore([course])
        course, outcome, _, persisted = _engine(store, FixedEstimator(start=1_000_000)).decide_start(
            course, GuessOptions(update=False)
        )
        self.assertEqual(outcome, Outcome.UPDATED)
        self.assertEqual(course.startdate, 1_000_000)
        self.assertFalse(persisted)
        self.assertEqual(store.calls, [])
        self.assertEqual(store.courses[5].startdate, 0)

    def test_new_start_with_update_persists_and_reloads(self) -> None:
        course = _topics()
        store = MemoryStore([course])
        course, _, _, persisted = _engine(store, FixedEstimator(start=1_000_000)).decide_start(
            course, GuessOptions(update=True)
        )
        self.assertTrue(persisted)
        self.assertEqual(store.calls[0][0], "persist")
        self.assertEqual(store.calls[1], ("reload", 5))
        self.assertEqual(store.courses[5].startdate, 1_000_000)


class TestEndDecision(unittest.TestCase):
    def test_weeks_automatic_dry_run_reports_default(self) -> None:
        course = _weeks()
        store = MemoryStore([course])
        estimator = FixedEstimator(end=9_000_000)
        _, outcome, line, persisted = _engine(store, estimator).decide_end(course, GuessOptions(update=False))
        self.assertEqual(outcome, Outcome.WEEKS_DEFAULT)
        self.assertEqual(line, MSG_WEEKS_DEFAULT)
        self.assertFalse(persisted)
        self.assertEqual(store.calls, [])
        self.assertEqual(estimator.seen, [])

    def test_weeks_automatic_update_recomputes(self) -> None:
        course = _weeks()
        store = MemoryStore([course])
        estimator = FixedEstimator(end=9_000_000)
        course, outcome, line, persisted = _engine(store, estimator).decide_end(course, GuessOptions(update=True))

        expected = weeks_end_date(_weeks())
        self.assertEqual(outcome, Outcome.WEEKS_AUTOMATIC)
        self.assertIn(("recompute", 7), store.calls)
        self.assertEqual(course.enddate, expected)
        self.assertEqual(line, f"{MSG_WEEKS_AUTOMATIC}: {format_timestamp(expected)}")
        self.assertTrue(persisted)
        self.assertEqual(estimator.seen, [])

    def test_weeks_without_automatic_end_date_guesses(self) -> None:
        course = _weeks(format_options={"automaticenddate": False})
        store = MemoryStore([course])
        _, outcome, _, _ = _engine(store, FixedEstimator(end=2_000_000)).decide_end(course, GuessOptions())
        self.assertEqual(outcome, Outcome.UPDATED)

    def test_no_end_guess(self) -> None:
        course = _topics(startdate=1_000_000, enddate=3_000_000)
        store = MemoryStore([course])
        _, outcome, line, _ = _engine(store, FixedEstimator(end=None)).decide_end(course, GuessOptions(update=True))
        self.assertEqual(outcome, Outcome.NO_GUESS)
        self.assertEqual(line, MSG_CANT_GUESS_END)
        self.assertEqual(store.persist_calls(), [])

    def test_end_before_start_never_persisted(self) -> None:
        for end in (500, 1_000_000):
            course = _topics(startdate=1_000_000)
            store = MemoryStore([course])
            course, outcome, line, persisted = _engine(store, FixedEstimator(end=end)).decide_end(
                course, GuessOptions(update=True)
            )
            self.assertEqual(outcome, Outcome.INVALID_ORDERING)
            self.assertIn("is before the course start date", line)
            self.assertFalse(persisted)
            self.assertEqual(store.persist_calls(), [])
            self.assertEqual(store.courses[5].enddate, 0)

    def test_unchanged_end_is_not_revalidated(self) -> None:
        # Stored end before start stays as it is when the guess matches it.
        course = _topics(startdate=1_000_000, enddate=500)
        store = MemoryStore([course])
        _, outcome, _, _ = _engine(store, FixedEstimator(end=500)).decide_end(course, GuessOptions(update=True))
        self.assertEqual(outcome, Outcome.UNCHANGED)


class TestProcess(unittest.TestCase):
    def test_both_dates_guessed_and_persisted(self) -> None:
        store = MemoryStore([_topics()])
        engine = _engine(store, FixedEstimator(start=1_000_000, end=2_000_000))
        result = engine.process(_topics(), GuessOptions(update=True))

        self.assertEqual(store.courses[5].startdate, 1_000_000)
        self.assertEqual(store.courses[5].enddate, 2_000_000)
        self.assertTrue(result.persisted)
        self.assertEqual(result.start_outcome, Outcome.UPDATED)
        self.assertEqual(result.end_outcome, Outcome.UPDATED)
        self.assertTrue(result.notification.startswith("C5 (id = 5): "))
        self.assertIn(f"Start date: {format_timestamp(1_000_000)}", result.notification)
        self.assertIn(f"End date: {format_timestamp(2_000_000)}", result.notification)

    def test_end_before_new_start_is_rejected(self) -> None:
        store = MemoryStore([_topics()])
        engine = _engine(store, FixedEstimator(start=1_000_000, end=500))
        result = engine.process(_topics(), GuessOptions(update=True))

        self.assertEqual(store.courses[5].startdate, 1_000_000)
        self.assertEqual(store.courses[5].enddate, 0)
        self.assertEqual(result.end_outcome, Outcome.INVALID_ORDERING)
        self.assertEqual(len(store.persist_calls()), 1)

    def test_end_check_sees_dry_run_start(self) -> None:
        # End 1500 is after the stored start (0) but not after the guessed one.
        store = MemoryStore([_topics()])
        engine = _engine(store, FixedEstimator(start=2_000, end=1_500))
        result = engine.process(_topics(), GuessOptions(update=False))
        self.assertEqual(result.end_outcome, Outcome.INVALID_ORDERING)

    def test_end_guess_sees_reloaded_course(self) -> None:
        course = _weeks(startdate=0, format_options={"automaticenddate": True, "numsections": 4})
        store = MemoryStore([course])
        estimator = FixedEstimator(start=1_000_000, end=9_000_000)
        result = _engine(store, estimator).process(course, GuessOptions(update=True))

        # persist() derived the end date, recompute keeps it.
        self.assertEqual(store.courses[7].enddate, weeks_end_date(store.courses[7]))
        self.assertEqual(result.end_outcome, Outcome.WEEKS_AUTOMATIC)

    def test_only_start_requested(self) -> None:
        store = MemoryStore([_topics()])
        estimator = FixedEstimator(start=1_000_000, end=2_000_000)
        result = _engine(store, estimator).process(_topics(), GuessOptions(guess_end=False))
        self.assertIsNone(result.end_outcome)
        self.assertEqual([s[0] for s in estimator.seen], ["start"])

    def test_guess_all_overrides_flags(self) -> None:
        store = MemoryStore([_topics()])
        estimator = FixedEstimator(start=1_000_000, end=2_000_000)
        options = GuessOptions(guess_start=False, guess_end=False, guess_all=True)
        result = _engine(store, estimator).process(_topics(), options)
        self.assertEqual(result.start_outcome, Outcome.UPDATED)
        self.assertEqual(result.end_outcome, Outcome.UPDATED)

    def test_dry_run_is_repeatable(self) -> None:
        store = MemoryStore([_topics()])
        engine = _engine(store, FixedEstimator(start=1_000_000, end=2_000_000))
        first = engine.process(store.reload(5, None), GuessOptions())
        second = engine.process(store.reload(5, None), GuessOptions())
        self.assertEqual(first.notification, second.notification)
        self.assertFalse(first.persisted)
        self.assertEqual(store.persist_calls(), [])


if __name__ == "__main__":
    unittest.main()
