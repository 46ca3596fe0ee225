"""
Batch loop: select the courses to look at and run the decision engine on
each of them, one after the other.
"""

from __future__ import annotations

from typing import Callable

from courseguess.decide import DateDecisionEngine
from courseguess.model import AccessToken, CourseQuery, DecisionResult, GuessOptions
from courseguess.storage import CourseStore


def build_query(options: GuessOptions) -> CourseQuery:
    """
    Translate guess options into a course selection.

    The site course is always excluded. Unless guess_all is set, only courses
    with an unset date (for each requested date) are selected.
    """
    query = CourseQuery()
    if not options.guess_all:
        query.unset_start = options.guess_start
        query.unset_end = options.guess_end
    if options.filter is not None:
        query.ids = set(options.filter)
    return query


def run_batch(
    store: CourseStore,
    engine: DateDecisionEngine,
    options: GuessOptions,
    token: AccessToken,
    emit: Callable[[str], None] = print,
) -> list[DecisionResult]:
    results: list[DecisionResult] = []
    for course in store.fetch(build_query(options), token):
        result = engine.process(course, options)
        emit(result.notification)
        results.append(result)
    return results
