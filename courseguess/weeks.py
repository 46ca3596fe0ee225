"""
Weeks course format.

A weeks course can derive its end date from the start date: every section is
one week long, and the end date is the end of the last section.
"""

from __future__ import annotations

from typing import Optional

from courseguess.model import Course

WEEK_SECONDS = 7 * 24 * 60 * 60

# Sections start two hours after the course start so a DST change does not
# push a section boundary onto the previous day.
DST_OFFSET_SECONDS = 2 * 60 * 60


def section_dates(startdate: int, section: int) -> tuple[int, int]:
    """
    Return (start, end) timestamps of a numbered section (1-based).
    """
    start = startdate + DST_OFFSET_SECONDS + WEEK_SECONDS * (section - 1)
    return start, start + WEEK_SECONDS


def weeks_end_date(course: Course, numsections: Optional[int] = None) -> Optional[int]:
    """
    Compute the automatic end date of a weeks course.

    Returns None when the course has no start date or no sections.
    """
    if not course.startdate:
        return None
    if numsections is None:
        try:
            numsections = int(course.format_options.get("numsections", 0) or 0)
        except (TypeError, ValueError):
            numsections = 0
    if numsections <= 0:
        return None
    _, end = section_dates(course.startdate, numsections)
    return end
