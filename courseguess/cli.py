"""
CLI (Command Line Interface).

Guesses course start and end dates based on activity logs:

    courseguess                          dry-run over courses with unset dates
    courseguess --update=1 --filter=123,321
    courseguess --guessall --guessend=0  re-guess every start date

Data sources:
- courses: a JSON file (--courses) or a Moodle site (--moodle-url + --token,
  or the MOODLE_URL / MOODLE_TOKEN environment variables)
- activity logs: a JSON file (--logs)

Note:
- Output is plain text, one notification per course
- Exit code is 0 for help, for "nothing to guess" and for normal completion
"""

from __future__ import annotations

import argparse
import os
import re
import sys
from typing import Optional

from courseguess.decide import DateDecisionEngine
from courseguess.estimator import ActivityLogEstimator
from courseguess.model import AccessToken, GuessOptions
from courseguess.moodle_ws import MoodleWebServiceStore
from courseguess.runner import run_batch
from courseguess.storage import JsonCourseStore

EXAMPLE = "Example:\n$ courseguess --update=1 --filter=123,321\n"

_TRUE = {"1", "true", "yes", "y", "on"}
_FALSE = {"0", "false", "no", "n", "off", ""}


def _parse_bool(value: str) -> bool:
    v = str(value).strip().lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    raise argparse.ArgumentTypeError(f"Invalid boolean value: {value!r}")


def parse_filter(value: Optional[str]) -> Optional[set[int]]:
    """
    Turn "123, 321" into {123, 321}.

    Anything except digits and commas is removed first. A filter that was
    given but holds no ids is an empty set, which selects no course.
    """
    if value is None:
        return None
    cleaned = re.sub(r"[^0-9,]", "", value)
    return {int(x) for x in cleaned.split(",") if x}


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser.
    """
    parser = argparse.ArgumentParser(
        prog="courseguess",
        description="Guesses course start and end dates based on activity logs.",
        epilog=EXAMPLE,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    def flag(name: str, default: bool, text: str) -> None:
        parser.add_argument(
            f"--{name}", type=_parse_bool, nargs="?", const=True, default=default, metavar="BOOL", help=text
        )

    flag("guessstart", True, "Guess the course start date (default to true)")
    flag("guessend", True, "Guess the course end date (default to true)")
    flag("guessall", False, "Guess all start and end dates, even if they are already set (default to false)")
    flag("update", False, "Update the courses or just notify the guess (default to false)")
    parser.add_argument("--filter", type=str, default=None, help="Comma separated course ids (optional)")

    parser.add_argument("--courses", type=str, default=None, help="Courses JSON file (default: package data)")
    parser.add_argument("--logs", type=str, default=None, help="Activity logs JSON file (default: package data)")
    parser.add_argument("--moodle-url", type=str, default=os.environ.get("MOODLE_URL"), help="Moodle site URL")
    parser.add_argument("--token", type=str, default=os.environ.get("MOODLE_TOKEN"), help="Moodle web service token")

    return parser


def options_from_args(args: argparse.Namespace) -> GuessOptions:
    return GuessOptions(
        guess_start=args.guessstart,
        guess_end=args.guessend,
        guess_all=args.guessall,
        update=args.update,
        filter=parse_filter(args.filter),
    )


def main(argv: list[str] | None = None) -> None:
    """
    CLI entry point. Parses args, runs the batch and exits via SystemExit.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if not (args.guessstart or args.guessend or args.guessall):
        parser.print_help()
        raise SystemExit(0)

    options = options_from_args(args)

    if args.moodle_url:
        if not args.token:
            print("Error: --moodle-url needs a web service token (--token or MOODLE_TOKEN).", file=sys.stderr)
            raise SystemExit(2)
        store = MoodleWebServiceStore(args.moodle_url)
    else:
        store = JsonCourseStore(args.courses)

    token = AccessToken.admin(secret=args.token)
    engine = DateDecisionEngine(store, ActivityLogEstimator.from_file(args.logs), token)

    run_batch(store, engine, options, token)
    raise SystemExit(0)
