"""Derived read-only views over a progress snapshot.

Pure functions: day numbering, goals, streaks and totals.  Repetitions are
never stored; they are always recomputed from completion flags and the
goal formula, so totals stay consistent when a multiplier changes.

Day numbering works on calendar dates only (``date`` arithmetic is the
equivalent of the UTC-midnight difference), so results do not depend on
the caller's timezone or on daylight-saving transitions.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from datetime import date, datetime, timedelta

from oneup.exercises import ExerciseDefinition
from oneup.progress.models import ExerciseCompletion, TimeOfDay

STREAK_LOOKBACK_DAYS = 365

Completions = Mapping[str, Mapping[str, ExerciseCompletion]]


def local_date_str(value: date | datetime) -> str:
    """Format a date (or the local calendar date of a datetime) as ``YYYY-MM-DD``."""
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def parse_date(date_str: str) -> date:
    """Parse a ``YYYY-MM-DD`` string.

    Raises:
        ValueError: If *date_str* is not a valid calendar date.
    """
    return date.fromisoformat(date_str)


def day_number(start_date: str, date_str: str) -> int:
    """Return the 1-based day number of *date_str* relative to *start_date*.

    ``day_number(start, start) == 1``; dates before the start yield
    values below 1.
    """
    delta = parse_date(date_str) - parse_date(start_date)
    return delta.days + 1


def daily_goal(day: int, multiplier: float) -> int:
    """Return the repetition goal for a day number: ``max(1, ceil(day * multiplier))``."""
    return max(1, math.ceil(day * multiplier))


def goal_for_date(
    start_date: str, date_str: str, exercise: ExerciseDefinition
) -> int:
    """Goal of *exercise* on *date_str*."""
    return daily_goal(day_number(start_date, date_str), exercise.multiplier)


def is_day_done(completions: Completions, date_str: str) -> bool:
    """True iff at least one exercise is completed on *date_str*."""
    day = completions.get(date_str)
    if not day:
        return False
    return any(entry.is_completed for entry in day.values())


def _is_exercise_done(
    completions: Completions, date_str: str, exercise_id: str
) -> bool:
    entry = completions.get(date_str, {}).get(exercise_id)
    return entry is not None and entry.is_completed


def _walk_back(today_str: str, predicate) -> int:
    today = parse_date(today_str)
    count = 0
    for offset in range(STREAK_LOOKBACK_DAYS):
        if not predicate(local_date_str(today - timedelta(days=offset))):
            break
        count += 1
    return count


def streak(completions: Completions, today_str: str) -> int:
    """Consecutive days, counting back from *today_str* inclusive, where the day is done."""
    return _walk_back(
        today_str, lambda d: is_day_done(completions, d)
    )


def exercise_streak(
    completions: Completions, today_str: str, exercise_id: str
) -> int:
    """Consecutive days, counting back from *today_str*, where *exercise_id* is done."""
    return _walk_back(
        today_str,
        lambda d: _is_exercise_done(completions, d, exercise_id),
    )


def total_reps(
    completions: Completions,
    start_date: str,
    exercise_id: str,
    multiplier: float,
) -> int:
    """Sum of daily goals over every date ``>= start_date`` where the exercise is completed.

    Depends only on completion flags; ``count`` is ignored.
    """
    total = 0
    for date_str, day in completions.items():
        if date_str < start_date:
            continue
        entry = day.get(exercise_id)
        if entry is None or not entry.is_completed:
            continue
        total += daily_goal(day_number(start_date, date_str), multiplier)
    return total


def exercise_totals(
    completions: Completions,
    start_date: str,
    exercises: Iterable[ExerciseDefinition],
) -> dict[str, int]:
    """Return ``total_reps`` for every configured exercise, keyed by id."""
    return {
        ex.id: total_reps(completions, start_date, ex.id, ex.multiplier)
        for ex in exercises
    }


def time_of_day_breakdown(completions: Completions) -> dict[str, int]:
    """Count completions per time-of-day bucket.

    Entries without a time of day (backfilled or toggled days) are left
    out so that bulk actions do not skew the habit statistics.
    """
    breakdown = {bucket.value: 0 for bucket in TimeOfDay}
    for day in completions.values():
        for entry in day.values():
            if entry.is_completed and entry.time_of_day is not None:
                breakdown[entry.time_of_day.value] += 1
    return breakdown
