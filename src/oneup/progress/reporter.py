"""Progress summary formatting functions.

Provides human-readable and machine-readable output for the progress
snapshot:

- ``build_summary`` -- compute a ``ProgressSummary`` for a given day.
- ``format_progress_summary`` -- multi-line text for tools and logs.
- ``summary_to_json`` -- structured dict for MCP tool output.
"""

from __future__ import annotations

from collections.abc import Sequence

from oneup.exercises import ExerciseDefinition
from oneup.progress import views
from oneup.progress.models import (
    ExerciseSummary,
    ProgressState,
    ProgressSummary,
)


def build_summary(
    state: ProgressState,
    exercises: Sequence[ExerciseDefinition],
    today: str,
) -> ProgressSummary:
    """Compute the summary of *state* as seen on *today*."""
    day_no = views.day_number(state.start_date, today)
    day = state.completions.get(today, {})
    per_exercise: list[ExerciseSummary] = []
    for ex in exercises:
        entry = day.get(ex.id)
        per_exercise.append(
            ExerciseSummary(
                exercise_id=ex.id,
                label=ex.label or ex.id,
                goal_today=views.daily_goal(day_no, ex.multiplier),
                done_today=bool(entry and entry.is_completed),
                count_today=entry.count if entry else 0,
                total_reps=views.total_reps(
                    state.completions,
                    state.start_date,
                    ex.id,
                    ex.multiplier,
                ),
                streak=views.exercise_streak(
                    state.completions, today, ex.id
                ),
            )
        )

    return ProgressSummary(
        today=today,
        day_number=day_no,
        is_setup=state.is_setup,
        start_date=state.start_date,
        user_start_date=state.user_start_date,
        day_done=views.is_day_done(state.completions, today),
        streak=views.streak(state.completions, today),
        total_reps=sum(e.total_reps for e in per_exercise),
        exercises=per_exercise,
        time_of_day=views.time_of_day_breakdown(state.completions),
    )


# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_progress_summary(summary: ProgressSummary) -> str:
    """Format a progress summary as human-readable text.

    Args:
        summary: The computed summary.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    if not summary.is_setup:
        lines.append("Challenge not started yet.")
        lines.append(f"Year anchor: {summary.start_date}")
        return "\n".join(lines)

    status = "done" if summary.day_done else "open"
    lines.append(f"Day {summary.day_number} ({summary.today}): {status}")
    lines.append(
        f"Started: {summary.user_start_date} (anchor {summary.start_date})"
    )
    lines.append(
        f"Streak: {summary.streak} day(s), total reps: {summary.total_reps}"
    )
    lines.append("")

    lines.append("Exercises:")
    for ex in summary.exercises:
        mark = "x" if ex.done_today else " "
        progress = (
            f"{ex.goal_today}/{ex.goal_today}"
            if ex.done_today and ex.count_today == 0
            else f"{ex.count_today}/{ex.goal_today}"
        )
        lines.append(
            f"  [{mark}] {ex.label}: {progress}, "
            f"total {ex.total_reps}, streak {ex.streak}"
        )

    tracked = sum(summary.time_of_day.values())
    if tracked:
        lines.append("")
        lines.append(f"Consistency ({tracked} manual completions):")
        for bucket, count in summary.time_of_day.items():
            lines.append(f"  {bucket}: {count}")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def summary_to_json(summary: ProgressSummary) -> dict:
    """Convert a progress summary to a JSON-serialisable dict."""
    return summary.model_dump(mode="json")
