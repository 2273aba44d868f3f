"""MCP tool handlers for local progress.

Defines five tools:

- ``progress_summary`` -- day number, streaks, totals and today's goals.
- ``exercise_list`` -- configured exercises with their goal for a day.
- ``challenge_start`` -- complete onboarding and backfill past days.
- ``day_toggle`` -- flip a whole day between done and not done.
- ``exercise_set_count`` -- update the counter of one exercise.

All mutations are local and persisted immediately.  With auto-sync
enabled the service also pushes them to the cloud.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...progress.reporter import format_progress_summary, summary_to_json
from ...service import ProgressService
from .errors import build_error_response
from .registry import ToolSpec

logger = logging.getLogger(__name__)

_DATE_PROPERTY = {
    "type": "string",
    "description": "Calendar date YYYY-MM-DD (defaults to today)",
}


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


PROGRESS_TOOLS: list[types.Tool] = [
    types.Tool(
        name="progress_summary",
        description=(
            "Show challenge progress: day number, streak, total reps, "
            "today's goal and counter per exercise, time-of-day habits."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {"date": _DATE_PROPERTY},
            "required": [],
        },
    ),
    types.Tool(
        name="exercise_list",
        description=(
            "List configured exercises with their multiplier, the goal "
            "for a day and total reps so far."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {"date": _DATE_PROPERTY},
            "required": [],
        },
    ),
    types.Tool(
        name="challenge_start",
        description=(
            "Start the challenge from a given date. Every day from that "
            "date up to yesterday is marked done for all exercises."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "start_date": {
                    "type": "string",
                    "description": "Date the user started, YYYY-MM-DD",
                },
            },
            "required": ["start_date"],
        },
    ),
    types.Tool(
        name="day_toggle",
        description=(
            "Toggle a whole day: if any exercise is done, every exercise "
            "becomes not done; otherwise every exercise becomes done. "
            "Only days from the challenge start up to today can be edited."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=False,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {"date": _DATE_PROPERTY},
            "required": [],
        },
    ),
    types.Tool(
        name="exercise_set_count",
        description=(
            "Set the repetition counter of one exercise on one day. The "
            "counter is clamped to [0, goal]; reaching the goal marks the "
            "exercise done. Only days from the challenge start up to today "
            "can be edited."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "exercise_id": {
                    "type": "string",
                    "description": "Exercise id, e.g. pushups",
                },
                "count": {
                    "type": "integer",
                    "description": "New counter value",
                },
                "goal": {
                    "type": "integer",
                    "minimum": 1,
                    "description": "Goal override (defaults to the day's goal)",
                },
                "date": _DATE_PROPERTY,
            },
            "required": ["exercise_id", "count"],
        },
    ),
]


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


def _text_result(
    text: str, structured: dict[str, Any]
) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=structured,
    )


async def _handle_summary(
    service: ProgressService, args: dict[str, Any]
) -> types.CallToolResult:
    summary = service.summary(args.get("date"))
    return _text_result(
        format_progress_summary(summary), summary_to_json(summary)
    )


async def _handle_exercise_list(
    service: ProgressService, args: dict[str, Any]
) -> types.CallToolResult:
    date_str = args.get("date") or service.today()
    rows = []
    lines = [f"Exercises for {date_str} (day {service.day_number(date_str)}):"]
    for ex in service.exercises:
        goal = service.goal_for(ex.id, date_str)
        total = service.total_reps(ex.id)
        rows.append(
            {
                "id": ex.id,
                "label": ex.label,
                "multiplier": ex.multiplier,
                "goal": goal,
                "total_reps": total,
            }
        )
        lines.append(
            f"  {ex.id} ({ex.label or ex.id}, x{ex.multiplier:g}): "
            f"goal {goal}, total {total}"
        )
    return _text_result(
        "\n".join(lines), {"date": date_str, "exercises": rows}
    )


async def _handle_start(
    service: ProgressService, args: dict[str, Any]
) -> types.CallToolResult:
    start_date = args.get("start_date")
    if not start_date:
        return build_error_response(
            "validation_error",
            "start_date is required",
            "Provide the 'start_date' parameter as YYYY-MM-DD.",
        )

    state = service.start_challenge(start_date)
    day = service.day_number()
    return _text_result(
        f"Challenge started on {state.user_start_date}. "
        f"Today is day {day}.",
        {
            "start_date": state.start_date,
            "user_start_date": state.user_start_date,
            "day_number": day,
        },
    )


async def _handle_toggle(
    service: ProgressService, args: dict[str, Any]
) -> types.CallToolResult:
    date_str = args.get("date") or service.today()
    service.toggle_day(date_str)
    done = service.is_day_done(date_str)
    return _text_result(
        f"Day {date_str} marked {'done' if done else 'not done'}.",
        {"date": date_str, "done": done, "streak": service.streak()},
    )


async def _handle_set_count(
    service: ProgressService, args: dict[str, Any]
) -> types.CallToolResult:
    exercise_id = args.get("exercise_id")
    if not exercise_id:
        return build_error_response(
            "validation_error",
            "exercise_id is required",
            "Use exercise_list to see configured exercise ids.",
        )
    count = args.get("count")
    if isinstance(count, bool) or not isinstance(count, int):
        return build_error_response(
            "validation_error",
            "count must be an integer",
            "Provide the 'count' parameter as a whole number.",
        )

    date_str = args.get("date") or service.today()
    goal = args.get("goal")
    if goal is None:
        goal = service.goal_for(exercise_id, date_str)
    state = service.set_exercise_count(date_str, exercise_id, count, goal)

    entry = state.completions[date_str][exercise_id]
    status = "done" if entry.is_completed else "in progress"
    return _text_result(
        f"{exercise_id} on {date_str}: {entry.count}/{goal} ({status}).",
        {
            "date": date_str,
            "exercise_id": exercise_id,
            "count": entry.count,
            "goal": goal,
            "is_completed": entry.is_completed,
            "total_reps": service.total_reps(exercise_id),
        },
    )


# ToolSpec list for registry-based dispatch
PROGRESS_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=PROGRESS_TOOLS[0],
        permissions=frozenset({"PROGRESS_VIEW"}),
        handler=_handle_summary,
    ),
    ToolSpec(
        tool=PROGRESS_TOOLS[1],
        permissions=frozenset({"PROGRESS_VIEW"}),
        handler=_handle_exercise_list,
    ),
    ToolSpec(
        tool=PROGRESS_TOOLS[2],
        permissions=frozenset({"PROGRESS_MODIFY"}),
        handler=_handle_start,
    ),
    ToolSpec(
        tool=PROGRESS_TOOLS[3],
        permissions=frozenset({"PROGRESS_MODIFY"}),
        handler=_handle_toggle,
    ),
    ToolSpec(
        tool=PROGRESS_TOOLS[4],
        permissions=frozenset({"PROGRESS_MODIFY"}),
        handler=_handle_set_count,
    ),
]
