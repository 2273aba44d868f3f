"""MCP tool handlers for the cloud replica and the leaderboard.

Cloud tools:

- ``cloud_sync`` -- reconcile with the cloud (merge, upload or restore).
- ``cloud_save`` -- push the local snapshot.
- ``cloud_status`` -- compare the cloud snapshot with the local one.
- ``cloud_watch`` -- start or stop the live listener.

Leaderboard tools:

- ``leaderboard_publish`` -- publish the user's totals.
- ``leaderboard_list`` -- list all entries, highest total first.
- ``leaderboard_remove`` -- delete the user's entry.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...progress import views
from ...progress.resolver import STRATEGIES
from ...service import ProgressService
from ...sync.models import LeaderboardEntry
from .errors import build_error_response, translate_sync_failure
from .registry import ToolSpec

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


CLOUD_TOOLS: list[types.Tool] = [
    types.Tool(
        name="cloud_sync",
        description=(
            "Reconcile local progress with the cloud copy. 'merge' keeps "
            "the most recent change per exercise and day, 'local-wins' "
            "overwrites the cloud, 'remote-wins' restores the cloud copy."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "strategy": {
                    "type": "string",
                    "enum": list(STRATEGIES),
                    "description": "Conflict strategy (defaults to the configured one)",
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="cloud_save",
        description="Push the local progress snapshot to the cloud.",
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
    types.Tool(
        name="cloud_status",
        description=(
            "Load the cloud snapshot and compare it with local progress "
            "without changing either side."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
    types.Tool(
        name="cloud_watch",
        description=(
            "Start or stop listening to cloud changes made by other "
            "devices. Changes are merged into local progress as they arrive."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "enabled": {
                    "type": "boolean",
                    "default": True,
                    "description": "True to start listening, False to stop",
                },
            },
            "required": [],
        },
    ),
]

LEADERBOARD_TOOLS: list[types.Tool] = [
    types.Tool(
        name="leaderboard_publish",
        description="Publish total reps per exercise to the public leaderboard.",
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "pseudo": {
                    "type": "string",
                    "description": "Public name (defaults to the configured display name)",
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="leaderboard_list",
        description="List leaderboard entries, highest total reps first.",
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "limit": {
                    "type": "integer",
                    "default": 20,
                    "minimum": 1,
                    "description": "Maximum number of entries",
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="leaderboard_remove",
        description="Remove the user's entry from the public leaderboard.",
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
]


def _text_result(
    text: str, structured: dict[str, Any] | None = None
) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=structured,
    )


# ---------------------------------------------------------------------------
# Cloud handlers
# ---------------------------------------------------------------------------


async def _handle_sync(
    service: ProgressService, args: dict[str, Any]
) -> types.CallToolResult:
    strategy = args.get("strategy")
    if strategy is not None and strategy not in STRATEGIES:
        return build_error_response(
            "validation_error",
            f"Unknown strategy '{strategy}'",
            f"Use one of: {', '.join(STRATEGIES)}.",
        )

    result = await service.resolve_with_cloud(strategy)
    if not result.success:
        return translate_sync_failure(result)

    state = service.state
    days = len(state.completions)
    note = " (save skipped, another save in flight)" if result.in_progress else ""
    return _text_result(
        f"Synced with cloud{note}: {days} day(s) tracked, "
        f"streak {service.streak()}.",
        {
            "strategy": strategy or "configured",
            "days_tracked": days,
            "saved": not result.in_progress,
        },
    )


async def _handle_save(
    service: ProgressService, args: dict[str, Any]
) -> types.CallToolResult:
    result = await service.save_to_cloud()
    if not result.success:
        return translate_sync_failure(result)
    return _text_result("Progress saved to cloud.", {"saved": True})


async def _handle_status(
    service: ProgressService, args: dict[str, Any]
) -> types.CallToolResult:
    result = await service.load_from_cloud()
    if not result.success:
        return translate_sync_failure(result)

    local = service.state
    remote = result.state
    if remote is None:
        return _text_result(
            "No progress stored in the cloud yet. Use cloud_save to upload.",
            {"remote_exists": False, "local_days": len(local.completions)},
        )

    local_dates = set(local.completions)
    remote_dates = set(remote.completions)
    structured = {
        "remote_exists": True,
        "local_days": len(local_dates),
        "remote_days": len(remote_dates),
        "only_local": sorted(local_dates - remote_dates),
        "only_remote": sorted(remote_dates - local_dates),
        "remote_total_reps": sum(
            views.exercise_totals(
                remote.completions, remote.start_date, service.exercises
            ).values()
        ),
    }
    lines = [
        "Cloud status:",
        f"  Local days:  {structured['local_days']}",
        f"  Remote days: {structured['remote_days']}",
        f"  Only local:  {len(structured['only_local'])}",
        f"  Only remote: {len(structured['only_remote'])}",
        f"  Remote total reps: {structured['remote_total_reps']}",
    ]
    return _text_result("\n".join(lines), structured)


async def _handle_watch(
    service: ProgressService, args: dict[str, Any]
) -> types.CallToolResult:
    if not args.get("enabled", True):
        service.unsubscribe_from_cloud()
        return _text_result("Stopped listening to cloud changes.", {"watching": False})

    if not await service.subscribe_to_cloud():
        return build_error_response(
            "not_configured",
            "Cloud listener could not be started",
            "Check ONEUP_DATABASE_URL and ONEUP_UID, then retry.",
        )
    return _text_result("Listening to cloud changes.", {"watching": True})


# ---------------------------------------------------------------------------
# Leaderboard handlers
# ---------------------------------------------------------------------------


async def _handle_publish(
    service: ProgressService, args: dict[str, Any]
) -> types.CallToolResult:
    result = await service.publish_leaderboard(pseudo=args.get("pseudo"))
    if not result.success:
        return translate_sync_failure(result)
    entry = result.data
    return _text_result(
        f"Published {entry['totalReps']} reps as '{entry['pseudo']}'.",
        {
            "pseudo": entry["pseudo"],
            "total_reps": entry["totalReps"],
            "exercise_reps": entry["exerciseReps"],
        },
    )


def _format_entry(rank: int, entry: LeaderboardEntry) -> str:
    return f"  {rank:>3}. {entry.pseudo}: {entry.total_reps}"


async def _handle_list(
    service: ProgressService, args: dict[str, Any]
) -> types.CallToolResult:
    limit = args.get("limit", 20)
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        return build_error_response(
            "validation_error",
            "limit must be a positive integer",
            "Provide 'limit' as a whole number >= 1.",
        )

    result = await service.load_leaderboard()
    if not result.success:
        return translate_sync_failure(result)

    entries: list[LeaderboardEntry] = result.data[:limit]
    if not entries:
        return _text_result("Leaderboard is empty.", {"entries": []})

    lines = ["Leaderboard:"]
    lines.extend(_format_entry(i, e) for i, e in enumerate(entries, 1))
    return _text_result(
        "\n".join(lines),
        {"entries": [e.model_dump(mode="json") for e in entries]},
    )


async def _handle_remove(
    service: ProgressService, args: dict[str, Any]
) -> types.CallToolResult:
    result = await service.remove_from_leaderboard()
    if not result.success:
        return translate_sync_failure(result)
    return _text_result("Removed from leaderboard.", {"removed": True})


# ToolSpec lists for registry-based dispatch
CLOUD_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=CLOUD_TOOLS[0],
        permissions=frozenset({"CLOUD_SYNC", "PROGRESS_MODIFY"}),
        handler=_handle_sync,
    ),
    ToolSpec(
        tool=CLOUD_TOOLS[1],
        permissions=frozenset({"CLOUD_SYNC"}),
        handler=_handle_save,
    ),
    ToolSpec(
        tool=CLOUD_TOOLS[2],
        permissions=frozenset({"CLOUD_SYNC"}),
        handler=_handle_status,
    ),
    ToolSpec(
        tool=CLOUD_TOOLS[3],
        permissions=frozenset({"CLOUD_SYNC", "PROGRESS_MODIFY"}),
        handler=_handle_watch,
    ),
]

LEADERBOARD_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=LEADERBOARD_TOOLS[0],
        permissions=frozenset({"LEADERBOARD"}),
        handler=_handle_publish,
    ),
    ToolSpec(
        tool=LEADERBOARD_TOOLS[1],
        permissions=frozenset({"LEADERBOARD"}),
        handler=_handle_list,
    ),
    ToolSpec(
        tool=LEADERBOARD_TOOLS[2],
        permissions=frozenset({"LEADERBOARD"}),
        handler=_handle_remove,
    ),
]
