"""Tests for the local progress MCP tools.

Handlers are dispatched through a ToolRegistry so that validation errors
raised by the service surface as structured error responses, as they do
in the server.
"""

import mcp.types as types
import pytest

from oneup.mcp.tools.progress import PROGRESS_SPECS, PROGRESS_TOOLS
from oneup.mcp.tools.registry import ToolRegistry


def _text(result: types.CallToolResult) -> str:
    content = result.content[0]
    assert isinstance(content, types.TextContent)
    return content.text


@pytest.fixture
def call(service):
    registry = ToolRegistry(PROGRESS_SPECS)

    async def _call(name, args=None):
        return await registry.call_tool(name, args, service)

    return _call


class TestProgressToolDefinitions:
    """Tool names and schemas."""

    def test_tool_names(self):
        assert [t.name for t in PROGRESS_TOOLS] == [
            "progress_summary",
            "exercise_list",
            "challenge_start",
            "day_toggle",
            "exercise_set_count",
        ]

    def test_read_tools_annotated_read_only(self):
        by_name = {t.name: t for t in PROGRESS_TOOLS}
        assert by_name["progress_summary"].annotations.readOnlyHint is True
        assert by_name["day_toggle"].annotations.readOnlyHint is False

    def test_required_parameters(self):
        by_name = {t.name: t for t in PROGRESS_TOOLS}
        assert by_name["challenge_start"].inputSchema["required"] == ["start_date"]
        assert by_name["exercise_set_count"].inputSchema["required"] == [
            "exercise_id",
            "count",
        ]


class TestProgressSummary:
    async def test_not_started(self, call):
        result = await call("progress_summary")
        assert not result.isError
        assert _text(result).startswith("Challenge not started yet.")
        assert result.structuredContent["day_number"] == 15

    async def test_after_start(self, call):
        await call("challenge_start", {"start_date": "2025-01-13"})
        result = await call("progress_summary", {"date": "2025-01-14"})
        assert _text(result).startswith("Day 14 (2025-01-14): done")
        assert result.structuredContent["streak"] == 2

    async def test_invalid_date(self, call):
        result = await call("progress_summary", {"date": "14-01-2025"})
        assert result.isError
        assert "Error (validation_error)" in _text(result)


class TestExerciseList:
    async def test_goals_for_today(self, call):
        result = await call("exercise_list")
        rows = {r["id"]: r for r in result.structuredContent["exercises"]}
        assert result.structuredContent["date"] == "2025-01-15"
        assert rows["pushups"]["goal"] == 15
        assert rows["pullups"]["goal"] == 8
        assert rows["squats"]["total_reps"] == 0
        assert "pushups (Pompes, x1): goal 15, total 0" in _text(result)

    async def test_goals_for_given_date(self, call):
        result = await call("exercise_list", {"date": "2025-01-10"})
        rows = {r["id"]: r for r in result.structuredContent["exercises"]}
        assert rows["abs"]["goal"] == 15


class TestChallengeStart:
    async def test_start(self, call, service):
        result = await call("challenge_start", {"start_date": "2025-01-13"})
        assert result.structuredContent == {
            "start_date": "2025-01-01",
            "user_start_date": "2025-01-13",
            "day_number": 15,
        }
        assert service.is_day_done("2025-01-14")

    async def test_missing_start_date(self, call):
        result = await call("challenge_start", {})
        assert result.isError
        assert "start_date is required" in _text(result)

    async def test_malformed_start_date(self, call):
        result = await call("challenge_start", {"start_date": "13/01/2025"})
        assert result.isError
        assert "validation_error" in _text(result)


class TestDayToggle:
    async def test_toggle_today(self, call):
        result = await call("day_toggle")
        assert _text(result) == "Day 2025-01-15 marked done."
        assert result.structuredContent == {
            "date": "2025-01-15",
            "done": True,
            "streak": 1,
        }

        result = await call("day_toggle", {"date": "2025-01-15"})
        assert result.structuredContent["done"] is False

    async def test_future_day_rejected(self, call, service):
        result = await call("day_toggle", {"date": "2025-12-31"})
        assert result.isError
        assert "Error (validation_error)" in _text(result)
        assert "2025-12-31" not in service.state.completions

    async def test_day_before_start_rejected(self, call):
        await call("challenge_start", {"start_date": "2025-01-13"})
        result = await call(
            "exercise_set_count",
            {"exercise_id": "pushups", "count": 5, "date": "2025-01-12"},
        )
        assert result.isError
        assert "before the challenge start" in _text(result)


class TestExerciseSetCount:
    async def test_partial(self, call):
        result = await call(
            "exercise_set_count", {"exercise_id": "pushups", "count": 4}
        )
        assert _text(result) == "pushups on 2025-01-15: 4/15 (in progress)."
        assert result.structuredContent["is_completed"] is False

    async def test_reaching_goal(self, call):
        result = await call(
            "exercise_set_count", {"exercise_id": "pushups", "count": 15}
        )
        assert result.structuredContent["is_completed"] is True
        assert result.structuredContent["total_reps"] == 15

    async def test_goal_override(self, call):
        result = await call(
            "exercise_set_count",
            {"exercise_id": "squats", "count": 10, "goal": 4, "date": "2025-01-14"},
        )
        assert result.structuredContent["count"] == 4
        assert result.structuredContent["goal"] == 4
        assert result.structuredContent["is_completed"] is True

    @pytest.mark.parametrize(
        "args, message",
        [
            ({"count": 3}, "exercise_id is required"),
            ({"exercise_id": "pushups", "count": "3"}, "count must be an integer"),
            ({"exercise_id": "pushups", "count": True}, "count must be an integer"),
            ({"exercise_id": "burpees", "count": 3}, "burpees"),
        ],
    )
    async def test_validation(self, call, args, message):
        result = await call("exercise_set_count", args)
        assert result.isError
        assert message in _text(result)
