"""Tests for ToolSpec, ToolRegistry, and load_permissions_file.

Covers:
- ToolSpec creation and immutability
- ToolRegistry filtering (no filter, permission filter, multi-permission specs)
- ToolRegistry call_tool dispatch and error translation
- load_permissions_file parsing, validation, and error cases
- Permissions declared by the shipped tool specs
"""

import asyncio
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock

import mcp.types as types

from oneup.mcp.tools import ALL_SPECS
from oneup.mcp.tools.registry import (
    KNOWN_PERMISSIONS,
    ToolRegistry,
    ToolSpec,
    load_permissions_file,
)


def _make_spec(
    name: str,
    permissions: frozenset[str] | None = None,
    handler=None,
) -> ToolSpec:
    """Helper to create a ToolSpec for testing."""
    if permissions is None:
        permissions = frozenset()
    if handler is None:

        async def handler(service, args):
            return types.CallToolResult(
                content=[
                    types.TextContent(type="text", text=f"ok:{name}")
                ]
            )

    return ToolSpec(
        tool=types.Tool(
            name=name,
            description=f"Test tool {name}",
            inputSchema={
                "type": "object",
                "properties": {},
                "required": [],
            },
        ),
        permissions=permissions,
        handler=handler,
    )


def _write_permissions(text: str) -> str:
    with tempfile.NamedTemporaryFile(
        mode="w", suffix=".permissions", delete=False
    ) as f:
        f.write(text)
        return f.name


class TestToolSpec(unittest.TestCase):
    """Test ToolSpec dataclass."""

    def test_creation(self):
        spec = _make_spec("progress_summary", frozenset({"PROGRESS_VIEW"}))
        self.assertEqual(spec.tool.name, "progress_summary")
        self.assertEqual(spec.permissions, frozenset({"PROGRESS_VIEW"}))

    def test_frozen(self):
        """ToolSpec is immutable (frozen dataclass)."""
        spec = _make_spec("progress_summary")
        with self.assertRaises(AttributeError):
            spec.permissions = frozenset({"NEW"})


class TestToolRegistry(unittest.TestCase):
    """Test ToolRegistry class."""

    def setUp(self):
        self.specs = [
            _make_spec("ping", frozenset()),
            _make_spec("progress_summary", frozenset({"PROGRESS_VIEW"})),
            _make_spec("day_toggle", frozenset({"PROGRESS_MODIFY"})),
            _make_spec("cloud_save", frozenset({"CLOUD_SYNC"})),
            _make_spec(
                "cloud_sync",
                frozenset({"CLOUD_SYNC", "PROGRESS_MODIFY"}),
            ),
            _make_spec("leaderboard_list", frozenset({"LEADERBOARD"})),
        ]

    def test_no_filter_all_tools_registered(self):
        registry = ToolRegistry(self.specs)
        self.assertEqual(registry.tool_count(), 6)

    def test_read_only_filter(self):
        """A PROGRESS_VIEW-only deployment exposes the read tools and ping."""
        registry = ToolRegistry(self.specs, frozenset({"PROGRESS_VIEW"}))
        names = [t.name for t in registry.list_tools()]
        self.assertEqual(names, ["ping", "progress_summary"])

    def test_subset_check(self):
        """Multi-permission spec included only when ALL permissions are granted."""
        registry = ToolRegistry(self.specs, frozenset({"CLOUD_SYNC"}))
        names = [t.name for t in registry.list_tools()]
        self.assertIn("cloud_save", names)
        self.assertNotIn("cloud_sync", names)

        registry2 = ToolRegistry(
            self.specs, frozenset({"CLOUD_SYNC", "PROGRESS_MODIFY"})
        )
        self.assertIn(
            "cloud_sync", [t.name for t in registry2.list_tools()]
        )

    def test_call_tool_dispatches_to_handler(self):
        """call_tool() invokes the spec's handler with (service, args)."""
        calls = []

        async def mock_handler(service, args):
            calls.append((service, args))
            return types.CallToolResult(
                content=[types.TextContent(type="text", text="dispatched")]
            )

        registry = ToolRegistry([_make_spec("t", frozenset(), mock_handler)])
        mock_service = MagicMock()

        result = asyncio.run(
            registry.call_tool("t", {"key": "val"}, mock_service)
        )

        self.assertEqual(calls, [(mock_service, {"key": "val"})])
        self.assertEqual(result.content[0].text, "dispatched")

    def test_call_tool_none_arguments(self):
        calls = []

        async def mock_handler(service, args):
            calls.append(args)
            return types.CallToolResult(content=[])

        registry = ToolRegistry([_make_spec("t", frozenset(), mock_handler)])
        asyncio.run(registry.call_tool("t", None, MagicMock()))
        self.assertEqual(calls, [{}])

    def test_value_error_becomes_validation_error(self):
        async def bad_handler(service, args):
            raise ValueError("Date 'x' must use the YYYY-MM-DD format")

        registry = ToolRegistry([_make_spec("t", frozenset(), bad_handler)])
        result = asyncio.run(registry.call_tool("t", {}, MagicMock()))

        self.assertTrue(result.isError)
        self.assertIn("Error (validation_error)", result.content[0].text)
        self.assertIn("YYYY-MM-DD", result.content[0].text)

    def test_unexpected_error_becomes_server_error(self):
        async def broken_handler(service, args):
            raise OSError("disk full")

        registry = ToolRegistry(
            [_make_spec("t", frozenset(), broken_handler)]
        )
        with self.assertLogs("oneup.mcp.tools.registry", level="ERROR"):
            result = asyncio.run(registry.call_tool("t", {}, MagicMock()))

        self.assertTrue(result.isError)
        self.assertIn("Error (server_error): disk full", result.content[0].text)

    def test_call_tool_unknown_raises(self):
        registry = ToolRegistry(self.specs)
        with self.assertRaises(ValueError) as ctx:
            asyncio.run(registry.call_tool("nonexistent", {}, MagicMock()))
        self.assertIn("Unknown tool", str(ctx.exception))

    def test_call_tool_filtered_out_raises(self):
        registry = ToolRegistry(self.specs, frozenset({"PROGRESS_VIEW"}))
        with self.assertRaises(ValueError) as ctx:
            asyncio.run(registry.call_tool("day_toggle", {}, MagicMock()))
        self.assertIn("Unknown tool", str(ctx.exception))


class TestShippedSpecs(unittest.TestCase):
    """The tool specs exported by oneup.mcp.tools."""

    def test_names_unique(self):
        names = [spec.tool.name for spec in ALL_SPECS]
        self.assertEqual(len(names), len(set(names)))

    def test_permissions_known(self):
        for spec in ALL_SPECS:
            self.assertTrue(spec.permissions)
            self.assertLessEqual(spec.permissions, KNOWN_PERMISSIONS)


class TestLoadPermissionsFile(unittest.TestCase):
    """Test load_permissions_file function."""

    def test_load_valid_file(self):
        """Loads valid permissions file with comments and blanks."""
        path = _write_permissions(
            "# Read-only\nPROGRESS_VIEW\n\n  # indented comment\nLEADERBOARD\nPROGRESS_VIEW\n"
        )
        try:
            self.assertEqual(
                load_permissions_file(path),
                frozenset({"PROGRESS_VIEW", "LEADERBOARD"}),
            )
        finally:
            Path(path).unlink()

    def test_load_file_not_found(self):
        with self.assertRaises(FileNotFoundError):
            load_permissions_file("/nonexistent/path.permissions")

    def test_load_empty_file(self):
        path = _write_permissions("# Only comments\n\n")
        try:
            with self.assertRaises(ValueError) as ctx:
                load_permissions_file(path)
            self.assertIn("No permissions found", str(ctx.exception))
        finally:
            Path(path).unlink()

    def test_load_invalid_permission(self):
        path = _write_permissions("PROGRESS_VIEW\nTICKET_VIEW\n")
        try:
            with self.assertRaises(ValueError) as ctx:
                load_permissions_file(path)
            self.assertIn("Invalid permission 'TICKET_VIEW' at line 2", str(ctx.exception))
        finally:
            Path(path).unlink()


if __name__ == "__main__":
    unittest.main()
