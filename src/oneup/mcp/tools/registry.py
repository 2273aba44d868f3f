"""ToolSpec and ToolRegistry for permission-based tool filtering.

Operators can restrict which OneUp tools are exposed to agents, for
example a read-only deployment that only grants ``PROGRESS_VIEW``.

Key concepts:
- ToolSpec: Immutable dataclass linking a Tool definition, required permissions,
  and an async handler with standardized signature (service, args) -> CallToolResult.
- ToolRegistry: Filters specs by allowed permissions at construction time,
  then provides list_tools() and call_tool() dispatch with error translation.
- load_permissions_file: Reads a simple text file of permission names.

Permissions:
- PROGRESS_VIEW: read progress, goals and summaries.
- PROGRESS_MODIFY: start the challenge, toggle days, set counters.
- CLOUD_SYNC: save, load and sync with the cloud replica.
- LEADERBOARD: publish, list and remove leaderboard entries.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

import mcp.types as types

from ...service import ProgressService

logger = logging.getLogger(__name__)

KNOWN_PERMISSIONS = frozenset(
    {"PROGRESS_VIEW", "PROGRESS_MODIFY", "CLOUD_SYNC", "LEADERBOARD"}
)


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Immutable specification for a single MCP tool.

    Attributes:
        tool: The MCP Tool definition (name, description, inputSchema).
        permissions: Permissions required to use this tool.
            Empty frozenset means the tool is always available.
        handler: Async handler with signature (service, args) -> CallToolResult.
    """

    tool: types.Tool
    permissions: frozenset[str]
    handler: Callable[[ProgressService, dict], Awaitable[types.CallToolResult]]


class ToolRegistry:
    """Registry of ToolSpecs with optional permission-based filtering.

    If allowed_permissions is None, all specs are included.
    Otherwise, a spec is included only if:
    - its permissions set is empty (always available), or
    - its permissions are a subset of allowed_permissions.
    """

    def __init__(
        self,
        specs: list[ToolSpec],
        allowed_permissions: frozenset[str] | None = None,
    ):
        self._specs: dict[str, ToolSpec] = {}
        for spec in specs:
            if (
                allowed_permissions is None
                or not spec.permissions
                or spec.permissions <= allowed_permissions
            ):
                self._specs[spec.tool.name] = spec

    def list_tools(self) -> list[types.Tool]:
        """Return list of types.Tool for all registered (permitted) specs."""
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        service: ProgressService,
    ) -> types.CallToolResult:
        """Dispatch tool call to registered handler.

        Validation errors and unexpected exceptions are translated into
        structured CallToolResult responses with corrective actions.

        Raises:
            ValueError: If tool name is not registered (unknown or filtered out).
        """
        from .errors import build_error_response

        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")
        args = arguments or {}
        try:
            return await spec.handler(service, args)
        except ValueError as e:
            return build_error_response(
                "validation_error",
                str(e),
                "Check parameter values and retry.",
            )
        except Exception as e:
            logger.exception("Unexpected error in tool %s", name)
            return build_error_response(
                "server_error",
                str(e),
                "Check the server log or retry later.",
            )


def load_permissions_file(path: str | Path) -> frozenset[str]:
    """Load permissions from a text file.

    Format: one permission per line, ``#`` for comments, blank lines ignored.

    Example file::

        # Read-only permissions
        PROGRESS_VIEW

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file contains unknown permissions or is empty.
    """
    path = Path(path)
    permissions: set[str] = set()
    for line_num, line in enumerate(path.read_text().splitlines(), 1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if stripped not in KNOWN_PERMISSIONS:
            raise ValueError(
                f"Invalid permission '{stripped}' at line {line_num} in {path}. "
                f"Expected one of: {', '.join(sorted(KNOWN_PERMISSIONS))}."
            )
        permissions.add(stripped)
    if not permissions:
        raise ValueError(
            f"No permissions found in {path}. File must contain at least one permission."
        )
    return frozenset(permissions)
