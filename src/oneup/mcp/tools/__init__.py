"""MCP tool handlers for OneUp operations.

This package contains MCP tool implementations that wrap the
``ProgressService`` with async handlers and structured error responses.
"""

from .cloud import (
    CLOUD_SPECS,
    CLOUD_TOOLS,
    LEADERBOARD_SPECS,
    LEADERBOARD_TOOLS,
)
from .errors import build_error_response, translate_sync_failure
from .progress import PROGRESS_SPECS, PROGRESS_TOOLS
from .registry import ToolRegistry, ToolSpec, load_permissions_file

ALL_SPECS: list[ToolSpec] = PROGRESS_SPECS + CLOUD_SPECS + LEADERBOARD_SPECS

__all__ = [
    "build_error_response",
    "translate_sync_failure",
    # Registry
    "ToolSpec",
    "ToolRegistry",
    "load_permissions_file",
    # Spec lists
    "ALL_SPECS",
    "PROGRESS_SPECS",
    "CLOUD_SPECS",
    "LEADERBOARD_SPECS",
    # Tool lists
    "PROGRESS_TOOLS",
    "CLOUD_TOOLS",
    "LEADERBOARD_TOOLS",
]
