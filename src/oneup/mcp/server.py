"""MCP Server for OneUp progress tracking using stdio transport.

Exposes the challenge progress operations (summary, counters, day toggle,
cloud sync, leaderboard) as MCP tools.

Transport: stdio
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..logger import DEFAULT_LOG_FILE, setup_logging
from ..progress.resolver import STRATEGIES
from ..service import ProgressService
from .lifespan import server_lifespan
from .tools import (
    ALL_SPECS,
    ToolRegistry,
    build_error_response,
    load_permissions_file,
)
from .tools.registry import ToolSpec

logger = logging.getLogger(__name__)

server = Server("oneup-mcp")

# Initialized in main()
_service: ProgressService | None = None
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Ping tool (always available)
# ---------------------------------------------------------------------------


async def _handle_ping(
    service: ProgressService, args: dict
) -> types.CallToolResult:
    """Report server version and sync configuration."""
    cloud = "enabled" if service.cloud_enabled else "disabled"
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text",
                text=f"OneUp MCP server {__version__} ready. "
                f"Cloud sync {cloud}. Today is day {service.day_number()}.",
            )
        ],
        structuredContent={
            "version": __version__,
            "cloud_enabled": service.cloud_enabled,
            "day_number": service.day_number(),
        },
    )


PING_SPEC = ToolSpec(
    tool=types.Tool(
        name="ping",
        description="Check the OneUp MCP server and report whether cloud sync is configured",
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    permissions=frozenset(),
    handler=_handle_ping,
)


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_service() -> ProgressService:
    """Get the global ProgressService instance.

    Raises:
        RuntimeError: If the service is not initialized
    """
    if _service is None:
        raise RuntimeError(
            "ProgressService not initialized. Server lifespan not started."
        )
    return _service


def set_service(service: ProgressService | None) -> None:
    global _service
    _service = service


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry instance.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


def build_registry(
    permissions_file: str | None = None,
) -> ToolRegistry:
    """Build the registry of all tools, filtered by an optional permissions file."""
    allowed_permissions = None
    if permissions_file:
        allowed_permissions = load_permissions_file(permissions_file)
        logger.info(
            "Loaded %d permissions from %s",
            len(allowed_permissions),
            permissions_file,
        )

    all_specs = [PING_SPEC] + ALL_SPECS
    registry = ToolRegistry(all_specs, allowed_permissions)
    logger.info(
        "Registered %d tools (of %d total)",
        registry.tool_count(),
        len(all_specs),
    )
    if permissions_file:
        print(
            f"Permissions file: {permissions_file} "
            f"({registry.tool_count()} of {len(all_specs)} tools enabled)",
            file=sys.stderr,
        )
    return registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """List all registered (and permitted) tools."""
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution via ToolRegistry dispatch."""
    service = get_service()
    try:
        return await get_registry().call_tool(name, arguments, service)
    except ValueError as e:
        # Unknown or filtered-out tool name
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Logging is configured for MCP mode (file only, never stdout) before
    the stdio transport starts.

    Args:
        config_overrides: Optional dict with CLI values (database_url,
            uid, data_file, auto_sync, conflict_strategy, debug,
            log_file, permissions_file)
    """
    overrides = config_overrides or {}

    setup_logging(
        mode="mcp",
        debug=overrides.get("debug", False),
        log_file=overrides.get("log_file"),
    )

    try:
        registry = build_registry(overrides.get("permissions_file"))
    except (OSError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        raise RuntimeError(str(e)) from e
    set_registry(registry)

    # set_service() is called here rather than in the lifespan so that
    # running this file as __main__ updates the same module globals.
    async with server_lifespan(config_overrides=config_overrides) as ctx:
        set_service(ctx["service"])
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="oneup-mcp",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(read_stream, write_stream, init_options)
        finally:
            set_service(None)
            set_registry(None)


def parse_args(argv: list[str] | None = None) -> dict:
    """Parse CLI arguments into a config overrides dict."""
    parser = argparse.ArgumentParser(
        description="OneUp MCP Server - progress tracking and cloud sync for the OneUp challenge",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Offline-only, progress in ~/.oneup/storage.json
  oneup-mcp

  # Sync with a Firebase Realtime Database
  oneup-mcp --database-url https://oneup-default-rtdb.firebaseio.com --uid abc123

  # Push every change and listen to other devices
  oneup-mcp --auto-sync

  # Read-only tools
  oneup-mcp --permissions-file /etc/oneup/read-only.permissions

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr.
        """,
    )

    parser.add_argument(
        "--database-url",
        help="Firebase Realtime Database URL (overrides ONEUP_DATABASE_URL and config files)",
    )
    parser.add_argument(
        "--uid",
        help="User id the progress is stored under (overrides ONEUP_UID)",
    )
    parser.add_argument(
        "--data-file",
        help="Local storage file (overrides ONEUP_DATA_FILE)",
    )
    parser.add_argument(
        "--auto-sync",
        action="store_true",
        help="Save to the cloud after every change and listen to remote changes",
    )
    parser.add_argument(
        "--conflict-strategy",
        choices=STRATEGIES,
        help="How sync resolves differences (default: merge)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-file",
        default=DEFAULT_LOG_FILE,
        help=f"Log file path (default: {DEFAULT_LOG_FILE})",
    )
    parser.add_argument(
        "--permissions-file",
        help="Path to permissions file restricting available tools. "
        "Format: one permission per line (e.g., PROGRESS_VIEW), # for comments. "
        "If not specified, all tools are available.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"oneup-mcp version {__version__}",
    )

    args = parser.parse_args(argv)

    config_overrides: dict = {}
    if args.database_url:
        config_overrides["database_url"] = args.database_url
    if args.uid:
        config_overrides["uid"] = args.uid
    if args.data_file:
        config_overrides["data_file"] = args.data_file
    if args.auto_sync:
        config_overrides["auto_sync"] = True
    if args.conflict_strategy:
        config_overrides["conflict_strategy"] = args.conflict_strategy
    if args.debug:
        config_overrides["debug"] = True
    if args.log_file:
        config_overrides["log_file"] = args.log_file
    if args.permissions_file:
        config_overrides["permissions_file"] = args.permissions_file
    return config_overrides


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    config_overrides = parse_args()

    if config_overrides:
        print(
            f"Config overrides from CLI: {', '.join(config_overrides)}",
            file=sys.stderr,
        )

    try:
        asyncio.run(main(config_overrides=config_overrides or None))
    except RuntimeError:
        # Error already printed to stderr
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
