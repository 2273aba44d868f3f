"""Error response builders for MCP tool handlers.

Structured error responses carry a corrective action so that agents can
recover without human intervention.
"""

import mcp.types as types

from ...service import CLOUD_NOT_CONFIGURED
from ...sync.engine import NOT_SIGNED_IN
from ...sync.models import SyncResult


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (validation_error, not_configured,
            not_signed_in, in_progress, remote_error, server_error)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("not_signed_in", "User not signed in", "Set ONEUP_UID.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


def translate_sync_failure(result: SyncResult) -> types.CallToolResult:
    """Turn a failed ``SyncResult`` into an error response.

    Args:
        result: A result with ``success=False``.

    Returns:
        CallToolResult with isError=True and a corrective action matching
        the failure.
    """
    message = result.error or "unknown error"

    match message:
        case _ if result.in_progress:
            return build_error_response(
                "in_progress",
                message,
                "Another save is running; retry in a moment.",
            )
        case m if m == CLOUD_NOT_CONFIGURED:
            return build_error_response(
                "not_configured",
                message,
                "Set ONEUP_DATABASE_URL and ONEUP_UID (or the 'remote' "
                "config section) and restart the server.",
            )
        case m if m == NOT_SIGNED_IN:
            return build_error_response(
                "not_signed_in",
                message,
                "Configure a user id with ONEUP_UID.",
            )
        case m if "401" in m or "403" in m or "permission" in m.lower():
            return build_error_response(
                "permission_denied",
                message,
                "Refresh ONEUP_AUTH_TOKEN or check the database rules.",
            )
        case _:
            return build_error_response(
                "remote_error",
                message,
                "Check network connectivity and retry later.",
            )
