"""MCP Resources for FTP settings and task results."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mcp.server.fastmcp import FastMCP

    from .server import ServerState

SETTINGS_URI = "ftp://settings"
LAST_RESULT_URI = "ftp://last-result"


def register_resources(server: FastMCP, state: ServerState) -> None:
    """Register MCP resources."""

    @server.resource(SETTINGS_URI, mime_type="application/json")
    async def get_ftp_settings() -> str:
        """
        Configured FTP connection settings.
        Includes: host, port, username, workingDirectory, timeout (password redacted)
        """
        return json.dumps(state.settings.to_dict(), indent=2)

    @server.resource(LAST_RESULT_URI, mime_type="application/json")
    async def get_last_result() -> str:
        """
        Result of the most recent task action.
        Includes: action, host, success, processed, skipped, failures
        """
        if state.last_result is None:
            return json.dumps({"action": None, "message": "No task has run yet"}, indent=2)
        return json.dumps(state.last_result.to_dict(), indent=2)
