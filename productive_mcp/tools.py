"""
MCP tool definition and server factory shared by the stdio and HTTP servers.
"""

import logging
from typing import Any, Callable, Optional

from mcp.server import Server
from mcp.types import TextContent, Tool

from productive_mcp.dispatcher import TOOL_NAME, Dispatcher
from productive_mcp.errors import ToolError
from productive_mcp.handlers import result_text
from productive_mcp.resources import VALID_RESOURCES
from productive_mcp.schemas import Credentials

logger = logging.getLogger(__name__)

SERVER_NAME = "productive-mcp"

TOOLS = [
    Tool(
        name=TOOL_NAME,
        description=(
            "Productive.io API. Pick a resource and an action; "
            'use action="help" (optionally with a resource) for documentation. '
            "ID fields accept numeric IDs, emails, project numbers (PRJ-123), deal numbers (D-123) or names."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "resource": {"type": "string", "enum": VALID_RESOURCES + ["budgets"], "description": "Resource type"},
                "action": {
                    "type": "string",
                    "description": (
                        "list, get, create, update, delete, resolve, context, help, "
                        "me (people), start/stop (timers), run (batch, search), "
                        "my_day/project_health/team_pulse (summaries)"
                    ),
                },
                "id": {"type": "string", "description": "Resource ID (get, update, delete, context)"},
                "filter": {"type": "object", "description": "API filters, e.g. {\"project_id\": \"123\"}"},
                "include": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Related resources to include, merged with the defaults",
                },
                "query": {"type": "string", "description": "Free-text search (list, resolve, search)"},
                "page": {"type": "integer", "description": "Page number"},
                "per_page": {"type": "integer", "description": "Items per page (default 20)"},
                "compact": {"type": "boolean", "description": "Compact output (default true except for get)"},
                "no_hints": {"type": "boolean", "description": "Suppress _hints and _suggestions"},
                "include_relationship_ids": {"type": "boolean", "description": "Add raw relationship IDs (project_id, assignee_id, ...) to records"},
                "include_timestamps": {"type": "boolean", "description": "Add created_at and updated_at to records"},
                "type": {"type": "string", "description": "Resolvable type for action=resolve"},
                "resources": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Resources to search (resource=search)",
                },
                "operations": {
                    "type": "array",
                    "items": {"type": "object"},
                    "description": "Operations to run (resource=batch, max 10)",
                },
                "report_type": {"type": "string", "description": "Report type (resource=reports)"},
                "from": {"type": "string", "description": "Start date YYYY-MM-DD (reports)"},
                "to": {"type": "string", "description": "End date YYYY-MM-DD (reports)"},
                "title": {"type": "string"},
                "name": {"type": "string"},
                "description": {"type": "string"},
                "body": {"type": "string"},
                "note": {"type": "string"},
                "date": {"type": "string"},
                "due_date": {"type": "string"},
                "time": {"type": "integer", "description": "Minutes"},
                "person_id": {"type": "string"},
                "project_id": {"type": "string"},
                "service_id": {"type": "string"},
                "task_id": {"type": "string"},
                "task_list_id": {"type": "string"},
                "company_id": {"type": "string"},
                "deal_id": {"type": "string"},
                "assignee_id": {"type": "string"},
            },
            "required": ["resource", "action"],
        },
    )
]


def create_server(
    credentials_provider: Callable[[], Optional[Credentials]],
    dispatcher: Optional[Dispatcher] = None,
) -> Server:
    """
    Build an MCP server exposing the `productive` tool.

    Args:
        credentials_provider: Returns the credentials for the current connection
        dispatcher: Dispatcher to use; a default one is created if omitted
    """
    dispatcher = dispatcher or Dispatcher()
    server = Server(SERVER_NAME)

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """List available tools."""
        return TOOLS

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        """Handle tool calls."""
        result = await dispatcher.execute(name, arguments, credentials_provider())
        text = result_text(result)
        if result.get("isError"):
            raise ToolError(text)
        return [TextContent(type="text", text=text)]

    return server
