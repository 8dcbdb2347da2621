"""
Command-line interface: `productive <resource> <action> [options]`.

Runs the same dispatcher as the MCP servers, so every resource, action
and error message behaves identically on the command line.
"""

import argparse
import asyncio
import json
import os
import sys
from typing import Any, Optional

from productive_mcp import __version__
from productive_mcp.config import configure_logging
from productive_mcp.dispatcher import TOOL_NAME, Dispatcher
from productive_mcp.handlers import result_text
from productive_mcp.schemas import Credentials

ACTION_ALIASES = {
    "add": "create",
    "ls": "list",
    "show": "get",
    "rm": "delete",
}

INTEGER_FIELDS = {"time", "page", "per_page"}
BOOLEAN_VALUES = {"true": True, "false": False}

EPILOG = """
examples:
  productive tasks list --filter project_id=PRJ-123
  productive tasks show --id 12345
  productive time add --field person_id=me@example.com --field service_id=42 --field time=90 --field date=2024-01-15
  productive search run --query acme --resources projects,companies
  productive batch run --operations '[{"resource": "projects", "action": "list"}]'
  productive summaries my_day
  productive tasks help

credentials:
  PRODUCTIVE_API_TOKEN, PRODUCTIVE_ORG_ID and PRODUCTIVE_USER_ID, or --token/--org-id/--user-id
"""


def parse_pairs(pairs: Optional[list[str]], option: str) -> dict[str, Any]:
    """Parse repeated key=value options."""
    result: dict[str, Any] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"{option} expects key=value, got {pair!r}")
        key = key.strip()
        if key in INTEGER_FIELDS and value.strip().lstrip("-").isdigit():
            result[key] = int(value)
        elif value.lower() in BOOLEAN_VALUES:
            result[key] = BOOLEAN_VALUES[value.lower()]
        else:
            result[key] = value
    return result


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="productive",
        description="Productive.io from the command line.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=EPILOG,
    )
    parser.add_argument("resource", nargs="?", help="Resource (tasks, projects, time, ...). Omit for an overview.")
    parser.add_argument("action", nargs="?", default="list", help="Action (list, get, create, ...). Defaults to list.")
    parser.add_argument("--id", help="Resource ID, project number (PRJ-123) or email")
    parser.add_argument("--filter", action="append", metavar="KEY=VALUE", help="API filter, repeatable")
    parser.add_argument("--include", help="Comma-separated related resources to include")
    parser.add_argument("--query", help="Free-text search")
    parser.add_argument("--page", type=int, help="Page number")
    parser.add_argument("--per-page", type=int, help="Items per page")
    parser.add_argument("--field", action="append", metavar="KEY=VALUE", help="Field for create/update, repeatable")
    parser.add_argument("--operations", help="JSON array of operations for batch run")
    parser.add_argument("--resources", help="Comma-separated resources for search run")
    parser.add_argument("--format", choices=["json", "human"], default="json", help="Output format")
    parser.add_argument("--compact", dest="compact", action="store_true", default=None, help="Compact output")
    parser.add_argument("--full", dest="compact", action="store_false", help="Full output")
    parser.add_argument("--no-hints", action="store_true", help="Suppress _hints and _suggestions")
    parser.add_argument("--relationship-ids", action="store_true", help="Add raw relationship IDs to records")
    parser.add_argument("--timestamps", action="store_true", help="Add created_at and updated_at to records")
    parser.add_argument("--token", default=os.getenv("PRODUCTIVE_API_TOKEN"), help="API token")
    parser.add_argument("--org-id", default=os.getenv("PRODUCTIVE_ORG_ID"), help="Organization ID")
    parser.add_argument("--user-id", default=os.getenv("PRODUCTIVE_USER_ID"), help="Your person ID")
    parser.add_argument("--log-level", default=None, help="Log level (default PRODUCTIVE_LOG_LEVEL or WARNING)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def build_tool_args(options: argparse.Namespace) -> dict[str, Any]:
    """Translate parsed options into `productive` tool arguments."""
    if not options.resource:
        return {"action": "help"}

    args: dict[str, Any] = {
        "resource": options.resource,
        "action": ACTION_ALIASES.get(options.action, options.action),
    }
    args.update(parse_pairs(options.field, "--field"))
    if options.id:
        args["id"] = options.id
    if options.filter:
        args["filter"] = parse_pairs(options.filter, "--filter")
    if options.include:
        args["include"] = [value.strip() for value in options.include.split(",") if value.strip()]
    if options.query:
        args["query"] = options.query
    if options.page:
        args["page"] = options.page
    if options.per_page:
        args["per_page"] = options.per_page
    if options.compact is not None:
        args["compact"] = options.compact
    if options.no_hints:
        args["no_hints"] = True
    if options.relationship_ids:
        args["include_relationship_ids"] = True
    if options.timestamps:
        args["include_timestamps"] = True
    if options.resources:
        args["resources"] = [value.strip() for value in options.resources.split(",") if value.strip()]
    if options.operations:
        try:
            args["operations"] = json.loads(options.operations)
        except ValueError as e:
            raise ValueError(f"--operations must be a JSON array: {e}") from e
    return args


def build_credentials(options: argparse.Namespace) -> Optional[Credentials]:
    if not options.token or not options.org_id:
        return None
    return Credentials(api_token=options.token, organization_id=options.org_id, user_id=options.user_id or None)


def render_human(data: Any, indent: int = 0) -> str:
    """Plain key: value rendering of a JSON result."""
    pad = "  " * indent
    lines = []
    if isinstance(data, dict):
        for key, value in data.items():
            if isinstance(value, (dict, list)) and value:
                lines.append(f"{pad}{key}:")
                lines.append(render_human(value, indent + 1))
            else:
                lines.append(f"{pad}{key}: {'' if value is None else value}")
    elif isinstance(data, list):
        for item in data:
            if isinstance(item, (dict, list)):
                lines.append(f"{pad}-")
                lines.append(render_human(item, indent + 1))
            else:
                lines.append(f"{pad}- {item}")
    else:
        lines.append(f"{pad}{data}")
    return "\n".join(lines)


def format_output(text: str, output_format: str) -> str:
    if output_format != "human":
        return text
    try:
        return render_human(json.loads(text))
    except ValueError:
        return text


def main(argv: Optional[list[str]] = None, dispatcher: Optional[Dispatcher] = None) -> int:
    parser = build_parser()
    options = parser.parse_args(argv)
    configure_logging(options.log_level)

    try:
        tool_args = build_tool_args(options)
    except ValueError as e:
        parser.error(str(e))

    dispatcher = dispatcher or Dispatcher()
    result = asyncio.run(dispatcher.execute(TOOL_NAME, tool_args, build_credentials(options)))
    text = result_text(result)

    if result.get("isError"):
        print(text, file=sys.stderr)
        return 1
    print(format_output(text, options.format))
    return 0


if __name__ == "__main__":
    sys.exit(main())
