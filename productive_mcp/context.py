"""
`context` actions: one call returning a resource with its related collections.

The primary resource and every related collection are fetched
concurrently. The primary fetch must succeed; a failing related
collection is replaced by {"error": message} and listed under `_errors`,
so the caller still gets everything that did load.
"""

import logging
from typing import Any, Awaitable, Callable

from productive_mcp import formatters
from productive_mcp.fanout import error_message, gather_settled
from productive_mcp.handlers import HandlerContext, resolve_resource_id
from productive_mcp.resources import ResourceDescriptor

logger = logging.getLogger(__name__)

MAX_ITEMS = 20


class Section:
    """A related collection fetched alongside the primary resource."""

    def __init__(self, name: str, endpoint: str, filter_key: str, formatter,
                 include=None, sort=None, extra_filter=None):
        self.name = name
        self.endpoint = endpoint
        self.filter_key = filter_key
        self.formatter = formatter
        self.include = include
        self.sort = sort
        self.extra_filter = extra_filter or {}

    def fetch(self, ctx: HandlerContext, resource_id: str) -> Awaitable[dict]:
        return ctx.client.list_resources(
            self.endpoint,
            page=1,
            per_page=MAX_ITEMS,
            filter={self.filter_key: resource_id, **self.extra_filter},
            include=self.include,
            sort=self.sort,
        )


CONTEXT_SECTIONS: dict[str, list[Section]] = {
    "tasks": [
        Section("comments", "comments", "task_id", formatters.format_comment, include=["creator"]),
        Section("time_entries", "time_entries", "task_id", formatters.format_time_entry, sort="-date"),
        Section("subtasks", "tasks", "parent_task_id", formatters.format_task,
                include=["assignee", "workflow_status"], extra_filter={"status": "1"}),
    ],
    "projects": [
        Section("tasks", "tasks", "project_id", formatters.format_task,
                include=["assignee", "workflow_status"], extra_filter={"status": "1"}),
        Section("services", "services", "project_id", formatters.format_service),
        Section("time_entries", "time_entries", "project_id", formatters.format_time_entry, sort="-date"),
    ],
    "deals": [
        Section("services", "services", "deal_id", formatters.format_service),
        Section("comments", "comments", "deal_id", formatters.format_comment, include=["creator"]),
        Section("time_entries", "time_entries", "deal_id", formatters.format_time_entry, sort="-date"),
    ],
}

PRIMARY_INCLUDES = {
    "tasks": ["project", "project.company", "assignee", "workflow_status"],
    "projects": ["company"],
    "deals": ["company", "deal_status", "responsible"],
}


async def context_action(descriptor: ResourceDescriptor, action: str, args: dict, ctx: HandlerContext) -> dict:
    """
    Fetch a task, project or deal together with its related collections.

    Raises:
        UserInputError: if id is missing
        ProductiveApiError: if the primary resource cannot be fetched
    """
    resource_id = await resolve_resource_id(descriptor, args, action, ctx)
    sections = CONTEXT_SECTIONS[descriptor.name]

    primary, *outcomes = await gather_settled([
        ctx.client.get_resource(descriptor.endpoint, resource_id, include=PRIMARY_INCLUDES.get(descriptor.name)),
        *(section.fetch(ctx, resource_id) for section in sections),
    ])

    ok, response = primary
    if not ok:
        raise response

    options = ctx.format_options(included=response.get("included"), compact=False)
    payload: dict[str, Any] = descriptor.formatter(response.get("data") or {}, options)

    failures = []
    for section, (ok, value) in zip(sections, outcomes):
        if not ok:
            message = error_message(value)
            logger.warning(f"{descriptor.name} context section {section.name} failed: {message}")
            payload[section.name] = {"error": message}
            failures.append(f"{section.name}: {message}")
            continue
        section_options = ctx.format_options(included=value.get("included"), compact=True)
        payload[section.name] = [section.formatter(item, section_options) for item in value.get("data") or []]

    if failures:
        payload["_errors"] = failures
    return ctx.with_resolved(payload)


CONTEXT_ACTIONS: dict[tuple[str, str], Callable] = {
    (name, "context"): context_action for name in CONTEXT_SECTIONS
}
