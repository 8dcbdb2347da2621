"""
Generic resource handler and tool result helpers.

handle_resource() runs one (resource, action) pair described by a
ResourceDescriptor: validation, identifier resolution, the REST call and
formatting. Actions that do not fit the list/get/create/update/delete
pattern are looked up in a custom action table keyed by (resource, action);
CUSTOM_ACTIONS holds the built-in ones.
"""

import json
import logging
from typing import Any, Awaitable, Callable, Optional

from productive_mcp import errors
from productive_mcp.errors import UserInputError
from productive_mcp.formatters import FormatOptions, format_list_response
from productive_mcp.includes import merge_includes
from productive_mcp.resolver import IdentifierResolver, is_numeric_id
from productive_mcp.resources import ResourceDescriptor
from productive_mcp.schemas import Credentials
from productive_mcp.suggestions import task_get_suggestions, task_list_suggestions, time_list_suggestions

logger = logging.getLogger(__name__)


# ============== Tool results ==============


def json_result(data: Any) -> dict:
    return {"content": [{"type": "text", "text": json.dumps(data, indent=2, default=str)}]}


def error_result(message: str) -> dict:
    return {"content": [{"type": "text", "text": message}], "isError": True}


def input_error_result(error: UserInputError) -> dict:
    return error_result(error.to_formatted_message())


def result_text(result: dict) -> str:
    content = result.get("content") or [{}]
    return content[0].get("text", "")


# ============== Context ==============


def to_string_filter(filter: Optional[dict]) -> dict[str, str]:
    """Normalize filter values to the strings the API expects."""
    result: dict[str, str] = {}
    for key, value in (filter or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            result[key] = "true" if value else "false"
        elif isinstance(value, (list, tuple)):
            result[key] = ",".join(str(v) for v in value)
        else:
            result[key] = str(value)
    return result


class HandlerContext:
    """Per-invocation state shared by the handlers of one tool call."""

    def __init__(
        self,
        client,
        credentials: Optional[Credentials] = None,
        compact: bool = True,
        filter: Optional[dict] = None,
        page: Optional[int] = None,
        per_page: int = 20,
        include: Optional[list[str]] = None,
        include_hints: bool = False,
        no_hints: bool = False,
        include_relationship_ids: bool = False,
        include_timestamps: bool = False,
    ):
        self.client = client
        self.credentials = credentials
        self.compact = compact
        self.filter = dict(filter or {})
        self.page = page
        self.per_page = per_page
        self.include = include
        self.include_hints = include_hints
        self.include_relationship_ids = include_relationship_ids
        self.include_timestamps = include_timestamps
        self.no_hints = no_hints
        self.resolver = IdentifierResolver(client)

    def format_options(self, included: Optional[list[dict]] = None, compact: Optional[bool] = None) -> FormatOptions:
        return FormatOptions(
            compact=self.compact if compact is None else compact,
            included=included or [],
            include_relationship_ids=self.include_relationship_ids,
            include_timestamps=self.include_timestamps,
        )

    def with_resolved(self, payload: dict) -> dict:
        if self.resolver.resolved:
            payload["_resolved"] = {
                field: info.model_dump() for field, info in self.resolver.resolved.items()
            }
        return payload


Handler = Callable[[ResourceDescriptor, str, dict, HandlerContext], Awaitable[dict]]


# ============== Generic actions ==============


async def resolve_resource_id(descriptor: ResourceDescriptor, args: dict, action: str, ctx: HandlerContext) -> str:
    resource_id = args.get("id")
    if resource_id is None or str(resource_id).strip() == "":
        raise errors.missing_id(action)
    resource_id = str(resource_id).strip()
    if descriptor.resolve_type and not is_numeric_id(resource_id):
        return await ctx.resolver.resolve_value(resource_id, descriptor.resolve_type, field="id")
    return resource_id


def _attach_hints(descriptor: ResourceDescriptor, payload: dict, data: dict, resource_id: str) -> dict:
    if descriptor.hints:
        payload["_hints"] = descriptor.hints(data, resource_id)
    return payload


async def list_action(descriptor: ResourceDescriptor, action: str, args: dict, ctx: HandlerContext) -> dict:
    filter = dict(ctx.filter)
    for key in descriptor.filter_args:
        if args.get(key) not in (None, "") and key not in filter:
            filter[key] = str(args[key])
    for key, mapping in descriptor.filter_value_maps.items():
        if key in filter:
            filter[key] = mapping.get(str(filter[key]).lower(), filter[key])

    filter = await ctx.resolver.resolve_filter(filter)
    include = merge_includes(descriptor.default_includes_for("list"), ctx.include)

    response = await ctx.client.list_resources(
        descriptor.endpoint,
        page=ctx.page,
        per_page=ctx.per_page,
        filter=filter,
        include=include,
        sort=args.get("sort") or descriptor.list_sort,
    )
    items = response.get("data") or []
    options = ctx.format_options(included=response.get("included"))
    payload = format_list_response(items, descriptor.formatter, response.get("meta"), options)

    if not ctx.no_hints:
        if descriptor.name == "tasks":
            suggestions = task_list_suggestions(items)
        elif descriptor.name == "time":
            suggestions = time_list_suggestions(items, filter)
        else:
            suggestions = []
        if suggestions:
            payload["_suggestions"] = suggestions
    return ctx.with_resolved(payload)


async def get_action(descriptor: ResourceDescriptor, action: str, args: dict, ctx: HandlerContext) -> dict:
    resource_id = await resolve_resource_id(descriptor, args, action, ctx)
    include = merge_includes(descriptor.default_includes_for("get"), ctx.include)
    response = await ctx.client.get_resource(descriptor.endpoint, resource_id, include=include)
    data = response.get("data") or {}
    included = response.get("included") or []
    payload = descriptor.formatter(data, ctx.format_options(included=included))

    if ctx.include_hints:
        _attach_hints(descriptor, payload, data, resource_id)
        if descriptor.name == "tasks":
            suggestions = task_get_suggestions(data, included)
            if suggestions:
                payload["_suggestions"] = suggestions
    return ctx.with_resolved(payload)


def _relationships(mapping: dict[str, tuple[str, str]], args: dict) -> dict:
    return {
        rel_name: (rel_type, str(args[field]))
        for field, (rel_name, rel_type) in mapping.items()
        if args.get(field) not in (None, "")
    }


async def create_action(descriptor: ResourceDescriptor, action: str, args: dict, ctx: HandlerContext) -> dict:
    missing = [field for field in descriptor.create_required if args.get(field) in (None, "")]
    if missing:
        raise errors.missing_required_fields(descriptor.display_name, missing)
    if descriptor.create_validator:
        descriptor.create_validator(args)

    args = await ctx.resolver.resolve_fields(args, descriptor.resolvable_fields)
    attributes = {field: args.get(field) for field in descriptor.create_attributes}
    response = await ctx.client.create_resource(
        descriptor.json_type,
        descriptor.endpoint,
        attributes=attributes,
        relationships=_relationships(descriptor.create_relationships, args),
    )
    data = response.get("data") or {}
    payload = {"success": True, **descriptor.formatter(data, ctx.format_options(included=response.get("included")))}
    if not ctx.no_hints and data.get("id"):
        _attach_hints(descriptor, payload, data, str(data["id"]))
    logger.info(f"Created {descriptor.display_name} {data.get('id')}")
    return ctx.with_resolved(payload)


async def update_action(descriptor: ResourceDescriptor, action: str, args: dict, ctx: HandlerContext) -> dict:
    resource_id = await resolve_resource_id(descriptor, args, action, ctx)
    provided = [field for field in descriptor.update_fields if args.get(field) is not None]
    if not provided:
        raise errors.no_update_fields(descriptor.display_name, descriptor.update_fields)

    args = await ctx.resolver.resolve_fields(args, {
        field: kind for field, kind in descriptor.resolvable_fields.items() if field in provided
    })
    attributes = {field: args.get(field) for field in descriptor.update_attributes if field in provided}
    response = await ctx.client.update_resource(
        descriptor.json_type,
        descriptor.endpoint,
        resource_id,
        attributes=attributes,
        relationships=_relationships(descriptor.update_relationships, args),
    )
    data = response.get("data") or {}
    payload = {"success": True, **descriptor.formatter(data, ctx.format_options(included=response.get("included")))}
    return ctx.with_resolved(payload)


async def delete_action(descriptor: ResourceDescriptor, action: str, args: dict, ctx: HandlerContext) -> dict:
    resource_id = await resolve_resource_id(descriptor, args, action, ctx)
    await ctx.client.delete_resource(descriptor.endpoint, resource_id)
    logger.info(f"Deleted {descriptor.display_name} {resource_id}")
    return ctx.with_resolved({"success": True, "deleted": resource_id})


async def resolve_action(descriptor: ResourceDescriptor, action: str, args: dict, ctx: HandlerContext) -> dict:
    query = args.get("query") or ctx.filter.get("query")
    return await ctx.resolver.find_candidates(
        query,
        args.get("type") or descriptor.resolve_type,
        project_id=args.get("project_id"),
    )


GENERIC_ACTIONS: dict[str, Handler] = {
    "list": list_action,
    "get": get_action,
    "create": create_action,
    "update": update_action,
    "delete": delete_action,
    "resolve": resolve_action,
}


# ============== Custom actions ==============


async def people_me(descriptor: ResourceDescriptor, action: str, args: dict, ctx: HandlerContext) -> dict:
    user_id = ctx.credentials.user_id if ctx.credentials else None
    if not user_id:
        raise errors.no_user_id_configured()
    return await get_action(descriptor, "get", {**args, "id": user_id}, ctx)


async def timer_start(descriptor: ResourceDescriptor, action: str, args: dict, ctx: HandlerContext) -> dict:
    if not args.get("service_id") and not args.get("time_entry_id"):
        raise errors.missing_service_for_timer()
    args = await ctx.resolver.resolve_fields(args, {"service_id": "service"} if args.get("service_id") else {})
    response = await ctx.client.create_resource(
        "timers",
        descriptor.endpoint,
        relationships=_relationships({
            "service_id": ("service", "services"),
            "time_entry_id": ("time_entry", "time_entries"),
        }, args),
    )
    payload = {"success": True, **descriptor.formatter(response.get("data") or {}, ctx.format_options())}
    return ctx.with_resolved(payload)


async def member_action(descriptor: ResourceDescriptor, action: str, args: dict, ctx: HandlerContext) -> dict:
    """PATCH /<endpoint>/<id>/<action>, used for timers stop and discussions resolve/reopen."""
    resource_id = await resolve_resource_id(descriptor, args, action, ctx)
    response = await ctx.client.member_action(descriptor.endpoint, resource_id, action)
    return {"success": True, **descriptor.formatter(response.get("data") or {"id": resource_id}, ctx.format_options())}


CUSTOM_ACTIONS: dict[tuple[str, str], Handler] = {
    ("people", "me"): people_me,
    ("timers", "start"): timer_start,
    ("timers", "stop"): member_action,
    ("discussions", "resolve"): member_action,
    ("discussions", "reopen"): member_action,
}


async def handle_resource(
    descriptor: ResourceDescriptor,
    action: str,
    args: dict,
    ctx: HandlerContext,
    custom_actions: Optional[dict[tuple[str, str], Handler]] = None,
) -> dict:
    """
    Run one action on a declaratively described resource.

    Custom actions take precedence over the generic ones, so a resource can
    redefine a verb (discussions use `resolve` to mark a thread resolved).

    Returns:
        Tool result envelope

    Raises:
        UserInputError: on invalid actions or arguments
    """
    if action not in descriptor.actions:
        raise errors.invalid_action(action, descriptor.name, descriptor.actions)

    if custom_actions is None:
        custom_actions = CUSTOM_ACTIONS
    handler = custom_actions.get((descriptor.name, action)) or GENERIC_ACTIONS.get(action)
    if handler is None:
        raise errors.invalid_action(action, descriptor.name, descriptor.actions)
    return json_result(await handler(descriptor, action, args, ctx))
