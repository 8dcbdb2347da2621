"""
Entry point shared by every surface: one `productive` tool call in, one
tool result envelope out.

Order of checks: help, batch, search, unknown/retired resource, include
validation, then the resource handler. Every exception is converted into
an error result here; nothing propagates to the transport.
"""

import logging
from typing import Callable, Optional

from productive_mcp import config, errors
from productive_mcp.help import overview, resource_help
from productive_mcp.client import ProductiveClient
from productive_mcp.context import CONTEXT_ACTIONS
from productive_mcp.errors import ProductiveApiError, UserInputError
from productive_mcp.fanout import handle_batch, handle_search
from productive_mcp.handlers import (
    CUSTOM_ACTIONS,
    HandlerContext,
    error_result,
    handle_resource,
    input_error_result,
    json_result,
    to_string_filter,
)
from productive_mcp.includes import validate_includes
from productive_mcp.reports import handle_reports
from productive_mcp.resources import RETIRED_RESOURCES, VALID_RESOURCES, get_descriptor, retired_resource_error
from productive_mcp.schemas import Credentials
from productive_mcp.summaries import handle_summaries

logger = logging.getLogger(__name__)

TOOL_NAME = "productive"


def normalize_include(include) -> Optional[list[str]]:
    if not include:
        return None
    if isinstance(include, str):
        include = include.split(",")
    return [str(value).strip() for value in include if str(value).strip()]


class ClientSession:
    """Creates the API client on first use and closes it after the tool call."""

    def __init__(self, factory: Callable, credentials: Optional[Credentials]):
        self.factory = factory
        self.credentials = credentials
        self._client = None

    @property
    def client(self):
        if self._client is None:
            if self.credentials is None:
                raise UserInputError(
                    "No credentials configured",
                    ["Set PRODUCTIVE_API_TOKEN and PRODUCTIVE_ORG_ID, or pass a Bearer token"],
                )
            self._client = self.factory(self.credentials)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class Dispatcher:
    """
    Executes `productive` tool calls.

    Args:
        client_factory: Callable building an API client from credentials.
            Tests pass a factory returning a mock.
        custom_actions: Handlers for verbs outside list/get/create/update/delete,
            keyed by (resource, action). Defaults to the built-in actions plus
            the `context` composites.
    """

    def __init__(self, client_factory: Callable = ProductiveClient, custom_actions: Optional[dict] = None):
        self.client_factory = client_factory
        if custom_actions is None:
            custom_actions = {**CUSTOM_ACTIONS, **CONTEXT_ACTIONS}
        self.custom_actions = custom_actions

    async def execute(self, name: str, args: Optional[dict], credentials: Optional[Credentials]) -> dict:
        if name != TOOL_NAME:
            return error_result(f"Unknown tool: {name}")

        session = ClientSession(self.client_factory, credentials)
        try:
            return await self._dispatch(args or {}, credentials, session)
        finally:
            await session.aclose()

    async def _dispatch(self, args: dict, credentials: Optional[Credentials], session: ClientSession) -> dict:
        resource = args.get("resource")
        action = args.get("action")
        try:
            return await self._route(resource, action, args, credentials, session)
        except UserInputError as e:
            logger.info(f"{resource}/{action} rejected: {e.message}")
            return input_error_result(e)
        except ProductiveApiError as e:
            logger.warning(f"{resource}/{action} failed: {e}")
            status = e.status_code or errors.extract_status_code(str(e))
            if status:
                return input_error_result(errors.api_error(status, str(e)))
            return error_result(str(e))
        except Exception as e:
            logger.exception(f"{resource}/{action} raised unexpectedly")
            message = str(e) or e.__class__.__name__
            status = errors.extract_status_code(message)
            if status:
                return input_error_result(errors.api_error(status, message))
            return error_result(message)

    async def _route(
        self,
        resource: Optional[str],
        action: Optional[str],
        args: dict,
        credentials: Optional[Credentials],
        session: ClientSession,
    ) -> dict:
        if action == "help":
            if not resource:
                return json_result(overview())
            doc = resource_help(resource)
            if doc is None:
                raise errors.unknown_resource(resource, VALID_RESOURCES)
            return json_result(doc)

        async def execute_nested(operation: dict) -> dict:
            return await self._dispatch(operation, credentials, session)

        if resource == "batch":
            if action != "run":
                raise errors.invalid_action(str(action), "batch", ["run"])
            return await handle_batch(args, execute_nested)

        if resource == "search":
            if action != "run":
                raise errors.invalid_action(str(action), "search", ["run"])
            return await handle_search(args, execute_nested)

        if resource in RETIRED_RESOURCES:
            raise retired_resource_error(resource)
        if resource not in VALID_RESOURCES:
            raise errors.unknown_resource(resource, VALID_RESOURCES)
        if not action:
            raise UserInputError(
                f"action is required for {resource}",
                [f'Use action="help" with resource="{resource}" to see the available actions'],
            )

        include = normalize_include(args.get("include"))
        validate_includes(resource, include)

        ctx = self._build_context(action, args, include, credentials, session)
        if resource == "summaries":
            return json_result(await handle_summaries(action, args, ctx))
        if resource == "reports":
            return json_result(await handle_reports(action, args, ctx))
        return await handle_resource(get_descriptor(resource), action, args, ctx, self.custom_actions)

    def _build_context(
        self,
        action: str,
        args: dict,
        include: Optional[list[str]],
        credentials: Optional[Credentials],
        session: ClientSession,
    ) -> HandlerContext:
        compact = args.get("compact")
        if compact is None:
            compact = action != "get"
        no_hints = args.get("no_hints") is True

        filter = to_string_filter(args.get("filter"))
        if args.get("query"):
            filter["query"] = str(args["query"])

        return HandlerContext(
            client=LazyClient(session),
            credentials=credentials,
            compact=compact,
            filter=filter,
            page=args.get("page"),
            per_page=int(args.get("per_page") or config.DEFAULT_PER_PAGE),
            include=include,
            include_hints=action == "get" and not compact and not no_hints,
            no_hints=no_hints,
            include_relationship_ids=args.get("include_relationship_ids") is True,
            include_timestamps=args.get("include_timestamps") is True,
        )


class LazyClient:
    """Forwards attribute access to the session client, creating it on first use."""

    def __init__(self, session: ClientSession):
        self._session = session

    def __getattr__(self, name):
        return getattr(self._session.client, name)
