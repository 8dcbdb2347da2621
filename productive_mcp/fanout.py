"""
Concurrent fan-out: cross-resource search and batch execution.

Both operations run their items with asyncio.gather over coroutines that
never raise: each item's failure is caught and stored as data, so one
failing item never discards its siblings' results.
"""

import json
import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable

from productive_mcp.errors import UserInputError
from productive_mcp.handlers import json_result, result_text
from productive_mcp.schemas import BatchSummary

logger = logging.getLogger(__name__)

SEARCHABLE_RESOURCES = ["projects", "companies", "people", "tasks", "deals"]
DEFAULT_SEARCH_RESOURCES = ["projects", "companies", "people", "tasks"]
SEARCH_PER_PAGE = 10
MAX_BATCH_SIZE = 10

Execute = Callable[[dict], Awaitable[dict]]


async def _settle(awaitable: Awaitable) -> tuple[bool, Any]:
    try:
        return True, await awaitable
    except Exception as exc:
        return False, exc


async def gather_settled(awaitables: Iterable[Awaitable]) -> list[tuple[bool, Any]]:
    """
    Await everything concurrently and collect each outcome individually.

    Returns:
        (ok, value) pairs in input order; value is the exception when ok is False
    """
    return list(await asyncio.gather(*(_settle(a) for a in awaitables)))


def error_message(exc: BaseException) -> str:
    if isinstance(exc, UserInputError):
        return exc.message
    return str(exc) or exc.__class__.__name__


class OperationFailed(Exception):
    """A dispatched operation returned an error result."""


async def _run_checked(execute: Execute, args: dict) -> Any:
    result = await execute(args)
    text = result_text(result)
    if result.get("isError"):
        raise OperationFailed(text)
    try:
        return json.loads(text)
    except ValueError:
        return text


# ============== Search ==============


def validate_search(query, resources) -> tuple[str, list[str]]:
    """
    Check search arguments before anything is sent.

    Raises:
        UserInputError: on an empty query or unknown resources
    """
    if not isinstance(query, str) or not query.strip():
        raise UserInputError(
            "Missing required parameter: query. Provide a non-empty search string.",
            ['Example: resource="search" action="run" query="acme"'],
        )
    if resources is None or resources == []:
        return query.strip(), list(DEFAULT_SEARCH_RESOURCES)
    if isinstance(resources, str):
        resources = [r.strip() for r in resources.split(",") if r.strip()]
    invalid = [r for r in resources if r not in SEARCHABLE_RESOURCES]
    if invalid:
        raise UserInputError(
            f"Invalid searchable resources: {', '.join(map(str, invalid))}. "
            f"Valid searchable resources: {', '.join(SEARCHABLE_RESOURCES)}",
        )
    return query.strip(), list(dict.fromkeys(resources))


async def handle_search(args: dict, execute: Execute) -> dict:
    """
    Search several resources concurrently with the same text query.

    Returns:
        Tool result with {query, resources_searched, results, total_results}
    """
    query, resources = validate_search(args.get("query"), args.get("resources"))

    outcomes = await gather_settled(
        _run_checked(execute, {
            "resource": resource,
            "action": "list",
            "query": query,
            "compact": True,
            "per_page": SEARCH_PER_PAGE,
            "no_hints": True,
        })
        for resource in resources
    )

    results: dict[str, Any] = {}
    total = 0
    for resource, (ok, value) in zip(resources, outcomes):
        if not ok:
            logger.warning(f"Search on {resource} failed: {error_message(value)}")
            results[resource] = {"error": error_message(value)}
            continue
        items = (value.get("items") or value.get("data")) if isinstance(value, dict) else None
        if isinstance(items, list):
            results[resource] = items
            total += len(items)
        else:
            results[resource] = {"error": "Unexpected response shape"}

    return json_result({
        "query": query,
        "resources_searched": resources,
        "results": results,
        "total_results": total,
    })


# ============== Batch ==============


def validate_batch(operations) -> list[dict]:
    """
    Structural validation of batch operations.

    Runs before credentials are used, so a malformed batch is always
    reported as such.
    """
    if not isinstance(operations, list):
        raise UserInputError(
            "operations must be an array of {resource, action, ...} objects",
            ['Example: operations=[{"resource": "projects", "action": "list"}]'],
        )
    if not operations:
        raise UserInputError("operations cannot be empty", ["Provide between 1 and 10 operations"])
    if len(operations) > MAX_BATCH_SIZE:
        raise UserInputError(
            f"Batch exceeds maximum size of {MAX_BATCH_SIZE} operations (got {len(operations)})",
            ["Split the work into several batch calls"],
        )
    for index, operation in enumerate(operations):
        if not isinstance(operation, dict):
            raise UserInputError(f"Operation at index {index} must be an object")
        for field in ("resource", "action"):
            if not isinstance(operation.get(field), str) or not operation.get(field):
                raise UserInputError(f"Operation at index {index} is missing required field: {field}")
    return operations


async def _run_operation(operation: dict, execute: Execute) -> Any:
    if operation["resource"] == "batch":
        raise UserInputError("Nested batch operations are not allowed")
    return await _run_checked(execute, operation)


async def handle_batch(args: dict, execute: Execute) -> dict:
    """
    Run up to MAX_BATCH_SIZE operations concurrently.

    Returns:
        Tool result with {_batch: {total, succeeded, failed}, results}
    """
    operations = validate_batch(args.get("operations"))

    outcomes = await gather_settled(_run_operation(op, execute) for op in operations)

    results = []
    for index, (operation, (ok, value)) in enumerate(zip(operations, outcomes)):
        entry: dict[str, Any] = {"resource": operation["resource"], "action": operation["action"], "index": index}
        if ok:
            entry["data"] = value
        else:
            entry["error"] = error_message(value)
        results.append(entry)

    succeeded = sum(1 for entry in results if "data" in entry)
    summary = BatchSummary(total=len(results), succeeded=succeeded, failed=len(results) - succeeded).model_dump()
    logger.info(f"Batch finished: {summary}")
    return json_result({"_batch": summary, "results": results})
