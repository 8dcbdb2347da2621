"""
action="help": an overview of all resources, or the details of one.

Built from the resource descriptors so the documentation cannot drift
from what the dispatcher accepts.
"""

from typing import Optional

from productive_mcp.fanout import DEFAULT_SEARCH_RESOURCES, MAX_BATCH_SIZE, SEARCHABLE_RESOURCES
from productive_mcp.includes import VALID_INCLUDES
from productive_mcp.reports import REPORT_TYPES
from productive_mcp.resources import RESOURCES, RETIRED_RESOURCES, SPECIAL_RESOURCES


def overview() -> dict:
    resources = {name: {"description": d.description, "actions": d.actions} for name, d in RESOURCES.items()}
    resources.update({name: dict(info) for name, info in SPECIAL_RESOURCES.items()})
    return {
        "tool": "productive",
        "usage": 'resource="<resource>" action="<action>" [id, filter, include, query, page, per_page, ...]',
        "resources": resources,
        "common_parameters": {
            "filter": "Object of API filters, e.g. {\"project_id\": \"123\"}",
            "include": "Related resources to sideload, merged with the defaults",
            "query": "Free-text search, sent as filter.query",
            "compact": "Trim long fields (default true except for get)",
            "no_hints": "Suppress _hints and _suggestions",
            "page": "Page number",
            "per_page": "Items per page (default 20)",
        },
        "identifiers": (
            "ID fields accept numeric IDs, emails (person), PRJ-123 (project), "
            "D-123 (deal) or names; resolved values are reported under _resolved"
        ),
    }


def resource_help(resource: str) -> Optional[dict]:
    """Details for one resource, or None if unknown."""
    descriptor = RESOURCES.get(resource)
    if descriptor:
        doc = {
            "resource": resource,
            "description": descriptor.description,
            "actions": descriptor.actions,
        }
        if descriptor.create_required or descriptor.create_attributes:
            doc["create"] = {
                "required": descriptor.create_required,
                "optional": [
                    f for f in descriptor.create_attributes + list(descriptor.create_relationships)
                    if f not in descriptor.create_required
                ],
            }
        if descriptor.update_fields:
            doc["update"] = {"fields": descriptor.update_fields}
        if descriptor.filter_args:
            doc["filters"] = descriptor.filter_args
        if descriptor.filter_value_maps:
            doc["filter_values"] = descriptor.filter_value_maps
        if resource in VALID_INCLUDES:
            doc["includes"] = VALID_INCLUDES[resource]
        if descriptor.default_include:
            doc["default_includes"] = descriptor.default_include
        if descriptor.resolvable_fields:
            doc["resolvable_fields"] = descriptor.resolvable_fields
        return doc

    if resource in SPECIAL_RESOURCES:
        doc = {"resource": resource, **SPECIAL_RESOURCES[resource]}
        if resource == "reports":
            doc["report_types"] = REPORT_TYPES
            doc["parameters"] = ["report_type", "from", "to", "person_id", "project_id", "company_id",
                                 "deal_id", "status", "group"]
        elif resource == "search":
            doc["parameters"] = {"query": "required", "resources": f"subset of {SEARCHABLE_RESOURCES}"}
            doc["default_resources"] = DEFAULT_SEARCH_RESOURCES
        elif resource == "batch":
            doc["parameters"] = {"operations": f"1 to {MAX_BATCH_SIZE} objects with resource and action"}
        elif resource == "summaries":
            doc["parameters"] = {"project_id": "required for project_health"}
        return doc

    if resource in RETIRED_RESOURCES:
        return {"resource": resource, "retired": True, "message": RETIRED_RESOURCES[resource]}
    return None
