"""
Include-list validation and merging.

Resources listed in VALID_INCLUDES have their user-supplied `include`
values checked before any request is made. Resources without an entry
are passed through unchecked.
"""

from typing import Iterable, Optional

from productive_mcp.errors import UserInputError

VALID_INCLUDES: dict[str, list[str]] = {
    "tasks": [
        "project",
        "project.company",
        "assignee",
        "workflow_status",
        "comments",
        "attachments",
        "subtasks",
    ],
    "comments": ["creator", "task", "deal"],
    "deals": ["company", "deal_status", "responsible", "project"],
    "bookings": ["person", "service", "event"],
    "time": ["person", "service", "task"],
}

# Common mistakes and where the caller should look instead
KNOWN_SUGGESTIONS: dict[str, str] = {
    "notes": "Use resource=comments to fetch comments on a resource",
    "services": "Use resource=services with filter.deal_id or filter.project_id to list services",
    "time_entries": "Use resource=time with a filter (e.g. filter.task_id, filter.project_id) to list time entries",
    "time": "Use resource=time with a filter (e.g. filter.task_id) to list time entries",
    "user": 'Use "assignee" or "person" instead',
    "author": 'Use "creator" instead',
    "owner": 'Use "responsible" or "assignee" instead',
    "company": 'Use "project.company" to include the project\'s company on tasks',
    "status": 'Use "workflow_status" to include the workflow/kanban status on tasks',
}


def validate_includes(resource: str, include: Optional[list[str]]) -> None:
    """
    Check user includes against the resource whitelist.

    Raises:
        UserInputError: naming every invalid value, with a redirect hint
            per value and the full list of valid includes
    """
    valid = VALID_INCLUDES.get(resource)
    if not valid or not include:
        return

    invalid = [value for value in include if value not in valid]
    if not invalid:
        return

    hints = [f"{value}: {KNOWN_SUGGESTIONS[value]}" for value in invalid if value in KNOWN_SUGGESTIONS]
    hints.append(f"Valid includes for {resource}: {', '.join(valid)}")
    raise UserInputError(
        f"Invalid include value(s) for {resource}: {', '.join(invalid)}",
        hints,
    )


def merge_includes(defaults: Optional[Iterable[str]], user: Optional[Iterable[str]]) -> Optional[list[str]]:
    """Union of default and user includes, defaults first, without duplicates."""
    merged: list[str] = []
    for value in list(defaults or []) + list(user or []):
        if value and value not in merged:
            merged.append(value)
    return merged or None
