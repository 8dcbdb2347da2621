"""
Tests for JSON:API flattening, pagination and include helpers.
"""

import logging

import pytest

from productive_mcp.errors import UserInputError
from productive_mcp.formatters import (
    FormatOptions,
    format_bytes,
    format_list_response,
    format_pagination,
    format_task,
    format_time_entry,
    strip_html,
)
from productive_mcp.includes import merge_includes, validate_includes
from tests.conftest import resource

logger = logging.getLogger(__name__)


# ============== Pagination ==============


def test_single_page_has_no_pagination():
    assert format_pagination({"current_page": 1, "total_pages": 1, "total_count": 10}) is None
    assert format_pagination(None) is None
    assert format_pagination({}) is None


def test_multi_page_pagination():
    meta = {"current_page": 1, "total_pages": 5, "total_count": 500}
    assert format_pagination(meta) == {"page": 1, "total_pages": 5, "total_count": 500}


def test_list_response_omits_meta_for_single_page():
    items = [resource("time_entries", "1", time=30)]

    single = format_list_response(items, format_time_entry, {"current_page": 1, "total_pages": 1, "total_count": 1})
    multi = format_list_response(items, format_time_entry, {"current_page": 2, "total_pages": 3, "total_count": 41})

    assert "meta" not in single
    assert multi["meta"] == {"page": 2, "total_pages": 3, "total_count": 41}
    logger.info("✓ pagination metadata only for multi-page lists")


# ============== Resources ==============


def test_time_entry_round_trip():
    entry = {"id": "789", "type": "time_entries", "attributes": {"date": "2024-01-15", "time": 480}}

    result = format_time_entry(entry)

    assert result["id"] == "789"
    assert result["date"] == "2024-01-15"
    assert result["time_minutes"] == 480
    assert result["time_hours"] == "8.00"


def test_task_full_and_compact():
    task = resource(
        "tasks", "1",
        {"project": ("projects", "7"), "assignee": ("people", "3"), "workflow_status": ("workflow_statuses", "2")},
        title="Fix login", description="<p>Step&nbsp;1<br>Step 2</p>", worked_time=30,
    )
    included = [
        resource("projects", "7", {"company": ("companies", "9")}, name="Website", project_number="PRJ-1"),
        resource("companies", "9", name="Acme"),
        resource("people", "3", first_name="Jane", last_name="Roe"),
        resource("workflow_statuses", "2", name="In progress"),
    ]

    full = format_task(task, FormatOptions(included=included))
    compact = format_task(task, FormatOptions(included=included, compact=True))

    assert full["description"] == "Step 1\nStep 2"
    assert full["project"] == {"id": "7", "name": "Website", "number": "PRJ-1"}
    assert full["company"] == {"id": "9", "name": "Acme"}
    assert full["assignee_name"] == "Jane Roe"
    assert full["status_name"] == "In progress"
    assert "description" not in compact
    assert "worked_time" not in compact
    assert compact["project_name"] == "Website"
    logger.info("✓ task flattened with sideloaded names")


def test_relationship_ids_and_timestamps_are_optional():
    task = resource("tasks", "1", {"project": ("projects", "7")}, title="x", created_at="2024-01-01T00:00:00Z")

    plain = format_task(task)
    detailed = format_task(task, FormatOptions(include_relationship_ids=True, include_timestamps=True))

    assert "project_id" not in plain and "created_at" not in plain
    assert detailed["project_id"] == "7"
    assert detailed["created_at"] == "2024-01-01T00:00:00Z"


@pytest.mark.parametrize("html, expected", [
    (None, ""),
    ("plain", "plain"),
    ("<ul><li>one</li><li>two</li></ul>", "• one\n• two"),
    ('<a href="https://x.test">link</a>', "link"),
    ("a &amp; b", "a & b"),
])
def test_strip_html(html, expected):
    assert strip_html(html) == expected


@pytest.mark.parametrize("size, expected", [
    (None, "0 B"),
    (512, "512 B"),
    (2048, "2.0 KB"),
    (5 * 1024 * 1024, "5.0 MB"),
])
def test_format_bytes(size, expected):
    assert format_bytes(size) == expected


# ============== Includes ==============


def test_merge_includes_unions_without_duplicates():
    assert merge_includes(["project", "project.company"], ["assignee", "project"]) == [
        "project", "project.company", "assignee",
    ]
    assert merge_includes([], None) is None


def test_validate_includes():
    validate_includes("tasks", ["project", "assignee"])
    validate_includes("projects", ["anything"])

    with pytest.raises(UserInputError) as exc_info:
        validate_includes("tasks", ["notes", "project", "user"])

    error = exc_info.value
    assert "notes, user" in error.message
    assert any(h.startswith("notes: Use resource=comments") for h in error.hints)
    assert error.hints[-1].startswith("Valid includes for tasks: project")
    logger.info("✓ invalid includes named with redirect hints")
