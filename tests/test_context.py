"""
Tests for context actions (a resource plus its related collections).
"""

import logging

import pytest

from productive_mcp.errors import ProductiveApiError
from productive_mcp.handlers import result_text
from tests.conftest import payload, resource

logger = logging.getLogger(__name__)


@pytest.mark.asyncio
async def test_task_context_collects_sections(execute, api):
    api.get_resource.return_value = {
        "data": resource("tasks", "1", {"project": ("projects", "7")}, title="Fix login"),
        "included": [resource("projects", "7", name="Website")],
    }

    async def list_resources(endpoint, **kwargs):
        if endpoint == "comments":
            return {"data": [resource("comments", "11", body="<p>Looks good</p>")]}
        if endpoint == "time_entries":
            return {"data": [resource("time_entries", "21", date="2024-01-15", time=90)]}
        return {"data": [resource("tasks", "2", title="Subtask")]}
    api.list_resources.side_effect = list_resources

    data = payload(await execute(resource="tasks", action="context", id="1"))

    assert data["id"] == "1"
    assert data["project_name"] == "Website"
    assert data["comments"][0]["id"] == "11"
    assert data["time_entries"][0]["time_hours"] == "1.50"
    assert data["subtasks"][0]["title"] == "Subtask"
    assert "_errors" not in data

    filters = {call.args[0]: call.kwargs["filter"] for call in api.list_resources.call_args_list}
    assert filters["comments"] == {"task_id": "1"}
    assert filters["tasks"] == {"parent_task_id": "1", "status": "1"}
    logger.info("✓ task context merges all sections")


@pytest.mark.asyncio
async def test_failed_section_is_embedded(execute, api):
    api.get_resource.return_value = {"data": resource("projects", "7", name="Website")}

    async def list_resources(endpoint, **kwargs):
        if endpoint == "services":
            raise ProductiveApiError("API request failed: 403 Forbidden", status_code=403)
        return {"data": []}
    api.list_resources.side_effect = list_resources

    data = payload(await execute(resource="projects", action="context", id="7"))

    assert data["name"] == "Website"
    assert data["services"] == {"error": "API request failed: 403 Forbidden"}
    assert data["tasks"] == []
    assert data["time_entries"] == []
    assert data["_errors"] == ["services: API request failed: 403 Forbidden"]
    logger.info("✓ failing section degrades to an embedded error")


@pytest.mark.asyncio
async def test_failed_primary_fails_the_call(execute, api):
    api.get_resource.side_effect = ProductiveApiError("API request failed: 404 Not Found", status_code=404)

    result = await execute(resource="deals", action="context", id="5")

    assert result["isError"] is True
    assert "API error (404)" in result_text(result)


@pytest.mark.asyncio
async def test_context_resolves_deal_number(execute, api):
    api.list_resources.return_value = {"data": [resource("deals", "55", name="Retainer", deal_number="D-12")]}
    api.get_resource.return_value = {"data": resource("deals", "55", name="Retainer")}

    data = payload(await execute(resource="deals", action="context", id="D-12"))

    assert api.get_resource.call_args.args[:2] == ("deals", "55")
    assert data["_resolved"]["id"]["resolved_id"] == "55"


@pytest.mark.asyncio
async def test_context_not_available_on_people(execute):
    result = await execute(resource="people", action="context", id="1")

    assert result["isError"] is True
    assert "Invalid action" in result_text(result)
