"""
Tests for the `productive` tool dispatcher.

Covers:
- Unknown tool, unknown and retired resources, invalid actions
- Required-field validation before any network call
- Include validation with redirect hints, include merging
- Query merging into filters, pagination suppression
- Create round-trip formatting and identifier resolution with _resolved
- API error classification and hints
- Optional relationship IDs and timestamps, injected custom actions
"""

import logging

import pytest

from productive_mcp.dispatcher import Dispatcher
from productive_mcp.errors import ProductiveApiError
from productive_mcp.handlers import CUSTOM_ACTIONS, result_text
from productive_mcp.resources import RESOURCES
from tests.conftest import payload, resource

logger = logging.getLogger(__name__)


# ============== Routing ==============


@pytest.mark.asyncio
async def test_unknown_tool(dispatcher, credentials):
    result = await dispatcher.execute("list_projects", {"resource": "projects", "action": "list"}, credentials)

    assert result["isError"] is True
    assert result_text(result) == "Unknown tool: list_projects"
    logger.info("✓ unknown tool rejected")


@pytest.mark.asyncio
async def test_unknown_resource(execute, api):
    result = await execute(resource="widgets", action="list")

    assert result["isError"] is True
    text = result_text(result)
    assert "Unknown resource: widgets" in text
    assert "projects" in text and "discussions" in text
    api.list_resources.assert_not_called()
    logger.info("✓ unknown resource lists valid resources")


@pytest.mark.asyncio
async def test_budgets_redirects_to_deals(execute, api):
    result = await execute(resource="budgets", action="list")

    assert result["isError"] is True
    assert "resource=deals" in result_text(result)
    assert "filter.type=2" in result_text(result)
    api.list_resources.assert_not_called()
    logger.info("✓ retired budgets resource redirects to deals")


@pytest.mark.asyncio
@pytest.mark.parametrize("name", sorted(RESOURCES))
async def test_invalid_action_names_valid_actions(execute, name):
    result = await execute(resource=name, action="explode")

    assert result["isError"] is True
    text = result_text(result)
    assert f'Invalid action "explode" for {name}' in text
    assert ", ".join(RESOURCES[name].actions) in text


@pytest.mark.asyncio
async def test_help_needs_no_credentials(dispatcher):
    overview = payload(await dispatcher.execute("productive", {"action": "help"}, None))
    assert "tasks" in overview["resources"]

    detail = payload(await dispatcher.execute("productive", {"resource": "time", "action": "help"}, None))
    assert detail["create"]["required"] == ["person_id", "service_id", "time", "date"]
    logger.info("✓ help answered without credentials")


@pytest.mark.asyncio
async def test_missing_credentials_is_reported(dispatcher):
    result = await dispatcher.execute("productive", {"resource": "projects", "action": "list"}, None)

    assert result["isError"] is True
    assert "No credentials configured" in result_text(result)


# ============== Validation ==============


@pytest.mark.asyncio
async def test_missing_id(execute, api):
    result = await execute(resource="tasks", action="get")

    assert result["isError"] is True
    assert "id is required for get action" in result_text(result)
    api.get_resource.assert_not_called()


@pytest.mark.asyncio
async def test_missing_required_fields_are_combined(execute, api):
    result = await execute(resource="time", action="create", person_id="500521")

    assert result["isError"] is True
    text = result_text(result)
    assert text.startswith("**Input Error:**")
    assert "service_id, time, date are required for creating time entry" in text
    api.create_resource.assert_not_called()
    api.list_resources.assert_not_called()
    logger.info("✓ all missing fields named in one error")


@pytest.mark.asyncio
async def test_comment_needs_a_target(execute, api):
    result = await execute(resource="comments", action="create", body="Hello")

    assert result["isError"] is True
    assert "task_id, deal_id or company_id is required" in result_text(result)
    api.create_resource.assert_not_called()


@pytest.mark.asyncio
async def test_update_without_fields(execute, api):
    result = await execute(resource="tasks", action="update", id="1")

    assert result["isError"] is True
    assert "No updatable fields provided for task" in result_text(result)
    api.update_resource.assert_not_called()


# ============== Includes ==============


@pytest.mark.asyncio
async def test_invalid_include_lists_valid_values(execute, api):
    result = await execute(resource="tasks", action="list", include=["notes"])

    assert result["isError"] is True
    text = result_text(result)
    assert "Invalid include value" in text
    assert "notes" in text
    assert "project" in text and "assignee" in text
    api.list_resources.assert_not_called()
    logger.info("✓ invalid include rejected before the request")


@pytest.mark.asyncio
async def test_services_include_on_deals_redirects(execute):
    result = await execute(resource="deals", action="list", include=["services"])

    assert result["isError"] is True
    assert "resource=services" in result_text(result)


@pytest.mark.asyncio
async def test_user_includes_are_merged_with_defaults(execute, api):
    await execute(resource="tasks", action="list", include=["assignee", "project"])

    assert api.list_resources.call_args.kwargs["include"] == ["project", "project.company", "assignee"]
    logger.info("✓ includes unioned with defaults without duplicates")


# ============== Lists ==============


@pytest.mark.asyncio
async def test_query_is_merged_into_filter(execute, api):
    await execute(resource="projects", action="list", filter={"company_id": "5"}, query="web")

    call = api.list_resources.call_args
    assert call.args[0] == "projects"
    assert call.kwargs["filter"] == {"company_id": "5", "query": "web"}
    assert call.kwargs["per_page"] == 20


@pytest.mark.asyncio
async def test_single_page_has_no_meta(execute, api):
    api.list_resources.return_value = {
        "data": [resource("projects", "1", name="Website")],
        "meta": {"current_page": 1, "total_pages": 1, "total_count": 1},
    }

    data = payload(await execute(resource="projects", action="list"))

    assert "meta" not in data
    assert data["data"] == [{"id": "1", "name": "Website", "number": None, "archived": False}]


@pytest.mark.asyncio
async def test_multi_page_has_meta(execute, api):
    api.list_resources.return_value = {
        "data": [resource("projects", "1", name="Website")],
        "meta": {"current_page": 1, "total_pages": 5, "total_count": 500},
    }

    data = payload(await execute(resource="projects", action="list"))

    assert data["meta"] == {"page": 1, "total_pages": 5, "total_count": 500}
    logger.info("✓ pagination only emitted for multi-page results")


@pytest.mark.asyncio
async def test_deal_type_filter_value_is_mapped(execute, api):
    await execute(resource="deals", action="list", filter={"type": "budget"})

    assert api.list_resources.call_args.kwargs["filter"] == {"type": "2"}


@pytest.mark.asyncio
async def test_filter_references_are_resolved(execute, api):
    async def list_resources(endpoint, **kwargs):
        if endpoint == "projects":
            return {"data": [resource("projects", "777", name="Website", project_number="PRJ-123")]}
        return {"data": []}
    api.list_resources.side_effect = list_resources

    data = payload(await execute(resource="tasks", action="list", filter={"project_id": "PRJ-123"}))

    task_call = api.list_resources.call_args_list[-1]
    assert task_call.args[0] == "tasks"
    assert task_call.kwargs["filter"] == {"project_id": "777"}
    assert data["_resolved"]["project_id"]["resolved_id"] == "777"
    logger.info("✓ project number in filter resolved before listing tasks")


# ============== Create / get ==============


@pytest.mark.asyncio
async def test_time_entry_create_round_trip(execute, api):
    api.create_resource.return_value = {
        "data": {"id": "789", "type": "time_entries", "attributes": {"date": "2024-01-15", "time": 480}},
    }

    data = payload(await execute(
        resource="time", action="create",
        person_id="500521", service_id="42", time=480, date="2024-01-15",
    ))

    assert data["success"] is True
    assert data["id"] == "789"
    assert data["date"] == "2024-01-15"
    assert data["time_minutes"] == 480
    assert data["time_hours"] == "8.00"
    assert "_hints" in data
    assert "_resolved" not in data
    logger.info("✓ created time entry flattened")


@pytest.mark.asyncio
async def test_create_without_hints(execute, api):
    api.create_resource.return_value = {"data": {"id": "789", "type": "time_entries", "attributes": {"time": 60}}}

    data = payload(await execute(
        resource="time", action="create", no_hints=True,
        person_id="500521", service_id="42", time=60, date="2024-01-15",
    ))

    assert "_hints" not in data


@pytest.mark.asyncio
async def test_email_is_resolved_before_create(execute, api):
    api.list_resources.return_value = {"data": [
        resource("people", "500521", first_name="John", last_name="Doe", email="john@example.com"),
    ]}
    api.create_resource.return_value = {
        "data": {"id": "789", "type": "time_entries", "attributes": {"date": "2024-01-15", "time": 60}},
    }

    data = payload(await execute(
        resource="time", action="create",
        person_id="john@example.com", service_id="42", time=60, date="2024-01-15",
    ))

    call = api.create_resource.call_args
    assert call.args[:2] == ("time_entries", "time_entries")
    assert call.kwargs["relationships"]["person"] == ("people", "500521")
    assert call.kwargs["relationships"]["service"] == ("services", "42")
    assert call.kwargs["attributes"] == {"time": 60, "date": "2024-01-15", "note": None}
    assert data["_resolved"]["person_id"]["input"] == "john@example.com"
    assert data["_resolved"]["person_id"]["resolved_id"] == "500521"
    logger.info("✓ email resolved and reported under _resolved")


@pytest.mark.asyncio
async def test_ambiguous_reference_fails_the_operation(execute, api):
    api.list_resources.return_value = {"data": [
        resource("companies", "1", name="Acme Corp"),
        resource("companies", "2", name="Acme Labs"),
    ]}

    result = await execute(resource="deals", action="create", name="Retainer", company_id="Acme")

    assert result["isError"] is True
    assert "Ambiguous company" in result_text(result)
    api.create_resource.assert_not_called()


@pytest.mark.asyncio
async def test_get_is_full_with_hints(execute, api):
    api.get_resource.return_value = {
        "data": resource("tasks", "1", {"project": ("projects", "7")}, title="Fix login", description="<p>Steps</p>"),
        "included": [resource("projects", "7", name="Website")],
    }

    data = payload(await execute(resource="tasks", action="get", id="1"))

    assert api.get_resource.call_args.args == ("tasks", "1")
    assert data["description"] == "Steps"
    assert data["project_name"] == "Website"
    assert "_hints" in data
    assert data["_hints"]["related_resources"]


@pytest.mark.asyncio
async def test_list_is_compact_by_default(execute, api):
    api.list_resources.return_value = {"data": [resource("tasks", "1", title="Fix login", description="long")]}

    data = payload(await execute(resource="tasks", action="list", no_hints=True))

    assert "description" not in data["data"][0]
    assert "_suggestions" not in data


@pytest.mark.asyncio
async def test_delete(execute, api):
    data = payload(await execute(resource="time", action="delete", id="55"))

    api.delete_resource.assert_awaited_once_with("time_entries", "55")
    assert data == {"success": True, "deleted": "55"}


@pytest.mark.asyncio
async def test_people_me_uses_configured_user(execute, api):
    api.get_resource.return_value = {"data": resource("people", "500521", first_name="John", last_name="Doe")}

    await execute(resource="people", action="me")

    assert api.get_resource.call_args.args == ("people", "500521")


@pytest.mark.asyncio
async def test_people_me_without_user(dispatcher, credentials_without_user):
    result = await dispatcher.execute("productive", {"resource": "people", "action": "me"}, credentials_without_user)

    assert result["isError"] is True
    assert "No user ID configured" in result_text(result)


@pytest.mark.asyncio
async def test_timer_stop_uses_member_route(execute, api):
    await execute(resource="timers", action="stop", id="3")

    api.member_action.assert_awaited_once_with("timers", "3", "stop")


@pytest.mark.asyncio
async def test_resolve_action_returns_candidates(execute, api):
    api.list_resources.return_value = {"data": [resource("projects", "777", name="Website", project_number="PRJ-123")]}

    data = payload(await execute(resource="projects", action="resolve", query="PRJ-123"))

    assert data["matches"] == [{"id": "777", "label": "Website", "type": "project"}]
    assert data["exact"] is True


# ============== Errors ==============


@pytest.mark.asyncio
async def test_api_404_gets_hints(execute, api):
    api.get_resource.side_effect = ProductiveApiError("API request failed: 404 Not Found", status_code=404)

    result = await execute(resource="projects", action="get", id="999")

    assert result["isError"] is True
    text = result_text(result)
    assert "API error (404)" in text
    assert "**Hints:**" in text
    assert "Verify the resource ID is correct" in text
    logger.info("✓ 404 passed through with hints")


@pytest.mark.asyncio
async def test_non_api_exception_is_stringified(execute, api):
    api.list_resources.side_effect = RuntimeError("connection reset")

    result = await execute(resource="projects", action="list")

    assert result == {"content": [{"type": "text", "text": "connection reset"}], "isError": True}


@pytest.mark.asyncio
async def test_client_is_closed_after_call(execute, api):
    await execute(resource="projects", action="list")

    api.aclose.assert_awaited_once()


# ============== Output options ==============


@pytest.mark.asyncio
async def test_relationship_ids_and_timestamps_on_request(execute, api):
    api.get_resource.return_value = {"data": resource(
        "tasks", "1", {"project": ("projects", "7")}, title="Fix login", created_at="2024-01-01T00:00:00Z",
    )}

    plain = payload(await execute(resource="tasks", action="get", id="1", no_hints=True))
    detailed = payload(await execute(
        resource="tasks", action="get", id="1", no_hints=True,
        include_relationship_ids=True, include_timestamps=True,
    ))

    assert "project_id" not in plain and "created_at" not in plain
    assert detailed["project_id"] == "7"
    assert detailed["created_at"] == "2024-01-01T00:00:00Z"
    logger.info("✓ relationship IDs and timestamps added on request")


# ============== Custom actions ==============


def test_context_actions_are_not_registered_globally():
    assert ("tasks", "context") not in CUSTOM_ACTIONS
    assert ("tasks", "context") in Dispatcher().custom_actions
    assert ("people", "me") in Dispatcher().custom_actions


@pytest.mark.asyncio
async def test_injected_custom_actions(api, credentials):
    async def archived_projects(descriptor, action, args, ctx):
        return {"resource": descriptor.name, "action": action}

    dispatcher = Dispatcher(
        client_factory=lambda credentials: api,
        custom_actions={("projects", "list"): archived_projects},
    )

    result = await dispatcher.execute("productive", {"resource": "projects", "action": "list"}, credentials)

    assert payload(result) == {"resource": "projects", "action": "list"}
    api.list_resources.assert_not_called()
