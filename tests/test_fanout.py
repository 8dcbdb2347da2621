"""
Tests for search and batch fan-out.

The invariant under test: one failing item never discards the results of
its siblings, and argument validation happens before any request.
"""

import logging

import pytest

from productive_mcp.errors import ProductiveApiError
from productive_mcp.fanout import MAX_BATCH_SIZE, gather_settled
from productive_mcp.handlers import result_text
from tests.conftest import payload, resource

logger = logging.getLogger(__name__)


@pytest.mark.asyncio
async def test_gather_settled_keeps_order_and_failures():
    async def ok(value):
        return value

    async def boom():
        raise ValueError("boom")

    outcomes = await gather_settled([ok(1), boom(), ok(3)])

    assert outcomes[0] == (True, 1)
    assert outcomes[1][0] is False and str(outcomes[1][1]) == "boom"
    assert outcomes[2] == (True, 3)


# ============== Search ==============


@pytest.mark.asyncio
@pytest.mark.parametrize("query", [None, "", "   "])
async def test_search_requires_query(execute, api, query):
    result = await execute(resource="search", action="run", query=query)

    assert result["isError"] is True
    assert "query" in result_text(result)
    api.list_resources.assert_not_called()


@pytest.mark.asyncio
async def test_search_rejects_invalid_resources(execute, api):
    result = await execute(resource="search", action="run", query="test", resources=["invalid_resource", "tasks"])

    assert result["isError"] is True
    text = result_text(result)
    assert "invalid_resource" in text
    assert "projects, companies, people, tasks, deals" in text
    api.list_resources.assert_not_called()
    logger.info("✓ invalid search resources fail fast")


@pytest.mark.asyncio
async def test_search_default_resources(execute, api):
    api.list_resources.return_value = {"data": [resource("any", "1", name="Acme")]}

    data = payload(await execute(resource="search", action="run", query="acme"))

    assert data["query"] == "acme"
    assert data["resources_searched"] == ["projects", "companies", "people", "tasks"]
    assert data["total_results"] == 4
    for call in api.list_resources.call_args_list:
        assert call.kwargs["filter"] == {"query": "acme"}
        assert call.kwargs["per_page"] == 10
    logger.info("✓ default resources searched with query filter")


@pytest.mark.asyncio
async def test_search_partial_failure(execute, api):
    async def list_resources(endpoint, **kwargs):
        if endpoint == "people":
            raise ProductiveApiError("API request failed: 500 Internal Server Error", status_code=500)
        return {"data": [resource(endpoint, "1", name="Acme"), resource(endpoint, "2", name="Acme 2")]}
    api.list_resources.side_effect = list_resources

    data = payload(await execute(resource="search", action="run", query="acme"))

    assert "error" in data["results"]["people"]
    assert len(data["results"]["projects"]) == 2
    assert data["total_results"] == 6
    logger.info("✓ failing resource does not affect siblings")


@pytest.mark.asyncio
async def test_search_deals_on_request(execute, api):
    data = payload(await execute(resource="search", action="run", query="acme", resources=["deals"]))

    assert data["resources_searched"] == ["deals"]
    assert data["results"] == {"deals": []}
    assert data["total_results"] == 0


# ============== Batch ==============


@pytest.mark.asyncio
async def test_batch_rejects_empty(execute, api):
    result = await execute(resource="batch", action="run", operations=[])

    assert result["isError"] is True
    assert "cannot be empty" in result_text(result)


@pytest.mark.asyncio
async def test_batch_rejects_oversized(execute, api):
    operations = [{"resource": "projects", "action": "list"}] * (MAX_BATCH_SIZE + 1)

    result = await execute(resource="batch", action="run", operations=operations)

    assert result["isError"] is True
    assert "exceeds maximum size" in result_text(result)
    api.list_resources.assert_not_called()


@pytest.mark.asyncio
async def test_batch_validation_runs_without_credentials(dispatcher):
    args = {"resource": "batch", "action": "run", "operations": [{"resource": "projects"}]}

    result = await dispatcher.execute("productive", args, None)

    assert result["isError"] is True
    assert "missing required field: action" in result_text(result)
    logger.info("✓ batch structure validated before authentication")


@pytest.mark.asyncio
async def test_batch_rejects_non_array(execute):
    result = await execute(resource="batch", action="run", operations="projects")

    assert result["isError"] is True
    assert "operations must be an array" in result_text(result)


@pytest.mark.asyncio
async def test_batch_partial_failure(execute, api):
    api.list_resources.return_value = {"data": [resource("projects", "1", name="Website")]}

    data = payload(await execute(resource="batch", action="run", operations=[
        {"resource": "projects", "action": "list"},
        {"resource": "tasks", "action": "get"},
    ]))

    assert data["_batch"] == {"total": 2, "succeeded": 1, "failed": 1}
    first, second = data["results"]
    assert first["index"] == 0 and first["resource"] == "projects"
    assert first["data"]["data"][0]["name"] == "Website"
    assert "error" not in first
    assert second["index"] == 1 and second["action"] == "get"
    assert "id is required" in second["error"]
    assert "data" not in second
    logger.info("✓ batch counts are arithmetic over settled results")


@pytest.mark.asyncio
async def test_batch_all_failed_is_not_special(execute, api):
    api.get_resource.side_effect = ProductiveApiError("API request failed: 404 Not Found", status_code=404)

    data = payload(await execute(resource="batch", action="run", operations=[
        {"resource": "projects", "action": "get", "id": "1"},
        {"resource": "projects", "action": "get", "id": "2"},
    ]))

    assert data["_batch"] == {"total": 2, "succeeded": 0, "failed": 2}
    assert all("API error (404)" in r["error"] for r in data["results"])


@pytest.mark.asyncio
async def test_batch_rejects_nested_batch(execute, api):
    data = payload(await execute(resource="batch", action="run", operations=[
        {"resource": "batch", "action": "run", "operations": [{"resource": "projects", "action": "list"}]},
        {"resource": "projects", "action": "list"},
    ]))

    assert data["_batch"] == {"total": 2, "succeeded": 1, "failed": 1}
    assert "Nested batch" in data["results"][0]["error"]
    api.list_resources.assert_awaited_once()


@pytest.mark.asyncio
async def test_batch_shares_one_client(dispatcher, credentials, api):
    factory_calls = []

    def factory(creds):
        factory_calls.append(creds)
        return api
    dispatcher.client_factory = factory

    await dispatcher.execute("productive", {"resource": "batch", "action": "run", "operations": [
        {"resource": "projects", "action": "list"},
        {"resource": "companies", "action": "list"},
    ]}, credentials)

    assert len(factory_calls) == 1
    api.aclose.assert_awaited_once()
