"""
Test configuration and fixtures for the Productive MCP tests.

Provides:
- Credentials with and without a configured user ID
- A mocked ProductiveClient (AsyncMock with the real client as spec)
- A Dispatcher wired to the mocked client
- Helpers to build JSON:API resources and decode tool results
"""

import json
import logging
from typing import Any, Optional
from unittest.mock import AsyncMock

import pytest

from productive_mcp.client import ProductiveClient
from productive_mcp.dispatcher import Dispatcher
from productive_mcp.handlers import result_text
from productive_mcp.schemas import Credentials

# Configure logging for tests
logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)


def resource(resource_type: str, id: str, relationships: Optional[dict[str, tuple[str, str]]] = None,
             **attributes) -> dict:
    """Build a JSON:API resource; relationships map name -> (type, id)."""
    item: dict[str, Any] = {"id": id, "type": resource_type, "attributes": attributes}
    if relationships:
        item["relationships"] = {
            name: {"data": {"type": rel_type, "id": rel_id}} for name, (rel_type, rel_id) in relationships.items()
        }
    return item


def payload(result: dict) -> Any:
    """Decode the JSON text of a successful tool result."""
    assert not result.get("isError"), result_text(result)
    return json.loads(result_text(result))


@pytest.fixture
def credentials() -> Credentials:
    """Credentials including a user ID, as used by my_day and people/me."""
    return Credentials(api_token="test-token", organization_id="12345", user_id="500521")


@pytest.fixture
def credentials_without_user() -> Credentials:
    """Credentials without a user ID."""
    return Credentials(api_token="test-token", organization_id="12345")


@pytest.fixture
def api() -> AsyncMock:
    """
    Mocked REST client.

    Every list call returns an empty page unless a test overrides it, so
    tests only describe the responses they care about.
    """
    client = AsyncMock(spec=ProductiveClient)
    client.list_resources.return_value = {"data": [], "meta": {"current_page": 1, "total_pages": 1}}
    client.get_resource.return_value = {"data": {}}
    client.create_resource.return_value = {"data": {}}
    client.update_resource.return_value = {"data": {}}
    client.delete_resource.return_value = {}
    client.member_action.return_value = {"data": {}}
    client.get_report.return_value = {"data": []}
    return client


@pytest.fixture
def dispatcher(api: AsyncMock) -> Dispatcher:
    """Dispatcher whose client factory always returns the mocked client."""
    return Dispatcher(client_factory=lambda credentials: api)


@pytest.fixture
def execute(dispatcher: Dispatcher, credentials: Credentials):
    """Run one `productive` tool call with the default credentials."""
    async def _execute(**args) -> dict:
        return await dispatcher.execute("productive", args, credentials)
    return _execute
