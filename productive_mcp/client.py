"""
Async REST client for the Productive.io JSON:API.

One ProductiveClient is created per set of credentials. Every call returns
the decoded JSON:API document ({data, included?, meta?}) or raises
ProductiveApiError for non-2xx responses.
"""

import logging
from typing import Any, Optional

import httpx

from productive_mcp import config
from productive_mcp.errors import ProductiveApiError
from productive_mcp.schemas import Credentials

logger = logging.getLogger(__name__)

JSONAPI_CONTENT_TYPE = "application/vnd.api+json"


def build_query(
    page: Optional[int] = None,
    per_page: Optional[int] = None,
    filter: Optional[dict] = None,
    include: Optional[list[str]] = None,
    sort: Optional[str] = None,
    group: Optional[str] = None,
) -> dict[str, str]:
    """Encode list options using JSON:API query conventions."""
    params: dict[str, str] = {}
    if page:
        params["page[number]"] = str(page)
    if per_page:
        params["page[size]"] = str(per_page)
    for key, value in (filter or {}).items():
        if value is None or value == "":
            continue
        params[f"filter[{key}]"] = str(value)
    if include:
        params["include"] = ",".join(include)
    if sort:
        params["sort"] = sort
    if group:
        params["group"] = group
    return params


def build_document(
    resource_type: str,
    attributes: Optional[dict] = None,
    relationships: Optional[dict[str, Optional[str]]] = None,
    resource_id: Optional[str] = None,
) -> dict:
    """
    Build a JSON:API request body.

    Args:
        resource_type: JSON:API type, e.g. "time_entries"
        attributes: Plain attribute values; None values are dropped
        relationships: Mapping of relationship name to (type, id) tuples
        resource_id: Set for updates

    Returns:
        {"data": {"type", "id"?, "attributes", "relationships"?}}
    """
    data: dict[str, Any] = {
        "type": resource_type,
        "attributes": {k: v for k, v in (attributes or {}).items() if v is not None},
    }
    if resource_id is not None:
        data["id"] = str(resource_id)
    rels = {}
    for name, target in (relationships or {}).items():
        if target is None:
            continue
        rel_type, rel_id = target
        if rel_id is None or rel_id == "":
            continue
        rels[name] = {"data": {"type": rel_type, "id": str(rel_id)}}
    if rels:
        data["relationships"] = rels
    return {"data": data}


class ProductiveClient:
    """Thin async wrapper over the Productive REST API."""

    def __init__(
        self,
        credentials: Credentials,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = config.REQUEST_TIMEOUT,
    ):
        if not credentials.api_token:
            raise ValueError("API token not configured. Set PRODUCTIVE_API_TOKEN or pass a Bearer token")
        if not credentials.organization_id:
            raise ValueError("Organization ID not configured. Set PRODUCTIVE_ORG_ID or pass a Bearer token")

        self.credentials = credentials
        self.base_url = (base_url or config.API_BASE_URL).rstrip("/")
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Content-Type": JSONAPI_CONTENT_TYPE,
                "X-Auth-Token": credentials.api_token,
                "X-Organization-Id": credentials.organization_id,
            },
        )

    async def __aenter__(self) -> "ProductiveClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
        body: Optional[dict] = None,
    ) -> dict:
        """Make an API request and decode the JSON:API document."""
        logger.debug(f"{method} {endpoint} params={params}")
        response = await self._http.request(method, endpoint, params=params, json=body)

        if response.status_code >= 400:
            message = f"API request failed: {response.status_code} {response.reason_phrase}"
            try:
                errors = response.json().get("errors") or []
                if errors and errors[0].get("detail"):
                    message = f"API request failed: {response.status_code} {errors[0]['detail']}"
            except ValueError:
                pass
            logger.warning(f"{method} {endpoint} -> {response.status_code}")
            raise ProductiveApiError(message, status_code=response.status_code, detail=response.text)

        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    # ============== Generic resource operations ==============

    async def list_resources(
        self,
        endpoint: str,
        page: Optional[int] = None,
        per_page: Optional[int] = None,
        filter: Optional[dict] = None,
        include: Optional[list[str]] = None,
        sort: Optional[str] = None,
    ) -> dict:
        params = build_query(page=page, per_page=per_page, filter=filter, include=include, sort=sort)
        return await self.request("GET", f"/{endpoint}", params=params)

    async def get_resource(self, endpoint: str, resource_id: str, include: Optional[list[str]] = None) -> dict:
        params = build_query(include=include)
        return await self.request("GET", f"/{endpoint}/{resource_id}", params=params or None)

    async def create_resource(
        self,
        resource_type: str,
        endpoint: str,
        attributes: Optional[dict] = None,
        relationships: Optional[dict] = None,
    ) -> dict:
        body = build_document(resource_type, attributes, relationships)
        return await self.request("POST", f"/{endpoint}", body=body)

    async def update_resource(
        self,
        resource_type: str,
        endpoint: str,
        resource_id: str,
        attributes: Optional[dict] = None,
        relationships: Optional[dict] = None,
    ) -> dict:
        body = build_document(resource_type, attributes, relationships, resource_id=resource_id)
        return await self.request("PATCH", f"/{endpoint}/{resource_id}", body=body)

    async def delete_resource(self, endpoint: str, resource_id: str) -> dict:
        return await self.request("DELETE", f"/{endpoint}/{resource_id}")

    async def member_action(self, endpoint: str, resource_id: str, verb: str) -> dict:
        """PATCH a member route such as /timers/{id}/stop or /discussions/{id}/resolve."""
        return await self.request("PATCH", f"/{endpoint}/{resource_id}/{verb}")

    async def get_report(
        self,
        report_type: str,
        page: int = 1,
        per_page: int = 100,
        filter: Optional[dict] = None,
        group: Optional[str] = None,
        include: Optional[list[str]] = None,
    ) -> dict:
        params = build_query(page=page, per_page=per_page, filter=filter, include=include, group=group)
        return await self.request("GET", f"/reports/{report_type}", params=params)
