"""
Smart ID resolution.

Turns human-friendly references (emails, project numbers such as PRJ-123,
deal numbers such as D-42, company or service names) into numeric
Productive IDs. Pure numeric strings are used verbatim without a network
call. Anything that does not resolve to exactly one resource raises
ResolutionError; the resolver never guesses.

Classification precedence:
    numeric > email > structured number > free text
"""

import re
import logging
from typing import Optional

from productive_mcp.errors import ResolutionError, UserInputError
from productive_mcp.formatters import person_name
from productive_mcp.schemas import ResolvedInfo, ResolveCandidate

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PROJECT_NUMBER_PATTERN = re.compile(r"^(PRJ|P)-(\d+)$", re.IGNORECASE)
DEAL_NUMBER_PATTERN = re.compile(r"^(DEAL|D)-(\d+)$", re.IGNORECASE)
NUMERIC_ID_PATTERN = re.compile(r"^\d+$")

RESOLVABLE_TYPES = ["person", "project", "company", "deal", "service"]

# Filter keys that carry an ID of a resolvable type
FILTER_TYPE_MAPPING: dict[str, str] = {
    "person_id": "person",
    "assignee_id": "person",
    "creator_id": "person",
    "responsible_id": "person",
    "project_id": "project",
    "company_id": "company",
    "deal_id": "deal",
    "service_id": "service",
}

TYPE_ENDPOINTS = {
    "person": "people",
    "project": "projects",
    "company": "companies",
    "deal": "deals",
    "service": "services",
}

# Reference kinds returned by classify_reference
NUMERIC = "numeric"
EMAIL = "email"
PROJECT_NUMBER = "project_number"
DEAL_NUMBER = "deal_number"
TEXT = "text"


def is_numeric_id(value) -> bool:
    return bool(NUMERIC_ID_PATTERN.match(str(value)))


def classify_reference(value: str, resource_type: Optional[str] = None) -> str:
    """
    Decide how a reference should be looked up.

    Args:
        value: Raw reference supplied by the caller
        resource_type: Expected type (person, project, ...) or None to detect

    Returns:
        One of NUMERIC, EMAIL, PROJECT_NUMBER, DEAL_NUMBER, TEXT
    """
    value = str(value).strip()
    if NUMERIC_ID_PATTERN.match(value):
        return NUMERIC
    if EMAIL_PATTERN.match(value) and resource_type in (None, "person"):
        return EMAIL
    if PROJECT_NUMBER_PATTERN.match(value) and resource_type in (None, "project"):
        return PROJECT_NUMBER
    if DEAL_NUMBER_PATTERN.match(value) and resource_type in (None, "deal"):
        return DEAL_NUMBER
    return TEXT


def detect_resource_type(value: str) -> Optional[str]:
    """Infer the resource type from the shape of a reference, if it has one."""
    kind = classify_reference(value)
    return {EMAIL: "person", PROJECT_NUMBER: "project", DEAL_NUMBER: "deal"}.get(kind)


def _label(resource_type: str, item: dict) -> str:
    attrs = item.get("attributes") or {}
    if resource_type == "person":
        return person_name(attrs) or str(item.get("id"))
    return attrs.get("name") or attrs.get("title") or str(item.get("id"))


def _number_of(item: dict) -> str:
    attrs = item.get("attributes") or {}
    raw = str(attrs.get("project_number") or attrs.get("deal_number") or attrs.get("number") or "")
    return raw.rsplit("-", 1)[-1]


class IdentifierResolver:
    """
    Resolves references for one tool invocation.

    Every successful non-numeric resolution is recorded in `resolved`, keyed
    by field name, so the dispatcher can surface it as `_resolved`.
    """

    def __init__(self, client):
        self.client = client
        self.resolved: dict[str, ResolvedInfo] = {}

    async def _search(self, resource_type: str, filter: dict, per_page: int = 10) -> list[dict]:
        response = await self.client.list_resources(TYPE_ENDPOINTS[resource_type], per_page=per_page, filter=filter)
        return response.get("data") or []

    async def _lookup(self, value: str, resource_type: str, project_id: Optional[str] = None) -> list[dict]:
        """Fetch every resource matching the reference, most specific query first."""
        kind = classify_reference(value, resource_type)

        if kind == EMAIL:
            items = await self._search("person", {"email": value})
            wanted = value.lower()
            return [i for i in items if str((i.get("attributes") or {}).get("email") or "").lower() == wanted]

        if kind == PROJECT_NUMBER:
            digits = PROJECT_NUMBER_PATTERN.match(value).group(2)
            items = await self._search("project", {"project_number": f"PRJ-{digits}"})
            if not items:
                items = await self._search("project", {"project_number": value})
            return [i for i in items if _number_of(i) == digits]

        if kind == DEAL_NUMBER:
            digits = DEAL_NUMBER_PATTERN.match(value).group(2)
            items = await self._search("deal", {"deal_number": f"D-{digits}"})
            if not items:
                items = await self._search("deal", {"deal_number": value})
            return [i for i in items if _number_of(i) == digits]

        if resource_type == "service":
            filter = {"project_id": project_id} if project_id else {}
            items = await self._search("service", filter, per_page=200)
            wanted = value.lower()
            return [i for i in items if wanted in str((i.get("attributes") or {}).get("name") or "").lower()]

        return await self._search(resource_type, {"query": value})

    async def resolve_value(
        self,
        value,
        resource_type: str,
        field: Optional[str] = None,
        project_id: Optional[str] = None,
    ) -> str:
        """
        Resolve one reference to a numeric ID.

        Args:
            value: Numeric ID or human-friendly reference
            resource_type: person, project, company, deal or service
            field: Field name used as the `_resolved` key
            project_id: Scope for service name lookups

        Returns:
            The canonical ID as a string

        Raises:
            ResolutionError: if nothing or more than one resource matches
        """
        value = str(value).strip()
        if not value:
            raise UserInputError(f"{field or resource_type} must not be empty")
        if is_numeric_id(value):
            return value

        matches = await self._lookup(value, resource_type, project_id)
        labels = [_label(resource_type, m) for m in matches]

        if len(matches) > 1:
            # A single exact, case-insensitive name match is not ambiguous
            exact_matches = [m for m, label in zip(matches, labels) if label.lower() == value.lower()]
            if len(exact_matches) == 1:
                matches, labels = exact_matches, [_label(resource_type, exact_matches[0])]

        if not matches:
            raise ResolutionError(
                f'No {resource_type} found matching "{value}"',
                query=value,
                resource_type=resource_type,
                hints=[
                    f'Use resource="{TYPE_ENDPOINTS[resource_type]}" action="list" to browse available IDs',
                    "Or pass the numeric ID directly",
                ],
            )

        if len(matches) > 1:
            candidates = [
                ResolveCandidate(id=str(m.get("id")), label=label, type=resource_type).model_dump()
                for m, label in zip(matches, labels)
            ]
            raise ResolutionError(
                f'Ambiguous {resource_type} "{value}", did you mean: {", ".join(labels)}',
                query=value,
                resource_type=resource_type,
                candidates=candidates,
                hints=[f"{c['label']} (id {c['id']})" for c in candidates]
                + ["Retry with the numeric ID of the intended match"],
            )

        resolved_id = str(matches[0].get("id"))
        key = field or resource_type
        exact = classify_reference(value, resource_type) != TEXT or labels[0].lower() == value.lower()
        self.resolved[key] = ResolvedInfo(
            field=key,
            input=value,
            resolved_id=resolved_id,
            matched_label=labels[0],
            confidence="exact" if exact else "single_match",
        )
        logger.debug(f"Resolved {key}={value!r} to {resolved_id}")
        return resolved_id

    async def resolve_fields(self, args: dict, fields: dict[str, str]) -> dict:
        """
        Resolve ID-bearing arguments in place of their human-friendly values.

        project_id is resolved first so service names can be scoped to it.
        """
        result = dict(args)
        ordered = sorted(fields.items(), key=lambda item: item[0] != "project_id")
        for field, resource_type in ordered:
            value = result.get(field)
            if value is None or value == "":
                continue
            result[field] = await self.resolve_value(
                value,
                resource_type,
                field=field,
                project_id=result.get("project_id") if resource_type == "service" else None,
            )
        return result

    async def resolve_filter(self, filter: Optional[dict], mapping: Optional[dict[str, str]] = None) -> dict:
        """Apply resolve_fields to the ID-bearing keys of a list filter."""
        if not filter:
            return {}
        mapping = FILTER_TYPE_MAPPING if mapping is None else mapping
        fields = {key: kind for key, kind in mapping.items() if key in filter}
        return await self.resolve_fields(filter, fields)

    async def find_candidates(
        self,
        query: str,
        resource_type: Optional[str] = None,
        project_id: Optional[str] = None,
    ) -> dict:
        """
        List every match for a reference, for callers that want to pick one.

        Returns:
            {"query", "type", "matches": [{"id", "label", "type"}], "exact"}
        """
        query = (query or "").strip()
        if not query:
            raise UserInputError(
                "query is required for resolve action",
                ['Pass query="<email, number or name>"'],
            )
        if resource_type and resource_type not in RESOLVABLE_TYPES:
            raise UserInputError(
                f'Invalid type "{resource_type}"',
                [f"Valid types are: {', '.join(RESOLVABLE_TYPES)}"],
            )

        resource_type = resource_type or detect_resource_type(query)
        if is_numeric_id(query):
            return {
                "query": query,
                "type": resource_type,
                "matches": [{"id": query, "label": query, "type": resource_type}],
                "exact": True,
            }
        if not resource_type:
            raise UserInputError(
                "Cannot determine resource type. Provide a type parameter (person, project, company, deal, service).",
                [f'Query: "{query}"', "Provide type parameter: person, project, company, deal, or service"],
            )

        matches = await self._lookup(query, resource_type, project_id)
        candidates = [
            ResolveCandidate(id=str(m.get("id")), label=_label(resource_type, m), type=resource_type).model_dump()
            for m in matches
        ]
        exact = classify_reference(query, resource_type) != TEXT or any(
            c["label"].lower() == query.lower() for c in candidates
        )
        return {"query": query, "type": resource_type, "matches": candidates, "exact": exact and len(candidates) == 1}
