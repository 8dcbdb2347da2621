"""
Flatten JSON:API resources into compact dictionaries.

Every formatter takes a JSON:API resource ({id, type, attributes,
relationships}) plus FormatOptions and returns a flat dict: the id, the
interesting attributes, and names of sideloaded relationships when the
response carried them in `included`.
"""

import re
import html
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field


class FormatOptions(BaseModel):
    compact: bool = False
    included: list[dict] = Field(default_factory=list)
    include_relationship_ids: bool = False
    include_timestamps: bool = False
    strip_html: bool = True


DEFAULT_OPTIONS = FormatOptions()

Formatter = Callable[[dict, Optional[FormatOptions]], dict]


# ============== Helpers ==============


def strip_html(value: Optional[str]) -> str:
    """
    Convert an HTML fragment to plain text.

    Line-breaking tags become newlines, list items become bullets, every
    other tag is dropped, entities are decoded and blank runs collapsed.
    """
    if not value:
        return ""
    text = re.sub(r"<a\s+[^>]*href=[\"']([^\"']+)[\"'][^>]*>([^<]*)</a>",
                  lambda m: m.group(2) or m.group(1), value, flags=re.IGNORECASE)
    text = re.sub(r"<br\s*/?>", "\n", text, flags=re.IGNORECASE)
    text = re.sub(r"</(p|div|li|tr)>", "\n", text, flags=re.IGNORECASE)
    text = re.sub(r"</?(ul|ol)>", "\n", text, flags=re.IGNORECASE)
    text = re.sub(r"<li[^>]*>", "• ", text, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", "", text)
    text = html.unescape(text).replace("\xa0", " ")
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n\s*\n+", "\n\n", text)
    return text.strip()


def format_bytes(size: Optional[int]) -> str:
    if not size:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    if index == 0:
        return f"{int(value)} B"
    return f"{value:.1f} {units[index]}"


def relationship_id(resource: dict, name: str) -> Optional[str]:
    rel = (resource.get("relationships") or {}).get(name) or {}
    data = rel.get("data")
    if isinstance(data, dict):
        return data.get("id")
    return None


def resolve_included(included: Optional[list[dict]], resource_type: str, resource_id: Optional[str]) -> Optional[dict]:
    """Find the attributes of a sideloaded resource, or None."""
    if not included or not resource_id:
        return None
    for item in included:
        if item.get("type") == resource_type and str(item.get("id")) == str(resource_id):
            return item.get("attributes") or {}
    return None


def person_name(attrs: Optional[dict]) -> Optional[str]:
    if not attrs:
        return None
    name = f"{attrs.get('first_name') or ''} {attrs.get('last_name') or ''}".strip()
    return name or attrs.get("name") or attrs.get("email")


def _text(value: Any, options: FormatOptions) -> Optional[str]:
    if value is None:
        return None
    return strip_html(value) if options.strip_html else value


def _compactify(result: dict, fields: list[str]) -> dict:
    return {key: value for key, value in result.items() if key not in fields}


def _finish(result: dict, resource: dict, options: FormatOptions, rel_ids: dict[str, str]) -> dict:
    attrs = resource.get("attributes") or {}
    if options.include_relationship_ids:
        for key, rel in rel_ids.items():
            value = relationship_id(resource, rel)
            if value:
                result[key] = value
    if options.include_timestamps:
        for key in ("created_at", "updated_at"):
            if attrs.get(key):
                result[key] = attrs[key]
    return result


# ============== Resource formatters ==============


def format_generic(resource: dict, options: Optional[FormatOptions] = None) -> dict:
    """Flatten any resource: id plus its attributes."""
    return {"id": resource.get("id"), **(resource.get("attributes") or {})}


def format_project(resource: dict, options: Optional[FormatOptions] = None) -> dict:
    options = options or DEFAULT_OPTIONS
    attrs = resource.get("attributes") or {}
    result = {
        "id": resource.get("id"),
        "name": attrs.get("name"),
        "number": attrs.get("project_number"),
        "archived": bool(attrs.get("archived_at")),
        "budget": attrs.get("budget"),
    }
    company = resolve_included(options.included, "companies", relationship_id(resource, "company"))
    if company:
        result["company_name"] = company.get("name")
    result = _finish(result, resource, options, {"company_id": "company"})
    if options.compact:
        result = _compactify(result, ["budget"])
    return result


def format_task(resource: dict, options: Optional[FormatOptions] = None) -> dict:
    options = options or DEFAULT_OPTIONS
    attrs = resource.get("attributes") or {}
    result: dict[str, Any] = {
        "id": resource.get("id"),
        "title": attrs.get("title") or "Untitled",
        "number": attrs.get("number") or attrs.get("task_number"),
        "closed": bool(attrs.get("closed")),
        "due_date": attrs.get("due_date"),
        "description": _text(attrs.get("description"), options),
        "initial_estimate": attrs.get("initial_estimate"),
        "worked_time": attrs.get("worked_time"),
        "remaining_time": attrs.get("remaining_time"),
    }

    project_id = relationship_id(resource, "project")
    project = resolve_included(options.included, "projects", project_id)
    if project:
        result["project_name"] = project.get("name")
        result["project"] = {"id": project_id, "name": project.get("name"), "number": project.get("project_number")}
        project_item = next(
            (i for i in options.included if i.get("type") == "projects" and str(i.get("id")) == str(project_id)),
            {},
        )
        company_id = relationship_id(project_item, "company")
        company = resolve_included(options.included, "companies", company_id)
        if company:
            result["company"] = {"id": company_id, "name": company.get("name")}

    assignee = resolve_included(options.included, "people", relationship_id(resource, "assignee"))
    if assignee:
        result["assignee_name"] = person_name(assignee)

    status = resolve_included(options.included, "workflow_statuses", relationship_id(resource, "workflow_status"))
    if status:
        result["status_name"] = status.get("name")

    result = _finish(result, resource, options, {
        "project_id": "project",
        "assignee_id": "assignee",
        "task_list_id": "task_list",
    })
    if options.compact:
        result = _compactify(result, [
            "description", "initial_estimate", "worked_time", "remaining_time", "project", "company",
        ])
    return result


def format_time_entry(resource: dict, options: Optional[FormatOptions] = None) -> dict:
    options = options or DEFAULT_OPTIONS
    attrs = resource.get("attributes") or {}
    minutes = attrs.get("time") or 0
    result = {
        "id": resource.get("id"),
        "date": attrs.get("date"),
        "time_minutes": minutes,
        "time_hours": f"{minutes / 60:.2f}",
        "note": _text(attrs.get("note"), options),
        "billable_time": attrs.get("billable_time"),
        "approved": bool(attrs.get("approved")),
    }
    person = resolve_included(options.included, "people", relationship_id(resource, "person"))
    if person:
        result["person_name"] = person_name(person)
    service = resolve_included(options.included, "services", relationship_id(resource, "service"))
    if service:
        result["service_name"] = service.get("name")
    result = _finish(result, resource, options, {
        "person_id": "person",
        "service_id": "service",
        "task_id": "task",
    })
    if options.compact:
        result = _compactify(result, ["note", "billable_time", "approved"])
    return result


def format_person(resource: dict, options: Optional[FormatOptions] = None) -> dict:
    options = options or DEFAULT_OPTIONS
    attrs = resource.get("attributes") or {}
    result = {
        "id": resource.get("id"),
        "name": person_name(attrs),
        "first_name": attrs.get("first_name"),
        "last_name": attrs.get("last_name"),
        "email": attrs.get("email"),
        "title": attrs.get("title"),
    }
    result = _finish(result, resource, options, {})
    if options.compact:
        result = _compactify(result, ["title", "first_name", "last_name"])
    return result


def format_service(resource: dict, options: Optional[FormatOptions] = None) -> dict:
    options = options or DEFAULT_OPTIONS
    attrs = resource.get("attributes") or {}
    result = {
        "id": resource.get("id"),
        "name": attrs.get("name"),
        "budgeted_time": attrs.get("budgeted_time"),
        "worked_time": attrs.get("worked_time"),
        "billable": attrs.get("billable"),
    }
    result = _finish(result, resource, options, {"deal_id": "deal"})
    if options.compact:
        result = _compactify(result, ["budgeted_time", "worked_time"])
    return result


def format_company(resource: dict, options: Optional[FormatOptions] = None) -> dict:
    options = options or DEFAULT_OPTIONS
    attrs = resource.get("attributes") or {}
    result = {
        "id": resource.get("id"),
        "name": attrs.get("name"),
        "billing_name": attrs.get("billing_name"),
        "company_code": attrs.get("company_code"),
        "vat": attrs.get("vat"),
        "default_currency": attrs.get("default_currency"),
        "domain": attrs.get("domain"),
        "due_days": attrs.get("due_days"),
        "archived": bool(attrs.get("archived_at")),
    }
    result = _finish(result, resource, options, {})
    if options.compact:
        result = _compactify(result, ["billing_name", "domain", "due_days"])
    return result


def format_comment(resource: dict, options: Optional[FormatOptions] = None) -> dict:
    options = options or DEFAULT_OPTIONS
    attrs = resource.get("attributes") or {}
    result = {
        "id": resource.get("id"),
        "body": _text(attrs.get("body"), options),
        "commentable_type": attrs.get("commentable_type"),
        "draft": bool(attrs.get("draft")),
        "pinned": bool(attrs.get("pinned_at")),
        "hidden": bool(attrs.get("hidden")),
    }
    creator = resolve_included(options.included, "people", relationship_id(resource, "creator"))
    if creator:
        result["creator_name"] = person_name(creator)
    return _finish(result, resource, options, {
        "creator_id": "creator",
        "task_id": "task",
        "deal_id": "deal",
    })


def format_timer(resource: dict, options: Optional[FormatOptions] = None) -> dict:
    options = options or DEFAULT_OPTIONS
    attrs = resource.get("attributes") or {}
    result = {
        "id": resource.get("id"),
        "started_at": attrs.get("started_at"),
        "stopped_at": attrs.get("stopped_at"),
        "total_time": attrs.get("total_time"),
        "running": not attrs.get("stopped_at"),
    }
    return _finish(result, resource, options, {"time_entry_id": "time_entry"})


def format_deal(resource: dict, options: Optional[FormatOptions] = None) -> dict:
    options = options or DEFAULT_OPTIONS
    attrs = resource.get("attributes") or {}
    result = {
        "id": resource.get("id"),
        "name": attrs.get("name") or "",
        "number": str(attrs["number"]) if attrs.get("number") else None,
        "type": "budget" if attrs.get("budget") else "deal",
        "date": attrs.get("date"),
        "end_date": attrs.get("end_date"),
        "won_at": attrs.get("won_at"),
        "lost_at": attrs.get("lost_at"),
    }
    company = resolve_included(options.included, "companies", relationship_id(resource, "company"))
    if company:
        result["company_name"] = company.get("name")
    responsible = resolve_included(options.included, "people", relationship_id(resource, "responsible"))
    if responsible:
        result["responsible_name"] = person_name(responsible)
    status = resolve_included(options.included, "deal_statuses", relationship_id(resource, "deal_status"))
    if status:
        result["status_name"] = status.get("name")
    result = _finish(result, resource, options, {
        "company_id": "company",
        "responsible_id": "responsible",
        "status_id": "deal_status",
    })
    if options.compact:
        result = _compactify(result, ["won_at", "lost_at"])
    return result


BOOKING_METHODS = {1: "per_day", 2: "percentage", 3: "total_hours"}


def format_booking(resource: dict, options: Optional[FormatOptions] = None) -> dict:
    options = options or DEFAULT_OPTIONS
    attrs = resource.get("attributes") or {}
    result = {
        "id": resource.get("id"),
        "started_on": attrs.get("started_on"),
        "ended_on": attrs.get("ended_on"),
        "time": attrs.get("time"),
        "total_time": attrs.get("total_time"),
        "booking_method": BOOKING_METHODS.get(attrs.get("booking_method_id"), "per_day"),
        "draft": bool(attrs.get("draft")),
        "note": _text(attrs.get("note"), options),
        "approved_at": attrs.get("approved_at"),
        "rejected_at": attrs.get("rejected_at"),
        "rejected_reason": attrs.get("rejected_reason"),
    }
    person = resolve_included(options.included, "people", relationship_id(resource, "person"))
    if person:
        result["person_name"] = person_name(person)
    service = resolve_included(options.included, "services", relationship_id(resource, "service"))
    if service:
        result["service_name"] = service.get("name")
    result = _finish(result, resource, options, {
        "person_id": "person",
        "service_id": "service",
        "event_id": "event",
    })
    if options.compact:
        result = _compactify(result, ["approved_at", "rejected_at", "rejected_reason"])
    return result


def format_attachment(resource: dict, options: Optional[FormatOptions] = None) -> dict:
    options = options or DEFAULT_OPTIONS
    attrs = resource.get("attributes") or {}
    result = {
        "id": resource.get("id"),
        "name": attrs.get("name"),
        "content_type": attrs.get("content_type"),
        "size": attrs.get("size"),
        "size_human": format_bytes(attrs.get("size")),
        "url": attrs.get("url"),
        "attachable_type": attrs.get("attachable_type"),
    }
    return _finish(result, resource, options, {})


def format_page(resource: dict, options: Optional[FormatOptions] = None) -> dict:
    options = options or DEFAULT_OPTIONS
    attrs = resource.get("attributes") or {}
    result = {
        "id": resource.get("id"),
        "title": attrs.get("title"),
        "body": _text(attrs.get("body"), options),
        "public": bool(attrs.get("public")),
        "version_number": attrs.get("version_number"),
    }
    result = _finish(result, resource, options, {"project_id": "project", "parent_page_id": "parent_page"})
    if options.compact:
        result = _compactify(result, ["body"])
    return result


DISCUSSION_STATUSES = {1: "active", 2: "resolved"}


def format_discussion(resource: dict, options: Optional[FormatOptions] = None) -> dict:
    options = options or DEFAULT_OPTIONS
    attrs = resource.get("attributes") or {}
    result = {
        "id": resource.get("id"),
        "title": attrs.get("title"),
        "body": _text(attrs.get("body"), options),
        "status": DISCUSSION_STATUSES.get(attrs.get("status"), "active"),
        "resolved_at": attrs.get("resolved_at"),
    }
    return _finish(result, resource, options, {"page_id": "page"})


# ============== Lists ==============


def format_pagination(meta: Optional[dict]) -> Optional[dict]:
    """
    Pagination block for a list response.

    Returns None for single-page results so callers never see pagination
    metadata they cannot act on.
    """
    if not meta:
        return None
    total_pages = meta.get("total_pages") or 1
    if total_pages <= 1:
        return None
    return {
        "page": meta.get("current_page", 1),
        "total_pages": total_pages,
        "total_count": meta.get("total_count"),
    }


def format_list_response(
    items: list[dict],
    formatter: Formatter,
    meta: Optional[dict] = None,
    options: Optional[FormatOptions] = None,
) -> dict:
    result: dict[str, Any] = {"data": [formatter(item, options) for item in items]}
    pagination = format_pagination(meta)
    if pagination:
        result["meta"] = pagination
    return result
