"""
Dashboard-style summaries aggregating several resources.

my_day         open/overdue tasks, today's time and running timers of the current user
project_health task counts, budget burn and recent activity of one project
team_pulse     who logged time today and who has a timer running
"""

import asyncio
import logging

from productive_mcp import errors
from productive_mcp.errors import UserInputError
from productive_mcp.formatters import person_name, relationship_id, resolve_included
from productive_mcp.handlers import HandlerContext
from productive_mcp.suggestions import my_day_suggestions
from productive_mcp.time_utils import days_from_today, today, utc_now

logger = logging.getLogger(__name__)

MAX_ITEMS = 20
MAX_PEOPLE = 50


def _total_count(response: dict) -> int:
    meta = response.get("meta") or {}
    return meta.get("total_count", len(response.get("data") or []))


def summary_task(task: dict, included: list[dict]) -> dict:
    attrs = task.get("attributes") or {}
    project = resolve_included(included, "projects", relationship_id(task, "project")) or {}
    status = resolve_included(included, "workflow_statuses", relationship_id(task, "workflow_status")) or {}
    return {
        "id": task.get("id"),
        "title": attrs.get("title"),
        "project_name": project.get("name"),
        "due_date": attrs.get("due_date"),
        "status": status.get("name"),
    }


def summary_time_entry(entry: dict, included: list[dict]) -> dict:
    attrs = entry.get("attributes") or {}
    service = resolve_included(included, "services", relationship_id(entry, "service")) or {}
    project = resolve_included(included, "projects", relationship_id(entry, "project")) or {}
    return {
        "id": entry.get("id"),
        "time": attrs.get("time"),
        "service_name": service.get("name"),
        "project_name": project.get("name"),
        "note": attrs.get("note"),
    }


def summary_timer(timer: dict, included: list[dict]) -> dict:
    attrs = timer.get("attributes") or {}
    service_name = None
    entry_id = relationship_id(timer, "time_entry")
    for item in included:
        if item.get("type") == "time_entries" and str(item.get("id")) == str(entry_id):
            service = resolve_included(included, "services", relationship_id(item, "service")) or {}
            service_name = service.get("name")
    return {
        "id": timer.get("id"),
        "started_at": attrs.get("started_at"),
        "total_time": attrs.get("total_time") or 0,
        "service_name": service_name,
    }


async def my_day(ctx: HandlerContext, args: dict) -> dict:
    user_id = ctx.credentials.user_id if ctx.credentials else None
    if not user_id:
        raise errors.no_user_id_configured()

    current = today()
    client = ctx.client
    open_tasks, overdue_tasks, entries, timers = await asyncio.gather(
        client.list_resources("tasks", page=1, per_page=MAX_ITEMS,
                              filter={"assignee_id": user_id, "status": "1"},
                              include=["project", "workflow_status"], sort="due_date"),
        client.list_resources("tasks", page=1, per_page=MAX_ITEMS,
                              filter={"assignee_id": user_id, "status": "1", "due_date_before": days_from_today(1)},
                              include=["project", "workflow_status"], sort="due_date"),
        client.list_resources("time_entries", page=1, per_page=MAX_ITEMS,
                              filter={"person_id": user_id, "after": current, "before": current}),
        client.list_resources("timers", page=1, per_page=10,
                              filter={"person_id": user_id}, include=["time_entry"]),
    )

    included = [
        *(open_tasks.get("included") or []),
        *(overdue_tasks.get("included") or []),
        *(entries.get("included") or []),
        *(timers.get("included") or []),
    ]
    # The API filter is "due before tomorrow"; only tasks due before today are overdue
    overdue_ids = {
        task.get("id") for task in overdue_tasks.get("data") or []
        if ((task.get("attributes") or {}).get("due_date") or "") and task["attributes"]["due_date"] < current
    }
    entry_items = entries.get("data") or []

    result = {
        "summary_type": "my_day",
        "generated_at": utc_now().isoformat(),
        "user_id": user_id,
        "tasks": {
            "open": _total_count(open_tasks),
            "overdue": len(overdue_ids),
            "items": [summary_task(t, included) for t in (open_tasks.get("data") or [])[:MAX_ITEMS]],
        },
        "time": {
            "logged_today_minutes": sum((e.get("attributes") or {}).get("time") or 0 for e in entry_items),
            "entries_today": _total_count(entries),
            "items": [summary_time_entry(e, included) for e in entry_items[:MAX_ITEMS]],
        },
        "timers": [summary_timer(t, included) for t in timers.get("data") or []],
    }
    if not ctx.no_hints:
        suggestions = my_day_suggestions(result)
        if suggestions:
            result["_suggestions"] = suggestions
    return result


async def project_health(ctx: HandlerContext, args: dict) -> dict:
    if not args.get("project_id"):
        raise UserInputError("project_id is required for project_health summary", [
            "Provide the project_id parameter",
            'You can find project IDs using resource="projects" action="list"',
            'Or use a project number like "PRJ-123"',
        ])

    project_id = await ctx.resolver.resolve_value(args["project_id"], "project", field="project_id")
    client = ctx.client
    project, open_tasks, overdue_tasks, services, recent = await asyncio.gather(
        client.get_resource("projects", project_id),
        client.list_resources("tasks", page=1, per_page=MAX_ITEMS,
                              filter={"project_id": project_id, "status": "1"},
                              include=["workflow_status", "assignee"], sort="due_date"),
        client.list_resources("tasks", page=1, per_page=MAX_ITEMS,
                              filter={"project_id": project_id, "status": "1", "overdue_status": "2"},
                              include=["workflow_status", "assignee"], sort="due_date"),
        client.list_resources("services", page=1, per_page=100, filter={"project_id": project_id}),
        client.list_resources("time_entries", page=1, per_page=100,
                              filter={"project_id": project_id, "after": days_from_today(-7), "before": today()}),
    )

    budget_services = []
    for service in services.get("data") or []:
        attrs = service.get("attributes") or {}
        budgeted = attrs.get("budgeted_time") or 0
        worked = attrs.get("worked_time") or 0
        budget_services.append({
            "id": service.get("id"),
            "name": attrs.get("name"),
            "budgeted_time": budgeted,
            "worked_time": worked,
            "remaining_time": max(0, budgeted - worked),
        })
    total_budgeted = sum(s["budgeted_time"] for s in budget_services)
    total_worked = sum(s["worked_time"] for s in budget_services)

    included = [*(open_tasks.get("included") or []), *(overdue_tasks.get("included") or [])]
    project_data = project.get("data") or {}
    project_attrs = project_data.get("attributes") or {}
    result = {
        "summary_type": "project_health",
        "generated_at": utc_now().isoformat(),
        "project": {
            "id": project_data.get("id", project_id),
            "name": project_attrs.get("name"),
            "project_number": project_attrs.get("project_number"),
        },
        "tasks": {
            "open": _total_count(open_tasks),
            "overdue": _total_count(overdue_tasks),
            "items": [summary_task(t, included) for t in (open_tasks.get("data") or [])[:MAX_ITEMS]],
        },
        "budget": {
            "services": budget_services,
            "total_budgeted_minutes": total_budgeted,
            "total_worked_minutes": total_worked,
            "burn_rate_percent": round(total_worked / total_budgeted * 100) if total_budgeted else 0,
        },
        "recent_activity": {
            "time_entries_last_7_days": _total_count(recent),
            "total_time_last_7_days_minutes": sum(
                (e.get("attributes") or {}).get("time") or 0 for e in recent.get("data") or []
            ),
        },
    }
    return ctx.with_resolved(result)


async def team_pulse(ctx: HandlerContext, args: dict) -> dict:
    current = today()
    client = ctx.client
    people, entries, timers = await asyncio.gather(
        client.list_resources("people", page=1, per_page=200, filter={"status": "1", "person_type": "1"}),
        client.list_resources("time_entries", page=1, per_page=500, filter={"after": current, "before": current}),
        client.list_resources("timers", page=1, per_page=100, include=["time_entry"]),
    )
    included = timers.get("included") or []
    people_by_id = {str(p.get("id")): p for p in people.get("data") or []}

    time_by_person: dict[str, dict] = {}
    for entry in entries.get("data") or []:
        person_id = relationship_id(entry, "person")
        if not person_id:
            continue
        bucket = time_by_person.setdefault(str(person_id), {"entries": 0, "minutes": 0})
        bucket["entries"] += 1
        bucket["minutes"] += (entry.get("attributes") or {}).get("time") or 0

    timer_by_person: dict[str, dict] = {}
    for timer in timers.get("data") or []:
        person_id = (timer.get("attributes") or {}).get("person_id") or relationship_id(timer, "person")
        # First timer per person is the most recent one
        if person_id is not None:
            timer_by_person.setdefault(str(person_id), timer)

    summaries = []
    for person_id in list(time_by_person) + [p for p in timer_by_person if p not in time_by_person]:
        person = people_by_id.get(person_id)
        if not person:
            continue
        attrs = person.get("attributes") or {}
        bucket = time_by_person.get(person_id, {"entries": 0, "minutes": 0})
        timer = timer_by_person.get(person_id)
        summaries.append({
            "person_id": person_id,
            "person_name": person_name(attrs),
            "email": attrs.get("email"),
            "logged_today_minutes": bucket["minutes"],
            "entries_today": bucket["entries"],
            "active_timer": summary_timer(timer, included) if timer else None,
        })
    summaries.sort(key=lambda s: s["logged_today_minutes"], reverse=True)

    return {
        "summary_type": "team_pulse",
        "generated_at": utc_now().isoformat(),
        "date": current,
        "team": {
            "total_active": _total_count(people),
            "tracking_today": sum(1 for s in summaries if s["entries_today"]),
            "with_active_timer": sum(1 for s in summaries if s["active_timer"]),
        },
        "people": summaries[:MAX_PEOPLE],
    }


SUMMARY_HANDLERS = {
    "my_day": my_day,
    "project_health": project_health,
    "team_pulse": team_pulse,
}


async def handle_summaries(action: str, args: dict, ctx: HandlerContext) -> dict:
    handler = SUMMARY_HANDLERS.get(action)
    if handler is None:
        raise errors.invalid_action(action, "summaries", list(SUMMARY_HANDLERS))
    logger.debug(f"Building {action} summary")
    return await handler(ctx, args)
