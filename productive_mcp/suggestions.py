"""
Short, data-derived observations attached to responses as `_suggestions`.
"""

from typing import Optional

from productive_mcp.formatters import relationship_id
from productive_mcp.time_utils import days_overdue, today

WORKDAY_HOURS = 8
LONG_TIMER_MINUTES = 120


def _hours(minutes: float) -> str:
    return f"{round(minutes / 60, 1):g}"


def _is_closed(attrs: dict) -> bool:
    return bool(attrs.get("closed") or attrs.get("closed_at"))


def task_list_suggestions(tasks: list[dict]) -> list[str]:
    suggestions = []
    if not tasks:
        return suggestions

    overdue = 0
    unassigned = 0
    for task in tasks:
        attrs = task.get("attributes") or {}
        if days_overdue(attrs.get("due_date"), _is_closed(attrs)) > 0:
            overdue += 1
        if not relationship_id(task, "assignee"):
            unassigned += 1

    if overdue:
        suggestions.append(f"⚠️ {overdue} task(s) are overdue")
    if unassigned:
        suggestions.append(f"ℹ️ {unassigned} task(s) have no assignee")
    return suggestions


def task_get_suggestions(task: dict, included: Optional[list[dict]] = None) -> list[str]:
    suggestions = []
    if not task:
        return suggestions

    attrs = task.get("attributes") or {}
    days = days_overdue(attrs.get("due_date"), _is_closed(attrs))
    if days:
        suggestions.append(f"⚠️ Task is {days} day(s) overdue")

    # Only meaningful when time entries were sideloaded
    if included:
        entries = [
            item for item in included
            if item.get("type") == "time_entries" and relationship_id(item, "task") == task.get("id")
        ]
        if not entries:
            suggestions.append("ℹ️ No time entries on this task")
    return suggestions


def time_list_suggestions(entries: list[dict], filter: Optional[dict] = None) -> list[str]:
    suggestions = []
    if not entries:
        return suggestions

    total = sum((entry.get("attributes") or {}).get("time") or 0 for entry in entries)
    filter = filter or {}
    current = today()
    if filter.get("after") == current and filter.get("before") == current:
        suggestions.append(f"📊 {_hours(total)}h/{WORKDAY_HOURS}h logged today")
    elif total > 0:
        suggestions.append(f"📊 Total: {_hours(total)}h logged")
    return suggestions


def my_day_suggestions(summary: dict) -> list[str]:
    suggestions = []
    time = summary.get("time") or {}
    if not time.get("logged_today_minutes") and not time.get("entries_today"):
        suggestions.append("⚠️ No time logged today")
    for timer in summary.get("timers") or []:
        if (timer.get("total_time") or 0) > LONG_TIMER_MINUTES:
            suggestions.append(f"⏱️ Timer running for {_hours(timer['total_time'])}h, remember to stop it")
    return suggestions
