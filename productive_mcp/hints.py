"""
Contextual next-step hints attached to single-resource responses as `_hints`.

Each builder returns {"related_resources": [...], "common_actions": [...]}
with ready-to-send tool arguments in every example.
"""

from typing import Optional

from productive_mcp.time_utils import today


def _related(resource: str, description: str, **filter) -> dict:
    return {
        "resource": resource,
        "description": description,
        "example": {"resource": resource, "action": "list", "filter": filter},
    }


def _action(label: str, **example) -> dict:
    return {"action": label, "example": example}


def task_hints(task_id: str, service_id: Optional[str] = None) -> dict:
    hints = {
        "related_resources": [
            _related("comments", "Get comments on this task", task_id=task_id),
            _related("time", "Get time entries logged on this task", task_id=task_id),
            _related("tasks", "Get subtasks of this task", parent_task_id=task_id),
        ],
        "common_actions": [
            _action("Add a comment", resource="comments", action="create", task_id=task_id, body="<your comment>"),
            _action("Get full task context in one call", resource="tasks", action="context", id=task_id),
        ],
    }
    if service_id:
        hints["common_actions"].append(_action(
            "Log time on this task",
            resource="time",
            action="create",
            service_id=service_id,
            task_id=task_id,
            date=today(),
            time=60,
            note="<description of work>",
        ))
    return hints


def project_hints(project_id: str) -> dict:
    return {
        "related_resources": [
            _related("tasks", "Get tasks in this project", project_id=project_id),
            _related("services", "Get services (budget lines) for this project", project_id=project_id),
            _related("time", "Get time entries for this project", project_id=project_id),
            _related("deals", "Get deals/budgets for this project", project_id=project_id),
        ],
        "common_actions": [
            _action(
                "Create a task",
                resource="tasks",
                action="create",
                project_id=project_id,
                task_list_id="<task_list_id>",
                title="<task title>",
            ),
            _action("Check project health", resource="summaries", action="project_health", project_id=project_id),
        ],
    }


def deal_hints(deal_id: str) -> dict:
    return {
        "related_resources": [
            _related("comments", "Get comments on this deal/budget", deal_id=deal_id),
            _related("services", "Get services (budget lines) of this deal", deal_id=deal_id),
            _related("time", "Get time entries logged against this deal", deal_id=deal_id),
        ],
        "common_actions": [
            _action("Add a comment", resource="comments", action="create", deal_id=deal_id, body="<your comment>"),
        ],
    }


def time_entry_hints(entry_id: str, service_id: Optional[str] = None) -> dict:
    hints = {
        "related_resources": [],
        "common_actions": [
            _action("Update this time entry", resource="time", action="update", id=entry_id, time=60),
            _action("Delete this time entry", resource="time", action="delete", id=entry_id),
        ],
    }
    if service_id:
        hints["related_resources"].append(
            _related("time", "Get other time entries on the same service", service_id=service_id)
        )
    return hints


def person_hints(person_id: str) -> dict:
    return {
        "related_resources": [
            _related("tasks", "Get tasks assigned to this person", assignee_id=person_id),
            _related("time", "Get time entries of this person", person_id=person_id),
            _related("bookings", "Get bookings of this person", person_id=person_id),
        ],
        "common_actions": [],
    }


def company_hints(company_id: str) -> dict:
    return {
        "related_resources": [
            _related("projects", "Get projects of this company", company_id=company_id),
            _related("deals", "Get deals with this company", company_id=company_id),
        ],
        "common_actions": [
            _action("Add a comment", resource="comments", action="create", company_id=company_id, body="<your comment>"),
        ],
    }


def comment_hints(comment_id: str, commentable_type: Optional[str] = None,
                  commentable_id: Optional[str] = None) -> dict:
    hints = {
        "related_resources": [
            _related("attachments", "Get files attached to this comment", comment_id=comment_id),
        ],
        "common_actions": [
            _action("Edit this comment", resource="comments", action="update", id=comment_id, body="<new body>"),
        ],
    }
    if commentable_type and commentable_id:
        resource = "tasks" if commentable_type == "task" else f"{commentable_type}s"
        hints["related_resources"].append({
            "resource": resource,
            "description": f"Get the {commentable_type} this comment belongs to",
            "example": {"resource": resource, "action": "get", "id": commentable_id},
        })
    return hints


def timer_hints(timer_id: str) -> dict:
    return {
        "related_resources": [],
        "common_actions": [_action("Stop this timer", resource="timers", action="stop", id=timer_id)],
    }


def booking_hints(booking_id: str, person_id: Optional[str] = None) -> dict:
    hints = {
        "related_resources": [],
        "common_actions": [
            _action("Update this booking", resource="bookings", action="update", id=booking_id, time=240),
        ],
    }
    if person_id:
        hints["related_resources"].append(
            _related("bookings", "Get other bookings of this person", person_id=person_id)
        )
    return hints


def service_hints(service_id: str) -> dict:
    return {
        "related_resources": [
            _related("time", "Get time entries on this service", service_id=service_id),
        ],
        "common_actions": [
            _action("Start a timer", resource="timers", action="start", service_id=service_id),
        ],
    }


def page_hints(page_id: str) -> dict:
    return {
        "related_resources": [
            _related("discussions", "Get discussions on this page", page_id=page_id),
        ],
        "common_actions": [
            _action("Start a discussion", resource="discussions", action="create", page_id=page_id, body="<text>"),
        ],
    }


def discussion_hints(discussion_id: str, page_id: Optional[str] = None) -> dict:
    hints = {
        "related_resources": [],
        "common_actions": [
            _action("Resolve this discussion", resource="discussions", action="resolve", id=discussion_id),
            _action("Reopen this discussion", resource="discussions", action="reopen", id=discussion_id),
        ],
    }
    if page_id:
        hints["related_resources"].append({
            "resource": "pages",
            "description": "Get the page this discussion is on",
            "example": {"resource": "pages", "action": "get", "id": page_id},
        })
    return hints


def attachment_hints(attachment_id: str, attachable_type: Optional[str] = None) -> dict:
    return {
        "related_resources": [],
        "common_actions": [
            _action("Delete this attachment", resource="attachments", action="delete", id=attachment_id),
        ],
    }
