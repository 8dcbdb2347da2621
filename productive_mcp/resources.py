"""
Declarative resource descriptors.

Each Productive resource exposed by the `productive` tool is described
here as data: endpoint, allowed actions, fields accepted on create and
update, default includes, ID-bearing fields eligible for resolution and
the formatter used for output. The generic handler in handlers.py reads
these descriptors; only actions that cannot be expressed this way get
dedicated code.
"""

from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field

from productive_mcp import formatters, hints
from productive_mcp.errors import UserInputError, missing_booking_target, missing_comment_target
from productive_mcp.formatters import relationship_id


class ResourceDescriptor(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    display_name: str
    description: str = ""
    endpoint: str
    json_type: str
    actions: list[str]
    formatter: Callable[..., dict] = formatters.format_generic
    hints: Optional[Callable[[dict, str], dict]] = None

    default_include: dict[str, list[str]] = Field(default_factory=dict)
    list_sort: Optional[str] = None

    create_required: list[str] = Field(default_factory=list)
    create_attributes: list[str] = Field(default_factory=list)
    # argument name -> (relationship name, JSON:API type)
    create_relationships: dict[str, tuple[str, str]] = Field(default_factory=dict)
    create_validator: Optional[Callable[[dict], None]] = None
    update_attributes: list[str] = Field(default_factory=list)
    update_relationships: dict[str, tuple[str, str]] = Field(default_factory=dict)

    # argument name -> resolvable type, for create/update bodies
    resolvable_fields: dict[str, str] = Field(default_factory=dict)
    # top-level arguments copied into the list filter
    filter_args: list[str] = Field(default_factory=list)
    # argument name -> {friendly value: API value}
    filter_value_maps: dict[str, dict[str, str]] = Field(default_factory=dict)
    # type used by the `resolve` action and by non-numeric `id` values
    resolve_type: Optional[str] = None

    @property
    def update_fields(self) -> list[str]:
        return self.update_attributes + list(self.update_relationships)

    def default_includes_for(self, action: str) -> list[str]:
        return self.default_include.get(action, [])


def _require_comment_target(args: dict) -> None:
    if not (args.get("task_id") or args.get("deal_id") or args.get("company_id")):
        raise missing_comment_target()


def _require_booking_target(args: dict) -> None:
    if not (args.get("service_id") or args.get("event_id")):
        raise missing_booking_target()


def _comment_hints(data: dict, comment_id: str) -> dict:
    commentable_type = (data.get("attributes") or {}).get("commentable_type")
    commentable_id = relationship_id(data, commentable_type) if commentable_type else None
    return hints.comment_hints(comment_id, commentable_type, commentable_id)


RESOURCES: dict[str, ResourceDescriptor] = {}


def register(descriptor: ResourceDescriptor) -> ResourceDescriptor:
    RESOURCES[descriptor.name] = descriptor
    return descriptor


register(ResourceDescriptor(
    name="projects",
    display_name="project",
    description="Projects, with budgets and task lists",
    endpoint="projects",
    json_type="projects",
    actions=["list", "get", "resolve", "context"],
    formatter=formatters.format_project,
    hints=lambda data, id: hints.project_hints(id),
    filter_args=["company_id"],
    resolve_type="project",
))

register(ResourceDescriptor(
    name="tasks",
    display_name="task",
    description="Tasks in projects",
    endpoint="tasks",
    json_type="tasks",
    actions=["list", "get", "create", "update", "resolve", "context"],
    formatter=formatters.format_task,
    hints=lambda data, id: hints.task_hints(id, relationship_id(data, "service")),
    default_include={"list": ["project", "project.company"], "get": ["project", "project.company"]},
    create_required=["title", "project_id", "task_list_id"],
    create_attributes=["title", "description", "due_date"],
    create_relationships={
        "project_id": ("project", "projects"),
        "task_list_id": ("task_list", "task_lists"),
        "assignee_id": ("assignee", "people"),
    },
    update_attributes=["title", "description", "due_date", "closed"],
    update_relationships={"assignee_id": ("assignee", "people")},
    resolvable_fields={"project_id": "project", "assignee_id": "person"},
    filter_args=["project_id", "assignee_id", "company_id"],
))

register(ResourceDescriptor(
    name="time",
    display_name="time entry",
    description="Time entries (durations are in minutes)",
    endpoint="time_entries",
    json_type="time_entries",
    actions=["list", "get", "create", "update", "delete", "resolve"],
    formatter=formatters.format_time_entry,
    hints=lambda data, id: hints.time_entry_hints(id, relationship_id(data, "service")),
    list_sort="-date",
    create_required=["person_id", "service_id", "time", "date"],
    create_attributes=["time", "date", "note"],
    create_relationships={
        "person_id": ("person", "people"),
        "service_id": ("service", "services"),
        "task_id": ("task", "tasks"),
    },
    update_attributes=["time", "date", "note"],
    resolvable_fields={"project_id": "project", "person_id": "person", "service_id": "service"},
    filter_args=["person_id", "project_id", "service_id", "task_id"],
))

register(ResourceDescriptor(
    name="people",
    display_name="person",
    description="People in the organization",
    endpoint="people",
    json_type="people",
    actions=["list", "get", "me", "resolve"],
    formatter=formatters.format_person,
    hints=lambda data, id: hints.person_hints(id),
    resolve_type="person",
))

register(ResourceDescriptor(
    name="services",
    display_name="service",
    description="Services (budget lines) of deals and projects",
    endpoint="services",
    json_type="services",
    actions=["list", "get"],
    formatter=formatters.format_service,
    hints=lambda data, id: hints.service_hints(id),
    filter_args=["project_id", "deal_id"],
))

register(ResourceDescriptor(
    name="companies",
    display_name="company",
    description="Client companies",
    endpoint="companies",
    json_type="companies",
    actions=["list", "get", "create", "update", "resolve"],
    formatter=formatters.format_company,
    hints=lambda data, id: hints.company_hints(id),
    create_required=["name"],
    create_attributes=["name"],
    update_attributes=["name"],
    resolve_type="company",
))

register(ResourceDescriptor(
    name="comments",
    display_name="comment",
    description="Comments on tasks, deals and companies",
    endpoint="comments",
    json_type="comments",
    actions=["list", "get", "create", "update"],
    formatter=formatters.format_comment,
    hints=_comment_hints,
    default_include={"list": ["creator"], "get": ["creator"]},
    create_required=["body"],
    create_attributes=["body"],
    create_relationships={
        "task_id": ("task", "tasks"),
        "deal_id": ("deal", "deals"),
        "company_id": ("company", "companies"),
    },
    create_validator=_require_comment_target,
    update_attributes=["body"],
    resolvable_fields={"company_id": "company", "deal_id": "deal"},
    filter_args=["task_id", "deal_id", "company_id"],
))

register(ResourceDescriptor(
    name="timers",
    display_name="timer",
    description="Running timers",
    endpoint="timers",
    json_type="timers",
    actions=["list", "get", "start", "stop"],
    formatter=formatters.format_timer,
    hints=lambda data, id: hints.timer_hints(id),
    filter_args=["person_id"],
))

register(ResourceDescriptor(
    name="deals",
    display_name="deal",
    description="Deals and budgets (filter.type: 1 = deal, 2 = budget)",
    endpoint="deals",
    json_type="deals",
    actions=["list", "get", "create", "update", "resolve", "context"],
    formatter=formatters.format_deal,
    hints=lambda data, id: hints.deal_hints(id),
    default_include={
        "list": ["company", "deal_status", "responsible"],
        "get": ["company", "deal_status", "responsible"],
    },
    create_required=["name", "company_id"],
    create_attributes=["name", "date", "end_date"],
    create_relationships={
        "company_id": ("company", "companies"),
        "responsible_id": ("responsible", "people"),
    },
    update_attributes=["name", "date", "end_date"],
    update_relationships={"responsible_id": ("responsible", "people")},
    resolvable_fields={"company_id": "company", "responsible_id": "person"},
    filter_args=["company_id", "project_id"],
    filter_value_maps={"type": {"deal": "1", "budget": "2"}},
    resolve_type="deal",
))

register(ResourceDescriptor(
    name="bookings",
    display_name="booking",
    description="Resource planning bookings",
    endpoint="bookings",
    json_type="bookings",
    actions=["list", "get", "create", "update"],
    formatter=formatters.format_booking,
    hints=lambda data, id: hints.booking_hints(id, relationship_id(data, "person")),
    default_include={"list": ["person", "service"], "get": ["person", "service"]},
    create_required=["person_id", "started_on", "ended_on"],
    create_attributes=["started_on", "ended_on", "time", "note"],
    create_relationships={
        "person_id": ("person", "people"),
        "service_id": ("service", "services"),
        "event_id": ("event", "events"),
    },
    create_validator=_require_booking_target,
    update_attributes=["started_on", "ended_on", "time", "note"],
    resolvable_fields={"person_id": "person", "service_id": "service"},
    filter_args=["person_id"],
))

register(ResourceDescriptor(
    name="attachments",
    display_name="attachment",
    description="Files attached to tasks, comments and deals",
    endpoint="attachments",
    json_type="attachments",
    actions=["list", "get", "delete"],
    formatter=formatters.format_attachment,
    hints=lambda data, id: hints.attachment_hints(id, (data.get("attributes") or {}).get("attachable_type")),
    filter_args=["task_id", "comment_id", "deal_id"],
))

register(ResourceDescriptor(
    name="pages",
    display_name="page",
    description="Documentation pages of projects",
    endpoint="pages",
    json_type="pages",
    actions=["list", "get", "create", "update", "delete"],
    formatter=formatters.format_page,
    hints=lambda data, id: hints.page_hints(id),
    create_required=["title", "project_id"],
    create_attributes=["title", "body"],
    create_relationships={
        "project_id": ("project", "projects"),
        "parent_page_id": ("parent_page", "pages"),
    },
    update_attributes=["title", "body"],
    resolvable_fields={"project_id": "project"},
    filter_args=["project_id"],
))

register(ResourceDescriptor(
    name="discussions",
    display_name="discussion",
    description="Discussions on pages",
    endpoint="discussions",
    json_type="discussions",
    actions=["list", "get", "create", "update", "delete", "resolve", "reopen"],
    formatter=formatters.format_discussion,
    hints=lambda data, id: hints.discussion_hints(id, relationship_id(data, "page")),
    create_required=["body", "page_id"],
    create_attributes=["body", "title"],
    create_relationships={"page_id": ("page", "pages")},
    update_attributes=["title", "body"],
    filter_args=["page_id", "status"],
    filter_value_maps={"status": {"active": "1", "resolved": "2"}},
))

# Resources handled by dedicated modules; listed for validation and help
SPECIAL_RESOURCES: dict[str, dict[str, Any]] = {
    "reports": {"actions": ["get"], "description": "Aggregated reports (time, budgets, invoices, ...)"},
    "summaries": {
        "actions": ["my_day", "project_health", "team_pulse"],
        "description": "Dashboard-style summaries combining several resources",
    },
    "batch": {"actions": ["run"], "description": "Run up to 10 operations concurrently"},
    "search": {"actions": ["run"], "description": "Search projects, companies, people, tasks and deals at once"},
}

RETIRED_RESOURCES: dict[str, str] = {
    "budgets": "The budgets resource was removed. Budgets are deals: use resource=deals with filter.type=2",
}

VALID_RESOURCES: list[str] = list(RESOURCES) + list(SPECIAL_RESOURCES)


def get_descriptor(name: Optional[str]) -> Optional[ResourceDescriptor]:
    return RESOURCES.get(name or "")


def retired_resource_error(name: str) -> UserInputError:
    return UserInputError(
        RETIRED_RESOURCES[name],
        ['Example: resource="deals" action="list" filter={"type": "2"}'],
    )
