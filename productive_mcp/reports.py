"""
Reports: GET /reports/{report_type} with per-type grouping and filter names.
"""

import logging
from typing import Optional

from productive_mcp import errors
from productive_mcp.formatters import format_generic, format_list_response
from productive_mcp.handlers import HandlerContext
from productive_mcp.includes import merge_includes

logger = logging.getLogger(__name__)

REPORT_TYPES = [
    "time_reports",
    "project_reports",
    "budget_reports",
    "person_reports",
    "invoice_reports",
    "payment_reports",
    "service_reports",
    "task_reports",
    "company_reports",
    "deal_reports",
    "timesheet_reports",
]

DEFAULT_GROUPS = {
    "time_reports": "person",
    "project_reports": "project",
    "budget_reports": "deal",
    "person_reports": "person",
    "invoice_reports": "invoice",
    "payment_reports": "payment",
    "service_reports": "service",
    "task_reports": "task",
    "company_reports": "company",
    "deal_reports": "deal",
}

DEFAULT_INCLUDES = {
    "project_reports": ["project"],
    "budget_reports": ["deal"],
    "person_reports": ["person"],
    "invoice_reports": ["invoice"],
    "payment_reports": ["payment"],
    "service_reports": ["service"],
    "task_reports": ["task"],
    "company_reports": ["company"],
    "deal_reports": ["deal"],
    "timesheet_reports": ["person"],
}

REPORT_RESOLVABLE_FIELDS = {
    "person_id": "person",
    "project_id": "project",
    "company_id": "company",
}


def build_report_filters(report_type: str, args: dict, base: Optional[dict] = None) -> dict[str, str]:
    """
    Map generic report arguments to the filter names each report type uses.

    Date bounds are `after`/`before` except for invoice reports
    (`invoice_date_*`) and payment/deal reports (`date_*`). Task reports
    filter people by `assignee_id`; deal reports use `deal_status_id` for
    both deal_id and status.
    """
    filter = dict(base or {})

    if report_type == "invoice_reports":
        after_key, before_key = "invoice_date_after", "invoice_date_before"
    elif report_type in ("payment_reports", "deal_reports"):
        after_key, before_key = "date_after", "date_before"
    else:
        after_key, before_key = "after", "before"
    if args.get("from"):
        filter[after_key] = args["from"]
    if args.get("to"):
        filter[before_key] = args["to"]

    if args.get("person_id"):
        filter["assignee_id" if report_type == "task_reports" else "person_id"] = str(args["person_id"])
    if args.get("project_id"):
        filter["project_id"] = str(args["project_id"])
    if args.get("company_id"):
        filter["company_id"] = str(args["company_id"])
    if args.get("deal_id"):
        filter["deal_status_id" if report_type == "deal_reports" else "deal_id"] = str(args["deal_id"])
    if args.get("status"):
        filter["deal_status_id" if report_type == "deal_reports" else "status"] = str(args["status"])
    return filter


async def handle_reports(action: str, args: dict, ctx: HandlerContext) -> dict:
    if action != "get":
        raise errors.invalid_action(action, "reports", ["get"])

    report_type = args.get("report_type")
    if not report_type:
        raise errors.missing_report_type(REPORT_TYPES)
    if report_type not in REPORT_TYPES:
        raise errors.invalid_report_type(report_type, REPORT_TYPES)

    args = await ctx.resolver.resolve_fields(args, REPORT_RESOLVABLE_FIELDS)
    filter = build_report_filters(report_type, args, ctx.filter)
    filter = await ctx.resolver.resolve_filter(filter)
    response = await ctx.client.get_report(
        report_type,
        page=ctx.page or 1,
        per_page=ctx.per_page,
        filter=filter,
        group=args.get("group") or DEFAULT_GROUPS.get(report_type),
        include=merge_includes(DEFAULT_INCLUDES.get(report_type), ctx.include),
    )
    payload = format_list_response(
        response.get("data") or [],
        format_generic,
        response.get("meta"),
        ctx.format_options(included=response.get("included")),
    )
    payload["report_type"] = report_type
    return ctx.with_resolved(payload)
