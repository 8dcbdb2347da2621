"""
Error types and user-facing error messages.

UserInputError covers anything that can be fixed by changing the tool
arguments. It is raised before any request reaches the API, except for
ResolutionError, which needs one lookup to detect.
"""

import re
from typing import Optional


class UserInputError(Exception):
    """Invalid tool arguments, with optional hints on how to fix them."""

    def __init__(self, message: str, hints: Optional[list[str]] = None):
        super().__init__(message)
        self.message = message
        self.hints = hints or []

    def to_formatted_message(self) -> str:
        text = f"**Input Error:** {self.message}"
        if self.hints:
            text += "\n\n**Hints:**\n" + "\n".join(f"- {hint}" for hint in self.hints)
        return text


class ResolutionError(UserInputError):
    """A human-friendly identifier matched zero or several resources."""

    def __init__(
        self,
        message: str,
        query: str,
        resource_type: str,
        candidates: Optional[list[dict]] = None,
        hints: Optional[list[str]] = None,
    ):
        super().__init__(message, hints)
        self.query = query
        self.resource_type = resource_type
        self.candidates = candidates or []


class ProductiveApiError(Exception):
    """Non-2xx response from the Productive API."""

    def __init__(self, message: str, status_code: Optional[int] = None, detail=None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


_STATUS_RE = re.compile(r"\b(\d{3})\b")


def extract_status_code(message: str) -> Optional[int]:
    """Pull an HTTP status out of an error message such as 'API request failed: 404 ...'."""
    match = _STATUS_RE.search(message)
    if match:
        return int(match.group(1))
    return None


# ============== Message factories ==============


def missing_id(action: str) -> UserInputError:
    return UserInputError(
        f"id is required for {action} action",
        [
            'Use action="list" first to find the resource ID',
            f'Then use action="{action}" with the id parameter',
        ],
    )


def missing_required_fields(resource: str, fields: list[str]) -> UserInputError:
    verb = "is" if len(fields) == 1 else "are"
    return UserInputError(
        f"{', '.join(fields)} {verb} required for creating {resource}",
        [f"Provide: {', '.join(fields)}", 'Use action="help" for field documentation'],
    )


def invalid_action(action: str, resource: str, valid_actions: list[str]) -> UserInputError:
    return UserInputError(
        f'Invalid action "{action}" for {resource}',
        [
            f"Valid actions are: {', '.join(valid_actions)}",
            f'Use action="help" with resource="{resource}" for detailed documentation',
        ],
    )


def unknown_resource(resource: Optional[str], valid_resources: list[str]) -> UserInputError:
    return UserInputError(
        f"Unknown resource: {resource}",
        [f"Valid resources are: {', '.join(valid_resources)}", 'Use action="help" for an overview'],
    )


def missing_report_type(valid_types: list[str]) -> UserInputError:
    return UserInputError(
        "report_type is required for reports",
        [f"Valid report types are: {', '.join(valid_types)}"],
    )


def invalid_report_type(report_type: str, valid_types: list[str]) -> UserInputError:
    return UserInputError(
        f'Invalid report_type "{report_type}"',
        [f"Valid report types are: {', '.join(valid_types)}"],
    )


def missing_service_for_timer() -> UserInputError:
    return UserInputError(
        "service_id or time_entry_id is required to start a timer",
        [
            'Use resource="services" action="list" to find a service ID',
            "Or pass time_entry_id to resume tracking on an existing entry",
        ],
    )


def no_user_id_configured() -> UserInputError:
    return UserInputError(
        "No user ID configured",
        [
            "Set PRODUCTIVE_USER_ID, or include it in the auth token (org:token:user)",
            'Use resource="people" action="list" to find your person ID',
        ],
    )


def missing_comment_target() -> UserInputError:
    return UserInputError(
        "task_id, deal_id or company_id is required for creating comment",
        ["Pass the ID of the resource the comment belongs to"],
    )


def missing_booking_target() -> UserInputError:
    return UserInputError(
        "service_id or event_id is required for creating booking",
        ["Use service_id for project work, event_id for absences"],
    )


def no_update_fields(resource: str, allowed: list[str]) -> UserInputError:
    return UserInputError(
        f"No updatable fields provided for {resource}",
        [f"Updatable fields are: {', '.join(allowed)}"],
    )


def api_error(status_code: int, message: str) -> UserInputError:
    hints: list[str] = []
    if status_code == 401:
        hints = ["Your API token may be invalid or expired", "Check PRODUCTIVE_API_TOKEN"]
    elif status_code == 403:
        hints = [
            "You may not have permission to access this resource",
            "Check that the organization ID is correct",
        ]
    elif status_code == 404:
        hints = [
            "The resource may not exist or you may not have access",
            "Verify the resource ID is correct",
            'Use action="list" to find valid resource IDs',
        ]
    elif status_code == 422:
        hints = [
            "The request data may be invalid",
            "Check the field values and types",
            'Use action="help" for field documentation',
        ]
    elif status_code == 429:
        hints = ["Too many requests", "Wait a moment before retrying"]
    elif status_code >= 500:
        hints = ["The Productive API is having problems", "Try again later"]
    return UserInputError(f"API error ({status_code}): {message}", hints)


class ToolError(Exception):
    """Raised from an MCP call_tool handler so the SDK marks the result as an error."""
