"""
Date helpers for summaries and suggestions.

The Productive API filters on plain ISO dates (YYYY-MM-DD), so every
helper here returns strings in that format.
"""

from datetime import date, datetime, timezone, timedelta
from typing import Optional


def utc_now() -> datetime:
    """
    Get current UTC time.
    Single source of truth for "now" throughout the package.

    Returns:
        timezone-aware datetime in UTC
    """
    return datetime.now(timezone.utc)


def today() -> str:
    """Today's date as YYYY-MM-DD."""
    return utc_now().date().isoformat()


def days_from_today(days: int) -> str:
    """
    Date offset from today.

    Args:
        days: Offset in days; negative values go back in time

    Returns:
        ISO date string
    """
    return (utc_now().date() + timedelta(days=days)).isoformat()


def days_overdue(due_date: Optional[str], closed: bool = False) -> int:
    """
    Number of whole days a task is past its due date.

    Args:
        due_date: ISO date (or datetime) string, may be None
        closed: Closed tasks are never overdue

    Returns:
        Days overdue, 0 if not overdue
    """
    if not due_date or closed:
        return 0
    try:
        due = date.fromisoformat(due_date[:10])
    except ValueError:
        return 0
    delta = (utc_now().date() - due).days
    return max(0, delta)
