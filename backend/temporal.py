"""
Resolution of natural date phrases into absolute dates.

Every function takes the current instant explicitly so results are
reproducible. Date-only values ("2025-01-02") stay plain `date` objects and
are compared by calendar date; when an instant is needed (sorting,
reminders) they are taken as midnight UTC of that day.
"""
import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from models import DueDate

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
DATETIME_PATTERN = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:?\d{2})?$",
    re.IGNORECASE,
)

# How long before the due instant a reminder fires, by priority
REMINDER_OFFSETS = {
    "urgent": timedelta(hours=1),
    "high": timedelta(hours=2),
    "medium": timedelta(days=1),
    "low": timedelta(days=2),
}


def ensure_aware(moment: datetime) -> datetime:
    """Naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def resolve(phrase: str, now: datetime) -> Optional[DueDate]:
    """
    Convert a date phrase into a date or datetime.

    Supports "today", "tomorrow", YYYY-MM-DD and full ISO-8601 date-times.
    Returns None for anything else; callers must not guess.
    """
    if not phrase:
        return None
    text = phrase.strip()
    keyword = text.lower()

    if keyword == "today":
        return ensure_aware(now).date()
    if keyword == "tomorrow":
        return ensure_aware(now).date() + timedelta(days=1)

    if DATE_PATTERN.match(text):
        try:
            return date.fromisoformat(text)
        except ValueError:
            return None

    if DATETIME_PATTERN.match(text):
        iso = text[:-1] + "+00:00" if text[-1] in "zZ" else text
        try:
            parsed = datetime.fromisoformat(iso.replace("t", "T"))
        except ValueError:
            return None
        return ensure_aware(parsed)

    return None


def as_instant(value: DueDate) -> datetime:
    """Normalize a date or datetime to an aware datetime."""
    if isinstance(value, datetime):
        return ensure_aware(value)
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)


def start_of_day(now: datetime) -> datetime:
    return ensure_aware(now).replace(hour=0, minute=0, second=0, microsecond=0)


def is_overdue(due: Optional[DueDate], now: datetime) -> bool:
    """A date-only due value is overdue once its whole day has passed."""
    if due is None:
        return False
    if not isinstance(due, datetime):
        return due < ensure_aware(now).date()
    return as_instant(due) < ensure_aware(now)


def is_due_within(due: Optional[DueDate], now: datetime, days: int) -> bool:
    """
    True when due falls in [start_of_day(now), start_of_day(now) + days).

    Date-only values are compared as calendar dates against the date in
    now's own timezone, the same date "today" resolves to.
    """
    if due is None:
        return False
    if not isinstance(due, datetime):
        today = ensure_aware(now).date()
        return today <= due < today + timedelta(days=days)
    start = start_of_day(now)
    return start <= as_instant(due) < start + timedelta(days=days)


def derive_reminder(due: Optional[DueDate], priority: str) -> Optional[datetime]:
    if due is None:
        return None
    return as_instant(due) - REMINDER_OFFSETS.get(priority, REMINDER_OFFSETS["medium"])
