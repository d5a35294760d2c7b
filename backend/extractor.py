"""
Field extraction for chat commands.

Title patterns are tried in order and the first match wins. Priority and
due-date qualifiers are then stripped out of the captured title. Nothing here
calls a language model; enhancement happens later in the dispatcher.
"""
import re
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel

from models import DueDate, Priority, Status
import temporal

TITLE_PATTERNS: list[re.Pattern] = [
    re.compile(r"create\s+(?:a\s+)?(?:task|todo)\s+(?:for\s+)?(.+)", re.IGNORECASE),
    re.compile(r"add\s+(?:a\s+)?(?:task|todo)\s+(?:for\s+)?(.+)", re.IGNORECASE),
    re.compile(r"new\s+(?:task|todo)\s+(?:for\s+)?(.+)", re.IGNORECASE),
    re.compile(r"make\s+(?:a\s+)?(?:task|todo)\s+(?:for\s+)?(.+)", re.IGNORECASE),
    re.compile(r"(?:create|add|make)\s+(?:(?:a|an|the)\s+)?(.+?)\s+(?:task|todo)\b(.*)", re.IGNORECASE),
]

PRIORITY_PATTERN = re.compile(r"(?:^|\s+)(low|medium|high|urgent)\s*priority\b", re.IGNORECASE)
DUE_PATTERN = re.compile(r"(?:^|\s+)due\s+(?:on\s+|by\s+)?(\S+)", re.IGNORECASE)

# Titles that are left over from the command phrasing, not real titles
FILLER_TITLES = {"a", "an", "the", "for", "my", "new", "a new", "task", "todo"}

TITLE_STRIP_CHARS = " \t\"'.,;:"


class CreateFields(BaseModel):
    title: str
    priority: Priority = "medium"
    priority_explicit: bool = False
    due_date: Optional[DueDate] = None
    unresolved_due: Optional[str] = None
    description: Optional[str] = None


class ListQuery(BaseModel):
    view: Optional[Literal["overdue", "today", "week"]] = None
    status: Optional[Status] = None
    priority: Optional[Priority] = None


def _clean(text: str) -> str:
    return " ".join(text.split()).strip(TITLE_STRIP_CHARS)


def match_title(text: str) -> Optional[str]:
    """
    Return the raw title fragment captured by the first matching pattern.

    When the task noun trails the title ("add groceries task due today"),
    whatever follows the noun is kept so its qualifiers are still seen.
    """
    for pattern in TITLE_PATTERNS:
        match = pattern.search(text)
        if match:
            return "".join(part for part in match.groups() if part)
    return None


def extract_priority(fragment: str) -> tuple[str, Optional[str]]:
    """Strip a "<level> priority" qualifier, returning (fragment, level)."""
    match = PRIORITY_PATTERN.search(fragment)
    if not match:
        return fragment, None
    stripped = fragment[:match.start()] + fragment[match.end():]
    return stripped, match.group(1).lower()


def extract_due(fragment: str, now: datetime) -> tuple[str, Optional[DueDate], Optional[str]]:
    """
    Strip a "due <phrase>" qualifier.

    Returns (fragment, resolved_date, unresolved_phrase). When the word after
    "due" does not resolve, everything from "due" onwards is treated as the
    phrase, removed from the fragment and reported back unresolved.
    """
    match = DUE_PATTERN.search(fragment)
    if not match:
        return fragment, None, None

    phrase = match.group(1).strip(TITLE_STRIP_CHARS)
    resolved = temporal.resolve(phrase, now)
    if resolved is not None:
        return fragment[:match.start()] + fragment[match.end():], resolved, None

    unresolved = _clean(fragment[match.start(1):])
    return fragment[:match.start()], None, unresolved or phrase


def extract_create_fields(text: str, now: datetime) -> Optional[CreateFields]:
    """
    Extract title, priority and due date from a create command.

    Returns None when no title can be found; the caller should ask the user
    for one instead of inventing it.
    """
    fragment = match_title(text or "")
    if fragment is None:
        return None

    fragment, priority = extract_priority(fragment)
    fragment, due_date, unresolved_due = extract_due(fragment, now)

    title = _clean(fragment)
    if not title or title.lower() in FILLER_TITLES:
        return None

    return CreateFields(
        title=title,
        priority=priority or "medium",
        priority_explicit=priority is not None,
        due_date=due_date,
        unresolved_due=unresolved_due,
    )


def extract_identifier(text: str, verb: str) -> Optional[str]:
    """Find the task id or title fragment after "<verb> task"."""
    pattern = re.compile(rf"{re.escape(verb)}\s+(?:the\s+)?(?:task|todo)\s+(.+)", re.IGNORECASE)
    match = pattern.search(text or "")
    if not match:
        return None
    identifier = _clean(match.group(1))
    return identifier or None


STATUS_KEYWORDS = [
    ("in-progress", ("in-progress", "in progress")),
    ("completed", ("completed", "finished")),
    ("cancelled", ("cancelled", "canceled")),
    ("pending", ("pending",)),
]

LIST_PRIORITY_PATTERN = re.compile(r"\b(low|medium|high|urgent)\b", re.IGNORECASE)


def extract_list_query(text: str) -> ListQuery:
    """Recognise the view and filters a list/show command asks for."""
    command = (text or "").lower()

    view = None
    if "overdue" in command:
        view = "overdue"
    elif "today" in command:
        view = "today"
    elif "week" in command:
        view = "week"

    status = None
    for candidate, keywords in STATUS_KEYWORDS:
        if any(keyword in command for keyword in keywords):
            status = candidate
            break

    priority_match = LIST_PRIORITY_PATTERN.search(command)
    priority = priority_match.group(1) if priority_match else None

    return ListQuery(view=view, status=status, priority=priority)
