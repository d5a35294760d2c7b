"""
Turns one chat message into one reply.

classify -> extract -> store -> format, with the assistant as an optional,
time-bounded collaborator for fallback replies and task enhancement.
"""
import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Awaitable, Optional, TypeVar

from assistant import Assistant, CapabilityUnavailable
from classifier import CommandKind, classify
from extractor import (
    CreateFields,
    extract_create_fields,
    extract_identifier,
    extract_list_query,
)
from models import PRIORITIES, TaskCreate
from store import TaskStore
import formatter
import temporal

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_ASSISTANT_TIMEOUT = 10.0
SHORT_TITLE_LENGTH = 5
RECENT_TASKS_IN_CONTEXT = 3


def needs_enhancement(fields: CreateFields) -> bool:
    """Whether the extracted fields look incomplete enough to ask the assistant."""
    if len(fields.title) < SHORT_TITLE_LENGTH:
        return True
    if fields.unresolved_due:
        return True
    return fields.due_date is None and not fields.priority_explicit


def merge_enhancement(fields: CreateFields, suggestion: dict, now: datetime) -> CreateFields:
    """
    Fold assistant suggestions into the extracted fields.

    Suggestions only fill gaps: an explicit priority or a resolved due date
    is never replaced, and a suggested due date is kept only when it is
    itself an absolute date.
    """
    merged = fields.model_copy()

    title = suggestion.get("title")
    if isinstance(title, str) and title.strip() and len(fields.title) < SHORT_TITLE_LENGTH:
        merged.title = title.strip()

    priority = suggestion.get("priority")
    if not fields.priority_explicit and isinstance(priority, str) and priority.lower() in PRIORITIES:
        merged.priority = priority.lower()

    due = suggestion.get("dueDate")
    if fields.due_date is None and isinstance(due, str):
        resolved = temporal.resolve(due, now)
        if resolved is not None:
            merged.due_date = resolved
            merged.unresolved_due = None

    description = suggestion.get("description")
    if fields.description is None and isinstance(description, str) and description.strip() not in ("", "null"):
        merged.description = description.strip()

    return merged


class Dispatcher:
    def __init__(
        self,
        store: TaskStore,
        assistant: Optional[Assistant] = None,
        timeout: float = DEFAULT_ASSISTANT_TIMEOUT,
    ):
        self.store = store
        self.assistant = assistant
        self.timeout = timeout

    async def handle(self, message: str, owner_id: str, now: Optional[datetime] = None) -> str:
        """Process one message for one owner and return the reply text."""
        now = temporal.ensure_aware(now or datetime.now(timezone.utc))
        kind = classify(message)
        logger.info("Owner %s: classified message as %s", owner_id, kind.value)

        if kind is CommandKind.CREATE:
            return await self._create(message, owner_id, now)
        if kind is CommandKind.LIST:
            return self._list(message, owner_id, now)
        if kind is CommandKind.COMPLETE:
            return self._complete(message, owner_id, now)
        if kind is CommandKind.DELETE:
            return self._delete(message, owner_id)
        if kind is CommandKind.HELP:
            return formatter.HELP_TEXT
        return await self._fallback(message, owner_id, now)

    async def _bounded(self, call: Awaitable[T], purpose: str) -> Optional[T]:
        """Await an assistant call within the timeout; None on any failure."""
        try:
            return await asyncio.wait_for(call, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("%s timed out after %.1fs", purpose, self.timeout)
        except CapabilityUnavailable as e:
            logger.warning("%s unavailable: %s", purpose, e)
        except Exception:
            logger.exception("%s failed", purpose)
        return None

    async def _create(self, message: str, owner_id: str, now: datetime) -> str:
        fields = extract_create_fields(message, now)
        if fields is None:
            return formatter.MISSING_TITLE_MESSAGE

        if self.assistant is not None and needs_enhancement(fields):
            current = {
                "title": fields.title,
                "priority": fields.priority,
                "due_date": fields.due_date.isoformat() if fields.due_date else None,
                "unresolved_due": fields.unresolved_due,
            }
            suggestion = await self._bounded(
                self.assistant.enhance(message, current, now.date().isoformat()),
                "Task enhancement",
            )
            if suggestion:
                fields = merge_enhancement(fields, suggestion, now)

        reminder = temporal.derive_reminder(fields.due_date, fields.priority)
        task = self.store.insert(
            owner_id,
            TaskCreate(
                title=fields.title,
                description=fields.description,
                priority=fields.priority,
                due_date=fields.due_date,
                reminder_times=[reminder] if reminder else [],
            ),
            now,
        )
        return formatter.format_created(task, fields.unresolved_due)

    def _list(self, message: str, owner_id: str, now: datetime) -> str:
        query = extract_list_query(message)

        if query.view == "overdue":
            tasks = self.store.overdue_tasks(owner_id, now)
            heading, empty = "Overdue Tasks", "No overdue tasks. You're all caught up!"
        elif query.view == "today":
            tasks = self.store.tasks_due_today(owner_id, now)
            heading, empty = "Tasks Due Today", "No tasks due today."
        elif query.view == "week":
            tasks = self.store.tasks_due_this_week(owner_id, now)
            heading, empty = "Tasks Due This Week", "No tasks due this week."
        elif query.status or query.priority:
            tasks = self.store.list_tasks(owner_id, status=query.status, priority=query.priority)
            words = [w for w in (query.priority and f"{query.priority} priority", query.status) if w]
            heading = " ".join(words).title() + " Tasks"
            empty = f"No {' '.join(words)} tasks."
        else:
            return formatter.format_task_list(self.store.list_grouped_by_status(owner_id), now)

        if query.view and query.priority:
            tasks = [t for t in tasks if t.priority == query.priority]
        return formatter.format_task_view(heading, tasks, now, empty)

    def _complete(self, message: str, owner_id: str, now: datetime) -> str:
        identifier = extract_identifier(message, "complete")
        if identifier is None:
            return formatter.format_missing_identifier("complete")
        task = self.store.complete(owner_id, identifier, now)
        if task is None:
            return formatter.format_not_found(identifier)
        return formatter.format_completed(task)

    def _delete(self, message: str, owner_id: str) -> str:
        identifier = extract_identifier(message, "delete")
        if identifier is None:
            return formatter.format_missing_identifier("delete")
        task = self.store.delete(owner_id, identifier)
        if task is None:
            return formatter.format_not_found(identifier)
        return formatter.format_deleted(task)

    def task_context(self, owner_id: str, now: datetime) -> str:
        tasks = self.store.list_tasks(owner_id)
        overdue = self.store.overdue_tasks(owner_id, now)
        recent = sorted(tasks, key=lambda t: t.created_at)[-RECENT_TASKS_IN_CONTEXT:]
        recent_json = json.dumps([
            t.model_dump(mode="json", include={"id", "title", "status", "priority", "due_date"})
            for t in recent
        ])
        return f"User has {len(tasks)} tasks ({len(overdue)} overdue). Recent tasks: {recent_json}"

    async def _fallback(self, message: str, owner_id: str, now: datetime) -> str:
        if self.assistant is None:
            return formatter.CAPABILITY_UNAVAILABLE_MESSAGE
        reply = await self._bounded(
            self.assistant.respond(message, self.task_context(owner_id, now), now.date().isoformat()),
            "Fallback reply",
        )
        return reply or formatter.CAPABILITY_UNAVAILABLE_MESSAGE
