"""
In-memory task store partitioned by owner.

Each owner has an ordered list of tasks guarded by its own lock, so
operations for different owners never contend and mutations for the same
owner are serialized. Tasks handed out are copies.
"""
import logging
import threading
from datetime import datetime, timezone
from typing import Optional

from models import PRIORITY_RANK, STATUSES, TERMINAL_STATUSES, Task, TaskCreate
import temporal

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {"title", "description", "status", "priority", "due_date", "reminder_times"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def sort_key(task: Task) -> tuple:
    """Priority descending, then dated before undated, then due ascending."""
    if task.due_date is None:
        return (-PRIORITY_RANK[task.priority], 1, datetime.max.replace(tzinfo=timezone.utc))
    return (-PRIORITY_RANK[task.priority], 0, temporal.as_instant(task.due_date))


def sort_tasks(tasks: list[Task]) -> list[Task]:
    return sorted(tasks, key=sort_key)


class _OwnerTasks:
    """One owner's collection and the state that goes with it."""

    def __init__(self):
        self.lock = threading.RLock()
        self.tasks: list[Task] = []
        self.next_number = 1

    def next_id(self) -> str:
        # Sequence only moves forward, so ids are never reused after delete
        task_id = f"T-{self.next_number:02d}"
        self.next_number += 1
        return task_id

    def index_of(self, identifier: str) -> Optional[int]:
        """Exact id match first, else first case-insensitive title substring."""
        wanted = identifier.strip()
        if not wanted:
            return None
        for i, task in enumerate(self.tasks):
            if task.id == wanted:
                return i
        for i, task in enumerate(self.tasks):
            if task.id.lower() == wanted.lower():
                return i
        needle = wanted.lower()
        for i, task in enumerate(self.tasks):
            if needle in task.title.lower():
                return i
        return None


class TaskStore:
    def __init__(self):
        self._owners: dict[str, _OwnerTasks] = {}
        self._registry_lock = threading.Lock()

    def _owner(self, owner_id: str) -> _OwnerTasks:
        """The owner's collection, created on first write."""
        with self._registry_lock:
            owner = self._owners.get(owner_id)
            if owner is None:
                owner = self._owners[owner_id] = _OwnerTasks()
            return owner

    def _existing(self, owner_id: str) -> Optional[_OwnerTasks]:
        # Read paths never register an owner
        with self._registry_lock:
            return self._owners.get(owner_id)

    def _snapshot(self, owner_id: str) -> list[Task]:
        owner = self._existing(owner_id)
        if owner is None:
            return []
        with owner.lock:
            return [task.model_copy(deep=True) for task in owner.tasks]

    def insert(self, owner_id: str, data: TaskCreate, now: Optional[datetime] = None) -> Task:
        """Append a new pending task for the owner and return it."""
        now = temporal.ensure_aware(now or _utcnow())
        owner = self._owner(owner_id)
        with owner.lock:
            task = Task(
                id=owner.next_id(),
                owner_id=owner_id,
                title=data.title,
                description=data.description,
                status="pending",
                priority=data.priority,
                due_date=data.due_date,
                reminder_times=list(data.reminder_times),
                created_at=now,
                updated_at=now,
            )
            owner.tasks.append(task)
            logger.info("Created task %s for owner %s", task.id, owner_id)
            return task.model_copy(deep=True)

    def find(self, owner_id: str, identifier: str) -> Optional[Task]:
        owner = self._existing(owner_id)
        if owner is None:
            return None
        with owner.lock:
            index = owner.index_of(identifier)
            if index is None:
                return None
            return owner.tasks[index].model_copy(deep=True)

    def update(self, owner_id: str, task_id: str, now: Optional[datetime] = None, **updates) -> Optional[Task]:
        """
        Apply the supplied fields to a task.

        Only fields in UPDATABLE_FIELDS are accepted; id, owner and
        timestamps are managed by the store. Returns None when no task has
        the given id.
        """
        unknown = set(updates) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        now = temporal.ensure_aware(now or _utcnow())
        owner = self._existing(owner_id)
        if owner is None:
            return None
        with owner.lock:
            index = next((i for i, t in enumerate(owner.tasks) if t.id == task_id), None)
            if index is None:
                return None
            current = owner.tasks[index]
            changes = dict(updates)
            changes["updated_at"] = max(now, current.created_at)
            # model_validate re-runs field validation on the merged record
            updated = Task.model_validate({**current.model_dump(), **changes})
            owner.tasks[index] = updated
            return updated.model_copy(deep=True)

    def complete(self, owner_id: str, identifier: str, now: Optional[datetime] = None) -> Optional[Task]:
        owner = self._existing(owner_id)
        if owner is None:
            return None
        with owner.lock:
            index = owner.index_of(identifier)
            if index is None:
                return None
            return self.update(owner_id, owner.tasks[index].id, now, status="completed")

    def delete(self, owner_id: str, identifier: str) -> Optional[Task]:
        """Remove a task for good and return it."""
        owner = self._existing(owner_id)
        if owner is None:
            return None
        with owner.lock:
            index = owner.index_of(identifier)
            if index is None:
                return None
            removed = owner.tasks.pop(index)
            logger.info("Deleted task %s for owner %s", removed.id, owner_id)
            return removed

    def count(self, owner_id: str) -> int:
        owner = self._existing(owner_id)
        if owner is None:
            return 0
        with owner.lock:
            return len(owner.tasks)

    def list_tasks(self, owner_id: str, status: Optional[str] = None, priority: Optional[str] = None) -> list[Task]:
        tasks = self._snapshot(owner_id)
        if status:
            tasks = [t for t in tasks if t.status == status]
        if priority:
            tasks = [t for t in tasks if t.priority == priority]
        return sort_tasks(tasks)

    def list_grouped_by_status(self, owner_id: str) -> dict[str, list[Task]]:
        """Sorted tasks partitioned by status, in display order."""
        grouped: dict[str, list[Task]] = {status: [] for status in STATUSES}
        for task in self.list_tasks(owner_id):
            grouped[task.status].append(task)
        return grouped

    def _open_tasks(self, owner_id: str) -> list[Task]:
        return [t for t in self.list_tasks(owner_id) if t.status not in TERMINAL_STATUSES]

    def tasks_due_today(self, owner_id: str, now: datetime) -> list[Task]:
        return [t for t in self._open_tasks(owner_id) if temporal.is_due_within(t.due_date, now, 1)]

    def tasks_due_this_week(self, owner_id: str, now: datetime) -> list[Task]:
        return [t for t in self._open_tasks(owner_id) if temporal.is_due_within(t.due_date, now, 7)]

    def overdue_tasks(self, owner_id: str, now: datetime) -> list[Task]:
        return [t for t in self._open_tasks(owner_id) if temporal.is_overdue(t.due_date, now)]
