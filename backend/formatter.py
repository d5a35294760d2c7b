"""
Rendering of store results into chat replies.

All functions are pure: anything time dependent takes `now` explicitly.
"""
from datetime import datetime, timedelta
from typing import Optional

from models import DueDate, Task
import temporal

PRIORITY_LABELS = {
    "urgent": "[URGENT]",
    "high": "[HIGH]",
    "medium": "[MEDIUM]",
    "low": "[LOW]",
}

NO_TASKS_MESSAGE = "You don't have any tasks yet. Create one with: 'create task [title]'"

MISSING_TITLE_MESSAGE = (
    "Please specify a task title. Example: 'create task Review project proposal' "
    "or 'create a task for the dev meeting'"
)

CAPABILITY_UNAVAILABLE_MESSAGE = (
    "I'm having trouble processing that request. Try using specific commands like "
    "'create task', 'list tasks', or 'help'."
)

HELP_TEXT = """**Task Tracker Commands:**

**Create Tasks:**
- `create task [title]` - Create a new task
- `create task [title] high priority` - Create with priority
- `create task [title] due tomorrow` - Create with due date
- `create task [title] urgent priority due 2025-11-05` - Full featured

**View Tasks:**
- `list tasks` - Show all your tasks (sorted by priority and due date)
- `show high priority tasks` - Filter by priority
- `list completed tasks` - Filter by status
- `show tasks due today` / `show tasks this week` / `show overdue tasks`

**Update Tasks:**
- `complete task [id/title]` - Mark as completed

**Delete Tasks:**
- `delete task [id/title]` - Remove a task

**Priority Levels:**
- [URGENT] Critical tasks
- [HIGH] Important tasks
- [MEDIUM] Regular tasks (default)
- [LOW] Nice-to-have tasks

**Due Date Examples:**
- "due today" - Today's date
- "due tomorrow" - Tomorrow's date
- "due 2025-11-05" - Specific date (YYYY-MM-DD)
- "due 2025-11-05T22:00:00Z" - Specific date and time

Overdue tasks are marked with OVERDUE in your task list."""


def format_due(due: DueDate) -> str:
    if not isinstance(due, datetime):
        return due.isoformat()
    moment = temporal.ensure_aware(due)
    if moment.utcoffset() == timedelta(0):
        return moment.strftime("%Y-%m-%d %H:%M UTC")
    return moment.strftime("%Y-%m-%d %H:%M %z")


def priority_label(priority: str) -> str:
    return PRIORITY_LABELS.get(priority, f"[{priority.upper()}]")


def format_task_line(task: Task, now: datetime) -> str:
    line = f"{priority_label(task.priority)} {task.title} (ID: {task.id})"
    if task.due_date is not None:
        line += f" | Due: {format_due(task.due_date)}"
    if not task.is_terminal and temporal.is_overdue(task.due_date, now):
        line += " OVERDUE"
    return line


def format_task_list(grouped: dict[str, list[Task]], now: datetime) -> str:
    """Tasks grouped by status, empty groups skipped."""
    if not any(grouped.values()):
        return NO_TASKS_MESSAGE

    sections = []
    for status, tasks in grouped.items():
        if not tasks:
            continue
        lines = [f"**{status.upper()}** ({len(tasks)})"]
        lines.extend(format_task_line(task, now) for task in tasks)
        sections.append("\n".join(lines))
    return "**Your Tasks:**\n\n" + "\n\n".join(sections)


def format_task_view(heading: str, tasks: list[Task], now: datetime, empty_message: str) -> str:
    if not tasks:
        return empty_message
    lines = [f"**{heading}** ({len(tasks)})"]
    lines.extend(format_task_line(task, now) for task in tasks)
    return "\n".join(lines)


def format_created(task: Task, unresolved_due: Optional[str] = None) -> str:
    lines = [
        "Task created successfully!",
        f"**{task.title}** (ID: {task.id})",
        f"Status: {task.status.capitalize()} | Priority: {task.priority} {priority_label(task.priority)}",
    ]
    if task.due_date is not None:
        lines.append(f"Due: {format_due(task.due_date)}")
    if task.reminder_times:
        lines.append("Reminder: " + ", ".join(format_due(r) for r in task.reminder_times))
    if task.description:
        lines.append(f"Description: {task.description}")
    if unresolved_due:
        lines.append(
            f"I couldn't understand the due date \"{unresolved_due}\", so no due date was set. "
            "Use 'today', 'tomorrow' or YYYY-MM-DD."
        )
    return "\n".join(lines)


def format_completed(task: Task) -> str:
    return f"Task completed: **{task.title}**"


def format_deleted(task: Task) -> str:
    return f"Task deleted: **{task.title}**"


def format_not_found(identifier: str) -> str:
    return f"Task not found: \"{identifier}\". Use 'list tasks' to see your tasks."


def format_missing_identifier(verb: str) -> str:
    return (
        f"Please specify a task ID or title. Example: '{verb} task T-01' "
        f"or '{verb} task Review proposal'"
    )
