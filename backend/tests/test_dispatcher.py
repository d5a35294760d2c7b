"""
Tests for dispatcher.py - end-to-end message handling with a stub assistant.
"""
import asyncio
import sys
import os
from datetime import date, datetime, timedelta, timezone

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from conftest import NOW, StubAssistant
from dispatcher import merge_enhancement, needs_enhancement
from extractor import CreateFields
from models import TaskCreate
import formatter


def run(dispatcher, message, owner="alice", now=NOW):
    return asyncio.run(dispatcher.handle(message, owner, now))


class TestCreate:
    """Tests for create commands."""

    def test_scenario_full_command(self, store, make_dispatcher):
        """A full create command stores every field."""
        reply = run(make_dispatcher(), "create task Review project proposal high priority due tomorrow")

        task = store.find("alice", "T-01")
        assert task.title == "Review project proposal"
        assert task.priority == "high"
        assert task.due_date == date(2025, 1, 2)
        assert task.status == "pending"
        assert "Task created successfully!" in reply

    def test_reminder_derived_from_priority(self, store, make_dispatcher):
        """An urgent task is reminded one hour before it is due."""
        run(make_dispatcher(), "create task Pay rent urgent priority due 2025-01-10T09:00:00Z")

        task = store.find("alice", "Pay rent")
        assert task.reminder_times == [datetime(2025, 1, 10, 8, 0, tzinfo=timezone.utc)]

    def test_no_due_no_reminder(self, store, make_dispatcher):
        """Undated tasks get no reminder."""
        run(make_dispatcher(), "create task Read a book low priority")
        assert store.find("alice", "book").reminder_times == []

    def test_missing_title_inserts_nothing(self, store, make_dispatcher):
        """A create without a title asks for one."""
        reply = run(make_dispatcher(), "create task")

        assert reply == formatter.MISSING_TITLE_MESSAGE
        assert store.count("alice") == 0

    def test_unresolved_due_reported(self, store, make_dispatcher):
        """An unsupported due phrase is echoed back and not stored."""
        reply = run(make_dispatcher(), "create task Plan offsite due next friday")

        task = store.find("alice", "offsite")
        assert task.due_date is None
        assert "next friday" in reply

    def test_trailing_noun_create_keeps_due_date(self, store, make_dispatcher):
        """Qualifiers after a trailing task noun are applied to the new task."""
        run(make_dispatcher(), "make a shopping todo due tomorrow")

        task = store.find("alice", "T-01")
        assert task.title == "shopping"
        assert task.due_date == date(2025, 1, 2)

    def test_explicit_priority_never_default(self, store, make_dispatcher):
        """Every explicit level is stored as given."""
        dispatcher = make_dispatcher()
        for level in ["low", "medium", "high", "urgent"]:
            run(dispatcher, f"add task Item {level} {level} priority")
            assert store.find("alice", f"Item {level}").priority == level


class TestEnhancement:
    """Tests for the optional assistant enhancement on create."""

    def test_enhancement_fills_gaps(self, store, make_dispatcher):
        """Suggestions fill priority, due date and description."""
        assistant = StubAssistant(suggestion={
            "title": "Ignored longer title",
            "priority": "high",
            "dueDate": "2025-01-03",
            "description": "Weekly team sync",
        })
        run(make_dispatcher(assistant), "create task Team meeting")

        task = store.find("alice", "Team meeting")
        assert task.priority == "high"
        assert task.due_date == date(2025, 1, 3)
        assert task.description == "Weekly team sync"
        assert len(assistant.enhance_calls) == 1
        assert assistant.enhance_calls[0][2] == "2025-01-01"

    def test_enhancement_never_overrides_explicit_fields(self, store, make_dispatcher):
        """Explicit priority and resolved due date win over suggestions."""
        assistant = StubAssistant(suggestion={"priority": "low", "dueDate": "2025-06-01"})
        run(make_dispatcher(assistant), "create task Go urgent priority due tomorrow")

        task = store.find("alice", "T-01")
        assert task.priority == "urgent"
        assert task.due_date == date(2025, 1, 2)

    def test_enhancement_skipped_when_complete(self, make_dispatcher):
        """No assistant call when the command is already complete."""
        assistant = StubAssistant(suggestion={"priority": "low"})
        run(make_dispatcher(assistant), "create task Quarterly report high priority")
        assert assistant.enhance_calls == []

    def test_enhancement_can_resolve_unresolved_due(self, store, make_dispatcher):
        """An absolute suggested date replaces an unresolved phrase."""
        assistant = StubAssistant(suggestion={"dueDate": "2025-01-03"})
        reply = run(make_dispatcher(assistant), "create task Plan offsite due next friday")

        assert store.find("alice", "offsite").due_date == date(2025, 1, 3)
        assert "couldn't understand" not in reply

    def test_enhancement_natural_language_due_ignored(self, store, make_dispatcher):
        """Relative suggested dates are ignored."""
        assistant = StubAssistant(suggestion={"dueDate": "next week"})
        run(make_dispatcher(assistant), "create task Plan offsite")
        assert store.find("alice", "offsite").due_date is None

    def test_enhancement_failure_keeps_extraction(self, store, make_dispatcher, unavailable):
        """A failing assistant still creates the task."""
        assistant = StubAssistant(error=unavailable)
        reply = run(make_dispatcher(assistant), "create task Team meeting")

        assert store.find("alice", "Team meeting").priority == "medium"
        assert "Task created successfully!" in reply

    def test_enhancement_timeout_keeps_extraction(self, store, make_dispatcher):
        """A slow assistant is cut off and its answer dropped."""
        assistant = StubAssistant(suggestion={"priority": "urgent"}, delay=1.0)
        run(make_dispatcher(assistant, timeout=0.05), "create task Team meeting")

        assert store.find("alice", "Team meeting").priority == "medium"

    def test_needs_enhancement(self):
        """Short titles, unresolved dues and bare commands need enhancing."""
        assert needs_enhancement(CreateFields(title="Gym"))
        assert needs_enhancement(CreateFields(title="Team meeting"))
        assert needs_enhancement(CreateFields(title="Team meeting", priority="high",
                                             priority_explicit=True, unresolved_due="friday"))
        assert not needs_enhancement(CreateFields(title="Team meeting", priority="high", priority_explicit=True))
        assert not needs_enhancement(CreateFields(title="Team meeting", due_date=date(2025, 1, 2)))

    def test_merge_replaces_only_short_title(self):
        """Only titles under five characters are replaced."""
        merged = merge_enhancement(CreateFields(title="Gym"), {"title": "Go to the gym"}, NOW)
        assert merged.title == "Go to the gym"

        merged = merge_enhancement(CreateFields(title="Team meeting"), {"title": "Something else"}, NOW)
        assert merged.title == "Team meeting"

    def test_merge_ignores_invalid_priority(self):
        """Unknown priority levels are dropped."""
        merged = merge_enhancement(CreateFields(title="Team meeting"), {"priority": "critical"}, NOW)
        assert merged.priority == "medium"


class TestList:
    """Tests for list commands and their views."""

    def test_empty_list(self, make_dispatcher):
        """No tasks gives the empty message."""
        assert run(make_dispatcher(), "list tasks") == formatter.NO_TASKS_MESSAGE

    def test_list_orders_priority_first(self, store, make_dispatcher):
        """Higher priority is listed first."""
        dispatcher = make_dispatcher()
        run(dispatcher, "create task Ship hotfix urgent priority")
        run(dispatcher, "create task Write notes high priority due today")

        reply = run(dispatcher, "show my tasks")
        assert reply.index("Ship hotfix") < reply.index("Write notes")
        assert "**PENDING** (2)" in reply

    def test_overdue_view(self, store, make_dispatcher):
        """The overdue view shows only late tasks."""
        store.insert("alice", TaskCreate(title="Late report", due_date=date(2024, 12, 30)), NOW)
        store.insert("alice", TaskCreate(title="Future plan", due_date=date(2025, 2, 1)), NOW)

        reply = run(make_dispatcher(), "show overdue tasks")
        assert "Late report" in reply
        assert "OVERDUE" in reply
        assert "Future plan" not in reply

    def test_today_and_week_views(self, store, make_dispatcher):
        """Today and week views pick tasks by due date."""
        store.insert("alice", TaskCreate(title="Today item", due_date=date(2025, 1, 1)), NOW)
        store.insert("alice", TaskCreate(title="Friday item", due_date=date(2025, 1, 3)), NOW)
        dispatcher = make_dispatcher()

        today = run(dispatcher, "show tasks due today")
        assert "Today item" in today and "Friday item" not in today

        week = run(dispatcher, "show tasks this week")
        assert "Today item" in week and "Friday item" in week

    def test_priority_filter(self, store, make_dispatcher):
        """A priority filter narrows the list and titles the view."""
        dispatcher = make_dispatcher()
        run(dispatcher, "create task Alpha high priority")
        run(dispatcher, "create task Beta low priority")

        reply = run(dispatcher, "show high priority tasks")
        assert "Alpha" in reply and "Beta" not in reply
        assert reply.startswith("**High Priority Tasks** (1)")

    def test_status_filter_empty(self, make_dispatcher):
        """An empty filtered view says so."""
        run(make_dispatcher(), "create task Alpha high priority")
        assert run(make_dispatcher(), "list completed tasks") == "No completed tasks."

    def test_show_completed_tasks_lists_them(self, store, make_dispatcher):
        """show with a completed filter lists completed tasks instead of completing one."""
        dispatcher = make_dispatcher()
        run(dispatcher, "create task Alpha high priority")
        run(dispatcher, "create task Beta high priority")
        run(dispatcher, "complete task Alpha")

        reply = run(dispatcher, "show completed tasks")

        assert reply.startswith("**Completed Tasks** (1)")
        assert "Alpha" in reply and "Beta" not in reply
        assert store.find("alice", "Beta").status == "pending"

    def test_due_today_view_with_clock_west_of_utc(self, store, make_dispatcher):
        """A task created due today shows up in today's view on a UTC-8 evening clock."""
        evening = datetime(2025, 1, 1, 20, 0, tzinfo=timezone(timedelta(hours=-8)))
        dispatcher = make_dispatcher()
        run(dispatcher, "create task Call mom high priority due today", now=evening)

        reply = run(dispatcher, "show tasks due today", now=evening)

        assert store.find("alice", "Call mom").due_date == date(2025, 1, 1)
        assert "Call mom" in reply
        assert "OVERDUE" not in reply


class TestCompleteAndDelete:
    """Tests for complete and delete commands."""

    def test_complete_by_title(self, store, make_dispatcher):
        """Complete accepts a title fragment."""
        dispatcher = make_dispatcher()
        run(dispatcher, "create task Review proposal")

        reply = run(dispatcher, "complete task proposal")
        assert reply == "Task completed: **Review proposal**"
        assert store.find("alice", "T-01").status == "completed"

    def test_complete_twice(self, store, make_dispatcher):
        """Completing again is not an error."""
        dispatcher = make_dispatcher()
        run(dispatcher, "create task Review proposal")
        run(dispatcher, "complete task T-01")

        reply = run(dispatcher, "complete task T-01")
        assert "not found" not in reply
        assert store.find("alice", "T-01").status == "completed"

    def test_complete_not_found(self, make_dispatcher):
        """Unknown identifiers get the not-found reply."""
        reply = run(make_dispatcher(), "complete task ghost")
        assert reply == formatter.format_not_found("ghost")

    def test_complete_missing_identifier(self, make_dispatcher):
        """Complete without an identifier asks for one."""
        assert run(make_dispatcher(), "complete task") == formatter.format_missing_identifier("complete")

    def test_help_then_complete_precedence(self, store, make_dispatcher):
        """help before a complete command still completes."""
        dispatcher = make_dispatcher()
        run(dispatcher, "create task Review proposal")

        run(dispatcher, "help me complete task proposal")
        assert store.find("alice", "T-01").status == "completed"

    def test_complete_title_containing_list(self, store, make_dispatcher):
        """A title mentioning list or create does not hijack the complete command."""
        dispatcher = make_dispatcher()
        run(dispatcher, "create task Shopping list")
        run(dispatcher, "create task Create invoice")

        assert run(dispatcher, "complete task shopping list") == "Task completed: **Shopping list**"
        assert run(dispatcher, "delete task create invoice") == "Task deleted: **Create invoice**"
        assert store.find("alice", "T-01").status == "completed"
        assert store.find("alice", "T-02") is None

    def test_delete(self, store, make_dispatcher):
        """Delete by title removes the task."""
        dispatcher = make_dispatcher()
        run(dispatcher, "create task Old idea")

        assert run(dispatcher, "delete task old idea") == "Task deleted: **Old idea**"
        assert store.count("alice") == 0

    def test_delete_not_found_leaves_store(self, store, make_dispatcher):
        """A failed delete keeps every task."""
        dispatcher = make_dispatcher()
        run(dispatcher, "create task Keep me")

        reply = run(dispatcher, "delete task T-42")
        assert "not found" in reply
        assert store.count("alice") == 1

    def test_owners_isolated(self, store, make_dispatcher):
        """One owner cannot delete another's task."""
        dispatcher = make_dispatcher()
        run(dispatcher, "create task Alice only", owner="alice")

        assert "not found" in run(dispatcher, "delete task Alice only", owner="bob")
        assert store.count("alice") == 1


class TestHelpAndFallback:
    """Tests for help text and the fallback capability."""

    def test_help(self, make_dispatcher):
        """help returns the command reference."""
        assert run(make_dispatcher(), "help") == formatter.HELP_TEXT

    def test_fallback_without_assistant(self, make_dispatcher):
        """Without an assistant the static reply is used."""
        reply = run(make_dispatcher(), "what should I do first?")
        assert reply == formatter.CAPABILITY_UNAVAILABLE_MESSAGE

    def test_fallback_uses_assistant_with_context(self, store, make_dispatcher):
        """The assistant gets the message, task context and date."""
        store.insert("alice", TaskCreate(title="Late report", due_date=date(2024, 12, 30)), NOW)
        assistant = StubAssistant(reply="Start with the late report.")

        reply = run(make_dispatcher(assistant), "what should I do first?")

        assert reply == "Start with the late report."
        message, context, today = assistant.respond_calls[0]
        assert message == "what should I do first?"
        assert "User has 1 tasks (1 overdue)" in context
        assert "Late report" in context
        assert today == "2025-01-01"

    def test_fallback_failure_degrades(self, make_dispatcher, unavailable):
        """An unavailable assistant gives the static reply."""
        reply = run(make_dispatcher(StubAssistant(error=unavailable)), "hello there")
        assert reply == formatter.CAPABILITY_UNAVAILABLE_MESSAGE

    def test_fallback_unexpected_error_degrades(self, make_dispatcher):
        """Unexpected assistant errors give the static reply."""
        reply = run(make_dispatcher(StubAssistant(error=RuntimeError("boom"))), "hello there")
        assert reply == formatter.CAPABILITY_UNAVAILABLE_MESSAGE

    def test_fallback_timeout_degrades(self, make_dispatcher):
        """A slow assistant gives the static reply."""
        assistant = StubAssistant(reply="too late", delay=1.0)
        reply = run(make_dispatcher(assistant, timeout=0.05), "hello there")
        assert reply == formatter.CAPABILITY_UNAVAILABLE_MESSAGE

    def test_fallback_empty_reply_degrades(self, make_dispatcher):
        """An empty assistant reply gives the static reply."""
        reply = run(make_dispatcher(StubAssistant(reply="")), "hello there")
        assert reply == formatter.CAPABILITY_UNAVAILABLE_MESSAGE


def test_default_now_is_used_when_missing(store, make_dispatcher):
    """Without an explicit clock the dispatcher stamps tasks with the current time."""
    before = datetime.now(timezone.utc) - timedelta(seconds=1)
    asyncio.run(make_dispatcher().handle("create task Buy milk", "alice"))
    assert store.find("alice", "milk").created_at >= before
