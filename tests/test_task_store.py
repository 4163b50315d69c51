"""Task stores and task list formatting."""

from datetime import datetime, timezone

import fakeredis
import pytest

from conversation_router.models import Priority, Task
from conversation_router.task_store import (
    EMPTY_TASKS_MESSAGE,
    InMemoryTaskStore,
    RedisTaskStore,
    format_due_date,
    format_task_list,
)


@pytest.fixture(params=["memory", "redis"])
def store(request):
    if request.param == "memory":
        return InMemoryTaskStore()
    return RedisTaskStore(fakeredis.FakeRedis(decode_responses=True))


class TestTaskStores:
    def test_add_assigns_unique_prefixed_ids(self, store):
        first = store.add("One", Priority.HIGH)
        second = store.add("Two", Priority.LOW)
        assert first.id.startswith("task_")
        assert first.id != second.id
        assert first.completed is False

    def test_list_preserves_insertion_order(self, store):
        for name in ("a", "b", "c"):
            store.add(name, Priority.MEDIUM)
        assert [task.description for task in store.list()] == ["a", "b", "c"]

    def test_update_merges_partial_changes(self, store):
        due = datetime(2026, 1, 2, 9, 30, tzinfo=timezone.utc)
        task = store.add("Set up", Priority.HIGH, due)

        assert store.update(task.id, {"completed": True}) is True

        updated = store.get(task.id)
        assert updated.completed is True
        assert updated.description == "Set up"
        assert updated.due_date == due

    def test_update_can_clear_due_date(self, store):
        task = store.add("Set up", Priority.HIGH, datetime(2026, 1, 2, tzinfo=timezone.utc))
        store.update(task.id, {"due_date": None})
        assert store.get(task.id).due_date is None

    def test_update_unknown_id_returns_false(self, store):
        assert store.update("task_missing", {"completed": True}) is False

    def test_update_rejects_unknown_fields(self, store):
        task = store.add("Set up", Priority.HIGH)
        with pytest.raises(ValueError):
            store.update(task.id, {"id": "other"})

    def test_returned_tasks_are_copies(self, store):
        task = store.add("Set up", Priority.HIGH)
        task.description = "changed outside"
        assert store.get(task.id).description == "Set up"


class TestFormatting:
    def test_empty_list_message(self):
        assert format_task_list([]) == EMPTY_TASKS_MESSAGE

    def test_midnight_due_date_drops_time(self):
        assert format_due_date(datetime(2026, 3, 5)) == "Mar 05, 2026"
        assert format_due_date(datetime(2026, 3, 5, 14, 5)) == "Mar 05, 2026 02:05 PM"

    def test_list_layout(self):
        tasks = [
            Task(id="t1", description="Set up a Stripe account", priority=Priority.HIGH,
                 due_date=datetime(2026, 3, 5)),
            Task(id="t2", description="Say hi", priority=Priority.LOW, completed=True),
        ]
        assert format_task_list(tasks) == "\n".join(
            [
                "Here are your current tasks:",
                "1. Set up a Stripe account",
                "   Priority: high",
                "   Due: Mar 05, 2026",
                "   Status: Pending",
                "2. Say hi",
                "   Priority: low",
                "   Status: Completed",
            ]
        )
