"""Tests for the CanvasStore."""
import pytest

from MindCanvas.core import (
    CanvasStore,
    IntentionStatus,
    OutputType,
    Position,
    TaskExecutionOutput,
    TaskStatus,
)
from MindCanvas.core.canvas_store import NO_RESULTS_YET
from MindCanvas.infrastructure import NotFoundError


def result(content):
    return TaskExecutionOutput(type=OutputType.RESULT, content=content)


class TestIntentions:
    """Tests for intention CRUD."""

    def test_create_sets_active_and_listening(self, store):
        """Should create a listening intention and make it active."""
        intention = store.create_intention(Position(x=10, y=20))

        assert intention.status == IntentionStatus.LISTENING
        assert store.active_intention == intention.id
        assert store.get_intention(intention.id) is intention
        assert intention.position.x == 10

    def test_update_rejects_unknown_fields(self, store):
        """Should refuse fields that do not exist or cannot change."""
        intention = store.create_intention()

        with pytest.raises(ValueError):
            store.update_intention(intention.id, colour="red")
        with pytest.raises(ValueError):
            store.update_intention(intention.id, tasks=[])

    def test_update_validates_values(self, store):
        """Should validate assigned values."""
        intention = store.create_intention()

        with pytest.raises(Exception):
            store.update_intention(intention.id, ai_progress=150)

    def test_missing_intention_raises(self, store):
        """Should raise NotFoundError for unknown ids."""
        with pytest.raises(NotFoundError):
            store.update_intention("nope", title="x")

    def test_delete_removes_tasks(self, store):
        """Should forget the intention's tasks too."""
        intention = store.create_intention()
        task = store.add_task(intention.id, "Pack")

        store.delete_intention(intention.id)

        assert store.get_intention(intention.id) is None
        assert store.get_task(task.id) is None
        assert store.active_intention is None

    def test_user_context_appended(self, store):
        """Should accumulate user context in order."""
        intention = store.create_intention()
        store.add_user_context(intention.id, "two cats")
        store.add_user_context(intention.id, "third floor")

        assert intention.user_context == ["two cats", "third floor"]


class TestTasks:
    """Tests for task CRUD."""

    def test_add_task_appends_in_order(self, store):
        """Should keep tasks in insertion order under their intention."""
        intention = store.create_intention()
        first = store.add_task(intention.id, "A")
        second = store.add_task(intention.id, "B", status=TaskStatus.EXECUTING)

        assert [t.id for t in store.get_tasks(intention.id)] == [first.id, second.id]
        assert store.intention_for_task(second.id) is intention
        assert second.status == TaskStatus.EXECUTING

    def test_task_cannot_change_owner(self, store):
        """Should refuse to move a task between intentions."""
        intention = store.create_intention()
        other = store.create_intention()
        task = store.add_task(intention.id, "A")

        with pytest.raises(ValueError):
            store.update_task(task.id, intention_id=other.id)

    def test_delete_task(self, store):
        """Should remove only the given task."""
        intention = store.create_intention()
        keep = store.add_task(intention.id, "Keep")
        drop = store.add_task(intention.id, "Drop")

        store.delete_task(drop.id)

        assert store.get_tasks(intention.id) == [keep]
        assert store.get_task(drop.id) is None

    def test_unknown_task_raises(self, store):
        """Should raise NotFoundError for unknown task ids."""
        with pytest.raises(NotFoundError):
            store.require_task("nope")


class TestSubscribers:
    """Tests for change notification."""

    def test_events_emitted(self, store):
        """Should notify listeners of each change."""
        events = []
        unsubscribe = store.subscribe(lambda event, item: events.append(event))

        intention = store.create_intention()
        task = store.add_task(intention.id, "A")
        store.update_task(task.id, progress=10)
        store.delete_task(task.id)
        unsubscribe()
        store.reset()

        assert events == ["intention_created", "task_added", "task_updated", "task_deleted"]


class TestCollation:
    """Tests for collate_outputs."""

    def test_no_results_message(self, store):
        """Should explain that nothing is finished yet."""
        intention = store.create_intention()
        store.add_task(intention.id, "A")

        assert store.collate_outputs(intention.id) == NO_RESULTS_YET
        assert intention.collated_output == NO_RESULTS_YET

    def test_collates_completed_results(self, store):
        """Should join completed task results with rules between tasks."""
        intention = store.create_intention()
        a = store.add_task(intention.id, "Hire movers")
        b = store.add_task(intention.id, "Pack boxes")
        c = store.add_task(intention.id, "Still running")
        store.update_task(a.id, status=TaskStatus.COMPLETED, outputs=[result("Booked Acme")])
        store.update_task(b.id, status=TaskStatus.COMPLETED, outputs=[result("20 boxes"), result("Tape")])
        store.update_task(c.id, status=TaskStatus.EXECUTING, outputs=[result("partial")])

        collated = store.collate_outputs(intention.id)

        assert collated == (
            "**Hire movers**\nBooked Acme"
            "\n\n---\n\n"
            "**Pack boxes**\n20 boxes\n\nTape"
        )


def test_reset_clears_store():
    store = CanvasStore()
    store.create_intention()
    store.reset()

    assert store.intentions == []
    assert store.active_intention is None
