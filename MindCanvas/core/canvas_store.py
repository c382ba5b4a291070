"""
CanvasStore: In-memory registry of a session's intentions and tasks.

The orchestrator and execution engine mutate intentions and tasks only
through this store, so subscribers see every change.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Optional

from .models import Intention, OutputType, Position, Task, TaskStatus
from ..infrastructure.errors import NotFoundError


StoreListener = Callable[[str, Any], None]

NO_RESULTS_YET = "No results yet - tasks are still in progress."


class CanvasStore:
    """
    Create/update/delete operations for intentions and tasks.

    Events emitted to subscribers:
        intention_created, intention_updated, intention_deleted,
        task_added, task_updated, task_deleted, reset
    """

    def __init__(self):
        self._intentions: dict[str, Intention] = {}
        self._task_owner: dict[str, str] = {}
        self.active_intention: Optional[str] = None
        self._listeners: list[StoreListener] = []

    # === Subscription ===

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register a change listener; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: str, item: Any) -> None:
        for listener in list(self._listeners):
            listener(event, item)

    # === Intentions ===

    @property
    def intentions(self) -> list[Intention]:
        return list(self._intentions.values())

    def create_intention(self, position: Optional[Position] = None) -> Intention:
        intention = Intention(position=position or Position())
        self._intentions[intention.id] = intention
        self.active_intention = intention.id
        self._emit("intention_created", intention)
        return intention

    def get_intention(self, intention_id: str) -> Optional[Intention]:
        return self._intentions.get(intention_id)

    def require_intention(self, intention_id: str) -> Intention:
        intention = self._intentions.get(intention_id)
        if intention is None:
            raise NotFoundError("intention", intention_id)
        return intention

    def update_intention(self, intention_id: str, **updates: Any) -> Intention:
        """Apply field updates; unknown field names raise ValueError."""
        intention = self.require_intention(intention_id)
        for key, value in updates.items():
            if key in ("id", "tasks") or key not in Intention.model_fields:
                raise ValueError(f"Cannot update intention field '{key}'")
            setattr(intention, key, value)
        intention.updated_at = datetime.now()
        self._emit("intention_updated", intention)
        return intention

    def delete_intention(self, intention_id: str) -> None:
        intention = self._intentions.pop(intention_id, None)
        if intention is None:
            return
        for task in intention.tasks:
            self._task_owner.pop(task.id, None)
        if self.active_intention == intention_id:
            self.active_intention = None
        self._emit("intention_deleted", intention)

    def add_user_context(self, intention_id: str, text: str) -> Intention:
        intention = self.require_intention(intention_id)
        intention.user_context.append(text)
        intention.updated_at = datetime.now()
        self._emit("intention_updated", intention)
        return intention

    # === Tasks ===

    def add_task(self, intention_id: str, title: str, **fields: Any) -> Task:
        """Append a new task to the end of an intention's task list."""
        intention = self.require_intention(intention_id)
        task = Task(intention_id=intention_id, title=title, **fields)
        intention.tasks.append(task)
        intention.updated_at = datetime.now()
        self._task_owner[task.id] = intention_id
        self._emit("task_added", task)
        return task

    def get_task(self, task_id: str) -> Optional[Task]:
        intention_id = self._task_owner.get(task_id)
        if intention_id is None:
            return None
        for task in self._intentions[intention_id].tasks:
            if task.id == task_id:
                return task
        return None

    def require_task(self, task_id: str) -> Task:
        task = self.get_task(task_id)
        if task is None:
            raise NotFoundError("task", task_id)
        return task

    def get_tasks(self, intention_id: str) -> list[Task]:
        intention = self._intentions.get(intention_id)
        return list(intention.tasks) if intention else []

    def intention_for_task(self, task_id: str) -> Optional[Intention]:
        intention_id = self._task_owner.get(task_id)
        return self._intentions.get(intention_id) if intention_id else None

    def update_task(self, task_id: str, **updates: Any) -> Task:
        """Apply field updates; a task's id and owner cannot change."""
        task = self.require_task(task_id)
        for key, value in updates.items():
            if key in ("id", "intention_id") or key not in Task.model_fields:
                raise ValueError(f"Cannot update task field '{key}'")
            setattr(task, key, value)
        self._intentions[task.intention_id].updated_at = datetime.now()
        self._emit("task_updated", task)
        return task

    def delete_task(self, task_id: str) -> None:
        intention_id = self._task_owner.pop(task_id, None)
        if intention_id is None:
            return
        intention = self._intentions[intention_id]
        removed = [t for t in intention.tasks if t.id == task_id]
        intention.tasks = [t for t in intention.tasks if t.id != task_id]
        intention.updated_at = datetime.now()
        if removed:
            self._emit("task_deleted", removed[0])

    # === Output collation ===

    def collate_outputs(self, intention_id: str) -> str:
        """
        Join the result outputs of completed tasks into one document.

        Each task contributes a bold title line followed by its results;
        tasks are separated by a horizontal rule.
        """
        intention = self.require_intention(intention_id)
        sections = []
        for task in intention.tasks:
            if task.status != TaskStatus.COMPLETED:
                continue
            results = [o.content for o in task.outputs if o.type == OutputType.RESULT]
            if results:
                sections.append(f"**{task.title}**\n" + "\n\n".join(results))

        collated = "\n\n---\n\n".join(sections) or NO_RESULTS_YET
        self.set_collated_output(intention_id, collated)
        return collated

    def set_collated_output(self, intention_id: str, output: str) -> Intention:
        return self.update_intention(intention_id, collated_output=output)

    def reset(self) -> None:
        self._intentions.clear()
        self._task_owner.clear()
        self.active_intention = None
        self._emit("reset", None)
