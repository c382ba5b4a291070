"""
TaskExecutionEngine: Drives one task through its execution steps.

Each execution:
1. Starts a TaskExecution record and emits it
2. Fails immediately, without a remote call, while the governor reports a rate limit
3. Holds one governor slot for the rest of the run
4. Walks four paced progress steps (20, 40, 60, 80%)
5. Generates the result with one remote call and records token usage
6. Ends completed (100%) or failed, and emits the terminal record

Every transition is mirrored onto the stored Task and passed to the
progress callback as a copy.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional
import asyncio
import inspect
import logging
import random

from ..agents.model_client import ModelClient
from ..config.settings import AppSettings
from ..core.canvas_store import CanvasStore
from ..core.models import (
    ExecutionStatus,
    OutputType,
    Task,
    TaskExecution,
    TaskStatus,
)
from ..core.resource_governor import ResourceGovernor
from ..infrastructure.errors import (
    ClientUnavailableError,
    RateLimitError,
    TaskAlreadyRunningError,
)
from ..utils import console
from .scheduler import Scheduler


logger = logging.getLogger("mindcanvas.execution")

EXECUTION_STEPS = (
    "Analyzing task requirements",
    "Gathering relevant information",
    "Planning execution approach",
    "Working through the task",
    "Generating results",
)

ProgressCallback = Callable[[TaskExecution], Any]


@dataclass
class _ActiveExecution:
    execution: TaskExecution
    runner: asyncio.Task
    on_progress: Optional[ProgressCallback]
    base_outputs: list


class TaskExecutionEngine:
    """
    Executes tasks against the model client with paced progress reporting.

    Several tasks may execute concurrently; a single task runs at most once
    at a time.

    Args:
        store: Canvas store holding the tasks
        governor: Session resource governor
        client: Model client, or None when AI is not configured
        scheduler: Source of pacing delays
        settings: Pacing and token-estimate settings
        rng: Random source for step delays
    """

    def __init__(
        self,
        store: CanvasStore,
        governor: ResourceGovernor,
        client: Optional[ModelClient],
        scheduler: Scheduler,
        settings: Optional[AppSettings] = None,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.governor = governor
        self.client = client
        self.scheduler = scheduler
        self.settings = settings or AppSettings()
        self._rng = rng or random.Random()
        self._active: dict[str, _ActiveExecution] = {}

    def is_running(self, task_id: str) -> bool:
        return task_id in self._active

    async def execute_task(
        self,
        task_id: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> TaskExecution:
        """
        Execute a task and return its terminal execution record.

        Failures during the run end in status FAILED rather than raising.

        Raises:
            NotFoundError: task_id is not in the store
            TaskAlreadyRunningError: the task is already executing
        """
        task = self.store.require_task(task_id)
        if self.is_running(task_id):
            raise TaskAlreadyRunningError(task_id)

        execution = TaskExecution(task_id=task_id)
        runner = asyncio.get_running_loop().create_task(self._run(task, execution))
        self._active[task_id] = _ActiveExecution(
            execution=execution,
            runner=runner,
            on_progress=on_progress,
            base_outputs=list(task.outputs),
        )
        try:
            await runner
        except asyncio.CancelledError:
            # Cancelled by force_complete before the run started
            if not execution.forced:
                raise
        finally:
            self._active.pop(task_id, None)
        return execution

    async def force_complete(self, task_id: str) -> TaskExecution:
        """
        Mark a task completed without running the remaining steps.

        An in-flight execution is cancelled: its pending remote call is
        abandoned, its governor slot released and no result is recorded.
        """
        task = self.store.require_task(task_id)
        active = self._active.get(task_id)

        if active is None:
            execution = TaskExecution(task_id=task_id, forced=True)
            self._finish(execution, ExecutionStatus.COMPLETED)
            self.store.update_task(
                task_id,
                status=TaskStatus.COMPLETED,
                progress=100,
                current_step="Completed",
                execution_completed=execution.completed_at,
            )
            console.task_complete(task.title)
            return execution

        execution = active.execution
        execution.forced = True
        self._finish(execution, ExecutionStatus.COMPLETED)
        active.runner.cancel()
        logger.info("Force-completed task %s", task_id)
        await self._emit(task_id, execution)
        console.task_complete(task.title)
        return execution

    # === Execution ===

    async def _run(self, task: Task, execution: TaskExecution) -> None:
        task_id = task.id
        try:
            await self._emit(task_id, execution)

            if self.client is None:
                raise ClientUnavailableError()
            if self.governor.rate_limit_reached:
                raise RateLimitError(self.governor.snapshot().reset_time)

            async with self.governor.request_slot():
                execution.status = ExecutionStatus.RUNNING
                for i, step in enumerate(EXECUTION_STEPS[:-1]):
                    execution.progress = (i + 1) * 100 // len(EXECUTION_STEPS)
                    execution.current_step = step
                    execution.add_output(OutputType.PROGRESS, step, step=i + 1)
                    console.task_step(task.title, execution.progress, step)
                    await self._emit(task_id, execution)
                    await self.scheduler.sleep(self._step_delay())

                execution.current_step = EXECUTION_STEPS[-1]
                console.task_step(task.title, execution.progress, EXECUTION_STEPS[-1])
                await self._emit(task_id, execution)

                intention = self.store.intention_for_task(task_id)
                response = await self.client.generate_task_result(
                    self.store.require_task(task_id), intention, governed=False
                )
                if response.usage is not None:
                    self.governor.record_tokens(response.usage.total_tokens)
                elif not response.degraded:
                    self.governor.record_tokens(self.settings.governor.default_token_estimate)
                execution.add_output(OutputType.RESULT, response.value, degraded=response.degraded)

            self._finish(execution, ExecutionStatus.COMPLETED)
            console.task_complete(task.title, response.value)

        except asyncio.CancelledError:
            if execution.forced:
                return
            raise
        except Exception as e:
            self._finish(execution, ExecutionStatus.FAILED, error=str(e))
            execution.add_output(OutputType.ERROR, str(e), error_type=type(e).__name__)
            logger.warning("Execution of task %s failed: %s", task_id, e)
            console.task_failed(task.title, str(e))

        await self._emit(task_id, execution)

    @staticmethod
    def _finish(
        execution: TaskExecution,
        status: ExecutionStatus,
        error: Optional[str] = None,
    ) -> None:
        execution.status = status
        execution.completed_at = datetime.now()
        if status == ExecutionStatus.COMPLETED:
            execution.progress = 100
            execution.current_step = "Completed"
        else:
            execution.error = error
            execution.current_step = "Failed"

    def _step_delay(self) -> float:
        pacing = self.settings.pacing
        if pacing.step_delay_max <= 0:
            return 0.0
        return self._rng.uniform(pacing.step_delay_min, pacing.step_delay_max)

    # === Mirroring ===

    async def _emit(self, task_id: str, execution: TaskExecution) -> None:
        """Mirror the execution onto the stored task and notify the observer."""
        active = self._active.get(task_id)
        base_outputs = active.base_outputs if active else []
        self._mirror(task_id, execution, base_outputs)

        if active and active.on_progress:
            result = active.on_progress(execution.model_copy(deep=True))
            if inspect.isawaitable(result):
                await result

    def _mirror(self, task_id: str, execution: TaskExecution, base_outputs: list) -> None:
        if self.store.get_task(task_id) is None:
            logger.debug("Task %s deleted during execution, not mirroring", task_id)
            return

        if execution.status == ExecutionStatus.COMPLETED:
            status = TaskStatus.COMPLETED
        elif execution.status == ExecutionStatus.FAILED:
            status = TaskStatus.SPAWNING
        else:
            status = TaskStatus.EXECUTING

        self.store.update_task(
            task_id,
            status=status,
            progress=execution.progress,
            current_step=execution.current_step,
            outputs=base_outputs + execution.outputs,
            execution_started=execution.started_at,
            execution_completed=execution.completed_at,
        )
