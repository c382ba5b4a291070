"""
IntentionOrchestrator: Turns an utterance into an intention with tasks.

Pipeline phases, reflected in the observable ProcessingState:

    0%   Analyzing your intention...   intention marked processing
    25%  Connecting to AI...           remote analysis (or fallback)
    60%  Generating tasks...           intention updated from the analysis
    80%  Creating task cards...        task materialization scheduled
    100% Complete!                     state returns to idle after a settle delay

Tasks are materialized through the scheduler one stagger interval apart,
in the order the model suggested them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence
import logging

from ..agents.model_client import ModelClient, ModelResponse
from ..agents.schemas import IntentionAnalysis, SuggestedTask, TaskUpdate
from ..config.settings import AppSettings
from ..core.canvas_store import CanvasStore
from ..core.models import (
    IntentionStatus,
    Position,
    ProcessingState,
    Task,
    TaskStatus,
)
from ..core.resource_governor import ResourceGovernor
from ..infrastructure.errors import ClientUnavailableError, RateLimitError
from ..runtime.scheduler import ScheduledCall, Scheduler
from ..utils import console


logger = logging.getLogger("mindcanvas.orchestrator")

StateListener = Callable[[ProcessingState], None]

STEP_ANALYZING = "Analyzing your intention..."
STEP_CONNECTING = "Connecting to AI..."
STEP_GENERATING = "Generating tasks..."
STEP_CREATING = "Creating task cards..."
STEP_COMPLETE = "Complete!"


@dataclass
class ProcessingOutcome:
    """
    Result of one orchestrator run.

    Attributes:
        success: False when the pipeline took the failure path
        degraded: True when fallback content was used
        error: Failure or degradation reason
        scheduled: Pending task materializations, in stagger order
    """
    intention_id: str
    success: bool
    degraded: bool = False
    error: Optional[str] = None
    analysis: Optional[IntentionAnalysis] = None
    scheduled: list[ScheduledCall] = field(default_factory=list)

    @property
    def tasks_scheduled(self) -> int:
        return len(self.scheduled)


class IntentionOrchestrator:
    """
    Phased intention pipeline for one session.

    While the governor reports a rate limit, no remote call is made: the
    analysis falls back to default tasks and suggestions come back empty.

    Args:
        store: Canvas store receiving intention and task changes
        governor: Session resource governor
        client: Model client, or None when AI is not configured
        scheduler: Runs staggered materialization and the settle reset
        settings: Pacing settings
    """

    def __init__(
        self,
        store: CanvasStore,
        governor: ResourceGovernor,
        client: Optional[ModelClient],
        scheduler: Scheduler,
        settings: Optional[AppSettings] = None,
    ):
        self.store = store
        self.governor = governor
        self.client = client
        self.scheduler = scheduler
        self.settings = settings or AppSettings()

        self._state = ProcessingState.idle()
        self._listeners: list[StateListener] = []
        self._settle_call: Optional[ScheduledCall] = None

    # === Processing state ===

    @property
    def state(self) -> ProcessingState:
        return self._state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a ProcessingState observer; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, state: ProcessingState) -> None:
        self._state = state
        for listener in list(self._listeners):
            listener(state)

    def _advance(self, progress: int, step: str) -> None:
        self._set_state(self._state.model_copy(update={"progress": progress, "current_step": step}))

    def clear_error(self) -> None:
        self._set_state(self._state.model_copy(update={"error": None}))

    def _schedule_settle(self) -> None:
        self._settle_call = self.scheduler.call_later(
            self.settings.pacing.settle_delay,
            self._set_state,
            ProcessingState.idle(),
            label="settle",
        )

    def _cancel_settle(self) -> None:
        if self._settle_call is not None:
            self._settle_call.cancel()
            self._settle_call = None

    # === Pipeline ===

    async def process_intention(
        self,
        intention_id: str,
        text: str,
        context: Optional[Sequence[str]] = None,
    ) -> ProcessingOutcome:
        """
        Analyze an utterance and schedule its tasks onto the intention.

        Raises:
            NotFoundError: intention_id is not in the store
        """
        self.store.require_intention(intention_id)
        self._cancel_settle()
        console.intention_start(text)
        self._set_state(ProcessingState(is_processing=True, progress=0, current_step=STEP_ANALYZING))

        try:
            if self.client is None:
                raise ClientUnavailableError()

            self.store.update_intention(
                intention_id, status=IntentionStatus.PROCESSING, original_input=text
            )
            self._advance(25, STEP_CONNECTING)

            if self.governor.rate_limit_reached:
                limit = RateLimitError(self.governor.snapshot().reset_time)
                console.warning("Rate limited, using default tasks", str(limit))
                response = ModelResponse(
                    self.client.fallback_analysis(text), degraded=True, error=limit
                )
            else:
                response = await self.client.analyze_intention(text, context)
            analysis = response.value

            if self.store.get_intention(intention_id) is None:
                return self._abandon(intention_id)

            self._advance(60, STEP_GENERATING)
            self.store.update_intention(
                intention_id,
                title=analysis.intention_analysis,
                description=analysis.intention_analysis,
                status=IntentionStatus.ACTIVE,
                ai_progress=analysis.progress_estimate,
            )

            self._advance(80, STEP_CREATING)
            scheduled = self._schedule_tasks(
                intention_id,
                analysis.suggested_tasks,
                start_index=0,
                stagger=self.settings.pacing.stagger_delay,
            )

            self._advance(100, STEP_COMPLETE)
            self._schedule_settle()

        except Exception as e:
            logger.warning("Processing of intention %s failed: %s", intention_id, e)
            console.error("AI processing failed:", str(e))
            self._set_state(ProcessingState(error=str(e) or "AI processing failed"))
            if self.store.get_intention(intention_id) is not None:
                self.store.update_intention(
                    intention_id,
                    status=IntentionStatus.ACTIVE,
                    title=text,
                    description=(
                        f'I heard: "{text}". AI processing failed, '
                        "but you can still work with this intention manually."
                    ),
                )
            return ProcessingOutcome(intention_id, success=False, error=str(e))

        return ProcessingOutcome(
            intention_id,
            success=True,
            degraded=response.degraded,
            error=str(response.error) if response.error else None,
            analysis=analysis,
            scheduled=scheduled,
        )

    def _abandon(self, intention_id: str) -> ProcessingOutcome:
        error = f"Intention {intention_id} was deleted during processing"
        logger.info("Intention %s deleted during processing", intention_id)
        self._set_state(ProcessingState(error=error))
        return ProcessingOutcome(intention_id, success=False, error=error)

    async def retry_processing(
        self,
        intention_id: str,
        text: str,
        context: Optional[Sequence[str]] = None,
    ) -> ProcessingOutcome:
        """Clear the last error and run the pipeline again from the start."""
        self.clear_error()
        return await self.process_intention(intention_id, text, context)

    async def generate_more_tasks(self, intention_id: str) -> ProcessingOutcome:
        """
        Ask for additional tasks and schedule them below the existing ones.

        Raises:
            NotFoundError: intention_id is not in the store
        """
        intention = self.store.require_intention(intention_id)
        if self.client is None:
            error = ClientUnavailableError()
            console.error("Task generation failed:", str(error))
            return ProcessingOutcome(intention_id, success=False, error=str(error))

        existing = len(intention.tasks)
        if self.governor.rate_limit_reached:
            limit = RateLimitError(self.governor.snapshot().reset_time)
            console.warning("Rate limited, no new tasks generated", str(limit))
            return ProcessingOutcome(intention_id, success=True, degraded=True, error=str(limit))

        response = await self.client.generate_task_suggestions(
            intention.title, intention.task_titles()
        )
        scheduled = self._schedule_tasks(
            intention_id,
            response.value,
            start_index=existing,
            stagger=self.settings.pacing.regenerate_stagger_delay,
        )
        return ProcessingOutcome(
            intention_id,
            success=True,
            degraded=response.degraded,
            error=str(response.error) if response.error else None,
            scheduled=scheduled,
        )

    async def update_task_with_ai(self, task_id: str, new_context: str) -> ModelResponse[TaskUpdate]:
        """
        Revise a task from new context and apply the result to the store.

        Raises:
            NotFoundError: task_id is not in the store
            ClientUnavailableError: no model client configured
        """
        task = self.store.require_task(task_id)
        if self.client is None:
            raise ClientUnavailableError()

        if self.governor.rate_limit_reached:
            response = ModelResponse(
                self.client.fallback_task_update(task, new_context),
                degraded=True,
                error=RateLimitError(self.governor.snapshot().reset_time),
            )
        else:
            response = await self.client.process_task_update(task, new_context)

        if self.store.get_task(task_id) is None:
            logger.debug("Task %s deleted before its update arrived", task_id)
            return response

        self.store.update_task(
            task_id,
            description=response.value.updated_description,
            status=TaskStatus(response.value.status),
        )
        return response

    # === Materialization ===

    def _schedule_tasks(
        self,
        intention_id: str,
        suggestions: Sequence[SuggestedTask],
        start_index: int,
        stagger: float,
    ) -> list[ScheduledCall]:
        pacing = self.settings.pacing
        scheduled = []
        for i, suggestion in enumerate(suggestions):
            position = Position(x=pacing.task_offset_x, y=(start_index + i) * pacing.task_spacing)
            scheduled.append(self.scheduler.call_later(
                i * stagger,
                self._materialize_task,
                intention_id,
                suggestion,
                position,
                label=f"materialize:{suggestion.title}",
            ))
        return scheduled

    def _materialize_task(
        self,
        intention_id: str,
        suggestion: SuggestedTask,
        position: Position,
    ) -> Optional[Task]:
        if self.store.get_intention(intention_id) is None:
            logger.debug("Intention %s deleted before task %r materialized", intention_id, suggestion.title)
            return None
        task = self.store.add_task(
            intention_id,
            suggestion.title,
            description=suggestion.description,
            status=TaskStatus.SPAWNING,
            position=position,
            ai_reasoning=suggestion.reasoning,
        )
        console.task_spawned(task.title, suggestion.reasoning)
        return task
