"""
ModelClient: Typed operations against the remote chat model.

Each operation builds its prompt, issues one governed remote call, parses
and validates the payload, and wraps the outcome in a ModelResponse.

Remote failures (transport, empty payload, unparseable JSON, schema
mismatch) are absorbed into deterministic fallback values built only from
the caller's input, so the fallback has the same shape as a real response.
Callers detect substitution through ModelResponse.degraded.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, Sequence, Type, TypeVar
import asyncio
import logging

from pydantic import BaseModel, ValidationError

from . import prompts
from .schemas import (
    IntentionAnalysis,
    SuggestedTask,
    TaskSuggestions,
    TaskUpdate,
    parse_json_payload,
)
from ..config.settings import AppSettings
from ..core.models import Intention, Task, TaskStatus
from ..core.resource_governor import ResourceGovernor
from ..infrastructure.errors import (
    MindCanvasError,
    REMOTE_FAILURES,
    SchemaValidationError,
    handle_error,
    retry_with_backoff,
)
from ..llm_backends.base import ChatMessage, Completion, LLMBackend, TokenUsage
from ..utils.timing import async_timed_operation


logger = logging.getLogger("mindcanvas.agents")

T = TypeVar("T")
ContractT = TypeVar("ContractT", bound=BaseModel)


FALLBACK_TASKS = (
    SuggestedTask(
        title="Research and Planning",
        description="Gather information and create a plan for your intention",
        reasoning="Good planning is essential for successful execution",
    ),
    SuggestedTask(
        title="First Action Step",
        description="Take the first concrete action towards your goal",
        reasoning="Starting is often the hardest part",
    ),
    SuggestedTask(
        title="Review and Adjust",
        description="Evaluate progress and make necessary adjustments",
        reasoning="Regular review ensures you stay on track",
    ),
)
FALLBACK_PROGRESS_ESTIMATE = 10


@dataclass
class ModelResponse(Generic[T]):
    """
    Outcome of one model client operation.

    Attributes:
        value: Parsed response, or the deterministic fallback
        degraded: True when value is a fallback substitute
        error: The remote failure that triggered the fallback
        usage: Provider-reported token usage (None for fallbacks)
    """
    value: T
    degraded: bool = False
    error: Optional[MindCanvasError] = None
    usage: Optional[TokenUsage] = None


class ModelClient:
    """
    Remote model operations for intention analysis and task work.

    Every governed attempt is bracketed by governor.request_slot(), so the
    in-flight count is restored even when the call raises. Reported token
    usage is added to the governor afterwards.

    Args:
        backend: Chat-completion backend
        governor: The session's resource governor
        settings: Application settings (AI sampling, retry and fallback flags)
        sleep: Awaitable used between retry attempts
    """

    def __init__(
        self,
        backend: LLMBackend,
        governor: ResourceGovernor,
        settings: Optional[AppSettings] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.backend = backend
        self.governor = governor
        self.settings = settings or AppSettings()
        self._sleep = sleep

    @property
    def model(self) -> str:
        return self.backend.model

    # === Public operations ===

    async def analyze_intention(
        self,
        text: str,
        context: Optional[Sequence[str]] = None,
    ) -> ModelResponse[IntentionAnalysis]:
        """
        Interpret an utterance and propose 1-5 tasks.

        With enable_ai_fallback disabled, remote failures propagate instead
        of being replaced by fallback_analysis().
        """
        messages = prompts.intention_analysis_messages(text, context)
        try:
            analysis, completion = await self._structured(
                "analyze_intention", messages, IntentionAnalysis
            )
        except REMOTE_FAILURES as e:
            if not self.settings.enable_ai_fallback:
                raise
            await self._report_fallback("analyze_intention", e)
            return ModelResponse(self.fallback_analysis(text), degraded=True, error=e)

        return ModelResponse(analysis, usage=completion.usage)

    async def process_task_update(self, task: Task, new_context: str) -> ModelResponse[TaskUpdate]:
        """Revise a task's description and status in light of new context."""
        messages = prompts.task_update_messages(
            task.title, task.description, task.status.value, new_context
        )
        try:
            update, completion = await self._structured(
                "process_task_update", messages, TaskUpdate,
                max_tokens=self.settings.ai.update_max_tokens,
            )
        except REMOTE_FAILURES as e:
            await self._report_fallback("process_task_update", e)
            return ModelResponse(self.fallback_task_update(task, new_context), degraded=True, error=e)

        return ModelResponse(update, usage=completion.usage)

    async def generate_task_suggestions(
        self,
        intention_title: str,
        existing_tasks: Sequence[str],
    ) -> ModelResponse[list[SuggestedTask]]:
        """
        Propose additional tasks for an intention.

        Suggestions whose title repeats an existing task are dropped. The
        fallback is an empty list.
        """
        messages = prompts.task_suggestions_messages(intention_title, existing_tasks)
        try:
            suggestions, completion = await self._structured(
                "generate_task_suggestions", messages, TaskSuggestions,
                max_tokens=self.settings.ai.suggestions_max_tokens,
            )
        except REMOTE_FAILURES as e:
            await self._report_fallback("generate_task_suggestions", e)
            return ModelResponse([], degraded=True, error=e)

        existing = {title.strip().lower() for title in existing_tasks}
        fresh = [s for s in suggestions.new_tasks if s.title.strip().lower() not in existing]
        if len(fresh) < len(suggestions.new_tasks):
            logger.debug(
                "Dropped %d duplicate suggestion(s) for %r",
                len(suggestions.new_tasks) - len(fresh), intention_title,
            )
        return ModelResponse(fresh, usage=completion.usage)

    async def generate_task_result(
        self,
        task: Task,
        intention: Optional[Intention] = None,
        governed: bool = True,
    ) -> ModelResponse[str]:
        """
        Carry out a task and return free-form result text.

        Args:
            task: Task to work on
            intention: Owning intention, used as context
            governed: False when the caller already holds a governor slot
                for this call (the execution engine does)
        """
        messages = prompts.task_result_messages(
            task.title,
            task.description,
            reasoning=task.ai_reasoning,
            intention=intention.title if intention else "",
            user_context=intention.user_context if intention else None,
        )
        try:
            completion = await self._complete("generate_task_result", messages, governed=governed)
        except REMOTE_FAILURES as e:
            await self._report_fallback("generate_task_result", e)
            return ModelResponse(self.fallback_task_result(task), degraded=True, error=e)

        return ModelResponse(completion.content.strip(), usage=completion.usage)

    async def test_connection(self) -> bool:
        """Probe the model service. Not governed; repeated calls are harmless."""
        async with async_timed_operation("test_connection", "probe", model=self.model):
            connected = await self.backend.check_connection()
        logger.info("AI connection test: %s", "ok" if connected else "failed")
        return connected

    # === Fallbacks ===

    @staticmethod
    def fallback_analysis(text: str) -> IntentionAnalysis:
        return IntentionAnalysis(
            intention_analysis=(
                f'I heard: "{text}". Let me help you break this down into actionable steps.'
            ),
            suggested_tasks=list(FALLBACK_TASKS),
            progress_estimate=FALLBACK_PROGRESS_ESTIMATE,
        )

    @staticmethod
    def fallback_task_update(task: Task, new_context: str) -> TaskUpdate:
        status = TaskStatus.EXECUTING if task.status == TaskStatus.SPAWNING else task.status
        return TaskUpdate(
            updated_description=f"{task.description} (Updated with: {new_context})",
            status=status.value,
        )

    @staticmethod
    def fallback_task_result(task: Task) -> str:
        lines = [f'Could not reach the AI service to complete "{task.title}".']
        if task.description:
            lines.append(f"Task details: {task.description}")
        lines.append("Run the task again once the service is available.")
        return "\n".join(lines)

    # === Remote calls ===

    async def _complete(
        self,
        operation: str,
        messages: list[ChatMessage],
        governed: bool = True,
        max_tokens: Optional[int] = None,
    ) -> Completion:
        ai = self.settings.ai
        cap = ai.max_tokens if max_tokens is None else min(max_tokens, ai.max_tokens)

        async def attempt() -> Completion:
            async with async_timed_operation(operation, "llm", model=self.model):
                if not governed:
                    return await self.backend.acomplete(
                        messages, temperature=ai.temperature, max_tokens=cap
                    )
                async with self.governor.request_slot():
                    completion = await self.backend.acomplete(
                        messages, temperature=ai.temperature, max_tokens=cap
                    )
                if completion.usage:
                    self.governor.record_tokens(completion.usage.total_tokens)
                return completion

        if ai.max_attempts > 1:
            return await retry_with_backoff(
                attempt,
                max_retries=ai.max_attempts,
                action_name=operation,
                sleep=self._sleep,
            )
        return await attempt()

    async def _structured(
        self,
        operation: str,
        messages: list[ChatMessage],
        contract: Type[ContractT],
        max_tokens: Optional[int] = None,
    ) -> tuple[ContractT, Completion]:
        completion = await self._complete(operation, messages, max_tokens=max_tokens)
        data = parse_json_payload(completion.content)
        try:
            return contract.model_validate(data), completion
        except ValidationError as e:
            raise SchemaValidationError(contract.__name__, original_error=e) from e

    async def _report_fallback(self, operation: str, error: MindCanvasError) -> None:
        logger.warning("%s fell back to default content: %s", operation, error.describe())
        await handle_error(error, operation.replace("_", " "))
