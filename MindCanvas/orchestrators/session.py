"""
MindCanvasSession: Per-session context wiring the AI core together.

One session owns one governor, store, scheduler, model client, orchestrator
and execution engine. Nothing is shared between sessions.

Usage:
    async with MindCanvasSession(load_settings()) as session:
        outcome = await session.process_intention("organize my move")
        await session.scheduler.drain()
        for task in session.store.get_tasks(outcome.intention_id):
            await session.execute_task(task.id)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional, Sequence
import logging
import random
import time
import uuid

from ..agents.model_client import ModelClient, ModelResponse
from ..agents.schemas import TaskUpdate
from ..config.settings import AppSettings, is_ai_available
from ..core.canvas_store import CanvasStore
from ..core.models import IntentionStatus, Position, ProcessingState, TaskExecution
from ..core.resource_governor import ResourceGovernor, ResourceUsage
from ..llm_backends.base import LLMBackend
from ..llm_backends.openai_backend import OpenAIBackend
from ..runtime.execution_engine import ProgressCallback, TaskExecutionEngine
from ..runtime.scheduler import AsyncioScheduler, Scheduler
from ..utils import console
from .intention_orchestrator import IntentionOrchestrator, ProcessingOutcome, StateListener


logger = logging.getLogger("mindcanvas.session")


@dataclass
class TranscriptEvent:
    """One speech-to-text result delivered to the session."""
    text: str
    is_final: bool
    timestamp: datetime = field(default_factory=datetime.now)


class MindCanvasSession:
    """
    Entry point for collaborators (transcript source, canvas UI, CLI).

    Without a usable API key no model client is built: intention processing
    takes its failure path and executions fail with ClientUnavailableError.

    Args:
        settings: Application settings (defaults when omitted)
        backend: Chat backend; built from settings.ai when omitted
        scheduler: Delay source; real time when omitted
        clock: Wall clock for the governor window
        rng: Random source for execution pacing
    """

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        backend: Optional[LLMBackend] = None,
        scheduler: Optional[Scheduler] = None,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings or AppSettings()
        self.session_id = uuid.uuid4().hex[:8]

        self.governor = ResourceGovernor(self.settings.governor, clock=clock)
        self.store = CanvasStore()
        self.scheduler = scheduler or AsyncioScheduler()

        if backend is None and is_ai_available(self.settings):
            ai = self.settings.ai
            backend = OpenAIBackend(
                api_key=ai.api_key,
                model=ai.model,
                base_url=ai.base_url,
                timeout=ai.timeout_seconds,
            )
        self.backend = backend
        self.client = (
            ModelClient(backend, self.governor, self.settings, sleep=self.scheduler.sleep)
            if backend is not None
            else None
        )

        self.orchestrator = IntentionOrchestrator(
            self.store, self.governor, self.client, self.scheduler, self.settings
        )
        self.engine = TaskExecutionEngine(
            self.store, self.governor, self.client, self.scheduler, self.settings, rng=rng
        )

        self.is_connected: Optional[bool] = None
        self.transcript: list[TranscriptEvent] = []

    # === Lifecycle ===

    async def start(self, probe: bool = True) -> None:
        """Start window pruning and, when probe is set, test connectivity."""
        self.governor.start_pruning()
        if self.client is None:
            console.warning("OpenAI API key not found. AI features will be disabled.")
            self.is_connected = False
        elif probe:
            self.is_connected = await self.client.test_connection()
            if not self.is_connected:
                console.warning("Could not reach the AI service", self.settings.ai.base_url)
        logger.info("Session %s started (connected=%s)", self.session_id, self.is_connected)

    async def close(self) -> None:
        await self.governor.stop_pruning()
        await self.scheduler.aclose()
        if self.backend is not None:
            await self.backend.aclose()
        logger.info("Session %s closed", self.session_id)

    async def __aenter__(self) -> "MindCanvasSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # === Status ===

    @property
    def is_ai_available(self) -> bool:
        return self.client is not None and self.is_connected is True

    @property
    def processing_state(self) -> ProcessingState:
        return self.orchestrator.state

    def subscribe_processing(self, listener: StateListener) -> Callable[[], None]:
        return self.orchestrator.subscribe(listener)

    def get_resource_usage(self) -> ResourceUsage:
        return self.governor.snapshot()

    # === Intentions ===

    def create_intention(self, position: Optional[Position] = None):
        return self.store.create_intention(position)

    async def process_intention(
        self,
        text: str,
        intention_id: Optional[str] = None,
        context: Optional[Sequence[str]] = None,
    ) -> ProcessingOutcome:
        """
        Run the intention pipeline, creating an intention when none is given.

        The intention's accumulated user context is sent along when no
        explicit context is passed.
        """
        if intention_id is None:
            intention_id = self.store.create_intention().id
        if context is None:
            context = self.store.require_intention(intention_id).user_context or None
        return await self.orchestrator.process_intention(intention_id, text, context)

    async def retry_processing(self, intention_id: str) -> ProcessingOutcome:
        """Re-run the pipeline on the intention's stored utterance."""
        intention = self.store.require_intention(intention_id)
        return await self.orchestrator.retry_processing(
            intention_id, intention.original_input or intention.title, intention.user_context or None
        )

    async def generate_more_tasks(self, intention_id: str) -> ProcessingOutcome:
        return await self.orchestrator.generate_more_tasks(intention_id)

    async def handle_transcript(
        self,
        text: str,
        is_final: bool,
        intention_id: Optional[str] = None,
    ) -> Optional[ProcessingOutcome]:
        """
        Consume one transcript event.

        Interim and blank results are recorded only. A final result is
        processed against the given intention, the active listening
        intention, or a newly created one.
        """
        self.transcript.append(TranscriptEvent(text=text, is_final=is_final))
        if not is_final or not text.strip():
            return None

        if intention_id is None:
            active = self.store.active_intention
            intention = self.store.get_intention(active) if active else None
            if intention is not None and intention.status == IntentionStatus.LISTENING:
                intention_id = intention.id
            else:
                intention_id = self.store.create_intention().id

        self.store.active_intention = None
        return await self.process_intention(text.strip(), intention_id)

    # === Tasks ===

    async def execute_task(
        self,
        task_id: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> TaskExecution:
        return await self.engine.execute_task(task_id, on_progress)

    async def force_complete_task(self, task_id: str) -> TaskExecution:
        return await self.engine.force_complete(task_id)

    async def update_task_with_ai(self, task_id: str, new_context: str) -> ModelResponse[TaskUpdate]:
        return await self.orchestrator.update_task_with_ai(task_id, new_context)

    def collate_outputs(self, intention_id: str) -> str:
        return self.store.collate_outputs(intention_id)
