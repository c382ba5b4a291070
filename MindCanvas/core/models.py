"""
Domain records for intentions, tasks and execution progress.

Provides:
- Intention / Task: canvas items owned by a session
- TaskExecutionOutput: append-only log entries of one execution
- TaskExecution: state of a single execution run
- ProcessingState: orchestrator progress surfaced to observers
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional
import uuid

from pydantic import BaseModel, Field


def new_id() -> str:
    return str(uuid.uuid4())


class IntentionStatus(str, Enum):
    """Lifecycle of an intention."""
    LISTENING = "listening"
    PROCESSING = "processing"
    ACTIVE = "active"
    FULFILLED = "fulfilled"


class TaskStatus(str, Enum):
    """Lifecycle of a task card."""
    SPAWNING = "spawning"
    EXECUTING = "executing"
    COMPLETED = "completed"


class ExecutionStatus(str, Enum):
    """State of a single execution run."""
    STARTING = "starting"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ExecutionStatus.COMPLETED, ExecutionStatus.FAILED)


class OutputType(str, Enum):
    PROGRESS = "progress"
    RESULT = "result"
    ERROR = "error"


class Position(BaseModel):
    """Canvas coordinates of a card."""

    x: float = 0.0
    y: float = 0.0


class TaskExecutionOutput(BaseModel):
    """One entry in a task's output log."""

    id: str = Field(default_factory=new_id)
    timestamp: datetime = Field(default_factory=datetime.now)
    type: OutputType
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class Task(BaseModel):
    """
    An actionable unit derived from an intention.

    Attributes:
        intention_id: Owning intention; never changes
        status: spawning -> executing -> completed
        progress: Execution progress 0-100
        current_step: Description of the step being worked on
        outputs: Emission-ordered output log
        ai_reasoning: Why the model suggested this task
    """

    id: str = Field(default_factory=new_id)
    intention_id: str
    title: str
    description: str = ""
    status: TaskStatus = TaskStatus.SPAWNING
    position: Position = Field(default_factory=Position)
    created_at: datetime = Field(default_factory=datetime.now)
    ai_reasoning: str = ""
    progress: int = Field(default=0, ge=0, le=100)
    current_step: str = ""
    outputs: list[TaskExecutionOutput] = Field(default_factory=list)
    execution_started: Optional[datetime] = None
    execution_completed: Optional[datetime] = None

    model_config = {"validate_assignment": True}

    def latest_result(self) -> Optional[str]:
        """Content of the last result output, the authoritative task output."""
        for output in reversed(self.outputs):
            if output.type == OutputType.RESULT:
                return output.content
        return None


class Intention(BaseModel):
    """A user-declared goal awaiting decomposition into tasks."""

    id: str = Field(default_factory=new_id)
    title: str = ""
    original_input: str = ""
    description: str = ""
    status: IntentionStatus = IntentionStatus.LISTENING
    position: Position = Field(default_factory=Position)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    tasks: list[Task] = Field(default_factory=list)
    user_context: list[str] = Field(default_factory=list)
    ai_progress: int = Field(default=0, ge=0, le=100)
    collated_output: Optional[str] = None

    model_config = {"validate_assignment": True}

    def task_titles(self) -> list[str]:
        return [task.title for task in self.tasks]


class TaskExecution(BaseModel):
    """
    Record of one execution of a task.

    Emitted to progress observers after every transition; observers receive
    copies and must not rely on later mutation.
    """

    task_id: str
    status: ExecutionStatus = ExecutionStatus.STARTING
    progress: int = Field(default=0, ge=0, le=100)
    current_step: str = ""
    outputs: list[TaskExecutionOutput] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    forced: bool = False

    def add_output(self, type: OutputType, content: str, **metadata: Any) -> TaskExecutionOutput:
        output = TaskExecutionOutput(type=type, content=content, metadata=metadata)
        self.outputs.append(output)
        return output

    def result(self) -> Optional[str]:
        for output in reversed(self.outputs):
            if output.type == OutputType.RESULT:
                return output.content
        return None


class ProcessingState(BaseModel):
    """Progress of the intention pipeline as seen by observers."""

    is_processing: bool = False
    progress: int = Field(default=0, ge=0, le=100)
    current_step: str = ""
    error: Optional[str] = None

    @classmethod
    def idle(cls) -> "ProcessingState":
        return cls()
