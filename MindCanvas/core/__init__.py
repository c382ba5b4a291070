"""
MindCanvas Core.

- models: Intention, Task, TaskExecution and ProcessingState records
- ResourceGovernor: request window, rate limit and cost accounting
- CanvasStore: session registry of intentions and tasks
"""

from .models import (
    Intention,
    IntentionStatus,
    Task,
    TaskStatus,
    TaskExecution,
    TaskExecutionOutput,
    ExecutionStatus,
    OutputType,
    Position,
    ProcessingState,
)
from .resource_governor import ResourceGovernor, ResourceUsage
from .canvas_store import CanvasStore

__all__ = [
    "Intention",
    "IntentionStatus",
    "Task",
    "TaskStatus",
    "TaskExecution",
    "TaskExecutionOutput",
    "ExecutionStatus",
    "OutputType",
    "Position",
    "ProcessingState",
    "ResourceGovernor",
    "ResourceUsage",
    "CanvasStore",
]
