"""
MindCanvas Runtime Module.

- Scheduler / AsyncioScheduler / VirtualScheduler: delayed execution seam
- TaskExecutionEngine: per-task execution with streamed progress
"""

from .scheduler import Scheduler, ScheduledCall, AsyncioScheduler, VirtualScheduler
from .execution_engine import TaskExecutionEngine, EXECUTION_STEPS, ProgressCallback

__all__ = [
    "Scheduler",
    "ScheduledCall",
    "AsyncioScheduler",
    "VirtualScheduler",
    "TaskExecutionEngine",
    "EXECUTION_STEPS",
    "ProgressCallback",
]
