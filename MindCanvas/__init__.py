"""
MindCanvas: Spoken intentions turned into AI-planned, executable tasks.

A user states a goal; a remote chat model decomposes it into a handful of
concrete tasks that appear on the canvas one after another, and each task
can then be executed against the same model to produce a result.

Architecture:
- core/: domain models, CanvasStore and the ResourceGovernor
- llm_backends/: OpenAI-compatible chat backend over HTTPX
- agents/: ModelClient with validated contracts and deterministic fallbacks
- orchestrators/: IntentionOrchestrator pipeline and MindCanvasSession
- runtime/: TaskExecutionEngine and the Scheduler seam
- config/: YAML + environment settings

Quick Start:
    from MindCanvas import MindCanvasSession, load_settings

    async with MindCanvasSession(load_settings()) as session:
        outcome = await session.process_intention("organize my move to a new apartment")
        await session.scheduler.drain()
"""

__version__ = "0.1.0"

# Configuration
from .config import AppSettings, load_settings, validate_settings, is_ai_available

# Core components
from .core import (
    CanvasStore,
    Intention,
    IntentionStatus,
    ProcessingState,
    ResourceGovernor,
    ResourceUsage,
    Task,
    TaskExecution,
    TaskStatus,
)

# Model access
from .agents import ModelClient, ModelResponse
from .llm_backends import LLMBackend, OpenAIBackend

# Orchestration
from .orchestrators import IntentionOrchestrator, MindCanvasSession, ProcessingOutcome
from .runtime import TaskExecutionEngine, AsyncioScheduler, VirtualScheduler

# Console utilities
from .utils import console

__all__ = [
    # Version
    "__version__",
    # Config
    "AppSettings",
    "load_settings",
    "validate_settings",
    "is_ai_available",
    # Core
    "CanvasStore",
    "Intention",
    "IntentionStatus",
    "ProcessingState",
    "ResourceGovernor",
    "ResourceUsage",
    "Task",
    "TaskExecution",
    "TaskStatus",
    # Model access
    "ModelClient",
    "ModelResponse",
    "LLMBackend",
    "OpenAIBackend",
    # Orchestration
    "IntentionOrchestrator",
    "MindCanvasSession",
    "ProcessingOutcome",
    "TaskExecutionEngine",
    "AsyncioScheduler",
    "VirtualScheduler",
    # Console
    "console",
]
