"""
MindCanvas Agents Module.

- ModelClient: governed remote operations with deterministic fallbacks
- ModelResponse: value + degraded flag returned by every operation
- schemas: validated response contracts
- prompts: prompt templates per operation
"""

from .model_client import ModelClient, ModelResponse, FALLBACK_TASKS
from .schemas import (
    IntentionAnalysis,
    SuggestedTask,
    TaskSuggestions,
    TaskUpdate,
    parse_json_payload,
)

__all__ = [
    "ModelClient",
    "ModelResponse",
    "FALLBACK_TASKS",
    "IntentionAnalysis",
    "SuggestedTask",
    "TaskSuggestions",
    "TaskUpdate",
    "parse_json_payload",
]
