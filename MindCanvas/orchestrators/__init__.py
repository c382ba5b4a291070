"""
MindCanvas Orchestrators.

- IntentionOrchestrator: phased utterance -> intention + staggered tasks pipeline
- MindCanvasSession: per-session context object exposing the collaborator API
"""

from .intention_orchestrator import IntentionOrchestrator, ProcessingOutcome
from .session import MindCanvasSession, TranscriptEvent

__all__ = [
    "IntentionOrchestrator",
    "ProcessingOutcome",
    "MindCanvasSession",
    "TranscriptEvent",
]
