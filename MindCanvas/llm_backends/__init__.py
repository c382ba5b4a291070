"""
LLM Backend implementations for MindCanvas.

- LLMBackend: abstract chat-completion interface
- OpenAIBackend: OpenAI-compatible Chat Completions over HTTPX
"""

from .base import LLMBackend, ChatMessage, Completion, TokenUsage
from .openai_backend import OpenAIBackend

__all__ = [
    "LLMBackend",
    "ChatMessage",
    "Completion",
    "TokenUsage",
    "OpenAIBackend",
]
