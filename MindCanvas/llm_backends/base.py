from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Literal, Optional, TypedDict


MessageRole = Literal["system", "user", "assistant"]


class ChatMessage(TypedDict):
    role: MessageRole
    content: str


@dataclass(frozen=True)
class TokenUsage:
    """Token counts reported by the provider for one call."""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> "TokenUsage":
        prompt = int(data.get("prompt_tokens", 0) or 0)
        completion = int(data.get("completion_tokens", 0) or 0)
        total = int(data.get("total_tokens", 0) or 0) or prompt + completion
        return cls(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total)


@dataclass(frozen=True)
class Completion:
    """Textual payload of one chat completion plus reported usage."""
    content: str
    model: str
    usage: Optional[TokenUsage] = None


class LLMBackend(ABC):
    """
    Abstract interface for chat-completion providers.

    Implementations raise TransportError for network failures and non-success
    statuses, and EmptyPayloadError when the response has no text.
    """

    model: str

    @abstractmethod
    async def acomplete(
        self,
        messages: List[ChatMessage],
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> Completion:
        ...

    @abstractmethod
    async def check_connection(self) -> bool:
        """Lightweight authenticated probe; never raises."""
        ...

    async def aclose(self) -> None:
        return None
