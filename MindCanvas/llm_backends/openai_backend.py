from __future__ import annotations

import logging
from typing import List, Optional

import httpx

from .base import ChatMessage, Completion, LLMBackend, TokenUsage
from ..infrastructure.errors import EmptyPayloadError, TransportError


logger = logging.getLogger("mindcanvas.llm")


class OpenAIBackend(LLMBackend):
    """
    Minimal OpenAI Chat Completions backend using HTTPX.

    Issues exactly one POST per acomplete() call; retries are the caller's
    decision so that every attempt can be accounted for.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4",
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise ValueError("OpenAI API key not set")
        self.model = model
        self.api_key = api_key

        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
        )

    @property
    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    async def acomplete(
        self,
        messages: List[ChatMessage],
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> Completion:
        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens

        try:
            resp = await self._client.post(
                "/chat/completions",
                json=payload,
                headers=self._headers,
            )
        except httpx.HTTPError as e:
            raise TransportError(f"OpenAI API request failed: {e}", original_error=e) from e

        if not resp.is_success:
            raise TransportError(
                f"OpenAI API error: {resp.status_code} {resp.reason_phrase}",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise TransportError("OpenAI API returned a non-JSON body", original_error=e) from e

        content = None
        choices = data.get("choices") if isinstance(data, dict) else None
        if choices and isinstance(choices[0], dict):
            content = (choices[0].get("message") or {}).get("content")
        if not content or not isinstance(content, str):
            raise EmptyPayloadError()

        usage = None
        if isinstance(data.get("usage"), dict):
            usage = TokenUsage.from_dict(data["usage"])

        logger.debug(
            "chat completion ok (model=%s, tokens=%s)",
            self.model, usage.total_tokens if usage else "n/a",
        )
        return Completion(content=content, model=data.get("model", self.model), usage=usage)

    async def check_connection(self) -> bool:
        """GET /models with the credential; True on a success status."""
        try:
            resp = await self._client.get("/models", headers=self._headers)
        except httpx.HTTPError as e:
            logger.warning("AI connection test failed: %s", e)
            return False
        return resp.is_success

    async def aclose(self) -> None:
        await self._client.aclose()
