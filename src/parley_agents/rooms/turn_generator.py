"""Turn generation: produce the next line of dialogue for a room."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Optional, Protocol, Sequence

from parley_core.llm import ChatCompletionsClient, ChatCompletionsError, LLMMessage

from .errors import GenerationError

logger = logging.getLogger(__name__)


class TurnGenerator(Protocol):
    """Produces one line of dialogue or raises ``GenerationError``."""

    async def generate(self, instructions: str, history: Sequence[LLMMessage]) -> str: ...


class ChatTurnGenerator:
    """Thin async wrapper around the synchronous chat-completions client."""

    def __init__(
        self,
        client: Optional[ChatCompletionsClient] = None,
        *,
        model: Optional[str] = None,
        max_tokens: int = 150,
        temperature: float = 0.8,
    ) -> None:
        self._client = client
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._lock = threading.Lock()

    async def generate(self, instructions: str, history: Sequence[LLMMessage]) -> str:
        try:
            client = self._ensure_client()
            result = await asyncio.to_thread(
                client.complete,
                list(history),
                system=instructions,
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except ChatCompletionsError as exc:
            raise GenerationError(f"Model request failed: {exc.message}") from exc
        except ValueError as exc:
            raise GenerationError(f"Invalid generation request: {exc}") from exc

        if result.is_empty():
            raise GenerationError(f"Model {result.model or self.model} returned an empty reply")

        logger.debug(
            "Generated %d chars (finish_reason=%s)", len(result.text), result.finish_reason
        )
        return result.text.strip()

    def _ensure_client(self) -> ChatCompletionsClient:
        with self._lock:
            if self._client is None:
                self._client = ChatCompletionsClient(default_max_output_tokens=self.max_tokens)
            return self._client
