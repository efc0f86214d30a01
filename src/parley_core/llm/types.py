from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional


MessageRole = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class LLMMessage:
    """Generic chat message representation used across Parley runtimes."""

    role: MessageRole
    content: str

    def as_text(self) -> str:
        return self.content.strip()


@dataclass
class UsageMetrics:
    """Token accounting returned by chat-completions providers."""

    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    total_tokens: Optional[int] = None


@dataclass
class LLMResult:
    """Normalized model response."""

    text: str
    finish_reason: Optional[str] = None
    model: Optional[str] = None
    usage: Optional[UsageMetrics] = None
    raw: Optional[Dict[str, Any]] = None

    def is_empty(self) -> bool:
        return not self.text.strip()

