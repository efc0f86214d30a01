"""
LLM provider integrations for the Parley runtime.

Conversations are generated through OpenAI-compatible chat-completions
endpoints (DeepInfra by default). Other providers should expose the same
``complete`` surface so the room runtime can swap implementations without
touching higher layers.
"""

from .chat_completions import ChatCompletionsClient, ChatCompletionsError
from .types import LLMMessage, LLMResult, UsageMetrics

__all__ = [
    "ChatCompletionsClient",
    "ChatCompletionsError",
    "LLMMessage",
    "LLMResult",
    "UsageMetrics",
]
