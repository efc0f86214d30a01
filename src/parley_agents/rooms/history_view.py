"""Perspective transforms over the canonical conversation history.

The canonical history is kept from the initiator's point of view: lines the
initiator spoke are ``assistant`` ("self") and lines the respondent spoke are
``user`` ("other"). The respondent model needs the mirror image so that its
own lines read as ``assistant``.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Sequence

from parley_core.llm import LLMMessage

SELF = "assistant"
OTHER = "user"


class SpeakerRole(str, Enum):
    """The two alternating conversation participants."""

    INITIATOR = "initiator"  # Fixed interview script
    RESPONDENT = "respondent"  # Randomized persona

    @classmethod
    def for_turn(cls, turn_index: int) -> "SpeakerRole":
        return cls.INITIATOR if turn_index % 2 == 0 else cls.RESPONDENT


def flip_history(history: Sequence[LLMMessage]) -> List[LLMMessage]:
    """Swap self/other tags on every entry."""

    return [
        LLMMessage(role=OTHER if message.role == SELF else SELF, content=message.content)
        for message in history
    ]


def history_for(role: SpeakerRole, history: Sequence[LLMMessage]) -> List[LLMMessage]:
    """Return the history as seen by ``role``, leaving the input untouched."""

    if role is SpeakerRole.RESPONDENT:
        return flip_history(history)
    return list(history)


def entry_for(role: SpeakerRole, text: str) -> LLMMessage:
    """Build the canonical history entry for a line spoken by ``role``."""

    return LLMMessage(role=SELF if role is SpeakerRole.INITIATOR else OTHER, content=text)
