"""Room Conversation Orchestration.

This module runs unattended two-agent dialogues (a scripted initiator and a
randomized respondent) inside a fixed set of rooms, pacing each room's turns
against an external acknowledgment signal.
"""

from .ack_gate import AckGate, AckOutcome
from .broadcaster import EventBroadcaster, RoomBroadcaster, Subscription
from .config import OrchestratorSettings, RoomCatalog
from .errors import (
    AlreadyRunning,
    GenerationError,
    InvalidRoom,
    NotRunning,
    PersistenceError,
    RoomError,
)
from .history_view import SpeakerRole, entry_for, flip_history, history_for
from .messages import RoomSnapshot, RoomStatusEvent, StartResult, TurnEvent
from .personas import PersonaCatalog, RespondentVariant, get_default_catalog
from .recorder import SessionRecorder, StoreSessionRecorder
from .room_orchestrator import RoomOrchestrator, RoomPhase
from .room_registry import RoomRegistry, RunState
from .turn_generator import ChatTurnGenerator, TurnGenerator

__all__ = [
    "AckGate",
    "AckOutcome",
    "EventBroadcaster",
    "RoomBroadcaster",
    "Subscription",
    "OrchestratorSettings",
    "RoomCatalog",
    "AlreadyRunning",
    "GenerationError",
    "InvalidRoom",
    "NotRunning",
    "PersistenceError",
    "RoomError",
    "SpeakerRole",
    "entry_for",
    "flip_history",
    "history_for",
    "RoomSnapshot",
    "RoomStatusEvent",
    "StartResult",
    "TurnEvent",
    "PersonaCatalog",
    "RespondentVariant",
    "get_default_catalog",
    "SessionRecorder",
    "StoreSessionRecorder",
    "RoomOrchestrator",
    "RoomPhase",
    "RoomRegistry",
    "RunState",
    "ChatTurnGenerator",
    "TurnGenerator",
]
