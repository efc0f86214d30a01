"""Environment-driven settings for the Parley runtime."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, field_validator

from .llm.chat_completions import DEFAULT_BASE_URL, DEFAULT_MODEL

DEFAULT_ROOMS = "room1:Osama,room2:John"


class RoomDefinition(BaseModel):
    """One configured conversation room."""

    room_id: str
    name: str

    model_config = {"frozen": True}


class ParleySettings(BaseModel):
    """Process-wide configuration, loaded once at startup."""

    rooms: List[RoomDefinition] = Field(default_factory=lambda: parse_rooms(DEFAULT_ROOMS))
    turns_per_session: int = 30
    ack_timeout_seconds: float = 30.0
    post_ack_pause_seconds: float = 0.8
    max_tokens: int = 150
    temperature: float = 0.8
    model: str = DEFAULT_MODEL
    api_url: str = DEFAULT_BASE_URL
    api_key: Optional[str] = None
    db_path: Path = Path("data/parley.sqlite3")
    log_level: str = "INFO"

    @field_validator("rooms")
    @classmethod
    def _unique_rooms(cls, rooms: List[RoomDefinition]) -> List[RoomDefinition]:
        if not rooms:
            raise ValueError("At least one room must be configured.")
        seen = set()
        for room in rooms:
            if room.room_id in seen:
                raise ValueError(f"Duplicate room id '{room.room_id}'.")
            seen.add(room.room_id)
        return rooms

    @field_validator("turns_per_session", "max_tokens")
    @classmethod
    def _positive_int(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("ack_timeout_seconds", "post_ack_pause_seconds")
    @classmethod
    def _non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("must not be negative")
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ParleySettings":
        env = os.environ if environ is None else environ
        values: Dict[str, object] = {}

        rooms = env.get("PARLEY_ROOMS")
        if rooms:
            values["rooms"] = parse_rooms(rooms)

        for key, name in (
            ("turns_per_session", "PARLEY_TURNS_PER_SESSION"),
            ("ack_timeout_seconds", "PARLEY_ACK_TIMEOUT_SECONDS"),
            ("post_ack_pause_seconds", "PARLEY_POST_ACK_PAUSE_SECONDS"),
            ("max_tokens", "PARLEY_MAX_TOKENS"),
            ("temperature", "PARLEY_TEMPERATURE"),
            ("model", "PARLEY_MODEL"),
            ("db_path", "PARLEY_DB_PATH"),
            ("log_level", "PARLEY_LOG_LEVEL"),
        ):
            raw = env.get(name)
            if raw is not None and raw.strip():
                values[key] = raw.strip()

        api_url = env.get("PARLEY_API_URL") or env.get("OPENAI_BASE_URL")
        if api_url:
            values["api_url"] = api_url.strip()

        api_key = env.get("PARLEY_API_KEY") or env.get("DEEPINFRA_API_KEY") or env.get("OPENAI_API_KEY")
        if api_key:
            values["api_key"] = api_key.strip()

        return cls(**values)


def parse_rooms(raw: str) -> List[RoomDefinition]:
    """Parse ``"room1:Osama,room2:John"`` into room definitions.

    An entry without a name uses its id as display name.
    """

    rooms: List[RoomDefinition] = []
    for chunk in raw.split(","):
        entry = chunk.strip()
        if not entry:
            continue
        room_id, _, name = entry.partition(":")
        room_id = room_id.strip()
        if not room_id:
            raise ValueError(f"Invalid room entry '{entry}'.")
        rooms.append(RoomDefinition(room_id=room_id, name=name.strip() or room_id))
    return rooms
