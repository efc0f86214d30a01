from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from parley_core.settings import ParleySettings, RoomDefinition, parse_rooms


def test_defaults_match_documented_values() -> None:
    settings = ParleySettings.from_env({})

    assert [r.room_id for r in settings.rooms] == ["room1", "room2"]
    assert [r.name for r in settings.rooms] == ["Osama", "John"]
    assert settings.turns_per_session == 30
    assert settings.ack_timeout_seconds == 30.0
    assert settings.post_ack_pause_seconds == 0.8
    assert settings.max_tokens == 150
    assert settings.temperature == 0.8
    assert settings.api_key is None
    assert settings.db_path == Path("data/parley.sqlite3")


def test_from_env_reads_overrides() -> None:
    settings = ParleySettings.from_env(
        {
            "PARLEY_ROOMS": "a:Alpha, b",
            "PARLEY_TURNS_PER_SESSION": "4",
            "PARLEY_ACK_TIMEOUT_SECONDS": "2.5",
            "PARLEY_POST_ACK_PAUSE_SECONDS": "0",
            "PARLEY_DB_PATH": "/tmp/parley-test.sqlite3",
            "PARLEY_LOG_LEVEL": "debug",
            "DEEPINFRA_API_KEY": " secret ",
        }
    )

    assert settings.rooms == [
        RoomDefinition(room_id="a", name="Alpha"),
        RoomDefinition(room_id="b", name="b"),
    ]
    assert settings.turns_per_session == 4
    assert settings.ack_timeout_seconds == 2.5
    assert settings.post_ack_pause_seconds == 0.0
    assert settings.db_path == Path("/tmp/parley-test.sqlite3")
    assert settings.log_level == "DEBUG"
    assert settings.api_key == "secret"


def test_parley_key_takes_precedence() -> None:
    settings = ParleySettings.from_env({"PARLEY_API_KEY": "first", "OPENAI_API_KEY": "second"})

    assert settings.api_key == "first"


@pytest.mark.parametrize(
    "env",
    [
        {"PARLEY_TURNS_PER_SESSION": "0"},
        {"PARLEY_ACK_TIMEOUT_SECONDS": "-1"},
        {"PARLEY_ROOMS": "a:One,a:Two"},
    ],
)
def test_invalid_values_are_rejected(env) -> None:
    with pytest.raises(ValidationError):
        ParleySettings.from_env(env)


def test_parse_rooms_rejects_missing_id() -> None:
    with pytest.raises(ValueError):
        parse_rooms(":Nameless")
    assert parse_rooms(" , ") == []
