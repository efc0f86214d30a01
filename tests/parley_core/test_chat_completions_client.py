from __future__ import annotations

import io
import json
import urllib.error
from typing import Any, Dict, Mapping, Optional

import pytest

from parley_core.llm import ChatCompletionsClient, ChatCompletionsError, LLMMessage


class RecordingChatClient(ChatCompletionsClient):
    """Chat-completions client that records the outgoing payload for assertions."""

    def __init__(self, response: Mapping[str, Any]) -> None:
        super().__init__(api_key="test-key", base_url="https://example.com/v1/")
        self._response = dict(response)
        self.last_body: Optional[Dict[str, Any]] = None
        self.extra_headers: Optional[Mapping[str, str]] = None

    def _http_request(  # type: ignore[override]
        self,
        body: Dict[str, Any],
        *,
        extra_headers: Optional[Mapping[str, str]] = None,
    ) -> tuple[Dict[str, Any], str]:
        self.last_body = dict(body)
        self.extra_headers = dict(extra_headers or {})
        return dict(self._response), json.dumps(self._response)


def test_complete_builds_payload_and_normalizes_response() -> None:
    response_payload = {
        "id": "chatcmpl-1",
        "model": "test-model",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": "  About three days now.  "},
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 40, "completion_tokens": 6, "total_tokens": 46},
    }
    client = RecordingChatClient(response_payload)

    result = client.complete(
        [
            LLMMessage(role="user", content="Hello, what brings you in?"),
            LLMMessage(role="assistant", content="I have a cough."),
            LLMMessage(role="user", content="How long has it lasted?"),
        ],
        system="You are a patient.",
        max_tokens=150,
        temperature=0.8,
        extra_headers={"x-extra": "true"},
    )

    assert client.base_url == "https://example.com/v1"
    assert client.extra_headers == {"x-extra": "true"}
    assert client.last_body is not None
    assert client.last_body["model"] == client.default_model
    assert client.last_body["max_tokens"] == 150
    assert client.last_body["temperature"] == 0.8

    payload_messages = client.last_body["messages"]
    assert payload_messages[0] == {"role": "system", "content": "You are a patient."}
    assert [m["role"] for m in payload_messages[1:]] == ["user", "assistant", "user"]

    assert result.text == "About three days now."
    assert result.finish_reason == "stop"
    assert result.model == "test-model"
    assert result.usage is not None
    assert result.usage.input_tokens == 40
    assert result.usage.output_tokens == 6
    assert not result.is_empty()


def test_complete_uses_default_token_limit_and_omits_unset_temperature() -> None:
    client = RecordingChatClient({"choices": []})

    result = client.complete([], system="Open the conversation.")

    assert client.last_body is not None
    assert client.last_body["max_tokens"] == client.default_max_output_tokens
    assert "temperature" not in client.last_body
    assert client.last_body["messages"] == [{"role": "system", "content": "Open the conversation."}]
    assert result.is_empty()
    assert result.usage is None


def test_complete_rejects_empty_request() -> None:
    client = RecordingChatClient({})

    with pytest.raises(ValueError):
        client.complete([])
    with pytest.raises(ValueError, match="role 'user' is empty"):
        client.complete([LLMMessage(role="user", content="   ")], system="hi")
    assert client.last_body is None


def test_missing_api_key_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("PARLEY_API_KEY", "DEEPINFRA_API_KEY", "OPENAI_API_KEY"):
        monkeypatch.delenv(name, raising=False)

    with pytest.raises(ValueError, match="API key"):
        ChatCompletionsClient()


def test_http_error_is_mapped_to_client_error(monkeypatch: pytest.MonkeyPatch) -> None:
    body = json.dumps({"error": {"message": "Rate limit exceeded"}}).encode("utf-8")

    def fake_urlopen(request, timeout=None):
        assert request.full_url == "https://example.com/v1/chat/completions"
        assert request.get_header("Authorization") == "Bearer test-key"
        raise urllib.error.HTTPError(request.full_url, 429, "Too Many Requests", {}, io.BytesIO(body))

    monkeypatch.setattr("urllib.request.urlopen", fake_urlopen)
    client = ChatCompletionsClient(api_key="test-key", base_url="https://example.com/v1")

    with pytest.raises(ChatCompletionsError) as info:
        client.complete([LLMMessage(role="user", content="hi")])

    assert info.value.status_code == 429
    assert info.value.message == "Rate limit exceeded"
    assert info.value.response_json == {"error": {"message": "Rate limit exceeded"}}


def test_network_error_is_mapped_to_client_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_urlopen(request, timeout=None):
        raise urllib.error.URLError("connection refused")

    monkeypatch.setattr("urllib.request.urlopen", fake_urlopen)
    client = ChatCompletionsClient(api_key="test-key")

    with pytest.raises(ChatCompletionsError, match="connection refused") as info:
        client.complete([LLMMessage(role="user", content="hi")])

    assert info.value.status_code is None
