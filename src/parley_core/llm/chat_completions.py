from __future__ import annotations

import json
import logging
import os
import socket
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, Dict, Mapping, MutableMapping, Optional, Sequence, Tuple

from .types import LLMMessage, LLMResult, UsageMetrics


LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.deepinfra.com/v1/openai"
DEFAULT_MODEL = "meta-llama/Llama-4-Maverick-17B-128E-Instruct-Turbo"


@dataclass
class ChatCompletionsError(Exception):
    """Raised when a chat-completions request fails."""

    status_code: Optional[int]
    message: str
    response_text: Optional[str] = None
    response_json: Optional[Dict[str, Any]] = None
    payload: Optional[Dict[str, Any]] = None

    def __post_init__(self) -> None:
        super().__init__(self.message)


class ChatCompletionsClient:
    """Thin wrapper around an OpenAI-compatible ``/chat/completions`` endpoint."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        default_model: Optional[str] = None,
        default_max_output_tokens: int = 150,
        timeout: float = 30.0,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        resolved_key = (
            api_key
            or os.environ.get("PARLEY_API_KEY")
            or os.environ.get("DEEPINFRA_API_KEY")
            or os.environ.get("OPENAI_API_KEY")
            or ""
        ).strip()
        if not resolved_key:
            raise ValueError("Missing chat-completions API key (set PARLEY_API_KEY or DEEPINFRA_API_KEY)")

        self.api_key = resolved_key
        self.base_url = (
            base_url
            or os.environ.get("PARLEY_API_URL")
            or os.environ.get("OPENAI_BASE_URL")
            or DEFAULT_BASE_URL
        ).rstrip("/")
        self.default_model = default_model or os.environ.get("PARLEY_MODEL") or DEFAULT_MODEL
        self.default_max_output_tokens = int(default_max_output_tokens)
        self.timeout = timeout
        self.logger = logger or LOGGER

    # --------------------------------------------------------------------- #
    # Public API
    # --------------------------------------------------------------------- #

    def complete(
        self,
        messages: Sequence[LLMMessage],
        *,
        system: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        extra_headers: Optional[Mapping[str, str]] = None,
    ) -> LLMResult:
        """Invoke the chat-completions endpoint and normalize the response."""

        prepared = self._prepare_messages(messages, system=system)
        if not prepared:
            raise ValueError("At least one message or a system prompt must be supplied.")

        body: Dict[str, Any] = {
            "model": model or self.default_model,
            "messages": prepared,
            "max_tokens": max_tokens or self.default_max_output_tokens,
        }
        if temperature is not None:
            body["temperature"] = float(temperature)

        response_payload, response_text = self._http_request(body, extra_headers=extra_headers)
        return self._normalise_response(response_payload, response_text)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _prepare_messages(
        self,
        messages: Sequence[LLMMessage],
        *,
        system: Optional[str],
    ) -> list[Dict[str, str]]:
        prepared: list[Dict[str, str]] = []

        system_text = (system or "").strip()
        if system_text:
            prepared.append({"role": "system", "content": system_text})

        for message in messages:
            text = message.as_text()
            if not text:
                raise ValueError(f"Message for role '{message.role}' is empty.")
            prepared.append({"role": message.role, "content": text})

        return prepared

    def _http_request(
        self,
        body: Dict[str, Any],
        *,
        extra_headers: Optional[Mapping[str, str]] = None,
    ) -> Tuple[Dict[str, Any], str]:
        data = json.dumps(body).encode("utf-8")
        headers: MutableMapping[str, str] = {
            "content-type": "application/json",
            "authorization": f"Bearer {self.api_key}",
        }
        if extra_headers:
            headers.update(extra_headers)

        request = urllib.request.Request(
            url=f"{self.base_url}/chat/completions",
            data=data,
            headers=dict(headers),
            method="POST",
        )

        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                raw_bytes = response.read()
                response_text = raw_bytes.decode("utf-8") if raw_bytes else ""
                try:
                    payload = json.loads(response_text) if response_text else {}
                except json.JSONDecodeError as exc:  # pragma: no cover - defensive guard
                    raise ChatCompletionsError(
                        status_code=response.getcode(),
                        message="Chat-completions response was not valid JSON.",
                        response_text=response_text,
                        payload=body,
                    ) from exc

                return payload, response_text

        except urllib.error.HTTPError as exc:
            error_bytes = exc.read()
            error_text = error_bytes.decode("utf-8", errors="ignore") if error_bytes else ""
            parsed: Optional[Dict[str, Any]] = None
            try:
                parsed = json.loads(error_text) if error_text else None
            except json.JSONDecodeError:
                parsed = None

            message = ""
            if isinstance(parsed, dict):
                error_payload = parsed.get("error")
                if isinstance(error_payload, dict):
                    message = str(error_payload.get("message") or "")
                elif isinstance(error_payload, str):
                    message = error_payload

            raise ChatCompletionsError(
                status_code=exc.code,
                message=message or f"Chat-completions API error ({exc.code})",
                response_text=error_text or None,
                response_json=parsed,
                payload=body,
            ) from None
        except urllib.error.URLError as exc:
            human = getattr(exc, "reason", None) or str(exc)
            raise ChatCompletionsError(
                status_code=None, message=f"Chat-completions request failed: {human}", payload=body
            ) from exc
        except socket.timeout as exc:
            raise ChatCompletionsError(
                status_code=None, message="Chat-completions request timed out", payload=body
            ) from exc

    def _normalise_response(self, payload: Mapping[str, Any], response_text: str) -> LLMResult:
        text = ""
        finish_reason: Optional[str] = None

        choices = payload.get("choices") or []
        if isinstance(choices, list) and choices:
            first = choices[0]
            if isinstance(first, dict):
                message = first.get("message") or {}
                if isinstance(message, dict):
                    text = str(message.get("content") or "").strip()
                finish_reason = first.get("finish_reason")

        usage_payload = payload.get("usage") or {}
        usage = None
        if isinstance(usage_payload, dict) and usage_payload:
            usage = UsageMetrics(
                input_tokens=_safe_int(usage_payload.get("prompt_tokens")),
                output_tokens=_safe_int(usage_payload.get("completion_tokens")),
                total_tokens=_safe_int(usage_payload.get("total_tokens")),
            )

        return LLMResult(
            text=text,
            finish_reason=finish_reason,
            model=payload.get("model"),
            usage=usage,
            raw={
                "response": dict(payload),
                "text": response_text,
            },
        )


def _safe_int(value: Any) -> Optional[int]:
    try:
        if value is None:
            return None
        return int(value)
    except (TypeError, ValueError):
        return None
