"""LLM gateway.

Two backends sit behind one call:

- a user-supplied OpenAI-compatible endpoint, driven through the `openai` Python SDK;
- the default hosted Gemini backend, called over its `generateContent` REST contract with
  `httpx`.

Transport failures are mapped to the typed errors in :mod:`thesisforge.errors` here, at the
throw site. No retries happen at this layer; retry policy belongs to callers.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Iterable, Literal, Mapping, Sequence

import httpx
import openai
from openai import OpenAI
from pydantic import BaseModel, ConfigDict, Field

from thesisforge.config import Settings
from thesisforge.errors import (
    EmptyResponseError,
    EndpointNotFoundError,
    GatewayError,
    GatewayTimeoutError,
    NetworkError,
    RateLimitedError,
    UnauthorizedError,
)
from thesisforge.logging import get_logger

logger = get_logger(__name__)

Role = Literal["system", "user", "assistant"]

_CHAT_COMPLETIONS_SUFFIX = "/chat/completions"


@dataclass(frozen=True)
class ChatMessage:
    """A chat message."""

    role: Role
    content: str


class ApiConfig(BaseModel):
    """Which backend to talk to.

    Mirrors the settings dialog of the drafting UI: when `use_custom` is set and both the
    base URL and key are present, the custom endpoint wins; otherwise the default backend is
    used.
    """

    model_config = ConfigDict(populate_by_name=True)

    base_url: str = Field(default="", alias="baseUrl")
    api_key: str = Field(default="", alias="apiKey")
    model_name: str = Field(default="", alias="modelName")
    use_custom: bool = Field(default=True, alias="useCustom")

    @classmethod
    def from_settings(cls, settings: Settings) -> ApiConfig:
        return cls(
            base_url=settings.custom_base_url or "",
            api_key=settings.custom_api_key or "",
            model_name=settings.custom_model,
            use_custom=settings.use_custom_api,
        )

    @property
    def is_custom_usable(self) -> bool:
        return bool(self.use_custom and self.api_key and self.base_url)


def normalize_base_url(base_url: str) -> str:
    """Strip trailing slashes and a trailing `/chat/completions`.

    The SDK appends `/chat/completions` itself, so users may paste either form.
    """

    url = base_url.strip().rstrip("/")
    if url.endswith(_CHAT_COMPLETIONS_SUFFIX):
        url = url[: -len(_CHAT_COMPLETIONS_SUFFIX)]
    return url


class LLMClient:
    """Single entry point for every model call."""

    def __init__(self, settings: Settings, *, http_client: httpx.Client | None = None) -> None:
        self._settings = settings
        self._http_client = http_client

    def call(
        self,
        system_prompt: str,
        user_prompt: str,
        config: ApiConfig | None = None,
        *,
        json_mode: bool = True,
        temperature: float | None = None,
    ) -> str:
        """Send one system + user prompt and return the trimmed answer text.

        Raises:
            ValueError: Empty prompt.
            GatewayError: Any subclass, depending on the failure.
        """

        if not system_prompt or not system_prompt.strip():
            raise ValueError("system_prompt must be a non-empty string")
        if not user_prompt or not user_prompt.strip():
            raise ValueError("user_prompt must be a non-empty string")

        messages = [
            ChatMessage(role="system", content=system_prompt),
            ChatMessage(role="user", content=user_prompt),
        ]
        return self.complete(messages, config, json_mode=json_mode, temperature=temperature)

    def complete(
        self,
        messages: Sequence[ChatMessage],
        config: ApiConfig | None = None,
        *,
        json_mode: bool = False,
        temperature: float | None = None,
    ) -> str:
        """Run a (possibly multi-turn) conversation.

        Args:
            messages: Chat messages; a leading system message is used as the instruction.
            config: Backend selection. Defaults to the one derived from settings.
            json_mode: Ask the default backend for a JSON response body.
            temperature: Sampling temperature, defaults to settings.

        Returns:
            Assistant message content, whitespace-trimmed.
        """

        cfg = config or ApiConfig.from_settings(self._settings)
        temp = self._settings.temperature if temperature is None else temperature
        started = time.monotonic()

        if cfg.is_custom_usable:
            backend = "custom"
            text = self._complete_custom(messages, cfg, temp)
        else:
            backend = "gemini"
            text = self._complete_gemini(messages, temp, json_mode=json_mode)

        logger.info(
            "LLM call ok",
            extra={
                "backend": backend,
                "model": cfg.model_name if backend == "custom" else self._settings.gemini_model,
                "prompt_chars": sum(len(m.content) for m in messages),
                "answer_chars": len(text),
                "latency_ms": int((time.monotonic() - started) * 1000),
            },
        )
        return text

    # -------- OpenAI-compatible endpoint --------

    def _complete_custom(self, messages: Sequence[ChatMessage], cfg: ApiConfig, temperature: float) -> str:
        client = OpenAI(
            api_key=cfg.api_key,
            base_url=normalize_base_url(cfg.base_url),
            timeout=self._settings.llm_timeout_s,
            max_retries=0,
            http_client=self._http_client,
        )
        payload: list[dict[str, str]] = [{"role": m.role, "content": m.content} for m in messages]
        try:
            resp = client.chat.completions.create(
                model=cfg.model_name,
                messages=payload,
                temperature=temperature,
            )
        except openai.APITimeoutError as e:
            raise GatewayTimeoutError(
                f"Request timed out (>{int(self._settings.llm_timeout_s)}s). "
                "The model took too long to think."
            ) from e
        except openai.APIConnectionError as e:
            raise NetworkError(
                "Network error: could not connect to custom API. Check the base URL."
            ) from e
        except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
            raise UnauthorizedError("401 Unauthorized. Check API key.", status_code=e.status_code) from e
        except openai.NotFoundError as e:
            raise EndpointNotFoundError("404 Not Found. Check base URL.", status_code=404) from e
        except openai.RateLimitError as e:
            raise RateLimitedError("Custom API rate limit exceeded (429).", status_code=429) from e
        except openai.APIStatusError as e:
            raise GatewayError(
                f"Custom API error ({e.status_code}): {e.message}", status_code=e.status_code
            ) from e

        if not resp.choices:
            raise EmptyResponseError("Custom API returned no choices")
        message = resp.choices[0].message
        content = message.content if message is not None else None
        if not content or not content.strip():
            raise EmptyResponseError("Custom API returned empty content")
        return content.strip()

    # -------- Default hosted backend --------

    def _complete_gemini(self, messages: Sequence[ChatMessage], temperature: float, *, json_mode: bool) -> str:
        api_key = self._settings.gemini_api_key
        if not api_key:
            raise UnauthorizedError("API key is missing. Configure THESISFORGE_GEMINI_API_KEY or a custom API.")

        system_text, prompt = _fold_for_single_call(messages)
        body: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": temperature,
                "responseMimeType": "application/json" if json_mode else "text/plain",
            },
        }
        if system_text:
            body["systemInstruction"] = {"parts": [{"text": system_text}]}

        base = self._settings.gemini_base_url.rstrip("/")
        url = f"{base}/models/{self._settings.gemini_model}:generateContent"
        headers = {"x-goog-api-key": api_key}

        try:
            if self._http_client is not None:
                resp = self._http_client.post(
                    url, json=body, headers=headers, timeout=self._settings.llm_timeout_s
                )
            else:
                with httpx.Client(timeout=httpx.Timeout(self._settings.llm_timeout_s)) as client:
                    resp = client.post(url, json=body, headers=headers)
        except httpx.TimeoutException as e:
            raise GatewayTimeoutError(
                f"Request timed out (>{int(self._settings.llm_timeout_s)}s)."
            ) from e
        except httpx.RequestError as e:
            raise NetworkError(f"Network error: could not reach default backend ({e}).") from e

        status = resp.status_code
        if status in (401, 403):
            raise UnauthorizedError("Default backend rejected the API key.", status_code=status)
        if status == 404:
            raise EndpointNotFoundError(f"Model endpoint not found: {url}", status_code=status)
        if status == 429:
            raise RateLimitedError(
                "Default backend quota exceeded (429). Switch to a custom API in settings.",
                status_code=status,
            )
        if status >= 400:
            raise GatewayError(f"Default backend error ({status}): {resp.text[:500]}", status_code=status)

        try:
            data = resp.json()
        except ValueError as e:
            raise EmptyResponseError("Default backend returned a non-JSON body") from e

        text = _gemini_text(data)
        if not text.strip():
            raise EmptyResponseError("Default backend returned empty content")
        return text.strip()

    @staticmethod
    def format_messages(messages: Iterable[Mapping[str, Any]]) -> list[ChatMessage]:
        """Convert plain dict messages to ChatMessage."""

        out: list[ChatMessage] = []
        for m in messages:
            out.append(ChatMessage(role=m["role"], content=m["content"]))
        return out


def _fold_for_single_call(messages: Sequence[ChatMessage]) -> tuple[str, str]:
    """Split off the system text and fold prior turns into one prompt."""

    system_parts = [m.content for m in messages if m.role == "system"]
    turns = [m for m in messages if m.role != "system"]
    if not turns:
        return "\n\n".join(system_parts), ""
    if len(turns) == 1:
        return "\n\n".join(system_parts), turns[0].content

    history = [{"role": m.role, "content": m.content} for m in turns[:-1]]
    prompt = (
        "Previous Context:\n"
        f"{json.dumps(history, ensure_ascii=False)}\n\n"
        f"Current Request: {turns[-1].content}"
    )
    return "\n\n".join(system_parts), prompt


def _gemini_text(data: Any) -> str:
    if not isinstance(data, dict):
        return ""
    candidates = data.get("candidates") or []
    if not candidates or not isinstance(candidates[0], dict):
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(p.get("text", "") for p in parts if isinstance(p, dict))
