from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Protocol

import httpx

from campus_rag.errors import GenerationError
from campus_rag.retry import is_retryable_http_error

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChatResult:
    answer: str
    model: str
    used_fallback: bool


class LLMClient(Protocol):
    def complete(self, *, prompt: str) -> ChatResult: ...


class OllamaChatClient:
    """OpenAI-compatible chat-completions client; one blocking call per prompt."""

    def __init__(
        self,
        *,
        base_url: str,
        default_model: str,
        fallback_model: str = "",
        api_key: str = "",
        temperature: float = 0.7,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._default_model = default_model
        self._fallback_model = fallback_model
        self._api_key = api_key
        self._temperature = temperature
        self._timeout_seconds = timeout_seconds

    def complete(self, *, prompt: str) -> ChatResult:
        last_error: GenerationError | None = None
        for model, used_fallback in self._model_candidates():
            try:
                content = self._chat_completion(model=model, prompt=prompt)
            except GenerationError as exc:
                logger.warning("[llm:complete] model=%s failed: %s", model, exc)
                last_error = exc
                continue

            return ChatResult(answer=content, model=model, used_fallback=used_fallback)

        if last_error is not None:
            raise last_error
        raise GenerationError("No model candidates configured")

    def _model_candidates(self) -> list[tuple[str, bool]]:
        candidates: list[tuple[str, bool]] = []
        if self._default_model:
            candidates.append((self._default_model, False))
        if self._fallback_model and self._fallback_model != self._default_model:
            candidates.append((self._fallback_model, True))
        return candidates

    def _headers(self) -> dict[str, str]:
        if not self._api_key:
            return {}
        return {"Authorization": f"Bearer {self._api_key}"}

    def _chat_completion(self, *, model: str, prompt: str) -> str:
        try:
            response = httpx.post(
                f"{self._base_url}/chat/completions",
                json={
                    "model": model,
                    "messages": [{"role": "user", "content": prompt}],
                    "temperature": self._temperature,
                    "stream": False,
                },
                headers=self._headers(),
                timeout=self._timeout_seconds,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise GenerationError(str(exc), retryable=is_retryable_http_error(exc)) from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise GenerationError(f"Invalid chat completion payload: {exc}") from exc

        choices = payload.get("choices") if isinstance(payload, dict) else None
        if not isinstance(choices, list) or not choices:
            raise GenerationError("Invalid chat completion payload: missing choices")

        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str) or not content.strip():
            raise GenerationError("Invalid chat completion payload: missing assistant content")

        return content.strip()
