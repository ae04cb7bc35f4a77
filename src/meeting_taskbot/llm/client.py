# src/meeting_taskbot/llm/client.py

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

import httpx
import openai
from openai import OpenAI

from ..core.errors import LLMError
from ..core.ports import ChatMessage

logger = logging.getLogger(__name__)


def _is_auth_error(exc: Exception) -> bool:
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return True
    return exc.__class__.__name__ in {"UnauthorizedError"}


def _is_rate_limit_error(exc: Exception) -> bool:
    if isinstance(exc, openai.RateLimitError):
        return True
    return exc.__class__.__name__ in {"TooManyRequestsError"}


def _is_connection_error(exc: Exception) -> bool:
    if isinstance(exc, (openai.APIConnectionError, httpx.TimeoutException)):
        return True
    return exc.__class__.__name__ in {"Timeout", "ConnectTimeout", "ReadTimeout", "WriteTimeout"}


def _is_not_found_error(exc: Exception) -> bool:
    # OpenAI-compatible servers answer 404 for unknown models.
    return isinstance(exc, openai.NotFoundError)


class OpenAIChatClient:
    """
    Blocking chat completion over an OpenAI-compatible endpoint.

    Behavior:
    - Tries models in the configured order (TASKBOT_LLM_MODELS).
    - 404 (model not available) -> remember it as bad for an hour, try next.
    - Rate limit / network issues -> try next.
    - Auth issues -> fail fast (no retries across models).
    - SDK retries are disabled so fallback is quick; timeouts are bounded by httpx.Timeout.
    """

    def __init__(
        self,
        settings: Any,
        *,
        temperature: float = 0.3,
        max_tokens: int = 1000,
        json_mode: bool = True,
    ) -> None:
        api_key = getattr(settings, "openai_api_key", None)
        base_url = str(getattr(settings, "openai_base_url", "") or "")

        if not api_key or not str(api_key).strip():
            raise LLMError("LLM API key is not set. Set TASKBOT_OPENAI_API_KEY in your .env.")
        if not base_url.strip():
            raise LLMError("LLM base URL is not set. Set TASKBOT_OPENAI_BASE_URL in your .env.")

        self._models: List[str] = [m.strip() for m in (getattr(settings, "llm_models", []) or []) if m.strip()]
        if not self._models:
            raise LLMError("LLM model list is empty. Set TASKBOT_LLM_MODELS in your .env.")

        connect_s = float(getattr(settings, "llm_connect_timeout_seconds", 5.0))
        read_s = float(getattr(settings, "llm_read_timeout_seconds", 45.0))
        self._timeout = httpx.Timeout(connect=connect_s, read=read_s, write=10.0, pool=connect_s)

        self._client = OpenAI(
            base_url=base_url,
            api_key=str(api_key),
            timeout=self._timeout,
            max_retries=0,
        )
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._json_mode = json_mode
        self._bad_models: Dict[str, float] = {}  # model -> retry_at (monotonic)

    def _create(self, model: str, messages: list[ChatMessage]) -> Any:
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
            "timeout": self._timeout,
        }
        if self._json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        return self._client.chat.completions.create(**kwargs)

    def complete_chat(self, messages: list[ChatMessage], system_prompt: str) -> str:
        last_error: Optional[Exception] = None
        now = time.monotonic()
        full = [{"role": "system", "content": system_prompt}, *messages]

        for model in self._models:
            retry_at = self._bad_models.get(model)
            if retry_at is not None and retry_at > now:
                continue

            logger.info("LLM: trying model=%s", model)
            t0 = time.monotonic()
            try:
                resp = self._create(model, full)
                content = (resp.choices[0].message.content or "") if resp.choices else ""
                if content.strip():
                    logger.info("LLM: model=%s answered in %.2fs", model, time.monotonic() - t0)
                    return content
                last_error = LLMError(f"Model returned no content: {model}")
                logger.info("LLM: empty answer from model=%s, trying next", model)
                continue

            except Exception as e:
                last_error = e

                if _is_auth_error(e):
                    raise LLMError("LLM authentication failed. Check TASKBOT_OPENAI_API_KEY.") from e

                if _is_not_found_error(e):
                    self._bad_models[model] = time.monotonic() + 3600.0
                    logger.info("LLM: model not available (404): %s", model)
                    continue

                if _is_rate_limit_error(e):
                    logger.info("LLM: rate-limited on model=%s, trying next", model)
                    continue

                if _is_connection_error(e):
                    logger.info("LLM: network/timeout error on model=%s, trying next", model)
                    continue

                logger.info("LLM: error on model=%s (%s), trying next", model, e.__class__.__name__)
                continue

        if last_error is not None:
            if _is_rate_limit_error(last_error):
                raise LLMError("LLM is rate-limited. Try again later.") from last_error
            if _is_connection_error(last_error):
                raise LLMError("LLM network/timeout error. Try again later or change models.") from last_error
            raise LLMError("All LLM models failed.") from last_error

        raise LLMError("All LLM models failed.")
