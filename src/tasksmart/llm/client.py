# src/tasksmart/llm/client.py

from __future__ import annotations

import logging
import time
from typing import Any

import httpx
import openai
from openai import AsyncOpenAI

from ..core.ports import ChatMessage

logger = logging.getLogger(__name__)

_BAD_MODELS: dict[str, float] = {}  # model -> retry_at (monotonic)


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
    # OpenAI-compatible gateways use 404 for "model not available"
    return isinstance(exc, openai.NotFoundError)


def friendly_llm_error_message(err: Exception) -> str:
    msg = str(err).strip() or "LLM error."
    if "LLM API key is not set" in msg:
        return "AI features are not configured (missing API key). Set TASKSMART_OPENROUTER_API_KEY in .env."
    if "LLM model list is empty" in msg:
        return "AI features are not configured (no models). Set TASKSMART_LLM_MODELS in .env."
    return msg


class OpenRouterLLMClient:
    """
    OpenAI/OpenRouter-compatible chat completion client with model fallback.

    Behavior:
    - Tries models in the order from settings (TASKSMART_LLM_MODELS).
    - 404 (model not available) -> model parked for an hour, try next.
    - Rate limit / network issues -> try next.
    - Auth issues -> fail fast (no retries across models).
    - The SDK's own retries are disabled so callers can fall back quickly.
    """

    def __init__(self, settings: Any) -> None:
        api_key = getattr(settings, "openrouter_api_key", None)
        base_url = str(getattr(settings, "openrouter_base_url", "") or "")
        if not api_key or not str(api_key).strip():
            raise RuntimeError("LLM API key is not set. Set TASKSMART_OPENROUTER_API_KEY in your .env.")

        self._models: list[str] = [m.strip() for m in getattr(settings, "llm_models", []) or [] if m.strip()]
        if not self._models:
            raise RuntimeError("LLM model list is empty. Set TASKSMART_LLM_MODELS in your .env.")

        self._headers: dict[str, str] = dict(getattr(settings, "extra_headers", {}) or {})
        connect_s = float(getattr(settings, "llm_connect_timeout_seconds", 5.0))
        read_s = float(getattr(settings, "llm_read_timeout_seconds", 20.0))

        self._client = AsyncOpenAI(
            base_url=base_url or None,
            api_key=str(api_key),
            timeout=httpx.Timeout(connect=connect_s, read=read_s, write=10.0, pool=connect_s),
            max_retries=0,
        )

    async def complete(
        self,
        messages: list[ChatMessage],
        system_prompt: str,
        *,
        json_mode: bool = False,
        max_tokens: int | None = None,
    ) -> str:
        last_error: Exception | None = None
        now = time.monotonic()

        for model in self._models:
            retry_at = _BAD_MODELS.get(model)
            if retry_at is not None and retry_at > now:
                continue

            t0 = time.monotonic()
            kwargs: dict[str, Any] = {
                "model": model,
                "messages": [{"role": "system", "content": system_prompt}, *messages],
                "extra_headers": self._headers or None,
                "temperature": 0.2,
            }
            if json_mode:
                kwargs["response_format"] = {"type": "json_object"}
            if max_tokens is not None:
                kwargs["max_tokens"] = max_tokens

            try:
                resp = await self._client.chat.completions.create(**kwargs)
            except Exception as e:
                last_error = e

                if _is_auth_error(e):
                    raise RuntimeError(
                        "LLM authentication failed. Check your API key (TASKSMART_OPENROUTER_API_KEY)."
                    ) from e

                if _is_not_found_error(e):
                    _BAD_MODELS[model] = time.monotonic() + 3600.0  # 1 hour
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

            content = ""
            if resp.choices:
                content = (resp.choices[0].message.content or "").strip()
            if content:
                logger.debug("LLM: completed with model=%s (%.2fs)", model, time.monotonic() - t0)
                return content

            last_error = RuntimeError(f"Model returned no content: {model}")

        if last_error is not None:
            if _is_rate_limit_error(last_error):
                raise RuntimeError("LLM is rate-limited. Try again later.") from last_error
            if _is_connection_error(last_error):
                raise RuntimeError("LLM network/timeout error. Try again later or change models.") from last_error
            raise RuntimeError("All LLM models failed.") from last_error

        raise RuntimeError("All LLM models failed.")
