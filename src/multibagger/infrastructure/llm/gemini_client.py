"""Gemini access via the OpenAI-compatible Poe API, spaced and retried on 429s."""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional

import httpx
from openai import APIError, OpenAI, RateLimitError

from multibagger.domain.errors import JudgmentProviderError, RateLimitExceededError
from multibagger.infrastructure.llm.rate_limiter import RequestSpacingLimiter

logger = logging.getLogger(__name__)


class GeminiClient:
    """Minimal Gemini client hiding transport plumbing from the judge."""

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        limiter: Optional[RequestSpacingLimiter] = None,
        proxy_url: Optional[str] = None,
        timeout: float = 60.0,
        max_retries: int = 3,
        backoff_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not api_key:
            raise ValueError("POE_API_KEY is required to contact Gemini endpoints.")

        http_client_kwargs: Dict[str, Any] = {
            "timeout": httpx.Timeout(timeout, connect=10.0),
            "verify": True,
        }
        if proxy_url:
            http_client_kwargs["proxy"] = proxy_url

        self._http_client = httpx.Client(**http_client_kwargs)
        # Retries are handled here so that each attempt goes through the limiter.
        self._client = OpenAI(
            api_key=api_key,
            base_url="https://api.poe.com/v1",
            http_client=self._http_client,
            max_retries=0,
        )
        self._model = model
        self._limiter = limiter
        self._max_retries = max(0, max_retries)
        self._backoff_seconds = backoff_seconds
        self._sleep = sleep

    @property
    def model(self) -> str:
        return self._model

    def generate(
        self,
        messages: List[Dict[str, str]],
        *,
        temperature: float = 0.2,
    ) -> str:
        """Fire a chat completion request and return the assistant message content."""
        attempt = 0
        while True:
            if self._limiter is not None:
                self._limiter.acquire()
            try:
                response = self._client.chat.completions.create(
                    model=self._model,
                    temperature=temperature,
                    messages=messages,
                )
            except RateLimitError as exc:
                if attempt >= self._max_retries:
                    raise RateLimitExceededError(
                        "Judgment provider still rate limited",
                        {"model": self._model, "attempts": attempt + 1},
                    ) from exc
                delay = self._backoff_seconds * 2 ** attempt
                logger.warning("Rate limited by %s; retry %s in %.1fs", self._model, attempt + 1, delay)
                self._sleep(delay)
                attempt += 1
                continue
            except (APIError, httpx.HTTPError) as exc:
                raise JudgmentProviderError("Judgment provider request failed", {"error": str(exc)}) from exc

            if not response.choices:
                raise JudgmentProviderError("Gemini returned no choices.", {"model": self._model})
            return response.choices[0].message.content or ""

    def close(self) -> None:
        """Release the underlying HTTP session."""
        self._http_client.close()
