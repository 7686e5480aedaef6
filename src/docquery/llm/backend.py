"""Chat-completion backend used by the answer pipeline.

Any OpenAI-compatible endpoint works; the default points at Groq. SDK
exceptions are translated into the docquery error hierarchy here so the
pipeline never sees transport-specific types.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Protocol

import openai
from openai import AsyncOpenAI

from docquery.config import AppConfig
from docquery.errors import (
    BackendError,
    BackendTimeoutError,
    ConfigurationError,
    RateLimitedByBackend,
)

LOGGER = logging.getLogger(__name__)

Message = Dict[str, str]

PAYLOAD_TOO_LARGE = 413


class LLMBackend(Protocol):
    @property
    def configured(self) -> bool: ...

    async def complete(
        self,
        messages: List[Message],
        *,
        model: str,
        temperature: float,
        max_tokens: int,
        timeout: float,
    ) -> str: ...


class OpenAIChatBackend:
    """Thin wrapper around ``AsyncOpenAI.chat.completions``."""

    def __init__(
        self,
        api_key: str | None,
        *,
        base_url: str | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url
        self._client = client

    @classmethod
    def from_config(cls, config: AppConfig) -> "OpenAIChatBackend":
        api_key = config.api_key if config.llm_configured else None
        return cls(api_key, base_url=config.base_url)

    @property
    def configured(self) -> bool:
        return self._client is not None or bool(self._api_key)

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self._api_key:
                raise ConfigurationError(
                    "LLM API key not configured. Set GROQ_API_KEY or DOCQUERY_API_KEY."
                )
            # Retries are decided by the pipeline, not the SDK.
            self._client = AsyncOpenAI(
                api_key=self._api_key, base_url=self._base_url, max_retries=0
            )
        return self._client

    async def complete(
        self,
        messages: List[Message],
        *,
        model: str,
        temperature: float,
        max_tokens: int,
        timeout: float,
    ) -> str:
        client = self._get_client()
        try:
            response = await asyncio.wait_for(
                client.chat.completions.create(
                    model=model,
                    messages=messages,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    timeout=timeout,
                ),
                timeout=timeout,
            )
        except (asyncio.TimeoutError, openai.APITimeoutError) as exc:
            raise BackendTimeoutError(
                f"LLM backend did not respond within {timeout:.0f}s"
            ) from exc
        except openai.RateLimitError as exc:
            raise RateLimitedByBackend(f"LLM backend rate limit: {exc}") from exc
        except openai.APIStatusError as exc:
            if exc.status_code == PAYLOAD_TOO_LARGE:
                raise RateLimitedByBackend(f"LLM backend rejected request size: {exc}") from exc
            raise BackendError(f"LLM backend error ({exc.status_code}): {exc}") from exc
        except openai.APIError as exc:
            raise BackendError(f"LLM backend error: {exc}") from exc

        usage = getattr(response, "usage", None)
        if usage is not None:
            LOGGER.debug(
                "LLM %s used %s prompt / %s completion tokens",
                model,
                usage.prompt_tokens,
                usage.completion_tokens,
            )
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""
