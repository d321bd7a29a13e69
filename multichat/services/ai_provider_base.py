"""Shared plumbing for provider adapters.

An adapter owns everything provider-specific: message encoding, the HTTP or
SDK call, and parsing of buffered and streamed responses. Callers only see
``complete`` (never raises on provider failure, returns an empty
``CompletionResult``) and ``stream`` (yields typed events and ends with a
single ``StreamFailed`` instead of raising).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from typing import Any, Optional

import httpx
from loguru import logger
from openai import APIStatusError, APITimeoutError
from pydantic_ai.models import cached_async_http_client

from multichat.core.config import settings
from multichat.core.providers import ProviderConfig
from multichat.services.ai_history import format_messages
from multichat.services.ai_types import (
    PROVIDER_ERRORS,
    CompletionResult,
    HistoryTurn,
    StreamEvent,
    StreamFailed,
    TextDelta,
    UserContent,
)


def normalize_citations(raw: Any) -> Optional[list[dict]]:
    if not raw or not isinstance(raw, list):
        return None
    citations: list[dict] = []
    for index, item in enumerate(raw):
        if isinstance(item, str):
            citations.append({'url': item, 'title': f'Source {index + 1}'})
        elif isinstance(item, dict):
            citations.append(item)
    return citations or None


def describe_error(error: BaseException) -> str:
    if isinstance(error, httpx.HTTPStatusError):
        return f'HTTP {error.response.status_code}'
    if isinstance(error, APIStatusError):
        return f'HTTP {error.status_code}'
    if isinstance(error, (httpx.TimeoutException, APITimeoutError)):
        return 'request timed out'
    if isinstance(error, httpx.HTTPError):
        return 'connection failed'
    message = str(error).strip()
    return message[:200] if message else error.__class__.__name__


class ProviderAdapter(ABC):
    def __init__(
        self,
        provider: ProviderConfig,
        *,
        timeout_s: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> None:
        self.provider = provider
        self.timeout_s = timeout_s or settings.PROVIDER_TIMEOUT_SECONDS
        self.max_tokens = max_tokens or settings.MAX_OUTPUT_TOKENS

    @property
    def name(self) -> str:
        return self.provider.name

    @property
    def http_client(self) -> httpx.AsyncClient:
        return cached_async_http_client(provider=self.provider.name)

    @property
    def request_timeout(self) -> httpx.Timeout:
        return httpx.Timeout(self.timeout_s, connect=10.0)

    def api_model(self, model: str) -> str:
        prefix = self.provider.model_prefix
        if prefix and model.startswith(prefix):
            return model[len(prefix) :]
        return model

    def format_history(self, history: Sequence[HistoryTurn], content: UserContent) -> list[dict]:
        return format_messages(
            history,
            content,
            encode=self.encode_message,
            assistant_role=self.provider.assistant_role,
            strict_alternation=self.provider.strict_alternation,
        )

    @abstractmethod
    def encode_message(self, role: str, content: UserContent) -> dict:
        raise NotImplementedError

    @abstractmethod
    async def _complete(
        self,
        *,
        api_key: str,
        model: str,
        messages: list[dict],
        system_prompt: Optional[str],
    ) -> CompletionResult:
        raise NotImplementedError

    @abstractmethod
    def _stream(
        self,
        *,
        api_key: str,
        model: str,
        messages: list[dict],
        system_prompt: Optional[str],
    ) -> AsyncIterator[StreamEvent]:
        raise NotImplementedError

    async def complete(
        self,
        *,
        api_key: str,
        model: str,
        history: Sequence[HistoryTurn],
        content: UserContent,
        system_prompt: Optional[str] = None,
    ) -> CompletionResult:
        messages = self.format_history(history, content)
        logger.info('ai.provider.call', provider=self.name, model=model, stream=False, messages=len(messages))
        try:
            result = await self._complete(
                api_key=api_key,
                model=model,
                messages=messages,
                system_prompt=system_prompt or None,
            )
        except PROVIDER_ERRORS as error:
            logger.warning('ai.provider.error', provider=self.name, model=model, error=describe_error(error))
            return CompletionResult()
        if not result.content:
            logger.warning('ai.provider.empty', provider=self.name, model=model)
            return CompletionResult(citations=result.citations, reasoning=result.reasoning)
        return result

    async def stream(
        self,
        *,
        api_key: str,
        model: str,
        history: Sequence[HistoryTurn],
        content: UserContent,
        system_prompt: Optional[str] = None,
    ) -> AsyncIterator[StreamEvent]:
        messages = self.format_history(history, content)
        logger.info('ai.provider.call', provider=self.name, model=model, stream=True, messages=len(messages))
        received_text = False
        try:
            async for event in self._stream(
                api_key=api_key,
                model=model,
                messages=messages,
                system_prompt=system_prompt or None,
            ):
                if isinstance(event, TextDelta):
                    if not event.text:
                        continue
                    received_text = True
                yield event
        except PROVIDER_ERRORS as error:
            reason = describe_error(error)
            logger.warning('ai.provider.stream_error', provider=self.name, model=model, error=reason)
            yield StreamFailed(f'Error from {self.name}: {reason}')
            return
        if not received_text:
            logger.warning('ai.provider.empty', provider=self.name, model=model, stream=True)
            yield StreamFailed(f'Error from {self.name}: empty response')

    async def probe_citations(
        self,
        *,
        api_key: str,
        model: str,
        history: Sequence[HistoryTurn],
        content: UserContent,
        system_prompt: Optional[str] = None,
    ) -> Optional[list[dict]]:
        if not self.provider.supports_citations:
            return None
        result = await self.complete(
            api_key=api_key,
            model=model,
            history=history,
            content=content,
            system_prompt=system_prompt,
        )
        return result.citations
