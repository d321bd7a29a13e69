from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any, Optional

from openai import AsyncOpenAI

from multichat.services.ai_provider_base import ProviderAdapter, normalize_citations
from multichat.services.ai_types import (
    CitationsReady,
    CompletionResult,
    ImagePart,
    ProviderResponseError,
    ReasoningDelta,
    StreamEvent,
    TextDelta,
    TextPart,
    UserContent,
)


def _extra(obj: Any, key: str) -> Any:
    """Read a non-standard field (citations, reasoning_content) off an SDK model."""
    if obj is None:
        return None
    extra = getattr(obj, 'model_extra', None) or {}
    if key in extra:
        return extra[key]
    return getattr(obj, key, None)


def _citations_from(obj: Any) -> Optional[list[dict]]:
    return normalize_citations(_extra(obj, 'citations')) or normalize_citations(_extra(obj, 'search_results'))


def _first_choice(obj: Any) -> Any:
    choices = getattr(obj, 'choices', None)
    if not isinstance(choices, list) or not choices:
        return None
    return choices[0]


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


class OpenAICompatAdapter(ProviderAdapter):
    """OpenAI chat completions, also spoken by DeepSeek and Perplexity."""

    def _client(self, api_key: str) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=api_key,
            base_url=self.provider.base_url,
            http_client=self.http_client,
            timeout=self.timeout_s,
            max_retries=0,
        )

    def encode_message(self, role: str, content: UserContent) -> dict:
        if isinstance(content, str):
            return {'role': role, 'content': content}
        parts: list[dict] = []
        for part in content:
            if isinstance(part, ImagePart):
                parts.append(
                    {
                        'type': 'image_url',
                        'image_url': {'url': f'data:{part.mime_type};base64,{part.data}'},
                    }
                )
            elif isinstance(part, TextPart):
                parts.append({'type': 'text', 'text': part.text})
        return {'role': role, 'content': parts}

    @staticmethod
    def _with_system(messages: list[dict], system_prompt: Optional[str]) -> list[dict]:
        if not system_prompt:
            return messages
        return [{'role': 'system', 'content': system_prompt}, *messages]

    async def _complete(
        self,
        *,
        api_key: str,
        model: str,
        messages: list[dict],
        system_prompt: Optional[str],
    ) -> CompletionResult:
        completion = await self._client(api_key).chat.completions.create(
            model=self.api_model(model),
            messages=self._with_system(messages, system_prompt),
        )
        message = getattr(_first_choice(completion), 'message', None)
        if message is None:
            raise ProviderResponseError('completion has no choices')
        return CompletionResult(
            content=_text(getattr(message, 'content', None)),
            citations=_citations_from(completion),
            reasoning=_text(_extra(message, 'reasoning_content')),
        )

    async def _stream(
        self,
        *,
        api_key: str,
        model: str,
        messages: list[dict],
        system_prompt: Optional[str],
    ) -> AsyncIterator[StreamEvent]:
        stream = await self._client(api_key).chat.completions.create(
            model=self.api_model(model),
            messages=self._with_system(messages, system_prompt),
            stream=True,
        )
        citations_sent = False
        async for chunk in stream:
            if not citations_sent:
                citations = _citations_from(chunk)
                if citations:
                    citations_sent = True
                    yield CitationsReady(citations)
            delta = getattr(_first_choice(chunk), 'delta', None)
            if delta is None:
                continue
            reasoning = _text(_extra(delta, 'reasoning_content'))
            if reasoning:
                yield ReasoningDelta(reasoning)
            text = _text(getattr(delta, 'content', None))
            if text:
                yield TextDelta(text)
