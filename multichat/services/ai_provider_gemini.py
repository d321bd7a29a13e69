"""Gemini generateContent API over httpx.

Roles are ``user`` and ``model``; every message carries ``parts``. The key
travels in the ``x-goog-api-key`` header, never in the URL.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from typing import Optional

from multichat.services.ai_provider_base import ProviderAdapter
from multichat.services.ai_types import (
    CompletionResult,
    ImagePart,
    ProviderResponseError,
    ReasoningDelta,
    StreamEvent,
    TextDelta,
    TextPart,
    UserContent,
)


def _candidate_parts(data) -> list[dict]:
    if not isinstance(data, dict):
        raise ProviderResponseError('response is not an object')
    candidates = data.get('candidates') or []
    if not isinstance(candidates, list):
        raise ProviderResponseError('candidates is not a list')
    if not candidates:
        feedback = data.get('promptFeedback')
        if isinstance(feedback, dict) and feedback.get('blockReason'):
            raise ProviderResponseError(f"prompt blocked: {feedback['blockReason']}")
        return []
    candidate = candidates[0]
    if not isinstance(candidate, dict):
        raise ProviderResponseError('candidate is not an object')
    content = candidate.get('content')
    if not isinstance(content, dict):
        return []
    parts = content.get('parts')
    if not isinstance(parts, list):
        return []
    return [part for part in parts if isinstance(part, dict) and isinstance(part.get('text'), str)]


def _split_parts(parts: list[dict]) -> tuple[str, str]:
    text = ''.join(part['text'] for part in parts if not part.get('thought'))
    thought = ''.join(part['text'] for part in parts if part.get('thought'))
    return text, thought


class GeminiAdapter(ProviderAdapter):
    def _url(self, model: str, method: str) -> str:
        return f"{self.provider.base_url.rstrip('/')}/models/{self.api_model(model)}:{method}"

    def _headers(self, api_key: str) -> dict[str, str]:
        return {'x-goog-api-key': api_key, 'content-type': 'application/json'}

    def _body(self, messages: list[dict], system_prompt: Optional[str]) -> dict:
        body: dict = {
            'contents': messages,
            'generationConfig': {'maxOutputTokens': self.max_tokens},
        }
        if system_prompt:
            body['systemInstruction'] = {'parts': [{'text': system_prompt}]}
        return body

    def encode_message(self, role: str, content: UserContent) -> dict:
        if isinstance(content, str):
            return {'role': role, 'parts': [{'text': content}]}
        parts: list[dict] = []
        for part in content:
            if isinstance(part, ImagePart):
                parts.append({'inlineData': {'mimeType': part.mime_type, 'data': part.data}})
            elif isinstance(part, TextPart):
                parts.append({'text': part.text})
        return {'role': role, 'parts': parts}

    async def _complete(
        self,
        *,
        api_key: str,
        model: str,
        messages: list[dict],
        system_prompt: Optional[str],
    ) -> CompletionResult:
        response = await self.http_client.post(
            self._url(model, 'generateContent'),
            headers=self._headers(api_key),
            json=self._body(messages, system_prompt),
            timeout=self.request_timeout,
        )
        response.raise_for_status()
        text, thought = _split_parts(_candidate_parts(response.json()))
        return CompletionResult(content=text or None, reasoning=thought or None)

    async def _stream(
        self,
        *,
        api_key: str,
        model: str,
        messages: list[dict],
        system_prompt: Optional[str],
    ) -> AsyncIterator[StreamEvent]:
        async with self.http_client.stream(
            'POST',
            self._url(model, 'streamGenerateContent'),
            params={'alt': 'sse'},
            headers=self._headers(api_key),
            json=self._body(messages, system_prompt),
            timeout=self.request_timeout,
        ) as response:
            response.raise_for_status()
            async for line in response.aiter_lines():
                if not line.startswith('data:'):
                    continue
                try:
                    data = json.loads(line[5:].strip())
                except json.JSONDecodeError:
                    continue
                text, thought = _split_parts(_candidate_parts(data))
                if thought:
                    yield ReasoningDelta(thought)
                if text:
                    yield TextDelta(text)
