"""Anthropic messages API over httpx.

The system prompt goes in the top-level ``system`` field. Streaming uses the
SSE event sequence ``message_start`` ... ``content_block_delta`` ...
``message_stop``; a stream that ends without ``message_stop`` is a failure.
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

ANTHROPIC_API_VERSION = '2023-06-01'


def _join_blocks(blocks: list, kind: str) -> str:
    parts = []
    for block in blocks:
        if isinstance(block, dict) and block.get('type') == kind and isinstance(block.get(kind), str):
            parts.append(block[kind])
    return ''.join(parts)


class AnthropicAdapter(ProviderAdapter):
    @property
    def messages_url(self) -> str:
        return f"{self.provider.base_url.rstrip('/')}/messages"

    def _headers(self, api_key: str) -> dict[str, str]:
        return {
            'x-api-key': api_key,
            'anthropic-version': ANTHROPIC_API_VERSION,
            'content-type': 'application/json',
        }

    def _body(self, model: str, messages: list[dict], system_prompt: Optional[str], stream: bool) -> dict:
        body: dict = {
            'model': self.api_model(model),
            'max_tokens': self.max_tokens,
            'messages': messages,
        }
        if system_prompt:
            body['system'] = system_prompt
        if stream:
            body['stream'] = True
        return body

    def encode_message(self, role: str, content: UserContent) -> dict:
        if isinstance(content, str):
            return {'role': role, 'content': content}
        blocks: list[dict] = []
        for part in content:
            if isinstance(part, ImagePart):
                blocks.append(
                    {
                        'type': 'image',
                        'source': {'type': 'base64', 'media_type': part.mime_type, 'data': part.data},
                    }
                )
            elif isinstance(part, TextPart):
                blocks.append({'type': 'text', 'text': part.text})
        return {'role': role, 'content': blocks}

    async def _complete(
        self,
        *,
        api_key: str,
        model: str,
        messages: list[dict],
        system_prompt: Optional[str],
    ) -> CompletionResult:
        response = await self.http_client.post(
            self.messages_url,
            headers=self._headers(api_key),
            json=self._body(model, messages, system_prompt, stream=False),
            timeout=self.request_timeout,
        )
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ProviderResponseError('message is not an object')
        blocks = data.get('content')
        if not isinstance(blocks, list):
            raise ProviderResponseError('message has no content blocks')
        text = _join_blocks(blocks, 'text')
        thinking = _join_blocks(blocks, 'thinking')
        return CompletionResult(content=text or None, reasoning=thinking or None)

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
            self.messages_url,
            headers=self._headers(api_key),
            json=self._body(model, messages, system_prompt, stream=True),
            timeout=self.request_timeout,
        ) as response:
            response.raise_for_status()
            received_stop = False
            async for line in response.aiter_lines():
                if not line.startswith('data:'):
                    continue
                try:
                    data = json.loads(line[5:].strip())
                except json.JSONDecodeError:
                    continue
                if not isinstance(data, dict):
                    raise ProviderResponseError('stream event is not an object')
                event_type = data.get('type')
                if event_type == 'content_block_delta':
                    delta = data.get('delta')
                    if not isinstance(delta, dict):
                        continue
                    text = delta.get('text')
                    thinking = delta.get('thinking')
                    if delta.get('type') == 'text_delta' and isinstance(text, str) and text:
                        yield TextDelta(text)
                    elif delta.get('type') == 'thinking_delta' and isinstance(thinking, str) and thinking:
                        yield ReasoningDelta(thinking)
                elif event_type == 'error':
                    error = data.get('error')
                    reason = error.get('type') if isinstance(error, dict) else None
                    raise ProviderResponseError(reason or 'stream error')
                elif event_type == 'message_stop':
                    received_stop = True
                    break
            if not received_stop:
                raise ProviderResponseError('stream ended without message_stop')
