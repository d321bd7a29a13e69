from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Sequence
from contextlib import aclosing
from typing import Optional

from multichat.services.ai_types import (
    Citation,
    CitationsReady,
    ReasoningDelta,
    StreamEvent,
    StreamFailed,
    StreamResult,
    TextDelta,
)

Emit = Callable[[dict], None]


def merge_citations(current: Optional[list[Citation]], incoming: Sequence[Citation]) -> list[Citation]:
    merged = list(current or [])
    seen = {item.get('url') for item in merged}
    for item in incoming:
        url = item.get('url')
        if url and url in seen:
            continue
        seen.add(url)
        merged.append(item)
    return merged


async def consume_stream(events: AsyncIterator[StreamEvent], emit: Emit) -> StreamResult:
    """Fold provider events into a StreamResult, forwarding each one to ``emit``.

    Stops at the first StreamFailed; nothing is emitted for that call after it.
    """
    result = StreamResult()
    async with aclosing(events) as stream:
        async for event in stream:
            if isinstance(event, TextDelta):
                result.full_response_content += event.text
                emit({'type': 'chunk', 'content': event.text})
            elif isinstance(event, ReasoningDelta):
                result.full_reasoning_content += event.text
                emit({'type': 'reasoning_chunk', 'content': event.text})
            elif isinstance(event, CitationsReady):
                result.full_citations = merge_citations(result.full_citations, event.citations)
                emit({'type': 'citations', 'citations': result.full_citations})
            elif isinstance(event, StreamFailed):
                result.error_occurred = True
                emit({'type': 'error', 'message': event.message, 'recoverable': True})
                break
    return result
