from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Coroutine
from typing import Any, Optional

from loguru import logger

StreamPayload = dict[str, Any]


def format_sse(payload: StreamPayload) -> str:
    return f'data: {json.dumps(payload, ensure_ascii=False, default=str)}\n\n'


class SseChannel:
    """Single-producer queue between a background task and one SSE response.

    The producer keeps running after the client goes away; once the channel is
    closed or detached, further emits are dropped.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Optional[StreamPayload]] = asyncio.Queue()
        self._closed = False
        self.task: Optional[asyncio.Task[None]] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, payload: StreamPayload) -> None:
        if self._closed:
            return
        self._queue.put_nowait(payload)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)

    def detach(self) -> None:
        self._closed = True

    def start(self, producer: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        self.task = asyncio.create_task(producer)
        self.task.add_done_callback(self._on_done)
        return self.task

    def _on_done(self, done_task: asyncio.Task[None]) -> None:
        if not done_task.cancelled():
            error = done_task.exception()
            if error:
                logger.opt(exception=error).error('ai.chat.stream.task_failed')
        self.close()

    async def events(self) -> AsyncIterator[str]:
        try:
            while True:
                item = await self._queue.get()
                if item is None:
                    break
                yield format_sse(item)
        finally:
            self.detach()
