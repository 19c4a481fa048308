from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Protocol

from app.core import events
from app.core.errors import StreamClosedError
from app.schemas.optimization import ProgressFrame

logger = logging.getLogger(__name__)

NDJSON_MEDIA_TYPE = "application/x-ndjson"


class StreamSink(Protocol):
    async def write_and_flush(self, line: str) -> None:
        ...

    async def close(self) -> None:
        ...


class QueueSink:
    """Sink backed by an asyncio queue and drained by ``iter_lines``.

    Once the consumer stops iterating (client disconnect) further writes are
    dropped; the producer keeps running to completion.
    """

    _EOF = None

    def __init__(self) -> None:
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._closed = False
        self._detached = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def detached(self) -> bool:
        return self._detached

    async def write_and_flush(self, line: str) -> None:
        if self._closed:
            raise StreamClosedError("Sink is closed.")
        if self._detached:
            return
        await self._queue.put(line)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._queue.put(self._EOF)

    async def iter_lines(self) -> AsyncIterator[str]:
        try:
            while True:
                line = await self._queue.get()
                if line is self._EOF:
                    return
                yield line
        finally:
            self._detached = True


class ProgressStreamEmitter:
    def __init__(self, sink: StreamSink):
        self._sink = sink
        self._terminated = False

    @property
    def terminated(self) -> bool:
        return self._terminated

    async def _emit(self, frame: ProgressFrame) -> None:
        if self._terminated:
            raise StreamClosedError("A terminal frame was already written.")
        terminal = frame.status in events.TERMINAL_STATUSES
        if terminal:
            self._terminated = True
        try:
            await self._sink.write_and_flush(frame.to_line())
        finally:
            if terminal:
                await self._sink.close()

    async def started(self) -> None:
        await self._emit(ProgressFrame(status=events.STARTED))

    async def progress(self, step: str, data: dict[str, Any] | None = None) -> None:
        await self._emit(ProgressFrame(status=events.PROGRESS, step=step, data=data))

    async def complete(self, data: dict[str, Any]) -> None:
        await self._emit(ProgressFrame(status=events.COMPLETE, data=data))

    async def error(self, message: str) -> None:
        await self._emit(ProgressFrame(status=events.ERROR, error=message))
