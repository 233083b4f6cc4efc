"""Push-work sinks.

The connection forwards every WORK envelope to a sink without looking at
its payload. What a task means, and how it is acknowledged, is up to the
sink's owner.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable

from .protocol.envelope import WorkEnvelope

logger = logging.getLogger(__name__)


@runtime_checkable
class WorkSink(Protocol):
    """Consumer of server-initiated work."""

    def ingest(self, envelope: WorkEnvelope) -> None:
        """Accept one pushed envelope. Must not block."""
        ...


class QueueWorkSink:
    """Buffers pushed work in an asyncio queue.

    Usage:
        sink = QueueWorkSink()
        client = TaskfireClient(token, sink=sink)
        async for envelope in sink.work():
            handle(envelope.payload)
    """

    def __init__(self, maxsize: int = 0) -> None:
        self._queue: asyncio.Queue[WorkEnvelope] = asyncio.Queue(maxsize=maxsize)
        self._dropped = 0

    @property
    def size(self) -> int:
        return self._queue.qsize()

    @property
    def dropped(self) -> int:
        """Envelopes discarded because the queue was full."""
        return self._dropped

    def ingest(self, envelope: WorkEnvelope) -> None:
        try:
            self._queue.put_nowait(envelope)
        except asyncio.QueueFull:
            self._dropped += 1
            logger.warning(f"Work queue full, dropping envelope ({self._dropped} dropped)")

    async def get(self) -> WorkEnvelope:
        """Wait for the next pushed envelope."""
        return await self._queue.get()

    async def work(self) -> AsyncIterator[WorkEnvelope]:
        """Yield pushed envelopes as they arrive."""
        while True:
            yield await self._queue.get()
