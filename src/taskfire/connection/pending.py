"""Pending-request bookkeeping.

Each request awaiting its reply is tracked by id. Entries are removed
before their outcome is settled, so no later message can settle the same
request twice.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from ..protocol.envelope import ResponseEnvelope


@dataclass
class PendingRequest:
    """A request waiting for its response."""

    request_id: int
    request: Any
    future: asyncio.Future[ResponseEnvelope]
    created_at: float = field(default_factory=time.monotonic)

    @property
    def done(self) -> bool:
        return self.future.done()

    def resolve(self, envelope: ResponseEnvelope) -> bool:
        """Settle successfully. Returns False if already settled."""
        if self.future.done():
            return False
        self.future.set_result(envelope)
        return True

    def reject(self, error: BaseException) -> bool:
        """Settle as failed. Returns False if already settled."""
        if self.future.done():
            return False
        self.future.set_exception(error)
        return True

    def cancel(self) -> bool:
        """Settle as cancelled. Returns False if already settled."""
        return self.future.cancel()


class PendingRequestTable:
    """In-memory map from request id to its pending request."""

    def __init__(self) -> None:
        self._entries: dict[int, PendingRequest] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._entries

    def __iter__(self) -> Iterator[PendingRequest]:
        return iter(list(self._entries.values()))

    def add(self, pending: PendingRequest) -> None:
        """Register a pending request.

        Raises:
            ValueError: If the id is already pending.
        """
        if pending.request_id in self._entries:
            raise ValueError(f"Request id {pending.request_id} is already pending")
        self._entries[pending.request_id] = pending

    def get(self, request_id: int) -> PendingRequest | None:
        return self._entries.get(request_id)

    def pop(self, request_id: int) -> PendingRequest | None:
        """Remove and return the entry, or None if it is not pending."""
        return self._entries.pop(request_id, None)

    def drain(self) -> list[PendingRequest]:
        """Remove and return every entry, oldest first."""
        entries = list(self._entries.values())
        self._entries.clear()
        return entries
