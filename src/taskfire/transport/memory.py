"""In-memory transport.

No actual I/O: frames sent by the connection are recorded, and the owner
drives the other side by hand (open, deliver, fail, acknowledge close).

Usage:
    transport = MemoryTransport()
    connection = Connection(transport)
    await connection.connect()
    transport.open()

    task = asyncio.create_task(connection.request({"action": "task.fetch"}))
    await asyncio.sleep(0)
    request_id = transport.sent_messages[-1]["requestId"]
    transport.deliver_response(request_id, 200, {"task": "t_1"})
"""

from __future__ import annotations

import json
import logging
from typing import Any

from .base import NORMAL_CLOSURE, TransportListener

logger = logging.getLogger(__name__)


class MemoryTransport:
    """Transport whose far end is driven by the caller."""

    def __init__(self, *, auto_open: bool = False, auto_ack_close: bool = True) -> None:
        """Initialize the transport.

        Args:
            auto_open: Report open as soon as connect() is called
            auto_ack_close: Confirm termination as soon as close() is called;
                otherwise acknowledge_close() must be called
        """
        self.auto_open = auto_open
        self.auto_ack_close = auto_ack_close
        self._listener: TransportListener | None = None
        self._sent: list[str] = []
        self._send_error: BaseException | None = None
        self._close_requested: tuple[int, str] | None = None
        self._closed = False

    @property
    def listener(self) -> TransportListener:
        if self._listener is None:
            raise RuntimeError("Transport is not connected")
        return self._listener

    @property
    def sent(self) -> list[str]:
        """Raw frames sent so far."""
        return list(self._sent)

    @property
    def sent_messages(self) -> list[dict[str, Any]]:
        """Sent frames decoded from JSON."""
        return [json.loads(frame) for frame in self._sent]

    @property
    def close_requested(self) -> tuple[int, str] | None:
        """(code, reason) passed to close(), if it was called."""
        return self._close_requested

    @property
    def closed(self) -> bool:
        return self._closed

    def fail_sends(self, error: BaseException | None) -> None:
        """Make every following send() raise `error` (None to stop)."""
        self._send_error = error

    # Transport protocol

    async def connect(self, listener: TransportListener) -> None:
        self._listener = listener
        if self.auto_open:
            listener.on_open()

    async def send(self, data: str) -> None:
        if self._closed:
            raise ConnectionError("Transport is closed")
        if self._send_error is not None:
            raise self._send_error
        self._sent.append(data)

    async def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None:
        self._close_requested = (code, reason)
        if self.auto_ack_close:
            self.acknowledge_close()

    # Far-end controls

    def open(self) -> None:
        """Report the transport as ready."""
        self.listener.on_open()

    def deliver(self, raw: str | bytes | dict[str, Any]) -> None:
        """Deliver one inbound frame (dicts are JSON-encoded)."""
        if isinstance(raw, dict):
            raw = json.dumps(raw)
        self.listener.on_message(raw)

    def deliver_response(self, request_id: int, status: int = 200, payload: Any = None) -> None:
        self.deliver(
            {"kind": "RESPONSE", "requestId": request_id, "status": status, "payload": payload}
        )

    def deliver_work(self, payload: Any = None, **extra: Any) -> None:
        self.deliver({"kind": "WORK", "payload": payload, **extra})

    def fail(self, error: BaseException) -> None:
        """Report a transport error."""
        self.listener.on_error(error)

    def acknowledge_close(self, code: int | None = None, reason: str | None = None) -> None:
        """Confirm termination to the listener."""
        if self._closed:
            return
        self._closed = True
        requested_code, requested_reason = self._close_requested or (NORMAL_CLOSURE, "")
        self.listener.on_close(
            requested_code if code is None else code,
            requested_reason if reason is None else reason,
        )
