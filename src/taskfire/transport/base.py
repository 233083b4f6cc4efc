"""Transport abstraction for the Taskfire connection.

A transport owns the socket; the connection owns correlation. The two meet
through a pair of protocols:
- Transport: what the connection calls (connect, send, close)
- TransportListener: what the transport calls back (open, message, error, close)

Transports report readiness through `on_open()` rather than by returning
from `connect()`, so callers may queue requests before the socket is up.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

# WebSocket close code for a normal, intentional shutdown
NORMAL_CLOSURE = 1000


@runtime_checkable
class TransportListener(Protocol):
    """Receiver of transport lifecycle and message notifications."""

    def on_open(self) -> None:
        """The transport is ready to send."""
        ...

    def on_message(self, raw: str | bytes) -> None:
        """A complete frame was received."""
        ...

    def on_error(self, error: BaseException) -> None:
        """The transport hit an error. May be followed by on_close."""
        ...

    def on_close(self, code: int | None, reason: str) -> None:
        """The transport terminated. Called exactly once."""
        ...


@runtime_checkable
class Transport(Protocol):
    """Protocol for the connection's underlying socket."""

    async def connect(self, listener: TransportListener) -> None:
        """Start connecting and report progress to `listener`.

        Returns once the attempt has started; readiness arrives as
        `listener.on_open()`.
        """
        ...

    async def send(self, data: str) -> None:
        """Transmit one serialized frame.

        Raises:
            Exception: Any transport failure; the connection wraps it.
        """
        ...

    async def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None:
        """Start the closing handshake.

        Termination is confirmed through `listener.on_close()`.
        """
        ...
