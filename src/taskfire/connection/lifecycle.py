"""Connection lifecycle state machine.

The guard is the readiness gate every outbound send passes through:

    PENDING --open--> OPEN --close--> CLOSING --closed--> CLOSED
       |                                                    ^
       +--error--> FAILED          PENDING --close----------+

Sends suspended while PENDING are released on OPEN and fail fast on
FAILED, CLOSING or CLOSED. A guard never reopens; reconnecting needs a new
connection.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

from ..errors import ConnectionClosedError, ConnectionFailedError

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    """Connection state machine."""

    PENDING = "pending"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"
    FAILED = "failed"


class LifecycleGuard:
    """Tracks connection readiness and gates outbound traffic."""

    def __init__(self) -> None:
        self._state = ConnectionState.PENDING
        self._settled = asyncio.Event()
        self._cause: BaseException | None = None

    @property
    def state(self) -> ConnectionState:
        """Current lifecycle state."""
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == ConnectionState.OPEN

    @property
    def is_terminal(self) -> bool:
        """True once the connection can no longer carry new requests."""
        return self._state in (
            ConnectionState.FAILED,
            ConnectionState.CLOSING,
            ConnectionState.CLOSED,
        )

    def check(self) -> None:
        """Raise if the connection can no longer accept sends."""
        match self._state:
            case ConnectionState.FAILED:
                raise ConnectionFailedError(
                    f"Connection failed before opening: {self._cause}"
                ) from self._cause
            case ConnectionState.CLOSING | ConnectionState.CLOSED:
                raise ConnectionClosedError(f"Connection is {self._state.value}")
            case _:
                pass

    async def wait_ready(self) -> None:
        """Wait until the connection is open.

        Raises:
            ConnectionFailedError: If the transport failed before opening.
            ConnectionClosedError: If the connection is closing or closed.
        """
        if self._state == ConnectionState.PENDING:
            await self._settled.wait()
        self.check()

    def mark_open(self) -> bool:
        """Transition PENDING -> OPEN. Returns False if not pending."""
        if self._state != ConnectionState.PENDING:
            logger.warning(f"Ignoring open signal in state {self._state.value}")
            return False
        self._transition(ConnectionState.OPEN)
        return True

    def mark_failed(self, cause: BaseException) -> bool:
        """Transition PENDING -> FAILED, failing every waiting send."""
        if self._state != ConnectionState.PENDING:
            return False
        self._cause = cause
        self._transition(ConnectionState.FAILED)
        return True

    def mark_closing(self) -> bool:
        """Transition PENDING/OPEN -> CLOSING."""
        if self._state not in (ConnectionState.PENDING, ConnectionState.OPEN):
            return False
        self._transition(ConnectionState.CLOSING)
        return True

    def mark_closed(self) -> bool:
        """Transition to CLOSED. A failed guard stays FAILED."""
        if self._state in (ConnectionState.CLOSED, ConnectionState.FAILED):
            self._settled.set()
            return False
        self._transition(ConnectionState.CLOSED)
        return True

    def _transition(self, state: ConnectionState) -> None:
        logger.debug(f"Connection state {self._state.value} -> {state.value}")
        self._state = state
        self._settled.set()
