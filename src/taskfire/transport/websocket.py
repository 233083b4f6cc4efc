"""WebSocket transport implementation.

Full-duplex transport over a single WebSocket. Text frames carry one JSON
envelope each. A background task owns the socket: it opens it, reports
readiness, feeds every frame to the listener, and reports termination.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed

from .base import NORMAL_CLOSURE, TransportListener

logger = logging.getLogger(__name__)


class WebSocketTransport:
    """Client-side WebSocket transport.

    Usage:
        transport = WebSocketTransport(
            "wss://api.taskfire.io/ws",
            headers={"Authorization": "Basic ..."},
        )
        connection = Connection(transport)
        await connection.connect()
    """

    def __init__(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        open_timeout: float | None = 10.0,
        ping_interval: float | None = 20.0,
        ping_timeout: float | None = 20.0,
        max_size: int | None = 2**20,
    ) -> None:
        self.url = url
        self.headers = headers or {}
        self.open_timeout = open_timeout
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout
        self.max_size = max_size

        self._listener: TransportListener | None = None
        self._ws: ClientConnection | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def is_connected(self) -> bool:
        return self._ws is not None

    async def connect(self, listener: TransportListener) -> None:
        """Start the connection task."""
        if self._task is not None:
            raise RuntimeError("WebSocketTransport can only be connected once")
        self._listener = listener
        self._task = asyncio.create_task(self._run(listener), name="taskfire-websocket")

    async def send(self, data: str) -> None:
        """Send one text frame."""
        if self._ws is None:
            raise ConnectionError("WebSocket not connected")
        await self._ws.send(data)

    async def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None:
        """Close the socket and wait for the connection task to finish."""
        if self._ws is not None:
            await self._ws.close(code, reason)
        elif self._task is not None and not self._task.done():
            # Still opening: abandon the attempt
            self._task.cancel()

        if self._task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._task

    async def _run(self, listener: TransportListener) -> None:
        """Own the socket for its whole life."""
        ws: ClientConnection | None = None
        try:
            async with connect(self.url, **self._connect_options()) as ws:
                self._ws = ws
                logger.info(f"WebSocket connected to {self.url}")
                listener.on_open()

                async for message in ws:
                    try:
                        listener.on_message(message)
                    except Exception as e:
                        # One bad frame must not tear down the socket
                        logger.exception(f"Error handling WebSocket frame: {e}")

        except ConnectionClosed as e:
            logger.warning(f"WebSocket closed abnormally: {e}")
            listener.on_error(e)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"WebSocket error: {e}")
            listener.on_error(e)
        finally:
            self._ws = None
            if ws is not None:
                listener.on_close(ws.close_code, ws.close_reason or "")
            else:
                listener.on_close(None, "connection not established")

    def _connect_options(self) -> dict[str, Any]:
        return {
            "additional_headers": self.headers,
            "open_timeout": self.open_timeout,
            "ping_interval": self.ping_interval,
            "ping_timeout": self.ping_timeout,
            "max_size": self.max_size,
        }
