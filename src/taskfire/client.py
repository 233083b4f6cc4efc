"""Taskfire client.

Binds an API token and a ClientConfig to a Connection over a WebSocket
(or any injected transport). Resource helpers ("create a queue", "fetch a
task") are built on top of `request()`.
"""

from __future__ import annotations

import base64
import os
from collections.abc import AsyncIterator, Callable
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from .config import ClientConfig
from .connection import (
    CloseCallback,
    Connection,
    ConnectionState,
    ErrorListener,
    PendingRequest,
    RequestCallback,
)
from .errors import ConfigurationError
from .protocol import LogicalRequest, ResponseEnvelope, WorkEnvelope
from .transport import Transport, WebSocketTransport
from .work import QueueWorkSink, WorkSink

TOKEN_ENV_VAR = "TASKFIRE_API_TOKEN"


def build_url(url: str, project_id: str | None = None) -> str:
    """Add the `projectId` query parameter to `url` when a project is set."""
    if not project_id:
        return url
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query) if k != "projectId"]
    query.append(("projectId", project_id))
    return urlunsplit(parts._replace(query=urlencode(query)))


def basic_auth_header(token: str) -> str:
    """Authorization header value: the token as user, empty password."""
    credentials = base64.b64encode(f"{token}:".encode()).decode("ascii")
    return f"Basic {credentials}"


class TaskfireClient:
    """Client for the Taskfire task-queue service.

    Usage:
        async with TaskfireClient(token, url="wss://api.taskfire.io/ws") as client:
            reply = await client.request({"action": "queue.create", "name": "jobs"})
            async for work in client.work():
                ...

        # Testing
        transport = MemoryTransport(auto_open=True)
        client = TaskfireClient("token", transport=transport)
    """

    def __init__(
        self,
        api_token: str | None,
        config: ClientConfig | None = None,
        *,
        transport: Transport | None = None,
        sink: WorkSink | None = None,
        **options: Any,
    ) -> None:
        """Initialize the client.

        Args:
            api_token: Credential sent with the connection (required)
            config: Base configuration (defaults to ClientConfig())
            transport: Transport to use instead of a WebSocketTransport
            sink: Receiver for pushed work (defaults to a QueueWorkSink)
            **options: ClientConfig fields overriding `config`

        Raises:
            ConfigurationError: If the token is missing or an option is invalid
        """
        if not api_token:
            raise ConfigurationError("Missing required first parameter `api_token`")

        self.token = api_token
        self.config = (config or ClientConfig()).with_overrides(**options)
        self._sink = sink if sink is not None else QueueWorkSink()
        self._transport = transport if transport is not None else self._create_transport()
        self._connection = Connection(
            self._transport,
            self._sink,
            debug=self.config.debug,
            request_timeout=self.config.request_timeout,
            max_pending=self.config.max_pending,
            reject_pending_on_close=self.config.reject_pending_on_close,
        )

    def _create_transport(self) -> WebSocketTransport:
        return WebSocketTransport(
            build_url(self.config.url, self.config.project_id),
            headers={"Authorization": basic_auth_header(self.token)},
            open_timeout=self.config.open_timeout,
            ping_interval=self.config.ping_interval,
        )

    @property
    def connection(self) -> Connection:
        """Access the underlying connection."""
        return self._connection

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def sink(self) -> WorkSink:
        return self._sink

    @property
    def state(self) -> ConnectionState:
        return self._connection.state

    @property
    def is_open(self) -> bool:
        return self._connection.is_open

    @property
    def pending_count(self) -> int:
        return self._connection.pending_count

    async def connect(self, wait: bool = True) -> None:
        """Connect the transport, by default waiting until it is open."""
        await self._connection.connect()
        if wait:
            await self._connection.wait_open()

    async def request(
        self,
        request: LogicalRequest,
        callback: RequestCallback | None = None,
        *,
        timeout: float | None = None,
    ) -> ResponseEnvelope:
        """Send a request and wait for its response envelope."""
        return await self._connection.request(request, callback, timeout=timeout)

    async def send(self, request: LogicalRequest) -> PendingRequest:
        """Send a request without waiting; the returned entry's future settles later."""
        return await self._connection.send(request)

    def cancel(self, request_id: int) -> bool:
        """Abandon a pending request."""
        return self._connection.cancel(request_id)

    async def close(self, callback: CloseCallback | None = None) -> None:
        """Close the connection and wait for the transport to confirm."""
        await self._connection.close(callback)

    def add_error_listener(self, listener: ErrorListener) -> Callable[[], None]:
        """Subscribe to connection-level errors. Returns an unsubscribe function."""
        return self._connection.add_error_listener(listener)

    async def work(self) -> AsyncIterator[WorkEnvelope]:
        """Yield pushed work (requires the default QueueWorkSink)."""
        if not isinstance(self._sink, QueueWorkSink):
            raise TypeError("work() requires a QueueWorkSink; consume your own sink instead")
        async for envelope in self._sink.work():
            yield envelope

    async def __aenter__(self) -> TaskfireClient:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


# Factory functions


def create_client(
    api_token: str | None = None,
    *,
    transport: Transport | None = None,
    sink: WorkSink | None = None,
    **options: Any,
) -> TaskfireClient:
    """Create a client configured from TASKFIRE_* environment variables.

    Args:
        api_token: Token (defaults to $TASKFIRE_API_TOKEN)
        transport: Transport to inject instead of a WebSocketTransport
        sink: Receiver for pushed work
        **options: ClientConfig fields overriding the environment

    Raises:
        ConfigurationError: If no token is available
    """
    return TaskfireClient(
        api_token or os.environ.get(TOKEN_ENV_VAR),
        ClientConfig.from_env(**options),
        transport=transport,
        sink=sink,
    )
