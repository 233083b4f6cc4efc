"""Taskfire client - request/response correlation over one multiplexed connection.

Many requests share a single long-lived WebSocket. Each request carries a
`requestId`; replies are matched back by that id in whatever order they
arrive, while unsolicited WORK pushes are routed to a work sink.

Entry points:
- TaskfireClient / create_client: token + config + WebSocket transport
- Connection: the correlation core, usable with any Transport
"""

from .client import TaskfireClient, basic_auth_header, build_url, create_client
from .config import DEFAULT_URL, ClientConfig
from .connection import Connection, ConnectionState, PendingRequest
from .errors import (
    ConfigurationError,
    ConnectionClosedError,
    ConnectionFailedError,
    MalformedMessageError,
    ProtocolError,
    RequestCancelledError,
    RequestError,
    RequestTimeoutError,
    SerializationError,
    TaskfireError,
    TooManyPendingRequestsError,
    TransportError,
    UnexpectedMessageKindError,
    UnknownRequestIdError,
)
from .protocol import MessageKind, ResponseEnvelope, UnknownEnvelope, WorkEnvelope
from .transport import MemoryTransport, Transport, TransportListener, WebSocketTransport
from .work import QueueWorkSink, WorkSink

__version__ = "0.1.0"

__all__ = [
    # Client
    "TaskfireClient",
    "create_client",
    "build_url",
    "basic_auth_header",
    "ClientConfig",
    "DEFAULT_URL",
    # Core
    "Connection",
    "ConnectionState",
    "PendingRequest",
    # Protocol
    "MessageKind",
    "ResponseEnvelope",
    "WorkEnvelope",
    "UnknownEnvelope",
    # Transports
    "Transport",
    "TransportListener",
    "WebSocketTransport",
    "MemoryTransport",
    # Work
    "WorkSink",
    "QueueWorkSink",
    # Errors
    "TaskfireError",
    "ConfigurationError",
    "SerializationError",
    "ProtocolError",
    "MalformedMessageError",
    "UnknownRequestIdError",
    "UnexpectedMessageKindError",
    "RequestError",
    "RequestTimeoutError",
    "RequestCancelledError",
    "TooManyPendingRequestsError",
    "TransportError",
    "ConnectionFailedError",
    "ConnectionClosedError",
]
