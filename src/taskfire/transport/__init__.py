"""Transport layer.

Provides the socket side of a Taskfire connection:
- WebSocketTransport - the production transport
- MemoryTransport - in-memory, driven by hand (tests, embedding)

Any object implementing the Transport protocol can be injected instead.
"""

from .base import NORMAL_CLOSURE, Transport, TransportListener
from .memory import MemoryTransport
from .websocket import WebSocketTransport

__all__ = [
    "NORMAL_CLOSURE",
    "Transport",
    "TransportListener",
    "MemoryTransport",
    "WebSocketTransport",
]
