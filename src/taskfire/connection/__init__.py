"""Request/response correlation over one multiplexed connection."""

from .connection import CloseCallback, Connection, ErrorListener, RequestCallback
from .lifecycle import ConnectionState, LifecycleGuard
from .pending import PendingRequest, PendingRequestTable

__all__ = [
    "CloseCallback",
    "Connection",
    "ConnectionState",
    "ErrorListener",
    "LifecycleGuard",
    "PendingRequest",
    "PendingRequestTable",
    "RequestCallback",
]
