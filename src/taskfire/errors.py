"""Exception hierarchy for the Taskfire client.

Errors fall into two groups:
- Per-call errors are raised into (or settle the outcome of) the one
  request that caused them: SerializationError, RequestError,
  RequestTimeoutError, RequestCancelledError, TooManyPendingRequestsError.
- Connection-level errors are emitted on the connection's error channel and
  never raised into unrelated callers: ProtocolError and its subclasses,
  TransportError.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .protocol.envelope import ResponseEnvelope


class TaskfireError(Exception):
    """Base class for all Taskfire client errors."""

    pass


class ConfigurationError(TaskfireError):
    """Raised when a client cannot be constructed (e.g. missing API token)."""

    pass


class SerializationError(TaskfireError):
    """An outgoing request could not be encoded to the wire format."""

    def __init__(self, message: str, request: Any = None) -> None:
        super().__init__(message)
        self.request = request


class ProtocolError(TaskfireError):
    """Client and server disagree about the message stream."""

    code = "protocol_error"


class MalformedMessageError(ProtocolError):
    """An incoming frame could not be parsed into an envelope."""

    code = "malformed_message"

    def __init__(self, message: str, raw: str | bytes | None = None) -> None:
        super().__init__(message)
        self.raw = raw


class UnknownRequestIdError(ProtocolError):
    """A RESPONSE arrived for an id with no pending request."""

    code = "unknown_request_id"

    def __init__(self, envelope: ResponseEnvelope) -> None:
        super().__init__(f"Received response for unknown request id: {envelope.request_id}")
        self.envelope = envelope
        self.request_id = envelope.request_id


class UnexpectedMessageKindError(ProtocolError):
    """An incoming envelope had a kind the client does not route."""

    code = "unexpected_message_kind"

    def __init__(self, kind: str | None, raw: dict[str, Any] | None = None) -> None:
        super().__init__(f"Unexpected message kind: {kind!r}")
        self.kind = kind
        self.raw = raw or {}


class RequestError(TaskfireError):
    """The server answered a request with an error status (400-599)."""

    def __init__(self, envelope: ResponseEnvelope) -> None:
        super().__init__(f"Request {envelope.request_id} failed with status {envelope.status}")
        self.envelope = envelope

    @property
    def status(self) -> int:
        return self.envelope.status

    @property
    def payload(self) -> Any:
        return self.envelope.payload


class RequestTimeoutError(TaskfireError):
    """No response arrived within the configured request timeout."""

    def __init__(self, request_id: int, timeout: float) -> None:
        super().__init__(f"Request {request_id} timed out after {timeout}s")
        self.request_id = request_id
        self.timeout = timeout


class RequestCancelledError(TaskfireError):
    """A pending request was cancelled before its response arrived."""

    def __init__(self, request_id: int) -> None:
        super().__init__(f"Request {request_id} was cancelled")
        self.request_id = request_id


class TooManyPendingRequestsError(TaskfireError):
    """The configured cap on outstanding requests has been reached."""

    def __init__(self, limit: int) -> None:
        super().__init__(f"Too many pending requests (limit {limit})")
        self.limit = limit


class TransportError(TaskfireError):
    """The underlying transport reported an error."""

    pass


class ConnectionFailedError(TransportError):
    """The transport failed before the connection was ever opened."""

    pass


class ConnectionClosedError(TransportError):
    """The connection is closing or closed and can no longer carry requests."""

    pass
