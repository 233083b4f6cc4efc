"""Multiplexed request/response connection.

One Connection wraps one transport. It owns the request id counter, the
pending-request table and the lifecycle guard; nothing else mutates them.

Outbound (send):
    assign id -> encode -> register pending -> wait for open -> transmit

Inbound (on_message):
    decode -> RESPONSE: pop pending by id, settle by status
           -> WORK: forward to the work sink
           -> anything else: emit a protocol error

Everything runs on one event loop. The table needs no lock, only ordering:
entries are inserted before their frame is sent and removed before their
outcome is settled.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Callable
from typing import Any

from ..errors import (
    ConnectionClosedError,
    MalformedMessageError,
    RequestCancelledError,
    RequestError,
    RequestTimeoutError,
    TaskfireError,
    TooManyPendingRequestsError,
    TransportError,
    UnexpectedMessageKindError,
    UnknownRequestIdError,
)
from ..protocol.codec import LogicalRequest, encode_request, stringify
from ..protocol.envelope import (
    ResponseEnvelope,
    UnknownEnvelope,
    WorkEnvelope,
    decode_envelope,
)
from ..transport.base import NORMAL_CLOSURE, Transport
from ..work import WorkSink
from .lifecycle import ConnectionState, LifecycleGuard
from .pending import PendingRequest, PendingRequestTable

logger = logging.getLogger(__name__)

# Type aliases
ErrorListener = Callable[[TaskfireError], None]
RequestCallback = Callable[[BaseException | None, ResponseEnvelope | None], None]
CloseCallback = Callable[[BaseException | None], None]


class Connection:
    """Correlates requests and responses over a single transport.

    Usage:
        connection = Connection(transport, sink=QueueWorkSink())
        await connection.connect()
        envelope = await connection.request({"action": "queue.create", "name": "jobs"})
        await connection.close()

    Requests issued before the transport opens are queued and sent in
    issuance order once it does. If the transport fails before opening,
    they fail with ConnectionFailedError.
    """

    def __init__(
        self,
        transport: Transport,
        sink: WorkSink | None = None,
        *,
        debug: bool = False,
        request_timeout: float | None = None,
        max_pending: int | None = None,
        reject_pending_on_close: bool = False,
    ) -> None:
        """Initialize the connection.

        Args:
            transport: Socket implementation; the connection registers itself
                as its listener on connect()
            sink: Receiver for WORK envelopes (dropped with a warning if None)
            debug: Log every send/receive event with its parameters
            request_timeout: Seconds before an unanswered request expires,
                counted from transmission; waiting for the connection to open
                is not included (None waits forever)
            max_pending: Cap on outstanding requests (None is unbounded)
            reject_pending_on_close: Fail outstanding requests when the
                transport closes instead of leaving them pending
        """
        self._transport = transport
        self._sink = sink
        self.debug = debug
        self.request_timeout = request_timeout
        self.max_pending = max_pending
        self.reject_pending_on_close = reject_pending_on_close

        self._guard = LifecycleGuard()
        self._pending = PendingRequestTable()
        self._last_request_id = 0
        self._send_lock = asyncio.Lock()
        self._error_listeners: list[ErrorListener] = []

        self._connect_started = False
        self._close_requested = False
        self._closed = asyncio.Event()
        self._close_code: int | None = None
        self._close_reason = ""

    # =========================================================================
    # State
    # =========================================================================

    @property
    def state(self) -> ConnectionState:
        """Current lifecycle state."""
        return self._guard.state

    @property
    def is_open(self) -> bool:
        return self._guard.is_open

    @property
    def is_closed(self) -> bool:
        """True once the transport has confirmed termination."""
        return self._closed.is_set()

    @property
    def close_code(self) -> int | None:
        return self._close_code

    @property
    def close_reason(self) -> str:
        return self._close_reason

    @property
    def pending_count(self) -> int:
        """Number of requests awaiting a response."""
        return len(self._pending)

    @property
    def pending_ids(self) -> list[int]:
        return [pending.request_id for pending in self._pending]

    @property
    def last_request_id(self) -> int:
        """Most recently assigned request id (0 before the first request)."""
        return self._last_request_id

    @property
    def sink(self) -> WorkSink | None:
        return self._sink

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def connect(self) -> None:
        """Ask the transport to start connecting.

        Returns once the attempt has started; use wait_open() to wait for
        readiness. Calling connect() twice is a no-op.
        """
        if self._connect_started:
            return
        self._guard.check()
        self._connect_started = True
        await self._transport.connect(self)

    async def wait_open(self, timeout: float | None = None) -> None:
        """Wait until the connection is open.

        Raises:
            ConnectionFailedError: If the transport failed before opening.
            ConnectionClosedError: If the connection was closed first.
            TimeoutError: If `timeout` elapses first.
        """
        await asyncio.wait_for(self._guard.wait_ready(), timeout)

    async def close(self, callback: CloseCallback | None = None) -> None:
        """Close the connection with a normal-closure handshake.

        Completes only once the transport confirms termination. Outstanding
        requests stay pending unless `reject_pending_on_close` is set or
        reject_pending() is called. Safe to call more than once.

        Args:
            callback: Optional callback(error) invoked on completion
        """
        try:
            await self._close()
        except Exception as e:
            if callback is not None:
                _invoke(callback, e)
            raise
        if callback is not None:
            _invoke(callback, None)

    async def _close(self) -> None:
        if self._closed.is_set():
            return

        if not self._close_requested:
            self._close_requested = True
            self._guard.mark_closing()
            self._trace("close", NORMAL_CLOSURE)

            if not self._connect_started:
                self.on_close(NORMAL_CLOSURE, "closed before connecting")
            else:
                try:
                    await self._transport.close(NORMAL_CLOSURE, "client closing")
                except Exception as e:
                    self.on_close(None, f"close failed: {e}")
                    raise TransportError(f"Failed to close transport: {e}") from e

        await self._closed.wait()

    # =========================================================================
    # Error channel
    # =========================================================================

    def add_error_listener(self, listener: ErrorListener) -> Callable[[], None]:
        """Subscribe to connection-level errors.

        Protocol errors (malformed frames, unknown request ids, unexpected
        kinds) and transport errors are delivered here instead of being
        raised into callers.

        Returns:
            Unsubscribe function
        """
        self._error_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._error_listeners:
                self._error_listeners.remove(listener)

        return unsubscribe

    def _emit_error(self, error: TaskfireError) -> None:
        if not self._error_listeners:
            logger.error(f"Unhandled connection error: {error}")
            return

        for listener in list(self._error_listeners):
            try:
                listener(error)
            except Exception:
                logger.exception(f"Error in connection error listener for {type(error).__name__}")

    # =========================================================================
    # Outbound
    # =========================================================================

    async def send(self, request: LogicalRequest) -> PendingRequest:
        """Send a request and return its pending entry.

        The entry's future settles when the matching response arrives.

        Raises:
            SerializationError: The request cannot be encoded (no entry is kept)
            TooManyPendingRequestsError: `max_pending` has been reached
            ConnectionFailedError: The transport failed before opening
            ConnectionClosedError: The connection is closing or closed
            TransportError: The transport rejected the frame
        """
        self._guard.check()
        if self.max_pending is not None and len(self._pending) >= self.max_pending:
            raise TooManyPendingRequestsError(self.max_pending)

        request_id = self._last_request_id + 1
        data = encode_request(request, request_id)
        self._last_request_id = request_id

        loop = asyncio.get_running_loop()
        pending = PendingRequest(
            request_id=request_id,
            request=request,
            future=loop.create_future(),
        )
        self._pending.add(pending)

        try:
            # The lock is FIFO, so frames deferred until open keep issuance order
            async with self._send_lock:
                await self._guard.wait_ready()
                self._trace("send", request_id, request)
                await self._transport.send(data)
        except (TaskfireError, asyncio.CancelledError):
            self._pending.pop(request_id)
            raise
        except Exception as e:
            self._pending.pop(request_id)
            raise TransportError(f"Failed to send request {request_id}: {e}") from e

        return pending

    async def request(
        self,
        request: LogicalRequest,
        callback: RequestCallback | None = None,
        *,
        timeout: float | None = None,
    ) -> ResponseEnvelope:
        """Send a request and wait for its response.

        Args:
            request: Mapping or pydantic model; `requestId` is added to a copy
            callback: Optional callback(error, envelope), subscribed to the
                same outcome the return value comes from
            timeout: Seconds to wait, overriding `request_timeout`

        Returns:
            The response envelope (status outside 400-599)

        Raises:
            RequestError: The server answered with status 400-599
            RequestTimeoutError: No answer within the timeout
            RequestCancelledError: cancel() was called for this request
            SerializationError, ConnectionFailedError, ConnectionClosedError,
            TransportError, TooManyPendingRequestsError: see send()
        """
        try:
            pending = await self.send(request)
        except TaskfireError as e:
            if callback is not None:
                _invoke(callback, e, None)
            raise

        if callback is not None:
            pending.future.add_done_callback(
                functools.partial(_notify_request_callback, callback, pending.request_id)
            )

        return await self.wait_for_response(
            pending, self.request_timeout if timeout is None else timeout
        )

    async def wait_for_response(
        self, pending: PendingRequest, timeout: float | None = None
    ) -> ResponseEnvelope:
        """Wait for a pending request to settle.

        If the wait times out, the entry is removed and settled with
        RequestTimeoutError. If the waiting task is cancelled, the entry is
        removed as well.
        """
        try:
            return await asyncio.wait_for(asyncio.shield(pending.future), timeout)
        except TimeoutError:
            self._expire(pending, timeout)
            return pending.future.result()
        except asyncio.CancelledError:
            if pending.future.cancelled() and not _task_is_cancelling():
                raise RequestCancelledError(pending.request_id) from None
            self.cancel(pending.request_id)
            raise

    def cancel(self, request_id: int) -> bool:
        """Abandon a pending request.

        Returns:
            True if the request was pending and is now cancelled
        """
        pending = self._pending.pop(request_id)
        if pending is None:
            return False
        pending.cancel()
        logger.debug(f"Cancelled request {request_id}")
        return True

    def reject_pending(self, error: TaskfireError | None = None) -> int:
        """Fail every outstanding request and empty the table.

        Args:
            error: Error to settle each request with (defaults to a
                ConnectionClosedError per request)

        Returns:
            Number of requests rejected
        """
        entries = self._pending.drain()
        for pending in entries:
            rejected = pending.reject(
                error
                or ConnectionClosedError(
                    f"Connection closed before request {pending.request_id} was answered"
                )
            )
            if rejected:
                # Entries from send() may have no waiter; mark the outcome retrieved
                pending.future.exception()
        if entries:
            logger.warning(f"Rejected {len(entries)} pending request(s)")
        return len(entries)

    def _expire(self, pending: PendingRequest, timeout: float | None) -> None:
        if self._pending.pop(pending.request_id) is None:
            return
        logger.warning(f"Request {pending.request_id} timed out after {timeout}s")
        pending.reject(RequestTimeoutError(pending.request_id, timeout or 0.0))

    # =========================================================================
    # Inbound (TransportListener)
    # =========================================================================

    def on_open(self) -> None:
        if self._guard.mark_open():
            logger.info("Connection open")

    def on_message(self, raw: str | bytes) -> None:
        """Route one incoming frame."""
        self._trace("receive", raw)
        try:
            envelope = decode_envelope(raw)
        except MalformedMessageError as e:
            self._emit_error(e)
            return

        match envelope:
            case ResponseEnvelope():
                self._settle(envelope)
            case WorkEnvelope():
                self._ingest(envelope)
            case UnknownEnvelope():
                self._emit_error(UnexpectedMessageKindError(envelope.kind, envelope.raw))

    def on_error(self, error: BaseException) -> None:
        if self._guard.mark_failed(error):
            logger.error(f"Connection failed before opening: {error}")
        else:
            logger.warning(f"Transport error: {error}")

        wrapped = TransportError(f"Transport error: {error}")
        wrapped.__cause__ = error
        self._emit_error(wrapped)

    def on_close(self, code: int | None, reason: str) -> None:
        if self._closed.is_set():
            return

        self._close_code = code
        self._close_reason = reason
        self._guard.mark_closed()
        logger.info(f"Connection closed (code={code}, reason={reason!r})")

        if self.reject_pending_on_close:
            self.reject_pending()
        elif len(self._pending):
            logger.warning(f"Connection closed with {len(self._pending)} request(s) still pending")

        self._closed.set()

    def _settle(self, envelope: ResponseEnvelope) -> None:
        pending = self._pending.pop(envelope.request_id)
        if pending is None:
            self._emit_error(UnknownRequestIdError(envelope))
            return

        if envelope.is_error():
            pending.reject(RequestError(envelope))
        else:
            pending.resolve(envelope)

    def _ingest(self, envelope: WorkEnvelope) -> None:
        if self._sink is None:
            logger.warning("Dropping WORK envelope: no work sink configured")
            return

        self._trace("work", envelope)
        try:
            self._sink.ingest(envelope)
        except Exception:
            logger.exception("Work sink failed to ingest envelope")

    def _trace(self, event: str, *params: Any) -> None:
        if self.debug:
            logger.info(" ".join([event, *(stringify(param) for param in params)]))


def _task_is_cancelling() -> bool:
    task = asyncio.current_task()
    return task is not None and task.cancelling() > 0


def _notify_request_callback(
    callback: RequestCallback,
    request_id: int,
    future: asyncio.Future[ResponseEnvelope],
) -> None:
    if future.cancelled():
        _invoke(callback, RequestCancelledError(request_id), None)
        return

    error = future.exception()
    _invoke(callback, error, None if error else future.result())


def _invoke(callback: Callable[..., Any], *args: Any) -> None:
    try:
        callback(*args)
    except Exception:
        logger.exception("Error in completion callback")
