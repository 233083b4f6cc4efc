"""Wire protocol for the Taskfire connection.

Defines the envelope variants and the codec used on the single
multiplexed connection:
- Requests: client -> server, tagged with a `requestId`
- Responses: server -> client, correlated back by `requestId`
- Work: server -> client pushes with no correlation
"""

from .codec import LogicalRequest, encode_request, stringify
from .envelope import (
    ERROR_STATUS_MAX,
    ERROR_STATUS_MIN,
    REQUEST_ID_FIELD,
    Envelope,
    MessageKind,
    ResponseEnvelope,
    UnknownEnvelope,
    WorkEnvelope,
    decode_envelope,
)

__all__ = [
    "ERROR_STATUS_MAX",
    "ERROR_STATUS_MIN",
    "REQUEST_ID_FIELD",
    "Envelope",
    "LogicalRequest",
    "MessageKind",
    "ResponseEnvelope",
    "UnknownEnvelope",
    "WorkEnvelope",
    "decode_envelope",
    "encode_request",
    "stringify",
]
