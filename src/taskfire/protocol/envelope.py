"""Wire envelopes exchanged with the Taskfire service.

Every inbound frame is parsed exactly once into one of three variants:
- ResponseEnvelope: a reply correlated to an outstanding request by id
- WorkEnvelope: a server-initiated work assignment (uncorrelated)
- UnknownEnvelope: anything else, kept verbatim for diagnostics

Example (response):
    {"kind": "RESPONSE", "requestId": 3, "status": 200, "payload": {"id": "q_1"}}

Example (push):
    {"kind": "WORK", "payload": {"task": "t_42"}}

Note: field names on the wire use camelCase (`requestId`).
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt, ValidationError

from ..errors import MalformedMessageError

# Inclusive range of status codes that settle a request as failed
ERROR_STATUS_MIN = 400
ERROR_STATUS_MAX = 599

REQUEST_ID_FIELD = "requestId"


class MessageKind(str, Enum):
    """Message kinds the dispatcher routes."""

    RESPONSE = "RESPONSE"
    WORK = "WORK"


class EnvelopeModel(BaseModel):
    """Base model for wire envelopes.

    Aliased fields are only accepted under their wire (camelCase) name.
    """

    def to_json(self) -> str:
        """Serialize using wire field names."""
        return self.model_dump_json(by_alias=True)


class ResponseEnvelope(EnvelopeModel):
    """Reply to a request previously sent on this connection."""

    kind: Literal["RESPONSE"] = "RESPONSE"
    request_id: StrictInt = Field(alias=REQUEST_ID_FIELD)
    status: StrictInt
    payload: Any = None

    def is_error(self) -> bool:
        """Check if the status falls in the error range (400-599 inclusive).

        Statuses outside 100-599 are not errors; only the declared range fails.
        """
        return ERROR_STATUS_MIN <= self.status <= ERROR_STATUS_MAX


class WorkEnvelope(EnvelopeModel):
    """Unsolicited work pushed by the server.

    Extra fields are preserved but never interpreted; in particular a stray
    `requestId` does not make this a reply.
    """

    model_config = ConfigDict(extra="allow")

    kind: Literal["WORK"] = "WORK"
    payload: Any = None


class UnknownEnvelope(EnvelopeModel):
    """Envelope whose kind the client does not know how to route."""

    kind: str | None = None
    raw: dict[str, Any] = Field(default_factory=dict)


Envelope = ResponseEnvelope | WorkEnvelope | UnknownEnvelope


def decode_envelope(raw: str | bytes) -> Envelope:
    """Parse a raw frame into an envelope variant.

    Raises:
        MalformedMessageError: If the frame is not a JSON object, or a known
            kind is missing required fields.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError, RecursionError) as e:
        raise MalformedMessageError(f"Invalid JSON frame: {e}", raw) from e

    if not isinstance(data, dict):
        raise MalformedMessageError(
            f"Expected a JSON object, got {type(data).__name__}", raw
        )

    kind = data.get("kind")
    try:
        if kind == MessageKind.RESPONSE.value:
            return ResponseEnvelope.model_validate(data)
        if kind == MessageKind.WORK.value:
            return WorkEnvelope.model_validate(data)
    except ValidationError as e:
        raise MalformedMessageError(f"Invalid {kind} envelope: {e}", raw) from e

    return UnknownEnvelope(kind=kind if isinstance(kind, str) else None, raw=data)
