"""Outbound encoding and log-safe rendering."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel

from ..errors import SerializationError
from .envelope import REQUEST_ID_FIELD

LogicalRequest = Mapping[str, Any] | BaseModel


def encode_request(request: LogicalRequest, request_id: int) -> str:
    """Encode a logical request as a JSON frame tagged with its request id.

    The caller's object is copied, never mutated.

    Raises:
        SerializationError: If the request (or anything it contains) cannot
            be represented as JSON, e.g. circular structures or NaN.
    """
    try:
        if isinstance(request, BaseModel):
            fields = request.model_dump(mode="json", by_alias=True)
        elif isinstance(request, Mapping):
            fields = dict(request)
        else:
            raise SerializationError(
                f"Request must be a mapping or a pydantic model, got {type(request).__name__}",
                request,
            )

        fields[REQUEST_ID_FIELD] = request_id
        return json.dumps(fields, allow_nan=False, ensure_ascii=False)
    except (TypeError, ValueError, RecursionError) as e:
        raise SerializationError(f"Cannot encode request {request_id}: {e}", request) from e


def stringify(value: Any) -> str:
    """Render any value for logging without ever raising."""
    if isinstance(value, BaseModel):
        return value.model_dump_json(by_alias=True)
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    try:
        return json.dumps(value, default=repr, ensure_ascii=False)
    except (TypeError, ValueError, RecursionError):
        return repr(value)
