"""Client configuration.

Options can be set directly or read from the environment:

    TASKFIRE_URL              WebSocket endpoint
    TASKFIRE_DEBUG            "1"/"true" to log every send/receive event
    TASKFIRE_PROJECT_ID       Project to scope requests to
    TASKFIRE_REQUEST_TIMEOUT  Seconds before an unanswered request expires
    TASKFIRE_MAX_PENDING      Cap on outstanding requests
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from typing import Any

from .errors import ConfigurationError

DEFAULT_URL = "wss://api.taskfire.io/ws"

ENV_PREFIX = "TASKFIRE_"
TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class ClientConfig:
    """Configuration for a Taskfire client."""

    url: str = DEFAULT_URL
    debug: bool = False

    # Appended to the URL as the `projectId` query parameter
    project_id: str | None = None

    # Pending-request policy (None = no expiry / unbounded). The timeout is
    # counted from transmission, not from issuance: time spent waiting for
    # the connection to open is bounded by open_timeout instead.
    request_timeout: float | None = None
    max_pending: int | None = None
    reject_pending_on_close: bool = False

    # WebSocket settings
    open_timeout: float | None = 10.0
    ping_interval: float | None = 20.0

    def __post_init__(self) -> None:
        if not self.url:
            raise ConfigurationError("url must not be empty")
        if self.request_timeout is not None and self.request_timeout <= 0:
            raise ConfigurationError("request_timeout must be positive")
        if self.max_pending is not None and self.max_pending < 1:
            raise ConfigurationError("max_pending must be at least 1")

    def with_overrides(self, **overrides: Any) -> ClientConfig:
        """Return a copy with the non-None overrides applied."""
        _check_known(overrides)
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: Any) -> ClientConfig:
        """Build a config from TASKFIRE_* variables, then apply overrides.

        Raises:
            ConfigurationError: If a variable cannot be parsed.
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}

        if url := env.get(f"{ENV_PREFIX}URL"):
            values["url"] = url
        if debug := env.get(f"{ENV_PREFIX}DEBUG"):
            values["debug"] = debug.strip().lower() in TRUTHY
        if project_id := env.get(f"{ENV_PREFIX}PROJECT_ID"):
            values["project_id"] = project_id
        if timeout := env.get(f"{ENV_PREFIX}REQUEST_TIMEOUT"):
            values["request_timeout"] = _parse(f"{ENV_PREFIX}REQUEST_TIMEOUT", timeout, float)
        if max_pending := env.get(f"{ENV_PREFIX}MAX_PENDING"):
            values["max_pending"] = _parse(f"{ENV_PREFIX}MAX_PENDING", max_pending, int)

        _check_known(overrides)
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def _parse(name: str, value: str, convert: type) -> Any:
    try:
        return convert(value)
    except ValueError as e:
        raise ConfigurationError(f"Invalid value for {name}: {value!r}") from e


def _check_known(options: dict[str, Any]) -> None:
    unknown = set(options) - {f.name for f in fields(ClientConfig)}
    if unknown:
        raise ConfigurationError(f"Unknown config option(s): {', '.join(sorted(unknown))}")
