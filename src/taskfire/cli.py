"""Taskfire command-line client.

Usage:
    taskfire send '{"action": "queue.create", "name": "jobs"}'
    taskfire send --timeout 5 '{"action": "task.fetch"}'
    taskfire listen                    # Print pushed work until interrupted
    taskfire listen --count 3          # Print three work envelopes and exit

The token is read from --token or $TASKFIRE_API_TOKEN; other options fall
back to the TASKFIRE_* environment variables.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any

import click

from .client import TOKEN_ENV_VAR, create_client
from .errors import ConfigurationError, RequestError, TaskfireError


def _configure_logging(debug: bool) -> None:
    """Log to stderr; stdout carries only envelopes."""
    logging.basicConfig(
        level=logging.INFO if debug else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


@click.group()
@click.option("--url", envvar="TASKFIRE_URL", default=None, help="WebSocket endpoint")
@click.option("--token", envvar=TOKEN_ENV_VAR, default=None, help="API token")
@click.option("--project-id", envvar="TASKFIRE_PROJECT_ID", default=None, help="Project to scope requests to")
@click.option("--debug", is_flag=True, help="Log every send/receive event")
@click.pass_context
def main(
    ctx: click.Context,
    url: str | None,
    token: str | None,
    project_id: str | None,
    debug: bool,
) -> None:
    """Taskfire client - talk to the task queue over one WebSocket."""
    _configure_logging(debug)
    ctx.obj = {
        "token": token,
        "options": {"url": url, "project_id": project_id, "debug": debug or None},
    }


@main.command()
@click.argument("request_json")
@click.option("--timeout", type=float, default=None, help="Seconds to wait for the response")
@click.pass_obj
def send(obj: dict[str, Any], request_json: str, timeout: float | None) -> None:
    """Send one request and print the response envelope."""
    try:
        request = json.loads(request_json)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"Invalid JSON: {e}", param_hint="REQUEST_JSON") from e
    if not isinstance(request, dict):
        raise click.BadParameter("Request must be a JSON object", param_hint="REQUEST_JSON")

    async def _run() -> int:
        async with _client(obj) as client:
            try:
                envelope = await client.request(request, timeout=timeout)
            except RequestError as e:
                click.echo(e.envelope.to_json())
                return 1
            click.echo(envelope.to_json())
            return 0

    sys.exit(_run_async(_run()))


@main.command()
@click.option("--count", type=int, default=None, help="Exit after this many work envelopes")
@click.pass_obj
def listen(obj: dict[str, Any], count: int | None) -> None:
    """Print pushed work envelopes as JSON lines."""

    async def _run() -> int:
        received = 0
        async with _client(obj) as client:
            async for envelope in client.work():
                click.echo(envelope.to_json())
                received += 1
                if count is not None and received >= count:
                    break
        return 0

    sys.exit(_run_async(_run()))


def _client(obj: dict[str, Any]) -> Any:
    try:
        return create_client(obj["token"], **obj["options"])
    except ConfigurationError as e:
        raise click.UsageError(str(e)) from e


def _run_async(coro: Any) -> int:
    try:
        return asyncio.run(coro)
    except KeyboardInterrupt:
        return 130
    except TaskfireError as e:
        click.echo(f"Error: {e}", err=True)
        return 1


if __name__ == "__main__":
    main()
