"""panel-bridge developer CLI.

Usage:
    panel-bridge types                                   # Message types and timeouts
    panel-bridge mock-host                               # stdio host that answers every request
    panel-bridge mock-host --no-reflect --fail saveConfig
    panel-bridge call loadConfig -- panel-bridge mock-host
    panel-bridge call selectPullRequest --payload '{"prId": 7}' -- ./my-host

stdout carries the wire in stdio modes, so all logging goes to stderr.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any

import click
from pydantic import ValidationError

from .config import BridgeConfig
from .errors import BridgeError
from .orchestrator import RequestOrchestrator
from .protocol.messages import MessageType
from .transport.base import RawChannel
from .transport.stdio import StdioChannel

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


class MockHost:
    """Minimal host for exercising a panel over a raw channel.

    Every inbound record with a correlation ID is optionally reflected back
    unchanged (as real hosts sometimes do), then answered with
    ``{"ok": true, "echo": <request payload>}`` or, for types listed in
    ``fail_types``, with an error.
    """

    def __init__(
        self,
        channel: RawChannel,
        reflect: bool = True,
        fail_types: set[str] | None = None,
    ) -> None:
        self._channel = channel
        self._reflect = reflect
        self._fail_types = fail_types or set()
        self.handled = 0
        channel.on_raw_receive(self.handle)

    def handle(self, record: Any) -> None:
        if not isinstance(record, dict) or "type" not in record:
            logger.debug(f"Mock host ignoring record: {record!r}")
            return

        self.handled += 1
        correlation_id = record.get("correlationId") or record.get("requestId")
        if not correlation_id:
            return

        if self._reflect:
            self._channel.raw_send(record)

        response: dict[str, Any] = {"type": record["type"], "correlationId": correlation_id}
        if record["type"] in self._fail_types:
            response["error"] = {"message": f"{record['type']} failed", "code": "mock_failure"}
        else:
            response["payload"] = {"ok": True, "echo": record.get("payload")}
        self._channel.raw_send(response)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Debug logging on stderr")
def main(verbose: bool) -> None:
    """panel-bridge - panel <-> host messaging core tools."""
    _setup_logging(verbose)


@main.command("types")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def list_types(as_json: bool) -> None:
    """List message types and their default call timeouts."""
    config = BridgeConfig()
    rows = [(t.value, config.timeout_for(t)) for t in MessageType]

    if as_json:
        click.echo(json.dumps({name: timeout for name, timeout in rows}, indent=2))
        return

    width = max(len(name) for name, _ in rows)
    for name, timeout in rows:
        click.echo(f"{name:<{width}}  {timeout:g}s")


@main.command("mock-host")
@click.option("--reflect/--no-reflect", default=True, help="Reflect requests before answering")
@click.option("--fail", "fail_types", multiple=True, help="Message type to answer with an error")
def mock_host(reflect: bool, fail_types: tuple[str, ...]) -> None:
    """Run a stdio host that answers every request."""

    async def _run() -> None:
        channel = await StdioChannel.open_stdio()
        host = MockHost(channel, reflect=reflect, fail_types=set(fail_types))
        channel.start()
        await channel.wait_closed()
        logger.info(f"Mock host handled {host.handled} message(s)")

    asyncio.run(_run())


@main.command("call")
@click.argument("message_type")
@click.argument("host_command", nargs=-1, required=True)
@click.option("--payload", default=None, help="JSON payload")
@click.option("--timeout", type=float, default=None, help="Seconds per attempt")
@click.option("--retries", type=int, default=None, help="Re-sends after a timeout")
def call_command(
    message_type: str,
    host_command: tuple[str, ...],
    payload: str | None,
    timeout: float | None,
    retries: int | None,
) -> None:
    """Spawn HOST_COMMAND over stdio and perform one call."""
    try:
        message = MessageType(message_type)
    except ValueError:
        raise click.BadParameter(f"Unknown message type: {message_type}") from None

    try:
        data = json.loads(payload) if payload is not None else None
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"--payload is not valid JSON: {e}") from None

    async def _run() -> Any:
        channel = await StdioChannel.spawn(list(host_command))
        orchestrator = RequestOrchestrator(channel, BridgeConfig.from_env())
        channel.start()
        try:
            return await orchestrator.call(message, data, timeout=timeout, retries=retries)
        finally:
            orchestrator.close()
            await channel.close()

    try:
        result = asyncio.run(_run())
    except BridgeError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except ValidationError as e:
        click.echo(f"Error: invalid payload for {message_type}: {e}", err=True)
        sys.exit(2)

    click.echo(json.dumps(result, indent=2))


if __name__ == "__main__":
    main()
