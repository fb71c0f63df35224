"""In-memory channel with a scriptable host side.

Used by tests and local development. No I/O: the "host" lives in the same
event loop and sees exactly what the panel writes.

Usage:
    channel = LoopbackChannel()
    channel.host.on_message(lambda record: channel.host.reply(record, {"ok": True}))

    orchestrator = RequestOrchestrator(channel)
    result = await orchestrator.call(MessageType.LOAD_CONFIG)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from ..errors import ChannelUnavailableError
from .base import RawHandler

logger = logging.getLogger(__name__)

HostHandler = Callable[[dict[str, Any]], None]


class LoopbackHost:
    """Host end of a LoopbackChannel."""

    def __init__(self, channel: LoopbackChannel) -> None:
        self._channel = channel
        self._handlers: list[HostHandler] = []
        self.received: list[dict[str, Any]] = []

    @property
    def sent(self) -> list[dict[str, Any]]:
        """Records the panel wrote, in send order (alias of ``received``)."""
        return self.received

    def on_message(self, handler: HostHandler) -> None:
        """Register a callback for every record the panel writes."""
        self._handlers.append(handler)

    def post(self, record: dict[str, Any]) -> None:
        """Push a record to the panel (delivered on the next loop iteration)."""
        self._channel._schedule_inbound(dict(record))

    def reflect(self, record: dict[str, Any]) -> None:
        """Send a record back to the panel unchanged."""
        self.post(record)

    def reply(self, request: dict[str, Any], payload: Any = None) -> None:
        """Answer a request with the canonical success shape."""
        self.post(
            {
                "type": request["type"],
                "correlationId": request.get("correlationId"),
                "payload": payload,
            }
        )

    def reply_error(
        self, request: dict[str, Any], error: str, code: str | None = None
    ) -> None:
        """Answer a request with an error."""
        err: str | dict[str, Any] = {"message": error, "code": code} if code else error
        self.post(
            {
                "type": request["type"],
                "correlationId": request.get("correlationId"),
                "error": err,
            }
        )

    def clear(self) -> None:
        self.received.clear()

    def _deliver(self, record: dict[str, Any]) -> None:
        self.received.append(record)
        for handler in list(self._handlers):
            try:
                handler(record)
            except Exception:
                logger.exception(f"Error in loopback host handler for {record.get('type')}")


class LoopbackChannel:
    """RawChannel whose remote end is an in-process LoopbackHost.

    Both directions are scheduled with ``loop.call_soon``: FIFO order, no
    re-entrant delivery, nothing happens until the loop runs.
    """

    def __init__(self, attached: bool = True) -> None:
        self.attached = attached
        self.host = LoopbackHost(self)
        self._handler: RawHandler | None = None

    def raw_send(self, record: dict[str, Any]) -> None:
        if not self.attached:
            raise ChannelUnavailableError("Host not attached")
        asyncio.get_running_loop().call_soon(self.host._deliver, dict(record))

    def on_raw_receive(self, handler: RawHandler) -> None:
        self._handler = handler

    def _schedule_inbound(self, record: dict[str, Any]) -> None:
        asyncio.get_running_loop().call_soon(self._deliver_inbound, record)

    def _deliver_inbound(self, record: dict[str, Any]) -> None:
        if self._handler is None:
            logger.debug(f"No panel handler, dropping {record.get('type')}")
            return
        self._handler(record)
