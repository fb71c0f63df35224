"""Channel over a Starlette WebSocket.

For panels served by a local web app: the host end is the websocket peer.
raw_send() enqueues onto an outbound queue drained by a writer task, so it
never blocks the event loop.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from ..errors import ChannelUnavailableError
from .base import RawHandler

logger = logging.getLogger(__name__)


class WebSocketChannel:
    """RawChannel bound to one accepted WebSocket.

    Usage (inside a Starlette websocket route):
        await websocket.accept()
        channel = WebSocketChannel(websocket)
        orchestrator = RequestOrchestrator(channel)
        await channel.run()  # returns when the peer disconnects
    """

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket
        self._handler: RawHandler | None = None
        self._outbound: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._writer_task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def is_connected(self) -> bool:
        return (
            not self._closed
            and self._websocket.application_state == WebSocketState.CONNECTED
        )

    def raw_send(self, record: dict[str, Any]) -> None:
        if not self.is_connected:
            raise ChannelUnavailableError("WebSocket not connected")
        self._outbound.put_nowait(record)

    def on_raw_receive(self, handler: RawHandler) -> None:
        self._handler = handler

    async def run(self) -> None:
        """Pump messages until the peer disconnects."""
        self._writer_task = asyncio.create_task(self._write_loop())
        try:
            while True:
                try:
                    record = await self._websocket.receive_json()
                except WebSocketDisconnect:
                    logger.info("WebSocket peer disconnected")
                    break
                except ValueError as e:
                    logger.debug(f"Skipping non-JSON websocket message: {e}")
                    continue

                if self._handler is None:
                    logger.debug("No inbound handler registered, dropping message")
                    continue
                self._handler(record)
        finally:
            self._closed = True
            self._writer_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._writer_task
            self._writer_task = None

    async def _write_loop(self) -> None:
        while True:
            record = await self._outbound.get()
            try:
                await self._websocket.send_json(record)
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.warning(f"WebSocket write failed: {e}")
                self._closed = True
                return
