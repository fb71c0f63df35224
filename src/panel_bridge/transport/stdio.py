"""Newline-delimited JSON channel over asyncio streams.

Wire format (UTF-8, one envelope per line, LF only):
    → {"type":"loadConfig","correlationId":"req_1","timestamp":"..."}
    ← {"type":"loadConfig","correlationId":"req_1","payload":{"config":{}}}

Used for running the panel core against a host subprocess (or, from the
host side, for the mock host in ``panel-bridge mock-host``). Logs must go
to stderr: stdout is the wire.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import sys
from typing import Any, Protocol

from ..errors import ChannelUnavailableError
from .base import RawHandler

logger = logging.getLogger(__name__)

ENCODING = "utf-8"
NEWLINE = "\n"


class LineWriter(Protocol):
    """The part of asyncio.StreamWriter the channel needs."""

    def write(self, data: bytes) -> None: ...

    def is_closing(self) -> bool: ...


class StdioChannel:
    """RawChannel over a StreamReader / StreamWriter pair.

    raw_send() only appends to the writer's buffer, so it never blocks.
    Inbound lines are read by a background task started with start().
    """

    def __init__(self, reader: asyncio.StreamReader, writer: LineWriter) -> None:
        self._reader = reader
        self._writer = writer
        self._handler: RawHandler | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._process: asyncio.subprocess.Process | None = None
        self._closed = False

    @property
    def is_running(self) -> bool:
        return self._reader_task is not None and not self._reader_task.done()

    def raw_send(self, record: dict[str, Any]) -> None:
        if self._closed or self._writer.is_closing():
            raise ChannelUnavailableError("stdio channel is closed")
        line = json.dumps(record, ensure_ascii=False, separators=(",", ":")) + NEWLINE
        self._writer.write(line.encode(ENCODING))

    def on_raw_receive(self, handler: RawHandler) -> None:
        self._handler = handler

    def start(self) -> None:
        """Start the background reader task."""
        if self.is_running:
            return
        self._reader_task = asyncio.create_task(self._read_loop())

    async def wait_closed(self) -> None:
        """Wait until the remote end closes its output."""
        if self._reader_task:
            await self._reader_task

    async def close(self) -> None:
        """Stop reading and terminate a spawned host process."""
        self._closed = True
        if self._reader_task:
            self._reader_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task
            self._reader_task = None

        if self._process:
            if self._process.returncode is None:
                self._process.terminate()
                try:
                    await asyncio.wait_for(self._process.wait(), timeout=5.0)
                except TimeoutError:
                    self._process.kill()
                    await self._process.wait()
            logger.info(f"Host process exited (pid={self._process.pid})")
            self._process = None

    async def _read_loop(self) -> None:
        while True:
            line = await self._reader.readline()
            if not line:
                logger.debug("stdio channel reached EOF")
                break

            try:
                line_str = line.decode(ENCODING).strip()
            except UnicodeDecodeError as e:
                logger.debug(f"Skipping undecodable line: {e}")
                continue
            if not line_str:
                continue

            # Skip non-JSON lines (e.g., log output that leaked to stdout)
            if not line_str.startswith("{"):
                logger.debug(f"Skipping non-JSON line: {line_str[:50]}")
                continue

            try:
                record = json.loads(line_str)
            except json.JSONDecodeError as e:
                logger.debug(f"Failed to parse line: {e} (line: {line_str[:50]})")
                continue

            if self._handler is None:
                logger.debug("No inbound handler registered, dropping line")
                continue
            self._handler(record)

    @classmethod
    async def spawn(cls, command: list[str], cwd: str | None = None) -> StdioChannel:
        """Launch a host process and talk to it over its stdin/stdout."""
        process = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            cwd=cwd,
        )
        if process.stdin is None or process.stdout is None:
            raise RuntimeError("Host process was started without stdio pipes")
        logger.info(f"Launched host: {' '.join(command)} (pid={process.pid})")

        channel = cls(process.stdout, process.stdin)
        channel._process = process
        return channel

    @classmethod
    async def open_stdio(cls) -> StdioChannel:
        """Channel over this process's own stdin/stdout."""
        loop = asyncio.get_running_loop()

        reader = asyncio.StreamReader()
        await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)

        transport, protocol = await loop.connect_write_pipe(
            asyncio.streams.FlowControlMixin, sys.stdout
        )
        writer = asyncio.StreamWriter(transport, protocol, reader, loop)
        return cls(reader, writer)
