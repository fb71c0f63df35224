"""Transport adapter over the single raw panel <-> host channel.

The raw channel is a postMessage-style primitive: fire-and-forget writes,
one callback per inbound record, no acknowledgement, no correlation. The
adapter turns records into Envelopes and back. It owns no protocol
semantics: correlation, retries and echo handling live above it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from pydantic import ValidationError

from ..errors import SendFailureError
from ..protocol.envelope import Envelope

logger = logging.getLogger(__name__)

RawHandler = Callable[[Any], None]
EnvelopeHandler = Callable[[Envelope], None]


@runtime_checkable
class RawChannel(Protocol):
    """Protocol for the host channel the core is embedded in.

    Implementations must:
    - Never block in raw_send (buffer or enqueue instead)
    - Deliver each inbound record exactly once, in arrival order,
      from the event loop thread, never concurrently
    """

    def raw_send(self, record: dict[str, Any]) -> None:
        """Best-effort write of one record.

        Raises:
            ChannelUnavailableError: If the remote end is not attached
        """
        ...

    def on_raw_receive(self, handler: RawHandler) -> None:
        """Register the inbound record callback."""
        ...


class TransportAdapter:
    """Envelope-level view of a RawChannel.

    - send() never raises: a failed write is logged and returned as a
      SendFailureError value for the caller to classify
    - on_receive() registers exactly one inbound envelope handler
    """

    def __init__(self, channel: RawChannel) -> None:
        self._channel = channel
        self._handler: EnvelopeHandler | None = None
        self.sent_count = 0
        self.received_count = 0
        self.dropped_count = 0
        channel.on_raw_receive(self._on_raw)

    @property
    def channel(self) -> RawChannel:
        return self._channel

    def send(self, envelope: Envelope) -> SendFailureError | None:
        """Write an envelope to the channel.

        Returns:
            None on success, or the SendFailureError describing the dropped write
        """
        try:
            self._channel.raw_send(envelope.to_wire())
        except Exception as e:
            logger.warning(
                f"Failed to send {envelope.type} (correlation_id={envelope.correlation_id}): {e}"
            )
            return SendFailureError(f"Failed to send {envelope.type}: {e}", envelope.type)

        self.sent_count += 1
        return None

    def on_receive(self, handler: EnvelopeHandler) -> None:
        """Register the single inbound envelope handler.

        Raises:
            RuntimeError: If a handler is already registered
        """
        if self._handler is not None:
            raise RuntimeError("TransportAdapter already has an inbound handler")
        self._handler = handler

    def _on_raw(self, record: Any) -> None:
        """Parse one raw inbound record and hand it to the handler."""
        try:
            envelope = Envelope.from_wire(record)
        except ValidationError as e:
            self.dropped_count += 1
            logger.debug(f"Dropping malformed inbound record: {e.error_count()} error(s)")
            return

        self.received_count += 1
        if self._handler is None:
            logger.debug(f"No inbound handler registered, dropping {envelope.type}")
            return
        self._handler(envelope)
