"""Request Orchestrator - the public call surface of the messaging core.

Coordinates the transport adapter, echo filter, event bus and correlation
table behind three operations:

- notify(type, payload): fire-and-forget
- call(type, payload, timeout, retries): correlated request with
  per-call timeout and bounded retry
- subscribe(type, handler): typed inbound event stream

Inbound path for every envelope the channel delivers:

    channel ─▶ TransportAdapter ─▶ CorrelationTable.settle_if_pending
                                        │ not a response
                                        ▼
                                    EventBus.publish ─▶ (echo? drop) ─▶ subscribers

One orchestrator per channel, constructed once per process lifetime and
passed to whoever needs it. All of its state is instance-owned.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from .bus import EventBus, EnvelopeHandler
from .config import BridgeConfig
from .correlation import CorrelationTable, PendingCall
from .echo import EchoFilter
from .errors import BridgeError, SendFailureError
from .observable import Observable
from .protocol.envelope import Envelope, new_correlation_id
from .protocol.messages import MessageType, coerce_message_type, encode_payload
from .transport.base import RawChannel, TransportAdapter

logger = logging.getLogger(__name__)


def _consume_result(future: asyncio.Future[Any]) -> None:
    # Mark the outcome retrieved for calls whose caller stopped waiting
    if not future.cancelled():
        future.exception()


class RequestOrchestrator:
    """RPC layer over a single fire-and-forget channel.

    Observable state for UI collaborators:
        last_error: message of the most recent failure, or None
        is_loading: True while any call() has a caller awaiting it. A caller
            that is cancelled stops counting at once, even though its
            pending call stays in the table until its deadline
        retry_count: retry attempt of the most recent call, 0 once settled

    Usage:
        orchestrator = RequestOrchestrator(channel)
        unsubscribe = orchestrator.subscribe(MessageType.SETTINGS_CHANGED, on_settings)
        config = await orchestrator.call(MessageType.LOAD_CONFIG)
        orchestrator.notify(MessageType.UPDATE_VIEW, {"view": "dashboard"})
    """

    def __init__(self, channel: RawChannel, config: BridgeConfig | None = None) -> None:
        self.config = config or BridgeConfig()

        self.echo_filter = EchoFilter(ttl=self.config.echo_ttl)
        self.bus = EventBus(self.echo_filter)
        self.table = CorrelationTable(
            self._resend,
            retry_delay=self.config.retry_delay,
            on_retry=self._on_retry,
        )
        self.transport = TransportAdapter(channel)
        self.transport.on_receive(self._on_envelope)

        self.last_error: Observable[str | None] = Observable(None, name="last_error")
        self.is_loading: Observable[bool] = Observable(False, name="is_loading")
        self.retry_count: Observable[int] = Observable(0, name="retry_count")

        self._in_flight = 0
        self._latest_call_id: str | None = None
        self._unsubscribers: list[Callable[[], None]] = [
            self.bus.subscribe(MessageType.SHOW_ERROR, self._on_show_error),
            self.bus.subscribe(MessageType.SHOW_SUCCESS, self._on_show_cleared),
            self.bus.subscribe(MessageType.SHOW_WARNING, self._on_show_cleared),
            self.bus.subscribe(MessageType.SHOW_INFO, self._on_show_cleared),
        ]

    # =========================================================================
    # Public API
    # =========================================================================

    @property
    def in_flight(self) -> int:
        """Number of call() invocations not yet settled."""
        return self._in_flight

    def notify(self, message_type: MessageType | str, payload: Any = None) -> str | None:
        """Send a fire-and-forget message.

        Never raises for transport problems: failures are logged and
        recorded in ``last_error``.

        Returns:
            The correlation ID used for echo suppression, or None if the
            send failed
        """
        message_type = coerce_message_type(message_type)
        envelope = Envelope.create(
            message_type, encode_payload(message_type, payload), new_correlation_id()
        )

        # Record before sending so an immediate reflection is still filtered
        self.echo_filter.record_sent(envelope.correlation_id)
        failure = self.transport.send(envelope)
        if failure is not None:
            self.last_error.set(str(failure))
            return None

        self.last_error.set(None)
        return envelope.correlation_id

    async def call(
        self,
        message_type: MessageType | str,
        payload: Any = None,
        timeout: float | None = None,
        retries: int | None = None,
    ) -> Any:
        """Send a request and wait for the host's response.

        Args:
            message_type: Message kind
            payload: Request payload (validated if the kind has a model)
            timeout: Seconds per attempt (default: per-kind table)
            retries: Re-sends after the first attempt times out (default: 2)

        Returns:
            The response payload

        Raises:
            CallTimeoutError: No response after retries + 1 attempts
            RemoteError: The host answered with an error
            SendFailureError: The request could not be written
        """
        message_type = coerce_message_type(message_type)
        if timeout is None:
            timeout = self.config.timeout_for(message_type)
        if retries is None:
            retries = self.config.default_retries

        correlation_id = new_correlation_id()
        envelope = Envelope.create(
            message_type, encode_payload(message_type, payload), correlation_id
        )

        future = self.table.register(envelope, timeout=timeout, retries=retries)
        future.add_done_callback(_consume_result)

        self._in_flight += 1
        self._latest_call_id = correlation_id
        self.is_loading.set(True)
        self.retry_count.set(0)

        try:
            self.echo_filter.record_sent(correlation_id)
            failure = self.transport.send(envelope)
            if failure is not None:
                self.table.fail(correlation_id, failure)

            result = await asyncio.shield(future)
        except BridgeError as e:
            self.last_error.set(str(e))
            logger.warning(f"{message_type.value} request failed: {e}")
            raise
        else:
            self.last_error.set(None)
            return result
        finally:
            self._in_flight -= 1
            self.is_loading.set(self._in_flight > 0)
            if self._latest_call_id == correlation_id:
                self.retry_count.set(0)

    def subscribe(
        self, type_filter: MessageType | str, handler: EnvelopeHandler
    ) -> Callable[[], None]:
        """Subscribe to inbound events (see EventBus.subscribe)."""
        return self.bus.subscribe(type_filter, handler)

    def clear_error(self) -> None:
        self.last_error.set(None)

    def close(self) -> None:
        """Detach subscriptions and echo timers.

        Pending calls are left to finish their own deadline lifecycle.
        """
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        self.bus.clear()
        self.echo_filter.clear()

    # =========================================================================
    # Internals
    # =========================================================================

    def _on_envelope(self, envelope: Envelope) -> None:
        if self.table.settle_if_pending(envelope):
            return
        self.bus.publish(envelope)

    def _resend(self, envelope: Envelope) -> SendFailureError | None:
        self.echo_filter.record_sent(envelope.correlation_id)
        return self.transport.send(envelope)

    def _on_retry(self, pending: PendingCall) -> None:
        if pending.correlation_id == self._latest_call_id:
            self.retry_count.set(pending.attempts - 1)

    def _on_show_error(self, envelope: Envelope) -> None:
        payload = envelope.payload
        if isinstance(payload, dict):
            message = payload.get("message")
        else:
            message = payload
        self.last_error.set(str(message) if message is not None else "Unknown error")

    def _on_show_cleared(self, envelope: Envelope) -> None:
        self.last_error.set(None)
