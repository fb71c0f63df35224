"""Correlation table: request/response on top of a one-way channel.

Each outstanding call() is a PendingCall keyed by its correlation ID.
The table owns the per-call timeout/retry state machine:

    ARMED ──deadline, retries left──▶ RETRY ──re-send──▶ ARMED
      │                                 │
      ├──deadline, no retries──▶ SETTLED(CallTimeoutError)
      ├──response with error───▶ SETTLED(RemoteError)
      └──response──────────────▶ SETTLED(result)

A response arriving during RETRY settles the call as well. SETTLED is
terminal. Deadlines are loop timers, so they are processed on the same
thread of control as inbound envelopes and never race with them.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import BridgeError, CallTimeoutError, RemoteError, SendFailureError
from .protocol.envelope import Envelope

logger = logging.getLogger(__name__)

Resend = Callable[[Envelope], SendFailureError | None]
PendingCallback = Callable[["PendingCall"], None]


class CallState(str, Enum):
    """Pending call state machine."""

    ARMED = "armed"
    RETRY = "retry"
    SETTLED = "settled"


@dataclass(eq=False)
class PendingCall:
    """An outstanding call awaiting settlement."""

    correlation_id: str
    envelope: Envelope  # as last sent
    timeout: float
    retries_remaining: int
    future: asyncio.Future[Any]
    deadline_at: float
    attempts: int = 1
    state: CallState = CallState.ARMED
    sent_timestamps: set[str | float] = field(default_factory=set)
    _timer: asyncio.TimerHandle | None = field(default=None, repr=False)

    @property
    def type_name(self) -> str:
        return self.envelope.type

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


def _is_reflection(inbound: Envelope, pending: PendingCall) -> bool:
    """True if ``inbound`` is one of our own attempts coming back, not a reply.

    Only an envelope stamped with the timestamp of an attempt we sent can be
    a reflection. Replies without a timestamp always settle.
    """
    if "timestamp" not in inbound.model_fields_set:
        return False
    if inbound.timestamp not in pending.sent_timestamps:
        return False
    received = inbound.to_wire()
    original = pending.envelope.to_wire()
    received.pop("timestamp", None)
    original.pop("timestamp", None)
    return received == original


class CorrelationTable:
    """Registry of pending calls, exclusively owned by one orchestrator.

    Args:
        resend: Writes a retry envelope (and records its echo); returns a
            SendFailureError if the write was dropped
        retry_delay: Fixed pause between a deadline and the re-send
        on_retry: Called after each re-send is armed
        on_settled: Called once when a call leaves the table
    """

    def __init__(
        self,
        resend: Resend,
        *,
        retry_delay: float = 0.0,
        on_retry: PendingCallback | None = None,
        on_settled: PendingCallback | None = None,
    ) -> None:
        self._resend = resend
        self._retry_delay = retry_delay
        self._on_retry = on_retry
        self._on_settled = on_settled
        self._pending: dict[str, PendingCall] = {}

    def register(self, envelope: Envelope, timeout: float, retries: int) -> asyncio.Future[Any]:
        """Track a call and arm its first deadline.

        Returns:
            Future that settles exactly once with the result or a BridgeError

        Raises:
            ValueError: If the envelope has no correlation ID, the ID is
                already tracked, or timeout/retries are out of range
        """
        correlation_id = envelope.correlation_id
        if not correlation_id:
            raise ValueError("Cannot register a call without a correlation ID")
        if correlation_id in self._pending:
            raise ValueError(f"Correlation ID already pending: {correlation_id}")
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        if retries < 0:
            raise ValueError("retries cannot be negative")

        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()
        pending = PendingCall(
            correlation_id=correlation_id,
            envelope=envelope,
            timeout=timeout,
            retries_remaining=retries,
            future=future,
            deadline_at=loop.time() + timeout,
        )
        if envelope.timestamp is not None:
            pending.sent_timestamps.add(envelope.timestamp)
        pending._timer = loop.call_later(timeout, self._on_deadline, correlation_id)
        self._pending[correlation_id] = pending
        logger.debug(f"Registered {envelope.type} call {correlation_id} (timeout={timeout}s)")
        return future

    def settle_if_pending(self, envelope: Envelope) -> bool:
        """Settle the pending call this envelope answers, if any.

        Returns:
            True if the envelope was consumed as a response
        """
        correlation_id = envelope.correlation_id
        if not correlation_id:
            return False
        pending = self._pending.get(correlation_id)
        if pending is None:
            return False

        if _is_reflection(envelope, pending):
            logger.debug(f"Ignoring reflected request {correlation_id}")
            return False

        if envelope.has_error():
            self._settle(pending, error=RemoteError.from_field(envelope.error))
        else:
            self._settle(pending, result=envelope.response_value())
        return True

    def fail(self, correlation_id: str, error: BridgeError) -> bool:
        """Settle a pending call as failed right away.

        Returns:
            True if the call was pending
        """
        pending = self._pending.get(correlation_id)
        if pending is None:
            return False
        self._settle(pending, error=error)
        return True

    def _on_deadline(self, correlation_id: str) -> None:
        pending = self._pending.get(correlation_id)
        if pending is None or pending.state != CallState.ARMED:
            return
        pending._timer = None

        if pending.retries_remaining > 0:
            pending.state = CallState.RETRY
            if self._retry_delay > 0:
                loop = asyncio.get_running_loop()
                pending._timer = loop.call_later(self._retry_delay, self._retry, correlation_id)
            else:
                self._retry(correlation_id)
            return

        logger.warning(
            f"{pending.type_name} request {correlation_id} timed out "
            f"after {pending.attempts} attempt(s) of {pending.timeout}s"
        )
        self._settle(
            pending,
            error=CallTimeoutError(pending.type_name, pending.timeout, pending.attempts),
        )

    def _retry(self, correlation_id: str) -> None:
        pending = self._pending.get(correlation_id)
        if pending is None or pending.state != CallState.RETRY:
            return
        pending._timer = None

        loop = asyncio.get_running_loop()
        pending.retries_remaining -= 1
        pending.attempts += 1
        pending.envelope = pending.envelope.with_fresh_timestamp()
        if pending.envelope.timestamp is not None:
            pending.sent_timestamps.add(pending.envelope.timestamp)
        pending.state = CallState.ARMED
        pending.deadline_at = loop.time() + pending.timeout
        pending._timer = loop.call_later(pending.timeout, self._on_deadline, correlation_id)

        logger.info(
            f"Retry attempt {pending.attempts - 1} for {pending.type_name} "
            f"request {correlation_id} ({pending.retries_remaining} left)"
        )
        if self._on_retry:
            self._on_retry(pending)

        failure = self._resend(pending.envelope)
        if failure is not None:
            self._settle(pending, error=failure)

    def _settle(
        self,
        pending: PendingCall,
        *,
        result: Any = None,
        error: BaseException | None = None,
    ) -> None:
        self._pending.pop(pending.correlation_id, None)
        pending.state = CallState.SETTLED
        pending._cancel_timer()

        if pending.future.done():
            # Caller abandoned the call; the lifecycle still ran to completion
            logger.debug(f"Call {pending.correlation_id} settled after being abandoned")
        elif error is not None:
            pending.future.set_exception(error)
        else:
            pending.future.set_result(result)

        if self._on_settled:
            self._on_settled(pending)

    def get(self, correlation_id: str) -> PendingCall | None:
        return self._pending.get(correlation_id)

    def pending_ids(self) -> list[str]:
        return list(self._pending)

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, correlation_id: object) -> bool:
        return correlation_id in self._pending
