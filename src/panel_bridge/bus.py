"""Event Bus - typed fan-out of inbound envelopes.

Every inbound envelope that is not a response to a pending call is
published here. Features subscribe by message type (or to everything)
without interfering with each other:

- Reflections of our own sends are dropped before fan-out
- Subscribers run in registration order, each isolated from the others
- The subscriber list is snapshotted per publish, so subscribing or
  unsubscribing from inside a handler only affects later envelopes
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .echo import EchoFilter
from .protocol.envelope import Envelope
from .protocol.messages import MessageType

logger = logging.getLogger(__name__)

# Subscribe to every message type
ALL = "*"

# Handlers may be plain functions or coroutine functions
EnvelopeHandler = Callable[[Envelope], None] | Callable[[Envelope], Awaitable[None]]


def _filter_key(type_filter: MessageType | str) -> str:
    if isinstance(type_filter, Enum):
        return str(type_filter.value)
    return type_filter


@dataclass(eq=False)
class Subscription:
    """A (type filter, handler) pair owned by its registrant."""

    key: str
    handler: EnvelopeHandler
    active: bool = True

    def matches(self, envelope: Envelope) -> bool:
        return self.key == ALL or self.key == envelope.type


class EventBus:
    """Pub/sub for inbound envelopes, owned by one orchestrator."""

    def __init__(self, echo_filter: EchoFilter) -> None:
        self._echo_filter = echo_filter
        self._subscriptions: list[Subscription] = []
        self._tasks: set[asyncio.Task[Any]] = set()
        self.published_count = 0
        self.suppressed_count = 0

    def subscribe(
        self, type_filter: MessageType | str, handler: EnvelopeHandler
    ) -> Callable[[], None]:
        """Subscribe to one message type, or to ALL.

        Args:
            type_filter: MessageType, raw type string, or ALL
            handler: Called with each matching envelope

        Returns:
            Unsubscribe function (idempotent, safe inside a handler)
        """
        subscription = Subscription(key=_filter_key(type_filter), handler=handler)
        self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            if not subscription.active:
                return
            subscription.active = False
            # Rebuild rather than mutate: a publish in progress holds its own snapshot
            self._subscriptions = [s for s in self._subscriptions if s is not subscription]

        return unsubscribe

    def publish(self, envelope: Envelope) -> int:
        """Deliver an inbound envelope to all matching subscribers.

        Returns:
            Number of handlers invoked (0 for suppressed echoes)
        """
        if self._echo_filter.is_echo(envelope.correlation_id):
            self.suppressed_count += 1
            logger.debug(
                f"Suppressed echo of {envelope.type} (correlation_id={envelope.correlation_id})"
            )
            return 0

        self.published_count += 1
        matching = [s for s in self._subscriptions if s.matches(envelope)]

        for subscription in matching:
            self._invoke(subscription, envelope)

        if not matching:
            if envelope.is_correlated():
                logger.debug(
                    f"Unmatched correlated {envelope.type} "
                    f"(correlation_id={envelope.correlation_id}), no subscriber"
                )
            else:
                logger.debug(f"No subscriber for {envelope.type}")

        return len(matching)

    def _invoke(self, subscription: Subscription, envelope: Envelope) -> None:
        try:
            result = subscription.handler(envelope)
        except Exception:
            logger.exception(f"Error in subscriber for {envelope.type}")
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(lambda t: self._on_task_done(t, envelope.type))

    def _on_task_done(self, task: asyncio.Task[Any], type_name: str) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Error in async subscriber for {type_name}", exc_info=exc)

    async def stream(self, type_filter: MessageType | str = ALL) -> AsyncIterator[Envelope]:
        """Async iterator over delivered envelopes.

        Usage:
            async for envelope in bus.stream(MessageType.AI_ANALYSIS_PROGRESS):
                render(envelope.typed_payload())
        """
        queue: asyncio.Queue[Envelope] = asyncio.Queue()
        unsubscribe = self.subscribe(type_filter, queue.put_nowait)
        try:
            while True:
                yield await queue.get()
        finally:
            unsubscribe()

    def subscriber_count(self, type_filter: MessageType | str | None = None) -> int:
        if type_filter is None:
            return len(self._subscriptions)
        key = _filter_key(type_filter)
        return sum(1 for s in self._subscriptions if s.key == key)

    def clear(self) -> None:
        """Remove every subscription and cancel outstanding async handlers."""
        for subscription in self._subscriptions:
            subscription.active = False
        self._subscriptions = []
        for task in list(self._tasks):
            task.cancel()
