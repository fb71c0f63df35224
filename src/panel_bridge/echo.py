"""Echo filter: remembers correlation IDs this process sent.

The host may reflect a panel-originated message back over the channel.
If the panel reacted to its own reflected request it could re-issue it
and loop forever, so inbound envelopes whose correlation ID was sent
within the TTL are treated as reflections and dropped.

Records expire after a fixed TTL; IDs are never reused, and the map must
not grow without bound over a long session.
"""

from __future__ import annotations

import asyncio
import logging

logger = logging.getLogger(__name__)

DEFAULT_ECHO_TTL = 60.0


class EchoFilter:
    """Time-bounded registry of sent correlation IDs.

    Purge timers run on the event loop, like every other callback in the
    core, so no locking is needed.
    """

    def __init__(self, ttl: float = DEFAULT_ECHO_TTL) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self.ttl = ttl
        self._sent_at: dict[str, float] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}

    def record_sent(self, correlation_id: str | None) -> None:
        """Record (or refresh) an ID as sent now."""
        if not correlation_id:
            return
        loop = asyncio.get_running_loop()

        old = self._timers.pop(correlation_id, None)
        if old is not None:
            old.cancel()

        self._sent_at[correlation_id] = loop.time()
        self._timers[correlation_id] = loop.call_later(self.ttl, self._expire, correlation_id)

    def is_echo(self, correlation_id: str | None) -> bool:
        """True iff the ID was sent by this process within the TTL."""
        if not correlation_id:
            return False
        sent_at = self._sent_at.get(correlation_id)
        if sent_at is None:
            return False
        if asyncio.get_running_loop().time() - sent_at >= self.ttl:
            # Timer has not fired yet but the record is stale
            self._expire(correlation_id)
            return False
        return True

    def sent_at(self, correlation_id: str) -> float | None:
        return self._sent_at.get(correlation_id)

    def clear(self) -> None:
        """Drop all records and cancel their purge timers."""
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._sent_at.clear()

    def _expire(self, correlation_id: str) -> None:
        self._sent_at.pop(correlation_id, None)
        timer = self._timers.pop(correlation_id, None)
        if timer is not None:
            timer.cancel()
        logger.debug(f"Echo record expired: {correlation_id}")

    def __len__(self) -> int:
        return len(self._sent_at)

    def __contains__(self, correlation_id: object) -> bool:
        return isinstance(correlation_id, str) and self.is_echo(correlation_id)
