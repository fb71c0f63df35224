"""Observable value holder for state exposed to UI collaborators."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Watcher = Callable[[T], None]


class Observable(Generic[T]):
    """A value plus change notification.

    Usage:
        loading = Observable(False)
        unwatch = loading.watch(lambda value: print("loading:", value))
        loading.set(True)   # prints "loading: True"
        unwatch()
    """

    def __init__(self, initial: T, name: str = "value") -> None:
        self._value = initial
        self._name = name
        self._watchers: list[Watcher[T]] = []

    @property
    def value(self) -> T:
        return self._value

    def __call__(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        """Update the value, notifying watchers only when it changes."""
        if value == self._value:
            return
        self._value = value
        for watcher in list(self._watchers):
            try:
                watcher(value)
            except Exception:
                logger.exception(f"Error in watcher for {self._name}")

    def watch(self, callback: Watcher[T]) -> Callable[[], None]:
        """Register a change callback.

        Returns:
            Function that removes the callback (safe to call repeatedly)
        """
        self._watchers.append(callback)

        def unwatch() -> None:
            if callback in self._watchers:
                self._watchers.remove(callback)

        return unwatch

    def __repr__(self) -> str:
        return f"Observable({self._name}={self._value!r})"
