"""
Observable values for UI collaborators.

A minimal subscribe/notify holder. The rendering layer subscribes to the
values it displays (pending flags, errors, product lists) and re-renders when
notified; the core never renders anything itself.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Generic, TypeVar

T = TypeVar("T")

Listener = Callable[[T], None]

logger = logging.getLogger(__name__)


class Observable(Generic[T]):
    """Holds a value and notifies subscribers whenever it changes."""

    def __init__(self, value: T, name: str = "observable") -> None:
        self._value = value
        self._name = name
        self._listeners: list[Listener[T]] = []

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        """Replace the value and notify listeners if it changed."""
        if value is self._value or value == self._value:
            return
        self._value = value
        self._notify()

    def subscribe(self, listener: Listener[T]) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def clear_listeners(self) -> None:
        self._listeners.clear()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._value)
            except Exception:
                # A broken renderer must not break the data layer
                logger.exception(
                    "Observable listener failed", extra={"observable": self._name}
                )

    def __repr__(self) -> str:
        return f"Observable({self._name}={self._value!r})"


class EventNotifier(Generic[T]):
    """Value-less notifier: listeners receive each event, nothing is retained."""

    def __init__(self, name: str = "notifier") -> None:
        self._name = name
        self._listeners: list[Listener[T]] = []

    def subscribe(self, listener: Listener[T]) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def notify(self, event: T) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "Event listener failed", extra={"notifier": self._name}
                )

    def clear_listeners(self) -> None:
        self._listeners.clear()
