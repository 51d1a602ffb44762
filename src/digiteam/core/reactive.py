# src/digiteam/core/reactive.py

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[T], None]


class SnapshotCell(Generic[T]):
    """
    Single mutable "latest value" cell with change notification.

    set() swaps the whole value and then notifies observers in registration order.
    Observers never see a partially updated value.
    """

    def __init__(self, initial: T) -> None:
        self._value = initial
        self._version = 0
        self._listeners: list[Listener[T]] = []

    @property
    def value(self) -> T:
        return self._value

    @property
    def version(self) -> int:
        """Number of set() calls so far."""
        return self._version

    def set(self, value: T) -> None:
        self._value = value
        self._version += 1
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception:
                logger.exception("Snapshot listener %r failed", listener)

    def observe(self, listener: Listener[T]) -> Callable[[], None]:
        """Register an observer. Returns an idempotent remover."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def listener_count(self) -> int:
        return len(self._listeners)
