"""
Reactive state cells.

StateStream holds a current value and notifies subscribers when it changes.
DerivedStream recomputes a selector over another stream. Both support
callback subscriptions and async iteration:

    running = store.select(lambda s: s.get("einladung"))
    sub = running.subscribe(render)
    async for value in running.changes():
        ...
"""

from __future__ import annotations

import asyncio
import operator
from collections.abc import AsyncIterator
from typing import Any, Callable, Generic, TypeVar

from .logging import get_logger

T = TypeVar("T")
U = TypeVar("U")

_logger = get_logger("job_tracker.streams")


class Subscription:
    """Handle returned by subscribe(); call unsubscribe() to stop receiving values."""

    def __init__(self, unsubscribe: Callable[[], None]) -> None:
        self._unsubscribe = unsubscribe
        self.closed = False

    def unsubscribe(self) -> None:
        if not self.closed:
            self.closed = True
            self._unsubscribe()


class StateStream(Generic[T]):
    """A value cell that emits to subscribers on change."""

    def __init__(
        self,
        initial: T,
        *,
        equals: Callable[[Any, Any], bool] = operator.eq,
    ) -> None:
        self._value = initial
        self._equals = equals
        self._subscribers: list[Callable[[T], Any]] = []

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T) -> bool:
        """Replace the value. Returns True if subscribers were notified."""
        if self._equals(self._value, value):
            return False
        self._value = value
        for callback in list(self._subscribers):
            try:
                callback(value)
            except Exception as exc:
                _logger.log_error(exc, "Stream subscriber raised")
        return True

    def subscribe(self, callback: Callable[[T], Any], *, emit_current: bool = True) -> Subscription:
        self._subscribers.append(callback)
        if emit_current:
            callback(self._value)

        def _remove() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return Subscription(_remove)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def select(self, selector: Callable[[T], U]) -> DerivedStream[U]:
        return DerivedStream(self, selector)

    async def changes(self) -> AsyncIterator[T]:
        """Yield the current value, then every subsequent change."""
        queue: asyncio.Queue[T] = asyncio.Queue()
        subscription = self.subscribe(queue.put_nowait)
        try:
            while True:
                yield await queue.get()
        finally:
            subscription.unsubscribe()


class DerivedStream(StateStream[U]):
    """Read-only projection of another stream."""

    def __init__(self, source: StateStream[Any], selector: Callable[[Any], U]) -> None:
        super().__init__(selector(source.value))
        self._selector = selector
        self._source_subscription = source.subscribe(self._on_source, emit_current=False)

    def _on_source(self, value: Any) -> None:
        StateStream.set(self, self._selector(value))

    def set(self, value: U) -> bool:
        raise TypeError("DerivedStream is read-only")

    def close(self) -> None:
        self._source_subscription.unsubscribe()
        self._subscribers.clear()


__all__ = ["Subscription", "StateStream", "DerivedStream"]
