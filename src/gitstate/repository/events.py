"""Ordered change-notification fan-out.

Subscribers are called in registration order by a dispatcher task, never
inline from :meth:`EventEmitter.fire`, so a slow subscriber cannot hold up
the code that fired the event. A subscriber that raises is logged and the
remaining subscribers still receive the event.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[T], Any]


class Subscription:
    """Handle returned by :meth:`EventEmitter.subscribe`."""

    def __init__(self, emitter: "EventEmitter[Any]", listener: Listener[Any]) -> None:
        self._emitter = emitter
        self._listener = listener

    def dispose(self) -> None:
        self._emitter._remove(self._listener)


class EventEmitter(Generic[T]):
    """An explicit subscriber list with queued, asynchronous delivery."""

    def __init__(self, name: str = "event") -> None:
        self.name = name
        self._listeners: List[Listener[T]] = []
        self._queue: Optional[asyncio.Queue] = None
        self._task: Optional[asyncio.Task] = None
        self._closed = False

    def __call__(self, listener: Listener[T]) -> Subscription:
        return self.subscribe(listener)

    def subscribe(self, listener: Listener[T]) -> Subscription:
        """Register *listener* (sync or async). Returns a disposable handle."""
        self._listeners.append(listener)
        return Subscription(self, listener)

    def _remove(self, listener: Listener[T]) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def fire(self, payload: T) -> None:
        """Queue *payload* for delivery.

        Outside a running event loop nothing can be delivered, so the payload
        is dropped.
        """
        if self._closed:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("%s: no running event loop, dropping %r", self.name, payload)
            return
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._task is None or self._task.done():
            self._task = loop.create_task(
                self._dispatch(), name=f"gitstate-{self.name}-dispatch"
            )
        self._queue.put_nowait(payload)

    async def flush(self) -> None:
        """Wait until every queued payload has been delivered."""
        if self._queue is not None:
            await self._queue.join()

    async def close(self) -> None:
        """Deliver what is queued, then stop the dispatcher."""
        await self.flush()
        self._closed = True
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._listeners.clear()

    async def _dispatch(self) -> None:
        assert self._queue is not None
        while True:
            payload = await self._queue.get()
            try:
                for listener in list(self._listeners):
                    await self._deliver(listener, payload)
            finally:
                self._queue.task_done()

    async def _deliver(self, listener: Listener[T], payload: T) -> None:
        try:
            result = listener(payload)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("%s listener %r raised", self.name, listener)
