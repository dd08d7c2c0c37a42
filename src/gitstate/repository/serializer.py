"""Per-repository single-writer / multiple-reader operation queue.

Waiters are served in arrival order. Consecutive readers at the head of the
queue are admitted together; a writer is admitted only once every reader
has drained, and any reader that arrives after a queued writer waits
behind it. Cancelling a waiting or running operation always releases its
slot so the queue keeps moving.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from contextlib import asynccontextmanager
from typing import AsyncIterator, Deque, Tuple

logger = logging.getLogger(__name__)


class OperationSerializer:
    """Read/write admission control for one repository root."""

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._readers = 0
        self._writer = False
        self._waiters: Deque[Tuple[bool, asyncio.Future]] = deque()

    @property
    def active_readers(self) -> int:
        return self._readers

    @property
    def writer_active(self) -> bool:
        return self._writer

    @property
    def pending(self) -> int:
        return sum(1 for _, fut in self._waiters if not fut.done())

    @asynccontextmanager
    async def read(self) -> AsyncIterator[None]:
        """Admit a read-only operation."""
        await self._acquire(writer=False)
        try:
            yield
        finally:
            self._release(writer=False)

    @asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        """Admit a mutating operation, exclusive of all others."""
        await self._acquire(writer=True)
        try:
            yield
        finally:
            self._release(writer=True)

    # ---- internals ----

    def _can_admit(self, writer: bool) -> bool:
        if self._writer:
            return False
        return self._readers == 0 if writer else True

    async def _acquire(self, writer: bool) -> None:
        if not self._waiters and self._can_admit(writer):
            self._admit(writer)
            return

        fut = asyncio.get_running_loop().create_future()
        self._waiters.append((writer, fut))
        logger.debug(
            "%s: queued %s (readers=%d, writer=%s)",
            self.name, "write" if writer else "read", self._readers, self._writer,
        )
        try:
            await fut
        except asyncio.CancelledError:
            if fut.done() and not fut.cancelled():
                # admitted just as we were cancelled
                self._release(writer)
            else:
                self._grant()
            raise

    def _admit(self, writer: bool) -> None:
        if writer:
            self._writer = True
        else:
            self._readers += 1

    def _release(self, writer: bool) -> None:
        if writer:
            self._writer = False
        else:
            self._readers -= 1
        self._grant()

    def _grant(self) -> None:
        while self._waiters:
            writer, fut = self._waiters[0]
            if fut.done():
                self._waiters.popleft()
                continue
            if not self._can_admit(writer):
                return
            self._waiters.popleft()
            self._admit(writer)
            fut.set_result(None)
            if writer:
                return
