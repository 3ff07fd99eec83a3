"""Asyncio read/write lock: concurrent readers, exclusive writers."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class AsyncRWLock:
    """Read/write lock built on a single ``asyncio.Condition``.

    Any number of readers may hold the lock together.  A writer waits until
    there are no readers and no other writer.  There is no writer
    preference: readers arriving while a writer waits are still admitted.
    """

    def __init__(self) -> None:
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False

    @property
    def readers(self) -> int:
        return self._readers

    @property
    def locked(self) -> bool:
        return self._writer

    @asynccontextmanager
    async def read_lock(self) -> AsyncIterator[None]:
        async with self._cond:
            await self._cond.wait_for(lambda: not self._writer)
            self._readers += 1
        try:
            yield
        finally:
            # Released before any await so a cancelled waker cannot leak the hold.
            self._readers -= 1
            if self._readers == 0:
                await asyncio.shield(self._wake_waiters())

    @asynccontextmanager
    async def write_lock(self) -> AsyncIterator[None]:
        async with self._cond:
            await self._cond.wait_for(lambda: not self._writer and self._readers == 0)
            self._writer = True
        try:
            yield
        finally:
            self._writer = False
            await asyncio.shield(self._wake_waiters())

    async def _wake_waiters(self) -> None:
        async with self._cond:
            self._cond.notify_all()
