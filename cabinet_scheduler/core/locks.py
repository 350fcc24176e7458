"""Per-actor serialization of booking writes."""

import asyncio
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager

ActorKey = tuple[str, int]


class ActorLockRegistry:
    """
    One asyncio lock per actor, created on demand and dropped when unused.

    Keys are always acquired in sorted order so that two bookings sharing a
    doctor and a patient cannot deadlock each other.
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._locks: dict[ActorKey, asyncio.Lock] = {}
        self._holders: dict[ActorKey, int] = {}

    def _checkout(self, key: ActorKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._holders[key] = self._holders.get(key, 0) + 1
        return lock

    def _checkin(self, key: ActorKey) -> None:
        self._holders[key] -= 1
        if self._holders[key] == 0:
            del self._holders[key]
            del self._locks[key]

    @asynccontextmanager
    async def hold(self, keys: Iterable[ActorKey]) -> AsyncIterator[None]:
        """Hold the locks of every given actor for the duration of the block."""
        ordered = sorted(set(keys))
        locks = [self._checkout(key) for key in ordered]
        acquired: list[asyncio.Lock] = []
        try:
            for lock in locks:
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in ordered:
                self._checkin(key)

    def __len__(self) -> int:
        return len(self._locks)


# Process-wide registry
actor_locks = ActorLockRegistry()
