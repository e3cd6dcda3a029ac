"""User Locks: one asyncio.Lock per user id, created on demand.

Invariants:
    - At most one critical section per user runs at a time
    - Different users never contend
    - A lock is dropped once no task holds or awaits it

Design Decisions:
    - Waiter counting instead of WeakValueDictionary: the entry must survive
      between release and the next waiter's acquire
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class UserLocks:
    def __init__(self):
        self._locks: dict[int, asyncio.Lock] = {}
        self._users: dict[int, int] = {}

    @asynccontextmanager
    async def hold(self, user_id: int) -> AsyncIterator[None]:
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._users[user_id] = self._users.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[user_id] -= 1
            if self._users[user_id] == 0:
                del self._users[user_id]
                del self._locks[user_id]

    def __len__(self) -> int:
        return len(self._locks)
