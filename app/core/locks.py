"""
Per-aggregate mutation locks.

Mutations of one team, one department's assignments, or the department
tree run one at a time inside this process; reads never take a lock.
"""
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Tuple
from weakref import WeakValueDictionary

from app.utils import get_logger


log = get_logger(__name__)

LockKey = Tuple[str, str]

# Key for operations that read or rewrite parent links across the whole tree
DEPARTMENT_TREE: LockKey = ("department-tree", "*")


class AggregateLocks:
    """
    Registry of asyncio locks keyed by (aggregate kind, id).

    Locks are held weakly, so keys nobody is waiting on are dropped. The
    registry only serializes coroutines of one process.
    """

    def __init__(self):
        self._locks: "WeakValueDictionary[LockKey, asyncio.Lock]" = WeakValueDictionary()

    def get(self, kind: str, key: str) -> asyncio.Lock:
        lock = self._locks.get((kind, key))
        if lock is None:
            lock = asyncio.Lock()
            self._locks[(kind, key)] = lock
        return lock

    @asynccontextmanager
    async def hold(self, kind: str, key: str) -> AsyncIterator[None]:
        lock = self.get(kind, key)
        if lock.locked():
            log.debug(f"Waiting for {kind} lock {key}")
        async with lock:
            yield

    def __len__(self) -> int:
        return len(self._locks)


aggregate_locks = AggregateLocks()
