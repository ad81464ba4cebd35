"""De-duplicating work queue that serialises work per key."""

import asyncio
from typing import Hashable


class WorkQueue:
    """
    Queue of resource keys waiting for reconciliation.

    A key is queued at most once. A key added while it is being processed is
    held back and queued again when processing finishes, so one key is never
    reconciled by two workers at the same time.
    """

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._dirty: set[Hashable] = set()
        self._processing: set[Hashable] = set()

    def add(self, key: Hashable) -> None:
        """Mark ``key`` as needing reconciliation."""
        if key in self._dirty:
            return
        self._dirty.add(key)
        if key in self._processing:
            return
        self._queue.put_nowait(key)

    async def get(self) -> Hashable:
        """Wait for the next key and mark it as processing."""
        key = await self._queue.get()
        self._processing.add(key)
        self._dirty.discard(key)
        return key

    def done(self, key: Hashable) -> None:
        """Finish processing ``key``, re-queueing it if it was added meanwhile."""
        self._processing.discard(key)
        if key in self._dirty:
            self._queue.put_nowait(key)

    def __len__(self) -> int:
        return self._queue.qsize()
