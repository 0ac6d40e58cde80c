"""
Deduplicating work queue of cluster keys.

Guarantees, per key:
- a key waits in the queue at most once, however often it is added
- a key is never handed to two workers at the same time; a key added
  while being processed is requeued once done() is called for it
"""

import asyncio


class WorkQueue:
    """
    Queue of "namespace/name" keys with per-key serialization.

    Example:
        queue = WorkQueue()
        queue.add("redis/cluster-a")
        key = await queue.get()
        try:
            ...
        finally:
            queue.done(key)
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._queued: set[str] = set()
        self._processing: set[str] = set()
        self._dirty: set[str] = set()
        self._timers: set[asyncio.TimerHandle] = set()
        self._shutting_down = False

    def __len__(self) -> int:
        return len(self._queued)

    def is_processing(self, key: str) -> bool:
        return key in self._processing

    def add(self, key: str) -> None:
        """Queue a key unless it is already waiting."""
        if self._shutting_down or key in self._queued:
            return
        if key in self._processing:
            self._dirty.add(key)
            return
        self._queued.add(key)
        self._queue.put_nowait(key)

    def add_after(self, key: str, delay: float) -> None:
        """Queue a key once delay seconds have passed."""
        if self._shutting_down:
            return
        loop = asyncio.get_running_loop()
        handle: asyncio.TimerHandle

        def fire() -> None:
            self._timers.discard(handle)
            self.add(key)

        handle = loop.call_later(delay, fire)
        self._timers.add(handle)

    async def get(self) -> str:
        """Wait for the next key and mark it as processing."""
        key = await self._queue.get()
        self._queued.discard(key)
        self._processing.add(key)
        return key

    def done(self, key: str) -> None:
        """Mark a key as processed, requeueing it if it was added meanwhile."""
        self._processing.discard(key)
        if key in self._dirty:
            self._dirty.discard(key)
            self.add(key)

    def shutdown(self) -> None:
        """Stop accepting keys and cancel pending delayed adds."""
        self._shutting_down = True
        for handle in self._timers:
            handle.cancel()
        self._timers.clear()
