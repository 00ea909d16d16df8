"""Concurrency-bounded downloader over a shared work queue"""

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from registry_mirror.models.registry_item import IndexEntry
from registry_mirror.models.sync_result import FailedItem

logger = logging.getLogger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[int, int], None]


@dataclass
class DownloadResult(Generic[T]):
    """Items processed successfully plus per-entry failures"""

    items: list[T] = field(default_factory=list)
    failures: list[FailedItem] = field(default_factory=list)


class Downloader:
    """Process index entries with at most `concurrency` in flight"""

    def __init__(self, concurrency: int, on_progress: ProgressCallback | None = None):
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self.concurrency = concurrency
        self.on_progress = on_progress
        self._lock = asyncio.Lock()
        self._queue: deque[IndexEntry] = deque()
        self._completed = 0
        self._total = 0

    @property
    def completed(self) -> int:
        """Entries finished so far, successful or not"""
        return self._completed

    @property
    def total(self) -> int:
        return self._total

    async def _next_entry(self) -> IndexEntry | None:
        async with self._lock:
            return self._queue.popleft() if self._queue else None

    async def _mark_done(self) -> None:
        async with self._lock:
            self._completed += 1
            completed = self._completed
        if self.on_progress:
            self.on_progress(completed, self._total)

    async def _worker(
        self,
        process: Callable[[IndexEntry], Awaitable[T]],
        result: DownloadResult[T],
    ) -> None:
        while True:
            entry = await self._next_entry()
            if entry is None:
                return
            try:
                result.items.append(await process(entry))
            except Exception as e:
                logger.warning(f"✗ {entry.name}: {e}")
                result.failures.append(FailedItem(name=entry.name, error=str(e)))
            await self._mark_done()

    async def run(
        self,
        entries: Sequence[IndexEntry],
        process: Callable[[IndexEntry], Awaitable[T]],
    ) -> DownloadResult[T]:
        """
        Run `process` over every entry

        A failing entry is recorded and never stops the other workers.

        Args:
            entries: Entries to process, queued in order
            process: Coroutine function producing one result per entry

        Returns:
            DownloadResult with successes and failures
        """
        result: DownloadResult[T] = DownloadResult()
        async with self._lock:
            self._queue = deque(entries)
            self._completed = 0
            self._total = len(self._queue)

        worker_count = min(self.concurrency, self._total)
        if worker_count == 0:
            return result

        logger.debug(f"Starting {worker_count} workers for {self._total} entries")
        await asyncio.gather(*(self._worker(process, result) for _ in range(worker_count)))
        return result
