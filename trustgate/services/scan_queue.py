"""Bounded-concurrency FIFO admission for scans.

Producers never wait for a slot: submit() appends the request and returns a
future that resolves (or fails) when that request's scan finishes. At most
max_concurrent scans run at once; the rest wait in FIFO order.
"""

import asyncio
import logging
import time
import uuid
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from trustgate.schemas.scan import ScanRequest, ScanResult

logger = logging.getLogger(__name__)

ScanRunner = Callable[[ScanRequest], Awaitable[ScanResult]]


@dataclass
class QueuedScan:
    id: str
    request: ScanRequest
    future: asyncio.Future
    queued_at: float = field(default_factory=time.monotonic)


class ScanQueue:
    """FIFO queue plus an in-flight counter bounded by max_concurrent."""

    def __init__(self, runner: ScanRunner, max_concurrent: int = 5) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._runner = runner
        self.max_concurrent = max_concurrent
        self._queue: deque[QueuedScan] = deque()
        self._processing = 0
        self._tasks: set[asyncio.Task] = set()

    def submit(self, request: ScanRequest) -> asyncio.Future:
        """Append a request and try to start it. Must be called from a running event loop."""
        future = asyncio.get_running_loop().create_future()
        item = QueuedScan(id=f"queue-{uuid.uuid4().hex[:12]}", request=request, future=future)
        self._queue.append(item)
        logger.info(
            "Scan enqueued",
            extra={
                "queue_item_id": item.id,
                "repository_id": request.repository_id,
                "queue_depth": len(self._queue),
                "processing": self._processing,
            },
        )
        self._drain()
        return future

    async def enqueue(self, request: ScanRequest) -> ScanResult:
        """Submit a request and wait for its result. Raises whatever the scan raised."""
        return await self.submit(request)

    def get_status(self) -> dict[str, int]:
        return {
            "queued": len(self._queue),
            "processing": self._processing,
            "max_concurrent": self.max_concurrent,
        }

    def _drain(self) -> None:
        while self._processing < self.max_concurrent and self._queue:
            item = self._queue.popleft()
            self._processing += 1
            task = asyncio.get_running_loop().create_task(self._run(item))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run(self, item: QueuedScan) -> None:
        logger.info(
            "Processing queued scan",
            extra={
                "queue_item_id": item.id,
                "repository_id": item.request.repository_id,
                "waited_seconds": time.monotonic() - item.queued_at,
            },
        )
        try:
            result = await self._runner(item.request)
        except Exception as e:
            if not item.future.done():
                item.future.set_exception(e)
        else:
            if not item.future.done():
                item.future.set_result(result)
        finally:
            # Cancelled runner: waiting callers must not hang.
            if not item.future.done():
                item.future.cancel()
            self._processing -= 1
            self._drain()
