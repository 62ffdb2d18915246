"""In-process event outbox connecting the radar engine to its consumers.

Publishers append events and return immediately. Delivery happens in drain(),
driven either by the background worker (run) or directly by tests and jobs.
A handler failure is logged and the event is kept in ``failed`` so it can be
inspected and retried; it never disappears silently.
"""

import asyncio
import logging
from collections import defaultdict, deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

# Topics
DOMAIN_UPDATED = "domain.updated"
RADAR_RECALCULATED = "radar.recalculated"
MERGE_BLOCKED = "governance.merge_blocked"

EventHandler = Callable[["Event"], Awaitable[None]]


@dataclass
class Event:
    """One published message. attempts counts failed deliveries."""

    topic: str
    payload: dict[str, Any]
    published_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    attempts: int = 0
    last_error: str | None = None


class EventBus:
    """Topic-based outbox with explicit delivery and a bounded dead-letter list.

    publish() may be called from any thread; the run() worker is woken through
    its own loop. Failed events are retried by retry_failed() until they reach
    max_attempts, after which they stay in ``failed`` for inspection.
    """

    def __init__(self, max_attempts: int = 5, max_failed: int = 1000) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if max_failed < 1:
            raise ValueError("max_failed must be at least 1")
        self.max_attempts = max_attempts
        self.max_failed = max_failed
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)
        self._pending: deque[Event] = deque()
        self.failed: list[Event] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self._wakeup: asyncio.Event | None = None

    def subscribe(self, topic: str, handler: EventHandler) -> None:
        self._handlers[topic].append(handler)

    def publish(self, topic: str, payload: dict[str, Any]) -> Event:
        """Queue an event for delivery. Never blocks and never runs handlers inline."""
        event = Event(topic=topic, payload=payload)
        self._pending.append(event)
        self._wake()
        return event

    def _wake(self) -> None:
        loop, wakeup = self._loop, self._wakeup
        if loop is None or wakeup is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(wakeup.set)

    async def drain(self) -> int:
        """
        Deliver every pending event, including events published by handlers
        during this drain. Returns the number of events delivered successfully.
        """
        delivered = 0
        while self._pending:
            event = self._pending.popleft()
            if await self._deliver(event):
                delivered += 1
        return delivered

    async def _deliver(self, event: Event) -> bool:
        handlers = list(self._handlers.get(event.topic, ()))
        for handler in handlers:
            try:
                await handler(event)
            except Exception as e:
                event.attempts += 1
                event.last_error = f"{type(e).__name__}: {e}"
                logger.exception(
                    "Event handler failed",
                    extra={
                        "topic": event.topic,
                        "handler": getattr(handler, "__qualname__", repr(handler)),
                        "attempts": event.attempts,
                    },
                )
                self._dead_letter(event)
                return False
        return True

    def _dead_letter(self, event: Event) -> None:
        self.failed.append(event)
        overflow = len(self.failed) - self.max_failed
        if overflow > 0:
            dropped = self.failed[:overflow]
            del self.failed[:overflow]
            for old in dropped:
                logger.warning(
                    "Dropping oldest failed event",
                    extra={"topic": old.topic, "attempts": old.attempts, "last_error": old.last_error},
                )

    def retry_failed(self) -> int:
        """
        Move failed events back to the pending queue. Events that already failed
        max_attempts times stay in ``failed``. Returns how many were re-queued.
        """
        retry = [e for e in self.failed if e.attempts < self.max_attempts]
        self.failed = [e for e in self.failed if e.attempts >= self.max_attempts]
        self._pending.extend(retry)
        if retry:
            self._wake()
        return len(retry)

    def get_status(self) -> dict[str, int]:
        return {"pending": len(self._pending), "failed": len(self.failed)}

    async def run(self, poll_interval: float = 1.0) -> None:
        """Background delivery loop. Cancel the task to stop it."""
        self._wakeup = asyncio.Event()
        self._loop = asyncio.get_running_loop()
        try:
            while True:
                self._wakeup.clear()
                await self.drain()
                try:
                    await asyncio.wait_for(self._wakeup.wait(), timeout=poll_interval)
                except TimeoutError:
                    pass
        finally:
            self._loop = None
            self._wakeup = None
