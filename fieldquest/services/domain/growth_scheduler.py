"""
Deferred growth of watered tiles.

Each watered tile gets one pending advance, scheduled on the running
asyncio loop. Scheduling again for the same tile replaces the pending
advance, and everything can be cancelled when the owning session is
torn down.
"""
from dataclasses import dataclass, field
from typing import Callable, Hashable, Optional
import asyncio
import logging

logger = logging.getLogger(__name__)


@dataclass
class ScheduledAdvance:
    """Handle for one pending advance."""
    key: Hashable
    delay: float
    handle: Optional[asyncio.TimerHandle] = None
    fired: bool = False
    cancelled: bool = field(default=False)

    @property
    def pending(self) -> bool:
        return not (self.fired or self.cancelled)

    def cancel(self) -> None:
        if self.pending:
            self.cancelled = True
            if self.handle is not None:
                self.handle.cancel()


class GrowthScheduler:
    """
    Keyed one-shot timers with cancellation.

    Must be used from within a running event loop.
    """

    def __init__(self, delay: float):
        if delay < 0:
            raise ValueError(f"Growth delay must not be negative, got {delay}")
        self.delay = delay
        self._pending: dict[Hashable, ScheduledAdvance] = {}
        self._closed = False

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def is_pending(self, key: Hashable) -> bool:
        return key in self._pending

    def schedule(self, key: Hashable, callback: Callable[[], None]) -> ScheduledAdvance:
        """
        Run ``callback`` once after the delay, replacing any pending
        advance for the same key.

        Raises:
            RuntimeError: If the scheduler was closed or no loop is running
        """
        if self._closed:
            raise RuntimeError("Growth scheduler is closed")
        loop = asyncio.get_running_loop()

        self.cancel(key)
        advance = ScheduledAdvance(key=key, delay=self.delay)
        advance.handle = loop.call_later(self.delay, self._fire, advance, callback)
        self._pending[key] = advance
        logger.debug(f"Scheduled growth for {key} in {self.delay}s")
        return advance

    def _fire(self, advance: ScheduledAdvance, callback: Callable[[], None]) -> None:
        if not advance.pending:
            return
        advance.fired = True
        if self._pending.get(advance.key) is advance:
            del self._pending[advance.key]
        callback()

    def cancel(self, key: Hashable) -> bool:
        """Cancel the pending advance for a key, if any."""
        advance = self._pending.pop(key, None)
        if advance is None:
            return False
        advance.cancel()
        logger.debug(f"Cancelled growth for {key}")
        return True

    def cancel_all(self) -> int:
        """Cancel every pending advance; returns how many were cancelled."""
        advances = list(self._pending.values())
        self._pending.clear()
        for advance in advances:
            advance.cancel()
        return len(advances)

    def close(self) -> None:
        cancelled = self.cancel_all()
        self._closed = True
        if cancelled:
            logger.info(f"Cancelled {cancelled} pending growth advance(s)")
