"""
Unit tests for the growth scheduler.
"""
import asyncio
import pytest

from fieldquest.services.domain.growth_scheduler import GrowthScheduler


class TestGrowthScheduler:
    """Tests for keyed one-shot timers."""

    @pytest.mark.asyncio
    async def test_callback_fires_after_delay(self):
        scheduler = GrowthScheduler(0.01)
        fired = []

        scheduler.schedule("a", lambda: fired.append("a"))
        assert scheduler.is_pending("a")

        await asyncio.sleep(0.05)

        assert fired == ["a"]
        assert not scheduler.is_pending("a")

    @pytest.mark.asyncio
    async def test_reschedule_replaces_pending(self):
        scheduler = GrowthScheduler(0.01)
        fired = []

        first = scheduler.schedule("a", lambda: fired.append("first"))
        scheduler.schedule("a", lambda: fired.append("second"))

        await asyncio.sleep(0.05)

        assert fired == ["second"]
        assert first.cancelled

    @pytest.mark.asyncio
    async def test_cancel_all(self):
        scheduler = GrowthScheduler(0.01)
        fired = []
        scheduler.schedule("a", lambda: fired.append("a"))
        scheduler.schedule("b", lambda: fired.append("b"))

        assert scheduler.cancel_all() == 2
        await asyncio.sleep(0.05)

        assert fired == []
        assert scheduler.pending_count == 0

    @pytest.mark.asyncio
    async def test_closed_scheduler_refuses_work(self):
        scheduler = GrowthScheduler(0.01)
        scheduler.close()

        with pytest.raises(RuntimeError):
            scheduler.schedule("a", lambda: None)

    def test_requires_running_loop(self):
        scheduler = GrowthScheduler(0.01)

        with pytest.raises(RuntimeError):
            scheduler.schedule("a", lambda: None)

    def test_negative_delay_rejected(self):
        with pytest.raises(ValueError):
            GrowthScheduler(-1)
