"""
Unit Tests for the Mutation Guard and Clocks
============================================
"""

import asyncio
from datetime import date, datetime, timedelta, timezone

import pytest

from hunterfit.core.clock import FixedClock, SystemClock
from hunterfit.core.database import HunterMutationGuard


@pytest.mark.unit
class TestHunterMutationGuard:
    async def test_same_hunter_is_serialized(self):
        guard = HunterMutationGuard()
        timeline = []

        async def mutate(tag):
            async with guard.acquire("hunter-1"):
                timeline.append(f"{tag}:enter")
                await asyncio.sleep(0.01)
                timeline.append(f"{tag}:exit")

        await asyncio.gather(mutate("a"), mutate("b"))

        assert timeline in (
            ["a:enter", "a:exit", "b:enter", "b:exit"],
            ["b:enter", "b:exit", "a:enter", "a:exit"],
        )

    async def test_different_hunters_do_not_contend(self):
        guard = HunterMutationGuard()
        inside = asyncio.Event()

        async def hold_first():
            async with guard.acquire("hunter-1"):
                inside.set()
                await asyncio.sleep(0.05)

        async def enter_second():
            await inside.wait()
            async with guard.acquire("hunter-2"):
                return guard.is_locked("hunter-1")

        _, first_still_locked = await asyncio.gather(hold_first(), enter_second())

        assert first_still_locked is True

    async def test_state_is_dropped_after_release(self):
        guard = HunterMutationGuard()

        async with guard.acquire("hunter-1"):
            assert guard.tracked_hunters == 1
            assert guard.is_locked("hunter-1")

        assert guard.tracked_hunters == 0
        assert not guard.is_locked("hunter-1")

    async def test_released_when_body_raises(self):
        guard = HunterMutationGuard()

        with pytest.raises(RuntimeError):
            async with guard.acquire("hunter-1"):
                raise RuntimeError("boom")

        assert guard.tracked_hunters == 0


@pytest.mark.unit
class TestClocks:
    def test_fixed_clock_advances(self):
        start = datetime(2026, 3, 2, 23, 30, tzinfo=timezone.utc)
        clock = FixedClock(start)

        clock.advance(hours=1)

        assert clock.now() == start + timedelta(hours=1)
        assert clock.today() == date(2026, 3, 3)

    def test_fixed_clock_normalizes_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        clock = FixedClock(datetime(2026, 3, 2, 10, 0, tzinfo=plus_two))

        assert clock.now() == datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)
        assert clock.now().tzinfo == timezone.utc

    def test_fixed_clock_rejects_naive(self):
        with pytest.raises(ValueError):
            FixedClock(datetime(2026, 3, 2))

        clock = FixedClock(datetime(2026, 3, 2, tzinfo=timezone.utc))
        with pytest.raises(ValueError):
            clock.set(datetime(2026, 3, 3))

    def test_system_clock_is_aware(self):
        assert SystemClock().now().tzinfo is not None
