"""
Unit Tests for EventBus
=======================

Test Coverage
-------------
- Wildcard pattern matching
- Priority ordering across tiers
- Error isolation between listeners
- once-listeners, deduplication, unsubscribe
- Callback signature validation
"""

import asyncio

import pytest

from hunterfit.core.event import EventBus, ListenerPriority, matches


@pytest.mark.unit
class TestMatches:
    @pytest.mark.parametrize(
        "event_name,pattern,expected",
        [
            ("quest.completed", "quest.completed", True),
            ("quest.completed", "quest.*", True),
            ("quest.completed", "*.completed", True),
            ("raid.failed", "*.completed", False),
            ("raid.failed", "*", True),
            ("hunter.leveled_up", "hunter.**", True),
            ("hunter.leveled_up", "quest.*", False),
            ("a.b.c", "a.*.c", True),
            ("a.c", "a.*.c", False),
        ],
    )
    def test_patterns(self, event_name, pattern, expected):
        assert matches(event_name, pattern) is expected


@pytest.mark.unit
class TestEventBus:
    async def test_publish_reaches_exact_and_wildcard_listeners(self):
        bus = EventBus()
        seen = []

        async def exact(payload):
            seen.append(("exact", payload["xp"]))

        def wildcard(payload):
            seen.append(("wildcard", payload["xp"]))

        bus.subscribe("quest.completed", exact)
        bus.subscribe("quest.*", wildcard)

        await bus.publish("quest.completed", {"xp": 66})

        assert sorted(seen) == [("exact", 66), ("wildcard", 66)]

    async def test_priority_tiers_run_in_order(self):
        bus = EventBus()
        order = []

        bus.subscribe("raid.completed", lambda p: order.append("normal"))
        bus.subscribe(
            "raid.completed",
            lambda p: order.append("critical"),
            priority=ListenerPriority.CRITICAL,
            identifier="critical",
        )
        bus.subscribe(
            "raid.completed",
            lambda p: order.append("high"),
            priority=ListenerPriority.HIGH,
            identifier="high",
        )

        await bus.publish("raid.completed", {})

        assert order == ["critical", "high", "normal"]

    async def test_failing_listener_is_isolated(self):
        bus = EventBus()
        delivered = []

        def broken(payload):
            raise RuntimeError("listener exploded")

        bus.subscribe("hunter.leveled_up", broken, identifier="broken")
        bus.subscribe("hunter.leveled_up", delivered.append, identifier="ok")

        results = await bus.publish("hunter.leveled_up", {"new_level": 3})

        assert delivered == [{"new_level": 3}]
        assert None in results
        assert bus.get_metrics_summary()["errors_by_event"] == {"hunter.leveled_up": 1}

    async def test_slow_high_listener_times_out(self):
        bus = EventBus(high_timeout_seconds=0.01)

        async def slow(payload):
            await asyncio.sleep(1)

        bus.subscribe("quest.completed", slow, priority=ListenerPriority.HIGH)

        assert await bus.publish("quest.completed", {}) == [None]
        assert bus.get_metrics_summary()["total_errors"] == 1

    async def test_once_listener_runs_once(self):
        bus = EventBus()
        calls = []
        bus.subscribe("achievement.unlocked", calls.append, once=True)

        await bus.publish("achievement.unlocked", {"n": 1})
        await bus.publish("achievement.unlocked", {"n": 2})

        assert calls == [{"n": 1}]
        assert bus.get_listener_count() == 0

    async def test_low_priority_runs_in_background(self):
        bus = EventBus()
        done = asyncio.Event()

        async def low(payload):
            done.set()

        bus.subscribe("raid.failed", low, priority=ListenerPriority.LOW)

        assert await bus.publish("raid.failed", {}) == []
        await asyncio.wait_for(done.wait(), timeout=1)

    def test_duplicate_identifier_is_ignored(self):
        bus = EventBus()

        def listener(payload):
            pass

        bus.subscribe("quest.started", listener, identifier="same")
        bus.subscribe("quest.started", listener, identifier="same")

        assert bus.get_listener_count("quest.started") == 1

    def test_unsubscribe(self):
        bus = EventBus()

        def listener(payload):
            pass

        listener_id = bus.subscribe("quest.started", listener)

        assert bus.unsubscribe("quest.started", listener_id) is True
        assert bus.unsubscribe("quest.started", listener_id) is False
        assert bus.get_listener_count() == 0

    def test_callback_must_take_one_argument(self):
        bus = EventBus()

        with pytest.raises(ValueError):
            bus.subscribe("quest.started", lambda name, payload: None)

    def test_timeouts_come_from_config(self, mock_config_manager):
        mock_config_manager.get.side_effect = lambda key, default=None: 2.5

        bus = EventBus(mock_config_manager)

        assert bus._critical_timeout == 2.5
        assert bus._high_timeout == 2.5
