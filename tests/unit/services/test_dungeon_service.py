"""
Service Tests for DungeonService
================================

Test Coverage
-------------
- Raid lifecycle and absorbing terminal states
- One live raid per hunter, including concurrent starts
- Per-dungeon cooldown after completion, failure and abandonment
- Reward math: time bonus, failure share, no XP on abandon
- Level/rank gate and the advisory success estimate
"""

import asyncio
from datetime import timedelta

import pytest

from hunterfit.modules.shared.exceptions import (
    CooldownActiveError,
    IneligibleAccessError,
    InvalidStateError,
    NotFoundError,
)


async def run_training(container, hunter_id, catalog, clock, *, progress=50.0, minutes=15):
    """Start the training raid, report progress and let ``minutes`` pass."""
    raid = await container.start_raid(hunter_id, catalog.dungeons["training"])
    await container.update_raid_progress(hunter_id, raid["raid_id"], progress)
    clock.advance(minutes=minutes)
    return raid["raid_id"]


# ============================================================================
# LIFECYCLE
# ============================================================================


@pytest.mark.service
@pytest.mark.database
class TestRaidLifecycle:
    async def test_start(self, container, hunter, catalog, clock, event_bus):
        raid = await container.start_raid(hunter.id, catalog.dungeons["training"])

        assert raid["status"] == "Started"
        assert raid["progress"] == 0.0
        assert raid["started_at"] == clock.now()
        assert raid["dungeon_name"] == "Training Grounds"
        assert "raid.started" in event_bus.names()

        active = await container.get_active_raid(hunter.id)
        assert active["raid_id"] == raid["raid_id"]

    async def test_first_progress_moves_to_in_progress(self, container, hunter, catalog):
        raid = await container.start_raid(hunter.id, catalog.dungeons["training"])

        updated = await container.update_raid_progress(hunter.id, raid["raid_id"], 35.5)

        assert updated["status"] == "InProgress"
        assert updated["progress"] == 35.5

    @pytest.mark.parametrize("progress,expected", [(-5.0, 0.0), (120.0, 100.0)])
    async def test_progress_is_clamped(self, container, hunter, catalog, progress, expected):
        raid = await container.start_raid(hunter.id, catalog.dungeons["training"])

        updated = await container.update_raid_progress(hunter.id, raid["raid_id"], progress)

        assert updated["status"] == "InProgress"
        assert updated["progress"] == expected

    async def test_cannot_complete_before_progress(self, container, hunter, catalog):
        raid = await container.start_raid(hunter.id, catalog.dungeons["training"])

        with pytest.raises(InvalidStateError, match="has not progressed"):
            await container.complete_raid(hunter.id, raid["raid_id"])

    async def test_successful_completion(self, container, hunter, catalog, clock, event_bus):
        raid_id = await run_training(container, hunter.id, catalog, clock)

        result = await container.complete_raid(hunter.id, raid_id)

        assert result["status"] == "Completed"
        assert result["progress"] == 100.0
        assert result["completion_rate"] == 100.0
        assert result["total_duration"] == 900
        assert result["time_bonus"] == pytest.approx(1.25)
        # int(200 * 1.02 * 1.25 + 50)
        assert result["xp_earned"] == 305
        assert result["achievements_unlocked"] == [catalog.achievements["diver"]]
        assert result["next_available_at"] == clock.now() + timedelta(hours=24)

        profile = await container.get_profile(hunter.id)
        # 305 raid XP reaches level 3 with 55 banked, then +150 from the achievement
        assert (profile["level"], profile["current_xp"], profile["total_xp"]) == (3, 205, 455)
        assert "raid.completed" in event_bus.names()
        assert await container.get_active_raid(hunter.id) is None

    async def test_failure_keeps_a_quarter(self, container, hunter, catalog, clock, event_bus):
        raid_id = await run_training(container, hunter.id, catalog, clock, progress=40.0)

        result = await container.complete_raid(hunter.id, raid_id, successful=False)

        assert result["status"] == "Failed"
        assert result["xp_earned"] == 76
        assert result["completion_rate"] == 40.0
        assert result["achievements_unlocked"] == []
        assert "raid.failed" in event_bus.names()

        profile = await container.get_profile(hunter.id)
        assert profile["total_xp"] == 76

    async def test_abandon_earns_nothing(self, container, hunter, catalog, clock):
        raid = await container.start_raid(hunter.id, catalog.dungeons["training"])
        await container.update_raid_progress(hunter.id, raid["raid_id"], 30.0)

        result = await container.abandon_raid(hunter.id, raid["raid_id"])

        assert result["status"] == "Abandoned"
        assert result["xp_earned"] == 0
        assert result["completion_rate"] == 30.0
        profile = await container.get_profile(hunter.id)
        assert profile["total_xp"] == 0

    async def test_terminal_states_are_absorbing(self, container, hunter, catalog, clock):
        raid_id = await run_training(container, hunter.id, catalog, clock)
        await container.complete_raid(hunter.id, raid_id)

        with pytest.raises(InvalidStateError):
            await container.complete_raid(hunter.id, raid_id)
        with pytest.raises(InvalidStateError):
            await container.abandon_raid(hunter.id, raid_id)
        with pytest.raises(InvalidStateError):
            await container.update_raid_progress(hunter.id, raid_id, 10.0)

    async def test_unknown_raid(self, container, hunter, catalog):
        with pytest.raises(NotFoundError):
            await container.complete_raid(hunter.id, 404)

    async def test_unknown_dungeon(self, container, hunter, catalog):
        with pytest.raises(NotFoundError):
            await container.start_raid(hunter.id, 404)


# ============================================================================
# EXCLUSIVITY & COOLDOWN
# ============================================================================


@pytest.mark.service
@pytest.mark.database
class TestRaidConstraints:
    async def test_one_live_raid(self, container, hunter, catalog):
        await container.start_raid(hunter.id, catalog.dungeons["training"])

        with pytest.raises(InvalidStateError, match="already in progress"):
            await container.start_raid(hunter.id, catalog.dungeons["training"])

    async def test_concurrent_starts_leave_one_live_raid(self, container, hunter, catalog):
        dungeon_id = catalog.dungeons["training"]

        results = await asyncio.gather(
            container.start_raid(hunter.id, dungeon_id),
            container.start_raid(hunter.id, dungeon_id),
            return_exceptions=True,
        )

        started = [r for r in results if isinstance(r, dict)]
        rejected = [r for r in results if isinstance(r, InvalidStateError)]
        assert len(started) == 1
        assert len(rejected) == 1
        active = await container.get_active_raid(hunter.id)
        assert active["raid_id"] == started[0]["raid_id"]

    async def test_cooldown_after_completion(self, container, hunter, catalog, clock):
        raid_id = await run_training(container, hunter.id, catalog, clock)
        await container.complete_raid(hunter.id, raid_id)

        clock.advance(hours=1)
        with pytest.raises(CooldownActiveError) as exc_info:
            await container.start_raid(hunter.id, catalog.dungeons["training"])
        assert exc_info.value.remaining_seconds == pytest.approx(23 * 3600)

        clock.advance(hours=23)
        raid = await container.start_raid(hunter.id, catalog.dungeons["training"])
        assert raid["status"] == "Started"

    async def test_failure_keeps_full_cooldown(self, container, hunter, catalog, clock):
        raid_id = await run_training(container, hunter.id, catalog, clock)
        await container.complete_raid(hunter.id, raid_id, successful=False)

        clock.advance(hours=23)
        with pytest.raises(CooldownActiveError):
            await container.start_raid(hunter.id, catalog.dungeons["training"])

    async def test_abandon_halves_cooldown(self, container, hunter, catalog, clock):
        raid = await container.start_raid(hunter.id, catalog.dungeons["training"])
        await container.abandon_raid(hunter.id, raid["raid_id"])

        clock.advance(hours=11)
        with pytest.raises(CooldownActiveError):
            await container.start_raid(hunter.id, catalog.dungeons["training"])

        clock.advance(hours=1)
        restarted = await container.start_raid(hunter.id, catalog.dungeons["training"])
        assert restarted["status"] == "Started"

    async def test_ineligible_dungeon(self, container, hunter, catalog):
        with pytest.raises(IneligibleAccessError) as exc_info:
            await container.start_raid(hunter.id, catalog.dungeons["iron_gate"])

        assert exc_info.value.required_level == 10
        assert exc_info.value.required_rank == "D"
        assert await container.get_active_raid(hunter.id) is None


# ============================================================================
# READS
# ============================================================================


@pytest.mark.service
@pytest.mark.database
class TestDungeonReads:
    async def test_success_rate(self, container, hunter, catalog):
        training = await container.estimate_success_rate(hunter.id, catalog.dungeons["training"])
        iron_gate = await container.estimate_success_rate(hunter.id, catalog.dungeons["iron_gate"])

        assert training == 0.95
        assert iron_gate == 0.0

    async def test_available_dungeons(self, container, hunter, catalog, clock):
        raid_id = await run_training(container, hunter.id, catalog, clock)
        await container.complete_raid(hunter.id, raid_id)

        dungeons = {d["dungeon_id"]: d for d in await container.get_available_dungeons(hunter.id)}

        training = dungeons[catalog.dungeons["training"]]
        assert training["is_eligible"] is True
        assert training["can_start"] is False
        assert training["cooldown_remaining_seconds"] == pytest.approx(24 * 3600)
        iron_gate = dungeons[catalog.dungeons["iron_gate"]]
        assert iron_gate["is_eligible"] is False
        assert iron_gate["success_rate"] == 0.0

    async def test_live_raid_blocks_every_dungeon(self, container, hunter, catalog):
        await container.start_raid(hunter.id, catalog.dungeons["training"])

        dungeons = await container.get_available_dungeons(hunter.id)

        assert not any(d["can_start"] for d in dungeons)

    async def test_dungeon_detail(self, container, catalog):
        detail = await container.dungeons.get_dungeon(catalog.dungeons["training"])

        assert [e["exercise_name"] for e in detail["exercises"]] == ["Squats", "Burpees"]

    async def test_raid_history_newest_first(self, container, hunter, catalog, clock):
        first = await container.start_raid(hunter.id, catalog.dungeons["training"])
        await container.abandon_raid(hunter.id, first["raid_id"])
        clock.advance(hours=12)
        second_id = await run_training(container, hunter.id, catalog, clock)
        await container.complete_raid(hunter.id, second_id)

        history = await container.get_raid_history(hunter.id)

        assert [r["raid_id"] for r in history] == [second_id, first["raid_id"]]
        assert [r["status"] for r in history] == ["Completed", "Abandoned"]
