"""
Integration Tests for Cross-Engine Progression
==============================================

Purpose
-------
Drive several engines through one hunter's day and check the ledger-level
invariants that only hold when they cooperate: XP conservation, the
level/XP curve, rank by level, and serialized per-hunter mutation.

Testing Strategy
----------------
- Real ``ServiceContainer`` on SQLite (see ``tests/conftest.py``)
- Assert invariants instead of re-deriving every intermediate number
"""

import asyncio

import pytest

from hunterfit.modules.shared.exceptions import InvalidStateError


async def assign_quests(container, hunter_id, catalog):
    quests = await container.generate_daily_quests(hunter_id, count=4)
    by_quest = {q["quest_id"]: q["assignment_id"] for q in quests}
    return {key: by_quest[qid] for key, qid in catalog.quests.items() if qid in by_quest}


async def play_a_day(container, hunter_id, catalog, clock):
    assignments = await assign_quests(container, hunter_id, catalog)
    await container.update_quest_progress(hunter_id, assignments["pushups"], reps=20)
    clock.advance(minutes=10)
    await container.update_quest_progress(hunter_id, assignments["plank"], duration=180)
    clock.advance(minutes=10)
    await container.update_quest_progress(
        hunter_id, assignments["run"], duration=1200, distance=3.0
    )
    await container.update_streak(hunter_id)

    raid = await container.start_raid(hunter_id, catalog.dungeons["training"])
    await container.update_raid_progress(hunter_id, raid["raid_id"], 60.0)
    clock.advance(minutes=20)
    raid_result = await container.complete_raid(hunter_id, raid["raid_id"])

    owned, _ = await container.unlock(hunter_id, catalog.equipment["kasaka"], reason="raid drop")
    await container.equip(hunter_id, owned.id)
    return raid_result


@pytest.mark.integration
@pytest.mark.database
class TestHunterDay:
    async def test_xp_is_conserved(self, container, hunter, catalog, clock):
        await play_a_day(container, hunter.id, catalog, clock)

        profile = await container.get_profile(hunter.id)
        quest_xp = sum(h["xp_earned"] for h in await container.get_quest_history(hunter.id))
        raid_xp = sum(r["xp_earned"] for r in await container.get_raid_history(hunter.id))
        achievements = await container.get_hunter_achievements(hunter.id)

        assert quest_xp > 0 and raid_xp > 0
        assert profile["total_xp"] == quest_xp + raid_xp + achievements["total_xp_earned"]

    async def test_level_matches_curve(self, container, hunter, catalog, clock):
        await play_a_day(container, hunter.id, catalog, clock)

        profile = await container.get_profile(hunter.id)
        leveling = container.leveling
        consumed = sum(leveling.xp_required_for_level(lvl) for lvl in range(1, profile["level"]))

        assert consumed + profile["current_xp"] == profile["total_xp"]
        assert 0 <= profile["current_xp"] < profile["xp_required"]
        assert profile["rank"] == leveling.rank_for_level(profile["level"]).value

    async def test_level_up_events_form_a_chain(self, container, hunter, catalog, clock, event_bus):
        await play_a_day(container, hunter.id, catalog, clock)

        leveled = event_bus.payloads("hunter.leveled_up")
        profile = await container.get_profile(hunter.id)

        assert leveled[0]["old_level"] == 1
        for previous, current in zip(leveled, leveled[1:]):
            assert current["old_level"] == previous["new_level"]
        assert leveled[-1]["new_level"] == profile["level"]

    async def test_side_effects_land_on_the_hunter(self, container, hunter, catalog, clock):
        raid_result = await play_a_day(container, hunter.id, catalog, clock)

        profile = await container.get_profile(hunter.id)
        achievements = await container.get_hunter_achievements(hunter.id)
        summary = await container.get_daily_quests(hunter.id)

        assert summary["completed"] == 3
        assert profile["total_workouts"] == 3
        assert profile["daily_streak"] == 1
        # One stat point per completed quest, plus Kasaka's +5 strength +2 agility
        assert profile["base_stats"] == {
            "strength": 11,
            "agility": 11,
            "vitality": 10,
            "endurance": 11,
            "total": 43,
        }
        assert profile["effective_stats"]["strength"] == 16
        assert profile["effective_stats"]["agility"] == 13
        assert profile["xp_multiplier"] == pytest.approx(1.1)
        assert raid_result["achievements_unlocked"] == [catalog.achievements["diver"]]
        assert set(achievements["titles"]) == {"Veteran", "Diver"}
        assert await container.get_active_raid(hunter.id) is None

    async def test_events_follow_their_cause(self, container, hunter, catalog, clock, event_bus):
        await play_a_day(container, hunter.id, catalog, clock)

        names = event_bus.names()

        assert names.index("quest.completed") < names.index("achievement.unlocked")
        assert names.index("raid.started") < names.index("raid.completed")
        assert names.index("equipment.unlocked") < names.index("equipment.equipped")


# ============================================================================
# CONCURRENCY
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestSerializedMutation:
    async def test_racing_progress_completes_once(self, container, hunter, catalog):
        assignments = await assign_quests(container, hunter.id, catalog)
        pushups = assignments["pushups"]

        results = await asyncio.gather(
            container.update_quest_progress(hunter.id, pushups, reps=20),
            container.update_quest_progress(hunter.id, pushups, reps=20),
            return_exceptions=True,
        )

        completed = [r for r in results if isinstance(r, dict)]
        rejected = [r for r in results if isinstance(r, InvalidStateError)]
        assert len(completed) == 1 and completed[0]["auto_completed"] is True
        assert len(rejected) == 1
        assert len(await container.get_quest_history(hunter.id)) == 1
        profile = await container.get_profile(hunter.id)
        assert profile["total_workouts"] == 1

    async def test_racing_awards_all_apply(self, container, hunter, catalog):
        await asyncio.gather(*(container.award_xp(hunter.id, 30) for _ in range(10)))

        profile = await container.get_profile(hunter.id)

        assert profile["total_xp"] == 300
        assert (profile["level"], profile["current_xp"]) == (3, 50)

    async def test_hunters_do_not_block_each_other(self, container, hunter, catalog):
        rival = await container.register_hunter("cha_haein")
        dungeon_id = catalog.dungeons["training"]

        raids = await asyncio.gather(
            container.start_raid(hunter.id, dungeon_id),
            container.start_raid(rival.id, dungeon_id),
        )

        assert {r["hunter_id"] for r in raids} == {hunter.id, rival.id}
        assert all(r["status"] == "Started" for r in raids)
