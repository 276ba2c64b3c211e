"""
Service Tests for QuestService
==============================

Purpose
-------
Run the quest engine against a real SQLite database through the wired
``ServiceContainer``.

Test Coverage
-------------
- Daily generation: eligibility, idempotence, regeneration
- Progress: max semantics, monotonic progress, auto-start, auto-complete
- Speed bonus: timed completions, untimed same-update completions, estimates
- Completion: reward math, history, stat bonuses, achievement dispatch
- Rejections: completed quests, unmet targets, foreign assignments
"""

import pytest
from sqlalchemy import update

from hunterfit.database.models import QuestAssignment
from hunterfit.modules.shared.exceptions import (
    InvalidStateError,
    NotFoundError,
    ValidationError,
)


async def assign_all(container, hunter_id, catalog):
    """Assign every level-1 eligible quest; returns catalog key -> assignment id."""
    quests = await container.generate_daily_quests(hunter_id, count=4)
    by_quest = {q["quest_id"]: q["assignment_id"] for q in quests}
    return {key: by_quest[qid] for key, qid in catalog.quests.items() if qid in by_quest}


# ============================================================================
# DAILY GENERATION
# ============================================================================


@pytest.mark.service
@pytest.mark.database
class TestDailyGeneration:
    async def test_generates_configured_count(self, container, hunter, catalog):
        quests = await container.generate_daily_quests(hunter.id)

        assert len(quests) == 3
        assert len({q["quest_id"] for q in quests}) == 3
        assert catalog.quests["circuit"] not in {q["quest_id"] for q in quests}
        assert all(q["status"] == "Assigned" and q["progress"] == 0.0 for q in quests)

    async def test_second_call_returns_same_set(self, container, hunter, catalog):
        first = await container.generate_daily_quests(hunter.id)
        second = await container.generate_daily_quests(hunter.id)

        assert [q["assignment_id"] for q in first] == [q["assignment_id"] for q in second]

    async def test_caps_at_eligible_templates(self, container, hunter, catalog):
        quests = await container.generate_daily_quests(hunter.id, count=10)

        assert {q["quest_id"] for q in quests} == {
            catalog.quests[key] for key in ("pushups", "run", "plank", "stretch")
        }

    async def test_regenerate_keeps_completed(self, container, hunter, catalog):
        assignments = await assign_all(container, hunter.id, catalog)
        await container.update_quest_progress(hunter.id, assignments["pushups"], reps=20)

        quests = await container.generate_daily_quests(hunter.id, count=2, regenerate=True)

        assert len(quests) == 2
        kept = [q for q in quests if q["assignment_id"] == assignments["pushups"]]
        assert kept and kept[0]["status"] == "Completed"
        fresh = [q for q in quests if q["assignment_id"] != assignments["pushups"]]
        assert fresh[0]["status"] == "Assigned"
        assert fresh[0]["quest_id"] != catalog.quests["pushups"]

        summary = await container.get_daily_quests(hunter.id)
        assert summary["total"] == 2

    async def test_next_day_gets_a_new_set(self, container, hunter, clock, catalog):
        today = await container.generate_daily_quests(hunter.id)
        clock.advance(days=1)

        tomorrow = await container.generate_daily_quests(hunter.id)

        assert {q["assignment_id"] for q in today}.isdisjoint(
            q["assignment_id"] for q in tomorrow
        )
        assert all(q["quest_date"] == clock.today() for q in tomorrow)

    async def test_get_daily_quests_generates_on_first_read(self, container, hunter, catalog):
        summary = await container.get_daily_quests(hunter.id)

        assert summary["total"] == 3
        assert summary["assigned"] == 3
        assert summary["completed"] == 0
        assert summary["overall_progress"] == 0.0
        assert summary["xp_available"] > 0

    async def test_generation_publishes_event(self, container, hunter, catalog, event_bus):
        await container.generate_daily_quests(hunter.id)

        assert "quests.generated" in event_bus.names()

    async def test_count_must_be_positive(self, container, hunter, catalog):
        with pytest.raises(ValidationError):
            await container.generate_daily_quests(hunter.id, count=0)


# ============================================================================
# PROGRESS
# ============================================================================


@pytest.mark.service
@pytest.mark.database
class TestProgress:
    async def test_overshoot_auto_completes(self, container, hunter, catalog):
        assignments = await assign_all(container, hunter.id, catalog)

        result = await container.update_quest_progress(
            hunter.id, assignments["pushups"], reps=25
        )

        assert result["auto_completed"] is True
        assert result["status"] == "Completed"
        assert result["progress"] == 100.0
        # 50 * (1 + 1 * 0.05), untimed: started and finished by this update
        assert result["bonus_multiplier"] == 1.0
        assert result["xp_earned"] == 52
        assert result["award"]["xp_awarded"] == 52

    async def test_progress_is_monotonic(self, container, hunter, catalog):
        assignments = await assign_all(container, hunter.id, catalog)
        run = assignments["run"]

        first = await container.update_quest_progress(hunter.id, run, duration=600)
        lower = await container.update_quest_progress(hunter.id, run, duration=300)
        more = await container.update_quest_progress(hunter.id, run, distance=3.0)

        assert first["progress"] == 25.0
        assert lower["progress"] == 25.0
        assert lower["current_duration"] == 600
        assert more["progress"] == 75.0
        assert more["auto_completed"] is False

    async def test_first_update_starts_the_quest(self, container, hunter, catalog, clock):
        assignments = await assign_all(container, hunter.id, catalog)

        result = await container.update_quest_progress(hunter.id, assignments["plank"], duration=60)

        assert result["status"] == "InProgress"
        assert result["started_at"] == clock.now()

    async def test_negative_counter_rejected(self, container, hunter, catalog):
        assignments = await assign_all(container, hunter.id, catalog)

        with pytest.raises(ValidationError):
            await container.update_quest_progress(hunter.id, assignments["pushups"], reps=-1)

    async def test_unknown_assignment(self, container, hunter, catalog):
        with pytest.raises(NotFoundError):
            await container.update_quest_progress(hunter.id, 9_999, reps=1)

    async def test_foreign_assignment_is_not_found(self, container, hunter, catalog):
        assignments = await assign_all(container, hunter.id, catalog)
        rival = await container.register_hunter("cha_haein")

        with pytest.raises(NotFoundError):
            await container.update_quest_progress(rival.id, assignments["pushups"], reps=20)


# ============================================================================
# COMPLETION
# ============================================================================


@pytest.mark.service
@pytest.mark.database
class TestCompletion:
    async def test_completion_side_effects(self, container, hunter, catalog, event_bus):
        assignments = await assign_all(container, hunter.id, catalog)

        result = await container.update_quest_progress(hunter.id, assignments["pushups"], reps=20)

        # first_quest unlocks: 52 quest XP + 50 reward crosses level 1
        assert result["achievements_unlocked"] == [catalog.achievements["first_quest"]]
        profile = await container.get_profile(hunter.id)
        assert profile["level"] == 2
        assert profile["current_xp"] == 2
        assert profile["total_xp"] == 102
        assert profile["total_workouts"] == 1
        assert profile["base_stats"]["strength"] == 11

        names = event_bus.names()
        for name in (
            "quest.completed",
            "workout.completed",
            "exercise.completed",
            "achievement.unlocked",
            "hunter.leveled_up",
        ):
            assert name in names
        assert names.index("quest.completed") < names.index("achievement.unlocked")

    async def test_history_is_recorded(self, container, hunter, catalog):
        assignments = await assign_all(container, hunter.id, catalog)
        await container.update_quest_progress(hunter.id, assignments["pushups"], reps=22)

        history = await container.get_quest_history(hunter.id)

        assert len(history) == 1
        entry = history[0]
        assert entry["assignment_id"] == assignments["pushups"]
        assert entry["xp_earned"] == 52
        assert entry["final_reps"] == 22
        assert entry["perfect_execution"] is False

    async def test_history_newest_first(self, container, hunter, catalog, clock):
        assignments = await assign_all(container, hunter.id, catalog)
        await container.update_quest_progress(hunter.id, assignments["pushups"], reps=20)
        clock.advance(minutes=5)
        await container.update_quest_progress(hunter.id, assignments["plank"], duration=180)

        history = await container.get_quest_history(hunter.id, limit=1)

        assert [h["assignment_id"] for h in history] == [assignments["plank"]]

    async def test_perfect_execution_without_speed_bonus(
        self, container, hunter, catalog, clock, database
    ):
        assignments = await assign_all(container, hunter.id, catalog)
        pushups = assignments["pushups"]
        await container.start_quest(hunter.id, pushups)
        clock.advance(minutes=20)
        # Counters recorded out of band; the quest is not completed yet
        async with database.get_transaction() as session:
            await session.execute(
                update(QuestAssignment)
                .where(QuestAssignment.id == pushups)
                .values(current_reps=20)
            )

        result = await container.complete_quest(hunter.id, pushups, perfect_execution=True)

        assert result["bonus_multiplier"] == 1.15
        assert result["xp_earned"] == 60

    async def test_completed_quest_rejects_everything(self, container, hunter, catalog):
        assignments = await assign_all(container, hunter.id, catalog)
        pushups = assignments["pushups"]
        await container.update_quest_progress(hunter.id, pushups, reps=20)

        with pytest.raises(InvalidStateError):
            await container.complete_quest(hunter.id, pushups)
        with pytest.raises(InvalidStateError):
            await container.update_quest_progress(hunter.id, pushups, reps=40)
        with pytest.raises(InvalidStateError):
            await container.start_quest(hunter.id, pushups)

        profile = await container.get_profile(hunter.id)
        assert profile["total_workouts"] == 1

    async def test_unmet_targets_cannot_complete(self, container, hunter, catalog):
        assignments = await assign_all(container, hunter.id, catalog)
        await container.update_quest_progress(hunter.id, assignments["run"], duration=1200)

        with pytest.raises(InvalidStateError, match="targets not yet met"):
            await container.complete_quest(hunter.id, assignments["run"])

        profile = await container.get_profile(hunter.id)
        assert profile["total_xp"] == 0

    async def test_start_twice_rejected(self, container, hunter, catalog):
        assignments = await assign_all(container, hunter.id, catalog)
        await container.start_quest(hunter.id, assignments["stretch"])

        with pytest.raises(InvalidStateError, match="already started"):
            await container.start_quest(hunter.id, assignments["stretch"])

    async def test_summary_after_completion(self, container, hunter, catalog):
        assignments = await assign_all(container, hunter.id, catalog)
        await container.update_quest_progress(hunter.id, assignments["pushups"], reps=20)
        await container.update_quest_progress(hunter.id, assignments["run"], duration=600)

        summary = await container.get_daily_quests(hunter.id)

        assert summary["total"] == 4
        assert summary["completed"] == 1
        assert summary["in_progress"] == 1
        assert summary["assigned"] == 2
        assert summary["xp_earned"] == 52
        assert summary["overall_progress"] == pytest.approx((100 + 25) / 4)


@pytest.mark.service
@pytest.mark.database
class TestAvailableQuests:
    async def test_eligibility_flags(self, container, hunter, catalog):
        quests = await container.get_available_quests(hunter.id)

        flags = {q["quest_id"]: q["is_eligible"] for q in quests}
        assert flags[catalog.quests["pushups"]] is True
        assert flags[catalog.quests["circuit"]] is False

    async def test_scaled_xp_grows_with_level(self, container, hunter, catalog):
        before = {q["quest_id"]: q["scaled_xp"] for q in await container.get_available_quests(hunter.id)}
        await container.award_xp(hunter.id, 250)

        after = {q["quest_id"]: q["scaled_xp"] for q in await container.get_available_quests(hunter.id)}

        run = catalog.quests["run"]
        assert before[run] == 63
        assert after[run] == 69


@pytest.mark.service
@pytest.mark.database
class TestSpeedBonus:
    async def test_fast_timed_completion(self, container, hunter, catalog, clock):
        assignments = await assign_all(container, hunter.id, catalog)
        await container.start_quest(hunter.id, assignments["pushups"])
        clock.advance(minutes=2)

        result = await container.update_quest_progress(hunter.id, assignments["pushups"], reps=20)

        # Reps-only strength quest: one set, three minutes
        assert result["bonus_multiplier"] == 1.25
        assert result["xp_earned"] == 66

    async def test_reps_only_quest_estimate_is_one_set(self, container, hunter, catalog, clock):
        assignments = await assign_all(container, hunter.id, catalog)
        await container.start_quest(hunter.id, assignments["pushups"])
        clock.advance(minutes=6)

        result = await container.update_quest_progress(hunter.id, assignments["pushups"], reps=20)

        assert result["bonus_multiplier"] == 1.0
        assert result["xp_earned"] == 52

    async def test_completion_after_earlier_progress_is_timed(self, container, hunter, catalog):
        assignments = await assign_all(container, hunter.id, catalog)
        await container.update_quest_progress(hunter.id, assignments["pushups"], reps=10)

        result = await container.update_quest_progress(hunter.id, assignments["pushups"], reps=20)

        # Started by the first update, so the second one is timed
        assert result["bonus_multiplier"] == 1.25

    async def test_estimate_reported_on_templates(self, container, hunter, catalog):
        quests = await container.get_available_quests(hunter.id)

        estimates = {q["quest_id"]: q["estimated_minutes"] for q in quests}
        assert estimates[catalog.quests["pushups"]] == 3
        assert estimates[catalog.quests["circuit"]] == 25
