"""
Hunter Service
==============

Purpose
-------
Public operations on the hunter aggregate: registration, profile reads,
direct XP awards, streak upkeep, workout counting and stat bonuses.

Domain
------
- New hunters start at level 1, rank E, every stat at ``hunters.starting_stat``
- Streak upkeep: maintaining increments ``daily_streak`` (once per day) and
  raises ``longest_streak``; breaking resets ``daily_streak`` to 0
- Reaching a configured streak milestone emits ``StreakMilestone``
- XP, level and rank are written only through ``LevelingService.apply_xp``

Every write runs inside ``hunter_transaction`` and feeds its events to the
achievement engine once before commit.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from hunterfit.database.models import Hunter, HunterRank
from hunterfit.domain.models.events import GameEvent, StreakMilestone, WorkoutCompleted
from hunterfit.modules.shared.base_service import BaseService
from hunterfit.modules.shared.exceptions import InvalidStateError, ValidationError
from hunterfit.modules.shared.validators import validate_non_negative

if TYPE_CHECKING:
    from hunterfit.modules.achievement.achievement_service import AchievementService
    from hunterfit.modules.equipment.equipment_service import EquipmentService
    from hunterfit.modules.hunter.leveling_service import AwardResult, LevelingService


class HunterService(BaseService):
    """
    Hunter aggregate operations.

    Public Methods
    --------------
    - register_hunter() -> create a level 1 hunter
    - get_hunter() / get_profile() -> reads
    - award_xp() -> direct XP grant with level-up handling
    - update_streak() -> maintain or break the daily streak
    - record_workout() -> count a workout outside quests
    - apply_stat_bonuses() -> add permanent stat points
    """

    def __init__(
        self,
        config_manager,
        event_bus,
        logger,
        clock,
        guard,
        leveling: LevelingService,
        equipment: EquipmentService,
        achievements: AchievementService,
    ) -> None:
        super().__init__(config_manager, event_bus, logger, clock, guard)
        self.leveling = leveling
        self.equipment = equipment
        self.achievements = achievements

    @property
    def streak_milestones(self) -> List[int]:
        return [int(m) for m in self.get_config("leveling.streak_milestones", default=[7, 30, 100])]

    async def _finish(self, session, hunter: Hunter, events: List[GameEvent]) -> List[GameEvent]:
        _, extra = await self.achievements.process_events(session, hunter, events)
        return events + extra

    # ========================================================================
    # PUBLIC API - Write Operations
    # ========================================================================

    async def register_hunter(self, username: str, hunter_name: Optional[str] = None) -> Hunter:
        """
        Create a hunter at level 1, rank E.

        Raises:
            ValidationError: empty username
            InvalidStateError: username already taken
        """
        username = (username or "").strip()
        if not username:
            raise ValidationError("username", "username must not be empty")
        if len(username) > 50:
            raise ValidationError("username", "username must be at most 50 characters")

        self.log_operation("register_hunter", username=username)
        starting_stat = int(self.get_config("hunters.starting_stat", default=10))
        now = self.clock.now()

        hunter = Hunter(
            username=username,
            hunter_name=hunter_name or username,
            level=1,
            current_xp=0,
            total_xp=0,
            rank=HunterRank.E,
            strength=starting_stat,
            agility=starting_stat,
            vitality=starting_stat,
            endurance=starting_stat,
            daily_streak=0,
            longest_streak=0,
            total_workouts=0,
            is_active=True,
            last_active_at=now,
        )

        async with self.hunter_transaction(username, "register_hunter") as session:
            self.leveling.hunters.add(session, hunter)
            try:
                await self.leveling.hunters.flush(session)
            except IntegrityError as e:
                raise InvalidStateError(
                    "register_hunter",
                    f"username '{username}' is already taken",
                    details={"username": username},
                ) from e

        self.log.info(
            f"Hunter registered: {username}",
            extra={"hunter_id": hunter.id, "username": username},
        )
        await self.emit_event(
            "hunter.registered",
            {"hunter_id": hunter.id, "username": username, "occurred_at": now.isoformat()},
        )
        return hunter

    async def award_xp(self, hunter_id: str, amount: int, source: str = "manual") -> AwardResult:
        """
        Grant XP directly.

        Raises:
            NotFoundError: unknown hunter
            ValidationError: negative amount
        """
        self.log_operation("award_xp", hunter_id=hunter_id, amount=amount, source=source)

        async with self.hunter_transaction(hunter_id, "award_xp") as session:
            hunter = await self.leveling.load_hunter_for_update(session, hunter_id)
            result, level_event = self.leveling.apply_xp(hunter, amount, source)
            hunter.last_active_at = self.clock.now()
            events = await self._finish(session, hunter, [level_event] if level_event else [])

        await self.publish_events(events)
        return result

    async def update_streak(self, hunter_id: str, maintain: bool = True) -> Dict[str, Any]:
        """
        Maintain or break the daily streak.

        Maintaining twice on the same day counts once.
        """
        self.log_operation("update_streak", hunter_id=hunter_id, maintain=maintain)
        today = self.clock.today()

        async with self.hunter_transaction(hunter_id, "update_streak") as session:
            hunter = await self.leveling.load_hunter_for_update(session, hunter_id)
            previous = hunter.daily_streak
            events: List[GameEvent] = []

            if not maintain:
                hunter.daily_streak = 0
            elif hunter.last_streak_date != today:
                hunter.daily_streak += 1
                hunter.longest_streak = max(hunter.longest_streak, hunter.daily_streak)
                hunter.last_streak_date = today
                if hunter.daily_streak in self.streak_milestones:
                    events.append(
                        StreakMilestone(
                            hunter_id=hunter.id,
                            occurred_at=self.clock.now(),
                            streak=hunter.daily_streak,
                        )
                    )
            hunter.last_active_at = self.clock.now()
            events = await self._finish(session, hunter, events)

        if previous != hunter.daily_streak:
            self.log.info(
                "Streak updated",
                extra={
                    "hunter_id": hunter_id,
                    "previous_streak": previous,
                    "daily_streak": hunter.daily_streak,
                    "longest_streak": hunter.longest_streak,
                },
            )
        await self.publish_events(events)
        return {
            "hunter_id": hunter_id,
            "daily_streak": hunter.daily_streak,
            "longest_streak": hunter.longest_streak,
            "milestone_reached": any(isinstance(e, StreakMilestone) for e in events),
        }

    async def record_workout(self, hunter_id: str) -> int:
        """Count a workout done outside the quest engine; returns the new total."""
        self.log_operation("record_workout", hunter_id=hunter_id)

        async with self.hunter_transaction(hunter_id, "record_workout") as session:
            hunter = await self.leveling.load_hunter_for_update(session, hunter_id)
            hunter.total_workouts += 1
            hunter.last_active_at = self.clock.now()
            events = await self._finish(
                session,
                hunter,
                [
                    WorkoutCompleted(
                        hunter_id=hunter.id,
                        occurred_at=self.clock.now(),
                        total_workouts=hunter.total_workouts,
                    )
                ],
            )

        await self.publish_events(events)
        return hunter.total_workouts

    async def apply_stat_bonuses(
        self,
        hunter_id: str,
        strength: int = 0,
        agility: int = 0,
        vitality: int = 0,
        endurance: int = 0,
    ) -> Dict[str, int]:
        for name, value in (
            ("strength", strength),
            ("agility", agility),
            ("vitality", vitality),
            ("endurance", endurance),
        ):
            validate_non_negative(value, name)

        async with self.hunter_transaction(hunter_id, "apply_stat_bonuses") as session:
            hunter = await self.leveling.load_hunter_for_update(session, hunter_id)
            hunter.strength += strength
            hunter.agility += agility
            hunter.vitality += vitality
            hunter.endurance += endurance

        return {
            "strength": hunter.strength,
            "agility": hunter.agility,
            "vitality": hunter.vitality,
            "endurance": hunter.endurance,
        }

    # ========================================================================
    # PUBLIC API - Read Operations
    # ========================================================================

    async def get_hunter(self, hunter_id: str) -> Hunter:
        async with self.read_session() as session:
            return await self.leveling.load_hunter(session, hunter_id)

    async def get_profile(self, hunter_id: str) -> Dict[str, Any]:
        """Hunter state with level progress, effective stats and XP multiplier."""
        async with self.read_session() as session:
            hunter = await self.leveling.load_hunter(session, hunter_id)
            stats = await self.equipment.compute_effective_stats(session, hunter)
            multiplier = await self.equipment.compute_xp_multiplier(session, hunter_id)

        required = self.leveling.xp_required_for_level(hunter.level)
        return {
            "hunter_id": hunter.id,
            "username": hunter.username,
            "hunter_name": hunter.hunter_name,
            "level": hunter.level,
            "rank": hunter.rank.value,
            "rank_title": hunter.rank.display_title,
            "current_xp": hunter.current_xp,
            "total_xp": hunter.total_xp,
            "xp_required": required,
            "xp_to_next_level": required - hunter.current_xp,
            "level_progress": self.leveling.level_progress(hunter),
            "base_stats": {
                "strength": hunter.strength,
                "agility": hunter.agility,
                "vitality": hunter.vitality,
                "endurance": hunter.endurance,
                "total": hunter.total_base_stats,
            },
            "effective_stats": stats.to_dict(),
            "xp_multiplier": multiplier,
            "daily_streak": hunter.daily_streak,
            "longest_streak": hunter.longest_streak,
            "total_workouts": hunter.total_workouts,
            "last_active_at": hunter.last_active_at,
            "created_at": hunter.created_at,
        }
