"""
Dungeon Service
===============

Purpose
-------
Raid attempts against dungeon templates: start, progress, resolution, and
the per-dungeon cooldown that follows.

Domain
------
- ``Started -> InProgress -> Completed | Failed``; ``Started | InProgress ->
  Abandoned``. Terminal states are absorbing.
- One live raid per hunter across all dungeons (also enforced by a partial
  unique index)
- Cooldown per dungeon, read from the most recent raid of that dungeon
- Success reward: ``int(base * (1 + level * 0.02) * time_bonus + bonus)``
- Failure keeps 25% of the success reward and the full cooldown;
  abandonment earns nothing and halves the cooldown
- Success-rate estimate is advisory only and uses effective stats
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from hunterfit.core.logging.logger import get_logger
from hunterfit.database.models import DungeonRaid, DungeonTemplate, Hunter, RaidStatus
from hunterfit.domain.models.events import (
    GameEvent,
    RaidAbandoned,
    RaidCompleted,
    RaidFailed,
)
from hunterfit.modules.shared.base_repository import BaseRepository
from hunterfit.modules.shared.base_service import BaseService
from hunterfit.modules.shared.exceptions import InvalidStateError, NotFoundError
from hunterfit.modules.shared.formulas import (
    failed_raid_xp,
    meets_gate,
    raid_time_bonus,
    raid_xp_reward,
    success_rate_estimate,
)
from hunterfit.modules.shared.validators import (
    validate_cooldown,
    validate_gate,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from hunterfit.modules.achievement.achievement_service import AchievementService
    from hunterfit.modules.equipment.equipment_service import EquipmentService
    from hunterfit.modules.hunter.leveling_service import LevelingService


LIVE_STATUSES = [status for status in RaidStatus if status.is_live]
TERMINAL_STATUSES = [status for status in RaidStatus if status.is_terminal]


class RaidRepository(BaseRepository[DungeonRaid]):
    async def find_live(
        self, session: AsyncSession, hunter_id: str, for_update: bool = False
    ) -> Optional[DungeonRaid]:
        return await self.find_one_where(
            session,
            DungeonRaid.hunter_id == hunter_id,
            DungeonRaid.status.in_(LIVE_STATUSES),
            order_by=[DungeonRaid.started_at.desc()],
            for_update=for_update,
        )

    async def find_last_for_dungeon(
        self, session: AsyncSession, hunter_id: str, dungeon_id: int
    ) -> Optional[DungeonRaid]:
        return await self.find_one_where(
            session,
            DungeonRaid.hunter_id == hunter_id,
            DungeonRaid.dungeon_id == dungeon_id,
            DungeonRaid.status.in_(TERMINAL_STATUSES),
            order_by=[DungeonRaid.started_at.desc(), DungeonRaid.id.desc()],
        )


def _raid_dict(raid: DungeonRaid, template: Optional[DungeonTemplate] = None) -> Dict[str, Any]:
    data = {
        "raid_id": raid.id,
        "hunter_id": raid.hunter_id,
        "dungeon_id": raid.dungeon_id,
        "status": raid.status.value,
        "progress": raid.progress,
        "total_duration": raid.total_duration,
        "xp_earned": raid.xp_earned,
        "completion_rate": raid.completion_rate,
        "started_at": raid.started_at,
        "completed_at": raid.completed_at,
        "next_available_at": raid.next_available_at,
    }
    if template is not None:
        data["dungeon_name"] = template.name
    return data


def _template_dict(template: DungeonTemplate) -> Dict[str, Any]:
    return {
        "dungeon_id": template.id,
        "name": template.name,
        "description": template.description,
        "dungeon_type": template.dungeon_type.value,
        "difficulty": template.difficulty.value,
        "min_level": template.min_level,
        "min_rank": template.min_rank.value,
        "energy_cost": template.energy_cost,
        "cooldown_hours": template.cooldown_hours,
        "base_xp": template.base_xp,
        "bonus_xp": template.bonus_xp,
        "estimated_minutes": template.estimated_minutes,
    }


class DungeonService(BaseService):
    """
    Dungeon engine.

    Public Methods
    --------------
    - start_raid() / update_raid_progress() / complete_raid() / abandon_raid()
    - get_available_dungeons() / get_dungeon()
    - get_active_raid() / get_raid_history()
    - estimate_success_rate()
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
        self.templates = BaseRepository[DungeonTemplate](
            DungeonTemplate, get_logger(f"{__name__}.DungeonTemplateRepository")
        )
        self.raids = RaidRepository(DungeonRaid, get_logger(f"{__name__}.RaidRepository"))

    # ========================================================================
    # Helpers
    # ========================================================================

    async def _load_template(self, session: AsyncSession, dungeon_id: int) -> DungeonTemplate:
        template = await self.templates.get(session, dungeon_id)
        if template is None or not template.is_active:
            raise NotFoundError("Dungeon", dungeon_id)
        return template

    async def _load_raid(
        self, session: AsyncSession, hunter_id: str, raid_id: int
    ) -> DungeonRaid:
        raid = await self.raids.find_one_where(
            session,
            DungeonRaid.id == raid_id,
            DungeonRaid.hunter_id == hunter_id,
            for_update=True,
        )
        if raid is None:
            raise NotFoundError("DungeonRaid", raid_id)
        return raid

    @staticmethod
    def _reject_terminal(action: str, raid: DungeonRaid) -> None:
        if raid.status.is_terminal:
            raise InvalidStateError(
                action,
                f"raid already {raid.status.value.lower()}",
                current_state=raid.status.value,
                details={"raid_id": raid.id},
            )

    def _success_rate(self, hunter: Hunter, total_stats: int, template: DungeonTemplate) -> float:
        if not meets_gate(hunter.level, hunter.rank, template.min_level, template.min_rank):
            return 0.0
        cfg = self.get_config("dungeons.success_rate", default={}) or {}
        return success_rate_estimate(
            hunter.level,
            total_stats,
            template.min_level,
            base=float(cfg.get("base", 0.6)),
            level_weight=float(cfg.get("level_weight", 0.2)),
            stat_weight=float(cfg.get("stat_weight", 0.2)),
            stat_scale=float(cfg.get("stat_scale", 2.5)),
            floor=float(cfg.get("floor", 0.10)),
            ceiling=float(cfg.get("ceiling", 0.95)),
        )

    def _resolve(self, raid: DungeonRaid) -> int:
        now = self.clock.now()
        raid.completed_at = now
        raid.total_duration = max(0, int((now - raid.started_at).total_seconds()))
        return raid.total_duration

    # ========================================================================
    # PUBLIC API - Raid Lifecycle
    # ========================================================================

    async def start_raid(self, hunter_id: str, dungeon_id: int) -> Dict[str, Any]:
        """
        Start a raid.

        Raises:
            NotFoundError: unknown hunter or dungeon
            IneligibleAccessError: level/rank gate not met
            InvalidStateError: another raid is live
            CooldownActiveError: this dungeon is still on cooldown
        """
        self.log_operation("start_raid", hunter_id=hunter_id, dungeon_id=dungeon_id)

        async with self.hunter_transaction(hunter_id, "start_raid") as session:
            hunter = await self.leveling.load_hunter_for_update(session, hunter_id)
            template = await self._load_template(session, dungeon_id)

            validate_gate(
                f"Dungeon '{template.name}'",
                hunter.level,
                hunter.rank,
                template.min_level,
                template.min_rank,
            )

            live = await self.raids.find_live(session, hunter_id, for_update=True)
            if live is not None:
                raise InvalidStateError(
                    "start_raid",
                    "another raid is already in progress",
                    current_state=live.status.value,
                    details={"raid_id": live.id, "dungeon_id": live.dungeon_id},
                )

            now = self.clock.now()
            last = await self.raids.find_last_for_dungeon(session, hunter_id, dungeon_id)
            validate_cooldown("start_raid", last.next_available_at if last else None, now)

            raid = self.raids.add(
                session,
                DungeonRaid(
                    hunter_id=hunter_id,
                    dungeon_id=dungeon_id,
                    status=RaidStatus.STARTED,
                    progress=0.0,
                    xp_earned=0,
                    completion_rate=0.0,
                    started_at=now,
                ),
            )
            try:
                await self.raids.flush(session)
            except IntegrityError as e:
                raise InvalidStateError(
                    "start_raid",
                    "another raid is already in progress",
                    details={"dungeon_id": dungeon_id},
                ) from e
            hunter.last_active_at = now

        self.log.info(
            f"Raid started: {template.name}",
            extra={"hunter_id": hunter_id, "raid_id": raid.id, "dungeon_id": dungeon_id},
        )
        await self.emit_event(
            "raid.started",
            {
                "hunter_id": hunter_id,
                "raid_id": raid.id,
                "dungeon_id": dungeon_id,
                "occurred_at": now.isoformat(),
            },
        )
        return _raid_dict(raid, template)

    async def update_raid_progress(
        self, hunter_id: str, raid_id: int, progress: float
    ) -> Dict[str, Any]:
        """
        Record raid progress, clamped to [0, 100]; the first update moves a
        started raid in progress.

        Raises:
            NotFoundError: raid unknown for this hunter
            InvalidStateError: raid already resolved
        """
        async with self.hunter_transaction(hunter_id, "update_raid_progress") as session:
            await self.leveling.load_hunter_for_update(session, hunter_id)
            raid = await self._load_raid(session, hunter_id, raid_id)
            self._reject_terminal("update_raid_progress", raid)

            raid.progress = min(100.0, max(0.0, float(progress)))
            if raid.status == RaidStatus.STARTED:
                raid.status = RaidStatus.IN_PROGRESS

        self.log.debug(
            "Raid progress updated",
            extra={"hunter_id": hunter_id, "raid_id": raid_id, "progress": raid.progress},
        )
        return _raid_dict(raid)

    async def complete_raid(
        self, hunter_id: str, raid_id: int, successful: bool = True
    ) -> Dict[str, Any]:
        """
        Resolve an in-progress raid as completed or failed.

        Raises:
            NotFoundError: raid unknown for this hunter
            InvalidStateError: raid not in progress
        """
        self.log_operation(
            "complete_raid", hunter_id=hunter_id, raid_id=raid_id, successful=successful
        )

        async with self.hunter_transaction(hunter_id, "complete_raid") as session:
            hunter = await self.leveling.load_hunter_for_update(session, hunter_id)
            raid = await self._load_raid(session, hunter_id, raid_id)
            self._reject_terminal("complete_raid", raid)
            if raid.status != RaidStatus.IN_PROGRESS:
                raise InvalidStateError(
                    "complete_raid",
                    "raid has not progressed yet",
                    current_state=raid.status.value,
                    details={"raid_id": raid.id},
                )
            template = await self.templates.get(session, raid.dungeon_id)
            if template is None:
                raise NotFoundError("Dungeon", raid.dungeon_id)

            duration = self._resolve(raid)
            raid.next_available_at = raid.completed_at + timedelta(hours=template.cooldown_hours)

            time_bonus = raid_time_bonus(
                template.estimated_minutes,
                duration,
                float(self.get_config("dungeons.time_bonus_factor", default=0.5)),
            )
            full_reward = raid_xp_reward(
                template.base_xp,
                template.bonus_xp,
                hunter.level,
                time_bonus,
                float(self.get_config("dungeons.level_scaling", default=0.02)),
            )

            events: List[GameEvent] = []
            if successful:
                raid.status = RaidStatus.COMPLETED
                raid.progress = 100.0
                raid.completion_rate = 100.0
                raid.xp_earned = full_reward
                events.append(
                    RaidCompleted(
                        hunter_id=hunter_id,
                        occurred_at=raid.completed_at,
                        raid_id=raid.id,
                        dungeon_id=template.id,
                        xp_earned=raid.xp_earned,
                        total_duration=duration,
                    )
                )
            else:
                raid.status = RaidStatus.FAILED
                raid.completion_rate = raid.progress
                raid.xp_earned = failed_raid_xp(
                    full_reward, float(self.get_config("dungeons.failure_xp_share", default=0.25))
                )
                events.append(
                    RaidFailed(
                        hunter_id=hunter_id,
                        occurred_at=raid.completed_at,
                        raid_id=raid.id,
                        dungeon_id=template.id,
                        xp_earned=raid.xp_earned,
                        completion_rate=raid.completion_rate,
                    )
                )

            award, level_event = self.leveling.apply_xp(
                hunter, raid.xp_earned, source=f"raid:{raid.id}"
            )
            if level_event is not None:
                events.append(level_event)
            hunter.last_active_at = raid.completed_at

            unlocked, extra = await self.achievements.process_events(session, hunter, events)

        self.log.info(
            f"Raid {raid.status.value.lower()}: {template.name}",
            extra={
                "hunter_id": hunter_id,
                "raid_id": raid.id,
                "xp_earned": raid.xp_earned,
                "total_duration": duration,
                "time_bonus": time_bonus,
            },
        )
        await self.publish_events(events + extra)
        return {
            **_raid_dict(raid, template),
            "time_bonus": time_bonus,
            "award": award.to_dict(),
            "achievements_unlocked": [t.id for t in unlocked],
        }

    async def abandon_raid(self, hunter_id: str, raid_id: int) -> Dict[str, Any]:
        """
        Abandon a live raid: no XP, half the cooldown.

        Raises:
            NotFoundError: raid unknown for this hunter
            InvalidStateError: raid already resolved
        """
        self.log_operation("abandon_raid", hunter_id=hunter_id, raid_id=raid_id)

        async with self.hunter_transaction(hunter_id, "abandon_raid") as session:
            hunter = await self.leveling.load_hunter_for_update(session, hunter_id)
            raid = await self._load_raid(session, hunter_id, raid_id)
            self._reject_terminal("abandon_raid", raid)
            template = await self.templates.get(session, raid.dungeon_id)
            if template is None:
                raise NotFoundError("Dungeon", raid.dungeon_id)

            self._resolve(raid)
            factor = float(self.get_config("dungeons.abandon_cooldown_factor", default=0.5))
            raid.status = RaidStatus.ABANDONED
            raid.completion_rate = raid.progress
            raid.xp_earned = 0
            raid.next_available_at = raid.completed_at + timedelta(
                hours=template.cooldown_hours * factor
            )
            hunter.last_active_at = raid.completed_at

            events: List[GameEvent] = [
                RaidAbandoned(
                    hunter_id=hunter_id,
                    occurred_at=raid.completed_at,
                    raid_id=raid.id,
                    dungeon_id=template.id,
                    completion_rate=raid.completion_rate,
                )
            ]
            _, extra = await self.achievements.process_events(session, hunter, events)

        self.log.info(
            f"Raid abandoned: {template.name}",
            extra={"hunter_id": hunter_id, "raid_id": raid.id, "progress": raid.progress},
        )
        await self.publish_events(events + extra)
        return _raid_dict(raid, template)

    # ========================================================================
    # PUBLIC API - Reads
    # ========================================================================

    async def get_dungeon(self, dungeon_id: int) -> Dict[str, Any]:
        async with self.read_session() as session:
            template = await self._load_template(session, dungeon_id)
            exercises = [
                {
                    "exercise_order": exercise.exercise_order,
                    "exercise_name": exercise.exercise_name,
                    "description": exercise.description,
                    "target_reps": exercise.target_reps,
                    "target_sets": exercise.target_sets,
                    "target_duration": exercise.target_duration,
                    "rest_seconds": exercise.rest_seconds,
                }
                for exercise in template.exercises
            ]
        return {**_template_dict(template), "exercises": exercises}

    async def get_available_dungeons(self, hunter_id: str) -> List[Dict[str, Any]]:
        """Active dungeons with eligibility, cooldown and success estimate."""
        now = self.clock.now()
        async with self.read_session() as session:
            hunter = await self.leveling.load_hunter(session, hunter_id)
            stats = await self.equipment.compute_effective_stats(session, hunter)
            live = await self.raids.find_live(session, hunter_id)
            templates = await self.templates.find_many_where(
                session,
                DungeonTemplate.is_active.is_(True),
                order_by=[DungeonTemplate.min_level, DungeonTemplate.id],
            )

            dungeons: List[Dict[str, Any]] = []
            for template in templates:
                last = await self.raids.find_last_for_dungeon(session, hunter_id, template.id)
                available_at = last.next_available_at if last else None
                remaining = (
                    (available_at - now).total_seconds()
                    if available_at is not None and now < available_at
                    else 0.0
                )
                eligible = meets_gate(
                    hunter.level, hunter.rank, template.min_level, template.min_rank
                )
                dungeons.append(
                    {
                        **_template_dict(template),
                        "is_eligible": eligible,
                        "cooldown_remaining_seconds": remaining,
                        "next_available_at": available_at if remaining else None,
                        "can_start": eligible and remaining == 0.0 and live is None,
                        "success_rate": self._success_rate(hunter, stats.total, template),
                    }
                )
        return dungeons

    async def get_active_raid(self, hunter_id: str) -> Optional[Dict[str, Any]]:
        async with self.read_session() as session:
            await self.leveling.load_hunter(session, hunter_id)
            raid = await self.raids.find_live(session, hunter_id)
            if raid is None:
                return None
            template = await self.templates.get(session, raid.dungeon_id)
        return _raid_dict(raid, template)

    async def get_raid_history(
        self, hunter_id: str, limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Resolved raids, most recently resolved first."""
        limit = limit if limit is not None else int(self.get_config("dungeons.history_limit", default=20))
        self.validate_positive_int(limit, "limit")

        async with self.read_session() as session:
            await self.leveling.load_hunter(session, hunter_id)
            raids = await self.raids.find_many_where(
                session,
                DungeonRaid.hunter_id == hunter_id,
                DungeonRaid.status.in_(TERMINAL_STATUSES),
                order_by=[DungeonRaid.completed_at.desc(), DungeonRaid.id.desc()],
                limit=limit,
            )
        return [_raid_dict(raid) for raid in raids]

    async def estimate_success_rate(self, hunter_id: str, dungeon_id: int) -> float:
        """0.0 when the hunter is ineligible; otherwise the clamped estimate."""
        async with self.read_session() as session:
            hunter = await self.leveling.load_hunter(session, hunter_id)
            template = await self._load_template(session, dungeon_id)
            stats = await self.equipment.compute_effective_stats(session, hunter)
        return self._success_rate(hunter, stats.total, template)
