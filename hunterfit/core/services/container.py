"""
Service Container
=================

Purpose
-------
Centralized dependency injection container for the engine services.
Provides single instances wired to one clock, one mutation guard and one
event bus, and exposes the public operation set.

Responsibilities
----------------
- Initialize every engine service with its collaborators
- Manage service lifecycle (initialization, shutdown)
- Expose the operation set callers use (award_xp, start_quest, ...)

Non-Responsibilities
--------------------
- Database lifecycle (``DatabaseService``)
- Transport encoding of results or errors

Architecture Notes
------------------
- Constructor pattern for every service: (config_manager, event_bus, logger,
  clock, guard) plus the services it composes
- Leveling has no engine dependencies; achievements depend on leveling;
  equipment on leveling; hunter, quest and dungeon on the rest
"""

from __future__ import annotations

import random
import time
from datetime import date
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

from hunterfit.core.clock import SystemClock
from hunterfit.core.database.guard import HunterMutationGuard
from hunterfit.core.logging.logger import get_logger
from hunterfit.modules.achievement import AchievementService
from hunterfit.modules.dungeon import DungeonService
from hunterfit.modules.equipment import EquipmentService
from hunterfit.modules.hunter import HunterService, LevelingService
from hunterfit.modules.quest import QuestService

if TYPE_CHECKING:
    from logging import Logger

    from hunterfit.core.clock import Clock
    from hunterfit.core.config.manager import ConfigManager
    from hunterfit.core.event.bus import EventBus
    from hunterfit.database.models import AchievementTemplate, Hunter, HunterEquipment
    from hunterfit.domain.models.events import AchievementTrigger
    from hunterfit.modules.equipment import EffectiveStats
    from hunterfit.modules.hunter import AwardResult

EXPECTED_SERVICE_COUNT = 6


class ServiceContainer:
    """
    Dependency injection container for the engine services.

    Usage:
        container = ServiceContainer(ConfigManager, event_bus, logger)
        await container.initialize()

        hunter = await container.register_hunter("jinwoo")
        await container.award_xp(hunter.id, 250, "bonus")
    """

    def __init__(
        self,
        config_manager: type[ConfigManager] | Any,
        event_bus: EventBus,
        logger: Logger,
        *,
        clock: Optional[Clock] = None,
        guard: Optional[HunterMutationGuard] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._config_manager = config_manager
        self._event_bus = event_bus
        self._logger = logger
        self._clock = clock or SystemClock()
        self._guard = guard or HunterMutationGuard()
        self._rng = rng

        self._leveling: Optional[LevelingService] = None
        self._achievements: Optional[AchievementService] = None
        self._equipment: Optional[EquipmentService] = None
        self._hunters: Optional[HunterService] = None
        self._quests: Optional[QuestService] = None
        self._dungeons: Optional[DungeonService] = None

        self._initialized = False

        self._service_init_times: Dict[str, float] = {}
        self._init_start: Optional[float] = None
        self._init_end: Optional[float] = None

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def initialize(self) -> None:
        """Initialize all services; call after ConfigManager and EventBus are ready."""
        if self._initialized:
            self._logger.warning("ServiceContainer already initialized")
            return

        self._init_start = time.perf_counter()
        self._logger.info("Service container initialization starting...")

        try:
            self._leveling = self._create_service("leveling", LevelingService)
            self._achievements = self._create_service(
                "achievements", AchievementService, leveling=self._leveling
            )
            self._equipment = self._create_service(
                "equipment", EquipmentService, leveling=self._leveling
            )
            self._hunters = self._create_service(
                "hunters",
                HunterService,
                leveling=self._leveling,
                equipment=self._equipment,
                achievements=self._achievements,
            )
            self._quests = self._create_service(
                "quests",
                QuestService,
                leveling=self._leveling,
                achievements=self._achievements,
                rng=self._rng,
            )
            self._dungeons = self._create_service(
                "dungeons",
                DungeonService,
                leveling=self._leveling,
                equipment=self._equipment,
                achievements=self._achievements,
            )

            self._init_end = time.perf_counter()
            self._initialized = True

            extra_data: Dict[str, Any] = {
                "total_time_seconds": round(self._init_end - self._init_start, 3),
                "service_count": len(self._service_init_times),
            }
            if self._service_init_times:
                slowest = max(self._service_init_times, key=self._service_init_times.__getitem__)
                extra_data["slowest_service"] = slowest
                extra_data["slowest_duration"] = round(self._service_init_times[slowest], 3)

            self._logger.info("Service container initialized successfully", extra=extra_data)

        except Exception as e:
            self._logger.critical(
                "Service container initialization failed",
                exc_info=True,
                extra={"error": str(e)},
            )
            raise

    def _create_service(self, name: str, cls: type, **collaborators: Any) -> Any:
        start = time.perf_counter()

        try:
            instance = cls(
                config_manager=self._config_manager,
                event_bus=self._event_bus,
                logger=get_logger(f"{cls.__module__}.{cls.__name__}"),
                clock=self._clock,
                guard=self._guard,
                **collaborators,
            )
        except Exception:
            self._logger.error(f"Failed to initialize {name}", exc_info=True)
            raise

        duration = time.perf_counter() - start
        self._service_init_times[name] = duration
        self._logger.debug(f"Initialized {name} in {duration:.3f}s")
        return instance

    async def shutdown(self) -> None:
        if not self._initialized:
            return

        self._logger.info("Shutting down service container...")
        self._initialized = False
        self._logger.info("Service container shut down")

    async def health_check(self) -> Dict[str, bool | float | int | None]:
        return {
            "initialized": self._initialized,
            "service_count": len(self._service_init_times),
            "total_init_time_seconds": (
                round(self._init_end - self._init_start, 3)
                if self._init_start and self._init_end
                else None
            ),
            "all_services_available": self._initialized
            and len(self._service_init_times) == EXPECTED_SERVICE_COUNT,
            "tracked_hunters": self._guard.tracked_hunters,
        }

    def _require(self, service: Any) -> Any:
        if not self._initialized or service is None:
            raise RuntimeError("ServiceContainer not initialized. Call initialize() first.")
        return service

    # ========================================================================
    # Services
    # ========================================================================

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def leveling(self) -> LevelingService:
        return self._require(self._leveling)

    @property
    def achievements(self) -> AchievementService:
        return self._require(self._achievements)

    @property
    def equipment(self) -> EquipmentService:
        return self._require(self._equipment)

    @property
    def hunters(self) -> HunterService:
        return self._require(self._hunters)

    @property
    def quests(self) -> QuestService:
        return self._require(self._quests)

    @property
    def dungeons(self) -> DungeonService:
        return self._require(self._dungeons)

    # ========================================================================
    # Operations - Hunter
    # ========================================================================

    async def register_hunter(self, username: str, hunter_name: Optional[str] = None) -> Hunter:
        return await self.hunters.register_hunter(username, hunter_name)

    async def award_xp(self, hunter_id: str, amount: int, source: str = "manual") -> AwardResult:
        return await self.hunters.award_xp(hunter_id, amount, source)

    async def update_streak(self, hunter_id: str, maintain: bool = True) -> Dict[str, Any]:
        return await self.hunters.update_streak(hunter_id, maintain)

    async def record_workout(self, hunter_id: str) -> int:
        return await self.hunters.record_workout(hunter_id)

    async def get_profile(self, hunter_id: str) -> Dict[str, Any]:
        return await self.hunters.get_profile(hunter_id)

    # ========================================================================
    # Operations - Quests
    # ========================================================================

    async def generate_daily_quests(
        self,
        hunter_id: str,
        quest_date: Optional[date] = None,
        count: Optional[int] = None,
        regenerate: bool = False,
    ) -> List[Dict[str, Any]]:
        return await self.quests.generate_daily_quests(hunter_id, quest_date, count, regenerate)

    async def get_daily_quests(
        self, hunter_id: str, quest_date: Optional[date] = None
    ) -> Dict[str, Any]:
        return await self.quests.get_daily_quests(hunter_id, quest_date)

    async def start_quest(self, hunter_id: str, assignment_id: int) -> Dict[str, Any]:
        return await self.quests.start_quest(hunter_id, assignment_id)

    async def update_quest_progress(
        self,
        hunter_id: str,
        assignment_id: int,
        reps: Optional[int] = None,
        sets: Optional[int] = None,
        duration: Optional[int] = None,
        distance: Optional[float] = None,
    ) -> Dict[str, Any]:
        return await self.quests.update_progress(
            hunter_id, assignment_id, reps=reps, sets=sets, duration=duration, distance=distance
        )

    async def complete_quest(
        self, hunter_id: str, assignment_id: int, perfect_execution: bool = False
    ) -> Dict[str, Any]:
        return await self.quests.complete_quest(hunter_id, assignment_id, perfect_execution)

    async def get_quest_history(
        self, hunter_id: str, limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        return await self.quests.get_quest_history(hunter_id, limit)

    async def get_available_quests(self, hunter_id: str) -> List[Dict[str, Any]]:
        return await self.quests.get_available_quests(hunter_id)

    # ========================================================================
    # Operations - Dungeons
    # ========================================================================

    async def start_raid(self, hunter_id: str, dungeon_id: int) -> Dict[str, Any]:
        return await self.dungeons.start_raid(hunter_id, dungeon_id)

    async def update_raid_progress(
        self, hunter_id: str, raid_id: int, progress: float
    ) -> Dict[str, Any]:
        return await self.dungeons.update_raid_progress(hunter_id, raid_id, progress)

    async def complete_raid(
        self, hunter_id: str, raid_id: int, successful: bool = True
    ) -> Dict[str, Any]:
        return await self.dungeons.complete_raid(hunter_id, raid_id, successful)

    async def abandon_raid(self, hunter_id: str, raid_id: int) -> Dict[str, Any]:
        return await self.dungeons.abandon_raid(hunter_id, raid_id)

    async def get_available_dungeons(self, hunter_id: str) -> List[Dict[str, Any]]:
        return await self.dungeons.get_available_dungeons(hunter_id)

    async def get_active_raid(self, hunter_id: str) -> Optional[Dict[str, Any]]:
        return await self.dungeons.get_active_raid(hunter_id)

    async def get_raid_history(
        self, hunter_id: str, limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        return await self.dungeons.get_raid_history(hunter_id, limit)

    async def estimate_success_rate(self, hunter_id: str, dungeon_id: int) -> float:
        return await self.dungeons.estimate_success_rate(hunter_id, dungeon_id)

    # ========================================================================
    # Operations - Equipment
    # ========================================================================

    async def equip(self, hunter_id: str, hunter_equipment_id: int) -> Dict[str, Any]:
        return await self.equipment.equip(hunter_id, hunter_equipment_id)

    async def unequip(self, hunter_id: str, hunter_equipment_id: int) -> Dict[str, Any]:
        return await self.equipment.unequip(hunter_id, hunter_equipment_id)

    async def unlock(
        self, hunter_id: str, equipment_id: int, reason: Optional[str] = None
    ) -> tuple[HunterEquipment, bool]:
        return await self.equipment.unlock(hunter_id, equipment_id, reason)

    async def get_inventory(self, hunter_id: str) -> Dict[str, Any]:
        return await self.equipment.get_inventory(hunter_id)

    async def effective_stats(self, hunter_id: str) -> EffectiveStats:
        return await self.equipment.effective_stats(hunter_id)

    # ========================================================================
    # Operations - Achievements
    # ========================================================================

    async def record_achievement_event(
        self,
        hunter_id: str,
        event_type: Union[str, AchievementTrigger],
        increment: int = 1,
    ) -> List[AchievementTemplate]:
        return await self.achievements.record_event(hunter_id, event_type, increment)

    async def unlock_achievement(self, hunter_id: str, achievement_id: int) -> Dict[str, Any]:
        return await self.achievements.unlock_achievement(hunter_id, achievement_id)

    async def get_hunter_achievements(self, hunter_id: str) -> Dict[str, Any]:
        return await self.achievements.get_hunter_achievements(hunter_id)

    async def get_achievement_stats(self, hunter_id: str) -> Dict[str, Any]:
        return await self.achievements.get_achievement_stats(hunter_id)
