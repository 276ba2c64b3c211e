"""
Leveling Service
================

Purpose
-------
Sole writer of a hunter's XP, level and rank. Other engines award XP only
through ``apply_xp``, which runs inside the caller's transaction so the
state change and its reward commit together.

Domain
------
- XP curve ``floor(xp_base * xp_growth^(level-1))`` (100 and 1.5 by default)
- Level-up loop: a single award may cross several levels
- Rank derived from level through the configured ladder, never set directly
- Negative awards rejected; zero awards are accepted and change nothing

Events
------
``apply_xp`` returns a ``HunterLeveledUp`` event when at least one level was
gained; the caller decides whether it feeds achievements.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from hunterfit.core.config.config import Config
from hunterfit.core.logging.logger import get_logger
from hunterfit.database.models import Hunter, HunterRank
from hunterfit.domain.models.events import HunterLeveledUp
from hunterfit.modules.shared.base_repository import BaseRepository
from hunterfit.modules.shared.base_service import BaseService
from hunterfit.modules.shared.exceptions import NotFoundError, ValidationError
from hunterfit.modules.shared.formulas import (
    DEFAULT_RANK_LADDER,
    XP_BASE,
    XP_GROWTH,
    apply_level_ups,
    level_progress_percentage,
    rank_for_level,
    xp_required_for_level,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


@dataclass(frozen=True)
class AwardResult:
    """Outcome of one XP award."""

    new_level: int
    leveled_up: bool
    new_rank: HunterRank
    old_level: int
    levels_gained: int
    old_rank: HunterRank
    xp_awarded: int
    current_xp: int
    total_xp: int
    source: str

    @property
    def rank_changed(self) -> bool:
        return self.new_rank != self.old_rank

    def to_dict(self) -> Dict[str, Any]:
        return {
            "new_level": self.new_level,
            "leveled_up": self.leveled_up,
            "new_rank": self.new_rank.value,
            "old_level": self.old_level,
            "levels_gained": self.levels_gained,
            "old_rank": self.old_rank.value,
            "rank_changed": self.rank_changed,
            "xp_awarded": self.xp_awarded,
            "current_xp": self.current_xp,
            "total_xp": self.total_xp,
            "source": self.source,
        }


class HunterRepository(BaseRepository[Hunter]):
    pass


class LevelingService(BaseService):
    """
    XP, level and rank rules for the hunter aggregate.

    Public Methods
    --------------
    - xp_required_for_level() -> XP needed to leave a level
    - rank_for_level() -> rank from the configured ladder
    - level_progress() -> percent toward next level
    - load_hunter() / load_hunter_for_update() -> aggregate access for engines
    - apply_xp() -> session-level award used by every engine
    """

    def __init__(self, config_manager, event_bus, logger, clock, guard) -> None:
        super().__init__(config_manager, event_bus, logger, clock, guard)
        self.hunters = HunterRepository(
            model_class=Hunter,
            logger=get_logger(f"{__name__}.HunterRepository"),
        )

    # ========================================================================
    # Curve & Ladder
    # ========================================================================

    @property
    def xp_base(self) -> int:
        return int(self.get_config("leveling.xp_base", default=XP_BASE))

    @property
    def xp_growth(self) -> float:
        return float(self.get_config("leveling.xp_growth", default=XP_GROWTH))

    @property
    def rank_ladder(self) -> Mapping[HunterRank, int]:
        raw = self.get_config("leveling.rank_ladder", default=None)
        if not raw:
            return DEFAULT_RANK_LADDER
        return {HunterRank(key): int(value) for key, value in raw.items()}

    def xp_required_for_level(self, level: int) -> int:
        return xp_required_for_level(level, self.xp_base, self.xp_growth)

    def rank_for_level(self, level: int) -> HunterRank:
        return rank_for_level(level, self.rank_ladder)

    def level_progress(self, hunter: Hunter) -> float:
        return level_progress_percentage(
            hunter.current_xp, hunter.level, self.xp_base, self.xp_growth
        )

    # ========================================================================
    # Aggregate Access
    # ========================================================================

    async def load_hunter(self, session: AsyncSession, hunter_id: str) -> Hunter:
        hunter = await self.hunters.get(session, hunter_id)
        if hunter is None or not hunter.is_active:
            raise NotFoundError("Hunter", hunter_id)
        return hunter

    async def load_hunter_for_update(self, session: AsyncSession, hunter_id: str) -> Hunter:
        """Row-locked hunter; every write operation starts here."""
        hunter = await self.hunters.get_for_update(session, hunter_id)
        if hunter is None or not hunter.is_active:
            raise NotFoundError("Hunter", hunter_id)
        return hunter

    # ========================================================================
    # XP Award
    # ========================================================================

    def apply_xp(
        self, hunter: Hunter, amount: int, source: str
    ) -> tuple[AwardResult, Optional[HunterLeveledUp]]:
        """
        Add ``amount`` XP to a loaded, locked hunter and run the level-up loop.

        Mutates the ORM instance in place; the caller's transaction persists
        it. Returns the award result and a level-up event when levels were
        gained.
        """
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise ValidationError("amount", f"XP amount must be an integer, got {amount!r}")
        if amount < 0:
            raise ValidationError("amount", f"XP amount must be non-negative, got {amount}")

        old_level = hunter.level
        old_rank = hunter.rank

        state = apply_level_ups(
            hunter.level, hunter.current_xp, amount, self.xp_base, self.xp_growth
        )
        hunter.level = state.level
        hunter.current_xp = state.current_xp
        hunter.total_xp += amount
        hunter.rank = self.rank_for_level(state.level)

        if state.levels_gained > Config.MAX_LEVEL_UPS_PER_TRANSACTION:
            self.log.warning(
                "Unusually large level jump in one award",
                extra={
                    "hunter_id": hunter.id,
                    "levels_gained": state.levels_gained,
                    "xp_awarded": amount,
                    "source": source,
                },
            )

        result = AwardResult(
            new_level=hunter.level,
            leveled_up=state.levels_gained > 0,
            new_rank=hunter.rank,
            old_level=old_level,
            levels_gained=state.levels_gained,
            old_rank=old_rank,
            xp_awarded=amount,
            current_xp=hunter.current_xp,
            total_xp=hunter.total_xp,
            source=source,
        )

        if amount:
            self.log.info(
                f"XP awarded: +{amount} XP, {state.levels_gained} levels gained",
                extra={
                    "hunter_id": hunter.id,
                    "source": source,
                    "old_level": old_level,
                    "new_level": hunter.level,
                    "old_rank": old_rank.value,
                    "new_rank": hunter.rank.value,
                    "current_xp": hunter.current_xp,
                    "total_xp": hunter.total_xp,
                },
            )

        event: Optional[HunterLeveledUp] = None
        if result.leveled_up:
            event = HunterLeveledUp(
                hunter_id=hunter.id,
                occurred_at=self.clock.now(),
                old_level=old_level,
                new_level=hunter.level,
                old_rank=old_rank.value,
                new_rank=hunter.rank.value,
                source=source,
            )
        return result, event
