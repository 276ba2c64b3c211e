"""
Achievement Service
===================

Purpose
-------
Turns gameplay events into achievement progress, unlocks and rewards.

Domain
------
- Each trigger maps to candidate template categories
- Counter/Progressive: ``progress = max(progress, progress + increment)``
- Streak: ``progress = max(progress, hunter.daily_streak)``; only streak-type
  triggers touch these
- Single: unlocks on the first matching event
- A template fed by several events of one operation advances once, by the
  increment of the first matching event. Operations emit their cause first
  (quest, raid) and follow-on level-ups last, so a quest that gains three
  levels still counts as one quest
- Unlock is one-way and awards ``xp_reward`` exactly once through leveling

Design Notes
------------
``process_events`` is called once per originating operation with every event
it produced, inside that operation's transaction. Reward XP may level the
hunter; the resulting level-up is returned for publication but never fed
back into achievement processing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from hunterfit.core.logging.logger import get_logger
from hunterfit.database.models import (
    AchievementCategory,
    AchievementTemplate,
    AchievementType,
    Hunter,
    HunterAchievement,
)
from hunterfit.domain.models.events import AchievementTrigger, AchievementUnlocked, GameEvent
from hunterfit.modules.shared.base_repository import BaseRepository
from hunterfit.modules.shared.base_service import BaseService
from hunterfit.modules.shared.exceptions import NotFoundError, ValidationError
from hunterfit.modules.shared.formulas import achievement_progress_percentage

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from hunterfit.modules.hunter.leveling_service import LevelingService


TRIGGER_CATEGORIES: Dict[str, Tuple[AchievementCategory, ...]] = {
    AchievementTrigger.QUEST_COMPLETED.value: (
        AchievementCategory.CONSISTENCY,
        AchievementCategory.MILESTONE,
    ),
    AchievementTrigger.WORKOUT_COMPLETED.value: (
        AchievementCategory.CONSISTENCY,
        AchievementCategory.MILESTONE,
    ),
    AchievementTrigger.STRENGTH_EXERCISE_COMPLETED.value: (AchievementCategory.STRENGTH,),
    AchievementTrigger.CARDIO_EXERCISE_COMPLETED.value: (AchievementCategory.ENDURANCE,),
    AchievementTrigger.ENDURANCE_EXERCISE_COMPLETED.value: (AchievementCategory.ENDURANCE,),
    AchievementTrigger.DUNGEON_COMPLETED.value: (
        AchievementCategory.MILESTONE,
        AchievementCategory.SPECIAL,
    ),
    AchievementTrigger.LEVEL_UP.value: (AchievementCategory.MILESTONE,),
    AchievementTrigger.STREAK_MILESTONE.value: (AchievementCategory.CONSISTENCY,),
}

FALLBACK_CATEGORIES: Tuple[AchievementCategory, ...] = (AchievementCategory.MILESTONE,)

# Triggers allowed to move streak-type progress
STREAK_TRIGGERS = frozenset(
    {
        AchievementTrigger.WORKOUT_COMPLETED.value,
        AchievementTrigger.STREAK_MILESTONE.value,
    }
)


def candidate_categories(event_type: str) -> Tuple[AchievementCategory, ...]:
    """Categories a trigger feeds; unknown triggers feed Milestone."""
    return TRIGGER_CATEGORIES.get(event_type, FALLBACK_CATEGORIES)


@dataclass
class _DispatchState:
    """Rows and results accumulated across one dispatch."""

    templates: List[AchievementTemplate]
    rows: Dict[int, HunterAchievement]
    unlocked: List[AchievementTemplate] = field(default_factory=list)
    events: List[GameEvent] = field(default_factory=list)


class AchievementService(BaseService):
    """
    Achievement progress and unlocks.

    Public Methods
    --------------
    - process_events() -> one-shot dispatch used by the other engines
    - record_event() -> standalone trigger entry point
    - unlock_achievement() -> manual, idempotent unlock
    - get_hunter_achievements() / get_achievement_stats()
    """

    def __init__(
        self, config_manager, event_bus, logger, clock, guard, leveling: LevelingService
    ) -> None:
        super().__init__(config_manager, event_bus, logger, clock, guard)
        self.leveling = leveling
        self.templates = BaseRepository[AchievementTemplate](
            AchievementTemplate, get_logger(f"{__name__}.AchievementTemplateRepository")
        )
        self.progress = BaseRepository[HunterAchievement](
            HunterAchievement, get_logger(f"{__name__}.HunterAchievementRepository")
        )

    # ========================================================================
    # Dispatch
    # ========================================================================

    async def _begin_dispatch(self, session: AsyncSession, hunter: Hunter) -> _DispatchState:
        templates = await self.templates.find_many_where(
            session,
            AchievementTemplate.is_active.is_(True),
            order_by=[AchievementTemplate.id],
        )
        rows = await self.progress.find_many_where(
            session, HunterAchievement.hunter_id == hunter.id, for_update=True
        )
        return _DispatchState(
            templates=templates, rows={row.achievement_id: row for row in rows}
        )

    def _unlock(
        self,
        hunter: Hunter,
        row: HunterAchievement,
        template: AchievementTemplate,
        source_trigger: Optional[str],
        state: _DispatchState,
    ) -> None:
        now = self.clock.now()
        row.is_unlocked = True
        row.unlocked_at = now
        if template.target_value is not None:
            row.current_progress = max(row.current_progress, template.target_value)

        _, level_event = self.leveling.apply_xp(
            hunter, template.xp_reward, source=f"achievement:{template.id}"
        )

        state.unlocked.append(template)
        state.events.append(
            AchievementUnlocked(
                hunter_id=hunter.id,
                occurred_at=now,
                achievement_id=template.id,
                xp_reward=template.xp_reward,
                title_reward=template.title_reward,
                source_trigger=source_trigger,
            )
        )
        if level_event is not None:
            state.events.append(level_event)

        self.log.info(
            f"Achievement unlocked: {template.name}",
            extra={
                "hunter_id": hunter.id,
                "achievement_id": template.id,
                "xp_reward": template.xp_reward,
                "trigger": source_trigger,
            },
        )

    @staticmethod
    def _feeds(event_type: str, template: AchievementTemplate) -> bool:
        if template.category not in candidate_categories(event_type):
            return False
        is_streak = template.achievement_type == AchievementType.STREAK
        if is_streak:
            return event_type in STREAK_TRIGGERS
        return event_type != AchievementTrigger.STREAK_MILESTONE.value

    def _apply(
        self,
        session: AsyncSession,
        hunter: Hunter,
        triggers: Sequence[Tuple[str, int]],
        state: _DispatchState,
    ) -> None:
        """
        Advance every template fed by ``triggers``.

        A template fed by several triggers of one operation advances once,
        by the increment of the first trigger that feeds it.
        """
        for template in state.templates:
            matched = [(name, inc) for name, inc in triggers if self._feeds(name, template)]
            if not matched:
                continue
            source_trigger, increment = matched[0]

            row = state.rows.get(template.id)
            if row is None:
                row = self.progress.add(
                    session,
                    HunterAchievement(
                        hunter_id=hunter.id,
                        achievement_id=template.id,
                        current_progress=0,
                        is_unlocked=False,
                    ),
                )
                state.rows[template.id] = row
            if row.is_unlocked:
                continue

            kind = template.achievement_type
            if kind in (AchievementType.COUNTER, AchievementType.PROGRESSIVE):
                row.current_progress = max(row.current_progress, row.current_progress + increment)
            elif kind == AchievementType.STREAK:
                row.current_progress = max(row.current_progress, hunter.daily_streak)

            if kind == AchievementType.SINGLE or (
                template.target_value is not None
                and row.current_progress >= template.target_value
            ):
                self._unlock(hunter, row, template, source_trigger, state)

    async def process_events(
        self, session: AsyncSession, hunter: Hunter, events: Iterable[GameEvent]
    ) -> Tuple[List[AchievementTemplate], List[GameEvent]]:
        """
        Feed an operation's events to the achievement rules, once.

        Returns the newly unlocked templates and the events those unlocks
        produced (``AchievementUnlocked`` and reward level-ups).
        """
        triggers = [(event.trigger.value, event.increment) for event in events if event.trigger]
        if not triggers:
            return [], []

        state = await self._begin_dispatch(session, hunter)
        self._apply(session, hunter, triggers, state)
        return state.unlocked, state.events

    # ========================================================================
    # PUBLIC API - Write Operations
    # ========================================================================

    async def record_event(
        self,
        hunter_id: str,
        event_type: Union[str, AchievementTrigger],
        increment: int = 1,
    ) -> List[AchievementTemplate]:
        """
        Apply one trigger for a hunter outside any engine operation.

        Raises:
            NotFoundError: unknown hunter
            ValidationError: increment negative or event type empty
        """
        event_name = event_type.value if isinstance(event_type, AchievementTrigger) else event_type
        if not event_name:
            raise ValidationError("event_type", "event type must not be empty")
        self.validate_non_negative_int(increment, "increment")

        self.log_operation(
            "record_achievement_event",
            hunter_id=hunter_id,
            event_type=event_name,
            increment=increment,
        )

        async with self.hunter_transaction(hunter_id, "record_achievement_event") as session:
            hunter = await self.leveling.load_hunter_for_update(session, hunter_id)
            state = await self._begin_dispatch(session, hunter)
            self._apply(session, hunter, [(event_name, increment)], state)

        await self.publish_events(state.events)
        return state.unlocked

    async def unlock_achievement(self, hunter_id: str, achievement_id: int) -> Dict[str, Any]:
        """
        Unlock directly, awarding the reward once.

        Unlocking an achievement the hunter already holds returns it with
        ``newly_unlocked`` False and awards nothing.
        """
        self.log_operation("unlock_achievement", hunter_id=hunter_id, achievement_id=achievement_id)

        async with self.hunter_transaction(hunter_id, "unlock_achievement") as session:
            hunter = await self.leveling.load_hunter_for_update(session, hunter_id)
            template = await self.templates.get(session, achievement_id)
            if template is None or not template.is_active:
                raise NotFoundError("Achievement", achievement_id)

            state = await self._begin_dispatch(session, hunter)
            row = state.rows.get(template.id)
            newly_unlocked = row is None or not row.is_unlocked
            if row is None:
                row = self.progress.add(
                    session,
                    HunterAchievement(
                        hunter_id=hunter.id,
                        achievement_id=template.id,
                        current_progress=0,
                        is_unlocked=False,
                    ),
                )
            if newly_unlocked:
                self._unlock(hunter, row, template, None, state)

        await self.publish_events(state.events)
        return {
            **self._template_dict(template),
            "current_progress": row.current_progress,
            "is_unlocked": True,
            "unlocked_at": row.unlocked_at,
            "newly_unlocked": newly_unlocked,
        }

    # ========================================================================
    # PUBLIC API - Read Operations
    # ========================================================================

    @staticmethod
    def _template_dict(template: AchievementTemplate) -> Dict[str, Any]:
        return {
            "achievement_id": template.id,
            "name": template.name,
            "description": template.description,
            "category": template.category.value,
            "achievement_type": template.achievement_type.value,
            "target_value": template.target_value,
            "xp_reward": template.xp_reward,
            "title_reward": template.title_reward,
            "is_hidden": template.is_hidden,
        }

    def _entry(
        self, template: AchievementTemplate, row: Optional[HunterAchievement]
    ) -> Dict[str, Any]:
        progress = row.current_progress if row else 0
        unlocked = bool(row and row.is_unlocked)
        return {
            **self._template_dict(template),
            "current_progress": progress,
            "is_unlocked": unlocked,
            "unlocked_at": row.unlocked_at if row else None,
            "progress_percentage": achievement_progress_percentage(
                progress, template.target_value, unlocked
            ),
        }

    async def _load_view(
        self, hunter_id: str
    ) -> Tuple[Sequence[AchievementTemplate], Dict[int, HunterAchievement]]:
        async with self.read_session() as session:
            await self.leveling.load_hunter(session, hunter_id)
            templates = await self.templates.find_many_where(
                session,
                AchievementTemplate.is_active.is_(True),
                order_by=[AchievementTemplate.category, AchievementTemplate.id],
            )
            rows = await self.progress.find_many_where(
                session, HunterAchievement.hunter_id == hunter_id
            )
        return templates, {row.achievement_id: row for row in rows}

    async def get_hunter_achievements(self, hunter_id: str) -> Dict[str, Any]:
        """Full achievement view for one hunter; hidden entries show only once unlocked."""
        self.log_operation("get_hunter_achievements", hunter_id=hunter_id)

        templates, rows = await self._load_view(hunter_id)
        recent_days = int(self.get_config("achievements.recent_days", default=7))
        near_percent = float(self.get_config("achievements.near_completion_percent", default=75))
        cutoff = self.clock.now() - timedelta(days=recent_days)

        unlocked: List[Dict[str, Any]] = []
        in_progress: List[Dict[str, Any]] = []
        available: List[Dict[str, Any]] = []
        by_category: Dict[str, List[Dict[str, Any]]] = {c.value: [] for c in AchievementCategory}
        hidden_count = 0

        for template in templates:
            row = rows.get(template.id)
            entry = self._entry(template, row)
            if entry["is_unlocked"]:
                unlocked.append(entry)
            elif template.is_hidden:
                hidden_count += 1
                continue
            elif entry["current_progress"] > 0:
                in_progress.append(entry)
            else:
                available.append(entry)
            by_category[template.category.value].append(entry)

        total = len(templates)
        return {
            "hunter_id": hunter_id,
            "unlocked": unlocked,
            "in_progress": in_progress,
            "available": available,
            "hidden_count": hidden_count,
            "by_category": by_category,
            "total_achievements": total,
            "unlocked_count": len(unlocked),
            "completion_percentage": round(len(unlocked) / total * 100, 2) if total else 0.0,
            "total_xp_earned": sum(e["xp_reward"] for e in unlocked),
            "recently_unlocked": [
                e for e in unlocked if e["unlocked_at"] is not None and e["unlocked_at"] >= cutoff
            ],
            "near_completion": [e for e in in_progress if e["progress_percentage"] >= near_percent],
            "titles": [e["title_reward"] for e in unlocked if e["title_reward"]],
        }

    async def get_achievement_stats(self, hunter_id: str) -> Dict[str, Any]:
        templates, rows = await self._load_view(hunter_id)

        categories: Dict[str, Dict[str, Any]] = {}
        for category in AchievementCategory:
            members = [t for t in templates if t.category == category]
            unlocked = [t for t in members if rows.get(t.id) and rows[t.id].is_unlocked]
            categories[category.value] = {
                "total": len(members),
                "unlocked": len(unlocked),
                "completion_percentage": round(len(unlocked) / len(members) * 100, 2)
                if members
                else 0.0,
                "xp_earned": sum(t.xp_reward for t in unlocked),
            }

        total = sum(c["total"] for c in categories.values())
        unlocked_total = sum(c["unlocked"] for c in categories.values())
        return {
            "hunter_id": hunter_id,
            "categories": categories,
            "total_achievements": total,
            "unlocked_count": unlocked_total,
            "completion_percentage": round(unlocked_total / total * 100, 2) if total else 0.0,
            "total_xp_earned": sum(c["xp_earned"] for c in categories.values()),
        }
