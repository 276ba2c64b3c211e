"""
Tagged gameplay events.

Purpose
-------
Every engine operation collects a list of these while it mutates state. The
list is handed once to the achievement engine inside the same transaction,
then published to the ``EventBus`` after commit.

Each variant declares:

- ``event_name``: the bus name external listeners subscribe to
- ``achievement_trigger``: the achievement trigger it feeds, or None

Achievement unlocks themselves produce ``AchievementUnlocked``, which feeds
no trigger, so a reward can never start another round of achievement checks.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, Optional

from hunterfit.database.models.enums import QuestType
from hunterfit.domain.models.base import DomainEvent


class AchievementTrigger(str, Enum):
    QUEST_COMPLETED = "quest_completed"
    WORKOUT_COMPLETED = "workout_completed"
    STRENGTH_EXERCISE_COMPLETED = "strength_exercise_completed"
    CARDIO_EXERCISE_COMPLETED = "cardio_exercise_completed"
    ENDURANCE_EXERCISE_COMPLETED = "endurance_exercise_completed"
    DUNGEON_COMPLETED = "dungeon_completed"
    LEVEL_UP = "level_up"
    STREAK_MILESTONE = "streak_milestone"


_EXERCISE_TRIGGERS: Dict[QuestType, AchievementTrigger] = {
    QuestType.STRENGTH: AchievementTrigger.STRENGTH_EXERCISE_COMPLETED,
    QuestType.CARDIO: AchievementTrigger.CARDIO_EXERCISE_COMPLETED,
    QuestType.ENDURANCE: AchievementTrigger.ENDURANCE_EXERCISE_COMPLETED,
}


@dataclass(frozen=True)
class GameEvent:
    event_name: ClassVar[str] = "game.event"
    achievement_trigger: ClassVar[Optional[AchievementTrigger]] = None

    hunter_id: str
    occurred_at: datetime

    @property
    def trigger(self) -> Optional[AchievementTrigger]:
        return self.achievement_trigger

    @property
    def increment(self) -> int:
        return 1

    def payload(self) -> Dict[str, Any]:
        data = asdict(self)
        data["occurred_at"] = self.occurred_at.isoformat()
        for key, value in data.items():
            if isinstance(value, Enum):
                data[key] = value.value
        return data

    def to_domain_event(self) -> DomainEvent:
        return DomainEvent(
            event_name=self.event_name,
            payload=self.payload(),
            occurred_at=self.occurred_at,
        )


@dataclass(frozen=True)
class QuestCompleted(GameEvent):
    event_name: ClassVar[str] = "quest.completed"
    achievement_trigger: ClassVar[Optional[AchievementTrigger]] = AchievementTrigger.QUEST_COMPLETED

    assignment_id: int = 0
    quest_id: int = 0
    xp_earned: int = 0
    bonus_multiplier: float = 1.0
    perfect_execution: bool = False


@dataclass(frozen=True)
class WorkoutCompleted(GameEvent):
    event_name: ClassVar[str] = "workout.completed"
    achievement_trigger: ClassVar[Optional[AchievementTrigger]] = AchievementTrigger.WORKOUT_COMPLETED

    total_workouts: int = 0


@dataclass(frozen=True)
class ExerciseCompleted(GameEvent):
    """Feeds the category trigger for its quest type; Flexibility and Mixed feed none."""

    event_name: ClassVar[str] = "exercise.completed"

    quest_type: QuestType = QuestType.MIXED

    @property
    def trigger(self) -> Optional[AchievementTrigger]:
        return _EXERCISE_TRIGGERS.get(self.quest_type)


@dataclass(frozen=True)
class RaidCompleted(GameEvent):
    event_name: ClassVar[str] = "raid.completed"
    achievement_trigger: ClassVar[Optional[AchievementTrigger]] = AchievementTrigger.DUNGEON_COMPLETED

    raid_id: int = 0
    dungeon_id: int = 0
    xp_earned: int = 0
    total_duration: int = 0


@dataclass(frozen=True)
class RaidFailed(GameEvent):
    event_name: ClassVar[str] = "raid.failed"

    raid_id: int = 0
    dungeon_id: int = 0
    xp_earned: int = 0
    completion_rate: float = 0.0


@dataclass(frozen=True)
class RaidAbandoned(GameEvent):
    event_name: ClassVar[str] = "raid.abandoned"

    raid_id: int = 0
    dungeon_id: int = 0
    completion_rate: float = 0.0


@dataclass(frozen=True)
class HunterLeveledUp(GameEvent):
    event_name: ClassVar[str] = "hunter.leveled_up"
    achievement_trigger: ClassVar[Optional[AchievementTrigger]] = AchievementTrigger.LEVEL_UP

    old_level: int = 1
    new_level: int = 1
    old_rank: str = "E"
    new_rank: str = "E"
    source: str = ""

    @property
    def increment(self) -> int:
        return max(1, self.new_level - self.old_level)


@dataclass(frozen=True)
class StreakMilestone(GameEvent):
    event_name: ClassVar[str] = "hunter.streak_milestone"
    achievement_trigger: ClassVar[Optional[AchievementTrigger]] = AchievementTrigger.STREAK_MILESTONE

    streak: int = 0


@dataclass(frozen=True)
class EquipmentUnlocked(GameEvent):
    event_name: ClassVar[str] = "equipment.unlocked"

    equipment_id: int = 0
    hunter_equipment_id: int = 0
    reason: Optional[str] = None


@dataclass(frozen=True)
class EquipmentEquipped(GameEvent):
    event_name: ClassVar[str] = "equipment.equipped"

    hunter_equipment_id: int = 0
    item_type: str = ""
    replaced_hunter_equipment_id: Optional[int] = None


@dataclass(frozen=True)
class AchievementUnlocked(GameEvent):
    event_name: ClassVar[str] = "achievement.unlocked"

    achievement_id: int = 0
    xp_reward: int = 0
    title_reward: Optional[str] = None
    source_trigger: Optional[str] = None

