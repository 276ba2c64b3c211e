"""Domain event types shared by the engines and the event bus."""

from .base import DomainEvent
from .events import (
    AchievementTrigger,
    AchievementUnlocked,
    EquipmentEquipped,
    EquipmentUnlocked,
    ExerciseCompleted,
    GameEvent,
    HunterLeveledUp,
    QuestCompleted,
    RaidAbandoned,
    RaidCompleted,
    RaidFailed,
    StreakMilestone,
    WorkoutCompleted,
)

__all__ = [
    "DomainEvent",
    "GameEvent",
    "AchievementTrigger",
    "QuestCompleted",
    "WorkoutCompleted",
    "ExerciseCompleted",
    "RaidCompleted",
    "RaidFailed",
    "RaidAbandoned",
    "HunterLeveledUp",
    "StreakMilestone",
    "EquipmentUnlocked",
    "EquipmentEquipped",
    "AchievementUnlocked",
]
