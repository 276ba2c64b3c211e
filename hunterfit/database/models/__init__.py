"""
Database Models Package
=======================

SQLAlchemy ORM models for the HunterFit progression core.

All models:
- Are schema-only, no business logic
- Use ``Mapped[]`` with ``mapped_column()``
- Reference each other by id; the only relationship is the dungeon's ordered
  exercise list
- Store enums by value (see ``enums``)
"""

from hunterfit.core.database.base import Base

from .achievement import AchievementTemplate, HunterAchievement
from .dungeon import DungeonExercise, DungeonRaid, DungeonTemplate
from .enums import (
    AchievementCategory,
    AchievementType,
    DungeonDifficulty,
    DungeonType,
    HunterRank,
    ItemType,
    QuestDifficulty,
    QuestStatus,
    QuestType,
    RaidStatus,
    Rarity,
)
from .equipment import EquipmentTemplate, HunterEquipment
from .hunter import Hunter
from .quest import QuestAssignment, QuestHistory, QuestTemplate

__all__ = [
    "Base",
    # Aggregate root
    "Hunter",
    # Quests
    "QuestTemplate",
    "QuestAssignment",
    "QuestHistory",
    # Dungeons
    "DungeonTemplate",
    "DungeonExercise",
    "DungeonRaid",
    # Equipment
    "EquipmentTemplate",
    "HunterEquipment",
    # Achievements
    "AchievementTemplate",
    "HunterAchievement",
    # Enums
    "HunterRank",
    "QuestType",
    "QuestDifficulty",
    "QuestStatus",
    "DungeonType",
    "DungeonDifficulty",
    "RaidStatus",
    "ItemType",
    "Rarity",
    "AchievementCategory",
    "AchievementType",
]
