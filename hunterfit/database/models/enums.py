"""
Database Model Enums
====================

Type-safe categorical values shared by the schema and the engines. Every
enum is a ``str`` enum stored by value, so rows stay readable in SQL.

``HunterRank`` is the one enum with behaviour: it is ordered by ladder
position so gates compare ranks directly (``hunter.rank >= template.min_rank``)
instead of looking positions up in a string-keyed table.
"""

from __future__ import annotations

import enum


class HunterRank(str, enum.Enum):
    """Coarse hunter tier, derived from level. Ordered E < D < ... < SSS."""

    E = "E"
    D = "D"
    C = "C"
    B = "B"
    A = "A"
    S = "S"
    SS = "SS"
    SSS = "SSS"

    @property
    def ordinal(self) -> int:
        return _RANK_ORDER.index(self)

    @property
    def display_title(self) -> str:
        return _RANK_TITLES[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, HunterRank):
            return NotImplemented
        return self.ordinal < other.ordinal

    def __le__(self, other: object) -> bool:
        if not isinstance(other, HunterRank):
            return NotImplemented
        return self.ordinal <= other.ordinal

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, HunterRank):
            return NotImplemented
        return self.ordinal > other.ordinal

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, HunterRank):
            return NotImplemented
        return self.ordinal >= other.ordinal


_RANK_ORDER: tuple[HunterRank, ...] = tuple(HunterRank)

_RANK_TITLES: dict[HunterRank, str] = {
    HunterRank.E: "Rookie Hunter",
    HunterRank.D: "Bronze Hunter",
    HunterRank.C: "Silver Hunter",
    HunterRank.B: "Gold Hunter",
    HunterRank.A: "Elite Hunter",
    HunterRank.S: "Master Hunter",
    HunterRank.SS: "Legendary Hunter",
    HunterRank.SSS: "Shadow Monarch",
}


class QuestType(str, enum.Enum):
    CARDIO = "Cardio"
    STRENGTH = "Strength"
    FLEXIBILITY = "Flexibility"
    ENDURANCE = "Endurance"
    MIXED = "Mixed"


class QuestDifficulty(str, enum.Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"
    EXTREME = "Extreme"


class QuestStatus(str, enum.Enum):
    """Assignment lifecycle. There is no failure state."""

    ASSIGNED = "Assigned"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"


class DungeonType(str, enum.Enum):
    TRAINING_GROUNDS = "Training Grounds"
    STRENGTH_TRIAL = "Strength Trial"
    ENDURANCE_TEST = "Endurance Test"
    BOSS_RAID = "Boss Raid"


class DungeonDifficulty(str, enum.Enum):
    NORMAL = "Normal"
    HARD = "Hard"
    EXTREME = "Extreme"
    NIGHTMARE = "Nightmare"


class RaidStatus(str, enum.Enum):
    """Raid lifecycle. Completed, Failed and Abandoned are absorbing."""

    STARTED = "Started"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    FAILED = "Failed"
    ABANDONED = "Abandoned"

    @property
    def is_live(self) -> bool:
        return self in (RaidStatus.STARTED, RaidStatus.IN_PROGRESS)

    @property
    def is_terminal(self) -> bool:
        return not self.is_live


class ItemType(str, enum.Enum):
    """Equip slot. One equipped item per type per hunter."""

    WEAPON = "Weapon"
    ARMOR = "Armor"
    ACCESSORY = "Accessory"


class Rarity(str, enum.Enum):
    COMMON = "Common"
    RARE = "Rare"
    EPIC = "Epic"
    LEGENDARY = "Legendary"
    MYTHIC = "Mythic"


class AchievementCategory(str, enum.Enum):
    CONSISTENCY = "Consistency"
    STRENGTH = "Strength"
    ENDURANCE = "Endurance"
    SOCIAL = "Social"
    SPECIAL = "Special"
    MILESTONE = "Milestone"


class AchievementType(str, enum.Enum):
    """
    How progress accumulates.

    COUNTER and PROGRESSIVE add the increment, STREAK mirrors the hunter's
    daily streak, SINGLE unlocks on the first matching event.
    """

    COUNTER = "Counter"
    STREAK = "Streak"
    SINGLE = "Single"
    PROGRESSIVE = "Progressive"
