"""
HunterFit Progression Formulas

Purpose
-------
Pure calculation functions for the progression rules: the XP curve and the
level-up loop, rank derivation, quest progress and reward scaling, raid
rewards and the success estimator, equipment aggregation and power.

Design Notes
------------
All formulas:
- Accept parameters explicitly (services pass config-driven values in)
- Return calculated values
- Have no database, config or clock access
- Are deterministic

Usage
-----
    from hunterfit.modules.shared.formulas import xp_required_for_level

    xp_required_for_level(1)   # 100
    xp_required_for_level(2)   # 150
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from fractions import Fraction
from typing import Iterable, Mapping, Optional, Sequence

from hunterfit.database.models.enums import HunterRank, QuestType, Rarity

XP_BASE = 100
XP_GROWTH = 1.5

DEFAULT_RANK_LADDER: Mapping[HunterRank, int] = {
    HunterRank.E: 1,
    HunterRank.D: 11,
    HunterRank.C: 21,
    HunterRank.B: 36,
    HunterRank.A: 51,
    HunterRank.S: 71,
    HunterRank.SS: 86,
    HunterRank.SSS: 96,
}

RARITY_MULTIPLIERS: Mapping[Rarity, float] = {
    Rarity.COMMON: 1.0,
    Rarity.RARE: 1.2,
    Rarity.EPIC: 1.5,
    Rarity.LEGENDARY: 2.0,
    Rarity.MYTHIC: 3.0,
}


# ============================================================================
# Leveling
# ============================================================================


def xp_required_for_level(level: int, base: int = XP_BASE, growth: float = XP_GROWTH) -> int:
    """
    XP needed to advance from ``level`` to ``level + 1``.

    ``floor(base * growth^(level-1))``, computed exactly so high levels never
    drift by one through float rounding.

    Example:
        >>> [xp_required_for_level(n) for n in (1, 2, 3)]
        [100, 150, 225]
    """
    if level < 1:
        raise ValueError(f"level must be >= 1, got {level}")
    exact = Fraction(base) * Fraction(str(growth)) ** (level - 1)
    return math.floor(exact)


def rank_for_level(
    level: int, ladder: Optional[Mapping[HunterRank, int]] = None
) -> HunterRank:
    """
    Highest rank whose minimum level is <= ``level``.

    Example:
        >>> rank_for_level(10), rank_for_level(11), rank_for_level(96)
        (<HunterRank.E: 'E'>, <HunterRank.D: 'D'>, <HunterRank.SSS: 'SSS'>)
    """
    ladder = ladder or DEFAULT_RANK_LADDER
    result = HunterRank.E
    for rank in HunterRank:
        threshold = ladder.get(rank)
        if threshold is not None and level >= threshold:
            result = rank
    return result


@dataclass(frozen=True)
class LevelState:
    level: int
    current_xp: int
    levels_gained: int


def apply_level_ups(
    level: int,
    current_xp: int,
    amount: int,
    base: int = XP_BASE,
    growth: float = XP_GROWTH,
) -> LevelState:
    """
    Add ``amount`` to banked XP and run the level-up loop.

    After return ``current_xp < xp_required_for_level(level)`` always holds.

    Example:
        >>> apply_level_ups(1, 0, 250)
        LevelState(level=3, current_xp=0, levels_gained=2)
    """
    if amount < 0:
        raise ValueError(f"amount must be non-negative, got {amount}")

    current_xp += amount
    gained = 0
    required = xp_required_for_level(level, base, growth)
    while current_xp >= required:
        current_xp -= required
        level += 1
        gained += 1
        required = xp_required_for_level(level, base, growth)
    return LevelState(level=level, current_xp=current_xp, levels_gained=gained)


def level_progress_percentage(
    current_xp: int, level: int, base: int = XP_BASE, growth: float = XP_GROWTH
) -> float:
    return current_xp / xp_required_for_level(level, base, growth) * 100.0


def meets_gate(
    hunter_level: int,
    hunter_rank: HunterRank,
    min_level: int,
    min_rank: HunterRank,
) -> bool:
    """Level and rank gate, rank compared by ladder position."""
    return hunter_level >= min_level and hunter_rank >= min_rank


# ============================================================================
# Quests
# ============================================================================


def estimated_quest_minutes(
    quest_type: QuestType,
    target_duration: Optional[int] = None,
    target_sets: Optional[int] = None,
) -> int:
    """
    Heuristic completion time in minutes, used for the speed bonus.

    Cardio and Endurance use the target duration (seconds) when set,
    Strength allows three minutes per set, one set when unspecified.
    """
    if quest_type is QuestType.CARDIO:
        return target_duration // 60 if target_duration else 15
    if quest_type is QuestType.STRENGTH:
        return (target_sets or 1) * 3
    if quest_type is QuestType.FLEXIBILITY:
        return 10
    if quest_type is QuestType.ENDURANCE:
        return target_duration // 60 if target_duration else 20
    return 25


def dimension_progress(current: float, target: Optional[float]) -> Optional[float]:
    """Percent of one target dimension, capped at 100; None when undefined."""
    if target is None or target <= 0:
        return None
    return min(100.0, current / target * 100.0)


def quest_progress(
    targets: Sequence[Optional[float]], currents: Sequence[float]
) -> tuple[float, bool]:
    """
    Overall progress and completion flag across the defined dimensions.

    Returns ``(average percent, every defined dimension >= 100)``. A template
    with no defined target has nothing to satisfy and reports (0.0, False).
    """
    parts = [
        pct
        for pct in (dimension_progress(cur, tgt) for tgt, cur in zip(targets, currents))
        if pct is not None
    ]
    if not parts:
        return 0.0, False
    return sum(parts) / len(parts), all(pct >= 100.0 for pct in parts)


def scaled_quest_xp(base_xp: int, level: int, level_scaling: float = 0.05) -> float:
    """``base_xp * (1 + level * 0.05)``"""
    return base_xp * (1 + level * level_scaling)


def quest_bonus_multiplier(
    completion_seconds: Optional[float],
    estimated_minutes: int,
    perfect_execution: bool,
    *,
    speed_bonus: float = 0.25,
    perfect_bonus: float = 0.15,
    min_multiplier: float = 0.5,
    max_multiplier: float = 2.0,
) -> float:
    bonus = 1.0
    if completion_seconds is not None and completion_seconds < estimated_minutes * 60:
        bonus += speed_bonus
    if perfect_execution:
        bonus += perfect_bonus
    return round(max(min_multiplier, min(max_multiplier, bonus)), 2)


def quest_xp_earned(scaled_xp: float, bonus_multiplier: float) -> int:
    return int(round(scaled_xp * bonus_multiplier))


# ============================================================================
# Dungeons
# ============================================================================


def raid_time_bonus(
    estimated_minutes: int, actual_seconds: int, factor: float = 0.5
) -> float:
    """
    ``1 + factor * (estimated - actual) / estimated`` when faster than the
    estimate, else 1.0.
    """
    estimated_seconds = estimated_minutes * 60
    if estimated_seconds <= 0 or actual_seconds >= estimated_seconds:
        return 1.0
    return 1.0 + factor * (estimated_seconds - actual_seconds) / estimated_seconds


def raid_xp_reward(
    base_xp: int,
    bonus_xp: int,
    level: int,
    time_bonus: float,
    level_scaling: float = 0.02,
) -> int:
    """Full reward for a successful raid, truncated to an int."""
    return int(base_xp * (1 + level * level_scaling) * time_bonus + bonus_xp)


def failed_raid_xp(full_reward: int, failure_share: float = 0.25) -> int:
    return int(full_reward * failure_share)


def success_rate_estimate(
    hunter_level: int,
    total_stats: int,
    min_level: int,
    *,
    base: float = 0.6,
    level_weight: float = 0.2,
    stat_weight: float = 0.2,
    stat_scale: float = 2.5,
    floor: float = 0.10,
    ceiling: float = 0.95,
) -> float:
    """
    Advisory estimate, never a gate.

    ``clamp(base + 0.2 * levelAdvantage + 0.2 * statAdvantage, 0.10, 0.95)``
    """
    min_level = max(1, min_level)
    level_advantage = (hunter_level - min_level) / min_level
    stat_advantage = total_stats / (min_level * 4 * stat_scale)
    rate = base + level_advantage * level_weight + stat_advantage * stat_weight
    return min(ceiling, max(floor, rate))


# ============================================================================
# Equipment
# ============================================================================


def effective_xp_multiplier(multipliers: Iterable[float]) -> float:
    """Additive stacking: ``1 + sum(m - 1)``."""
    return 1.0 + sum(m - 1.0 for m in multipliers)


def equipment_power(
    strength_bonus: int,
    agility_bonus: int,
    vitality_bonus: int,
    endurance_bonus: int,
    xp_multiplier: float,
    rarity: Rarity,
) -> int:
    stats = strength_bonus + agility_bonus + vitality_bonus + endurance_bonus
    raw = (stats + (xp_multiplier - 1.0) * 10) * RARITY_MULTIPLIERS[rarity]
    return int(round(raw))


# ============================================================================
# Achievements
# ============================================================================


def achievement_progress_percentage(
    current_progress: int, target_value: Optional[int], is_unlocked: bool
) -> float:
    if target_value is None or target_value <= 0:
        return 100.0 if is_unlocked else 0.0
    return min(100.0, current_progress / target_value * 100.0)
