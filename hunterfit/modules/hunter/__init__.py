"""
Hunter Module
=============

Domain: the hunter aggregate (XP, level, rank, stats, streaks)

Services:
- LevelingService: XP curve, level-up loop, rank ladder
- HunterService: registration, profile, XP awards, streaks, workouts
"""

from .hunter_service import HunterService
from .leveling_service import AwardResult, HunterRepository, LevelingService

__all__ = [
    "AwardResult",
    "HunterRepository",
    "HunterService",
    "LevelingService",
]
