"""
Dungeon Module
==============

Domain: dungeon raids, cooldowns and success estimates

Services:
- DungeonService: start, progress, complete/fail, abandon, reads
"""

from .dungeon_service import LIVE_STATUSES, TERMINAL_STATUSES, DungeonService, RaidRepository

__all__ = [
    "DungeonService",
    "RaidRepository",
    "LIVE_STATUSES",
    "TERMINAL_STATUSES",
]
