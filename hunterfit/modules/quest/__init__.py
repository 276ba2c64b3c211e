"""
Quest Module
============

Domain: daily quests with monotonic progress and bonus-scaled XP

Services:
- QuestService: generation, start, progress, completion, history
"""

from .quest_service import QuestService, can_complete

__all__ = [
    "QuestService",
    "can_complete",
]
