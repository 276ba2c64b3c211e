"""
Achievement Module
==================

Domain: achievement progress, one-way unlocks and XP rewards

Services:
- AchievementService: one-shot event dispatch, manual unlocks, views
"""

from .achievement_service import TRIGGER_CATEGORIES, AchievementService, candidate_categories

__all__ = [
    "AchievementService",
    "TRIGGER_CATEGORIES",
    "candidate_categories",
]
