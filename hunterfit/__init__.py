"""
HunterFit progression core.

Turns exercise activity into RPG progression: XP and levels, ranks, daily
quests, dungeon raids, equipment and achievements. Callers reach every
operation through ``hunterfit.core.services.container.ServiceContainer``.
"""

__version__ = "1.0.0"
