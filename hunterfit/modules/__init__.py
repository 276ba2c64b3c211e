"""
HunterFit engine modules.

- hunter: leveling rules and hunter aggregate operations
- equipment: ownership ledger, slots, effective stats
- quest: daily quest assignment and lifecycle
- dungeon: raid lifecycle and cooldowns
- achievement: event-driven progress and unlocks
- shared: base service/repository, exceptions, formulas, validators
"""
