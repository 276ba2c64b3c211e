"""
Equipment Module
================

Domain: equipment ownership, equip-slot exclusivity, stat aggregation

Services:
- EquipmentService: unlock, equip, unequip, inventory, effective stats
"""

from .equipment_service import EffectiveStats, EquipmentService

__all__ = [
    "EffectiveStats",
    "EquipmentService",
]
