"""
Equipment Service
=================

Purpose
-------
Tracks which equipment a hunter owns and which is equipped, and aggregates
equipped bonuses into effective stats and the effective XP multiplier.

Domain
------
- Unlock is idempotent: re-unlocking an owned item returns the existing row
- Unlock and equip are gated by the template's level and rank requirement
- Equip-slot exclusivity: at most one equipped item per item type; equipping
  unequips any same-type sibling in the same transaction
- Effective XP multiplier stacks additively: ``1 + sum(m - 1)``

The multiplier is reported on the inventory and profile; quest and raid
awards are not scaled by it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import select

from hunterfit.core.logging.logger import get_logger
from hunterfit.database.models import EquipmentTemplate, Hunter, HunterEquipment, ItemType
from hunterfit.domain.models.events import EquipmentEquipped, EquipmentUnlocked, GameEvent
from hunterfit.modules.shared.base_repository import BaseRepository
from hunterfit.modules.shared.base_service import BaseService
from hunterfit.modules.shared.exceptions import InvalidStateError, NotFoundError
from hunterfit.modules.shared.formulas import (
    effective_xp_multiplier,
    equipment_power,
    meets_gate,
)
from hunterfit.modules.shared.validators import validate_gate

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from hunterfit.modules.hunter.leveling_service import LevelingService


@dataclass(frozen=True)
class EffectiveStats:
    strength: int
    agility: int
    vitality: int
    endurance: int

    @property
    def total(self) -> int:
        return self.strength + self.agility + self.vitality + self.endurance

    def to_dict(self) -> Dict[str, int]:
        return {
            "strength": self.strength,
            "agility": self.agility,
            "vitality": self.vitality,
            "endurance": self.endurance,
            "total": self.total,
        }


def _template_dict(template: EquipmentTemplate) -> Dict[str, Any]:
    return {
        "equipment_id": template.id,
        "name": template.name,
        "description": template.description,
        "item_type": template.item_type.value,
        "rarity": template.rarity.value,
        "strength_bonus": template.strength_bonus,
        "agility_bonus": template.agility_bonus,
        "vitality_bonus": template.vitality_bonus,
        "endurance_bonus": template.endurance_bonus,
        "xp_multiplier": template.xp_multiplier,
        "unlock_level": template.unlock_level,
        "unlock_rank": template.unlock_rank.value,
        "unlock_condition": template.unlock_condition,
        "power_level": equipment_power(
            template.strength_bonus,
            template.agility_bonus,
            template.vitality_bonus,
            template.endurance_bonus,
            template.xp_multiplier,
            template.rarity,
        ),
    }


class EquipmentService(BaseService):
    """
    Equipment ownership ledger.

    Public Methods
    --------------
    - unlock() -> grant an item (idempotent)
    - equip() / unequip() -> flip the equipped flag with slot exclusivity
    - get_inventory() -> owned items, equipped slots, totals
    - get_available_equipment() -> catalog with ownership and gate flags
    - effective_stats() / effective_xp_multiplier()
    """

    def __init__(
        self, config_manager, event_bus, logger, clock, guard, leveling: LevelingService
    ) -> None:
        super().__init__(config_manager, event_bus, logger, clock, guard)
        self.leveling = leveling
        self.templates = BaseRepository[EquipmentTemplate](
            EquipmentTemplate, get_logger(f"{__name__}.EquipmentTemplateRepository")
        )
        self.owned = BaseRepository[HunterEquipment](
            HunterEquipment, get_logger(f"{__name__}.HunterEquipmentRepository")
        )

    # ========================================================================
    # Session-level helpers (used by other engines)
    # ========================================================================

    async def equipped_items(
        self, session: AsyncSession, hunter_id: str
    ) -> List[tuple[HunterEquipment, EquipmentTemplate]]:
        stmt = (
            select(HunterEquipment, EquipmentTemplate)
            .join(EquipmentTemplate, HunterEquipment.equipment_id == EquipmentTemplate.id)
            .where(HunterEquipment.hunter_id == hunter_id, HunterEquipment.is_equipped.is_(True))
            .order_by(HunterEquipment.id)
        )
        result = await session.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    async def compute_effective_stats(self, session: AsyncSession, hunter: Hunter) -> EffectiveStats:
        """Base stats plus the bonuses of every equipped item."""
        equipped = await self.equipped_items(session, hunter.id)
        return EffectiveStats(
            strength=hunter.strength + sum(t.strength_bonus for _, t in equipped),
            agility=hunter.agility + sum(t.agility_bonus for _, t in equipped),
            vitality=hunter.vitality + sum(t.vitality_bonus for _, t in equipped),
            endurance=hunter.endurance + sum(t.endurance_bonus for _, t in equipped),
        )

    async def compute_xp_multiplier(self, session: AsyncSession, hunter_id: str) -> float:
        equipped = await self.equipped_items(session, hunter_id)
        return effective_xp_multiplier(t.xp_multiplier for _, t in equipped)

    async def _load_template(self, session: AsyncSession, equipment_id: int) -> EquipmentTemplate:
        template = await self.templates.get(session, equipment_id)
        if template is None or not template.is_active:
            raise NotFoundError("Equipment", equipment_id)
        return template

    async def _load_owned(
        self, session: AsyncSession, hunter_id: str, hunter_equipment_id: int
    ) -> HunterEquipment:
        owned = await self.owned.find_one_where(
            session,
            HunterEquipment.id == hunter_equipment_id,
            HunterEquipment.hunter_id == hunter_id,
            for_update=True,
        )
        if owned is None:
            raise NotFoundError("HunterEquipment", hunter_equipment_id)
        return owned

    async def grant(
        self,
        session: AsyncSession,
        hunter: Hunter,
        equipment_id: int,
        reason: Optional[str] = None,
    ) -> tuple[HunterEquipment, Optional[EquipmentUnlocked]]:
        """Unlock inside an open transaction; returns the row and an event if new."""
        template = await self._load_template(session, equipment_id)

        existing = await self.owned.find_one_where(
            session,
            HunterEquipment.hunter_id == hunter.id,
            HunterEquipment.equipment_id == equipment_id,
        )
        if existing is not None:
            return existing, None

        validate_gate(
            f"Equipment '{template.name}'",
            hunter.level,
            hunter.rank,
            template.unlock_level,
            template.unlock_rank,
        )

        owned = self.owned.add(
            session,
            HunterEquipment(
                hunter_id=hunter.id,
                equipment_id=template.id,
                item_type=template.item_type,
                is_equipped=False,
                unlocked_at=self.clock.now(),
                unlock_reason=reason,
            ),
        )
        await self.owned.flush(session)

        self.log.info(
            "Equipment unlocked",
            extra={
                "hunter_id": hunter.id,
                "equipment_id": template.id,
                "hunter_equipment_id": owned.id,
                "reason": reason,
            },
        )
        event = EquipmentUnlocked(
            hunter_id=hunter.id,
            occurred_at=self.clock.now(),
            equipment_id=template.id,
            hunter_equipment_id=owned.id,
            reason=reason,
        )
        return owned, event

    # ========================================================================
    # PUBLIC API - Write Operations
    # ========================================================================

    async def unlock(
        self, hunter_id: str, equipment_id: int, reason: Optional[str] = None
    ) -> tuple[HunterEquipment, bool]:
        """
        Grant an item to a hunter.

        Returns ``(row, newly_unlocked)``; an already-owned item returns the
        existing row with ``False``.

        Raises:
            NotFoundError: unknown hunter or equipment
            IneligibleAccessError: level/rank gate not met
        """
        self.log_operation("unlock_equipment", hunter_id=hunter_id, equipment_id=equipment_id)

        events: List[GameEvent] = []
        async with self.hunter_transaction(hunter_id, "unlock_equipment") as session:
            hunter = await self.leveling.load_hunter_for_update(session, hunter_id)
            owned, event = await self.grant(session, hunter, equipment_id, reason)
            if event is not None:
                events.append(event)

        await self.publish_events(events)
        return owned, bool(events)

    async def equip(self, hunter_id: str, hunter_equipment_id: int) -> Dict[str, Any]:
        """
        Equip an owned item, unequipping any same-type item first.

        Raises:
            NotFoundError: item not owned by this hunter
            InvalidStateError: item already equipped
            IneligibleAccessError: level/rank gate not met
        """
        self.log_operation("equip", hunter_id=hunter_id, hunter_equipment_id=hunter_equipment_id)

        async with self.hunter_transaction(hunter_id, "equip") as session:
            hunter = await self.leveling.load_hunter_for_update(session, hunter_id)
            owned = await self._load_owned(session, hunter_id, hunter_equipment_id)

            if owned.is_equipped:
                raise InvalidStateError(
                    "equip", "item is already equipped", current_state="equipped"
                )

            template = await self._load_template(session, owned.equipment_id)
            validate_gate(
                f"Equipment '{template.name}'",
                hunter.level,
                hunter.rank,
                template.unlock_level,
                template.unlock_rank,
            )

            siblings = await self.owned.find_many_where(
                session,
                HunterEquipment.hunter_id == hunter_id,
                HunterEquipment.item_type == owned.item_type,
                HunterEquipment.is_equipped.is_(True),
                HunterEquipment.id != owned.id,
                for_update=True,
            )
            for sibling in siblings:
                sibling.is_equipped = False
            # Clear the slot before claiming it; the equipped-slot index is checked per row
            await self.owned.flush(session)

            owned.is_equipped = True
            await self.owned.flush(session)

            replaced_id = siblings[0].id if siblings else None
            event = EquipmentEquipped(
                hunter_id=hunter_id,
                occurred_at=self.clock.now(),
                hunter_equipment_id=owned.id,
                item_type=owned.item_type.value,
                replaced_hunter_equipment_id=replaced_id,
            )

        self.log.info(
            "Equipment equipped",
            extra={
                "hunter_id": hunter_id,
                "hunter_equipment_id": owned.id,
                "item_type": owned.item_type.value,
                "replaced": [s.id for s in siblings],
            },
        )
        await self.publish_events([event])
        return {
            "hunter_equipment_id": owned.id,
            "equipment_id": owned.equipment_id,
            "item_type": owned.item_type.value,
            "is_equipped": True,
            "unequipped_ids": [s.id for s in siblings],
        }

    async def unequip(self, hunter_id: str, hunter_equipment_id: int) -> Dict[str, Any]:
        """
        Raises:
            NotFoundError: item not owned by this hunter
            InvalidStateError: item not equipped
        """
        self.log_operation("unequip", hunter_id=hunter_id, hunter_equipment_id=hunter_equipment_id)

        async with self.hunter_transaction(hunter_id, "unequip") as session:
            await self.leveling.load_hunter_for_update(session, hunter_id)
            owned = await self._load_owned(session, hunter_id, hunter_equipment_id)
            if not owned.is_equipped:
                raise InvalidStateError(
                    "unequip", "item is not equipped", current_state="unequipped"
                )
            owned.is_equipped = False

        await self.emit_event(
            "equipment.unequipped",
            {
                "hunter_id": hunter_id,
                "hunter_equipment_id": hunter_equipment_id,
                "item_type": owned.item_type.value,
            },
        )
        return {
            "hunter_equipment_id": owned.id,
            "equipment_id": owned.equipment_id,
            "item_type": owned.item_type.value,
            "is_equipped": False,
        }

    # ========================================================================
    # PUBLIC API - Read Operations
    # ========================================================================

    async def effective_stats(self, hunter_id: str) -> EffectiveStats:
        async with self.read_session() as session:
            hunter = await self.leveling.load_hunter(session, hunter_id)
            return await self.compute_effective_stats(session, hunter)

    async def effective_xp_multiplier(self, hunter_id: str) -> float:
        async with self.read_session() as session:
            await self.leveling.load_hunter(session, hunter_id)
            return await self.compute_xp_multiplier(session, hunter_id)

    async def get_inventory(self, hunter_id: str) -> Dict[str, Any]:
        """Owned items, equipped item per slot and aggregated bonuses."""
        self.log_operation("get_inventory", hunter_id=hunter_id)

        async with self.read_session() as session:
            hunter = await self.leveling.load_hunter(session, hunter_id)
            stmt = (
                select(HunterEquipment, EquipmentTemplate)
                .join(EquipmentTemplate, HunterEquipment.equipment_id == EquipmentTemplate.id)
                .where(HunterEquipment.hunter_id == hunter_id)
                .order_by(HunterEquipment.unlocked_at, HunterEquipment.id)
            )
            rows = (await session.execute(stmt)).all()

            items: List[Dict[str, Any]] = []
            equipped_by_slot: Dict[str, Optional[Dict[str, Any]]] = {
                item_type.value: None for item_type in ItemType
            }
            for owned, template in rows:
                entry = {
                    **_template_dict(template),
                    "hunter_equipment_id": owned.id,
                    "is_equipped": owned.is_equipped,
                    "unlocked_at": owned.unlocked_at,
                    "unlock_reason": owned.unlock_reason,
                    "can_equip": meets_gate(
                        hunter.level, hunter.rank, template.unlock_level, template.unlock_rank
                    ),
                }
                items.append(entry)
                if owned.is_equipped:
                    equipped_by_slot[owned.item_type.value] = entry

            equipped = [entry for entry in items if entry["is_equipped"]]
            stats = await self.compute_effective_stats(session, hunter)

        return {
            "hunter_id": hunter_id,
            "items": items,
            "equipped": equipped_by_slot,
            "total_items": len(items),
            "bonuses": {
                "strength": sum(e["strength_bonus"] for e in equipped),
                "agility": sum(e["agility_bonus"] for e in equipped),
                "vitality": sum(e["vitality_bonus"] for e in equipped),
                "endurance": sum(e["endurance_bonus"] for e in equipped),
            },
            "effective_stats": stats.to_dict(),
            "xp_multiplier": effective_xp_multiplier(e["xp_multiplier"] for e in equipped),
            "total_power": sum(e["power_level"] for e in equipped),
        }

    async def get_available_equipment(self, hunter_id: str) -> List[Dict[str, Any]]:
        """Active catalog with ``is_owned`` and ``can_unlock`` flags."""
        async with self.read_session() as session:
            hunter = await self.leveling.load_hunter(session, hunter_id)
            templates = await self.templates.find_many_where(
                session,
                EquipmentTemplate.is_active.is_(True),
                order_by=[EquipmentTemplate.unlock_level, EquipmentTemplate.id],
            )
            owned_ids = set(
                (
                    await session.execute(
                        select(HunterEquipment.equipment_id).where(
                            HunterEquipment.hunter_id == hunter_id
                        )
                    )
                ).scalars()
            )

        return [
            {
                **_template_dict(template),
                "is_owned": template.id in owned_ids,
                "can_unlock": template.id not in owned_ids
                and meets_gate(hunter.level, hunter.rank, template.unlock_level, template.unlock_rank),
            }
            for template in templates
        ]
