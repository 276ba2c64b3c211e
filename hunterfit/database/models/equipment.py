"""
Equipment catalog and hunter ownership rows.
Schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from hunterfit.core.database.base import (
    Base,
    IdMixin,
    TimestampMixin,
    UTCDateTime,
    enum_column,
)
from hunterfit.database.models.enums import HunterRank, ItemType, Rarity


class EquipmentTemplate(Base, IdMixin, TimestampMixin):
    __tablename__ = "equipment_templates"
    __table_args__ = (
        CheckConstraint(
            "xp_multiplier >= 0.5 AND xp_multiplier <= 3.0", name="xp_multiplier_range"
        ),
        CheckConstraint("unlock_level >= 1", name="unlock_level_positive"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    item_type: Mapped[ItemType] = mapped_column(enum_column(ItemType), nullable=False)
    rarity: Mapped[Rarity] = mapped_column(
        enum_column(Rarity), nullable=False, default=Rarity.COMMON
    )

    strength_bonus: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    agility_bonus: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    vitality_bonus: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    endurance_bonus: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    xp_multiplier: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)

    unlock_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unlock_rank: Mapped[HunterRank] = mapped_column(
        enum_column(HunterRank), nullable=False, default=HunterRank.E
    )
    unlock_condition: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class HunterEquipment(Base, IdMixin, TimestampMixin):
    """
    Ownership join row.

    ``item_type`` is copied from the template at unlock so the store can
    enforce one equipped item per (hunter, item_type).
    """

    __tablename__ = "hunter_equipment"
    __table_args__ = (
        UniqueConstraint("hunter_id", "equipment_id", name="uq_hunter_equipment_owned"),
        Index(
            "uq_hunter_equipment_equipped_slot",
            "hunter_id",
            "item_type",
            unique=True,
            postgresql_where=text("is_equipped"),
            sqlite_where=text("is_equipped = 1"),
        ),
    )

    hunter_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("hunters.id", ondelete="CASCADE"), nullable=False, index=True
    )
    equipment_id: Mapped[int] = mapped_column(
        ForeignKey("equipment_templates.id", ondelete="RESTRICT"), nullable=False
    )
    item_type: Mapped[ItemType] = mapped_column(enum_column(ItemType), nullable=False)
    is_equipped: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    unlocked_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    unlock_reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
