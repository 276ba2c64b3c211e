"""
Hunter: the progression aggregate root.
Schema only.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Date, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from hunterfit.core.database.base import (
    Base,
    TimestampMixin,
    UTCDateTime,
    UUIDPrimaryKeyMixin,
    enum_column,
)
from hunterfit.database.models.enums import HunterRank


class Hunter(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """
    One row per hunter.

    XP, level and rank are written only by the leveling service; rank is
    always the ladder value for ``level``.
    """

    __tablename__ = "hunters"
    __table_args__ = (
        CheckConstraint("level >= 1", name="level_positive"),
        CheckConstraint("current_xp >= 0", name="current_xp_non_negative"),
        CheckConstraint("total_xp >= 0", name="total_xp_non_negative"),
        CheckConstraint(
            "strength >= 1 AND agility >= 1 AND vitality >= 1 AND endurance >= 1",
            name="stats_positive",
        ),
        CheckConstraint(
            "daily_streak >= 0 AND longest_streak >= 0 AND total_workouts >= 0",
            name="counters_non_negative",
        ),
    )

    username: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    hunter_name: Mapped[str] = mapped_column(String(100), nullable=False)

    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    current_xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rank: Mapped[HunterRank] = mapped_column(
        enum_column(HunterRank), nullable=False, default=HunterRank.E
    )

    strength: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    agility: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    vitality: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    endurance: Mapped[int] = mapped_column(Integer, nullable=False, default=10)

    daily_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_streak_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    total_workouts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_active_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    @property
    def total_base_stats(self) -> int:
        return self.strength + self.agility + self.vitality + self.endurance

    def __repr__(self) -> str:
        return (
            f"<Hunter(id={self.id!r}, username={self.username!r}, "
            f"level={self.level}, rank={self.rank.value if self.rank else None})>"
        )
