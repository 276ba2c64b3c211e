"""
Dungeon catalog, ordered exercise steps and raid attempts.
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
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hunterfit.core.database.base import (
    Base,
    IdMixin,
    TimestampMixin,
    UTCDateTime,
    enum_column,
)
from hunterfit.database.models.enums import (
    DungeonDifficulty,
    DungeonType,
    HunterRank,
    RaidStatus,
)

LIVE_RAID_PREDICATE = "status IN ('Started', 'InProgress')"


class DungeonTemplate(Base, IdMixin, TimestampMixin):
    """Read-only catalog entry. ``estimated_minutes`` drives the time bonus."""

    __tablename__ = "dungeon_templates"
    __table_args__ = (
        CheckConstraint("min_level >= 1", name="min_level_positive"),
        CheckConstraint("cooldown_hours >= 0", name="cooldown_non_negative"),
        CheckConstraint("estimated_minutes > 0", name="estimated_minutes_positive"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    dungeon_type: Mapped[DungeonType] = mapped_column(
        enum_column(DungeonType), nullable=False, default=DungeonType.TRAINING_GROUNDS
    )
    difficulty: Mapped[DungeonDifficulty] = mapped_column(
        enum_column(DungeonDifficulty), nullable=False, default=DungeonDifficulty.NORMAL
    )

    min_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    min_rank: Mapped[HunterRank] = mapped_column(
        enum_column(HunterRank), nullable=False, default=HunterRank.E
    )
    energy_cost: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    cooldown_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=24)
    base_xp: Mapped[int] = mapped_column(Integer, nullable=False)
    bonus_xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    estimated_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    exercises: Mapped[list["DungeonExercise"]] = relationship(
        "DungeonExercise",
        order_by="DungeonExercise.exercise_order",
        lazy="selectin",
        cascade="all, delete-orphan",
    )


class DungeonExercise(Base, IdMixin):
    __tablename__ = "dungeon_exercises"
    __table_args__ = (
        UniqueConstraint("dungeon_id", "exercise_order", name="uq_dungeon_exercise_order"),
    )

    dungeon_id: Mapped[int] = mapped_column(
        ForeignKey("dungeon_templates.id", ondelete="CASCADE"), nullable=False
    )
    exercise_order: Mapped[int] = mapped_column(Integer, nullable=False)
    exercise_name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    target_reps: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    target_sets: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    target_duration: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    rest_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=30)


class DungeonRaid(Base, IdMixin, TimestampMixin):
    """
    One raid attempt.

    At most one live (Started or InProgress) raid per hunter; the partial
    unique index enforces it in the store as well.
    """

    __tablename__ = "dungeon_raids"
    __table_args__ = (
        Index(
            "uq_dungeon_raids_live_hunter",
            "hunter_id",
            unique=True,
            postgresql_where=text(LIVE_RAID_PREDICATE),
            sqlite_where=text(LIVE_RAID_PREDICATE),
        ),
        Index("ix_dungeon_raids_hunter_dungeon_started", "hunter_id", "dungeon_id", "started_at"),
        CheckConstraint("progress >= 0 AND progress <= 100", name="progress_range"),
    )

    hunter_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("hunters.id", ondelete="CASCADE"), nullable=False
    )
    dungeon_id: Mapped[int] = mapped_column(
        ForeignKey("dungeon_templates.id", ondelete="RESTRICT"), nullable=False
    )

    status: Mapped[RaidStatus] = mapped_column(
        enum_column(RaidStatus), nullable=False, default=RaidStatus.STARTED
    )
    progress: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_duration: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    xp_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completion_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    started_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    next_available_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
