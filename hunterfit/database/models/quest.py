"""
Quest catalog, daily assignments and the append-only completion history.
Schema only.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from hunterfit.core.database.base import (
    Base,
    IdMixin,
    TimestampMixin,
    UTCDateTime,
    enum_column,
    utc_now,
)
from hunterfit.database.models.enums import (
    HunterRank,
    QuestDifficulty,
    QuestStatus,
    QuestType,
)


class QuestTemplate(Base, IdMixin, TimestampMixin):
    """
    Read-only catalog entry.

    Targets are optional individually; a template defines at least one.
    Duration is in seconds, distance in meters.
    """

    __tablename__ = "quest_templates"
    __table_args__ = (
        CheckConstraint("base_xp >= 0", name="base_xp_non_negative"),
        CheckConstraint("min_level >= 1", name="min_level_positive"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    quest_type: Mapped[QuestType] = mapped_column(enum_column(QuestType), nullable=False)
    exercise_name: Mapped[str] = mapped_column(String(100), nullable=False)
    difficulty: Mapped[QuestDifficulty] = mapped_column(
        enum_column(QuestDifficulty), nullable=False, default=QuestDifficulty.EASY
    )

    target_reps: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    target_sets: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    target_duration: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    target_distance: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    base_xp: Mapped[int] = mapped_column(Integer, nullable=False)
    strength_bonus: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    agility_bonus: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    vitality_bonus: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    endurance_bonus: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    min_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    min_rank: Mapped[HunterRank] = mapped_column(
        enum_column(HunterRank), nullable=False, default=HunterRank.E
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class QuestAssignment(Base, IdMixin, TimestampMixin):
    """
    One template assigned to one hunter for one calendar date.

    Counters only grow. Immutable once Completed.
    """

    __tablename__ = "quest_assignments"
    __table_args__ = (
        UniqueConstraint("hunter_id", "quest_id", "quest_date", name="uq_quest_assignment_daily"),
        Index("ix_quest_assignments_hunter_date", "hunter_id", "quest_date"),
        CheckConstraint("progress >= 0 AND progress <= 100", name="progress_range"),
        CheckConstraint(
            "bonus_multiplier >= 0.5 AND bonus_multiplier <= 2.0",
            name="bonus_multiplier_range",
        ),
    )

    hunter_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("hunters.id", ondelete="CASCADE"), nullable=False
    )
    quest_id: Mapped[int] = mapped_column(
        ForeignKey("quest_templates.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    quest_date: Mapped[date] = mapped_column(Date, nullable=False)

    status: Mapped[QuestStatus] = mapped_column(
        enum_column(QuestStatus), nullable=False, default=QuestStatus.ASSIGNED
    )
    progress: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    current_reps: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_sets: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_duration: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_distance: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    xp_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bonus_multiplier: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)

    assigned_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utc_now)
    started_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)


class QuestHistory(Base, IdMixin):
    """Append-only record of a completed assignment."""

    __tablename__ = "quest_history"
    __table_args__ = (
        Index("ix_quest_history_hunter_completed", "hunter_id", "completed_at"),
    )

    hunter_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("hunters.id", ondelete="CASCADE"), nullable=False
    )
    quest_id: Mapped[int] = mapped_column(
        ForeignKey("quest_templates.id", ondelete="RESTRICT"), nullable=False
    )
    assignment_id: Mapped[int] = mapped_column(
        ForeignKey("quest_assignments.id", ondelete="CASCADE"), nullable=False, unique=True
    )

    completed_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    xp_earned: Mapped[int] = mapped_column(Integer, nullable=False)
    completion_seconds: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    perfect_execution: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    bonus_multiplier: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)

    final_reps: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    final_sets: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    final_duration: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    final_distance: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utc_now)
