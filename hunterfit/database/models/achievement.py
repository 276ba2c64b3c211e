"""
Achievement catalog and per-hunter progress rows.
Schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
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
)
from hunterfit.database.models.enums import AchievementCategory, AchievementType


class AchievementTemplate(Base, IdMixin, TimestampMixin):
    __tablename__ = "achievement_templates"
    __table_args__ = (
        CheckConstraint("xp_reward >= 0", name="xp_reward_non_negative"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[AchievementCategory] = mapped_column(
        enum_column(AchievementCategory), nullable=False, default=AchievementCategory.MILESTONE
    )
    achievement_type: Mapped[AchievementType] = mapped_column(
        enum_column(AchievementType), nullable=False, default=AchievementType.COUNTER
    )
    target_value: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    xp_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    title_reward: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    is_hidden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class HunterAchievement(Base, IdMixin, TimestampMixin):
    """
    Progress join row, created lazily on the first matching event.

    ``current_progress`` never decreases and ``is_unlocked`` never reverts.
    """

    __tablename__ = "hunter_achievements"
    __table_args__ = (
        UniqueConstraint("hunter_id", "achievement_id", name="uq_hunter_achievement"),
        CheckConstraint("current_progress >= 0", name="progress_non_negative"),
    )

    hunter_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("hunters.id", ondelete="CASCADE"), nullable=False, index=True
    )
    achievement_id: Mapped[int] = mapped_column(
        ForeignKey("achievement_templates.id", ondelete="RESTRICT"), nullable=False
    )
    current_progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_unlocked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    unlocked_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
