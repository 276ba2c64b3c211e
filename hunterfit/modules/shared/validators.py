"""
HunterFit Domain Validators

Purpose
-------
Raise-on-error guards for business rules shared by the engines. They
operate on values already loaded by the caller and never touch the store.

Usage
-----
    from hunterfit.modules.shared.validators import validate_gate

    validate_gate("Dungeon 'Iron Gate'", hunter.level, hunter.rank, 10, HunterRank.D)
    # Raises: IneligibleAccessError
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from hunterfit.database.models.enums import HunterRank
from hunterfit.modules.shared.exceptions import (
    CooldownActiveError,
    IneligibleAccessError,
    ValidationError,
)
from hunterfit.modules.shared.formulas import meets_gate


def validate_non_negative(value: Optional[float], field: str) -> None:
    if value is None:
        return
    if value < 0:
        raise ValidationError(field, f"must be non-negative, got {value}")


def validate_gate(
    resource: str,
    hunter_level: int,
    hunter_rank: HunterRank,
    min_level: int,
    min_rank: HunterRank,
) -> None:
    if not meets_gate(hunter_level, hunter_rank, min_level, min_rank):
        raise IneligibleAccessError(
            resource=resource,
            required_level=min_level,
            required_rank=min_rank.value,
            current_level=hunter_level,
            current_rank=hunter_rank.value,
        )


def validate_cooldown(action: str, available_at: Optional[datetime], now: datetime) -> None:
    """Reject while ``now < available_at``; the boundary instant is allowed."""
    if available_at is None or now >= available_at:
        return
    raise CooldownActiveError(
        action,
        remaining_seconds=(available_at - now).total_seconds(),
        available_at=available_at,
    )
