"""
HunterFit Shared Module

Domain-level foundations for every engine:
- Domain exceptions and error helpers
- Base service and repository patterns
- Pure progression formulas
- Raise-on-error validators

Usage
-----
    from hunterfit.modules.shared import (
        BaseService,
        BaseRepository,
        NotFoundError,
        xp_required_for_level,
    )
"""

from __future__ import annotations

from .base_repository import BaseRepository
from .base_service import BaseService
from .exceptions import (
    CooldownActiveError,
    ErrorSeverity,
    HunterFitDomainException,
    IneligibleAccessError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
    get_error_severity,
    is_transient_error,
    should_alert,
)
from .formulas import (
    apply_level_ups,
    effective_xp_multiplier,
    equipment_power,
    estimated_quest_minutes,
    level_progress_percentage,
    meets_gate,
    quest_bonus_multiplier,
    quest_progress,
    raid_time_bonus,
    raid_xp_reward,
    rank_for_level,
    scaled_quest_xp,
    success_rate_estimate,
    xp_required_for_level,
)
from .validators import (
    validate_cooldown,
    validate_gate,
    validate_non_negative,
)

__all__ = [
    # Base patterns
    "BaseService",
    "BaseRepository",
    # Exceptions
    "HunterFitDomainException",
    "ErrorSeverity",
    "NotFoundError",
    "ValidationError",
    "InvalidStateError",
    "CooldownActiveError",
    "IneligibleAccessError",
    "is_transient_error",
    "get_error_severity",
    "should_alert",
    # Formulas
    "xp_required_for_level",
    "rank_for_level",
    "apply_level_ups",
    "level_progress_percentage",
    "meets_gate",
    "estimated_quest_minutes",
    "quest_progress",
    "scaled_quest_xp",
    "quest_bonus_multiplier",
    "raid_time_bonus",
    "raid_xp_reward",
    "success_rate_estimate",
    "effective_xp_multiplier",
    "equipment_power",
    # Validators
    "validate_non_negative",
    "validate_gate",
    "validate_cooldown",
]
