"""
Domain exceptions for HunterFit.

Purpose
-------
Define the structured exception hierarchy for progression rules. Services
raise these for business rule violations; the calling layer decides how to
render them.

Design Notes
------------
- All domain exceptions inherit from ``HunterFitDomainException``.
- Each exception carries:
  - ``message``: human-readable description
  - ``details``: additional structured context (dict-like)
  - ``severity``: ``ErrorSeverity`` value for logging/alerting
  - ``is_retryable``: always False here; every rejection is deterministic
  - ``error_code``: short, stable identifier for programmatic use
- Every rejection happens before the transaction commits, so a raised domain
  exception always means "no state changed".
- Helper functions (``is_transient_error``, ``get_error_severity``,
  ``should_alert``) centralize common handling patterns.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from hunterfit.core.exceptions import ErrorSeverity


class HunterFitDomainException(Exception):
    """
    Base exception for all HunterFit domain-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error (dict-like)
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class NotFoundError(HunterFitDomainException):
    """
    Raised when a hunter, assignment, raid, equipment or achievement id is
    unknown (or not owned by the acting hunter).

    Args:
        resource_type: Type of resource (e.g., "Hunter", "DungeonRaid")
        identifier: Optional identifier for the missing resource
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier

        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"

        super().__init__(
            message,
            details={
                "resource_type": resource_type,
                "identifier": identifier,
            },
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class ValidationError(HunterFitDomainException):
    """
    Raised when numeric or structural input is out of range (negative XP,
    progress outside [0, 100], negative counters). Rejected before mutation.

    Args:
        field: Name of the field that failed validation
        message: Explanation of why validation failed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={
                "field": field,
                "validation_message": message,
            },
            error_code=f"VALIDATION_{field.upper()}",
        )


class InvalidStateError(HunterFitDomainException):
    """
    Raised when an operation is attempted from a state that does not permit
    it (completing a completed quest, starting a second live raid, equipping
    an equipped item).

    Args:
        action: The attempted action (e.g., "complete_quest")
        reason: The violated precondition
        current_state: Optional current state value for diagnostics

    Example:
        >>> raise InvalidStateError("start_raid", "another raid is in progress")
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(
        self,
        action: str,
        reason: str,
        current_state: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.action = action
        self.reason = reason
        self.current_state = current_state
        super().__init__(
            f"Invalid operation '{action}': {reason}",
            details={
                "action": action,
                "reason": reason,
                "current_state": current_state,
                **(details or {}),
            },
            error_code=error_code or f"INVALID_{action.upper()}",
        )


class CooldownActiveError(InvalidStateError):
    """
    Raised when a dungeon is still on cooldown for the hunter.

    Not retryable: the caller must wait until ``available_at``; the core never
    retries on its own.

    Args:
        action: Name of the action on cooldown
        remaining_seconds: Time remaining until cooldown expires
        available_at: When the action becomes available again
    """

    DEFAULT_SEVERITY = ErrorSeverity.DEBUG

    def __init__(self, action: str, remaining_seconds: float, available_at: datetime) -> None:
        self.remaining_seconds = remaining_seconds
        self.available_at = available_at
        super().__init__(
            action,
            f"on cooldown: {remaining_seconds:.1f}s remaining",
            details={
                "remaining_seconds": remaining_seconds,
                "available_at": available_at.isoformat(),
            },
            error_code="COOLDOWN_ACTIVE",
        )


class IneligibleAccessError(HunterFitDomainException):
    """
    Raised when a level or rank gate is not met. Carries the required
    thresholds so the caller can render guidance.
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(
        self,
        resource: str,
        required_level: int,
        required_rank: str,
        current_level: int,
        current_rank: str,
    ) -> None:
        self.resource = resource
        self.required_level = required_level
        self.required_rank = required_rank
        self.current_level = current_level
        self.current_rank = current_rank
        super().__init__(
            f"{resource} requires level {required_level} and rank {required_rank} "
            f"(hunter is level {current_level}, rank {current_rank})",
            details={
                "resource": resource,
                "required_level": required_level,
                "required_rank": required_rank,
                "current_level": current_level,
                "current_rank": current_rank,
            },
            error_code="INELIGIBLE_ACCESS",
        )


# Utility functions for exception handling patterns


def is_transient_error(exc: Exception) -> bool:
    """True only for exceptions that declare themselves retryable."""
    if isinstance(exc, HunterFitDomainException):
        return exc.is_retryable
    return bool(getattr(exc, "is_retryable", False))


def get_error_severity(exc: Exception) -> ErrorSeverity:
    severity = getattr(exc, "severity", None)
    if isinstance(severity, ErrorSeverity):
        return severity
    return ErrorSeverity.ERROR


def should_alert(exc: Exception) -> bool:
    """True if severity is ERROR or CRITICAL."""
    return get_error_severity(exc) in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
