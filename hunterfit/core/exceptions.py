"""
Infrastructure exceptions for HunterFit.

Purpose
-------
Define the structured exception hierarchy for infrastructure-level concerns:
database failures, configuration errors and event-bus problems that require
engineering attention rather than a player-facing message.

Design Notes
------------
- All infrastructure exceptions inherit from ``HunterFitInfrastructureException``.
- Each exception carries ``message``, ``details``, ``severity``,
  ``is_retryable`` and a stable ``error_code``.
- ``ErrorSeverity`` is shared with the domain exception hierarchy in
  ``hunterfit.modules.shared.exceptions``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"  # Expected, not concerning (e.g., cooldowns)
    INFO = "info"  # Normal operation (e.g., validation failures)
    WARNING = "warning"  # Concerning but handled
    ERROR = "error"  # Unexpected errors requiring attention
    CRITICAL = "critical"  # System-level failures requiring immediate action


class HunterFitInfrastructureException(Exception):
    """
    Base exception for all HunterFit infrastructure-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error
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


class ConfigurationError(HunterFitInfrastructureException):
    """
    Raised when a configuration key is invalid or missing.

    Args:
        config_key: The configuration key that has issues
        message: Description of the configuration problem
    """

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL

    def __init__(self, config_key: str, message: str) -> None:
        self.config_key = config_key
        super().__init__(
            f"Configuration error for {config_key}: {message}",
            details={"config_key": config_key, "message": message},
            error_code="CONFIG_ERROR",
        )


class DatabaseError(HunterFitInfrastructureException):
    """
    Raised when the backing store fails for a non-business reason.

    Transient by nature (connection drops, timeouts); retry policy belongs to
    the caller, never to the progression engines.
    """

    DEFAULT_RETRYABLE = True

    def __init__(self, operation: str, original_error: Optional[Exception] = None) -> None:
        self.operation = operation
        self.original_error = original_error
        reason = f": {original_error}" if original_error else ""
        super().__init__(
            f"Database error during {operation}{reason}",
            details={
                "operation": operation,
                "original_error_type": type(original_error).__name__
                if original_error
                else None,
            },
            error_code="DATABASE_ERROR",
        )
