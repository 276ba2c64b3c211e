"""
Base Service Foundation

Purpose
-------
Provides the foundational class for the HunterFit engine services. Services
implement the progression rules, open transactions, enforce invariants and
publish domain events after commit.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Safe config access patterns
- Post-commit event publication
- Validation helpers raising domain exceptions
- Per-hunter mutation scope (guard + transaction)

What this class does NOT do:
- Contain progression rules (see ``formulas`` and the engine services)
- Retry failed transactions

Usage
-----
    class QuestService(BaseService):
        async def start_quest(self, hunter_id: str, assignment_id: int):
            async with self.hunter_transaction(hunter_id) as session:
                ...
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncIterator, Dict, Iterable, Optional

from hunterfit.core.database.service import DatabaseService
from hunterfit.core.exceptions import ConfigurationError
from hunterfit.core.logging.logger import LogContext

from .exceptions import ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from hunterfit.core.clock import Clock
    from hunterfit.core.database.guard import HunterMutationGuard
    from hunterfit.core.event.bus import EventBus
    from hunterfit.domain.models.events import GameEvent


class BaseService:
    """
    Base class for all engine services.

    Args:
        config_manager: Application configuration manager
        event_bus: Event bus for post-commit publication
        logger: Structured logger instance
        clock: Time source
        guard: Per-hunter mutation guard shared by every service
    """

    def __init__(
        self,
        config_manager: Any,
        event_bus: EventBus,
        logger: Logger,
        clock: Clock,
        guard: HunterMutationGuard,
    ) -> None:
        self._config = config_manager
        self._events = event_bus
        self.log = logger
        self.clock = clock
        self.guard = guard

    def get_config(
        self, key: str, default: Optional[Any] = None, required: bool = False
    ) -> Any:
        """
        Safely retrieve a configuration value.

        Raises:
            ConfigurationError: If required=True and key is missing
        """
        value = self._config.get(key, default)
        if required and value is None:
            raise ConfigurationError(
                key, f"Required configuration key '{key}' is missing"
            )
        return value

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #

    @asynccontextmanager
    async def hunter_transaction(
        self, hunter_id: str, operation: Optional[str] = None
    ) -> AsyncIterator[AsyncSession]:
        """
        Serialize on ``hunter_id`` then open an atomic transaction.

        Everything done inside commits together or not at all.
        """
        async with LogContext(
            hunter_id=hunter_id,
            component=type(self).__name__,
            operation=operation,
        ):
            async with self.guard.acquire(hunter_id):
                async with DatabaseService.get_transaction() as session:
                    yield session

    @asynccontextmanager
    async def read_session(self) -> AsyncIterator[AsyncSession]:
        async with DatabaseService.get_session() as session:
            yield session

    # ------------------------------------------------------------------ #
    # Events
    # ------------------------------------------------------------------ #

    async def emit_event(
        self,
        event_type: str,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        await self._events.publish(event_type, {**data, **(context or {})})

    async def publish_events(self, events: Iterable[GameEvent]) -> None:
        """Publish committed gameplay events in emission order."""
        for event in events:
            domain_event = event.to_domain_event()
            await self.emit_event(domain_event.event_name, domain_event.payload)

    # ------------------------------------------------------------------ #
    # Logging
    # ------------------------------------------------------------------ #

    def log_operation(self, operation: str, **context: Any) -> None:
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    # ------------------------------------------------------------------ #
    # Validation
    # ------------------------------------------------------------------ #

    def validate_positive_int(self, value: int, name: str) -> None:
        if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
            raise ValidationError(
                name, f"{name} must be a positive integer, got {value}"
            )

    def validate_non_negative_int(self, value: int, name: str) -> None:
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise ValidationError(
                name, f"{name} must be a non-negative integer, got {value}"
            )
