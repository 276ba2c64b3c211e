"""Per-hunter serialization for progression mutations."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from time import monotonic
from typing import AsyncIterator, Optional

from hunterfit.core.logging.logger import get_logger

logger = get_logger(__name__)


@dataclass
class _HunterGuardState:
    """Lock plus the number of coroutines holding or waiting on it."""

    lock: Optional[asyncio.Lock] = None
    holders: int = 0
    acquisitions: int = field(default=0)

    def get_lock(self) -> asyncio.Lock:
        if self.lock is None:
            self.lock = asyncio.Lock()
        return self.lock


class HunterMutationGuard:
    """
    Serialize mutations of a single hunter's aggregate inside this process.

    Every write operation enters ``acquire(hunter_id)`` before opening its
    transaction, so read-check-write sequences for one hunter (active raid
    check, equip-slot swap, daily quest generation, XP award) never
    interleave. Different hunters never contend. Cross-process safety comes
    from the row lock taken inside the transaction and from the store's
    unique constraints.
    """

    def __init__(self, *, slow_acquire_warning_seconds: float = 1.0) -> None:
        self._states: dict[str, _HunterGuardState] = {}
        self._slow_acquire_warning = slow_acquire_warning_seconds

    @asynccontextmanager
    async def acquire(self, hunter_id: str) -> AsyncIterator[None]:
        state = self._states.setdefault(hunter_id, _HunterGuardState())
        state.holders += 1
        lock = state.get_lock()

        start = monotonic()
        try:
            await lock.acquire()
        except BaseException:
            self._release_state(hunter_id, state)
            raise

        waited = monotonic() - start
        if waited >= self._slow_acquire_warning:
            logger.warning(
                "Slow hunter mutation lock acquisition",
                extra={"hunter_id": hunter_id, "waited_seconds": round(waited, 3)},
            )

        state.acquisitions += 1
        try:
            yield
        finally:
            lock.release()
            self._release_state(hunter_id, state)

    def _release_state(self, hunter_id: str, state: _HunterGuardState) -> None:
        state.holders -= 1
        if state.holders <= 0 and self._states.get(hunter_id) is state:
            del self._states[hunter_id]

    def is_locked(self, hunter_id: str) -> bool:
        state = self._states.get(hunter_id)
        return bool(state and state.lock and state.lock.locked())

    @property
    def tracked_hunters(self) -> int:
        return len(self._states)
