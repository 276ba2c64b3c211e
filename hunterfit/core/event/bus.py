"""
HunterFit EventBus: async pub/sub with tiered concurrency.

Purpose
-------
Deliver committed domain events (quest completed, raid failed, level up, ...)
to external listeners such as notifications, analytics or audit sinks.

Responsibilities
----------------
- Register/unregister listeners with priorities
- Publish events to all matching listeners (exact + wildcard patterns)
- Execute listeners according to the tiered concurrency model:
  * CRITICAL: sequential, ordered, awaited with timeout
  * HIGH: sequential, ordered, awaited with timeout
  * NORMAL: concurrent (gather), awaited
  * LOW: fire-and-forget background tasks
- Error isolation (one failing listener never blocks others)

Non-Responsibilities
--------------------
- Achievement processing. Engines hand domain events to the Achievement
  Engine directly inside the originating transaction; the bus only sees
  events after commit, so a listener can never re-enter progression state.

Design Decisions
----------------
- **Instance-based**: multiple buses are allowed (useful for testing)
- **Wildcard support**: ``"quest.*"``, ``"*.completed"``, ``"*"``
- **Config-driven timeouts** via ConfigManager
"""

from __future__ import annotations

import asyncio
import inspect
from collections import defaultdict
from typing import Any, Optional

from hunterfit.core.event.types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)
from hunterfit.core.logging.logger import get_logger

logger = get_logger(__name__)


def matches(event_name: str, pattern: str) -> bool:
    """
    Check if an event name matches a wildcard pattern.

    >>> matches("quest.completed", "quest.*")
    True
    >>> matches("raid.failed", "*.completed")
    False
    """
    if pattern == "*":
        return True
    if "*" not in pattern:
        return event_name == pattern

    while "**" in pattern:
        pattern = pattern.replace("**", "*")

    parts = pattern.split("*")
    if parts[0] and not event_name.startswith(parts[0]):
        return False
    if parts[-1] and not event_name.endswith(parts[-1]):
        return False

    idx = len(parts[0])
    for mid in parts[1:-1]:
        if not mid:
            continue
        next_idx = event_name.find(mid, idx)
        if next_idx == -1:
            return False
        idx = next_idx + len(mid)

    end_limit = len(event_name) - len(parts[-1])
    return idx <= end_limit


class EventBus:
    """
    Async EventBus with tiered listener execution.

    Thread Safety
    -------------
    Designed for single-threaded asyncio usage. All methods must be called from
    the same event loop.

    Examples
    --------
    >>> bus = EventBus()
    >>> bus.subscribe("hunter.leveled_up", on_level_up, priority=ListenerPriority.HIGH)
    >>> await bus.publish("hunter.leveled_up", {"hunter_id": "...", "new_level": 10})
    """

    def __init__(
        self,
        config_manager: Optional[Any] = None,
        *,
        critical_timeout_seconds: Optional[float] = None,
        high_timeout_seconds: Optional[float] = None,
    ) -> None:
        self._config_manager = config_manager
        self._listeners: dict[str, list[EventListener]] = defaultdict(list)
        self._background_tasks: set[asyncio.Task[Any]] = set()
        self._published: dict[str, int] = defaultdict(int)
        self._errors: dict[str, int] = defaultdict(int)

        self._critical_timeout = self._load_timeout(
            key="core.event.listener_timeout.critical_seconds",
            override=critical_timeout_seconds,
            default=5.0,
        )
        self._high_timeout = self._load_timeout(
            key="core.event.listener_timeout.high_seconds",
            override=high_timeout_seconds,
            default=5.0,
        )

    def _load_timeout(self, key: str, override: Optional[float], default: float) -> float:
        """Resolve a timeout: override, then config, then default."""
        if override is not None:
            return float(override)
        if self._config_manager is None:
            return float(default)
        return float(self._config_manager.get(key, default))

    # ------------------------------------------------------------------ #
    # Subscription API
    # ------------------------------------------------------------------ #

    @staticmethod
    def _validate_callback_signature(callback: CallbackType) -> None:
        """Ensure the callback accepts exactly one positional parameter."""
        try:
            sig = inspect.signature(callback)
        except (TypeError, ValueError):
            return

        params = list(sig.parameters.values())
        if len(params) != 1:
            callback_name = getattr(callback, "__qualname__", repr(callback))
            raise ValueError(
                f"Event listener must accept exactly 1 parameter (EventPayload), "
                f"got {len(params)} parameters for '{callback_name}'"
            )

    def subscribe(
        self,
        event_name: str,
        callback: CallbackType,
        *,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
        once: bool = False,
    ) -> str:
        """
        Subscribe a callback to an event name or wildcard pattern.

        Returns the listener identifier for ``unsubscribe``. Registering the
        same identifier twice for one pattern is a no-op.
        """
        self._validate_callback_signature(callback)

        listener = EventListener.from_callback(
            event_name=event_name,
            callback=callback,
            priority=priority,
            identifier=identifier,
            once=once,
        )

        existing = self._listeners[event_name]
        if any(lst.identifier == listener.identifier for lst in existing):
            logger.warning(
                "EventBus: duplicate listener prevented",
                extra={"event_name": event_name, "listener_id": listener.identifier},
            )
            return listener.identifier

        existing.append(listener)
        existing.sort(key=lambda lst: lst.priority.value)

        logger.debug(
            "EventBus: subscribed listener",
            extra={
                "event_name": event_name,
                "listener_id": listener.identifier,
                "priority": listener.priority.name,
                "once": listener.once,
            },
        )
        return listener.identifier

    def unsubscribe(self, event_name: str, identifier: str) -> bool:
        listeners = self._listeners.get(event_name, [])
        remaining = [lst for lst in listeners if lst.identifier != identifier]
        removed = len(remaining) != len(listeners)
        if remaining:
            self._listeners[event_name] = remaining
        else:
            self._listeners.pop(event_name, None)
        return removed

    def clear(self) -> None:
        """Remove all listeners. Intended for tests or full reinit."""
        total = self.get_listener_count()
        self._listeners.clear()
        logger.info(
            "EventBus: cleared all listeners",
            extra={"previous_listener_count": total},
        )

    def _extract_listeners(self, event_name: str) -> list[EventListener]:
        """Collect matching listeners in priority order and prune ``once`` ones."""
        collected: list[EventListener] = []
        for pattern in list(self._listeners):
            if not matches(event_name, pattern):
                continue
            listeners = self._listeners[pattern]
            collected.extend(listeners)
            kept = [lst for lst in listeners if not lst.once]
            if kept:
                self._listeners[pattern] = kept
            else:
                del self._listeners[pattern]
        collected.sort(key=lambda lst: lst.priority.value)
        return collected

    # ------------------------------------------------------------------ #
    # Publish API
    # ------------------------------------------------------------------ #

    async def publish(self, event_name: str, data: EventPayload) -> list[Any]:
        """
        Publish an event to all subscribed listeners.

        Returns results from CRITICAL/HIGH/NORMAL listeners; LOW listeners are
        fire-and-forget and not included.
        """
        self._published[event_name] += 1

        listeners = self._extract_listeners(event_name)
        if not listeners:
            logger.debug("EventBus: no listeners for event", extra={"event_name": event_name})
            return []

        results: list[Any] = []

        for listener in listeners:
            if listener.priority is ListenerPriority.CRITICAL:
                results.append(
                    await self._run_with_timeout(listener, event_name, data, self._critical_timeout)
                )
        for listener in listeners:
            if listener.priority is ListenerPriority.HIGH:
                results.append(
                    await self._run_with_timeout(listener, event_name, data, self._high_timeout)
                )

        normal = [lst for lst in listeners if lst.priority is ListenerPriority.NORMAL]
        if normal:
            results.extend(
                await asyncio.gather(
                    *[self._run_listener(lst, event_name, data) for lst in normal]
                )
            )

        loop = asyncio.get_running_loop()
        for listener in listeners:
            if listener.priority is ListenerPriority.LOW:
                task = loop.create_task(
                    self._run_listener(listener, event_name, data),
                    name=f"eventbus-low-{event_name}-{listener.identifier}",
                )
                self._background_tasks.add(task)
                task.add_done_callback(self._background_tasks.discard)

        return results

    async def _run_with_timeout(
        self,
        listener: EventListener,
        event_name: str,
        payload: EventPayload,
        timeout: Optional[float],
    ) -> Any:
        if timeout is None or timeout <= 0:
            return await self._run_listener(listener, event_name, payload)

        try:
            return await asyncio.wait_for(
                self._run_listener(listener, event_name, payload),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            self._errors[event_name] += 1
            logger.error(
                "EventBus listener timeout",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "priority": listener.priority.name,
                    "timeout_seconds": timeout,
                },
            )
            return None

    async def _run_listener(
        self,
        listener: EventListener,
        event_name: str,
        payload: EventPayload,
    ) -> Any:
        """Run one listener; errors are logged and isolated from the publisher."""
        try:
            if asyncio.iscoroutinefunction(listener.callback):
                return await listener.callback(payload)
            result = listener.callback(payload)
            if inspect.isawaitable(result):
                return await result
            return result
        except Exception as exc:
            self._errors[event_name] += 1
            logger.error(
                "EventBus listener failed",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "priority": listener.priority.name,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            return None

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    def get_listener_count(self, event_name: Optional[str] = None) -> int:
        if event_name is None:
            return sum(len(lst) for lst in self._listeners.values())
        return sum(
            len(lst) for pattern, lst in self._listeners.items() if matches(event_name, pattern)
        )

    def get_metrics_summary(self) -> dict[str, Any]:
        total_published = sum(self._published.values())
        total_errors = sum(self._errors.values())
        return {
            "total_events_published": total_published,
            "events_by_type": dict(self._published),
            "total_errors": total_errors,
            "errors_by_event": dict(self._errors),
            "total_listeners": self.get_listener_count(),
            "background_tasks": len(self._background_tasks),
        }
