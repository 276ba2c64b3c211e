"""
Event System for HunterFit.

Post-commit, in-process publish/subscribe for domain events.
"""

from .bus import EventBus, matches
from .types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)

__all__ = [
    "EventBus",
    "matches",
    "EventPayload",
    "ListenerPriority",
    "EventListener",
    "CallbackType",
]
