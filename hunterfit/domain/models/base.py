"""
Base domain event for HunterFit.

Purpose
-------
``DomainEvent`` is the transport shape handed to the ``EventBus`` after a
transaction commits: a bus name, a JSON-friendly payload and a timestamp.
The tagged variants in ``events`` convert into it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict


@dataclass
class DomainEvent:
    """
    A domain event that has occurred.

    Attributes
    ----------
    event_name : str
        Bus name (e.g., "hunter.leveled_up")
    payload : Dict[str, Any]
        Event payload with relevant data
    occurred_at : datetime
        When the event occurred (UTC)
    """

    event_name: str
    payload: Dict[str, Any]
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
