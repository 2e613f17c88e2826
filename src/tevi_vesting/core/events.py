"""
Ledger notifications.

The controller emits fire-and-forget events through an ``EventSink``. The
bundled ``EventLog`` keeps them in memory, like a contract's event log, and
mirrors each one to the module logger.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Protocol

logger = logging.getLogger(__name__)


class VestingEventType(Enum):
    CONFIGURED = "VestingConfigured"
    DEPOSITED = "TokensDeposited"
    STARTED = "VestingStarted"
    WHITELISTED = "UsersWhitelisted"
    CLAIMED = "TokensClaimed"
    PAUSED = "UserPaused"
    UNPAUSED = "UserUnpaused"


@dataclass
class VestingEvent:
    """Represents a ledger event."""

    event_type: VestingEventType
    timestamp: int
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "timestamp": self.timestamp,
            "data": dict(self.data),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VestingEvent":
        return cls(
            event_type=VestingEventType(data["event_type"]),
            timestamp=int(data["timestamp"]),
            data=dict(data.get("data", {})),
        )


class EventSink(Protocol):
    def emit(self, event: VestingEvent) -> None:
        ...


class EventLog:
    """In-memory event sink."""

    def __init__(self) -> None:
        self.events: List[VestingEvent] = []

    def emit(self, event: VestingEvent) -> None:
        self.events.append(event)
        logger.debug(
            "Event emitted",
            extra={"event": "vesting.event", "event_type": event.event_type.value, "timestamp": event.timestamp},
        )

    def of_type(self, event_type: VestingEventType) -> List[VestingEvent]:
        return [event for event in self.events if event.event_type == event_type]

    def to_list(self) -> List[Dict[str, Any]]:
        return [event.to_dict() for event in self.events]

    @classmethod
    def from_list(cls, items: List[Dict[str, Any]]) -> "EventLog":
        log = cls()
        log.events = [VestingEvent.from_dict(item) for item in items]
        return log
