"""Broadcast event models."""

import json
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any


class EventType(str, Enum):
    """Event types delivered to subscribers."""

    SESSION_STARTED = "session-started"
    SESSION_UPDATED = "session-updated"
    SESSION_COMPLETED = "session-completed"
    LOG_UPDATE = "log-update"
    STATS_UPDATED = "stats-updated"
    # Published by the request layer
    AGENT_STARTED = "agent-started"
    AGENT_UPDATED = "agent-updated"
    AGENT_COMPLETED = "agent-completed"
    AGENT_ERROR = "agent-error"
    LOGS_CLEARED = "logs-cleared"


def now_millis() -> int:
    """Wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass
class BroadcastEvent:
    """An ephemeral notification fanned out to all subscribers."""

    type: str
    data: Any
    timestamp: int  # epoch millis

    @classmethod
    def create(cls, event_type: "EventType | str", data: Any) -> "BroadcastEvent":
        """Stamp an event with the current wall-clock time."""
        type_name = event_type.value if isinstance(event_type, EventType) else str(event_type)
        return cls(type=type_name, data=data, timestamp=now_millis())

    def to_json(self) -> str:
        return json.dumps(
            {"type": self.type, "data": self.data, "timestamp": self.timestamp},
            default=str,
        )
