"""Core data models for Session Relay."""

from .agents import AgentRecord, LogRecord
from .events import BroadcastEvent, EventType, now_millis
from .logs import LogEvent, TailerState
from .sessions import (
    ACTIVE_STATUSES,
    SessionSnapshot,
    diff_snapshots,
    has_changed,
    is_active_status,
)

__all__ = [
    # Sessions
    "ACTIVE_STATUSES",
    "SessionSnapshot",
    "diff_snapshots",
    "has_changed",
    "is_active_status",
    # Logs
    "LogEvent",
    "TailerState",
    # Events
    "BroadcastEvent",
    "EventType",
    "now_millis",
    # Store
    "AgentRecord",
    "LogRecord",
]
