"""Session Relay: live session lifecycle and log streaming."""

from .app import Application, IApplication
from .config import RelaySettings
from .hub import BroadcastHub, IBroadcastHub
from .models import (
    AgentRecord,
    BroadcastEvent,
    EventType,
    LogEvent,
    LogRecord,
    SessionSnapshot,
    TailerState,
)
from .reconciler import ISessionReconciler, SessionReconciler
from .source import ISessionSource, SessionSource
from .storage import IStorage, Storage
from .tailer import ILogTailer, LogTailer

__all__ = [
    # Application
    "Application",
    "IApplication",
    "RelaySettings",
    # Models
    "SessionSnapshot",
    "LogEvent",
    "TailerState",
    "BroadcastEvent",
    "EventType",
    "AgentRecord",
    "LogRecord",
    # Components
    "ISessionSource",
    "SessionSource",
    "ILogTailer",
    "LogTailer",
    "IBroadcastHub",
    "BroadcastHub",
    "ISessionReconciler",
    "SessionReconciler",
    "IStorage",
    "Storage",
]
