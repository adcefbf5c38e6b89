"""Session source module."""

from .source import (
    ISessionSource,
    RawSessionRecord,
    SessionSource,
    parse_sessions_index,
    summarize_snapshots,
)

__all__ = [
    "ISessionSource",
    "RawSessionRecord",
    "SessionSource",
    "parse_sessions_index",
    "summarize_snapshots",
]
