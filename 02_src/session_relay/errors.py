"""Exception hierarchy for Session Relay.

Errors carry a ``context`` dict (session id, file path, byte range, ...)
that is rendered into the message and forwarded to structured logs.
Only source and storage failures are raised to callers; malformed log
lines are raised inside the tailer and contained there.
"""

from typing import Any


class RelayError(Exception):
    """Base class for all relay errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        self.message = message
        self.context = context or {}

        full_message = message
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            full_message = f"{message} [{context_str}]"
        super().__init__(full_message)


class SessionSourceError(RelayError):
    """Snapshot fetch failed; the current tick is skipped."""


class SourceUnavailableError(SessionSourceError):
    """The sessions index is missing or unreadable."""


class MalformedDataError(SessionSourceError):
    """The sessions index was read but does not have the expected shape."""


class MalformedLineError(RelayError):
    """A complete log line could not be parsed into a JSON object."""


class StorageNotInitializedError(RelayError, RuntimeError):
    """Storage used before init() or after close()."""

    def __init__(self, message: str = "Storage not initialized"):
        super().__init__(message)
