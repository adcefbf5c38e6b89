"""Session-related data models."""

from dataclasses import dataclass
from typing import Any

ACTIVE_STATUSES = frozenset({"active", "running"})

# Fields compared between ticks to decide whether a session was updated
WATCHED_FIELDS = (
    "total_tokens",
    "input_tokens",
    "output_tokens",
    "status",
    "updated_at",
    "last_activity",
)

# Token fields reported with a delta in session-updated changes
TOKEN_FIELDS = {
    "total_tokens": "totalTokens",
    "input_tokens": "inputTokens",
    "output_tokens": "outputTokens",
}


def is_active_status(status: str | None) -> bool:
    """Whether a status string denotes a running session."""
    return status in ACTIVE_STATUSES


@dataclass(frozen=True)
class SessionSnapshot:
    """A session as observed at one reconciliation tick."""

    id: str
    key: str
    model: str = "unknown"
    status: str = "idle"
    kind: str = "unknown"
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    context_tokens: int | None = None
    start_time: int | None = None  # epoch millis
    last_activity: int | None = None
    updated_at: int | None = None
    created_at: int | None = None
    aborted: bool = False

    @property
    def is_active(self) -> bool:
        return is_active_status(self.status)

    def to_dict(self) -> dict[str, Any]:
        """Wire representation (camelCase, as consumed by dashboards)."""
        return {
            "id": self.id,
            "sessionKey": self.key,
            "kind": self.kind,
            "model": self.model,
            "status": self.status,
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "totalTokens": self.total_tokens,
            "contextTokens": self.context_tokens,
            "startTime": self.start_time,
            "lastActivity": self.last_activity,
            "updatedAt": self.updated_at,
            "createdAt": self.created_at,
            "aborted": self.aborted,
        }


def has_changed(old: SessionSnapshot, new: SessionSnapshot) -> bool:
    """Field-level comparison of the watched fields."""
    return any(getattr(old, name) != getattr(new, name) for name in WATCHED_FIELDS)


def diff_snapshots(old: SessionSnapshot, new: SessionSnapshot) -> dict[str, dict]:
    """Describe token and status changes between two snapshots of one session.

    Token fields report ``{old, new, delta}``; status reports ``{old, new}``.
    Timestamp-only changes produce an empty dict.
    """
    changes: dict[str, dict] = {}

    for attr, wire_name in TOKEN_FIELDS.items():
        before = getattr(old, attr)
        after = getattr(new, attr)
        if before != after:
            changes[wire_name] = {"old": before, "new": after, "delta": after - before}

    if old.status != new.status:
        changes["status"] = {"old": old.status, "new": new.status}

    return changes
