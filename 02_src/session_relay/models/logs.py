"""Log-related data models."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class LogEvent:
    """A normalized log entry derived from one session transcript line."""

    id: str
    timestamp: str
    message: str
    level: str
    raw: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "message": self.message,
            "level": self.level,
            "raw": self.raw,
        }


@dataclass
class TailerState:
    """Read position of one tailed session file."""

    session_id: str
    path: str
    offset: int
    carry: bytes = b""  # unterminated fragment from the previous read
    inode: int | None = None  # None while the file is missing
