"""Session source adapter over the producer's sessions.json index."""

import asyncio
import json
import math
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..errors import MalformedDataError, SourceUnavailableError
from ..logging_config import get_logger
from ..models import SessionSnapshot, now_millis

logger = get_logger(__name__)

SESSIONS_INDEX_NAME = "sessions.json"
LOG_FILE_SUFFIX = ".jsonl"
RECENT_WINDOW_MS = 10 * 60 * 1000


class ISessionSource(Protocol):
    """Read-only view of the external session set."""

    async def fetch_snapshots(self) -> list[SessionSnapshot]:
        """Return fresh snapshots; raises SessionSourceError on failure."""
        ...

    def log_path(self, session_id: str) -> Path:
        """Transcript file for a session."""
        ...


def _finite_millis(number: float) -> int:
    if not math.isfinite(number):
        raise ValueError(f"timestamp is not finite: {number!r}")
    return int(number)


def _to_millis(value: Any) -> int | None:
    """Accept epoch millis, numeric strings or ISO-8601 timestamps."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError("boolean is not a timestamp")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return _finite_millis(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            number = float(text)
        except ValueError:
            number = None
        if number is not None:
            return _finite_millis(number)
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return int(parsed.timestamp() * 1000)
    raise ValueError(f"unsupported timestamp: {value!r}")


class RawSessionRecord(BaseModel):
    """One entry of sessions.json as written by the producer.

    Fields are present or absent by convention; everything is optional and
    normalized into a SessionSnapshot by ``to_snapshot``.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    session_id: str | None = Field(default=None, alias="sessionId")
    id: str | None = None
    key: str | None = None
    session_key: str | None = Field(default=None, alias="sessionKey")
    model: str | None = None
    status: str | None = None
    kind: str | None = None
    input_tokens: int = Field(default=0, alias="inputTokens", ge=0)
    output_tokens: int = Field(default=0, alias="outputTokens", ge=0)
    total_tokens: int | None = Field(default=None, alias="totalTokens", ge=0)
    context_tokens: int | None = Field(default=None, alias="contextTokens")
    start_time: int | None = Field(default=None, alias="startTime")
    last_activity: int | None = Field(default=None, alias="lastActivity")
    updated_at: int | None = Field(default=None, alias="updatedAt")
    created_at: int | None = Field(default=None, alias="createdAt")
    aborted: bool = False

    @field_validator("input_tokens", "output_tokens", mode="before")
    @classmethod
    def _missing_counts_are_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator(
        "start_time", "last_activity", "updated_at", "created_at", mode="before"
    )
    @classmethod
    def _timestamps_to_millis(cls, value: Any) -> int | None:
        return _to_millis(value)

    @field_validator("aborted", mode="before")
    @classmethod
    def _missing_flag_is_false(cls, value: Any) -> Any:
        return False if value is None else value

    def to_snapshot(
        self, fallback_key: str | None, now: int, active_window_ms: int
    ) -> SessionSnapshot:
        session_id = self.session_id or self.id or self.key or fallback_key
        if not session_id:
            raise ValueError("session record has no identifier")
        key = self.session_key or self.key or fallback_key or session_id

        last_activity = self.last_activity or self.updated_at or self.created_at
        status = self.status
        if not status:
            # Producer records without an explicit status: derive from recency
            recent = last_activity is not None and now - last_activity < active_window_ms
            status = "running" if recent else "idle"

        total = self.total_tokens
        if total is None:
            total = self.input_tokens + self.output_tokens

        return SessionSnapshot(
            id=session_id,
            key=key,
            model=self.model or "unknown",
            status=status,
            kind=self.kind or "unknown",
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            total_tokens=total,
            context_tokens=self.context_tokens,
            start_time=self.start_time or self.created_at,
            last_activity=last_activity,
            updated_at=self.updated_at,
            created_at=self.created_at,
            aborted=self.aborted,
        )


def _iter_raw_records(data: Any) -> Iterable[tuple[str | None, Any]]:
    """Yield (fallback key, record) pairs from any supported index shape."""
    if isinstance(data, dict) and isinstance(data.get("sessions"), list):
        for record in data["sessions"]:
            yield None, record
    elif isinstance(data, dict):
        for key, record in data.items():
            yield key, record
    elif isinstance(data, list):
        for record in data:
            yield None, record
    else:
        raise MalformedDataError(
            "Sessions index must be an object or a list",
            context={"type": type(data).__name__},
        )


def parse_sessions_index(
    data: Any, now: int, active_window_ms: int
) -> list[SessionSnapshot]:
    """Validate and normalize a decoded sessions.json payload."""
    snapshots: list[SessionSnapshot] = []
    seen: set[str] = set()

    for fallback_key, record in _iter_raw_records(data):
        if not isinstance(record, dict):
            raise MalformedDataError(
                "Session record is not an object", context={"key": fallback_key}
            )
        try:
            raw = RawSessionRecord.model_validate(record)
            snapshot = raw.to_snapshot(fallback_key, now, active_window_ms)
        except (ValidationError, ValueError, ArithmeticError) as e:
            raise MalformedDataError(
                "Invalid session record", context={"key": fallback_key, "error": e}
            ) from e

        if snapshot.id in seen:
            logger.warning(
                "Duplicate session id in index, keeping first",
                extra={"context": {"session_id": snapshot.id}},
            )
            continue
        seen.add(snapshot.id)
        snapshots.append(snapshot)

    return snapshots


def summarize_snapshots(
    snapshots: list[SessionSnapshot], now: int | None = None
) -> dict[str, Any]:
    """Aggregate counts and totals over one snapshot set."""
    now = now_millis() if now is None else now
    active = sum(1 for s in snapshots if s.is_active)

    durations = []
    for s in snapshots:
        end = s.last_activity or s.updated_at
        if s.start_time and end:
            durations.append(end - s.start_time)
    avg_duration = round(sum(durations) / len(durations)) if durations else 0

    return {
        "totalSessions": len(snapshots),
        "activeSessions": active,
        "idleSessions": len(snapshots) - active,
        "byStatus": dict(Counter(s.status for s in snapshots)),
        "models": sorted({s.model for s in snapshots if s.model and s.model != "unknown"}),
        "totalTokens": sum(s.total_tokens for s in snapshots),
        "totalInputTokens": sum(s.input_tokens for s in snapshots),
        "totalOutputTokens": sum(s.output_tokens for s in snapshots),
        "avgSessionDuration": avg_duration,
        "lastUpdate": now,
    }


class SessionSource:
    """Reads the producer's sessions directory on demand."""

    def __init__(
        self,
        sessions_dir: str | Path,
        active_window_ms: int = 5 * 60 * 1000,
        clock: Callable[[], int] = now_millis,
    ):
        self._sessions_dir = Path(sessions_dir)
        self._active_window_ms = active_window_ms
        self._clock = clock

    @property
    def sessions_dir(self) -> Path:
        return self._sessions_dir

    @property
    def index_path(self) -> Path:
        return self._sessions_dir / SESSIONS_INDEX_NAME

    def log_path(self, session_id: str) -> Path:
        """Transcript file for a session."""
        return self._sessions_dir / f"{session_id}{LOG_FILE_SUFFIX}"

    def is_available(self) -> bool:
        """Whether the sessions index currently exists."""
        return self.index_path.is_file()

    def _read_index(self) -> Any:
        path = self.index_path
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise SourceUnavailableError(
                "Sessions index not found", context={"path": path}
            ) from e
        except (OSError, UnicodeDecodeError) as e:
            raise SourceUnavailableError(
                "Sessions index unreadable", context={"path": path, "error": e}
            ) from e

        if not text.strip():
            # Producer truncates before rewriting
            raise MalformedDataError("Sessions index is empty", context={"path": path})

        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise MalformedDataError(
                "Sessions index is not valid JSON",
                context={"path": path, "line": e.lineno, "column": e.colno},
            ) from e

    async def fetch_snapshots(self) -> list[SessionSnapshot]:
        """Return fresh snapshots of every session in the index."""
        data = await asyncio.to_thread(self._read_index)
        return parse_sessions_index(data, self._clock(), self._active_window_ms)

    async def get_session(self, session_id: str) -> SessionSnapshot | None:
        """Find a session by id or key."""
        for snapshot in await self.fetch_snapshots():
            if snapshot.id == session_id or snapshot.key == session_id:
                return snapshot
        return None

    async def get_recent_sessions(
        self, max_age_ms: int = RECENT_WINDOW_MS
    ) -> list[SessionSnapshot]:
        """Sessions with activity within ``max_age_ms``."""
        now = self._clock()
        return [
            s
            for s in await self.fetch_snapshots()
            if s.last_activity is not None and now - s.last_activity < max_age_ms
        ]

    async def filter_sessions(
        self,
        status: str | None = None,
        model: str | None = None,
        sort_by: str = "updatedAt",
        sort_order: str = "desc",
        limit: int | None = None,
    ) -> list[SessionSnapshot]:
        """Filter and sort sessions using wire field names for ``sort_by``."""
        sessions = await self.fetch_snapshots()

        if status == "active":
            sessions = [s for s in sessions if s.is_active]
        elif status:
            sessions = [s for s in sessions if s.status == status]

        if model:
            sessions = [s for s in sessions if model in s.model]

        keyed = [(s.to_dict().get(sort_by), s) for s in sessions]
        present = [pair for pair in keyed if pair[0] is not None]
        missing = [s for value, s in keyed if value is None]
        present.sort(key=lambda pair: pair[0], reverse=sort_order != "asc")
        ordered = [s for _, s in present] + missing

        if limit is not None:
            ordered = ordered[:limit]
        return ordered

    async def get_statistics(self) -> dict[str, Any]:
        """Aggregate statistics over the current session set."""
        return summarize_snapshots(await self.fetch_snapshots(), self._clock())
