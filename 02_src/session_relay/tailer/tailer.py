"""LogTailer implementation: incremental reads of per-session JSONL files."""

import asyncio
import contextlib
import os
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Protocol

import watchfiles

from ..errors import MalformedLineError
from ..hub import IBroadcastHub
from ..logging_config import get_logger
from ..models import EventType, LogEvent, TailerState
from .normalize import normalize_entry, parse_line

logger = get_logger(__name__)

# Max size for a single unterminated line held between reads (10MB)
MAX_CARRY_SIZE = 10 * 1024 * 1024

WatchFactory = Callable[[Path, asyncio.Event], AsyncIterator[Any]]


def watch_file(path: Path, stop_event: asyncio.Event) -> AsyncIterator[Any]:
    """Yield a change batch every time ``path`` is modified, deleted or recreated.

    The parent directory is watched so a replaced file keeps producing
    notifications.
    """
    name = Path(path).name

    def only_this_file(_change: watchfiles.Change, changed: str) -> bool:
        return Path(changed).name == name

    return watchfiles.awatch(
        Path(path).parent,
        watch_filter=only_this_file,
        recursive=False,
        stop_event=stop_event,
    )


def _read_range(path: str, start: int, end: int) -> bytes:
    with open(path, "rb") as f:
        f.seek(start)
        return f.read(end - start)


def _read_all(path: Path) -> bytes:
    with open(path, "rb") as f:
        return f.read()


class ILogTailer(Protocol):
    """Per-session log streaming."""

    async def watch(self, session_id: str) -> bool:
        """Start tailing a session file; False when the file does not exist yet."""
        ...

    async def unwatch(self, session_id: str) -> None:
        """Stop tailing a session; no-op when not watched."""
        ...

    async def stop_all(self) -> None:
        """Stop tailing every session."""
        ...

    def is_watching(self, session_id: str) -> bool:
        ...


class TailSubscription:
    """Cancellable file-change subscription for one session."""

    def __init__(self, session_id: str, task: asyncio.Task, stop_event: asyncio.Event):
        self.session_id = session_id
        self._task = task
        self._stop_event = stop_event

    @property
    def active(self) -> bool:
        return not self._task.done()

    async def cancel(self) -> None:
        self._stop_event.set()
        if self._task.done():
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task


class LogTailer:
    """Streams newly appended transcript lines to the broadcast hub."""

    def __init__(
        self,
        sessions_dir: str | Path,
        hub: IBroadcastHub,
        watch_factory: WatchFactory = watch_file,
    ):
        self._sessions_dir = Path(sessions_dir)
        self._hub = hub
        self._watch_factory = watch_factory
        self._states: dict[str, TailerState] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._subscriptions: dict[str, TailSubscription] = {}

    def log_path(self, session_id: str) -> Path:
        return self._sessions_dir / f"{session_id}.jsonl"

    def is_watching(self, session_id: str) -> bool:
        return session_id in self._states

    @property
    def watched_sessions(self) -> list[str]:
        return list(self._states)

    def get_state(self, session_id: str) -> TailerState | None:
        return self._states.get(session_id)

    async def watch(self, session_id: str) -> bool:
        """Start tailing from the file's current end."""
        if session_id in self._states:
            return True

        path = self.log_path(session_id)
        try:
            stat = await asyncio.to_thread(path.stat)
        except FileNotFoundError:
            logger.debug(
                "Log file not found, not watching yet",
                extra={"context": {"session_id": session_id, "path": str(path)}},
            )
            return False

        size = stat.st_size
        state = TailerState(
            session_id=session_id, path=str(path), offset=size, inode=stat.st_ino
        )
        self._states[session_id] = state
        self._locks[session_id] = asyncio.Lock()

        stop_event = asyncio.Event()
        task = asyncio.create_task(
            self._run_subscription(session_id, path, stop_event),
            name=f"tail:{session_id}",
        )
        self._subscriptions[session_id] = TailSubscription(session_id, task, stop_event)

        logger.info(
            "Watching logs for session",
            extra={"context": {"session_id": session_id, "path": str(path), "offset": size}},
        )
        return True

    async def unwatch(self, session_id: str) -> None:
        """Cancel the subscription and discard read state."""
        state = self._states.pop(session_id, None)
        self._locks.pop(session_id, None)
        subscription = self._subscriptions.pop(session_id, None)

        if state is not None and state.carry:
            logger.debug(
                "Discarding unterminated fragment",
                extra={"context": {"session_id": session_id, "bytes": len(state.carry)}},
            )

        if subscription is not None:
            await subscription.cancel()
            logger.info(
                "Stopped watching logs for session",
                extra={"context": {"session_id": session_id}},
            )

    async def stop_all(self) -> None:
        """Stop every subscription (used at shutdown)."""
        for session_id in list(self._states):
            await self.unwatch(session_id)
        logger.info("All log watchers stopped")

    async def _run_subscription(
        self, session_id: str, path: Path, stop_event: asyncio.Event
    ) -> None:
        """Consume change notifications for one file in order."""
        try:
            async for _changes in self._watch_factory(path, stop_event):
                if stop_event.is_set():
                    break
                await self.on_change(session_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                "Log watcher for session failed: %s",
                e,
                exc_info=True,
                extra={"context": {"session_id": session_id, "path": str(path)}},
            )

    async def on_change(self, session_id: str) -> list[LogEvent]:
        """Read bytes appended since the last call and publish parsed entries."""
        lock = self._locks.get(session_id)
        if lock is None:
            return []

        async with lock:
            state = self._states.get(session_id)
            if state is None:
                return []
            return await self._consume(state)

    async def _consume(self, state: TailerState) -> list[LogEvent]:
        context = {"session_id": state.session_id, "path": state.path}

        try:
            stat = await asyncio.to_thread(os.stat, state.path)
        except FileNotFoundError:
            if state.inode is not None:
                logger.warning("Log file disappeared", extra={"context": context})
            state.inode = None
            return []

        size = stat.st_size
        if stat.st_ino != state.inode:
            # Deleted and recreated, or replaced by rename
            logger.info(
                "Log file replaced, reading from start",
                extra={"context": {**context, "old_offset": state.offset, "size": size}},
            )
            state.inode = stat.st_ino
            state.offset = 0
            state.carry = b""

        if size <= state.offset:
            if size < state.offset:
                logger.info(
                    "Log file truncated, resetting offset",
                    extra={"context": {**context, "old_offset": state.offset, "size": size}},
                )
                state.carry = b""
            state.offset = size
            return []

        start = state.offset
        data = await asyncio.to_thread(_read_range, state.path, start, size)
        if self._states.get(state.session_id) is not state:
            # Unwatched while reading; a new watch re-baselines from file size
            return []

        buffer = state.carry + data
        line_start = start - len(state.carry)
        *lines, carry = buffer.split(b"\n")
        state.offset = start + len(data)

        if len(carry) > MAX_CARRY_SIZE:
            logger.warning(
                "Unterminated line exceeds %dMB, dropping",
                MAX_CARRY_SIZE // (1024 * 1024),
                extra={"context": {**context, "bytes": len(carry)}},
            )
            carry = b""
        state.carry = carry

        events: list[LogEvent] = []
        for line in lines:
            line_end = line_start + len(line) + 1
            byte_range = (line_start, line_end)
            line_start = line_end

            if not line.strip():
                continue
            try:
                entry = parse_line(line)
            except MalformedLineError as e:
                logger.warning(
                    "Skipping invalid log line: %s",
                    e.message,
                    extra={
                        "context": {
                            **context,
                            "byte_range": byte_range,
                            "preview": line[:50].decode("utf-8", errors="replace"),
                        }
                    },
                )
                continue
            events.append(normalize_entry(entry))

        for event in events:
            await self._hub.publish(
                EventType.LOG_UPDATE,
                {"agentId": state.session_id, "log": event.to_dict()},
            )

        return events

    async def read_all(self, session_id: str) -> list[LogEvent]:
        """Parse a whole transcript file, skipping invalid lines."""
        path = self.log_path(session_id)
        try:
            data = await asyncio.to_thread(_read_all, path)
        except FileNotFoundError:
            return []

        events: list[LogEvent] = []
        for line_num, line in enumerate(data.split(b"\n"), start=1):
            if not line.strip():
                continue
            try:
                events.append(normalize_entry(parse_line(line)))
            except MalformedLineError:
                logger.debug(
                    "Malformed JSON at line %d",
                    line_num,
                    extra={"context": {"session_id": session_id, "path": str(path)}},
                )
        return events
