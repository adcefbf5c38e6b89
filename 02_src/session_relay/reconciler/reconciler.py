"""SessionReconciler: periodic diff of the external session set."""

import asyncio
import contextlib
import copy
from typing import Any, Protocol

from ..errors import SessionSourceError
from ..hub import IBroadcastHub
from ..logging_config import get_logger
from ..models import EventType, SessionSnapshot, diff_snapshots, has_changed
from ..source import ISessionSource, summarize_snapshots
from ..tailer import ILogTailer

logger = get_logger(__name__)


class ISessionReconciler(Protocol):
    """Detects session lifecycle transitions on a fixed cadence."""

    async def start(self) -> bool:
        """Run the initial tick and arm the timer. False if already running."""
        ...

    async def stop(self) -> None:
        """Disarm the timer and stop every tail subscription."""
        ...

    async def tick(self) -> bool:
        """Run one fetch-diff-emit cycle. False if the fetch failed."""
        ...

    def get_current_state(self) -> dict[str, Any]:
        ...


class SessionReconciler:
    """Diffs snapshots against retained state and publishes lifecycle events."""

    def __init__(
        self,
        source: ISessionSource,
        hub: IBroadcastHub,
        tailer: ILogTailer,
        poll_interval_ms: int = 3000,
    ):
        self._source = source
        self._hub = hub
        self._tailer = tailer
        self._poll_interval_ms = poll_interval_ms

        self._retained: dict[str, SessionSnapshot] = {}
        self._tick_lock = asyncio.Lock()
        self._timer_task: asyncio.Task | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def retained(self) -> dict[str, SessionSnapshot]:
        """Copy of the last-observed snapshots, keyed by session id."""
        return dict(self._retained)

    async def start(self) -> bool:
        """Run the initial tick, then poll every ``poll_interval_ms``."""
        if self._running:
            logger.warning("SessionReconciler already running")
            return False

        self._running = True
        try:
            await self.tick()
        except Exception as e:
            # Timer still arms so a later tick can recover
            logger.error("Unexpected error in initial reconciliation tick: %s", e, exc_info=True)
        self._timer_task = asyncio.create_task(self._run_timer(), name="session-reconciler")

        logger.info("SessionReconciler started (polling every %dms)", self._poll_interval_ms)
        return True

    async def stop(self) -> None:
        """Stop polling and tear down all log tailing. Safe to call repeatedly."""
        was_running = self._running
        self._running = False

        task, self._timer_task = self._timer_task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        await self._tailer.stop_all()

        if was_running:
            logger.info("SessionReconciler stopped")

    async def _run_timer(self) -> None:
        interval = self._poll_interval_ms / 1000
        while self._running:
            await asyncio.sleep(interval)
            if not self._running:
                break
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Unexpected error in reconciliation tick: %s", e, exc_info=True)

    async def tick(self) -> bool:
        """Fetch, diff, emit. Ticks never overlap."""
        async with self._tick_lock:
            try:
                snapshots = await self._source.fetch_snapshots()
            except SessionSourceError as e:
                logger.error(
                    "Session fetch failed, skipping tick: %s",
                    e.message,
                    extra={"context": {k: str(v) for k, v in e.context.items()}},
                )
                return False

            await self._reconcile(snapshots)
            return True

    async def _reconcile(self, snapshots: list[SessionSnapshot]) -> None:
        current_ids: set[str] = set()

        for snapshot in snapshots:
            current_ids.add(snapshot.id)
            previous = self._retained.get(snapshot.id)

            if previous is None:
                await self._handle_started(snapshot)
            elif has_changed(previous, snapshot):
                await self._handle_updated(previous, snapshot)

            self._retained[snapshot.id] = copy.deepcopy(snapshot)

        for session_id in [sid for sid in self._retained if sid not in current_ids]:
            await self._handle_completed(self._retained.pop(session_id))

        await self._hub.publish(EventType.STATS_UPDATED, summarize_snapshots(snapshots))

    async def _handle_started(self, snapshot: SessionSnapshot) -> None:
        logger.info(
            "New session started: %s (%s)",
            snapshot.id,
            snapshot.model,
            extra={"context": {"session_id": snapshot.id, "status": snapshot.status}},
        )
        await self._hub.publish(EventType.SESSION_STARTED, snapshot.to_dict())

        if snapshot.is_active:
            await self._tailer.watch(snapshot.id)

    async def _handle_updated(
        self, previous: SessionSnapshot, snapshot: SessionSnapshot
    ) -> None:
        changes = diff_snapshots(previous, snapshot)
        logger.info(
            "Session updated: %s",
            snapshot.id,
            extra={"context": {"session_id": snapshot.id, "changes": changes}},
        )
        await self._hub.publish(
            EventType.SESSION_UPDATED,
            {"session": snapshot.to_dict(), "changes": changes},
        )

        if snapshot.is_active and not previous.is_active:
            await self._tailer.watch(snapshot.id)
        elif previous.is_active and not snapshot.is_active:
            await self._tailer.unwatch(snapshot.id)
        elif snapshot.is_active and not self._tailer.is_watching(snapshot.id):
            # Log file may not have existed when the session started
            await self._tailer.watch(snapshot.id)

    async def _handle_completed(self, snapshot: SessionSnapshot) -> None:
        logger.info(
            "Session completed: %s",
            snapshot.id,
            extra={"context": {"session_id": snapshot.id}},
        )
        await self._hub.publish(EventType.SESSION_COMPLETED, snapshot.to_dict())
        await self._tailer.unwatch(snapshot.id)

    def get_current_state(self) -> dict[str, Any]:
        """Status summary for health reporting."""
        return {
            "running": self._running,
            "trackedSessionCount": len(self._retained),
            "pollIntervalMs": self._poll_interval_ms,
        }
