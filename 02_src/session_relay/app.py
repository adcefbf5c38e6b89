"""Application bootstrap and lifecycle management."""

from typing import Protocol

from .config import RelaySettings
from .hub import BroadcastHub
from .logging_config import get_logger
from .reconciler import SessionReconciler
from .source import SessionSource
from .storage import IStorage, Storage
from .tailer import LogTailer, WatchFactory, watch_file

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...


class Application:
    """Main application bootstrap."""

    def __init__(
        self,
        settings: RelaySettings | None = None,
        watch_factory: WatchFactory = watch_file,
    ):
        self._settings = settings or RelaySettings.from_env()
        self._watch_factory = watch_factory

        # Components (will be initialized in start())
        self._storage: IStorage | None = None
        self._hub: BroadcastHub | None = None
        self._source: SessionSource | None = None
        self._tailer: LogTailer | None = None
        self._reconciler: SessionReconciler | None = None
        self._started = False

    @property
    def settings(self) -> RelaySettings:
        return self._settings

    async def start(self) -> None:
        """Initialize components in dependency order."""
        if self._started:
            logger.warning("Application already started")
            return
        logger.info("Starting application")

        # 1. Storage (no dependencies)
        self._storage = Storage(self._settings.db_path)
        await self._storage.init()
        logger.info("Storage initialized")

        # 2. BroadcastHub (no dependencies)
        self._hub = BroadcastHub()

        # 3. SessionSource (reads the producer's files)
        self._source = SessionSource(
            self._settings.sessions_dir,
            active_window_ms=self._settings.active_window_ms,
        )
        if not self._source.is_available():
            logger.warning(
                "Sessions index not found, live session data unavailable until it appears",
                extra={"context": {"path": str(self._source.index_path)}},
            )

        # 4. LogTailer (depends on BroadcastHub)
        self._tailer = LogTailer(
            self._settings.sessions_dir,
            self._hub,
            watch_factory=self._watch_factory,
        )

        # 5. SessionReconciler (depends on SessionSource, BroadcastHub, LogTailer)
        self._reconciler = SessionReconciler(
            self._source,
            self._hub,
            self._tailer,
            poll_interval_ms=self._settings.poll_interval_ms,
        )
        try:
            await self._reconciler.start()
        except Exception as e:
            logger.warning("SessionReconciler failed to start: %s", e, exc_info=True)

        self._started = True
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        if self._reconciler:
            await self._reconciler.stop()
        if self._tailer:
            await self._tailer.stop_all()
        if self._storage:
            await self._storage.close()
            logger.info("Storage closed")
        self._started = False

    @property
    def storage(self) -> IStorage:
        """Get storage instance."""
        if not self._storage:
            raise RuntimeError("Application not started")
        return self._storage

    @property
    def hub(self) -> BroadcastHub:
        """Get broadcast hub instance."""
        if not self._hub:
            raise RuntimeError("Application not started")
        return self._hub

    @property
    def source(self) -> SessionSource:
        """Get session source instance."""
        if not self._source:
            raise RuntimeError("Application not started")
        return self._source

    @property
    def tailer(self) -> LogTailer:
        """Get log tailer instance."""
        if not self._tailer:
            raise RuntimeError("Application not started")
        return self._tailer

    @property
    def reconciler(self) -> SessionReconciler:
        """Get session reconciler instance."""
        if not self._reconciler:
            raise RuntimeError("Application not started")
        return self._reconciler
