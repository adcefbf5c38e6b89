"""Pytest configuration and fixtures."""

import asyncio
import sys
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from fastapi import WebSocketDisconnect  # noqa: E402

from session_relay.errors import SourceUnavailableError  # noqa: E402
from session_relay.models import EventType, SessionSnapshot  # noqa: E402


class FakeTransport:
    """In-memory stand-in for a WebSocket."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.accepted = False
        self.sent: list[str] = []
        self._incoming: asyncio.Queue = asyncio.Queue()

    async def accept(self) -> None:
        self.accepted = True

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise ConnectionResetError("peer gone")
        self.sent.append(data)

    async def receive_text(self) -> str:
        item = await self._incoming.get()
        if item is None:
            raise WebSocketDisconnect(code=1000)
        return item

    def push(self, text: str) -> None:
        """Queue a message from the client."""
        self._incoming.put_nowait(text)

    def disconnect(self) -> None:
        """Simulate the client closing the connection."""
        self._incoming.put_nowait(None)


class RecordingHub:
    """Hub double that records every published event."""

    def __init__(self):
        self.events: list[tuple[str, Any]] = []

    async def publish(self, event_type, data) -> int:
        name = event_type.value if isinstance(event_type, EventType) else str(event_type)
        self.events.append((name, data))
        return 1

    def active_subscriber_count(self) -> int:
        return 0

    def of_type(self, event_type: EventType) -> list[Any]:
        return [data for name, data in self.events if name == event_type.value]

    @property
    def types(self) -> list[str]:
        return [name for name, _ in self.events]


class FakeTailer:
    """Tailer double recording watch/unwatch calls."""

    def __init__(self, missing: set[str] | None = None):
        self.calls: list[tuple[str, str]] = []
        self.watching: set[str] = set()
        self.missing = missing or set()
        self.stop_all_calls = 0

    async def watch(self, session_id: str) -> bool:
        self.calls.append(("watch", session_id))
        if session_id in self.missing:
            return False
        self.watching.add(session_id)
        return True

    async def unwatch(self, session_id: str) -> None:
        self.calls.append(("unwatch", session_id))
        self.watching.discard(session_id)

    async def stop_all(self) -> None:
        self.stop_all_calls += 1
        self.watching.clear()

    def is_watching(self, session_id: str) -> bool:
        return session_id in self.watching


class FakeSource:
    """Session source double with a settable snapshot set."""

    def __init__(self):
        self.snapshots: list[SessionSnapshot] = []
        self.error: Exception | None = None
        self.fetch_count = 0

    async def fetch_snapshots(self) -> list[SessionSnapshot]:
        self.fetch_count += 1
        if self.error is not None:
            raise self.error
        return list(self.snapshots)

    def log_path(self, session_id: str) -> Path:
        return Path(f"{session_id}.jsonl")

    def fail(self) -> None:
        self.error = SourceUnavailableError("Sessions index not found")


class ManualWatch:
    """Watch factory whose change notifications are pushed by the test."""

    def __init__(self):
        self.queues: dict[str, asyncio.Queue] = {}
        self.started: list[str] = []

    def __call__(self, path: Path, stop_event: asyncio.Event):
        session_id = Path(path).stem
        queue: asyncio.Queue = asyncio.Queue()
        self.queues[session_id] = queue
        self.started.append(session_id)
        return self._iterate(path, queue, stop_event)

    async def _iterate(self, path, queue, stop_event):
        while not stop_event.is_set():
            item = await queue.get()
            if item is None:
                return
            yield {("modified", str(path))}

    async def notify(self, session_id: str) -> None:
        """Signal one change for a session file."""
        while session_id not in self.queues:
            await asyncio.sleep(0)
        await self.queues[session_id].put(True)


async def wait_for(predicate, timeout: float = 1.0) -> None:
    """Poll until predicate() is true."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from session_relay.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def hub():
    """Create a real BroadcastHub."""
    from session_relay.hub import BroadcastHub

    return BroadcastHub()


@pytest.fixture
def recording_hub():
    """Create a hub double that records events."""
    return RecordingHub()


@pytest.fixture
def fake_tailer():
    """Create a tailer double."""
    return FakeTailer()


@pytest.fixture
def fake_source():
    """Create a session source double."""
    return FakeSource()


@pytest.fixture
def manual_watch():
    """Create a test-driven watch factory."""
    return ManualWatch()


@pytest.fixture
def transport_factory():
    """Build fake WebSocket transports."""
    return FakeTransport


@pytest.fixture
def wait_until():
    """Expose the polling helper to tests."""
    return wait_for


@pytest.fixture
def sessions_dir(tmp_path):
    """Empty sessions directory."""
    path = tmp_path / "sessions"
    path.mkdir()
    return path


@pytest.fixture
def make_snapshot():
    """Factory for SessionSnapshot with sensible defaults."""

    def _make(session_id: str = "s1", **overrides) -> SessionSnapshot:
        fields = {
            "id": session_id,
            "key": f"agent:main:{session_id}",
            "model": "claude-sonnet-4",
            "status": "active",
            "kind": "direct",
            "input_tokens": 60,
            "output_tokens": 40,
            "total_tokens": 100,
            "start_time": 1_700_000_000_000,
            "last_activity": 1_700_000_060_000,
            "updated_at": 1_700_000_060_000,
        }
        fields.update(overrides)
        return SessionSnapshot(**fields)

    return _make
