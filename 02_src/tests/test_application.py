"""Tests for Application."""

import json

import pytest

from session_relay.app import Application
from session_relay.config import RelaySettings


@pytest.fixture
def settings(sessions_dir):
    return RelaySettings(sessions_dir=sessions_dir, db_path=":memory:", poll_interval_ms=60_000)


class TestApplicationStart:
    """Tests for Application.start()."""

    async def test_start_initializes_components(self, settings, manual_watch):
        """Test that start initializes all components."""
        app = Application(settings, watch_factory=manual_watch)
        await app.start()

        try:
            assert app.storage is not None
            assert app.hub is not None
            assert app.source is not None
            assert app.tailer is not None
            assert app.reconciler.running
        finally:
            await app.stop()

    async def test_components_wired_together(self, settings, manual_watch):
        """Test that collaborators are shared instances."""
        app = Application(settings, watch_factory=manual_watch)
        await app.start()

        try:
            assert app.reconciler._source is app.source
            assert app.reconciler._hub is app.hub
            assert app.reconciler._tailer is app.tailer
            assert app.tailer._hub is app.hub
        finally:
            await app.stop()

    async def test_start_without_index(self, settings, manual_watch):
        """Test that a missing sessions index does not block startup."""
        app = Application(settings, watch_factory=manual_watch)
        await app.start()

        try:
            assert app.reconciler.get_current_state()["trackedSessionCount"] == 0
        finally:
            await app.stop()

    async def test_initial_tick_tails_active_sessions(self, settings, sessions_dir, manual_watch):
        """Test that active sessions with a log file are tailed after start."""
        (sessions_dir / "sessions.json").write_text(
            json.dumps([{"id": "s1", "status": "active"}, {"id": "s2", "status": "idle"}])
        )
        (sessions_dir / "s1.jsonl").write_text("")
        (sessions_dir / "s2.jsonl").write_text("")

        app = Application(settings, watch_factory=manual_watch)
        await app.start()

        try:
            assert app.tailer.watched_sessions == ["s1"]
        finally:
            await app.stop()

    async def test_start_twice(self, settings, manual_watch):
        """Test that a second start keeps the same components."""
        app = Application(settings, watch_factory=manual_watch)
        await app.start()
        hub = app.hub

        try:
            await app.start()
            assert app.hub is hub
        finally:
            await app.stop()


class TestApplicationStop:
    """Tests for Application.stop()."""

    async def test_stop_tears_down(self, settings, sessions_dir, manual_watch):
        """Test that stop halts polling and tailing."""
        (sessions_dir / "sessions.json").write_text(json.dumps([{"id": "s1", "status": "active"}]))
        (sessions_dir / "s1.jsonl").write_text("")
        app = Application(settings, watch_factory=manual_watch)
        await app.start()

        await app.stop()

        assert not app.reconciler.running
        assert app.tailer.watched_sessions == []

    async def test_stop_twice(self, settings, manual_watch):
        """Test that stop is idempotent."""
        app = Application(settings, watch_factory=manual_watch)
        await app.start()

        await app.stop()
        await app.stop()

    async def test_stop_before_start(self, settings):
        """Test that stop without start is safe."""
        await Application(settings).stop()

    def test_components_require_start(self, settings):
        """Test that accessing components before start raises."""
        app = Application(settings)

        with pytest.raises(RuntimeError):
            app.hub
        with pytest.raises(RuntimeError):
            app.reconciler
