"""Tests for SessionSource."""

import json

import pytest

from session_relay.errors import MalformedDataError, SourceUnavailableError
from session_relay.source import SessionSource, parse_sessions_index, summarize_snapshots

NOW = 1_700_000_000_000


def write_index(sessions_dir, data):
    (sessions_dir / "sessions.json").write_text(json.dumps(data), encoding="utf-8")


@pytest.fixture
def source(sessions_dir):
    return SessionSource(sessions_dir, active_window_ms=60_000, clock=lambda: NOW)


class TestFetchSnapshots:
    """Tests for SessionSource.fetch_snapshots()."""

    async def test_keyed_index(self, source, sessions_dir):
        """Test reading an index keyed by session key."""
        write_index(
            sessions_dir,
            {
                "agent:main:main": {
                    "sessionId": "s1",
                    "model": "claude-sonnet-4",
                    "status": "active",
                    "inputTokens": 10,
                    "outputTokens": 5,
                    "totalTokens": 15,
                    "updatedAt": NOW,
                }
            },
        )

        snapshots = await source.fetch_snapshots()

        assert len(snapshots) == 1
        snap = snapshots[0]
        assert snap.id == "s1"
        assert snap.key == "agent:main:main"
        assert snap.total_tokens == 15
        assert snap.status == "active"

    async def test_sessions_list_shape(self, source, sessions_dir):
        """Test reading {"sessions": [...]}."""
        write_index(sessions_dir, {"sessions": [{"id": "a"}, {"id": "b"}]})

        snapshots = await source.fetch_snapshots()

        assert [s.id for s in snapshots] == ["a", "b"]

    async def test_fresh_copies_each_call(self, source, sessions_dir):
        """Test that each fetch returns independent snapshots."""
        write_index(sessions_dir, [{"id": "a", "totalTokens": 1}])

        first = await source.fetch_snapshots()
        second = await source.fetch_snapshots()

        assert first[0] == second[0]
        assert first[0] is not second[0]

    async def test_missing_index_unavailable(self, source):
        """Test that a missing index raises SourceUnavailableError."""
        with pytest.raises(SourceUnavailableError):
            await source.fetch_snapshots()

    async def test_invalid_json_malformed(self, source, sessions_dir):
        """Test that a half-written index raises MalformedDataError."""
        (sessions_dir / "sessions.json").write_text('{"a": {"sessionId": ', encoding="utf-8")

        with pytest.raises(MalformedDataError):
            await source.fetch_snapshots()

    async def test_overflowing_number_malformed(self, source, sessions_dir):
        """Test that a JSON number too large for a float is malformed data."""
        (sessions_dir / "sessions.json").write_text(
            '{"a": {"sessionId": "a", "updatedAt": 1e400}}', encoding="utf-8"
        )

        with pytest.raises(MalformedDataError):
            await source.fetch_snapshots()

    async def test_empty_file_malformed(self, source, sessions_dir):
        """Test that an empty index raises MalformedDataError."""
        (sessions_dir / "sessions.json").write_text("", encoding="utf-8")

        with pytest.raises(MalformedDataError):
            await source.fetch_snapshots()

    async def test_is_available(self, source, sessions_dir):
        """Test is_available() follows the index file."""
        assert not source.is_available()
        write_index(sessions_dir, {})
        assert source.is_available()

    def test_log_path_convention(self, source, sessions_dir):
        """Test <sessionsDir>/<id>.jsonl."""
        assert source.log_path("abc") == sessions_dir / "abc.jsonl"


class TestParseSessionsIndex:
    """Tests for record normalization."""

    def test_total_defaults_to_sum(self):
        """Test that missing totalTokens is input + output."""
        [snap] = parse_sessions_index([{"id": "a", "inputTokens": 3, "outputTokens": 4}], NOW, 60_000)

        assert snap.total_tokens == 7

    def test_null_counts_are_zero(self):
        """Test that null token counts become zero."""
        [snap] = parse_sessions_index([{"id": "a", "inputTokens": None}], NOW, 60_000)

        assert snap.input_tokens == 0
        assert snap.total_tokens == 0

    def test_status_derived_from_recent_activity(self):
        """Test that records without status are running when recently updated."""
        snaps = parse_sessions_index(
            [
                {"id": "recent", "updatedAt": NOW - 1_000},
                {"id": "stale", "updatedAt": NOW - 120_000},
                {"id": "never"},
            ],
            NOW,
            60_000,
        )

        assert [s.status for s in snaps] == ["running", "idle", "idle"]

    def test_explicit_status_passthrough(self):
        """Test that unknown status strings are kept."""
        [snap] = parse_sessions_index([{"id": "a", "status": "paused"}], NOW, 60_000)

        assert snap.status == "paused"

    def test_iso_timestamps(self):
        """Test that ISO-8601 timestamps become epoch millis."""
        [snap] = parse_sessions_index(
            [{"id": "a", "updatedAt": "2023-11-14T22:13:20Z"}], NOW, 60_000
        )

        assert snap.updated_at == 1_700_000_000_000

    def test_last_activity_falls_back_to_updated_at(self):
        """Test lastActivity fallback."""
        [snap] = parse_sessions_index([{"id": "a", "updatedAt": 5}], NOW, 60_000)

        assert snap.last_activity == 5

    def test_missing_identifier_malformed(self):
        """Test that a record without any id raises MalformedDataError."""
        with pytest.raises(MalformedDataError):
            parse_sessions_index([{"model": "x"}], NOW, 60_000)

    @pytest.mark.parametrize("value", [float("inf"), float("nan"), "inf", "-Infinity", "nan"])
    def test_non_finite_timestamp_malformed(self, value):
        """Test that infinite or NaN timestamps are malformed data."""
        with pytest.raises(MalformedDataError):
            parse_sessions_index([{"id": "a", "updatedAt": value}], NOW, 60_000)

    def test_infinite_token_count_malformed(self):
        """Test that an infinite token count is malformed data."""
        with pytest.raises(MalformedDataError):
            parse_sessions_index([{"id": "a", "inputTokens": float("inf")}], NOW, 60_000)

    def test_negative_tokens_malformed(self):
        """Test that negative token counts are rejected."""
        with pytest.raises(MalformedDataError):
            parse_sessions_index([{"id": "a", "inputTokens": -1}], NOW, 60_000)

    def test_non_object_record_malformed(self):
        """Test that a scalar record raises MalformedDataError."""
        with pytest.raises(MalformedDataError):
            parse_sessions_index(["oops"], NOW, 60_000)

    def test_scalar_payload_malformed(self):
        """Test that a scalar payload raises MalformedDataError."""
        with pytest.raises(MalformedDataError):
            parse_sessions_index(42, NOW, 60_000)

    def test_duplicate_ids_keep_first(self):
        """Test that duplicate ids are skipped."""
        snaps = parse_sessions_index(
            [{"id": "a", "model": "first"}, {"id": "a", "model": "second"}], NOW, 60_000
        )

        assert len(snaps) == 1
        assert snaps[0].model == "first"


class TestQueries:
    """Tests for filtering and statistics."""

    @pytest.fixture
    def populated(self, source, sessions_dir):
        write_index(
            sessions_dir,
            [
                {"id": "a", "model": "claude-sonnet-4", "status": "active",
                 "totalTokens": 10, "updatedAt": NOW - 1_000, "startTime": NOW - 11_000},
                {"id": "b", "model": "gpt-4o", "status": "idle",
                 "totalTokens": 30, "updatedAt": NOW - 20 * 60_000},
                {"id": "c", "model": "claude-haiku-4", "status": "running",
                 "totalTokens": 20, "updatedAt": NOW - 5_000, "startTime": NOW - 15_000},
            ],
        )
        return source

    async def test_filter_active(self, populated):
        """Test that status=active matches running sessions too."""
        sessions = await populated.filter_sessions(status="active")

        assert sorted(s.id for s in sessions) == ["a", "c"]

    async def test_filter_model_substring(self, populated):
        """Test model substring filter."""
        sessions = await populated.filter_sessions(model="claude")

        assert sorted(s.id for s in sessions) == ["a", "c"]

    async def test_sort_and_limit(self, populated):
        """Test sorting by totalTokens with a limit."""
        sessions = await populated.filter_sessions(sort_by="totalTokens", sort_order="asc", limit=2)

        assert [s.id for s in sessions] == ["a", "c"]

    async def test_get_session_by_key(self, populated):
        """Test lookup by id or key."""
        assert (await populated.get_session("a")).id == "a"
        assert await populated.get_session("missing") is None

    async def test_recent_sessions(self, populated):
        """Test the ten-minute recency window."""
        sessions = await populated.get_recent_sessions()

        assert sorted(s.id for s in sessions) == ["a", "c"]

    async def test_statistics(self, populated):
        """Test aggregate statistics."""
        stats = await populated.get_statistics()

        assert stats["totalSessions"] == 3
        assert stats["activeSessions"] == 2
        assert stats["idleSessions"] == 1
        assert stats["totalTokens"] == 60
        assert stats["models"] == ["claude-haiku-4", "claude-sonnet-4", "gpt-4o"]
        assert stats["byStatus"] == {"active": 1, "idle": 1, "running": 1}
        assert stats["avgSessionDuration"] == 10_000
        assert stats["lastUpdate"] == NOW


class TestSummarize:
    """Tests for summarize_snapshots."""

    def test_empty_set(self):
        """Test statistics of an empty set."""
        stats = summarize_snapshots([], now=1)

        assert stats["totalSessions"] == 0
        assert stats["avgSessionDuration"] == 0
        assert stats["models"] == []
