"""Project-level configuration and path helpers."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_DB_PATH = DATA_DIR / "session_relay.db"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"

DEFAULT_POLL_INTERVAL_MS = 3000
DEFAULT_ACTIVE_WINDOW_MS = 5 * 60 * 1000
DEFAULT_CORS_ORIGINS = ("http://localhost:5173", "http://localhost:5174")


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def default_clawdbot_dir() -> Path:
    """Location of the clawdbot runtime directory."""
    return Path.home() / ".clawdbot"


def sessions_dir_for(clawdbot_dir: PathLike) -> Path:
    """Sessions directory inside a clawdbot runtime directory."""
    return Path(clawdbot_dir) / "agents" / "main" / "sessions"


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


@dataclass
class RelaySettings:
    """Runtime settings for the relay process."""

    sessions_dir: Path
    db_path: PathLike = DEFAULT_DB_PATH
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    active_window_ms: int = DEFAULT_ACTIVE_WINDOW_MS
    log_level: str = "INFO"
    api_host: str = "localhost"
    api_port: int = 3001
    cors_origins: list[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))

    @property
    def sessions_index_path(self) -> Path:
        """Path to the sessions.json index maintained by the producer."""
        return self.sessions_dir / "sessions.json"

    @classmethod
    def from_env(cls) -> "RelaySettings":
        """Build settings from environment variables."""
        clawdbot_dir = os.getenv("CLAWDBOT_DIR")
        sessions_dir = os.getenv("SESSIONS_DIR")
        if sessions_dir:
            resolved_sessions = Path(sessions_dir).expanduser()
        else:
            base = Path(clawdbot_dir).expanduser() if clawdbot_dir else default_clawdbot_dir()
            resolved_sessions = sessions_dir_for(base)

        cors = os.getenv("CORS_ORIGINS")
        cors_origins = (
            [origin.strip() for origin in cors.split(",") if origin.strip()]
            if cors
            else list(DEFAULT_CORS_ORIGINS)
        )

        return cls(
            sessions_dir=resolved_sessions,
            db_path=resolve_db_path(os.getenv("DATABASE_URL")),
            poll_interval_ms=_int_env("POLL_INTERVAL_MS", DEFAULT_POLL_INTERVAL_MS),
            active_window_ms=_int_env("ACTIVE_WINDOW_MS", DEFAULT_ACTIVE_WINDOW_MS),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            api_host=os.getenv("API_HOST", "localhost"),
            api_port=_int_env("API_PORT", 3001),
            cors_origins=cors_origins,
        )
