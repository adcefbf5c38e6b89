"""Persisted agent and log record models."""

from dataclasses import dataclass
from typing import Any


@dataclass
class AgentRecord:
    """An agent tracked in the persistent store."""

    id: str
    name: str
    label: str | None = None
    model: str | None = None
    task: str | None = None
    status: str = "running"  # "running", "completed", "error", ...
    progress: int = 0
    start_time: int | None = None  # epoch millis
    end_time: int | None = None
    tokens_in: int = 0
    tokens_out: int = 0
    created_at: int | None = None
    updated_at: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "label": self.label,
            "model": self.model,
            "task": self.task,
            "status": self.status,
            "progress": self.progress,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "tokensIn": self.tokens_in,
            "tokensOut": self.tokens_out,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class LogRecord:
    """A log line stored for an agent."""

    id: int | None
    agent_id: str
    message: str
    level: str
    timestamp: int  # epoch millis

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "agentId": self.agent_id,
            "message": self.message,
            "level": self.level,
            "timestamp": self.timestamp,
        }
