"""SQLite storage implementation."""

from pathlib import Path
from typing import Any, Protocol

import aiosqlite

from ..config import resolve_db_path
from ..errors import StorageNotInitializedError
from ..models import AgentRecord, LogRecord, now_millis

UPDATABLE_COLUMNS = frozenset(
    {
        "name",
        "label",
        "model",
        "task",
        "status",
        "progress",
        "start_time",
        "end_time",
        "tokens_in",
        "tokens_out",
    }
)

AGENT_COLUMNS = (
    "id, name, label, model, task, status, progress, start_time, end_time, "
    "tokens_in, tokens_out, created_at, updated_at"
)


class IStorage(Protocol):
    """Persistent storage for agent records and their logs (SQLite)."""

    async def init(self) -> None:
        """Initialize database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    # Agents
    async def list_agents(self) -> list[AgentRecord]:
        """Get all agents (newest first)."""
        ...

    async def get_agent(self, agent_id: str) -> AgentRecord | None:
        """Get an agent by ID."""
        ...

    async def create_agent(self, agent: AgentRecord) -> AgentRecord:
        """Insert an agent, stamping created/updated times."""
        ...

    async def update_agent(self, agent_id: str, updates: dict[str, Any]) -> int:
        """Apply a partial update; returns number of rows changed."""
        ...

    async def delete_agent(self, agent_id: str) -> int:
        """Delete an agent; returns number of rows deleted."""
        ...

    # Logs
    async def add_log(self, agent_id: str, message: str, level: str = "info") -> LogRecord:
        """Append a log line for an agent."""
        ...

    async def get_logs(self, agent_id: str, limit: int = 1000) -> list[LogRecord]:
        """Get the latest logs for an agent in chronological order."""
        ...

    async def clear_logs(self, agent_id: str) -> int:
        """Delete all logs of an agent; returns number deleted."""
        ...

    # Aggregates
    async def get_stats(self) -> dict[str, int]:
        """Agent counts by status."""
        ...

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        ...


def _row_to_agent(row: Any) -> AgentRecord:
    return AgentRecord(
        id=row[0],
        name=row[1],
        label=row[2],
        model=row[3],
        task=row[4],
        status=row[5],
        progress=row[6],
        start_time=row[7],
        end_time=row[8],
        tokens_in=row[9],
        tokens_out=row[10],
        created_at=row[11],
        updated_at=row[12],
    )


class Storage:
    """SQLite storage implementation."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise StorageNotInitializedError()
        return self._conn

    async def init(self) -> None:
        """Initialize database and create tables."""
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self._db_path)

        # Read and execute schema
        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    # Agents
    async def list_agents(self) -> list[AgentRecord]:
        """Get all agents (newest first)."""
        cursor = await self.conn.execute(
            f"SELECT {AGENT_COLUMNS} FROM agents ORDER BY created_at DESC, id ASC"
        )
        rows = await cursor.fetchall()
        return [_row_to_agent(row) for row in rows]

    async def get_agent(self, agent_id: str) -> AgentRecord | None:
        """Get an agent by ID."""
        cursor = await self.conn.execute(
            f"SELECT {AGENT_COLUMNS} FROM agents WHERE id = ?",
            (agent_id,),
        )
        row = await cursor.fetchone()

        if not row:
            return None

        return _row_to_agent(row)

    async def create_agent(self, agent: AgentRecord) -> AgentRecord:
        """Insert an agent, stamping created/updated times."""
        now = now_millis()
        agent.label = agent.label or agent.name
        agent.created_at = now
        agent.updated_at = now

        await self.conn.execute(
            f"""
            INSERT INTO agents ({AGENT_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                agent.id,
                agent.name,
                agent.label,
                agent.model,
                agent.task,
                agent.status,
                agent.progress,
                agent.start_time,
                agent.end_time,
                agent.tokens_in,
                agent.tokens_out,
                agent.created_at,
                agent.updated_at,
            ),
        )
        await self.conn.commit()
        return agent

    async def update_agent(self, agent_id: str, updates: dict[str, Any]) -> int:
        """Apply a partial update; returns number of rows changed."""
        unknown = set(updates) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update columns: {', '.join(sorted(unknown))}")

        assignments = [f"{column} = ?" for column in updates]
        params: list[Any] = list(updates.values())
        assignments.append("updated_at = ?")
        params.append(now_millis())
        params.append(agent_id)

        cursor = await self.conn.execute(
            f"UPDATE agents SET {', '.join(assignments)} WHERE id = ?",
            params,
        )
        await self.conn.commit()
        return cursor.rowcount

    async def delete_agent(self, agent_id: str) -> int:
        """Delete an agent; returns number of rows deleted."""
        cursor = await self.conn.execute("DELETE FROM agents WHERE id = ?", (agent_id,))
        await self.conn.commit()
        return cursor.rowcount

    # Logs
    async def add_log(self, agent_id: str, message: str, level: str = "info") -> LogRecord:
        """Append a log line for an agent."""
        timestamp = now_millis()
        cursor = await self.conn.execute(
            """
            INSERT INTO logs (agent_id, message, level, timestamp)
            VALUES (?, ?, ?, ?)
            """,
            (agent_id, message, level, timestamp),
        )
        await self.conn.commit()

        return LogRecord(
            id=cursor.lastrowid,
            agent_id=agent_id,
            message=message,
            level=level,
            timestamp=timestamp,
        )

    async def get_logs(self, agent_id: str, limit: int = 1000) -> list[LogRecord]:
        """Get the latest logs for an agent in chronological order."""
        cursor = await self.conn.execute(
            """
            SELECT id, agent_id, message, level, timestamp
            FROM logs
            WHERE agent_id = ?
            ORDER BY timestamp DESC, id DESC
            LIMIT ?
            """,
            (agent_id, limit),
        )
        rows = await cursor.fetchall()

        records = [
            LogRecord(
                id=row[0],
                agent_id=row[1],
                message=row[2],
                level=row[3],
                timestamp=row[4],
            )
            for row in rows
        ]
        records.reverse()
        return records

    async def clear_logs(self, agent_id: str) -> int:
        """Delete all logs of an agent; returns number deleted."""
        cursor = await self.conn.execute("DELETE FROM logs WHERE agent_id = ?", (agent_id,))
        await self.conn.commit()
        return cursor.rowcount

    # Aggregates
    async def get_stats(self) -> dict[str, int]:
        """Agent counts by status."""
        cursor = await self.conn.execute(
            "SELECT status, COUNT(*) FROM agents GROUP BY status"
        )
        rows = await cursor.fetchall()
        by_status = {row[0]: row[1] for row in rows}

        return {
            "total": sum(by_status.values()),
            "running": by_status.get("running", 0),
            "completed": by_status.get("completed", 0),
            "errors": by_status.get("error", 0),
        }

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        for table in ["logs", "agents"]:
            await self.conn.execute(f"DELETE FROM {table}")

        await self.conn.commit()
