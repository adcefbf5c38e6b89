"""Stored agent log API routes."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel
from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import PlainTextResponse

from ...app import Application
from ...models import EventType


class LogCreateRequest(BaseModel):
    """Request model for adding a log line."""

    message: str
    level: str = "info"


def _iso(millis: int | None) -> str:
    if millis is None:
        return "unknown"
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc).isoformat()


def create_logs_router(app: Application) -> APIRouter:
    """Create logs router."""
    router = APIRouter(prefix="/api/agents", tags=["logs"])

    @router.get("/{agent_id}/logs")
    async def get_logs(
        agent_id: str,
        limit: int = Query(1000, ge=1, le=10000),
    ) -> list[dict[str, Any]]:
        """Get the latest logs of an agent in chronological order."""
        logs = await app.storage.get_logs(agent_id, limit=limit)
        return [log.to_dict() for log in logs]

    @router.post("/{agent_id}/logs", status_code=201)
    async def add_log(agent_id: str, request: LogCreateRequest) -> dict[str, Any]:
        """Append a log line and stream it to subscribers."""
        log = await app.storage.add_log(agent_id, request.message, request.level)
        await app.hub.publish(EventType.LOG_UPDATE, {"agentId": agent_id, "log": log.to_dict()})
        return log.to_dict()

    @router.delete("/{agent_id}/logs")
    async def clear_logs(agent_id: str) -> dict[str, Any]:
        """Delete all logs of an agent."""
        deleted = await app.storage.clear_logs(agent_id)
        await app.hub.publish(EventType.LOGS_CLEARED, {"agentId": agent_id})
        return {"success": True, "deleted": deleted}

    @router.get("/{agent_id}/logs/export", response_class=PlainTextResponse)
    async def export_logs(agent_id: str) -> PlainTextResponse:
        """Download an agent's logs as plain text."""
        agent = await app.storage.get_agent(agent_id)
        if agent is None:
            raise HTTPException(status_code=404, detail="Agent not found")
        logs = await app.storage.get_logs(agent_id, limit=10000)

        lines = [
            "Agent Logs Export",
            f"Agent: {agent.name} ({agent.id})",
            f"Model: {agent.model}",
            f"Status: {agent.status}",
            f"Created: {_iso(agent.created_at)}",
            "",
            "=" * 80,
            "",
        ]
        lines.extend(
            f"[{_iso(log.timestamp)}] [{log.level.upper()}] {log.message}" for log in logs
        )

        return PlainTextResponse(
            "\n".join(lines) + "\n",
            headers={"Content-Disposition": f'attachment; filename="agent-{agent_id}-logs.txt"'},
        )

    return router
