"""Agent record API routes."""

import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from fastapi import APIRouter, HTTPException

from ...app import Application
from ...errors import SessionSourceError
from ...logging_config import get_logger
from ...models import AgentRecord, EventType, now_millis

logger = get_logger(__name__)


class AgentCreateRequest(BaseModel):
    """Request model for creating an agent."""

    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    name: str
    label: str | None = None
    model: str | None = None
    task: str | None = None
    status: str = "running"
    progress: int = Field(default=0, ge=0, le=100)
    start_time: int | None = Field(default=None, alias="startTime")
    tokens_in: int = Field(default=0, alias="tokensIn", ge=0)
    tokens_out: int = Field(default=0, alias="tokensOut", ge=0)


class AgentUpdateRequest(BaseModel):
    """Request model for a partial status update."""

    model_config = ConfigDict(populate_by_name=True)

    name: str | None = None
    label: str | None = None
    model: str | None = None
    task: str | None = None
    status: str | None = None
    progress: int | None = Field(default=None, ge=0, le=100)
    start_time: int | None = Field(default=None, alias="startTime")
    end_time: int | None = Field(default=None, alias="endTime")
    tokens_in: int | None = Field(default=None, alias="tokensIn", ge=0)
    tokens_out: int | None = Field(default=None, alias="tokensOut", ge=0)


class ControlRequest(BaseModel):
    """Request model for agent control."""

    action: str  # "stop", "kill" or "restart"


STATUS_EVENTS = {
    "completed": EventType.AGENT_COMPLETED,
    "error": EventType.AGENT_ERROR,
}


def create_agents_router(app: Application) -> APIRouter:
    """Create agents router."""
    router = APIRouter(prefix="/api/agents", tags=["agents"])

    @router.get("")
    async def list_agents() -> list[dict[str, Any]]:
        """Stored agents merged with live sessions (live wins on id clash)."""
        try:
            live = [s.to_dict() for s in await app.source.fetch_snapshots()]
        except SessionSourceError as e:
            logger.warning("Could not fetch live sessions: %s", e)
            live = []

        live_ids = {s["id"] for s in live}
        stored = [a.to_dict() for a in await app.storage.list_agents() if a.id not in live_ids]
        return live + stored

    @router.get("/stats")
    async def get_stats() -> dict[str, Any]:
        """Agent counts by status."""
        stats = await app.storage.get_stats()
        return {**stats, "avgCompletionTime": 0}

    @router.get("/{agent_id}")
    async def get_agent(agent_id: str) -> dict[str, Any]:
        """Get a stored agent."""
        agent = await app.storage.get_agent(agent_id)
        if agent is None:
            raise HTTPException(status_code=404, detail="Agent not found")
        return agent.to_dict()

    @router.post("", status_code=201)
    async def create_agent(request: AgentCreateRequest) -> dict[str, Any]:
        """Create an agent and announce it."""
        agent = AgentRecord(
            id=request.id or str(uuid.uuid4()),
            name=request.name,
            label=request.label,
            model=request.model,
            task=request.task,
            status=request.status,
            progress=request.progress,
            start_time=request.start_time or now_millis(),
            tokens_in=request.tokens_in,
            tokens_out=request.tokens_out,
        )
        if await app.storage.get_agent(agent.id) is not None:
            raise HTTPException(status_code=409, detail="Agent already exists")

        agent = await app.storage.create_agent(agent)
        await app.hub.publish(EventType.AGENT_STARTED, agent.to_dict())
        return agent.to_dict()

    @router.post("/{agent_id}/update-status")
    async def update_status(agent_id: str, request: AgentUpdateRequest) -> dict[str, Any]:
        """Apply a partial update and announce it."""
        updates = request.model_dump(exclude_unset=True)
        changed = await app.storage.update_agent(agent_id, updates)
        if not changed:
            raise HTTPException(status_code=404, detail="Agent not found")

        agent = await app.storage.get_agent(agent_id)
        if agent is None:
            raise HTTPException(status_code=404, detail="Agent not found")

        event_type = STATUS_EVENTS.get(updates.get("status"), EventType.AGENT_UPDATED)
        await app.hub.publish(event_type, agent.to_dict())
        return agent.to_dict()

    @router.post("/{agent_id}/control")
    async def control_agent(agent_id: str, request: ControlRequest) -> dict[str, Any]:
        """Stop, kill or restart an agent record."""
        if await app.storage.get_agent(agent_id) is None:
            raise HTTPException(status_code=404, detail="Agent not found")

        now = now_millis()
        if request.action in ("stop", "kill"):
            updates = {"status": "completed", "end_time": now, "progress": 100}
        elif request.action == "restart":
            updates = {"status": "running", "start_time": now, "end_time": None, "progress": 0}
        else:
            raise HTTPException(status_code=400, detail="Invalid action")

        await app.storage.update_agent(agent_id, updates)
        agent = await app.storage.get_agent(agent_id)

        await app.hub.publish(EventType.AGENT_UPDATED, agent.to_dict())
        return {"success": True, "agent": agent.to_dict()}

    @router.delete("/{agent_id}")
    async def delete_agent(agent_id: str) -> dict[str, Any]:
        """Delete a stored agent."""
        deleted = await app.storage.delete_agent(agent_id)
        return {"success": True, "deleted": deleted}

    return router
