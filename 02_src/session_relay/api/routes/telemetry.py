"""Telemetry API routes."""

from typing import Any

from fastapi import APIRouter

from ...app import Application
from ...models import now_millis


def create_telemetry_router(app: Application) -> APIRouter:
    """Create telemetry router."""
    router = APIRouter(prefix="/api/telemetry", tags=["telemetry"])

    @router.get("/status")
    async def get_status() -> dict[str, Any]:
        """Minimal status view of stored agents plus subscriber count."""
        agents = await app.storage.list_agents()
        return {
            "timestamp": now_millis(),
            "connectionCount": app.hub.active_subscriber_count(),
            "watcher": app.reconciler.get_current_state(),
            "agents": [
                {
                    "id": a.id,
                    "name": a.name or a.id,
                    "status": a.status or "unknown",
                    "lastActivity": a.updated_at,
                }
                for a in agents
            ],
        }

    return router
