"""Health API routes."""

from pydantic import BaseModel
from fastapi import APIRouter

from ...app import Application
from ...models import now_millis


class HealthResponse(BaseModel):
    """Response model for health."""

    status: str
    timestamp: int
    connections: int


def create_health_router(app: Application) -> APIRouter:
    """Create health router."""
    router = APIRouter(prefix="/api", tags=["health"])

    @router.get("/health", response_model=HealthResponse)
    async def health() -> dict:
        """Process liveness and subscriber count."""
        return {
            "status": "ok",
            "timestamp": now_millis(),
            "connections": app.hub.active_subscriber_count(),
        }

    return router
