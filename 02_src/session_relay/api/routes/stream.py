"""WebSocket route for live event subscribers."""

from fastapi import APIRouter, WebSocket

from ...app import Application


def create_stream_router(app: Application) -> APIRouter:
    """Create WebSocket router."""
    router = APIRouter(tags=["stream"])

    @router.websocket("/ws")
    async def subscribe(websocket: WebSocket) -> None:
        """Stream broadcast events until the client disconnects."""
        await app.hub.handle_connection(websocket)

    return router
