"""Live session API routes."""

from typing import Any, Literal

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse

from ...app import Application
from ...errors import SessionSourceError
from ...models import now_millis

SORTABLE_FIELDS = {
    "updatedAt",
    "lastActivity",
    "startTime",
    "createdAt",
    "totalTokens",
    "inputTokens",
    "outputTokens",
    "model",
    "status",
    "id",
}


def create_sessions_router(app: Application) -> APIRouter:
    """Create sessions router."""
    router = APIRouter(prefix="/api/clawdbot", tags=["sessions"])

    @router.get("/sessions")
    async def list_sessions(
        status: str | None = Query(None, description="Status filter, 'active' matches running sessions"),
        model: str | None = Query(None, description="Substring of the model name"),
        sort_by: str = Query("updatedAt", alias="sortBy"),
        sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
        limit: int | None = Query(None, ge=1, le=1000),
    ) -> dict[str, Any]:
        """Get all sessions with optional filters."""
        if sort_by not in SORTABLE_FIELDS:
            raise HTTPException(status_code=400, detail=f"Cannot sort by {sort_by}")
        try:
            sessions = await app.source.filter_sessions(
                status=status,
                model=model,
                sort_by=sort_by,
                sort_order=sort_order,
                limit=limit,
            )
        except SessionSourceError as e:
            raise HTTPException(status_code=500, detail=str(e))

        return {
            "success": True,
            "count": len(sessions),
            "sessions": [s.to_dict() for s in sessions],
        }

    @router.get("/sessions/active")
    async def list_active_sessions() -> dict[str, Any]:
        """Get sessions with recent activity."""
        try:
            sessions = await app.source.get_recent_sessions()
        except SessionSourceError as e:
            raise HTTPException(status_code=500, detail=str(e))

        return {
            "success": True,
            "count": len(sessions),
            "sessions": [s.to_dict() for s in sessions],
        }

    @router.get("/sessions/{session_id}")
    async def get_session(session_id: str) -> dict[str, Any]:
        """Get one session by id or key."""
        try:
            session = await app.source.get_session(session_id)
        except SessionSourceError as e:
            raise HTTPException(status_code=500, detail=str(e))

        if session is None:
            raise HTTPException(status_code=404, detail="Session not found")
        return {"success": True, "session": session.to_dict()}

    @router.get("/sessions/{session_id}/logs")
    async def get_session_logs(session_id: str) -> dict[str, Any]:
        """Get the full normalized transcript of a session."""
        try:
            session = await app.source.get_session(session_id)
        except SessionSourceError:
            session = None

        actual_id = session.id if session else session_id
        logs = await app.tailer.read_all(actual_id)
        return {
            "success": True,
            "count": len(logs),
            "logs": [log.to_dict() for log in logs],
        }

    @router.get("/stats")
    async def get_stats() -> dict[str, Any]:
        """Get aggregate session statistics."""
        try:
            stats = await app.source.get_statistics()
        except SessionSourceError as e:
            raise HTTPException(status_code=500, detail=str(e))
        return {"success": True, "stats": stats}

    @router.post("/refresh")
    async def refresh() -> dict[str, Any]:
        """Run a reconciliation tick now."""
        if not await app.reconciler.tick():
            raise HTTPException(status_code=503, detail="Session source unavailable")

        return {
            "success": True,
            "message": "Sessions refreshed",
            "count": app.reconciler.get_current_state()["trackedSessionCount"],
        }

    @router.get("/health")
    async def source_health():
        """Whether the session source is readable."""
        try:
            stats = await app.source.get_statistics()
        except SessionSourceError as e:
            return JSONResponse(
                status_code=503,
                content={
                    "success": False,
                    "status": "disconnected",
                    "error": str(e),
                    "timestamp": now_millis(),
                },
            )

        return {
            "success": True,
            "status": "connected",
            "sessions": stats["totalSessions"],
            "active": stats["activeSessions"],
            "timestamp": now_millis(),
        }

    @router.get("/watcher")
    async def watcher_state() -> dict[str, Any]:
        """Reconciler status."""
        return app.reconciler.get_current_state()

    return router
