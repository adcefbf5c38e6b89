"""FastAPI application setup."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..app import Application
from .routes import agents, health, logs, sessions, stream, telemetry


def create_fastapi_app(application: Application | None = None) -> FastAPI:
    """Create and configure FastAPI application around an Application."""
    application = application or Application()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan."""
        await application.start()
        yield
        await application.stop()

    fastapi_app = FastAPI(
        title="Session Relay API",
        description="Live session lifecycle and log streaming",
        version="0.1.0",
        lifespan=lifespan,
    )
    fastapi_app.state.application = application

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=application.settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    fastapi_app.include_router(health.create_health_router(application))
    fastapi_app.include_router(stream.create_stream_router(application))
    fastapi_app.include_router(sessions.create_sessions_router(application))
    fastapi_app.include_router(agents.create_agents_router(application))
    fastapi_app.include_router(logs.create_logs_router(application))
    fastapi_app.include_router(telemetry.create_telemetry_router(application))

    return fastapi_app
