"""Main entry point for Session Relay."""

import asyncio
import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from session_relay import Application, RelaySettings
from session_relay.api import create_fastapi_app
from session_relay.logging_config import get_logger, setup_logging
from sim import Sim

logger = get_logger(__name__)


async def serve(settings: RelaySettings, with_sim: bool = False) -> None:
    """Serve the API, optionally next to the fake session producer."""
    application = Application(settings)
    app = create_fastapi_app(application)

    config = uvicorn.Config(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
        log_config=None,  # keep JSON logging
    )
    server = uvicorn.Server(config)

    sim = Sim(settings.sessions_dir) if with_sim else None
    if sim:
        logger.info("SIM enabled, writing sessions to %s", settings.sessions_dir)
        await sim.start()

    try:
        await server.serve()
    finally:
        if sim:
            await sim.stop()


def main():
    """Run the application."""
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")

    settings = RelaySettings.from_env()
    setup_logging(settings.log_level)

    with_sim = os.getenv("SIM_ENABLED", "").lower() in ("1", "true", "yes")
    asyncio.run(serve(settings, with_sim=with_sim))


if __name__ == "__main__":
    main()
