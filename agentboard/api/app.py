"""FastAPI application factory for the agentboard tracker API."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

# Configure root logger so all application logs are visible in process output
logging.basicConfig(
    level=os.environ.get("AGENTBOARD_LOG_LEVEL", "INFO"),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
from fastapi.middleware.cors import CORSMiddleware

from agentboard import __version__
from agentboard.api.broadcaster import Broadcaster
from agentboard.engine.log_buffer import BufferHandler, LogBuffer
from agentboard.engine.tracker import AgentTracker

logger = logging.getLogger("api")


def create_app(
    tracker: AgentTracker | None = None,
    broadcaster: Broadcaster | None = None,
    log_buffer: LogBuffer | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    All dependencies are injectable for testing. When called with no
    arguments, defaults are built from the environment configuration.

    Args:
        tracker: Injected tracker (creates default if None).
        broadcaster: Injected change broadcaster (creates default if None).
        log_buffer: Injected log buffer (creates default if None).

    Returns:
        Configured FastAPI instance.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan -- restore state on start, final save on exit."""
        logger.info("agentboard v%s starting", __version__)
        app.state.tracker.start()
        logger.info(
            "[STARTUP] Tracker ready with %d records from %s",
            len(app.state.tracker.store),
            app.state.tracker.snapshots.path,
        )
        yield
        logger.info("Shutting down agentboard")
        app.state.tracker.shutdown()

    app = FastAPI(
        title="agentboard",
        description="Live agent lifecycle reconstruction from tool-use hook events.",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Shared state ──────────────────────────────────────────────────
    app.state.tracker = tracker if tracker is not None else AgentTracker()
    app.state.broadcaster = broadcaster if broadcaster is not None else Broadcaster()
    app.state.log_buffer = log_buffer if log_buffer is not None else LogBuffer()
    app.state.tracker.add_listener(app.state.broadcaster.notify)

    # Attach a BufferHandler to the root logger so all log records are
    # captured in the ring buffer.
    _buffer_handler = BufferHandler(app.state.log_buffer)
    _buffer_handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logging.getLogger().addHandler(_buffer_handler)

    # ── CORS ──────────────────────────────────────────────────────────
    allowed_origins = os.environ.get(
        "ALLOWED_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
    ).split(",")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Routers ───────────────────────────────────────────────────────
    from agentboard.api.routes.health import router as health_router
    from agentboard.api.routes.logs import router as logs_router
    from agentboard.api.routes.state import router as state_router
    from agentboard.api.routes.stream import router as stream_router

    app.include_router(health_router)
    app.include_router(logs_router)
    app.include_router(state_router)
    app.include_router(stream_router)

    return app
