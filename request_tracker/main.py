"""Request Tracker FastAPI application entry point."""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from request_tracker import config
from request_tracker.observability import initialize as initialize_observability, shutdown as shutdown_observability
from request_tracker.routers.logs import logs_router
from request_tracker.services.file_watcher import file_watcher
from request_tracker.services.library import LogLibrary

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("request_tracker")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("Request tracker starting up (logs=%s)", config.LOGS_DIR)
    initialize_observability(app)

    library = LogLibrary(config.LOGS_DIR)
    app.state.library = library

    async def _run_startup_refresh() -> None:
        delay = max(0, config.STARTUP_REFRESH_DELAY_SECONDS)
        if delay > 0:
            await asyncio.sleep(delay)
        await library.refresh(trigger="startup")

    # Aggregate in the background so startup is not blocked on a large root.
    app.state.refresh_task = asyncio.create_task(_run_startup_refresh())

    if config.WATCH_ENABLED:
        await file_watcher.start(library)

    yield

    logger.info("Request tracker shutting down")

    app.state.refresh_task.cancel()
    try:
        await app.state.refresh_task
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.exception("Startup refresh failed")

    await file_watcher.stop()
    shutdown_observability(app)


app = FastAPI(
    title="Request Tracker API",
    description="Aggregates and searches AI-assistant request logs",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        config.FRONTEND_ORIGIN,
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(logs_router)


@app.get("/api/health")
def health():
    """Health check endpoint."""
    library = getattr(app.state, "library", None)
    return {
        "status": "ok",
        "library": "ready" if library is not None and library.is_ready else "pending",
        "watcher": "running" if file_watcher.is_running else "stopped",
    }
