"""FastAPI application exposing REST endpoints for the asymmetry analyzer.

Endpoints:
- POST /pose/frame: landmark ingestion from a detector client (JSON)
- POST /session/*: countdown, recording and report controls (JSON)
- GET /reports/{id}: report of a stored session (JSON)
- GET /config: effective thresholds and timing (JSON)

This module wires sub-routers from domain modules and provides a health check.
"""
from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from asymmetry.core.config import get_settings
from asymmetry.core.logging_config import setup_logging
from asymmetry.api.routers.pose import router as pose_router, pose_backend
from asymmetry.api.routers.session import router as session_router, controller
from asymmetry.api.routers.reports import router as reports_router
from asymmetry.api.routers.config_router import router as config_router
from asymmetry.core.db import engine, Base
from asymmetry.core.session import SessionState
from asymmetry.vision.camera import CameraPoseSource

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: ensure DB tables exist
    Base.metadata.create_all(bind=engine)
    # Configure file logging
    sink_id = setup_logging(settings.log_level, settings.logs_dir / "app.log")
    pose_backend.start()
    logger.info("Pose backend '{}' ready", pose_backend.name)
    camera: CameraPoseSource | None = None
    if settings.camera_enabled:
        camera = CameraPoseSource(pose_backend, settings)
        try:
            camera.start()
        except RuntimeError as exc:
            logger.warning("Camera source unavailable, waiting for pushed frames: {}", exc)
            camera = None
    yield
    if camera is not None:
        camera.stop()
    # Shutdown: end any running session, then the frame pump
    state = controller.state
    if state is SessionState.COUNTDOWN:
        controller.cancel()
    elif state is SessionState.RECORDING:
        controller.stop()
        controller.wait(timeout=5.0)
    pose_backend.close()
    if sink_id is not None:
        logger.remove(sink_id)


app = FastAPI(title=settings.app_name, lifespan=lifespan)

# CORS for mobile app dev
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.exposed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)


@app.get("/health")
async def health() -> dict:
    """Return API health status."""

    return {"status": "ok", "backend": pose_backend.name, "session": controller.state.value}


# Routers
app.include_router(pose_router, prefix="", tags=["pose"])
app.include_router(session_router, prefix="", tags=["session"])
app.include_router(reports_router, prefix="", tags=["reports"])
app.include_router(config_router, prefix="", tags=["config"])
