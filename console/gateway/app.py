"""
FastAPI application factory for the Tracklog Console.

This module creates the main FastAPI app with:
- CORS configuration for frontend
- TrackerService lifecycle management
- Tracking API routes
- Error mapping from tracker errors to HTTP status codes
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tracklog.tracker import __version__
from tracklog.tracker.config import TrackerConfig
from tracklog.tracker.errors import (
    CatalogError,
    MalformedInputError,
    NotConfiguredError,
    StatementExecutionError,
    TrackingError,
)
from tracklog.tracker.service import TrackerService
from tracklog.tracker.tools.tracking_cli import setup_logging

from .config import Settings
from .routes import router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the tracker service unless one was injected."""
    if getattr(app.state, "tracker", None) is None:
        config = TrackerConfig.from_env()
        setup_logging(config)
        config.log_config()
        tracker = TrackerService(config)
        tracker.initialize()
        app.state.tracker = tracker

    yield


def _error_response(status_code: int, error: TrackingError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error.code, "message": error.message, "details": error.details},
    )


def create_app(service: TrackerService | None = None, settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or Settings()

    app = FastAPI(
        title="Tracklog Console",
        description="JSON API for tracked table versions, reports and exports.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.tracker = service

    # CORS for frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(MalformedInputError)
    async def malformed_input(request: Request, exc: MalformedInputError):
        return _error_response(400, exc)

    @app.exception_handler(CatalogError)
    async def catalog_error(request: Request, exc: CatalogError):
        return _error_response(404, exc)

    @app.exception_handler(NotConfiguredError)
    async def not_configured(request: Request, exc: NotConfiguredError):
        return _error_response(503, exc)

    @app.exception_handler(StatementExecutionError)
    async def statement_failed(request: Request, exc: StatementExecutionError):
        return _error_response(422, exc)

    @app.exception_handler(TrackingError)
    async def tracking_error(request: Request, exc: TrackingError):
        return _error_response(500, exc)

    # API routes
    app.include_router(router, prefix="/api/v1")

    # Health endpoint at root
    @app.get("/health")
    async def health():
        tracker = app.state.tracker
        return {
            "status": "healthy",
            "service": "tracklog-console",
            "tracking": "enabled" if tracker is not None and tracker.is_configured else "disabled",
        }

    return app


# Default app instance
app = create_app()
