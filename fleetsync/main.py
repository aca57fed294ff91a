"""
Fleet Console - FastAPI Application
Main entry point for the console API server
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fleetsync.api.routes import commands, devices, health, notifications, selection
from fleetsync.console import FleetConsole
from fleetsync.core.config import Settings, settings as default_settings
from fleetsync.core.logging import configure_logging

logger = structlog.get_logger(__name__)


def create_app(settings: Optional[Settings] = None, console: Optional[FleetConsole] = None) -> FastAPI:
    """Build the API application around one console session"""
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager"""
        session = console or FleetConsole(settings)
        app.state.console = session
        logger.info("Starting Fleet Console API", agent=settings.agent_base_url)
        # A failing event channel aborts start-up
        await session.start()
        yield
        logger.info("Shutting down Fleet Console API")
        await session.stop()

    app = FastAPI(
        title="Fleet Console API",
        description="Device fleet state, selection and remote commands",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, prefix="/api/v1", tags=["health"])
    app.include_router(devices.router, prefix="/api/v1", tags=["devices"])
    app.include_router(selection.router, prefix="/api/v1", tags=["selection"])
    app.include_router(commands.router, prefix="/api/v1", tags=["commands"])
    app.include_router(notifications.router, prefix="/api/v1", tags=["notifications"])

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "message": "Fleet Console API",
            "version": "1.0.0",
            "docs": "/docs",
            "health": "/api/v1/health"
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """Global exception handler"""
        logger.error("Unhandled exception", exc_info=exc, path=request.url.path)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"}
        )

    return app


def main() -> None:
    configure_logging(default_settings.log_level, default_settings.log_json)
    uvicorn.run(
        "fleetsync.main:create_app",
        factory=True,
        host=default_settings.api_host,
        port=default_settings.api_port,
        reload=default_settings.debug,
        log_level=default_settings.log_level.lower()
    )


if __name__ == "__main__":
    main()
