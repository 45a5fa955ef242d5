"""
FastAPI application for promosync.

Wires the sync engine (content source client, repositories, orchestrator and
scheduler) into the application lifespan and exposes the operator API.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from promosync.api.sync_api import router as sync_router
from promosync.config.settings import Settings, settings
from promosync.database.connection import DatabaseManager
from promosync.database.repositories import build_sql_repositories
from promosync.sync.connectors.notion import NotionContentClient
from promosync.sync.gateway.rate_limiter import RateLimitConfig, RateLimiter
from promosync.sync.orchestrator import SyncOrchestrator
from promosync.sync.scheduler import SyncScheduler

logger = logging.getLogger(__name__)


@dataclass
class SyncEngine:
    """Long-lived objects owned by one application instance."""
    orchestrator: SyncOrchestrator
    scheduler: SyncScheduler
    client: NotionContentClient
    db_manager: DatabaseManager

    def close(self) -> None:
        self.scheduler.stop()
        self.client.close()
        self.db_manager.close()


def build_engine(config: Settings) -> SyncEngine:
    """Build the production engine: Notion client, SQL repositories, orchestrator."""
    db_manager = DatabaseManager(config.database)
    db_manager.initialize()
    db_manager.create_tables()

    rate_limiter = RateLimiter(RateLimitConfig.from_settings(config.sync))
    client = NotionContentClient(config.notion, rate_limiter=rate_limiter)
    orchestrator = SyncOrchestrator.create(client, build_sql_repositories(db_manager), config)
    scheduler = SyncScheduler(orchestrator, config.scheduler)
    return SyncEngine(orchestrator, scheduler, client, db_manager)


def create_app(
    config: Optional[Settings] = None,
    orchestrator: Optional[SyncOrchestrator] = None
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        config: Settings to use; the process settings by default
        orchestrator: Pre-built orchestrator. When given, the lifespan does
            not build an engine of its own.

    Returns:
        The configured application
    """
    config = config or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {config.app.app_name} v{config.app.app_version}")
        engine: Optional[SyncEngine] = None
        if getattr(app.state, "sync_orchestrator", None) is None:
            engine = build_engine(config)
            app.state.sync_orchestrator = engine.orchestrator
            app.state.sync_scheduler = engine.scheduler
            engine.scheduler.start()
        try:
            yield
        finally:
            logger.info("Shutting down application")
            if engine is not None:
                engine.close()

    app = FastAPI(
        title=config.app.app_name,
        description="Content synchronization engine for a wrestling promotion simulation",
        version=config.app.app_version,
        debug=config.app.debug,
        lifespan=lifespan,
    )
    app.state.sync_orchestrator = orchestrator

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "message": str(exc) if config.app.debug else "An error occurred",
            },
        )

    @app.get("/")
    async def root():
        return {"name": config.app.app_name, "version": config.app.app_version}

    app.include_router(sync_router)
    return app


app = create_app()


__all__ = ["SyncEngine", "build_engine", "create_app", "app"]
