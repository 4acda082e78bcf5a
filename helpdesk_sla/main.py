"""
Helpdesk SLA - Main Application
================================

SLA tracking service for a multi-tenant helpdesk.

Modules:
- SLA: Configurations, due-date calculation, status tracking, alerts and reports

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities and value objects
- Infrastructure: Database, Slack, scheduler
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Configuration
from helpdesk_sla.config import settings

# Infrastructure
from helpdesk_sla.infrastructure.database import init_database, close_database, create_tables

# SLA Module - External services
from helpdesk_sla.sla.infrastructure.external import SlackClient, SLAScheduler
from helpdesk_sla.sla.services import SLASweeper

# Module Routers
from helpdesk_sla.sla.interfaces import sla_router

# Middleware and logging
from helpdesk_sla.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    register_exception_handlers
)
from helpdesk_sla.shared.infrastructure.logging import setup_logging, get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database
    3. Create database tables
    4. Start the SLA sweep (when enabled)

    SHUTDOWN:
    1. Stop SLA scheduler
    2. Close Slack client
    3. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Helpdesk SLA service", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    logger.info("Initializing database")
    init_database()

    # Create tables (for development - use Alembic in production)
    logger.info("Creating database tables")
    try:
        await create_tables()
    except Exception as e:
        logger.warning(f"Database not available - running in degraded mode: {e}")

    slack_client = SlackClient(settings)
    sla_scheduler = None

    if settings.sla_sweep_enabled:
        try:
            sweeper = SLASweeper(slack_client, settings)
            sla_scheduler = SLAScheduler(interval_seconds=settings.sla_evaluation_interval)
            await sla_scheduler.start(sweeper.run_job)
        except Exception as e:
            logger.warning(f"SLA scheduler not started: {e}")
            sla_scheduler = None
    else:
        logger.info("SLA sweep disabled")

    app.state.sla_scheduler = sla_scheduler
    app.state.slack_client = slack_client

    logger.info("Helpdesk SLA service started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Helpdesk SLA service")

    if sla_scheduler:
        await sla_scheduler.stop()

    await slack_client.close()
    await close_database()

    logger.info("Helpdesk SLA service shutdown complete")


def create_app() -> FastAPI:
    """Build the FastAPI application with middleware, handlers and routers."""
    application = FastAPI(
        title="Helpdesk SLA API",
        description="""
    ## Helpdesk SLA Service

    Per-tenant Service Level Agreement tracking for helpdesk tickets.

    **Configurations** - `/sla/configs`: first-response and resolution targets per
    priority, optionally per category, with business hours and timezone.

    **Tracking** - `POST /sla/tickets` starts tracking, `PATCH /sla/status`
    records first response and resolution, `GET /sla/status` lists statuses.

    **Alerts & Reports** - `/sla/alerts`, `/sla/reports`, `/sla/statistics`, `/sla/logs`.

    Every request carries `X-User-ID` and `X-Tenant-ID` headers; `X-User-Role`
    is required for administrator operations.
    """,
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    # === CORS Middleware ===
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Added last runs first: correlation id must be set before request logging
    application.add_middleware(LoggingMiddleware)
    application.add_middleware(CorrelationIDMiddleware)
    register_exception_handlers(application)

    application.state.settings = settings

    # === Include Module Routers ===
    application.include_router(sla_router)

    @application.get("/health", tags=["Health"], responses={
        200: {
            "description": "Service is healthy",
            "content": {
                "application/json": {
                    "example": {
                        "status": "healthy",
                        "version": "1.0.0",
                        "environment": "development",
                        "checks": {"sla_scheduler": "running", "slack": "configured"}
                    }
                }
            }
        }
    })
    async def health_check(request: Request):
        """Health check endpoint for load balancers and orchestrators."""
        scheduler = getattr(request.app.state, "sla_scheduler", None)
        checks = {
            "sla_scheduler": "running" if scheduler and scheduler.is_running else "stopped",
            "slack": "configured" if settings.slack_webhook_url else "not_configured",
        }
        return {
            "status": "healthy",
            "version": settings.app_version,
            "environment": settings.environment,
            "checks": checks
        }

    @application.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "service": settings.app_name,
            "version": settings.app_version,
            "docs": "/docs",
            "health": "/health",
            "modules": {"sla": {"prefix": "/sla"}}
        }

    return application


app = create_app()


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "helpdesk_sla.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
