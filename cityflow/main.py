"""
CityFlow CRM - Main Application
================================

Internal ticketing for city operations.

Modules:
- Directory: regions, city mappings, teams, issue types, staff profiles
- Routing: issue type + city -> assignee, team, tier-2 team and SLA due time
- Tickets: lifecycle, comments, attachments, groups and bulk actions
- SLA Monitoring: live SLA readings, periodic refresh and breach alerts
- Reporting: dashboard numbers and period summaries

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities and value objects
- Infrastructure: Database, object storage, escalation webhook
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Configuration and Core
from cityflow.config import settings
from cityflow.core import ApplicationException

# Infrastructure
from cityflow.infrastructure.database import (
    close_database,
    create_tables,
    get_session_context,
    init_database,
)
from cityflow.sla.application import SLAMonitorService
from cityflow.sla.infrastructure import EscalationNotifier, SLAScheduler
from cityflow.tickets.infrastructure import HTTPObjectStorage, SQLAlchemyTicketRepository

# Module Routers
from cityflow.directory.interfaces import admin_router, session_router
from cityflow.reporting.interfaces import reporting_router
from cityflow.routing.interfaces import routing_router
from cityflow.tickets.interfaces import groups_router, tickets_router

# Middleware and logging
from cityflow.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)
from cityflow.shared.infrastructure.logging import get_logger, setup_logging

logger = get_logger(__name__)


async def run_sla_refresh(notifier: Optional[EscalationNotifier] = None) -> dict:
    """
    One SLA status refresh in its own database session.

    Breach alerts go out once the session has committed.
    """
    async with get_session_context() as session:
        monitor = SLAMonitorService(SQLAlchemyTicketRepository(session), notifier)
        summary = await monitor.refresh_open_tickets()
    summary["notified"] = await monitor.notify_breaches()
    return summary


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database (and create tables in development)
    3. Build the escalation notifier and object storage client
    4. Start the SLA refresh scheduler

    SHUTDOWN:
    1. Stop the scheduler
    2. Close HTTP clients
    3. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting CityFlow CRM", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    init_database()
    if settings.environment == "development":
        # Alembic owns the schema outside development
        logger.info("Creating database tables")
        await create_tables()

    notifier = EscalationNotifier(settings)
    if not notifier.enabled:
        logger.warning("Escalation webhook not configured - notifications disabled")

    object_storage = HTTPObjectStorage(settings)
    if not settings.storage_api_key:
        logger.warning("Object storage key not configured - uploads may be rejected")

    logger.info(
        "Routing rules and SLA rules are administrative only; "
        "routing and due times come from issue type defaults"
    )

    async def sla_refresh_job():
        await run_sla_refresh(notifier)

    sla_scheduler = SLAScheduler(interval_seconds=settings.sla_evaluation_interval)
    await sla_scheduler.start(sla_refresh_job)

    # Store services in app state for dependency injection
    app.state.notifier = notifier
    app.state.object_storage = object_storage
    app.state.sla_scheduler = sla_scheduler

    logger.info("CityFlow CRM started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down CityFlow CRM")

    await sla_scheduler.stop()
    await notifier.close()
    await object_storage.close()
    await close_database()

    logger.info("CityFlow CRM shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="CityFlow CRM API",
    description="""
    ## Ticketing for City Operations

    Staff log tickets against an issue type and a city. Each ticket is routed
    on creation: the city picks the region (and its tier-2 city team), the
    issue type picks the default assignee, team and SLA hours.

    ---

    ### Authentication

    Sign in with `POST /session/sign-in`, then send your user id in the
    `X-User-Id` header. Agents and admins attached to a region only see that
    region's tickets.

    ---

    ### SLA readings

    | Status | Rule |
    |--------|------|
    | breached | now is past the due time |
    | warning | two hours or less remaining |
    | on-track | otherwise |

    Resolved and closed tickets read **Completed**.

    ---
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)
app.state.settings = settings

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware ===
app.add_middleware(CorrelationIDMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(session_router)
app.include_router(admin_router)
app.include_router(routing_router)
app.include_router(tickets_router)
app.include_router(groups_router)
app.include_router(reporting_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.
    """
    scheduler = getattr(request.app.state, "sla_scheduler", None)
    notifier = getattr(request.app.state, "notifier", None)
    checks = {
        "sla_scheduler": "running" if scheduler and scheduler.is_running else "stopped",
        "escalation_webhook": "configured" if notifier and notifier.enabled else "not_configured",
        "object_storage": "configured" if settings.storage_api_key else "not_configured",
    }
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": "CityFlow CRM",
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "session": "/session",
            "admin": "/admin",
            "routing": "/assignment",
            "tickets": "/tickets",
            "groups": "/groups",
            "reports": "/reports",
        }
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "cityflow.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
