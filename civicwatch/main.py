"""
CivicWatch - Main Application
=============================

Civic complaint lifecycle service.

Modules:
- Complaints: Admission gate, official actions, audit and timeline
- Triage: Bounded-time classification and escalation advisories (LLM)
- SLA: Escalation state machine and the background watchdog

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities and value objects
- Infrastructure: Database, LLM, scheduler, policy file
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# Configuration and Core
from civicwatch.config import Settings, get_settings
from civicwatch.core import ApplicationException

# Infrastructure
from civicwatch.infrastructure.database import (
    close_database,
    create_tables,
    get_session_maker,
    init_database,
)

# Complaints Module
from civicwatch.complaints.application import (
    AdmissionService,
    ComplaintService,
    IComplaintRepository,
)
from civicwatch.complaints.infrastructure import SQLAlchemyComplaintRepository
from civicwatch.complaints.interfaces import complaints_router

# Triage Module
from civicwatch.triage.application import ClassificationGateway, EscalationAdvisor
from civicwatch.triage.infrastructure import LLMClientAdapter

# SLA Module
from civicwatch.sla.application import SLAWatchdog
from civicwatch.sla.domain import ISLAPolicyProvider, SLAPolicy
from civicwatch.sla.infrastructure import SLAConfigManager, WatchdogScheduler
from civicwatch.sla.interfaces import sla_router

# Shared
from civicwatch.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)
from civicwatch.shared.infrastructure.grafana import get_grafana_exporter, init_grafana_exporter
from civicwatch.shared.infrastructure.logging import get_logger, setup_logging

logger = get_logger(__name__)


@dataclass
class Container:
    """Service instances shared by the route handlers via `app.state.container`."""
    settings: Settings
    session_factory: async_sessionmaker[AsyncSession]
    repository: IComplaintRepository
    policy_provider: ISLAPolicyProvider
    admission_service: AdmissionService
    complaint_service: ComplaintService
    watchdog: SLAWatchdog
    llm_client: Optional[LLMClientAdapter] = None
    scheduler: Optional[WatchdogScheduler] = None


def build_container(settings: Settings) -> Container:
    """
    Wire services from settings.

    Expects `init_database()` to have been called. The policy file is
    loaded here but not watched; the lifespan starts the observer.
    """
    session_factory = get_session_maker()
    repository = SQLAlchemyComplaintRepository(session_factory)

    policy_provider = SLAConfigManager(defaults=SLAPolicy(
        sla_duration_seconds=settings.sla_duration_seconds,
        batch_size=settings.watchdog_batch_size
    ))
    policy_provider.load(settings.sla_config_path)

    llm_client = LLMClientAdapter.from_settings(settings)
    gateway = ClassificationGateway(
        llm_client,
        timeout_seconds=settings.classification_timeout_seconds,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens
    )
    advisor = EscalationAdvisor(llm_client, timeout_seconds=settings.advisory_timeout_seconds)

    return Container(
        settings=settings,
        session_factory=session_factory,
        repository=repository,
        policy_provider=policy_provider,
        admission_service=AdmissionService(repository, gateway, policy_provider),
        complaint_service=ComplaintService(repository),
        watchdog=SLAWatchdog(
            repository,
            policy_provider,
            advisor=advisor,
            metrics_exporter=get_grafana_exporter()
        ),
        llm_client=llm_client,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database (create tables in development)
    3. Initialize Grafana exporter
    4. Load SLA policy and start watching the file
    5. Start the watchdog scheduler

    SHUTDOWN:
    1. Stop the watchdog scheduler
    2. Stop the policy file watcher
    3. Close database connections

    An injected container (tests) is used as-is and nothing is started.
    """
    if app.state.container is not None:
        yield
        return

    settings: Settings = app.state.settings

    # === STARTUP ===
    setup_logging(level=settings.log_level, environment=settings.environment)
    logger.info("Starting CivicWatch", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    logger.info("Initializing database")
    init_database()

    # Production should use migrations
    if settings.environment == "development":
        logger.info("Creating database tables")
        try:
            await create_tables()
        except (OSError, SQLAlchemyError) as e:
            logger.warning(f"Database not available - running in degraded mode: {e}")

    if settings.grafana_host and settings.grafana_api_key and settings.grafana_instance_id:
        init_grafana_exporter(
            host=settings.grafana_host,
            api_key=settings.grafana_api_key,
            instance_id=settings.grafana_instance_id
        )
        logger.info("Grafana OTLP exporter initialized")
    else:
        logger.info("Grafana OTLP exporter not configured - metrics will not be exported")

    logger.info("Loading SLA policy", extra={"path": str(settings.sla_config_path)})
    container = build_container(settings)
    container.policy_provider.start_watching()

    if settings.watchdog_enabled:
        container.scheduler = WatchdogScheduler(
            container.watchdog,
            interval_seconds=settings.watchdog_interval_seconds,
            jitter_min_seconds=settings.watchdog_start_jitter_min_seconds,
            jitter_max_seconds=settings.watchdog_start_jitter_max_seconds
        )
        await container.scheduler.start()
    else:
        logger.info("Watchdog disabled - use POST /sla/tick to scan manually")

    app.state.container = container
    logger.info("CivicWatch started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down CivicWatch")

    if container.scheduler:
        await container.scheduler.stop()
    else:
        await container.watchdog.aclose()

    container.policy_provider.stop_watching()
    await close_database()
    app.state.container = None

    logger.info("CivicWatch shutdown complete")


def create_app(
    container: Optional[Container] = None,
    settings: Optional[Settings] = None
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        container: Pre-wired services; skips startup wiring when given
        settings: Override for the cached settings
    """
    settings = settings or (container.settings if container else get_settings())

    app = FastAPI(
        title="CivicWatch API",
        description="""
    ## Civic Complaint Lifecycle Service

    Citizens report civic issues; an automated classifier routes them to a
    department and a background watchdog escalates anything left unattended.

    ---

    ### 📝 Complaints Module

    - `POST /complaints` - Submit a complaint (accepted: 201, rejected: 200)
    - `GET /complaints/{id}` - Complaint record
    - `GET /complaints/{id}/timeline` - Citizen-facing timeline
    - `GET /complaints/{id}/audit` - Audit log
    - `PATCH /complaints/{id}/status` - Official status update
    - `POST /complaints/{id}/assign` - Assign to an official

    ### ⏱️ SLA Module

    - `POST /sla/tick` - Run one watchdog scan now
    - `GET /sla/watchdog` - Scheduler state and policy
    - `GET /sla/dashboard` - Complaint counters

    **Escalation ladder:** level 0 → 1 (sla_warning) → 2 (escalated) →
    3 (escalated) → auto-resolved. Each step grants a fresh SLA window.
    """,
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.container = container

    # === CORS Middleware ===
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Added last so it runs first and LoggingMiddleware sees the ID
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(CorrelationIDMiddleware)
    app.add_exception_handler(ApplicationException, application_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    # === Include Module Routers ===
    app.include_router(complaints_router)
    app.include_router(sla_router)

    @app.get("/health", tags=["Health"], responses={
        200: {
            "description": "Service status",
            "content": {
                "application/json": {
                    "example": {
                        "status": "healthy",
                        "version": "1.0.0",
                        "environment": "development",
                        "checks": {
                            "database": "connected",
                            "sla_policy": "loaded (86400s window)",
                            "watchdog": "running",
                            "llm_client": "available"
                        }
                    }
                }
            }
        }
    })
    async def health_check(request: Request):
        """
        Health check endpoint for load balancers and orchestrators.

        Reports `degraded` when the database cannot be reached.
        """
        current = request.app.state.container
        if current is None:
            return {"status": "starting", "version": settings.app_version, "checks": {}}

        status = "healthy"
        checks = {}

        try:
            async with current.session_factory() as session:
                await session.execute(text("SELECT 1"))
            checks["database"] = "connected"
        except (OSError, SQLAlchemyError) as e:
            checks["database"] = f"error: {e}"
            status = "degraded"

        policy = current.policy_provider.get_policy()
        checks["sla_policy"] = f"loaded ({policy.sla_duration_seconds}s window)"
        checks["watchdog"] = (
            "running" if current.scheduler and current.scheduler.is_running else "stopped"
        )
        if current.llm_client is None or not current.llm_client.is_configured:
            checks["llm_client"] = "not_configured"
        else:
            checks["llm_client"] = "mock" if current.llm_client.is_mock else "available"

        return {
            "status": status,
            "version": settings.app_version,
            "environment": settings.environment,
            "checks": checks
        }

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "service": "CivicWatch",
            "version": settings.app_version,
            "architecture": "Clean Architecture / Modular Monolith",
            "docs": "/docs",
            "health": "/health",
            "modules": {
                "complaints": {"prefix": "/complaints"},
                "sla": {"prefix": "/sla"}
            }
        }

    return app


app = create_app()


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "civicwatch.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
