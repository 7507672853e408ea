"""
Caseflow - Main Application
===========================

Admin API over the caseflow assignment engine.

Modules:
- Specializations: counselor-category registry, scoring, availability
- Tickets: best-effort bulk assignment and status changes
- Catalog: cached help categories and FAQs

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities and value objects
- Infrastructure: Backing API gateways, cache, scheduler
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from caseflow.config import settings
from caseflow.container import Container
from caseflow.shared.api import middleware
from caseflow.shared.infrastructure.logging import get_logger, setup_logging
from caseflow.specializations.interfaces import assignment_router
from caseflow.tickets.interfaces import tickets_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Build the container (unless one was injected)
    3. Load the cache policy file and start watching it
    4. Start the cache cleanup scheduler

    SHUTDOWN:
    1. Stop the scheduler and the policy watcher
    2. Close the backing API client and notification sink
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Caseflow", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    if app.state.container is None:
        app.state.container = Container.build(settings)
    container = app.state.container
    await container.start()

    logger.info("Caseflow started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Caseflow")
    await container.stop()
    logger.info("Caseflow shutdown complete")


def create_app(container: Optional[Container] = None) -> FastAPI:
    """Build the FastAPI application; pass a container to skip the default wiring."""
    app = FastAPI(
        title="Caseflow API",
        description="""
    ## Support Ticket Assignment Engine

    Counselor specializations, workload-aware assignment scoring and
    best-effort bulk ticket operations over a stale-tolerant cache.

    ### Assignment
    - `GET /assignment/specializations` - Filtered, scored specializations
    - `GET /assignment/specializations/workload` - Workload aggregate
    - `GET /assignment/specializations/candidates/{category_id}` - Ranked assignees
    - `POST /assignment/specializations/availability` - Toggle availability

    ### Tickets
    - `POST /assignment/tickets/bulk-assign` - Assign many tickets
    - `POST /assignment/tickets/bulk-status` - Change status of many tickets

    ### Cache
    - `POST /assignment/cache/invalidate`, `DELETE /assignment/cache`, `GET /assignment/cache/stats`
    """,
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.container = container
    app.state.settings = settings

    # === CORS Middleware ===
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # === Custom Middleware and Exception Handlers ===
    middleware.install(app)

    # === Include Module Routers ===
    app.include_router(assignment_router)
    app.include_router(tickets_router)

    app.add_api_route("/health", health_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/", root, methods=["GET"], tags=["Root"])
    return app


# === Health Check Endpoint ===

async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Reports cache size, scheduler state and whether the registry
    snapshot is stale.
    """
    container: Optional[Container] = request.app.state.container
    checks = {"container": "not_initialized"}
    if container is not None:
        stats = container.cache.stats()
        checks = {
            "container": "ready",
            "cache": f"{stats['size']} entries ({stats['stale']} stale)",
            "cache_scheduler": "running" if container.scheduler.is_running else "stopped",
            "registry": "stale" if container.registry.is_stale else "fresh",
        }

    return {
        "status": "healthy" if container is not None else "starting",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


async def root():
    """Root endpoint with API information."""
    return {
        "service": "Caseflow",
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "assignment": {"prefix": "/assignment"},
            "tickets": {"prefix": "/assignment/tickets"},
        }
    }


app = create_app()


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "caseflow.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
