"""
Service Registry API Main Application

Entry point for the FastAPI application.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from serviceregistry.platform.config import settings
from serviceregistry.platform.logging import configure_logging, get_logger
from serviceregistry.api.routers import connections, metadata
from serviceregistry.api.errors import register_exception_handlers
from serviceregistry.api.dependencies import (
    init_resources,
    close_resources,
    get_postgres_adapter,
)

# Configure logging on import
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup/shutdown."""
    # Startup
    logger.info("Starting Service Registry API...")
    try:
        await init_resources()
        logger.info("Resources initialized successfully.")
    except Exception as e:
        logger.error(f"Failed to initialize resources: {e}")
        raise

    yield

    # Shutdown
    logger.info("Shutting down Service Registry API...")
    await close_resources()
    logger.info("Resources closed.")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    description="Registry of federated identity connections and their revision history",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(",") if settings.CORS_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# =============================================================================
# OBSERVABILITY
# =============================================================================

if settings.METRICS_ENABLED:
    metrics_app = make_asgi_app()
    app.mount("/metrics", metrics_app)


# =============================================================================
# HEALTH ENDPOINTS
# =============================================================================


@app.get("/health/live", tags=["Health"])
async def liveness() -> dict:
    """Liveness probe - is the service running?"""
    return {"status": "alive"}


@app.get("/health/ready", tags=["Health"])
async def readiness() -> dict:
    """
    Readiness probe - is the service ready to accept traffic?
    Checks the database connection.
    """
    postgres_healthy = False
    try:
        adapter = get_postgres_adapter()
        postgres_healthy = adapter.health_check()
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")

    return {
        "status": "ready" if postgres_healthy else "not_ready",
        "version": settings.VERSION,
        "checks": {
            "postgres": "healthy" if postgres_healthy else "unhealthy",
        },
    }


# =============================================================================
# API ROUTERS
# =============================================================================

app.include_router(connections.router, prefix="/api/v1/connections", tags=["Connections"])
app.include_router(metadata.router, prefix="/api/v1/metadata", tags=["Metadata"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "serviceregistry.api.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
    )
