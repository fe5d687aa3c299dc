"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from scaledtest.config import get_settings
from scaledtest.database import engine, init_db
from scaledtest.factories.client_factories import get_opensearch_client
from scaledtest.middleware import logging_middleware, register_exception_handlers
from scaledtest.routers import admin, analytics, health, reports, teams
from scaledtest.utils.logger import configure_logging, get_logger

settings = get_settings()

# Configure logging early
configure_logging(log_level=settings.log_level, debug=settings.debug)
log = get_logger(__name__)

API_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    log.info("starting application", debug=settings.debug, log_level=settings.log_level)
    if settings.degraded_read_mode:
        log.warning(
            "degraded read mode enabled: read endpoints return empty results "
            "when OpenSearch is unreachable; do not use in production"
        )

    await init_db()
    log.info("database initialized")

    yield

    log.info("shutting down application")
    await get_opensearch_client().aclose()
    await engine.dispose()
    log.info("connections closed")


app = FastAPI(
    title="ScaledTest API",
    description="ScaledTest - CTRF test report storage and team-scoped analytics",
    version=API_VERSION,
    lifespan=lifespan,
)

register_exception_handlers(app)

_cors_origins = settings.get_cors_origins_list()
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins or ["*"],
    allow_credentials=bool(_cors_origins),
    allow_methods=["*"],
    allow_headers=["*"],
)

app.middleware("http")(logging_middleware)

app.include_router(health.router, prefix="/api/v1", tags=["Health"])
app.include_router(reports.router, prefix="/api/v1", tags=["Reports"])
app.include_router(analytics.router, prefix="/api/v1", tags=["Analytics"])
app.include_router(teams.router, prefix="/api/v1", tags=["Teams"])
app.include_router(admin.router, prefix="/api/v1", tags=["Admin"])


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "ScaledTest API",
        "version": API_VERSION,
        "endpoints": {
            "health": "/api/v1/health",
            "reports": "/api/v1/reports",
            "analytics": "/api/v1/analytics/{view}",
            "teams": "/api/v1/teams",
        },
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "scaledtest.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
