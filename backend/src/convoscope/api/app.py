"""
Convoscope HTTP API.

Wires the ingestion, auth and dashboard routers onto one FastAPI app and
exposes liveness and readiness probes.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from convoscope import __version__
from convoscope.api.routes import auth, ingestion, summaries
from convoscope.config import settings
from convoscope.logging_config import setup_logging
from convoscope.startup import check_readiness, run_all_startup_checks

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and refuse to start until startup checks pass."""
    setup_logging(context="api")

    run_all_startup_checks()
    logger.info(f"Convoscope API {__version__} ready")

    yield

    logger.info("Convoscope API stopped")


app = FastAPI(
    lifespan=lifespan,
    title="Convoscope API",
    description="API for ingesting and browsing customer conversation summaries",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root() -> dict[str, str]:
    """Liveness probe with the running version."""
    return {
        "status": "ok",
        "message": "Convoscope API is running",
        "version": __version__,
    }


@app.get("/health")
async def health() -> dict[str, str]:
    """Database reachability; degraded rather than failing when it is down."""
    from convoscope.db.connection import check_connection

    if check_connection():
        return {"status": "healthy", "database": "healthy"}
    return {"status": "degraded", "database": "unhealthy"}


@app.get("/ready")
async def ready():
    """Readiness probe: 503 until startup checks passed and the database answers."""
    is_ready, details = check_readiness()
    if is_ready:
        return details
    return JSONResponse(content=details, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)


app.include_router(ingestion.router, tags=["ingestion"])
app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(summaries.router, prefix="/summaries", tags=["summaries"])
