"""
icebreaker/main.py

Purpose: Application entry point

- Initializes FastAPI app
- Loads configuration and logging
- Owns the data provider for the lifetime of the process
- Health, readiness and liveness probes
- No business logic should be written here
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import time

from icebreaker.core.config import settings, validate_settings
from icebreaker.core.errors import add_exception_handlers
from icebreaker.core.logging import setup_logging, get_logger
from icebreaker.core.telemetry import Telemetry
from icebreaker.db.cosmos import CosmosConnection
from icebreaker.schemas.response import HealthResponse
from icebreaker.services.data_provider import BotDataProvider

VERSION = "1.0.0"

# Initialize logging first
setup_logging()
logger = get_logger(__name__)


def build_data_provider() -> BotDataProvider:
    telemetry = Telemetry()
    connection = CosmosConnection(settings, telemetry=telemetry)
    return BotDataProvider(connection, telemetry)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    The data store is not touched here: the first request that needs it
    triggers the one-time setup.
    """
    logger.info("Starting Icebreaker data service...")

    try:
        validate_settings()
        logger.info("Configuration validated")
    except Exception as e:
        logger.critical(f"Failed to start application: {str(e)}", exc_info=True)
        raise

    if getattr(app.state, "data_provider", None) is None:
        app.state.data_provider = build_data_provider()

    yield  # Application runs here

    logger.info("Shutting down Icebreaker data service...")

    try:
        await app.state.data_provider.connection.close()
    except Exception as e:
        logger.error(f"Error during shutdown: {str(e)}", exc_info=True)


app = FastAPI(
    title="Icebreaker Data Service",
    description="Team, user and pairing storage for the Icebreaker bot",
    version=VERSION,
    lifespan=lifespan,
    debug=settings.DEBUG,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
)

add_exception_handlers(app)


def get_data_provider(request: Request) -> BotDataProvider:
    return request.app.state.data_provider


@app.get("/", tags=["Health"])
async def root():
    """Root endpoint - basic info."""
    return {
        "name": "Icebreaker Data Service",
        "version": VERSION,
        "status": "running",
        "environment": settings.ENVIRONMENT
    }


@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """
    Checks data store connectivity.
    Runs the data store setup if no request has needed it yet.
    """
    provider = get_data_provider(request)
    health = HealthResponse(
        status="healthy",
        timestamp=time.time(),
        environment=settings.ENVIRONMENT,
        version=VERSION,
    )

    db_healthy = await provider.connection.check_health()
    health.checks["database"] = "healthy" if db_healthy else "unhealthy"
    if not db_healthy:
        health.status = "unhealthy"

    status_code = 200 if db_healthy else 503
    return JSONResponse(content=health.model_dump(), status_code=status_code)


@app.get("/ready", tags=["Health"])
async def readiness_check(request: Request):
    """
    Ready once the data store setup has completed successfully.
    """
    provider = get_data_provider(request)
    if provider.connection.is_initialized:
        return {"status": "ready"}
    return JSONResponse(
        status_code=503,
        content={"status": "not_ready", "reason": "data_store_not_initialized"}
    )


@app.get("/live", tags=["Health"])
async def liveness_check():
    """
    Liveness probe - indicates if app is alive.
    """
    return {"status": "alive"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "icebreaker.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_level=settings.LOG_LEVEL.lower()
    )
