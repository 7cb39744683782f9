"""Hospede availability and pricing engine: FastAPI application entry point."""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hospede.api.v1.calendar import router as calendar_router
from hospede.api.v1.pricing import router as pricing_router
from hospede.api.v1.reservations import router as reservations_router
from hospede.config import settings
from hospede.exceptions import EngineError
from hospede.services.container import build_services
from hospede.services.repricing import run_repricing_loop

# Configure root logger so all hospede.* loggers output to stderr.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup and shutdown events."""
    from hospede.database import async_session_factory, engine

    # Startup
    services = build_services(settings)
    await services.cache.connect()
    app.state.services = services

    repricing_task = None
    if settings.auto_pricing_enabled:
        repricing_task = asyncio.create_task(
            run_repricing_loop(
                async_session_factory,
                services,
                interval_seconds=settings.auto_pricing_interval_hours * 3600,
                horizon_days=settings.auto_pricing_horizon_days,
                min_confidence=settings.auto_pricing_min_confidence,
            )
        )
        logger.info("Automatic repricing every %.1f hours", settings.auto_pricing_interval_hours)

    yield

    # Shutdown: stop the job, then release cache and engine connections
    if repricing_task is not None:
        repricing_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await repricing_task
    await services.cache.close()
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Availability, booking conflict, and dynamic pricing engine for short-term rentals.",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    """Map domain errors to their HTTP status with a ``detail`` body."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


# Routers
app.include_router(calendar_router)
app.include_router(reservations_router)
app.include_router(pricing_router)


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": settings.app_name}


@app.get("/", tags=["root"])
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }
