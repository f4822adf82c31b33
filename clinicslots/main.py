"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from clinicslots import __version__
from clinicslots.api.v1.router import api_router
from clinicslots.booking.errors import (
    NotFound,
    PersistenceError,
    PolicyViolation,
    SlotConflict,
    ValidationError,
)
from clinicslots.booking.rules import BookingRulesProvider
from clinicslots.core.config import settings
from clinicslots.core.logging import setup_logging
from clinicslots.db.init_db import init_db
from clinicslots.db.session import AsyncSessionLocal
from clinicslots.services.notifications import LoggingNotificationSender
from clinicslots.services.schedule_cache import ScheduleCache

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown events."""
    # Startup
    logger.info(f"Starting Clinic Slots API (env={settings.env})")

    if settings.init_db_on_startup and settings.is_dev:
        logger.info("Initializing database...")
        async with AsyncSessionLocal() as session:
            await init_db(session)

    yield

    # Shutdown
    logger.info("Shutting down Clinic Slots API")


# Create FastAPI application
app = FastAPI(
    title="Clinic Slots API",
    description="Department slot booking with double-booking protection and anti-abuse rules",
    version=__version__,
    docs_url="/docs" if settings.is_dev else None,
    redoc_url="/redoc" if settings.is_dev else None,
    openapi_url="/openapi.json" if settings.is_dev else None,
    lifespan=lifespan,
)

# Shared per-process collaborators
app.state.rules_provider = BookingRulesProvider()
app.state.notifier = LoggingNotificationSender()
app.state.schedule_cache = (
    ScheduleCache(ttl_seconds=settings.schedule_cache_ttl_seconds)
    if settings.schedule_cache_ttl_seconds > 0
    else None
)

# CORS middleware (configure appropriately for production)
if settings.is_dev:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:3001"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(SlotConflict)
async def slot_conflict_handler(request: Request, exc: SlotConflict) -> JSONResponse:
    """Lost a race for the slot; the client should pick another or retry."""
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={
            "detail": str(exc),
            "department_id": exc.department_id,
            "date": exc.appointment_date.isoformat(),
            "slot_number": exc.slot_number,
        },
    )


@app.exception_handler(PolicyViolation)
async def policy_violation_handler(request: Request, exc: PolicyViolation) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": "Booking not allowed", "restrictions": exc.restrictions},
    )


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": str(exc)},
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc)},
    )


# Malformed input is a 400; 422 is reserved for booking rule violations
@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    logger.warning(f"Invalid request for {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid request", "errors": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    logger.error(f"Persistence failure: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Temporary storage failure, please retry"},
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions."""
    logger.exception(f"Unhandled exception: {exc}")

    # Don't expose internal errors in production
    if settings.is_prod:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc)},
    )


# Include API router
app.include_router(api_router, prefix="/api/v1")


# Root endpoint
@app.get("/", include_in_schema=False)
async def root() -> dict:
    """Root endpoint redirect to docs."""
    return {
        "service": "Clinic Slots API",
        "version": __version__,
        "docs": "/docs" if settings.is_dev else "Disabled in production",
    }
