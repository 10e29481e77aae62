"""
FastAPI API Service Entry Point
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from api.routes import bookings, exchanges, provider_settings, reminders
from shared.config import get_settings
from shared.errors import WorkflowError
from shared.logging_config import configure_logging

# Configure structured JSON logging on startup
configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="SlotSwap Scheduling API",
    version="1.0.0",
)

# Load settings for CORS configuration
settings = get_settings()
origins = settings.CORS_ORIGINS.split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(exchanges.router)
app.include_router(bookings.router)
app.include_router(provider_settings.router)
app.include_router(reminders.router)


@app.exception_handler(WorkflowError)
async def workflow_exception_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    """Map workflow errors to their HTTP status with a stable error_code."""
    if exc.status_code >= 500:
        logger.error(
            f"Workflow error on {request.method} {request.url.path}: {exc.message}",
            extra={"request_path": request.url.path},
        )
    else:
        logger.info(
            f"Request rejected ({exc.error_code}): {exc.message}",
            extra={"request_path": request.url.path},
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Exception handlers for validation errors
@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return 400 (not FastAPI's default 422) with validation error details."""
    return JSONResponse(
        status_code=400,
        content={
            "error": "Validation error",
            "error_code": "VALIDATION_ERROR",
            "details": jsonable_errors(exc.errors()),
        },
    )


@app.exception_handler(ValidationError)
async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Return 400 with validation error details."""
    return JSONResponse(
        status_code=400,
        content={
            "error": "Validation error",
            "error_code": "VALIDATION_ERROR",
            "details": jsonable_errors(exc.errors()),
        },
    )


def jsonable_errors(errors) -> list[dict]:
    # ctx may carry exception instances that json cannot encode
    return [
        {key: value for key, value in error.items() if key in ("type", "loc", "msg")}
        for error in errors
    ]


@app.get("/health")
async def health_check() -> JSONResponse:
    """
    Health check endpoint for Docker health checks and monitoring.

    Checks:
    - PostgreSQL connectivity (SELECT 1 query)

    Returns:
        200 OK if healthy
        503 Service Unavailable if degraded
    """
    from sqlalchemy import text

    from database.connection import get_async_session

    health_status = {
        "status": "healthy",
        "postgres": "unknown",
    }
    status_code = 200

    try:
        async with get_async_session() as session:
            await session.execute(text("SELECT 1"))
            health_status["postgres"] = "connected"
    except Exception:
        health_status["postgres"] = "disconnected"
        health_status["status"] = "degraded"
        status_code = 503

    return JSONResponse(status_code=status_code, content=health_status)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint"""
    return {"message": "SlotSwap Scheduling API - Use /health for health checks"}
