"""
FastAPI application entry point for TCT.

Trip Control Tower: shipment lifecycle, exceptions and trip alerts.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.exceptions import EngineError, NotFoundError, PersistenceError, ValidationError
from app.api.v1 import api_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan handler.

    Runs startup and shutdown logic.
    """
    # Schema is managed by Alembic migrations
    yield


def _error_response(status_code: int, exc: EngineError) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": exc.to_dict()})


def register_exception_handlers(app: FastAPI) -> None:
    """Map engine errors onto HTTP status codes."""

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return _error_response(422, exc)

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return _error_response(404, exc)

    @app.exception_handler(PersistenceError)
    async def persistence_error_handler(request: Request, exc: PersistenceError):
        logger.error(f"{request.method} {request.url.path} failed to persist: {exc.message}")
        return _error_response(503, exc)


def create_application() -> FastAPI:
    """Create and configure FastAPI application."""

    app = FastAPI(
        title=settings.app_name,
        description="""
        ## Trip Control Tower (TCT)

        Lifecycle and exception engine for trips and shipments:

        - **Status machine**: validated shipment status and sub-status transitions with history
        - **Exceptions**: logging, acknowledgement, escalation and resolution
        - **Trip alerts**: route deviation, stoppage, tracking loss, delay and consent revocation
        - **Capacity**: weight and volume checks for part-load trips
        - **Tracking**: ping ingestion and stop clustering

        ### Errors

        Engine errors are returned as `{"error": {"kind", "message", "ids"}}`:
        422 for rule violations, 404 for unknown entities, 503 when a write
        could not be persisted (retry the whole operation).
        """,
        version=settings.app_version,
        openapi_url=f"{settings.api_v1_prefix}/openapi.json",
        docs_url=f"{settings.api_v1_prefix}/docs",
        redoc_url=f"{settings.api_v1_prefix}/redoc",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Include API router
    app.include_router(api_router, prefix=settings.api_v1_prefix)

    return app


# Create application instance
app = create_application()


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": settings.app_version,
    }


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "docs": f"{settings.api_v1_prefix}/docs",
        "openapi": f"{settings.api_v1_prefix}/openapi.json",
    }
