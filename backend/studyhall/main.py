"""
Study Hall Seat Service - Main Application Entry Point

Runs the membership engine behind a thin HTTP surface:
- Billing cycle arithmetic anchored at each member's registration date
- Daily + backup reconciliation ticks (reminders, due notices, terminations)
- Concurrency-safe seat claims for the registration path
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from studyhall.core.config import get_settings
from studyhall.core.exceptions import (
    CycleValidationError,
    InvalidSlotError,
    MembershipNotFoundError,
    MembershipStateError,
    SeatNotFoundError,
    SeatUnavailableError,
    StoreUnavailableError,
)
from studyhall.core.logging import setup_logging, get_logger
from studyhall.core.metrics import metrics_endpoint
from studyhall.api.router import api_router
from studyhall.api.middleware import RequestLoggingMiddleware
from studyhall.services.container import ServiceContainer

settings = get_settings()

ERROR_STATUS = {
    MembershipNotFoundError: status.HTTP_404_NOT_FOUND,
    SeatNotFoundError: status.HTTP_404_NOT_FOUND,
    SeatUnavailableError: status.HTTP_409_CONFLICT,
    MembershipStateError: status.HTTP_409_CONFLICT,
    CycleValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidSlotError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    StoreUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the application. A prebuilt container (tests) is attached
    immediately; otherwise one is built from settings at startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging()
        logger = get_logger(__name__)

        logger.info(
            "application_starting",
            app=settings.APP_NAME,
            version=settings.APP_VERSION,
            environment=settings.ENVIRONMENT,
            storage=settings.STORAGE_BACKEND,
        )

        if getattr(app.state, "container", None) is None:
            app.state.container = ServiceContainer.from_settings(settings)
        await app.state.container.startup()

        yield

        await app.state.container.shutdown()
        logger.info("application_shutdown")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Seat memberships with fee reconciliation and concurrency-safe seat claims",
        debug=settings.DEBUG,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Restrict in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    for error_type, status_code in ERROR_STATUS.items():
        app.add_exception_handler(error_type, _error_handler(status_code))

    app.include_router(api_router)

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """Health check for load balancers; includes scheduler liveness."""
        container: ServiceContainer = request.app.state.container
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "scheduler": container.scheduler.status().model_dump(mode="json"),
            "notifier_configured": container.notifier.is_configured(),
            "seat_locks": len(container.seat_coordinator.all_locks()),
        }

    @app.get("/metrics", tags=["Health"])
    def metrics():
        return metrics_endpoint()

    @app.get("/", tags=["Root"])
    async def root():
        return {
            "message": f"Welcome to {settings.APP_NAME}",
            "version": settings.APP_VERSION,
            "docs": "/docs",
        }

    return app


def _error_handler(status_code: int):
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        detail = str(exc)
        if isinstance(exc, SeatUnavailableError):
            detail = "This seat is no longer available, please pick another"
        return JSONResponse(status_code=status_code, content={"detail": detail})

    return handler


app = create_app()
