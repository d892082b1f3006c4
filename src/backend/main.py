"""
Selfquestion Backend Application

Debates with one-vote-per-client voting, surveys, a Q&A board, requests
and a guestbook, plus a small admin backoffice.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from api.routes import router as api_router
from core.config import settings
from core.events import create_start_app_handler, create_stop_app_handler
from core.exceptions import AppError
from core.middleware import RequestContextMiddleware, SecurityHeadersMiddleware
from repositories.cosmos_admin_repository import CosmosErrorLogRepository
from services.admin_service import ErrorLogService

logger = structlog.get_logger(__name__)

APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    await create_start_app_handler(app)()
    yield
    await create_stop_app_handler(app)()


async def _persist_unhandled_error(request: Request, exc: Exception) -> None:
    """Best-effort write of an unhandled error to the error log container."""
    store = getattr(request.app.state, "cosmos_store", None)
    if store is None:
        return
    try:
        await ErrorLogService(CosmosErrorLogRepository(store)).record_exception(
            exc,
            endpoint=request.url.path,
            method=request.method,
            user_agent=request.headers.get("User-Agent"),
        )
    except Exception as log_exc:
        logger.warning("error_log_persist_failed", error=str(log_exc))


def register_exception_handlers(application: FastAPI) -> None:
    @application.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("request_failed", status=exc.status_code, error=exc.message)
        else:
            logger.warning("request_rejected", status=exc.status_code, error=exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @application.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        logger.warning("request_validation_failed", errors=len(errors))
        return JSONResponse(
            status_code=400,
            content={"error": message, "details": jsonable_encoder(errors)},
        )

    @application.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Catch unhandled exceptions.

        The error is logged and recorded in the error log container, and
        the client gets a generic JSON body. CORS headers are still added
        by the middleware.
        """
        logger.exception(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
        )
        await _persist_unhandled_error(request, exc)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title=settings.APP_NAME,
        description="Debates, surveys and community boards",
        version=APP_VERSION,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    # Add middleware (order matters - processed in reverse)
    application.add_middleware(SecurityHeadersMiddleware)
    application.add_middleware(RequestContextMiddleware)

    # Cookies carry admin and author sessions, so credentials are allowed
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )

    application.add_middleware(GZipMiddleware, minimum_size=1000)

    application.include_router(api_router, prefix="/api")
    register_exception_handlers(application)

    return application


app = create_application()


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint for load balancers and monitoring."""
    return {"status": "healthy", "service": "selfquestion-api"}


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": APP_VERSION,
        "docs": "/docs" if settings.DEBUG else "Documentation disabled in production",
    }
