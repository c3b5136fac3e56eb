"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from quota_engine.api.routes import (
    employers_router,
    health_router,
    job_orders_router,
    permits_router,
    quota_router,
)
from quota_engine.config import get_settings
from quota_engine.database import dispose_db, init_db
from quota_engine.engine import QuotaEngine
from quota_engine.errors import QuotaEngineError
from quota_engine.logging_config import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    configure_logging()
    owns_engine = app.state.quota_engine is None
    if owns_engine:
        settings = get_settings()
        _, session_factory = init_db()
        app.state.quota_engine = QuotaEngine(
            session_factory,
            retry_attempts=settings.db_retry_attempts,
            retry_base_delay=settings.db_retry_base_delay,
        )
    yield
    if owns_engine:
        await dispose_db()
        app.state.quota_engine = None


def create_app(quota_engine: QuotaEngine | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Without an engine, one is built from the environment at startup.
    """
    settings = get_settings()
    app = FastAPI(
        title="Recruitment Quota Engine API",
        description="Recruitment quota and permit lifecycle",
        version=settings.engine_version,
        lifespan=lifespan,
    )
    app.state.quota_engine = quota_engine

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(QuotaEngineError)
    async def quota_engine_exception_handler(
        request: Request, exc: QuotaEngineError
    ) -> JSONResponse:
        """Render business errors with their code."""
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Malformed request bodies are validation errors like any other."""
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "detail": "Request validation failed",
                "code": "VALIDATION_ERROR",
                "errors": [
                    {"loc": list(error["loc"]), "msg": error["msg"]} for error in exc.errors()
                ],
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(employers_router, prefix="/api/v1")
    app.include_router(job_orders_router, prefix="/api/v1")
    app.include_router(permits_router, prefix="/api/v1")
    app.include_router(quota_router, prefix="/api/v1")

    return app
