"""FastAPI application factory.

Main entry point for the learnpath Web API.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from learnpath.config.app_config import check_ai_credentials, load_app_config
from learnpath.core.errors import (
    AlreadyExistsError,
    GenerationError,
    LearnPathError,
    LessonLockedError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from learnpath.core.session import shutdown_learning_service
from learnpath.db import init_db
from learnpath.web.routes import (
    dashboard_router,
    health_router,
    learning_router,
    teacher_router,
    tests_router,
    users_router,
)

logger = structlog.get_logger(__name__)

# Most specific first
ERROR_STATUS: list[tuple[type[LearnPathError], int]] = [
    (LessonLockedError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (AlreadyExistsError, status.HTTP_409_CONFLICT),
    (GenerationError, status.HTTP_502_BAD_GATEWAY),
    (PersistenceError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def status_for_error(error: LearnPathError) -> int:
    for error_type, code in ERROR_STATUS:
        if isinstance(error, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def learnpath_error_handler(request: Request, exc: LearnPathError) -> JSONResponse:
    code = status_for_error(exc)
    logger.warning(
        "request_failed",
        path=request.url.path,
        status=code,
        error_type=type(exc).__name__,
        error=str(exc),
    )
    return JSONResponse(
        status_code=code,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup/shutdown events."""
    # Startup
    app_config = load_app_config()
    init_db(app_config.db_path)
    ai_configured = check_ai_credentials(app_config)
    logger.info(
        "api_startup",
        db_path=str(app_config.db_path),
        provider=app_config.active_provider,
        ai_configured=ai_configured,
    )
    yield
    # Shutdown
    await shutdown_learning_service()
    logger.info("api_shutdown")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="learnpath API",
        description="Adaptive placement, promotion and lesson paths",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS middleware for browser clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(LearnPathError, learnpath_error_handler)

    # Include routers
    app.include_router(health_router)
    app.include_router(users_router)
    app.include_router(tests_router)
    app.include_router(learning_router)
    app.include_router(dashboard_router)
    app.include_router(teacher_router)

    return app


# Default app instance for uvicorn
app = create_app()
