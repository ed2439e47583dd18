"""FastAPI application entry point for Folder Search.

This module creates and configures the FastAPI application with all
necessary middleware, routers, and lifecycle hooks.
"""

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from folder_search import __version__
from folder_search.api.router import api_router
from folder_search.catalog.session import IndexSession
from folder_search.config import Settings, get_settings
from folder_search.core.exceptions import (
    ConfigurationError,
    FolderSearchError,
    IndexStoreError,
    NotConfiguredError,
    QuerySyntaxError,
    SessionClosedError,
)
from folder_search.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)

# Performance threshold for slow request warnings (seconds)
_SLOW_REQUEST_THRESHOLD = 1.0


class PerformanceLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log request performance metrics.

    Logs duration for every request and warns when requests exceed threshold.
    """

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()

        response = await call_next(request)

        duration = time.perf_counter() - start_time

        # Log performance metrics
        log_data = {
            "method": request.method,
            "path": request.url.path,
            "duration_ms": round(duration * 1000, 2),
            "status_code": response.status_code,
        }

        if duration > _SLOW_REQUEST_THRESHOLD:
            logger.warning("Slow request detected", **log_data)
        else:
            logger.debug("Request completed", **log_data)

        # Add timing header for debugging
        response.headers["X-Response-Time"] = f"{duration * 1000:.2f}ms"

        return response


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Opens the index session for the configured root on startup and closes
    it on shutdown. A configuration that does not resolve leaves the
    session unconfigured; its options can still be changed over the API.

    Args:
        app: The FastAPI application instance.

    Yields:
        None: Control returns to the application.
    """
    # Startup
    settings: Settings = app.state.settings
    setup_logging(settings)

    logger.info(
        "Starting Folder Search",
        version=__version__,
        environment=settings.app.env,
        root=str(settings.catalog.root),
    )

    # Open the index session for the configured root
    session = IndexSession(settings.catalog.root, settings=settings)
    if await session.open():
        logger.info("Index session ready", details=session.config.details(), status=session.config.status())
    else:
        logger.warning("Index session is not configured", config=session.name)
    app.state.session = session

    yield

    # Shutdown
    logger.info("Shutting down Folder Search")
    await session.close()
    app.state.session = None


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use instead of ``get_settings()``.

    Returns:
        FastAPI: Configured application instance.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Folder Search API",
        description="Incremental full-text indexing and search over a directory tree",
        version=__version__,
        docs_url="/docs" if settings.app.debug else None,
        redoc_url="/redoc" if settings.app.debug else None,
        openapi_url="/openapi.json" if settings.app.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.session = None

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.app.env == "development" else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add performance logging middleware
    app.add_middleware(PerformanceLoggingMiddleware)

    # Register exception handlers
    app.add_exception_handler(FolderSearchError, folder_search_exception_handler)

    # Include routers
    app.include_router(api_router)

    return app


async def folder_search_exception_handler(
    request: Request,
    exc: FolderSearchError,
) -> JSONResponse:
    """Handle FolderSearchError exceptions.

    Converts FolderSearchError instances to consistent JSON responses.

    Args:
        request: The incoming request.
        exc: The FolderSearchError exception.

    Returns:
        JSONResponse: Formatted error response.
    """
    logger.error(
        "Request failed",
        error=exc.__class__.__name__,
        message=exc.message,
        details=exc.details,
        path=request.url.path,
    )

    return JSONResponse(
        status_code=_get_status_code(exc),
        content=exc.to_dict(),
    )


def _get_status_code(exc: FolderSearchError) -> int:
    """Map exception types to HTTP status codes.

    Args:
        exc: The exception instance.

    Returns:
        int: Appropriate HTTP status code.
    """
    status_map: dict[type, int] = {
        NotConfiguredError: status.HTTP_409_CONFLICT,
        SessionClosedError: status.HTTP_503_SERVICE_UNAVAILABLE,
        ConfigurationError: status.HTTP_400_BAD_REQUEST,
        QuerySyntaxError: status.HTTP_400_BAD_REQUEST,
        IndexStoreError: status.HTTP_503_SERVICE_UNAVAILABLE,
    }

    for exc_type, status_code in status_map.items():
        if isinstance(exc, exc_type):
            return status_code

    return status.HTTP_500_INTERNAL_SERVER_ERROR


# Create the application instance
app = create_app()


def main() -> None:
    """Run the application using uvicorn.

    This is the entry point for the CLI command.
    """
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "folder_search.main:app",
        host=settings.api.host,
        port=settings.api.port,
        reload=settings.api.reload,
        workers=settings.api.workers if not settings.api.reload else 1,
        log_level=settings.app.log_level.lower(),
    )


if __name__ == "__main__":
    main()
