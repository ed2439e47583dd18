"""Health check endpoints for Folder Search API.

Provides endpoints for monitoring application health and readiness.
"""

from datetime import datetime, timezone
from typing import Any

import httpx
from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel

from folder_search import __version__
from folder_search.api.dependencies import get_session
from folder_search.catalog.index_config import INDEX_BACKEND
from folder_search.catalog.session import IndexSession, SessionState
from folder_search.search.backends import StoreBackend

router = APIRouter(tags=["Health"])


class HealthStatus(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str
    timestamp: str


class DetailedHealthStatus(BaseModel):
    """Detailed health check with component status."""

    status: str
    version: str
    environment: str
    timestamp: str
    components: dict[str, dict[str, Any]]


@router.get(
    "/health",
    response_model=HealthStatus,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns basic health status of the application.",
)
async def health_check(request: Request) -> HealthStatus:
    """Check if the application is running.

    This is a lightweight check suitable for load balancer health probes.

    Returns:
        HealthStatus: Basic health information.
    """
    settings = request.app.state.settings
    return HealthStatus(
        status="healthy",
        version=__version__,
        environment=settings.app.env,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@router.get(
    "/health/ready",
    response_model=DetailedHealthStatus,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Checks if the index session can serve requests.",
)
async def readiness_check(session: IndexSession = Depends(get_session)) -> DetailedHealthStatus:
    """Check the index session and, when used, the Meilisearch server.

    Returns:
        DetailedHealthStatus: Detailed health status with component checks.
    """
    settings = session.settings
    components: dict[str, dict[str, Any]] = {}

    state = session.state
    components["index"] = {
        "status": "healthy" if state in (SessionState.IDLE, SessionState.BUILDING) else "unhealthy",
        "state": state.value,
        "validity": session.config.status(),
    }
    if session.config.get(INDEX_BACKEND) == StoreBackend.MEILISEARCH.value:
        components["meilisearch"] = await _check_meilisearch(session.settings.meilisearch.url)

    all_healthy = all(c.get("status") == "healthy" for c in components.values())
    overall_status = "healthy" if all_healthy else "degraded"

    return DetailedHealthStatus(
        status=overall_status,
        version=__version__,
        environment=settings.app.env,
        timestamp=datetime.now(timezone.utc).isoformat(),
        components=components,
    )


@router.get(
    "/health/live",
    status_code=status.HTTP_200_OK,
    summary="Liveness check",
    description="Simple check to verify the application process is running.",
)
async def liveness_check() -> dict[str, str]:
    """Check if the application process is alive.

    Returns:
        dict: Simple alive status.
    """
    return {"status": "alive"}


async def _check_meilisearch(url: str) -> dict[str, Any]:
    """Check Meilisearch connectivity and health.

    Returns:
        dict: Meilisearch component status.
    """
    try:
        async with httpx.AsyncClient(timeout=5.0) as client:
            response = await client.get(f"{url}/health")
    except httpx.HTTPError as e:
        return {"status": "unhealthy", "url": url, "error": str(e)}
    if response.status_code == 200:
        return {"status": "healthy", "url": url}
    return {"status": "unhealthy", "url": url, "error": f"HTTP {response.status_code}"}
