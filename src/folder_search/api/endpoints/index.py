"""Indexing API endpoints.

Provides endpoints to start, cancel, clear and watch index builds.
"""

import asyncio
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from folder_search.api.dependencies import get_session
from folder_search.catalog.session import IndexSession

router = APIRouter(prefix="/index", tags=["Index"])


class StageProgressResponse(BaseModel):
    """Progress of one pipeline stage."""

    stage: str
    processed: int
    total: int
    fraction: float
    message: str


class IndexStatusResponse(BaseModel):
    """Session status snapshot."""

    state: str
    config_name: str
    details: str
    last_updated: int
    validity: str
    validity_text: str
    progress: float
    current: str
    stages: list[StageProgressResponse] = Field(default_factory=list)
    search_message: str = ""


class IndexResponse(BaseModel):
    """Index operation response."""

    status: str  # started, completed, failed, cancelled
    message: str
    validity_text: str

    model_config = {
        "json_schema_extra": {
            "example": {
                "status": "completed",
                "message": "Index updated",
                "validity_text": "Last updated 2024-05-01 12:00:00",
            }
        }
    }


def _status_response(session: IndexSession) -> dict[str, Any]:
    return session.status().to_dict()


@router.post(
    "",
    response_model=IndexResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Update the index",
)
async def update_index(
    wait: bool = Query(default=False, description="Wait for the build to finish"),
    session: IndexSession = Depends(get_session),
) -> IndexResponse:
    """Start an incremental build of the configured index.

    Any running build or query is cancelled first.
    """
    task = await session.update_index()
    if not wait:
        return IndexResponse(
            status="started",
            message="Index update started",
            validity_text=session.config.status(),
        )

    await asyncio.wait({task})
    if task.cancelled():
        result, message = "cancelled", "Index update cancelled"
    elif task.result():
        result, message = "completed", "Index updated"
    else:
        result, message = "failed", "Index update failed"
    return IndexResponse(status=result, message=message, validity_text=session.config.status())


@router.get("/status", response_model=IndexStatusResponse, summary="Build status")
async def index_status(session: IndexSession = Depends(get_session)) -> dict[str, Any]:
    """Return state, validity and progress of the session."""
    return _status_response(session)


@router.post("/cancel", response_model=IndexStatusResponse, summary="Cancel running tasks")
async def cancel_tasks(session: IndexSession = Depends(get_session)) -> dict[str, Any]:
    """Cancel the running build and query."""
    await session.cancel_all_tasks()
    return _status_response(session)


@router.delete("", response_model=IndexStatusResponse, summary="Clear the index")
async def clear_index(session: IndexSession = Depends(get_session)) -> dict[str, Any]:
    """Remove every document and mark the index as never created."""
    await session.clear_index()
    return _status_response(session)
