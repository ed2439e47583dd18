"""Search API endpoints.

Provides the query endpoint. Query failures are reported in the response
message with zero results, never as HTTP errors.
"""

import asyncio

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from folder_search.api.dependencies import get_session
from folder_search.catalog.session import IndexSession

router = APIRouter(prefix="/search", tags=["Search"])


class SearchResultResponse(BaseModel):
    """A ranked result."""

    file: str
    title: str
    score: float
    details: str


class SearchResponse(BaseModel):
    """Search response model."""

    query: str
    message: str
    total: int
    results: list[SearchResultResponse] = Field(default_factory=list)

    model_config = {
        "json_schema_extra": {
            "example": {
                "query": "hello",
                "message": "1 results",
                "total": 1,
                "results": [
                    {
                        "file": "/data/docs/a.txt",
                        "title": "",
                        "score": 0.42,
                        "details": "path: a.txt\nformat: text/plain\nhashsum: 0f3a...\n",
                    }
                ],
            }
        }
    }


@router.get("", response_model=SearchResponse, summary="Search the index")
async def search(
    q: str = Query(..., min_length=1, max_length=1000, description="Query string"),
    limit: int | None = Query(default=None, ge=1, le=10000, description="Maximum results"),
    session: IndexSession = Depends(get_session),
) -> SearchResponse:
    """Run a ranked query against the committed index.

    A newer query replaces this one; the response then says so.
    """
    task = await session.search(q, limit)
    await asyncio.wait({task})
    if task.cancelled():
        return SearchResponse(query=q, message="Superseded by a newer query", total=0)
    return SearchResponse(**task.result().to_dict())
