"""Notification stream endpoints."""

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from folder_search.api.dependencies import get_message_log
from folder_search.core.messages import Level, MessageLog

router = APIRouter(prefix="/messages", tags=["Messages"])


class MessageResponse(BaseModel):
    """A notification."""

    level: str
    summary: str
    details: str
    source: str
    timestamp: str


@router.get("", response_model=list[MessageResponse], summary="Recent notifications")
async def list_messages(
    min_level: Level | None = Query(default=None, description="Lowest level to include"),
    log: MessageLog = Depends(get_message_log),
) -> list[dict[str, str]]:
    """Return buffered notifications, oldest first."""
    return [m.to_dict() for m in log.snapshot(min_level)]


@router.delete("", status_code=status.HTTP_204_NO_CONTENT, summary="Clear notifications")
async def clear_messages(log: MessageLog = Depends(get_message_log)) -> None:
    log.clear()
