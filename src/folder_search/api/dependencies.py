"""Request dependencies shared by the endpoint modules."""

from fastapi import HTTPException, Request, status

from folder_search.catalog.session import IndexSession
from folder_search.core.messages import MessageLog


def get_session(request: Request) -> IndexSession:
    """Get the session opened by the application lifespan."""
    session: IndexSession | None = getattr(request.app.state, "session", None)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Index session not initialized",
        )
    return session


def get_message_log(request: Request) -> MessageLog:
    """Get the in-memory notification log of the session."""
    sink = get_session(request).sink
    if not isinstance(sink, MessageLog):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session does not keep a message log",
        )
    return sink
