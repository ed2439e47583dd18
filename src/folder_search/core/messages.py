"""Notification stream shared by the pipeline stages and the session.

Stages receive a sink at construction and emit user-facing notices to it.
``MessageLog`` keeps the most recent notices in memory so callers can poll
them; anything implementing ``NotificationSink`` can be injected instead.
"""

import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol


class Level(str, Enum):
    """Severity of a notification."""

    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


@dataclass(frozen=True)
class Message:
    """A single notification.

    Attributes:
        level: Severity.
        summary: One-line description.
        details: Optional longer text, e.g. the failing path or exception.
        source: Name of the emitting component.
        timestamp: When the notice was emitted (UTC).
    """

    level: Level
    summary: str
    details: str = ""
    source: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "level": self.level.value,
            "summary": self.summary,
            "details": self.details,
            "source": self.source,
            "timestamp": self.timestamp.isoformat(),
        }


class NotificationSink(Protocol):
    """Fire-and-forget receiver of notifications. Must never block."""

    def emit(self, level: Level, summary: str, details: str = "", source: str = "") -> None: ...


class MessageLog:
    """Bounded in-memory notification sink.

    Safe to emit into from worker threads; the oldest messages are dropped
    once ``max_size`` is reached.
    """

    def __init__(self, max_size: int = 500) -> None:
        self._messages: deque[Message] = deque(maxlen=max_size)
        self._lock = threading.Lock()

    def emit(self, level: Level, summary: str, details: str = "", source: str = "") -> None:
        message = Message(level=level, summary=summary, details=details, source=source)
        with self._lock:
            self._messages.append(message)

    def snapshot(self, min_level: Level | None = None) -> list[Message]:
        """Return a copy of the buffered messages, oldest first.

        Args:
            min_level: If given, only messages at or above this severity.
        """
        with self._lock:
            messages = list(self._messages)
        if min_level is None:
            return messages
        order = list(Level)
        threshold = order.index(min_level)
        return [m for m in messages if order.index(m.level) >= threshold]

    def clear(self) -> None:
        with self._lock:
            self._messages.clear()

    def __len__(self) -> int:
        return len(self._messages)
