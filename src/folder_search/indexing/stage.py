"""Common behaviour of the build and query stages.

A stage runs as one asyncio task. It exposes polled progress (``snapshot``)
instead of pushing updates, reports user-facing notices through the injected
sink and logs through structlog. Cancellation is asyncio task cancellation:
every queue operation is an ``await`` and therefore a cancellation point.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from folder_search.core.messages import Level, NotificationSink
from folder_search.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class StageProgress:
    """Point-in-time view of a stage.

    Attributes:
        stage: Stage name.
        processed: Items handled so far.
        total: Items expected, 0 while unknown.
        message: Current status text (usually the current relative path).
    """

    stage: str
    processed: int
    total: int
    message: str

    @property
    def fraction(self) -> float:
        if self.total <= 0:
            return 0.0
        return min(1.0, self.processed / self.total)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "stage": self.stage,
            "processed": self.processed,
            "total": self.total,
            "fraction": self.fraction,
            "message": self.message,
        }


class Stage(ABC):
    """Base class for pipeline stages."""

    name = "stage"

    def __init__(self, sink: NotificationSink) -> None:
        self.sink = sink
        self.processed = 0
        self.message = ""
        self._total = 0

    @property
    def total(self) -> int:
        return self._total

    def snapshot(self) -> StageProgress:
        return StageProgress(
            stage=self.name,
            processed=self.processed,
            total=self.total,
            message=self.message,
        )

    def report(self, level: Level, summary: str, details: str = "") -> None:
        """Log a notice and forward it to the notification sink."""
        log = {Level.INFO: logger.info, Level.WARN: logger.warning, Level.ERROR: logger.error}[level]
        log(summary, stage=self.name, details=details)
        self.sink.emit(level, summary, details, source=self.name)

    async def run(self) -> bool:
        """Run the stage to completion.

        Returns:
            True if the stage finished its whole stream, False on failure.

        Raises:
            asyncio.CancelledError: If the task was cancelled.
        """
        self.processed = 0
        self.message = "starting"
        try:
            return await self._run()
        except asyncio.CancelledError:
            self.message = "cancelled"
            logger.info("Stage cancelled", stage=self.name, processed=self.processed)
            raise
        except Exception as e:
            self.message = "interrupted"
            logger.exception("Stage interrupted", stage=self.name)
            self.sink.emit(Level.ERROR, f"{self.name} interrupted", repr(e), source=self.name)
            return False

    @abstractmethod
    async def _run(self) -> bool:
        """Stage body; see ``run``."""
