"""Extraction stage: turn selected dockets into parsed ones."""

import asyncio
from dataclasses import replace
from pathlib import Path

from folder_search.core.exceptions import ExtractionError, ProtocolViolationError
from folder_search.core.messages import Level, NotificationSink
from folder_search.indexing.docket import END_OF_STREAM, Docket, DocketStatus, EndOfStream, QueueItem
from folder_search.indexing.extractors import ContentExtractor
from folder_search.indexing.stage import Stage
from folder_search.utils.logging import get_logger

logger = get_logger(__name__)


class ExtractionStage(Stage):
    """Extracts text and metadata for ``SELECTED`` dockets.

    ``PASS`` and ``DELETE`` dockets are forwarded unchanged. A file that
    cannot be extracted degrades to ``PASS`` so one bad file never stops a
    build.
    """

    name = "parse"

    def __init__(
        self,
        root: Path,
        extractor: ContentExtractor,
        input: asyncio.Queue[QueueItem],
        output: asyncio.Queue[QueueItem],
        sink: NotificationSink,
    ) -> None:
        super().__init__(sink)
        self.root = root
        self.extractor = extractor
        self.input = input
        self.output = output
        self.parsed = 0
        self.failed = 0

    def _extract(self, docket: Docket) -> Docket:
        with open(self.root / docket.rel_path, "rb") as f:
            extracted = self.extractor.extract(f, docket.rel_path)
        return replace(
            docket,
            status=DocketStatus.PARSED,
            content=extracted.text,
            metadata=extracted.metadata,
        )

    async def _run(self) -> bool:
        self.parsed = 0
        self.failed = 0
        while True:
            item = await self.input.get()
            if isinstance(item, EndOfStream):
                break

            docket = item
            if docket.status is DocketStatus.SELECTED:
                self.message = docket.rel_path
                try:
                    docket = await asyncio.to_thread(self._extract, docket)
                    self.parsed += 1
                except (ExtractionError, OSError) as e:
                    self.failed += 1
                    self.report(Level.WARN, f"Cannot extract {docket.rel_path}", str(e))
                    docket = replace(docket, status=DocketStatus.PASS)
            elif docket.status not in (DocketStatus.PASS, DocketStatus.DELETE):
                error = ProtocolViolationError(self.name, docket.status.value, docket.rel_path)
                self.message = "failed"
                self.report(Level.ERROR, "Unexpected docket status", error.message)
                await self.output.put(END_OF_STREAM)
                return False

            await self.output.put(docket)
            self.processed += 1

        await self.output.put(END_OF_STREAM)
        self.message = "complete"
        logger.info("Extraction complete", parsed=self.parsed, failed=self.failed)
        return True
