"""Index-write stage: apply the docket stream to the index store."""

import asyncio

from folder_search.core.exceptions import IndexStoreError, ProtocolViolationError
from folder_search.core.messages import Level, NotificationSink
from folder_search.indexing.docket import DocketStatus, EndOfStream, QueueItem
from folder_search.indexing.stage import Stage
from folder_search.search.schemas import FieldLayout
from folder_search.search.store import IndexStore
from folder_search.utils.logging import get_logger

logger = get_logger(__name__)


class IndexWriteStage(Stage):
    """Upserts parsed documents, deletes vanished ones and commits.

    ``hash_sums`` holds the table for the committed index once the stage
    has returned True: prior entries for ``PASS`` dockets, fresh digests for
    re-indexed files, nothing for deleted ones.

    Args:
        store: Index store to write to.
        layout: Field layout used to build documents.
        prior_hash_sums: Table read at the start of the build.
        input: Queue fed by the extraction stage.
        sink: Notification sink.
        upstream: Stage whose total is used for progress.
    """

    name = "index"

    def __init__(
        self,
        store: IndexStore,
        layout: FieldLayout,
        prior_hash_sums: dict[str, str],
        input: asyncio.Queue[QueueItem],
        sink: NotificationSink,
        upstream: Stage | None = None,
    ) -> None:
        super().__init__(sink)
        self.store = store
        self.layout = layout
        self.prior_hash_sums = prior_hash_sums
        self.input = input
        self.upstream = upstream
        self.hash_sums: dict[str, str] = {}
        self.upserted = 0
        self.deleted = 0

    @property
    def total(self) -> int:
        if self.upstream is not None:
            return self.upstream.total
        return self._total

    async def _run(self) -> bool:
        self.upserted = 0
        self.deleted = 0
        hash_sums: dict[str, str] = {}
        try:
            writer = await self.store.open_writer()
        except IndexStoreError as e:
            self.message = "I/O exception"
            self.report(Level.ERROR, "Cannot open index writer", e.message)
            return False

        try:
            while True:
                item = await self.input.get()
                if isinstance(item, EndOfStream):
                    break

                docket = item
                self.message = docket.rel_path
                if docket.status is DocketStatus.PARSED:
                    await writer.upsert(docket.rel_path, self.layout.build_document(docket))
                    hash_sums[docket.rel_path] = docket.hash_sum
                    self.upserted += 1
                elif docket.status is DocketStatus.PASS:
                    prior = self.prior_hash_sums.get(docket.rel_path)
                    if prior is not None:
                        hash_sums[docket.rel_path] = prior
                elif docket.status is DocketStatus.DELETE:
                    await writer.delete(docket.rel_path)
                    self.deleted += 1
                else:
                    error = ProtocolViolationError(self.name, docket.status.value, docket.rel_path)
                    self.message = "failed"
                    self.report(Level.ERROR, "Unexpected docket status", error.message)
                    return False
                self.processed += 1

            await writer.commit()
        except IndexStoreError as e:
            self.message = "I/O exception"
            self.report(Level.ERROR, "Index write failed", e.message)
            return False
        finally:
            await writer.close()

        self.hash_sums = hash_sums
        self.message = "complete"
        logger.info(
            "Index write complete",
            store=self.store.name,
            upserted=self.upserted,
            deleted=self.deleted,
            documents=len(hash_sums),
        )
        return True
