"""Index session: owns one configuration, its store and the running tasks.

The session is the only component that writes the validity timestamp. A
build marks the index as failed before it starts and records the build
start time only when all three stages report success::

    session = IndexSession(root)
    await session.open()
    ok = await (await session.update_index())
    outcome = await (await session.search("hello"))
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from folder_search.catalog.index_config import (
    INDEX_BACKEND,
    INDEX_NEVER_CREATED,
    INDEX_UPDATE_FAILED,
    IndexConfig,
    ResolvedConfig,
    Validity,
    list_configs,
    now_millis,
)
from folder_search.config import Settings, get_settings
from folder_search.core.exceptions import (
    ConfigResolutionError,
    IndexStoreError,
    NotConfiguredError,
    SessionClosedError,
)
from folder_search.core.messages import Level, MessageLog, NotificationSink
from folder_search.indexing.docket import QueueItem
from folder_search.indexing.extractors import ContentExtractor
from folder_search.indexing.parse import ExtractionStage
from folder_search.indexing.select import ChangeDetector
from folder_search.indexing.stage import Stage, StageProgress
from folder_search.indexing.writer import IndexWriteStage
from folder_search.search.analysis import QueryParser
from folder_search.search.schemas import SearchOutcome
from folder_search.search.searcher import SearchStage
from folder_search.search.store import IndexStore
from folder_search.utils.logging import LogContext, get_logger

logger = get_logger(__name__)


class SessionState(str, Enum):
    """Lifecycle of an index session."""

    UNCONFIGURED = "unconfigured"
    IDLE = "idle"
    BUILDING = "building"
    CLOSED = "closed"


@dataclass
class IndexStatus:
    """Polled snapshot of a session.

    Attributes:
        state: Session state.
        config_name: Configuration name.
        details: Selected options, one line.
        last_updated: Raw validity value.
        validity: Interpreted validity.
        validity_text: Human-readable validity.
        progress: Build progress in [0, 1].
        current: Current build item ("42%, processing a/b.txt").
        stages: Per-stage progress of the current or last build.
        search_message: Status text of the latest query.
    """

    state: SessionState
    config_name: str
    details: str
    last_updated: int
    validity: Validity
    validity_text: str
    progress: float = 0.0
    current: str = ""
    stages: list[StageProgress] = field(default_factory=list)
    search_message: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "state": self.state.value,
            "config_name": self.config_name,
            "details": self.details,
            "last_updated": self.last_updated,
            "validity": self.validity.value,
            "validity_text": self.validity_text,
            "progress": self.progress,
            "current": self.current,
            "stages": [s.to_dict() for s in self.stages],
            "search_message": self.search_message,
        }


async def run_pipeline(stages: list[Stage]) -> bool:
    """Run stages concurrently and AND their outcomes.

    As soon as one stage fails, the others are cancelled so that no stage is
    left blocked on a queue whose peer has gone away.
    """
    tasks = [asyncio.create_task(stage.run(), name=f"stage-{stage.name}") for stage in stages]

    def failed(task: asyncio.Task[bool]) -> bool:
        return task.cancelled() or task.exception() is not None or not task.result()

    try:
        pending: set[asyncio.Task[bool]] = set(tasks)
        while pending:
            done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            if any(failed(t) for t in done):
                break
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    return not any(failed(t) for t in tasks)


class IndexSession:
    """Orchestrates builds and queries for one named configuration.

    At most one build and one query run at a time: starting a build cancels
    whatever is running, and a new query replaces the previous one.

    Args:
        root: Directory tree to index.
        config_name: Configuration within the catalog.
        settings: Application settings, defaults to ``get_settings()``.
        sink: Notification sink, defaults to a ``MessageLog``.
        extractor: Content extractor for the extraction stage.
    """

    def __init__(
        self,
        root: Path,
        config_name: str | None = None,
        settings: Settings | None = None,
        sink: NotificationSink | None = None,
        extractor: ContentExtractor | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.root = root.resolve()
        self.settings = settings
        self.catalog_dir = self.root / settings.catalog.dir_name
        self.config = IndexConfig(
            self.catalog_dir,
            config_name or settings.catalog.config_name,
            settings.index_defaults,
        )
        self.sink: NotificationSink = sink if sink is not None else MessageLog(settings.catalog.message_log_size)
        self.extractor = extractor or ContentExtractor()
        self.resolved: ResolvedConfig | None = None
        self.store: IndexStore | None = None
        self.last_outcome: SearchOutcome | None = None
        self._closed = False
        self._build_task: asyncio.Task[bool] | None = None
        self._search_task: asyncio.Task[SearchOutcome] | None = None
        self._stages: list[Stage] = []
        self._lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def state(self) -> SessionState:
        if self._closed:
            return SessionState.CLOSED
        if self.store is None:
            return SessionState.UNCONFIGURED
        if self._build_task is not None and not self._build_task.done():
            return SessionState.BUILDING
        return SessionState.IDLE

    def _check_open(self, operation: str) -> None:
        if self._closed:
            raise SessionClosedError(operation)

    def _check_configured(self, operation: str) -> tuple[IndexStore, ResolvedConfig]:
        self._check_open(operation)
        if self.store is None or self.resolved is None:
            raise NotConfiguredError(operation, self.name)
        return self.store, self.resolved

    def _report(self, level: Level, summary: str, details: str = "") -> None:
        log = {Level.INFO: logger.info, Level.WARN: logger.warning, Level.ERROR: logger.error}[level]
        log(summary, config=self.name, details=details)
        self.sink.emit(level, summary, details, source="session")

    def catalog(self) -> list[str]:
        """Configuration names present in this root's catalog."""
        return list_configs(self.catalog_dir)

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    async def open(self) -> bool:
        """Resolve the configuration and open its index store.

        Returns:
            True if the session is configured afterwards.
        """
        self._check_open("open")
        if self.store is not None:
            return True
        try:
            resolved = self.config.resolve()
            try:
                store = await resolved.backend.open(
                    self.name,
                    self.config.index_dir,
                    resolved.analyzer,
                    resolved.scoring,
                    resolved.layout,
                    self.settings.meilisearch,
                )
            except IndexStoreError as e:
                raise ConfigResolutionError(INDEX_BACKEND, resolved.backend.value, cause=e) from e
        except ConfigResolutionError as e:
            self._report(Level.ERROR, "Configuration cannot be resolved", e.message)
            return False

        self.resolved = resolved
        self.store = store
        logger.info("Session opened", config=self.name, details=self.config.details())
        return True

    async def _release_store(self) -> None:
        store, self.store, self.resolved = self.store, None, None
        if store is not None:
            try:
                await store.close()
            except IndexStoreError as e:
                self._report(Level.WARN, "Cannot close index store", e.message)

    async def set_property(self, prop: str, value: str) -> bool:
        """Change a configuration option and re-resolve.

        Running tasks are cancelled and the store is reopened with the new
        options. The index is invalidated unless it was never built.

        Returns:
            True if the configuration resolves after the change.

        Raises:
            UnknownPropertyError: If ``prop`` is not an option property.
        """
        self._check_open("set property")
        IndexConfig.options(prop)
        async with self._lock:
            await self.cancel_all_tasks()
            await self._release_store()
            self.config.set(prop, value)
            return await self.open()

    async def clear_index(self) -> None:
        """Empty the index and mark it never created."""
        store, _ = self._check_configured("clear index")
        async with self._lock:
            await self.cancel_all_tasks()
            await store.clear()
            self.config.set_last_updated(INDEX_NEVER_CREATED)
        self._report(Level.INFO, "Index cleared")

    # -------------------------------------------------------------------------
    # Build
    # -------------------------------------------------------------------------

    async def update_index(self) -> asyncio.Task[bool]:
        """Start a build.

        Returns:
            Task resolving to True if all three stages succeeded.

        Raises:
            NotConfiguredError: If the configuration is not resolved.
        """
        async with self._lock:
            store, resolved = self._check_configured("update index")
            await self.cancel_all_tasks()
            full_rebuild = self.config.validity is Validity.INVALIDATED
            if not full_rebuild:
                self.config.set_last_updated(INDEX_UPDATE_FAILED)
            self._build_task = asyncio.create_task(
                self._build(store, resolved, full_rebuild),
                name=f"build-{self.name}",
            )
            return self._build_task

    async def _read_hash_sums(self, store: IndexStore) -> dict[str, str]:
        try:
            reader = await store.open_reader()
            try:
                return await reader.read_hash_sums()
            finally:
                await reader.close()
        except IndexStoreError as e:
            self._report(Level.ERROR, "Cannot read hash sums, re-indexing every file", e.message)
            return {}

    async def _build(self, store: IndexStore, resolved: ResolvedConfig, full_rebuild: bool) -> bool:
        start = now_millis()
        with LogContext(config=self.name, build_start=start):
            if full_rebuild:
                # An invalidated index stays invalidated until it is emptied
                try:
                    await store.clear()
                except IndexStoreError as e:
                    self._report(Level.ERROR, "Cannot clear invalidated index", e.message)
                    return False
                self.config.set_last_updated(INDEX_UPDATE_FAILED)

            hash_sums = await self._read_hash_sums(store)
            pipeline = self.settings.pipeline
            selected: asyncio.Queue[QueueItem] = asyncio.Queue(maxsize=pipeline.queue_size)
            parsed: asyncio.Queue[QueueItem] = asyncio.Queue(maxsize=pipeline.queue_size)

            select = ChangeDetector(
                self.root,
                resolved.hash_algorithm,
                hash_sums,
                selected,
                self.sink,
                exclude=self.catalog_dir,
                block_size=pipeline.hash_block_size,
            )
            parse = ExtractionStage(self.root, self.extractor, selected, parsed, self.sink)
            write = IndexWriteStage(store, resolved.layout, hash_sums, parsed, self.sink, upstream=select)
            self._stages = [select, parse, write]

            logger.info("Build started", full_rebuild=full_rebuild, known=len(hash_sums))
            ok = await run_pipeline(self._stages)
            if ok:
                self.config.set_last_updated(start)
                self._report(
                    Level.INFO,
                    "Index updated",
                    f"{select.selected} extracted, {write.deleted} deleted, {len(write.hash_sums)} documents",
                )
            else:
                self._report(Level.ERROR, "Index update failed", self._failure_details())
            return ok

    def _failure_details(self) -> str:
        return ", ".join(f"{s.name}: {s.message}" for s in self._stages)

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    async def search(self, query: str, limit: int | None = None) -> asyncio.Task[SearchOutcome]:
        """Start a query, replacing any query still running.

        Returns:
            Task resolving to the outcome; the latest outcome is also kept
            in ``last_outcome``.

        Raises:
            NotConfiguredError: If the configuration is not resolved.
        """
        store, resolved = self._check_configured("search")
        await self._cancel(self._search_task)
        limit = limit or self.settings.catalog.default_limit

        validity = self.config.validity
        if validity is Validity.INVALIDATED:
            coro = self._finish_search(SearchOutcome(query=query, message="Index invalidated"))
        elif validity is Validity.NEVER_CREATED:
            coro = self._finish_search(SearchOutcome(query=query, message="Index not yet created"))
        else:
            stage = SearchStage(self.root, store, QueryParser(resolved.layout), query, limit, self.sink)
            coro = self._run_search(stage)
        self._search_task = asyncio.create_task(coro, name=f"search-{self.name}")
        return self._search_task

    async def _finish_search(self, outcome: SearchOutcome) -> SearchOutcome:
        self.last_outcome = outcome
        return outcome

    async def _run_search(self, stage: SearchStage) -> SearchOutcome:
        await stage.run()
        outcome = stage.outcome
        if not outcome.message:
            outcome.message = stage.message
        return await self._finish_search(outcome)

    # -------------------------------------------------------------------------
    # Cancellation and shutdown
    # -------------------------------------------------------------------------

    async def _cancel(self, task: asyncio.Task[Any] | None) -> None:
        if task is None or task.done():
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def cancel_all_tasks(self) -> None:
        """Cancel the running build and query and reset progress."""
        await self._cancel(self._build_task)
        await self._cancel(self._search_task)
        self._stages = []

    async def close(self) -> None:
        """Cancel everything and release the store. Idempotent."""
        if self._closed:
            return
        async with self._lock:
            await self.cancel_all_tasks()
            await self._release_store()
            self._closed = True
        logger.info("Session closed", config=self.name)

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    def status(self) -> IndexStatus:
        """Snapshot of state, validity and progress."""
        last_updated = self.config.last_updated
        status = IndexStatus(
            state=self.state,
            config_name=self.name,
            details=self.config.details(),
            last_updated=last_updated,
            validity=Validity.of(last_updated),
            validity_text=self.config.status(),
            stages=[s.snapshot() for s in self._stages],
            search_message=self.last_outcome.message if self.last_outcome else "",
        )
        if len(status.stages) == 3:
            _, parse, write = status.stages
            status.progress = write.fraction
            if status.state is SessionState.BUILDING:
                # Once extraction ends the writer is still draining the queue
                item = write.message if parse.message == "complete" else parse.message
                status.current = f"{write.fraction * 100:.0f}%, processing {item}"
        return status
