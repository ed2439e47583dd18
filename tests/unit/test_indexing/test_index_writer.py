"""Tests for the index-write stage."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from folder_search.core.exceptions import IndexStoreError
from folder_search.core.messages import Level, MessageLog
from folder_search.indexing.docket import END_OF_STREAM, Docket, DocketStatus, QueueItem
from folder_search.indexing.writer import IndexWriteStage
from folder_search.search.schemas import FieldLayout


def make_store(writer: MagicMock) -> MagicMock:
    store = MagicMock()
    store.name = "test"
    store.open_writer = AsyncMock(return_value=writer)
    return store


def make_writer() -> MagicMock:
    writer = MagicMock()
    writer.upsert = AsyncMock()
    writer.delete = AsyncMock()
    writer.commit = AsyncMock()
    writer.close = AsyncMock()
    return writer


def feed(*items: QueueItem) -> asyncio.Queue[QueueItem]:
    queue: asyncio.Queue[QueueItem] = asyncio.Queue()
    for item in items:
        queue.put_nowait(item)
    return queue


class TestIndexWriteStage:
    """Tests for IndexWriteStage."""

    @pytest.mark.asyncio
    async def test_applies_dockets_and_commits(self, sink: MessageLog) -> None:
        """Test upserts, deletes and the resulting hash table."""
        writer = make_writer()
        queue = feed(
            Docket("a.txt", "new", DocketStatus.PARSED, content="hello", metadata={"format": ["text/plain"]}),
            Docket("b.txt", "same", DocketStatus.PASS),
            Docket("gone.txt", "", DocketStatus.DELETE),
            END_OF_STREAM,
        )
        prior = {"a.txt": "old", "b.txt": "same", "gone.txt": "x"}
        stage = IndexWriteStage(make_store(writer), FieldLayout.STANDARD, prior, queue, sink)

        assert await stage.run() is True

        key, document = writer.upsert.await_args.args
        assert key == "a.txt"
        assert document.content == "hello"
        assert document.fields == {"format": ["text/plain"]}
        writer.delete.assert_awaited_once_with("gone.txt")
        writer.commit.assert_awaited_once()
        writer.close.assert_awaited_once()
        assert stage.hash_sums == {"a.txt": "new", "b.txt": "same"}
        assert (stage.upserted, stage.deleted) == (1, 1)
        assert stage.message == "complete"

    @pytest.mark.asyncio
    async def test_pass_without_prior_entry_is_skipped(self, sink: MessageLog) -> None:
        """Test a PASS for a never-indexed file adds nothing to the table."""
        stage = IndexWriteStage(
            make_store(make_writer()),
            FieldLayout.MINIMAL,
            {},
            feed(Docket("new.bin", "h", DocketStatus.PASS), END_OF_STREAM),
            sink,
        )
        assert await stage.run() is True
        assert stage.hash_sums == {}

    @pytest.mark.asyncio
    async def test_commit_failure(self, sink: MessageLog) -> None:
        """Test a failing commit fails the stage and closes the writer."""
        writer = make_writer()
        writer.commit.side_effect = IndexStoreError("test", "commit")
        stage = IndexWriteStage(make_store(writer), FieldLayout.STANDARD, {}, feed(END_OF_STREAM), sink)

        assert await stage.run() is False
        assert stage.message == "I/O exception"
        writer.close.assert_awaited_once()
        assert sink.snapshot()[-1].level is Level.ERROR

    @pytest.mark.asyncio
    async def test_open_writer_failure(self, sink: MessageLog) -> None:
        """Test a store that cannot open a writer fails the stage."""
        store = make_store(make_writer())
        store.open_writer.side_effect = IndexStoreError("test", "open_writer")
        stage = IndexWriteStage(store, FieldLayout.STANDARD, {}, feed(END_OF_STREAM), sink)

        assert await stage.run() is False
        assert stage.message == "I/O exception"

    @pytest.mark.asyncio
    async def test_selected_docket_is_protocol_violation(self, sink: MessageLog) -> None:
        """Test an unparsed SELECTED docket fails without committing."""
        writer = make_writer()
        stage = IndexWriteStage(
            make_store(writer),
            FieldLayout.STANDARD,
            {},
            feed(Docket("a.txt", "h", DocketStatus.SELECTED), END_OF_STREAM),
            sink,
        )

        assert await stage.run() is False
        writer.commit.assert_not_awaited()
        writer.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_total_follows_upstream(self, sink: MessageLog) -> None:
        """Test progress total is taken from the upstream stage."""
        upstream = MagicMock()
        upstream.total = 7
        stage = IndexWriteStage(make_store(make_writer()), FieldLayout.STANDARD, {}, feed(), sink, upstream=upstream)
        assert stage.total == 7
