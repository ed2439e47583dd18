"""Tests for the extraction stage."""

import asyncio
from pathlib import Path

import pytest

from folder_search.core.messages import Level, MessageLog
from folder_search.indexing.docket import END_OF_STREAM, Docket, DocketStatus, EndOfStream, QueueItem
from folder_search.indexing.extractors import ContentExtractor
from folder_search.indexing.parse import ExtractionStage


async def run_stage(root: Path, dockets: list[Docket], sink: MessageLog) -> tuple[bool, list[QueueItem], ExtractionStage]:
    """Feed dockets through an extraction stage and collect its output."""
    input: asyncio.Queue[QueueItem] = asyncio.Queue()
    output: asyncio.Queue[QueueItem] = asyncio.Queue()
    for docket in dockets:
        input.put_nowait(docket)
    input.put_nowait(END_OF_STREAM)

    stage = ExtractionStage(root, ContentExtractor(), input, output, sink)
    ok = await stage.run()
    items: list[QueueItem] = []
    while not output.empty():
        items.append(output.get_nowait())
    return ok, items, stage


class TestExtractionStage:
    """Tests for ExtractionStage."""

    @pytest.mark.asyncio
    async def test_selected_becomes_parsed(self, root: Path, sink: MessageLog) -> None:
        """Test selected dockets gain content and metadata."""
        ok, items, stage = await run_stage(
            root,
            [
                Docket("a.txt", "h1", DocketStatus.SELECTED),
                Docket("docs/page.html", "h2", DocketStatus.SELECTED),
            ],
            sink,
        )

        assert ok is True
        a, page, end = items
        assert isinstance(end, EndOfStream)
        assert a.status is DocketStatus.PARSED
        assert a.content == "hello world"
        assert a.hash_sum == "h1"
        assert page.metadata["title"] == ["Quarterly Report"]
        assert stage.parsed == 2
        assert stage.message == "complete"

    @pytest.mark.asyncio
    async def test_pass_and_delete_forwarded(self, root: Path, sink: MessageLog) -> None:
        """Test PASS and DELETE dockets pass through unchanged."""
        dockets = [
            Docket("a.txt", "h1", DocketStatus.PASS),
            Docket("gone.txt", "", DocketStatus.DELETE),
        ]
        ok, items, _ = await run_stage(root, dockets, sink)

        assert ok is True
        assert items[:2] == dockets
        assert isinstance(items[2], EndOfStream)

    @pytest.mark.asyncio
    async def test_extraction_failure_degrades_to_pass(self, root: Path, sink: MessageLog) -> None:
        """Test an unextractable file becomes PASS with a warning."""
        (root / "bin.dat").write_bytes(b"\x00\x01\x02")
        ok, items, stage = await run_stage(
            root,
            [
                Docket("bin.dat", "h", DocketStatus.SELECTED),
                Docket("missing.txt", "h", DocketStatus.SELECTED),
                Docket("a.txt", "h1", DocketStatus.SELECTED),
            ],
            sink,
        )

        assert ok is True
        assert [i.status for i in items[:3]] == [DocketStatus.PASS, DocketStatus.PASS, DocketStatus.PARSED]
        assert stage.failed == 2
        assert [m.level for m in sink.snapshot()] == [Level.WARN, Level.WARN]

    @pytest.mark.asyncio
    async def test_unexpected_status_fails(self, root: Path, sink: MessageLog) -> None:
        """Test an already parsed docket is a protocol violation."""
        ok, items, stage = await run_stage(
            root,
            [Docket("a.txt", "h1", DocketStatus.PARSED, content="x", metadata={})],
            sink,
        )

        assert ok is False
        assert items == [END_OF_STREAM]
        assert sink.snapshot()[-1].level is Level.ERROR

    @pytest.mark.asyncio
    async def test_end_marker_forwarded_once(self, root: Path, sink: MessageLog) -> None:
        """Test an empty stream forwards exactly one end marker."""
        ok, items, _ = await run_stage(root, [], sink)
        assert ok is True
        assert items == [END_OF_STREAM]
