"""Change detection: classify every file under the root against the last build."""

import asyncio
import os
from pathlib import Path

from folder_search.core.exceptions import UnsupportedAlgorithmError
from folder_search.core.messages import Level, NotificationSink
from folder_search.indexing.docket import END_OF_STREAM, Docket, DocketStatus, QueueItem
from folder_search.indexing.hasher import ContentHasher, HashAlgorithm
from folder_search.indexing.stage import Stage
from folder_search.utils.logging import get_logger

logger = get_logger(__name__)


def list_files(root: Path, exclude: Path | None = None) -> list[str]:
    """List regular files under ``root`` as sorted POSIX relative paths.

    Symlinked directories are not followed. ``exclude`` and everything below
    it are skipped.

    Args:
        root: Directory to walk.
        exclude: Subtree to leave out, typically the catalog directory.

    Returns:
        Relative paths using ``/`` separators.
    """
    root = root.resolve()
    excluded = exclude.resolve() if exclude is not None else None
    files: list[str] = []

    def on_error(e: OSError) -> None:
        logger.warning("Cannot list directory", path=e.filename, error=str(e))

    for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
        current = Path(dirpath)
        dirnames[:] = sorted(d for d in dirnames if excluded is None or current / d != excluded)
        for name in sorted(filenames):
            path = current / name
            if path.is_file():
                files.append(path.relative_to(root).as_posix())
    return files


class ChangeDetector(Stage):
    """Emits one docket per existing file plus one per stale table entry.

    Existing files come first in enumeration order, then ``DELETE`` dockets
    for table entries that no file matched, then the end marker.
    """

    name = "select"

    def __init__(
        self,
        root: Path,
        algorithm: HashAlgorithm,
        hash_sums: dict[str, str],
        output: asyncio.Queue[QueueItem],
        sink: NotificationSink,
        exclude: Path | None = None,
        block_size: int = ContentHasher.DEFAULT_BLOCK_SIZE,
    ) -> None:
        super().__init__(sink)
        self.root = root
        self.algorithm = algorithm
        self.hash_sums = hash_sums
        self.output = output
        self.exclude = exclude
        self.block_size = block_size
        self.selected = 0

    async def _run(self) -> bool:
        try:
            hasher = ContentHasher(self.algorithm, self.block_size)
        except UnsupportedAlgorithmError as e:
            self.message = "failed"
            self.report(Level.ERROR, "Unsupported hash algorithm", e.message)
            return False

        files = await asyncio.to_thread(list_files, self.root, self.exclude)
        remaining = dict(self.hash_sums)
        self._total = len(files) + len(remaining.keys() - set(files))
        self.selected = 0
        logger.info(
            "Change detection started",
            root=str(self.root),
            files=len(files),
            known=len(remaining),
        )

        for rel_path in files:
            self.message = rel_path
            previous = remaining.pop(rel_path, None)
            try:
                digest = await asyncio.to_thread(hasher.hash_file, self.root / rel_path)
            except OSError as e:
                self.report(Level.WARN, f"Cannot read {rel_path}, keeping previous index entry", str(e))
                docket = Docket(rel_path, previous or "", DocketStatus.PASS)
            else:
                if previous == digest:
                    docket = Docket(rel_path, digest, DocketStatus.PASS)
                else:
                    docket = Docket(rel_path, digest, DocketStatus.SELECTED)
                    self.selected += 1
            await self.output.put(docket)
            self.processed += 1

        for rel_path in remaining:
            self.message = rel_path
            await self.output.put(Docket(rel_path, "", DocketStatus.DELETE))
            self.processed += 1

        await self.output.put(END_OF_STREAM)
        self.message = "complete"
        logger.info(
            "Change detection complete",
            selected=self.selected,
            deleted=len(remaining),
            unchanged=len(files) - self.selected,
        )
        return True
