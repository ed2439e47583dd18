"""Contract between the pipeline and an index store.

Stores hold one document per relative path. Writers buffer or transact
their changes; nothing becomes visible to readers before ``commit``, and
``close`` without ``commit`` discards the pending work. All methods raise
``IndexStoreError`` on I/O failure.
"""

from typing import Protocol

from folder_search.search.analysis import Query
from folder_search.search.schemas import RankedHit, StoredDocument


class IndexWriter(Protocol):
    """Write session. At most one is open per store at a time."""

    async def upsert(self, key: str, document: StoredDocument) -> None:
        """Add or replace the document keyed by ``key``."""
        ...

    async def delete(self, key: str) -> None:
        """Remove the document keyed by ``key`` if present."""
        ...

    async def commit(self) -> None: ...

    async def close(self) -> None: ...


class IndexReader(Protocol):
    """Read view over the last committed state."""

    async def search(self, query: Query, limit: int) -> list[RankedHit]:
        """Return at most ``limit`` hits, best first."""
        ...

    async def stored_fields(self, hit: RankedHit) -> list[tuple[str, str]]:
        """Stored (name, value) pairs of a hit's document."""
        ...

    async def read_hash_sums(self) -> dict[str, str]:
        """Path to hash sum for every committed document."""
        ...

    async def close(self) -> None: ...


class IndexStore(Protocol):
    """A handle on one index, owned by a session."""

    name: str

    async def exists(self) -> bool:
        """Whether an index has been committed to this store."""
        ...

    async def open_writer(self) -> IndexWriter: ...

    async def open_reader(self) -> IndexReader: ...

    async def clear(self) -> None:
        """Drop every document and start from an empty index."""
        ...

    async def close(self) -> None:
        """Release the handle. Further calls are invalid."""
        ...
