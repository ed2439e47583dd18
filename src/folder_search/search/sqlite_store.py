"""SQLite FTS5 index store.

Documents live in two tables: ``documents`` keeps the stored fields keyed
by path, ``documents_fts`` is the FTS5 full-text index sharing its rowid.
The tokenizer comes from the configured ``Analyzer``; per-column BM25
weights and metadata bonuses come from the ``ScoringModel``.

The FS backend is a WAL-mode database file, so readers keep seeing the
last committed state while a writer transaction is open. The RAM backend
is a shared-cache in-memory database kept alive by the store's anchor
connection; a reader opened during an uncommitted write gets a locked
error instead of a snapshot.
"""

import asyncio
import json
import sqlite3
import threading
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from folder_search.core.exceptions import IndexStoreError, QuerySyntaxError
from folder_search.search.analysis import Analyzer, Query, ScoringModel, to_fts5, to_fts5_boost
from folder_search.search.schemas import CONTENT, PATH, FieldLayout, RankedHit, StoredDocument
from folder_search.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DB_FILENAME = "index.sqlite3"


class _Connection:
    """A sqlite3 connection used from worker threads one call at a time."""

    def __init__(self, target: str, uri: bool) -> None:
        self.conn = sqlite3.connect(
            target,
            uri=uri,
            check_same_thread=False,
            isolation_level=None,
            timeout=30.0,
        )
        self.conn.row_factory = sqlite3.Row
        self.lock = threading.Lock()

    def call(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        with self.lock:
            return fn(self.conn)

    def close(self) -> None:
        with self.lock:
            self.conn.close()


class SqliteIndexStore:
    """Index store backed by SQLite FTS5.

    Args:
        name: Store name used in logs and errors.
        analyzer: Tokenizer selection.
        scoring: Column weighting.
        layout: Metadata fields, one FTS5 column each.
        path: Database file; None for an in-memory database.
    """

    def __init__(
        self,
        name: str,
        analyzer: Analyzer,
        scoring: ScoringModel,
        layout: FieldLayout,
        path: Path | None = None,
    ) -> None:
        self.name = name
        self.analyzer = analyzer
        self.scoring = scoring
        self.layout = layout
        self.path = path
        if path is None:
            self._target = f"file:folder-search-{uuid.uuid4().hex}?mode=memory&cache=shared"
            self._uri = True
        else:
            self._target = str(path)
            self._uri = False
        self._anchor: _Connection | None = None
        # path column first, unindexed; then body; then metadata
        self.columns = (PATH, CONTENT, *layout.metadata_fields)

    @property
    def in_memory(self) -> bool:
        return self.path is None

    # -------------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------------

    async def _call(self, operation: str, conn: _Connection, fn: Callable[[sqlite3.Connection], T]) -> T:
        try:
            return await asyncio.to_thread(conn.call, fn)
        except sqlite3.Error as e:
            logger.error("SQLite operation failed", store=self.name, operation=operation, error=str(e))
            raise IndexStoreError(self.name, operation, e) from e

    def _connect(self) -> _Connection:
        conn = _Connection(self._target, self._uri)
        if not self.in_memory:
            conn.conn.execute("PRAGMA journal_mode=WAL")
            conn.conn.execute("PRAGMA synchronous=NORMAL")
        return conn

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        cols = ", ".join(_quote(name) for name in self.columns[2:])
        conn.executescript(f"""
            CREATE TABLE IF NOT EXISTS documents (
                id INTEGER PRIMARY KEY,
                path TEXT NOT NULL UNIQUE,
                hashsum TEXT NOT NULL,
                fields TEXT NOT NULL
            );
            CREATE VIRTUAL TABLE IF NOT EXISTS documents_fts USING fts5(
                path UNINDEXED, content, {cols},
                tokenize='{self.analyzer.fts5_tokenizer}'
            );
            CREATE TABLE IF NOT EXISTS meta (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            );
        """)

    def _require_anchor(self) -> _Connection:
        if self._anchor is None:
            raise IndexStoreError(self.name, "open", RuntimeError("store is not open"))
        return self._anchor

    # -------------------------------------------------------------------------
    # IndexStore
    # -------------------------------------------------------------------------

    async def open(self) -> "SqliteIndexStore":
        """Open the database and create the schema if missing."""
        if self._anchor is not None:
            return self
        try:
            if self.path is not None:
                self.path.parent.mkdir(parents=True, exist_ok=True)
            self._anchor = await asyncio.to_thread(self._connect)
        except (OSError, sqlite3.Error) as e:
            raise IndexStoreError(self.name, "open", e) from e
        await self._call("open", self._anchor, self._create_schema)
        logger.info("Index store opened", store=self.name, path=str(self.path or ":memory:"))
        return self

    async def exists(self) -> bool:
        anchor = self._require_anchor()

        def query(conn: sqlite3.Connection) -> bool:
            row = conn.execute("SELECT value FROM meta WHERE key = 'committed'").fetchone()
            return row is not None

        return await self._call("exists", anchor, query)

    async def open_writer(self) -> "SqliteIndexWriter":
        self._require_anchor()
        try:
            conn = await asyncio.to_thread(self._connect)
        except sqlite3.Error as e:
            raise IndexStoreError(self.name, "open_writer", e) from e
        try:
            await self._call("open_writer", conn, lambda c: c.execute("BEGIN IMMEDIATE"))
        except IndexStoreError:
            await asyncio.to_thread(conn.close)
            raise
        return SqliteIndexWriter(self, conn)

    async def open_reader(self) -> "SqliteIndexReader":
        self._require_anchor()
        try:
            conn = await asyncio.to_thread(self._connect)
        except sqlite3.Error as e:
            raise IndexStoreError(self.name, "open_reader", e) from e
        return SqliteIndexReader(self, conn)

    async def clear(self) -> None:
        anchor = self._require_anchor()

        def drop(conn: sqlite3.Connection) -> None:
            conn.executescript("""
                DROP TABLE IF EXISTS documents_fts;
                DROP TABLE IF EXISTS documents;
                DROP TABLE IF EXISTS meta;
            """)
            self._create_schema(conn)

        await self._call("clear", anchor, drop)
        logger.info("Index store cleared", store=self.name)

    async def close(self) -> None:
        if self._anchor is not None:
            await asyncio.to_thread(self._anchor.close)
            self._anchor = None
            logger.info("Index store closed", store=self.name)


class SqliteIndexWriter:
    """One write transaction, begun at open and ended by commit or close."""

    def __init__(self, store: SqliteIndexStore, conn: _Connection) -> None:
        self.store = store
        self._conn = conn
        self._closed = False

    async def upsert(self, key: str, document: StoredDocument) -> None:
        columns = self.store.columns
        row: list[Any] = [key, document.content]
        row.extend("\n".join(document.fields.get(name, [])) for name in columns[2:])
        placeholders = ", ".join("?" for _ in range(len(columns) + 1))
        fields = json.dumps(document.fields)

        def write(conn: sqlite3.Connection) -> None:
            existing = conn.execute("SELECT id FROM documents WHERE path = ?", (key,)).fetchone()
            if existing is None:
                cursor = conn.execute(
                    "INSERT INTO documents (path, hashsum, fields) VALUES (?, ?, ?)",
                    (key, document.hash_sum, fields),
                )
                doc_id = cursor.lastrowid
            else:
                doc_id = existing["id"]
                conn.execute(
                    "UPDATE documents SET hashsum = ?, fields = ? WHERE id = ?",
                    (document.hash_sum, fields, doc_id),
                )
                conn.execute("DELETE FROM documents_fts WHERE rowid = ?", (doc_id,))
            conn.execute(
                f"INSERT INTO documents_fts (rowid, {', '.join(_quote(c) for c in columns)}) "
                f"VALUES ({placeholders})",
                (doc_id, *row),
            )

        await self.store._call("upsert", self._conn, write)

    async def delete(self, key: str) -> None:
        def remove(conn: sqlite3.Connection) -> None:
            existing = conn.execute("SELECT id FROM documents WHERE path = ?", (key,)).fetchone()
            if existing is not None:
                conn.execute("DELETE FROM documents_fts WHERE rowid = ?", (existing["id"],))
                conn.execute("DELETE FROM documents WHERE id = ?", (existing["id"],))

        await self.store._call("delete", self._conn, remove)

    async def commit(self) -> None:
        def finish(conn: sqlite3.Connection) -> None:
            conn.execute(
                "INSERT OR REPLACE INTO meta (key, value) VALUES ('committed', datetime('now'))"
            )
            conn.execute("COMMIT")

        await self.store._call("commit", self._conn, finish)
        logger.debug("Index committed", store=self.store.name)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        def rollback_and_close(conn: sqlite3.Connection) -> None:
            try:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
            finally:
                conn.close()

        await self.store._call("close_writer", self._conn, rollback_and_close)


class SqliteIndexReader:
    """Read view on its own connection."""

    def __init__(self, store: SqliteIndexStore, conn: _Connection) -> None:
        self.store = store
        self._conn = conn

    async def search(self, query: Query, limit: int) -> list[RankedHit]:
        expression = to_fts5(query)
        weights = ", ".join(str(w) for w in [0.0, *self.store.scoring.weights(self.store.columns[1:])])
        bonuses: list[str] = []
        boost_params: list[str] = []
        for columns, bonus in self.store.scoring.boosts(self.store.columns[2:]):
            boost = to_fts5_boost(query, CONTENT, columns)
            if boost is None:
                continue
            bonuses.append(
                " + CASE WHEN d.id IN (SELECT rowid FROM documents_fts WHERE documents_fts MATCH ?)"
                f" THEN {bonus} ELSE 0 END"
            )
            boost_params.append(boost)
        score = f"-bm25(documents_fts, {weights})" + "".join(bonuses)

        def run(conn: sqlite3.Connection) -> list[RankedHit]:
            rows = conn.execute(
                f"""
                SELECT d.id AS id, d.path AS path,
                       {score} AS score
                FROM documents_fts
                JOIN documents d ON d.id = documents_fts.rowid
                WHERE documents_fts MATCH ?
                ORDER BY score DESC
                LIMIT ?
                """,
                (*boost_params, expression, limit),
            ).fetchall()
            return [RankedHit(path=r["path"], score=float(r["score"]), ref=r["id"]) for r in rows]

        try:
            return await asyncio.to_thread(self._conn.call, run)
        except sqlite3.OperationalError as e:
            if str(e).startswith("fts5: syntax error"):
                raise QuerySyntaxError(expression, str(e)) from e
            raise IndexStoreError(self.store.name, "search", e) from e
        except sqlite3.Error as e:
            raise IndexStoreError(self.store.name, "search", e) from e

    async def stored_fields(self, hit: RankedHit) -> list[tuple[str, str]]:
        def fetch(conn: sqlite3.Connection) -> list[tuple[str, str]]:
            row = conn.execute(
                "SELECT path, hashsum, fields FROM documents WHERE id = ?", (hit.ref,)
            ).fetchone()
            if row is None:
                return []
            document = StoredDocument(
                path=row["path"],
                hash_sum=row["hashsum"],
                content="",
                fields=json.loads(row["fields"]),
            )
            return document.stored_fields()

        return await self.store._call("stored_fields", self._conn, fetch)

    async def read_hash_sums(self) -> dict[str, str]:
        def fetch(conn: sqlite3.Connection) -> dict[str, str]:
            return {r["path"]: r["hashsum"] for r in conn.execute("SELECT path, hashsum FROM documents")}

        return await self.store._call("read_hash_sums", self._conn, fetch)

    async def close(self) -> None:
        await asyncio.to_thread(self._conn.close)


def _quote(name: str) -> str:
    return f'"{name}"'
