"""Meilisearch index store.

Meilisearch has no write transactions, so the writer buffers its changes
and applies them on ``commit``: deletions first, then additions in batches,
waiting for each task. Nothing from a build is visible before its commit
starts.
Tokenization is Meilisearch's own; the configured analyzer does not apply.
"""

import hashlib
import re
from typing import Any

import httpx
from meilisearch_python_sdk import AsyncClient
from meilisearch_python_sdk.errors import MeilisearchApiError, MeilisearchError
from meilisearch_python_sdk.models.settings import MeilisearchSettings as IndexSettings

from folder_search.config import MeilisearchSettings
from folder_search.core.exceptions import IndexStoreError
from folder_search.search.analysis import Query, ScoringModel, to_meilisearch
from folder_search.search.schemas import CONTENT, HASHSUM, PATH, TITLE, FieldLayout, RankedHit, StoredDocument
from folder_search.utils.logging import get_logger

logger = get_logger(__name__)

INDEX_NOT_FOUND = "index_not_found"
PAGE_SIZE = 1000


def document_id(path: str) -> str:
    """Meilisearch ids allow only ``[a-zA-Z0-9_-]``; paths are hashed."""
    return hashlib.sha1(path.encode("utf-8")).hexdigest()


def index_uid(prefix: str, config_name: str) -> str:
    return re.sub(r"[^a-zA-Z0-9_-]", "_", f"{prefix}_{config_name}")


class MeilisearchIndexStore:
    """Index store backed by a Meilisearch index.

    Args:
        name: Store name used in logs and errors.
        uid: Meilisearch index uid.
        scoring: Selects ranking rules and attribute order.
        layout: Metadata fields stored with each document.
        settings: Connection settings.
        client: Pre-built client, mainly for tests.
    """

    def __init__(
        self,
        name: str,
        uid: str,
        scoring: ScoringModel,
        layout: FieldLayout,
        settings: MeilisearchSettings,
        client: AsyncClient | None = None,
    ) -> None:
        self.name = name
        self.uid = uid
        self.scoring = scoring
        self.layout = layout
        self.settings = settings
        self._client = client

    def _ensure_open(self, operation: str) -> AsyncClient:
        if self._client is None:
            raise IndexStoreError(self.name, operation, RuntimeError("store is not open"))
        return self._client

    @property
    def client(self) -> AsyncClient:
        return self._ensure_open("open")

    def _error(self, operation: str, e: Exception) -> IndexStoreError:
        logger.error("Meilisearch operation failed", store=self.name, operation=operation, error=str(e))
        return IndexStoreError(self.name, operation, e)

    async def wait_for_task(self, task_uid: int) -> None:
        await self.client.wait_for_task(
            task_uid,
            timeout_in_ms=self.settings.task_timeout_ms,
            raise_for_status=True,
        )

    @property
    def index_settings(self) -> IndexSettings:
        metadata = list(self.layout.metadata_fields)
        if self.scoring is ScoringModel.WEIGHTED:
            searchable = [TITLE, *[f for f in metadata if f != TITLE], CONTENT]
        else:
            searchable = [CONTENT, *metadata]
        return IndexSettings(
            searchable_attributes=searchable,
            filterable_attributes=[PATH],
            ranking_rules=self.scoring.ranking_rules,
        )

    async def open(self) -> "MeilisearchIndexStore":
        if self._client is None:
            try:
                self._client = AsyncClient(self.settings.url, self.settings.master_key)
            except (MeilisearchError, httpx.HTTPError) as e:
                raise self._error("open", e) from e
        logger.info("Index store opened", store=self.name, url=self.settings.url, index=self.uid)
        return self

    async def exists(self) -> bool:
        try:
            await self.client.get_index(self.uid)
        except MeilisearchApiError as e:
            if e.code == INDEX_NOT_FOUND:
                return False
            raise self._error("exists", e) from e
        except (MeilisearchError, httpx.HTTPError) as e:
            raise self._error("exists", e) from e
        return True

    async def ensure_index(self) -> None:
        """Create the index and apply settings if it does not exist yet."""
        if await self.exists():
            return
        try:
            index = await self.client.create_index(self.uid, primary_key="id")
            task = await index.update_settings(self.index_settings)
            await self.wait_for_task(task.task_uid)
        except (MeilisearchError, httpx.HTTPError) as e:
            raise self._error("create", e) from e
        logger.info("Index created", store=self.name, index=self.uid)

    async def open_writer(self) -> "MeilisearchIndexWriter":
        self._ensure_open("open_writer")
        return MeilisearchIndexWriter(self)

    async def open_reader(self) -> "MeilisearchIndexReader":
        self._ensure_open("open_reader")
        return MeilisearchIndexReader(self)

    async def clear(self) -> None:
        try:
            await self.client.delete_index_if_exists(self.uid)
        except (MeilisearchError, httpx.HTTPError) as e:
            raise self._error("clear", e) from e
        logger.info("Index store cleared", store=self.name, index=self.uid)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("Index store closed", store=self.name)


class MeilisearchIndexWriter:
    """Buffers upserts and deletes until commit."""

    def __init__(self, store: MeilisearchIndexStore) -> None:
        self.store = store
        self._pending: dict[str, StoredDocument | None] = {}

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def upsert(self, key: str, document: StoredDocument) -> None:
        self._pending[key] = document

    async def delete(self, key: str) -> None:
        self._pending[key] = None

    @staticmethod
    def to_document(key: str, document: StoredDocument) -> dict[str, Any]:
        return {
            "id": document_id(key),
            PATH: key,
            HASHSUM: document.hash_sum,
            CONTENT: document.content,
            **document.fields,
        }

    async def commit(self) -> None:
        store = self.store
        deletes = [document_id(k) for k, doc in self._pending.items() if doc is None]
        adds = [self.to_document(k, doc) for k, doc in self._pending.items() if doc is not None]
        await store.ensure_index()
        index = store.client.index(store.uid)
        batch_size = store.settings.batch_size

        try:
            if deletes:
                task = await index.delete_documents(deletes)
                await store.wait_for_task(task.task_uid)
            for i in range(0, len(adds), batch_size):
                task = await index.add_documents(adds[i : i + batch_size])
                await store.wait_for_task(task.task_uid)
        except (MeilisearchError, httpx.HTTPError) as e:
            raise store._error("commit", e) from e

        logger.info("Index committed", store=store.name, added=len(adds), deleted=len(deletes))
        self._pending.clear()

    async def close(self) -> None:
        self._pending.clear()


class MeilisearchIndexReader:
    """Stateless view; each call hits the server."""

    def __init__(self, store: MeilisearchIndexStore) -> None:
        self.store = store

    @property
    def stored_attributes(self) -> list[str]:
        return [PATH, HASHSUM, *self.store.layout.metadata_fields]

    async def search(self, query: Query, limit: int) -> list[RankedHit]:
        q, attributes = to_meilisearch(query)
        index = self.store.client.index(self.store.uid)
        try:
            result = await index.search(
                q,
                limit=limit,
                show_ranking_score=True,
                attributes_to_retrieve=self.stored_attributes,
                attributes_to_search_on=attributes,
            )
        except MeilisearchApiError as e:
            if e.code == INDEX_NOT_FOUND:
                return []
            raise self.store._error("search", e) from e
        except (MeilisearchError, httpx.HTTPError) as e:
            raise self.store._error("search", e) from e

        return [
            RankedHit(path=hit[PATH], score=float(hit.get("_rankingScore", 0.0)), ref=hit)
            for hit in result.hits
        ]

    async def stored_fields(self, hit: RankedHit) -> list[tuple[str, str]]:
        doc: dict[str, Any] = hit.ref or {}
        fields = {
            name: list(doc[name])
            for name in self.store.layout.metadata_fields
            if doc.get(name)
        }
        document = StoredDocument(
            path=doc.get(PATH, hit.path),
            hash_sum=doc.get(HASHSUM, ""),
            content="",
            fields=fields,
        )
        return document.stored_fields()

    async def read_hash_sums(self) -> dict[str, str]:
        index = self.store.client.index(self.store.uid)
        hash_sums: dict[str, str] = {}
        offset = 0
        try:
            while True:
                page = await index.get_documents(offset=offset, limit=PAGE_SIZE, fields=[PATH, HASHSUM])
                for doc in page.results:
                    hash_sums[doc[PATH]] = doc[HASHSUM]
                offset += len(page.results)
                if not page.results or offset >= page.total:
                    break
        except MeilisearchApiError as e:
            if e.code == INDEX_NOT_FOUND:
                return {}
            raise self.store._error("read_hash_sums", e) from e
        except (MeilisearchError, httpx.HTTPError) as e:
            raise self.store._error("read_hash_sums", e) from e
        return hash_sums

    async def close(self) -> None:
        pass
