"""Index store backends selectable by the ``index.backend`` property."""

from enum import Enum
from pathlib import Path

from folder_search.config import MeilisearchSettings
from folder_search.search.analysis import Analyzer, ScoringModel
from folder_search.search.meilisearch_store import MeilisearchIndexStore, index_uid
from folder_search.search.schemas import FieldLayout
from folder_search.search.sqlite_store import DB_FILENAME, SqliteIndexStore
from folder_search.search.store import IndexStore


class StoreBackend(str, Enum):
    """Where the index lives."""

    FS = "FS"
    RAM = "RAM"
    MEILISEARCH = "Meilisearch"

    async def open(
        self,
        name: str,
        index_dir: Path,
        analyzer: Analyzer,
        scoring: ScoringModel,
        layout: FieldLayout,
        meilisearch: MeilisearchSettings,
    ) -> IndexStore:
        """Construct and open a store for this backend.

        Args:
            name: Configuration name.
            index_dir: Directory for on-disk indexes.
            analyzer: Tokenizer selection.
            scoring: Relevance model.
            layout: Field layout.
            meilisearch: Connection settings for the Meilisearch backend.

        Raises:
            IndexStoreError: If the store cannot be opened.
        """
        if self is StoreBackend.FS:
            return await SqliteIndexStore(name, analyzer, scoring, layout, index_dir / DB_FILENAME).open()
        if self is StoreBackend.RAM:
            return await SqliteIndexStore(name, analyzer, scoring, layout).open()
        uid = index_uid(meilisearch.index_prefix, name)
        return await MeilisearchIndexStore(name, uid, scoring, layout, meilisearch).open()
