"""Query stage: ranked search against the committed index."""

from pathlib import Path

from folder_search.core.exceptions import IndexStoreError, QuerySyntaxError
from folder_search.core.messages import Level, NotificationSink
from folder_search.indexing.stage import Stage
from folder_search.search.analysis import QueryParser
from folder_search.search.schemas import TITLE, SearchOutcome, SearchResult
from folder_search.search.store import IndexStore
from folder_search.utils.logging import get_logger

logger = get_logger(__name__)


def format_details(fields: list[tuple[str, str]]) -> str:
    """Render stored fields as ``name: value`` lines."""
    return "".join(f"{name}: {value}\n" for name, value in fields)


class SearchStage(Stage):
    """Runs one query and keeps its outcome.

    Failures never raise: a malformed query or an unreadable index yields an
    outcome with no results and a descriptive message.
    """

    name = "search"

    def __init__(
        self,
        root: Path,
        store: IndexStore,
        parser: QueryParser,
        query: str,
        limit: int,
        sink: NotificationSink,
    ) -> None:
        super().__init__(sink)
        self.root = root
        self.store = store
        self.parser = parser
        self.query = query
        self.limit = limit
        self.outcome = SearchOutcome(query=query)

    def _fail(self, message: str) -> bool:
        self.message = message
        self.outcome = SearchOutcome(query=self.query, message=message)
        return False

    async def _run(self) -> bool:
        self.message = "searching"
        try:
            parsed = self.parser.parse(self.query)
        except QuerySyntaxError as e:
            self.report(Level.WARN, "Parse error", f"{self.query}: {e.reason}")
            return self._fail(f"Parse error: {e.reason}")

        try:
            reader = await self.store.open_reader()
        except IndexStoreError as e:
            self.report(Level.ERROR, "Cannot open index", e.message)
            return self._fail("I/O exception")

        try:
            hits = await reader.search(parsed, self.limit)
            self._total = len(hits)
            results: list[SearchResult] = []
            for hit in hits:
                fields = await reader.stored_fields(hit)
                title = next((value for name, value in fields if name == TITLE), "")
                results.append(
                    SearchResult(
                        file=self.root / hit.path,
                        title=title,
                        score=hit.score,
                        details=format_details(fields),
                    )
                )
                self.processed += 1
        except QuerySyntaxError as e:
            self.report(Level.WARN, "Parse error", f"{self.query}: {e.reason}")
            return self._fail(f"Parse error: {e.reason}")
        except IndexStoreError as e:
            self.report(Level.ERROR, "Search failed", e.message)
            return self._fail("I/O exception")
        finally:
            await reader.close()

        self.message = f"{len(results)} results"
        self.outcome = SearchOutcome(query=self.query, results=results, message=self.message)
        logger.info("Search complete", query=self.query, results=len(results))
        return True
