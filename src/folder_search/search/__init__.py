"""Search module: field layouts, query parsing, index stores and queries."""

from folder_search.search.analysis import (
    Analyzer,
    BooleanQuery,
    Occur,
    PhraseQuery,
    QueryParser,
    ScoringModel,
    TermQuery,
)
from folder_search.search.schemas import (
    FieldLayout,
    RankedHit,
    SearchOutcome,
    SearchResult,
    StoredDocument,
)

__all__ = [
    # Schemas
    "FieldLayout",
    "RankedHit",
    "SearchOutcome",
    "SearchResult",
    "StoredDocument",
    # Analysis
    "Analyzer",
    "BooleanQuery",
    "Occur",
    "PhraseQuery",
    "QueryParser",
    "ScoringModel",
    "TermQuery",
]
