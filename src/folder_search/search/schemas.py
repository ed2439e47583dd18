"""Search schemas and models.

Defines the index field layouts and the records exchanged between the
stages, the index stores and callers.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from folder_search.indexing.docket import Docket, DocketStatus

# Fields every layout has
PATH = "path"
CONTENT = "content"
TITLE = "title"
HASHSUM = "hashsum"

STANDARD_METADATA_FIELDS = (
    "recipient",
    "from",
    "to",
    "cc",
    "bcc",
    "format",
    "identifier",
    "contributor",
    "coverage",
    "creator",
    "modifier",
    "creatortool",
    "language",
    "publisher",
    "relation",
    "rights",
    "source",
    "type",
    "title",
    "description",
    "keywords",
    "created",
    "modified",
    "printdate",
    "metadatadate",
    "latitude",
    "longitude",
    "altitude",
    "rating",
    "comments",
)

MINIMAL_METADATA_FIELDS = ("title", "format")


class FieldLayout(str, Enum):
    """Which metadata fields are indexed and stored alongside the body."""

    STANDARD = "Standard"
    MINIMAL = "Minimal"

    @property
    def metadata_fields(self) -> tuple[str, ...]:
        if self is FieldLayout.MINIMAL:
            return MINIMAL_METADATA_FIELDS
        return STANDARD_METADATA_FIELDS

    @property
    def searchable_fields(self) -> tuple[str, ...]:
        """Fields a query may name, body first."""
        return (CONTENT, *self.metadata_fields)

    def build_document(self, docket: Docket) -> "StoredDocument":
        """Build the index record for a parsed docket.

        Metadata names outside the layout are dropped; values keep their
        order.

        Raises:
            ValueError: If the docket is not ``PARSED``.
        """
        if docket.status is not DocketStatus.PARSED:
            raise ValueError(f"Cannot build a document from a {docket.status.value} docket")
        metadata = docket.metadata or {}
        fields = {
            name: list(metadata[name])
            for name in self.metadata_fields
            if metadata.get(name)
        }
        return StoredDocument(
            path=docket.rel_path,
            hash_sum=docket.hash_sum,
            content=docket.content or "",
            fields=fields,
        )


@dataclass
class StoredDocument:
    """A document as written to the index store.

    Attributes:
        path: Relative path, the document key.
        hash_sum: Content digest at extraction time.
        content: Body text. Indexed but not stored.
        fields: Stored metadata, field name to values.
    """

    path: str
    hash_sum: str
    content: str
    fields: dict[str, list[str]] = field(default_factory=dict)

    def stored_fields(self) -> list[tuple[str, str]]:
        """Stored (name, value) pairs in index order."""
        pairs = [(PATH, self.path)]
        for name, values in self.fields.items():
            pairs.extend((name, value) for value in values)
        pairs.append((HASHSUM, self.hash_sum))
        return pairs


@dataclass(frozen=True)
class RankedHit:
    """A single ranked match returned by an index reader.

    Attributes:
        path: Stored relative path of the matching document.
        score: Relevance, higher is better, always positive.
        ref: Backend-specific handle used to fetch stored fields.
    """

    path: str
    score: float
    ref: Any = None


@dataclass
class SearchResult:
    """A result record presented to callers.

    Attributes:
        file: Absolute location of the matching file (root + path).
        title: Stored title or empty string.
        score: Relevance score.
        details: ``name: value`` line per stored field.
    """

    file: Path
    title: str
    score: float
    details: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "file": str(self.file),
            "title": self.title,
            "score": self.score,
            "details": self.details,
        }


@dataclass
class SearchOutcome:
    """Outcome of one query.

    Attributes:
        query: The query string as submitted.
        results: Ranked results, empty on failure.
        message: Status text ("3 results", "Parse error: ...").
    """

    query: str
    results: list[SearchResult] = field(default_factory=list)
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "query": self.query,
            "message": self.message,
            "total": len(self.results),
            "results": [r.to_dict() for r in self.results],
        }
