"""Tests for search schemas."""

from pathlib import Path

import pytest

from folder_search.indexing.docket import Docket, DocketStatus
from folder_search.search.schemas import (
    FieldLayout,
    SearchOutcome,
    SearchResult,
    StoredDocument,
)


class TestFieldLayout:
    """Tests for FieldLayout."""

    def test_minimal_fields(self) -> None:
        """Test the minimal layout keeps title and format only."""
        assert FieldLayout.MINIMAL.metadata_fields == ("title", "format")
        assert FieldLayout.MINIMAL.searchable_fields == ("content", "title", "format")

    def test_standard_fields(self) -> None:
        """Test the standard layout covers the e-mail and document vocabulary."""
        fields = FieldLayout.STANDARD.metadata_fields
        assert {"recipient", "from", "to", "cc", "bcc", "creator", "keywords"} <= set(fields)
        assert len(fields) == len(set(fields))

    def test_build_document_filters_fields(self) -> None:
        """Test metadata outside the layout is dropped."""
        docket = Docket(
            "mail.eml",
            "abc",
            DocketStatus.PARSED,
            content="body",
            metadata={"title": ["Hi"], "from": ["a@b"], "format": ["message/rfc822"]},
        )

        document = FieldLayout.MINIMAL.build_document(docket)

        assert document.path == "mail.eml"
        assert document.hash_sum == "abc"
        assert document.content == "body"
        assert document.fields == {"title": ["Hi"], "format": ["message/rfc822"]}

    def test_build_document_requires_parsed(self) -> None:
        """Test only parsed dockets become documents."""
        with pytest.raises(ValueError):
            FieldLayout.STANDARD.build_document(Docket("a", "h", DocketStatus.SELECTED))


class TestStoredDocument:
    """Tests for StoredDocument."""

    def test_stored_fields_order(self) -> None:
        """Test path first, metadata in order, hash sum last."""
        document = StoredDocument(
            path="a.txt",
            hash_sum="abc",
            content="ignored",
            fields={"to": ["x", "y"], "format": ["text/plain"]},
        )
        assert document.stored_fields() == [
            ("path", "a.txt"),
            ("to", "x"),
            ("to", "y"),
            ("format", "text/plain"),
            ("hashsum", "abc"),
        ]


class TestSearchOutcome:
    """Tests for SearchOutcome."""

    def test_to_dict(self) -> None:
        """Test dictionary form with totals."""
        outcome = SearchOutcome(
            query="hello",
            results=[SearchResult(file=Path("/r/a.txt"), title="", score=1.5, details="path: a.txt\n")],
            message="1 results",
        )
        data = outcome.to_dict()
        assert data["total"] == 1
        assert data["results"][0]["file"] == str(Path("/r/a.txt"))
        assert data["message"] == "1 results"
