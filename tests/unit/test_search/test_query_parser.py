"""Tests for the query parser and backend query compilers."""

import pytest

from folder_search.core.exceptions import QuerySyntaxError
from folder_search.search.analysis import (
    Analyzer,
    BooleanClause,
    BooleanQuery,
    Occur,
    PhraseQuery,
    QueryParser,
    ScoringModel,
    TermQuery,
    to_fts5,
    to_fts5_boost,
    to_meilisearch,
)
from folder_search.search.schemas import FieldLayout


@pytest.fixture
def parser() -> QueryParser:
    """Create a parser over the standard layout."""
    return QueryParser(FieldLayout.STANDARD)


class TestQueryParser:
    """Tests for QueryParser."""

    def test_single_term(self, parser: QueryParser) -> None:
        """Test a bare word searches the body."""
        assert parser.parse("hello") == TermQuery("content", "hello")

    def test_default_operator_is_or(self, parser: QueryParser) -> None:
        """Test juxtaposed terms are optional clauses."""
        query = parser.parse("hello world")
        assert query == BooleanQuery(
            (
                BooleanClause(Occur.SHOULD, TermQuery("content", "hello")),
                BooleanClause(Occur.SHOULD, TermQuery("content", "world")),
            )
        )

    def test_and_makes_both_sides_required(self, parser: QueryParser) -> None:
        """Test AND promotes the left clause as well."""
        query = parser.parse("hello AND world")
        assert isinstance(query, BooleanQuery)
        assert [c.occur for c in query.clauses] == [Occur.MUST, Occur.MUST]

    def test_modifiers(self, parser: QueryParser) -> None:
        """Test + and - prefixes."""
        query = parser.parse("+budget -draft report")
        assert isinstance(query, BooleanQuery)
        assert [c.occur for c in query.clauses] == [Occur.MUST, Occur.MUST_NOT, Occur.SHOULD]

    def test_not_operator(self, parser: QueryParser) -> None:
        """Test NOT prohibits the following clause."""
        query = parser.parse("hello NOT world")
        assert isinstance(query, BooleanQuery)
        assert query.clauses[1] == BooleanClause(Occur.MUST_NOT, TermQuery("content", "world"))

    def test_phrase_and_prefix(self, parser: QueryParser) -> None:
        """Test quoted phrases and trailing wildcards."""
        query = parser.parse('"quarterly  report" budg*')
        assert isinstance(query, BooleanQuery)
        assert query.clauses[0].query == PhraseQuery("content", "quarterly report")
        assert query.clauses[1].query == TermQuery("content", "budg", prefix=True)

    def test_field_restriction(self, parser: QueryParser) -> None:
        """Test field:term and field:(group)."""
        assert parser.parse("title:report") == TermQuery("title", "report")
        query = parser.parse("from:(alice bob)")
        assert isinstance(query, BooleanQuery)
        assert {c.query.field for c in query.clauses} == {"from"}  # type: ignore[union-attr]

    def test_grouping(self, parser: QueryParser) -> None:
        """Test parenthesised groups nest."""
        query = parser.parse("a AND (b OR c)")
        assert isinstance(query, BooleanQuery)
        assert isinstance(query.clauses[1].query, BooleanQuery)

    def test_field_outside_layout(self) -> None:
        """Test fields missing from the minimal layout are rejected."""
        with pytest.raises(QuerySyntaxError) as exc_info:
            QueryParser(FieldLayout.MINIMAL).parse("creator:ada")
        assert "creator" in exc_info.value.reason

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "   ",
            '"unclosed',
            "(a b",
            "a b)",
            "AND a",
            "a OR",
            "-only",
            "NOT a",
            "***",
            "unknown:x",
        ],
    )
    def test_invalid_queries(self, parser: QueryParser, text: str) -> None:
        """Test malformed or unmatchable queries raise QuerySyntaxError."""
        with pytest.raises(QuerySyntaxError):
            parser.parse(text)


class TestFts5Compiler:
    """Tests for to_fts5."""

    def test_term(self) -> None:
        """Test a term becomes a column filter with a quoted string."""
        assert to_fts5(TermQuery("content", "hello")) == 'content : "hello"'

    def test_prefix(self) -> None:
        """Test prefix terms get the FTS5 star."""
        assert to_fts5(TermQuery("title", "rep", prefix=True)) == 'title : "rep" *'

    def test_quotes_are_escaped(self) -> None:
        """Test embedded quotes are doubled."""
        assert to_fts5(PhraseQuery("content", 'say "hi"')) == 'content : "say ""hi"""'

    def test_boolean(self, parser: QueryParser) -> None:
        """Test OR, AND and NOT composition."""
        assert to_fts5(parser.parse("a b")) == '(content : "a" OR content : "b")'
        assert to_fts5(parser.parse("a AND b -c")) == (
            '(content : "a" AND content : "b") NOT (content : "c")'
        )

    def test_should_dropped_next_to_must(self, parser: QueryParser) -> None:
        """Test optional clauses are dropped when required ones exist."""
        assert to_fts5(parser.parse("+a b")) == '(content : "a")'

    def test_boost_uses_positive_default_field_terms(self, parser: QueryParser) -> None:
        """Test the bonus expression keeps positive body terms and targets the given columns."""
        query = parser.parse('a title:b -c "d e" rep*')
        assert to_fts5_boost(query, "content", ("title", "format")) == (
            '{title format} : "a" OR {title format} : "d e" OR {title format} : "rep" *'
        )

    def test_boost_without_default_field_terms(self, parser: QueryParser) -> None:
        """Test queries naming only other fields earn no bonus."""
        assert to_fts5_boost(parser.parse("title:b"), "content", ("title",)) is None
        assert to_fts5_boost(parser.parse("a"), "content", ()) is None


class TestMeilisearchCompiler:
    """Tests for to_meilisearch."""

    def test_body_only(self, parser: QueryParser) -> None:
        """Test body-only queries search all attributes."""
        assert to_meilisearch(parser.parse('hello "big world"')) == ('hello "big world"', None)

    def test_negation_and_fields(self, parser: QueryParser) -> None:
        """Test prohibited terms and field restrictions."""
        q, attributes = to_meilisearch(parser.parse("title:report -draft"))
        assert q == "report -draft"
        assert attributes == ["title"]


class TestOptions:
    """Tests for analyzer and scoring options."""

    def test_analyzer_tokenizers(self) -> None:
        """Test each analyzer maps to an FTS5 tokenizer."""
        assert Analyzer.STANDARD.fts5_tokenizer.startswith("unicode61")
        assert Analyzer.ENGLISH.fts5_tokenizer.startswith("porter")
        assert Analyzer.ASCII.fts5_tokenizer == "ascii"

    def test_bm25_weights_are_uniform(self) -> None:
        """Test BM25 weighs every field the same."""
        assert ScoringModel.BM25.weights(("content", "title", "from")) == [1.0, 1.0, 1.0]

    def test_weighted_boosts_title(self) -> None:
        """Test the weighted model boosts title over metadata over body."""
        assert ScoringModel.WEIGHTED.weights(("content", "title", "from")) == [1.0, 5.0, 2.0]

    def test_boost_groups(self) -> None:
        """Test the weighted model groups metadata fields by bonus and BM25 has none."""
        fields = ("title", "from", "format")
        assert ScoringModel.WEIGHTED.boosts(fields) == [(("title",), 5.0), (("from", "format"), 2.0)]
        assert ScoringModel.BM25.boosts(fields) == []

    def test_ranking_rules(self) -> None:
        """Test the weighted model ranks by attribute first."""
        assert ScoringModel.WEIGHTED.ranking_rules[0] == "attribute"
        assert ScoringModel.BM25.ranking_rules[0] == "words"
