"""Text analysis options, scoring models and the query parser.

The analyzer and scoring model are closed option sets: each member carries
the settings its index store needs (an FTS5 tokenizer string, per-column
BM25 weights, Meilisearch ranking rules). Ranking itself is left to the
store.

Query syntax is the classic full-text one::

    hello world              either term (default operator OR)
    "hello world"            phrase
    hel*                     prefix
    title:report             field restriction
    +must -mustnot           required / prohibited
    a AND (b OR c) NOT d     boolean operators and grouping
"""

from dataclasses import dataclass
from enum import Enum
from typing import TypeAlias

from folder_search.core.exceptions import QuerySyntaxError
from folder_search.search.schemas import CONTENT, TITLE, FieldLayout


class Analyzer(str, Enum):
    """Tokenization strategy selectable by the ``text.analyzer`` property."""

    STANDARD = "Standard"
    ENGLISH = "English"
    ASCII = "ASCII"

    @property
    def fts5_tokenizer(self) -> str:
        return _TOKENIZERS[self]


_TOKENIZERS = {
    Analyzer.STANDARD: "unicode61 remove_diacritics 2",
    Analyzer.ENGLISH: "porter unicode61 remove_diacritics 2",
    Analyzer.ASCII: "ascii",
}


class ScoringModel(str, Enum):
    """Relevance model selectable by the ``scoring.model`` property.

    ``BM25`` weighs every field equally; ``Weighted`` boosts titles and
    metadata over body text.
    """

    BM25 = "BM25"
    WEIGHTED = "Weighted"

    def weight(self, field_name: str) -> float:
        if self is ScoringModel.BM25:
            return 1.0
        if field_name == TITLE:
            return 5.0
        if field_name == CONTENT:
            return 1.0
        return 2.0

    def weights(self, fields: tuple[str, ...]) -> list[float]:
        return [self.weight(name) for name in fields]

    def boosts(self, fields: tuple[str, ...]) -> list[tuple[tuple[str, ...], float]]:
        """Group metadata fields by the bonus a query term found in them adds.

        Default-field queries match body text only, so column weights alone
        cannot reorder their hits. The weighted model adds each group's bonus
        once per document whose fields in that group also contain a query term.

        Returns:
            ``(fields, bonus)`` pairs, highest bonus first; empty for BM25.
        """
        if self is ScoringModel.BM25:
            return []
        groups: dict[float, list[str]] = {}
        for name in fields:
            if name != CONTENT:
                groups.setdefault(self.weight(name), []).append(name)
        return [(tuple(names), bonus) for bonus, names in sorted(groups.items(), reverse=True)]

    @property
    def ranking_rules(self) -> list[str]:
        if self is ScoringModel.WEIGHTED:
            return ["attribute", "words", "typo", "proximity", "sort", "exactness"]
        return ["words", "typo", "proximity", "attribute", "sort", "exactness"]


# =============================================================================
# Parsed query model
# =============================================================================


class Occur(str, Enum):
    """How a clause takes part in a boolean query."""

    MUST = "MUST"
    SHOULD = "SHOULD"
    MUST_NOT = "MUST_NOT"


@dataclass(frozen=True)
class TermQuery:
    field: str
    text: str
    prefix: bool = False


@dataclass(frozen=True)
class PhraseQuery:
    field: str
    text: str


@dataclass(frozen=True)
class BooleanClause:
    occur: Occur
    query: "Query"


@dataclass(frozen=True)
class BooleanQuery:
    clauses: tuple[BooleanClause, ...]


Query: TypeAlias = TermQuery | PhraseQuery | BooleanQuery


# =============================================================================
# Tokenizer
# =============================================================================

_LPAREN, _RPAREN, _PLUS, _MINUS = "(", ")", "+", "-"
_AND, _OR, _NOT = "AND", "OR", "NOT"
_OPERATORS = {"AND": _AND, "&&": _AND, "OR": _OR, "||": _OR, "NOT": _NOT, "!": _NOT}


@dataclass(frozen=True)
class _Token:
    kind: str  # "op", "word", "phrase", "field"
    value: str
    pos: int


def _tokenize(text: str) -> list[_Token]:
    tokens: list[_Token] = []
    i, n = 0, len(text)
    while i < n:
        ch = text[i]
        if ch.isspace():
            i += 1
        elif ch in "()":
            tokens.append(_Token("op", ch, i))
            i += 1
        elif ch in "+-" and i + 1 < n and not text[i + 1].isspace():
            tokens.append(_Token("op", ch, i))
            i += 1
        elif ch == '"':
            end = text.find('"', i + 1)
            if end < 0:
                raise QuerySyntaxError(text, "Unbalanced quotes", i)
            tokens.append(_Token("phrase", text[i + 1 : end], i))
            i = end + 1
        else:
            start = i
            while i < n and not text[i].isspace() and text[i] not in '()"':
                i += 1
            word = text[start:i]
            name, sep, rest = word.partition(":")
            if sep and name and name.replace("_", "").isalnum():
                tokens.append(_Token("field", name, start))
                if rest:
                    tokens.append(_Token("word", rest, start + len(name) + 1))
            elif word in _OPERATORS:
                tokens.append(_Token("op", _OPERATORS[word], start))
            else:
                tokens.append(_Token("word", word, start))
    return tokens


# =============================================================================
# Parser
# =============================================================================


class QueryParser:
    """Parses query strings against a field layout.

    Example:
        >>> parser = QueryParser(FieldLayout.STANDARD)
        >>> parser.parse('title:report +"budget 2024"')
    """

    def __init__(self, layout: FieldLayout, default_field: str = CONTENT) -> None:
        self.layout = layout
        self.default_field = default_field
        self.fields = set(layout.searchable_fields)

    def parse(self, text: str) -> Query:
        """Parse a query string.

        Raises:
            QuerySyntaxError: On malformed input, unknown fields or a query
                that cannot match anything.
        """
        self._text = text
        self._tokens = _tokenize(text)
        self._pos = 0
        if not self._tokens:
            raise QuerySyntaxError(text, "Empty query")
        query = self._parse_group(self.default_field)
        if self._pos < len(self._tokens):
            token = self._tokens[self._pos]
            raise QuerySyntaxError(text, f"Unexpected '{token.value}'", token.pos)
        if query is None:
            raise QuerySyntaxError(text, "Query contains no searchable terms")
        return query

    def _peek(self) -> _Token | None:
        if self._pos < len(self._tokens):
            return self._tokens[self._pos]
        return None

    def _next(self) -> _Token:
        token = self._peek()
        if token is None:
            raise QuerySyntaxError(self._text, "Unexpected end of query", len(self._text))
        self._pos += 1
        return token

    def _parse_group(self, field_name: str) -> Query | None:
        clauses: list[BooleanClause] = []
        start = self._peek()
        while True:
            token = self._peek()
            if token is None or (token.kind == "op" and token.value == _RPAREN):
                break

            conj = None
            if token.kind == "op" and token.value in (_AND, _OR):
                if not clauses:
                    raise QuerySyntaxError(self._text, f"Dangling '{token.value}'", token.pos)
                conj = self._next().value
                token = self._peek()
                if token is None:
                    raise QuerySyntaxError(self._text, f"Dangling '{conj}'", len(self._text))

            modifier = None
            if token.kind == "op" and token.value in (_PLUS, _MINUS, _NOT):
                modifier = self._next().value

            query = self._parse_clause(field_name)

            if conj == _AND and clauses and clauses[-1].occur is Occur.SHOULD:
                clauses[-1] = BooleanClause(Occur.MUST, clauses[-1].query)
            prohibited = modifier in (_MINUS, _NOT)
            required = modifier == _PLUS or (conj == _AND and not prohibited)
            if query is None:
                continue
            if prohibited:
                occur = Occur.MUST_NOT
            elif required:
                occur = Occur.MUST
            else:
                occur = Occur.SHOULD
            clauses.append(BooleanClause(occur, query))

        if not clauses:
            return None
        if all(c.occur is Occur.MUST_NOT for c in clauses):
            pos = start.pos if start is not None else None
            raise QuerySyntaxError(self._text, "Query must contain a positive clause", pos)
        if len(clauses) == 1:
            return clauses[0].query
        return BooleanQuery(tuple(clauses))

    def _parse_clause(self, field_name: str) -> Query | None:
        token = self._next()
        if token.kind == "field":
            if token.value not in self.fields:
                raise QuerySyntaxError(self._text, f"Unknown field '{token.value}'", token.pos)
            field_name = token.value
            token = self._next()

        if token.kind == "op" and token.value == _LPAREN:
            query = self._parse_group(field_name)
            closing = self._next()
            if closing.kind != "op" or closing.value != _RPAREN:
                raise QuerySyntaxError(self._text, "Unbalanced parentheses", token.pos)
            return query
        if token.kind == "phrase":
            text = " ".join(token.value.split())
            return PhraseQuery(field_name, text) if _searchable(text) else None
        if token.kind == "word":
            prefix = token.value.endswith("*")
            text = token.value.rstrip("*")
            return TermQuery(field_name, text, prefix) if _searchable(text) else None
        raise QuerySyntaxError(self._text, f"Unexpected '{token.value}'", token.pos)


def _searchable(text: str) -> bool:
    return any(ch.isalnum() for ch in text)


# =============================================================================
# Backend compilers
# =============================================================================


def _fts5_string(text: str) -> str:
    return '"' + text.replace('"', '""') + '"'


def to_fts5(query: Query) -> str:
    """Compile a parsed query to an SQLite FTS5 MATCH expression.

    FTS5 has no optional clauses, so ``SHOULD`` clauses next to ``MUST``
    clauses are dropped.
    """
    if isinstance(query, TermQuery):
        expr = f"{query.field} : {_fts5_string(query.text)}"
        return expr + " *" if query.prefix else expr
    if isinstance(query, PhraseQuery):
        return f"{query.field} : {_fts5_string(query.text)}"

    musts = [to_fts5(c.query) for c in query.clauses if c.occur is Occur.MUST]
    shoulds = [to_fts5(c.query) for c in query.clauses if c.occur is Occur.SHOULD]
    nots = [to_fts5(c.query) for c in query.clauses if c.occur is Occur.MUST_NOT]
    expr = "(" + (" AND ".join(musts) if musts else " OR ".join(shoulds)) + ")"
    for negative in nots:
        expr = f"{expr} NOT ({negative})"
    return expr


def _positive_leaves(query: Query) -> list[TermQuery | PhraseQuery]:
    if not isinstance(query, BooleanQuery):
        return [query]
    leaves: list[TermQuery | PhraseQuery] = []
    for clause in query.clauses:
        if clause.occur is not Occur.MUST_NOT:
            leaves.extend(_positive_leaves(clause.query))
    return leaves


def to_fts5_boost(query: Query, default_field: str, columns: tuple[str, ...]) -> str | None:
    """Compile the positive default-field terms of a query into a match on other columns.

    The result matches documents where any of those terms occurs in one of
    ``columns``. It is used to score hits, never to select them.

    Returns:
        An FTS5 MATCH expression, or None when the query has no such terms.
    """
    spec = "{" + " ".join(columns) + "}"
    parts = []
    for leaf in _positive_leaves(query):
        if leaf.field != default_field:
            continue
        part = f"{spec} : {_fts5_string(leaf.text)}"
        if isinstance(leaf, TermQuery) and leaf.prefix:
            part += " *"
        parts.append(part)
    if not parts or not columns:
        return None
    return " OR ".join(parts)


def to_meilisearch(query: Query) -> tuple[str, list[str] | None]:
    """Compile a parsed query to a Meilisearch ``q`` string.

    Meilisearch has no boolean operators: positive terms and phrases are
    concatenated, prohibited ones become ``-term`` and field restrictions
    become ``attributesToSearchOn``.

    Returns:
        The query string and the attributes to search on (None for all).
    """
    parts: list[str] = []
    fields: set[str] = set()

    def visit(q: Query, negated: bool) -> None:
        if isinstance(q, BooleanQuery):
            for clause in q.clauses:
                visit(clause.query, negated or clause.occur is Occur.MUST_NOT)
            return
        text = f'"{q.text}"' if isinstance(q, PhraseQuery) else q.text
        if negated:
            parts.append(f"-{text}")
        else:
            parts.append(text)
            fields.add(q.field)

    visit(query, False)
    attributes = None if fields <= {CONTENT} else sorted(fields)
    return " ".join(parts), attributes
