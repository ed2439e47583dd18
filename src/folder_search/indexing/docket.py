"""Units of work flowing through the build pipeline."""

from dataclasses import dataclass
from enum import Enum
from typing import TypeAlias


class DocketStatus(str, Enum):
    """Classification of a file within one build."""

    SELECTED = "SELECTED"  # changed, needs extraction
    PARSED = "PARSED"  # extraction completed
    PASS = "PASS"  # leave the index entry untouched
    DELETE = "DELETE"  # file vanished, remove from index


@dataclass(frozen=True)
class Docket:
    """One file's classification and content for one build run.

    Attributes:
        rel_path: POSIX path relative to the indexed root. Unique per run.
        hash_sum: Hex content digest, empty for ``DELETE`` dockets.
        status: Current classification.
        content: Extracted body text, only for ``PARSED``.
        metadata: Field name to ordered values, only for ``PARSED``.
    """

    rel_path: str
    hash_sum: str
    status: DocketStatus
    content: str | None = None
    metadata: dict[str, list[str]] | None = None

    def __repr__(self) -> str:
        return f"Docket({self.status.value} {self.rel_path!r})"


@dataclass(frozen=True)
class EndOfStream:
    """Marks the end of the docket stream on a pipeline queue."""

    def __repr__(self) -> str:
        return "EndOfStream()"


END_OF_STREAM = EndOfStream()

QueueItem: TypeAlias = Docket | EndOfStream
