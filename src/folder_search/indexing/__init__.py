"""Indexing module for the incremental build pipeline.

Provides dockets, content hashing, extraction and the three build stages.
"""

from folder_search.indexing.docket import (
    END_OF_STREAM,
    Docket,
    DocketStatus,
    EndOfStream,
    QueueItem,
)
from folder_search.indexing.hasher import ContentHasher, HashAlgorithm
from folder_search.indexing.stage import Stage, StageProgress

__all__ = [
    # Docket
    "END_OF_STREAM",
    "Docket",
    "DocketStatus",
    "EndOfStream",
    "QueueItem",
    # Hasher
    "ContentHasher",
    "HashAlgorithm",
    # Stage
    "Stage",
    "StageProgress",
]
