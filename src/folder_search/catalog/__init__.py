"""Catalog of named index configurations and the index session."""

from folder_search.catalog.index_config import (
    INDEX_INVALIDATED,
    INDEX_NEVER_CREATED,
    INDEX_UPDATE_FAILED,
    IndexConfig,
    ResolvedConfig,
    Validity,
    delete_config,
    list_configs,
)
from folder_search.catalog.session import IndexSession, IndexStatus, SessionState

__all__ = [
    "INDEX_INVALIDATED",
    "INDEX_NEVER_CREATED",
    "INDEX_UPDATE_FAILED",
    "IndexConfig",
    "IndexSession",
    "IndexStatus",
    "ResolvedConfig",
    "SessionState",
    "Validity",
    "delete_config",
    "list_configs",
]
