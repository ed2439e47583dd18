"""Custom exceptions for Folder Search.

Stage-local failures never cross stage boundaries; these exceptions are
raised at the seams between the session, the index store and collaborators,
and translated into status text or HTTP responses at the edges.
"""

from typing import Any


class FolderSearchError(Exception):
    """Base exception for all Folder Search errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        result: dict[str, Any] = {
            "error": self.__class__.__name__,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(FolderSearchError):
    """Error in index or application configuration."""

    pass


class ConfigResolutionError(ConfigurationError):
    """A configuration property could not be resolved to a known option."""

    def __init__(self, prop: str, value: str | None, cause: Exception | None = None) -> None:
        if value is None:
            message = f"Missing value for '{prop}'"
        else:
            message = f"Invalid value '{value}' for '{prop}'"
        super().__init__(
            message=message,
            details={"property": prop, "value": value},
            cause=cause,
        )
        self.prop = prop
        self.value = value


class UnknownPropertyError(ConfigurationError):
    """Property name is not part of the index configuration."""

    def __init__(self, prop: str, known: list[str]) -> None:
        super().__init__(
            message=f"Unknown property '{prop}'",
            details={"property": prop, "known_properties": known},
        )


class NotConfiguredError(ConfigurationError):
    """Operation rejected because the session has no resolved configuration."""

    def __init__(self, operation: str, config_name: str) -> None:
        super().__init__(
            message=f"Cannot {operation}: configuration '{config_name}' is not resolved",
            details={"operation": operation, "config_name": config_name},
        )


class SessionClosedError(ConfigurationError):
    """Operation attempted on a closed session."""

    def __init__(self, operation: str) -> None:
        super().__init__(
            message=f"Cannot {operation}: session is closed",
            details={"operation": operation},
        )


# =============================================================================
# Search Errors
# =============================================================================


class SearchError(FolderSearchError):
    """Base class for search-related errors."""

    pass


class IndexStoreError(SearchError):
    """Error reading from or writing to the index store."""

    def __init__(self, store: str, operation: str, cause: Exception | None = None) -> None:
        super().__init__(
            message=f"Index operation '{operation}' failed on '{store}'",
            details={"store": store, "operation": operation},
            cause=cause,
        )


class QuerySyntaxError(SearchError):
    """Query string could not be parsed."""

    def __init__(self, query: str, reason: str, position: int | None = None) -> None:
        super().__init__(
            message=reason,
            details={"query": query, "position": position},
        )
        self.reason = reason


# =============================================================================
# Indexing Errors
# =============================================================================


class IndexingError(FolderSearchError):
    """Base class for indexing-related errors."""

    pass


class ExtractionError(IndexingError):
    """Content extraction failed for a single file."""

    def __init__(self, file_path: str, reason: str, cause: Exception | None = None) -> None:
        super().__init__(
            message=f"Failed to extract {file_path}: {reason}",
            details={"file_path": file_path, "reason": reason},
            cause=cause,
        )


class UnsupportedAlgorithmError(IndexingError):
    """Hash algorithm is not available in this interpreter."""

    def __init__(self, algorithm: str, cause: Exception | None = None) -> None:
        super().__init__(
            message=f"Hash algorithm '{algorithm}' is not supported",
            details={"algorithm": algorithm},
            cause=cause,
        )


class ProtocolViolationError(IndexingError):
    """A stage received a docket status it does not handle."""

    def __init__(self, stage: str, status: str, rel_path: str) -> None:
        super().__init__(
            message=f"Stage '{stage}' received unexpected status {status} for {rel_path}",
            details={"stage": stage, "status": status, "rel_path": rel_path},
        )
