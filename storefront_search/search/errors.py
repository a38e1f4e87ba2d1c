"""
Error taxonomy for product search.

ValidationError carries the offending query field so callers can render the
message next to the matching filter control. QueryError wraps storage
failures; the original backend exception is chained as ``__cause__``.
"""
from typing import Any, Dict, Optional


class SearchError(Exception):
    """Base class for every error raised by the search engine."""


class ValidationError(SearchError):
    """Raised when search parameters are malformed or contradictory."""

    def __init__(self, field: str, message: str, value: Optional[Any] = None):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message
        self.value = value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": "validation_error",
            "field": self.field,
            "message": self.message,
        }


class QueryError(SearchError):
    """Raised when the storage backend fails (connection loss, timeout, bad SQL)."""

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.operation = operation

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": "query_error",
            "message": self.message,
        }
