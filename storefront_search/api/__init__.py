"""
HTTP API for storefront-search.
"""
from storefront_search.api.models import (
    ActiveFilterResponse,
    ActiveFiltersResponse,
    ErrorResponse,
    HealthResponse,
    InvalidateRequest,
    InvalidateResponse,
)

__all__ = [
    "ActiveFilterResponse",
    "ActiveFiltersResponse",
    "ErrorResponse",
    "HealthResponse",
    "InvalidateRequest",
    "InvalidateResponse",
]
