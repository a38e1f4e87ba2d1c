"""
Pydantic models for the search API's non-search endpoints.

The search endpoint itself returns storefront_search.search.schemas.ProductSearchResult.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from storefront_search.search.schemas import CamelModel


class ErrorResponse(BaseModel):
    """Body of 422 / 503 responses."""
    error: str = Field(description="'validation_error' or 'query_error'")
    message: str
    field: Optional[str] = Field(default=None, description="Offending query parameter (validation errors only)")


class ActiveFilterResponse(CamelModel):
    """One removable filter chip."""
    type: str = Field(description="search, category, subCategory, brand, price, stockStatus or spec")
    display_name: str
    display_value: str
    original_value: Any


class ActiveFiltersResponse(CamelModel):
    filters: List[ActiveFilterResponse] = Field(default_factory=list)


class InvalidateRequest(BaseModel):
    """Request model for explicit cache invalidation after admin writes."""
    scope: str = Field(default="all", description="products, brands, categories, collections, specifications or all")


class InvalidateResponse(BaseModel):
    scope: str
    deleted: int = Field(description="Number of cached result pages removed")
    cache_enabled: bool = True


class HealthResponse(BaseModel):
    """Response model for health check."""
    service: str
    database: str
    cache: str
    version: str
    details: Dict[str, Any] = Field(default_factory=dict)
