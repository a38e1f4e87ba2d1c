"""
Pydantic v2 response models for product search.

Fields are snake_case in Python and camelCase on the wire
(``totalCount``, ``mainImage``), matching the storefront's query-state names.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from storefront_search.data.models import CollectionType, StockStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


#
# Product projection
#

class CategoryRef(CamelModel):
    id: str
    name: str
    slug: str
    parent_name: Optional[str] = None


class BrandRef(CamelModel):
    id: str
    name: str
    slug: str


class CollectionRef(CamelModel):
    id: str
    name: str
    slug: str
    collection_type: CollectionType


class MinimalProductData(CamelModel):
    """
    Read-optimized product card. Never carries descriptions, specification
    rows or reviews; the product page fetches those separately.
    """
    id: str
    slug: str
    name: str
    price: float = Field(..., ge=0)
    original_price: Optional[float] = None
    main_image: str
    category: CategoryRef
    brand: Optional[BrandRef] = None
    stock_status: StockStatus
    featured: bool = False
    has_variants: bool = False
    created_at: datetime
    collections: List[CollectionRef] = Field(default_factory=list)


#
# Facets
#

class FacetValue(CamelModel):
    """One selectable filter option with the number of products it would yield."""
    value: str = Field(..., description="Id for relational facets, raw value for enum/spec facets")
    name: str
    slug: Optional[str] = None
    count: int = Field(..., ge=0)


class CategoryFacet(FacetValue):
    sub_categories: List[FacetValue] = Field(default_factory=list)


class SpecificationFacet(CamelModel):
    key: str
    name: str
    values: List[FacetValue]


class PriceRangeFacet(CamelModel):
    min: float = 0
    max: float = 0


class SearchFacets(CamelModel):
    price_range: Optional[PriceRangeFacet] = None
    brands: Optional[List[FacetValue]] = None
    categories: Optional[List[CategoryFacet]] = None
    sub_categories: Optional[List[FacetValue]] = None
    collections: Optional[List[FacetValue]] = None
    stock_statuses: Optional[List[FacetValue]] = None
    specifications: Optional[List[SpecificationFacet]] = None


#
# Result envelope
#

class ProductSearchResult(CamelModel):
    products: List[MinimalProductData]
    total_count: int = Field(..., ge=0, description="Matches ignoring pagination")
    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)
    total_pages: int = Field(..., ge=0)
    has_next_page: bool
    has_previous_page: bool
    facets: Optional[SearchFacets] = None
