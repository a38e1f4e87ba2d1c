"""
Search pipeline: normalizer, filter compiler, query executor, facet aggregator.
"""
from storefront_search.search.compiler import CompiledFilter, compile_filters
from storefront_search.search.engine import ProductSearchEngine
from storefront_search.search.errors import QueryError, SearchError, ValidationError
from storefront_search.search.executor import execute_page
from storefront_search.search.facets import ALL_FACETS, FacetAggregator
from storefront_search.search.labels import ActiveFilter, LabelContext, describe_active_filters
from storefront_search.search.normalizer import normalize_search_params
from storefront_search.search.params import ProductSearchParams, SpecificationFilter
from storefront_search.search.resolver import resolve_references
from storefront_search.search.schemas import ProductSearchResult, SearchFacets

__all__ = [
    "ALL_FACETS",
    "ActiveFilter",
    "CompiledFilter",
    "FacetAggregator",
    "LabelContext",
    "ProductSearchEngine",
    "ProductSearchParams",
    "ProductSearchResult",
    "QueryError",
    "SearchError",
    "SearchFacets",
    "SpecificationFilter",
    "ValidationError",
    "compile_filters",
    "describe_active_filters",
    "execute_page",
    "normalize_search_params",
    "resolve_references",
]
