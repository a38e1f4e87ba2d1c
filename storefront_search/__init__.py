"""
storefront-search - Product Search & Filter Engine

Turns storefront URL query state into a paginated, filtered, sorted product
page with per-facet option counts:
- Query normalization and validation
- Composable filter clauses with same-facet OR / cross-facet AND
- Facet counts that ignore their own dimension
"""

from storefront_search.core.config import SearchConfig, get_config, set_config
from storefront_search.search.engine import ProductSearchEngine

__all__ = [
    'ProductSearchEngine',
    'SearchConfig',
    'get_config',
    'set_config',
]

__version__ = '0.1.0'
