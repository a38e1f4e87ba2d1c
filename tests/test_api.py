"""
Integration tests for the search HTTP API.

Tests verify:
- camelCase response envelope for /products/search
- 422 validation_error bodies carry the offending field
- 503 query_error when the storage backend fails
- Cache hits skip the engine; invalidation endpoint
- Health and metrics endpoints
"""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from storefront_search.api.server import (
    app,
    get_db_session_factory,
    get_search_cache,
    get_search_engine,
)
from storefront_search.data.database import create_db_engine, create_session_factory
from storefront_search.metrics import metrics_collector
from storefront_search.search.engine import ProductSearchEngine

client = TestClient(app)


@pytest.fixture
def search_engine(catalog, config):
    return ProductSearchEngine(catalog, config)


@pytest.fixture(autouse=True)
def overrides(search_engine, catalog):
    """Point the app at the seeded test catalog with caching disabled."""
    app.dependency_overrides[get_search_engine] = lambda: search_engine
    app.dependency_overrides[get_search_cache] = lambda: None
    app.dependency_overrides[get_db_session_factory] = lambda: catalog
    metrics_collector.reset()
    yield
    app.dependency_overrides.clear()


class TestSearchEndpoint:

    def test_envelope_is_camel_case(self):
        response = client.get("/products/search")
        assert response.status_code == 200
        data = response.json()
        assert data["totalCount"] == 30
        assert data["totalPages"] == 2
        assert data["hasNextPage"] is True
        assert data["hasPreviousPage"] is False
        assert len(data["products"]) == 24
        product = data["products"][0]
        assert {"id", "slug", "name", "price", "mainImage", "stockStatus", "createdAt", "category"} <= set(product)
        assert "description" not in product
        assert data["facets"] is None

    def test_filters_and_spec_params(self):
        response = client.get("/products/search", params={"category": "laptops", "ram": "8GB,16GB", "color": "black"})
        assert response.status_code == 200
        assert response.json()["totalCount"] == 4

    def test_repeated_query_keys(self):
        response = client.get("/products/search?brands=apple&brands=dell")
        assert response.json()["totalCount"] == 20

    def test_facets_param_is_not_a_specification(self):
        response = client.get("/products/search", params={"facets": "brands,stockStatuses"})
        data = response.json()
        assert data["totalCount"] == 30
        assert [b["name"] for b in data["facets"]["brands"]] == ["Apple", "Dell", "Samsung"]
        assert data["facets"]["stockStatuses"][0] == {
            "value": "IN_STOCK", "name": "In Stock", "slug": None, "count": 24,
        }

    def test_all_facets(self):
        data = client.get("/products/search", params={"category": "electronics", "facets": "all"}).json()
        assert data["facets"]["priceRange"] == {"min": 100.0, "max": 330.0}
        assert [c["name"] for c in data["facets"]["subCategories"]] == ["Laptops", "Phones"]
        assert data["facets"]["categories"][0]["subCategories"]

    @pytest.mark.parametrize("query,field", [
        ({"minPrice": "abc"}, "minPrice"),
        ({"minPrice": "50", "maxPrice": "10"}, "minPrice"),
        ({"stockStatus": "SOLD_OUT"}, "stockStatus"),
        ({"page": "0"}, "page"),
        ({"facets": "colour"}, "facets"),
    ])
    def test_validation_errors(self, query, field):
        response = client.get("/products/search", params=query)
        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "validation_error"
        assert body["field"] == field
        assert body["message"]

    def test_storage_failure_is_503(self, config):
        # Database without tables
        broken = create_db_engine("sqlite:///./test_storefront_broken.db")
        try:
            engine = ProductSearchEngine(create_session_factory(broken), config)
            app.dependency_overrides[get_search_engine] = lambda: engine
            response = client.get("/products/search")
        finally:
            broken.dispose()
        assert response.status_code == 503
        assert response.json()["error"] == "query_error"

    def test_metrics_recorded(self):
        client.get("/products/search")
        client.get("/products/search", params={"page": "0"})
        summary = client.get("/metrics").json()
        endpoint = summary["endpoints"]["search_products"]
        assert endpoint["total_requests"] == 2
        assert endpoint["total_errors"] == 1


class TestCaching:

    def test_cache_hit_skips_engine(self, search_engine):
        cache = MagicMock()
        cache.get.return_value = None
        app.dependency_overrides[get_search_cache] = lambda: cache

        first = client.get("/products/search", params={"brands": "apple"})
        assert first.status_code == 200
        cache_key, stored, scopes = cache.set.call_args.args
        assert cache_key.startswith("search:")
        assert "brands" in scopes and "products" in scopes

        cache.get.return_value = stored
        second = client.get("/products/search", params={"brands": "apple"})
        assert second.json() == first.json()
        assert cache.set.call_count == 1
        assert metrics_collector.cache_hits == 1
        assert metrics_collector.cache_misses == 1

    def test_invalidate(self):
        cache = MagicMock()
        cache.invalidate.return_value = 3
        app.dependency_overrides[get_search_cache] = lambda: cache
        response = client.post("/cache/invalidate", json={"scope": "brands"})
        assert response.status_code == 200
        assert response.json() == {"scope": "brands", "deleted": 3, "cache_enabled": True}
        cache.invalidate.assert_called_once_with("brands")

    def test_invalidate_unknown_scope(self):
        cache = MagicMock()
        cache.invalidate.side_effect = ValueError("Unknown cache scope 'reviews'")
        app.dependency_overrides[get_search_cache] = lambda: cache
        response = client.post("/cache/invalidate", json={"scope": "reviews"})
        assert response.status_code == 422
        assert response.json()["field"] == "scope"

    def test_invalidate_without_cache(self):
        response = client.post("/cache/invalidate", json={"scope": "all"})
        assert response.json()["cache_enabled"] is False


class TestActiveFilters:

    def test_chips_use_display_names(self):
        response = client.get("/products/active-filters", params={
            "brands": "apple",
            "subCategories": "phones",
            "minPrice": "150",
            "color": "blue",
        })
        assert response.status_code == 200
        chips = [(f["type"], f["displayValue"]) for f in response.json()["filters"]]
        # Open upper bound comes from the price facet: Apple blue phones are 15 and 21
        assert chips == [
            ("subCategory", "Phones"),
            ("brand", "Apple"),
            ("price", "$150 - $310"),
            ("spec", "Color: Blue"),
        ]

    def test_unmatched_references_keep_their_names(self):
        response = client.get("/products/active-filters", params={"brands": "dell", "category": "kitchen", "search": "zzz"})
        chips = [(f["type"], f["displayName"], f["displayValue"]) for f in response.json()["filters"]]
        assert chips == [
            ("search", "Search", "zzz"),
            ("category", "Category", "Kitchen"),
            ("brand", "Brand", "Dell"),
        ]


class TestHealth:

    def test_health(self):
        data = client.get("/health").json()
        assert data["service"] == "healthy"
        assert data["database"] == "healthy"
        assert data["cache"] == "disabled"
        assert data["version"]
