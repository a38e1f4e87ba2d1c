"""Tests for active filter labels."""

from storefront_search.data.models import StockStatus
from storefront_search.search.labels import (
    LabelContext,
    describe_active_filters,
    format_spec_key,
    format_spec_value,
)
from storefront_search.search.params import ProductSearchParams, SpecificationFilter


class TestFormatting:

    def test_spec_key(self):
        assert format_spec_key("screen_size") == "Screen Size"
        assert format_spec_key("ram") == "Ram"

    def test_spec_value_units(self):
        assert format_spec_value("16gb") == "16GB"
        assert format_spec_value("2tb") == "2TB"
        assert format_spec_value("512 mb") == "512MB"
        assert format_spec_value("144hz") == "144Hz"
        assert format_spec_value("black") == "Black"


class TestDescribeActiveFilters:

    def test_no_filters(self):
        assert describe_active_filters(ProductSearchParams()) == []

    def test_names_come_from_context(self):
        context = LabelContext(
            categories={"cat-phones": "Phones"},
            brands={"apple": "Apple", "brand-dell": "Dell"},
        )
        params = ProductSearchParams(brands=("apple", "brand-dell", "acme"), sub_categories=("cat-phones",))
        labels = describe_active_filters(params, context)
        assert [(f.type, f.display_value) for f in labels] == [
            ("subCategory", "Phones"),
            ("brand", "Apple"),
            ("brand", "Dell"),
            ("brand", "acme"),
        ]
        assert labels[1].display_name == "Brand"
        assert labels[1].original_value == "apple"

    def test_search_and_category(self):
        labels = describe_active_filters(ProductSearchParams(search_query=" tv ", category="electronics"))
        assert [(f.type, f.display_name, f.display_value) for f in labels] == [
            ("search", "Search", "tv"),
            ("category", "Category", "electronics"),
        ]

    def test_price_range(self):
        labels = describe_active_filters(ProductSearchParams(min_price=10, max_price=99.5))
        assert labels[0].display_value == "$10 - $99.50"
        assert labels[0].original_value == {"min": 10, "max": 99.5}

    def test_open_price_range(self):
        labels = describe_active_filters(ProductSearchParams(min_price=25))
        assert labels[0].display_value == "$25 - $∞"

    def test_open_price_range_uses_context_bounds(self):
        context = LabelContext(price_range=(5, 500))
        labels = describe_active_filters(ProductSearchParams(max_price=100), context)
        assert labels[0].display_value == "$5 - $100"

    def test_stock_statuses(self):
        params = ProductSearchParams(stock_status=(StockStatus.IN_STOCK, StockStatus.BACKORDER))
        assert [f.display_value for f in describe_active_filters(params)] == ["In Stock", "Backorder"]

    def test_specifications(self):
        params = ProductSearchParams(specifications=(SpecificationFilter("ram", ("16gb", "32gb")),))
        label = describe_active_filters(params)[0]
        assert label.type == "spec"
        assert label.display_value == "Ram: 16GB, 32GB"
        assert label.original_value == {"key": "ram", "values": ["16gb", "32gb"]}

