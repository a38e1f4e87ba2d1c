"""
Filter clauses: the tagged variant the Filter Compiler folds into one
conjunctive predicate.

Every clause knows the facet dimension it belongs to. Facet aggregation
drops the clauses of its own dimension so counts show what the user would
get by broadening that one filter.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple, Union

from sqlalchemy import and_, false, func, or_, true
from sqlalchemy.sql.elements import ColumnElement

from storefront_search.data.models import (
    Product,
    ProductCollection,
    ProductSpecificationValue,
    SpecificationDefinition,
    StockStatus,
)

# Facet dimensions
SEARCH = "search"
CATEGORY = "category"
SUB_CATEGORY = "subCategory"
BRAND = "brand"
COLLECTION = "collection"
PRICE = "price"
STOCK_STATUS = "stockStatus"
ACTIVE = "active"
SPEC_PREFIX = "spec:"


def spec_dimension(key: str) -> str:
    return f"{SPEC_PREFIX}{key}"


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass(frozen=True)
class TextMatch:
    """Case-insensitive substring match on name, slug and descriptions."""
    term: str
    dimension: str = SEARCH

    def to_expression(self) -> ColumnElement:
        pattern = f"%{_escape_like(self.term.strip())}%"
        return or_(
            Product.name.ilike(pattern, escape="\\"),
            Product.slug.ilike(pattern, escape="\\"),
            Product.short_description.ilike(pattern, escape="\\"),
            Product.description.ilike(pattern, escape="\\"),
        )


@dataclass(frozen=True)
class PriceRange:
    """Inclusive bounds; either side may be open."""
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    dimension: str = PRICE

    def to_expression(self) -> ColumnElement:
        bounds = []
        if self.minimum is not None:
            bounds.append(Product.price >= self.minimum)
        if self.maximum is not None:
            bounds.append(Product.price <= self.maximum)
        return and_(true(), *bounds)


@dataclass(frozen=True)
class EnumMembership:
    values: Tuple[StockStatus, ...]
    dimension: str = STOCK_STATUS

    def to_expression(self) -> ColumnElement:
        return Product.stock_status.in_(self.values)


@dataclass(frozen=True)
class SetMembership:
    """Foreign-key membership on a product column (category_id, brand_id)."""
    column: str
    ids: Tuple[str, ...]
    dimension: str

    def to_expression(self) -> ColumnElement:
        return getattr(Product, self.column).in_(self.ids)


@dataclass(frozen=True)
class CollectionMembership:
    """Product belongs to at least one of the collections."""
    ids: Tuple[str, ...]
    dimension: str = COLLECTION

    def to_expression(self) -> ColumnElement:
        return Product.collections.any(ProductCollection.collection_id.in_(self.ids))


@dataclass(frozen=True)
class SpecificationMatch:
    """
    Product has a specification row with definition ``key`` whose value is
    one of ``values`` (case-insensitive). Values OR together; separate
    SpecificationMatch clauses AND together.
    """
    key: str
    values: Tuple[str, ...]

    @property
    def dimension(self) -> str:
        return spec_dimension(self.key)

    def to_expression(self) -> ColumnElement:
        lowered = [value.lower() for value in self.values]
        return Product.specifications.any(
            and_(
                ProductSpecificationValue.specification_def.has(SpecificationDefinition.key == self.key),
                func.lower(ProductSpecificationValue.value).in_(lowered),
            )
        )


@dataclass(frozen=True)
class ActiveOnly:
    dimension: str = ACTIVE

    def to_expression(self) -> ColumnElement:
        return Product.is_active.is_(True)


@dataclass(frozen=True)
class MatchNothing:
    """A requested filter resolved to nothing: no product can match it."""
    dimension: str

    def to_expression(self) -> ColumnElement:
        return false()


FilterClause = Union[
    TextMatch,
    PriceRange,
    EnumMembership,
    SetMembership,
    CollectionMembership,
    SpecificationMatch,
    ActiveOnly,
    MatchNothing,
]
