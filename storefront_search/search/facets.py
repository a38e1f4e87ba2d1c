"""
Facet aggregation: per-value match counts for each filter dimension.

Each facet is counted against every active clause except the ones of its
own dimension, so "Apple (12)" next to the brand checkbox means twelve
results if the shopper adds Apple to the brands they already ticked.
Every method is read-only and independent of the others, which lets the
engine run them concurrently.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence, Tuple, TypeVar

from sqlalchemy import distinct, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront_search.data.models import (
    Brand,
    Category,
    Collection,
    CollectionType,
    Product,
    ProductCollection,
    ProductSpecificationValue,
    SpecificationDefinition,
    StockStatus,
)
from storefront_search.search.clauses import (
    BRAND,
    CATEGORY,
    COLLECTION,
    PRICE,
    STOCK_STATUS,
    SUB_CATEGORY,
    spec_dimension,
)
from storefront_search.search.compiler import CompiledFilter
from storefront_search.search.errors import QueryError, ValidationError
from storefront_search.search.resolver import ResolvedSearchParams
from storefront_search.search.schemas import (
    CategoryFacet,
    FacetValue,
    PriceRangeFacet,
    SpecificationFacet,
)

FACET_PRICE = "price"
FACET_BRANDS = "brands"
FACET_CATEGORIES = "categories"
FACET_SUB_CATEGORIES = "subCategories"
FACET_COLLECTIONS = "collections"
FACET_STOCK_STATUSES = "stockStatuses"
FACET_SPECIFICATIONS = "specifications"

ALL_FACETS = (
    FACET_PRICE,
    FACET_BRANDS,
    FACET_CATEGORIES,
    FACET_SUB_CATEGORIES,
    FACET_COLLECTIONS,
    FACET_STOCK_STATUSES,
    FACET_SPECIFICATIONS,
)

# Clause dimensions each facet ignores when counting
FACET_EXCLUSIONS: Dict[str, FrozenSet[str]] = {
    FACET_PRICE: frozenset({PRICE}),
    FACET_BRANDS: frozenset({BRAND}),
    FACET_CATEGORIES: frozenset({CATEGORY, SUB_CATEGORY}),
    FACET_SUB_CATEGORIES: frozenset({SUB_CATEGORY}),
    FACET_COLLECTIONS: frozenset({COLLECTION}),
    FACET_STOCK_STATUSES: frozenset({STOCK_STATUS}),
}

T = TypeVar("T")


def parse_facet_names(raw: Optional[str], delimiter: str = ",") -> Tuple[str, ...]:
    """
    Parse the ``facets`` request option: a delimited list of facet names or
    ``all``. Empty means no facets.
    """
    if not raw:
        return ()
    names = [part.strip() for part in raw.split(delimiter) if part.strip()]
    if "all" in names:
        return ALL_FACETS
    unknown = [name for name in names if name not in ALL_FACETS]
    if unknown:
        raise ValidationError("facets", f"unknown facet(s): {', '.join(unknown)}", raw)
    return tuple(dict.fromkeys(names))


@dataclass(frozen=True)
class SpecificationKey:
    key: str
    name: str
    definition_ids: Tuple[str, ...]


class FacetAggregator:
    """Computes facet counts for one compiled filter on one session."""

    def __init__(self, session: Session, include_zero: bool = False):
        self.session = session
        self.include_zero = include_zero

    def _run(self, operation: str, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except SQLAlchemyError as exc:
            raise QueryError(f"Facet query '{operation}' failed: {exc}", operation=operation) from exc

    def _keep(self, count: int) -> bool:
        return self.include_zero or count > 0

    #
    # Relational facets
    #

    def price_range(self, compiled: CompiledFilter) -> PriceRangeFacet:
        predicate = compiled.predicate(exclude=FACET_EXCLUSIONS[FACET_PRICE])

        def query():
            low, high = self.session.execute(
                select(func.min(Product.price), func.max(Product.price)).where(predicate)
            ).one()
            return PriceRangeFacet(min=low or 0, max=high or 0)

        return self._run(FACET_PRICE, query)

    def brands(self, compiled: CompiledFilter) -> List[FacetValue]:
        predicate = compiled.predicate(exclude=FACET_EXCLUSIONS[FACET_BRANDS])

        def query():
            counts = dict(
                self.session.execute(
                    select(Product.brand_id, func.count(Product.id))
                    .where(predicate, Product.brand_id.is_not(None))
                    .group_by(Product.brand_id)
                ).all()
            )
            brands = self.session.execute(select(Brand).order_by(Brand.name, Brand.id)).scalars()
            return [
                FacetValue(value=b.id, name=b.name, slug=b.slug, count=counts.get(b.id, 0))
                for b in brands
                if self._keep(counts.get(b.id, 0))
            ]

        return self._run(FACET_BRANDS, query)

    def _counts_by_category(self, predicate) -> Dict[str, int]:
        return dict(
            self.session.execute(
                select(Product.category_id, func.count(Product.id))
                .where(predicate)
                .group_by(Product.category_id)
            ).all()
        )

    def categories(self, compiled: CompiledFilter) -> List[CategoryFacet]:
        """
        Parent categories with nested sub-category counts. A parent's count
        covers products filed directly under it plus its children's.
        """
        predicate = compiled.predicate(exclude=FACET_EXCLUSIONS[FACET_CATEGORIES])

        def query():
            counts = self._counts_by_category(predicate)
            categories = self.session.execute(
                select(Category).order_by(Category.name, Category.id)
            ).scalars().all()
            children: Dict[str, List[Category]] = defaultdict(list)
            for category in categories:
                if category.parent_id:
                    children[category.parent_id].append(category)

            facets = []
            for parent in categories:
                if parent.parent_id:
                    continue
                sub_facets = [
                    FacetValue(value=c.id, name=c.name, slug=c.slug, count=counts.get(c.id, 0))
                    for c in children[parent.id]
                    if self._keep(counts.get(c.id, 0))
                ]
                total = counts.get(parent.id, 0) + sum(counts.get(c.id, 0) for c in children[parent.id])
                if self._keep(total):
                    facets.append(CategoryFacet(
                        value=parent.id,
                        name=parent.name,
                        slug=parent.slug,
                        count=total,
                        sub_categories=sub_facets,
                    ))
            return facets

        return self._run(FACET_CATEGORIES, query)

    def sub_categories(self, compiled: CompiledFilter, parent_id: Optional[str]) -> List[FacetValue]:
        """Children of the primary category; empty without one."""
        if not parent_id:
            return []
        predicate = compiled.predicate(exclude=FACET_EXCLUSIONS[FACET_SUB_CATEGORIES])

        def query():
            counts = self._counts_by_category(predicate)
            children = self.session.execute(
                select(Category).where(Category.parent_id == parent_id).order_by(Category.name, Category.id)
            ).scalars()
            return [
                FacetValue(value=c.id, name=c.name, slug=c.slug, count=counts.get(c.id, 0))
                for c in children
                if self._keep(counts.get(c.id, 0))
            ]

        return self._run(FACET_SUB_CATEGORIES, query)

    def collections(self, compiled: CompiledFilter) -> List[FacetValue]:
        """Collection counts; flash sales are promoted elsewhere and never listed."""
        predicate = compiled.predicate(exclude=FACET_EXCLUSIONS[FACET_COLLECTIONS])

        def query():
            counts = dict(
                self.session.execute(
                    select(ProductCollection.collection_id, func.count(distinct(Product.id)))
                    .join(Product, Product.id == ProductCollection.product_id)
                    .where(predicate)
                    .group_by(ProductCollection.collection_id)
                ).all()
            )
            collections = self.session.execute(
                select(Collection)
                .where(Collection.collection_type != CollectionType.FLASH_SALE)
                .order_by(Collection.name, Collection.id)
            ).scalars()
            return [
                FacetValue(value=c.id, name=c.name, slug=c.slug, count=counts.get(c.id, 0))
                for c in collections
                if self._keep(counts.get(c.id, 0))
            ]

        return self._run(FACET_COLLECTIONS, query)

    def stock_statuses(self, compiled: CompiledFilter) -> List[FacetValue]:
        predicate = compiled.predicate(exclude=FACET_EXCLUSIONS[FACET_STOCK_STATUSES])

        def query():
            counts = dict(
                self.session.execute(
                    select(Product.stock_status, func.count(Product.id))
                    .where(predicate)
                    .group_by(Product.stock_status)
                ).all()
            )
            return [
                FacetValue(
                    value=status.value,
                    name=STOCK_STATUS_LABELS[status],
                    count=counts.get(status, 0),
                )
                for status in StockStatus
                if self._keep(counts.get(status, 0))
            ]

        return self._run(FACET_STOCK_STATUSES, query)

    #
    # Dynamic specification facets
    #

    def specification_keys(self, resolved: ResolvedSearchParams) -> List[SpecificationKey]:
        """
        Specification definitions in scope: those of the requested categories
        (and their children) when a category filter is active, else all.
        """
        def query():
            stmt = select(SpecificationDefinition).order_by(SpecificationDefinition.key, SpecificationDefinition.id)
            if resolved.category_ids:
                stmt = stmt.where(SpecificationDefinition.category_id.in_(resolved.category_ids))
            grouped: Dict[str, List[SpecificationDefinition]] = defaultdict(list)
            for definition in self.session.execute(stmt).scalars():
                grouped[definition.key].append(definition)
            return [
                SpecificationKey(key=key, name=defs[0].name, definition_ids=tuple(d.id for d in defs))
                for key, defs in grouped.items()
            ]

        return self._run(FACET_SPECIFICATIONS, query)

    def specification(self, compiled: CompiledFilter, spec_key: SpecificationKey) -> Optional[SpecificationFacet]:
        """Value counts for one specification key, ignoring only that key's own filter."""
        predicate = compiled.predicate(exclude={spec_dimension(spec_key.key)})

        # Values group case-insensitively, matching SpecificationMatch
        folded = func.lower(ProductSpecificationValue.value)

        def query():
            rows = self.session.execute(
                select(func.min(ProductSpecificationValue.value), func.count(distinct(Product.id)))
                .join(Product, Product.id == ProductSpecificationValue.product_id)
                .where(
                    ProductSpecificationValue.specification_def_id.in_(spec_key.definition_ids),
                    predicate,
                )
                .group_by(folded)
                .order_by(folded)
            ).all()
            values = [FacetValue(value=value, name=value, count=count) for value, count in rows]
            if not values:
                return None
            return SpecificationFacet(key=spec_key.key, name=spec_key.name, values=values)

        return self._run(spec_dimension(spec_key.key), query)

    def specifications(self, compiled: CompiledFilter, keys: Sequence[SpecificationKey]) -> List[SpecificationFacet]:
        facets = [self.specification(compiled, key) for key in keys]
        return [facet for facet in facets if facet is not None]

    def aggregate(self, compiled: CompiledFilter, facet: str, resolved: ResolvedSearchParams):
        """Compute one named facet (see ALL_FACETS)."""
        if facet == FACET_PRICE:
            return self.price_range(compiled)
        if facet == FACET_BRANDS:
            return self.brands(compiled)
        if facet == FACET_CATEGORIES:
            return self.categories(compiled)
        if facet == FACET_SUB_CATEGORIES:
            return self.sub_categories(compiled, resolved.primary_category_id)
        if facet == FACET_COLLECTIONS:
            return self.collections(compiled)
        if facet == FACET_STOCK_STATUSES:
            return self.stock_statuses(compiled)
        if facet == FACET_SPECIFICATIONS:
            return self.specifications(compiled, self.specification_keys(resolved))
        raise ValidationError("facets", f"unknown facet: {facet}", facet)


STOCK_STATUS_LABELS = {
    StockStatus.IN_STOCK: "In Stock",
    StockStatus.LOW_STOCK: "Low Stock",
    StockStatus.OUT_OF_STOCK: "Out of Stock",
    StockStatus.BACKORDER: "Backorder",
    StockStatus.DISCONTINUED: "Discontinued",
}
