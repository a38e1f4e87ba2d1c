"""
Filter compiler: resolved search parameters -> composable predicate clauses.

Pure transformation, no I/O. One clause per populated field; the storefront
always gets an implicit ``is_active`` clause.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Tuple

from sqlalchemy import and_, true
from sqlalchemy.sql.elements import ColumnElement

from storefront_search.search.clauses import (
    BRAND,
    CATEGORY,
    COLLECTION,
    SUB_CATEGORY,
    ActiveOnly,
    CollectionMembership,
    EnumMembership,
    FilterClause,
    MatchNothing,
    PriceRange,
    SetMembership,
    SpecificationMatch,
    TextMatch,
)
from storefront_search.search.resolver import ResolvedSearchParams


@dataclass(frozen=True)
class CompiledFilter:
    clauses: Tuple[FilterClause, ...]

    @property
    def dimensions(self) -> FrozenSet[str]:
        return frozenset(clause.dimension for clause in self.clauses)

    def predicate(self, exclude: Iterable[str] = ()) -> ColumnElement:
        """AND of every clause whose dimension is not in ``exclude``."""
        excluded = set(exclude)
        expressions = [
            clause.to_expression()
            for clause in self.clauses
            if clause.dimension not in excluded
        ]
        return and_(true(), *expressions)


def _membership(resolved: ResolvedSearchParams, dimension: str, column: str, ids: Tuple[str, ...]) -> List[FilterClause]:
    if dimension in resolved.must_fail:
        return [MatchNothing(dimension)]
    if ids:
        return [SetMembership(column=column, ids=ids, dimension=dimension)]
    return []


def compile_filters(resolved: ResolvedSearchParams, include_inactive: bool = False) -> CompiledFilter:
    """
    Translate resolved parameters into a CompiledFilter.

    Args:
        resolved: Output of resolve_references().
        include_inactive: Admin callers only; storefront searches never see
            inactive products.
    """
    params = resolved.params
    clauses: List[FilterClause] = []

    if not include_inactive:
        clauses.append(ActiveOnly())

    if params.has_search_query:
        clauses.append(TextMatch(params.search_query.strip()))

    # Sub-categories replace the primary category; an unknown primary still fails
    if not params.sub_categories or CATEGORY in resolved.must_fail:
        clauses.extend(_membership(resolved, CATEGORY, "category_id", resolved.category_ids))
    clauses.extend(_membership(resolved, SUB_CATEGORY, "category_id", resolved.sub_category_ids))
    clauses.extend(_membership(resolved, BRAND, "brand_id", resolved.brand_ids))

    if COLLECTION in resolved.must_fail:
        clauses.append(MatchNothing(COLLECTION))
    elif resolved.collection_ids:
        clauses.append(CollectionMembership(resolved.collection_ids))

    if params.min_price is not None or params.max_price is not None:
        clauses.append(PriceRange(params.min_price, params.max_price))

    if params.stock_status:
        clauses.append(EnumMembership(params.stock_status))

    for spec in params.specifications or ():
        if spec.values:
            clauses.append(SpecificationMatch(spec.key, spec.values))

    return CompiledFilter(tuple(clauses))
