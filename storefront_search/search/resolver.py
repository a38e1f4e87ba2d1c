"""
Resolve human-facing filter references (ids, names or slugs) to ids.

URLs carry whatever the storefront links used: ``brands=apple`` and
``brands=brand-42`` must both work. A requested dimension that resolves to
nothing is marked must-fail so the compiled predicate matches no products
instead of silently dropping the filter.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Sequence, Tuple, Type

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront_search.data.models import Brand, Category, Collection
from storefront_search.search.clauses import BRAND, CATEGORY, COLLECTION, SUB_CATEGORY
from storefront_search.search.errors import QueryError
from storefront_search.search.params import ProductSearchParams


@dataclass(frozen=True)
class ResolvedSearchParams:
    params: ProductSearchParams
    brand_ids: Tuple[str, ...] = ()
    collection_ids: Tuple[str, ...] = ()
    sub_category_ids: Tuple[str, ...] = ()
    category_ids: Tuple[str, ...] = ()   # Primary/listed categories plus their children
    primary_category_id: Optional[str] = None
    must_fail: FrozenSet[str] = frozenset()


def _match_refs(session: Session, model: Type, refs: Sequence[str]) -> Tuple[str, ...]:
    """Ids of ``model`` rows whose id, name or slug matches one of ``refs``."""
    if not refs:
        return ()
    lowered = [ref.lower() for ref in refs]
    stmt = (
        select(model.id)
        .where(
            or_(
                model.id.in_(refs),
                func.lower(model.name).in_(lowered),
                func.lower(model.slug).in_(lowered),
            )
        )
        .order_by(model.id)
    )
    return tuple(session.execute(stmt).scalars().all())


def _with_children(session: Session, category_ids: Iterable[str]) -> Tuple[str, ...]:
    ids = list(dict.fromkeys(category_ids))
    if not ids:
        return ()
    children = session.execute(
        select(Category.id).where(Category.parent_id.in_(ids)).order_by(Category.id)
    ).scalars().all()
    return tuple(dict.fromkeys([*ids, *children]))


def _resolve_primary_category(session: Session, params: ProductSearchParams) -> Tuple[Optional[str], bool]:
    """Return (category id, must_fail) for categoryId / category."""
    if params.category_id:
        found = session.execute(
            select(Category.id).where(Category.id == params.category_id)
        ).scalar_one_or_none()
        if found:
            return found, False
        if not params.category:
            return None, True
    if params.category:
        ref = params.category.lower()
        found = session.execute(
            select(Category.id)
            .where(or_(func.lower(Category.slug) == ref, func.lower(Category.name) == ref))
            .order_by(Category.parent_id.is_not(None), Category.id)
            .limit(1)
        ).scalar_one_or_none()
        if found:
            return found, False
        return None, True
    return None, False


def resolve_references(session: Session, params: ProductSearchParams) -> ResolvedSearchParams:
    """
    Resolve brand, collection and category references against the catalog.

    Raises:
        QueryError: when the lookups fail at the storage layer.
    """
    must_fail = set()
    try:
        brand_ids = _match_refs(session, Brand, params.brands)
        if params.brands and not brand_ids:
            must_fail.add(BRAND)

        collection_ids = _match_refs(session, Collection, params.collections)
        if params.collections and not collection_ids:
            must_fail.add(COLLECTION)

        sub_category_ids = _match_refs(session, Category, params.sub_categories)
        if params.sub_categories and not sub_category_ids:
            must_fail.add(SUB_CATEGORY)

        primary_id, primary_failed = _resolve_primary_category(session, params)
        listed_ids = _match_refs(session, Category, params.categories)
        if primary_failed or (params.categories and not listed_ids):
            must_fail.add(CATEGORY)

        roots = ([primary_id] if primary_id else []) + list(listed_ids)
        category_ids = _with_children(session, roots)
    except SQLAlchemyError as exc:
        raise QueryError(f"Failed to resolve filter references: {exc}", operation="resolve") from exc

    return ResolvedSearchParams(
        params=params,
        brand_ids=brand_ids,
        collection_ids=collection_ids,
        sub_category_ids=sub_category_ids,
        category_ids=category_ids,
        primary_category_id=primary_id,
        must_fail=frozenset(must_fail),
    )
