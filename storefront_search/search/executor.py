"""
Query executor: compiled predicate + sort + pagination -> one result page.

The page slice and the total count come from a single SELECT carrying
``count(*) OVER ()``, so both observe the same statement snapshot. Only an
empty slice (no matches, or a page past the end) needs a separate COUNT,
issued in the same transaction.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from storefront_search.data.models import Category, Product, ProductCollection
from storefront_search.search.compiler import CompiledFilter
from storefront_search.search.errors import QueryError
from storefront_search.search.params import ProductSearchParams
from storefront_search.search.schemas import (
    BrandRef,
    CategoryRef,
    CollectionRef,
    MinimalProductData,
    ProductSearchResult,
    SearchFacets,
)

SORT_COLUMNS = {
    "createdAt": Product.created_at,
    "price": Product.price,
    "name": Product.name,
    "popularity": Product.sales_count,
}


@dataclass
class PageResult:
    products: List[MinimalProductData]
    total_count: int


def build_order_by(sort_by: str, sort_order: str) -> list:
    """Configured sort followed by the ``id ASC`` tie-break."""
    column = SORT_COLUMNS[sort_by]
    primary = column.asc() if sort_order == "asc" else column.desc()
    return [primary, Product.id.asc()]


def to_minimal_product(product: Product) -> MinimalProductData:
    category = product.category
    return MinimalProductData(
        id=product.id,
        slug=product.slug,
        name=product.name,
        price=product.price,
        original_price=product.original_price,
        main_image=product.main_image or "",
        category=CategoryRef(
            id=category.id,
            name=category.name,
            slug=category.slug,
            parent_name=category.parent.name if category.parent else None,
        ),
        brand=(
            BrandRef(id=product.brand.id, name=product.brand.name, slug=product.brand.slug)
            if product.brand else None
        ),
        stock_status=product.stock_status,
        featured=bool(product.featured),
        has_variants=bool(product.has_variants),
        created_at=product.created_at,
        collections=[
            CollectionRef(
                id=link.collection.id,
                name=link.collection.name,
                slug=link.collection.slug,
                collection_type=link.collection.collection_type,
            )
            for link in sorted(product.collections, key=lambda link: link.collection_id)
        ],
    )


def execute_page(session: Session, compiled: CompiledFilter, params: ProductSearchParams) -> PageResult:
    """
    Fetch one page of matching products plus the total match count.

    Raises:
        QueryError: on any storage failure. An empty page is not an error.
    """
    predicate = compiled.predicate()
    stmt = (
        select(Product, func.count().over().label("total_count"))
        .where(predicate)
        .options(
            selectinload(Product.category).selectinload(Category.parent),
            selectinload(Product.brand),
            selectinload(Product.collections).selectinload(ProductCollection.collection),
        )
        .order_by(*build_order_by(params.sort_by, params.sort_order))
        .offset(params.offset)
        .limit(params.limit)
    )
    try:
        rows = session.execute(stmt).all()
        if rows:
            total_count = rows[0].total_count
        elif params.page == 1:
            total_count = 0
        else:
            total_count = session.execute(
                select(func.count()).select_from(Product).where(predicate)
            ).scalar_one()
        products = [to_minimal_product(row[0]) for row in rows]
    except SQLAlchemyError as exc:
        raise QueryError(f"Product page query failed: {exc}", operation="page") from exc
    return PageResult(products=products, total_count=total_count)


def build_result(
    page: PageResult,
    params: ProductSearchParams,
    facets: SearchFacets = None,
) -> ProductSearchResult:
    total_pages = math.ceil(page.total_count / params.limit)
    return ProductSearchResult(
        products=page.products,
        total_count=page.total_count,
        page=params.page,
        limit=params.limit,
        total_pages=total_pages,
        has_next_page=params.page < total_pages,
        has_previous_page=params.page > 1,
        facets=facets,
    )
