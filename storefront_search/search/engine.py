"""
ProductSearchEngine: normalize -> resolve -> compile -> page + facets.

The async path fans the page fetch and every requested facet out over
worker threads with asyncio.gather; each task opens its own session, so
the pieces read the catalog concurrently. search_sync runs the same
pipeline on one session. Only PostgreSQL pins one snapshot for all of its
statements; elsewhere the page and its total still come from one statement
but facets may see later writes.
"""
from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple, Union

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from storefront_search.core.config import SearchConfig, get_config
from storefront_search.data.models import Brand, Category
from storefront_search.search.compiler import CompiledFilter, compile_filters
from storefront_search.search.errors import QueryError
from storefront_search.search.executor import PageResult, build_result, execute_page
from storefront_search.search.facets import (
    FACET_BRANDS,
    FACET_CATEGORIES,
    FACET_COLLECTIONS,
    FACET_PRICE,
    FACET_SPECIFICATIONS,
    FACET_STOCK_STATUSES,
    FACET_SUB_CATEGORIES,
    FacetAggregator,
    parse_facet_names,
)
from storefront_search.search.labels import LabelContext
from storefront_search.search.normalizer import RawParams, normalize_search_params
from storefront_search.search.params import ProductSearchParams
from storefront_search.search.resolver import ResolvedSearchParams, resolve_references
from storefront_search.search.schemas import ProductSearchResult, SearchFacets
from storefront_search.utils.logger import get_logger

logger = get_logger("search.engine")

# Facet name -> SearchFacets field
FACET_FIELDS = {
    FACET_PRICE: "price_range",
    FACET_BRANDS: "brands",
    FACET_CATEGORIES: "categories",
    FACET_SUB_CATEGORIES: "sub_categories",
    FACET_COLLECTIONS: "collections",
    FACET_STOCK_STATUSES: "stock_statuses",
    FACET_SPECIFICATIONS: "specifications",
}

SearchInput = Union[ProductSearchParams, RawParams]
FacetInput = Union[str, Iterable[str], None]


class ProductSearchEngine:
    """
    Stateless search front end over a SQLAlchemy session factory.

    Safe to share between requests: every call opens its own sessions and
    keeps nothing between calls.
    """

    def __init__(self, session_factory: sessionmaker, config: Optional[SearchConfig] = None):
        if session_factory is None:
            raise QueryError("Database is not configured", operation="connect")
        self.session_factory = session_factory
        self.config = config or get_config()

    #
    # Input handling
    #

    def normalize(self, query: SearchInput) -> ProductSearchParams:
        if isinstance(query, ProductSearchParams):
            return query
        return normalize_search_params(query, self.config)

    def facet_names(self, facets: FacetInput) -> Tuple[str, ...]:
        if facets is None:
            return ()
        if isinstance(facets, str):
            return parse_facet_names(facets, self.config.value_delimiter)
        return parse_facet_names(self.config.value_delimiter.join(facets), self.config.value_delimiter)

    #
    # Pipeline pieces, each bound to a session
    #

    def _open(self, work: Callable[[Session], Any]) -> Any:
        with self.session_factory() as session:
            return work(session)

    def _aggregator(self, session: Session) -> FacetAggregator:
        return FacetAggregator(session, include_zero=self.config.include_zero_facets)

    def _facet(self, session: Session, name: str, compiled: CompiledFilter, resolved: ResolvedSearchParams):
        return self._aggregator(session).aggregate(compiled, name, resolved)

    @staticmethod
    def _use_snapshot(session: Session) -> None:
        """Pin one snapshot for the whole transaction where the backend supports it."""
        if session.get_bind().dialect.name == "postgresql":
            session.connection(execution_options={"isolation_level": "REPEATABLE READ"})

    def _log_result(self, mode: str, result: ProductSearchResult, facets: Tuple[str, ...], started: float) -> None:
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"Search ({mode}) matched {result.total_count} products "
            f"(page {result.page}/{result.total_pages}, facets={list(facets)}) in {elapsed_ms:.1f}ms"
        )

    #
    # Entry points
    #

    def search_sync(
        self,
        query: SearchInput,
        facets: FacetInput = None,
        include_inactive: bool = False,
    ) -> ProductSearchResult:
        """
        Run the full search on one session.

        On PostgreSQL every statement reads one REPEATABLE READ snapshot.
        Other backends only guarantee that the page agrees with its total.

        Raises:
            ValidationError: malformed parameters or facet names.
            QueryError: storage failure.
        """
        started = time.perf_counter()
        params = self.normalize(query)
        names = self.facet_names(facets)

        with self.session_factory() as session:
            self._use_snapshot(session)
            resolved = resolve_references(session, params)
            compiled = compile_filters(resolved, include_inactive=include_inactive)
            logger.debug(f"Compiled {len(compiled.clauses)} clauses: {sorted(compiled.dimensions)}")
            page = execute_page(session, compiled, params)
            facet_values = {name: self._facet(session, name, compiled, resolved) for name in names}

        result = build_result(page, params, self._facets(facet_values) if names else None)
        self._log_result("sync", result, names, started)
        return result

    async def search(
        self,
        query: SearchInput,
        facets: FacetInput = None,
        include_inactive: bool = False,
    ) -> ProductSearchResult:
        """
        Run the search with the page fetch and facet aggregations in parallel.

        Args:
            query: Raw query state or already-normalized ProductSearchParams.
            facets: Facet names (comma list, iterable or ``"all"``).
            include_inactive: Admin listings only.

        Raises:
            ValidationError: malformed parameters or facet names.
            QueryError: storage failure in any of the parallel tasks.
        """
        if not self.config.parallel_facets:
            return await asyncio.to_thread(self.search_sync, query, facets, include_inactive)

        started = time.perf_counter()
        params = self.normalize(query)
        names = self.facet_names(facets)

        resolved = await asyncio.to_thread(self._open, lambda s: resolve_references(s, params))
        compiled = compile_filters(resolved, include_inactive=include_inactive)
        logger.debug(f"Compiled {len(compiled.clauses)} clauses: {sorted(compiled.dimensions)}")

        tasks = [asyncio.to_thread(self._open, lambda s: execute_page(s, compiled, params))]
        for name in names:
            tasks.append(asyncio.to_thread(
                self._open,
                lambda s, name=name: self._facet(s, name, compiled, resolved),
            ))
        results = await asyncio.gather(*tasks)

        page: PageResult = results[0]
        facet_values = dict(zip(names, results[1:]))
        result = build_result(page, params, self._facets(facet_values) if names else None)
        self._log_result("async", result, names, started)
        return result

    @staticmethod
    def _facets(values: Mapping[str, Any]) -> SearchFacets:
        fields: Dict[str, Any] = {FACET_FIELDS[name]: value for name, value in values.items()}
        return SearchFacets(**fields)

    def label_context(self) -> LabelContext:
        """Display names for every brand and category, keyed by id and by slug."""
        context = LabelContext()
        try:
            with self.session_factory() as session:
                for model, names in ((Brand, context.brands), (Category, context.categories)):
                    for ref_id, slug, name in session.execute(select(model.id, model.slug, model.name)):
                        names[ref_id] = name
                        names[slug] = name
        except SQLAlchemyError as exc:
            raise QueryError(f"Failed to load filter labels: {exc}", operation="labels") from exc
        return context
