"""
FastAPI server for storefront-search.

Usage:
    uvicorn storefront_search.api.server:app --reload --port 8000
    # or
    python -m storefront_search.api.server
"""
import asyncio
import os
import time
from contextlib import asynccontextmanager
from typing import List, Optional, Tuple

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from storefront_search import __version__
from storefront_search.api.models import (
    ActiveFilterResponse,
    ActiveFiltersResponse,
    HealthResponse,
    InvalidateRequest,
    InvalidateResponse,
)
from storefront_search.cache import SearchCache, scopes_for
from storefront_search.core.config import get_config
from storefront_search.data.database import Base, engine as db_engine, get_session_factory
from storefront_search.metrics import metrics_collector, record_request_metrics
from storefront_search.search.engine import ProductSearchEngine
from storefront_search.search.errors import QueryError, ValidationError
from storefront_search.search.labels import describe_active_filters
from storefront_search.search.schemas import ProductSearchResult
from storefront_search.utils.logger import configure_logging, get_logger

logger = get_logger("api.server")

# Query keys handled by the endpoint rather than the normalizer
ENDPOINT_PARAMS = frozenset({"facets"})

_engine: Optional[ProductSearchEngine] = None
_cache: Optional[SearchCache] = None


def get_search_engine() -> ProductSearchEngine:
    """Dependency: process-wide engine over the configured database."""
    global _engine
    if _engine is None:
        _engine = ProductSearchEngine(get_session_factory(), get_config())
    return _engine


def get_search_cache() -> Optional[SearchCache]:
    """Dependency: result cache, or None when caching is disabled."""
    global _cache
    config = get_config()
    if not config.cache_enabled:
        return None
    if _cache is None:
        _cache = SearchCache.from_config(config)
    return _cache


def get_db_session_factory() -> Optional[sessionmaker]:
    return get_session_factory()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables for local SQLite setups; production schemas are migrated elsewhere."""
    configure_logging(get_config().log_level)
    if db_engine is not None and os.getenv("SEARCH_CREATE_TABLES", "0") == "1":
        try:
            Base.metadata.create_all(bind=db_engine)
        except SQLAlchemyError as e:
            logger.warning(f"Could not run Base.metadata.create_all: {e}")
    logger.info(f"storefront-search {__version__} ready")
    yield


app = FastAPI(
    title="Storefront Search API",
    description="Product search with filtering, sorting, pagination and facet counts",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    logger.info(f"Rejected {request.url.path}: {exc}")
    return JSONResponse(status_code=422, content=exc.to_dict())


@app.exception_handler(QueryError)
async def query_error_handler(request: Request, exc: QueryError):
    logger.error(f"Storage failure on {request.url.path} ({exc.operation}): {exc.message}")
    return JSONResponse(status_code=503, content=exc.to_dict())


def _split_query(request: Request) -> Tuple[List[Tuple[str, str]], Optional[str]]:
    """Separate endpoint options from the filter query state."""
    filters = [(k, v) for k, v in request.query_params.multi_items() if k not in ENDPOINT_PARAMS]
    return filters, request.query_params.get("facets")


#
# Search
#

@app.get("/products/search", response_model=ProductSearchResult)
async def search_products(
    request: Request,
    engine: ProductSearchEngine = Depends(get_search_engine),
    cache: Optional[SearchCache] = Depends(get_search_cache),
):
    """
    Search the catalog with the storefront's URL query state.

    Any query key that is not a reserved parameter is a specification
    facet (``?ram=16gb,32gb``). ``facets`` selects facet dimensions to
    compute: a comma list or ``all``.
    """
    started = time.perf_counter()
    cache_hit: Optional[bool] = None
    is_error = True
    try:
        raw, facets = _split_query(request)
        params = engine.normalize(raw)
        names = engine.facet_names(facets)

        cache_key = SearchCache.make_key(params, names) if cache is not None else None
        if cache is not None:
            cached = cache.get(cache_key)
            cache_hit = cached is not None
            if cached is not None:
                is_error = False
                return cached

        result = await engine.search(params, names)
        if cache is not None:
            cache.set(cache_key, result, scopes_for(params, names))
        is_error = False
        return result
    finally:
        latency_ms = (time.perf_counter() - started) * 1000
        record_request_metrics("search_products", latency_ms, cache_hit=cache_hit, is_error=is_error)


@app.get("/products/active-filters", response_model=ActiveFiltersResponse)
async def active_filters(
    request: Request,
    engine: ProductSearchEngine = Depends(get_search_engine),
):
    """
    Describe the filters in the query state as display chips.

    An open-ended price range is closed with the bounds of the price facet
    for the same query.
    """
    raw, _ = _split_query(request)
    params = engine.normalize(raw)
    context = await asyncio.to_thread(engine.label_context)
    if params.min_price is not None or params.max_price is not None:
        bounds = (await engine.search(params, ("price",))).facets.price_range
        # Empty catalog slice reports 0/0; keep the open bound unlabelled
        if bounds.max > 0:
            context.price_range = (bounds.min, bounds.max)
    return ActiveFiltersResponse(filters=[
        ActiveFilterResponse(
            type=f.type,
            display_name=f.display_name,
            display_value=f.display_value,
            original_value=f.original_value,
        )
        for f in describe_active_filters(params, context)
    ])


#
# Cache administration
#

@app.post("/cache/invalidate", response_model=InvalidateResponse)
def invalidate_cache(
    body: InvalidateRequest,
    cache: Optional[SearchCache] = Depends(get_search_cache),
):
    """Drop cached search results after catalog writes."""
    if cache is None:
        return InvalidateResponse(scope=body.scope, deleted=0, cache_enabled=False)
    try:
        deleted = cache.invalidate(body.scope)
    except ValueError as e:
        raise ValidationError("scope", str(e), body.scope) from e
    return InvalidateResponse(scope=body.scope, deleted=deleted)


#
# Health and metrics
#

@app.get("/health", response_model=HealthResponse)
def health_check(
    session_factory: Optional[sessionmaker] = Depends(get_db_session_factory),
    cache: Optional[SearchCache] = Depends(get_search_cache),
):
    """Health check including database and cache connectivity."""
    status = {"service": "healthy", "database": "unknown", "cache": "disabled"}

    if session_factory is None:
        status["database"] = "unhealthy: not configured"
        status["service"] = "degraded"
    else:
        try:
            with session_factory() as session:
                session.execute(text("SELECT 1"))
            status["database"] = "healthy"
        except SQLAlchemyError as e:
            status["database"] = f"unhealthy: {e}"
            status["service"] = "degraded"

    if cache is not None:
        if cache.ping():
            status["cache"] = "healthy"
        else:
            # Searches still work without the cache
            status["cache"] = "unhealthy: no response"

    return HealthResponse(version=__version__, **status)


@app.get("/metrics")
def get_metrics():
    """Latency percentiles, cache hit rate, request and error counts."""
    return metrics_collector.get_summary()


if __name__ == "__main__":
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run(app, host="0.0.0.0", port=port)
