"""
Redis cache for search result pages.

Redis is ONLY a cache, never the source of truth. The engine itself is
cache-agnostic; the HTTP layer checks here first and stores what the engine
returns.

Cache keys:
- storefront:search:{hash}          result page JSON (TTL from config, 5 min default)
- storefront:search:tag:{scope}     set of result keys that depend on ``scope``

Scopes are ``products``, ``brands``, ``categories``, ``collections`` and
``specifications``. Every entry is tagged ``products``; the others are added
when the request filtered on, or asked for facets of, that reference data.
Admin writes call invalidate(scope) after committing.
"""

import hashlib
import json
from typing import Iterable, Optional, Set

import redis

from storefront_search.core.config import SearchConfig, get_config
from storefront_search.search.params import ProductSearchParams
from storefront_search.search.schemas import ProductSearchResult
from storefront_search.utils.logger import get_logger

logger = get_logger("cache")

SCOPE_PRODUCTS = "products"
SCOPE_BRANDS = "brands"
SCOPE_CATEGORIES = "categories"
SCOPE_COLLECTIONS = "collections"
SCOPE_SPECIFICATIONS = "specifications"
SCOPE_ALL = "all"

SCOPES = (SCOPE_PRODUCTS, SCOPE_BRANDS, SCOPE_CATEGORIES, SCOPE_COLLECTIONS, SCOPE_SPECIFICATIONS)

# Facet name -> reference data it reads
_FACET_SCOPES = {
    "brands": SCOPE_BRANDS,
    "categories": SCOPE_CATEGORIES,
    "subCategories": SCOPE_CATEGORIES,
    "collections": SCOPE_COLLECTIONS,
    "specifications": SCOPE_SPECIFICATIONS,
}


def scopes_for(params: ProductSearchParams, facets: Iterable[str] = ()) -> Set[str]:
    """Invalidation scopes a cached result depends on."""
    scopes = {SCOPE_PRODUCTS}
    if params.brands:
        scopes.add(SCOPE_BRANDS)
    if params.category_id or params.category or params.categories or params.sub_categories:
        scopes.add(SCOPE_CATEGORIES)
    if params.collections:
        scopes.add(SCOPE_COLLECTIONS)
    if params.specifications:
        scopes.add(SCOPE_SPECIFICATIONS)
    for facet in facets:
        if facet in _FACET_SCOPES:
            scopes.add(_FACET_SCOPES[facet])
    return scopes


class SearchCache:
    """
    Redis-backed result cache with scope tags for explicit invalidation.

    Every Redis failure is logged and reported as a miss (reads) or a no-op
    (writes); a broken cache never fails a search.
    """

    def __init__(self, client: redis.Redis, ttl_search: int = 300, namespace: str = "storefront"):
        self.client = client
        self.ttl_search = ttl_search
        self.namespace = namespace

    @classmethod
    def from_config(cls, config: Optional[SearchConfig] = None) -> "SearchCache":
        """
        Build a client from config.

        Connection priority:
        1. redis_url (REDIS_URL), e.g. a hosted rediss:// TLS URL
        2. redis_host + redis_port + redis_db (local)
        """
        config = config or get_config()
        if config.redis_url:
            client = redis.from_url(
                config.redis_url,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
        else:
            client = redis.Redis(
                host=config.redis_host,
                port=config.redis_port,
                db=config.redis_db,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
            )
        return cls(client, ttl_search=config.cache_ttl_search)

    def _key(self, key: str) -> str:
        """Prefix key with namespace."""
        return f"{self.namespace}:{key}"

    def _tag_key(self, scope: str) -> str:
        return self._key(f"search:tag:{scope}")

    def ping(self) -> bool:
        """Check if Redis is reachable."""
        try:
            return bool(self.client.ping())
        except redis.RedisError:
            return False

    @staticmethod
    def make_key(params: ProductSearchParams, facets: Iterable[str] = (), include_inactive: bool = False) -> str:
        """
        Deterministic key for a normalized request.

        Built on ProductSearchParams.cache_key(), so value order inside
        multi-valued filters does not split the cache.
        """
        raw = json.dumps(
            {"p": params.cache_key(), "f": sorted(set(facets)), "i": include_inactive},
            sort_keys=True,
        )
        return f"search:{hashlib.sha256(raw.encode()).hexdigest()[:16]}"

    def get(self, cache_key: str) -> Optional[ProductSearchResult]:
        """Get a cached result page. Returns None on miss."""
        key = self._key(cache_key)
        try:
            cached = self.client.get(key)
            if cached:
                return ProductSearchResult.model_validate_json(cached)
            return None
        except redis.RedisError as e:
            logger.warning(f"Search cache read error for {key}: {e}")
            return None
        except ValueError as e:
            logger.warning(f"Discarding unreadable search cache entry {key}: {e}")
            return None

    def set(self, cache_key: str, result: ProductSearchResult, scopes: Iterable[str] = (SCOPE_PRODUCTS,)) -> bool:
        """Store a result page and register it under each scope tag."""
        key = self._key(cache_key)
        try:
            pipe = self.client.pipeline()
            pipe.setex(key, self.ttl_search, result.model_dump_json(by_alias=True))
            for scope in set(scopes) | {SCOPE_PRODUCTS}:
                tag = self._tag_key(scope)
                pipe.sadd(tag, key)
                # Tag sets outlive their members by at most one TTL
                pipe.expire(tag, self.ttl_search * 2)
            pipe.execute()
            return True
        except redis.RedisError as e:
            logger.warning(f"Search cache write error for {key}: {e}")
            return False

    def invalidate(self, scope: str) -> int:
        """
        Drop every cached result tagged with ``scope`` (or every search entry
        for ``"all"``). Returns the number of result entries deleted.

        Raises:
            ValueError: unknown scope.
        """
        if scope == SCOPE_ALL:
            return self._invalidate_all()
        if scope not in SCOPES:
            raise ValueError(f"Unknown cache scope '{scope}'; expected one of {', '.join(SCOPES + (SCOPE_ALL,))}")
        tag = self._tag_key(scope)
        try:
            keys = list(self.client.smembers(tag))
            deleted = self.client.delete(*keys) if keys else 0
            self.client.delete(tag)
            logger.info(f"Invalidated {deleted} cached search results for scope '{scope}'")
            return deleted
        except redis.RedisError as e:
            logger.warning(f"Search cache invalidation error for scope '{scope}': {e}")
            return 0

    def _invalidate_all(self) -> int:
        try:
            pattern = self._key("search:*")
            keys = list(self.client.scan_iter(match=pattern, count=100))
            result_keys = [k for k in keys if not k.startswith(self._key("search:tag:"))]
            deleted = self.client.delete(*keys) if keys else 0
            logger.info(f"Invalidated all cached search results ({len(result_keys)} entries)")
            return len(result_keys) if deleted else 0
        except redis.RedisError as e:
            logger.warning(f"Search cache invalidation error: {e}")
            return 0
