"""
Typed search parameters.

ProductSearchParams is built per request (usually by normalize_search_params)
and never persisted. It is frozen and hashable so it can key caches.
"""
from __future__ import annotations

import hashlib
import json
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from storefront_search.data.models import StockStatus
from storefront_search.search.errors import ValidationError

SORT_FIELDS = ("createdAt", "price", "name", "popularity")
SORT_ORDERS = ("asc", "desc")

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 24


@dataclass(frozen=True)
class SpecificationFilter:
    """One dynamic facet: match any of ``values`` for specification ``key``."""
    key: str
    values: Tuple[str, ...]


@dataclass(frozen=True)
class ProductSearchParams:
    search_query: Optional[str] = None
    category_id: Optional[str] = None
    category: Optional[str] = None
    categories: Tuple[str, ...] = ()
    sub_categories: Tuple[str, ...] = ()
    brands: Tuple[str, ...] = ()
    collections: Tuple[str, ...] = ()
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    stock_status: Tuple[StockStatus, ...] = ()
    specifications: Optional[Tuple[SpecificationFilter, ...]] = None
    sort_by: str = "createdAt"
    sort_order: str = "desc"
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    _cache_key: str = field(default="", init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        for name in ("min_price", "max_price"):
            value = getattr(self, name)
            if value is not None and (math.isnan(value) or math.isinf(value) or value < 0):
                raise ValidationError(_FIELD_NAMES[name], "must be a non-negative number", value)
        if (
            self.min_price is not None
            and self.max_price is not None
            and self.min_price > self.max_price
        ):
            raise ValidationError("minPrice", "must be less than or equal to maxPrice", self.min_price)
        if self.page < 1:
            raise ValidationError("page", "must be a positive integer", self.page)
        if self.limit < 1:
            raise ValidationError("limit", "must be a positive integer", self.limit)
        if self.sort_by not in SORT_FIELDS:
            raise ValidationError("sortBy", f"must be one of {', '.join(SORT_FIELDS)}", self.sort_by)
        if self.sort_order not in SORT_ORDERS:
            raise ValidationError("sortOrder", "must be 'asc' or 'desc'", self.sort_order)
        if self.specifications is not None and len(self.specifications) == 0:
            # Keep "no specification facets" in a single representation
            object.__setattr__(self, "specifications", None)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def has_search_query(self) -> bool:
        return bool(self.search_query and self.search_query.strip())

    def to_dict(self) -> Dict[str, Any]:
        """Return the parameters under their query-string names."""
        data: Dict[str, Any] = {
            "search": self.search_query,
            "categoryId": self.category_id,
            "category": self.category,
            "categories": list(self.categories),
            "subCategories": list(self.sub_categories),
            "brands": list(self.brands),
            "collections": list(self.collections),
            "minPrice": self.min_price,
            "maxPrice": self.max_price,
            "stockStatus": [s.value for s in self.stock_status],
            "specifications": (
                [{"key": s.key, "values": list(s.values)} for s in self.specifications]
                if self.specifications else None
            ),
            "sortBy": self.sort_by,
            "sortOrder": self.sort_order,
            "page": self.page,
            "limit": self.limit,
        }
        return data

    def cache_key(self) -> str:
        """
        Deterministic digest of the full normalized parameter tuple.

        Set-valued fields are sorted so the order values appeared in the URL
        does not split the cache.
        """
        if self._cache_key:
            return self._cache_key
        data = self.to_dict()
        for name in ("categories", "subCategories", "brands", "collections", "stockStatus"):
            data[name] = sorted(data[name])
        if data["specifications"]:
            data["specifications"] = sorted(
                ({"key": s["key"], "values": sorted(s["values"])} for s in data["specifications"]),
                key=lambda s: s["key"],
            )
        raw = json.dumps(data, sort_keys=True)
        digest = hashlib.sha256(raw.encode()).hexdigest()
        object.__setattr__(self, "_cache_key", digest)
        return digest


_FIELD_NAMES = {"min_price": "minPrice", "max_price": "maxPrice"}
