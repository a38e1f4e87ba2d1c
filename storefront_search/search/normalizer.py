"""
Query normalization: raw URL query state -> ProductSearchParams.

Reserved keys map onto typed fields. Any other key is a dynamic
specification facet, e.g. ``?ram=16gb,32gb&color=black`` yields two
SpecificationFilter entries.
"""
from __future__ import annotations

import math
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from storefront_search.core.config import SearchConfig, get_config
from storefront_search.data.models import StockStatus
from storefront_search.search.errors import ValidationError
from storefront_search.search.params import (
    ProductSearchParams,
    SORT_FIELDS,
    SORT_ORDERS,
    SpecificationFilter,
)

RESERVED_PARAMS = frozenset({
    "search",
    "page",
    "limit",
    "minPrice",
    "maxPrice",
    "sortBy",
    "sortOrder",
    "categories",
    "subCategories",
    "brands",
    "collections",
    "stockStatus",
    "categoryId",
    "category",
})

RawValue = Union[str, Sequence[str], None]
RawParams = Union[Mapping[str, RawValue], Iterable[Tuple[str, str]]]


def _iter_items(raw: RawParams) -> Iterable[Tuple[str, str]]:
    """Flatten a mapping, a multi-dict or a list of pairs into (key, value) pairs."""
    if hasattr(raw, "multi_items"):
        # Starlette QueryParams / MultiDict
        yield from raw.multi_items()
        return
    items = raw.items() if isinstance(raw, Mapping) else raw
    for key, value in items:
        if value is None:
            continue
        if isinstance(value, str):
            yield key, value
        else:
            for item in value:
                if item is not None:
                    yield key, str(item)


def _collect(raw: RawParams) -> Dict[str, List[str]]:
    """Group raw values by key, keeping first-seen key order."""
    grouped: Dict[str, List[str]] = {}
    for key, value in _iter_items(raw):
        grouped.setdefault(key, []).append(value)
    return grouped


def _split_multi_value(values: Optional[List[str]], delimiter: str) -> Tuple[str, ...]:
    """Split delimiter-separated values, trim, drop empties and duplicates."""
    if not values:
        return ()
    seen: Dict[str, None] = {}
    for value in values:
        for part in value.split(delimiter):
            part = part.strip()
            if part:
                seen.setdefault(part, None)
    return tuple(seen)


def _single(values: Optional[List[str]]) -> Optional[str]:
    """First non-blank value of a single-valued key."""
    if not values:
        return None
    for value in values:
        if value.strip():
            return value.strip()
    return None


def _parse_price(field: str, text: Optional[str]) -> Optional[float]:
    if text is None:
        return None
    try:
        value = float(text)
    except ValueError:
        raise ValidationError(field, "must be a number", text) from None
    if math.isnan(value) or math.isinf(value) or value < 0:
        raise ValidationError(field, "must be a non-negative number", text)
    return value


def _parse_positive_int(field: str, text: Optional[str], default: int) -> int:
    if text is None:
        return default
    try:
        value = int(text)
    except ValueError:
        raise ValidationError(field, "must be a positive integer", text) from None
    if value < 1:
        raise ValidationError(field, "must be a positive integer", text)
    return value


def _parse_choice(field: str, text: Optional[str], choices: Sequence[str], default: str) -> str:
    if text is None:
        return default
    if text not in choices:
        raise ValidationError(field, f"must be one of {', '.join(choices)}", text)
    return text


def _parse_stock_status(values: Tuple[str, ...]) -> Tuple[StockStatus, ...]:
    statuses = []
    for value in values:
        try:
            statuses.append(StockStatus(value))
        except ValueError:
            allowed = ", ".join(s.value for s in StockStatus)
            raise ValidationError("stockStatus", f"unknown value; expected one of {allowed}", value) from None
    return tuple(dict.fromkeys(statuses))


def normalize_search_params(
    raw: RawParams,
    config: Optional[SearchConfig] = None,
) -> ProductSearchParams:
    """
    Build validated ProductSearchParams from loosely-typed query state.

    Args:
        raw: Mapping of key -> string or list of strings, a Starlette
            QueryParams object, or an iterable of (key, value) pairs.
        config: Defaults for page size, sort and the value delimiter.

    Returns:
        ProductSearchParams with ``specifications`` set to None when no
        dynamic facets survive normalization.

    Raises:
        ValidationError: with the offending field name.
    """
    config = config or get_config()
    delimiter = config.value_delimiter
    grouped = _collect(raw)

    limit = _parse_positive_int("limit", _single(grouped.get("limit")), config.default_limit)
    if limit > config.max_limit:
        raise ValidationError("limit", f"must not exceed {config.max_limit}", limit)

    specifications: List[SpecificationFilter] = []
    for key, values in grouped.items():
        if key in RESERVED_PARAMS:
            continue
        spec_values = _split_multi_value(values, delimiter)
        if spec_values:
            specifications.append(SpecificationFilter(key=key, values=spec_values))

    return ProductSearchParams(
        search_query=_single(grouped.get("search")),
        category_id=_single(grouped.get("categoryId")),
        category=_single(grouped.get("category")),
        categories=_split_multi_value(grouped.get("categories"), delimiter),
        sub_categories=_split_multi_value(grouped.get("subCategories"), delimiter),
        brands=_split_multi_value(grouped.get("brands"), delimiter),
        collections=_split_multi_value(grouped.get("collections"), delimiter),
        min_price=_parse_price("minPrice", _single(grouped.get("minPrice"))),
        max_price=_parse_price("maxPrice", _single(grouped.get("maxPrice"))),
        stock_status=_parse_stock_status(_split_multi_value(grouped.get("stockStatus"), delimiter)),
        specifications=tuple(specifications) or None,
        sort_by=_parse_choice("sortBy", _single(grouped.get("sortBy")), SORT_FIELDS, config.default_sort_by),
        sort_order=_parse_choice(
            "sortOrder", _single(grouped.get("sortOrder")), SORT_ORDERS, config.default_sort_order
        ),
        page=_parse_positive_int("page", _single(grouped.get("page")), 1),
        limit=limit,
    )
