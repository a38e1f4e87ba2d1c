"""
Human-readable chips for the filters a search currently applies.

The storefront renders one removable chip per active filter value
("Brand: Apple", "Price Range: $0 - $500"). Lookups from ids to display
names come from a LabelContext holding the catalog's brand and category
names; unknown references fall back to the raw value.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from storefront_search.data.models import StockStatus
from storefront_search.search.facets import STOCK_STATUS_LABELS
from storefront_search.search.params import ProductSearchParams, SpecificationFilter

_UNIT_PATTERNS = (
    (re.compile(r"(\d+)\s*gb\b", re.IGNORECASE), r"\1GB"),
    (re.compile(r"(\d+)\s*tb\b", re.IGNORECASE), r"\1TB"),
    (re.compile(r"(\d+)\s*mb\b", re.IGNORECASE), r"\1MB"),
    (re.compile(r"(\d+)\s*hz\b", re.IGNORECASE), r"\1Hz"),
)


@dataclass(frozen=True)
class ActiveFilter:
    type: str
    display_name: str
    display_value: str
    original_value: Any


@dataclass
class LabelContext:
    """Reference names keyed by id and by slug."""
    categories: Dict[str, str] = field(default_factory=dict)
    brands: Dict[str, str] = field(default_factory=dict)
    price_range: Optional[Tuple[float, float]] = None


def format_price(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}"


def format_spec_key(key: str) -> str:
    """``screen_size`` -> ``Screen Size``."""
    return " ".join(word[:1].upper() + word[1:] for word in key.split("_") if word)


def format_spec_value(value: str) -> str:
    """Normalize storage and frequency units: ``16gb`` -> ``16GB``, ``144hz`` -> ``144Hz``."""
    for pattern, replacement in _UNIT_PATTERNS:
        value = pattern.sub(replacement, value)
    return value[:1].upper() + value[1:]


def _describe_spec(spec: SpecificationFilter) -> str:
    return f"{format_spec_key(spec.key)}: {', '.join(format_spec_value(v) for v in spec.values)}"


def _describe_status(status: StockStatus) -> str:
    return STOCK_STATUS_LABELS.get(status) or status.value.replace("_", " ").title()


def describe_active_filters(
    params: ProductSearchParams,
    context: Optional[LabelContext] = None,
) -> List[ActiveFilter]:
    """
    One ActiveFilter per active filter value, in a stable order: search,
    category, sub-categories, brands, price, stock statuses, specifications.
    """
    context = context or LabelContext()
    active: List[ActiveFilter] = []

    if params.has_search_query:
        query = params.search_query.strip()
        active.append(ActiveFilter("search", "Search", query, query))

    for ref in (params.category_id or params.category, *params.categories):
        if ref:
            active.append(ActiveFilter("category", "Category", context.categories.get(ref, ref), ref))

    for ref in params.sub_categories:
        active.append(ActiveFilter("subCategory", "Subcategory", context.categories.get(ref, ref), ref))

    for ref in params.brands:
        active.append(ActiveFilter("brand", "Brand", context.brands.get(ref, ref), ref))

    if params.min_price is not None or params.max_price is not None:
        floor, ceiling = context.price_range or (None, None)
        low = params.min_price if params.min_price is not None else (floor or 0)
        high = params.max_price if params.max_price is not None else ceiling
        display = f"${format_price(low)} - ${format_price(high) if high is not None else '∞'}"
        active.append(ActiveFilter(
            "price",
            "Price Range",
            display,
            {"min": params.min_price, "max": params.max_price},
        ))

    for status in params.stock_status:
        active.append(ActiveFilter("stockStatus", "Status", _describe_status(status), status.value))

    for spec in params.specifications or ():
        active.append(ActiveFilter(
            "spec",
            "Specification",
            _describe_spec(spec),
            {"key": spec.key, "values": list(spec.values)},
        ))

    return active
