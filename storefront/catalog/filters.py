"""
Catalog filter/sort engine.

apply_filters() is a pure function of (products, spec): text, category,
brand, price and stock filters compose with AND, then a stable sort runs
last. Missing optional fields never raise; they just fail to match or
count as zero.
"""

import unicodedata
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Callable, FrozenSet, Iterable, List, Optional, Sequence

from storefront import config
from storefront.models import Product
from storefront.money import to_decimal


class SortKey(str, Enum):
    NAME_ASC = "name"
    PRICE_ASC = "price-low"
    PRICE_DESC = "price-high"
    RATING_DESC = "rating"
    NEWEST = "newest"

    @classmethod
    def parse(cls, value: Optional[str]) -> "SortKey":
        """Parse a sort key; unknown or empty values fall back to name."""
        if isinstance(value, cls):
            return value
        aliases = {
            "name-ascending": cls.NAME_ASC,
            "price-ascending": cls.PRICE_ASC,
            "price-descending": cls.PRICE_DESC,
            "rating-descending": cls.RATING_DESC,
            "newest-first": cls.NEWEST,
        }
        if not value:
            return cls.NAME_ASC
        try:
            return cls(value)
        except ValueError:
            return aliases.get(value, cls.NAME_ASC)


@dataclass(frozen=True)
class FilterSpec:
    """Search/category/brand/price/stock/sort configuration for the shop."""

    categories: FrozenSet[str] = frozenset()
    brands: FrozenSet[str] = frozenset()
    price_min: Decimal = field(default_factory=lambda: config.DEFAULT_PRICE_MIN)
    price_max: Decimal = field(default_factory=lambda: config.DEFAULT_PRICE_MAX)
    in_stock: bool = False
    search: str = ""
    sort: SortKey = SortKey.NAME_ASC

    def __post_init__(self):
        # frozen: normalise through object.__setattr__
        object.__setattr__(self, "categories", frozenset(self.categories or ()))
        object.__setattr__(self, "brands", frozenset(self.brands or ()))
        object.__setattr__(self, "price_min", to_decimal(self.price_min))
        object.__setattr__(self, "price_max", to_decimal(self.price_max))
        object.__setattr__(self, "search", self.search or "")
        object.__setattr__(self, "sort", SortKey.parse(self.sort))

    def with_changes(self, **changes) -> "FilterSpec":
        return replace(self, **changes)

    def cleared(self) -> "FilterSpec":
        """Reset every filter and the search term; the sort key is kept."""
        return FilterSpec(sort=self.sort)


# ==================== FILTERS ====================

def _contains(haystack: Optional[str], needle: str) -> bool:
    return bool(haystack) and needle in haystack.lower()


def matches_search(product: Product, term: str) -> bool:
    if not term:
        return True
    needle = term.lower()
    return (
        _contains(product.name, needle)
        or _contains(product.description, needle)
        or _contains(product.brand, needle)
    )


def matches_category(product: Product, categories: FrozenSet[str]) -> bool:
    return not categories or product.category in categories


def matches_brand(product: Product, brands: FrozenSet[str]) -> bool:
    return not brands or product.brand in brands


def matches_price(product: Product, price_min: Decimal, price_max: Decimal) -> bool:
    return price_min <= to_decimal(product.price) <= price_max


def matches_stock(product: Product, in_stock: bool) -> bool:
    return not in_stock or (product.stock or 0) > 0


def _predicates(spec: FilterSpec) -> List[Callable[[Product], bool]]:
    return [
        lambda p: matches_search(p, spec.search),
        lambda p: matches_category(p, spec.categories),
        lambda p: matches_brand(p, spec.brands),
        lambda p: matches_price(p, spec.price_min, spec.price_max),
        lambda p: matches_stock(p, spec.in_stock),
    ]


def filter_products(products: Iterable[Product], spec: FilterSpec) -> List[Product]:
    """Apply every filter of spec (no sorting); input order is kept."""
    predicates = _predicates(spec)
    return [p for p in products if all(check(p) for check in predicates)]


# ==================== SORTING ====================

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def collation_key(name: Optional[str]) -> tuple:
    """Locale-style ordering: accents and case are secondary to base letters."""
    text = name or ""
    decomposed = unicodedata.normalize("NFKD", text)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()
    return (base, text.casefold(), text)


def _timestamp(product: Product) -> datetime:
    created = product.created_date
    if created is None:
        return _OLDEST
    if created.tzinfo is None:
        return created.replace(tzinfo=timezone.utc)
    return created


def sort_products(products: Sequence[Product], sort: SortKey) -> List[Product]:
    """Stable sort by key; equal keys keep their input order."""
    if sort == SortKey.PRICE_ASC:
        return sorted(products, key=lambda p: to_decimal(p.price))
    if sort == SortKey.PRICE_DESC:
        return sorted(products, key=lambda p: to_decimal(p.price), reverse=True)
    if sort == SortKey.RATING_DESC:
        return sorted(products, key=lambda p: p.rating or 0, reverse=True)
    if sort == SortKey.NEWEST:
        return sorted(products, key=_timestamp, reverse=True)
    return sorted(products, key=lambda p: collation_key(p.name))


def apply_filters(products: Iterable[Product], spec: Optional[FilterSpec] = None) -> List[Product]:
    """Visible products for spec: all filters, then the sort."""
    spec = spec if spec is not None else FilterSpec()
    return sort_products(filter_products(products, spec), spec.sort)


# ==================== FACETS ====================

@dataclass(frozen=True)
class CatalogFacets:
    categories: List[str]
    brands: List[str]
    max_price: Decimal

    def to_dict(self) -> dict:
        return {
            "categories": self.categories,
            "brands": self.brands,
            "max_price": float(self.max_price),
        }


def catalog_facets(products: Iterable[Product]) -> CatalogFacets:
    """Distinct categories and brands (sorted) and the highest price."""
    categories, brands = set(), set()
    max_price = Decimal("0")
    for product in products:
        if product.category:
            categories.add(product.category)
        if product.brand:
            brands.add(product.brand)
        max_price = max(max_price, to_decimal(product.price))
    return CatalogFacets(
        categories=sorted(categories, key=collation_key),
        brands=sorted(brands, key=collation_key),
        max_price=max_price,
    )
