"""Catalog package: filter/sort engine and shop view."""
from .filters import (
    CatalogFacets,
    FilterSpec,
    SortKey,
    apply_filters,
    catalog_facets,
    filter_products,
    sort_products,
)
from .service import ShopView

__all__ = [
    "CatalogFacets",
    "FilterSpec",
    "SortKey",
    "apply_filters",
    "catalog_facets",
    "filter_products",
    "sort_products",
    "ShopView",
]
