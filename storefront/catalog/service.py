"""
Shop view state.

Holds the loaded product list and the current FilterSpec, and recomputes
the visible products whenever either changes.
"""

from typing import List, Optional

from storefront.cart.service import CartStateManager
from storefront.errors import ERROR_LOAD_PRODUCTS, TITLE_ERROR
from storefront.logging import get_logger, sanitize_string_for_logging
from storefront.models import Product
from storefront.notices import NoticeBoard
from storefront.repositories import ProductRepository

from .filters import CatalogFacets, FilterSpec, apply_filters, catalog_facets

logger = get_logger(__name__)


class ShopView:
    """Product listing with search, filters and sort."""

    def __init__(
        self,
        products: ProductRepository,
        cart: Optional[CartStateManager] = None,
        notices: Optional[NoticeBoard] = None,
        spec: Optional[FilterSpec] = None,
    ):
        self.products = products
        self.cart = cart
        if notices is None:
            notices = cart.notices if cart is not None else NoticeBoard()
        self.notices = notices
        self.spec = spec if spec is not None else FilterSpec()
        self.catalog: List[Product] = []
        self.visible: List[Product] = []
        self.loading = False

    async def load(self) -> List[Product]:
        """Load the catalog; on failure keep an empty list and raise a notice."""
        self.loading = True
        try:
            self.catalog = await self.products.list()
        except Exception as e:
            logger.error(f"Failed to load products: {e}", exc_info=True)
            self.notices.error(TITLE_ERROR, ERROR_LOAD_PRODUCTS)
            self.catalog = []
        finally:
            self.loading = False
        return self._recompute()

    def update(self, **changes) -> List[Product]:
        """Change search/filters/sort (any FilterSpec field) and recompute."""
        self.spec = self.spec.with_changes(**changes)
        if "search" in changes:
            logger.debug(f"Shop search: {sanitize_string_for_logging(self.spec.search)}")
        return self._recompute()

    def clear_filters(self) -> List[Product]:
        self.spec = self.spec.cleared()
        return self._recompute()

    @property
    def facets(self) -> CatalogFacets:
        return catalog_facets(self.catalog)

    async def add_to_cart(self, product: Product) -> bool:
        if self.cart is None:
            raise RuntimeError("ShopView has no cart manager")
        return await self.cart.add_to_cart(product)

    def _recompute(self) -> List[Product]:
        self.visible = apply_filters(self.catalog, self.spec)
        return self.visible
