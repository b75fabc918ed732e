"""Product Repository - read access to the catalog."""
from typing import List, Optional

from storefront.config import PRODUCTS_TABLE
from storefront.models import Product

from .base import BaseRepository


class ProductRepository(BaseRepository):
    """Product store: list() and get_by_ids()."""

    async def list(self) -> List[Product]:
        """Get the full product list."""
        result = await self.client.table(PRODUCTS_TABLE).select("*").execute()
        return [Product(**p) for p in result.data]

    async def get_by_ids(self, product_ids: List[str]) -> List[Product]:
        """Get products for a set of ids in one query."""
        if not product_ids:
            return []
        result = (
            await self.client.table(PRODUCTS_TABLE).select("*").in_("id", product_ids).execute()
        )
        return [Product(**p) for p in result.data]

    async def get_by_id(self, product_id: str) -> Optional[Product]:
        result = await self.client.table(PRODUCTS_TABLE).select("*").eq("id", product_id).execute()
        return Product(**result.data[0]) if result.data else None
