"""Cart Item Repository - CRUD for account cart lines.

All methods use async/await with supabase-py v2.
"""

from storefront.config import CART_ITEMS_TABLE
from storefront.models import CartItemRecord

from .base import BaseRepository


class CartItemRepository(BaseRepository):
    """CartLine store: filter/create/update/delete on cart_items."""

    async def filter(
        self,
        email: str | None = None,
        product_id: str | None = None,
    ) -> list[CartItemRecord]:
        """Get cart lines matching the given criteria (all given criteria must match)."""
        query = self.client.table(CART_ITEMS_TABLE).select("*")
        if email is not None:
            query = query.eq("user_email", email)
        if product_id is not None:
            query = query.eq("product_id", product_id)
        result = await query.execute()
        return [CartItemRecord(**row) for row in result.data]

    async def create(self, email: str, product_id: str, quantity: int) -> CartItemRecord:
        """Create a new cart line."""
        data = {
            "user_email": email,
            "product_id": product_id,
            "quantity": quantity,
        }
        result = await self.client.table(CART_ITEMS_TABLE).insert(data).execute()
        return CartItemRecord(**result.data[0])

    async def update(self, line_id: str, quantity: int) -> CartItemRecord | None:
        """Set the quantity of a cart line."""
        result = (
            await self.client.table(CART_ITEMS_TABLE)
            .update({"quantity": quantity})
            .eq("id", line_id)
            .execute()
        )
        return CartItemRecord(**result.data[0]) if result.data else None

    async def delete(self, line_id: str) -> None:
        """Delete a cart line."""
        await self.client.table(CART_ITEMS_TABLE).delete().eq("id", line_id).execute()
