"""Cart storage backends.

One CartBackend interface, two implementations selected by identity:
- GuestCartBackend: JSON blob in a session-scoped local store
- AccountCartBackend: cart_items rows in the remote store, joined to products
"""
import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Protocol

from storefront.config import GUEST_CART_KEY
from storefront.db import RedisKeys, TTL
from storefront.errors import StoreReadFailure, StoreWriteFailure
from storefront.identity import ANONYMOUS, GUEST_OWNER, Identity
from storefront.logging import get_logger, sanitize_id_for_logging
from storefront.models import CartItemRecord, Product
from storefront.repositories import CartItemRepository, ProductRepository

from .models import CartLine, CartState, GuestLine

logger = get_logger(__name__)


class LocalStore(Protocol):
    """Session-scoped key-value store holding strings."""

    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str) -> None: ...

    async def remove(self, key: str) -> None: ...


class MemoryLocalStore:
    """Process-local store; lives as long as the session object holding it."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)


class RedisLocalStore:
    """Upstash Redis store namespaced to one guest session, with a 24h TTL."""

    def __init__(self, redis: Any, session_id: str, ttl: int = TTL.GUEST_CART):
        self.redis = redis
        self.session_id = session_id
        self.ttl = ttl

    def _key(self, key: str) -> str:
        return RedisKeys.guest_key(self.session_id, key)

    async def get(self, key: str) -> Optional[str]:
        return await self.redis.get(self._key(key))

    async def set(self, key: str, value: str) -> None:
        await self.redis.set(self._key(key), value, ex=self.ttl)

    async def remove(self, key: str) -> None:
        await self.redis.delete(self._key(key))


class CartBackend(ABC):
    """Where one identity's cart lives."""

    identity: Identity

    @abstractmethod
    async def load(self) -> CartState:
        """Read the full cart state. Raises StoreReadFailure."""

    @abstractmethod
    async def add(self, product: Product) -> None:
        """Add one unit of product. Raises StoreWriteFailure."""

    @abstractmethod
    async def set_quantity(self, product_id: str, quantity: int) -> bool:
        """Set a line's quantity; False if there is no such line."""

    @abstractmethod
    async def remove(self, product_id: str) -> bool:
        """Delete a line; False if there is no such line."""


class GuestCartBackend(CartBackend):
    """Guest cart kept as a JSON list in the local store."""

    identity = ANONYMOUS

    def __init__(self, store: LocalStore, key: str = GUEST_CART_KEY):
        self.store = store
        self.key = key
        # Serialises read-modify-write of the blob across awaits
        self._lock = asyncio.Lock()

    async def read_lines(self) -> List[GuestLine]:
        try:
            raw = await self.store.get(self.key)
        except Exception as e:
            raise StoreReadFailure(f"Guest cart unavailable: {e}") from e

        if not raw:
            return []

        try:
            entries = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Corrupted guest cart blob, treating as empty: {e}")
            return []
        if not isinstance(entries, list):
            logger.warning("Guest cart blob is not a list, treating as empty")
            return []

        # One line per product; duplicates from older blobs are folded together
        lines: Dict[str, GuestLine] = {}
        for entry in entries:
            try:
                line = GuestLine.from_dict(entry)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed guest cart entry: {e}")
                continue
            if line.quantity < 1:
                continue
            if line.product_id in lines:
                lines[line.product_id].quantity += line.quantity
            else:
                lines[line.product_id] = line
        return list(lines.values())

    async def write_lines(self, lines: List[GuestLine]) -> None:
        try:
            if lines:
                await self.store.set(self.key, json.dumps([line.to_dict() for line in lines]))
            else:
                await self.store.remove(self.key)
        except Exception as e:
            raise StoreWriteFailure(f"Guest cart unavailable: {e}") from e

    async def clear(self) -> None:
        async with self._lock:
            await self.write_lines([])

    async def discard(self, merged: List[GuestLine]) -> None:
        """Subtract lines that were already merged; anything added since stays."""
        async with self._lock:
            lines = await self.read_lines()
            merged_quantities = {line.product_id: line.quantity for line in merged}
            for line in lines:
                line.quantity -= merged_quantities.get(line.product_id, 0)
            await self.write_lines([line for line in lines if line.quantity > 0])

    async def load(self) -> CartState:
        guest_lines = await self.read_lines()
        return CartState(
            identity=ANONYMOUS,
            lines=[
                CartLine(
                    id=line.product_id,
                    owner=GUEST_OWNER,
                    product_id=line.product_id,
                    quantity=line.quantity,
                )
                for line in guest_lines
            ],
            products_by_id={line.product_id: line.snapshot() for line in guest_lines},
        )

    async def add(self, product: Product) -> None:
        async with self._lock:
            lines = await self.read_lines()
            existing = next((line for line in lines if line.product_id == product.id), None)
            if existing:
                existing.quantity += 1
            else:
                lines.append(GuestLine.from_product(product))
            await self.write_lines(lines)

    async def set_quantity(self, product_id: str, quantity: int) -> bool:
        async with self._lock:
            lines = await self.read_lines()
            existing = next((line for line in lines if line.product_id == product_id), None)
            if existing is None:
                return False
            existing.quantity = quantity
            await self.write_lines(lines)
            return True

    async def remove(self, product_id: str) -> bool:
        async with self._lock:
            lines = await self.read_lines()
            remaining = [line for line in lines if line.product_id != product_id]
            if len(remaining) == len(lines):
                return False
            await self.write_lines(remaining)
            return True


class AccountCartBackend(CartBackend):
    """Account cart in the remote store, joined against live products."""

    def __init__(self, email: str, cart_items: CartItemRepository, products: ProductRepository):
        self.identity = Identity.authenticated(email)
        self.email = email
        self.cart_items = cart_items
        self.products = products

    async def load(self) -> CartState:
        try:
            records = await self.cart_items.filter(email=self.email)
            product_ids = list(dict.fromkeys(record.product_id for record in records))
            products = await self.products.get_by_ids(product_ids) if product_ids else []
        except Exception as e:
            raise StoreReadFailure(f"Account cart unavailable: {e}") from e

        products_by_id = {product.id: product for product in products}
        missing = [pid for pid in product_ids if pid not in products_by_id]
        if missing:
            logger.info(
                f"{len(missing)} cart line(s) for {sanitize_id_for_logging(self.email)} "
                f"reference missing products"
            )

        return CartState(
            identity=self.identity,
            lines=[
                CartLine(
                    id=record.id,
                    owner=self.email,
                    product_id=record.product_id,
                    quantity=record.quantity,
                )
                for record in records
            ],
            products_by_id=products_by_id,
        )

    async def find_line(self, product_id: str) -> Optional[CartItemRecord]:
        try:
            records = await self.cart_items.filter(email=self.email, product_id=product_id)
        except Exception as e:
            raise StoreReadFailure(f"Account cart unavailable: {e}") from e
        return records[0] if records else None

    async def add(self, product: Product) -> None:
        existing = await self.find_line(product.id)
        try:
            if existing:
                await self.cart_items.update(existing.id, existing.quantity + 1)
            else:
                await self.cart_items.create(self.email, product.id, 1)
        except Exception as e:
            raise StoreWriteFailure(f"Failed to add {product.id}: {e}") from e

    async def set_quantity(self, product_id: str, quantity: int) -> bool:
        existing = await self.find_line(product_id)
        if existing is None:
            return False
        try:
            await self.cart_items.update(existing.id, quantity)
        except Exception as e:
            raise StoreWriteFailure(f"Failed to update {product_id}: {e}") from e
        return True

    async def remove(self, product_id: str) -> bool:
        existing = await self.find_line(product_id)
        if existing is None:
            return False
        try:
            await self.cart_items.delete(existing.id)
        except Exception as e:
            raise StoreWriteFailure(f"Failed to remove {product_id}: {e}") from e
        return True

    async def merge(self, guest_lines: List[GuestLine]) -> Dict[str, BaseException]:
        """
        Add guest lines on top of this account's cart.

        Existing line for the product -> quantity += guest quantity;
        otherwise a new line with the guest quantity. Per-line writes run
        concurrently and are all awaited.

        Returns:
            Failures by product id (empty when every line merged)

        Raises:
            StoreReadFailure: the account cart could not be read; nothing written
        """
        try:
            records = await self.cart_items.filter(email=self.email)
        except Exception as e:
            raise StoreReadFailure(f"Account cart unavailable: {e}") from e
        by_product = {record.product_id: record for record in records}

        def merge_line(line: GuestLine):
            existing = by_product.get(line.product_id)
            if existing:
                return self.cart_items.update(existing.id, existing.quantity + line.quantity)
            return self.cart_items.create(self.email, line.product_id, line.quantity)

        results = await asyncio.gather(
            *[merge_line(line) for line in guest_lines], return_exceptions=True
        )
        return {
            line.product_id: result
            for line, result in zip(guest_lines, results)
            if isinstance(result, BaseException)
        }
