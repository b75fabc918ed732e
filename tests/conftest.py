"""Pytest configuration and fixtures"""
import asyncio
import os
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set
from unittest.mock import AsyncMock, Mock

import pytest

# Set test environment variables
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test_key")
os.environ.setdefault("UPSTASH_REDIS_REST_URL", "https://test.upstash.io")
os.environ.setdefault("UPSTASH_REDIS_REST_TOKEN", "test_token")

from storefront.cart import CartStateManager, MemoryLocalStore
from storefront.errors import IdentityUnavailable
from storefront.events import CartEvents
from storefront.identity import Identity
from storefront.models import CartItemRecord, Product


class FakeIdentityProvider:
    """Identity provider returning a fixed email, or guest when None."""

    def __init__(self, email: Optional[str] = None, error: Optional[Exception] = None):
        self.email = email
        self.error = error

    async def current_identity(self) -> Identity:
        if self.error is not None:
            raise self.error
        if not self.email:
            raise IdentityUnavailable("not logged in")
        return Identity.authenticated(self.email)

    def login_url(self, return_url: str) -> str:
        return f"https://login.test/?redirect_to={return_url}"


class FakeProductRepository:
    def __init__(self, products: List[Product]):
        self.by_id = {p.id: p for p in products}
        self.fail = False
        self.get_by_ids_calls: List[List[str]] = []

    async def list(self) -> List[Product]:
        if self.fail:
            raise RuntimeError("catalog down")
        return list(self.by_id.values())

    async def get_by_ids(self, product_ids: List[str]) -> List[Product]:
        if self.fail:
            raise RuntimeError("catalog down")
        self.get_by_ids_calls.append(list(product_ids))
        return [self.by_id[pid] for pid in product_ids if pid in self.by_id]

    async def get_by_id(self, product_id: str) -> Optional[Product]:
        return self.by_id.get(product_id)


class FakeCartItemRepository:
    """In-memory cart_items table with failure injection."""

    def __init__(self):
        self.rows: Dict[str, CartItemRecord] = {}
        self._next_id = 1
        self.fail_filter = False
        self.fail_create_for: Set[str] = set()
        self.fail_update_for: Set[str] = set()
        self.fail_delete = False
        self.update_gate: Optional[asyncio.Event] = None

    def seed(self, email: str, product_id: str, quantity: int) -> CartItemRecord:
        record = CartItemRecord(
            id=f"line-{self._next_id}", user_email=email, product_id=product_id, quantity=quantity
        )
        self._next_id += 1
        self.rows[record.id] = record
        return record

    def quantities(self, email: str) -> Dict[str, int]:
        return {r.product_id: r.quantity for r in self.rows.values() if r.user_email == email}

    async def filter(self, email=None, product_id=None) -> List[CartItemRecord]:
        await asyncio.sleep(0)
        if self.fail_filter:
            raise RuntimeError("store down")
        return [
            r.model_copy()
            for r in self.rows.values()
            if (email is None or r.user_email == email)
            and (product_id is None or r.product_id == product_id)
        ]

    async def create(self, email: str, product_id: str, quantity: int) -> CartItemRecord:
        await asyncio.sleep(0)
        if product_id in self.fail_create_for:
            raise RuntimeError("insert failed")
        return self.seed(email, product_id, quantity)

    async def update(self, line_id: str, quantity: int) -> Optional[CartItemRecord]:
        if self.update_gate is not None:
            await self.update_gate.wait()
        await asyncio.sleep(0)
        row = self.rows.get(line_id)
        if row is None:
            return None
        if row.product_id in self.fail_update_for:
            raise RuntimeError("update failed")
        row.quantity = quantity
        return row.model_copy()

    async def delete(self, line_id: str) -> None:
        await asyncio.sleep(0)
        if self.fail_delete:
            raise RuntimeError("delete failed")
        self.rows.pop(line_id, None)


@pytest.fixture
def mock_supabase_client():
    """Mock async Supabase client"""
    client = Mock()

    table_mock = Mock()
    table_mock.select.return_value = table_mock
    table_mock.insert.return_value = table_mock
    table_mock.update.return_value = table_mock
    table_mock.delete.return_value = table_mock
    table_mock.eq.return_value = table_mock
    table_mock.in_.return_value = table_mock
    table_mock.execute = AsyncMock(return_value=Mock(data=[]))

    client.table.return_value = table_mock
    client.auth = Mock()
    client.auth.get_user = AsyncMock()

    return client


@pytest.fixture
def sample_products():
    """Catalog used across cart and catalog tests"""
    return [
        Product(
            id="prod-bag",
            name="Leather Tote",
            brand="Maison Noir",
            category="bags",
            price="450.00",
            stock=3,
            rating=4.8,
            description="Hand-stitched calfskin tote",
            image_url="https://img.test/tote.jpg",
            created_date=datetime(2025, 3, 1, tzinfo=timezone.utc),
        ),
        Product(
            id="prod-scarf",
            name="Silk Scarf",
            brand="Atelier Soie",
            category="accessories",
            price="120.00",
            stock=0,
            rating=4.5,
            description="Printed mulberry silk",
            image_url="https://img.test/scarf.jpg",
            created_date=datetime(2025, 5, 1, tzinfo=timezone.utc),
        ),
        Product(
            id="prod-watch",
            name="Chronograph Watch",
            brand="Maison Noir",
            category="watches",
            price="1000.00",
            stock=1,
            rating=None,
            description="Swiss movement",
            image_url="https://img.test/watch.jpg",
            created_date=None,
        ),
        Product(
            id="prod-belt",
            name="Belt",
            brand="Atelier Soie",
            category="accessories",
            price="85.50",
            stock=10,
            rating=4.5,
            description="Reversible leather belt",
            image_url="https://img.test/belt.jpg",
            created_date=datetime(2024, 12, 1, tzinfo=timezone.utc),
        ),
    ]


@pytest.fixture
def product_repo(sample_products):
    return FakeProductRepository(sample_products)


@pytest.fixture
def cart_repo():
    return FakeCartItemRepository()


@pytest.fixture
def local_store():
    return MemoryLocalStore()


@pytest.fixture
def identity_provider():
    return FakeIdentityProvider()


@pytest.fixture
def provider_for():
    """Per-request identity provider: provider_for(email) or provider_for() for a guest"""
    return FakeIdentityProvider


@pytest.fixture
def events():
    return CartEvents()


@pytest.fixture
def cart_manager(identity_provider, product_repo, cart_repo, local_store, events):
    """Cart manager wired to in-memory stores (guest until identity_provider.email is set)"""
    return CartStateManager(
        identity_provider=identity_provider,
        products=product_repo,
        cart_items=cart_repo,
        local_store=local_store,
        events=events,
    )


@pytest.fixture
def event_log(events):
    """Owners of every cart.changed emitted during the test"""
    log: List[str] = []
    events.subscribe(log.append)
    return log
