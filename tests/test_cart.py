"""
Tests for cart models and storage backends
"""

import json
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from storefront.cart import (
    AccountCartBackend,
    CartLine,
    GuestCartBackend,
    GuestLine,
    MemoryLocalStore,
    RedisLocalStore,
    compute_totals,
)
from storefront.config import GUEST_CART_KEY
from storefront.db import TTL
from storefront.errors import StoreReadFailure, StoreWriteFailure
from storefront.models import Product


class TestComputeTotals:
    """Tests for compute_totals."""

    def test_subtotal_tax_total(self):
        """Test 8% tax on top of the subtotal."""
        lines = [
            CartLine(id="1", owner="guest", product_id="a", quantity=2),
            CartLine(id="2", owner="guest", product_id="b", quantity=1),
        ]
        products = {
            "a": Product(id="a", name="A", price="100.00"),
            "b": Product(id="b", name="B", price="50.00"),
        }

        totals = compute_totals(lines, products)

        assert totals.subtotal == Decimal("250.00")
        assert totals.tax == Decimal("20.00")
        assert totals.total == Decimal("270.00")
        assert totals.shipping == Decimal("0")

    def test_unresolved_lines_contribute_zero(self):
        """Test lines whose product is missing are skipped."""
        lines = [
            CartLine(id="1", owner="me@test.com", product_id="a", quantity=3),
            CartLine(id="2", owner="me@test.com", product_id="gone", quantity=5),
        ]
        products = {"a": Product(id="a", name="A", price="10.00")}

        totals = compute_totals(lines, products)

        assert totals.subtotal == Decimal("30.00")
        assert totals.total == Decimal("32.40")

    def test_empty_cart(self):
        totals = compute_totals([], {})
        assert totals.subtotal == Decimal("0")
        assert totals.total == Decimal("0")

    def test_rounding_to_cents(self):
        lines = [CartLine(id="1", owner="guest", product_id="a", quantity=1)]
        totals = compute_totals(lines, {"a": Product(id="a", name="A", price="85.55")})
        # 85.55 * 0.08 = 6.844
        assert totals.tax == Decimal("6.84")
        assert totals.total == Decimal("92.39")

    def test_to_dict_uses_floats(self):
        lines = [CartLine(id="1", owner="guest", product_id="a", quantity=1)]
        data = compute_totals(lines, {"a": Product(id="a", name="A", price="10")}).to_dict()
        assert data["subtotal"] == 10.0
        assert data["tax"] == 0.8
        assert data["shipping"] == 0.0


class TestGuestLine:
    """Tests for GuestLine snapshot entries."""

    def test_from_product_snapshots_display_fields(self, sample_products):
        line = GuestLine.from_product(sample_products[0])

        assert line.quantity == 1
        assert line.name == "Leather Tote"
        assert line.price == Decimal("450.00")
        assert line.brand == "Maison Noir"

        product = line.snapshot()
        assert product.id == "prod-bag"
        assert product.image_url == "https://img.test/tote.jpg"

    def test_from_dict_tolerates_missing_snapshot_fields(self):
        line = GuestLine.from_dict({"product_id": 7, "quantity": "2"})
        assert line.product_id == "7"
        assert line.quantity == 2
        assert line.price == Decimal("0")

    def test_from_dict_non_finite_price_is_zero(self):
        line = GuestLine.from_dict({"product_id": "a", "quantity": 1, "price": "NaN"})
        assert line.price == Decimal("0")


class TestGuestCartBackend:
    """Tests for the local-store cart."""

    @pytest.mark.asyncio
    async def test_empty_store_is_empty_cart(self):
        backend = GuestCartBackend(MemoryLocalStore())
        state = await backend.load()
        assert state.lines == []
        assert not state.identity.is_authenticated

    @pytest.mark.asyncio
    async def test_load_uses_snapshots_and_product_id_as_line_id(self, sample_products):
        store = MemoryLocalStore()
        backend = GuestCartBackend(store)
        await backend.add(sample_products[0])

        state = await backend.load()

        assert [line.id for line in state.lines] == ["prod-bag"]
        assert state.lines[0].owner == "guest"
        assert state.products_by_id["prod-bag"].name == "Leather Tote"

    @pytest.mark.asyncio
    async def test_discard_subtracts_merged_lines(self, sample_products):
        store = MemoryLocalStore()
        backend = GuestCartBackend(store)
        await backend.add(sample_products[0])
        merged = await backend.read_lines()
        await backend.add(sample_products[0])
        await backend.add(sample_products[3])

        await backend.discard(merged)

        assert [(line.product_id, line.quantity) for line in await backend.read_lines()] == [
            ("prod-bag", 1),
            ("prod-belt", 1),
        ]

        await backend.discard(await backend.read_lines())
        assert await store.get(GUEST_CART_KEY) is None

    @pytest.mark.asyncio
    async def test_add_twice_increments(self, sample_products):
        store = MemoryLocalStore()
        backend = GuestCartBackend(store)

        await backend.add(sample_products[0])
        await backend.add(sample_products[0])

        entries = json.loads(await store.get(GUEST_CART_KEY))
        assert len(entries) == 1
        assert entries[0]["quantity"] == 2

    @pytest.mark.asyncio
    async def test_corrupted_blob_is_empty(self):
        store = MemoryLocalStore({GUEST_CART_KEY: "{not json"})
        lines = await GuestCartBackend(store).read_lines()
        assert lines == []

    @pytest.mark.asyncio
    async def test_non_list_blob_is_empty(self):
        store = MemoryLocalStore({GUEST_CART_KEY: json.dumps({"product_id": "a"})})
        assert await GuestCartBackend(store).read_lines() == []

    @pytest.mark.asyncio
    async def test_malformed_entries_skipped_and_duplicates_folded(self):
        blob = [
            {"product_id": "a", "quantity": 1, "name": "A", "price": 10},
            {"quantity": 4},
            "garbage",
            {"product_id": "b", "quantity": 0},
            {"product_id": "a", "quantity": 2, "name": "A", "price": 10},
        ]
        store = MemoryLocalStore({GUEST_CART_KEY: json.dumps(blob)})

        lines = await GuestCartBackend(store).read_lines()

        assert [(line.product_id, line.quantity) for line in lines] == [("a", 3)]

    @pytest.mark.asyncio
    async def test_remove_last_line_clears_key(self, sample_products):
        store = MemoryLocalStore()
        backend = GuestCartBackend(store)
        await backend.add(sample_products[0])

        assert await backend.remove("prod-bag") is True
        assert await store.get(GUEST_CART_KEY) is None

    @pytest.mark.asyncio
    async def test_set_quantity_unknown_line(self):
        backend = GuestCartBackend(MemoryLocalStore())
        assert await backend.set_quantity("nope", 3) is False

    @pytest.mark.asyncio
    async def test_store_failures_are_wrapped(self, sample_products):
        store = AsyncMock()
        store.get.side_effect = ConnectionError("redis down")
        backend = GuestCartBackend(store)

        with pytest.raises(StoreReadFailure):
            await backend.load()

        store.get.side_effect = None
        store.get.return_value = None
        store.set.side_effect = ConnectionError("redis down")
        with pytest.raises(StoreWriteFailure):
            await backend.add(sample_products[0])


class TestRedisLocalStore:
    """Tests for the Upstash-backed local store."""

    @pytest.mark.asyncio
    async def test_keys_are_namespaced_per_session(self):
        redis = AsyncMock()
        redis.get.return_value = "[]"
        store = RedisLocalStore(redis, "session-abc")

        assert await store.get("anonymousCart") == "[]"
        await store.set("anonymousCart", "[1]")
        await store.remove("anonymousCart")

        redis.get.assert_awaited_once_with("guest:session-abc:anonymousCart")
        redis.set.assert_awaited_once_with(
            "guest:session-abc:anonymousCart", "[1]", ex=TTL.GUEST_CART
        )
        redis.delete.assert_awaited_once_with("guest:session-abc:anonymousCart")


class TestAccountCartBackend:
    """Tests for the remote-store cart."""

    @pytest.mark.asyncio
    async def test_load_joins_products_in_one_batch(self, cart_repo, product_repo):
        cart_repo.seed("me@test.com", "prod-bag", 1)
        cart_repo.seed("me@test.com", "prod-scarf", 2)
        cart_repo.seed("other@test.com", "prod-watch", 1)
        backend = AccountCartBackend("me@test.com", cart_repo, product_repo)

        state = await backend.load()

        assert {line.product_id for line in state.lines} == {"prod-bag", "prod-scarf"}
        assert product_repo.get_by_ids_calls == [["prod-bag", "prod-scarf"]]
        assert set(state.products_by_id) == {"prod-bag", "prod-scarf"}

    @pytest.mark.asyncio
    async def test_missing_product_dropped_from_view_not_store(self, cart_repo, product_repo):
        cart_repo.seed("me@test.com", "prod-bag", 1)
        cart_repo.seed("me@test.com", "prod-deleted", 4)
        backend = AccountCartBackend("me@test.com", cart_repo, product_repo)

        state = await backend.load()

        assert [line.product_id for line in state.visible_lines] == ["prod-bag"]
        assert cart_repo.quantities("me@test.com") == {"prod-bag": 1, "prod-deleted": 4}

    @pytest.mark.asyncio
    async def test_read_failure_wrapped(self, cart_repo, product_repo):
        cart_repo.fail_filter = True
        backend = AccountCartBackend("me@test.com", cart_repo, product_repo)
        with pytest.raises(StoreReadFailure):
            await backend.load()

    @pytest.mark.asyncio
    async def test_merge_reports_failures_per_product(self, cart_repo, product_repo):
        cart_repo.fail_create_for = {"b"}
        backend = AccountCartBackend("me@test.com", cart_repo, product_repo)

        failures = await backend.merge([
            GuestLine(product_id="a", quantity=1),
            GuestLine(product_id="b", quantity=1),
        ])

        assert list(failures) == ["b"]
        assert cart_repo.quantities("me@test.com") == {"a": 1}
