"""
Unit Tests: LocalCartStore

Tests for cartsync/repos/local_cart.py covering:
- get() - creation, reuse, expiry, corrupted / unavailable storage
- save() - timestamps and TTL field
- add_item() / update_item() / remove_item() / clear()
- coupons and adopt()
"""

import json
from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from cartsync.domain.schemas import Cart, CartItem, NewCartItem
from cartsync.exceptions import StoreUnavailableError
from cartsync.repos.local_cart import LocalCartStore


def _without_updated_at(cart: Cart) -> dict:
    wire = cart.to_wire()
    wire.pop("updatedAt")
    return wire


class TestGet:

    def test_creates_empty_guest_cart(self, local_store, clock):
        cart = local_store.get()

        assert cart.items == []
        assert cart.is_guest
        assert cart.session_id
        assert cart.expires_at == clock.now + timedelta(hours=24)
        assert cart.shipping == Decimal("10")

    def test_get_is_idempotent(self, local_store):
        first = local_store.get()
        second = local_store.get()

        assert _without_updated_at(first) == _without_updated_at(second)

    def test_expired_cart_is_replaced(self, local_store, clock):
        stale = local_store.add_item({"productId": "p1", "price": 5, "quantity": 1})

        clock.advance(hours=24, seconds=1)
        fresh = local_store.get()

        assert fresh.id != stale.id
        assert fresh.items == []

    def test_cart_within_ttl_is_kept(self, local_store, clock):
        cart = local_store.add_item({"productId": "p1", "price": 5, "quantity": 1})

        clock.advance(hours=23)

        assert local_store.get().id == cart.id

    def test_ttl_runs_from_last_save(self, local_store, clock):
        cart = local_store.add_item({"productId": "p1", "price": 5, "quantity": 1})
        clock.advance(hours=20)
        local_store.add_item({"productId": "p2", "price": 5, "quantity": 1})
        clock.advance(hours=20)

        assert local_store.get().id == cart.id

    def test_corrupted_content_is_treated_as_missing(self, local_store, memory_store):
        memory_store.set("cart", "{not json")

        cart = local_store.get()

        assert cart.items == []
        assert json.loads(memory_store.get("cart"))["id"] == cart.id

    def test_missing_ttl_field_means_expired(self, local_store, memory_store):
        cart = local_store.get()
        memory_store.remove("cart:expiresAt")

        assert local_store.get().id != cart.id

    def test_corrupted_ttl_field_means_expired(self, local_store, memory_store):
        cart = local_store.get()
        memory_store.set("cart:expiresAt", "yesterday")

        assert local_store.get().id != cart.id

    def test_customer_cart_never_expires(self, local_store, clock):
        local_store.save(Cart(customer_id=7))

        clock.advance(days=30)
        cart = local_store.get()

        assert cart.customer_id == 7
        assert cart.expires_at is None

    def test_unavailable_storage_synthesizes_cart(self, clock):
        store = MagicMock()
        store.get.side_effect = StoreUnavailableError("cart", "down")
        store.set.side_effect = StoreUnavailableError("cart", "down")

        cart = LocalCartStore(store, clock=clock).get()

        assert cart.items == []
        assert cart.is_guest

    def test_works_on_redis(self, redis_store, fake_redis, clock):
        local = LocalCartStore(redis_store, key="cart:guest", clock=clock)

        cart = local.add_item({"productId": "p1", "price": 15, "quantity": 2})

        assert local.get().id == cart.id
        assert fake_redis.ttl("cart:guest") > 0
        assert fake_redis.get("cart:guest:expiresAt") == cart.expires_at.isoformat()


class TestSave:

    def test_stamps_updated_at_and_expiry(self, local_store, clock):
        cart = Cart(updated_at=datetime(2020, 1, 1, tzinfo=clock.now.tzinfo))

        saved = local_store.save(cart)

        assert saved.updated_at == clock.now
        assert saved.expires_at == clock.now + timedelta(hours=24)

    def test_round_trip(self, local_store):
        cart = local_store.add_item({"productId": "p1", "price": "19.99", "quantity": 3})

        saved = local_store.save(cart)
        loaded = local_store.get()

        assert loaded.to_wire()["items"] == saved.to_wire()["items"]
        assert (loaded.subtotal, loaded.tax, loaded.shipping, loaded.total) == (
            saved.subtotal, saved.tax, saved.shipping, saved.total
        )

    def test_round_trip_keeps_exact_amounts(self, local_store, memory_store):
        price = Decimal("0.1234567890123456789")
        local_store.save(Cart(items=[CartItem(product_id="p1", price=price, quantity=1)]))

        loaded = local_store.get()

        assert loaded.items[0].price == price
        assert loaded.items[0].total_price == price
        assert "0.1234567890123456789" in memory_store.get("cart")

    def test_storage_failure_still_returns_cart(self, clock):
        store = MagicMock()
        store.get.return_value = None
        store.set.side_effect = StoreUnavailableError("cart", "read-only")

        saved = LocalCartStore(store, clock=clock).save(Cart())

        assert saved.updated_at == clock.now


class TestAddItem:

    def test_add_to_empty_cart(self, local_store):
        """15 x 2 below free shipping threshold."""
        cart = local_store.add_item({"productId": "p1", "quantity": 2, "price": 15})

        assert len(cart.items) == 1
        line = cart.items[0]
        assert line.quantity == 2
        assert line.total_price == Decimal("30")
        assert cart.subtotal == Decimal("30")
        assert cart.shipping == Decimal("10")
        assert cart.tax == Decimal("2.4")
        assert cart.total == Decimal("42.4")

    def test_free_shipping_above_threshold(self, local_store):
        cart = local_store.add_item({"productId": "p1", "quantity": 3, "price": 50})

        assert cart.subtotal == Decimal("150")
        assert cart.shipping == 0
        assert cart.total == cart.subtotal + cart.tax

    def test_same_product_and_variant_merges_line(self, local_store):
        local_store.add_item({"productId": "p1", "quantity": 1, "price": 10, "color": "red"})
        cart = local_store.add_item({"productId": "p1", "quantity": 2, "price": 10, "color": "red"})

        assert len(cart.items) == 1
        assert cart.items[0].quantity == 3
        assert cart.items[0].total_price == Decimal("30")

    def test_merged_line_keeps_snapshot_price(self, local_store):
        local_store.add_item({"productId": "p1", "quantity": 1, "price": 10})
        cart = local_store.add_item({"productId": "p1", "quantity": 1, "price": 12})

        assert cart.items[0].price == Decimal("10")

    def test_different_variant_is_new_line(self, local_store):
        local_store.add_item({"productId": "p1", "quantity": 1, "price": 10, "size": "M"})
        cart = local_store.add_item({"productId": "p1", "quantity": 1, "price": 10, "size": "L"})

        assert len(cart.items) == 2
        assert cart.items[0].id != cart.items[1].id

    def test_accepts_new_cart_item_model(self, local_store, clock):
        cart = local_store.add_item(NewCartItem(product_id="p5", quantity=1, price=Decimal("3")))

        assert cart.items[0].name == "Product p5"
        assert cart.items[0].added_at == clock.now

    @pytest.mark.parametrize("quantity", [0, -1, "two"])
    def test_non_positive_quantity_adds_nothing(self, local_store, quantity):
        before = local_store.add_item({"productId": "p1", "quantity": 1, "price": 10})

        cart = local_store.add_item({"productId": "p1", "quantity": quantity, "price": 10})

        assert cart.items == before.items
        assert cart.total == before.total

    def test_persists(self, local_store, memory_store):
        cart = local_store.add_item({"productId": "p1", "quantity": 1, "price": 10})

        stored = json.loads(memory_store.get("cart"))
        assert stored["items"][0]["id"] == cart.items[0].id
        assert stored["subtotal"] == 10


class TestUpdateItem:

    @pytest.fixture
    def cart(self, local_store):
        local_store.add_item({"productId": "p1", "quantity": 1, "price": 10})
        return local_store.add_item({"productId": "p2", "quantity": 1, "price": 5})

    def test_sets_quantity(self, local_store, cart):
        updated = local_store.update_item(cart.items[0].id, 4)

        assert updated.items[0].quantity == 4
        assert updated.items[0].total_price == Decimal("40")
        assert updated.subtotal == Decimal("45")

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_non_positive_quantity_removes_line(self, local_store, cart, quantity):
        updated = local_store.update_item(cart.items[0].id, quantity)

        assert [i.product_id for i in updated.items] == ["p2"]
        assert updated.subtotal == Decimal("5")
        assert updated.total == Decimal("5") + Decimal("0.4") + Decimal("10")

    def test_unknown_item_is_noop(self, local_store, cart):
        updated = local_store.update_item("item-missing", 3)

        assert [i.quantity for i in updated.items] == [1, 1]


class TestRemoveItem:

    def test_removes_line(self, local_store):
        cart = local_store.add_item({"productId": "p1", "quantity": 1, "price": 10})

        updated = local_store.remove_item(cart.items[0].id)

        assert updated.items == []
        assert updated.subtotal == 0

    def test_absent_item_is_noop(self, local_store):
        cart = local_store.add_item({"productId": "p1", "quantity": 1, "price": 10})

        updated = local_store.remove_item("item-missing")

        assert updated.items == cart.items


class TestClear:

    def test_new_empty_cart_with_new_id(self, local_store):
        cart = local_store.add_item({"productId": "p1", "quantity": 1, "price": 10})

        cleared = local_store.clear()

        assert cleared.id != cart.id
        assert cleared.items == []
        assert local_store.get().id == cleared.id

    def test_customer_stays_customer(self, local_store):
        local_store.save(Cart(customer_id="c-1", items=[CartItem(product_id="p1", quantity=1)]))

        cleared = local_store.clear()

        assert cleared.customer_id == "c-1"
        assert cleared.expires_at is None


class TestCouponsAndAdopt:

    def test_apply_coupon_offline_leaves_cart_unchanged(self, local_store):
        cart = local_store.add_item({"productId": "p1", "quantity": 1, "price": 10})

        result = local_store.apply_coupon("SAVE10")

        assert result.discount == 0
        assert result.total == cart.total

    def test_remove_coupon_resets_discount(self, local_store):
        local_store.save(Cart(
            items=[CartItem(product_id="p1", price=Decimal("50"), quantity=1)],
            discount=Decimal("5"),
            coupon_code="FLAT5",
        ))

        cart = local_store.remove_coupon()

        assert cart.discount == 0
        assert cart.coupon_code is None
        assert cart.total == Decimal("50") + Decimal("4") + Decimal("10")

    def test_adopt_keeps_remote_totals(self, local_store):
        remote = Cart(
            id="cart-remote",
            customer_id=3,
            items=[CartItem(product_id="p1", price=Decimal("10"), quantity=1)],
            subtotal=Decimal("10"),
            total=Decimal("1"),
        )

        local_store.adopt(remote)
        loaded = local_store.get()

        assert loaded.id == "cart-remote"
        assert loaded.total == Decimal("1")
