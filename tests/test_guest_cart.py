"""Tests for the guest cart store and cart normalization."""
import re

import pytest

from storefront_session.cart import Cart, CartCache, GuestCartStore
from storefront_session.cart.guest import generate_session_id
from storefront_session.storage import GUEST_SESSION_KEY

from conftest import make_cart


class TestSessionId:
    def test_format(self):
        assert re.fullmatch(r"guest_\d{13}_[0-9a-z]{9}", generate_session_id())

    def test_unique(self):
        assert generate_session_id() != generate_session_id()

    def test_ensure_reuses_existing(self, store):
        guest = GuestCartStore(store)
        first = guest.ensure_session_id()
        assert guest.ensure_session_id() == first
        assert store.get(GUEST_SESSION_KEY)["sessionId"] == first

    def test_no_session_until_needed(self, store):
        guest = GuestCartStore(store)
        assert guest.session_id is None
        assert guest.get_cart() == []


class TestGuestCartStore:
    def test_add_merges_by_product_id(self, store):
        guest = GuestCartStore(store)
        guest.add_item("P1", 2, unit_price=10.0)
        guest.add_item("P2", 1, unit_price=5.0)
        guest.add_item("P1", 1)

        cart = guest.get_cart()
        assert [(line.product_id, line.quantity) for line in cart] == [("P1", 3), ("P2", 1)]
        assert guest.item_count == 4
        assert guest.total_price == pytest.approx(35.0)

    def test_persisted_shape(self, store):
        guest = GuestCartStore(store)
        guest.add_item("P1", 2, unit_price=1.5)
        raw = store.get(GUEST_SESSION_KEY)
        assert raw["cart"] == [{"productId": "P1", "quantity": 2, "unitPrice": 1.5}]

    @pytest.mark.parametrize("quantity", [0, -1, 100])
    def test_add_rejects_out_of_range_quantity(self, store, quantity):
        with pytest.raises(ValueError):
            GuestCartStore(store).add_item("P1", quantity)

    def test_merge_above_limit_leaves_cart_unchanged(self, store):
        guest = GuestCartStore(store)
        guest.add_item("P1", 98)
        with pytest.raises(ValueError):
            guest.add_item("P1", 2)
        assert guest.get_cart()[0].quantity == 98

    def test_update_quantity(self, store):
        guest = GuestCartStore(store)
        guest.add_item("P1", 2)
        guest.update_quantity("P1", 5)
        assert guest.get_cart()[0].quantity == 5

    def test_update_to_zero_removes(self, store):
        guest = GuestCartStore(store)
        guest.add_item("P1", 2)
        guest.add_item("P2", 1)
        guest.update_quantity("P1", 0)
        assert [line.product_id for line in guest.get_cart()] == ["P2"]

    def test_update_missing_line_raises(self, store):
        guest = GuestCartStore(store)
        guest.add_item("P1", 1)
        with pytest.raises(KeyError):
            guest.update_quantity("P9", 1)

    def test_remove_item(self, store):
        guest = GuestCartStore(store)
        guest.add_item("P1", 1)
        assert guest.remove_item("P1") == []
        assert guest.remove_item("P1") == []

    def test_clear_drops_session_id(self, store):
        guest = GuestCartStore(store)
        guest.add_item("P1", 1)
        guest.clear()
        assert guest.session_id is None
        assert store.get(GUEST_SESSION_KEY) is None

    def test_malformed_record_discarded(self, store):
        store.set(GUEST_SESSION_KEY, {"cart": "not-a-list"})
        guest = GuestCartStore(store)
        assert guest.get_cart() == []
        assert store.get(GUEST_SESSION_KEY) is None


class TestCartFromApi:
    def test_enveloped_cart(self):
        cart = make_cart(("P1", 2, 10.0), ("P2", 1, 5.0))
        assert cart.total_items == 3
        assert cart.total_price == pytest.approx(25.0)
        assert not cart.is_empty

    def test_bare_cart_with_legacy_totals(self):
        cart = Cart.from_api({
            "items": [{"product_id": "P1", "quantity": 1, "unit_price": 4.0}],
            "items_count": 1,
            "final_price": 3.5,
        })
        assert cart.total_items == 1
        assert cart.total_price == 3.5

    def test_discount_from_envelope(self):
        cart = Cart.from_api({"data": {"cart": {"items": []}, "discount_amount": 2.5}})
        assert cart.discount_amount == 2.5
        assert cart.is_empty

    def test_garbage_is_empty(self):
        assert Cart.from_api(None).is_empty
        assert Cart.from_api({"data": "nope"}).total_items == 0

    def test_items_without_product_id_dropped(self):
        cart = Cart.from_api({"items": [{"quantity": 1}, {"productId": "P1", "quantity": 2}]})
        assert [i.product_id for i in cart.items] == ["P1"]

    def test_numeric_strings_are_coerced(self):
        cart = Cart.from_api({"data": {"items": [{"product_id": "P9", "quantity": "2.0", "unit_price": "1.5"}]}})
        assert cart.items[0].quantity == 2
        assert cart.total_items == 2
        assert cart.total_price == pytest.approx(3.0)

    def test_unreadable_lines_skipped(self):
        cart = Cart.from_api({"items": [
            {"product_id": "P1", "quantity": "lots"},
            {"product_id": "P2", "quantity": 1, "unit_price": [1]},
            {"product_id": "P3", "quantity": 1},
        ]})
        assert [i.product_id for i in cart.items] == ["P3"]


class TestCartCache:
    def test_starts_stale(self):
        assert CartCache().get() is None

    def test_set_then_invalidate(self):
        cache = CartCache()
        cart = make_cart(("P1", 1, 1.0))
        cache.set(cart)
        assert cache.get() is cart
        cache.invalidate()
        assert cache.get() is None
        assert cache.is_stale
