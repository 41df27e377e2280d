# Overview: Pytest coverage for the stock ledger (locked reads, deltas, guards).

import pytest

from salonpos.models import Product, Shop
from salonpos.services import stock_service
from salonpos.services.concurrency import transaction
from salonpos.services.stock_service import InsufficientStock, StockError
from salonpos.validation import ValidationError


class TestLockAndFetch:

    def test_returns_locked_rows_keyed_by_id(self, db_session, shop_a, make_product):
        p1 = make_product(shop_a, name="Gel", quantity=4)
        p2 = make_product(shop_a, name="Wax", quantity=0)

        locked = stock_service.lock_and_fetch([p2.id, p1.id, p1.id], shop_a.id)

        assert set(locked) == {p1.id, p2.id}
        assert locked[p1.id].quantity == 4
        assert locked[p2.id].name == "Wax"
        db_session.rollback()

    def test_other_shop_products_are_absent(self, db_session, shop_a, shop_b, make_product):
        foreign = make_product(shop_b, quantity=3)

        assert stock_service.lock_and_fetch([foreign.id], shop_a.id) == {}
        db_session.rollback()

    def test_empty_request(self, db_session, shop_a):
        assert stock_service.lock_and_fetch([], shop_a.id) == {}


class TestCheckAvailability:

    def test_enough_stock_passes(self, db_session, shop_a, make_product):
        p = make_product(shop_a, quantity=3)
        locked = stock_service.lock_and_fetch([p.id], shop_a.id)

        stock_service.check_availability({p.id: 3}, locked)
        db_session.rollback()

    def test_first_shortage_raises(self, db_session, shop_a, make_product):
        ok = make_product(shop_a, name="Gel", quantity=10)
        short = make_product(shop_a, name="Wax", quantity=1)
        locked = stock_service.lock_and_fetch([ok.id, short.id], shop_a.id)

        with pytest.raises(InsufficientStock) as exc:
            stock_service.check_availability({ok.id: 2, short.id: 2}, locked)

        assert exc.value.product_name == "Wax"
        assert exc.value.available == 1
        assert exc.value.errors == {
            "products": 'The requested quantity for "Wax" exceeds the available stock (1).'
        }
        db_session.rollback()

    def test_unlocked_ids_are_skipped(self, db_session):
        stock_service.check_availability({999: 5}, {})


class TestApplyDelta:

    def test_decrement_and_increment(self, db_session, shop_a, make_product):
        p = make_product(shop_a, quantity=5)

        with transaction():
            assert stock_service.apply_delta(p.id, shop_a.id, 2) == 3
        with transaction():
            assert stock_service.apply_delta(p.id, shop_a.id, -4) == 7

        assert db_session.get(Product, p.id).quantity == 7

    def test_cannot_go_negative(self, db_session, shop_a, make_product):
        p = make_product(shop_a, name="Gel", quantity=2)

        with pytest.raises(InsufficientStock):
            with transaction():
                stock_service.apply_delta(p.id, shop_a.id, 3)

        assert db_session.get(Product, p.id).quantity == 2

    def test_can_reach_zero(self, db_session, shop_a, make_product):
        p = make_product(shop_a, quantity=2)

        with transaction():
            assert stock_service.apply_delta(p.id, shop_a.id, 2) == 0

    def test_other_shop_product_is_an_error(self, db_session, shop_a, shop_b, make_product):
        foreign = make_product(shop_b, quantity=5)

        with pytest.raises(StockError):
            with transaction():
                stock_service.apply_delta(foreign.id, shop_a.id, 1)

        assert db_session.get(Product, foreign.id).quantity == 5

    def test_failure_rolls_back_earlier_deltas(self, db_session, shop_a, make_product):
        first = make_product(shop_a, name="Gel", quantity=5)
        second = make_product(shop_a, name="Wax", quantity=1)

        with pytest.raises(InsufficientStock):
            with transaction():
                stock_service.apply_delta(first.id, shop_a.id, 2)
                stock_service.apply_delta(second.id, shop_a.id, 2)

        assert db_session.get(Product, first.id).quantity == 5
        assert db_session.get(Product, second.id).quantity == 1


class TestTransactionScope:

    def test_flushed_changes_join_the_transaction(self, db_session, shop_a, make_product):
        p = make_product(shop_a, quantity=1)
        product_id = p.id
        db_session.add(Shop(name="Annex"))
        db_session.flush()

        with transaction():
            stock_service.restock(product_id, shop_a.id, 2)

        db_session.expire_all()
        assert db_session.query(Shop).filter_by(name="Annex").count() == 1
        assert db_session.get(Product, product_id).quantity == 3

    def test_pending_changes_join_the_transaction(self, db_session, shop_a, make_product):
        p = make_product(shop_a, quantity=1)
        product_id = p.id
        db_session.add(Shop(name="Annex"))

        with transaction():
            stock_service.restock(product_id, shop_a.id, 2)

        db_session.expire_all()
        assert db_session.query(Shop).filter_by(name="Annex").count() == 1
        assert db_session.get(Product, product_id).quantity == 3


class TestRestock:

    def test_restock_adds_units(self, db_session, shop_a, make_product):
        p = make_product(shop_a, quantity=1)

        with transaction():
            assert stock_service.restock(p.id, shop_a.id, 9) == 10

    def test_restock_requires_positive_quantity(self, db_session, shop_a, make_product):
        p = make_product(shop_a, quantity=1)

        with pytest.raises(ValidationError) as exc:
            stock_service.restock(p.id, shop_a.id, 0)

        assert exc.value.field == "quantity"
