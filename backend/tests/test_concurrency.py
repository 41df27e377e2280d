# Overview: Threaded checkout/edit tests against a file-backed SQLite database.

"""
Concurrency tests for the stock ledger.

Each worker runs in its own thread with its own app context (and session),
so the database lock is the only thing serializing them.
"""
import os
import tempfile
import threading
import unittest
from datetime import date
from decimal import Decimal

from salonpos import create_app
from salonpos.extensions import db
from salonpos.models import Product, Sale, Shop
from salonpos.services import sales_service
from salonpos.services.stock_service import InsufficientStock


class ConcurrencyTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "concurrency.db")
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "SALES_LOCK_RETRY_ATTEMPTS": 5,
        })

        with self.app.app_context():
            db.drop_all()
            db.create_all()

            shop = Shop(name="Concurrency Salon")
            db.session.add(shop)
            db.session.commit()
            self.shop_id = shop.id

            gel = Product(shop_id=self.shop_id, name="Gel", price=Decimal("100.00"), quantity=5)
            wax = Product(shop_id=self.shop_id, name="Wax", price=Decimal("100.00"), quantity=5)
            db.session.add_all([gel, wax])
            db.session.commit()
            self.gel_id = gel.id
            self.wax_id = wax.id

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _payload(self, product_id, quantity):
        return {
            "customer_name": "Concurrent",
            "customer_phone": "770000000",
            "sale_date": date(2025, 1, 13).isoformat(),
            "products": [{"product_id": product_id, "quantity": quantity}],
        }

    def _run(self, targets):
        barrier = threading.Barrier(len(targets))
        results = []
        lock = threading.Lock()

        def worker(fn):
            with self.app.app_context():
                try:
                    barrier.wait()
                    fn()
                    with lock:
                        results.append("ok")
                except Exception as exc:
                    with lock:
                        results.append(exc)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker, args=(fn,)) for fn in targets]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return results

    def _quantity(self, product_id):
        with self.app.app_context():
            return db.session.get(Product, product_id).quantity

    def test_concurrent_checkouts_never_oversell(self):
        def checkout():
            sales_service.create_sale(self.shop_id, self._payload(self.gel_id, 2))

        results = self._run([checkout] * 6)

        ok = results.count("ok")
        failures = [r for r in results if r != "ok"]
        remaining = self._quantity(self.gel_id)

        self.assertEqual(ok, 2)
        self.assertTrue(all(isinstance(r, InsufficientStock) for r in failures), failures)
        self.assertGreaterEqual(remaining, 0)
        self.assertEqual(remaining, 5 - 2 * ok)
        with self.app.app_context():
            self.assertEqual(db.session.query(Sale).count(), ok)

    def test_disjoint_products_both_succeed(self):
        def buy_gel():
            sales_service.create_sale(self.shop_id, self._payload(self.gel_id, 5))

        def buy_wax():
            sales_service.create_sale(self.shop_id, self._payload(self.wax_id, 5))

        results = self._run([buy_gel, buy_wax])

        self.assertEqual(results, ["ok", "ok"])
        self.assertEqual(self._quantity(self.gel_id), 0)
        self.assertEqual(self._quantity(self.wax_id), 0)

    def test_concurrent_edits_never_oversell(self):
        with self.app.app_context():
            first = sales_service.create_sale(self.shop_id, self._payload(self.gel_id, 1)).id
            second = sales_service.create_sale(self.shop_id, self._payload(self.gel_id, 1)).id

        # 3 left on the shelf: each edit asks for 3 more
        def grow(sale_id):
            return lambda: sales_service.update_sale(
                self.shop_id, sale_id, {"products": [{"product_id": self.gel_id, "quantity": 4}]}
            )

        results = self._run([grow(first), grow(second)])

        self.assertEqual(results.count("ok"), 1)
        self.assertEqual(self._quantity(self.gel_id), 0)
