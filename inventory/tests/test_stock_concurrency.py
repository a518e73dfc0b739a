from decimal import Decimal
from threading import Lock, Thread

from django.db import close_old_connections, connection
from django.test import TransactionTestCase

from billing.services.bills import create_bill
from core.exceptions import DomainError, InsufficientStock
from inventory.models import Product
from inventory.services.stock import Direction, commit_stock


class StockConcurrencyTests(TransactionTestCase):
    def setUp(self):
        self.product = Product.objects.create(
            name="Amul Butter 500g",
            sku="AB-500",
            purchase_price=Decimal("240.00"),
            selling_price=Decimal("275.00"),
            stock=1,
            min_stock=0,
        )

    def _run(self, worker, count):
        successes: list[int] = []
        failures: list[Exception] = []
        lock = Lock()

        def run(ix: int):
            close_old_connections()
            try:
                worker(ix)
                with lock:
                    successes.append(ix)
            except DomainError as exc:
                with lock:
                    failures.append(exc)
            finally:
                close_old_connections()

        threads = [Thread(target=run, args=(i,)) for i in range(count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return successes, failures

    def test_last_unit_is_sold_once(self):
        if connection.vendor == "sqlite":
            self.skipTest("SQLite locking makes this concurrency test flaky; run on Postgres/MySQL.")

        successes, failures = self._run(lambda ix: commit_stock(self.product.pk, 1, Direction.OUT), 2)

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 0)
        self.assertEqual(len(successes), 1)
        self.assertEqual(len(failures), 1)
        self.assertIsInstance(failures[0], InsufficientStock)

    def test_concurrent_bills_never_oversell(self):
        if connection.vendor == "sqlite":
            self.skipTest("SQLite locking makes this concurrency test flaky; run on Postgres/MySQL.")

        Product.objects.filter(pk=self.product.pk).update(stock=5)

        def sell(ix):
            create_bill(
                {
                    "kind": "sale",
                    "party_name": f"Customer {ix}",
                    "lines": [{"product_id": self.product.pk, "quantity": 2}],
                    "paid_amount": "0",
                }
            )

        successes, failures = self._run(sell, 6)

        self.product.refresh_from_db()
        self.assertLessEqual(len(successes), 2)
        self.assertEqual(self.product.stock, 5 - 2 * len(successes))
        self.assertEqual(len(successes) + len(failures), 6)
