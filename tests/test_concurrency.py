"""Tests for serialized payment application under concurrent callers."""
import os
import sys
import tempfile
import threading
import unittest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from pawnledger.database import DatabaseManager
from pawnledger.exceptions import ConcurrencyConflictError
from pawnledger.services import ItemService, PaymentLedger


def run_concurrently(*calls):
    """Start all calls together; return (results, errors)."""
    barrier = threading.Barrier(len(calls))
    results, errors = [], []

    def worker(fn):
        barrier.wait()
        try:
            results.append(fn())
        except Exception as e:  # collected for the assertions
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(fn,)) for fn in calls]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return results, errors


class TestSharedConnection(unittest.TestCase):
    """Threads sharing one DatabaseManager."""

    def setUp(self):
        self.db = DatabaseManager(":memory:")
        self.ledger = PaymentLedger(self.db)
        items = ItemService(self.db)
        customer_id = items.create_customer("Asha", "Kiran", "husband", "4 Temple Street")
        self.item_id = items.create_item(customer_id, "Silver anklet", 10000, 2, "silver",
                                         created_at="2024-01-01")

    def tearDown(self):
        self.db.close()

    def test_two_concurrent_payments_both_apply(self):
        results, errors = run_concurrently(
            lambda: self.ledger.apply_payment(self.item_id, 0, 5000, "2024-02-01"),
            lambda: self.ledger.apply_payment(self.item_id, 0, 5000, "2024-02-01"),
        )

        self.assertEqual(errors, [])
        self.assertEqual(len(results), 2)
        item = self.db.get_item(self.item_id)
        self.assertEqual(item['remaining_amount'], 0)
        self.assertEqual(item['total_paid'], 10000)
        self.assertEqual(item['version'], 2)
        self.assertEqual(len(self.db.get_payments(self.item_id)), 2)
        self.assertEqual(sorted(r.remaining_amount for r in results), [0, 5000])

    def test_many_payments_no_lost_updates(self):
        calls = [lambda: self.ledger.apply_payment(self.item_id, 10, 500, "2024-02-01") for _ in range(10)]
        results, errors = run_concurrently(*calls)

        self.assertEqual(errors, [])
        item = self.db.get_item(self.item_id)
        self.assertEqual(item['remaining_amount'], 5000)
        self.assertEqual(item['total_paid'], 5100)
        payments = self.db.get_payments(self.item_id)
        self.assertEqual(len(payments), 10)
        self.assertAlmostEqual(float(payments['principal_paid'].sum()), item['amount'] - item['remaining_amount'])

    def test_overdraw_race_admits_only_what_fits(self):
        results, errors = run_concurrently(
            lambda: self.ledger.apply_payment(self.item_id, 0, 6000, "2024-02-01"),
            lambda: self.ledger.apply_payment(self.item_id, 0, 6000, "2024-02-01"),
        )

        self.assertEqual(len(results), 1)
        self.assertEqual(len(errors), 1)
        self.assertEqual(self.db.get_item(self.item_id)['remaining_amount'], 4000)
        self.assertEqual(len(self.db.get_payments(self.item_id)), 1)


class TestSeparateConnections(unittest.TestCase):
    """Two DatabaseManager handles on the same database file."""

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        path = os.path.join(self.tmpdir.name, "ledger.db")
        self.db_a = DatabaseManager(path)
        self.db_b = DatabaseManager(path)
        items = ItemService(self.db_a)
        customer_id = items.create_customer("Asha", "Kiran", "husband", "4 Temple Street")
        self.item_id = items.create_item(customer_id, "Gold ring", 10000, 2, "gold", created_at="2024-01-01")

    def tearDown(self):
        self.db_a.close()
        self.db_b.close()
        self.tmpdir.cleanup()

    def test_payments_from_two_handles_serialize(self):
        ledger_a = PaymentLedger(self.db_a)
        ledger_b = PaymentLedger(self.db_b)
        results, errors = run_concurrently(
            lambda: ledger_a.apply_payment(self.item_id, 0, 5000, "2024-02-01"),
            lambda: ledger_b.apply_payment(self.item_id, 0, 5000, "2024-02-01"),
        )

        # Either both serialize, or the loser reports a conflict it can retry
        for e in errors:
            self.assertIsInstance(e, ConcurrencyConflictError)
        for _ in errors:
            ledger_a.apply_payment(self.item_id, 0, 5000, "2024-02-01")

        item = self.db_a.get_item(self.item_id)
        self.assertEqual(item['remaining_amount'], 0)
        self.assertEqual(item['total_paid'], 10000)
        self.assertEqual(len(self.db_a.get_payments(self.item_id)), 2)

    def test_stale_version_is_refused(self):
        item = self.db_b.get_item(self.item_id)
        PaymentLedger(self.db_a).apply_payment(self.item_id, 0, 1000, "2024-02-01")

        with self.db_b.transaction():
            applied = self.db_b.apply_item_payment(self.item_id, item['version'], 1000, 1000, "2024-02-01 00:00:00")
        self.assertFalse(applied)
        self.assertEqual(self.db_a.get_item(self.item_id)['remaining_amount'], 9000)


if __name__ == '__main__':
    unittest.main()
