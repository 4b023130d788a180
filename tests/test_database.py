"""Tests for connection management and transactions."""
import os
import sqlite3
import sys
import tempfile
import unittest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from pawnledger.database import DatabaseManager
from pawnledger.exceptions import DatabaseBusyError, TransactionError


class TestConnectionManagement(unittest.TestCase):

    def test_context_manager(self):
        with DatabaseManager(":memory:") as db:
            db.add_customer("Context Test", "G", "other", "Addr")
            self.assertEqual(db.count_customers(), 1)
        self.assertTrue(db._closed)

    def test_explicit_close(self):
        db = DatabaseManager(":memory:")
        self.assertFalse(db._closed)
        db.close()
        self.assertTrue(db._closed)
        # Calling close again should not raise
        db.close()


class TestTransactionContextManager(unittest.TestCase):

    def setUp(self):
        self.db = DatabaseManager(":memory:")
        self.customer_id = self.db.add_customer("Ravi", "Mohan", "father", "Road")
        self.item_id = self.db.add_item(self.customer_id, "Chain", 1000, 2, "gold")

    def tearDown(self):
        self.db.close()

    def test_commit_on_success(self):
        with self.db.transaction():
            self.db.add_payment(self.item_id, 100, 100, 0, "2024-01-31 00:00:00")
        self.assertEqual(len(self.db.get_payments(self.item_id)), 1)

    def test_rollback_on_failure(self):
        with self.assertRaises(ValueError):
            with self.db.transaction():
                self.db.add_payment(self.item_id, 100, 100, 0, "2024-01-31 00:00:00")
                raise ValueError("boom")
        self.assertTrue(self.db.get_payments(self.item_id).empty)

    def test_sqlite_error_wrapped_and_rolled_back(self):
        with self.assertRaises(TransactionError):
            with self.db.transaction():
                self.db.add_payment(self.item_id, 100, 100, 0, "2024-01-31 00:00:00")
                self.db.conn.execute("UPDATE items SET remaining_amount = -1 WHERE id = ?", (self.item_id,))
        self.assertTrue(self.db.get_payments(self.item_id).empty)
        self.assertEqual(self.db.get_item(self.item_id)['remaining_amount'], 1000)

    def test_nested_blocks_join_outer(self):
        with self.assertRaises(RuntimeError):
            with self.db.transaction():
                with self.db.transaction():
                    self.db.add_payment(self.item_id, 100, 100, 0, "2024-01-31 00:00:00")
                raise RuntimeError("outer fails after inner finished")
        self.assertTrue(self.db.get_payments(self.item_id).empty)

    def test_conditional_update(self):
        self.assertTrue(self.db.apply_item_payment(self.item_id, 0, 400, 420, "2024-01-31 00:00:00"))
        # version moved on
        self.assertFalse(self.db.apply_item_payment(self.item_id, 0, 400, 420, "2024-01-31 00:00:00"))
        # floor check
        self.assertFalse(self.db.apply_item_payment(self.item_id, 1, 700, 700, "2024-01-31 00:00:00"))

        item = self.db.get_item(self.item_id)
        self.assertEqual(item['remaining_amount'], 600)
        self.assertEqual(item['total_paid'], 420)
        self.assertEqual(item['version'], 1)

    def test_conditional_update_rounds_totals(self):
        self.assertTrue(self.db.apply_item_payment(self.item_id, 0, 599.9, 599.9, "2024-01-31 00:00:00"))
        self.assertEqual(self.db.get_item(self.item_id)['remaining_amount'], 400.1)

        # A remainder under a cent is written off
        self.assertTrue(self.db.apply_item_payment(self.item_id, 1, 400.105, 400.1, "2024-02-01 00:00:00"))
        item = self.db.get_item(self.item_id)
        self.assertEqual(item['remaining_amount'], 0)
        self.assertEqual(item['total_paid'], 1000)

    def test_settings(self):
        self.assertEqual(self.db.get_setting("missing", "fallback"), "fallback")
        self.db.set_setting("interest_deviation_min", 50)
        self.assertEqual(self.db.get_setting("interest_deviation_min"), "50")


class TestBusyDatabase(unittest.TestCase):

    def test_locked_database_raises_busy(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "busy.db")
            db = DatabaseManager(path)
            blocker = sqlite3.connect(path, isolation_level=None)
            db.conn.execute("PRAGMA busy_timeout = 50")
            try:
                blocker.execute("BEGIN IMMEDIATE")
                with self.assertRaises(DatabaseBusyError):
                    with db.transaction():
                        pass
            finally:
                blocker.execute("ROLLBACK")
                blocker.close()
                db.close()


if __name__ == '__main__':
    unittest.main()
