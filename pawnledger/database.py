"""Database management module for PawnLedger."""
import sqlite3
import threading
import pandas as pd
from datetime import datetime
from contextlib import contextmanager

from pawnledger.config import DEFAULT_DB_NAME, DB_LOCK_TIMEOUT, DATETIME_FORMAT_STORAGE, MONEY_EPSILON
from pawnledger.exceptions import DatabaseBusyError, TransactionError


def _now_str():
    return datetime.now().strftime(DATETIME_FORMAT_STORAGE)


class DatabaseManager:
    """Handles all SQLite database operations.

    One instance wraps one connection. The connection may be shared between
    threads: every statement runs under ``self._lock`` and writes that must
    be atomic go through :meth:`transaction`.
    """

    def __init__(self, db_name=DEFAULT_DB_NAME):
        self.db_name = db_name
        self.conn = sqlite3.connect(db_name, timeout=DB_LOCK_TIMEOUT, check_same_thread=False)
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._lock = threading.RLock()
        self._tx_depth = 0
        self._closed = False
        self.create_tables()

    def close(self):
        """Close the database connection."""
        if getattr(self, 'conn', None) and not getattr(self, '_closed', True):
            self.conn.close()
            self._closed = True

    def __del__(self):
        """Ensure connection is closed on garbage collection."""
        self.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @contextmanager
    def transaction(self):
        """Context manager for write transactions with automatic rollback on failure.

        Usage:
            with db.transaction():
                db.apply_item_payment(...)
                db.add_payment(...)

        The outermost block takes the write lock up front (``BEGIN IMMEDIATE``)
        and holds the connection lock until commit or rollback; nested blocks
        join the outer transaction. If any exception occurs, the whole
        transaction is rolled back.

        Raises:
            DatabaseBusyError: If another connection holds the write lock.
            TransactionError: If sqlite fails inside the block.
        """
        with self._lock:
            outermost = self._tx_depth == 0
            if outermost and not self.conn.in_transaction:
                try:
                    self.conn.execute("BEGIN IMMEDIATE")
                except sqlite3.OperationalError as e:
                    raise DatabaseBusyError(f"Could not start transaction: {str(e)}")
            self._tx_depth += 1
            try:
                yield
            except sqlite3.Error as e:
                self._tx_depth -= 1
                if outermost:
                    self.conn.rollback()
                raise TransactionError(f"Transaction failed: {str(e)}")
            except Exception:
                self._tx_depth -= 1
                if outermost:
                    self.conn.rollback()
                raise
            else:
                self._tx_depth -= 1
                if outermost:
                    self.conn.commit()

    @contextmanager
    def snapshot(self):
        """Hold the connection lock so several reads see the same state."""
        with self._lock:
            yield

    def _commit(self):
        # Inside transaction() the outermost block commits.
        if self._tx_depth == 0:
            self.conn.commit()

    def _execute(self, query, params=()):
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute(query, params)
            self._commit()
            return cursor

    def _fetch_one(self, query, params=()):
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute(query, params)
            row = cursor.fetchone()
            if row:
                cols = [description[0] for description in cursor.description]
                return dict(zip(cols, row))
            return None

    def _read_df(self, query, params=()):
        with self._lock:
            return pd.read_sql_query(query, self.conn, params=tuple(params))

    def create_tables(self):
        cursor = self.conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS customers (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                guardian_name TEXT,
                relation TEXT,
                address TEXT,
                aadhar_number TEXT DEFAULT '',
                mobile_number TEXT DEFAULT '',
                created_at TEXT,
                updated_at TEXT
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS items (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                customer_id INTEGER NOT NULL,
                name TEXT NOT NULL,
                item_weight TEXT,
                category TEXT NOT NULL,
                description TEXT,
                amount REAL NOT NULL,
                remaining_amount REAL NOT NULL CHECK (remaining_amount >= 0),
                percentage REAL NOT NULL,
                total_paid REAL NOT NULL DEFAULT 0,
                interest_paid_till TEXT,
                created_at TEXT,
                updated_at TEXT,
                version INTEGER NOT NULL DEFAULT 0,
                FOREIGN KEY(customer_id) REFERENCES customers(id)
            )
        """)

        # Append-only: rows are only removed together with their item
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS payments (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                item_id INTEGER NOT NULL,
                amount_paid REAL NOT NULL,
                interest_paid REAL NOT NULL DEFAULT 0,
                principal_paid REAL NOT NULL DEFAULT 0,
                paid_at TEXT NOT NULL,
                created_at TEXT,
                FOREIGN KEY(item_id) REFERENCES items(id)
            )
        """)
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_payments_item ON payments (item_id, paid_at)")

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS interest_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                item_id INTEGER NOT NULL,
                payment_id INTEGER,
                from_date TEXT,
                to_date TEXT,
                principal REAL,
                projected_interest REAL,
                declared_interest REAL,
                flagged INTEGER DEFAULT 0,
                FOREIGN KEY(item_id) REFERENCES items(id),
                FOREIGN KEY(payment_id) REFERENCES payments(id)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value TEXT
            )
        """)
        self.conn.commit()

    # Customer operations
    def add_customer(self, name, guardian_name, relation, address, aadhar_number="", mobile_number="",
                     created_at=None):
        ts = created_at or _now_str()
        cursor = self._execute(
            """INSERT INTO customers (name, guardian_name, relation, address, aadhar_number,
                                      mobile_number, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (name, guardian_name, relation, address, aadhar_number, mobile_number, ts, ts))
        return cursor.lastrowid

    def get_customer(self, id):
        return self._fetch_one("SELECT * FROM customers WHERE id=?", (id,))

    def get_customers(self):
        return self._read_df("SELECT * FROM customers ORDER BY id")

    def update_customer(self, id, name, guardian_name, relation, address, aadhar_number, mobile_number):
        self._execute(
            """UPDATE customers SET name=?, guardian_name=?, relation=?, address=?,
                                    aadhar_number=?, mobile_number=?, updated_at=?
               WHERE id=?""",
            (name, guardian_name, relation, address, aadhar_number, mobile_number, _now_str(), id))

    def delete_customer(self, id):
        with self.transaction():
            cursor = self.conn.cursor()
            item_ids = [row[0] for row in cursor.execute("SELECT id FROM items WHERE customer_id=?", (id,))]
            for item_id in item_ids:
                self.delete_item(item_id)
            cursor.execute("DELETE FROM customers WHERE id=?", (id,))

    def count_customers(self):
        return self._fetch_one("SELECT COUNT(*) AS n FROM customers")['n']

    # Item operations
    def add_item(self, customer_id, name, amount, percentage, category, item_weight=None, description=None,
                 created_at=None):
        ts = created_at or _now_str()
        cursor = self._execute(
            """INSERT INTO items (customer_id, name, item_weight, category, description, amount,
                                  remaining_amount, percentage, total_paid, interest_paid_till,
                                  created_at, updated_at, version)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0, NULL, ?, ?, 0)""",
            (customer_id, name, item_weight, category, description, amount, amount, percentage, ts, ts))
        return cursor.lastrowid

    def get_item(self, id):
        return self._fetch_one("SELECT * FROM items WHERE id=?", (id,))

    def get_items(self, customer_id=None):
        query = "SELECT * FROM items"
        params = []
        if customer_id is not None:
            query += " WHERE customer_id = ?"
            params.append(customer_id)
        query += " ORDER BY id"
        return self._read_df(query, params)

    def update_item_details(self, id, name, item_weight, category, description):
        self._execute(
            "UPDATE items SET name=?, item_weight=?, category=?, description=?, updated_at=? WHERE id=?",
            (name, item_weight, category, description, _now_str(), id))

    def delete_item(self, id):
        with self.transaction():
            cursor = self.conn.cursor()
            cursor.execute("DELETE FROM interest_history WHERE item_id=?", (id,))
            cursor.execute("DELETE FROM payments WHERE item_id=?", (id,))
            cursor.execute("DELETE FROM items WHERE id=?", (id,))

    def apply_item_payment(self, item_id, expected_version, principal, amount, interest_paid_till):
        """Conditionally apply a payment to an item's running totals.

        The update only lands if the item still carries ``expected_version``
        and enough principal to absorb ``principal``. Totals are kept to two
        decimals and a sub-cent remainder is written off as zero.

        Returns:
            True if the row was updated, False if the precondition failed.
        """
        cursor = self._execute(
            """UPDATE items
               SET remaining_amount = CASE
                       WHEN ROUND(remaining_amount - ?, 2) < ? THEN 0
                       ELSE ROUND(remaining_amount - ?, 2) END,
                   total_paid = ROUND(total_paid + ?, 2),
                   interest_paid_till = ?,
                   version = version + 1,
                   updated_at = ?
               WHERE id = ? AND version = ? AND remaining_amount + ? >= ?""",
            (principal, MONEY_EPSILON, principal, amount, interest_paid_till, _now_str(),
             item_id, expected_version, MONEY_EPSILON, principal))
        return cursor.rowcount == 1

    # Payment operations
    def add_payment(self, item_id, amount_paid, interest_paid, principal_paid, paid_at):
        cursor = self._execute(
            """INSERT INTO payments (item_id, amount_paid, interest_paid, principal_paid, paid_at, created_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (item_id, amount_paid, interest_paid, principal_paid, paid_at, _now_str()))
        return cursor.lastrowid

    def get_payments(self, item_id):
        return self._read_df(
            "SELECT * FROM payments WHERE item_id = ? ORDER BY paid_at, id", (item_id,))

    def get_last_payment(self, item_id):
        return self._fetch_one(
            "SELECT * FROM payments WHERE item_id = ? ORDER BY paid_at DESC, id DESC LIMIT 1", (item_id,))

    def get_all_payments(self, start_date=None):
        """All payments joined with their item and customer, oldest first."""
        query = """
            SELECT p.*, i.name AS item_name, i.category, c.id AS customer_id, c.name AS customer_name
            FROM payments p
            JOIN items i ON i.id = p.item_id
            JOIN customers c ON c.id = i.customer_id
        """
        params = []
        if start_date:
            query += " WHERE p.paid_at >= ?"
            params.append(start_date)
        query += " ORDER BY p.paid_at, p.id"
        return self._read_df(query, params)

    def add_interest_history(self, item_id, payment_id, from_date, to_date, principal,
                             projected_interest, declared_interest, flagged):
        cursor = self._execute(
            """INSERT INTO interest_history (item_id, payment_id, from_date, to_date, principal,
                                             projected_interest, declared_interest, flagged)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (item_id, payment_id, from_date, to_date, principal, projected_interest,
             declared_interest, 1 if flagged else 0))
        return cursor.lastrowid

    def get_interest_history(self, item_id):
        return self._read_df(
            "SELECT * FROM interest_history WHERE item_id = ? ORDER BY to_date, id", (item_id,))

    # Settings
    def get_setting(self, key, default=None):
        """Get a setting value."""
        row = self._fetch_one("SELECT value FROM settings WHERE key=?", (key,))
        return row['value'] if row else default

    def set_setting(self, key, value):
        """Set a setting value."""
        self._execute("INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)", (key, str(value)))
