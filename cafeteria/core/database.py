"""
Database connection and schema management.

A single DuckDB connection is shared by the whole process and guarded by a
re-entrant lock. ``transaction()`` holds that lock for the whole
BEGIN..COMMIT block, so a guard check and the commit that follows it run
as one critical section. The unique index on
``meal_records(employee_id, meal_type_id, redemption_date)`` backs the
one-meal-per-type-per-day rule at the storage level.
"""

import json
import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

import duckdb

from .exceptions import BaseApplicationError, ConstraintViolationError, PersistenceError
from ..config.settings import settings

logger = logging.getLogger(__name__)

SCHEMA_SQL = r"""
CREATE SEQUENCE IF NOT EXISTS employees_id_seq;
CREATE TABLE IF NOT EXISTS employees (
  id INTEGER DEFAULT nextval('employees_id_seq') PRIMARY KEY,
  employee_code TEXT NOT NULL,
  name TEXT NOT NULL,
  department TEXT,
  card_id TEXT,
  short_code TEXT,
  photo_url TEXT,
  salary_cents INTEGER,
  is_active BOOLEAN NOT NULL DEFAULT TRUE,
  eligible_for_support BOOLEAN NOT NULL DEFAULT FALSE,
  created_at TIMESTAMP DEFAULT now()
);
CREATE UNIQUE INDEX IF NOT EXISTS uniq_employee_code ON employees(employee_code);
CREATE UNIQUE INDEX IF NOT EXISTS uniq_employee_card ON employees(card_id);
CREATE UNIQUE INDEX IF NOT EXISTS uniq_employee_short_code ON employees(short_code);

CREATE TABLE IF NOT EXISTS support_config (
  id INTEGER PRIMARY KEY,
  max_salary_for_support_cents INTEGER NOT NULL,
  is_active BOOLEAN NOT NULL DEFAULT TRUE,
  updated_at TIMESTAMP DEFAULT now()
);

CREATE SEQUENCE IF NOT EXISTS meal_types_id_seq;
CREATE TABLE IF NOT EXISTS meal_types (
  id INTEGER DEFAULT nextval('meal_types_id_seq') PRIMARY KEY,
  name TEXT NOT NULL,
  base_price_cents INTEGER NOT NULL DEFAULT 0,
  icon TEXT,
  color TEXT,
  enabled BOOLEAN NOT NULL DEFAULT TRUE,
  created_at TIMESTAMP DEFAULT now()
);

CREATE SEQUENCE IF NOT EXISTS meal_categories_id_seq;
CREATE TABLE IF NOT EXISTS meal_categories (
  id INTEGER DEFAULT nextval('meal_categories_id_seq') PRIMARY KEY,
  meal_type_id INTEGER NOT NULL,
  name TEXT NOT NULL,
  category TEXT CHECK(category IN ('fasting','non_fasting')) NOT NULL,
  normal_price_cents INTEGER NOT NULL,
  subsidized_price_cents INTEGER NOT NULL,
  allowed_count INTEGER NOT NULL DEFAULT 1,
  is_active BOOLEAN NOT NULL DEFAULT TRUE,
  created_at TIMESTAMP DEFAULT now(),
  CHECK (subsidized_price_cents < normal_price_cents),
  CHECK (allowed_count >= 1)
);
CREATE INDEX IF NOT EXISTS idx_categories_meal_type ON meal_categories(meal_type_id);

CREATE SEQUENCE IF NOT EXISTS meal_items_id_seq;
CREATE TABLE IF NOT EXISTS meal_items (
  id INTEGER DEFAULT nextval('meal_items_id_seq') PRIMARY KEY,
  meal_category_id INTEGER NOT NULL,
  name TEXT NOT NULL,
  description TEXT,
  image_url TEXT,
  color TEXT,
  total_available INTEGER NOT NULL DEFAULT 0 CHECK (total_available >= 0),
  is_active BOOLEAN NOT NULL DEFAULT TRUE,
  created_at TIMESTAMP DEFAULT now(),
  updated_at TIMESTAMP DEFAULT now()
);
CREATE INDEX IF NOT EXISTS idx_items_category ON meal_items(meal_category_id);

CREATE SEQUENCE IF NOT EXISTS meal_records_id_seq;
CREATE TABLE IF NOT EXISTS meal_records (
  id INTEGER DEFAULT nextval('meal_records_id_seq') PRIMARY KEY,
  order_number TEXT,
  employee_id INTEGER NOT NULL,
  card_id TEXT,
  meal_type_id INTEGER NOT NULL,
  meal_category_id INTEGER NOT NULL,
  meal_name TEXT NOT NULL,
  category TEXT NOT NULL,
  price_type TEXT CHECK(price_type IN ('normal','subsidized')) NOT NULL,
  normal_price_cents INTEGER NOT NULL,
  subsidized_price_cents INTEGER NOT NULL,
  actual_price_cents INTEGER NOT NULL,
  support_amount_cents INTEGER NOT NULL,
  employee_salary_cents INTEGER,
  redemption_date DATE NOT NULL,
  recorded_at TEXT NOT NULL,
  recorded_by_user_id INTEGER,
  recorded_by_username TEXT NOT NULL
);
CREATE UNIQUE INDEX IF NOT EXISTS uniq_record_employee_type_day
  ON meal_records(employee_id, meal_type_id, redemption_date);
CREATE INDEX IF NOT EXISTS idx_records_date ON meal_records(redemption_date);

CREATE SEQUENCE IF NOT EXISTS meal_record_items_id_seq;
CREATE TABLE IF NOT EXISTS meal_record_items (
  id INTEGER DEFAULT nextval('meal_record_items_id_seq') PRIMARY KEY,
  meal_record_id INTEGER NOT NULL,
  meal_item_id INTEGER NOT NULL,
  item_name TEXT NOT NULL,
  quantity INTEGER NOT NULL CHECK (quantity > 0),
  unit_price_cents INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_record_items_record ON meal_record_items(meal_record_id);

CREATE TABLE IF NOT EXISTS coupon_batches (
  batch_number TEXT PRIMARY KEY,
  title TEXT NOT NULL,
  meal_type_id INTEGER NOT NULL,
  meal_category_id INTEGER,
  color TEXT,
  generated_by TEXT NOT NULL,
  generated_at TEXT NOT NULL
);

CREATE SEQUENCE IF NOT EXISTS coupons_id_seq;
CREATE TABLE IF NOT EXISTS coupons (
  id INTEGER DEFAULT nextval('coupons_id_seq') PRIMARY KEY,
  code TEXT NOT NULL,
  batch_number TEXT NOT NULL,
  is_used BOOLEAN NOT NULL DEFAULT FALSE,
  is_active BOOLEAN NOT NULL DEFAULT TRUE,
  used_by INTEGER,
  used_at TEXT
);
CREATE UNIQUE INDEX IF NOT EXISTS uniq_coupon_code ON coupons(code);
CREATE INDEX IF NOT EXISTS idx_coupons_batch ON coupons(batch_number);

CREATE SEQUENCE IF NOT EXISTS users_id_seq;
CREATE TABLE IF NOT EXISTS users (
  id INTEGER DEFAULT nextval('users_id_seq') PRIMARY KEY,
  username TEXT NOT NULL,
  email TEXT,
  full_name TEXT,
  role TEXT CHECK(role IN ('operator','manager','admin')) NOT NULL,
  password_hash TEXT NOT NULL,
  is_active BOOLEAN NOT NULL DEFAULT TRUE,
  last_login TEXT,
  created_at TIMESTAMP DEFAULT now()
);
CREATE UNIQUE INDEX IF NOT EXISTS uniq_username ON users(username);

CREATE SEQUENCE IF NOT EXISTS logs_id_seq;
CREATE TABLE IF NOT EXISTS logs (
  log_id INTEGER DEFAULT nextval('logs_id_seq') PRIMARY KEY,
  user_id INTEGER,
  actor_id INTEGER,
  action TEXT,
  detail_json JSON,
  created_at TIMESTAMP DEFAULT now()
);
CREATE INDEX IF NOT EXISTS idx_logs_action ON logs(action);
"""


def _path_from_url(db_url: str) -> str:
    if db_url.startswith("duckdb://"):
        return db_url[len("duckdb://"):]
    return db_url


class DatabaseManager:
    """Owns the DuckDB connection, the schema and transactions."""

    def __init__(self, db_path: Optional[str] = None):
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = threading.RLock()
        self.db_path = db_path or _path_from_url(settings.database_url)

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        with self._lock:
            if self._connection is None:
                if self.db_path != ":memory:":
                    Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
                self._connection = duckdb.connect(self.db_path)
                self._init_schema()
            return self._connection

    def get_connection(self) -> duckdb.DuckDBPyConnection:
        return self.connection

    def configure(self, db_path: str):
        """Point the manager at another database, closing the current one."""
        with self._lock:
            self.close()
            self.db_path = _path_from_url(db_path)

    def close(self):
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    def _init_schema(self):
        try:
            self._connection.execute(SCHEMA_SQL)
        except duckdb.Error as e:
            raise PersistenceError(f"Failed to initialize schema: {e}")

    def init_database(self):
        """Open the connection, creating the schema when needed."""
        self.get_connection()
        logger.info("Database ready at %s", self.db_path)

    @contextmanager
    def transaction(self) -> Generator[duckdb.DuckDBPyConnection, None, None]:
        """
        BEGIN/COMMIT block holding the connection lock.

        Application errors raised inside the block are re-raised as-is after
        the rollback; constraint violations become ConstraintViolationError
        and any other storage failure becomes PersistenceError.
        """
        with self._lock:
            conn = self.connection
            conn.execute("BEGIN")
            try:
                yield conn
                conn.execute("COMMIT")
            except BaseApplicationError:
                self._rollback(conn)
                raise
            except duckdb.ConstraintException as e:
                self._rollback(conn)
                raise ConstraintViolationError(str(e))
            except Exception as e:
                self._rollback(conn)
                logger.error("Transaction failed: %s", e, exc_info=True)
                raise PersistenceError(f"Database operation failed: {e}")

    def _rollback(self, conn: duckdb.DuckDBPyConnection):
        try:
            conn.execute("ROLLBACK")
        except duckdb.Error as e:
            # the failed statement may already have aborted the transaction
            logger.debug("Rollback skipped: %s", e)

    def fetch_all(self, query: str, params: Optional[list] = None,
                  conn: Optional[duckdb.DuckDBPyConnection] = None) -> List[Dict[str, Any]]:
        """Run a query and return every row as a dict."""
        with self._lock:
            con = conn or self.connection
            try:
                cur = con.execute(query, params or [])
                columns = [d[0] for d in cur.description]
                return [dict(zip(columns, row)) for row in cur.fetchall()]
            except duckdb.Error as e:
                raise PersistenceError(f"Query execution failed: {e}")

    def fetch_one(self, query: str, params: Optional[list] = None,
                  conn: Optional[duckdb.DuckDBPyConnection] = None) -> Optional[Dict[str, Any]]:
        """Run a query and return the first row as a dict, or None."""
        rows = self.fetch_all(query, params, conn)
        return rows[0] if rows else None

    def execute(self, query: str, params: Optional[list] = None):
        with self.transaction() as conn:
            conn.execute(query, params or [])

    def log_action(self, conn: duckdb.DuckDBPyConnection, action: str,
                   detail: Dict[str, Any], user_id: Optional[int] = None,
                   actor_id: Optional[int] = None):
        """Append an audit row to ``logs`` on the given connection."""
        conn.execute(
            "INSERT INTO logs(user_id, actor_id, action, detail_json) VALUES (?,?,?,?)",
            [user_id, actor_id, action, json.dumps(detail, ensure_ascii=False, default=str)],
        )


db_manager = DatabaseManager()
