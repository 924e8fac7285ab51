"""
Persistence layer for the purchasing core.

DataStore is the abstract collaborator every purchasing component talks to.
It addresses rows by collection name and primary key and knows nothing about
purchase orders.  SQLiteDataStore is the concrete implementation, backed by a
single database file (output/purchasing.db).

Collections
-----------
  suppliers             Referenced by purchase orders, never mutated here.
  products              Holds stock_quantity; only the inventory ledger
                        changes it.
  purchase_orders       Order headers (status, dates, derived totals).
  purchase_order_items  Line items: ordered vs. received quantity.
  inventory_movements   Append-only stock movement ledger.

Filters
-------
  find() and count() accept a dict of column → value.  A key may carry a
  suffix to change the comparison:

    status="draft"              status = 'draft'
    order_date__gte="2024-01"   order_date >= '2024-01'
    order_date__lte="2024-02"   order_date <= '2024-02'
    po_number__ilike="0042"     po_number LIKE '%0042%' (case-insensitive)

Transactions
------------
  Every call outside transaction() opens its own connection and commits on
  exit.  Inside ``with store.transaction():`` all calls made on the same
  thread share one connection and are committed or rolled back together.
  Nested transaction() blocks join the outermost one.
"""
import logging
import sqlite3
import threading
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional

from .errors import NotFoundError, StoreError

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS suppliers (
    id              TEXT PRIMARY KEY,
    name            TEXT NOT NULL,
    contact_person  TEXT,
    email           TEXT,
    phone           TEXT,
    is_active       INTEGER NOT NULL DEFAULT 1,
    created_at      TEXT
);

CREATE TABLE IF NOT EXISTS products (
    id              TEXT PRIMARY KEY,
    sku             TEXT,
    name            TEXT,
    stock_quantity  INTEGER NOT NULL DEFAULT 0,
    created_at      TEXT,
    updated_at      TEXT
);

CREATE TABLE IF NOT EXISTS purchase_orders (
    id                      TEXT PRIMARY KEY,
    po_number               TEXT UNIQUE,
    supplier_id             TEXT,
    status                  TEXT NOT NULL DEFAULT 'draft',

    -- Dates (ISO-8601 YYYY-MM-DD)
    order_date              TEXT,
    expected_delivery_date  TEXT,
    actual_delivery_date    TEXT,

    -- Derived from line items, never edited directly
    subtotal                REAL NOT NULL DEFAULT 0,
    tax_amount              REAL NOT NULL DEFAULT 0,
    total_amount            REAL NOT NULL DEFAULT 0,

    notes                   TEXT,
    created_by_user_id      TEXT,
    approved_by_user_id     TEXT,
    created_at              TEXT,
    updated_at              TEXT
);

CREATE INDEX IF NOT EXISTS idx_po_status     ON purchase_orders (status);
CREATE INDEX IF NOT EXISTS idx_po_supplier   ON purchase_orders (supplier_id);
CREATE INDEX IF NOT EXISTS idx_po_order_date ON purchase_orders (order_date DESC);

CREATE TABLE IF NOT EXISTS purchase_order_items (
    id                  TEXT PRIMARY KEY,
    purchase_order_id   TEXT NOT NULL REFERENCES purchase_orders (id) ON DELETE CASCADE,
    product_id          TEXT NOT NULL,
    quantity_ordered    INTEGER NOT NULL CHECK (quantity_ordered > 0),
    quantity_received   INTEGER NOT NULL DEFAULT 0,
    unit_cost           REAL NOT NULL,
    line_total          REAL NOT NULL,
    received_date       TEXT,
    created_at          TEXT,
    updated_at          TEXT
);

CREATE INDEX IF NOT EXISTS idx_poi_order ON purchase_order_items (purchase_order_id);

CREATE TABLE IF NOT EXISTS inventory_movements (
    id              TEXT PRIMARY KEY,
    product_id      TEXT NOT NULL,
    movement_type   TEXT NOT NULL CHECK (movement_type IN ('in', 'out')),
    quantity        INTEGER NOT NULL,
    reference_type  TEXT,           -- purchase_order | sale | adjustment
    reference_id    TEXT,
    notes           TEXT,
    created_at      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_movements_product ON inventory_movements (product_id);
"""

_FILTER_OPS = {
    "gte":   ">=",
    "lte":   "<=",
    "gt":    ">",
    "lt":    "<",
    "ne":    "!=",
    "ilike": "LIKE",
}


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return uuid.uuid4().hex


class DataStore(ABC):
    """Generic entity store addressed by collection name."""

    @abstractmethod
    def find(
        self,
        collection: str,
        filter: Optional[dict] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[dict]:
        """Return all rows matching *filter*."""

    @abstractmethod
    def find_one(self, collection: str, id: str) -> dict:
        """Return one row by primary key.  Raises NotFoundError if absent."""

    @abstractmethod
    def insert(self, collection: str, row: dict) -> dict:
        """Insert a row (an id is generated if missing) and return it."""

    @abstractmethod
    def update(self, collection: str, id: str, patch: dict) -> dict:
        """Apply *patch* to one row and return the updated row."""

    @abstractmethod
    def increment(self, collection: str, id: str, field: str, delta: float) -> dict:
        """Atomically add *delta* to a numeric column and return the updated row."""

    @abstractmethod
    def count(self, collection: str, filter: Optional[dict] = None) -> int:
        """Return the number of rows matching *filter*."""

    @abstractmethod
    def transaction(self):
        """Context manager: group every call made inside it into one atomic unit."""


class SQLiteDataStore(DataStore):
    """DataStore backed by an SQLite database file."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()
        self._init_schema()
        self._columns = self._load_columns()

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    def _connect(self, autocommit: bool = False) -> sqlite3.Connection:
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=30,
            isolation_level=None if autocommit else "",
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    @contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        active = getattr(self._local, "conn", None)
        if active is not None:
            # Inside transaction(): the outer block commits or rolls back
            try:
                yield active
            except sqlite3.Error as exc:
                logger.error("Store call failed inside transaction: %s", exc)
                raise StoreError(str(exc)) from exc
            return

        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot open database {self.db_path}: {exc}") from exc
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            logger.error("Store call failed: %s", exc)
            raise StoreError(str(exc)) from exc
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator["SQLiteDataStore"]:
        if getattr(self._local, "conn", None) is not None:
            yield self
            return

        try:
            conn = self._connect(autocommit=True)
            # IMMEDIATE takes the write lock up front so concurrent
            # read-then-write blocks serialise instead of deadlocking
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot begin transaction: {exc}") from exc

        self._local.conn = conn
        try:
            yield self
            conn.execute("COMMIT")
        except sqlite3.Error as exc:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise StoreError(f"Transaction failed: {exc}") from exc
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            logger.debug("Transaction rolled back")
            raise
        finally:
            self._local.conn = None
            conn.close()

    def _init_schema(self) -> None:
        with self._conn() as conn:
            conn.executescript(_SCHEMA)
        logger.debug("Database schema ready: %s", self.db_path)

    def _load_columns(self) -> dict[str, set[str]]:
        columns: dict[str, set[str]] = {}
        with self._conn() as conn:
            tables = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
            ).fetchall()
            for t in tables:
                info = conn.execute(f"PRAGMA table_info({t['name']})").fetchall()
                columns[t["name"]] = {c["name"] for c in info}
        return columns

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check(self, collection: str, fields=()) -> set[str]:
        known = self._columns.get(collection)
        if known is None:
            raise StoreError(f"Unknown collection {collection!r}")
        unknown = [f for f in fields if f not in known]
        if unknown:
            raise StoreError(f"Unknown column(s) for {collection}: {', '.join(unknown)}")
        return known

    def _where(self, collection: str, filter: Optional[dict]) -> tuple[str, list]:
        if not filter:
            return "", []
        clauses: list[str] = []
        params: list = []
        for key, value in filter.items():
            column, _, op = key.partition("__")
            self._check(collection, [column])
            if not op:
                if value is None:
                    clauses.append(f"{column} IS NULL")
                else:
                    clauses.append(f"{column} = ?")
                    params.append(value)
            elif op in _FILTER_OPS:
                if op == "ilike":
                    clauses.append(f"LOWER({column}) LIKE ?")
                    params.append(f"%{str(value).lower()}%")
                else:
                    clauses.append(f"{column} {_FILTER_OPS[op]} ?")
                    params.append(value)
            else:
                raise StoreError(f"Unsupported filter operator {op!r} in {key!r}")
        return f"WHERE {' AND '.join(clauses)}", params

    @staticmethod
    def _fetch(conn: sqlite3.Connection, collection: str, id: str) -> Optional[dict]:
        row = conn.execute(f"SELECT * FROM {collection} WHERE id=?", (id,)).fetchone()
        return dict(row) if row else None

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def find(
        self,
        collection: str,
        filter: Optional[dict] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[dict]:
        self._check(collection)
        where, params = self._where(collection, filter)
        sql = f"SELECT * FROM {collection} {where}"
        if order_by:
            self._check(collection, [order_by])
            # Ties fall back to insertion order
            sql += f" ORDER BY {order_by} {'DESC' if descending else 'ASC'}, rowid ASC"
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params.extend([limit, offset])

        with self._conn() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [dict(r) for r in rows]

    def find_one(self, collection: str, id: str) -> dict:
        self._check(collection)
        with self._conn() as conn:
            row = self._fetch(conn, collection, id)
        if row is None:
            raise NotFoundError(collection, id)
        return row

    def count(self, collection: str, filter: Optional[dict] = None) -> int:
        self._check(collection)
        where, params = self._where(collection, filter)
        with self._conn() as conn:
            return conn.execute(f"SELECT COUNT(*) FROM {collection} {where}", params).fetchone()[0]

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def insert(self, collection: str, row: dict) -> dict:
        # Omitted columns fall back to their schema defaults
        row = {k: v for k, v in row.items() if v is not None}
        row.setdefault("id", new_id())
        self._check(collection, row.keys())

        cols = ", ".join(row)
        marks = ", ".join(f":{k}" for k in row)
        with self._conn() as conn:
            conn.execute(f"INSERT INTO {collection} ({cols}) VALUES ({marks})", row)
            stored = self._fetch(conn, collection, row["id"])
        logger.debug("Inserted %s %s", collection, row["id"])
        return stored

    def update(self, collection: str, id: str, patch: dict) -> dict:
        patch = {k: v for k, v in patch.items() if k != "id"}
        self._check(collection, patch.keys())
        if not patch:
            return self.find_one(collection, id)

        assignments = ", ".join(f"{k} = :{k}" for k in patch)
        with self._conn() as conn:
            conn.execute(
                f"UPDATE {collection} SET {assignments} WHERE id = :_id",
                {**patch, "_id": id},
            )
            changed = conn.execute("SELECT changes()").fetchone()[0]
            row = self._fetch(conn, collection, id) if changed else None
        if row is None:
            raise NotFoundError(collection, id)
        return row

    def increment(self, collection: str, id: str, field: str, delta: float) -> dict:
        self._check(collection, [field])
        with self._conn() as conn:
            conn.execute(
                f"UPDATE {collection} SET {field} = COALESCE({field}, 0) + ? WHERE id = ?",
                (delta, id),
            )
            changed = conn.execute("SELECT changes()").fetchone()[0]
            row = self._fetch(conn, collection, id) if changed else None
        if row is None:
            raise NotFoundError(collection, id)
        return row
