from __future__ import annotations

import csv
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional

from loguru import logger

from .repository import ConversationRepository, User


@dataclass(frozen=True)
class Product:
    id: int
    name: str
    brand: Optional[str] = None
    category: Optional[str] = None
    retail_price: float = 0.0
    department: Optional[str] = None
    sku: Optional[str] = None
    cost: Optional[float] = None


@dataclass(frozen=True)
class Order:
    id: int
    user_id: Optional[int]
    status: str
    created_at: Optional[date]
    num_of_item: int


def _casefold(value: Optional[str]) -> Optional[str]:
    return value.casefold() if value is not None else None


class CatalogRepository:
    """Read access to products and orders, plus bulk loading."""

    def search_products(self, query: str, limit: Optional[int] = None) -> List[Product]:
        raise NotImplementedError

    def get_order(self, order_id: int) -> Optional[Order]:
        raise NotImplementedError

    def upsert_products(self, products: Iterable[Product]) -> int:
        raise NotImplementedError

    def upsert_orders(self, orders: Iterable[Order]) -> int:
        raise NotImplementedError


class SQLiteCatalogRepository(CatalogRepository):
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._init_db()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        # SQLite lower() only folds ASCII
        conn.create_function("casefold", 1, _casefold)
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS products (
                    id INTEGER PRIMARY KEY,
                    name TEXT NOT NULL,
                    brand TEXT,
                    category TEXT,
                    retail_price REAL NOT NULL DEFAULT 0,
                    department TEXT,
                    sku TEXT,
                    cost REAL
                );

                CREATE TABLE IF NOT EXISTS orders (
                    order_id INTEGER PRIMARY KEY,
                    user_id INTEGER,
                    status TEXT NOT NULL,
                    created_at TEXT,
                    num_of_item INTEGER NOT NULL DEFAULT 0
                );
                """
            )

    def search_products(self, query: str, limit: Optional[int] = None) -> List[Product]:
        # The query is matched as given; only case is folded
        needle = query.casefold()
        sql = (
            "SELECT * FROM products "
            "WHERE instr(casefold(name), ?) > 0 OR instr(casefold(COALESCE(category, '')), ?) > 0 "
            "ORDER BY id"
        )
        params: tuple = (needle, needle)
        if limit is not None:
            sql += " LIMIT ?"
            params += (limit,)
        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [
            Product(
                id=row["id"],
                name=row["name"],
                brand=row["brand"],
                category=row["category"],
                retail_price=row["retail_price"],
                department=row["department"],
                sku=row["sku"],
                cost=row["cost"],
            )
            for row in rows
        ]

    def get_order(self, order_id: int) -> Optional[Order]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM orders WHERE order_id=?", (order_id,)).fetchone()
        if row is None:
            return None
        return Order(
            id=row["order_id"],
            user_id=row["user_id"],
            status=row["status"],
            created_at=date.fromisoformat(row["created_at"]) if row["created_at"] else None,
            num_of_item=row["num_of_item"],
        )

    def upsert_products(self, products: Iterable[Product]) -> int:
        rows = [
            (p.id, p.name, p.brand, p.category, p.retail_price, p.department, p.sku, p.cost)
            for p in products
        ]
        with self._connect() as conn:
            conn.executemany(
                "INSERT OR REPLACE INTO products "
                "(id, name, brand, category, retail_price, department, sku, cost) "
                "VALUES (?,?,?,?,?,?,?,?)",
                rows,
            )
        return len(rows)

    def upsert_orders(self, orders: Iterable[Order]) -> int:
        rows = [
            (
                o.id,
                o.user_id,
                o.status,
                o.created_at.isoformat() if o.created_at else None,
                o.num_of_item,
            )
            for o in orders
        ]
        with self._connect() as conn:
            conn.executemany(
                "INSERT OR REPLACE INTO orders (order_id, user_id, status, created_at, num_of_item) "
                "VALUES (?,?,?,?,?)",
                rows,
            )
        return len(rows)


def parse_date(value: Optional[str]) -> Optional[date]:
    """Reduce a CSV timestamp such as ``2023-01-05 10:00:00+00:00`` to its date."""
    if not value or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        logger.warning(f"Could not parse timestamp {value!r}")
        return None


def _optional_float(value: Optional[str]) -> Optional[float]:
    return float(value) if value not in (None, "") else None


def _read_rows(path: Path) -> List[Dict[str, str]]:
    with path.open(newline="", encoding="utf-8") as fh:
        return list(csv.DictReader(fh))


def import_csv_directory(
    catalog: CatalogRepository,
    conversations: ConversationRepository,
    directory: str,
) -> Dict[str, int]:
    """Load ``users.csv``, ``products.csv`` and ``orders.csv`` from ``directory``.

    Each file is written in a single batch keyed by its natural id, so re-running
    the import replaces rows instead of duplicating them. Missing files are skipped.
    Returns the number of rows written per file.
    """
    base = Path(directory)
    counts: Dict[str, int] = {}

    users_csv = base / "users.csv"
    if users_csv.exists():
        counts["users"] = conversations.upsert_users(
            User(
                id=int(row["id"]),
                first_name=row.get("first_name"),
                last_name=row.get("last_name"),
                email=row.get("email"),
            )
            for row in _read_rows(users_csv)
        )

    products_csv = base / "products.csv"
    if products_csv.exists():
        counts["products"] = catalog.upsert_products(
            Product(
                id=int(row["id"]),
                name=row["name"],
                brand=row.get("brand"),
                category=row.get("category"),
                retail_price=float(row.get("retail_price") or 0),
                department=row.get("department"),
                sku=row.get("sku"),
                cost=_optional_float(row.get("cost")),
            )
            for row in _read_rows(products_csv)
        )

    orders_csv = base / "orders.csv"
    if orders_csv.exists():
        counts["orders"] = catalog.upsert_orders(
            Order(
                id=int(row["order_id"]),
                user_id=int(row["user_id"]) if row.get("user_id") else None,
                status=row["status"],
                created_at=parse_date(row.get("created_at")),
                num_of_item=int(row.get("num_of_item") or 0),
            )
            for row in _read_rows(orders_csv)
        )

    logger.info(f"Imported reference data from {base}: {counts}")
    return counts
