# pricewatch/storage/product_store.py

"""SQLite-backed store of tracked products, their history and subscribers."""

import logging
import re
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from pricewatch.config.settings import Settings
from pricewatch.errors import PersistenceError, StoreUnavailableError
from pricewatch.models.product import PriceHistoryItem, Product, Subscriber

logger = logging.getLogger("pricewatch.product_store")

# Marketplace tracking params that vary per session
_TRACKING_PARAMS: frozenset[str] = frozenset({
    "ref", "ref_", "dib", "dib_tag", "qid", "sr", "spc",
    "sp_csd", "xpid", "aref", "sp_cr", "psc", "keywords",
    "pd_rd_i", "pd_rd_r", "pd_rd_w", "pd_rd_wg",
    "pf_rd_i", "pf_rd_m", "pf_rd_p", "pf_rd_r", "pf_rd_s", "pf_rd_t",
    "th", "tag", "linkcode", "utm_source", "utm_medium",
    "utm_campaign", "utm_term", "utm_content",
    "lid", "marketplace", "store", "srno", "otracker", "otracker1",
    "fm", "iid", "ssid", "ppt", "ppn", "src",
})

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS products (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    url_key         TEXT    NOT NULL UNIQUE,
    url             TEXT    NOT NULL,
    platform        TEXT    NOT NULL,
    title           TEXT    NOT NULL,
    current_price   REAL    NOT NULL DEFAULT 0,
    original_price  REAL    NOT NULL DEFAULT 0,
    discount_rate   INTEGER NOT NULL DEFAULT 0,
    is_out_of_stock INTEGER NOT NULL DEFAULT 0,
    currency        TEXT    NOT NULL DEFAULT '₹',
    image           TEXT    NOT NULL DEFAULT '',
    category        TEXT    NOT NULL DEFAULT '',
    description     TEXT    NOT NULL DEFAULT '',
    stars           REAL    NOT NULL DEFAULT 0,
    reviews_count   INTEGER NOT NULL DEFAULT 0,
    lowest_price    REAL    NOT NULL DEFAULT 0,
    highest_price   REAL    NOT NULL DEFAULT 0,
    average_price   REAL    NOT NULL DEFAULT 0,
    updated_at      TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS price_history (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id INTEGER NOT NULL
               REFERENCES products(id) ON DELETE CASCADE,
    seq        INTEGER NOT NULL,
    price      REAL    NOT NULL,
    date       TEXT    NOT NULL,
    UNIQUE (product_id, seq)
);

CREATE TABLE IF NOT EXISTS subscribers (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id INTEGER NOT NULL
               REFERENCES products(id) ON DELETE CASCADE,
    email      TEXT    NOT NULL COLLATE NOCASE,
    date_added TEXT    NOT NULL,
    UNIQUE (product_id, email)
);
"""

_PRODUCT_COLUMNS = (
    "url", "platform", "title", "current_price", "original_price",
    "discount_rate", "is_out_of_stock", "currency", "image", "category",
    "description", "stars", "reviews_count", "lowest_price",
    "highest_price", "average_price",
)


def normalize_url(raw_url: str) -> str:
    """Strip tracking/session query params to get a stable product URL."""
    parsed = urlparse(raw_url.strip())

    # Strip Amazon path-based tracking (e.g. /ref=sr_1_243)
    path = re.sub(r"/ref=[^/]*", "", parsed.path)

    params = parse_qs(parsed.query, keep_blank_values=True)
    cleaned = {
        k: v for k, v in params.items()
        if k.lower() not in _TRACKING_PARAMS
    }
    new_query = urlencode(cleaned, doseq=True) if cleaned else ""
    return urlunparse((
        parsed.scheme.lower(),
        parsed.netloc.lower(),
        path,
        parsed.params,
        new_query,
        "",  # drop fragment
    ))


class ProductStore(Protocol):
    """Persistence contract the cycle and the tracking service rely on."""

    def list_all(self) -> list[Product]: ...

    def find_by_url(self, url: str) -> Product | None: ...

    def upsert(self, product: Product) -> Product: ...

    def add_subscriber(self, url: str, email: str) -> Product: ...

    def close(self) -> None: ...


class SqliteProductStore:
    """SQLite implementation of :class:`ProductStore`.

    One connection is shared across worker threads; every statement
    runs under a lock and every write is one transaction.
    """

    def __init__(self, db_path: Path | None = None) -> None:
        path = db_path or Settings.DB_PATH
        try:
            if str(path) != ":memory:":
                path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(
                str(path), check_same_thread=False,
            )
            self._conn.execute("PRAGMA foreign_keys=ON")
            if str(path) != ":memory:":
                self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.executescript(_SCHEMA)
        except (sqlite3.Error, OSError) as exc:
            raise StoreUnavailableError(
                f"Cannot open product store at {path}: {exc}"
            ) from exc
        self._lock = threading.Lock()
        logger.debug("SqliteProductStore opened at %s", path)

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()

    # ── Reading ──────────────────────────────────────────

    def _load(self, row: sqlite3.Row | tuple[Any, ...]) -> Product:
        product_id: int = row[0]
        values = dict(zip(_PRODUCT_COLUMNS, row[1:]))
        history = tuple(
            PriceHistoryItem(price=r[0], date=datetime.fromisoformat(r[1]))
            for r in self._conn.execute(
                "SELECT price, date FROM price_history "
                "WHERE product_id = ? ORDER BY seq ASC",
                (product_id,),
            ).fetchall()
        )
        subscribers = tuple(
            Subscriber(email=r[0], date_added=datetime.fromisoformat(r[1]))
            for r in self._conn.execute(
                "SELECT email, date_added FROM subscribers "
                "WHERE product_id = ? ORDER BY id ASC",
                (product_id,),
            ).fetchall()
        )
        values["is_out_of_stock"] = bool(values["is_out_of_stock"])
        return Product(
            **values, price_history=history, subscribers=subscribers,
        )

    def list_all(self) -> list[Product]:
        """Every tracked product, oldest first.

        Raises:
            StoreUnavailableError: if the products cannot be read.
        """
        select = ", ".join(_PRODUCT_COLUMNS)
        try:
            with self._lock:
                rows = self._conn.execute(
                    f"SELECT id, {select} FROM products ORDER BY id ASC"
                ).fetchall()
                return [self._load(r) for r in rows]
        except sqlite3.Error as exc:
            raise StoreUnavailableError(
                f"Failed to list products: {exc}"
            ) from exc

    def find_by_url(self, url: str) -> Product | None:
        """Look a product up by its normalised URL."""
        select = ", ".join(_PRODUCT_COLUMNS)
        try:
            with self._lock:
                row = self._conn.execute(
                    f"SELECT id, {select} FROM products WHERE url_key = ?",
                    (normalize_url(url),),
                ).fetchone()
                return self._load(row) if row else None
        except sqlite3.Error as exc:
            raise PersistenceError(
                f"Failed to look up {url}: {exc}"
            ) from exc

    # ── Writing ──────────────────────────────────────────

    def _write(self, product: Product) -> int:
        values = [getattr(product, c) for c in _PRODUCT_COLUMNS]
        values[_PRODUCT_COLUMNS.index("is_out_of_stock")] = int(
            product.is_out_of_stock
        )
        assignments = ", ".join(
            f"{c}=excluded.{c}" for c in _PRODUCT_COLUMNS
        )
        cur = self._conn.execute(
            f"INSERT INTO products (url_key, {', '.join(_PRODUCT_COLUMNS)}, "
            f"updated_at) VALUES ({', '.join('?' * (len(values) + 2))}) "
            f"ON CONFLICT(url_key) DO UPDATE SET {assignments}, "
            "updated_at=excluded.updated_at",
            (normalize_url(product.url), *values, datetime.now().isoformat()),
        )
        product_id: int = cur.execute(
            "SELECT id FROM products WHERE url_key = ?",
            (normalize_url(product.url),),
        ).fetchone()[0]

        self._conn.execute(
            "DELETE FROM price_history WHERE product_id = ?", (product_id,),
        )
        self._conn.executemany(
            "INSERT INTO price_history (product_id, seq, price, date) "
            "VALUES (?, ?, ?, ?)",
            [
                (product_id, seq, item.price, item.date.isoformat())
                for seq, item in enumerate(product.price_history)
            ],
        )
        # Subscribers are additive; a stale snapshot never unsubscribes.
        self._conn.executemany(
            "INSERT OR IGNORE INTO subscribers "
            "(product_id, email, date_added) VALUES (?, ?, ?)",
            [
                (product_id, s.email, s.date_added.isoformat())
                for s in product.subscribers
            ],
        )
        return product_id

    def upsert(self, product: Product) -> Product:
        """Write *product* wholesale in one transaction.

        Raises:
            PersistenceError: if the write fails (nothing is written).
        """
        select = ", ".join(_PRODUCT_COLUMNS)
        try:
            with self._lock, self._conn:
                product_id = self._write(product)
                row = self._conn.execute(
                    f"SELECT id, {select} FROM products WHERE id = ?",
                    (product_id,),
                ).fetchone()
                stored = self._load(row)
        except sqlite3.Error as exc:
            raise PersistenceError(
                f"Failed to save {product.url}: {exc}"
            ) from exc
        logger.debug(
            "Saved %s (%d history samples)",
            product.url,
            len(product.price_history),
        )
        return stored

    def add_subscriber(self, url: str, email: str) -> Product:
        """Subscribe *email* to the product at *url*.

        Raises:
            PersistenceError: if the product is unknown or the write fails.
        """
        product = self.find_by_url(url)
        if product is None:
            raise PersistenceError(f"No tracked product for {url}")
        return self.upsert(product.with_subscriber(email))
