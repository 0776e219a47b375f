# menucard/catalog/schema.py
"""
SQLite schema and connection management.

Tables:
- restaurants: owner profiles; `slug` is the unique public lookup key
- menus: one active menu per restaurant, joined by `restaurant_id`.
  Legacy rows carry only (user_id, restaurant_name) until migrated.
- restaurant_embeddings: derived search documents, owned by the vector store
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from menucard.errors import Conflict, UpstreamUnavailable

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "menucard.db"
DEFAULT_TIMEOUT_S = 5.0

SCHEMA = """
CREATE TABLE IF NOT EXISTS restaurants (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    slug TEXT NOT NULL UNIQUE,
    description TEXT,
    address TEXT,
    phone TEXT,
    website TEXT,
    latitude REAL,
    longitude REAL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS menus (
    id TEXT PRIMARY KEY,
    restaurant_id TEXT,
    user_id TEXT NOT NULL,
    restaurant_name TEXT NOT NULL,
    image_url TEXT,
    extracted_data TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY(restaurant_id) REFERENCES restaurants(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS restaurant_embeddings (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    restaurant_id TEXT NOT NULL,
    content TEXT NOT NULL,
    content_type TEXT NOT NULL,
    metadata_json TEXT NOT NULL,
    model TEXT NOT NULL,
    dim INTEGER NOT NULL,
    vec BLOB NOT NULL,
    created_at REAL
);

CREATE INDEX IF NOT EXISTS idx_restaurants_user ON restaurants(user_id);
CREATE INDEX IF NOT EXISTS idx_menus_restaurant ON menus(restaurant_id);
CREATE INDEX IF NOT EXISTS idx_menus_legacy ON menus(user_id, restaurant_name);
CREATE INDEX IF NOT EXISTS idx_embeddings_restaurant ON restaurant_embeddings(restaurant_id);
CREATE INDEX IF NOT EXISTS idx_embeddings_model ON restaurant_embeddings(model);
"""


def connect(db_path: str = DEFAULT_DB_PATH, timeout_s: float = DEFAULT_TIMEOUT_S) -> sqlite3.Connection:
    """
    Create a database connection with row factory and foreign keys enabled.

    Args:
        db_path: Path to SQLite database file
        timeout_s: How long to wait on a locked database before failing

    Raises:
        sqlite3.Error: If database connection fails
        OSError: If database directory cannot be created
    """
    try:
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(db_path, timeout=timeout_s, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        logger.debug("Connected to database: %s", db_path)
        return conn

    except sqlite3.Error as e:
        logger.error("Database connection failed for %s: %s", db_path, e)
        raise
    except OSError as e:
        logger.error("Failed to create database directory for %s: %s", db_path, e)
        raise


def init_db(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes (idempotent)."""
    try:
        conn.executescript(SCHEMA)
        conn.commit()
        logger.info("Database schema initialization completed")
    except sqlite3.Error as e:
        logger.error("Database schema initialization failed: %s", e)
        raise


@contextmanager
def transaction(db_path: str, timeout_s: float = DEFAULT_TIMEOUT_S) -> Iterator[sqlite3.Connection]:
    """
    One connection, one transaction: commit on success, roll back on error.

    Uniqueness violations surface as Conflict, every other driver error as
    UpstreamUnavailable so callers can tell "broken" from "empty".
    """
    conn = None
    try:
        conn = connect(db_path, timeout_s=timeout_s)
        yield conn
        conn.commit()
    except sqlite3.IntegrityError as e:
        if conn is not None:
            conn.rollback()
        raise Conflict(str(e)) from e
    except sqlite3.Error as e:
        if conn is not None:
            conn.rollback()
        logger.error("Persistence error on %s: %s", db_path, e)
        raise UpstreamUnavailable(f"persistence unavailable: {e}", attempted=["sqlite"]) from e
    except BaseException:
        if conn is not None:
            conn.rollback()
        raise
    finally:
        if conn is not None:
            conn.close()
