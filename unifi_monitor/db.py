"""SQLite persistence layer for the store monitor.

Products are kept as append-only JSON documents grouped into named
collections. There is no dedup key: every observation is a new row.
"""

from __future__ import annotations

import datetime as _dt
import json
import logging
import sqlite3
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import PRODUCTS_COLLECTION, SQLITE_DB_PATH
from .errors import PersistenceError
from .scraper import Product

logger = logging.getLogger(__name__)


class ProductStore:
    """One open SQLite connection, reused for the life of the loop."""

    def __init__(self, conn: sqlite3.Connection, path: str) -> None:
        self._conn = conn
        self.path = path

    def insert_product(self, product: Product, collection: str = PRODUCTS_COLLECTION) -> str:
        """Append `product` as a new document and return its id."""
        return self.insert_document(collection, {collection: product.to_dict()})

    def insert_document(self, collection: str, body: Dict[str, Any]) -> str:
        doc_id = str(uuid.uuid4())
        now = _dt.datetime.now(_dt.timezone.utc).isoformat()
        try:
            with self._conn:
                self._conn.execute(
                    "INSERT INTO documents (id, collection, inserted_at, body) VALUES (?, ?, ?, ?)",
                    (doc_id, collection, now, json.dumps(body)),
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Insert into {collection} failed: {e}") from e
        logger.info("Inserted document %s into %s", doc_id, collection)
        return doc_id

    def find_all(self, collection: str = PRODUCTS_COLLECTION) -> List[Dict[str, Any]]:
        try:
            cur = self._conn.execute(
                "SELECT id, body FROM documents WHERE collection = ? ORDER BY rowid",
                (collection,),
            )
            rows = cur.fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Read of {collection} failed: {e}") from e
        return [{"_id": doc_id, **json.loads(body)} for doc_id, body in rows]

    def count(self, collection: str = PRODUCTS_COLLECTION) -> int:
        try:
            cur = self._conn.execute(
                "SELECT COUNT(*) FROM documents WHERE collection = ?", (collection,)
            )
            return int(cur.fetchone()[0])
        except sqlite3.Error as e:
            raise PersistenceError(f"Count of {collection} failed: {e}") from e

    def export_collection(self, collection: str, out_path: str) -> int:
        """Dump every document of `collection` to `out_path` as a JSON array."""
        docs = self.find_all(collection)
        target = Path(out_path)
        tmp = target.with_name(target.name + ".tmp")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(docs, indent=2), encoding="utf-8")
            tmp.replace(target)
        except OSError as e:
            raise PersistenceError(f"Export of {collection} to {out_path} failed: {e}") from e
        logger.debug("Exported %d documents from %s to %s", len(docs), collection, out_path)
        return len(docs)

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "ProductStore":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


def open_store(path: Optional[str] = None) -> ProductStore:
    """Open (creating if needed) the document database.

    Raises PersistenceError if the file can't be opened or initialised;
    the caller treats that as fatal.
    """
    path = path or SQLITE_DB_PATH
    try:
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(path)
        with conn:
            conn.execute("""
              CREATE TABLE IF NOT EXISTS documents (
                id TEXT PRIMARY KEY,
                collection TEXT NOT NULL,
                inserted_at TEXT NOT NULL,
                body TEXT NOT NULL
              )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents(collection)")
    except (sqlite3.Error, OSError) as e:
        raise PersistenceError(f"Failed to open database {path}: {e}") from e
    return ProductStore(conn, path)


__all__ = ["ProductStore", "open_store"]
