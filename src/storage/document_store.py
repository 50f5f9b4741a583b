# src/storage/document_store.py

"""Hierarchical document store port with in-memory and SQLite backends.

Paths alternate collection and document segments, e.g.
``scraper_jobs/{jobId}/vendors/{vendorId}``.  A collection path has an
odd number of segments, a document path an even number.  Documents are
plain JSON-compatible dicts.
"""

import copy
import json
import logging
import re
import sqlite3
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from src.config.settings import Settings
from src.scrapers.exceptions import DocumentNotFoundError

logger = logging.getLogger("offer_scraper.store")

Document = dict[str, Any]

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def split_document_path(path: str) -> tuple[str, str]:
    """Split ``a/b/c/d`` into its collection (``a/b/c``) and id (``d``)."""
    parts = [p for p in path.strip("/").split("/") if p]
    if not parts or len(parts) % 2:
        raise ValueError(f"Not a document path: {path!r}")
    return "/".join(parts[:-1]), parts[-1]


def _check_collection(collection: str) -> str:
    parts = [p for p in collection.strip("/").split("/") if p]
    if not parts or len(parts) % 2 == 0:
        raise ValueError(f"Not a collection path: {collection!r}")
    return "/".join(parts)


class DocumentStore(ABC):
    """Persistence port used by every pipeline component."""

    @staticmethod
    def new_id() -> str:
        """Generate an auto-id for a new document."""
        return uuid.uuid4().hex

    @abstractmethod
    def get(self, path: str) -> Document | None:
        """Return the document at *path*, or ``None``."""
        ...

    @abstractmethod
    def set(self, path: str, data: Document) -> None:
        """Create or fully overwrite the document at *path*."""
        ...

    @abstractmethod
    def update(self, path: str, data: Document) -> None:
        """Merge top-level fields into an existing document."""
        ...

    @abstractmethod
    def query(
        self, collection: str, **equals: Any,
    ) -> list[tuple[str, Document]]:
        """Return ``(doc_id, document)`` pairs matching every equality filter.

        Results follow document creation order.
        """
        ...

    @abstractmethod
    def commit_batch(
        self, writes: list[tuple[str, Document]],
    ) -> None:
        """Apply several ``set`` writes atomically."""
        ...

    def add(self, collection: str, data: Document) -> str:
        """Create a document with an auto-id and return the id."""
        doc_id = self.new_id()
        self.set(f"{_check_collection(collection)}/{doc_id}", data)
        return doc_id

    def list_documents(
        self, collection: str,
    ) -> list[tuple[str, Document]]:
        """Return every document of a collection."""
        return self.query(collection)

    def close(self) -> None:
        """Release backend resources (no-op by default)."""


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store for tests and dry runs."""

    def __init__(self) -> None:
        self._docs: dict[str, Document] = {}

    def get(self, path: str) -> Document | None:
        collection, doc_id = split_document_path(path)
        doc = self._docs.get(f"{collection}/{doc_id}")
        return copy.deepcopy(doc) if doc is not None else None

    def set(self, path: str, data: Document) -> None:
        collection, doc_id = split_document_path(path)
        self._docs[f"{collection}/{doc_id}"] = copy.deepcopy(data)

    def update(self, path: str, data: Document) -> None:
        collection, doc_id = split_document_path(path)
        key = f"{collection}/{doc_id}"
        if key not in self._docs:
            raise DocumentNotFoundError(f"No document at {key}")
        self._docs[key].update(copy.deepcopy(data))

    def query(
        self, collection: str, **equals: Any,
    ) -> list[tuple[str, Document]]:
        prefix = _check_collection(collection) + "/"
        matches: list[tuple[str, Document]] = []
        for key, doc in self._docs.items():
            if not key.startswith(prefix):
                continue
            doc_id = key[len(prefix):]
            if "/" in doc_id:
                continue
            if all(doc.get(f) == v for f, v in equals.items()):
                matches.append((doc_id, copy.deepcopy(doc)))
        return matches

    def commit_batch(
        self, writes: list[tuple[str, Document]],
    ) -> None:
        staged = {}
        for path, data in writes:
            collection, doc_id = split_document_path(path)
            staged[f"{collection}/{doc_id}"] = copy.deepcopy(data)
        self._docs.update(staged)


_SCHEMA = """\
CREATE TABLE IF NOT EXISTS documents (
    seq        INTEGER PRIMARY KEY AUTOINCREMENT,
    path       TEXT    NOT NULL UNIQUE,
    collection TEXT    NOT NULL,
    doc_id     TEXT    NOT NULL,
    data       TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_documents_collection
    ON documents(collection, seq);
"""


class SQLiteDocumentStore(DocumentStore):
    """SQLite-backed store keeping each document as a JSON blob."""

    def __init__(
        self, db_path: Path | None = None,
    ) -> None:
        path = db_path or Settings.DB_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(
            str(path), check_same_thread=False,
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)
        logger.debug("SQLiteDocumentStore opened at %s", path)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # ── Reads ────────────────────────────────────────────

    def get(self, path: str) -> Document | None:
        collection, doc_id = split_document_path(path)
        row = self._conn.execute(
            "SELECT data FROM documents WHERE path = ?",
            (f"{collection}/{doc_id}",),
        ).fetchone()
        if row is None:
            return None
        doc: Document = json.loads(row[0])
        return doc

    def query(
        self, collection: str, **equals: Any,
    ) -> list[tuple[str, Document]]:
        sql = "SELECT doc_id, data FROM documents WHERE collection = ?"
        params: list[Any] = [_check_collection(collection)]
        for field_name, value in equals.items():
            if not _FIELD_RE.match(field_name):
                raise ValueError(f"Bad field name: {field_name!r}")
            sql += f" AND json_extract(data, '$.{field_name}') = ?"
            params.append(value)
        sql += " ORDER BY seq ASC"
        rows = self._conn.execute(sql, params).fetchall()
        return [(r[0], json.loads(r[1])) for r in rows]

    # ── Writes ───────────────────────────────────────────

    def _upsert_row(self, path: str, data: Document) -> None:
        collection, doc_id = split_document_path(path)
        self._conn.execute(
            "INSERT INTO documents (path, collection, doc_id, data) "
            "VALUES (?, ?, ?, ?) "
            "ON CONFLICT(path) DO UPDATE SET data=excluded.data",
            (
                f"{collection}/{doc_id}",
                collection,
                doc_id,
                json.dumps(data, ensure_ascii=False),
            ),
        )

    def set(self, path: str, data: Document) -> None:
        with self._conn:
            self._upsert_row(path, data)

    def update(self, path: str, data: Document) -> None:
        with self._conn:
            existing = self.get(path)
            if existing is None:
                raise DocumentNotFoundError(f"No document at {path}")
            existing.update(data)
            self._upsert_row(path, existing)

    def commit_batch(
        self, writes: list[tuple[str, Document]],
    ) -> None:
        with self._conn:
            for path, data in writes:
                self._upsert_row(path, data)
        logger.debug("Committed batch of %d documents", len(writes))
