# menucard/embed/store.py
"""
SQLite-backed vector store for restaurant search documents.

Vectors are stored L2-normalized, so inner product equals cosine similarity.
Each row records the embedding space (`model`) it was produced in; a query
only ever scores rows from its own space.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import time
import uuid
from typing import Literal

import numpy as np

from menucard.catalog.schema import DEFAULT_TIMEOUT_S, transaction
from menucard.errors import ConfigurationError
from menucard.types import IndexedDocument, SearchResult

logger = logging.getLogger(__name__)

Backend = Literal["numpy", "faiss"]


def to_blob(arr: np.ndarray) -> bytes:
    arr = np.ascontiguousarray(arr, dtype=np.float32)
    if arr.ndim != 1:
        raise ValueError(f"expected a 1-d vector, got shape {arr.shape}")
    return arr.tobytes(order="C")


def from_blob(b: bytes, dim: int) -> np.ndarray:
    return np.frombuffer(b, dtype=np.float32, count=dim)


class VectorStore:
    """
    Owns the `restaurant_embeddings` table. No other component writes to it.

    Backends differ only in how neighbors are found: `numpy` scores the whole
    matrix, `faiss` builds an exact inner-product index and range-searches it.
    Both return identical, stably ordered results.
    """

    def __init__(self, db_path: str, timeout_s: float = DEFAULT_TIMEOUT_S, backend: Backend = "numpy"):
        if backend not in ("numpy", "faiss"):
            raise ConfigurationError(f"Unknown vector backend: {backend}")
        self.db_path = db_path
        self.timeout_s = timeout_s
        self.backend = backend

    # ----- writes -----
    def delete_documents(self, restaurant_id: str, conn: sqlite3.Connection | None = None) -> int:
        """Remove every document of a restaurant. Deleting nothing is not an error."""
        if conn is not None:
            return conn.execute(
                "DELETE FROM restaurant_embeddings WHERE restaurant_id=?", (restaurant_id,)
            ).rowcount
        with transaction(self.db_path, self.timeout_s) as c:
            return self.delete_documents(restaurant_id, conn=c)

    def insert_document(self, doc: IndexedDocument, conn: sqlite3.Connection | None = None) -> None:
        if conn is not None:
            vec = np.asarray(doc.embedding, dtype=np.float32)
            vec = vec / (np.linalg.norm(vec) + 1e-12)
            conn.execute(
                """INSERT INTO restaurant_embeddings(id, restaurant_id, content, content_type,
                                                     metadata_json, model, dim, vec, created_at)
                   VALUES(?,?,?,?,?,?,?,?,?)""",
                (
                    doc.id or str(uuid.uuid4()),
                    doc.restaurant_id,
                    doc.content,
                    doc.content_type,
                    json.dumps(doc.metadata),
                    doc.model,
                    doc.dim,
                    to_blob(vec),
                    time.time(),
                ),
            )
            return
        with transaction(self.db_path, self.timeout_s) as c:
            self.insert_document(doc, conn=c)

    def replace_documents(self, restaurant_id: str, docs: list[IndexedDocument]) -> int:
        """
        Delete-then-insert in a single transaction: readers see either the old
        set or the new one, never a mix.
        """
        with transaction(self.db_path, self.timeout_s) as conn:
            removed = self.delete_documents(restaurant_id, conn=conn)
            for doc in docs:
                if doc.restaurant_id != restaurant_id:
                    raise ValueError(
                        f"document for {doc.restaurant_id} in re-index of {restaurant_id}"
                    )
                self.insert_document(doc, conn=conn)
        logger.debug("Replaced %s documents with %s for %s", removed, len(docs), restaurant_id)
        return len(docs)

    # ----- reads -----
    def list_documents(self, restaurant_id: str) -> list[IndexedDocument]:
        """Documents of one restaurant in insertion order."""
        with transaction(self.db_path, self.timeout_s) as conn:
            rows = conn.execute(
                "SELECT * FROM restaurant_embeddings WHERE restaurant_id=? ORDER BY seq",
                (restaurant_id,),
            ).fetchall()
        return [
            IndexedDocument(
                id=r["id"],
                restaurant_id=r["restaurant_id"],
                content=r["content"],
                content_type=r["content_type"],
                metadata=_load_meta(r),
                embedding=from_blob(r["vec"], r["dim"]),
                model=r["model"],
            )
            for r in rows
        ]

    def count(self, restaurant_id: str | None = None) -> int:
        with transaction(self.db_path, self.timeout_s) as conn:
            if restaurant_id is None:
                return conn.execute("SELECT COUNT(*) FROM restaurant_embeddings").fetchone()[0]
            return conn.execute(
                "SELECT COUNT(*) FROM restaurant_embeddings WHERE restaurant_id=?", (restaurant_id,)
            ).fetchone()[0]

    def spaces(self) -> set[str]:
        """Embedding spaces present in the store."""
        with transaction(self.db_path, self.timeout_s) as conn:
            rows = conn.execute("SELECT DISTINCT model FROM restaurant_embeddings").fetchall()
        return {r["model"] for r in rows}

    def nearest_neighbors(
        self,
        query_vec: np.ndarray,
        space: str,
        threshold: float,
        limit: int,
    ) -> list[SearchResult]:
        """
        Documents of `space` with cosine similarity >= threshold, best first,
        at most `limit`. Equal scores keep insertion order.
        """
        if limit <= 0:
            return []

        with transaction(self.db_path, self.timeout_s) as conn:
            rows = conn.execute(
                """SELECT seq, id, restaurant_id, content, content_type, metadata_json, dim, vec
                   FROM restaurant_embeddings WHERE model=? ORDER BY seq""",
                (space,),
            ).fetchall()
        if not rows:
            return []

        dim = rows[0]["dim"]
        for row in rows:
            if row["dim"] != dim:
                raise ValueError(f"Inconsistent embedding dimensions in {space}: {dim} vs {row['dim']}")

        q = np.asarray(query_vec, dtype=np.float32).reshape(-1)
        if q.shape[0] != dim:
            raise ConfigurationError(
                f"Query vector has dim {q.shape[0]} but space {space} stores dim {dim}"
            )
        q = q / (np.linalg.norm(q) + 1e-12)
        mat = np.vstack([from_blob(r["vec"], dim) for r in rows]).astype(np.float32, copy=False)

        if self.backend == "faiss":
            idx, scores = _faiss_range(mat, q, threshold)
        else:
            idx, scores = _numpy_range(mat, q, threshold)

        # stable sort on descending score; idx is ascending so ties keep insertion order
        order = np.argsort(-scores, kind="stable")[:limit]
        out: list[SearchResult] = []
        for j in order.tolist():
            row = rows[int(idx[j])]
            out.append(
                SearchResult(
                    id=row["id"],
                    restaurant_id=row["restaurant_id"],
                    content=row["content"],
                    content_type=row["content_type"],
                    metadata=_load_meta(row),
                    similarity=min(1.0, float(scores[j])),
                )
            )
        return out


def _numpy_range(mat: np.ndarray, q: np.ndarray, threshold: float) -> tuple[np.ndarray, np.ndarray]:
    scores = mat @ q
    idx = np.nonzero(scores >= threshold)[0]
    return idx, scores[idx]


def _faiss_range(mat: np.ndarray, q: np.ndarray, threshold: float) -> tuple[np.ndarray, np.ndarray]:
    try:
        import faiss  # type: ignore
    except ImportError as e:  # pragma: no cover
        raise ConfigurationError("faiss is required for VECTOR_BACKEND=faiss. pip install faiss-cpu") from e

    index = faiss.IndexFlatIP(mat.shape[1])
    index.add(np.ascontiguousarray(mat))
    # range_search keeps scores strictly above the radius
    lims, scores, ids = index.range_search(np.ascontiguousarray(q[None, :]), threshold - 1e-6)
    ids = ids[lims[0] : lims[1]].astype(np.int64)
    scores = scores[lims[0] : lims[1]].astype(np.float32)
    # the radius is widened for float error; keep exactly what numpy keeps
    keep = scores >= threshold
    ids, scores = ids[keep], scores[keep]
    order = np.argsort(ids, kind="stable")
    return ids[order], scores[order]


def _load_meta(row: sqlite3.Row) -> dict:
    try:
        return json.loads(row["metadata_json"] or "{}")
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning("Failed to parse metadata_json for document %s: %s", row["id"], e)
        return {}
