# menucard/index/service.py
"""
Re-index restaurants into the vector store.

A re-index fully replaces a restaurant's document set: drafts are built and
embedded first, then the old set is swapped for the new one in a single
transaction. A failed embedding therefore leaves the previous documents in
place, and a successful one never leaves stale documents behind.
"""

from __future__ import annotations

import logging
import os
import time
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field

from menucard.catalog.repository import RestaurantRepository
from menucard.config import Settings
from menucard.embed.providers import EmbeddingChain, build_embedding_chain
from menucard.embed.store import VectorStore
from menucard.errors import ConfigurationError, NotFound
from menucard.obs.metrics import INDEX_RUNS, INDEXED_DOCUMENTS
from menucard.types import DocumentDraft, IndexedDocument

from .documents import build_documents
from .locks import KeyedLocks

log = logging.getLogger(__name__)

EMBED_BATCH_SIZE = 64


@dataclass
class IndexReport:
    """Outcome of a batch re-index. Partial success is a normal result."""

    attempted: int = 0
    succeeded: dict[str, int] = field(default_factory=dict)  # restaurant_id -> documents
    failed: dict[str, str] = field(default_factory=dict)  # restaurant_id -> error

    @property
    def documents(self) -> int:
        return sum(self.succeeded.values())

    def to_dict(self) -> dict:
        return {
            "attempted": self.attempted,
            "succeeded": len(self.succeeded),
            "failed": self.failed,
            "documents": self.documents,
        }


class RestaurantIndexer:
    def __init__(
        self,
        repository: RestaurantRepository,
        store: VectorStore,
        embeddings: EmbeddingChain,
        *,
        workers: int = 4,
        locks: KeyedLocks | None = None,
        batch_size: int = EMBED_BATCH_SIZE,
    ):
        self.repository = repository
        self.store = store
        self.embeddings = embeddings
        self.workers = max(1, workers)
        self.locks = locks or KeyedLocks()
        self.batch_size = batch_size

    def reindex_restaurant(self, restaurant_id: str) -> int:
        """
        Rebuild every document of one restaurant. Returns the document count.

        Raises NotFound for an unknown restaurant; embedding and persistence
        failures propagate as UpstreamUnavailable.
        """
        with self.locks.hold(restaurant_id):
            t0 = time.perf_counter()
            try:
                restaurant = self.repository.get_restaurant(restaurant_id)
                if restaurant is None:
                    raise NotFound("restaurant", restaurant_id)
                menus = self.repository.get_menus_for_restaurant(restaurant_id)
                drafts = build_documents(restaurant, menus)
                docs = self._embed(drafts)
                written = self.store.replace_documents(restaurant_id, docs)
            except Exception:
                INDEX_RUNS.labels(status="failed").inc()
                raise
            INDEX_RUNS.labels(status="ok").inc()
            INDEXED_DOCUMENTS.inc(written)
            log.info(
                "Indexed restaurant %s (%s): %s documents in %.2fs",
                restaurant_id, restaurant.name, written, time.perf_counter() - t0,
            )
            return written

    def reindex_all(self) -> IndexReport:
        """Re-index every restaurant; one failure never stops the others."""
        restaurant_ids = [r.id for r in self.repository.list_restaurants()]
        report = IndexReport(attempted=len(restaurant_ids))
        if not restaurant_ids:
            log.info("No restaurants to index")
            return report

        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="menucard-index") as pool:
            futures = {pool.submit(self.reindex_restaurant, rid): rid for rid in restaurant_ids}
            for fut in as_completed(futures):
                rid = futures[fut]
                try:
                    report.succeeded[rid] = fut.result()
                except Exception as e:
                    log.error("Failed to index restaurant %s: %s", rid, e)
                    report.failed[rid] = str(e)

        log.info(
            "Indexed %s/%s restaurants (%s documents, %s failed)",
            len(report.succeeded), report.attempted, report.documents, len(report.failed),
        )
        return report

    def _embed(self, drafts: list[DocumentDraft]) -> list[IndexedDocument]:
        # every batch of one restaurant must land in the same embedding space
        space: str | None = None
        docs: list[IndexedDocument] = []
        for i in range(0, len(drafts), self.batch_size):
            chunk = drafts[i : i + self.batch_size]
            batch = self.embeddings.embed(
                [d.content for d in chunk], spaces=[space] if space else None
            )
            space = batch.space
            for draft, vec in zip(chunk, batch.vectors, strict=True):
                docs.append(
                    IndexedDocument(
                        id=str(uuid.uuid4()),
                        restaurant_id=draft.restaurant_id,
                        content=draft.content,
                        content_type=draft.content_type,
                        metadata=dict(draft.metadata),
                        embedding=vec,
                        model=batch.space,
                    )
                )
        return docs


def check_database(settings: Settings) -> None:
    """The database must be configured and, unless in-memory, already exist."""
    path = settings.sqlite_path
    if not path:
        raise ConfigurationError("SQLITE_PATH is not set")
    if path != ":memory:" and not os.path.exists(path):
        raise ConfigurationError(f"Database not found: {path}")


def check_index_preconditions(settings: Settings) -> EmbeddingChain:
    """
    Fail fast before any restaurant is touched: an embedding provider must be
    configured and the database must exist. Returns the embedding chain.
    """
    chain = build_embedding_chain(settings)
    check_database(settings)
    return chain
