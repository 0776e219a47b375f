# menucard/retrieval/semantic.py
from __future__ import annotations

import logging
import time

from opentelemetry import trace

from menucard.embed.providers import EmbeddingChain
from menucard.embed.store import VectorStore
from menucard.obs.metrics import SEARCH_LATENCY, SEARCH_RESULTS
from menucard.types import SearchResult

log = logging.getLogger(__name__)
_tracer = trace.get_tracer(__name__)

DEFAULT_THRESHOLD = 0.78
DEFAULT_LIMIT = 10


class SimilaritySearcher:
    """
    Embed a query and return the stored documents closest to it.

    The query is embedded in a space the store actually holds, so vectors from
    different providers are never compared. Provider failures propagate; there
    is no lexical fallback at this level.
    """

    def __init__(
        self,
        embeddings: EmbeddingChain,
        store: VectorStore,
        *,
        threshold: float = DEFAULT_THRESHOLD,
        limit: int = DEFAULT_LIMIT,
    ):
        self.embeddings = embeddings
        self.store = store
        self.threshold = threshold
        self.limit = limit

    def search(
        self, query: str, threshold: float | None = None, limit: int | None = None
    ) -> list[SearchResult]:
        threshold = self.threshold if threshold is None else threshold
        limit = self.limit if limit is None else limit
        query = (query or "").strip()
        if not query or limit <= 0:
            return []

        with _tracer.start_as_current_span("search.semantic") as span:
            span.set_attribute("search.threshold", threshold)
            span.set_attribute("search.limit", limit)

            stored = self.store.spaces()
            if not stored:
                log.info("Vector store is empty; nothing to search")
                SEARCH_RESULTS.labels(mode="semantic").observe(0)
                return []
            if len(stored) > 1:
                log.warning("Vector store holds several embedding spaces: %s", sorted(stored))

            t0 = time.perf_counter()
            vec, space = self.embeddings.embed_one(query, spaces=stored)
            SEARCH_LATENCY.labels(stage="embed").observe(time.perf_counter() - t0)

            t1 = time.perf_counter()
            results = self.store.nearest_neighbors(vec, space, threshold=threshold, limit=limit)
            SEARCH_LATENCY.labels(stage="neighbors").observe(time.perf_counter() - t1)

            span.set_attribute("search.space", space)
            span.set_attribute("search.results", len(results))
            SEARCH_RESULTS.labels(mode="semantic").observe(len(results))
            log.debug("Semantic search %r -> %s results in %s", query, len(results), space)
            return results
