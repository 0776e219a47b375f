# menucard/retrieval/lexical.py
"""
Case-insensitive substring search over restaurants and their menus.

Needs no embedding provider: it is the primary search of the lighter
deployment and the fallback when semantic search is unavailable.
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict

from menucard.catalog.models import Menu, Restaurant
from menucard.catalog.repository import RestaurantRepository
from menucard.index.documents import build_documents
from menucard.obs.metrics import SEARCH_LATENCY, SEARCH_RESULTS
from menucard.types import DocumentDraft, SearchResult

log = logging.getLogger(__name__)

DEFAULT_LIMIT = 10


def _contains(value: str | None, needle: str) -> bool:
    return bool(value) and needle in value.lower()  # type: ignore[union-attr]


def restaurant_matches(restaurant: Restaurant, menus: list[Menu], needle: str) -> bool:
    """`needle` must already be lowercase."""
    if any(_contains(v, needle) for v in (restaurant.name, restaurant.description, restaurant.address)):
        return True
    return any(needle in m.extracted_data.flattened_text() for m in menus)


def _draft_matches(draft: DocumentDraft, needle: str) -> bool:
    meta = draft.metadata
    if draft.content_type == "restaurant_info":
        return True
    if draft.content_type == "category":
        return _contains(meta.get("category_name"), needle)
    return any(
        _contains(meta.get(k), needle) for k in ("item_name", "item_description", "category_name")
    )


class TextSearcher:
    def __init__(self, repository: RestaurantRepository, *, limit: int = DEFAULT_LIMIT):
        self.repository = repository
        self.limit = limit

    def _candidates(self) -> list[tuple[Restaurant, list[Menu]]]:
        """Every restaurant in storage order, with its valid menus (newest first)."""
        with self.repository.session() as conn:
            menu_rows = conn.execute(
                """SELECT * FROM menus WHERE restaurant_id IS NOT NULL
                   ORDER BY created_at DESC, rowid DESC"""
            ).fetchall()
        by_restaurant: dict[str, list[Menu]] = defaultdict(list)
        for menu in RestaurantRepository._valid_menus(menu_rows):
            by_restaurant[menu.restaurant_id].append(menu)  # type: ignore[index]
        return [(r, by_restaurant.get(r.id, [])) for r in self.repository.list_restaurants()]

    def _matches(self, query: str, limit: int | None) -> list[tuple[Restaurant, list[Menu]]]:
        needle = (query or "").strip().lower()
        limit = self.limit if limit is None else limit
        if not needle or limit <= 0:
            return []

        t0 = time.perf_counter()
        hits: list[tuple[Restaurant, list[Menu]]] = []
        for restaurant, menus in self._candidates():
            if restaurant_matches(restaurant, menus, needle):
                hits.append((restaurant, menus))
                if len(hits) >= limit:
                    break
        SEARCH_LATENCY.labels(stage="lexical").observe(time.perf_counter() - t0)
        SEARCH_RESULTS.labels(mode="lexical").observe(len(hits))
        log.debug("Lexical search %r -> %s restaurants", query, len(hits))
        return hits

    def search(self, query: str, limit: int | None = None) -> list[Restaurant]:
        """Distinct restaurants whose profile or menu contains `query`."""
        return [r for r, _ in self._matches(query, limit)]

    def search_documents(self, query: str, limit: int | None = None) -> list[SearchResult]:
        """
        The same matches shaped like semantic results: the restaurant profile
        plus the categories and items that contain the query. No scores.
        """
        needle = (query or "").strip().lower()
        out: list[SearchResult] = []
        for restaurant, menus in self._matches(query, limit):
            for draft in build_documents(restaurant, menus):
                if _draft_matches(draft, needle):
                    out.append(
                        SearchResult(
                            restaurant_id=draft.restaurant_id,
                            content=draft.content,
                            content_type=draft.content_type,
                            metadata=dict(draft.metadata),
                        )
                    )
        return out
