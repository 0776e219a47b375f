# menucard/services.py
"""
Service container: every shared collaborator, built once at process start and
handed to the API, the CLI and tests explicitly.

Provider-backed services (embeddings, chat, extraction) are built on first
use, so a lexical-only deployment starts without any model credentials.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import TypeVar

from menucard.assistant.chat import RestaurantAssistant
from menucard.assistant.graph import ChatDeps
from menucard.catalog.repository import RestaurantRepository
from menucard.config import Settings
from menucard.embed.providers import EmbeddingChain, build_embedding_chain
from menucard.embed.store import VectorStore
from menucard.index.locks import KeyedLocks
from menucard.index.service import RestaurantIndexer
from menucard.llm.chain import ChatModel, build_chat_chain
from menucard.llm.extraction import MenuExtractor
from menucard.retrieval.lexical import TextSearcher
from menucard.retrieval.semantic import SimilaritySearcher

log = logging.getLogger(__name__)

T = TypeVar("T")


class Services:
    def __init__(
        self,
        settings: Settings,
        *,
        repository: RestaurantRepository | None = None,
        store: VectorStore | None = None,
        embeddings: EmbeddingChain | None = None,
        chat: ChatModel | None = None,
        extractor: MenuExtractor | None = None,
    ):
        self.settings = settings
        self.repository = repository or RestaurantRepository(
            settings.sqlite_path, timeout_s=settings.db_timeout_s
        )
        self.store = store or VectorStore(
            settings.sqlite_path, timeout_s=settings.db_timeout_s, backend=settings.vector_backend
        )
        self.text_searcher = TextSearcher(self.repository, limit=settings.text_search_limit)
        self.locks = KeyedLocks()

        self._lock = threading.RLock()  # factories resolve other lazy services
        self._embeddings = embeddings
        self._chat = chat
        self._extractor = extractor
        self._searcher: SimilaritySearcher | None = None
        self._indexer: RestaurantIndexer | None = None
        self._assistant: RestaurantAssistant | None = None

    def _once(self, attr: str, factory: Callable[[], T]) -> T:
        value = getattr(self, attr)
        if value is None:
            with self._lock:
                value = getattr(self, attr)
                if value is None:
                    value = factory()
                    setattr(self, attr, value)
        return value

    # ----- provider-backed, built on first use (ConfigurationError when unconfigured) -----
    @property
    def embeddings(self) -> EmbeddingChain:
        return self._once("_embeddings", lambda: build_embedding_chain(self.settings))

    @property
    def chat(self) -> ChatModel:
        return self._once("_chat", lambda: build_chat_chain(self.settings))

    @property
    def extractor(self) -> MenuExtractor:
        def make() -> MenuExtractor:
            from menucard.llm.openrouter import OpenRouterChat

            s = self.settings
            client = OpenRouterChat(
                s.openrouter_api_key,
                s.extraction_model,
                base_url=s.openrouter_base_url,
                app_url=s.app_url,
                app_name=s.app_name,
                timeout_s=s.chat_timeout_s,
            )
            return MenuExtractor(client, s.extraction_model)

        return self._once("_extractor", make)

    @property
    def searcher(self) -> SimilaritySearcher:
        return self._once(
            "_searcher",
            lambda: SimilaritySearcher(
                self.embeddings,
                self.store,
                threshold=self.settings.search_threshold,
                limit=self.settings.search_limit,
            ),
        )

    @property
    def indexer(self) -> RestaurantIndexer:
        return self._once(
            "_indexer",
            lambda: RestaurantIndexer(
                self.repository,
                self.store,
                self.embeddings,
                workers=self.settings.index_workers,
                locks=self.locks,
            ),
        )

    @property
    def assistant(self) -> RestaurantAssistant:
        s = self.settings

        def make() -> RestaurantAssistant:
            deps = ChatDeps(
                semantic=lambda: self.searcher,
                lexical=self.text_searcher,
                repository=self.repository,
                chat=self.chat,
                search_mode=s.search_mode,
                lexical_fallback=s.lexical_fallback,
                threshold=s.chat_search_threshold,
                limit=s.chat_search_limit,
                text_limit=s.text_search_limit,
                items_per_restaurant=s.context_items_per_restaurant,
                max_tokens=s.chat_max_tokens,
                temperature=s.chat_temperature,
            )
            return RestaurantAssistant(deps)

        return self._once("_assistant", make)


def build_services(settings: Settings) -> Services:
    services = Services(settings)
    services.repository.init_schema()
    log.info(
        "Services ready (db=%s, search_mode=%s, backend=%s)",
        settings.sqlite_path, settings.search_mode, settings.vector_backend,
    )
    return services
