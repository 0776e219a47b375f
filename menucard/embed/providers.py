# menucard/embed/providers.py
"""
Embedding provider adapters behind one capability (`embed`), tried in order.

Each adapter declares the embedding *space* it produces. Two adapters that
serve the same model (OpenAI directly, or through OpenRouter) share a space,
so their vectors are interchangeable; a local model has its own space.
"""

from __future__ import annotations

import logging
from collections.abc import Collection
from dataclasses import dataclass
from typing import Protocol

import numpy as np
from openai import OpenAI

from menucard.config import Settings
from menucard.errors import ConfigurationError, UpstreamUnavailable
from menucard.obs.metrics import PROVIDER_FAILURES
from menucard.timeouts import call_with_timeout

log = logging.getLogger(__name__)


class EmbeddingProvider(Protocol):
    name: str
    space: str

    def embed(self, texts: list[str]) -> np.ndarray:
        """Return an (N, dim) float32 matrix of L2-normalized rows."""
        ...


@dataclass
class EmbeddingBatch:
    vectors: np.ndarray
    space: str
    provider: str

    @property
    def dim(self) -> int:
        return int(self.vectors.shape[1]) if self.vectors.ndim == 2 else 0


def l2_normalize(mat: np.ndarray) -> np.ndarray:
    mat = np.asarray(mat, dtype=np.float32)
    if mat.ndim == 1:
        mat = mat[None, :]
    norm = np.linalg.norm(mat, axis=1, keepdims=True) + 1e-12
    return np.ascontiguousarray(mat / norm, dtype=np.float32)


class OpenAICompatibleEmbeddings:
    """
    OpenAI embeddings API; also used for OpenRouter, which serves the same
    models behind an OpenAI-compatible endpoint.
    """

    def __init__(
        self,
        name: str,
        api_key: str,
        model: str,
        *,
        base_url: str | None = None,
        timeout_s: float = 15.0,
    ):
        self.name = name
        self.model = model
        self.space = model
        self.timeout_s = timeout_s
        self.client = OpenAI(api_key=api_key, base_url=base_url, timeout=timeout_s, max_retries=1)

    def embed(self, texts: list[str]) -> np.ndarray:
        resp = call_with_timeout(
            self.client.embeddings.create,
            model=self.model,
            input=texts,
            timeout_s=self.timeout_s,
            operation=f"{self.name} embeddings",
        )
        rows = sorted(resp.data, key=lambda d: d.index)
        return l2_normalize(np.array([r.embedding for r in rows], dtype=np.float32))


class LocalEmbeddings:
    """sentence-transformers model, loaded on first use so torch is only imported when enabled."""

    def __init__(self, model_name: str, *, device: str | None = None, timeout_s: float = 60.0):
        self.name = "local"
        self.model_name = model_name
        self.space = f"local:{model_name}"
        self.device = device
        self.timeout_s = timeout_s
        self._model = None

    def _get_model(self):
        if self._model is None:
            from sentence_transformers import SentenceTransformer

            self._model = SentenceTransformer(self.model_name, device=self.device)
            log.info("Loaded local embedding model %s", self.model_name)
        return self._model

    def embed(self, texts: list[str]) -> np.ndarray:
        vecs = call_with_timeout(
            lambda: self._get_model().encode(
                texts, batch_size=64, show_progress_bar=False, normalize_embeddings=True
            ),
            timeout_s=self.timeout_s,
            operation="local embeddings",
        )
        return l2_normalize(vecs)


class EmbeddingChain:
    """
    Ordered fallback over providers. The first provider that answers wins;
    when all fail, UpstreamUnavailable lists every provider attempted.
    """

    def __init__(self, providers: list[EmbeddingProvider]):
        if not providers:
            raise ConfigurationError(
                "No embedding service available. Configure OPENAI_API_KEY or OPENROUTER_API_KEY"
            )
        self.providers = list(providers)

    @property
    def names(self) -> list[str]:
        return [p.name for p in self.providers]

    @property
    def primary_space(self) -> str:
        return self.providers[0].space

    @property
    def spaces(self) -> list[str]:
        return list(dict.fromkeys(p.space for p in self.providers))

    def embed(self, texts: list[str], spaces: Collection[str] | None = None) -> EmbeddingBatch:
        """
        Embed with the first provider that answers. With `spaces`, only
        providers producing one of those spaces are eligible.
        """
        candidates = self.providers
        if spaces:
            candidates = [p for p in self.providers if p.space in spaces]
            if not candidates:
                raise ConfigurationError(
                    f"No configured embedding provider produces {sorted(spaces)}; "
                    f"configured: {self.spaces}"
                )

        attempted: list[str] = []
        for provider in candidates:
            attempted.append(provider.name)
            try:
                vecs = provider.embed(texts)
            except Exception as e:
                PROVIDER_FAILURES.labels(provider=provider.name, capability="embed").inc()
                log.warning("Embedding provider %s failed: %s", provider.name, e)
                continue
            if vecs.shape[0] != len(texts):
                PROVIDER_FAILURES.labels(provider=provider.name, capability="embed").inc()
                log.warning(
                    "Embedding provider %s returned %s vectors for %s texts",
                    provider.name, vecs.shape[0], len(texts),
                )
                continue
            return EmbeddingBatch(vectors=vecs, space=provider.space, provider=provider.name)
        raise UpstreamUnavailable("Failed to generate embedding", attempted=attempted)

    def embed_one(self, text: str, spaces: Collection[str] | None = None) -> tuple[np.ndarray, str]:
        batch = self.embed([text], spaces=spaces)
        return batch.vectors[0], batch.space


def build_embedding_chain(settings: Settings) -> EmbeddingChain:
    """
    Providers in EMBEDDING_PROVIDERS order, skipping those without credentials.
    Raises ConfigurationError when nothing usable remains.
    """
    providers: list[EmbeddingProvider] = []
    for name in settings.embedding_provider_names:
        if name == "openai":
            if settings.openai_api_key:
                providers.append(
                    OpenAICompatibleEmbeddings(
                        "openai", settings.openai_api_key, settings.embed_model,
                        timeout_s=settings.embed_timeout_s,
                    )
                )
        elif name == "openrouter":
            if settings.openrouter_api_key:
                providers.append(
                    OpenAICompatibleEmbeddings(
                        "openrouter", settings.openrouter_api_key, settings.embed_model,
                        base_url=settings.openrouter_base_url,
                        timeout_s=settings.embed_timeout_s,
                    )
                )
        elif name == "local":
            providers.append(LocalEmbeddings(settings.local_embed_model))
        else:
            raise ConfigurationError(f"Unknown embedding provider: {name}")
    return EmbeddingChain(providers)
