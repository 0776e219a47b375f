"""
Embedding providers and the vector store they feed.
"""

from .providers import (
    EmbeddingBatch,
    EmbeddingChain,
    EmbeddingProvider,
    LocalEmbeddings,
    OpenAICompatibleEmbeddings,
    build_embedding_chain,
    l2_normalize,
)
from .store import VectorStore, from_blob, to_blob

__all__ = [
    "EmbeddingProvider",
    "EmbeddingBatch",
    "EmbeddingChain",
    "OpenAICompatibleEmbeddings",
    "LocalEmbeddings",
    "build_embedding_chain",
    "l2_normalize",
    "VectorStore",
    "to_blob",
    "from_blob",
]
