# menucard/types.py
"""
Document and result types shared by indexing, retrieval and context assembly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

import numpy as np

ContentType = Literal["restaurant_info", "category", "menu_item"]
CONTENT_TYPES: tuple[str, ...] = ("restaurant_info", "category", "menu_item")


@dataclass(frozen=True)
class DocumentDraft:
    """One indexable unit before it has an embedding."""

    restaurant_id: str
    content: str
    content_type: ContentType
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class IndexedDocument:
    id: str
    restaurant_id: str
    content: str
    content_type: ContentType
    metadata: dict[str, Any]
    embedding: np.ndarray
    model: str

    @property
    def dim(self) -> int:
        return int(self.embedding.shape[0])


@dataclass
class SearchResult:
    """
    One matched document. `similarity` is None for results derived from
    lexical matching, which has no score.
    """

    restaurant_id: str | None
    content: str
    content_type: ContentType
    metadata: dict[str, Any] = field(default_factory=dict)
    similarity: float | None = None
    id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "content": self.content,
            "content_type": self.content_type,
            "metadata": self.metadata,
            "similarity": self.similarity,
        }
