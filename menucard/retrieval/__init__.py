from menucard.types import SearchResult

from .lexical import TextSearcher
from .semantic import SimilaritySearcher

__all__ = ["SearchResult", "SimilaritySearcher", "TextSearcher"]
