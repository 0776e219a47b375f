from .documents import build_documents
from .locks import KeyedLocks
from .service import IndexReport, RestaurantIndexer, check_database, check_index_preconditions

__all__ = [
    "build_documents",
    "KeyedLocks",
    "IndexReport",
    "RestaurantIndexer",
    "check_database",
    "check_index_preconditions",
]
