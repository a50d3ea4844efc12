"""
vectdb - a local SQLite vector store for semantic search over text documents
"""

__version__ = "0.1.0"

from .embeddings import EmbeddingAdapter, RetryPolicy
from .errors import (
    ConfigurationError,
    ConstraintViolation,
    DeadlineExceededError,
    NotFoundError,
    StorageIOError,
    TerminalServiceError,
    TransientServiceError,
    ValidationError,
    VectDbError,
)
from .indexer import Indexer
from .search import SearchEngine
from .storage_sqlite import SQLiteVectorStore
from .types import FixedSize, IngestionResult, IngestionState, SearchResult, Semantic

__all__ = [
    "ConfigurationError",
    "ConstraintViolation",
    "DeadlineExceededError",
    "EmbeddingAdapter",
    "FixedSize",
    "Indexer",
    "IngestionResult",
    "IngestionState",
    "NotFoundError",
    "RetryPolicy",
    "SQLiteVectorStore",
    "SearchEngine",
    "SearchResult",
    "Semantic",
    "StorageIOError",
    "TerminalServiceError",
    "TransientServiceError",
    "ValidationError",
    "VectDbError",
]
