from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum


@dataclass
class Document:
    """A logical source unit, deduplicated by content hash."""

    source: str  # path or URL
    content_hash: str
    metadata: dict[str, str] = field(default_factory=dict)
    created_at: int = field(default_factory=lambda: int(time.time()))
    id: int | None = None


@dataclass
class Chunk:
    """A contiguous text segment of exactly one document."""

    document_id: int
    chunk_index: int  # zero-based, unique per document
    content: str
    token_count: int | None = None
    id: int | None = None


@dataclass
class Embedding:
    chunk_id: int  # one active embedding per chunk
    model: str
    vector: list[float]
    dimension: int


@dataclass
class SearchResult:
    chunk: Chunk
    document: Document
    similarity: float


@dataclass(frozen=True)
class ScannedEmbedding:
    """One row of a model-filtered embedding scan."""

    chunk_id: int
    chunk_index: int
    content: str
    token_count: int | None
    document_id: int
    source: str
    content_hash: str
    metadata: dict[str, str]
    created_at: int
    vector: list[float]


@dataclass
class DatabaseStats:
    document_count: int
    chunk_count: int
    embedding_count: int
    db_size_bytes: int = 0


@dataclass(frozen=True)
class FixedSize:
    size: int = 512
    overlap: int = 50


@dataclass(frozen=True)
class Semantic:
    max_size: int = 512


ChunkStrategy = FixedSize | Semantic


class IngestionState(str, Enum):
    HASHING = "hashing"
    DEDUP_CHECK = "dedup_check"
    SKIPPED = "skipped"
    CHUNKING = "chunking"
    BATCH_EMBEDDING = "batch_embedding"
    STORING = "storing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class IngestionResult:
    source: str
    state: IngestionState
    document_id: int | None = None
    chunks_created: int = 0
    embeddings_created: int = 0
    reason: str | None = None

    @property
    def skipped(self) -> bool:
        return self.state is IngestionState.SKIPPED

    @property
    def ok(self) -> bool:
        return self.state in {IngestionState.COMPLETED, IngestionState.SKIPPED}
