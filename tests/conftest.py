"""
Shared test fixtures for the vectdb test suite.

Provides a temporary store, a scripted embedding provider and an adapter
whose backoff sleeps are recorded instead of awaited.
"""

from __future__ import annotations

import asyncio

import pytest

from vectdb.embedder import EmbeddingProvider, ModelInfo
from vectdb.embeddings import EmbeddingAdapter, RetryPolicy
from vectdb.storage_sqlite import SQLiteVectorStore


class FakeProvider(EmbeddingProvider):
    """Embedding provider driven by a script.

    `failures` maps a 1-based call number to the exception that call raises.
    `vectors` maps a text to its vector; other texts get a vector derived
    from their length.
    """

    def __init__(
        self,
        *,
        vectors: dict[str, list[float]] | None = None,
        failures: dict[int, Exception] | None = None,
        fail_always: Exception | None = None,
        models: list[str] | None = None,
        delay: float = 0.0,
    ):
        self.vectors = vectors or {}
        self.failures = failures or {}
        self.fail_always = fail_always
        self.models = ["nomic-embed-text:latest"] if models is None else models
        self.delay = delay
        self.calls: list[list[str]] = []
        self.closed = False

    async def embed(self, texts: list[str], model: str) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_always is not None:
            raise self.fail_always
        err = self.failures.get(len(self.calls))
        if err is not None:
            raise err
        return [self.vectors.get(t, [float(len(t)), 1.0, 0.0]) for t in texts]

    async def list_models(self) -> list[ModelInfo]:
        if self.fail_always is not None:
            raise self.fail_always
        return [ModelInfo(name=m, size=1024 * 1024, modified_at="2024-01-01") for m in self.models]

    async def aclose(self) -> None:
        self.closed = True


class SleepRecorder:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def add_document(store, source, items, *, model="nomic-embed-text", metadata=None):
    """Store a document whose chunks carry the given (content, vector) pairs."""
    doc, _ = store.create_document(
        source=source, content_hash=f"hash-{source}", metadata=metadata or {}
    )
    chunk_ids = store.insert_chunks(document_id=doc.id, contents=[c for c, _ in items])
    store.upsert_embeddings((cid, model, v) for cid, (_, v) in zip(chunk_ids, items))
    return doc, chunk_ids


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "vectors.db")


@pytest.fixture
def store(db_path):
    s = SQLiteVectorStore(path=db_path)
    s.init()
    return s


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def make_adapter(sleeps):
    """Factory: adapter over a FakeProvider, with recorded backoff sleeps."""

    def _make(provider: FakeProvider | None = None, **policy) -> EmbeddingAdapter:
        return EmbeddingAdapter(
            provider or FakeProvider(), policy=RetryPolicy(**policy), sleep=sleeps
        )

    return _make
