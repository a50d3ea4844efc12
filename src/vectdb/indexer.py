from __future__ import annotations

import asyncio
import logging
import os
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path

from .chunking import chunk_text, validate_strategy
from .embeddings import EmbeddingAdapter
from .errors import NotFoundError, ValidationError, VectDbError
from .fingerprints import content_hash
from .sources import load_file
from .storage_sqlite import SQLiteVectorStore
from .types import ChunkStrategy, FixedSize, IngestionResult, IngestionState

logger = logging.getLogger(__name__)


def _batches(items: Sequence[str], size: int) -> Iterable[list[str]]:
    for i in range(0, len(items), size):
        yield list(items[i : i + size])


@dataclass
class Indexer:
    """Sequences hashing, dedup, chunking, embedding and storage for one document.

    A document becomes searchable only once all of its embeddings are
    committed. If anything fails after the document row was written, the
    document is deleted again (chunks and embeddings cascade), leaving the
    store as it was before the request.
    """

    store: SQLiteVectorStore
    adapter: EmbeddingAdapter
    embed_batch_size: int = 16
    max_attempts: int | None = None

    def init(self) -> None:
        self.store.init()

    def _rollback(self, document_id: int | None) -> None:
        if document_id is None:
            return
        try:
            self.store.delete_document(document_id)
        except NotFoundError:
            pass
        except VectDbError:
            logger.exception("Rollback of document %s failed", document_id)
        else:
            logger.info("Rolled back document %s", document_id)

    async def ingest_text(
        self,
        text: str,
        *,
        source: str,
        model: str,
        strategy: ChunkStrategy | None = None,
        metadata: dict[str, str] | None = None,
        deadline: float | None = None,
    ) -> IngestionResult:
        """Ingest one document's text.

        Invalid chunking parameters and empty model names raise immediately.
        Every other failure is reported as a FAILED result after rollback.
        `deadline` bounds the whole request in seconds.
        """
        strategy = strategy or FixedSize()
        validate_strategy(strategy)
        if not model or not model.strip():
            raise ValidationError("Embedding model name must not be empty")
        if self.embed_batch_size < 1:
            raise ValidationError(f"embed_batch_size must be >= 1 (got {self.embed_batch_size})")

        if deadline is None:
            return await self._ingest(text, source, model, strategy, metadata, None)

        expires = time.monotonic() + deadline
        try:
            return await asyncio.wait_for(
                self._ingest(text, source, model, strategy, metadata, expires), timeout=deadline
            )
        except asyncio.TimeoutError:
            logger.warning("Ingestion of %s abandoned after %.1fs", source, deadline)
            return IngestionResult(
                source=source,
                state=IngestionState.FAILED,
                reason=f"deadline of {deadline}s exceeded",
            )

    async def _ingest(
        self,
        text: str,
        source: str,
        model: str,
        strategy: ChunkStrategy,
        metadata: dict[str, str] | None,
        deadline: float | None,
    ) -> IngestionResult:
        if not text.strip():
            logger.warning("Content is empty, skipping: %s", source)
            return IngestionResult(source=source, state=IngestionState.SKIPPED, reason="empty content")

        state = IngestionState.HASHING
        document_id: int | None = None
        try:
            digest = content_hash(text)

            state = IngestionState.DEDUP_CHECK
            existing = self.store.find_document_by_hash(digest)
            if existing is not None:
                logger.info("Document already exists (duplicate content), skipping: %s", source)
                return IngestionResult(
                    source=source,
                    state=IngestionState.SKIPPED,
                    document_id=existing.id,
                    reason="duplicate content",
                )

            state = IngestionState.CHUNKING
            chunks = chunk_text(text, strategy)
            doc, created = self.store.create_document(
                source=source, content_hash=digest, metadata=metadata
            )
            if not created:
                # lost a race against a concurrent ingestion of the same content
                return IngestionResult(
                    source=source,
                    state=IngestionState.SKIPPED,
                    document_id=doc.id,
                    reason="duplicate content",
                )
            document_id = doc.id
            chunk_ids = self.store.insert_chunks(document_id=document_id, contents=chunks)
            logger.info("Created %d chunks for document %s", len(chunk_ids), document_id)

            state = IngestionState.BATCH_EMBEDDING
            vectors: list[list[float]] = []
            for batch in _batches(chunks, self.embed_batch_size):
                vectors.extend(
                    await self.adapter.generate_batch_with_retry(
                        batch, model, self.max_attempts, deadline=deadline
                    )
                )
                logger.debug("Generated %d/%d embeddings", len(vectors), len(chunks))

            state = IngestionState.STORING
            stored = self.store.upsert_embeddings(
                (chunk_id, model, vec) for chunk_id, vec in zip(chunk_ids, vectors, strict=True)
            )
        except VectDbError as e:
            logger.warning("Ingestion of %s failed during %s: %s", source, state.value, e)
            self._rollback(document_id)
            return IngestionResult(
                source=source,
                state=IngestionState.FAILED,
                reason=f"{state.value}: {e}",
            )
        except (asyncio.CancelledError, Exception):
            self._rollback(document_id)
            raise

        logger.info("Successfully ingested %s", source)
        return IngestionResult(
            source=source,
            state=IngestionState.COMPLETED,
            document_id=document_id,
            chunks_created=len(chunk_ids),
            embeddings_created=stored,
        )

    async def ingest_file(
        self,
        path: str | os.PathLike,
        *,
        model: str,
        strategy: ChunkStrategy | None = None,
        deadline: float | None = None,
    ) -> IngestionResult:
        p = Path(path)
        logger.info("Ingesting file: %s", p)
        text = load_file(p)
        return await self.ingest_text(
            text,
            source=str(p),
            model=model,
            strategy=strategy,
            metadata={"filename": p.name, "extension": p.suffix.lstrip(".").lower()},
            deadline=deadline,
        )

    async def ingest_files(
        self,
        paths: Iterable[str | os.PathLike],
        *,
        model: str,
        strategy: ChunkStrategy | None = None,
    ) -> list[IngestionResult]:
        """Ingest files one after another; a failing file does not stop the rest."""
        results: list[IngestionResult] = []
        for p in paths:
            try:
                results.append(await self.ingest_file(p, model=model, strategy=strategy))
            except VectDbError as e:
                logger.warning("Failed to ingest %s: %s", p, e)
                results.append(
                    IngestionResult(source=str(p), state=IngestionState.FAILED, reason=str(e))
                )
        return results
