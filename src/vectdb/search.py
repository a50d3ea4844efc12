from __future__ import annotations

import csv
import heapq
import io
import json
import logging
from collections.abc import Sequence
from dataclasses import asdict, dataclass

from .embeddings import EmbeddingAdapter
from .errors import ConfigurationError, ValidationError
from .storage_sqlite import SQLiteVectorStore
from .types import Chunk, Document, ScannedEmbedding, SearchResult
from .util_text import single_line, truncate
from .vectors import cosine_similarity

logger = logging.getLogger(__name__)


def _to_result(row: ScannedEmbedding, similarity: float) -> SearchResult:
    return SearchResult(
        chunk=Chunk(
            id=row.chunk_id,
            document_id=row.document_id,
            chunk_index=row.chunk_index,
            content=row.content,
            token_count=row.token_count,
        ),
        document=Document(
            id=row.document_id,
            source=row.source,
            content_hash=row.content_hash,
            metadata=row.metadata,
            created_at=row.created_at,
        ),
        similarity=similarity,
    )


def _score(query_vector: Sequence[float], row: ScannedEmbedding) -> float:
    if len(row.vector) != len(query_vector):
        raise ValidationError(
            f"Query vector has dimension {len(query_vector)} but chunk {row.chunk_id} "
            f"is stored with dimension {len(row.vector)}"
        )
    return cosine_similarity(query_vector, row.vector)


@dataclass
class SearchEngine:
    """Exact cosine search over every embedding stored for a model.

    Linear in the number of stored embeddings; there is no index.
    """

    store: SQLiteVectorStore
    adapter: EmbeddingAdapter | None = None

    def search_vector(
        self,
        query_vector: Sequence[float],
        model: str,
        top_k: int = 10,
        threshold: float = 0.0,
    ) -> list[SearchResult]:
        """Rank stored embeddings against an already-embedded query.

        Candidates below `threshold` are dropped first, then the `top_k` best
        are kept. Order: similarity descending, chunk id ascending on ties.
        A stored vector whose dimension differs from the query raises
        ValidationError.
        """
        if top_k <= 0:
            return []

        scored = (
            (_score(query_vector, row), row)
            for row in self.store.scan_embeddings(model)
        )
        survivors = ((sim, row) for sim, row in scored if sim >= threshold)
        best = heapq.nsmallest(top_k, survivors, key=lambda sr: (-sr[0], sr[1].chunk_id))

        logger.debug("Search over model %s kept %d result(s)", model, len(best))
        return [_to_result(row, sim) for sim, row in best]

    async def search(
        self,
        query: str,
        model: str,
        top_k: int = 10,
        threshold: float = 0.0,
    ) -> list[SearchResult]:
        """Embed `query` with `model`, then search_vector.

        Raises when the query embedding cannot be produced; an empty result
        set is returned as [].
        """
        if self.adapter is None:
            raise ConfigurationError("Text search needs an embedding adapter")
        logger.info(
            "Performing semantic search: query=%r, top_k=%d, threshold=%s", query, top_k, threshold
        )
        query_vector = await self.adapter.generate_with_retry(query, model)
        results = self.search_vector(query_vector, model, top_k=top_k, threshold=threshold)
        logger.info("Found %d result(s)", len(results))
        return results


# Output formats


def format_results_text(results: Sequence[SearchResult], explain: bool = False) -> str:
    if not results:
        return "No results found."

    lines = [f"Found {len(results)} result(s):", ""]
    for idx, r in enumerate(results, start=1):
        lines.append(f"=== Result {idx} ===")
        if explain:
            lines.append(f"Similarity: {r.similarity:.4f}")
        lines.append(f"Source: {r.document.source}")
        lines.append(f"Chunk {r.chunk.chunk_index + 1}")
        lines.append("")
        lines.append(truncate(r.chunk.content, 500))
        lines.append("")
    return "\n".join(lines)


def format_results_json(results: Sequence[SearchResult]) -> str:
    return json.dumps([asdict(r) for r in results], ensure_ascii=False, indent=2)


def format_results_csv(results: Sequence[SearchResult]) -> str:
    buf = io.StringIO()
    w = csv.writer(buf, lineterminator="\n")
    w.writerow(["rank", "similarity", "source", "chunk_index", "content"])
    for idx, r in enumerate(results, start=1):
        w.writerow(
            [
                idx,
                f"{r.similarity:.4f}",
                r.document.source,
                r.chunk.chunk_index + 1,
                single_line(r.chunk.content),
            ]
        )
    return buf.getvalue()
