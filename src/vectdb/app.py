from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from . import __version__
from .embeddings import EmbeddingAdapter, build_adapter
from .errors import StorageIOError, VectDbError
from .search import SearchEngine
from .settings import VectDbSettings, settings
from .storage_sqlite import SQLiteVectorStore

logger = logging.getLogger(__name__)


class HealthOut(BaseModel):
    status: str
    ollama_available: bool


class StatsOut(BaseModel):
    document_count: int
    chunk_count: int
    embedding_count: int
    db_size_bytes: int


class SearchResultOut(BaseModel):
    source: str
    chunk_index: int
    content: str
    similarity: float
    metadata: dict[str, str] = Field(default_factory=dict)


class ModelOut(BaseModel):
    name: str
    size: int
    modified_at: str


def create_app(cfg: VectDbSettings | None = None, *, adapter: EmbeddingAdapter | None = None):
    cfg = cfg or settings
    adapter = adapter or build_adapter(cfg)
    store = SQLiteVectorStore(path=cfg.database.path)
    store.init()
    engine = SearchEngine(store=store, adapter=adapter)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        await adapter.aclose()

    app = FastAPI(title="vectdb", version=__version__, lifespan=lifespan)

    @app.get("/api/health")
    async def health() -> HealthOut:
        return HealthOut(status="ok", ollama_available=await adapter.health_check())

    @app.get("/api/stats")
    async def stats() -> StatsOut:
        try:
            s = await run_in_threadpool(store.get_statistics)
        except StorageIOError as e:
            logger.warning("Failed to get stats: %s", e)
            raise HTTPException(status_code=500, detail=str(e)) from e
        return StatsOut(
            document_count=s.document_count,
            chunk_count=s.chunk_count,
            embedding_count=s.embedding_count,
            db_size_bytes=s.db_size_bytes,
        )

    @app.get("/api/search")
    async def search(
        query: str = "",
        top_k: int = cfg.search.default_top_k,
        threshold: float = cfg.search.similarity_threshold,
    ) -> list[SearchResultOut]:
        if not query.strip():
            raise HTTPException(status_code=400, detail="Query parameter is required")

        model = cfg.ollama.default_model
        try:
            query_vector = await adapter.generate_with_retry(query, model)
        except VectDbError as e:
            logger.warning("Failed to generate embedding: %s", e)
            raise HTTPException(status_code=502, detail=str(e)) from e

        try:
            results = await run_in_threadpool(
                engine.search_vector, query_vector, model, top_k, threshold
            )
        except VectDbError as e:
            logger.warning("Search failed: %s", e)
            raise HTTPException(status_code=500, detail=str(e)) from e

        return [
            SearchResultOut(
                source=r.document.source,
                chunk_index=r.chunk.chunk_index,
                content=r.chunk.content,
                similarity=r.similarity,
                metadata=r.document.metadata,
            )
            for r in results
        ]

    @app.get("/api/models")
    async def models() -> list[ModelOut]:
        try:
            infos = await adapter.list_model_info()
        except VectDbError as e:
            logger.warning("Failed to list models: %s", e)
            raise HTTPException(status_code=502, detail=str(e)) from e
        return [ModelOut(name=m.name, size=m.size, modified_at=m.modified_at) for m in infos]

    return app
