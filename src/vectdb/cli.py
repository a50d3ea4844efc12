from __future__ import annotations

import argparse
import asyncio
import logging

from .chunking import validate_strategy
from .embeddings import build_adapter
from .errors import VectDbError
from .indexer import Indexer
from .search import SearchEngine, format_results_csv, format_results_json, format_results_text
from .settings import ChunkingSettings, DatabaseSettings, VectDbSettings, settings
from .sources import collect_files
from .storage_sqlite import SQLiteVectorStore

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=(level or "INFO").upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )


def _settings(args: argparse.Namespace) -> VectDbSettings:
    cfg = settings
    if args.db:
        cfg = cfg.model_copy(update={"database": DatabaseSettings(path=args.db)})
    return cfg


def _open_store(cfg: VectDbSettings) -> SQLiteVectorStore:
    store = SQLiteVectorStore(path=cfg.database.path)
    store.init()
    return store


def _service_unavailable(cfg: VectDbSettings) -> None:
    print(f"Cannot connect to Ollama at {cfg.ollama.base_url}")
    print("\nMake sure Ollama is running:")
    print("  ollama serve")


async def _ingest(args: argparse.Namespace, cfg: VectDbSettings) -> int:
    strategy = ChunkingSettings(
        max_chunk_size=args.chunk_size or cfg.chunking.max_chunk_size,
        overlap_size=cfg.chunking.overlap_size if args.overlap is None else args.overlap,
        strategy=args.strategy or cfg.chunking.strategy,
    ).to_strategy()
    validate_strategy(strategy)
    model = args.model or cfg.ollama.default_model

    files = collect_files(args.source, recursive=args.recursive)
    if not files:
        print("No files found to ingest.")
        return 0

    adapter = build_adapter(cfg)
    try:
        if not await adapter.health_check():
            _service_unavailable(cfg)
            return 1
        if not await adapter.has_model(model):
            print(f"Model '{model}' not found")
            print(f"\nPull the model first:\n  ollama pull {model}")
            return 1

        indexer = Indexer(
            store=_open_store(cfg),
            adapter=adapter,
            embed_batch_size=cfg.ollama.embed_batch_size,
        )
        print(f"Found {len(files)} file(s) to process\n")

        total_chunks = total_embeddings = skipped = failed = 0
        for idx, path in enumerate(files, start=1):
            print(f"[{idx}/{len(files)}] Processing: {path}")
            res = (await indexer.ingest_files([path], model=model, strategy=strategy))[0]
            if res.skipped:
                print(f"  Skipped ({res.reason})")
                skipped += 1
            elif res.ok:
                print(f"  {res.chunks_created} chunks, {res.embeddings_created} embeddings")
                total_chunks += res.chunks_created
                total_embeddings += res.embeddings_created
            else:
                print(f"  Error: {res.reason}")
                failed += 1
    finally:
        await adapter.aclose()

    print("\n=== Ingestion Complete ===")
    print(f"Files processed: {len(files)}")
    print(f"Files skipped:   {skipped}")
    print(f"Files failed:    {failed}")
    print(f"Chunks created:  {total_chunks}")
    print(f"Embeddings:      {total_embeddings}")
    return 1 if failed else 0


def cmd_ingest(args: argparse.Namespace) -> int:
    return asyncio.run(_ingest(args, _settings(args)))


async def _search(args: argparse.Namespace, cfg: VectDbSettings) -> int:
    store = _open_store(cfg)
    if store.get_statistics().embedding_count == 0:
        print("No embeddings found in database")
        print("\nIngest some documents first:\n  vectdb ingest <file-or-directory>")
        return 1

    adapter = build_adapter(cfg)
    try:
        if not await adapter.health_check():
            _service_unavailable(cfg)
            return 1
        engine = SearchEngine(store=store, adapter=adapter)
        results = await engine.search(
            args.query,
            cfg.ollama.default_model,
            top_k=cfg.search.default_top_k if args.top_k is None else args.top_k,
            threshold=cfg.search.similarity_threshold if args.threshold is None else args.threshold,
        )
    finally:
        await adapter.aclose()

    if args.format == "json":
        print(format_results_json(results))
    elif args.format == "csv":
        print(format_results_csv(results), end="")
    else:
        print(format_results_text(results, explain=args.explain))
    return 0


def cmd_search(args: argparse.Namespace) -> int:
    return asyncio.run(_search(args, _settings(args)))


def cmd_stats(args: argparse.Namespace) -> int:
    cfg = _settings(args)
    stats = _open_store(cfg).get_statistics()

    print("=== VectDB Statistics ===\n")
    print("Database:")
    print(f"  Path: {cfg.database.path}")
    print(f"  Size: {stats.db_size_bytes // 1024} KB ({stats.db_size_bytes} bytes)\n")
    print("Content:")
    print(f"  Documents:  {stats.document_count}")
    print(f"  Chunks:     {stats.chunk_count}")
    print(f"  Embeddings: {stats.embedding_count}")

    if stats.document_count:
        print("\nAverages:")
        print(f"  Chunks per document: {stats.chunk_count / stats.document_count:.2f}")
        if stats.chunk_count:
            print(f"  Embedding coverage: {100 * stats.embedding_count / stats.chunk_count:.1f}%")
    return 0


def cmd_optimize(args: argparse.Namespace) -> int:
    store = _open_store(_settings(args))
    print("Optimizing database...")
    print("  Running VACUUM...")
    store.vacuum()
    print("  Running ANALYZE...")
    store.analyze()
    print("Database optimization complete")
    return 0


async def _models(cfg: VectDbSettings) -> int:
    adapter = build_adapter(cfg)
    try:
        if not await adapter.health_check():
            _service_unavailable(cfg)
            return 1
        models = await adapter.list_model_info()
    finally:
        await adapter.aclose()

    if not models:
        print("No models found. Pull a model first:\n  ollama pull nomic-embed-text")
        return 0

    print(f"Available Models ({len(models)}):\n")
    for m in models:
        print(f"  - {m.name}")
        print(f"    Size: {m.size / (1024 * 1024):.1f} MB")
        print(f"    Modified: {m.modified_at}\n")
    return 0


def cmd_models(args: argparse.Namespace) -> int:
    return asyncio.run(_models(_settings(args)))


def cmd_serve(args: argparse.Namespace) -> int:
    from .server import serve

    cfg = _settings(args)
    host = args.host or cfg.server.bind_host
    port = args.port or cfg.server.bind_port
    print(f"Web API: http://{host}:{port}/api\n\nPress Ctrl+C to stop\n")
    serve(cfg, host=host, port=port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="vectdb", description="Vector database for semantic search")
    p.add_argument("--db", default=None, help="SQLite database path (overrides config)")
    p.add_argument("--log-level", default=None, help="error|warning|info|debug")
    sub = p.add_subparsers(dest="cmd", required=True)

    ingest = sub.add_parser("ingest", help="Ingest documents into the vector database")
    ingest.add_argument("source", help="File or directory to ingest")
    ingest.add_argument("-m", "--model", default=None)
    ingest.add_argument("-s", "--chunk-size", type=int, default=None)
    ingest.add_argument("-o", "--overlap", type=int, default=None)
    ingest.add_argument("--strategy", choices=["fixed", "semantic"], default=None)
    ingest.add_argument("-r", "--recursive", action="store_true")
    ingest.set_defaults(func=cmd_ingest)

    search = sub.add_parser("search", help="Search the vector database")
    search.add_argument("query")
    search.add_argument("-k", "--top-k", type=int, default=None)
    search.add_argument("-t", "--threshold", type=float, default=None)
    search.add_argument("-e", "--explain", action="store_true", help="Show similarity scores")
    search.add_argument("-f", "--format", choices=["text", "json", "csv"], default="text")
    search.set_defaults(func=cmd_search)

    sub.add_parser("stats", help="Show database statistics").set_defaults(func=cmd_stats)
    sub.add_parser("optimize", help="VACUUM and ANALYZE").set_defaults(func=cmd_optimize)
    sub.add_parser("models", help="List available embedding models").set_defaults(
        func=cmd_models
    )

    serve = sub.add_parser("serve", help="Start the HTTP API")
    serve.add_argument("-H", "--host", default=None)
    serve.add_argument("-p", "--port", type=int, default=None)
    serve.set_defaults(func=cmd_serve)

    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(args.log_level or settings.log_level)
    try:
        return args.func(args)
    except VectDbError as e:
        logger.error("Command failed: %s", e)
        print(f"Error: {e}")
        return 1


def app() -> None:
    raise SystemExit(main())


if __name__ == "__main__":
    app()
