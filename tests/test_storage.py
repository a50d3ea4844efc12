"""Tests for the SQLite store: dedup, cascades, constraints, embeddings."""

import threading

import pytest

from vectdb.errors import ConfigurationError, ConstraintViolation, NotFoundError, ValidationError
from vectdb.storage_sqlite import SQLiteVectorStore

from conftest import add_document


def test_init_is_idempotent(db_path):
    s = SQLiteVectorStore(path=db_path)
    s.init()
    s.init()
    assert s.get_statistics().document_count == 0


def test_create_document_deduplicates_by_hash(store):
    """A second insert with the same hash returns the existing record."""
    first, created = store.create_document(source="a.txt", content_hash="h1", metadata={"k": "v"})
    assert created
    second, created_again = store.create_document(source="b.txt", content_hash="h1")
    assert not created_again
    assert second.id == first.id
    assert second.source == "a.txt"
    assert store.get_statistics().document_count == 1


def test_concurrent_duplicate_inserts_create_one_document(db_path, store):
    """Racing inserts of one hash from separate stores resolve to a single row."""
    workers = 8
    barrier = threading.Barrier(workers)
    results = []
    errors = []
    lock = threading.Lock()

    def insert(n):
        s = SQLiteVectorStore(path=db_path)
        barrier.wait()
        try:
            doc, created = s.create_document(source=f"copy-{n}.txt", content_hash="same")
        except Exception as e:
            with lock:
                errors.append(e)
            return
        with lock:
            results.append((doc.id, created))

    threads = [threading.Thread(target=insert, args=(n,)) for n in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(results) == workers
    assert sum(created for _, created in results) == 1
    assert len({doc_id for doc_id, _ in results}) == 1
    assert store.get_statistics().document_count == 1


def test_not_null_breach_is_a_constraint_violation(store):
    with pytest.raises(ConstraintViolation):
        store.create_document(source=None, content_hash="h")


@pytest.mark.parametrize("path", [":memory:", ""])
def test_in_memory_path_is_rejected(path):
    with pytest.raises(ConfigurationError):
        SQLiteVectorStore(path=path)


def test_document_metadata_roundtrip(store):
    doc, _ = store.create_document(
        source="notes.md", content_hash="h", metadata={"filename": "notes.md", "lang": "né"}
    )
    loaded = store.get_document(doc.id)
    assert loaded.metadata == {"filename": "notes.md", "lang": "né"}
    assert loaded.created_at > 0
    assert store.find_document_by_hash("h").id == doc.id
    assert store.find_document_by_hash("missing") is None


def test_delete_cascades_to_chunks_and_embeddings(store):
    doc, chunk_ids = add_document(store, "a.txt", [("one", [1.0, 0.0]), ("two", [0.0, 1.0])])
    store.delete_document(doc.id)

    assert store.get_document(doc.id) is None
    for cid in chunk_ids:
        assert store.get_chunk(cid) is None
        assert store.get_embedding(cid) is None
    stats = store.get_statistics()
    assert (stats.document_count, stats.chunk_count, stats.embedding_count) == (0, 0, 0)


def test_delete_missing_document(store):
    with pytest.raises(NotFoundError):
        store.delete_document(12345)


def test_duplicate_chunk_index_is_a_constraint_violation(store):
    doc, _ = store.create_document(source="a.txt", content_hash="h")
    store.insert_chunk(document_id=doc.id, index=0, content="first")
    with pytest.raises(ConstraintViolation):
        store.insert_chunk(document_id=doc.id, index=0, content="again")


def test_chunk_for_missing_document_is_rejected(store):
    with pytest.raises(ConstraintViolation):
        store.insert_chunk(document_id=999, index=0, content="orphan")


def test_insert_chunks_orders_and_counts_tokens(store):
    doc, _ = store.create_document(source="a.txt", content_hash="h")
    ids = store.insert_chunks(document_id=doc.id, contents=["abcdefgh", "xy", "z"])
    chunks = store.get_chunks_by_document(doc.id)

    assert [c.id for c in chunks] == ids
    assert [c.chunk_index for c in chunks] == [0, 1, 2]
    assert [c.content for c in chunks] == ["abcdefgh", "xy", "z"]
    assert chunks[0].token_count == 2


def test_embedding_dimension_must_match(store):
    doc, _ = store.create_document(source="a.txt", content_hash="h")
    cid = store.insert_chunk(document_id=doc.id, index=0, content="x")
    with pytest.raises(ValidationError):
        store.upsert_embedding(chunk_id=cid, model="m", vector=[1.0, 2.0], dimension=3)
    with pytest.raises(ValidationError):
        store.upsert_embedding(chunk_id=cid, model="", vector=[1.0])
    with pytest.raises(ValidationError):
        store.upsert_embedding(chunk_id=cid, model="m", vector=[])
    assert store.get_embedding(cid) is None


def test_embedding_for_missing_chunk_is_rejected(store):
    with pytest.raises(ConstraintViolation):
        store.upsert_embedding(chunk_id=42, model="m", vector=[1.0])


def test_upsert_embedding_last_write_wins(store):
    """A chunk keeps exactly one embedding, whatever the model."""
    doc, _ = store.create_document(source="a.txt", content_hash="h")
    cid = store.insert_chunk(document_id=doc.id, index=0, content="x")
    store.upsert_embedding(chunk_id=cid, model="model-a", vector=[1.0, 0.0])
    store.upsert_embedding(chunk_id=cid, model="model-b", vector=[0.0, 0.5, 0.25])

    emb = store.get_embedding(cid)
    assert emb.model == "model-b"
    assert emb.dimension == 3
    assert emb.vector == [0.0, 0.5, 0.25]
    assert store.get_statistics().embedding_count == 1


def test_scan_embeddings_filters_by_model(store):
    add_document(store, "a.txt", [("alpha", [1.0, 0.0])], model="m1")
    add_document(store, "b.txt", [("beta", [0.0, 1.0])], model="m2")

    rows = list(store.scan_embeddings("m1"))
    assert len(rows) == 1
    assert rows[0].content == "alpha"
    assert rows[0].source == "a.txt"
    assert rows[0].vector == [1.0, 0.0]
    assert list(store.scan_embeddings("unknown")) == []


def test_statistics(store):
    add_document(store, "a.txt", [("one", [1.0]), ("two", [2.0])])
    add_document(store, "b.txt", [("three", [3.0])])
    stats = store.get_statistics()
    assert stats.document_count == 2
    assert stats.chunk_count == 3
    assert stats.embedding_count == 3
    assert stats.db_size_bytes > 0


def test_vacuum_and_analyze_keep_data(store):
    add_document(store, "a.txt", [("one", [1.0])])
    store.vacuum()
    store.analyze()
    assert store.get_statistics().embedding_count == 1
