from __future__ import annotations

import json
import logging
import sqlite3
import time
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from .errors import (
    ConfigurationError,
    ConstraintViolation,
    NotFoundError,
    StorageIOError,
    ValidationError,
)
from .types import Chunk, DatabaseStats, Document, Embedding, ScannedEmbedding
from .util_text import estimate_tokens
from .vectors import decode_vector, encode_vector

logger = logging.getLogger(__name__)

SCHEMA = """
PRAGMA journal_mode=WAL;

CREATE TABLE IF NOT EXISTS documents (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  source TEXT NOT NULL,
  content_hash TEXT NOT NULL UNIQUE,
  metadata TEXT,
  created_at INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS chunks (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  document_id INTEGER NOT NULL,
  chunk_index INTEGER NOT NULL,
  content TEXT NOT NULL,
  token_count INTEGER,
  FOREIGN KEY (document_id) REFERENCES documents(id) ON DELETE CASCADE,
  UNIQUE(document_id, chunk_index)
);

CREATE TABLE IF NOT EXISTS embeddings (
  chunk_id INTEGER PRIMARY KEY,
  model TEXT NOT NULL,
  vector BLOB NOT NULL,
  dimension INTEGER NOT NULL,
  FOREIGN KEY (chunk_id) REFERENCES chunks(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_chunks_document ON chunks(document_id);
CREATE INDEX IF NOT EXISTS idx_embeddings_model ON embeddings(model);
"""

# sqlite opens a fresh private database for each connection to these
_TRANSIENT_PATHS = frozenset({":memory:", ""})

_DOC_COLUMNS = "id, source, content_hash, metadata, created_at"
_CHUNK_COLUMNS = "id, document_id, chunk_index, content, token_count"


def _row_to_document(row: Sequence) -> Document:
    return Document(
        id=row[0],
        source=row[1],
        content_hash=row[2],
        metadata=_load_metadata(row[3]),
        created_at=row[4],
    )


def _row_to_chunk(row: Sequence) -> Chunk:
    return Chunk(
        id=row[0],
        document_id=row[1],
        chunk_index=row[2],
        content=row[3],
        token_count=row[4],
    )


def _load_metadata(raw: str | None) -> dict[str, str]:
    if not raw:
        return {}
    data = json.loads(raw)
    return {str(k): str(v) for k, v in data.items()}


def _check_embedding(model: str, vector: Sequence[float], dimension: int | None) -> int:
    if not model or not model.strip():
        raise ValidationError("Embedding model name must not be empty")
    dim = len(vector) if dimension is None else dimension
    if dim != len(vector):
        raise ValidationError(
            f"Declared dimension {dim} does not match vector length {len(vector)}"
        )
    if dim == 0:
        raise ValidationError("Embedding vector must not be empty")
    return dim


@dataclass
class SQLiteVectorStore:
    """Documents, chunks and embeddings in a single SQLite file.

    Every operation opens its own connection and closes it before returning,
    so no handle outlives a logical operation. For the same reason the store
    needs a file: with ":memory:" every operation would see an empty database.
    """

    path: str

    def __post_init__(self) -> None:
        if self.path.strip() in _TRANSIENT_PATHS:
            raise ConfigurationError(
                f"SQLiteVectorStore needs a database file, got {self.path!r}"
            )

    def connect(self) -> sqlite3.Connection:
        con = sqlite3.connect(str(Path(self.path).expanduser()))
        con.execute("PRAGMA foreign_keys=ON")
        con.execute("PRAGMA synchronous=NORMAL")
        return con

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        try:
            con = self.connect()
        except sqlite3.Error as e:
            raise StorageIOError(f"Cannot open database {self.path}: {e}") from e
        try:
            yield con
        except sqlite3.IntegrityError as e:
            raise ConstraintViolation(str(e)) from e
        except sqlite3.Error as e:
            raise StorageIOError(str(e)) from e
        finally:
            con.close()

    def init(self) -> None:
        logger.info("Opening database at %s", self.path)
        try:
            Path(self.path).expanduser().parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageIOError(f"Cannot create database directory: {e}") from e
        with self._connection() as con:
            con.executescript(SCHEMA)
            con.commit()

    # --- documents ---

    def create_document(
        self, *, source: str, content_hash: str, metadata: dict[str, str] | None = None
    ) -> tuple[Document, bool]:
        """Insert a document unless its content hash is already stored.

        Returns (document, created). On a duplicate hash the existing record
        is returned with created=False; concurrent inserts of the same hash
        resolve to a single row via the UNIQUE constraint.
        """
        md = {str(k): str(v) for k, v in (metadata or {}).items()}
        created_at = int(time.time())
        with self._connection() as con:
            with con:
                cur = con.execute(
                    """
                    INSERT INTO documents(source, content_hash, metadata, created_at)
                    VALUES (?,?,?,?)
                    ON CONFLICT(content_hash) DO NOTHING
                    """,
                    (source, content_hash, json.dumps(md, ensure_ascii=False), created_at),
                )
                created = cur.rowcount == 1
                row = con.execute(
                    f"SELECT {_DOC_COLUMNS} FROM documents WHERE content_hash=?",
                    (content_hash,),
                ).fetchone()
        doc = _row_to_document(row)
        if created:
            logger.info("Inserted document %s (%s)", doc.id, source)
        else:
            logger.debug("Document with hash %s already exists as %s", content_hash, doc.id)
        return doc, created

    def get_document(self, document_id: int) -> Document | None:
        with self._connection() as con:
            row = con.execute(
                f"SELECT {_DOC_COLUMNS} FROM documents WHERE id=?", (document_id,)
            ).fetchone()
        return _row_to_document(row) if row else None

    def find_document_by_hash(self, content_hash: str) -> Document | None:
        with self._connection() as con:
            row = con.execute(
                f"SELECT {_DOC_COLUMNS} FROM documents WHERE content_hash=?", (content_hash,)
            ).fetchone()
        return _row_to_document(row) if row else None

    def delete_document(self, document_id: int) -> None:
        """Delete a document; chunks and embeddings go with it."""
        with self._connection() as con:
            with con:
                deleted = con.execute("DELETE FROM documents WHERE id=?", (document_id,)).rowcount
        if deleted == 0:
            raise NotFoundError(f"Document {document_id} does not exist")
        logger.info("Deleted document %s", document_id)

    # --- chunks ---

    def insert_chunk(
        self, *, document_id: int, index: int, content: str, token_count: int | None = None
    ) -> int:
        with self._connection() as con:
            try:
                with con:
                    cur = con.execute(
                        """
                        INSERT INTO chunks(document_id, chunk_index, content, token_count)
                        VALUES (?,?,?,?)
                        """,
                        (document_id, index, content, token_count),
                    )
            except sqlite3.IntegrityError as e:
                raise ConstraintViolation(
                    f"Cannot insert chunk {index} for document {document_id}: {e}"
                ) from e
            return int(cur.lastrowid)

    def insert_chunks(self, *, document_id: int, contents: Sequence[str]) -> list[int]:
        """Insert a document's chunks in one transaction, indexed 0..n-1."""
        ids: list[int] = []
        with self._connection() as con:
            try:
                with con:
                    for index, content in enumerate(contents):
                        cur = con.execute(
                            """
                            INSERT INTO chunks(document_id, chunk_index, content, token_count)
                            VALUES (?,?,?,?)
                            """,
                            (document_id, index, content, estimate_tokens(content)),
                        )
                        ids.append(int(cur.lastrowid))
            except sqlite3.IntegrityError as e:
                raise ConstraintViolation(
                    f"Cannot insert chunks for document {document_id}: {e}"
                ) from e
        logger.debug("Inserted %d chunks for document %s", len(ids), document_id)
        return ids

    def get_chunk(self, chunk_id: int) -> Chunk | None:
        with self._connection() as con:
            row = con.execute(
                f"SELECT {_CHUNK_COLUMNS} FROM chunks WHERE id=?", (chunk_id,)
            ).fetchone()
        return _row_to_chunk(row) if row else None

    def get_chunks_by_document(self, document_id: int) -> list[Chunk]:
        with self._connection() as con:
            rows = con.execute(
                f"SELECT {_CHUNK_COLUMNS} FROM chunks WHERE document_id=? ORDER BY chunk_index",
                (document_id,),
            ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    # --- embeddings ---

    def upsert_embedding(
        self,
        *,
        chunk_id: int,
        model: str,
        vector: Sequence[float],
        dimension: int | None = None,
    ) -> None:
        """Store the embedding for a chunk, replacing any previous one.

        Last write wins regardless of model: a chunk never has two embeddings.
        """
        self.upsert_embeddings([(chunk_id, model, vector)], dimension=dimension)

    def upsert_embeddings(
        self,
        items: Iterable[tuple[int, str, Sequence[float]]],
        *,
        dimension: int | None = None,
    ) -> int:
        """Write (chunk_id, model, vector) triples in one transaction."""
        rows = []
        for chunk_id, model, vector in items:
            dim = _check_embedding(model, vector, dimension)
            rows.append((chunk_id, model, encode_vector(vector), dim))

        with self._connection() as con:
            try:
                with con:
                    con.executemany(
                        """
                        INSERT OR REPLACE INTO embeddings(chunk_id, model, vector, dimension)
                        VALUES (?,?,?,?)
                        """,
                        rows,
                    )
            except sqlite3.IntegrityError as e:
                raise ConstraintViolation(f"Cannot store embeddings: {e}") from e
        return len(rows)

    def get_embedding(self, chunk_id: int) -> Embedding | None:
        with self._connection() as con:
            row = con.execute(
                "SELECT chunk_id, model, vector, dimension FROM embeddings WHERE chunk_id=?",
                (chunk_id,),
            ).fetchone()
        if not row:
            return None
        return Embedding(
            chunk_id=row[0], model=row[1], vector=decode_vector(row[2], row[3]), dimension=row[3]
        )

    def scan_embeddings(self, model: str) -> Iterator[ScannedEmbedding]:
        """Yield every embedding stored for a model, joined with its chunk and document.

        One-shot: the connection is held only while the generator is consumed
        and closed when it is exhausted or closed.
        """
        with self._connection() as con:
            cur = con.execute(
                """
                SELECT e.chunk_id, c.chunk_index, c.content, c.token_count,
                       d.id, d.source, d.content_hash, d.metadata, d.created_at,
                       e.vector, e.dimension
                FROM embeddings e
                JOIN chunks c ON e.chunk_id = c.id
                JOIN documents d ON c.document_id = d.id
                WHERE e.model = ?
                """,
                (model,),
            )
            for row in cur:
                yield ScannedEmbedding(
                    chunk_id=row[0],
                    chunk_index=row[1],
                    content=row[2],
                    token_count=row[3],
                    document_id=row[4],
                    source=row[5],
                    content_hash=row[6],
                    metadata=_load_metadata(row[7]),
                    created_at=row[8],
                    vector=decode_vector(row[9], row[10]),
                )

    # --- maintenance ---

    def get_statistics(self) -> DatabaseStats:
        with self._connection() as con:
            docs = con.execute("SELECT COUNT(*) FROM documents").fetchone()[0]
            chunks = con.execute("SELECT COUNT(*) FROM chunks").fetchone()[0]
            embeddings = con.execute("SELECT COUNT(*) FROM embeddings").fetchone()[0]
            page_count = con.execute("PRAGMA page_count").fetchone()[0]
            page_size = con.execute("PRAGMA page_size").fetchone()[0]
        return DatabaseStats(
            document_count=docs,
            chunk_count=chunks,
            embedding_count=embeddings,
            db_size_bytes=page_count * page_size,
        )

    def vacuum(self) -> None:
        logger.info("Running VACUUM on %s", self.path)
        with self._connection() as con:
            con.execute("VACUUM")

    def analyze(self) -> None:
        logger.info("Running ANALYZE on %s", self.path)
        with self._connection() as con:
            con.execute("ANALYZE")
            con.commit()
