from __future__ import annotations

from array import array
from collections.abc import Sequence
from datetime import datetime, timezone
import logging
import math
import os
from pathlib import Path
import sqlite3

from campus_rag.errors import ConfigurationError, DimensionMismatchError, IndexNotFoundError
from campus_rag.services.rag.types import IndexEntry, SearchHit

logger = logging.getLogger(__name__)

INDEX_FILENAME = "index.db"
INDEX_VERSION = "r2"


def _cosine(a: Sequence[float], b: Sequence[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def _encode_embedding(values: Sequence[float]) -> bytes:
    return array("d", values).tobytes()


def _decode_embedding(blob: bytes) -> tuple[float, ...]:
    vector = array("d")
    vector.frombytes(blob)
    return tuple(vector)


def _ensure_schema(connection: sqlite3.Connection) -> None:
    connection.executescript(
        """
        CREATE TABLE IF NOT EXISTS index_meta (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS entries (
            position INTEGER PRIMARY KEY,
            chunk_id TEXT NOT NULL UNIQUE,
            source_path TEXT NOT NULL,
            text TEXT NOT NULL,
            token_count INTEGER,
            embedding BLOB NOT NULL,
            embedding_dim INTEGER NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_entries_source_path ON entries(source_path);
        """
    )


class VectorIndex:
    """Immutable set of embedded chunks answering exact cosine top-k queries."""

    def __init__(
        self,
        entries: Sequence[IndexEntry],
        *,
        dimension: int,
        embed_model: str = "",
        generated_at: str | None = None,
    ) -> None:
        self._entries = tuple(entries)
        self._dimension = dimension
        self._embed_model = embed_model
        self._generated_at = generated_at or datetime.now(timezone.utc).isoformat()

    @classmethod
    def build(cls, entries: Sequence[IndexEntry], *, embed_model: str = "") -> VectorIndex:
        entries = tuple(entries)
        dimension = len(entries[0].vector) if entries else 0
        for entry in entries:
            if len(entry.vector) != dimension:
                raise DimensionMismatchError(
                    dimension, len(entry.vector), context=f"index entry {entry.chunk_id}"
                )
        return cls(entries, dimension=dimension, embed_model=embed_model)

    @property
    def entries(self) -> tuple[IndexEntry, ...]:
        return self._entries

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def embed_model(self) -> str:
        return self._embed_model

    @property
    def generated_at(self) -> str:
        return self._generated_at

    def __len__(self) -> int:
        return len(self._entries)

    def search(self, query_vector: Sequence[float], k: int) -> list[SearchHit]:
        """Top ``k`` entries by cosine similarity; ``k`` above the entry count is clamped."""
        if k < 1:
            raise ValueError("k must be >= 1")
        if not self._entries:
            return []
        if len(query_vector) != self._dimension:
            raise DimensionMismatchError(self._dimension, len(query_vector), context="query")

        scored = [(entry, _cosine(query_vector, entry.vector)) for entry in self._entries]
        # sort is stable, so equal scores keep insertion order
        scored.sort(key=lambda item: item[1], reverse=True)
        return [
            SearchHit(entry=entry, score=score, rank=rank)
            for rank, (entry, score) in enumerate(scored[:k], start=1)
        ]

    def save(self, location: Path) -> Path:
        location.mkdir(parents=True, exist_ok=True)
        index_file = location / INDEX_FILENAME
        tmp_file = index_file.with_suffix(f"{index_file.suffix}.tmp")
        if tmp_file.exists():
            tmp_file.unlink()

        try:
            connection = sqlite3.connect(tmp_file)
            try:
                with connection:
                    _ensure_schema(connection)
                    connection.executemany(
                        "INSERT INTO index_meta (key, value) VALUES (?, ?)",
                        [
                            ("version", INDEX_VERSION),
                            ("dimension", str(self._dimension)),
                            ("entry_count", str(len(self._entries))),
                            ("embed_model", self._embed_model),
                            ("generated_at", self._generated_at),
                        ],
                    )
                    connection.executemany(
                        """
                        INSERT INTO entries
                            (position, chunk_id, source_path, text, token_count, embedding, embedding_dim)
                        VALUES (?, ?, ?, ?, ?, ?, ?)
                        """,
                        [
                            (
                                position,
                                entry.chunk_id,
                                entry.source,
                                entry.text,
                                len(entry.text.split()),
                                sqlite3.Binary(_encode_embedding(entry.vector)),
                                len(entry.vector),
                            )
                            for position, entry in enumerate(self._entries)
                        ],
                    )
            finally:
                connection.close()
            os.replace(tmp_file, index_file)
        finally:
            if tmp_file.exists():
                tmp_file.unlink()

        logger.info(
            "[vector_index:save] entries=%d dim=%d path=%s",
            len(self._entries),
            self._dimension,
            index_file,
        )
        return index_file

    @classmethod
    def load(cls, location: Path, *, expected_embed_model: str | None = None) -> VectorIndex:
        index_file = location / INDEX_FILENAME
        if not index_file.is_file():
            raise IndexNotFoundError(location)

        connection = sqlite3.connect(index_file)
        try:
            try:
                meta = dict(connection.execute("SELECT key, value FROM index_meta").fetchall())
                rows = connection.execute(
                    """
                    SELECT chunk_id, source_path, text, embedding, embedding_dim
                    FROM entries
                    ORDER BY position
                    """
                ).fetchall()
            except sqlite3.DatabaseError as exc:
                raise ConfigurationError(f"Invalid RAG index {index_file}: {exc}") from exc
        finally:
            connection.close()

        try:
            dimension = int(meta.get("dimension", "0"))
        except ValueError as exc:
            raise ConfigurationError(f"Invalid RAG index {index_file}: bad dimension") from exc
        embed_model = meta.get("embed_model", "")
        if expected_embed_model is not None and embed_model != expected_embed_model:
            raise ConfigurationError(
                f"RAG index {index_file} was built with embedding model {embed_model!r} "
                f"but {expected_embed_model!r} is configured. Re-run `rag-ingest`."
            )

        entries: list[IndexEntry] = []
        for chunk_id, source_path, text, embedding_blob, embedding_dim in rows:
            if (
                not isinstance(chunk_id, str)
                or not isinstance(source_path, str)
                or not isinstance(text, str)
                or not isinstance(embedding_blob, bytes)
                or embedding_dim != dimension
            ):
                logger.warning("[vector_index:load] skipping malformed entry chunk_id=%r", chunk_id)
                continue

            vector = _decode_embedding(embedding_blob)
            if len(vector) != dimension:
                logger.warning("[vector_index:load] skipping entry with bad vector chunk_id=%s", chunk_id)
                continue

            entries.append(IndexEntry(chunk_id=chunk_id, vector=vector, text=text, source=source_path))

        expected_count = meta.get("entry_count")
        if expected_count is not None and expected_count != str(len(entries)):
            logger.warning(
                "[vector_index:load] entry count mismatch expected=%s loaded=%d",
                expected_count,
                len(entries),
            )

        return cls(
            entries,
            dimension=dimension,
            embed_model=embed_model,
            generated_at=meta.get("generated_at"),
        )
