from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from time import perf_counter

from campus_rag.errors import ConfigurationError, EmptyCorpusError
from campus_rag.services.rag.chunker import chunk_documents, validate_chunking
from campus_rag.services.rag.embedder import Embedder
from campus_rag.services.rag.loader import load_documents
from campus_rag.services.rag.types import IndexEntry, IngestionSummary
from campus_rag.services.rag.vector_index import VectorIndex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestionResult:
    index: VectorIndex
    summary: IngestionSummary


def _self_check(index_dir: Path, expected: VectorIndex) -> None:
    reloaded = VectorIndex.load(index_dir, expected_embed_model=expected.embed_model)
    if len(reloaded) != len(expected):
        raise ConfigurationError(
            f"index self-check failed: wrote {len(expected)} entries, read back {len(reloaded)}"
        )
    if reloaded.dimension != expected.dimension:
        raise ConfigurationError("index self-check failed: embedding dimension changed on reload")


def ingest_documents(
    *,
    source_dir: Path,
    index_dir: Path,
    chunk_size: int,
    chunk_overlap: int,
    embedder: Embedder,
) -> IngestionResult:
    """Build and persist a vector index for every document under ``source_dir``."""
    validate_chunking(chunk_size, chunk_overlap)
    start = perf_counter()

    loaded = load_documents(source_dir)
    if not loaded.documents:
        raise EmptyCorpusError(source_dir, loaded.failures)

    chunks = chunk_documents(
        loaded.documents,
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
    )
    logger.info(
        "[ingest] documents=%d chunks=%d skipped=%d",
        len(loaded.documents),
        len(chunks),
        len(loaded.failures),
    )

    embeddings = embedder.embed_batch([chunk.text for chunk in chunks])
    index = VectorIndex.build(
        [
            IndexEntry(
                chunk_id=chunk.chunk_id,
                vector=tuple(embedding),
                text=chunk.text,
                source=chunk.source_path,
            )
            for chunk, embedding in zip(chunks, embeddings)
        ],
        embed_model=embedder.provider_id,
    )
    index_file = index.save(index_dir)
    _self_check(index_dir, index)

    summary = IngestionSummary(
        document_count=len(loaded.documents),
        chunk_count=len(chunks),
        index_path=str(index_file),
        embedding_dim=index.dimension,
        embed_model=index.embed_model,
        duration_ms=int((perf_counter() - start) * 1000),
        skipped_files=tuple(failure.path for failure in loaded.failures),
    )
    return IngestionResult(index=index, summary=summary)
