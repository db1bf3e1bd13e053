from __future__ import annotations

from collections.abc import Sequence

from campus_rag.errors import ConfigurationError
from campus_rag.services.rag.types import ChunkRecord, SourceDocument

# Highest priority first: paragraph, line, sentence end, word.
SEPARATORS: tuple[tuple[str, ...], ...] = (
    ("\n\n",),
    ("\n",),
    (". ", "? ", "! "),
    (" ",),
)


def validate_chunking(chunk_size: int, chunk_overlap: int) -> None:
    if chunk_size <= 0:
        raise ConfigurationError("chunk_size must be > 0")
    if chunk_overlap < 0:
        raise ConfigurationError("chunk_overlap must be >= 0")
    if chunk_overlap >= chunk_size:
        raise ConfigurationError("chunk_overlap must be smaller than chunk_size")


def _choose_end(text: str, start: int, limit: int, *, min_end: int) -> int:
    for group in SEPARATORS:
        best = -1
        for separator in group:
            position = text.rfind(separator, start, limit)
            if position == -1:
                continue
            cut = position + len(separator)
            if cut > min_end:
                best = max(best, cut)
        if best != -1:
            return best
    return limit


def chunk_text(text: str, *, chunk_size: int, chunk_overlap: int) -> list[tuple[int, int]]:
    """Return ``(start, end)`` offsets of overlapping chunks covering ``text``.

    Each chunk is cut after the strongest natural boundary that fits in
    ``chunk_size`` characters; the following chunk starts ``chunk_overlap``
    characters before that cut.
    """
    validate_chunking(chunk_size, chunk_overlap)

    text_length = len(text)
    if text_length == 0:
        return []

    bounds: list[tuple[int, int]] = []
    start = 0
    while text_length - start > chunk_size:
        end = _choose_end(
            text,
            start,
            start + chunk_size,
            min_end=start + chunk_overlap,
        )
        bounds.append((start, end))
        start = end - chunk_overlap
    bounds.append((start, text_length))
    return bounds


def merge_chunks(chunks: Sequence[ChunkRecord | str], *, chunk_overlap: int) -> str:
    """Rebuild the source text from consecutive chunks of a single document."""
    texts = [chunk if isinstance(chunk, str) else chunk.text for chunk in chunks]
    if not texts:
        return ""
    return texts[0] + "".join(text[chunk_overlap:] for text in texts[1:])


def chunk_documents(
    documents: list[SourceDocument],
    *,
    chunk_size: int,
    chunk_overlap: int,
) -> list[ChunkRecord]:
    validate_chunking(chunk_size, chunk_overlap)
    chunk_records: list[ChunkRecord] = []

    for document in documents:
        bounds = chunk_text(
            document.text,
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
        )

        for index, (start, end) in enumerate(bounds):
            chunk_records.append(
                ChunkRecord(
                    chunk_id=f"{document.doc_id}-{index:04d}",
                    doc_id=document.doc_id,
                    source_path=document.source_path,
                    text=document.text[start:end],
                    start_offset=start,
                    end_offset=end,
                )
            )

    return chunk_records
