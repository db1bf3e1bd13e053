from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys

from campus_rag.config import get_settings
from campus_rag.context import build_context, run_ingestion
from campus_rag.errors import EmptyCorpusError


def _build_parser() -> argparse.ArgumentParser:
    settings = get_settings()

    parser = argparse.ArgumentParser(
        prog="rag-ingest",
        description="Chunk, embed and index the document corpus into a local vector index",
    )
    parser.add_argument(
        "--source-dir",
        default=settings.rag_source_dir,
        help="Source directory containing .txt/.md documents",
    )
    parser.add_argument(
        "--index-dir",
        default=settings.rag_index_dir,
        help="Output directory for the persisted vector index",
    )
    parser.add_argument(
        "--chunk-size",
        type=int,
        default=settings.rag_chunk_size,
        help="Chunk size in characters",
    )
    parser.add_argument(
        "--chunk-overlap",
        type=int,
        default=settings.rag_chunk_overlap,
        help="Chunk overlap in characters",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)

    try:
        context = build_context(settings, with_qa_log=False)
        result = run_ingestion(
            context,
            source_dir=Path(args.source_dir),
            index_dir=Path(args.index_dir),
            chunk_size=args.chunk_size,
            chunk_overlap=args.chunk_overlap,
        )
    except EmptyCorpusError as exc:
        for failure in exc.failures:
            print(f"[rag-ingest] skipped {failure}", file=sys.stderr, flush=True)
        print(f"[rag-ingest] failed: {exc}", file=sys.stderr, flush=True)
        raise SystemExit(1) from exc
    except Exception as exc:
        print(f"[rag-ingest] failed: {exc}", file=sys.stderr, flush=True)
        raise SystemExit(1) from exc

    summary = result.summary
    for skipped in summary.skipped_files:
        print(f"[rag-ingest] skipped unreadable file {skipped}", file=sys.stderr, flush=True)
    print(
        "[rag-ingest] completed "
        f"documents={summary.document_count} "
        f"chunks={summary.chunk_count} "
        f"skipped={len(summary.skipped_files)} "
        f"dim={summary.embedding_dim} "
        f"model={summary.embed_model} "
        f"duration_ms={summary.duration_ms} "
        f"index_path={summary.index_path}",
        flush=True,
    )


if __name__ == "__main__":
    main()
