from __future__ import annotations

from dataclasses import dataclass, field
import hashlib
import logging
from pathlib import Path

from campus_rag.errors import ConfigurationError, IngestError
from campus_rag.services.rag.types import SourceDocument

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {".txt", ".md"}


@dataclass(frozen=True)
class LoadResult:
    documents: list[SourceDocument]
    failures: list[IngestError] = field(default_factory=list)


def load_documents(
    source_dir: Path,
    supported_extensions: set[str] | None = None,
) -> LoadResult:
    """Read every supported file under ``source_dir``; unreadable files are reported, not fatal."""
    if not source_dir.exists():
        raise ConfigurationError(f"Source directory not found: {source_dir}")
    if not source_dir.is_dir():
        raise ConfigurationError(f"Source path is not a directory: {source_dir}")

    extensions = supported_extensions or SUPPORTED_EXTENSIONS
    files = sorted(
        path
        for path in source_dir.rglob("*")
        if path.is_file() and path.suffix.lower() in extensions
    )

    documents: list[SourceDocument] = []
    failures: list[IngestError] = []
    for path in files:
        relative_path = path.relative_to(source_dir).as_posix()
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            failure = IngestError(relative_path, str(exc))
            logger.warning("[loader:load_documents] skipping unreadable file %s", failure)
            failures.append(failure)
            continue

        if not text.strip():
            logger.info("[loader:load_documents] skipping empty file %s", relative_path)
            continue

        doc_id = hashlib.sha256(relative_path.encode("utf-8")).hexdigest()[:16]
        documents.append(
            SourceDocument(
                doc_id=doc_id,
                source_path=relative_path,
                text=text,
            )
        )

    return LoadResult(documents=documents, failures=failures)
