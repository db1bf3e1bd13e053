"""
Error taxonomy for the retrieval pipeline.

ConfigurationError and its subclasses are fatal at the process boundary
(ingestion job, engine startup). ProviderError carries a ``retryable`` flag so
the retry policy and callers can tell transient failures from permanent ones.
"""

from __future__ import annotations

from pathlib import Path


class RagError(Exception):
    """Base class for every error raised by campus_rag."""


class ConfigurationError(RagError):
    pass


class IndexNotFoundError(ConfigurationError):
    def __init__(self, location: Path) -> None:
        self.location = location
        super().__init__(
            f"RAG index not found: {location}. Run `rag-ingest` first to build it."
        )


class IndexNotLoadedError(ConfigurationError):
    def __init__(self) -> None:
        super().__init__("Query engine has no index loaded; call load_index() first")


class DimensionMismatchError(ConfigurationError):
    def __init__(self, expected: int, actual: int, *, context: str = "vector") -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Embedding dimension mismatch for {context}: expected {expected}, got {actual}"
        )


class EmptyCorpusError(ConfigurationError):
    def __init__(self, source_dir: Path, failures: list[IngestError] | None = None) -> None:
        self.source_dir = source_dir
        self.failures = list(failures or [])
        message = f"No non-empty readable documents found in {source_dir}"
        if self.failures:
            message += f" ({len(self.failures)} unreadable file(s) skipped)"
        super().__init__(message)


class ProviderError(RagError):
    def __init__(self, message: str, *, retryable: bool = False) -> None:
        self.retryable = retryable
        super().__init__(message)


class EmbeddingError(ProviderError):
    pass


class GenerationError(ProviderError):
    pass


class IngestError(RagError):
    """A single document that could not be read during ingestion."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class ParseError(RagError):
    pass
