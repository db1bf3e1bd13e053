from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class SourceDocument:
    doc_id: str
    source_path: str
    text: str


@dataclass(frozen=True)
class ChunkRecord:
    chunk_id: str
    doc_id: str
    source_path: str
    text: str
    start_offset: int
    end_offset: int


@dataclass(frozen=True)
class IndexEntry:
    chunk_id: str
    vector: tuple[float, ...]
    text: str
    source: str


@dataclass(frozen=True)
class SearchHit:
    entry: IndexEntry
    score: float
    rank: int


@dataclass(frozen=True)
class SourceCitation:
    source: str
    excerpt: str


@dataclass(frozen=True)
class AnswerResult:
    answer: str
    follow_ups: tuple[str, ...] = ()
    sources: tuple[SourceCitation, ...] = ()
    raw_answer: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "answer": self.answer,
            "follow_ups": list(self.follow_ups),
            "sources": [
                {"source": citation.source, "excerpt": citation.excerpt}
                for citation in self.sources
            ],
        }


@dataclass(frozen=True)
class IngestionSummary:
    document_count: int
    chunk_count: int
    index_path: str
    embedding_dim: int
    embed_model: str
    duration_ms: int
    skipped_files: tuple[str, ...] = field(default_factory=tuple)
