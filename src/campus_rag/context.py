"""
Process wiring: one RagContext is built at startup and handed to the
ingestion job or the query engine, instead of module-level clients.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from campus_rag.config import Settings, get_settings
from campus_rag.db import get_engine
from campus_rag.llm import LLMClient, OllamaChatClient
from campus_rag.qa_log import JsonlQALog, SqlQALog
from campus_rag.retry import RetryPolicy
from campus_rag.services.rag.embedder import Embedder
from campus_rag.services.rag.embedding_client import (
    EmbeddingClient,
    HashingEmbeddingClient,
    OllamaEmbeddingClient,
)
from campus_rag.services.rag.ingest import IngestionResult, ingest_documents
from campus_rag.services.rag.query import QueryEngine
from campus_rag.services.rag.synthesizer import AnswerSynthesizer


@dataclass(frozen=True)
class RagContext:
    settings: Settings
    embedder: Embedder
    llm_client: LLMClient
    qa_log: SqlQALog | JsonlQALog | None = None


def build_retry_policy(settings: Settings) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.provider_retry_attempts,
        base_delay_seconds=settings.provider_retry_base_seconds,
        max_delay_seconds=settings.provider_retry_max_seconds,
    )


def build_embedding_client(settings: Settings) -> EmbeddingClient:
    if settings.embed_provider == "hash":
        return HashingEmbeddingClient(dimensions=settings.embed_hash_dim)
    return OllamaEmbeddingClient(
        base_url=settings.embed_base_url,
        model=settings.embed_model,
        api_key=settings.embed_api_key,
        timeout_seconds=settings.provider_timeout_seconds,
    )


def build_llm_client(settings: Settings) -> LLMClient:
    return OllamaChatClient(
        base_url=settings.llm_base_url,
        default_model=settings.llm_model,
        fallback_model=settings.llm_fallback_model,
        api_key=settings.llm_api_key,
        temperature=settings.llm_temperature,
        timeout_seconds=settings.provider_timeout_seconds,
    )


def build_qa_log(settings: Settings) -> SqlQALog | JsonlQALog:
    if settings.qa_log_backend == "jsonl":
        return JsonlQALog(Path(settings.qa_log_path))
    return SqlQALog(get_engine())


def build_context(settings: Settings | None = None, *, with_qa_log: bool = True) -> RagContext:
    settings = settings or get_settings()
    embedder = Embedder(
        build_embedding_client(settings),
        batch_size=settings.embed_batch_size,
        retry_policy=build_retry_policy(settings),
    )
    return RagContext(
        settings=settings,
        embedder=embedder,
        llm_client=build_llm_client(settings),
        qa_log=build_qa_log(settings) if with_qa_log else None,
    )


def build_query_engine(context: RagContext, *, index_dir: Path | None = None) -> QueryEngine:
    """Create an engine and load the persisted index; raises IndexNotFoundError if it is missing."""
    settings = context.settings
    synthesizer = AnswerSynthesizer(
        context.llm_client,
        institution=settings.assistant_institution,
        language=settings.assistant_language,
        excerpt_chars=settings.rag_excerpt_chars,
        retry_policy=build_retry_policy(settings),
    )
    engine = QueryEngine(
        embedder=context.embedder,
        synthesizer=synthesizer,
        top_k=settings.rag_top_k,
        qa_log=context.qa_log,
    )
    engine.load_index(index_dir or Path(settings.rag_index_dir))
    return engine


def run_ingestion(
    context: RagContext,
    *,
    source_dir: Path | None = None,
    index_dir: Path | None = None,
    chunk_size: int | None = None,
    chunk_overlap: int | None = None,
) -> IngestionResult:
    settings = context.settings
    return ingest_documents(
        source_dir=source_dir or Path(settings.rag_source_dir),
        index_dir=index_dir or Path(settings.rag_index_dir),
        chunk_size=chunk_size if chunk_size is not None else settings.rag_chunk_size,
        chunk_overlap=chunk_overlap if chunk_overlap is not None else settings.rag_chunk_overlap,
        embedder=context.embedder,
    )
