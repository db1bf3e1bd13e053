from dataclasses import dataclass
from functools import lru_cache
import os


def _to_bool(value: str | None, *, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _to_int(value: str | None, *, default: int, minimum: int) -> int:
    if value is None:
        return default
    parsed = int(value)
    return max(minimum, parsed)


def _to_float(value: str | None, *, default: float, minimum: float) -> float:
    if value is None:
        return default
    parsed = float(value)
    return max(minimum, parsed)


def _to_choice(value: str | None, *, default: str, choices: set[str]) -> str:
    if value is None or not value.strip():
        return default
    normalized = value.strip().lower()
    if normalized not in choices:
        raise ValueError(f"Unsupported value {value!r}; expected one of {sorted(choices)}")
    return normalized


@dataclass(frozen=True)
class Settings:
    database_url: str
    db_echo: bool
    qa_log_backend: str
    qa_log_path: str
    rag_source_dir: str
    rag_index_dir: str
    rag_chunk_size: int
    rag_chunk_overlap: int
    rag_top_k: int
    rag_excerpt_chars: int
    embed_provider: str
    embed_base_url: str
    embed_model: str
    embed_api_key: str
    embed_batch_size: int
    embed_hash_dim: int
    llm_base_url: str
    llm_model: str
    llm_fallback_model: str
    llm_api_key: str
    llm_temperature: float
    provider_timeout_seconds: float
    provider_retry_attempts: int
    provider_retry_base_seconds: float
    provider_retry_max_seconds: float
    assistant_institution: str
    assistant_language: str
    log_level: str


@lru_cache
def get_settings() -> Settings:
    return Settings(
        database_url=os.getenv("RAG_DATABASE_URL", "sqlite+pysqlite:///data/qa_log.db"),
        db_echo=_to_bool(os.getenv("RAG_DB_ECHO"), default=False),
        qa_log_backend=_to_choice(
            os.getenv("QA_LOG_BACKEND"), default="sql", choices={"sql", "jsonl"}
        ),
        qa_log_path=os.getenv("QA_LOG_PATH", "data/qa-logs.jsonl"),
        rag_source_dir=os.getenv("RAG_SOURCE_DIR", "data/training-data"),
        rag_index_dir=os.getenv("RAG_INDEX_DIR", "data/rag_index"),
        rag_chunk_size=_to_int(os.getenv("RAG_CHUNK_SIZE"), default=500, minimum=1),
        rag_chunk_overlap=_to_int(os.getenv("RAG_CHUNK_OVERLAP"), default=50, minimum=0),
        rag_top_k=_to_int(os.getenv("RAG_TOP_K"), default=3, minimum=1),
        rag_excerpt_chars=_to_int(os.getenv("RAG_EXCERPT_CHARS"), default=150, minimum=1),
        embed_provider=_to_choice(
            os.getenv("EMBED_PROVIDER"), default="ollama", choices={"ollama", "hash"}
        ),
        embed_base_url=os.getenv("EMBED_BASE_URL", "http://localhost:11434/v1"),
        embed_model=os.getenv("EMBED_MODEL", "nomic-embed-text"),
        embed_api_key=os.getenv("EMBED_API_KEY", "").strip(),
        embed_batch_size=_to_int(os.getenv("EMBED_BATCH_SIZE"), default=32, minimum=1),
        embed_hash_dim=_to_int(os.getenv("EMBED_HASH_DIM"), default=32, minimum=8),
        llm_base_url=os.getenv("LLM_BASE_URL", "http://localhost:11434/v1"),
        llm_model=os.getenv("LLM_MODEL", "qwen2.5:7b-instruct-q4_K_M"),
        llm_fallback_model=os.getenv("LLM_FALLBACK_MODEL", "qwen2.5:3b-instruct-q4_K_M"),
        llm_api_key=os.getenv("LLM_API_KEY", "").strip(),
        llm_temperature=_to_float(os.getenv("LLM_TEMPERATURE"), default=0.7, minimum=0.0),
        provider_timeout_seconds=_to_float(
            os.getenv("PROVIDER_TIMEOUT_SECONDS"), default=30.0, minimum=1.0
        ),
        provider_retry_attempts=_to_int(
            os.getenv("PROVIDER_RETRY_ATTEMPTS"), default=3, minimum=1
        ),
        provider_retry_base_seconds=_to_float(
            os.getenv("PROVIDER_RETRY_BASE_SECONDS"), default=0.5, minimum=0.0
        ),
        provider_retry_max_seconds=_to_float(
            os.getenv("PROVIDER_RETRY_MAX_SECONDS"), default=8.0, minimum=0.0
        ),
        assistant_institution=os.getenv(
            "ASSISTANT_INSTITUTION", "Avans University of Applied Sciences"
        ),
        assistant_language=os.getenv("ASSISTANT_LANGUAGE", "Dutch"),
        log_level=os.getenv("RAG_LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )
