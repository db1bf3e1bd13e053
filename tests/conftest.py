from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from campus_rag.config import get_settings
from campus_rag.db import Base, get_engine
from campus_rag.main import _load_query_engine, app, get_rag_context


def _clear_caches() -> None:
    get_settings.cache_clear()
    get_engine.cache_clear()
    get_rag_context.cache_clear()
    _load_query_engine.cache_clear()


@pytest.fixture(autouse=True)
def reset_api_caches() -> Iterator[None]:
    _clear_caches()
    yield
    _clear_caches()


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[TestClient]:
    sqlite_db_path = tmp_path / "qa-log-tests.db"
    monkeypatch.setenv("RAG_DATABASE_URL", f"sqlite+pysqlite:///{sqlite_db_path}")
    monkeypatch.setenv("RAG_DB_ECHO", "false")
    monkeypatch.setenv("QA_LOG_BACKEND", "sql")
    monkeypatch.setenv("EMBED_PROVIDER", "hash")
    monkeypatch.setenv("RAG_INDEX_DIR", str(tmp_path / "missing-index"))

    engine = get_engine()
    Base.metadata.create_all(bind=engine)

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    engine.dispose()
