"""
Append-only question/answer log.

Both backends append: the SQL backend inserts one row per record in its own
transaction, the JSON-lines backend writes one line per record in append mode
while holding a lock. Neither rewrites existing entries.
"""

from __future__ import annotations

from datetime import datetime, timezone
import json
from pathlib import Path
import threading

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from campus_rag.db import Base
from campus_rag.models import QALogRecord
from campus_rag.services.rag.types import AnswerResult


class SqlQALog:
    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def create_schema(self) -> None:
        Base.metadata.create_all(bind=self._engine, tables=[QALogRecord.__table__])

    def record(self, question: str, answer: AnswerResult) -> None:
        with Session(self._engine) as session:
            session.add(
                QALogRecord(
                    created_at=datetime.now(timezone.utc),
                    question=question,
                    answer=answer.raw_answer or answer.answer,
                    payload_json=answer.to_dict(),
                )
            )
            session.commit()


_jsonl_locks: dict[Path, threading.Lock] = {}
_jsonl_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    with _jsonl_locks_guard:
        return _jsonl_locks.setdefault(path, threading.Lock())


class JsonlQALog:
    def __init__(self, path: Path) -> None:
        self._path = path.resolve()
        self._lock = _lock_for(self._path)

    @property
    def path(self) -> Path:
        return self._path

    def create_schema(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def record(self, question: str, answer: AnswerResult) -> None:
        line = json.dumps(
            {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "question": question,
                "answer": answer.raw_answer or answer.answer,
            },
            ensure_ascii=False,
        )
        with self._lock:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
                handle.flush()
