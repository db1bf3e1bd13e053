from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from campus_rag.errors import IndexNotLoadedError
from campus_rag.services.rag.embedder import Embedder
from campus_rag.services.rag.synthesizer import AnswerSynthesizer
from campus_rag.services.rag.types import AnswerResult, SearchHit
from campus_rag.services.rag.vector_index import VectorIndex

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 3


class AnswerRecorder(Protocol):
    def record(self, question: str, answer: AnswerResult) -> None: ...


class QueryEngine:
    """Embed, retrieve and synthesize against one loaded, read-only index.

    The engine starts uninitialized and becomes ready once an index is
    attached; it never builds one on demand.
    """

    def __init__(
        self,
        *,
        embedder: Embedder,
        synthesizer: AnswerSynthesizer,
        top_k: int = DEFAULT_TOP_K,
        qa_log: AnswerRecorder | None = None,
        index: VectorIndex | None = None,
    ) -> None:
        if top_k < 1:
            raise ValueError("top_k must be >= 1")
        self._embedder = embedder
        self._synthesizer = synthesizer
        self._top_k = top_k
        self._qa_log = qa_log
        self._index = index

    @property
    def is_ready(self) -> bool:
        return self._index is not None

    @property
    def index(self) -> VectorIndex:
        if self._index is None:
            raise IndexNotLoadedError()
        return self._index

    def load_index(self, location: Path) -> VectorIndex:
        index = VectorIndex.load(location, expected_embed_model=self._embedder.provider_id)
        logger.info(
            "[query_engine:load_index] entries=%d dim=%d model=%s",
            len(index),
            index.dimension,
            index.embed_model,
        )
        self._index = index
        return index

    def retrieve(self, question: str, k: int | None = None) -> list[SearchHit]:
        index = self.index
        normalized_question = question.strip()
        if not normalized_question:
            raise ValueError("question must not be empty")

        query_vector = self._embedder.embed(normalized_question)
        hits = index.search(query_vector, self._top_k if k is None else k)
        logger.info(
            "[query_engine:retrieve] hits=%d sources=%s scores=%s",
            len(hits),
            [hit.entry.source for hit in hits],
            [round(hit.score, 4) for hit in hits],
        )
        return hits

    def answer(self, question: str) -> AnswerResult:
        """Retrieve and synthesize without touching the Q&A log."""
        hits = self.retrieve(question)
        return self._synthesizer.synthesize(question.strip(), hits)

    def query(self, question: str) -> AnswerResult:
        result = self.answer(question)
        self.record(question, result)
        return result

    def record(self, question: str, result: AnswerResult) -> None:
        question = question.strip()
        if self._qa_log is None:
            return
        try:
            self._qa_log.record(question, result)
        except Exception:
            logger.exception("[query_engine] failed to record Q&A log entry")
