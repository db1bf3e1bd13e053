from functools import lru_cache
import logging
from typing import Annotated, Any

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Query
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field

from campus_rag.config import get_settings
from campus_rag.context import RagContext, build_context, build_query_engine
from campus_rag.errors import (
    ConfigurationError,
    EmbeddingError,
    GenerationError,
    IndexNotFoundError,
    IndexNotLoadedError,
)
from campus_rag.services.rag.query import QueryEngine
from campus_rag.services.rag.types import AnswerResult

logger = logging.getLogger(__name__)

NO_ANSWER_TEXT = "Sorry I couldn't find any info about that."

app = FastAPI(title="Campus RAG API", version="0.1.0")


class AskRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    question: str = Field(min_length=1)


@lru_cache
def get_rag_context() -> RagContext:
    return build_context(get_settings())


@lru_cache
def _load_query_engine() -> QueryEngine:
    return build_query_engine(get_rag_context())


def get_query_engine() -> QueryEngine:
    try:
        return _load_query_engine()
    except IndexNotFoundError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except ConfigurationError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@app.on_event("startup")
def startup() -> None:
    logging.basicConfig(level=get_settings().log_level)
    qa_log = get_rag_context().qa_log
    if qa_log is not None:
        qa_log.create_schema()


def _answer(
    engine: QueryEngine, question: str, background_tasks: BackgroundTasks
) -> AnswerResult:
    normalized = question.strip()
    if not normalized:
        raise HTTPException(status_code=400, detail="question must not be empty")

    try:
        result = engine.answer(normalized)
    except IndexNotLoadedError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except EmbeddingError as exc:
        raise HTTPException(status_code=502, detail=f"Embedding request failed: {exc}") from exc
    except GenerationError as exc:
        raise HTTPException(status_code=502, detail=f"LLM request failed: {exc}") from exc
    except ConfigurationError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    # runs after the response is sent
    background_tasks.add_task(engine.record, normalized, result)
    return result


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/", response_class=PlainTextResponse)
def ask_plain(
    engine: Annotated[QueryEngine, Depends(get_query_engine)],
    background_tasks: BackgroundTasks,
    question: str = Query(min_length=1),
) -> str:
    result = _answer(engine, question, background_tasks)
    return result.raw_answer or result.answer or NO_ANSWER_TEXT


@app.post("/ask")
def ask(
    request: AskRequest,
    engine: Annotated[QueryEngine, Depends(get_query_engine)],
    background_tasks: BackgroundTasks,
) -> dict[str, Any]:
    return _answer(engine, request.question, background_tasks).to_dict()


@app.get("/rag/search")
def rag_search(
    q: str,
    engine: Annotated[QueryEngine, Depends(get_query_engine)],
    k: int = 3,
) -> list[dict[str, object]]:
    if not q.strip():
        raise HTTPException(status_code=400, detail="q must not be empty")

    top_k = max(1, min(k, 20))

    try:
        hits = engine.retrieve(q, top_k)
    except EmbeddingError as exc:
        raise HTTPException(status_code=502, detail=f"Embedding request failed: {exc}") from exc
    except ConfigurationError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    return [
        {
            "chunk_id": hit.entry.chunk_id,
            "source_path": hit.entry.source,
            "rank": hit.rank,
            "score": round(hit.score, 6),
            "text": hit.entry.text,
        }
        for hit in hits
    ]


def run() -> None:
    import uvicorn

    uvicorn.run("campus_rag.main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    run()
