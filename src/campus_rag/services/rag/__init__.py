from campus_rag.services.rag.ingest import IngestionResult, ingest_documents
from campus_rag.services.rag.query import QueryEngine
from campus_rag.services.rag.synthesizer import AnswerSynthesizer
from campus_rag.services.rag.types import AnswerResult, IngestionSummary, SearchHit
from campus_rag.services.rag.vector_index import VectorIndex

__all__ = [
    "AnswerResult",
    "AnswerSynthesizer",
    "IngestionResult",
    "IngestionSummary",
    "QueryEngine",
    "SearchHit",
    "VectorIndex",
    "ingest_documents",
]
