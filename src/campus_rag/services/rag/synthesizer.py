from __future__ import annotations

from collections.abc import Sequence
from functools import partial
import logging

from campus_rag.llm import LLMClient
from campus_rag.retry import RetryPolicy
from campus_rag.services.rag.completion_parser import parse_completion
from campus_rag.services.rag.types import AnswerResult, SearchHit, SourceCitation

logger = logging.getLogger(__name__)

NO_INFORMATION_ANSWER = "I don't have that information in my knowledge base."
DEFAULT_EXCERPT_CHARS = 150

PROMPT_TEMPLATE = """You are a helpful assistant for {institution}.
Your role is to help prospective students find the right education programme.

INSTRUCTIONS:
1. Use ONLY the context provided below to answer questions.
2. If the information is not in the context, respond: "{no_information}"
3. Suggest between 0 and 3 follow-up questions, only when they would help the student.
4. Wrap each follow-up question in a single pair of angle brackets, e.g. <What are the admission requirements for this programme?>
5. Phrase follow-up questions as questions the student can ask you next, never as questions directed at the student.
6. Be specific, helpful and encouraging in your responses.
7. Always answer in {language}.

CONTEXT:
{context}

STUDENT QUESTION:
{question}

ANSWER FORMAT:
[A clear, specific answer based on the context]

FOLLOW-UP SUGGESTIONS:
<Follow-up question 1>
<Follow-up question 2>
<Follow-up question 3>

Answer:
"""


def build_context(hits: Sequence[SearchHit]) -> str:
    return "\n\n".join(f"[{hit.entry.source}#{hit.entry.chunk_id}]\n{hit.entry.text}" for hit in hits)


class AnswerSynthesizer:
    def __init__(
        self,
        llm_client: LLMClient,
        *,
        institution: str = "Avans University of Applied Sciences",
        language: str = "Dutch",
        excerpt_chars: int = DEFAULT_EXCERPT_CHARS,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        if excerpt_chars <= 0:
            raise ValueError("excerpt_chars must be > 0")
        self._llm_client = llm_client
        self._institution = institution
        self._language = language
        self._excerpt_chars = excerpt_chars
        self._retry_policy = retry_policy or RetryPolicy()

    def build_prompt(self, question: str, hits: Sequence[SearchHit]) -> str:
        return PROMPT_TEMPLATE.format(
            institution=self._institution,
            no_information=NO_INFORMATION_ANSWER,
            language=self._language,
            context=build_context(hits),
            question=question,
        )

    def cite(self, hits: Sequence[SearchHit]) -> tuple[SourceCitation, ...]:
        # fixed-width cut, may end mid-word
        return tuple(
            SourceCitation(source=hit.entry.source, excerpt=hit.entry.text[: self._excerpt_chars])
            for hit in hits
        )

    def synthesize(self, question: str, hits: Sequence[SearchHit]) -> AnswerResult:
        if not hits:
            logger.info("[synthesizer] no retrieved context; returning no-information answer")
            return AnswerResult(answer=NO_INFORMATION_ANSWER, raw_answer=NO_INFORMATION_ANSWER)

        chat_result = self._retry_policy.call(
            partial(self._llm_client.complete, prompt=self.build_prompt(question, hits))
        )
        parsed = parse_completion(chat_result.answer)
        logger.info(
            "[synthesizer] model=%s used_fallback=%s follow_ups=%d sources=%d",
            chat_result.model,
            chat_result.used_fallback,
            len(parsed.follow_ups),
            len(hits),
        )
        return AnswerResult(
            answer=parsed.answer,
            follow_ups=parsed.follow_ups,
            sources=self.cite(hits),
            raw_answer=chat_result.answer,
        )
