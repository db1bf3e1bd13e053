import pytest

from campus_rag.errors import GenerationError
from campus_rag.llm import ChatResult
from campus_rag.retry import RetryPolicy
from campus_rag.services.rag.synthesizer import NO_INFORMATION_ANSWER, AnswerSynthesizer
from campus_rag.services.rag.types import IndexEntry, SearchHit


class FakeLLMClient:
    def __init__(self, answer: str) -> None:
        self._answer = answer
        self.prompts: list[str] = []

    def complete(self, *, prompt: str) -> ChatResult:
        self.prompts.append(prompt)
        return ChatResult(answer=self._answer, model="fake-model", used_fallback=False)


class FailingLLMClient:
    def __init__(self, *, retryable: bool = False) -> None:
        self._retryable = retryable
        self.calls = 0

    def complete(self, *, prompt: str) -> ChatResult:
        self.calls += 1
        raise GenerationError("simulated failure", retryable=self._retryable)


class FlakyLLMClient:
    def __init__(self, failures: int) -> None:
        self._failures = failures
        self.calls = 0

    def complete(self, *, prompt: str) -> ChatResult:
        self.calls += 1
        if self.calls <= self._failures:
            raise GenerationError("429 Too Many Requests", retryable=True)
        return ChatResult(
            answer="Four years. <Can I start in February?>", model="fake-model", used_fallback=False
        )


def _no_sleep_policy(max_attempts: int = 3) -> RetryPolicy:
    return RetryPolicy(max_attempts=max_attempts, jitter_ratio=0.0, sleep=lambda _: None)


def _hit(chunk_id: str, text: str, source: str, rank: int) -> SearchHit:
    entry = IndexEntry(chunk_id=chunk_id, vector=(1.0, 0.0), text=text, source=source)
    return SearchHit(entry=entry, score=1.0 / rank, rank=rank)


HITS = [
    _hit("ict-0000", "HBO-ICT " + "a" * 300, "hbo-ict.txt", 1),
    _hit("nurse-0002", "Verpleegkunde is a four year bachelor.", "verpleegkunde.md", 2),
]


def test_prompt_contains_context_question_and_instructions() -> None:
    llm = FakeLLMClient("Four years.")
    synthesizer = AnswerSynthesizer(llm, institution="Avans", language="English")

    synthesizer.synthesize("How long does HBO-ICT take?", HITS)

    assert len(llm.prompts) == 1
    prompt = llm.prompts[0]
    assert "helpful assistant for Avans" in prompt
    assert "Always answer in English." in prompt
    assert NO_INFORMATION_ANSWER in prompt
    assert "[hbo-ict.txt#ict-0000]" in prompt
    assert "Verpleegkunde is a four year bachelor." in prompt
    assert "STUDENT QUESTION:\nHow long does HBO-ICT take?" in prompt
    assert prompt.index("[hbo-ict.txt#ict-0000]") < prompt.index("[verpleegkunde.md#nurse-0002]")
    assert prompt.rstrip().endswith("Answer:")


def test_answer_follow_ups_and_sources_are_assembled() -> None:
    raw = "It takes four years. FOLLOW-UP SUGGESTIONS: <Can I study part-time?>"
    synthesizer = AnswerSynthesizer(FakeLLMClient(raw))

    result = synthesizer.synthesize("How long?", HITS)

    assert result.answer == "It takes four years."
    assert result.follow_ups == ("Can I study part-time?",)
    assert result.raw_answer == raw
    assert [citation.source for citation in result.sources] == ["hbo-ict.txt", "verpleegkunde.md"]
    assert len(result.sources[0].excerpt) == 150
    assert result.sources[0].excerpt == HITS[0].entry.text[:150]
    assert result.sources[1].excerpt == "Verpleegkunde is a four year bachelor."


def test_excerpt_length_is_configurable() -> None:
    synthesizer = AnswerSynthesizer(FakeLLMClient("ok"), excerpt_chars=10)

    result = synthesizer.synthesize("q", HITS)

    assert result.sources[0].excerpt == "HBO-ICT aa"


def test_no_hits_returns_no_information_without_calling_llm() -> None:
    llm = FakeLLMClient("should not be used")

    result = AnswerSynthesizer(llm).synthesize("Who won the world cup?", [])

    assert result.answer == NO_INFORMATION_ANSWER
    assert result.follow_ups == ()
    assert result.sources == ()
    assert llm.prompts == []


def test_generation_error_propagates() -> None:
    llm = FailingLLMClient()

    with pytest.raises(GenerationError, match="simulated failure"):
        AnswerSynthesizer(llm, retry_policy=_no_sleep_policy()).synthesize("q", HITS)
    assert llm.calls == 1


def test_retryable_generation_error_is_retried() -> None:
    llm = FlakyLLMClient(failures=1)
    synthesizer = AnswerSynthesizer(llm, retry_policy=_no_sleep_policy())

    result = synthesizer.synthesize("How long?", HITS)

    assert llm.calls == 2
    assert result.answer == "Four years."
    assert result.follow_ups == ("Can I start in February?",)


def test_retryable_generation_error_gives_up_after_max_attempts() -> None:
    llm = FailingLLMClient(retryable=True)

    with pytest.raises(GenerationError):
        AnswerSynthesizer(llm, retry_policy=_no_sleep_policy(max_attempts=3)).synthesize("q", HITS)
    assert llm.calls == 3


def test_result_serializes_for_api() -> None:
    result = AnswerSynthesizer(FakeLLMClient("Yes. <Next?>")).synthesize("q", HITS[1:])

    assert result.to_dict() == {
        "answer": "Yes.",
        "follow_ups": ["Next?"],
        "sources": [
            {"source": "verpleegkunde.md", "excerpt": "Verpleegkunde is a four year bachelor."}
        ],
    }
