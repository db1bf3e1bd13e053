import pytest

from campus_rag.errors import DimensionMismatchError, EmbeddingError
from campus_rag.retry import RetryPolicy
from campus_rag.services.rag.embedder import Embedder


class RecordingEmbeddingClient:
    provider_id = "fake:recording"

    def __init__(self) -> None:
        self.batches: list[list[str]] = []

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        self.batches.append(list(texts))
        return [[float(len(text)), float(int(text.split("-")[1]))] for text in texts]


class FlakyEmbeddingClient:
    provider_id = "fake:flaky"

    def __init__(self, failures: int, *, retryable: bool = True) -> None:
        self._failures = failures
        self._retryable = retryable
        self.calls = 0

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        self.calls += 1
        if self.calls <= self._failures:
            raise EmbeddingError("provider busy", retryable=self._retryable)
        return [[1.0, 0.0] for _ in texts]


class FailingSecondBatchClient:
    provider_id = "fake:partial"

    def __init__(self) -> None:
        self.calls = 0

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        self.calls += 1
        if self.calls == 2:
            raise EmbeddingError("invalid input", retryable=False)
        return [[1.0, 0.0] for _ in texts]


def _no_sleep_policy(max_attempts: int = 3) -> RetryPolicy:
    return RetryPolicy(max_attempts=max_attempts, jitter_ratio=0.0, sleep=lambda _: None)


def test_embed_batch_preserves_order_across_batches() -> None:
    client = RecordingEmbeddingClient()
    embedder = Embedder(client, batch_size=3, retry_policy=_no_sleep_policy())
    texts = [f"text-{index}" for index in range(8)]

    vectors = embedder.embed_batch(texts)

    assert [vector[1] for vector in vectors] == [float(index) for index in range(8)]
    assert client.batches == [texts[0:3], texts[3:6], texts[6:8]]


def test_embed_returns_single_vector() -> None:
    embedder = Embedder(RecordingEmbeddingClient(), retry_policy=_no_sleep_policy())

    assert embedder.embed("text-7") == [6.0, 7.0]
    assert embedder.provider_id == "fake:recording"


def test_transient_failures_are_retried() -> None:
    client = FlakyEmbeddingClient(failures=2)
    embedder = Embedder(client, retry_policy=_no_sleep_policy(max_attempts=3))

    assert embedder.embed_batch(["a", "b"]) == [[1.0, 0.0], [1.0, 0.0]]
    assert client.calls == 3


def test_non_retryable_failure_is_not_retried() -> None:
    client = FlakyEmbeddingClient(failures=1, retryable=False)
    embedder = Embedder(client, retry_policy=_no_sleep_policy(max_attempts=3))

    with pytest.raises(EmbeddingError):
        embedder.embed_batch(["a"])
    assert client.calls == 1


def test_failed_batch_fails_whole_call() -> None:
    client = FailingSecondBatchClient()
    embedder = Embedder(client, batch_size=2, retry_policy=_no_sleep_policy())

    with pytest.raises(EmbeddingError, match="invalid input"):
        embedder.embed_batch(["a", "b", "c", "d"])


def test_vector_count_mismatch_is_rejected() -> None:
    class ShortClient:
        provider_id = "fake:short"

        def embed_texts(self, texts: list[str]) -> list[list[float]]:
            return [[1.0]]

    embedder = Embedder(ShortClient(), retry_policy=_no_sleep_policy())

    with pytest.raises(EmbeddingError, match="1 vectors for 2 texts"):
        embedder.embed_batch(["a", "b"])


def test_mixed_dimensions_are_rejected() -> None:
    class RaggedClient:
        provider_id = "fake:ragged"

        def embed_texts(self, texts: list[str]) -> list[list[float]]:
            return [[1.0] * (index + 1) for index, _ in enumerate(texts)]

    embedder = Embedder(RaggedClient(), retry_policy=_no_sleep_policy())

    with pytest.raises(DimensionMismatchError):
        embedder.embed_batch(["a", "b"])


def test_empty_input_makes_no_provider_call() -> None:
    client = RecordingEmbeddingClient()

    assert Embedder(client).embed_batch([]) == []
    assert client.batches == []
