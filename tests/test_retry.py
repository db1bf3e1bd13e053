import httpx
import pytest

from campus_rag.errors import ConfigurationError, EmbeddingError
from campus_rag.retry import RetryPolicy, is_retryable_error


class _Flaky:
    def __init__(self, failures: list[Exception], result: str = "ok") -> None:
        self._failures = list(failures)
        self._result = result
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self._failures:
            raise self._failures.pop(0)
        return self._result


def _policy(sleeps: list[float], **overrides: object) -> RetryPolicy:
    options: dict[str, object] = {
        "max_attempts": 3,
        "base_delay_seconds": 0.5,
        "max_delay_seconds": 8.0,
        "jitter_ratio": 0.0,
        "sleep": sleeps.append,
    }
    options.update(overrides)
    return RetryPolicy(**options)  # type: ignore[arg-type]


def _status_error(status_code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "http://localhost:11434/v1/embeddings")
    response = httpx.Response(status_code, request=request)
    return httpx.HTTPStatusError("request failed", request=request, response=response)


def test_retries_transient_failures_with_exponential_backoff() -> None:
    sleeps: list[float] = []
    flaky = _Flaky(
        [
            EmbeddingError("rate limited", retryable=True),
            EmbeddingError("timeout", retryable=True),
        ]
    )

    assert _policy(sleeps).call(flaky) == "ok"
    assert flaky.calls == 3
    assert sleeps == [0.5, 1.0]


def test_non_retryable_error_propagates_immediately() -> None:
    sleeps: list[float] = []
    flaky = _Flaky([EmbeddingError("unauthorized", retryable=False)])

    with pytest.raises(EmbeddingError, match="unauthorized"):
        _policy(sleeps).call(flaky)

    assert flaky.calls == 1
    assert sleeps == []


def test_gives_up_after_max_attempts() -> None:
    sleeps: list[float] = []
    flaky = _Flaky([EmbeddingError(f"busy {attempt}", retryable=True) for attempt in range(5)])

    with pytest.raises(EmbeddingError, match="busy 2"):
        _policy(sleeps).call(flaky)

    assert flaky.calls == 3
    assert len(sleeps) == 2


def test_delay_is_capped() -> None:
    policy = _policy([], base_delay_seconds=1.0, max_delay_seconds=3.0)

    assert [policy.delay_for(attempt) for attempt in range(1, 5)] == [1.0, 2.0, 3.0, 3.0]


def test_jitter_stays_within_ratio() -> None:
    sleeps: list[float] = []
    flaky = _Flaky([EmbeddingError("busy", retryable=True)])

    _policy(sleeps, jitter_ratio=0.2).call(flaky)

    assert 0.5 <= sleeps[0] <= 0.6


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (httpx.ReadTimeout("slow"), True),
        (httpx.ConnectError("refused"), True),
        (_status_error(429), True),
        (_status_error(503), True),
        (_status_error(401), False),
        (_status_error(400), False),
        (ValueError("bad payload"), False),
    ],
)
def test_retryable_error_predicate(error: Exception, expected: bool) -> None:
    assert is_retryable_error(error) is expected


def test_invalid_policy_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        RetryPolicy(max_attempts=0)
