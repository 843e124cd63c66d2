"""Property-based tests for the retry wrapper with exponential backoff."""

import pytest
import structlog
from hypothesis import given, settings, strategies as st

from drive_registry.remote.errors import RemoteError, RemoteErrorKind
from drive_registry.utils.retry import BackoffRetrier, backoff_delay

log = structlog.stdlib.get_logger()


def transient() -> RemoteError:
    return RemoteError(RemoteErrorKind.TRANSIENT, "rate limited", operation="test")


class FlakyCall:
    """Raises the given errors in order, then returns ``result``."""

    def __init__(self, errors: list[Exception], result: str = "success"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


def test_four_transient_failures_then_success_returns_result():
    sleeps: list[float] = []
    retrier = BackoffRetrier(max_attempts=5, sleep=sleeps.append, jitter=lambda: 0.0)
    call = FlakyCall([transient() for _ in range(4)], result={"id": "abc"})

    assert retrier(call) == {"id": "abc"}
    assert call.calls == 5
    assert sleeps == [1.0, 2.0, 4.0, 8.0]


def test_fifth_transient_failure_propagates_without_sixth_attempt():
    sleeps: list[float] = []
    retrier = BackoffRetrier(max_attempts=5, sleep=sleeps.append, jitter=lambda: 0.0)
    call = FlakyCall([transient() for _ in range(6)])

    with pytest.raises(RemoteError) as excinfo:
        retrier(call)

    assert excinfo.value.kind is RemoteErrorKind.TRANSIENT
    assert call.calls == 5
    assert len(sleeps) == 4


@pytest.mark.parametrize(
    "kind",
    [
        RemoteErrorKind.NOT_FOUND,
        RemoteErrorKind.FORBIDDEN,
        RemoteErrorKind.INVALID_CURSOR,
        RemoteErrorKind.OTHER,
    ],
)
def test_non_transient_errors_are_not_retried(kind: RemoteErrorKind):
    sleeps: list[float] = []
    retrier = BackoffRetrier(sleep=sleeps.append)
    call = FlakyCall([RemoteError(kind, "boom")])

    with pytest.raises(RemoteError) as excinfo:
        retrier(call)

    assert excinfo.value.kind is kind
    assert call.calls == 1
    assert sleeps == []


def test_exceptions_outside_the_taxonomy_propagate_untouched():
    retrier = BackoffRetrier(sleep=lambda _: None)
    call = FlakyCall([KeyError("missing")])

    with pytest.raises(KeyError):
        retrier(call)
    assert call.calls == 1


@given(
    failures=st.integers(min_value=0, max_value=4),
    jitters=st.lists(st.floats(min_value=0.0, max_value=0.999), min_size=4, max_size=4),
)
@settings(max_examples=100, deadline=None)
def test_backoff_delays_stay_within_exponential_bounds(failures: int, jitters: list[float]):
    """Each delay is 2^attempt seconds plus jitter below one second."""
    log.info("test_backoff_delays_stay_within_exponential_bounds", failures=failures)

    sleeps: list[float] = []
    jitter_source = iter(jitters)
    retrier = BackoffRetrier(max_attempts=5, sleep=sleeps.append, jitter=lambda: next(jitter_source))
    call = FlakyCall([transient() for _ in range(failures)])

    assert retrier(call) == "success"
    assert call.calls == failures + 1
    assert len(sleeps) == failures

    for attempt, delay in enumerate(sleeps):
        assert 2**attempt <= delay < 2**attempt + 1.0
        assert delay == pytest.approx(backoff_delay(attempt, jitters[attempt]))


@given(st.integers(min_value=1, max_value=10))
@settings(max_examples=50, deadline=None)
def test_max_attempts_is_respected(max_attempts: int):
    retrier = BackoffRetrier(max_attempts=max_attempts, sleep=lambda _: None)
    call = FlakyCall([transient() for _ in range(max_attempts + 5)])

    with pytest.raises(RemoteError):
        retrier(call)

    assert call.calls == max_attempts


def test_max_attempts_must_be_positive():
    with pytest.raises(ValueError):
        BackoffRetrier(max_attempts=0)
