import pytest
from conftest import ThrottleError

from toonstudio.common import is_throttling_error, retry_on_throttle


def _flaky(failures):
    calls = {"count": 0}

    def operation():
        calls["count"] += 1
        if failures:
            raise failures.pop(0)
        return "image"

    return operation, calls


def test_two_throttles_then_success_waits_two_then_four_seconds(recorded_sleep):
    operation, calls = _flaky([ThrottleError("slow down"), ThrottleError("slow down")])

    result = retry_on_throttle(operation, sleep=recorded_sleep.append)

    assert result == "image"
    assert calls["count"] == 3
    assert recorded_sleep == [2.0, 4.0]


def test_non_throttling_error_propagates_without_retry(recorded_sleep):
    operation, calls = _flaky([RuntimeError("No image data returned.")])

    with pytest.raises(RuntimeError, match="No image data returned."):
        retry_on_throttle(operation, sleep=recorded_sleep.append)

    assert calls["count"] == 1
    assert recorded_sleep == []


def test_exhausted_budget_reraises_last_throttle(recorded_sleep):
    errors = [ThrottleError(f"attempt {index}") for index in range(4)]
    operation, calls = _flaky(list(errors))

    with pytest.raises(ThrottleError, match="attempt 3"):
        retry_on_throttle(operation, retries=3, sleep=recorded_sleep.append)

    assert calls["count"] == 4
    assert recorded_sleep == [2.0, 4.0, 8.0]


def test_zero_retries_calls_once(recorded_sleep):
    operation, calls = _flaky([ThrottleError("busy")])

    with pytest.raises(ThrottleError):
        retry_on_throttle(operation, retries=0, sleep=recorded_sleep.append)

    assert calls["count"] == 1
    assert recorded_sleep == []


def test_negative_retries_rejected():
    with pytest.raises(ValueError):
        retry_on_throttle(lambda: None, retries=-1)


@pytest.mark.parametrize(
    "exc",
    [
        ThrottleError("busy"),
        Exception("429 Too Many Requests"),
        Exception("RESOURCE_EXHAUSTED: quota"),
    ],
)
def test_throttling_errors_detected(exc):
    assert is_throttling_error(exc)


def test_other_errors_are_not_throttling():
    assert not is_throttling_error(ValueError("bad prompt"))
