"""
Retry helpers for rate-limited generation endpoints.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRIES = 3
DEFAULT_INITIAL_DELAY = 2.0

_THROTTLING_STATUSES = (429, "429", "RESOURCE_EXHAUSTED")
_THROTTLING_MARKERS = ("429", "RESOURCE_EXHAUSTED")


def is_throttling_error(exc: BaseException) -> bool:
    """
    Return True when ``exc`` signals that the caller exceeded its request quota.

    LiteLLM exposes ``status_code``, Replicate exposes ``status``, and the Gemini
    SDKs use ``code`` or a ``RESOURCE_EXHAUSTED`` status; the message is checked
    last for providers that only embed the marker in text.
    """
    for attribute in ("status_code", "status", "code"):
        value = getattr(exc, attribute, None)
        if value in _THROTTLING_STATUSES:
            return True

    message = str(exc)
    return any(marker in message for marker in _THROTTLING_MARKERS)


def _log_before_sleep(retries: int) -> Callable[[RetryCallState], None]:
    def _log(retry_state: RetryCallState) -> None:
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        remaining = retries - retry_state.attempt_number + 1
        logger.warning(
            "Quota exceeded. Retrying in %dms... (%d retries left)",
            int(delay * 1000),
            remaining,
        )

    return _log


def retry_on_throttle(
    operation: Callable[[], T],
    *,
    retries: int = DEFAULT_RETRIES,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    sleep: Callable[[float], Any] = time.sleep,
) -> T:
    """
    Run ``operation`` and retry it on throttling errors with exponential backoff.

    Waits ``initial_delay`` seconds before the first retry and doubles the delay
    on every further attempt (2s, 4s, 8s by default). Once ``retries`` retries
    are spent the last throttling error is re-raised. Any other error propagates
    immediately without a retry.
    """
    if retries < 0:
        raise ValueError("retries must be zero or a positive integer.")

    retrying = Retrying(
        retry=retry_if_exception(is_throttling_error),
        stop=stop_after_attempt(retries + 1),
        wait=wait_exponential(multiplier=initial_delay, exp_base=2, min=initial_delay),
        sleep=sleep,
        before_sleep=_log_before_sleep(retries),
        reraise=True,
    )
    return retrying(operation)
