"""
Bounded retry loop with exponential backoff and jitter.

Delay before attempt n+1 (n >= 1 is the attempt that just failed):

    min(random(1, 2) * min_timeout_ms * factor**n, max_timeout_ms)

Only ``TransferAttemptError`` is absorbed. Anything else, including
``MaterializationError``, propagates on the spot.
"""

from __future__ import annotations
import random
import time
from typing import Callable, TypeVar

from libs.artifact_upload.config import UploadConfig
from libs.artifact_upload.errors import RetryExhaustedError, TransferAttemptError, is_retryable
from libs.artifact_upload.logging import warn
from libs.artifact_upload.types import RetryState

T = TypeVar("T")


def backoff_delay_ms(attempt: int, config: UploadConfig, rng: random.Random | None = None) -> float:
    """Milliseconds to wait after failed attempt ``attempt`` (1-based)."""
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")
    jitter = ((rng or random).random() + 1) if config.randomize else 1
    return min(jitter * config.min_timeout_ms * config.factor**attempt, config.max_timeout_ms)


def run_with_retries(
    operation: Callable[[int], T],
    *,
    config: UploadConfig,
    sleep: Callable[[float], None] = time.sleep,
    rng: random.Random | None = None,
) -> T:
    """
    Call ``operation(attempt_number)`` until it returns or attempts run out.

    Raises:
        RetryExhaustedError: every attempt raised TransferAttemptError;
            wraps the last one
    """
    state = RetryState()
    while state.attempt_number < config.max_attempts:
        state.attempt_number += 1
        try:
            return operation(state.attempt_number)
        except TransferAttemptError as e:
            state.last_error = e
            if not is_retryable(e.code) or state.attempt_number >= config.max_attempts:
                break
            delay_ms = backoff_delay_ms(state.attempt_number, config, rng)
            warn(
                "upload.attempt.failed",
                attempt_number=state.attempt_number,
                code=e.code,
                status_code=e.status_code,
                delay_ms=round(delay_ms),
                err=e.message,
            )
            sleep(delay_ms / 1000.0)

    last = state.last_error
    raise RetryExhaustedError(
        f"Upload failed after {state.attempt_number} attempt(s): {last.message}",
        attempts=state.attempt_number,
        last_error=last,
    ) from last
