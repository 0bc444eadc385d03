"""
Retry helper for engine operations.

Only CONCURRENCY_CONFLICT results are retried; every other error kind is
returned to the caller unchanged.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TypeVar

from contravention_kernel.logging_config import get_logger
from contravention_services.results import EngineResult

logger = get_logger("services.retry")

T = TypeVar("T")


def retry_on_conflict(
    operation: Callable[[], EngineResult[T]],
    max_attempts: int = 3,
    backoff_seconds: float = 0.05,
) -> EngineResult[T]:
    """
    Call *operation* until it succeeds, fails with a non-retryable error,
    or *max_attempts* is reached.  Backoff doubles after each conflict.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    delay = backoff_seconds
    result = operation()
    attempt = 1
    while result.is_retryable and attempt < max_attempts:
        logger.info(
            "engine_operation_retry",
            extra={
                "engine_operation": result.operation,
                "attempt": attempt,
                "error_code": result.error_code,
            },
        )
        if delay > 0:
            time.sleep(delay)
            delay *= 2
        result = operation()
        attempt += 1

    if result.is_retryable:
        logger.warning(
            "engine_operation_retries_exhausted",
            extra={"engine_operation": result.operation, "attempts": attempt},
        )
    return result
