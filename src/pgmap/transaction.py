# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Isolation levels and the bounded retry combinator used by transactions."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TypeVar

from .errors import RETRYABLE_KINDS, error_kind

T = TypeVar("T")

DEFAULT_RETRIES = 10
"""Retries after the first attempt on serialization failure or deadlock."""

DEFAULT_RETRY_DELAY = 0.01
"""Fixed delay between attempts, in seconds."""


class IsolationLevel(str, Enum):
    """Transaction isolation level, rendered verbatim after ISOLATION LEVEL."""

    SERIALIZABLE = "SERIALIZABLE"
    REPEATABLE_READ = "REPEATABLE READ"
    READ_COMMITTED = "READ COMMITTED"
    READ_UNCOMMITTED = "READ UNCOMMITTED"


def is_contention(error: BaseException) -> bool:
    """True for classified serialization failures and deadlocks."""
    return error_kind(error) in RETRYABLE_KINDS


async def retry(
    operation: Callable[[], Awaitable[T]],
    *,
    should_retry: Callable[[BaseException], bool] = is_contention,
    retries: int = DEFAULT_RETRIES,
    delay: float = DEFAULT_RETRY_DELAY,
    logger: logging.Logger | None = None,
) -> T:
    """Run ``operation`` until it succeeds, retrying selected failures.

    The operation runs at most ``1 + retries`` times. After a failure for
    which ``should_retry`` is true, and while retries remain, it waits
    ``delay`` seconds and runs again. Any other failure, or the last one,
    is re-raised unchanged.

    Args:
        operation: Zero-argument coroutine function, one call per attempt.
        should_retry: Predicate on the raised exception.
        retries: Maximum number of retries after the first attempt.
        delay: Seconds to wait before each retry.
        logger: Logger for retry decisions (default: module logger).
    """
    if retries < 0:
        raise ValueError(f"retries must be non-negative, got {retries}")
    log = logger or logging.getLogger(__name__)
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as e:
            if attempt >= retries or not should_retry(e):
                raise
            attempt += 1
            log.debug("retrying after %s (retry %d of %d)", e, attempt, retries)
        await asyncio.sleep(delay)


__all__ = [
    "DEFAULT_RETRIES",
    "DEFAULT_RETRY_DELAY",
    "IsolationLevel",
    "is_contention",
    "retry",
]
