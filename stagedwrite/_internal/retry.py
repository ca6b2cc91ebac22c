"""
Bounded retry for transient store failures
"""

import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar

from stagedwrite.core.config import RetryPolicy
from stagedwrite.core.exceptions import StoreUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


def call_with_retry(
    fn: Callable[..., T],
    *args: Any,
    policy: RetryPolicy | None = None,
    description: str = "",
    **kwargs: Any,
) -> T:
    """
    Call ``fn`` and retry on StoreUnavailable

    The same arguments are passed on every try. Any other exception
    propagates immediately.

    Raises:
        StoreUnavailable: The last failure once ``policy.max_attempts`` is used up
    """
    policy = policy or RetryPolicy()
    what = description or getattr(fn, "__name__", "store call")

    attempt = 1
    while True:
        try:
            return fn(*args, **kwargs)
        except StoreUnavailable as e:
            if attempt >= policy.max_attempts:
                logger.error(f"{what} failed after {attempt} attempts: {e}")
                raise
            delay = policy.delay(attempt)
            logger.warning(
                f"{what} failed (attempt {attempt}/{policy.max_attempts}), "
                f"retrying in {delay:.2f}s: {e}"
            )
            if delay > 0:
                time.sleep(delay)
        attempt += 1
