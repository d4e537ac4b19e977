"""
Bounded retry for eventually-consistent reads.

The attempt callable returns None while the value is not there yet; any
other value stops the loop. After the last attempt the result is None
rather than an exception, so callers decide what "gave up" means.
"""

import logging
import time
from typing import Callable, Optional, TypeVar

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_result,
    stop_after_attempt,
    wait_fixed,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_missing(result) -> bool:
    return result is None


def bounded_retry(
    attempts: int,
    delay: float,
    sleep: Callable[[float], None] = time.sleep,
) -> Retrying:
    """Retrying policy: `attempts` calls in total, fixed `delay` seconds between them."""
    if attempts < 1:
        raise ValueError("attempts must be at least 1")
    if delay < 0:
        raise ValueError("delay must not be negative")
    return Retrying(
        stop=stop_after_attempt(attempts),
        wait=wait_fixed(delay),
        retry=retry_if_result(_is_missing),
        retry_error_callback=lambda retry_state: None,
        before_sleep=before_sleep_log(logger, logging.INFO),
        sleep=sleep,
        reraise=True,
    )


def retry_until_result(
    fn: Callable[[], Optional[T]],
    attempts: int,
    delay: float,
    sleep: Callable[[float], None] = time.sleep,
) -> Optional[T]:
    """Call `fn` until it returns something other than None, at most `attempts` times.

    Exceptions raised by `fn` are not retried; they propagate to the caller.
    """
    return bounded_retry(attempts, delay, sleep=sleep)(fn)
