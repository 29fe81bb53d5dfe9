"""
Retry helper for transient backend failures.
"""

import logging
import time
from typing import Any, Callable, Tuple, Type

from ..config.constants import MAX_RETRIES, RETRY_DELAY_SECONDS

logger = logging.getLogger(__name__)


def call_with_retries(
    func: Callable[..., Any],
    *args,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    max_attempts: int = MAX_RETRIES,
    delay_seconds: float = RETRY_DELAY_SECONDS,
    description: str = "",
    **kwargs,
) -> Any:
    """
    Call ``func`` and retry on ``retry_on`` errors.

    The last error is re-raised once ``max_attempts`` is exhausted.
    """
    attempt = 1
    while True:
        try:
            return func(*args, **kwargs)
        except retry_on as e:
            if attempt >= max_attempts:
                raise
            logger.warning(
                f"{description or func.__name__} failed (attempt {attempt}/{max_attempts}): {e}, retrying..."
            )
            time.sleep(delay_seconds)
            attempt += 1
