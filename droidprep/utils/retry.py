"""Bounded exponential backoff for host API calls"""

import logging
import time
from typing import Callable, Tuple, Type, TypeVar

from droidprep.core.exceptions import TransientHostError

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_ATTEMPTS = 3
INITIAL_DELAY = 5.0
MAX_DELAY = 20.0
BACKOFF_FACTOR = 2.0

def retry_with_backoff(
    operation: Callable[[], T],
    max_attempts: int = MAX_ATTEMPTS,
    initial_delay: float = INITIAL_DELAY,
    max_delay: float = MAX_DELAY,
    backoff_factor: float = BACKOFF_FACTOR,
    retry_on: Tuple[Type[BaseException], ...] = (TransientHostError,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run an operation, retrying only failures classified as transient"""
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    delay = initial_delay
    attempt = 1
    while True:
        try:
            return operation()
        except retry_on as e:
            if attempt >= max_attempts:
                logger.error(
                    "Operation failed after %d attempts: %s", attempt, e
                )
                raise
            logger.warning(
                "Attempt %d/%d failed: %s. Retrying in %.1fs",
                attempt, max_attempts, e, delay
            )
            sleep(delay)
            delay = min(delay * backoff_factor, max_delay)
            attempt += 1
