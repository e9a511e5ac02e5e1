"""Exponential backoff with jitter

Used by the award transaction between conditional-write attempts:
1. Only conflicts (lost optimistic-concurrency races) are retried
2. Uses exponential backoff with jitter so racing writers spread out
3. Gives up after a fixed number of attempts
"""

import random
import logging

from src.exceptions import ConcurrencyError

logger = logging.getLogger(__name__)

# Retry configuration
BASE_DELAY = 0.05  # seconds
MAX_DELAY = 2.0  # seconds
JITTER = 0.1  # 10% random jitter


def is_retryable_error(exc: Exception) -> bool:
    """
    Determine if an award failure should be retried.

    Retryable:
    - ConcurrencyError (another writer committed first)

    Non-retryable:
    - RecordNotFoundError (no user context)
    - ValidationError (bad caller input)
    - Database driver errors (already bounded by the store's own timeout)

    Args:
        exc: The exception to check

    Returns:
        True if error should be retried, False otherwise
    """
    return isinstance(exc, ConcurrencyError)


def calculate_backoff(
    attempt: int,
    base_delay: float = BASE_DELAY,
    max_delay: float = MAX_DELAY
) -> float:
    """
    Calculate exponential backoff delay with jitter.

    Formula: delay = min(base_delay * (2 ** attempt), max_delay) + jitter
    Jitter is random value between -10% and +10% of delay

    Args:
        attempt: The retry attempt number (0-indexed)
        base_delay: Delay before the first retry
        max_delay: Upper bound before jitter

    Returns:
        Delay in seconds

    Example (defaults):
        Attempt 0: ~0.05s
        Attempt 1: ~0.1s
        Attempt 2: ~0.2s
        Attempt 3: ~0.4s
    """
    # Exponential backoff
    delay = min(base_delay * (2 ** attempt), max_delay)

    # Add jitter to prevent thundering herd
    jitter_amount = random.uniform(-JITTER * delay, JITTER * delay)
    final_delay = delay + jitter_amount

    return max(final_delay, 0.0)  # Ensure non-negative
