"""Retry helpers for the award transaction's conditional writes

Backoff with jitter between optimistic-concurrency attempts.
"""

from src.resilience.retry import calculate_backoff, is_retryable_error

__all__ = [
    "calculate_backoff",
    "is_retryable_error",
]
