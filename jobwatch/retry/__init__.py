"""Retry with exponential backoff and per-key circuit breaking."""

from .circuit import CircuitBreakerRegistry, CircuitState, CircuitStatus
from .exceptions import CircuitOpenError, RetryError, RetryExhaustedError
from .handler import NON_RETRYABLE_PATTERNS, RetryHandler, RetryStats, is_retryable

__all__ = [
    "CircuitBreakerRegistry",
    "CircuitOpenError",
    "CircuitState",
    "CircuitStatus",
    "NON_RETRYABLE_PATTERNS",
    "RetryError",
    "RetryExhaustedError",
    "RetryHandler",
    "RetryStats",
    "is_retryable",
]
