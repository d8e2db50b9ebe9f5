"""Retry handler with exponential backoff and circuit breaking.

Operations are keyed (normally by site name). Each key has its own circuit
and its own statistics; a failing site never slows down the others.
"""

import logging
import random
import threading
import time
from dataclasses import asdict, dataclass, replace
from datetime import datetime
from typing import Any, Callable, Dict, Optional, TypeVar

from jobwatch.config.models import RetryConfig
from jobwatch.logging import get_logger
from jobwatch.utils.timestamps import utc_now

from .circuit import CircuitBreakerRegistry
from .exceptions import RetryExhaustedError

logger = get_logger(__name__, component="retry")

T = TypeVar("T")

# Error messages that indicate a problem another attempt cannot fix
NON_RETRYABLE_PATTERNS = (
    "authentication",
    "authorization",
    "unauthorized",
    "forbidden",
    "not found",
    "bad request",
    "invalid",
)


def is_retryable(error: BaseException) -> bool:
    """Classify an error as worth another attempt.

    Errors carrying a ``retryable`` attribute (the scraper exceptions) are
    classified by it. Anything else is retryable unless its message contains
    one of NON_RETRYABLE_PATTERNS.
    """
    flag = getattr(error, "retryable", None)
    if flag is not None:
        return bool(flag)
    message = str(error).lower()
    return not any(pattern in message for pattern in NON_RETRYABLE_PATTERNS)


@dataclass
class RetryStats:
    """Attempt counters for one operation key."""

    key: str
    success_count: int = 0
    failure_count: int = 0
    exhausted_count: int = 0
    last_success_at: Optional[datetime] = None
    last_failure_at: Optional[datetime] = None

    @property
    def total_attempts(self) -> int:
        return self.success_count + self.failure_count

    @property
    def success_rate(self) -> float:
        if self.total_attempts == 0:
            return 0.0
        return self.success_count / self.total_attempts

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["total_attempts"] = self.total_attempts
        data["success_rate"] = round(self.success_rate, 4)
        for field_name in ("last_success_at", "last_failure_at"):
            if data[field_name] is not None:
                data[field_name] = data[field_name].isoformat()
        return data


class RetryHandler:
    """Run operations with bounded retries behind a per-key circuit breaker.

    Every failed attempt counts toward the key's circuit. Non-retryable
    errors are re-raised unchanged after being counted. When attempts run
    out, or the circuit opens partway through, RetryExhaustedError is raised
    with the last underlying error attached.
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        circuit_breakers: Optional[CircuitBreakerRegistry] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        jitter: Callable[[float, float], float] = random.uniform,
        logger_instance: Optional[logging.Logger] = None,
    ):
        """Initialize the handler.

        Args:
            config: Backoff and breaker settings (defaults apply when omitted)
            circuit_breakers: Shared registry; a new one is built from config if omitted
            sleep: Sleep function, injectable for tests
            clock: Monotonic time source for a registry built here
            jitter: Function returning a random float in [low, high]
            logger_instance: Logger override
        """
        self.config = config or RetryConfig()
        self.circuit_breakers = circuit_breakers or CircuitBreakerRegistry(
            threshold=self.config.circuit_breaker_threshold,
            cooldown_seconds=self.config.circuit_breaker_cooldown,
            clock=clock,
        )
        self.sleep = sleep
        self.jitter = jitter
        self.logger = logger_instance or logger
        self._stats: Dict[str, RetryStats] = {}
        self._stats_lock = threading.Lock()

    def compute_delay(self, attempt: int) -> float:
        """Delay to wait after failed attempt number ``attempt`` (1-based)."""
        backoff = self.config.base_delay * (self.config.multiplier ** (attempt - 1))
        capped = min(self.config.max_delay, backoff)
        return capped + self.jitter(0.0, self.config.jitter_max)

    def execute_with_retry(self, operation: Callable[[], T], operation_key: str) -> T:
        """Call ``operation`` until it succeeds or attempts run out.

        Args:
            operation: Zero-argument callable
            operation_key: Circuit and statistics key

        Returns:
            Whatever ``operation`` returns

        Raises:
            CircuitOpenError: The circuit is open; ``operation`` was not called
            RetryExhaustedError: All attempts failed or the circuit opened mid-sequence
            Exception: A non-retryable error from ``operation``, unchanged
        """
        is_trial = self.circuit_breakers.acquire(operation_key)
        attempts_allowed = 1 if is_trial else self.config.max_attempts
        attempt = 0
        last_error: Optional[Exception] = None

        try:
            while attempt < attempts_allowed:
                attempt += 1
                try:
                    result = operation()
                except Exception as error:
                    last_error = error
                    self.circuit_breakers.record_failure(operation_key)
                    self._record_failure(operation_key)

                    if not is_retryable(error):
                        self.logger.error(
                            f"Non-retryable error for {operation_key}: {error}",
                            extra={
                                "event": "retry.non_retryable",
                                "operation_key": operation_key,
                                "attempt": attempt,
                                "error_type": type(error).__name__,
                            },
                        )
                        raise

                    if attempt >= attempts_allowed:
                        break

                    if self.circuit_breakers.is_open(operation_key):
                        self.logger.warning(
                            f"Circuit opened for {operation_key}, abandoning retries",
                            extra={
                                "event": "retry.circuit_opened",
                                "operation_key": operation_key,
                                "attempt": attempt,
                            },
                        )
                        break

                    delay = self.compute_delay(attempt)
                    self.logger.warning(
                        f"Attempt {attempt}/{attempts_allowed} for {operation_key} failed: {error}",
                        extra={
                            "event": "retry.attempt.failed",
                            "operation_key": operation_key,
                            "attempt": attempt,
                            "delay_seconds": round(delay, 3),
                            "error_type": type(error).__name__,
                        },
                    )
                    self.sleep(delay)
                else:
                    self.circuit_breakers.record_success(operation_key)
                    self._record_success(operation_key)
                    if attempt > 1:
                        self.logger.info(
                            f"{operation_key} succeeded on attempt {attempt}",
                            extra={
                                "event": "retry.recovered",
                                "operation_key": operation_key,
                                "attempt": attempt,
                            },
                        )
                    return result
        finally:
            if is_trial:
                self.circuit_breakers.abandon_trial(operation_key)

        with self._stats_lock:
            self._stats_for(operation_key).exhausted_count += 1
        self.logger.error(
            f"{operation_key} failed after {attempt} attempt(s): {last_error}",
            extra={
                "event": "retry.exhausted",
                "operation_key": operation_key,
                "attempts": attempt,
            },
        )
        raise RetryExhaustedError(operation_key, attempt, last_error) from last_error

    def get_stats(self, operation_key: str) -> Optional[RetryStats]:
        with self._stats_lock:
            stats = self._stats.get(operation_key)
            return replace(stats) if stats is not None else None

    def get_all_stats(self) -> Dict[str, Dict[str, Any]]:
        with self._stats_lock:
            return {key: stats.to_dict() for key, stats in self._stats.items()}

    def reset_stats(self) -> None:
        with self._stats_lock:
            self._stats.clear()

    def _stats_for(self, operation_key: str) -> RetryStats:
        return self._stats.setdefault(operation_key, RetryStats(key=operation_key))

    def _record_success(self, operation_key: str) -> None:
        with self._stats_lock:
            stats = self._stats_for(operation_key)
            stats.success_count += 1
            stats.last_success_at = utc_now()

    def _record_failure(self, operation_key: str) -> None:
        with self._stats_lock:
            stats = self._stats_for(operation_key)
            stats.failure_count += 1
            stats.last_failure_at = utc_now()
